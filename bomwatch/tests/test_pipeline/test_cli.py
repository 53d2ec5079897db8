"""Tests for CLI commands."""

import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import yaml

from bomwatch.cli import main, setup_logging
from bomwatch.config.loader import load_config
from bomwatch.config.schema import LoggingConfig
from bomwatch.ingest.radar_filenames import build_data_layer_filename
from bomwatch.models.radar import RadarType
from bomwatch.tests.factories import FakeRadarFetcher, FakeWeatherFetcher, png_bytes


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep main() from replacing the root handlers pytest captures with."""
    monkeypatch.setattr("bomwatch.cli.setup_logging", lambda *args, **kwargs: None)


@pytest.fixture
def fake_client(monkeypatch, fetcher: FakeWeatherFetcher) -> FakeWeatherFetcher:
    monkeypatch.setattr("bomwatch.cli.build_bom_client", lambda config: fetcher)
    return fetcher


def run(config_path: Path, *args: str) -> int:
    return main(["--config", str(config_path), *args])


class TestCLI:
    def test_no_command_returns_1(self, capsys):
        result = main([])
        assert result == 1
        assert "usage" in capsys.readouterr().out

    def test_invalid_config(self, tmp_path: Path, capsys):
        config_path = tmp_path / "bad.yml"
        config_path.write_text("nonsense: true\n")
        assert run(config_path, "config", "show") == 1
        assert "invalid config" in capsys.readouterr().out

    def test_config_show(self, config_yaml_path: Path, capsys):
        result = run(config_yaml_path, "config", "show")
        assert result == 0
        assert "Melbourne-r1r0fsn" in capsys.readouterr().out

    def test_config_set(self, config_yaml_path: Path, capsys):
        result = run(config_yaml_path, "config", "set", "monitor.min_sleep_seconds=5")
        assert result == 0
        assert "Set monitor.min_sleep_seconds = 5" in capsys.readouterr().out
        assert load_config(config_yaml_path).monitor.min_sleep_seconds == 5

    def test_config_set_needs_equals(self, config_yaml_path: Path, capsys):
        assert run(config_yaml_path, "config", "set", "monitor.min_sleep_seconds") == 1

    def test_config_set_unknown_key(self, config_yaml_path: Path, capsys):
        assert run(config_yaml_path, "config", "set", "weather.bogus=1") == 1
        assert capsys.readouterr().out.startswith("Error:")


class TestLocations:
    def test_search(self, tmp_path: Path, fake_client, capsys):
        assert run(tmp_path / "config.yml", "search", "Melb") == 0
        assert "Melbourne-r1r0fsn  (Melbourne VIC 3000)" in capsys.readouterr().out

    def test_search_no_results(self, tmp_path: Path, fake_client, capsys):
        assert run(tmp_path / "config.yml", "search", "Atlantis") == 1

    def test_add_location_by_search_term(self, tmp_path: Path, fake_client, capsys):
        config_path = tmp_path / "config.yml"
        assert run(config_path, "add-location", "Melbourne") == 0
        assert load_config(config_path).locations == ["Melbourne-r1r0fsn"]
        assert "Added Melbourne-r1r0fsn" in capsys.readouterr().out

    def test_add_location_twice(self, config_yaml_path: Path, fake_client, capsys):
        assert run(config_yaml_path, "add-location", "Melbourne-r1r0fsn") == 1
        assert "already in" in capsys.readouterr().out

    def test_add_radar(self, tmp_path: Path, capsys):
        config_path = tmp_path / "config.yml"
        assert run(config_path, "add-radar", "71", "Sydney") == 0
        with open(config_path) as f:
            data = yaml.safe_load(f)
        assert data["radars"][0]["id"] == 71


class TestWeatherCommands:
    def test_current(self, config_yaml_path: Path, fake_client, capsys):
        assert run(config_yaml_path, "current", "--fstring", "{temp} {wind_direction}") == 0
        assert capsys.readouterr().out.strip() == "21.5 SW"

    def test_current_without_locations(self, tmp_path: Path, fake_client, capsys):
        assert run(tmp_path / "config.yml", "current") == 1
        assert "No locations configured" in capsys.readouterr().out

    def test_current_bad_template(self, config_yaml_path: Path, fake_client, capsys):
        assert run(config_yaml_path, "current", "--fstring", "{nope}") == 1
        assert "nope is not a valid key" in capsys.readouterr().out

    def test_list_keys(self, tmp_path: Path, capsys):
        assert run(tmp_path / "config.yml", "current", "--list-keys") == 0
        keys = capsys.readouterr().out.split()
        assert "temp" in keys
        assert "wind_gust" in keys

    def test_daily(self, config_yaml_path: Path, fake_client, capsys):
        assert run(config_yaml_path, "daily") == 0
        out = capsys.readouterr().out
        assert out.startswith("Forecast for Melbourne issued at")

    def test_force_check_refetches_daily(self, config_yaml_path: Path, fake_client, capsys):
        run(config_yaml_path, "daily")
        fake_client.calls.clear()
        assert run(config_yaml_path, "daily", "--force-check") == 0
        assert "daily" in fake_client.calls

    def test_hourly(self, config_yaml_path: Path, fake_client, capsys):
        assert run(config_yaml_path, "hourly", "--hours", "3") == 0
        assert "Hourly forecast for Melbourne" in capsys.readouterr().out


class TestRadarCommands:
    def test_radar_writes_frames(self, config_yaml_path: Path, tmp_path: Path,
                                 monkeypatch, capsys):
        now = datetime.now(UTC).replace(second=0, microsecond=0)
        files = {
            build_data_layer_filename(2, RadarType.ONE_TWENTY_EIGHT_KM,
                                      now - timedelta(minutes=m)): png_bytes()
            for m in (10, 5)
        }
        monkeypatch.setattr(
            "bomwatch.cli.build_ftp_client", lambda config: FakeRadarFetcher(files)
        )
        image_dir = tmp_path / "images"

        assert run(config_yaml_path, "radar", "-n", "3", "-o", str(image_dir)) == 0

        assert "IDR023: 2 frames" in capsys.readouterr().out
        assert len(list((image_dir / "IDR023").glob("IDR023.T.*.png"))) == 2

    def test_radar_none_configured(self, tmp_path: Path, capsys):
        assert run(tmp_path / "config.yml", "radar") == 1
        assert "No radars configured" in capsys.readouterr().out

    def test_monitor_status_without_monitor(self, tmp_path: Path, capsys):
        assert run(tmp_path / "config.yml", "monitor", "--status") == 1
        assert "No monitor state" in capsys.readouterr().out


class TestSetupLogging:
    def test_console_and_file_handlers(self, tmp_path: Path):
        root = logging.getLogger()
        saved = root.handlers[:], root.level
        try:
            setup_logging(LoggingConfig(), tmp_path / "logs" / "bomwatch.log", verbose=True)
            console, file_handler = root.handlers
            assert console.level == logging.DEBUG
            logging.getLogger("bomwatch.test").info("hello")
            file_handler.flush()
            assert "hello" in (tmp_path / "logs" / "bomwatch.log").read_text()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers, level = saved
            root.setLevel(level)

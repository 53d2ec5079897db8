"""Shared test fixtures."""

import sqlite3
from pathlib import Path

import pytest
import yaml

from bomwatch.config.schema import AppConfig, DirsConfig
from bomwatch.storage.database import connect, run_migrations
from bomwatch.tests.factories import FakeRadarFetcher, FakeWeatherFetcher, make_observation


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path: Path, monkeypatch) -> DirsConfig:
    """Point every XDG directory at the test's temp directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    monkeypatch.setenv("XDG_RUNTIME_DIR", str(tmp_path / "runtime"))
    return DirsConfig.from_environment()


@pytest.fixture
def db(tmp_path: Path) -> sqlite3.Connection:
    conn = connect(tmp_path / "test.db")
    run_migrations(conn)
    yield conn
    conn.close()


@pytest.fixture
def fetcher() -> FakeWeatherFetcher:
    return FakeWeatherFetcher(observation=make_observation())


@pytest.fixture
def radar_fetcher() -> FakeRadarFetcher:
    return FakeRadarFetcher()


@pytest.fixture
def default_config(isolated_dirs: DirsConfig) -> AppConfig:
    return AppConfig()


@pytest.fixture
def config_yaml_path(tmp_path: Path) -> Path:
    """Write a minimal valid config YAML and return its path."""
    data = {
        "locations": ["Melbourne-r1r0fsn"],
        "weather": {"update_delay": 60, "past_observation_amount": 10},
        "radars": [{"id": 2, "name": "Melbourne"}],
    }
    path = tmp_path / "test_config.yaml"
    with open(path, "w") as f:
        yaml.dump(data, f)
    return path


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"

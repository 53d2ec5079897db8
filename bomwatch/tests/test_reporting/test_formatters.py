"""Tests for the format string renderer and forecast tables."""

from datetime import timedelta
from zoneinfo import ZoneInfo

import pytest

from bomwatch.exceptions import TemplateError
from bomwatch.models.descriptor import icon_emoji
from bomwatch.pipeline.weather import Weather
from bomwatch.reporting.current import CurrentWeather, project_current
from bomwatch.reporting.formatters import (
    FormatKey,
    format_daily_table,
    format_hourly_table,
    format_value,
    list_format_keys,
    render_current,
)
from bomwatch.tests.factories import (
    GEOHASH,
    NOW,
    FakeWeatherFetcher,
    make_daily,
    make_hourly,
    make_observation,
)

MELBOURNE = ZoneInfo("Australia/Melbourne")


@pytest.fixture
def current(fetcher: FakeWeatherFetcher) -> CurrentWeather:
    weather = Weather.create(GEOHASH, fetcher, now=NOW)
    return project_current(weather, NOW, MELBOURNE)


class TestRenderCurrent:
    def test_default_template(self, current: CurrentWeather):
        icon = icon_emoji("mostly_sunny", is_night=False)
        assert render_current(current, "{icon} {temp} ({next_temp})") == f"{icon} 21.5 (26)"

    def test_literal_text_kept(self, current: CurrentWeather):
        assert render_current(current, "Now {temp}°, feels {temp_feels_like}°") == (
            "Now 21.5°, feels 20°"
        )

    def test_no_placeholders(self, current: CurrentWeather):
        assert render_current(current, "plain") == "plain"
        assert render_current(current, "") == ""

    def test_unknown_key_named_in_error(self, current: CurrentWeather):
        with pytest.raises(TemplateError, match="bogus is not a valid key"):
            render_current(current, "{icon} {temp} ({bogus})")

    def test_unterminated_brace(self, current: CurrentWeather):
        with pytest.raises(TemplateError, match="is not a valid format string"):
            render_current(current, "{temp} {icon")

    def test_wind_gust_key(self, current: CurrentWeather):
        assert render_current(current, "{wind_speed}/{wind_gust} {wind_direction}") == "13/20 SW"

    def test_every_key_renders(self, current: CurrentWeather):
        for key in list_format_keys():
            assert isinstance(render_current(current, f"{{{key}}}"), str)


class TestFormatValue:
    def test_rain_since_9am_unavailable(self):
        fetcher = FakeWeatherFetcher(observation=None)
        current = project_current(Weather.create(GEOHASH, fetcher, now=NOW), NOW, MELBOURNE)
        assert format_value(current, FormatKey.RAIN_SINCE_9AM) == "??"

    def test_rain_since_9am_zero(self):
        fetcher = FakeWeatherFetcher(observation=make_observation(rain_since_9am=0.0))
        current = project_current(Weather.create(GEOHASH, fetcher, now=NOW), NOW, MELBOURNE)
        assert format_value(current, FormatKey.RAIN_SINCE_9AM) == "0"

    @pytest.mark.parametrize("rain, text", [
        (1234.567, "1234.567"),
        (1234567.0, "1234567"),
        (0.25, "0.25"),
    ])
    def test_numbers_keep_all_digits(self, rain, text):
        fetcher = FakeWeatherFetcher(observation=make_observation(rain_since_9am=rain))
        current = project_current(Weather.create(GEOHASH, fetcher, now=NOW), NOW, MELBOURNE)
        assert format_value(current, FormatKey.RAIN_SINCE_9AM) == text

    def test_list_format_keys(self):
        keys = list_format_keys()
        assert "temp" in keys
        assert "wind_gust" in keys
        assert len(keys) == len(set(keys))


class TestDailyTable:
    def test_header_and_rows(self):
        table = format_daily_table("Melbourne", make_daily(), tz=MELBOURNE)
        lines = table.splitlines()
        assert lines[0] == "Forecast for Melbourne issued at 12:00:00 PM"
        assert lines[1].split() == ["Day", "Min", "Max", "Rain", "Chance", "Description"]
        # title, header, underline, one row per day
        assert len(lines) == 3 + 3
        assert "Partly cloudy." in lines[3]

    def test_extended_text(self):
        table = format_daily_table("Melbourne", make_daily(), extended=True, tz=MELBOURNE)
        assert "Light winds." in table

    def test_rain_range(self):
        table = format_daily_table("Melbourne", make_daily(), tz=MELBOURNE)
        assert "0-2mm" in table


class TestHourlyTable:
    def test_rain_columns_hidden_when_dry(self):
        table = format_hourly_table("Melbourne", make_hourly(), NOW, tz=MELBOURNE)
        header = table.splitlines()[1]
        assert "Rain" not in header
        assert "Humidity" in header

    def test_rain_columns_shown(self):
        hourly = make_hourly(rain_chance=30)
        table = format_hourly_table("Melbourne", hourly, NOW, tz=MELBOURNE)
        assert "Chance" in table.splitlines()[1]
        assert "30%" in table

    def test_past_hours_and_limit(self):
        hourly = make_hourly(hours=6)
        table = format_hourly_table(
            "Melbourne", hourly, NOW + timedelta(minutes=30), hours=2, tz=MELBOURNE
        )
        lines = table.splitlines()
        assert lines[0].startswith("Hourly forecast for Melbourne")
        assert len(lines) == 3 + 2
        # 02:00 UTC period is still running, it shows as 1 PM local
        assert "01:00 PM" in lines[3]

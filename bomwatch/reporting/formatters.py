"""Output formatters: the current conditions template and forecast tables."""

from datetime import datetime, tzinfo
from enum import StrEnum

from bomwatch.exceptions import TemplateError
from bomwatch.models.descriptor import icon_description
from bomwatch.models.forecast import DailyForecast, HourlyForecast
from bomwatch.reporting.current import CurrentWeather


class FormatKey(StrEnum):
    TEMP = "temp"
    TEMP_FEELS_LIKE = "temp_feels_like"
    ICON = "icon"
    NEXT_TEMP = "next_temp"
    NEXT_LABEL = "next_label"
    LATER_TEMP = "later_temp"
    LATER_LABEL = "later_label"
    MAX_TEMP = "max_temp"
    OVERNIGHT_MIN = "overnight_min"
    TOMORROW_MAX = "tomorrow_max"
    RAIN_SINCE_9AM = "rain_since_9am"
    HOURLY_RAIN_CHANCE = "hourly_rain_chance"
    HOURLY_RAIN_MIN = "hourly_rain_min"
    HOURLY_RAIN_MAX = "hourly_rain_max"
    TODAY_RAIN_CHANCE = "today_rain_chance"
    TODAY_RAIN_MIN = "today_rain_min"
    TODAY_RAIN_MAX = "today_rain_max"
    SHORT_TEXT = "short_text"
    EXTENDED_TEXT = "extended_text"
    WIND_SPEED = "wind_speed"
    WIND_DIRECTION = "wind_direction"
    WIND_GUST = "wind_gust"


# Keys whose name differs from the CurrentWeather attribute
_ATTRIBUTES = {FormatKey.WIND_GUST: "gust"}


def list_format_keys() -> list[str]:
    return [key.value for key in FormatKey]


def _number(value: float | int) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_value(current: CurrentWeather, key: FormatKey) -> str:
    value = getattr(current, _ATTRIBUTES.get(key, key.value))
    if key == FormatKey.RAIN_SINCE_9AM and value is None:
        # The API reports 0 when it hasn't rained, so None means unavailable
        return "??"
    if isinstance(value, (int, float)):
        return _number(value)
    return value


def render_current(current: CurrentWeather, fstring: str) -> str:
    """Substitute {key} placeholders, e.g. "{icon} {temp} ({temp_feels_like})".

    Each placeholder runs from the first '{' to the first '}' of the remaining
    text. There is no escaping and mismatched braces are not detected beyond
    an unterminated '{'.
    """
    output = []
    pos = 0
    remainder = fstring
    while remainder:
        start = remainder.find("{")
        if start == -1:
            output.append(remainder)
            break
        output.append(remainder[:start])
        end = remainder.find("}")
        if end == -1:
            raise TemplateError(f"{fstring} is not a valid format string")
        key = remainder[start + 1:end]
        try:
            format_key = FormatKey(key)
        except ValueError:
            raise TemplateError(f"{key} is not a valid key") from None
        output.append(format_value(current, format_key))
        pos += end + 1
        remainder = fstring[pos:]
    return "".join(output)


def _table(header: list[str], rows: list[list[str]]) -> str:
    widths = [len(h) for h in header]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]
    lines = ["  ".join(h.ljust(w) for h, w in zip(header, widths)).rstrip()]
    lines.append("  ".join("-" * w for w in widths))
    for row in rows:
        lines.append("  ".join(cell.ljust(w) for cell, w in zip(row, widths)).rstrip())
    return "\n".join(lines)


def format_daily_table(
    title: str, daily: DailyForecast, extended: bool = False, tz: tzinfo | None = None
) -> str:
    issued = daily.issue_time.astimezone(tz).strftime("%I:%M:%S %p")
    rows = []
    for day in daily.days:
        if day.rain_max is not None and day.rain_lower_range is not None:
            rain = f"{day.rain_lower_range}-{day.rain_max}{day.rain_units}"
        else:
            rain = "0mm"
        rows.append([
            day.date.astimezone(tz).strftime("%a %d %b"),
            "" if day.temp_min is None else _number(day.temp_min),
            "" if day.temp_max is None else _number(day.temp_max),
            rain,
            "" if day.rain_chance is None else f"{day.rain_chance}%",
            (day.extended_text if extended else day.short_text) or "",
        ])
    table = _table(["Day", "Min", "Max", "Rain", "Chance", "Description"], rows)
    return f"Forecast for {title} issued at {issued}\n{table}"


def format_hourly_table(
    title: str,
    hourly: HourlyForecast,
    now: datetime,
    hours: int = 12,
    tz: tzinfo | None = None,
) -> str:
    """Upcoming hours. Rain columns are only shown if any hour has a chance of rain."""
    issued = hourly.issue_time.astimezone(tz).strftime("%I:%M:%S %p")
    upcoming = [
        h for h in hourly.data
        if h.next_forecast_period is None or h.next_forecast_period > now
    ][:hours]
    show_rain = any(h.rain_chance > 0 for h in upcoming)

    header = ["Time", "Temp", "Desc"]
    if show_rain:
        header += ["Rain", "Chance"]
    header += ["Wind", "Gust", "Humidity"]

    rows = []
    for h in upcoming:
        row = [
            h.time.astimezone(tz).strftime("%a %I:%M %p"),
            f"{_number(h.temp)} ({_number(h.temp_feels_like)})",
            icon_description(h.icon_descriptor, h.is_night),
        ]
        if show_rain:
            rain = f"{h.rain_min}-{h.rain_max}{h.rain_units}" if h.rain_max is not None else "0mm"
            row += [rain, f"{h.rain_chance}%"]
        row += [
            f"{h.wind_speed} {h.wind_direction}".rstrip(),
            str(h.gust_speed),
            f"{h.relative_humidity}%",
        ]
        rows.append(row)
    return f"Hourly forecast for {title} issued at {issued}\n{_table(header, rows)}"

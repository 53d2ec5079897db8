"""Flatten a Weather aggregate into the current conditions shown to the user."""

from dataclasses import dataclass
from datetime import datetime, time, tzinfo

from bomwatch.models.common import utc_now
from bomwatch.models.descriptor import icon_emoji
from bomwatch.models.forecast import DailyPeriod, HourlyPeriod
from bomwatch.pipeline.weather import Weather

# Stands in for a max/min the forecast doesn't have, e.g. on the last day
MISSING_TEMP = -9999.0

DAY_START = time(6, 0)
DAY_END = time(18, 0)


@dataclass(frozen=True)
class CurrentWeather:
    temp: float
    temp_feels_like: float
    max_temp: float
    next_temp: float
    next_label: str
    later_temp: float
    later_label: str
    overnight_min: float
    tomorrow_max: float
    rain_since_9am: float | None
    humidity: int | None
    hourly_rain_chance: int
    hourly_rain_min: int
    hourly_rain_max: int
    today_rain_chance: int
    today_rain_min: int
    today_rain_max: int
    short_text: str
    extended_text: str
    wind_speed: int
    wind_direction: str
    gust: int
    relative_humidity: int
    uv: int
    icon: str
    icon_descriptor: str
    is_night: bool


def current_hour(periods: list[HourlyPeriod], now: datetime) -> HourlyPeriod:
    """The latest period that has started, or the first if none has."""
    if not periods:
        raise ValueError("hourly forecast has no periods")
    current = periods[0]
    for period in periods:
        if period.time <= now:
            current = period
        else:
            break
    return current


def is_daytime(now: datetime, tz: tzinfo | None = None) -> bool:
    """True strictly between 06:00 and 18:00 local time."""
    local = now.astimezone(tz).time()
    return DAY_START < local < DAY_END


def _temp(value: float | None) -> float:
    return MISSING_TEMP if value is None else value


def project_current(
    weather: Weather, now: datetime | None = None, tz: tzinfo | None = None
) -> CurrentWeather:
    """Current conditions at `now`.

    `tz` is the location's timezone, used for the day/night window. When None
    the system's local timezone applies.
    """
    now = now or utc_now()
    if weather.hourly_forecast is None or weather.daily_forecast is None:
        raise ValueError(f"{weather.geohash} has no forecast yet")
    days = weather.daily_forecast.days
    if not days:
        raise ValueError(f"{weather.geohash} daily forecast has no days")

    hour = current_hour(weather.hourly_forecast.data, now)
    today: DailyPeriod = days[0]
    tomorrow: DailyPeriod | None = days[1] if len(days) > 1 else None

    today_max = _temp(today.temp_max)
    overnight_min = _temp(tomorrow.temp_min if tomorrow else None)
    tomorrow_max = _temp(tomorrow.temp_max if tomorrow else None)

    obs = weather.observation
    if obs is not None:
        temp = obs.temp
        temp_feels_like = obs.temp_feels_like
        max_temp = today_max if obs.max_temp is None else max(obs.max_temp, today_max)
        wind_speed = obs.wind_speed
        wind_direction = obs.wind_direction or hour.wind_direction
        gust = obs.gust
    else:
        temp = hour.temp
        temp_feels_like = hour.temp_feels_like
        max_temp = today_max
        wind_speed = hour.wind_speed
        wind_direction = hour.wind_direction
        gust = hour.gust_speed

    if is_daytime(now, tz):
        next_temp, next_label = max_temp, "Max"
        later_temp, later_label = overnight_min, "Overnight min"
    else:
        next_temp, next_label = overnight_min, "Overnight min"
        later_temp, later_label = tomorrow_max, "Tomorrow max"

    return CurrentWeather(
        temp=temp,
        temp_feels_like=temp_feels_like,
        max_temp=max_temp,
        next_temp=next_temp,
        next_label=next_label,
        later_temp=later_temp,
        later_label=later_label,
        overnight_min=overnight_min,
        tomorrow_max=tomorrow_max,
        rain_since_9am=obs.rain_since_9am if obs else None,
        humidity=obs.humidity if obs else None,
        hourly_rain_chance=hour.rain_chance,
        hourly_rain_min=hour.rain_min,
        hourly_rain_max=hour.rain_max or 0,
        today_rain_chance=today.rain_chance or 0,
        today_rain_min=today.rain_min or 0,
        today_rain_max=today.rain_max or 0,
        short_text=today.short_text or "",
        extended_text=today.extended_text or "",
        wind_speed=wind_speed,
        wind_direction=wind_direction,
        gust=gust,
        relative_humidity=hour.relative_humidity,
        uv=hour.uv,
        icon=icon_emoji(hour.icon_descriptor, hour.is_night),
        icon_descriptor=hour.icon_descriptor,
        is_night=hour.is_night,
    )

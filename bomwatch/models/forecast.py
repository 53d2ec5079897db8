"""Hourly and daily forecast models."""

from datetime import datetime

from pydantic import BaseModel


class HourlyPeriod(BaseModel):
    model_config = {"frozen": True}

    time: datetime
    next_forecast_period: datetime | None = None
    temp: float
    temp_feels_like: float
    rain_chance: int = 0
    rain_min: int = 0
    rain_max: int | None = None
    rain_units: str = "mm"
    wind_speed: int = 0
    wind_direction: str = ""
    gust_speed: int = 0
    relative_humidity: int = 0
    uv: int = 0
    icon_descriptor: str = ""
    is_night: bool = False


class HourlyForecast(BaseModel):
    model_config = {"frozen": True}

    issue_time: datetime
    next_issue_time: datetime | None = None
    data: list[HourlyPeriod] = []


class DailyPeriod(BaseModel):
    model_config = {"frozen": True}

    date: datetime
    # Only ever None on the last day of the forecast horizon
    temp_max: float | None = None
    temp_min: float | None = None
    short_text: str | None = None
    extended_text: str | None = None
    icon_descriptor: str = ""
    rain_chance: int | None = None
    rain_min: int | None = None
    rain_max: int | None = None
    rain_lower_range: int | None = None
    rain_units: str = "mm"


class DailyForecast(BaseModel):
    model_config = {"frozen": True}

    issue_time: datetime
    next_issue_time: datetime | None = None
    forecast_region: str = ""
    forecast_type: str = ""
    days: list[DailyPeriod] = []

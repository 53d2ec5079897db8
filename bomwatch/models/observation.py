"""Point-in-time observation models."""

from datetime import datetime

from pydantic import BaseModel


class Station(BaseModel):
    model_config = {"frozen": True}

    bom_id: str
    name: str
    distance: float = 0.0


class Observation(BaseModel):
    """A single observation. `issue_time` identifies the version."""

    model_config = {"frozen": True}

    issue_time: datetime
    observation_time: datetime
    temp: float
    temp_feels_like: float
    wind_speed: int
    wind_direction: str | None = None
    gust: int = 0
    max_gust: int | None = None
    max_temp: float | None = None
    min_temp: float | None = None
    rain_since_9am: float | None = None
    humidity: int | None = None
    station: Station

"""Weather warning models."""

from pydantic import BaseModel


class WeatherWarning(BaseModel):
    model_config = {"frozen": True}

    id: str
    area_id: str = ""
    type: str = ""
    title: str = ""
    short_title: str = ""
    state: str = ""
    warning_group_type: str = ""
    phase: str = ""
    issue_time: str = ""
    expiry_time: str = ""

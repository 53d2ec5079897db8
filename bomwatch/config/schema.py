"""Pydantic v2 configuration schema with strict validation."""

from datetime import timedelta
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field

from bomwatch.config.defaults import (
    DEFAULT_CURRENT_FSTRING,
    DEFAULT_FEATURES,
    DEFAULT_MPV_ARGS,
    xdg_dir,
)
from bomwatch.models.radar import RadarImageFeature, RadarType


class LogLevel(StrEnum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DirsConfig(BaseModel):
    """Filesystem roots, resolved once at process start."""

    model_config = {"extra": "forbid"}

    config: Path
    state: Path
    runtime: Path

    @classmethod
    def from_environment(cls) -> "DirsConfig":
        state = xdg_dir("XDG_STATE_HOME", ".local/state")
        return cls(
            config=xdg_dir("XDG_CONFIG_HOME", ".config"),
            state=state,
            runtime=xdg_dir("XDG_RUNTIME_DIR", None) or state,
        )

    @property
    def default_db_path(self) -> Path:
        return self.state / "bomwatch.db"

    @property
    def default_image_dir(self) -> Path:
        return self.state / "radar-images"


class LoggingConfig(BaseModel):
    model_config = {"extra": "forbid"}

    console_level: LogLevel = LogLevel.INFO
    file_level: LogLevel = LogLevel.DEBUG
    file_path: Path | None = None


class ClientConfig(BaseModel):
    model_config = {"extra": "forbid"}

    base_url: str = "https://api.weather.bom.gov.au/v1/locations"
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/114.0.0.0 Safari/537.36"
    )
    timeout: float = Field(default=7.0, gt=0.0)
    max_retries: int = Field(default=5, ge=0)
    retry_base_delay: float = Field(default=7.0, ge=0.0)


class FtpConfig(BaseModel):
    model_config = {"extra": "forbid"}

    host: str = "ftp.bom.gov.au"
    port: int = 21
    user: str = "anonymous"
    password: str = "guest"
    timeout: float = Field(default=30.0, gt=0.0)
    list_retries: int = Field(default=5, ge=0)
    list_retry_delay: float = Field(default=5.0, ge=0.0)


class WeatherOptions(BaseModel):
    """Per-location refresh cadence. Durations accept integer seconds."""

    model_config = {"extra": "forbid"}

    past_observation_amount: int = Field(default=6 * 24 * 2, ge=1)
    check_observations: bool = True
    # Lag between issue time and the data appearing in the API
    update_delay: timedelta = timedelta(minutes=2)
    observation_update_frequency: timedelta = timedelta(minutes=10)
    observation_overdue_delay: timedelta = timedelta(minutes=2)
    observation_missing_delay: timedelta = timedelta(hours=1)
    hourly_update_frequency: timedelta = timedelta(hours=3)
    hourly_overdue_delay: timedelta = timedelta(hours=1)
    daily_update_frequency: timedelta = timedelta(hours=1)
    daily_overdue_delay: timedelta = timedelta(minutes=30)
    # The bureau sometimes issues a daily forecast before its advertised
    # next_issue_time, so trusting it is optional
    use_daily_next_issue_time: bool = False
    warning_update_frequency: timedelta = timedelta(minutes=30)


class RadarImageOptions(BaseModel):
    model_config = {"extra": "forbid"}

    features: list[RadarImageFeature] = Field(default_factory=lambda: list(DEFAULT_FEATURES))
    max_frames: int | None = Field(default=24, ge=1)
    radar_types: list[RadarType] = Field(
        default_factory=lambda: [RadarType.ONE_TWENTY_EIGHT_KM]
    )
    remove_header: bool = False
    create_png: bool = True
    create_apng: bool = False
    frame_delay_ms: int = Field(default=200, ge=1)
    image_dir: Path | None = None
    force: bool = False
    open_mpv: bool = False
    mpv_args: list[str] = Field(default_factory=lambda: list(DEFAULT_MPV_ARGS))


class RadarConfig(BaseModel):
    model_config = {"extra": "forbid"}

    id: int = Field(ge=0, le=99)
    name: str = ""
    opts: RadarImageOptions = RadarImageOptions()


class MonitorConfig(BaseModel):
    model_config = {"extra": "forbid"}

    min_sleep_seconds: int = Field(default=1, ge=0)
    failure_backoff_seconds: int = Field(default=30, ge=1)
    max_backoff_seconds: int = Field(default=600, ge=1)
    # The FTP session times out irrecoverably if left idle too long
    radar_max_sleep_seconds: int = Field(default=150, ge=1)
    monitor_radars: bool = True


class AppConfig(BaseModel):
    model_config = {"extra": "forbid"}

    dirs: DirsConfig = Field(default_factory=DirsConfig.from_environment)
    db_path: Path | None = None
    locations: list[str] = []
    current_fstring: str = DEFAULT_CURRENT_FSTRING
    logging: LoggingConfig = LoggingConfig()
    client: ClientConfig = ClientConfig()
    ftp: FtpConfig = FtpConfig()
    weather: WeatherOptions = WeatherOptions()
    monitor: MonitorConfig = MonitorConfig()
    radars: list[RadarConfig] = []

    @property
    def resolved_db_path(self) -> Path:
        return self.db_path or self.dirs.default_db_path

    def image_dir(self, opts: RadarImageOptions) -> Path:
        return opts.image_dir or self.dirs.default_image_dir

"""Fetch contracts consumed by the refresh and radar acquisition logic.

BomClient and FtpClient satisfy these; tests substitute fakes.
"""

from typing import Protocol

from bomwatch.models.common import Geohash, RadarId
from bomwatch.models.forecast import DailyForecast, HourlyForecast
from bomwatch.models.observation import Observation
from bomwatch.models.radar import (
    RadarImageFeature,
    RadarImageFeatureLayer,
    RadarImageLegend,
    RadarType,
)
from bomwatch.models.warning import WeatherWarning


class WeatherFetcher(Protocol):
    def get_observation(self, geohash: Geohash) -> Observation | None: ...

    def get_hourly(self, geohash: Geohash) -> HourlyForecast: ...

    def get_daily(self, geohash: Geohash) -> DailyForecast: ...

    def get_warnings(self, geohash: Geohash) -> list[WeatherWarning]: ...


class RadarFetcher(Protocol):
    def keepalive(self) -> None: ...

    def list_radar_data_layers(self) -> list[str]: ...

    def get_radar_data_png(self, filename: str) -> bytes:
        """Raises RemoteFileNotFoundError when the file isn't on the server."""
        ...

    def get_radar_legends(self) -> list[RadarImageLegend]: ...

    def get_radar_feature_layers(
        self,
        radar_id: RadarId,
        radar_type: RadarType,
        features: list[RadarImageFeature] | None = None,
    ) -> list[RadarImageFeatureLayer]: ...

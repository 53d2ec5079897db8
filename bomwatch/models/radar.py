"""Radar catalog: radar types, legends, feature overlays and image layers."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum

from bomwatch.models.common import RadarId


class RadarType(StrEnum):
    SIXTY_FOUR_KM = "64km"
    ONE_TWENTY_EIGHT_KM = "128km"
    TWO_FIFTY_SIX_KM = "256km"
    FIVE_TWELVE_KM = "512km"
    DOPPLER_WIND = "doppler"
    ACCUMULATED_FIVE_MIN = "5min"
    ACCUMULATED_ONE_HOUR = "1hour"
    ACCUMULATED_SINCE_NINE = "since9"
    ACCUMULATED_PREVIOUS_24_HOURS = "24hour"


class RadarLegendType(StrEnum):
    RAINFALL = "rainfall"
    ACCUMULATED_RAINFALL = "accumulated_rainfall"
    DOPPLER_WIND = "doppler_wind"


LEGEND_IDS: dict[RadarLegendType, int] = {
    RadarLegendType.RAINFALL: 0,
    RadarLegendType.ACCUMULATED_RAINFALL: 1,
    RadarLegendType.DOPPLER_WIND: 2,
}


class RadarImageFeature(StrEnum):
    # Ordered by how the layers stack on the bureau's radar viewer
    BACKGROUND = "background"
    TOPOGRAPHY = "topography"
    RANGE = "range"
    WATERWAYS = "waterways"
    ROADS = "roads"
    FORECAST_DISTRICTS = "wthrDistricts"
    RAIL = "rail"
    CATCHMENTS = "catchments"
    LOCATIONS = "locations"


# Painted under the data layer; everything else is painted on top of it
BASE_FEATURES = frozenset({RadarImageFeature.BACKGROUND, RadarImageFeature.TOPOGRAPHY})


@dataclass(frozen=True)
class RadarTypeSpec:
    type_id: str
    size: RadarType
    update_frequency: timedelta
    # Lag between an image's timestamp and it appearing on the FTP server
    check_after: timedelta
    min_image_count: int
    legend: RadarLegendType


_FIVE_MIN = timedelta(minutes=5)
_TWO_MIN = timedelta(minutes=2)

RADAR_TYPE_SPECS: dict[RadarType, RadarTypeSpec] = {
    RadarType.FIVE_TWELVE_KM: RadarTypeSpec(
        "1", RadarType.FIVE_TWELVE_KM, _FIVE_MIN, _TWO_MIN, 18, RadarLegendType.RAINFALL
    ),
    RadarType.TWO_FIFTY_SIX_KM: RadarTypeSpec(
        "2", RadarType.TWO_FIFTY_SIX_KM, _FIVE_MIN, _TWO_MIN, 18, RadarLegendType.RAINFALL
    ),
    RadarType.ONE_TWENTY_EIGHT_KM: RadarTypeSpec(
        "3", RadarType.ONE_TWENTY_EIGHT_KM, _FIVE_MIN, _TWO_MIN, 18, RadarLegendType.RAINFALL
    ),
    RadarType.SIXTY_FOUR_KM: RadarTypeSpec(
        "4", RadarType.SIXTY_FOUR_KM, _FIVE_MIN, _TWO_MIN, 18, RadarLegendType.RAINFALL
    ),
    RadarType.DOPPLER_WIND: RadarTypeSpec(
        "I", RadarType.ONE_TWENTY_EIGHT_KM, _FIVE_MIN, _TWO_MIN, 18,
        RadarLegendType.DOPPLER_WIND,
    ),
    RadarType.ACCUMULATED_FIVE_MIN: RadarTypeSpec(
        "A", RadarType.ONE_TWENTY_EIGHT_KM, _FIVE_MIN, _TWO_MIN, 18,
        RadarLegendType.ACCUMULATED_RAINFALL,
    ),
    RadarType.ACCUMULATED_ONE_HOUR: RadarTypeSpec(
        "B", RadarType.ONE_TWENTY_EIGHT_KM, _FIVE_MIN, _TWO_MIN, 18,
        RadarLegendType.ACCUMULATED_RAINFALL,
    ),
    RadarType.ACCUMULATED_SINCE_NINE: RadarTypeSpec(
        "C", RadarType.ONE_TWENTY_EIGHT_KM, timedelta(minutes=15), timedelta(minutes=15), 30,
        RadarLegendType.ACCUMULATED_RAINFALL,
    ),
    RadarType.ACCUMULATED_PREVIOUS_24_HOURS: RadarTypeSpec(
        "D", RadarType.ONE_TWENTY_EIGHT_KM, timedelta(days=1), timedelta(minutes=10), 10,
        RadarLegendType.ACCUMULATED_RAINFALL,
    ),
}

_TYPES_BY_ID: dict[str, RadarType] = {s.type_id: t for t, s in RADAR_TYPE_SPECS.items()}


def radar_type_spec(radar_type: RadarType) -> RadarTypeSpec:
    return RADAR_TYPE_SPECS[radar_type]


def radar_type_from_id(type_id: str) -> RadarType:
    """Look up a radar type by the single character used in filenames."""
    try:
        return _TYPES_BY_ID[type_id]
    except KeyError:
        raise ValueError(f"{type_id!r} is not a valid radar type ID") from None


def pair_label(radar_id: RadarId, radar_type: RadarType) -> str:
    """Filename prefix for a radar/type pair, e.g. IDR713."""
    return f"IDR{radar_id:02d}{RADAR_TYPE_SPECS[radar_type].type_id}"


@dataclass(frozen=True)
class RadarImageLegend:
    """A static legend that serves as the base layer for a radar image."""

    legend_type: RadarLegendType
    png_buf: bytes = field(repr=False)


@dataclass(frozen=True)
class RadarImageFeatureLayer:
    """A static overlay of geographical information."""

    radar_id: RadarId
    size: RadarType
    feature: RadarImageFeature
    filename: str
    png_buf: bytes = field(default=b"", repr=False)


@dataclass(eq=False)
class RadarImageDataLayer:
    """One radar sweep. Layers are equal when their filenames are."""

    radar_id: RadarId
    radar_type: RadarType
    timestamp: datetime
    filename: str
    png_buf: bytes = field(default=b"", repr=False)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RadarImageDataLayer):
            return NotImplemented
        return self.filename == other.filename

    def __hash__(self) -> int:
        return hash(self.filename)

    @property
    def next_timestamp(self) -> datetime:
        return self.timestamp + RADAR_TYPE_SPECS[self.radar_type].update_frequency

    @property
    def next_check_time(self) -> datetime:
        """When the layer after this one should be on the server."""
        return self.next_timestamp + RADAR_TYPE_SPECS[self.radar_type].check_after

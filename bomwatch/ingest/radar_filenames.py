"""Build and parse radar image filenames.

Data layers:    IDR023.T.202311130334.png
Feature layers: IDR023.catchments.png
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from bomwatch.exceptions import InvalidFilenameError
from bomwatch.models.common import RadarId
from bomwatch.models.radar import (
    RadarImageDataLayer,
    RadarImageFeature,
    RadarType,
    pair_label,
    radar_type_from_id,
)

TIMESTAMP_FORMAT = "%Y%m%d%H%M"
_PREFIX = "IDR"


@dataclass(frozen=True)
class ParsedDataLayerName:
    radar_id: RadarId
    radar_type: RadarType
    timestamp: datetime


@dataclass(frozen=True)
class ParsedFeatureLayerName:
    radar_id: RadarId
    radar_type: RadarType
    feature: RadarImageFeature


def build_data_layer_filename(
    radar_id: RadarId, radar_type: RadarType, timestamp: datetime
) -> str:
    timestamp = timestamp.astimezone(UTC)
    return f"{pair_label(radar_id, radar_type)}.T.{timestamp.strftime(TIMESTAMP_FORMAT)}.png"


def build_feature_layer_filename(
    radar_id: RadarId, radar_type: RadarType, feature: RadarImageFeature
) -> str:
    return f"{pair_label(radar_id, radar_type)}.{feature.value}.png"


def parse_data_layer_filename(name: str) -> ParsedDataLayerName:
    """Decode a data layer filename. Raises InvalidFilenameError."""
    first, last = _dot_indices(name)
    radar_id, radar_type = _parse_prefix(name, first)
    if name[first:first + 3] != ".T.":
        raise InvalidFilenameError(name, "missing .T. marker")
    raw_timestamp = name[first + 3:last]
    return ParsedDataLayerName(
        radar_id=radar_id,
        radar_type=radar_type,
        timestamp=_parse_timestamp(name, raw_timestamp),
    )


def parse_feature_layer_filename(name: str) -> ParsedFeatureLayerName:
    """Decode a feature layer filename. Raises InvalidFilenameError."""
    first, last = _dot_indices(name)
    radar_id, radar_type = _parse_prefix(name, first)
    try:
        feature = RadarImageFeature(name[first + 1:last])
    except ValueError:
        raise InvalidFilenameError(name, "unknown feature") from None
    return ParsedFeatureLayerName(radar_id=radar_id, radar_type=radar_type, feature=feature)


def data_layer_from_filename(name: str, png_buf: bytes = b"") -> RadarImageDataLayer:
    parsed = parse_data_layer_filename(name)
    return RadarImageDataLayer(
        radar_id=parsed.radar_id,
        radar_type=parsed.radar_type,
        timestamp=parsed.timestamp,
        filename=name,
        png_buf=png_buf,
    )


def expected_next_layer(layer: RadarImageDataLayer) -> RadarImageDataLayer:
    """The layer predicted to follow `layer`, without image data."""
    timestamp = layer.next_timestamp
    return RadarImageDataLayer(
        radar_id=layer.radar_id,
        radar_type=layer.radar_type,
        timestamp=timestamp,
        filename=build_data_layer_filename(layer.radar_id, layer.radar_type, timestamp),
    )


def _dot_indices(name: str) -> tuple[int, int]:
    first = name.find(".")
    last = name.rfind(".")
    if first == -1 or first == last:
        raise InvalidFilenameError(name, "expected at least two dots")
    return first, last


def _parse_prefix(name: str, first_dot: int) -> tuple[RadarId, RadarType]:
    if not name.startswith(_PREFIX) or first_dot < len(_PREFIX) + 2:
        raise InvalidFilenameError(name, "bad IDR prefix")
    raw_id = name[len(_PREFIX):first_dot - 1]
    if not (raw_id.isascii() and raw_id.isdigit()):
        raise InvalidFilenameError(name, f"radar id {raw_id!r} is not an integer")
    try:
        radar_type = radar_type_from_id(name[first_dot - 1])
    except ValueError as e:
        raise InvalidFilenameError(name, str(e)) from None
    return int(raw_id), radar_type


def _parse_timestamp(name: str, raw: str) -> datetime:
    if len(raw) != 12 or not (raw.isascii() and raw.isdigit()):
        raise InvalidFilenameError(name, f"timestamp {raw!r} is not YYYYMMDDHHMM")
    try:
        return datetime.strptime(raw, TIMESTAMP_FORMAT).replace(tzinfo=UTC)
    except ValueError:
        raise InvalidFilenameError(name, f"timestamp {raw!r} is not a valid date") from None

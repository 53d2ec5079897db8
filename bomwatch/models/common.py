"""Common types and helpers shared across models."""

from datetime import UTC, datetime
from typing import TypeAlias

RadarId: TypeAlias = int
Geohash: TypeAlias = str


def utc_now() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(iso_str: str | None) -> datetime | None:
    """Parse an ISO timestamp as UTC. Returns None when missing or malformed."""
    if not iso_str:
        return None
    try:
        dt = datetime.fromisoformat(iso_str.replace("Z", "+00:00"))
    except (ValueError, TypeError, AttributeError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)

"""Location records returned by the bureau's location API."""

from pydantic import BaseModel

from bomwatch.models.observation import Station


class SearchResult(BaseModel):
    model_config = {"frozen": True}

    geohash: str
    id: str
    name: str
    postcode: str = ""
    state: str = ""

    def __str__(self) -> str:
        return f"{self.name} {self.state} {self.postcode}".rstrip()


class LocationData(BaseModel):
    """Static details of a forecast location."""

    model_config = {"frozen": True}

    geohash: str
    id: str
    name: str
    state: str = ""
    timezone: str = "Australia/Sydney"
    latitude: float = 0.0
    longitude: float = 0.0
    has_wave: bool = False
    marine_area_id: str | None = None
    tidal_point: str | None = None
    station: Station | None = None


def split_location_id(loc_id: str) -> tuple[str, str]:
    """Split a config id such as 'Canberra-r3dp5hh'. The geohash never contains a dash."""
    name, sep, geohash = loc_id.rpartition("-")
    if not sep or not name or not geohash:
        raise ValueError(f"{loc_id!r} is not a valid location id, expected <name>-<geohash>")
    return name, geohash

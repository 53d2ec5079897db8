"""Location registry: resolve configured ids, create, refresh and persist."""

import logging
import sqlite3
from datetime import datetime
from typing import Protocol

from pydantic import BaseModel

from bomwatch.config.schema import WeatherOptions
from bomwatch.exceptions import LocationNotFoundError
from bomwatch.ingest.protocols import WeatherFetcher
from bomwatch.models.common import utc_now
from bomwatch.models.location import LocationData, SearchResult, split_location_id
from bomwatch.models.observation import Station
from bomwatch.pipeline.weather import Weather
from bomwatch.storage import location_repo

logger = logging.getLogger(__name__)


class LocationClient(WeatherFetcher, Protocol):
    def search(self, term: str) -> list[SearchResult]: ...

    def get_location(self, geohash: str) -> LocationData: ...


class Location(BaseModel):
    id: str
    geohash: str
    name: str
    state: str = ""
    postcode: str = ""
    timezone: str
    latitude: float
    longitude: float
    has_wave: bool = False
    marine_area_id: str | None = None
    tidal_point: str | None = None
    station: Station | None = None
    weather: Weather

    @classmethod
    def from_row(cls, row: dict, opts: WeatherOptions | None = None) -> "Location":
        weather = Weather.model_validate_json(row["weather"])
        if opts is not None:
            # Cadence always follows the current config, not the stored copy
            weather.opts = opts
        station = row.get("station_json")
        return cls(
            id=row["id"],
            geohash=row["geohash"],
            name=row["name"],
            state=row["state"],
            postcode=row["postcode"],
            timezone=row["timezone"],
            latitude=row["latitude"],
            longitude=row["longitude"],
            has_wave=bool(row["has_wave"]),
            marine_area_id=row["marine_area_id"],
            tidal_point=row["tidal_point"],
            station=Station.model_validate_json(station) if station else None,
            weather=weather,
        )

    def update_if_due(
        self, client: WeatherFetcher, now: datetime | None = None
    ) -> tuple[bool, datetime]:
        changed, next_check = self.weather.update_if_due(client, now)
        observation = self.weather.observation
        if observation is not None and observation.station != self.station:
            self.station = observation.station
        return changed, next_check


def create_location(
    conn: sqlite3.Connection,
    client: LocationClient,
    result: SearchResult,
    opts: WeatherOptions,
    now: datetime | None = None,
) -> Location:
    """Fetch a search result's details and every weather feed, then store it."""
    data = client.get_location(result.geohash)
    weather = Weather.create(result.geohash, client, opts, now)
    observation = weather.observation
    location = Location(
        id=result.id,
        geohash=result.geohash,
        name=result.name,
        state=result.state,
        postcode=result.postcode,
        timezone=data.timezone,
        latitude=data.latitude,
        longitude=data.longitude,
        has_wave=data.has_wave,
        marine_area_id=data.marine_area_id,
        tidal_point=data.tidal_point,
        station=observation.station if observation else None,
        weather=weather,
    )
    location_repo.insert_location(
        conn,
        location_id=location.id,
        geohash=location.geohash,
        name=location.name,
        state=location.state,
        postcode=location.postcode,
        timezone=location.timezone,
        latitude=location.latitude,
        longitude=location.longitude,
        has_wave=location.has_wave,
        marine_area_id=location.marine_area_id,
        tidal_point=location.tidal_point,
        station_json=location.station.model_dump_json() if location.station else None,
        weather_json=weather.model_dump_json(),
    )
    logger.info("Created location %s", location.id)
    return location


def find_search_result(client: LocationClient, location_id: str) -> SearchResult:
    """Search by the id's name and match both name and geohash."""
    try:
        name, geohash = split_location_id(location_id)
    except ValueError as e:
        raise LocationNotFoundError(str(e)) from None
    results = client.search(name)
    if not results:
        raise LocationNotFoundError(f"No results found for {location_id}")
    for result in results:
        if result.name == name and result.geohash == geohash:
            return result
    candidates = "\n".join(r.id for r in results)
    raise LocationNotFoundError(
        f"No matches found for {location_id}. Perhaps you meant:\n{candidates}"
    )


def ids_to_locations(
    conn: sqlite3.Connection,
    client: LocationClient,
    location_ids: list[str],
    opts: WeatherOptions,
    now: datetime | None = None,
) -> list[Location]:
    """Load locations from the store, creating any that aren't there yet."""
    rows = {r["id"]: r for r in location_repo.get_locations(conn, location_ids)}
    locations = []
    for location_id in location_ids:
        row = rows.get(location_id)
        if row is not None:
            locations.append(Location.from_row(row, opts))
            continue
        logger.info("Location %s not in database, fetching", location_id)
        result = find_search_result(client, location_id)
        locations.append(create_location(conn, client, result, opts, now))
    return locations


def persist_weather(conn: sqlite3.Connection, location: Location) -> None:
    location_repo.update_weather(
        conn,
        location.id,
        location.weather.model_dump_json(),
        location.station.model_dump_json() if location.station else None,
    )


def update_locations_if_due(
    conn: sqlite3.Connection,
    client: WeatherFetcher,
    locations: list[Location],
    now: datetime | None = None,
) -> datetime:
    """Refresh each location, persist the changed ones and return the earliest next check."""
    now = now or utc_now()
    next_checks = []
    for location in locations:
        changed, next_check = location.update_if_due(client, now)
        if changed:
            logger.info("Weather updated for %s", location.id)
            persist_weather(conn, location)
        next_checks.append(next_check)
    return min(next_checks)

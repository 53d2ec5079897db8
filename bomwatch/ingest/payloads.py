"""Extract typed models from raw bureau API responses."""

import logging
from datetime import datetime

from bomwatch.exceptions import ParseError
from bomwatch.models.common import parse_timestamp
from bomwatch.models.forecast import DailyForecast, DailyPeriod, HourlyForecast, HourlyPeriod
from bomwatch.models.location import LocationData, SearchResult
from bomwatch.models.observation import Observation, Station
from bomwatch.models.warning import WeatherWarning

logger = logging.getLogger(__name__)


def _required_time(raw: dict, key: str, context: str) -> datetime:
    value = parse_timestamp(raw.get(key))
    if value is None:
        raise ParseError(f"{context}: missing or invalid {key!r}")
    return value


def extract_observation(raw: dict) -> Observation | None:
    """Observation from an observations response.

    The bureau periodically publishes an empty observation; that is reported
    as None rather than an error.
    """
    data = raw.get("data") or {}
    if data.get("temp") is None:
        logger.debug("Observation response has no data")
        return None
    metadata = raw.get("metadata", {})
    wind = data.get("wind") or {}
    gust = data.get("gust") or {}
    max_gust = data.get("max_gust") or {}
    max_temp = data.get("max_temp") or {}
    min_temp = data.get("min_temp") or {}
    station = data.get("station") or {}
    return Observation(
        issue_time=_required_time(metadata, "issue_time", "observation"),
        observation_time=_required_time(metadata, "observation_time", "observation"),
        temp=float(data["temp"]),
        temp_feels_like=float(data.get("temp_feels_like", data["temp"])),
        wind_speed=int(wind.get("speed_kilometre") or 0),
        wind_direction=wind.get("direction"),
        gust=int(gust.get("speed_kilometre") or 0),
        max_gust=max_gust.get("speed_kilometre"),
        max_temp=max_temp.get("value"),
        min_temp=min_temp.get("value"),
        rain_since_9am=data.get("rain_since_9am"),
        humidity=data.get("humidity"),
        station=Station(
            bom_id=str(station.get("bom_id", "")),
            name=station.get("name", ""),
            distance=float(station.get("distance") or 0.0),
        ),
    )


def extract_hourly(raw: dict) -> HourlyForecast:
    metadata = raw.get("metadata", {})
    periods = []
    for p in raw.get("data", []):
        rain = p.get("rain") or {}
        amount = rain.get("amount") or {}
        wind = p.get("wind") or {}
        periods.append(
            HourlyPeriod(
                time=_required_time(p, "time", "hourly period"),
                next_forecast_period=parse_timestamp(p.get("next_forecast_period")),
                temp=float(p.get("temp", 0.0)),
                temp_feels_like=float(p.get("temp_feels_like", p.get("temp", 0.0))),
                rain_chance=int(rain.get("chance") or 0),
                rain_min=int(amount.get("min") or 0),
                rain_max=amount.get("max"),
                rain_units=amount.get("units") or "mm",
                wind_speed=int(wind.get("speed_kilometre") or 0),
                wind_direction=wind.get("direction") or "",
                gust_speed=int(wind.get("gust_speed_kilometre") or 0),
                relative_humidity=int(p.get("relative_humidity") or 0),
                uv=int(p.get("uv") or 0),
                icon_descriptor=p.get("icon_descriptor") or "",
                is_night=bool(p.get("is_night", False)),
            )
        )
    return HourlyForecast(
        issue_time=_required_time(metadata, "issue_time", "hourly forecast"),
        next_issue_time=parse_timestamp(metadata.get("next_issue_time")),
        data=periods,
    )


def extract_daily(raw: dict) -> DailyForecast:
    metadata = raw.get("metadata", {})
    days = []
    for d in raw.get("data", []):
        rain = d.get("rain") or {}
        amount = rain.get("amount") or {}
        days.append(
            DailyPeriod(
                date=_required_time(d, "date", "daily period"),
                temp_max=d.get("temp_max"),
                temp_min=d.get("temp_min"),
                short_text=d.get("short_text"),
                extended_text=d.get("extended_text"),
                icon_descriptor=d.get("icon_descriptor") or "",
                rain_chance=rain.get("chance"),
                rain_min=amount.get("min"),
                rain_max=amount.get("max"),
                rain_lower_range=amount.get("lower_range"),
                rain_units=amount.get("units") or "mm",
            )
        )
    return DailyForecast(
        issue_time=_required_time(metadata, "issue_time", "daily forecast"),
        next_issue_time=parse_timestamp(metadata.get("next_issue_time")),
        forecast_region=metadata.get("forecast_region", ""),
        forecast_type=metadata.get("forecast_type", ""),
        days=days,
    )


def extract_warnings(raw: dict) -> list[WeatherWarning]:
    warnings = []
    for w in raw.get("data", []):
        if "id" not in w:
            raise ParseError(f"warning without id: {w!r}")
        warnings.append(
            WeatherWarning(
                id=w["id"],
                area_id=w.get("area_id", ""),
                type=w.get("type", ""),
                title=w.get("title", ""),
                short_title=w.get("short_title", ""),
                state=w.get("state", ""),
                warning_group_type=w.get("warning_group_type", ""),
                phase=w.get("phase", ""),
                issue_time=w.get("issue_time", ""),
                expiry_time=w.get("expiry_time", ""),
            )
        )
    return warnings


def extract_search_results(raw: dict) -> list[SearchResult]:
    results = []
    for r in raw.get("data", []):
        geohash = r.get("geohash")
        if not geohash:
            logger.warning("Skipping search result without geohash: %s", r.get("name"))
            continue
        results.append(
            SearchResult(
                geohash=geohash,
                id=str(r.get("id", "")),
                name=r.get("name", ""),
                postcode=r.get("postcode") or "",
                state=r.get("state") or "",
            )
        )
    return results


def extract_location(raw: dict) -> LocationData:
    data = raw.get("data")
    if not data or "geohash" not in data:
        raise ParseError("location response has no data")
    return LocationData(
        geohash=data["geohash"],
        id=str(data.get("id", "")),
        name=data.get("name", ""),
        state=data.get("state") or "",
        timezone=data.get("timezone") or "Australia/Sydney",
        latitude=float(data.get("latitude") or 0.0),
        longitude=float(data.get("longitude") or 0.0),
        has_wave=bool(data.get("has_wave", False)),
        marine_area_id=data.get("marine_area_id"),
        tidal_point=data.get("tidal_point"),
    )

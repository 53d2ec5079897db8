"""Repository for locations and their persisted weather state."""

import sqlite3


def insert_location(
    conn: sqlite3.Connection,
    location_id: str,
    geohash: str,
    name: str,
    state: str,
    postcode: str,
    timezone: str,
    latitude: float,
    longitude: float,
    has_wave: bool,
    marine_area_id: str | None,
    tidal_point: str | None,
    station_json: str | None,
    weather_json: str,
) -> None:
    conn.execute(
        "INSERT INTO location (id, geohash, name, state, postcode, timezone, latitude, "
        "longitude, has_wave, marine_area_id, tidal_point, station_json, weather) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            location_id,
            geohash,
            name,
            state,
            postcode,
            timezone,
            latitude,
            longitude,
            int(has_wave),
            marine_area_id,
            tidal_point,
            station_json,
            weather_json,
        ),
    )
    conn.commit()


def get_location(conn: sqlite3.Connection, location_id: str) -> dict | None:
    row = conn.execute("SELECT * FROM location WHERE id = ?", (location_id,)).fetchone()
    if row is None:
        return None
    return dict(row)


def get_locations(conn: sqlite3.Connection, location_ids: list[str]) -> list[dict]:
    """Rows for the given ids, in the order requested. Unknown ids are omitted."""
    if not location_ids:
        return []
    placeholders = ", ".join("?" for _ in location_ids)
    rows = conn.execute(
        f"SELECT * FROM location WHERE id IN ({placeholders})", location_ids
    ).fetchall()
    by_id = {r["id"]: dict(r) for r in rows}
    return [by_id[i] for i in location_ids if i in by_id]


def update_weather(
    conn: sqlite3.Connection,
    location_id: str,
    weather_json: str,
    station_json: str | None = None,
) -> None:
    conn.execute(
        "UPDATE location SET weather = ?, station_json = COALESCE(?, station_json), "
        "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
        (weather_json, station_json, location_id),
    )
    conn.commit()


def delete_location(conn: sqlite3.Connection, location_id: str) -> bool:
    cursor = conn.execute("DELETE FROM location WHERE id = ?", (location_id,))
    conn.commit()
    return cursor.rowcount > 0

"""Initial schema: locations and the radar image caches."""

import sqlite3

DDL = [
    # Forecast locations; weather holds the Weather aggregate as JSON
    """
    CREATE TABLE IF NOT EXISTS location (
        id TEXT PRIMARY KEY,
        geohash TEXT NOT NULL,
        name TEXT NOT NULL,
        state TEXT NOT NULL DEFAULT '',
        postcode TEXT NOT NULL DEFAULT '',
        timezone TEXT NOT NULL,
        latitude REAL NOT NULL,
        longitude REAL NOT NULL,
        has_wave INTEGER NOT NULL DEFAULT 0,
        marine_area_id TEXT,
        tidal_point TEXT,
        station_json TEXT,
        weather TEXT NOT NULL,
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_location_geohash ON location(geohash)",

    # Colour scale legends, one per legend type
    """
    CREATE TABLE IF NOT EXISTS radar_legend (
        legend_type TEXT PRIMARY KEY,
        png_buf BLOB NOT NULL,
        fetched_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,

    # Static geographic overlays per radar and image size
    """
    CREATE TABLE IF NOT EXISTS radar_feature_layer (
        radar_id INTEGER NOT NULL,
        size TEXT NOT NULL,
        feature TEXT NOT NULL,
        filename TEXT NOT NULL,
        png_buf BLOB NOT NULL,
        fetched_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (radar_id, size, feature)
    )
    """,

    # Timestamped radar sweeps
    """
    CREATE TABLE IF NOT EXISTS radar_data_layer (
        filename TEXT PRIMARY KEY,
        radar_id INTEGER NOT NULL,
        radar_type TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        png_buf BLOB NOT NULL,
        fetched_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    (
        "CREATE INDEX IF NOT EXISTS idx_radar_data_layer_pair "
        "ON radar_data_layer(radar_id, radar_type, timestamp)"
    ),
]


def up(conn: sqlite3.Connection) -> None:
    for stmt in DDL:
        conn.execute(stmt)
    conn.commit()

"""Repository for radar legends, feature layers and data layers."""

import sqlite3
from collections.abc import Iterable

from bomwatch.models.common import RadarId, parse_timestamp
from bomwatch.models.radar import (
    RadarImageDataLayer,
    RadarImageFeature,
    RadarImageFeatureLayer,
    RadarImageLegend,
    RadarLegendType,
    RadarType,
)

# --- Legends ---

def save_legends(conn: sqlite3.Connection, legends: Iterable[RadarImageLegend]) -> None:
    conn.executemany(
        "INSERT INTO radar_legend (legend_type, png_buf) VALUES (?, ?) "
        "ON CONFLICT(legend_type) DO UPDATE SET png_buf = excluded.png_buf, "
        "fetched_at = CURRENT_TIMESTAMP",
        [(legend.legend_type.value, legend.png_buf) for legend in legends],
    )
    conn.commit()


def get_legend(
    conn: sqlite3.Connection, legend_type: RadarLegendType
) -> RadarImageLegend | None:
    row = conn.execute(
        "SELECT png_buf FROM radar_legend WHERE legend_type = ?", (legend_type.value,)
    ).fetchone()
    if row is None:
        return None
    return RadarImageLegend(legend_type=legend_type, png_buf=row["png_buf"])


# --- Feature layers ---

def save_feature_layers(
    conn: sqlite3.Connection, layers: Iterable[RadarImageFeatureLayer]
) -> None:
    conn.executemany(
        "INSERT OR REPLACE INTO radar_feature_layer "
        "(radar_id, size, feature, filename, png_buf) VALUES (?, ?, ?, ?, ?)",
        [
            (layer.radar_id, layer.size.value, layer.feature.value, layer.filename, layer.png_buf)
            for layer in layers
        ],
    )
    conn.commit()


def get_feature_layers(
    conn: sqlite3.Connection, radar_id: RadarId, size: RadarType
) -> list[RadarImageFeatureLayer]:
    rows = conn.execute(
        "SELECT * FROM radar_feature_layer WHERE radar_id = ? AND size = ?",
        (radar_id, size.value),
    ).fetchall()
    return [
        RadarImageFeatureLayer(
            radar_id=r["radar_id"],
            size=RadarType(r["size"]),
            feature=RadarImageFeature(r["feature"]),
            filename=r["filename"],
            png_buf=r["png_buf"],
        )
        for r in rows
    ]


# --- Data layers ---

def insert_data_layers(
    conn: sqlite3.Connection, layers: Iterable[RadarImageDataLayer]
) -> int:
    """Insert layers, ignoring filenames already stored. Returns rows inserted."""
    cursor = conn.executemany(
        "INSERT OR IGNORE INTO radar_data_layer "
        "(filename, radar_id, radar_type, timestamp, png_buf) VALUES (?, ?, ?, ?, ?)",
        [
            (
                layer.filename,
                layer.radar_id,
                layer.radar_type.value,
                layer.timestamp.isoformat(),
                layer.png_buf,
            )
            for layer in layers
        ],
    )
    conn.commit()
    return cursor.rowcount


def get_data_layers(
    conn: sqlite3.Connection,
    radar_id: RadarId,
    radar_type: RadarType,
    limit: int | None = None,
) -> list[RadarImageDataLayer]:
    """The newest `limit` layers for a radar/type pair, oldest first."""
    rows = conn.execute(
        "SELECT * FROM radar_data_layer WHERE radar_id = ? AND radar_type = ? "
        "ORDER BY timestamp DESC LIMIT ?",
        (radar_id, radar_type.value, -1 if limit is None else limit),
    ).fetchall()
    layers = [
        RadarImageDataLayer(
            radar_id=r["radar_id"],
            radar_type=RadarType(r["radar_type"]),
            timestamp=parse_timestamp(r["timestamp"]),
            filename=r["filename"],
            png_buf=r["png_buf"],
        )
        for r in rows
    ]
    layers.reverse()
    return layers


def get_data_layer_names(
    conn: sqlite3.Connection, radar_id: RadarId, radar_type: RadarType
) -> set[str]:
    rows = conn.execute(
        "SELECT filename FROM radar_data_layer WHERE radar_id = ? AND radar_type = ?",
        (radar_id, radar_type.value),
    ).fetchall()
    return {r["filename"] for r in rows}


def delete_data_layers(conn: sqlite3.Connection, filenames: Iterable[str]) -> int:
    cursor = conn.executemany(
        "DELETE FROM radar_data_layer WHERE filename = ?",
        [(name,) for name in filenames],
    )
    conn.commit()
    return cursor.rowcount

"""Tests for repository CRUD operations."""

import sqlite3
from datetime import UTC, datetime, timedelta

from bomwatch.ingest.radar_filenames import build_data_layer_filename, data_layer_from_filename
from bomwatch.models.radar import (
    RadarImageDataLayer,
    RadarImageFeature,
    RadarImageFeatureLayer,
    RadarImageLegend,
    RadarLegendType,
    RadarType,
)
from bomwatch.storage import location_repo, radar_repo

T0 = datetime(2026, 2, 10, 1, 0, tzinfo=UTC)


def _insert_melbourne(db: sqlite3.Connection, weather_json: str = "{}") -> None:
    location_repo.insert_location(
        db,
        location_id="Melbourne-r1r0fsn",
        geohash="r1r0fsn",
        name="Melbourne",
        state="VIC",
        postcode="3000",
        timezone="Australia/Melbourne",
        latitude=-37.81,
        longitude=144.96,
        has_wave=True,
        marine_area_id="VIC_MW005",
        tidal_point=None,
        station_json=None,
        weather_json=weather_json,
    )


def _layer(minutes: int, radar_id: int = 2,
           radar_type: RadarType = RadarType.ONE_TWENTY_EIGHT_KM) -> RadarImageDataLayer:
    name = build_data_layer_filename(radar_id, radar_type, T0 + timedelta(minutes=minutes))
    return data_layer_from_filename(name, f"png{minutes}".encode())


class TestLocationRepo:
    def test_insert_and_get(self, db: sqlite3.Connection):
        _insert_melbourne(db)
        row = location_repo.get_location(db, "Melbourne-r1r0fsn")
        assert row["timezone"] == "Australia/Melbourne"
        assert row["has_wave"] == 1
        assert row["tidal_point"] is None

    def test_get_missing(self, db: sqlite3.Connection):
        assert location_repo.get_location(db, "Nowhere-abcdefg") is None

    def test_get_locations_keeps_requested_order(self, db: sqlite3.Connection):
        _insert_melbourne(db)
        location_repo.insert_location(
            db, "Hobart-r22u09t", "r22u09t", "Hobart", "TAS", "7000",
            "Australia/Hobart", -42.88, 147.33, False, None, None, None, "{}",
        )
        rows = location_repo.get_locations(
            db, ["Hobart-r22u09t", "Missing-aaaaaaa", "Melbourne-r1r0fsn"]
        )
        assert [r["id"] for r in rows] == ["Hobart-r22u09t", "Melbourne-r1r0fsn"]
        assert location_repo.get_locations(db, []) == []

    def test_update_weather(self, db: sqlite3.Connection):
        _insert_melbourne(db)
        location_repo.update_weather(db, "Melbourne-r1r0fsn", '{"geohash": "r1r0fsn"}',
                                     station_json='{"bom_id": "086338"}')
        location_repo.update_weather(db, "Melbourne-r1r0fsn", '{"geohash": "r1r0fsp"}')
        row = location_repo.get_location(db, "Melbourne-r1r0fsn")
        assert row["weather"] == '{"geohash": "r1r0fsp"}'
        # Station is only replaced when a new one is given
        assert row["station_json"] == '{"bom_id": "086338"}'

    def test_delete(self, db: sqlite3.Connection):
        _insert_melbourne(db)
        assert location_repo.delete_location(db, "Melbourne-r1r0fsn") is True
        assert location_repo.delete_location(db, "Melbourne-r1r0fsn") is False


class TestLegends:
    def test_save_and_replace(self, db: sqlite3.Connection):
        radar_repo.save_legends(db, [RadarImageLegend(RadarLegendType.RAINFALL, b"old")])
        radar_repo.save_legends(db, [RadarImageLegend(RadarLegendType.RAINFALL, b"new")])
        legend = radar_repo.get_legend(db, RadarLegendType.RAINFALL)
        assert legend.png_buf == b"new"
        assert radar_repo.get_legend(db, RadarLegendType.DOPPLER_WIND) is None


class TestFeatureLayers:
    def test_filtered_by_radar_and_size(self, db: sqlite3.Connection):
        layers = [
            RadarImageFeatureLayer(2, RadarType.ONE_TWENTY_EIGHT_KM, feature,
                                   f"IDR023.{feature.value}.png", b"x")
            for feature in (RadarImageFeature.BACKGROUND, RadarImageFeature.ROADS)
        ]
        layers.append(
            RadarImageFeatureLayer(2, RadarType.SIXTY_FOUR_KM, RadarImageFeature.ROADS,
                                   "IDR024.roads.png", b"y")
        )
        radar_repo.save_feature_layers(db, layers)

        stored = radar_repo.get_feature_layers(db, 2, RadarType.ONE_TWENTY_EIGHT_KM)
        assert {layer.feature for layer in stored} == {
            RadarImageFeature.BACKGROUND, RadarImageFeature.ROADS
        }
        assert radar_repo.get_feature_layers(db, 3, RadarType.ONE_TWENTY_EIGHT_KM) == []


class TestDataLayers:
    def test_insert_ignores_duplicates(self, db: sqlite3.Connection):
        assert radar_repo.insert_data_layers(db, [_layer(0), _layer(5)]) == 2
        assert radar_repo.insert_data_layers(db, [_layer(5), _layer(10)]) == 1

    def test_newest_limit_oldest_first(self, db: sqlite3.Connection):
        radar_repo.insert_data_layers(db, [_layer(10), _layer(0), _layer(5), _layer(15)])
        layers = radar_repo.get_data_layers(db, 2, RadarType.ONE_TWENTY_EIGHT_KM, limit=3)
        assert layers == [_layer(5), _layer(10), _layer(15)]
        assert layers[0].timestamp == T0 + timedelta(minutes=5)
        assert layers[0].png_buf == b"png5"
        everything = radar_repo.get_data_layers(db, 2, RadarType.ONE_TWENTY_EIGHT_KM)
        assert len(everything) == 4

    def test_pairs_kept_apart(self, db: sqlite3.Connection):
        radar_repo.insert_data_layers(db, [
            _layer(0), _layer(0, radar_id=3), _layer(0, radar_type=RadarType.DOPPLER_WIND),
        ])
        names = radar_repo.get_data_layer_names(db, 2, RadarType.ONE_TWENTY_EIGHT_KM)
        assert names == {_layer(0).filename}

    def test_delete(self, db: sqlite3.Connection):
        radar_repo.insert_data_layers(db, [_layer(0), _layer(5)])
        assert radar_repo.delete_data_layers(db, [_layer(0).filename, "missing.png"]) == 1
        assert radar_repo.get_data_layer_names(db, 2, RadarType.ONE_TWENTY_EIGHT_KM) == {
            _layer(5).filename
        }

"""Tests for radar frame composition, pruning and output."""

import sqlite3
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from PIL import Image

from bomwatch.config.schema import RadarImageOptions
from bomwatch.ingest.radar_filenames import build_data_layer_filename, data_layer_from_filename
from bomwatch.models.radar import (
    RadarImageDataLayer,
    RadarImageFeature,
    RadarLegendType,
    RadarType,
)
from bomwatch.radar.frames import (
    MAX_GAP_PERIODS,
    RadarImageManager,
    get_radar_image_managers,
    load_feature_layers,
    load_legend,
)
from bomwatch.storage import radar_repo
from bomwatch.tests.factories import FakeRadarFetcher, png_bytes

T0 = datetime(2026, 2, 10, 1, 0, tzinfo=UTC)
RED = (255, 0, 0, 255)
WHITE = (255, 255, 255, 255)


def data_layer(minutes: int, size=(8, 8)) -> RadarImageDataLayer:
    timestamp = T0 + timedelta(minutes=minutes)
    name = build_data_layer_filename(2, RadarType.ONE_TWENTY_EIGHT_KM, timestamp)
    # Distinct colours so animated frames are never merged as duplicates
    return data_layer_from_filename(name, png_bytes(size, (255, minutes % 256, 0, 255)))


def make_manager(
    db: sqlite3.Connection,
    fetcher: FakeRadarFetcher,
    image_root: Path,
    layers: list[RadarImageDataLayer],
    **opts,
) -> RadarImageManager:
    radar_type = RadarType.ONE_TWENTY_EIGHT_KM
    return RadarImageManager(
        radar_id=2,
        radar_type=radar_type,
        legend=load_legend(db, fetcher, radar_type),
        data_layers=layers,
        feature_layers=load_feature_layers(db, fetcher, 2, radar_type),
        opts=RadarImageOptions(**opts),
        image_root=image_root,
    )


class TestLoadLayers:
    def test_legend_fetched_once_and_cached(self, db: sqlite3.Connection,
                                            radar_fetcher: FakeRadarFetcher):
        legend = load_legend(db, radar_fetcher, RadarType.DOPPLER_WIND)
        assert legend.legend_type == RadarLegendType.DOPPLER_WIND
        for legend_type in RadarLegendType:
            assert radar_repo.get_legend(db, legend_type) is not None

    def test_feature_layers_use_effective_size(self, db: sqlite3.Connection,
                                               radar_fetcher: FakeRadarFetcher):
        layers = load_feature_layers(db, radar_fetcher, 2, RadarType.ACCUMULATED_ONE_HOUR)
        assert {layer.size for layer in layers} == {RadarType.ONE_TWENTY_EIGHT_KM}
        assert layers[0].filename.startswith("IDR023.")
        stored = radar_repo.get_feature_layers(db, 2, RadarType.ONE_TWENTY_EIGHT_KM)
        assert len(stored) == len(RadarImageFeature)


class TestConstructFrames:
    def test_one_frame_per_data_layer(self, db, radar_fetcher, tmp_path: Path):
        manager = make_manager(db, radar_fetcher, tmp_path, [data_layer(5), data_layer(0)])
        manager.construct_frames()
        assert [f.timestamp for f in manager.frames] == [T0, T0 + timedelta(minutes=5)]
        assert manager.frames[0].path == tmp_path / "IDR023" / "IDR023.T.202602100100.png"

    def test_construct_is_incremental(self, db, radar_fetcher, tmp_path: Path):
        manager = make_manager(db, radar_fetcher, tmp_path, [data_layer(0)])
        manager.construct_frames()
        first = manager.frames[0]
        manager.add_data_layers([data_layer(5)])
        manager.construct_frames()
        assert manager.frames[0] is first
        assert len(manager.frames) == 2

    def test_remove_header(self, db, radar_fetcher, tmp_path: Path):
        radar_fetcher.legend_png = png_bytes((8, 32), WHITE)
        layers = [data_layer(0, size=(8, 32))]
        plain = make_manager(db, radar_fetcher, tmp_path / "a", layers)
        plain.construct_frames()
        assert plain.frames[0].image.getpixel((0, 10)) == RED
        assert plain.frames[0].image.getpixel((0, 20)) == RED

        stripped = make_manager(
            db, radar_fetcher, tmp_path / "b", layers, remove_header=True
        )
        stripped.construct_frames()
        assert stripped.frames[0].image.getpixel((0, 10)) == WHITE
        assert stripped.frames[0].image.getpixel((0, 20)) == RED

    def test_missing_feature_skipped(self, db, radar_fetcher, tmp_path: Path, caplog):
        manager = make_manager(db, radar_fetcher, tmp_path, [data_layer(0)])
        manager.feature_layers = [
            layer for layer in manager.feature_layers
            if layer.feature != RadarImageFeature.RANGE
        ]
        manager.construct_frames()
        assert len(manager.frames) == 1
        assert "range" in caplog.text


class TestPrune:
    def test_frame_cap(self, db, radar_fetcher, tmp_path: Path):
        layers = [data_layer(5 * i) for i in range(6)]
        manager = make_manager(db, radar_fetcher, tmp_path, layers, max_frames=4)
        manager.write_pngs()
        oldest = manager.frames[0].path
        assert oldest.exists()

        removed = manager.prune()

        assert [layer.filename for layer in removed] == [layers[0].filename, layers[1].filename]
        assert len(manager.frames) == 4
        assert manager.data_layers == layers[2:]
        assert not oldest.exists()

    def test_large_gap_drops_older_frames(self, db, radar_fetcher, tmp_path: Path):
        layers = [data_layer(0), data_layer(5), data_layer(60), data_layer(65)]
        manager = make_manager(db, radar_fetcher, tmp_path, layers)
        removed = manager.prune()
        assert removed == layers[:2]
        assert [f.timestamp for f in manager.frames] == [
            T0 + timedelta(minutes=60), T0 + timedelta(minutes=65)
        ]

    @pytest.mark.parametrize("minutes,max_frames", [
        ([0, 5, 10, 15, 20, 25], 3),
        ([0, 5, 30, 35, 40, 45], 10),
        ([0, 20, 40, 45], None),
        ([0, 21, 42, 47, 52], 4),
    ])
    def test_prune_leaves_capped_contiguous_frames(self, db, radar_fetcher, tmp_path: Path,
                                                   minutes, max_frames):
        layers = [data_layer(m) for m in minutes]
        manager = make_manager(db, radar_fetcher, tmp_path, layers, max_frames=max_frames)
        manager.prune()
        max_gap = timedelta(minutes=5) * MAX_GAP_PERIODS
        timestamps = [f.timestamp for f in manager.frames]
        assert timestamps == sorted(timestamps)
        if max_frames is not None:
            assert len(timestamps) <= max_frames
        for a, b in zip(timestamps, timestamps[1:]):
            assert b - a <= max_gap
        assert [layer.timestamp for layer in manager.data_layers] == timestamps

    def test_one_gap_cut_per_prune(self, db, radar_fetcher, tmp_path: Path):
        layers = [data_layer(m) for m in (0, 5, 30, 35, 100, 105)]
        manager = make_manager(db, radar_fetcher, tmp_path, layers)
        assert manager.prune() == layers[:2]
        assert manager.prune() == layers[2:4]
        assert manager.prune() == []
        assert manager.data_layers == layers[4:]


class TestOutputs:
    def test_write_pngs_skips_existing(self, db, radar_fetcher, tmp_path: Path):
        manager = make_manager(db, radar_fetcher, tmp_path, [data_layer(0), data_layer(5)])
        assert len(manager.write_pngs()) == 2
        assert manager.write_pngs() == []

    def test_force_rewrites(self, db, radar_fetcher, tmp_path: Path):
        make_manager(db, radar_fetcher, tmp_path, [data_layer(0)]).write_pngs()
        forced = make_manager(db, radar_fetcher, tmp_path, [data_layer(0)], force=True)
        assert len(forced.write_pngs()) == 1

    def test_force_keeps_disk_frames_for_prune(self, db, radar_fetcher, tmp_path: Path):
        old = make_manager(db, radar_fetcher, tmp_path, [data_layer(0)])
        old.write_pngs()
        old_path = old.frames[0].path

        later = 5 * (MAX_GAP_PERIODS + 1)
        forced = make_manager(db, radar_fetcher, tmp_path, [data_layer(later)], force=True)
        forced.prune()

        assert not old_path.exists()
        assert [f.timestamp for f in forced.frames] == [T0 + timedelta(minutes=later)]

    def test_frames_reloaded_from_disk(self, db, radar_fetcher, tmp_path: Path):
        layers = [data_layer(0), data_layer(5)]
        first = make_manager(db, radar_fetcher, tmp_path, layers, create_apng=True)
        first.write_pngs()
        first.create_apng()

        second = make_manager(db, radar_fetcher, tmp_path, layers)
        assert [f.timestamp for f in second.frames] == [layer.timestamp for layer in layers]

    def test_create_apng(self, db, radar_fetcher, tmp_path: Path):
        layers = [data_layer(0), data_layer(5), data_layer(10)]
        manager = make_manager(db, radar_fetcher, tmp_path, layers, frame_delay_ms=150)
        path = manager.create_apng()
        assert path.name == "IDR023.T.202602100100-202602100110.png"
        with Image.open(path) as img:
            assert getattr(img, "n_frames", 1) == 3

    def test_create_apng_without_frames(self, db, radar_fetcher, tmp_path: Path):
        manager = make_manager(db, radar_fetcher, tmp_path, [])
        assert manager.create_apng() is None

    def test_open_images_requires_viewer(self, db, radar_fetcher, tmp_path: Path):
        manager = make_manager(db, radar_fetcher, tmp_path, [data_layer(0)])
        with pytest.raises(RuntimeError):
            manager.open_images()


class TestGetRadarImageManagers:
    def test_one_manager_per_type(self, db, radar_fetcher, tmp_path: Path):
        opts = RadarImageOptions(
            radar_types=[RadarType.ONE_TWENTY_EIGHT_KM, RadarType.SIXTY_FOUR_KM], max_frames=2
        )
        radar_repo.insert_data_layers(db, [data_layer(0), data_layer(5), data_layer(10)])
        managers = get_radar_image_managers(db, radar_fetcher, 2, opts, tmp_path, tmp_path)
        assert [str(m) for m in managers] == ["IDR023", "IDR024"]
        # Newest max_frames layers, oldest first
        assert [layer.timestamp for layer in managers[0].data_layers] == [
            T0 + timedelta(minutes=5), T0 + timedelta(minutes=10)
        ]
        assert managers[1].data_layers == []
        assert managers[0].viewer is None

    def test_viewer_created_for_mpv(self, db, radar_fetcher, tmp_path: Path):
        opts = RadarImageOptions(open_mpv=True)
        [manager] = get_radar_image_managers(db, radar_fetcher, 2, opts, tmp_path, tmp_path)
        assert manager.viewer.socket_path == tmp_path / "IDR023.sock"

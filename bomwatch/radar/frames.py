"""Radar frame composition, pruning and output.

A frame is legend + base features + one data layer + overlay features,
composited in that order.
"""

import io
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from PIL import Image

from bomwatch.config.schema import RadarImageOptions
from bomwatch.exceptions import InvalidFilenameError
from bomwatch.ingest.protocols import RadarFetcher
from bomwatch.ingest.radar_filenames import TIMESTAMP_FORMAT, parse_data_layer_filename
from bomwatch.models.common import RadarId
from bomwatch.models.radar import (
    BASE_FEATURES,
    RadarImageDataLayer,
    RadarImageFeature,
    RadarImageFeatureLayer,
    RadarImageLegend,
    RadarType,
    pair_label,
    radar_type_spec,
)
from bomwatch.radar.viewer import MpvRadarViewer
from bomwatch.storage import radar_repo

logger = logging.getLogger(__name__)

HEADER_HEIGHT = 16
# Adjacent frames further apart than this many update periods aren't animated together
MAX_GAP_PERIODS = 4


def decode_png(png_buf: bytes) -> Image.Image:
    with Image.open(io.BytesIO(png_buf)) as img:
        return img.convert("RGBA")


def overlay(base: Image.Image, layer: Image.Image) -> None:
    """Alpha composite `layer` onto `base` at the origin, clipped to `base`."""
    width = min(base.width, layer.width)
    height = min(base.height, layer.height)
    if layer.size != (width, height):
        layer = layer.crop((0, 0, width, height))
    base.alpha_composite(layer, (0, 0))


@dataclass
class RadarImageFrame:
    radar_id: RadarId
    radar_type: RadarType
    timestamp: datetime
    path: Path
    image: Image.Image = field(repr=False)

    @classmethod
    def from_path(cls, path: Path) -> "RadarImageFrame":
        """Load a frame previously written to disk. Raises InvalidFilenameError."""
        parsed = parse_data_layer_filename(path.name)
        with Image.open(path) as img:
            image = img.convert("RGBA")
        return cls(
            radar_id=parsed.radar_id,
            radar_type=parsed.radar_type,
            timestamp=parsed.timestamp,
            path=path,
            image=image,
        )


class RadarImageManager:
    """Frames for one radar/type pair, kept in step with its data layers."""

    def __init__(
        self,
        radar_id: RadarId,
        radar_type: RadarType,
        legend: RadarImageLegend,
        data_layers: list[RadarImageDataLayer],
        feature_layers: list[RadarImageFeatureLayer],
        opts: RadarImageOptions,
        image_root: Path,
        viewer: MpvRadarViewer | None = None,
    ):
        self.radar_id = radar_id
        self.radar_type = radar_type
        self.legend = legend
        self.data_layers = sorted(data_layers, key=lambda layer: layer.timestamp)
        self.feature_layers = feature_layers
        self.opts = opts
        self.image_dir = image_root / self.label
        self.viewer = viewer
        self.frames: list[RadarImageFrame] = self._load_frames()
        self._force_pending = opts.force

    @property
    def label(self) -> str:
        return pair_label(self.radar_id, self.radar_type)

    def __str__(self) -> str:
        return self.label

    def _load_frames(self) -> list[RadarImageFrame]:
        if not self.image_dir.is_dir():
            return []
        frames = []
        for path in sorted(self.image_dir.glob("*.png")):
            try:
                frames.append(RadarImageFrame.from_path(path))
            except InvalidFilenameError:
                # Animated PNGs share the directory
                continue
            except OSError as e:
                logger.warning("Unreadable radar image %s: %s", path, e)
        return frames

    def _feature(self, feature: RadarImageFeature) -> RadarImageFeatureLayer | None:
        for layer in self.feature_layers:
            if layer.feature == feature:
                return layer
        logger.warning("%s is missing the %s feature", self, feature.value)
        return None

    def construct_frames(self) -> None:
        """Composite a frame for every data layer that doesn't have one yet."""
        if self._force_pending:
            # Frames without a data layer can't be rebuilt, keep them for prune
            rebuildable = {layer.timestamp for layer in self.data_layers}
            self.frames = [f for f in self.frames if f.timestamp not in rebuildable]
            self._force_pending = False

        have = {frame.timestamp for frame in self.frames}
        todo = [layer for layer in self.data_layers if layer.timestamp not in have]
        if not todo:
            return

        bottom = decode_png(self.legend.png_buf)
        top = Image.new("RGBA", bottom.size, (0, 0, 0, 0))
        for feature in self.opts.features:
            layer = self._feature(feature)
            if layer is None:
                continue
            overlay(bottom if feature in BASE_FEATURES else top, decode_png(layer.png_buf))

        for layer in todo:
            logger.debug("Constructing frame for %s", layer.filename)
            data = decode_png(layer.png_buf)
            if self.opts.remove_header:
                data.paste((0, 0, 0, 0), (0, 0, data.width, HEADER_HEIGHT))
            image = bottom.copy()
            overlay(image, data)
            overlay(image, top)
            self.frames.append(
                RadarImageFrame(
                    radar_id=layer.radar_id,
                    radar_type=layer.radar_type,
                    timestamp=layer.timestamp,
                    path=self.image_dir / layer.filename,
                    image=image,
                )
            )
        self.sort_frames()

    def sort_frames(self) -> None:
        self.frames.sort(key=lambda frame: frame.timestamp)

    def add_data_layers(self, layers: list[RadarImageDataLayer]) -> None:
        self.data_layers.extend(layers)
        self.data_layers.sort(key=lambda layer: layer.timestamp)

    def _remove_images(self, idx: int) -> list[RadarImageDataLayer]:
        """Drop the oldest `idx` frames from disk and memory with their data layers."""
        removed_frames = self.frames[:idx]
        del self.frames[:idx]
        for frame in removed_frames:
            if frame.path.exists():
                logger.debug("Deleting old radar image %s", frame.path)
                frame.path.unlink()
        cutoff = removed_frames[-1].timestamp
        removed = [layer for layer in self.data_layers if layer.timestamp <= cutoff]
        self.data_layers = [layer for layer in self.data_layers if layer.timestamp > cutoff]
        return removed

    def prune(self) -> list[RadarImageDataLayer]:
        """Enforce the frame cap, then drop everything before the first large gap.

        Returns the data layers removed so they can be deleted from storage.
        """
        self.construct_frames()
        self.sort_frames()
        removed: list[RadarImageDataLayer] = []

        max_frames = self.opts.max_frames
        if max_frames is not None and len(self.frames) > max_frames:
            idx = len(self.frames) - max_frames
            logger.debug("%s frame limit of %d exceeded by %d", self, max_frames, idx)
            removed.extend(self._remove_images(idx))

        max_gap = radar_type_spec(self.radar_type).update_frequency * MAX_GAP_PERIODS
        for i in range(len(self.frames) - 1):
            gap = self.frames[i + 1].timestamp - self.frames[i].timestamp
            if gap > max_gap:
                logger.debug(
                    "%s has gap of %d minutes between images. Removing old images",
                    self, gap.total_seconds() // 60,
                )
                removed.extend(self._remove_images(i + 1))
                break
        return removed

    def write_pngs(self) -> list[Path]:
        """Write every frame to disk. Existing files are kept unless forced."""
        self.construct_frames()
        self.image_dir.mkdir(parents=True, exist_ok=True)
        written = []
        for frame in self.frames:
            if frame.path.exists() and not self.opts.force:
                continue
            frame.image.save(frame.path, format="PNG")
            written.append(frame.path)
        return written

    def create_apng(self) -> Path | None:
        """Write all frames as one animated PNG named after the time span covered."""
        self.construct_frames()
        if not self.frames:
            logger.warning("%s has no frames, not creating animated PNG", self)
            return None
        start = self.frames[0].timestamp.strftime(TIMESTAMP_FORMAT)
        end = self.frames[-1].timestamp.strftime(TIMESTAMP_FORMAT)
        path = self.image_dir / f"{self.label}.T.{start}-{end}.png"
        self.image_dir.mkdir(parents=True, exist_ok=True)
        first, *rest = [frame.image for frame in self.frames]
        first.save(
            path,
            format="PNG",
            save_all=True,
            append_images=rest,
            duration=self.opts.frame_delay_ms,
            loop=0,
        )
        logger.info("Created %s", path)
        return path

    def open_images(self) -> None:
        if self.viewer is None:
            raise RuntimeError(f"{self} has no image viewer configured")
        self.write_pngs()
        self.viewer.open_images([frame.path for frame in self.frames], self.opts.mpv_args)


def load_legend(
    conn: sqlite3.Connection, fetcher: RadarFetcher, radar_type: RadarType
) -> RadarImageLegend:
    legend_type = radar_type_spec(radar_type).legend
    legend = radar_repo.get_legend(conn, legend_type)
    if legend is not None:
        return legend
    legends = fetcher.get_radar_legends()
    radar_repo.save_legends(conn, legends)
    for legend in legends:
        if legend.legend_type == legend_type:
            return legend
    raise LookupError(f"No {legend_type.value} legend on the radar server")


def load_feature_layers(
    conn: sqlite3.Connection, fetcher: RadarFetcher, radar_id: RadarId, radar_type: RadarType
) -> list[RadarImageFeatureLayer]:
    size = radar_type_spec(radar_type).size
    layers = radar_repo.get_feature_layers(conn, radar_id, size)
    if layers:
        return layers
    layers = fetcher.get_radar_feature_layers(radar_id, radar_type)
    radar_repo.save_feature_layers(conn, layers)
    return layers


def get_radar_image_managers(
    conn: sqlite3.Connection,
    fetcher: RadarFetcher,
    radar_id: RadarId,
    opts: RadarImageOptions,
    image_root: Path,
    runtime_dir: Path,
) -> list[RadarImageManager]:
    """One manager per configured radar type, built from the stored layers."""
    managers = []
    for radar_type in opts.radar_types:
        viewer = None
        if opts.open_mpv:
            viewer = MpvRadarViewer(
                label=pair_label(radar_id, radar_type),
                socket_dir=runtime_dir,
                frame_delay_ms=opts.frame_delay_ms,
            )
        managers.append(
            RadarImageManager(
                radar_id=radar_id,
                radar_type=radar_type,
                legend=load_legend(conn, fetcher, radar_type),
                data_layers=radar_repo.get_data_layers(
                    conn, radar_id, radar_type, opts.max_frames
                ),
                feature_layers=load_feature_layers(conn, fetcher, radar_id, radar_type),
                opts=opts,
                image_root=image_root,
                viewer=viewer,
            )
        )
    return managers

"""Incremental radar data layer acquisition.

The next image's filename is predictable from the last one, so the radar
directory is only listed on first sync, after a long absence, or when a
predicted image is missing well past its due time. The listing is cached for
the whole pass since the FTP session drops if left idle too long.
"""

import logging
import sqlite3
from collections.abc import Collection
from datetime import datetime, timedelta

from bomwatch.exceptions import RemoteFileNotFoundError
from bomwatch.ingest.protocols import RadarFetcher
from bomwatch.ingest.radar_filenames import data_layer_from_filename, expected_next_layer
from bomwatch.models.common import RadarId, utc_now
from bomwatch.models.radar import RadarImageDataLayer, RadarType, pair_label, radar_type_spec
from bomwatch.radar.frames import RadarImageManager
from bomwatch.storage import radar_repo

logger = logging.getLogger(__name__)

# Extra tolerance past the grace period before a missing image triggers a listing
MISS_TOLERANCE = timedelta(minutes=1)
FALLBACK_CHECK_DELAY = timedelta(seconds=60)


class ListingCache:
    """Lists the radar directory at most once."""

    def __init__(self, fetcher: RadarFetcher):
        self.fetcher = fetcher
        self._names: list[str] | None = None

    def names(self) -> list[str]:
        if self._names is None:
            self._names = self.fetcher.list_radar_data_layers()
        return self._names


def fetch_new_data_layers(
    fetcher: RadarFetcher,
    radar_id: RadarId,
    radar_type: RadarType,
    known_names: Collection[str],
    listing: ListingCache,
    max_frames: int | None = None,
    now: datetime | None = None,
) -> list[RadarImageDataLayer]:
    """Data layers for a radar/type pair newer than those in `known_names`."""
    now = now or utc_now()
    type_spec = radar_type_spec(radar_type)
    known = sorted(
        (data_layer_from_filename(name) for name in known_names),
        key=lambda layer: layer.timestamp,
    )
    last_known = known[-1] if known else None

    new_layers: list[RadarImageDataLayer] = []
    check_listing = last_known is None
    last = last_known
    while last is not None:
        if now - last.timestamp > type_spec.update_frequency * type_spec.min_image_count:
            check_listing = True
            break

        predicted = expected_next_layer(last)
        due = predicted.timestamp + type_spec.check_after
        if now < due:
            fetcher.keepalive()
            break

        try:
            predicted.png_buf = fetcher.get_radar_data_png(predicted.filename)
        except RemoteFileNotFoundError as e:
            logger.debug("Failed to download radar data layer %s. %s", predicted.filename, e)
            # The cadence may have changed, so re-sync from the listing
            if now > due + MISS_TOLERANCE:
                check_listing = True
            break
        new_layers.append(predicted)
        last = predicted

    if check_listing:
        new_layers.extend(
            _layers_from_listing(
                fetcher, radar_id, radar_type, known_names, new_layers, last_known,
                listing, max_frames,
            )
        )
    new_layers.sort(key=lambda layer: layer.timestamp)
    return new_layers


def _layers_from_listing(
    fetcher: RadarFetcher,
    radar_id: RadarId,
    radar_type: RadarType,
    known_names: Collection[str],
    staged: list[RadarImageDataLayer],
    last_known: RadarImageDataLayer | None,
    listing: ListingCache,
    max_frames: int | None,
) -> list[RadarImageDataLayer]:
    prefix = f"{pair_label(radar_id, radar_type)}.T."
    staged_names = {layer.filename for layer in staged}
    count = 0
    todo = []
    for name in listing.names():
        if not name.startswith(prefix):
            continue
        count += 1
        if name in known_names or name in staged_names:
            continue
        layer = data_layer_from_filename(name)
        if last_known is not None and layer.timestamp < last_known.timestamp:
            continue
        todo.append(layer)

    if count == 0:
        logger.warning(
            "No images for %s found on FTP. Some radars have limited data available. "
            "Consider adjusting your config",
            prefix[:-3],
        )

    todo.sort(key=lambda layer: layer.timestamp)
    if max_frames is not None and len(todo) > max_frames:
        todo = todo[-max_frames:]
    for layer in todo:
        layer.png_buf = fetcher.get_radar_data_png(layer.filename)
    return todo


def update_radar_images(
    conn: sqlite3.Connection,
    fetcher: RadarFetcher,
    managers: list[RadarImageManager],
    now: datetime | None = None,
) -> datetime:
    """Fetch and store new data layers for every manager.

    Returns when the next image is expected, or a minute from now if that time
    has already passed.
    """
    now = now or utc_now()
    listing = ListingCache(fetcher)
    next_times = []
    for manager in managers:
        known_names = radar_repo.get_data_layer_names(conn, manager.radar_id, manager.radar_type)
        new_layers = fetch_new_data_layers(
            fetcher,
            manager.radar_id,
            manager.radar_type,
            known_names,
            listing,
            manager.opts.max_frames,
            now,
        )
        if new_layers:
            logger.info("%s: %d new radar images", manager, len(new_layers))
            radar_repo.insert_data_layers(conn, new_layers)
            manager.add_data_layers(new_layers)
        if manager.data_layers:
            next_times.append(manager.data_layers[-1].next_check_time)

    if next_times and min(next_times) > now:
        return min(next_times)
    return now + FALLBACK_CHECK_DELAY


def manage_radar_images(conn: sqlite3.Connection, managers: list[RadarImageManager]) -> None:
    """Prune each manager and produce its configured outputs."""
    for manager in managers:
        removed = manager.prune()
        if removed:
            radar_repo.delete_data_layers(conn, [layer.filename for layer in removed])
        if manager.opts.create_png:
            manager.write_pngs()
        if manager.opts.create_apng:
            manager.create_apng()
        if manager.opts.open_mpv:
            manager.open_images()

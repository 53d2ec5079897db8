"""CLI entry point for bomwatch."""

import argparse
import ftplib
import logging
import sys
from pathlib import Path
from zoneinfo import ZoneInfo

import httpx

from bomwatch.config.loader import (
    add_location_id,
    add_radar,
    default_config_path,
    get_config_value,
    load_config,
    save_config,
    set_config_value,
)
from bomwatch.config.schema import AppConfig, LoggingConfig, RadarConfig
from bomwatch.daemon import (
    DEFAULT_NAME,
    MonitorDaemon,
    build_bom_client,
    build_ftp_client,
    daemon_status,
    open_database,
    stop_daemon,
)
from bomwatch.exceptions import BomWatchError, LocationNotFoundError
from bomwatch.models.common import utc_now
from bomwatch.models.radar import RadarImageFeature, RadarType
from bomwatch.pipeline.locations import (
    Location,
    find_search_result,
    ids_to_locations,
    persist_weather,
)
from bomwatch.pipeline.weather import NEVER_CHECKED
from bomwatch.radar.acquisition import manage_radar_images, update_radar_images
from bomwatch.radar.frames import get_radar_image_managers
from bomwatch.reporting.current import project_current
from bomwatch.reporting.formatters import (
    format_daily_table,
    format_hourly_table,
    list_format_keys,
    render_current,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
RADAR_MONITOR_NAME = "radar"

# Failures reported to the user as a one-line error instead of a traceback
USER_ERRORS = (BomWatchError, httpx.HTTPError, ValueError, LookupError, *ftplib.all_errors)


def setup_logging(config: LoggingConfig, default_file: Path, verbose: bool = False) -> None:
    """Console handler at the configured level (DEBUG if verbose) plus a file handler."""
    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else config.console_level.value)
    console.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    file_path = config.file_path or default_file
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(file_path)
    file_handler.setLevel(config.file_level.value)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(level=logging.DEBUG, handlers=[console, file_handler], force=True)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="bomwatch",
        description="Bureau of Meteorology weather and radar monitor",
    )
    parser.add_argument("--config", default=None, help="Config YAML path")
    parser.add_argument("--db", default=None, help="SQLite DB path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug console logging")

    sub = parser.add_subparsers(dest="command")

    # search / add-location / add-radar
    search_p = sub.add_parser("search", help="Search for a location by name or postcode")
    search_p.add_argument("term")
    add_loc_p = sub.add_parser("add-location", help="Add a location to the config")
    add_loc_p.add_argument("location", help="Location id (name-geohash) or search term")
    add_radar_p = sub.add_parser("add-radar", help="Add a radar to the config")
    add_radar_p.add_argument("radar_id", type=int)
    add_radar_p.add_argument("name", nargs="?", default="")

    # current / daily / hourly
    current_p = sub.add_parser("current", help="Current conditions for each location")
    current_p.add_argument("--check", action="store_true", help="Refresh feeds that are due")
    current_p.add_argument("--fstring", default=None, help="Format string, e.g. '{icon} {temp}'")
    current_p.add_argument("--list-keys", action="store_true", help="List format string keys")

    daily_p = sub.add_parser("daily", help="Daily forecast table")
    daily_p.add_argument("--check", action="store_true", help="Refresh feeds that are due")
    daily_p.add_argument("--force-check", action="store_true", help="Refresh the daily forecast")
    daily_p.add_argument("--extended", action="store_true", help="Show extended descriptions")

    hourly_p = sub.add_parser("hourly", help="Hourly forecast table")
    hourly_p.add_argument("--check", action="store_true", help="Refresh feeds that are due")
    hourly_p.add_argument("--force-check", action="store_true", help="Refresh the hourly forecast")
    hourly_p.add_argument("--hours", type=int, default=12, help="Number of hours to show")

    # radar
    radar_p = sub.add_parser("radar", help="Download radar images and build frames")
    radar_p.add_argument("radar_ids", nargs="*", type=int, help="Radars to use (default all)")
    radar_p.add_argument("--monitor", action="store_true", help="Keep images current")
    radar_p.add_argument(
        "-F", "--feature", dest="features", action="append", type=RadarImageFeature,
        choices=list(RadarImageFeature), help="Feature overlay (repeatable)",
    )
    radar_p.add_argument(
        "-r", "--radar-type", dest="radar_types", action="append", type=RadarType,
        choices=list(RadarType), help="Radar type (repeatable)",
    )
    radar_p.add_argument("-R", "--remove-header", action="store_true", default=None)
    radar_p.add_argument("-f", "--force", action="store_true", default=None,
                         help="Rebuild frames that already exist")
    radar_p.add_argument("-p", "--no-png", dest="create_png", action="store_false", default=None,
                         help="Don't write individual frames")
    radar_p.add_argument("-a", "--apng", dest="create_apng", action="store_true", default=None,
                         help="Write an animated PNG")
    radar_p.add_argument("-m", "--mpv", dest="open_mpv", action="store_true", default=None,
                         help="Show the frames in mpv")
    radar_p.add_argument("-d", "--frame-delay", dest="frame_delay_ms", type=int, default=None)
    radar_p.add_argument("-n", "--max-frames", type=int, default=None)
    radar_p.add_argument("-o", "--image-dir", type=Path, default=None)

    # monitor
    monitor_p = sub.add_parser("monitor", help="Run the monitor daemon")
    monitor_p.add_argument("--stop", action="store_true", help="Stop a running monitor")
    monitor_p.add_argument("--status", action="store_true", help="Show monitor status")
    monitor_p.add_argument("--radar", action="store_true",
                           help="Target the radar-only monitor started by 'radar --monitor'")

    # config show / config set
    config_p = sub.add_parser("config", help="Config operations")
    config_sub = config_p.add_subparsers(dest="config_command")
    config_sub.add_parser("show", help="Display current config")
    set_p = config_sub.add_parser("set", help="Set a config value")
    set_p.add_argument("keyvalue", help="key=value to set")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    config_path = Path(args.config) if args.config else default_config_path()
    try:
        config = load_config(config_path)
    except (ValueError, OSError) as e:
        print(f"Error: invalid config {config_path}: {e}")
        return 1
    if args.db:
        config = config.model_copy(update={"db_path": Path(args.db)})

    setup_logging(config.logging, config.dirs.state / "bomwatch.log", args.verbose)

    commands = {
        "search": _cmd_search,
        "add-location": _cmd_add_location,
        "add-radar": _cmd_add_radar,
        "current": _cmd_current,
        "daily": _cmd_daily,
        "hourly": _cmd_hourly,
        "radar": _cmd_radar,
        "monitor": _cmd_monitor,
        "config": _cmd_config,
    }
    try:
        return commands[args.command](config, config_path, args)
    except USER_ERRORS as e:
        logger.debug("%s failed", args.command, exc_info=True)
        print(f"Error: {e}")
        return 1


def run() -> None:
    sys.exit(main())


def _cmd_search(config: AppConfig, config_path: Path, args) -> int:
    results = build_bom_client(config).search(args.term)
    if not results:
        print(f"No results found for {args.term}")
        return 1
    for result in results:
        print(f"{result.id}  ({result})")
    return 0


def _cmd_add_location(config: AppConfig, config_path: Path, args) -> int:
    client = build_bom_client(config)
    try:
        result = find_search_result(client, args.location)
    except LocationNotFoundError:
        results = client.search(args.location)
        if len(results) != 1:
            print(f"{len(results)} results for {args.location}, add one by id:")
            for r in results:
                print(f"  {r.id}  ({r})")
            return 1
        result = results[0]

    config = add_location_id(config, result.id, config_path)
    conn = open_database(config)
    try:
        ids_to_locations(conn, client, [result.id], config.weather)
    finally:
        conn.close()
    print(f"Added {result.id} ({result})")
    return 0


def _cmd_add_radar(config: AppConfig, config_path: Path, args) -> int:
    add_radar(config, args.radar_id, args.name, config_path)
    print(f"Added radar {args.radar_id} {args.name}".rstrip())
    return 0


def _load_locations(config: AppConfig, client, check: bool) -> list[Location]:
    if not config.locations:
        raise LocationNotFoundError("No locations configured. Use 'bomwatch add-location'")
    conn = open_database(config)
    try:
        locations = ids_to_locations(conn, client, config.locations, config.weather)
        if check:
            for location in locations:
                changed, _ = location.update_if_due(client)
                if changed:
                    persist_weather(conn, location)
    finally:
        conn.close()
    return locations


def _cmd_current(config: AppConfig, config_path: Path, args) -> int:
    if args.list_keys:
        for key in list_format_keys():
            print(key)
        return 0
    fstring = args.fstring or config.current_fstring
    for location in _load_locations(config, build_bom_client(config), args.check):
        current = project_current(location.weather, tz=ZoneInfo(location.timezone))
        print(render_current(current, fstring))
    return 0


def _cmd_daily(config: AppConfig, config_path: Path, args) -> int:
    client = build_bom_client(config)
    locations = _load_locations(config, client, args.check and not args.force_check)
    if args.force_check:
        _force_refresh(config, client, locations, "next_daily_due")
    for location in locations:
        daily = location.weather.daily_forecast
        if daily is None:
            print(f"No daily forecast for {location.id}")
            continue
        print(format_daily_table(location.name, daily, args.extended, ZoneInfo(location.timezone)))
    return 0


def _cmd_hourly(config: AppConfig, config_path: Path, args) -> int:
    client = build_bom_client(config)
    locations = _load_locations(config, client, args.check and not args.force_check)
    if args.force_check:
        _force_refresh(config, client, locations, "next_hourly_due")
    for location in locations:
        hourly = location.weather.hourly_forecast
        if hourly is None:
            print(f"No hourly forecast for {location.id}")
            continue
        print(format_hourly_table(
            location.name, hourly, utc_now(),
            args.hours, ZoneInfo(location.timezone),
        ))
    return 0


def _force_refresh(config: AppConfig, client, locations: list[Location], due_field: str) -> None:
    """Mark one feed as never checked, then refresh everything that is due."""
    conn = open_database(config)
    try:
        for location in locations:
            setattr(location.weather, due_field, NEVER_CHECKED)
            changed, _ = location.update_if_due(client)
            if changed:
                persist_weather(conn, location)
    finally:
        conn.close()


def _radar_configs(config: AppConfig, args) -> list[RadarConfig]:
    if args.radar_ids:
        configured = {r.id: r for r in config.radars}
        radars = [configured.get(rid) or RadarConfig(id=rid) for rid in args.radar_ids]
    else:
        radars = list(config.radars)
    if not radars:
        raise LookupError("No radars configured. Use 'bomwatch add-radar'")

    overrides = {
        "features": args.features,
        "radar_types": args.radar_types,
        "remove_header": args.remove_header,
        "force": args.force,
        "create_png": args.create_png,
        "create_apng": args.create_apng,
        "open_mpv": args.open_mpv,
        "frame_delay_ms": args.frame_delay_ms,
        "max_frames": args.max_frames,
        "image_dir": args.image_dir,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    return [
        r.model_copy(update={"opts": r.opts.model_validate({**r.opts.model_dump(), **overrides})})
        for r in radars
    ]


def _cmd_radar(config: AppConfig, config_path: Path, args) -> int:
    radars = _radar_configs(config, args)

    if args.monitor:
        monitor_config = config.model_copy(update={
            "locations": [],
            "radars": radars,
            "monitor": config.monitor.model_copy(update={"monitor_radars": True}),
        })
        MonitorDaemon(monitor_config, name=RADAR_MONITOR_NAME).start()
        return 0

    ftp = build_ftp_client(config)
    conn = open_database(config)
    try:
        managers = []
        for radar in radars:
            managers.extend(get_radar_image_managers(
                conn, ftp, radar.id, radar.opts, config.image_dir(radar.opts), config.dirs.runtime,
            ))
        update_radar_images(conn, ftp, managers)
        manage_radar_images(conn, managers)
    finally:
        ftp.close()
        conn.close()

    for manager in managers:
        print(f"{manager}: {len(manager.frames)} frames in {manager.image_dir}")
    return 0


def _cmd_monitor(config: AppConfig, config_path: Path, args) -> int:
    name = RADAR_MONITOR_NAME if args.radar else DEFAULT_NAME
    if args.stop:
        return stop_daemon(config.dirs, name)
    if args.status:
        return daemon_status(config.dirs, name)
    MonitorDaemon(config, name=name).start()
    return 0


def _cmd_config(config: AppConfig, config_path: Path, args) -> int:
    if args.config_command == "show":
        print(config.model_dump_json(indent=2))
        return 0
    elif args.config_command == "set":
        kv = args.keyvalue
        if "=" not in kv:
            print("Error: use key=value format")
            return 1
        key, value = kv.split("=", 1)
        new_config = set_config_value(config, key.strip(), value.strip())
        save_config(new_config, config_path)
        print(f"Set {key} = {get_config_value(new_config, key.strip())}")
        return 0
    else:
        print("Use: config show | config set key=value")
        return 1

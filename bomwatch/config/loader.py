"""YAML config loader with save support and runtime get/set."""

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from bomwatch.config.defaults import CONFIG_FILENAME
from bomwatch.config.schema import AppConfig, DirsConfig, RadarConfig

logger = logging.getLogger(__name__)


def default_config_path(dirs: DirsConfig | None = None) -> Path:
    dirs = dirs or DirsConfig.from_environment()
    return dirs.config / CONFIG_FILENAME


def load_config(path: str | Path) -> AppConfig:
    """Load and validate config from a YAML file.

    A missing or empty file yields the defaults.
    """
    path = Path(path)
    raw: dict = {}
    if path.exists():
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file at %s, using defaults", path)
    return AppConfig(**raw)


def save_config(config: AppConfig, path: str | Path) -> None:
    """Write config to YAML. Directories are only written if set explicitly."""
    path = Path(path)
    data = config.model_dump(mode="json")
    if "dirs" not in config.model_fields_set:
        data.pop("dirs", None)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)


def get_config_value(config: AppConfig, dotted_key: str) -> Any:
    """Get a config value by dotted key path. E.g. 'weather.update_delay'."""
    parts = dotted_key.split(".")
    obj: Any = config
    for part in parts:
        if isinstance(obj, list):
            obj = obj[int(part)]
        elif hasattr(obj, part):
            obj = getattr(obj, part)
        elif isinstance(obj, dict):
            obj = obj[part]
        else:
            raise KeyError(f"Config key not found: {dotted_key}")
    return obj


def set_config_value(config: AppConfig, dotted_key: str, value: Any) -> AppConfig:
    """Set a config value by dotted key path and re-validate.

    Returns a new AppConfig instance.
    """
    data = json.loads(config.model_dump_json())
    parts = dotted_key.split(".")
    target: Any = data
    for part in parts[:-1]:
        target = target[int(part)] if isinstance(target, list) else target[part]
    last = parts[-1]
    if isinstance(target, dict) and last not in target:
        raise KeyError(f"Config key not found: {dotted_key}")
    # Attempt type coercion for common cases
    old_value = target.get(last) if isinstance(target, dict) else None
    if isinstance(old_value, bool) and isinstance(value, str):
        value = value.lower() in ("1", "true", "yes", "on")
    elif isinstance(old_value, int) and isinstance(value, str):
        value = int(value)
    elif isinstance(old_value, float) and isinstance(value, str):
        value = float(value)
    target[last] = value
    if "dirs" not in config.model_fields_set and parts[0] != "dirs":
        # Keep directories resolved from the environment
        data.pop("dirs")
    return AppConfig(**data)


def add_location_id(config: AppConfig, location_id: str, path: str | Path) -> AppConfig:
    """Append a location id and persist the config file."""
    if location_id in config.locations:
        raise ValueError(f"{location_id} already in {path}")
    logger.info("Adding %s to %s", location_id, path)
    config = config.model_copy(update={"locations": [*config.locations, location_id]})
    save_config(config, path)
    return config


def add_radar(config: AppConfig, radar_id: int, name: str, path: str | Path) -> AppConfig:
    """Append a radar with default image options and persist the config file."""
    if any(r.id == radar_id for r in config.radars):
        raise ValueError(f"Radar {radar_id} already in {path}")
    logger.info("Adding radar %d %s to %s", radar_id, name, path)
    radar = RadarConfig(id=radar_id, name=name)
    config = config.model_copy(update={"radars": [*config.radars, radar]})
    save_config(config, path)
    return config

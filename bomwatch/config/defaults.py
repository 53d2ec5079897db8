"""Default values that are too long or too environment-specific for the schema."""

import os
from pathlib import Path

from bomwatch.models.radar import RadarImageFeature

APP_DIR_NAME = "bomwatch"
CONFIG_FILENAME = "config.yml"

DEFAULT_CURRENT_FSTRING = "{icon} {temp} ({next_temp})"

DEFAULT_FEATURES: list[RadarImageFeature] = [
    RadarImageFeature.BACKGROUND,
    RadarImageFeature.TOPOGRAPHY,
    RadarImageFeature.RANGE,
    RadarImageFeature.LOCATIONS,
]

DEFAULT_MPV_ARGS: list[str] = [
    "--stop-screensaver=no",
    "--geometry=1024x1114",
    "--auto-window-resize=no",
    "--loop-playlist",
]


def xdg_dir(env_var: str, home_relative: str | None) -> Path | None:
    """Resolve an XDG base directory with the app name appended.

    Returns None when the variable is unset and there is no fallback.
    """
    value = os.environ.get(env_var)
    if value:
        return Path(value) / APP_DIR_NAME
    if home_relative is None:
        return None
    return Path.home() / home_relative / APP_DIR_NAME

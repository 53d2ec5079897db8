"""Forecast icon descriptors as published by the bureau.

See https://reg.bom.gov.au/info/forecast_icons.shtml
"""

from enum import StrEnum


class IconDescriptor(StrEnum):
    SUNNY = "sunny"
    CLEAR = "clear"
    MOSTLY_SUNNY = "mostly_sunny"
    PARTLY_CLOUDY = "partly_cloudy"
    CLOUDY = "cloudy"
    HAZY = "hazy"
    LIGHT_RAIN = "light_rain"
    WINDY = "windy"
    FOG = "fog"
    SHOWER = "shower"
    RAIN = "rain"
    DUSTY = "dusty"
    FROST = "frost"
    SNOW = "snow"
    STORM = "storm"
    LIGHT_SHOWER = "light_shower"
    HEAVY_SHOWER = "heavy_shower"
    CYCLONE = "cyclone"


_EMOJI = {
    IconDescriptor.SUNNY: "☀️",
    IconDescriptor.CLEAR: "🌙",
    IconDescriptor.MOSTLY_SUNNY: "🌤️",
    IconDescriptor.PARTLY_CLOUDY: "⛅",
    IconDescriptor.CLOUDY: "☁️",
    IconDescriptor.HAZY: "🌅",
    IconDescriptor.WINDY: "🌬️",
    IconDescriptor.FOG: "🌫️",
    IconDescriptor.SHOWER: "🌦️",
    IconDescriptor.LIGHT_SHOWER: "🌦️",
    IconDescriptor.LIGHT_RAIN: "🌦️",
    IconDescriptor.HEAVY_SHOWER: "🌧️",
    IconDescriptor.RAIN: "🌧️",
    IconDescriptor.DUSTY: "🐪",
    IconDescriptor.FROST: "❄️",
    IconDescriptor.SNOW: "🌨️",
    IconDescriptor.STORM: "⛈️",
    IconDescriptor.CYCLONE: "🌀",
}


def icon_emoji(descriptor: str, is_night: bool) -> str:
    """Emoji for a descriptor. Unknown descriptors render as an empty string."""
    try:
        icon = IconDescriptor(descriptor)
    except ValueError:
        return ""
    if icon == IconDescriptor.SUNNY and is_night:
        return _EMOJI[IconDescriptor.CLEAR]
    return _EMOJI[icon]


def icon_description(descriptor: str, is_night: bool) -> str:
    """Human readable text, e.g. 'mostly_sunny' -> 'Mostly sunny'."""
    if descriptor == IconDescriptor.SUNNY and is_night:
        descriptor = IconDescriptor.CLEAR
    return descriptor.replace("_", " ").capitalize()

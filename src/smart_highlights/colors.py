"""Color parsing, readable foreground selection, and highlight color suggestions."""

from __future__ import annotations

import re
from typing import Iterable, NamedTuple

from smart_highlights.models import DecorationStyle

DARK_FOREGROUND = "#1f1f1f"
LIGHT_FOREGROUND = "#ffffff"

# Luminance above which dark text is more readable than light text
LUMINANCE_THRESHOLD = 0.6

BASE_COLORS = ["#00c4ff", "#ffd400", "#8ac926", "#ff595e", "#6a4c93", "#1982c4", "#ff924c", "#fb5607"]
DEFAULT_ALPHA = "80"

_HEX_DIGITS = re.compile(r"^[0-9a-fA-F]+$")


class RGB(NamedTuple):
    r: int
    g: int
    b: int


def parse_color(text: str) -> RGB | None:
    """
    Parse ``#RGB``, ``#RGBA``, ``#RRGGBB`` or ``#RRGGBBAA`` into RGB components.

    Alpha is ignored. Named colors, ``rgba()`` and anything else return None so
    the host's own color handling applies.
    """
    trimmed = text.strip()
    if not trimmed.startswith("#"):
        return None

    hex_part = trimmed[1:]
    if not _HEX_DIGITS.match(hex_part):
        return None

    if len(hex_part) in (3, 4):
        hex_part = "".join(ch * 2 for ch in hex_part[:3])
    elif len(hex_part) in (6, 8):
        hex_part = hex_part[:6]
    else:
        return None

    value = int(hex_part, 16)
    return RGB((value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF)


def luminance(rgb: RGB) -> float:
    """Perceived luminance in ``[0, 1]``."""
    return (0.299 * rgb.r + 0.587 * rgb.g + 0.114 * rgb.b) / 255


def readable_foreground(color: str) -> str | None:
    """Return a dark or light text color for ``color``, or None if it cannot be parsed."""
    rgb = parse_color(color)
    if rgb is None:
        return None
    return DARK_FOREGROUND if luminance(rgb) > LUMINANCE_THRESHOLD else LIGHT_FOREGROUND


def decoration_style(color: str) -> DecorationStyle:
    """Build the decoration style for a rule color."""
    return DecorationStyle(
        background_color=color,
        border=f"1px solid {color}",
        color=readable_foreground(color),
        overview_ruler_color=color,
    )


# =============================================================================
# Color suggestions
# =============================================================================


def normalize_color(color: str) -> str:
    """Normalize a color for comparison: lowercase, ``#rgb`` expanded, alpha dropped."""
    trimmed = color.strip().lower()
    if not trimmed.startswith("#"):
        return trimmed
    if len(trimmed) in (4, 5):
        trimmed = "#" + "".join(ch * 2 for ch in trimmed[1:4])
    return trimmed[:7]


def hsl_to_hex(hue: float, saturation: float, lightness: float) -> str:
    saturation /= 100
    lightness /= 100
    a = saturation * min(lightness, 1 - lightness)

    def channel(n: int) -> str:
        k = (n + hue / 30) % 12
        value = lightness - a * max(-1, min(k - 3, 9 - k, 1))
        return f"{round(value * 255):02x}"

    return f"#{channel(0)}{channel(8)}{channel(4)}"


def suggest_color(used_colors: Iterable[str]) -> str:
    """
    Suggest a highlight color not already used by existing rules.

    Walks the base palette first, then golden-angle hues. The suggestion
    carries a translucent alpha suffix.

    Example:
        >>> suggest_color(["#00c4ff80"])
        '#ffd40080'
    """
    used = {normalize_color(c) for c in used_colors}
    for hex_color in BASE_COLORS:
        if hex_color not in used:
            return hex_color + DEFAULT_ALPHA

    index = len(used)
    while index < len(used) + 1000:
        candidate = hsl_to_hex((index * 137.508) % 360, 70, 55)
        if candidate not in used:
            return candidate + DEFAULT_ALPHA
        index += 1
    return BASE_COLORS[0] + DEFAULT_ALPHA

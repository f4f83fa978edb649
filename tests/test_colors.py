"""Tests for color parsing, readable foregrounds and color suggestions."""

from smart_highlights.colors import (
    BASE_COLORS,
    DARK_FOREGROUND,
    LIGHT_FOREGROUND,
    decoration_style,
    hsl_to_hex,
    luminance,
    normalize_color,
    parse_color,
    readable_foreground,
    suggest_color,
)


def test_parse_color_forms():
    """Short, long and alpha hex forms parse; alpha is ignored."""
    assert parse_color("#fff") == (255, 255, 255)
    assert parse_color("#0f08") == (0, 255, 0)
    assert parse_color("#00c4ff") == (0, 196, 255)
    assert parse_color("#00c4ff55") == (0, 196, 255)
    assert parse_color("  #123456  ") == (0x12, 0x34, 0x56)


def test_parse_color_rejects_other_forms():
    """Named colors, rgba() and bad hex digits are not parsed."""
    assert parse_color("red") is None
    assert parse_color("rgba(0, 0, 0, 0.5)") is None
    assert parse_color("#12345") is None
    assert parse_color("#gggggg") is None
    assert parse_color("#00c4ffzz") is None
    assert parse_color("#fffz") is None


def test_translucent_cyan_gets_light_text():
    """#00c4ff55 has luminance just under the threshold."""
    rgb = parse_color("#00c4ff55")
    assert abs(luminance(rgb) - 0.565) < 0.001
    assert readable_foreground("#00c4ff55") == LIGHT_FOREGROUND


def test_bright_color_gets_dark_text():
    assert readable_foreground("#ffd400") == DARK_FOREGROUND
    assert readable_foreground("yellow") is None


def test_decoration_style():
    """Decoration style is derived from the color alone."""
    style = decoration_style("#ffd40080")
    assert style.background_color == "#ffd40080"
    assert style.border == "1px solid #ffd40080"
    assert style.border_radius == "2px"
    assert style.color == DARK_FOREGROUND
    assert style.overview_ruler_color == "#ffd40080"
    assert style.overview_ruler_lane == "right"
    assert decoration_style("orange").color is None


def test_normalize_color():
    assert normalize_color("#ABC") == "#aabbcc"
    assert normalize_color("#00C4FF55") == "#00c4ff"
    assert normalize_color("Red") == "red"


def test_hsl_to_hex():
    assert hsl_to_hex(0, 100, 50) == "#ff0000"
    assert hsl_to_hex(120, 100, 50) == "#00ff00"


def test_suggest_color_walks_palette():
    """The first unused palette color is suggested with an alpha suffix."""
    assert suggest_color([]) == BASE_COLORS[0] + "80"
    assert suggest_color(["#00C4FF55"]) == BASE_COLORS[1] + "80"


def test_suggest_color_after_palette_exhausted():
    """Golden-angle hues are used once every palette color is taken."""
    suggestion = suggest_color(color + "80" for color in BASE_COLORS)
    assert suggestion.endswith("80")
    assert len(suggestion) == 9
    assert suggestion[:7] not in BASE_COLORS

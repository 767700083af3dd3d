"""
Style normalisation shared by the layout and rich-text compilers.

Every function here is total: malformed colors, sizes and line heights
degrade to a safe default instead of raising.

Colors       -> uppercase 6-digit hex without ``#`` ("FF0000")
Font sizes   -> half-points, clamped to 8..72 pt
Line heights -> multiplier, clamped to 1.0..3.0
CSS values   -> kebab-case properties, ``px`` appended to bare numbers
"""
from __future__ import annotations

import dataclasses
import re
from typing import Any, Optional

from app.config import settings
from app.utils.helpers import clamp, format_number, parse_number

DEFAULT_COLOR = "000000"
MIN_FONT_POINTS = 8
MAX_FONT_POINTS = 72
MIN_LINE_HEIGHT = 1.0
MAX_LINE_HEIGHT = 3.0
DEFAULT_LINE_HEIGHT = 1.5

NAMED_COLORS = {
    "black": "000000",
    "white": "FFFFFF",
    "red": "FF0000",
    "green": "008000",
    "blue": "0000FF",
    "yellow": "FFFF00",
    "orange": "FFA500",
    "purple": "800080",
    "pink": "FFC0CB",
    "gray": "808080",
    "grey": "808080",
    "brown": "A52A2A",
    "cyan": "00FFFF",
    "magenta": "FF00FF",
    "navy": "000080",
    "teal": "008080",
    "silver": "C0C0C0",
    "maroon": "800000",
    "olive": "808000",
    "lime": "00FF00",
}

# CSS properties whose bare numbers must not get a "px" unit
DIMENSIONLESS_PROPERTIES = frozenset({
    "opacity",
    "z-index",
    "font-weight",
    "line-height",
    "flex",
    "flex-grow",
    "flex-shrink",
    "order",
    "zoom",
})

_HEX_RE = re.compile(r"^#?([0-9a-f]{3}|[0-9a-f]{6})$", re.IGNORECASE)
_RGB_RE = re.compile(
    r"^rgba?\(\s*([-+]?[\d.]+%?)\s*[,\s]\s*([-+]?[\d.]+%?)\s*[,\s]\s*([-+]?[\d.]+%?)",
    re.IGNORECASE,
)
_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_UNSAFE_CSS_RE = re.compile(r"/\*|\*/|[;{}<>\\\r\n]")


# ---------------------------------------------------------------------------
# Shared defaults
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class StyleDefaults:
    """Fallback typography injected into both compilers."""

    font_family: str = "Calibri"
    font_size_half_points: int = 22
    color: str = DEFAULT_COLOR
    line_height: float = DEFAULT_LINE_HEIGHT

    @classmethod
    def from_settings(cls) -> "StyleDefaults":
        return cls(
            font_family=settings.DEFAULT_FONT_FAMILY,
            font_size_half_points=normalize_font_size(
                settings.DEFAULT_FONT_SIZE_HALF_POINTS / 2, 22
            ),
            color=normalize_color(settings.DEFAULT_TEXT_COLOR),
            line_height=normalize_line_height(settings.DEFAULT_LINE_HEIGHT),
        )


# ---------------------------------------------------------------------------
# Document-model normalisers
# ---------------------------------------------------------------------------

def _rgb_component(raw: str) -> int:
    if raw.endswith("%"):
        number = parse_number(raw[:-1])
        number = None if number is None else number * 2.55
    else:
        number = parse_number(raw)
    if number is None:
        return 0
    return int(round(clamp(number, 0, 255)))


def normalize_color(value: Any) -> str:
    """
    Canonicalise a color to uppercase 6-digit hex without ``#``.

    Accepts ``#abc``, ``abc``, ``#aabbcc``, ``rgb(…)``/``rgba(…)`` and the
    names in NAMED_COLORS. Anything else yields ``"000000"``.
    """
    if not isinstance(value, str):
        return DEFAULT_COLOR
    color = value.strip().lower()
    if not color:
        return DEFAULT_COLOR

    hex_match = _HEX_RE.match(color)
    if hex_match:
        digits = hex_match.group(1)
        if len(digits) == 3:
            digits = "".join(c * 2 for c in digits)
        return digits.upper()

    rgb_match = _RGB_RE.match(color)
    if rgb_match:
        return "".join(f"{_rgb_component(part):02X}" for part in rgb_match.groups())

    return NAMED_COLORS.get(color, DEFAULT_COLOR)


def normalize_font_size(value: Any, fallback_half_points: int = 22) -> int:
    """
    Convert a px/pt size to half-points, clamped to 8..72 pt.

    Non-numeric input returns *fallback_half_points* (itself clamped).
    """
    size = parse_number(value)
    if size is None:
        fallback = parse_number(fallback_half_points)
        if fallback is None:
            fallback = 22
        return int(round(clamp(fallback, MIN_FONT_POINTS * 2, MAX_FONT_POINTS * 2)))
    return int(round(clamp(size, MIN_FONT_POINTS, MAX_FONT_POINTS) * 2))


def normalize_line_height(value: Any, default: float = DEFAULT_LINE_HEIGHT) -> float:
    """Parse a line-height multiplier (``"150%"`` reads as 1.5), clamped to 1.0..3.0."""
    number = parse_number(value)
    if number is None:
        number = default
    elif isinstance(value, str) and value.strip().endswith("%"):
        number = number / 100
    return float(clamp(number, MIN_LINE_HEIGHT, MAX_LINE_HEIGHT))


# ---------------------------------------------------------------------------
# CSS helpers (layout compiler)
# ---------------------------------------------------------------------------

def to_kebab_case(key: str) -> str:
    """``backgroundColor`` -> ``background-color``; kebab-case input is kept."""
    kebab = _CAMEL_BOUNDARY_RE.sub("-", str(key).strip()).lower()
    kebab = kebab.replace("_", "-")
    return re.sub(r"[^a-z0-9-]", "", kebab)


def css_value(prop: str, value: Any) -> Optional[str]:
    """
    Format a StyleMap value for CSS output.

    Bare numbers get ``px`` unless *prop* is dimensionless. Strings pass
    through with characters that could end the declaration or open a
    comment removed.
    Returns None for values that cannot be expressed (None, bools, dicts).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = parse_number(value)
        if number is None:
            return None
        if prop in DIMENSIONLESS_PROPERTIES:
            return format_number(number)
        return f"{format_number(number)}px"
    if isinstance(value, str):
        return _strip_unsafe_css(value) or None
    return None


def _strip_unsafe_css(value: str) -> str:
    """Remove declaration terminators, escapes and comment delimiters."""
    cleaned = value
    # Repeat: removing "/*" from "//**" leaves a new "/*"
    while True:
        stripped = _UNSAFE_CSS_RE.sub("", cleaned)
        if stripped == cleaned:
            return stripped.strip()
        cleaned = stripped

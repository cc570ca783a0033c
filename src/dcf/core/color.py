"""
Pure-Python colour transforms for token resolution.

Supports hex (``#rgb``, ``#rgba``, ``#rrggbb``, ``#rrggbbaa``) and
``rgb()``/``rgba()`` colours and the fixed transform vocabulary:
``darken(n%)``, ``lighten(n%)``, ``saturate(n%)`` and ``alpha(n)``.
Lightness and saturation change by absolute HSL percentage points.
"""

from __future__ import annotations

import colorsys
import re
from dataclasses import dataclass

_HEX = re.compile(r"^#([0-9a-fA-F]{3,4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_RGB = re.compile(
    r"^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*([0-9]*\.?[0-9]+)\s*)?\)$"
)


@dataclass(frozen=True)
class TransformBound:
    """Inclusive argument range of a transform."""

    low: float
    high: float
    percent: bool

    def describe(self) -> str:
        unit = "%" if self.percent else ""
        return f"[{self.low:g}{unit}, {self.high:g}{unit}]"


TRANSFORM_BOUNDS: dict[str, TransformBound] = {
    "darken": TransformBound(0.0, 100.0, percent=True),
    "lighten": TransformBound(0.0, 100.0, percent=True),
    "saturate": TransformBound(0.0, 100.0, percent=True),
    "alpha": TransformBound(0.0, 1.0, percent=False),
}


@dataclass(frozen=True)
class RGBA:
    """An sRGB colour with 0-255 channels and 0-1 alpha."""

    r: int
    g: int
    b: int
    a: float = 1.0


def parse_color(value: object) -> RGBA | None:
    """Parse a colour string, or return None if it is not a colour."""
    if not isinstance(value, str):
        return None
    text = value.strip()

    if match := _HEX.match(text):
        digits = match.group(1)
        if len(digits) in (3, 4):
            digits = "".join(ch * 2 for ch in digits)
        r, g, b = (int(digits[i : i + 2], 16) for i in (0, 2, 4))
        a = int(digits[6:8], 16) / 255 if len(digits) == 8 else 1.0
        return RGBA(r, g, b, round(a, 4))

    if match := _RGB.match(text):
        r, g, b = (int(match.group(i)) for i in (1, 2, 3))
        if max(r, g, b) > 255:
            return None
        a = float(match.group(4)) if match.group(4) is not None else 1.0
        if a > 1.0:
            return None
        return RGBA(r, g, b, a)

    return None


def format_color(color: RGBA) -> str:
    """Format as lowercase ``#rrggbb``, or ``rgba(...)`` when translucent."""
    if color.a < 1.0:
        return f"rgba({color.r}, {color.g}, {color.b}, {color.a:g})"
    return f"#{color.r:02x}{color.g:02x}{color.b:02x}"


def parse_argument(text: str) -> float | None:
    """Parse a transform argument such as '10%', '10' or '0.5'."""
    stripped = text.strip().rstrip("%").strip()
    try:
        return float(stripped)
    except ValueError:
        return None


def in_bounds(name: str, argument: float) -> bool:
    bound = TRANSFORM_BOUNDS[name]
    return bound.low <= argument <= bound.high


def _to_hls(color: RGBA) -> tuple[float, float, float]:
    return colorsys.rgb_to_hls(color.r / 255, color.g / 255, color.b / 255)


def _from_hls(h: float, lightness: float, s: float, alpha: float) -> RGBA:
    r, g, b = colorsys.hls_to_rgb(h, min(max(lightness, 0.0), 1.0), min(max(s, 0.0), 1.0))
    return RGBA(round(r * 255), round(g * 255), round(b * 255), alpha)


def apply_transform(name: str, argument: float, color: RGBA) -> RGBA:
    """
    Apply a named transform to a colour.

    Args:
        name: One of TRANSFORM_BOUNDS
        argument: Already bounds-checked argument
        color: Base colour

    Returns:
        The transformed colour
    """
    if name == "alpha":
        return RGBA(color.r, color.g, color.b, argument)

    h, lightness, s = _to_hls(color)
    if name == "darken":
        return _from_hls(h, lightness - argument / 100, s, color.a)
    if name == "lighten":
        return _from_hls(h, lightness + argument / 100, s, color.a)
    if name == "saturate":
        return _from_hls(h, lightness, s + argument / 100, color.a)
    raise KeyError(f"Unknown colour transform '{name}'")

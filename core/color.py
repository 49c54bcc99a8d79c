# =============================================================================
# core/color.py  —  Web colour expressions → Hue native hue/sat/bri
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Turns whatever colour an agent writes ("coral", "#ff000080",
#   "rgba(255,0,0,0.5)", "hsl(240 100% 50% / 75%)") into the three integers
#   the bridge understands:
#
#       hue = degrees / 360 * 65535
#       sat = percent / 100 * 254        (HSL saturation)
#       bri = alpha * 254, floored at 1
#
#   The alpha channel drives brightness, so an opaque colour is full
#   brightness and "rgba(255,0,0,0.2)" is a dim red.  Brightness never drops
#   to 0 through a colour call; turning a light off is an explicit on=false.
#
# FAILURE MODE:
#   parse_color() returns None for anything it cannot read.  It never raises,
#   so tool handlers can turn None into a friendly error message.
# =============================================================================

import colorsys
import math
import re
from typing import NamedTuple, Optional

import webcolors

from core.models import MAX_BRIGHTNESS, MAX_HUE, MAX_SATURATION, MIN_BRIGHTNESS


class NativeColor(NamedTuple):
    """A colour in the bridge's native integer ranges."""

    hue: int
    sat: int
    bri: int

    def as_state(self) -> dict[str, int]:
        return {"hue": self.hue, "sat": self.sat, "bri": self.bri}


_NUMBER = r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:e[+-]?\d+)?"
_FUNCTION_RE = re.compile(r"^(rgba?|hsla?)\((.*)\)$")
_HEX_RE = re.compile(r"^#([0-9a-f]{3,4}|[0-9a-f]{6}|[0-9a-f]{8})$")
_NUMBER_RE = re.compile(rf"^({_NUMBER})(%?)$")
_ANGLE_RE = re.compile(rf"^({_NUMBER})(deg|rad|grad|turn)?$")

# Degrees per hue unit.
_ANGLE_UNITS = {
    None: 1.0,
    "deg": 1.0,
    "rad": 180.0 / math.pi,
    "grad": 0.9,
    "turn": 360.0,
}


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def brightness_to_native(fraction: float) -> int:
    """Map a 0..1 brightness fraction onto native 1..254."""
    return max(MIN_BRIGHTNESS, min(MAX_BRIGHTNESS, round_half_up(fraction * MAX_BRIGHTNESS)))


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _to_native(hue_degrees: float, sat_percent: float, alpha: float) -> NativeColor:
    degrees = hue_degrees % 360.0
    hue = round_half_up(degrees / 360.0 * MAX_HUE) % (MAX_HUE + 1)
    sat = round_half_up(_clamp(sat_percent, 0.0, 100.0) / 100.0 * MAX_SATURATION)
    bri = max(MIN_BRIGHTNESS, round_half_up(_clamp(alpha, 0.0, 1.0) * MAX_BRIGHTNESS))
    return NativeColor(hue=hue, sat=sat, bri=bri)


def _from_rgb(red: float, green: float, blue: float, alpha: float) -> NativeColor:
    h, _lightness, s = colorsys.rgb_to_hls(red / 255.0, green / 255.0, blue / 255.0)
    return _to_native(h * 360.0, s * 100.0, alpha)


# -----------------------------------------------------------------------------
# Token parsers
# -----------------------------------------------------------------------------
def _parse_rgb_channel(token: str) -> float:
    match = _NUMBER_RE.match(token)
    if not match:
        raise ValueError(token)
    value = float(match.group(1))
    if match.group(2):
        value = value * 255.0 / 100.0
    return _clamp(value, 0.0, 255.0)


def _parse_percent(token: str) -> float:
    match = _NUMBER_RE.match(token)
    if not match:
        raise ValueError(token)
    return _clamp(float(match.group(1)), 0.0, 100.0)


def _parse_alpha(token: Optional[str]) -> float:
    if token is None:
        return 1.0
    match = _NUMBER_RE.match(token)
    if not match:
        raise ValueError(token)
    value = float(match.group(1))
    if match.group(2):
        value /= 100.0
    return _clamp(value, 0.0, 1.0)


def _parse_angle(token: str) -> float:
    match = _ANGLE_RE.match(token)
    if not match:
        raise ValueError(token)
    return float(match.group(1)) * _ANGLE_UNITS[match.group(2)]


def _split_arguments(inner: str) -> tuple[list[str], Optional[str]]:
    """Split "a, b, c, d" or "a b c / d" into ([a, b, c], d)."""
    if "," in inner:
        if "/" in inner:
            raise ValueError(inner)
        parts = [part.strip() for part in inner.split(",")]
        if len(parts) not in (3, 4) or not all(parts):
            raise ValueError(inner)
        return parts[:3], (parts[3] if len(parts) == 4 else None)

    main, slash, alpha = inner.partition("/")
    parts = main.split()
    if len(parts) != 3:
        raise ValueError(inner)
    alpha = alpha.strip()
    if slash and (not alpha or " " in alpha):
        raise ValueError(inner)
    return parts, (alpha if slash else None)


def _parse_hex(digits: str) -> NativeColor:
    if len(digits) in (3, 4):
        digits = "".join(ch * 2 for ch in digits)
    red, green, blue = (int(digits[i:i + 2], 16) for i in (0, 2, 4))
    alpha = int(digits[6:8], 16) / 255.0 if len(digits) == 8 else 1.0
    return _from_rgb(red, green, blue, alpha)


def _parse_function(name: str, inner: str) -> NativeColor:
    args, alpha_token = _split_arguments(inner.strip())
    alpha = _parse_alpha(alpha_token)

    if name.startswith("rgb"):
        red, green, blue = (_parse_rgb_channel(arg) for arg in args)
        return _from_rgb(red, green, blue, alpha)

    hue = _parse_angle(args[0])
    saturation = _parse_percent(args[1])
    lightness = _parse_percent(args[2])
    if saturation == 0 or lightness in (0.0, 100.0):
        # Black, white and greys carry no hue.
        return _to_native(0.0, 0.0, alpha)
    return _to_native(hue, saturation, alpha)


def _parse_name(name: str) -> NativeColor:
    if name == "transparent":
        return _from_rgb(0, 0, 0, 0.0)
    rgb = webcolors.name_to_rgb(name)
    return _from_rgb(rgb.red, rgb.green, rgb.blue, 1.0)


# =============================================================================
# PUBLIC API
# =============================================================================
def parse_color(expression: str) -> Optional[NativeColor]:
    """Parse a web colour expression into native hue/sat/bri.

    Supported:
      - named colours ("red", "rebeccapurple", "transparent")
      - hex: #rgb, #rgba, #rrggbb, #rrggbbaa
      - rgb()/rgba() with numbers or percentages
      - hsl()/hsla() with optional deg/rad/grad/turn hue units
      - comma syntax and space syntax with "/ alpha"

    Returns:
        A NativeColor, or None when the expression is not a colour.
    """
    if not isinstance(expression, str):
        return None
    text = expression.strip().lower()
    if not text:
        return None

    try:
        hex_match = _HEX_RE.match(text)
        if hex_match:
            return _parse_hex(hex_match.group(1))

        function_match = _FUNCTION_RE.match(text)
        if function_match:
            return _parse_function(function_match.group(1), function_match.group(2))

        if text.isalpha():
            return _parse_name(text)
    except (ValueError, KeyError, ZeroDivisionError, OverflowError):
        return None
    return None

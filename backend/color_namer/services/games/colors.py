"""Color science: Lab <-> sRGB <-> HSL conversions and gamut checks.

All conversions use the D65 reference white and the standard sRGB
companding curve. Lab is the space the game is played in; sRGB is only
what a screen can show, so ``is_gamut_safe`` is the test for whether a
Lab color survives the trip to a display.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from .errors import ValidationError

# D65 reference white
REF_X = 95.047
REF_Y = 100.0
REF_Z = 108.883

_EPSILON = 0.008856
_KAPPA = 7.787

GAMUT_TOLERANCE = (5.0, 9.0, 9.0)  # (L, a, b)

LIGHTNESS_RANGE = (0.0, 100.0)
CHROMA_AXIS_RANGE = (-128.0, 128.0)


@dataclass(frozen=True)
class Color:
    lightness: float
    a: float
    b: float

    def to_dict(self) -> Dict[str, float]:
        return {'lightness': self.lightness, 'a': self.a, 'b': self.b}

    @classmethod
    def from_dict(cls, data: Any) -> 'Color':
        """Build a color from client input, validating every channel."""
        if not isinstance(data, dict):
            raise ValidationError('color must be an object with lightness, a and b')
        values = []
        for key, (lo, hi) in (('lightness', LIGHTNESS_RANGE), ('a', CHROMA_AXIS_RANGE), ('b', CHROMA_AXIS_RANGE)):
            value = data.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f'color.{key} is required and must be a number')
            if math.isnan(value) or value < lo or value > hi:
                raise ValidationError(f'color.{key} must be between {lo:g} and {hi:g}')
            values.append(float(value))
        return cls(*values)


def _lab_f_inverse(t: float) -> float:
    cube = t ** 3
    return cube if cube > _EPSILON else (t - 16 / 116) / _KAPPA


def _lab_f(t: float) -> float:
    return t ** (1 / 3) if t > _EPSILON else _KAPPA * t + 16 / 116


def _compand(channel: float) -> float:
    if channel > 0.0031308:
        return 1.055 * channel ** (1 / 2.4) - 0.055
    return 12.92 * channel


def _linearize(channel: float) -> float:
    if channel > 0.04045:
        return ((channel + 0.055) / 1.055) ** 2.4
    return channel / 12.92


def round_half_up(value: float) -> int:
    """Round exact halves up, matching the clients' Math.round."""
    return int(math.floor(value + 0.5))


def _to_byte(channel: float) -> int:
    return max(0, min(255, round_half_up(channel * 255)))


def lab_to_rgb(lightness: float, a: float, b: float) -> Tuple[int, int, int]:
    y = (lightness + 16) / 116
    x = a / 500 + y
    z = y - b / 200

    x = REF_X * _lab_f_inverse(x) / 100
    y = REF_Y * _lab_f_inverse(y) / 100
    z = REF_Z * _lab_f_inverse(z) / 100

    red = x * 3.2406 + y * -1.5372 + z * -0.4986
    green = x * -0.9689 + y * 1.8758 + z * 0.0415
    blue = x * 0.0557 + y * -0.204 + z * 1.057

    # Negative linear values stay linear; a fractional power of them is complex
    return (
        _to_byte(_compand(red)),
        _to_byte(_compand(green)),
        _to_byte(_compand(blue)),
    )


def rgb_to_lab(r: float, g: float, b: float) -> Tuple[float, float, float]:
    red = _linearize(r / 255) * 100
    green = _linearize(g / 255) * 100
    blue = _linearize(b / 255) * 100

    x = red * 0.4124 + green * 0.3576 + blue * 0.1805
    y = red * 0.2126 + green * 0.7152 + blue * 0.0722
    z = red * 0.0193 + green * 0.1192 + blue * 0.9505

    fx = _lab_f(x / REF_X)
    fy = _lab_f(y / REF_Y)
    fz = _lab_f(z / REF_Z)

    return (116 * fy - 16, 500 * (fx - fy), 200 * (fy - fz))


def rgb_to_hsl(r: float, g: float, b: float) -> Tuple[float, float, float]:
    """Return (hue in degrees, saturation %, lightness %)."""
    red, green, blue = r / 255, g / 255, b / 255
    hi = max(red, green, blue)
    lo = min(red, green, blue)
    lightness = (hi + lo) / 2

    if hi == lo:
        return (0.0, 0.0, lightness * 100)

    delta = hi - lo
    saturation = delta / (2 - hi - lo) if lightness > 0.5 else delta / (hi + lo)
    if hi == red:
        hue = (green - blue) / delta + (6 if green < blue else 0)
    elif hi == green:
        hue = (blue - red) / delta + 2
    else:
        hue = (red - green) / delta + 4

    return (hue * 60, saturation * 100, lightness * 100)


def is_gamut_safe(color: Color) -> bool:
    """True when the color renders in sRGB without visible clipping."""
    rgb = lab_to_rgb(color.lightness, color.a, color.b)
    lightness, a, b = rgb_to_lab(*rgb)
    tol_l, tol_a, tol_b = GAMUT_TOLERANCE
    return (
        abs(lightness - color.lightness) <= tol_l
        and abs(a - color.a) <= tol_a
        and abs(b - color.b) <= tol_b
    )


def color_distance(c1: Color, c2: Color) -> float:
    dl = c1.lightness - c2.lightness
    da = c1.a - c2.a
    db = c1.b - c2.b
    return math.sqrt(dl * dl + da * da + db * db)


def lab_to_hex(color: Color) -> str:
    return '#{:02x}{:02x}{:02x}'.format(*lab_to_rgb(color.lightness, color.a, color.b))


def avatar_color(order: int) -> str:
    # Golden-angle hue spacing keeps neighbouring join slots far apart
    hue = round_half_up((order * 137.508) % 360)
    return f'hsl({hue}, 70%, 50%)'

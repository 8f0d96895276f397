# -*- coding: utf-8 -*-
"""
Prism: Perceptual color conversion and gamut mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Scalar & RGB Helpers
====================
Small helpers used around the conversion core: clamping and interpolation,
angle arithmetic in degrees, 8-bit quantization, hex strings and xyY.

Angle helpers keep the sign conventions of floating-point ``fmod``: the
remainder takes the sign of the dividend, so ``delta_angle`` returns the
shortest signed turn in (-180, 180].
"""

import math
import re
from typing import Final, Optional, Sequence

from prism_errors import ColorParseError
from prism_kernels import (
    ArrayFloat,
    VectorLike,
    as_vector,
    clamped_rgb,
    is_rgb_in_gamut,
    out_buffer,
    vec3,
)

__all__ = [
    "clamp",
    "lerp",
    "deg_to_rad",
    "rad_to_deg",
    "constrain_angle",
    "delta_angle",
    "lerp_angle",
    "float_to_byte",
    "hex_to_rgb",
    "rgb_to_hex",
    "xyy_to_xyz",
    "xyz_to_xyy",
    # --- Re-exports ---
    "vec3",
    "is_rgb_in_gamut",
    "clamped_rgb",
]

_HEX_RE: Final[re.Pattern] = re.compile(r"^[0-9a-fA-F]+$")


def clamp(value: float, min_value: float, max_value: float) -> float:
    return max(min(value, max_value), min_value)


def lerp(start: float, end: float, t: float) -> float:
    """Linear interpolation; t = 0 gives *start*, t = 1 gives *end*."""
    return start * (1.0 - t) + end * t


def deg_to_rad(n: float) -> float:
    return n * math.pi / 180.0


def rad_to_deg(n: float) -> float:
    return n * 180.0 / math.pi


def constrain_angle(angle: float) -> float:
    """Wraps an angle in degrees into [0, 360)."""
    a = angle % 360.0
    return 0.0 if a >= 360.0 else a


def delta_angle(a0: float, a1: float) -> float:
    """Shortest signed difference a1 - a0 in degrees."""
    da = math.fmod(a1 - a0, 360.0)
    return math.fmod(2.0 * da, 360.0) - da


def lerp_angle(a0: float, a1: float, t: float) -> float:
    """Interpolates between two angles along the shortest arc."""
    return a0 + delta_angle(a0, a1) * t


def float_to_byte(n: float) -> int:
    """Quantizes [0, 1] to an 8-bit value, rounding half up and clamping."""
    return int(clamp(math.floor(255.0 * n + 0.5), 0, 255))


def hex_to_rgb(text: str, out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """
    Parses ``#rgb``, ``#rgba``, ``#rrggbb`` or ``#rrggbbaa`` into encoded RGB
    in [0, 1]. Alpha lands in a 4th slot of *out* if it has one (1 when the
    string carries none) and is dropped otherwise.

    Raises:
        ColorParseError: On non-hex digits or an unsupported length.
    """
    digits = text.strip().lstrip("#")
    if len(digits) in (3, 4):
        digits = "".join(ch * 2 for ch in digits)
    if len(digits) not in (6, 8) or not _HEX_RE.match(digits):
        raise ColorParseError(f"invalid hex color {text!r}")

    out = out_buffer(out)
    for i in range(3):
        out[i] = int(digits[2 * i:2 * i + 2], 16) / 255.0
    if out.shape[0] > 3:
        out[3] = int(digits[6:], 16) / 255.0 if len(digits) == 8 else 1.0
    return out


def rgb_to_hex(rgb: Sequence[float]) -> str:
    """Formats encoded RGB (or RGBA) in [0, 1] as a lowercase hex string."""
    return "#" + "".join(f"{float_to_byte(n):02x}" for n in rgb)


def xyy_to_xyz(xyy: VectorLike, out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """CIE xyY to XYZ. y = 0 yields black."""
    vec = as_vector(xyy)
    out = out_buffer(out)
    x, y, big_y = float(vec[0]), float(vec[1]), float(vec[2])
    if y == 0.0:
        out[0] = out[1] = out[2] = 0.0
        return out
    out[0] = x * big_y / y
    out[1] = big_y
    out[2] = (1.0 - x - y) * big_y / y
    return out


def xyz_to_xyy(xyz: VectorLike, out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """XYZ to CIE xyY. Black maps to chromaticity (0, 0)."""
    vec = as_vector(xyz)
    out = out_buffer(out)
    big_x, big_y, big_z = float(vec[0]), float(vec[1]), float(vec[2])
    total = big_x + big_y + big_z
    if total == 0.0:
        out[0] = out[1] = 0.0
        out[2] = big_y
        return out
    out[0] = big_x / total
    out[1] = big_y / total
    out[2] = big_y
    return out

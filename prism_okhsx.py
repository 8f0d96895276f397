# -*- coding: utf-8 -*-
"""
Prism: Perceptual color conversion and gamut mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

OKHSL / OKHSV
=============
Ottosson's hue/saturation models built on OKLab and a gamut's boundary.

Both keep OKLab's hue and reshape lightness and chroma so that the full
[0, 1] range of saturation (and value) spans the gamut for every hue:

* OKHSV: saturation/value over a triangle with corners black, white and the
  cusp, with a toe correction on lightness.
* OKHSL: saturation interpolated through three chroma anchors
  (C_0 near gray, C_mid, C_max on the boundary) at constant lightness.

Hue is in degrees [0, 360); s, l and v lie in [0, 1] for in-gamut colors.

The S_mid/T_mid rational fits are Ottosson's, tuned for sRGB; other gamuts
get a valid but less even saturation scale.

References:
    - Ottosson, B. (2021). "Okhsv and Okhsl: two new color spaces for color
      picking". https://bottosson.github.io/posts/colorpicker/
"""

import math
from typing import Final, Optional, Sequence, Tuple

from prism_gamut import (
    INTERSECTION_REFINEMENT_STEPS,
    _find_gamut_intersection,
    find_cusp_oklch,
    get_gamut_lms_to_rgb,
)
from prism_kernels import ArrayFloat, VectorLike, _oklab_to, as_vector, out_buffer, vec3
from prism_matrices import OKLAB_TO_LMS_M
from prism_spaces import ColorGamut, ColorSpace, OKLab, sRGBGamut

__all__ = [
    "toe",
    "toe_inv",
    "okhsl_to_oklab",
    "oklab_to_okhsl",
    "okhsv_to_oklab",
    "oklab_to_okhsv",
    "OKHSL",
    "OKHSV",
]

# Toe parameters: match the lightness scale of CIELab's L*.
_K1: Final[float] = 0.206
_K2: Final[float] = 0.03
_K3: Final[float] = (1.0 + _K1) / (1.0 + _K2)

# Below this chroma a color is treated as gray and gets hue 0.
_ACHROMATIC_CHROMA: Final[float] = 1e-10

_S0: Final[float] = 0.5


def toe(x: float) -> float:
    """OKLab lightness -> perceptual lightness (toe-corrected)."""
    t = _K3 * x - _K1
    return 0.5 * (t + math.sqrt(t * t + 4.0 * _K2 * _K3 * x))


def toe_inv(x: float) -> float:
    return (x * x + _K1 * x) / (_K3 * (x + _K2))


def _hue_direction(hue: float) -> Tuple[float, float]:
    h = math.radians(hue)
    return math.cos(h), math.sin(h)


def _hue_degrees(a: float, b: float) -> float:
    h = math.degrees(math.atan2(b, a)) % 360.0
    return 0.0 if h >= 360.0 else h


def _st_max(cusp: Sequence[float]) -> Tuple[float, float]:
    """Slopes (S, T) of the triangle edges meeting at the cusp."""
    l, c = cusp[0], cusp[1]
    l = min(max(l, 1e-10), 1.0 - 1e-10)
    return c / l, c / (1.0 - l)


def _get_cs(lightness: float, a: float, b: float,
            gamut: ColorGamut) -> Tuple[float, float, float]:
    """Chroma anchors (C_0, C_mid, C_max) at *lightness* for hue (a, b)."""
    cusp = find_cusp_oklch(a, b, gamut)
    c_max = _find_gamut_intersection(
        a, b, lightness, 1.0, lightness, cusp[0], cusp[1],
        get_gamut_lms_to_rgb(gamut), INTERSECTION_REFINEMENT_STEPS,
    )
    s_max, t_max = _st_max(cusp)

    s_mid = 0.11516993 + 1.0 / (
        7.44778970 + 4.15901240 * b
        + a * (-2.19557347 + 1.75198401 * b
               + a * (-2.13704948 - 10.02301043 * b
                      + a * (-4.24894561 + 5.38770819 * b + 4.69891013 * a)))
    )
    t_mid = 0.11239642 + 1.0 / (
        1.61320320 - 0.68124379 * b
        + a * (0.40370612 + 0.90148123 * b
               + a * (-0.27087943 + 0.61223990 * b
                      + a * (0.00299215 - 0.45399568 * b - 0.14661872 * a)))
    )

    # Scale C_mid so the anchor tracks the true boundary, not the triangle.
    k = c_max / min(lightness * s_max, (1.0 - lightness) * t_max)

    c_a = lightness * s_mid
    c_b = (1.0 - lightness) * t_mid
    c_mid = 0.9 * k * math.sqrt(math.sqrt(1.0 / (1.0 / c_a ** 4 + 1.0 / c_b ** 4)))

    c_a = lightness * 0.4
    c_b = (1.0 - lightness) * 0.8
    c_0 = math.sqrt(1.0 / (1.0 / (c_a * c_a) + 1.0 / (c_b * c_b)))

    return c_0, c_mid, c_max


def _max_rgb(lab: Sequence[float], lms_to_rgb: ArrayFloat) -> float:
    rgb = _oklab_to(as_vector(lab), OKLAB_TO_LMS_M, lms_to_rgb, vec3())
    return max(rgb[0], rgb[1], rgb[2], 0.0)


# =============================================================================
# OKHSL
# =============================================================================

def okhsl_to_oklab(hsl: VectorLike, gamut: ColorGamut = sRGBGamut,
                   out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """Converts OKHSL (h°, s, l) to OKLab."""
    vec = as_vector(hsl)
    out = out_buffer(out)
    hue, s, l = float(vec[0]), float(vec[1]), float(vec[2])

    if l >= 1.0:
        out[0], out[1], out[2] = 1.0, 0.0, 0.0
        return out
    if l <= 0.0:
        out[0], out[1], out[2] = 0.0, 0.0, 0.0
        return out

    a, b = _hue_direction(hue)
    lightness = toe_inv(l)
    c_0, c_mid, c_max = _get_cs(lightness, a, b, gamut)

    # Piecewise: s in [0, 0.8] reaches C_mid, (0.8, 1] reaches C_max.
    if s < 0.8:
        t = 1.25 * s
        k_0 = 0.0
        k_1 = 0.8 * c_0
        k_2 = 1.0 - k_1 / c_mid
    else:
        t = 5.0 * (s - 0.8)
        k_0 = c_mid
        k_1 = 0.2 * c_mid * c_mid * 1.25 * 1.25 / c_0
        k_2 = 1.0 - k_1 / (c_max - c_mid)

    chroma = k_0 + t * k_1 / (1.0 - k_2 * t)

    out[0] = lightness
    out[1] = chroma * a
    out[2] = chroma * b
    return out


def oklab_to_okhsl(lab: VectorLike, gamut: ColorGamut = sRGBGamut,
                   out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """Converts OKLab to OKHSL (h°, s, l)."""
    vec = as_vector(lab)
    out = out_buffer(out)
    lightness, a_in, b_in = float(vec[0]), float(vec[1]), float(vec[2])
    chroma = math.hypot(a_in, b_in)

    if chroma < _ACHROMATIC_CHROMA or lightness <= 0.0 or lightness >= 1.0:
        out[0] = 0.0
        out[1] = 0.0
        out[2] = toe(min(max(lightness, 0.0), 1.0))
        return out

    a = a_in / chroma
    b = b_in / chroma
    c_0, c_mid, c_max = _get_cs(lightness, a, b, gamut)

    if chroma < c_mid:
        k_1 = 0.8 * c_0
        k_2 = 1.0 - k_1 / c_mid
        t = chroma / (k_1 + k_2 * chroma)
        s = 0.8 * t
    else:
        k_0 = c_mid
        k_1 = 0.2 * c_mid * c_mid * 1.25 * 1.25 / c_0
        k_2 = 1.0 - k_1 / (c_max - c_mid)
        t = (chroma - k_0) / (k_1 + k_2 * (chroma - k_0))
        s = 0.8 + 0.2 * t

    out[0] = _hue_degrees(a_in, b_in)
    out[1] = s
    out[2] = toe(lightness)
    return out


# =============================================================================
# OKHSV
# =============================================================================

def okhsv_to_oklab(hsv: VectorLike, gamut: ColorGamut = sRGBGamut,
                   out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """Converts OKHSV (h°, s, v) to OKLab."""
    vec = as_vector(hsv)
    out = out_buffer(out)
    hue, s, v = float(vec[0]), float(vec[1]), float(vec[2])

    if v <= 0.0:
        out[0], out[1], out[2] = 0.0, 0.0, 0.0
        return out

    a, b = _hue_direction(hue)
    s_max, t_max = _st_max(find_cusp_oklch(a, b, gamut))
    k = 1.0 - _S0 / s_max

    # Point on the triangle's outer edge for this saturation (v = 1).
    denom = _S0 + t_max - t_max * k * s
    l_v = 1.0 - s * _S0 / denom
    c_v = s * t_max * _S0 / denom

    lightness = v * l_v
    chroma = v * c_v

    # Undo the toe on both the edge point and the color.
    l_vt = toe_inv(l_v)
    c_vt = c_v * l_vt / l_v
    l_new = toe_inv(lightness)
    chroma = chroma * l_new / lightness
    lightness = l_new

    # Compensate for the curved upper edge of the real gamut.
    rgb_max = _max_rgb((l_vt, a * c_vt, b * c_vt), get_gamut_lms_to_rgb(gamut))
    scale_l = (1.0 / rgb_max) ** (1.0 / 3.0) if rgb_max > 0.0 else 1.0

    out[0] = lightness * scale_l
    out[1] = chroma * scale_l * a
    out[2] = chroma * scale_l * b
    return out


def oklab_to_okhsv(lab: VectorLike, gamut: ColorGamut = sRGBGamut,
                   out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """Converts OKLab to OKHSV (h°, s, v)."""
    vec = as_vector(lab)
    out = out_buffer(out)
    lightness, a_in, b_in = float(vec[0]), float(vec[1]), float(vec[2])
    chroma = math.hypot(a_in, b_in)

    if lightness <= 0.0:
        out[0], out[1], out[2] = 0.0, 0.0, 0.0
        return out
    if chroma < _ACHROMATIC_CHROMA:
        out[0] = 0.0
        out[1] = 0.0
        out[2] = toe(min(lightness, 1.0))
        return out

    a = a_in / chroma
    b = b_in / chroma
    s_max, t_max = _st_max(find_cusp_oklch(a, b, gamut))
    k = 1.0 - _S0 / s_max

    # Project along a line through white onto the triangle's outer edge.
    t = t_max / (chroma + lightness * t_max)
    l_v = t * lightness
    c_v = t * chroma

    l_vt = toe_inv(l_v)
    c_vt = c_v * l_vt / l_v

    rgb_max = _max_rgb((l_vt, a * c_vt, b * c_vt), get_gamut_lms_to_rgb(gamut))
    scale_l = (1.0 / rgb_max) ** (1.0 / 3.0) if rgb_max > 0.0 else 1.0

    lightness = toe(lightness / scale_l)

    out[0] = _hue_degrees(a_in, b_in)
    out[1] = (_S0 + t_max) * c_v / (t_max * _S0 + t_max * k * c_v)
    out[2] = lightness / l_v
    return out


# =============================================================================
# SPACES
# =============================================================================

def _okhsl_to_base(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    return okhsl_to_oklab(vec, sRGBGamut, out)


def _okhsl_from_base(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    return oklab_to_okhsl(vec, sRGBGamut, out)


def _okhsv_to_base(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    return okhsv_to_oklab(vec, sRGBGamut, out)


def _okhsv_from_base(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    return oklab_to_okhsv(vec, sRGBGamut, out)


OKHSL: Final[ColorSpace] = ColorSpace(
    id="okhsl", base=OKLab, to_base=_okhsl_to_base, from_base=_okhsl_from_base,
)

OKHSV: Final[ColorSpace] = ColorSpace(
    id="okhsv", base=OKLab, to_base=_okhsv_to_base, from_base=_okhsv_from_base,
)

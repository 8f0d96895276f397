# -*- coding: utf-8 -*-
"""
Prism: Perceptual color conversion and gamut mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

OKLab Gamut Mapping
===================
Maps OKLCH colors into an RGB gamut along a straight line in the (L, C)
plane of constant hue.

For a hue, the gamut's slice is approximated by a triangle with corners at
black (0, 0), white (1, 0) and the cusp (L_cusp, C_cusp), the point of
maximum chroma.  The lower edge (black -> cusp) is exact: along a ray of
constant saturation S = C/L every linear RGB channel scales with L³, so the
channel that first reaches zero does so on that ray.  The upper edge is
curved; its triangle estimate is polished with Halley iterations and
clamped to that ray where the edge bulges past it near the cusp.

The polynomial saturation guess is only trusted once its Halley-refined
root checks out; near a primary hue, where two channels vanish together,
the first zero crossing is found by scan and bisection instead.

Mapping workflow:
1. Convert the OKLCH input to the gamut's linear RGB. Colors within
   ``GAMUT_EPSILON`` of [0, 1] pass through unchanged.
2. Pick the projection anchor L0 with a mapping method (keep lightness,
   project to mid gray, to the cusp lightness, or adaptive blends).
3. Intersect the segment (L0, 0) -> (L, C) with the gamut boundary and
   replace the color by the intersection.
4. Convert to the target space, clamping RGB targets to [0, 1].

References:
    - Ottosson, B. (2021). "sRGB gamut clipping".
      https://bottosson.github.io/posts/gamutclipping/
"""

import math
from typing import Callable, Final, Optional, Sequence

import numpy as np
from numba import njit

from prism_convert import convert
from prism_errors import MissingSpaceError, MissingTransformError
from prism_kernels import (
    GAMUT_EPSILON,
    ArrayFloat,
    VectorLike,
    _cbrt,
    _clamp01_3,
    _is_rgb_in_gamut,
    as_vector,
    out_buffer,
)
from prism_matrices import OKLAB_TO_LMS_M, GamutCoefficients
from prism_spaces import OKLCH, ColorGamut, ColorSpace, sRGBGamut

__all__ = [
    # --- Constants ---
    "SATURATION_REFINEMENT_STEPS",
    "INTERSECTION_REFINEMENT_STEPS",
    "ADAPTIVE_ALPHA",
    # --- Boundary geometry ---
    "get_gamut_lms_to_rgb",
    "compute_max_saturation_oklc",
    "find_cusp_oklch",
    "find_gamut_intersection_oklch",
    # --- Mapping methods ---
    "MappingFn",
    "map_to_l",
    "map_to_gray",
    "map_to_cusp_l",
    "map_to_adaptive_gray",
    "map_to_adaptive_cusp_l",
    # --- Mapper ---
    "gamut_map_oklch",
]

# Halley steps after the polynomial guess for max saturation.
SATURATION_REFINEMENT_STEPS: Final[int] = 2

# Halley steps after the triangle estimate on the upper gamut edge.
INTERSECTION_REFINEMENT_STEPS: Final[int] = 2

# Strength of the chroma term in the adaptive projections.
ADAPTIVE_ALPHA: Final[float] = 0.05

# Sentinel for "this channel never reaches 1 along the segment".
_NO_STEP: Final[float] = 1.0e5

# Residual a refined saturation root may leave on any channel.
_ROOT_TOLERANCE: Final[float] = 1.0e-10
# First-crossing fallback: scan step and range in S, then bisection count.
_SCAN_STEP: Final[float] = 0.01
_SCAN_LIMIT: Final[float] = 50.0
_BISECT_STEPS: Final[int] = 60

# (oklch, cusp) -> L0
MappingFn = Callable[[Sequence[float], Sequence[float]], float]


# =============================================================================
# 1. BOUNDARY KERNELS (Numba)
# =============================================================================

@njit(cache=True)
def _select_channel(a: float, b: float, selectors: ArrayFloat) -> int:
    if selectors[0, 0] * a + selectors[0, 1] * b > 1.0:
        return 0
    if selectors[1, 0] * a + selectors[1, 1] * b > 1.0:
        return 1
    return 2


@njit(cache=True)
def _compute_max_saturation(a: float, b: float, lms_to_rgb: ArrayFloat,
                            selectors: ArrayFloat, polynomials: ArrayFloat,
                            steps: int) -> float:
    ch = _select_channel(a, b, selectors)
    k = polynomials[ch]
    sat = k[0] + k[1] * a + k[2] * b + k[3] * a * a + k[4] * a * b

    m = OKLAB_TO_LMS_M
    k_l = m[0, 1] * a + m[0, 2] * b
    k_m = m[1, 1] * a + m[1, 2] * b
    k_s = m[2, 1] * a + m[2, 2] * b

    wl = lms_to_rgb[ch, 0]
    wm = lms_to_rgb[ch, 1]
    ws = lms_to_rgb[ch, 2]

    for _ in range(steps):
        l_ = m[0, 0] + sat * k_l
        m_ = m[1, 0] + sat * k_m
        s_ = m[2, 0] + sat * k_s

        f = wl * l_ * l_ * l_ + wm * m_ * m_ * m_ + ws * s_ * s_ * s_
        f1 = 3.0 * (wl * k_l * l_ * l_ + wm * k_m * m_ * m_ + ws * k_s * s_ * s_)
        f2 = 6.0 * (wl * k_l * k_l * l_ + wm * k_m * k_m * m_ + ws * k_s * k_s * s_)

        denom = f1 * f1 - 0.5 * f * f2
        if denom == 0.0:
            break
        sat = sat - f * f1 / denom

    if steps > 0 and not _is_first_root(sat, ch, k_l, k_m, k_s, lms_to_rgb):
        # Near a primary hue two channels vanish together and the selected
        # channel's polynomial guess may lock onto the wrong root.
        sat = _first_crossing(k_l, k_m, k_s, lms_to_rgb)
    return sat


@njit(cache=True)
def _min_channel(sat: float, k_l: float, k_m: float, k_s: float,
                 lms_to_rgb: ArrayFloat) -> float:
    """Smallest linear RGB channel at OKLab (1, S·a, S·b)."""
    m = OKLAB_TO_LMS_M
    l_ = m[0, 0] + sat * k_l
    m_ = m[1, 0] + sat * k_m
    s_ = m[2, 0] + sat * k_s
    l = l_ * l_ * l_
    mm = m_ * m_ * m_
    s = s_ * s_ * s_
    lowest = lms_to_rgb[0, 0] * l + lms_to_rgb[0, 1] * mm + lms_to_rgb[0, 2] * s
    for i in range(1, 3):
        v = lms_to_rgb[i, 0] * l + lms_to_rgb[i, 1] * mm + lms_to_rgb[i, 2] * s
        if v < lowest:
            lowest = v
    return lowest


@njit(cache=True)
def _is_first_root(sat: float, ch: int, k_l: float, k_m: float, k_s: float,
                   lms_to_rgb: ArrayFloat) -> bool:
    """True if *sat* is a converged, downward zero of *ch* with no channel below it."""
    if not sat > 0.0:
        return False
    m = OKLAB_TO_LMS_M
    l_ = m[0, 0] + sat * k_l
    m_ = m[1, 0] + sat * k_m
    s_ = m[2, 0] + sat * k_s
    wl = lms_to_rgb[ch, 0]
    wm = lms_to_rgb[ch, 1]
    ws = lms_to_rgb[ch, 2]
    f = wl * l_ * l_ * l_ + wm * m_ * m_ * m_ + ws * s_ * s_ * s_
    f1 = wl * k_l * l_ * l_ + wm * k_m * m_ * m_ + ws * k_s * s_ * s_
    if abs(f) > _ROOT_TOLERANCE or f1 >= 0.0:
        return False
    return _min_channel(sat, k_l, k_m, k_s, lms_to_rgb) >= -_ROOT_TOLERANCE


@njit(cache=True)
def _first_crossing(k_l: float, k_m: float, k_s: float, lms_to_rgb: ArrayFloat) -> float:
    """Smallest S > 0 where any channel reaches zero, by scan and bisection."""
    lo = 0.0
    hi = _SCAN_STEP
    while hi <= _SCAN_LIMIT:
        if _min_channel(hi, k_l, k_m, k_s, lms_to_rgb) <= 0.0:
            for _ in range(_BISECT_STEPS):
                mid = 0.5 * (lo + hi)
                if _min_channel(mid, k_l, k_m, k_s, lms_to_rgb) > 0.0:
                    lo = mid
                else:
                    hi = mid
            return 0.5 * (lo + hi)
        lo = hi
        hi += _SCAN_STEP
    return _SCAN_LIMIT


@njit(cache=True)
def _find_cusp(a: float, b: float, lms_to_rgb: ArrayFloat, selectors: ArrayFloat,
               polynomials: ArrayFloat, steps: int, out: ArrayFloat) -> ArrayFloat:
    sat = _compute_max_saturation(a, b, lms_to_rgb, selectors, polynomials, steps)

    m = OKLAB_TO_LMS_M
    l_ = m[0, 0] + sat * (m[0, 1] * a + m[0, 2] * b)
    m_ = m[1, 0] + sat * (m[1, 1] * a + m[1, 2] * b)
    s_ = m[2, 0] + sat * (m[2, 1] * a + m[2, 2] * b)
    l = l_ * l_ * l_
    mm = m_ * m_ * m_
    s = s_ * s_ * s_

    rgb_max = lms_to_rgb[0, 0] * l + lms_to_rgb[0, 1] * mm + lms_to_rgb[0, 2] * s
    for i in range(1, 3):
        v = lms_to_rgb[i, 0] * l + lms_to_rgb[i, 1] * mm + lms_to_rgb[i, 2] * s
        if v > rgb_max:
            rgb_max = v

    l_cusp = _cbrt(1.0 / rgb_max)
    out[0] = l_cusp
    out[1] = l_cusp * sat
    return out


@njit(cache=True)
def _rgb_within(lightness: float, chroma: float, k_l: float, k_m: float, k_s: float,
                lms_to_rgb: ArrayFloat, ep: float) -> bool:
    m = OKLAB_TO_LMS_M
    l_ = lightness * m[0, 0] + chroma * k_l
    m_ = lightness * m[1, 0] + chroma * k_m
    s_ = lightness * m[2, 0] + chroma * k_s
    l = l_ * l_ * l_
    mm = m_ * m_ * m_
    s = s_ * s_ * s_
    for ch in range(3):
        v = lms_to_rgb[ch, 0] * l + lms_to_rgb[ch, 1] * mm + lms_to_rgb[ch, 2] * s
        if v < -ep or v > 1.0 + ep:
            return False
    return True


@njit(cache=True)
def _find_gamut_intersection(a: float, b: float, l1: float, c1: float, l0: float,
                             cusp_l: float, cusp_c: float, lms_to_rgb: ArrayFloat,
                             steps: int) -> float:
    m = OKLAB_TO_LMS_M
    k_l = m[0, 1] * a + m[0, 2] * b
    k_m = m[1, 1] * a + m[1, 2] * b
    k_s = m[2, 1] * a + m[2, 2] * b

    # Segment crossing of the black -> cusp ray C = S_max·L, where the
    # limiting channel reaches 0 at every lightness.
    ray_denom = c1 * cusp_l + cusp_c * (l0 - l1)

    if (l1 - l0) * cusp_c - (cusp_l - l0) * c1 <= 0.0:
        # Lower half: exact intersection with the black -> cusp edge.
        if ray_denom == 0.0:
            return 0.0
        t = cusp_c * l0 / ray_denom
    else:
        # Upper half: intersect the cusp -> white edge first.
        t = cusp_c * (l0 - 1.0) / (c1 * (cusp_l - 1.0) + cusp_c * (l0 - l1))

        dl = l1 - l0
        dc = c1
        l_dt = dl * m[0, 0] + dc * k_l
        m_dt = dl * m[1, 0] + dc * k_m
        s_dt = dl * m[2, 0] + dc * k_s

        for _ in range(steps):
            lightness = l0 * (1.0 - t) + t * l1
            chroma = t * c1

            l_ = lightness * m[0, 0] + chroma * k_l
            m_ = lightness * m[1, 0] + chroma * k_m
            s_ = lightness * m[2, 0] + chroma * k_s

            l = l_ * l_ * l_
            mm = m_ * m_ * m_
            s = s_ * s_ * s_

            ldt = 3.0 * l_dt * l_ * l_
            mdt = 3.0 * m_dt * m_ * m_
            sdt = 3.0 * s_dt * s_ * s_

            ldt2 = 6.0 * l_dt * l_dt * l_
            mdt2 = 6.0 * m_dt * m_dt * m_
            sdt2 = 6.0 * s_dt * s_dt * s_

            step = _NO_STEP
            for ch in range(3):
                w0 = lms_to_rgb[ch, 0]
                w1 = lms_to_rgb[ch, 1]
                w2 = lms_to_rgb[ch, 2]
                r = w0 * l + w1 * mm + w2 * s - 1.0
                r1 = w0 * ldt + w1 * mdt + w2 * sdt
                r2 = w0 * ldt2 + w1 * mdt2 + w2 * sdt2
                denom = r1 * r1 - 0.5 * r * r2
                if denom == 0.0:
                    continue
                u = r1 / denom
                if u >= 0.0:
                    t_ch = -r * u
                    if t_ch < step:
                        step = t_ch

            if step == _NO_STEP:
                break
            t += step

        # Near the cusp the curved upper edge can bulge past the ray.
        if ray_denom > 0.0:
            t_ray = cusp_c * l0 / ray_denom
            if t_ray < t:
                t = t_ray

    # An unconverged estimate outside the gamut is pulled back along the
    # segment to its last in-gamut point.
    if not _rgb_within(l0 * (1.0 - t) + t * l1, t * c1, k_l, k_m, k_s,
                       lms_to_rgb, _ROOT_TOLERANCE):
        lo = 0.0
        hi = t
        for _ in range(_BISECT_STEPS):
            mid = 0.5 * (lo + hi)
            if _rgb_within(l0 * (1.0 - mid) + mid * l1, mid * c1, k_l, k_m, k_s,
                           lms_to_rgb, _ROOT_TOLERANCE):
                lo = mid
            else:
                hi = mid
        t = lo

    return t


# =============================================================================
# 2. PUBLIC BOUNDARY API
# =============================================================================

def get_gamut_lms_to_rgb(gamut: ColorGamut) -> ArrayFloat:
    """
    Returns the LMS -> linear RGB matrix of a gamut's linear space.

    Raises:
        MissingSpaceError: If *gamut* is None.
        MissingTransformError: If the linear space has no ``from_lms_M``.
    """
    if gamut is None:
        raise MissingSpaceError("a gamut is required")
    lms_to_rgb = gamut.linear_space.from_lms_M
    if lms_to_rgb is None:
        raise MissingTransformError(
            f"gamut {gamut.id!r}: {gamut.linear_space.id} has no from_lms_M"
        )
    return lms_to_rgb


def compute_max_saturation_oklc(a: float, b: float, lms_to_rgb: ArrayFloat,
                                coefficients: GamutCoefficients,
                                steps: int = SATURATION_REFINEMENT_STEPS) -> float:
    """
    Maximum saturation S = C/L that stays in gamut for a hue.

    Args:
        a, b: Normalized hue direction (a² + b² = 1).
        lms_to_rgb: The gamut's LMS -> linear RGB matrix.
        coefficients: The gamut's selectors and polynomial guesses.
        steps: Halley refinements applied to the polynomial guess. With 0
            the raw guess is returned unchecked.

    Returns:
        The saturation at which the limiting RGB channel reaches zero.
    """
    return float(_compute_max_saturation(
        float(a), float(b), lms_to_rgb,
        coefficients.selectors, coefficients.polynomials, int(steps),
    ))


def find_cusp_oklch(a: float, b: float, gamut: ColorGamut = sRGBGamut,
                    out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """
    Finds the cusp (L, C) of a gamut's slice for a normalized hue (a, b).

    Returns:
        *out* (or a new length-2 array) holding ``[L_cusp, C_cusp]``.
    """
    lms_to_rgb = get_gamut_lms_to_rgb(gamut)
    if out is None:
        out = np.zeros(2, dtype=np.float64)
    coeffs = gamut.coefficients
    return _find_cusp(float(a), float(b), lms_to_rgb, coeffs.selectors,
                      coeffs.polynomials, SATURATION_REFINEMENT_STEPS, out)


def find_gamut_intersection_oklch(a: float, b: float, l1: float, c1: float, l0: float,
                                  gamut: ColorGamut = sRGBGamut,
                                  cusp: Optional[Sequence[float]] = None,
                                  steps: int = INTERSECTION_REFINEMENT_STEPS) -> float:
    """
    Intersects the segment (l0, 0) -> (l1, c1) with the gamut boundary.

    Returns:
        Parameter t in [0, 1] such that (lerp(l0, l1, t), t·c1) lies on the
        boundary. The cusp is computed when not supplied.
    """
    lms_to_rgb = get_gamut_lms_to_rgb(gamut)
    if cusp is None:
        cusp = find_cusp_oklch(a, b, gamut)
    return float(_find_gamut_intersection(
        float(a), float(b), float(l1), float(c1), float(l0),
        float(cusp[0]), float(cusp[1]), lms_to_rgb, int(steps),
    ))


# =============================================================================
# 3. MAPPING METHODS
# =============================================================================

def map_to_l(oklch: Sequence[float], cusp: Sequence[float]) -> float:
    """Keeps lightness; only chroma is reduced."""
    return oklch[0]


def map_to_gray(oklch: Sequence[float], cusp: Sequence[float]) -> float:
    """Projects toward mid gray (L = 0.5)."""
    return 0.5


def map_to_cusp_l(oklch: Sequence[float], cusp: Sequence[float]) -> float:
    """Projects toward the gray at the cusp's lightness."""
    return cusp[0]


def map_to_adaptive_gray(oklch: Sequence[float], cusp: Sequence[float],
                         alpha: float = ADAPTIVE_ALPHA) -> float:
    """
    Projects toward a point between the color's lightness and 0.5.

    Higher chroma pulls the anchor further toward mid gray; *alpha* sets
    how strongly.
    """
    l, c = oklch[0], oklch[1]
    ld = l - 0.5
    abs_ld = abs(ld)
    e1 = 0.5 + abs_ld + alpha * c
    return 0.5 * (1.0 + math.copysign(1.0, ld) * (e1 - math.sqrt(e1 * e1 - 2.0 * abs_ld)))


def map_to_adaptive_cusp_l(oklch: Sequence[float], cusp: Sequence[float],
                           alpha: float = ADAPTIVE_ALPHA) -> float:
    """Adaptive projection anchored at the cusp lightness instead of 0.5."""
    l, c = oklch[0], oklch[1]
    cusp_l = cusp[0]
    ld = l - cusp_l
    k = 2.0 * ((1.0 - cusp_l) if ld > 0.0 else cusp_l)
    abs_ld = abs(ld)
    e1 = 0.5 * k + abs_ld + alpha * c / k
    return cusp_l + 0.5 * math.copysign(1.0, ld) * (e1 - math.sqrt(e1 * e1 - 2.0 * k * abs_ld))


# =============================================================================
# 4. GAMUT MAPPER
# =============================================================================

def gamut_map_oklch(oklch: VectorLike, gamut: ColorGamut = sRGBGamut,
                    target_space: Optional[ColorSpace] = None,
                    out: Optional[ArrayFloat] = None,
                    mapping: MappingFn = map_to_cusp_l,
                    cusp: Optional[Sequence[float]] = None) -> ArrayFloat:
    """
    Maps an OKLCH color into *gamut* and converts it to *target_space*.

    Args:
        oklch: Input (L, C, H°), optionally with alpha.
        gamut: Gamut to map into.
        target_space: Output space; defaults to the gamut's space.
        out: Optional output buffer; may alias *oklch*.
        mapping: Chooses the projection anchor L0 from ``(oklch, cusp)``.
        cusp: Precomputed cusp for the input's hue.

    Returns:
        *out*. For RGB targets every channel lies in [0, 1]; hue is preserved.

    Raises:
        MissingSpaceError: If *gamut* is None.
        MissingTransformError: If the gamut's linear space lacks LMS matrices.
    """
    if gamut is None:
        raise MissingSpaceError("gamut_map_oklch() requires a gamut")
    if target_space is None:
        target_space = gamut.space

    lms_to_rgb = get_gamut_lms_to_rgb(gamut)
    gamut_base = gamut.linear_space

    vec = as_vector(oklch)
    has_alpha = vec.shape[0] > 3
    alpha = float(vec[3]) if has_alpha else 1.0
    lightness, chroma, hue = float(vec[0]), float(vec[1]), float(vec[2])
    out = out_buffer(out, 4 if has_alpha else 3)

    # out doubles as scratch; the input is already read.
    convert(vec[:3], OKLCH, gamut_base, out)

    if _is_rgb_in_gamut(out, GAMUT_EPSILON):
        if target_space is gamut_base:
            pass
        elif target_space.base is gamut_base:
            target_space.from_base(out, out)
        else:
            out[0], out[1], out[2] = lightness, chroma, hue
            convert(out, OKLCH, target_space, out)
    else:
        if chroma <= 0.0 or lightness <= 0.0 or lightness >= 1.0:
            out[0] = min(max(lightness, 0.0), 1.0)
            out[1] = 0.0
        else:
            h = math.radians(hue)
            a = math.cos(h)
            b = math.sin(h)
            if cusp is None:
                cusp = find_cusp_oklch(a, b, gamut)
            l0 = mapping((lightness, chroma, hue), cusp)
            t = _find_gamut_intersection(
                a, b, lightness, chroma, float(l0),
                float(cusp[0]), float(cusp[1]), lms_to_rgb,
                INTERSECTION_REFINEMENT_STEPS,
            )
            out[0] = l0 * (1.0 - t) + lightness * t
            out[1] = t * chroma
        out[2] = hue
        convert(out, OKLCH, target_space, out)

    target_base = target_space.base if target_space.base is not None else target_space
    if target_base.id not in ("oklab", "xyz"):
        _clamp01_3(out, out)

    if has_alpha and out.shape[0] > 3:
        out[3] = alpha
    return out

# -*- coding: utf-8 -*-
"""
Prism: Perceptual color conversion and gamut mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Conversion Matrices & Gamut Coefficients
========================================
Derives every matrix the color spaces carry, and the per-gamut coefficients
used by the closed-form max-saturation solver.

Matrices are derived rather than pasted:
1. RGB <-> XYZ from the xy chromaticities of the primaries and whitepoint
   (the same construction CSS Color 4 uses).
2. D65 <-> D50 adaptation with the Bradford cone response (Von Kries gains).
3. OKLab's M1 (XYZ -> LMS) and M2 (LMS' -> OKLab) as published for
   CSS Color 4; their inverses come from ``np.linalg.inv`` so that forward
   and inverse paths agree to machine precision.

All matrices act on column vectors (``out = M · v``), are float64,
C-contiguous and read-only.

Gamut coefficients:
    For a normalized hue (a, b), the saturation S = C/L at which a linear
    RGB channel first reaches zero is the smallest positive root of a cubic
    in S.  Each gamut stores
      * ``selectors``   (3, 2): half-planes ``ka·a + kb·b > 1`` telling
                                which channel limits saturation, and
      * ``polynomials`` (3, 5): ``k0 + k1·a + k2·b + k3·a² + k4·a·b``,
                                an initial guess refined by Halley steps.
    Selector lines pass through the unit hue vectors of the two primaries
    bounding each channel's hue arc.  Polynomials are least-squares fits
    against the exact root found with ``scipy.optimize.brentq``.

References:
    - Ottosson, B. (2020). "A perceptual color space for image processing".
    - Ottosson, B. (2021). "sRGB gamut clipping".
    - W3C CSS Color Module Level 4, section 10 (sample code).
"""

import functools
import logging
import math
import warnings
from dataclasses import dataclass
from typing import Callable, Final, NamedTuple, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import brentq

__all__ = [
    # --- Whitepoints ---
    "D65_XY",
    "D50_XY",
    "REF_WHITE_D65",
    "REF_WHITE_D50",
    # --- Primaries ---
    "SRGB_PRIMARIES",
    "DISPLAY_P3_PRIMARIES",
    "REC2020_PRIMARIES",
    "A98_RGB_PRIMARIES",
    "PROPHOTO_RGB_PRIMARIES",
    # --- OKLab ---
    "XYZ_TO_LMS_M",
    "LMS_TO_XYZ_M",
    "LMS_TO_OKLAB_M",
    "OKLAB_TO_LMS_M",
    # --- Adaptation ---
    "M_BRADFORD",
    "XYZ_D65_TO_D50_M",
    "XYZ_D50_TO_D65_M",
    "bradford_matrix",
    # --- Derivation ---
    "xy_to_xyz",
    "rgb_to_xyz_matrix",
    "RGBMatrices",
    "derive_rgb_matrices",
    # --- Gamut coefficients ---
    "GamutCoefficients",
    "SRGB_REFERENCE_POLYNOMIALS",
    "gamut_selectors",
    "exact_channel_saturation",
    "exact_max_saturation",
    "fit_gamut_coefficients",
]

logger = logging.getLogger(__name__)

Primaries = Tuple[Tuple[float, float], Tuple[float, float], Tuple[float, float]]


def _freeze(arr: np.ndarray) -> np.ndarray:
    """Returns a C-contiguous, read-only float64 copy of *arr*."""
    out = np.array(arr, dtype=np.float64, order="C", copy=True)
    out.setflags(write=False)
    return out


# =============================================================================
# 1. WHITEPOINTS & PRIMARIES
# =============================================================================

# CIE 1931 2° chromaticities as used by CSS Color 4.
D65_XY: Final[Tuple[float, float]] = (0.3127, 0.3290)
D50_XY: Final[Tuple[float, float]] = (0.3457, 0.3585)


def xy_to_xyz(x: float, y: float) -> np.ndarray:
    """Chromaticity (x, y) to XYZ with Y = 1."""
    return np.array([x / y, 1.0, (1.0 - x - y) / y], dtype=np.float64)


REF_WHITE_D65: Final[np.ndarray] = _freeze(xy_to_xyz(*D65_XY))
REF_WHITE_D50: Final[np.ndarray] = _freeze(xy_to_xyz(*D50_XY))

# (R, G, B) xy chromaticities.
SRGB_PRIMARIES: Final[Primaries] = ((0.640, 0.330), (0.300, 0.600), (0.150, 0.060))
DISPLAY_P3_PRIMARIES: Final[Primaries] = ((0.680, 0.320), (0.265, 0.690), (0.150, 0.060))
REC2020_PRIMARIES: Final[Primaries] = ((0.708, 0.292), (0.170, 0.797), (0.131, 0.046))
A98_RGB_PRIMARIES: Final[Primaries] = ((0.640, 0.330), (0.210, 0.710), (0.150, 0.060))
PROPHOTO_RGB_PRIMARIES: Final[Primaries] = (
    (0.734699, 0.265301),
    (0.159597, 0.840403),
    (0.036598, 0.000105),
)


# =============================================================================
# 2. OKLAB MATRICES
# =============================================================================

# M1: XYZ (D65) -> LMS cone response.
XYZ_TO_LMS_M: Final[np.ndarray] = _freeze([
    [0.8190224379967030, 0.3619062600528904, -0.1288737815209879],
    [0.0329836539323885, 0.9292868615863434, 0.0361446663506424],
    [0.0481771893596242, 0.2642395317527308, 0.6335478284694309],
])
LMS_TO_XYZ_M: Final[np.ndarray] = _freeze(np.linalg.inv(XYZ_TO_LMS_M))

# M2: cube-rooted LMS (LMS') -> OKLab.
LMS_TO_OKLAB_M: Final[np.ndarray] = _freeze([
    [0.2104542683093140, 0.7936177747023054, -0.0040720430116193],
    [1.9779985324311684, -2.4285922420485799, 0.4505937096174110],
    [0.0259040424655478, 0.7827717124575296, -0.8086757549230774],
])
OKLAB_TO_LMS_M: Final[np.ndarray] = _freeze(np.linalg.inv(LMS_TO_OKLAB_M))


# =============================================================================
# 3. CHROMATIC ADAPTATION (Bradford)
# =============================================================================

# Transforms XYZ to "sharpened" cone responses for gain application.
M_BRADFORD: Final[np.ndarray] = _freeze([
    [0.8951000, 0.2664000, -0.1614000],
    [-0.7502000, 1.7135000, 0.0367000],
    [0.0389000, -0.0685000, 1.0296000],
])
_M_BRADFORD_INV: Final[np.ndarray] = _freeze(np.linalg.inv(M_BRADFORD))


@functools.lru_cache(maxsize=16)
def _get_cached_bradford_matrix(src_white: Tuple[float, ...],
                                dst_white: Tuple[float, ...]) -> np.ndarray:
    """
    Cached worker for the Bradford matrix.

    Derivation (column vectors):
        M_composite = M_inv · diag(dst_lms / src_lms) · M
    """
    src_lms = M_BRADFORD @ np.array(src_white, dtype=np.float64)
    dst_lms = M_BRADFORD @ np.array(dst_white, dtype=np.float64)
    gains = dst_lms / src_lms
    return _freeze(_M_BRADFORD_INV @ np.diag(gains) @ M_BRADFORD)


def bradford_matrix(src_white: Sequence[float], dst_white: Sequence[float]) -> np.ndarray:
    """
    Computes the Bradford adaptation matrix between two XYZ whitepoints.

    Args:
        src_white: Source whitepoint (XYZ).
        dst_white: Destination whitepoint (XYZ).

    Returns:
        Read-only 3x3 matrix mapping source-white XYZ to destination-white XYZ.
    """
    src = tuple(float(v) for v in np.ravel(src_white))
    dst = tuple(float(v) for v in np.ravel(dst_white))
    return _get_cached_bradford_matrix(src, dst)


XYZ_D65_TO_D50_M: Final[np.ndarray] = bradford_matrix(REF_WHITE_D65, REF_WHITE_D50)
XYZ_D50_TO_D65_M: Final[np.ndarray] = _freeze(np.linalg.inv(XYZ_D65_TO_D50_M))


# =============================================================================
# 4. RGB MATRIX DERIVATION
# =============================================================================

def rgb_to_xyz_matrix(primaries: Primaries, white: np.ndarray) -> np.ndarray:
    """
    Linear RGB -> XYZ matrix from primary chromaticities.

    Each primary's XYZ column is scaled so that RGB (1, 1, 1) maps exactly
    onto *white*.
    """
    columns = np.column_stack([xy_to_xyz(x, y) for x, y in primaries])
    scale = np.linalg.solve(columns, np.asarray(white, dtype=np.float64))
    return columns * scale


class RGBMatrices(NamedTuple):
    """Matrix set attached to a linear RGB space."""
    to_xyz: np.ndarray
    from_xyz: np.ndarray
    to_lms: Optional[np.ndarray]
    from_lms: Optional[np.ndarray]


def derive_rgb_matrices(primaries: Primaries,
                        white: np.ndarray = REF_WHITE_D65,
                        with_lms: bool = True) -> RGBMatrices:
    """
    Builds the XYZ (and optionally OKLab LMS) matrices of a linear RGB space.

    The LMS matrices fold M1 into the RGB -> XYZ matrix, which lets the
    router skip the XYZ hop when bridging to OKLab.  They are only valid for
    D65 spaces; D50 spaces set ``with_lms=False`` and go through XYZ with
    adaptation instead.
    """
    to_xyz = rgb_to_xyz_matrix(primaries, white)
    from_xyz = np.linalg.inv(to_xyz)
    to_lms = from_lms = None
    if with_lms:
        lms = XYZ_TO_LMS_M @ to_xyz
        to_lms = _freeze(lms)
        from_lms = _freeze(np.linalg.inv(lms))
    return RGBMatrices(_freeze(to_xyz), _freeze(from_xyz), to_lms, from_lms)


# =============================================================================
# 5. GAMUT COEFFICIENTS
# =============================================================================

@dataclass(slots=True, frozen=True)
class GamutCoefficients:
    """Max-saturation coefficients for one RGB gamut (see module docstring)."""
    selectors: np.ndarray    # float64, shape (3, 2)
    polynomials: np.ndarray  # float64, shape (3, 5)

    def __post_init__(self) -> None:
        if np.shape(self.selectors) != (3, 2) or np.shape(self.polynomials) != (3, 5):
            raise ValueError(
                "GamutCoefficients expects selectors (3, 2) and polynomials (3, 5), "
                f"got {np.shape(self.selectors)} and {np.shape(self.polynomials)}"
            )


# Ottosson's published sRGB fit (R, G, B rows).
SRGB_REFERENCE_POLYNOMIALS: Final[np.ndarray] = _freeze([
    [1.19086277, 1.76576728, 0.59662641, 0.75515197, 0.56771245],
    [0.73956515, -0.45954404, 0.08285427, 0.12541070, 0.14503204],
    [1.35733652, -0.00915799, -1.15130210, -0.50559606, 0.00692167],
])

# Hue sampling used by the fit; 0.5° steps keep every arc well populated.
_FIT_SAMPLES: Final[int] = 720
# Relative deviation of the initial guess above which the fit is reported.
_FIT_WARN_TOLERANCE: Final[float] = 0.05
_ROOT_SCAN_STEP: Final[float] = 0.05
_ROOT_SCAN_LIMIT: Final[float] = 50.0


def _primary_hues(to_lms: np.ndarray) -> np.ndarray:
    """Unit (a, b) hue vectors of the R, G, B primaries in OKLab."""
    hues = np.empty((3, 2), dtype=np.float64)
    for i in range(3):
        lab = LMS_TO_OKLAB_M @ np.cbrt(to_lms[:, i])
        hues[i] = lab[1:] / math.hypot(lab[1], lab[2])
    return hues


def gamut_selectors(to_lms: np.ndarray) -> np.ndarray:
    """
    Channel-selection half-planes for a gamut.

    Red limits saturation on the green..blue arc, green on the red..blue arc
    and blue on the red..green arc; each line passes through the two
    bounding primary hues so that ``ka·a + kb·b > 1`` holds exactly on the
    arc.
    """
    red, green, blue = _primary_hues(to_lms)
    pairs = ((green, blue), (red, blue), (red, green))
    return _freeze([np.linalg.solve(np.array(pair), np.ones(2)) for pair in pairs])


def _channel_cubic(a: float, b: float, row: np.ndarray) -> Callable[[float], float]:
    """f(S): linear RGB channel *row* at OKLab (1, S·a, S·b)."""
    k = OKLAB_TO_LMS_M[:, 1] * a + OKLAB_TO_LMS_M[:, 2] * b
    c0 = OKLAB_TO_LMS_M[:, 0]

    def f(s: float) -> float:
        lms_ = c0 + s * k
        return float(row @ (lms_ * lms_ * lms_))
    return f


# Saturation grid scanned for the first sign change of a channel.
_ROOT_SCAN_GRID: Final[np.ndarray] = _freeze(
    np.arange(0.0, _ROOT_SCAN_LIMIT + 0.5 * _ROOT_SCAN_STEP, _ROOT_SCAN_STEP)
)


def exact_channel_saturation(a: float, b: float, lms_to_rgb: np.ndarray,
                             channel: int) -> float:
    """
    Smallest positive saturation at which *channel* reaches zero.

    Scans outward from the achromatic axis for a sign change and polishes
    the bracket with ``brentq``.  Returns ``inf`` when the channel never
    reaches zero within the scan range.
    """
    row = np.asarray(lms_to_rgb)[channel]
    k = OKLAB_TO_LMS_M[:, 1] * a + OKLAB_TO_LMS_M[:, 2] * b
    lms_ = OKLAB_TO_LMS_M[:, 0] + _ROOT_SCAN_GRID[:, None] * k
    values = (lms_ * lms_ * lms_) @ row

    crossings = np.flatnonzero(values[:-1] * values[1:] <= 0.0)
    if crossings.size == 0:
        return math.inf
    i = crossings[0]
    f = _channel_cubic(a, b, row)
    return float(brentq(f, _ROOT_SCAN_GRID[i], _ROOT_SCAN_GRID[i + 1],
                        xtol=1e-15, maxiter=200))


def exact_max_saturation(a: float, b: float, lms_to_rgb: np.ndarray) -> float:
    """Reference max saturation: the first channel of all three to reach zero."""
    return min(exact_channel_saturation(a, b, lms_to_rgb, c) for c in range(3))


def _select_channel(selectors: np.ndarray, a: float, b: float) -> int:
    if selectors[0, 0] * a + selectors[0, 1] * b > 1.0:
        return 0
    if selectors[1, 0] * a + selectors[1, 1] * b > 1.0:
        return 1
    return 2


def fit_gamut_coefficients(to_lms: np.ndarray, from_lms: np.ndarray,
                           label: str = "gamut", warn: bool = True) -> GamutCoefficients:
    """
    Fits max-saturation coefficients for the linear RGB space with the given
    LMS matrices.

    Args:
        to_lms: Linear RGB -> LMS matrix.
        from_lms: LMS -> linear RGB matrix.
        label: Name used in diagnostics.
        warn: Emit a ``UserWarning`` when a polynomial guess deviates from the
            exact saturation by more than 5 %; otherwise only DEBUG logging.

    Returns:
        GamutCoefficients whose polynomial guesses are least-squares fits to
        the exact saturation on each channel's hue arc.
    """
    selectors = gamut_selectors(to_lms)
    angles = np.linspace(0.0, 2.0 * np.pi, _FIT_SAMPLES, endpoint=False)

    samples = [[], [], []]
    for h in angles:
        a, b = math.cos(h), math.sin(h)
        channel = _select_channel(selectors, a, b)
        s = exact_channel_saturation(a, b, from_lms, channel)
        if math.isfinite(s):
            samples[channel].append((a, b, s))

    polynomials = np.empty((3, 5), dtype=np.float64)
    for channel, rows in enumerate(samples):
        if len(rows) < 5:
            raise ValueError(
                f"{label}: only {len(rows)} hue samples limit channel {channel}; "
                "cannot fit saturation polynomial"
            )
        pts = np.array(rows, dtype=np.float64)
        a, b, s = pts[:, 0], pts[:, 1], pts[:, 2]
        design = np.column_stack([np.ones_like(a), a, b, a * a, a * b])
        coeffs, *_ = np.linalg.lstsq(design, s, rcond=None)
        polynomials[channel] = coeffs

        deviation = float(np.max(np.abs(design @ coeffs - s) / s))
        logger.debug("%s channel %d: %d samples, max relative deviation %.3e",
                     label, channel, len(rows), deviation)
        if warn and deviation > _FIT_WARN_TOLERANCE:
            warnings.warn(
                f"{label}: saturation fit for channel {channel} deviates by "
                f"{deviation:.2%}; refinement may need extra steps.",
                stacklevel=2,
            )

    return GamutCoefficients(selectors, _freeze(polynomials))

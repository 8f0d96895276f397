# -*- coding: utf-8 -*-
"""
Prism: Perceptual color conversion and gamut mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Color Space & Gamut Descriptors
===============================
Immutable descriptors for every built-in color space and RGB gamut.

A ``ColorSpace`` is plain data: optional matrices to the XYZ D65 hub and to
OKLab's LMS, an optional chromatic adaptation for non-D65 spaces, and an
optional one-level ``base`` link (e.g. sRGB -> sRGB-linear, OKLCH -> OKLab)
with the two callables that cross it.  The router in ``prism_convert``
branches on which fields are present.

Transfer functions are extended-range: they mirror through zero, so negative
(out-of-gamut) linear values survive a round trip through the encoded form.

Descriptors are built once at import and never mutated; the matrices they
hold are read-only arrays.  Sharing them across threads is safe.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Final, Optional

import numpy as np
from numba import njit

from prism_errors import InvalidBaseLinkError, UnsupportedDepthError
from prism_kernels import ArrayFloat, _transform3, as_vector, out_buffer
from prism_matrices import (
    A98_RGB_PRIMARIES,
    DISPLAY_P3_PRIMARIES,
    LMS_TO_XYZ_M,
    PROPHOTO_RGB_PRIMARIES,
    REC2020_PRIMARIES,
    REF_WHITE_D50,
    SRGB_PRIMARIES,
    SRGB_REFERENCE_POLYNOMIALS,
    XYZ_D50_TO_D65_M,
    XYZ_D65_TO_D50_M,
    XYZ_TO_LMS_M,
    GamutCoefficients,
    derive_rgb_matrices,
    fit_gamut_coefficients,
    gamut_selectors,
)

__all__ = [
    # --- Descriptors ---
    "TransformFn",
    "ChromaticAdaptation",
    "ColorSpace",
    "ColorGamut",
    # --- Hub spaces ---
    "XYZ",
    "XYZD50",
    "OKLab",
    "OKLCH",
    # --- RGB spaces ---
    "sRGB",
    "sRGBLinear",
    "DisplayP3",
    "DisplayP3Linear",
    "Rec2020",
    "Rec2020Linear",
    "A98RGB",
    "A98RGBLinear",
    "ProPhotoRGB",
    "ProPhotoRGBLinear",
    # --- Gamuts ---
    "sRGBGamut",
    "DisplayP3Gamut",
    "Rec2020Gamut",
    "A98RGBGamut",
    # --- Transfer functions ---
    "srgb_gamma_to_linear",
    "srgb_linear_to_gamma",
]

logger = logging.getLogger(__name__)

# (vec, out) -> out, where out may alias vec.
TransformFn = Callable[[ArrayFloat, ArrayFloat], ArrayFloat]


# =============================================================================
# 1. DESCRIPTORS
# =============================================================================

@dataclass(slots=True, frozen=True)
class ChromaticAdaptation:
    """Whitepoint adaptation between a space's native XYZ and XYZ D65."""
    to_hub: ArrayFloat    # native XYZ -> XYZ D65
    from_hub: ArrayFloat  # XYZ D65 -> native XYZ


@dataclass(slots=True, frozen=True, eq=False, repr=False)
class ColorSpace:
    """
    Descriptor of a color space.

    Spaces compare and hash by identity: two descriptors with the same
    ``id`` but different data are different spaces.

    Attributes:
        id: Lowercase identifier (e.g. ``"srgb"``).
        to_xyz_M / from_xyz_M: Matrices to and from XYZ. For D50 spaces they
            target XYZ D50 and ``adapt`` bridges to the D65 hub.
        to_lms_M / from_lms_M: Matrices to and from OKLab's LMS response.
        adapt: Optional whitepoint adaptation.
        base: Space this one derives from (at most one level deep).
        to_base / from_base: ``(vec, out) -> out`` transforms across the
            base link. Required iff ``base`` is set.
    """
    id: str
    to_xyz_M: Optional[ArrayFloat] = None
    from_xyz_M: Optional[ArrayFloat] = None
    to_lms_M: Optional[ArrayFloat] = None
    from_lms_M: Optional[ArrayFloat] = None
    adapt: Optional[ChromaticAdaptation] = None
    base: Optional["ColorSpace"] = None
    to_base: Optional[TransformFn] = None
    from_base: Optional[TransformFn] = None

    def __repr__(self) -> str:
        return f"ColorSpace({self.id!r})"

    def validate(self) -> "ColorSpace":
        """
        Checks the descriptor's structure and returns it.

        Raises:
            UnsupportedDepthError: If ``base`` itself derives from another space.
            InvalidBaseLinkError: If the base link and its transforms are not
                all present (or all absent).
            ValueError: If a matrix is not 3x3.
        """
        if self.base is not None:
            if self.base.base is not None:
                raise UnsupportedDepthError(
                    f"{self.id}: base {self.base.id!r} has its own base "
                    f"{self.base.base.id!r}; only one level is supported"
                )
            if self.to_base is None or self.from_base is None:
                raise InvalidBaseLinkError(
                    f"{self.id}: derives from {self.base.id!r} but lacks "
                    "to_base/from_base"
                )
        elif self.to_base is not None or self.from_base is not None:
            raise InvalidBaseLinkError(f"{self.id}: base transforms given without a base")

        for name in ("to_xyz_M", "from_xyz_M", "to_lms_M", "from_lms_M"):
            matrix = getattr(self, name)
            if matrix is not None and np.shape(matrix) != (3, 3):
                raise ValueError(f"{self.id}: {name} must be 3x3, got {np.shape(matrix)}")

        logger.debug("Validated color space %r", self.id)
        return self


@dataclass(slots=True, frozen=True, eq=False, repr=False)
class ColorGamut:
    """An RGB gamut: its encoded space and max-saturation coefficients."""
    id: str
    space: ColorSpace
    coefficients: GamutCoefficients

    def __repr__(self) -> str:
        return f"ColorGamut({self.id!r})"

    @property
    def linear_space(self) -> ColorSpace:
        """The linear RGB space the gamut boundary is defined in."""
        return self.space.base if self.space.base is not None else self.space


# =============================================================================
# 2. TRANSFER FUNCTIONS (Numba)
# =============================================================================

# Rec. 2020 OETF constants (12-bit precision).
REC2020_ALPHA: Final[float] = 1.09929682680944
REC2020_BETA: Final[float] = 0.018053968510807

# Adobe RGB (1998) gamma.
A98_GAMMA: Final[float] = 563.0 / 256.0

# ProPhoto: 1.8 power with a linear toe below Et = 1/512.
PROPHOTO_ET: Final[float] = 1.0 / 512.0
PROPHOTO_ET2: Final[float] = 16.0 / 512.0


@njit(cache=True)
def _srgb_to_linear(v: float) -> float:
    a = abs(v)
    if a <= 0.04045:
        return v / 12.92
    return math.copysign(((a + 0.055) / 1.055) ** 2.4, v)


@njit(cache=True)
def _srgb_to_gamma(v: float) -> float:
    a = abs(v)
    if a > 0.0031308:
        return math.copysign(1.055 * a ** (1.0 / 2.4) - 0.055, v)
    return 12.92 * v


@njit(cache=True)
def _rec2020_to_linear(v: float) -> float:
    a = abs(v)
    if a < REC2020_BETA * 4.5:
        return v / 4.5
    return math.copysign(((a + REC2020_ALPHA - 1.0) / REC2020_ALPHA) ** (1.0 / 0.45), v)


@njit(cache=True)
def _rec2020_to_gamma(v: float) -> float:
    a = abs(v)
    if a >= REC2020_BETA:
        return math.copysign(REC2020_ALPHA * a ** 0.45 - (REC2020_ALPHA - 1.0), v)
    return 4.5 * v


@njit(cache=True)
def _a98_to_linear(v: float) -> float:
    return math.copysign(abs(v) ** A98_GAMMA, v)


@njit(cache=True)
def _a98_to_gamma(v: float) -> float:
    return math.copysign(abs(v) ** (1.0 / A98_GAMMA), v)


@njit(cache=True)
def _prophoto_to_linear(v: float) -> float:
    a = abs(v)
    if a <= PROPHOTO_ET2:
        return v / 16.0
    return math.copysign(a ** 1.8, v)


@njit(cache=True)
def _prophoto_to_gamma(v: float) -> float:
    a = abs(v)
    if a >= PROPHOTO_ET:
        return math.copysign(a ** (1.0 / 1.8), v)
    return 16.0 * v


@njit(cache=True)
def _srgb_to_linear3(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    for i in range(3):
        out[i] = _srgb_to_linear(vec[i])
    return out


@njit(cache=True)
def _srgb_to_gamma3(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    for i in range(3):
        out[i] = _srgb_to_gamma(vec[i])
    return out


@njit(cache=True)
def _rec2020_to_linear3(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    for i in range(3):
        out[i] = _rec2020_to_linear(vec[i])
    return out


@njit(cache=True)
def _rec2020_to_gamma3(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    for i in range(3):
        out[i] = _rec2020_to_gamma(vec[i])
    return out


@njit(cache=True)
def _a98_to_linear3(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    for i in range(3):
        out[i] = _a98_to_linear(vec[i])
    return out


@njit(cache=True)
def _a98_to_gamma3(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    for i in range(3):
        out[i] = _a98_to_gamma(vec[i])
    return out


@njit(cache=True)
def _prophoto_to_linear3(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    for i in range(3):
        out[i] = _prophoto_to_linear(vec[i])
    return out


@njit(cache=True)
def _prophoto_to_gamma3(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    for i in range(3):
        out[i] = _prophoto_to_gamma(vec[i])
    return out


def srgb_gamma_to_linear(vec, out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """sRGB-encoded to linear light (extended range)."""
    return _srgb_to_linear3(as_vector(vec), out_buffer(out))


def srgb_linear_to_gamma(vec, out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """Linear light to sRGB-encoded (extended range)."""
    return _srgb_to_gamma3(as_vector(vec), out_buffer(out))


# =============================================================================
# 3. POLAR OKLAB
# =============================================================================

@njit(cache=True)
def _oklch_to_oklab(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    l = vec[0]
    c = vec[1]
    h = math.radians(vec[2])
    out[0] = l
    out[1] = c * math.cos(h)
    out[2] = c * math.sin(h)
    return out


@njit(cache=True)
def _oklab_to_oklch(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    l = vec[0]
    a = vec[1]
    b = vec[2]
    h = math.degrees(math.atan2(b, a)) % 360.0
    if h >= 360.0:
        h -= 360.0
    out[0] = l
    out[1] = math.sqrt(a * a + b * b)
    out[2] = h
    return out


# =============================================================================
# 4. BUILT-IN SPACES
# =============================================================================

def _xyz_d50_to_xyz(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    return _transform3(vec, XYZ_D50_TO_D65_M, out)


def _xyz_to_xyz_d50(vec: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    return _transform3(vec, XYZ_D65_TO_D50_M, out)


XYZ: Final[ColorSpace] = ColorSpace(
    id="xyz",
    to_lms_M=XYZ_TO_LMS_M,
    from_lms_M=LMS_TO_XYZ_M,
)

XYZD50: Final[ColorSpace] = ColorSpace(
    id="xyz-d50",
    base=XYZ,
    to_base=_xyz_d50_to_xyz,
    from_base=_xyz_to_xyz_d50,
)

OKLab: Final[ColorSpace] = ColorSpace(id="oklab")

OKLCH: Final[ColorSpace] = ColorSpace(
    id="oklch",
    base=OKLab,
    to_base=_oklch_to_oklab,
    from_base=_oklab_to_oklch,
)


def _linear_rgb_space(id: str, primaries, white=None,
                      adapt: Optional[ChromaticAdaptation] = None) -> ColorSpace:
    if white is None:
        m = derive_rgb_matrices(primaries)
    else:
        m = derive_rgb_matrices(primaries, white, with_lms=False)
    return ColorSpace(
        id=id,
        to_xyz_M=m.to_xyz,
        from_xyz_M=m.from_xyz,
        to_lms_M=m.to_lms,
        from_lms_M=m.from_lms,
        adapt=adapt,
    )


sRGBLinear: Final[ColorSpace] = _linear_rgb_space("srgb-linear", SRGB_PRIMARIES)
sRGB: Final[ColorSpace] = ColorSpace(
    id="srgb", base=sRGBLinear,
    to_base=_srgb_to_linear3, from_base=_srgb_to_gamma3,
)

# Display P3 shares the sRGB transfer curve.
DisplayP3Linear: Final[ColorSpace] = _linear_rgb_space("display-p3-linear", DISPLAY_P3_PRIMARIES)
DisplayP3: Final[ColorSpace] = ColorSpace(
    id="display-p3", base=DisplayP3Linear,
    to_base=_srgb_to_linear3, from_base=_srgb_to_gamma3,
)

Rec2020Linear: Final[ColorSpace] = _linear_rgb_space("rec2020-linear", REC2020_PRIMARIES)
Rec2020: Final[ColorSpace] = ColorSpace(
    id="rec2020", base=Rec2020Linear,
    to_base=_rec2020_to_linear3, from_base=_rec2020_to_gamma3,
)

A98RGBLinear: Final[ColorSpace] = _linear_rgb_space("a98-rgb-linear", A98_RGB_PRIMARIES)
A98RGB: Final[ColorSpace] = ColorSpace(
    id="a98-rgb", base=A98RGBLinear,
    to_base=_a98_to_linear3, from_base=_a98_to_gamma3,
)

# ProPhoto is a D50 space: its matrices target XYZ D50 and it has no direct
# LMS path, so conversions go through XYZ with Bradford adaptation.
ProPhotoRGBLinear: Final[ColorSpace] = _linear_rgb_space(
    "prophoto-rgb-linear",
    PROPHOTO_RGB_PRIMARIES,
    white=REF_WHITE_D50,
    adapt=ChromaticAdaptation(to_hub=XYZ_D50_TO_D65_M, from_hub=XYZ_D65_TO_D50_M),
)
ProPhotoRGB: Final[ColorSpace] = ColorSpace(
    id="prophoto-rgb", base=ProPhotoRGBLinear,
    to_base=_prophoto_to_linear3, from_base=_prophoto_to_gamma3,
)


# =============================================================================
# 5. GAMUTS
# =============================================================================

sRGBGamut: Final[ColorGamut] = ColorGamut(
    id="srgb",
    space=sRGB,
    coefficients=GamutCoefficients(
        gamut_selectors(sRGBLinear.to_lms_M), SRGB_REFERENCE_POLYNOMIALS
    ),
)

# Fit deviations of the built-in gamuts go to DEBUG only.
DisplayP3Gamut: Final[ColorGamut] = ColorGamut(
    id="display-p3",
    space=DisplayP3,
    coefficients=fit_gamut_coefficients(
        DisplayP3Linear.to_lms_M, DisplayP3Linear.from_lms_M, label="display-p3",
        warn=False,
    ),
)

Rec2020Gamut: Final[ColorGamut] = ColorGamut(
    id="rec2020",
    space=Rec2020,
    coefficients=fit_gamut_coefficients(
        Rec2020Linear.to_lms_M, Rec2020Linear.from_lms_M, label="rec2020",
        warn=False,
    ),
)

A98RGBGamut: Final[ColorGamut] = ColorGamut(
    id="a98-rgb",
    space=A98RGB,
    coefficients=fit_gamut_coefficients(
        A98RGBLinear.to_lms_M, A98RGBLinear.from_lms_M, label="a98-rgb",
        warn=False,
    ),
)

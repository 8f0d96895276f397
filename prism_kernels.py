# -*- coding: utf-8 -*-
"""
Prism: Perceptual color conversion and gamut mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Vector & Matrix Kernels
=======================
Fixed-size (3-element) vector primitives and the OKLab bridge kernels.

Every kernel writes into a caller-supplied ``out`` buffer and returns it, so
chains of conversions run without allocating.  ``out`` may alias the input:
each kernel reads all three inputs into locals before writing.

The public wrappers (``transform``, ``oklab_to`` ...) accept any 3/4-element
sequence as input and allocate ``out`` when it is omitted.  The ``_``-prefixed
Numba kernels assume validated float64 arrays and are what the router and
gamut mapper call internally.

NOTE: Kernels compile with ``fastmath=False``.  Conversions must be
deterministic and reproducible across call sites, so floating-point
reassociation is not allowed here.
"""

from typing import Final, Optional, Sequence, TypeAlias, Union

import numpy as np
import numpy.typing as npt
from numba import njit

from prism_matrices import LMS_TO_OKLAB_M, OKLAB_TO_LMS_M

__all__ = [
    # --- Type Aliases ---
    "ArrayFloat",
    "VectorLike",
    # --- Constants ---
    "GAMUT_EPSILON",
    # --- Buffer helpers ---
    "vec3",
    "as_vector",
    "out_buffer",
    "as_matrix",
    # --- Public kernels ---
    "copy3",
    "cube3",
    "cbrt3",
    "transform",
    "oklab_to",
    "oklab_from",
    "is_rgb_in_gamut",
    "clamped_rgb",
]

# --- Type Aliases ---
ArrayFloat: TypeAlias = npt.NDArray[np.floating]
VectorLike: TypeAlias = Union[ArrayFloat, Sequence[float]]

# Per-channel tolerance used when testing whether linear RGB lies in [0, 1].
GAMUT_EPSILON: Final[float] = 7.5e-5

_THIRD: Final[float] = 1.0 / 3.0


# =============================================================================
# 1. BUFFER HELPERS
# =============================================================================

def vec3() -> ArrayFloat:
    """Returns a fresh zeroed float64 vector of length 3."""
    return np.zeros(3, dtype=np.float64)


def as_vector(vec: VectorLike) -> ArrayFloat:
    """
    Views *vec* as a 1-D float64 array with at least 3 components.

    Float64 arrays pass through without a copy, so an input that is also
    used as ``out`` keeps its identity.
    """
    arr = np.asarray(vec, dtype=np.float64)
    if arr.ndim != 1 or arr.shape[0] < 3:
        raise ValueError(
            f"Expected a vector with at least 3 components, got shape {arr.shape}"
        )
    return arr


def out_buffer(out: Optional[ArrayFloat], size: int = 3) -> ArrayFloat:
    """
    Returns *out* after checking it can hold *size* components, or a new
    zeroed float64 buffer when *out* is None.
    """
    if out is None:
        return np.zeros(size, dtype=np.float64)
    if not isinstance(out, np.ndarray):
        raise TypeError(f"out must be a numpy array, got {type(out).__name__}")
    if out.ndim != 1 or out.shape[0] < 3:
        raise ValueError(
            f"out must be a vector with at least 3 components, got shape {out.shape}"
        )
    return out


def as_matrix(matrix: Union[ArrayFloat, Sequence[Sequence[float]]]) -> ArrayFloat:
    """Views *matrix* as a (3, 3) float64 array."""
    arr = np.asarray(matrix, dtype=np.float64)
    if arr.shape != (3, 3):
        raise ValueError(f"Expected a 3x3 matrix, got shape {arr.shape}")
    return arr


# =============================================================================
# 2. LOW-LEVEL KERNELS (Numba)
# =============================================================================

@njit(cache=True)
def _cbrt(x: float) -> float:
    """Real (sign-preserving) cube root."""
    if x < 0.0:
        return -((-x) ** _THIRD)
    return x ** _THIRD


@njit(cache=True)
def _copy3(src: ArrayFloat, dst: ArrayFloat) -> ArrayFloat:
    dst[0] = src[0]
    dst[1] = src[1]
    dst[2] = src[2]
    return dst


@njit(cache=True)
def _transform3(vec: ArrayFloat, m: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    """out = m · vec, alias-safe."""
    x = m[0, 0] * vec[0] + m[0, 1] * vec[1] + m[0, 2] * vec[2]
    y = m[1, 0] * vec[0] + m[1, 1] * vec[1] + m[1, 2] * vec[2]
    z = m[2, 0] * vec[0] + m[2, 1] * vec[1] + m[2, 2] * vec[2]
    out[0] = x
    out[1] = y
    out[2] = z
    return out


@njit(cache=True)
def _cube3(vec: ArrayFloat) -> ArrayFloat:
    l = vec[0]
    m = vec[1]
    s = vec[2]
    vec[0] = l * l * l
    vec[1] = m * m * m
    vec[2] = s * s * s
    return vec


@njit(cache=True)
def _cbrt3(vec: ArrayFloat) -> ArrayFloat:
    vec[0] = _cbrt(vec[0])
    vec[1] = _cbrt(vec[1])
    vec[2] = _cbrt(vec[2])
    return vec


@njit(cache=True)
def _oklab_to(lab: ArrayFloat, lab_to_lms: ArrayFloat,
              lms_to_output: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    """OKLab -> LMS' -> cube -> output space."""
    _transform3(lab, lab_to_lms, out)
    _cube3(out)
    return _transform3(out, lms_to_output, out)


@njit(cache=True)
def _oklab_from(vec: ArrayFloat, input_to_lms: ArrayFloat,
                lms_to_lab: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    """Input space -> LMS -> cube root -> OKLab."""
    _transform3(vec, input_to_lms, out)
    _cbrt3(out)
    return _transform3(out, lms_to_lab, out)


@njit(cache=True)
def _is_rgb_in_gamut(rgb: ArrayFloat, ep: float) -> bool:
    lo = -ep
    hi = 1.0 + ep
    for i in range(3):
        if rgb[i] < lo or rgb[i] > hi:
            return False
    return True


@njit(cache=True)
def _clamp01_3(rgb: ArrayFloat, out: ArrayFloat) -> ArrayFloat:
    for i in range(3):
        v = rgb[i]
        if v < 0.0:
            v = 0.0
        elif v > 1.0:
            v = 1.0
        out[i] = v
    return out


# =============================================================================
# 3. PUBLIC API
# =============================================================================

def copy3(src: VectorLike, dst: ArrayFloat) -> ArrayFloat:
    """Copies the first 3 components of *src* into *dst*."""
    return _copy3(as_vector(src), out_buffer(dst))


def cube3(vec: VectorLike, out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """Element-wise cube."""
    return _cube3(_copy3(as_vector(vec), out_buffer(out)))


def cbrt3(vec: VectorLike, out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """Element-wise real cube root; negative inputs give negative roots."""
    return _cbrt3(_copy3(as_vector(vec), out_buffer(out)))


def transform(input: VectorLike, matrix: ArrayFloat,
              out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """
    Transforms a color vector by a 3x3 matrix (``out = matrix · input``).

    Args:
        input: Source vector (3 or 4 components; only the first 3 are used).
        matrix: 3x3 transformation matrix.
        out: Optional output buffer, may be *input* itself.

    Returns:
        The transformed vector (*out*).
    """
    vec = as_vector(input)
    return _transform3(vec, as_matrix(matrix), out_buffer(out))


def oklab_to(oklab: VectorLike, lms_to_output: ArrayFloat,
             out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """
    Converts an OKLab color to the space reached by *lms_to_output*.

    The OKLab coordinates go through the fixed OKLab -> LMS' matrix, are
    cubed element-wise to undo OKLab's compression, and then mapped with
    *lms_to_output* (e.g. a space's ``from_lms_M``).
    """
    vec = as_vector(oklab)
    return _oklab_to(vec, OKLAB_TO_LMS_M, as_matrix(lms_to_output), out_buffer(out))


def oklab_from(input: VectorLike, input_to_lms: ArrayFloat,
               out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """
    Converts a color to OKLab given its space's matrix into LMS.

    The cube root is the real cube root, defined for negative LMS values
    (out-of-gamut inputs routinely produce them).
    """
    vec = as_vector(input)
    return _oklab_from(vec, as_matrix(input_to_lms), LMS_TO_OKLAB_M, out_buffer(out))


def is_rgb_in_gamut(lrgb: VectorLike, ep: float = GAMUT_EPSILON) -> bool:
    """True if every channel of the (linear) RGB vector lies in [-ep, 1 + ep]."""
    return bool(_is_rgb_in_gamut(as_vector(lrgb), float(ep)))


def clamped_rgb(rgb: VectorLike, out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """Clamps the first 3 channels of *rgb* to [0, 1]."""
    return _clamp01_3(as_vector(rgb), out_buffer(out))

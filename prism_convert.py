# -*- coding: utf-8 -*-
"""
Prism: Perceptual color conversion and gamut mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Conversion Router
=================
Routes a color vector between any two ``ColorSpace`` descriptors.

Route, in order:
    [from] -(to_base)-> [from base] -> hub -> [to base] -(from_base)-> [to]

The hub is XYZ D65.  OKLab gets two fast paths that bypass XYZ: spaces that
carry LMS matrices go straight to and from OKLab through a single matrix and
the cube/cube-root step.  D50 spaces carry a ``ChromaticAdaptation`` that is
applied on the way into and out of the hub.

All work happens in the caller's ``out`` buffer; nothing is allocated when
``out`` is supplied.
"""

import math
from typing import Optional

from prism_errors import (
    InvalidBaseLinkError,
    MissingSpaceError,
    MissingTransformError,
    UnsupportedDepthError,
)
from prism_kernels import (
    ArrayFloat,
    VectorLike,
    _copy3,
    _oklab_from,
    _oklab_to,
    _transform3,
    as_vector,
    out_buffer,
)
from prism_matrices import LMS_TO_OKLAB_M, OKLAB_TO_LMS_M
from prism_spaces import XYZ, ColorSpace

__all__ = ["convert", "delta_e_ok"]


def convert(input: VectorLike, from_space: ColorSpace, to_space: ColorSpace,
            out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """
    Converts a color from one space to another.

    Args:
        input: Source coordinates (3 components, optionally alpha as a 4th).
        from_space: Space of *input*.
        to_space: Space to convert into.
        out: Optional output buffer; may be *input* itself. Alpha is copied
            through when both *input* and *out* have a 4th slot.

    Returns:
        *out* holding the converted coordinates.

    Raises:
        MissingSpaceError: If either space is None.
        UnsupportedDepthError: If a space derives from a derived space.
        MissingTransformError: If no matrix path joins the two spaces.
        InvalidBaseLinkError: If a needed base transform is missing.
    """
    if from_space is None:
        raise MissingSpaceError("convert() requires a from_space")
    if to_space is None:
        raise MissingSpaceError("convert() requires a to_space")

    vec = as_vector(input)
    out = out_buffer(out, 4 if vec.shape[0] > 3 else 3)

    from_base_space = from_space.base if from_space.base is not None else from_space
    to_base_space = to_space.base if to_space.base is not None else to_space
    # Checked before out is touched.
    if from_space is not to_space and (
        from_base_space.base is not None or to_base_space.base is not None
    ):
        raise UnsupportedDepthError("only a base of depth 1 is supported")

    _copy3(vec, out)
    if vec.shape[0] > 3 and out.shape[0] > 3:
        out[3] = vec[3]

    if from_space is to_space:
        return out

    # e.g. OKLCH -> OKLab, sRGB -> sRGB-linear
    if from_space is not from_base_space:
        if from_space.to_base is None:
            raise InvalidBaseLinkError(
                f"could not transform {from_space.id} to its base {from_space.base.id}"
            )
        from_space.to_base(out, out)

    if from_base_space is not to_base_space:
        _route(out, from_base_space, to_base_space)

    # e.g. OKLab -> OKLCH, sRGB-linear -> sRGB
    if to_base_space is not to_space:
        if to_space.from_base is None:
            raise InvalidBaseLinkError(
                f"could not transform {to_base_space.id} to {to_space.id}"
            )
        to_space.from_base(out, out)

    return out


def _route(out: ArrayFloat, src: ColorSpace, dst: ColorSpace) -> None:
    """In-place conversion between two base-level spaces."""
    xyz_in = src.id == "xyz"
    xyz_out = dst.id == "xyz"
    through_xyz = False
    output_oklab = False

    if src.id == "oklab":
        mat = dst.from_lms_M
        if mat is None:
            # No direct LMS path: land in XYZ and take the XYZ leg.
            mat = XYZ.from_lms_M
            through_xyz = True
            xyz_in = True
        _oklab_to(out, OKLAB_TO_LMS_M, mat, out)
    elif dst.id == "oklab":
        if src.to_lms_M is None:
            through_xyz = True
            output_oklab = True
        else:
            _oklab_from(out, src.to_lms_M, LMS_TO_OKLAB_M, out)
    else:
        through_xyz = True

    if not through_xyz:
        return

    if not xyz_in:
        if src.to_xyz_M is None:
            raise MissingTransformError(f"no to_xyz_M on {src.id}")
        _transform3(out, src.to_xyz_M, out)

    if src.adapt is not None:
        _transform3(out, src.adapt.to_hub, out)
    if dst.adapt is not None:
        _transform3(out, dst.adapt.from_hub, out)

    if not xyz_out:
        if output_oklab:
            _oklab_from(out, XYZ.to_lms_M, LMS_TO_OKLAB_M, out)
        elif dst.from_xyz_M is not None:
            _transform3(out, dst.from_xyz_M, out)
        else:
            raise MissingTransformError(f"no from_xyz_M on {dst.id}")


def delta_e_ok(oklab1: VectorLike, oklab2: VectorLike) -> float:
    """Euclidean distance between two OKLab colors (deltaE OK)."""
    dl = oklab1[0] - oklab2[0]
    da = oklab1[1] - oklab2[1]
    db = oklab1[2] - oklab2[2]
    return math.sqrt(dl * dl + da * da + db * db)

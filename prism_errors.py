# -*- coding: utf-8 -*-
"""
Prism: Perceptual color conversion and gamut mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Module: prism_errors.py: exception taxonomy.

Every error here is a programmer or data error raised synchronously at the
call that violates a contract. None of them is transient, so nothing in
Prism retries.
"""

__all__ = [
    "ColorError",
    "MissingSpaceError",
    "UnsupportedDepthError",
    "MissingTransformError",
    "InvalidBaseLinkError",
    "ColorParseError",
]


class ColorError(ValueError):
    """Base class for all Prism errors."""
    pass


class MissingSpaceError(ColorError):
    """A required color space or gamut argument was not provided."""
    pass


class UnsupportedDepthError(ColorError):
    """A space derives from a base that itself has a base (depth > 1)."""
    pass


class MissingTransformError(ColorError):
    """Hub routing needs a matrix the space does not define."""
    pass


class InvalidBaseLinkError(ColorError):
    """A derived space is missing its to_base / from_base transform."""
    pass


class ColorParseError(ColorError):
    """A CSS color string could not be parsed or names an unknown space."""
    pass

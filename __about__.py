# -*- coding: utf-8 -*-
# Prism: Perceptual color conversion and gamut mapping
#
# Copyright (c) 2026 opticsWolf
#
# SPDX-License-Identifier: LGPL-3.0-or-later

"""
Release metadata for Prism.

Kept free of numerical imports so packaging and documentation tooling can
read it without compiling the Numba kernels.
"""

from importlib import metadata
from typing import Final

__title__: Final[str] = "Prism"
__summary__: Final[str] = "Color space router and OKLab gamut mapper"
__description__: Final[str] = (
    "Allocation-free color conversion between XYZ, OKLab and RGB spaces, "
    "with cusp-based OKLCH gamut mapping."
)
__version__: Final[str] = "0.1.0"
__version_info__: Final[tuple[int, ...]] = tuple(int(part) for part in __version__.split("."))
__author__: Final[str] = "opticsWolf"
__license__: Final[str] = "LGPL-3.0-or-later"
__copyright__: Final[str] = "Copyright (c) 2026 opticsWolf"

# Distributions whose versions change numerical results.
NUMERICAL_STACK: Final[tuple[str, ...]] = ("numpy", "numba", "scipy")


def metadata_summary(with_stack: bool = False) -> dict[str, str]:
    """
    Project metadata as a flat dict of strings.

    With *with_stack*, the installed versions of ``NUMERICAL_STACK`` are
    added under ``"<name>_version"`` keys; a missing distribution raises
    ``importlib.metadata.PackageNotFoundError``.
    """
    summary = {
        "title": __title__,
        "summary": __summary__,
        "version": __version__,
        "author": __author__,
        "license": __license__,
        "copyright": __copyright__,
    }
    if with_stack:
        for name in NUMERICAL_STACK:
            summary[f"{name}_version"] = metadata.version(name)
    return summary

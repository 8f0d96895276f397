# -*- coding: utf-8 -*-
"""
Prism: Perceptual color conversion and gamut mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

Built-in space and gamut registry, with lookup by id.
"""

from typing import Dict, Final, Optional, Tuple

from prism_okhsx import OKHSL, OKHSV
from prism_spaces import (
    A98RGB,
    OKLCH,
    XYZ,
    XYZD50,
    A98RGBGamut,
    A98RGBLinear,
    ColorGamut,
    ColorSpace,
    DisplayP3,
    DisplayP3Gamut,
    DisplayP3Linear,
    OKLab,
    ProPhotoRGB,
    ProPhotoRGBLinear,
    Rec2020,
    Rec2020Gamut,
    Rec2020Linear,
    sRGB,
    sRGBGamut,
    sRGBLinear,
)

__all__ = [
    "list_color_spaces",
    "list_color_gamuts",
    "find_color_space",
    "find_color_gamut",
]

_COLOR_SPACES: Final[Tuple[ColorSpace, ...]] = (
    XYZ,  # D65
    XYZD50,
    OKLab,
    OKLCH,
    OKHSV,
    OKHSL,
    sRGB,
    sRGBLinear,
    DisplayP3,
    DisplayP3Linear,
    Rec2020,
    Rec2020Linear,
    A98RGB,
    A98RGBLinear,
    ProPhotoRGB,
    ProPhotoRGBLinear,
)

_COLOR_GAMUTS: Final[Tuple[ColorGamut, ...]] = (
    sRGBGamut,
    DisplayP3Gamut,
    Rec2020Gamut,
    A98RGBGamut,
)

_SPACES_BY_ID: Final[Dict[str, ColorSpace]] = {
    space.validate().id: space for space in _COLOR_SPACES
}
_GAMUTS_BY_ID: Final[Dict[str, ColorGamut]] = {gamut.id: gamut for gamut in _COLOR_GAMUTS}


def list_color_spaces() -> Tuple[ColorSpace, ...]:
    """All built-in color spaces, hub spaces first."""
    return _COLOR_SPACES


def list_color_gamuts() -> Tuple[ColorGamut, ...]:
    """All built-in gamuts, sRGB first."""
    return _COLOR_GAMUTS


def find_color_space(id: str) -> Optional[ColorSpace]:
    """Looks up a built-in space by (case-insensitive) id; None if unknown."""
    return _SPACES_BY_ID.get(id.strip().lower())


def find_color_gamut(id: str) -> Optional[ColorGamut]:
    """Looks up a built-in gamut by (case-insensitive) id; None if unknown."""
    return _GAMUTS_BY_ID.get(id.strip().lower())

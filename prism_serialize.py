# -*- coding: utf-8 -*-
"""
Prism: Perceptual color conversion and gamut mapping
Copyright (c) 2026 opticsWolf

SPDX-License-Identifier: LGPL-3.0-or-later

CSS Color Strings
=================
Reads and writes the CSS color syntaxes that map onto the built-in spaces:

* ``#rgb``, ``#rgba``, ``#rrggbb``, ``#rrggbbaa``
* ``rgb()`` / ``rgba()``, legacy comma and modern space syntax
* ``oklab()`` / ``oklch()``
* ``color(<space-id> x y z [/ alpha])``

Percentages divide by 100; ``rgb()`` channels without a percent sign are
bytes (0..255).  The keyword ``none`` reads as 0.  An alpha of exactly 1 is
dropped, so opaque colors parse to three coordinates.

Serialization writes OKLab/OKLCH lightness as a percentage, which older
browsers need for those functions.
"""

import re
from typing import Final, List, NamedTuple, Optional, Tuple

from prism_convert import convert
from prism_errors import ColorParseError, MissingSpaceError
from prism_kernels import ArrayFloat, VectorLike, _copy3, as_vector, out_buffer, vec3
from prism_registry import find_color_space
from prism_spaces import ColorSpace
from prism_utils import float_to_byte

__all__ = ["ParsedColor", "serialize", "deserialize", "parse"]

_FUNCTION_RE: Final[re.Pattern] = re.compile(
    r"^(rgba?|oklab|oklch|color)\s*\((.*)\)$", re.IGNORECASE | re.DOTALL
)
_NUMBER_RE: Final[re.Pattern] = re.compile(
    r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?%?$"
)
_HEX_DIGITS_RE: Final[re.Pattern] = re.compile(r"^[0-9a-fA-F]+$")


class ParsedColor(NamedTuple):
    """Space id and raw coordinates (3, or 4 with alpha) of a CSS color."""
    id: str
    coords: Tuple[float, ...]


# =============================================================================
# 1. SERIALIZE
# =============================================================================

def _format_number(value: float) -> str:
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


def serialize(input: VectorLike, input_space: ColorSpace,
              output_space: Optional[ColorSpace] = None) -> str:
    """
    Formats a color as a CSS string, converting to *output_space* first.

    Args:
        input: Coordinates in *input_space*, optionally with alpha.
        input_space: Space of *input*.
        output_space: Space to write; defaults to *input_space*.

    Returns:
        ``rgb(...)``/``rgba(...)`` for sRGB, ``oklab(...)``/``oklch(...)``
        for the OKLab spaces, ``color(<id> ...)`` for everything else.
    """
    if input_space is None:
        raise MissingSpaceError("serialize() requires an input space")
    if output_space is None:
        output_space = input_space

    vec = as_vector(input)
    alpha = float(vec[3]) if vec.shape[0] > 3 else 1.0

    coords = vec3()
    if input_space is output_space:
        _copy3(vec, coords)
    else:
        convert(vec[:3], input_space, output_space, coords)

    space_id = output_space.id
    if space_id == "srgb":
        rgb = ", ".join(str(float_to_byte(v)) for v in coords)
        if alpha == 1.0:
            return f"rgb({rgb})"
        return f"rgba({rgb}, {_format_number(alpha)})"

    alpha_suffix = "" if alpha == 1.0 else f" / {_format_number(alpha)}"
    x, y, z = (_format_number(v) for v in coords)
    if space_id in ("oklab", "oklch"):
        return f"{space_id}({_format_number(coords[0] * 100.0)}% {y} {z}{alpha_suffix})"
    return f"color({space_id} {x} {y} {z}{alpha_suffix})"


# =============================================================================
# 2. DESERIALIZE
# =============================================================================

def _parse_value(token: str, byte_scale: bool = False) -> float:
    token = token.strip()
    if token.lower() == "none":
        return 0.0
    if not _NUMBER_RE.match(token):
        raise ColorParseError(f"invalid color component {token!r}")
    if token.endswith("%"):
        return float(token[:-1]) / 100.0
    value = float(token)
    return value / 255.0 if byte_scale else value


def _strip_alpha(coords: List[float]) -> Tuple[float, ...]:
    if len(coords) == 4 and coords[3] == 1.0:
        return tuple(coords[:3])
    return tuple(coords)


def _parse_hex(text: str) -> ParsedColor:
    digits = text[1:]
    if len(digits) in (3, 4):
        digits = "".join(ch * 2 for ch in digits)
    if len(digits) not in (6, 8) or not _HEX_DIGITS_RE.match(digits):
        raise ColorParseError(f"invalid hex color {text!r}")
    coords = [int(digits[i:i + 2], 16) / 255.0 for i in range(0, len(digits), 2)]
    return ParsedColor("srgb", _strip_alpha(coords))


def deserialize(text: str) -> ParsedColor:
    """
    Parses a CSS color string without converting it.

    Returns:
        ParsedColor with the lowercase space id and its coordinates.

    Raises:
        TypeError: If *text* is not a string.
        ColorParseError: If the string is not a supported color syntax.
    """
    if not isinstance(text, str):
        raise TypeError(f"expected a string, got {type(text).__name__}")
    text = text.strip()
    if text.startswith("#"):
        return _parse_hex(text)

    match = _FUNCTION_RE.match(text)
    if match is None:
        raise ColorParseError(f"could not parse color string {text!r}")
    fn = match.group(1).lower()
    body = match.group(2).strip()

    if fn in ("rgb", "rgba") and "," in body:
        parts = [p.strip() for p in body.split(",")]
        if len(parts) not in (3, 4):
            raise ColorParseError(f"invalid number of coordinates in {text!r}")
        coords = [_parse_value(p, byte_scale=i < 3) for i, p in enumerate(parts)]
        return ParsedColor("srgb", _strip_alpha(coords))

    main, slash, alpha = body.partition("/")
    tokens = main.split()
    if fn == "color":
        if not tokens:
            raise ColorParseError(f"missing space in {text!r}")
        space_id = tokens.pop(0).lower()
    elif fn in ("oklab", "oklch"):
        space_id = fn
    else:
        space_id = "srgb"

    if len(tokens) != 3:
        raise ColorParseError(f"invalid number of coordinates in {text!r}")
    byte_scale = space_id == "srgb" and fn != "color"
    coords = [_parse_value(t, byte_scale) for t in tokens]
    if slash:
        if not alpha.strip():
            raise ColorParseError(f"missing alpha after '/' in {text!r}")
        coords.append(_parse_value(alpha))
    return ParsedColor(space_id, _strip_alpha(coords))


# =============================================================================
# 3. PARSE
# =============================================================================

def parse(text: str, target_space: ColorSpace,
          out: Optional[ArrayFloat] = None) -> ArrayFloat:
    """
    Parses a CSS color string and converts it into *target_space*.

    Alpha other than 1 is kept as a 4th component (a 4-slot buffer is
    allocated when *out* is omitted).

    Raises:
        MissingSpaceError: If *target_space* is None.
        ColorParseError: On bad syntax or an unknown space id.
    """
    if target_space is None:
        raise MissingSpaceError("parse() requires a target space")

    parsed = deserialize(text)
    space = find_color_space(parsed.id)
    if space is None:
        raise ColorParseError(f"could not find space with the id {parsed.id!r}")

    alpha = parsed.coords[3] if len(parsed.coords) == 4 else 1.0
    out = out_buffer(out, 3 if alpha == 1.0 else 4)
    convert(parsed.coords[:3], space, target_space, out)
    if out.shape[0] > 3:
        out[3] = alpha
    return out

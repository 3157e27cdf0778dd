"""Glyph conversion: character sets and the frame to text-grid transform."""

from glyphcam.glyphs.charsets import CharacterSet
from glyphcam.glyphs.converter import (
    LUMA_DIVISOR,
    LUMA_WEIGHTS,
    GlyphCell,
    GlyphGrid,
    convert_frame,
    luminance,
    luminance_to_index,
)

__all__ = [
    "CharacterSet",
    "GlyphCell",
    "GlyphGrid",
    "LUMA_DIVISOR",
    "LUMA_WEIGHTS",
    "convert_frame",
    "luminance",
    "luminance_to_index",
]

"""Frame to glyph grid conversion.

convert_frame() is a pure function: it reads a Frame and the active
settings and returns a new immutable GlyphGrid. It is the dominant
per-frame cost of the pipeline, bounded by the target grid size because
the frame is first area-resampled down to one pixel per cell.

Pipeline:
    1. cv2.resize(..., INTER_AREA) to cols x rows (area averaging).
    2. Integer luminance per cell, weights 30/59/11, divided by their sum.
    3. index = luminance * (len(charset) - 1) // 255, clipped.
    4. Optional colour triple per cell, taken from the resampled pixel.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import cv2
import numpy as np

from glyphcam.devices.frame import Frame
from glyphcam.glyphs.charsets import CharacterSet

if TYPE_CHECKING:
    from numpy.typing import NDArray

__all__ = [
    "GlyphCell",
    "GlyphGrid",
    "LUMA_DIVISOR",
    "LUMA_WEIGHTS",
    "convert_frame",
    "luminance",
    "luminance_to_index",
]

LUMA_WEIGHTS: tuple[int, int, int] = (30, 59, 11)
"""Integer R, G, B weights approximating 0.3R + 0.59G + 0.11B."""

LUMA_DIVISOR: int = sum(LUMA_WEIGHTS)
"""Normalisation divisor; must equal the weight sum to keep 0-255 output."""

RESAMPLE_INTERPOLATION: int = cv2.INTER_AREA

Color = tuple[int, int, int]


@dataclass(frozen=True, slots=True)
class GlyphCell:
    """One character cell of a grid."""

    glyph: str
    color: Color | None = None


@dataclass(frozen=True, eq=False)
class GlyphGrid:
    """Immutable text rendering of one frame.

    Attributes:
        lines: One string per row, each ``cols`` characters long.
        indices: Character-set index per cell, shape (rows, cols). Read-only.
        colors: RGB triple per cell, shape (rows, cols, 3), or None when
            colour is disabled. Read-only.
        charset: Character set the indices refer to.
    """

    lines: tuple[str, ...]
    indices: NDArray[Any]
    colors: NDArray[Any] | None
    charset: CharacterSet

    @classmethod
    def empty(cls, charset: CharacterSet = CharacterSet.DENSE) -> GlyphGrid:
        indices = np.zeros((0, 0), dtype=np.uint8)
        indices.setflags(write=False)
        return cls((), indices, None, charset)

    @property
    def rows(self) -> int:
        return len(self.lines)

    @property
    def cols(self) -> int:
        return len(self.lines[0]) if self.lines else 0

    @property
    def is_empty(self) -> bool:
        return self.rows == 0 or self.cols == 0

    @property
    def has_color(self) -> bool:
        return self.colors is not None

    def cell(self, row: int, col: int) -> GlyphCell:
        """Return the cell at (row, col).

        Raises:
            IndexError: Coordinates outside the grid.
        """
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            raise IndexError(f"Cell ({row}, {col}) outside {self.rows}x{self.cols} grid")
        color: Color | None = None
        if self.colors is not None:
            r, g, b = (int(v) for v in self.colors[row, col])
            color = (r, g, b)
        return GlyphCell(self.lines[row][col], color)

    def iter_rows(self) -> Iterator[list[GlyphCell]]:
        """Yield each row as a list of cells."""
        for row in range(self.rows):
            yield [self.cell(row, col) for col in range(self.cols)]

    def __str__(self) -> str:
        return "\n".join(self.lines)


def luminance(rgb: NDArray[Any]) -> NDArray[np.uint8]:
    """Integer luminance (0-255) of an (..., 3) RGB uint8 array.

    Example:
        >>> luminance(np.array([[255, 255, 255], [0, 0, 0]], dtype=np.uint8))
        array([255,   0], dtype=uint8)
    """
    weights = np.asarray(LUMA_WEIGHTS, dtype=np.uint32)
    weighted = rgb.astype(np.uint32) @ weights
    return (weighted // LUMA_DIVISOR).astype(np.uint8)


def luminance_to_index(lum: NDArray[Any], levels: int) -> NDArray[np.uint8]:
    """Map 0-255 luminance linearly onto ``levels`` glyph indices.

    ``index = lum * (levels - 1) // 255``, clipped to ``[0, levels - 1]``.
    """
    if levels < 1:
        raise ValueError("Character set must contain at least one glyph")
    scaled = lum.astype(np.uint32) * (levels - 1) // 255
    return np.clip(scaled, 0, levels - 1).astype(np.uint8)


def convert_frame(
    frame: Frame,
    rows: int,
    cols: int,
    charset: CharacterSet,
    color_enabled: bool = False,
) -> GlyphGrid:
    """Convert a frame into a ``rows`` x ``cols`` glyph grid.

    Args:
        frame: Source image (RGB or grayscale uint8).
        rows: Target grid height in cells.
        cols: Target grid width in cells.
        charset: Palette to draw with.
        color_enabled: Attach the sampled RGB colour to every cell.

    Returns:
        A new GlyphGrid. Empty if ``rows`` or ``cols`` is zero or negative.

    Raises:
        FrameFormatError: The frame's buffer does not match its geometry.

    Example:
        >>> white = Frame.from_array(np.full((480, 640, 3), 255, dtype=np.uint8))
        >>> grid = convert_frame(white, 2, 4, CharacterSet.MINIMAL)
        >>> grid.lines
        ('████', '████')
    """
    if rows <= 0 or cols <= 0:
        return GlyphGrid.empty(charset)

    frame.validate()

    # INTER_AREA averages every source pixel under a cell; sample positions
    # never leave the frame, even when the grid is larger than the frame.
    sampled = cv2.resize(frame.pixels, (cols, rows), interpolation=RESAMPLE_INTERPOLATION)

    if sampled.ndim == 2:
        lum = sampled.astype(np.uint8)
        rgb = np.repeat(sampled[:, :, np.newaxis], 3, axis=2) if color_enabled else None
    else:
        lum = luminance(sampled)
        rgb = sampled

    indices = luminance_to_index(lum, len(charset))
    table = np.array(list(charset.glyphs))
    lines = tuple("".join(row) for row in table[indices])

    indices.setflags(write=False)
    colors: NDArray[Any] | None = None
    if color_enabled and rgb is not None:
        colors = np.ascontiguousarray(rgb, dtype=np.uint8)
        colors.setflags(write=False)

    return GlyphGrid(lines, indices, colors, charset)

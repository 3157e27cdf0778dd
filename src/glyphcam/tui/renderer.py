"""Curses renderer for glyph grids.

Draws the current GlyphGrid top-left, followed by the status line and a
key help line on the last two rows. Colour cells are quantised onto the
xterm 6x6x6 colour cube; one curses colour pair is allocated lazily per
cube entry and cached.
"""

from __future__ import annotations

import curses
from typing import TYPE_CHECKING, Any, Protocol

import numpy as np

from glyphcam.app.keys import help_text
from glyphcam.app.status import StatusInfo
from glyphcam.glyphs.converter import GlyphGrid
from glyphcam.observability import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = get_logger(__name__)

__all__ = [
    "CursesPalette",
    "CursesRenderer",
    "Palette",
    "STATUS_ROWS",
    "cube_index",
]

STATUS_ROWS = 2
"""Rows reserved under the grid: status line and key help."""

_CUBE_BASE = 16
_CUBE_LEVELS = 6


def cube_index(colors: NDArray[Any]) -> NDArray[np.int16]:
    """Map (..., 3) RGB values onto xterm-256 colour cube indices (16-231).

    Example:
        >>> cube_index(np.array([[255, 0, 0]], dtype=np.uint8))
        array([196], dtype=int16)
    """
    levels = (colors.astype(np.int16) * (_CUBE_LEVELS - 1) + 127) // 255
    r, g, b = levels[..., 0], levels[..., 1], levels[..., 2]
    return (_CUBE_BASE + 36 * r + 6 * g + b).astype(np.int16)


class Palette(Protocol):  # pragma: no cover
    """Source of curses attributes for colour cube entries."""

    @property
    def enabled(self) -> bool:
        """False when the terminal cannot show 256 colours."""
        ...

    def attr(self, color: int) -> int:
        """Attribute drawing in xterm colour ``color``."""
        ...


class CursesPalette:
    """Lazily allocated curses colour pairs, one per cube colour."""

    def __init__(self) -> None:
        self._pairs: dict[int, int] = {}
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def setup(self) -> None:
        """Initialise curses colours. Call once inside curses.wrapper."""
        if not curses.has_colors():
            logger.warning("Terminal has no colour support")
            return
        curses.start_color()
        curses.use_default_colors()
        self._enabled = curses.COLORS >= 256 and curses.COLOR_PAIRS > 216
        if not self._enabled:
            logger.warning(
                "Terminal lacks 256 colours, colour mode disabled",
                colors=curses.COLORS,
                pairs=curses.COLOR_PAIRS,
            )

    def attr(self, color: int) -> int:
        pair = self._pairs.get(color)
        if pair is None:
            pair = len(self._pairs) + 1
            curses.init_pair(pair, color, -1)
            self._pairs[color] = pair
        return curses.color_pair(pair)


class CursesRenderer:
    """Renderer painting onto a curses window.

    Args:
        screen: The curses window, normally ``stdscr``.
        palette: Colour allocation; a CursesPalette if None.
    """

    def __init__(self, screen: Any, palette: Palette | None = None) -> None:
        self._screen = screen
        self._palette: Palette = palette or CursesPalette()

    def setup(self) -> None:
        """Configure the terminal: hidden cursor, non-blocking keys, colours."""
        curses.curs_set(0)
        self._screen.nodelay(True)
        self._screen.keypad(True)
        if isinstance(self._palette, CursesPalette):
            self._palette.setup()

    def drawable_size(self) -> tuple[int, int]:
        max_y, max_x = self._screen.getmaxyx()
        # The bottom-right cell cannot be written without curses.error.
        return max(0, max_y - STATUS_ROWS), max(0, max_x - 1)

    def draw(self, grid: GlyphGrid, status: StatusInfo) -> None:
        screen = self._screen
        rows, cols = self.drawable_size()
        screen.erase()

        height = min(grid.rows, rows)
        width = min(grid.cols, cols)
        if grid.colors is not None and self._palette.enabled:
            self._draw_color(grid, height, width)
        else:
            for y in range(height):
                self._put(y, 0, grid.lines[y][:width])

        self._put(rows, 0, status.format()[:cols], curses.A_REVERSE)
        self._put(rows + 1, 0, help_text()[:cols])
        screen.refresh()

    def _draw_color(self, grid: GlyphGrid, height: int, width: int) -> None:
        assert grid.colors is not None
        cube = cube_index(grid.colors[:height, :width])
        for y in range(height):
            line = grid.lines[y]
            row = cube[y]
            start = 0
            # Consecutive cells sharing a colour are drawn with one addstr.
            for x in range(1, width + 1):
                if x == width or row[x] != row[start]:
                    attr = self._palette.attr(int(row[start]))
                    self._put(y, start, line[start:x], attr)
                    start = x

    def _put(self, y: int, x: int, text: str, attr: int = 0) -> None:
        if not text:
            return
        try:
            self._screen.addstr(y, x, text, attr)
        except curses.error:
            # Terminal shrank between getmaxyx() and the write.
            logger.debug("Write outside window skipped", y=y, x=x)

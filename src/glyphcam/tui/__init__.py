"""Terminal user interface: curses renderer and keyboard input."""

from glyphcam.tui.input import CursesInput
from glyphcam.tui.renderer import CursesPalette, CursesRenderer, cube_index
from glyphcam.tui.screen import run_tui

__all__ = [
    "CursesInput",
    "CursesPalette",
    "CursesRenderer",
    "cube_index",
    "run_tui",
]

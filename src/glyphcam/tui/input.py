"""Keyboard input from a curses window."""

from __future__ import annotations

import curses
from collections.abc import Callable
from typing import Any

from glyphcam.app.events import ControlEvent, Event, ResizeEvent
from glyphcam.app.keys import KeyMap

__all__ = ["CursesInput", "MAX_KEYS_PER_POLL"]

MAX_KEYS_PER_POLL = 64
"""Upper bound on keys read in one poll, so key repeat cannot starve frames."""


class CursesInput:
    """Non-blocking key reader producing router events.

    The window must be in ``nodelay`` mode so ``getch`` returns -1 when no
    key is waiting.

    Args:
        screen: curses window to read from.
        drawable_size: Called on KEY_RESIZE to get the new grid area.
        keymap: Key bindings; defaults if None.
    """

    def __init__(
        self,
        screen: Any,
        drawable_size: Callable[[], tuple[int, int]],
        keymap: KeyMap | None = None,
    ) -> None:
        self._screen = screen
        self._drawable_size = drawable_size
        self._keymap = keymap or KeyMap()

    def poll(self) -> list[Event]:
        events: list[Event] = []
        for _ in range(MAX_KEYS_PER_POLL):
            key = self._screen.getch()
            if key == -1:
                break
            if key == curses.KEY_RESIZE:
                rows, cols = self._drawable_size()
                events.append(ResizeEvent(rows, cols))
                continue
            command = self._keymap.lookup(key)
            if command is not None:
                events.append(ControlEvent(command))
        return events

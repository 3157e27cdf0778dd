"""Key to command mapping."""

from __future__ import annotations

from collections.abc import Mapping

from glyphcam.app.events import Command

__all__ = ["DEFAULT_KEYMAP", "KeyMap", "help_text"]

ESCAPE = 27

DEFAULT_KEYMAP: Mapping[str, Command] = {
    " ": Command.TOGGLE_CAMERA,
    "c": Command.TOGGLE_COLOR,
    "s": Command.NEXT_CHARACTER_SET,
    "a": Command.PREVIOUS_CHARACTER_SET,
    "+": Command.INCREASE_SCALE,
    "=": Command.INCREASE_SCALE,
    "-": Command.DECREASE_SCALE,
    "n": Command.NEXT_CAMERA,
    "p": Command.PREVIOUS_CAMERA,
    "f": Command.FORCE_STOP_CAMERA,
    "r": Command.RESET_CAMERA,
    "q": Command.QUIT,
    chr(ESCAPE): Command.QUIT,
}


class KeyMap:
    """Translate raw key codes into commands.

    Letters match case-insensitively. Unmapped keys return None.
    """

    def __init__(self, bindings: Mapping[str, Command] | None = None) -> None:
        self._bindings = dict(DEFAULT_KEYMAP if bindings is None else bindings)

    def lookup(self, key: int | str) -> Command | None:
        """Return the command bound to ``key`` (a curses key code or char).

        Example:
            >>> KeyMap().lookup(ord("Q"))
            <Command.QUIT: 'quit'>
        """
        if isinstance(key, int):
            if key < 0 or key > 0x10FFFF:
                return None
            key = chr(key)
        command = self._bindings.get(key)
        if command is None and len(key) == 1:
            command = self._bindings.get(key.lower())
        return command


def help_text() -> str:
    """One-line key summary shown under the status line."""
    return (
        "SPACE camera | c colour | s/a charset | +/- scale | "
        "n/p device | f force stop | r reset | q quit"
    )

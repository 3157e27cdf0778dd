"""Run a session inside curses."""

from __future__ import annotations

import curses
from typing import Any

from glyphcam.app.config import AppConfig
from glyphcam.app.runtime import build_session, run_session
from glyphcam.drivers.cameras import CameraDriver
from glyphcam.tui.input import CursesInput
from glyphcam.tui.renderer import CursesRenderer

__all__ = ["run_tui"]


def _main(stdscr: Any, config: AppConfig, driver: CameraDriver) -> None:
    renderer = CursesRenderer(stdscr)
    renderer.setup()
    input_source = CursesInput(stdscr, renderer.drawable_size)
    session = build_session(config, driver, renderer=renderer, input_source=input_source)
    run_session(session)


def run_tui(config: AppConfig, driver: CameraDriver) -> None:
    """Take over the terminal and run until the user quits.

    curses.wrapper restores the terminal on every exit path, including
    KeyboardInterrupt, which is re-raised to the caller.
    """
    curses.wrapper(_main, config, driver)

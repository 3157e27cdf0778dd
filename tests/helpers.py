"""Test helper functions and fakes for glyphcam.

Provides protocol compliance verification, a controllable clock, and
recording stand-ins for the renderer and input boundaries.

Example:
    from tests.helpers import FakeClock, assert_implements_protocol
    from glyphcam.drivers.cameras import CameraDriver

    def test_my_driver_implements_protocol():
        assert_implements_protocol(MyDriver(), CameraDriver)
"""

from __future__ import annotations

from typing import Any, Protocol

import numpy as np

from glyphcam.app.events import Event
from glyphcam.app.status import StatusInfo
from glyphcam.devices.frame import Frame
from glyphcam.glyphs.converter import GlyphGrid


def assert_implements_protocol(instance: object, protocol: type[Protocol]) -> None:
    """Assert that an instance implements a Protocol interface.

    Uses isinstance() (the Protocol must be @runtime_checkable) and lists
    the missing members on failure.

    Args:
        instance: Object to check.
        protocol: Runtime-checkable Protocol class.

    Raises:
        AssertionError: If the instance does not implement the protocol.

    Example:
        >>> assert_implements_protocol(DigitalTwinCameraDriver(), CameraDriver)
    """
    if isinstance(instance, protocol):
        return
    object_attrs = set(dir(object))
    protocol_members = {
        attr
        for attr in set(dir(protocol)) - object_attrs
        if not attr.startswith("_")
    }
    missing = sorted(m for m in protocol_members if not hasattr(instance, m))
    missing_str = ", ".join(missing) if missing else "unknown"
    raise AssertionError(
        f"{type(instance).__name__} does not implement {protocol.__name__}. "
        f"Missing: {missing_str}"
    )


class FakeClock:
    """Clock whose time only moves when told to.

    ``sleep`` advances time instead of blocking and records each duration.
    """

    def __init__(self, start: float = 100.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds > 0:
            self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingRenderer:
    """Renderer that keeps every drawn grid and status."""

    def __init__(self, size: tuple[int, int] = (24, 80)) -> None:
        self.size = size
        self.draws: list[tuple[GlyphGrid, StatusInfo]] = []

    def draw(self, grid: GlyphGrid, status: StatusInfo) -> None:
        self.draws.append((grid, status))

    def drawable_size(self) -> tuple[int, int]:
        return self.size

    @property
    def last_grid(self) -> GlyphGrid:
        return self.draws[-1][0]

    @property
    def last_status(self) -> StatusInfo:
        return self.draws[-1][1]


class ScriptedInput:
    """Input source returning queued batches of events, one batch per poll."""

    def __init__(self) -> None:
        self.batches: list[list[Event]] = []
        self.polls = 0

    def push(self, *events: Event) -> None:
        self.batches.append(list(events))

    def poll(self) -> list[Event]:
        self.polls += 1
        if self.batches:
            return self.batches.pop(0)
        return []


class FakeScreen:
    """Minimal curses window recording writes."""

    def __init__(self, rows: int = 24, cols: int = 80, keys: list[int] | None = None) -> None:
        self.rows = rows
        self.cols = cols
        self.keys = list(keys or [])
        self.writes: list[tuple[int, int, str, int]] = []
        self.refreshes = 0
        self.erases = 0

    def getmaxyx(self) -> tuple[int, int]:
        return self.rows, self.cols

    def getch(self) -> int:
        return self.keys.pop(0) if self.keys else -1

    def addstr(self, y: int, x: int, text: str, attr: int = 0) -> None:
        self.writes.append((y, x, text, attr))

    def erase(self) -> None:
        self.erases += 1
        self.writes.clear()

    def refresh(self) -> None:
        self.refreshes += 1

    def nodelay(self, flag: bool) -> None:
        pass

    def keypad(self, flag: bool) -> None:
        pass

    def text_at(self, y: int) -> str:
        return "".join(text for row, _, text, _ in self.writes if row == y)


def solid_pixels(value: Any, width: int = 640, height: int = 480) -> np.ndarray:
    """RGB uint8 array filled with one colour (int or RGB triple)."""
    pixels = np.empty((height, width, 3), dtype=np.uint8)
    pixels[:, :] = value
    return pixels


def solid_frame(value: Any, width: int = 640, height: int = 480, sequence: int = 0) -> Frame:
    return Frame.from_array(solid_pixels(value, width, height), sequence=sequence)

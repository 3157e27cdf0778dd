"""Injectable time source.

The capture thread and the event router both measure intervals (frame-skip
threshold, tick, render interval). Taking the clock as a dependency lets
tests drive time explicitly instead of sleeping.

Example:
    class FakeClock:
        def __init__(self):
            self.now = 0.0

        def monotonic(self) -> float:
            return self.now

        def sleep(self, seconds: float) -> None:
            self.now += seconds

    source = CaptureSource(driver, clock=FakeClock())
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):  # pragma: no cover
    """Protocol for time functions (injectable for testing)."""

    def monotonic(self) -> float:
        """Return monotonic time in seconds.

        Only differences between two calls are meaningful.
        """
        ...

    def sleep(self, seconds: float) -> None:
        """Suspend the calling thread for ``seconds``.

        Zero or negative values return immediately.
        """
        ...


class SystemClock:
    """Default clock using the time module."""

    def monotonic(self) -> float:
        """Return ``time.monotonic()``.

        Unaffected by wall-clock adjustments, so frame and render intervals
        stay correct across NTP corrections.
        """
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        """Sleep via ``time.sleep``; non-positive durations return at once."""
        if seconds > 0:
            time.sleep(seconds)

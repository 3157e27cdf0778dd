"""Frame pipeline statistics.

Tracks what happens to frames between the capture device and the screen:
- Frames received by the router
- Frames coalesced (discarded because a newer one arrived in the same tick)
- Frames rejected (malformed buffers)
- Conversion timing (avg, p95) over a rolling window
- Render rate (FPS) over a sliding time window

Thread-safe: the capture thread records skips while the router records
conversions.

Example:
    stats = FrameStats()
    stats.record_received(3)
    stats.record_coalesced(2)
    stats.record_render(duration_ms=4.2)

    summary = stats.get_summary()
    print(f"{summary.render_fps:.1f} FPS, p95 {summary.p95_convert_ms:.1f}ms")
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

# =============================================================================
# Constants
# =============================================================================

#: Number of conversion durations kept for avg/p95.
DEFAULT_STATS_WINDOW_SIZE: int = 300

#: Renders older than this many seconds do not count toward render_fps.
DEFAULT_FPS_WINDOW_S: float = 2.0


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class FrameStatsSummary:
    """Snapshot of frame pipeline statistics.

    Attributes:
        frames_received: Frames drained from the event queue.
        frames_coalesced: Frames discarded in favour of a newer one.
        frames_rejected: Malformed frames dropped by the converter.
        capture_skipped: Device frames dropped by the frame-skip threshold.
        renders: GlyphGrids produced.
        render_fps: Renders per second over the FPS window.
        avg_convert_ms: Mean conversion time over the rolling window.
        p95_convert_ms: 95th percentile conversion time.
        max_convert_ms: Slowest conversion in the window.
    """

    frames_received: int
    frames_coalesced: int
    frames_rejected: int
    capture_skipped: int
    renders: int
    render_fps: float
    avg_convert_ms: float
    p95_convert_ms: float
    max_convert_ms: float

    def to_dict(self) -> dict[str, Any]:
        """Return the summary as a plain dict for structured logging."""
        return {
            "frames_received": self.frames_received,
            "frames_coalesced": self.frames_coalesced,
            "frames_rejected": self.frames_rejected,
            "capture_skipped": self.capture_skipped,
            "renders": self.renders,
            "render_fps": round(self.render_fps, 2),
            "avg_convert_ms": round(self.avg_convert_ms, 3),
            "p95_convert_ms": round(self.p95_convert_ms, 3),
            "max_convert_ms": round(self.max_convert_ms, 3),
        }


class FrameStats:
    """Thread-safe collector for frame pipeline statistics.

    Conversion durations live in a bounded deque, so memory use is constant
    however long the session runs. The time source is injectable for
    deterministic tests.
    """

    def __init__(
        self,
        window_size: int = DEFAULT_STATS_WINDOW_SIZE,
        fps_window_s: float = DEFAULT_FPS_WINDOW_S,
        time_source: Callable[[], float] | None = None,
    ) -> None:
        """Create an empty collector.

        Args:
            window_size: Conversion durations kept for avg/p95.
            fps_window_s: Sliding window, in seconds, used for render_fps.
            time_source: Monotonic time function; defaults to
                ``time.monotonic``.

        Example:
            >>> clock = FakeClock()
            >>> stats = FrameStats(time_source=clock.monotonic)
        """
        self._now = time_source or time.monotonic
        self._fps_window_s = fps_window_s
        self._durations: deque[float] = deque(maxlen=window_size)
        self._render_times: deque[float] = deque()
        self._frames_received = 0
        self._frames_coalesced = 0
        self._frames_rejected = 0
        self._capture_skipped = 0
        self._renders = 0
        self._lock = threading.Lock()

    def record_received(self, count: int = 1) -> None:
        """Count frames drained from the event queue."""
        with self._lock:
            self._frames_received += count

    def record_coalesced(self, count: int = 1) -> None:
        """Count frames discarded because a newer frame superseded them."""
        with self._lock:
            self._frames_coalesced += count

    def record_rejected(self, count: int = 1) -> None:
        """Count malformed frames dropped before conversion."""
        with self._lock:
            self._frames_rejected += count

    def record_capture_skip(self, count: int = 1) -> None:
        """Count device frames dropped by the capture frame-skip threshold."""
        with self._lock:
            self._capture_skipped += count

    def record_render(self, duration_ms: float) -> None:
        """Record one frame-to-grid conversion.

        Args:
            duration_ms: Wall time spent converting, in milliseconds.
        """
        now = self._now()
        with self._lock:
            self._renders += 1
            self._durations.append(duration_ms)
            self._render_times.append(now)
            self._prune(now)

    def _prune(self, now: float) -> None:
        """Drop render timestamps outside the FPS window (lock held)."""
        cutoff = now - self._fps_window_s
        while self._render_times and self._render_times[0] < cutoff:
            self._render_times.popleft()

    def get_summary(self) -> FrameStatsSummary:
        """Compute a consistent snapshot of the current statistics.

        Returns:
            FrameStatsSummary. Timing fields are 0.0 before the first render.
        """
        now = self._now()
        with self._lock:
            self._prune(now)
            durations = sorted(self._durations)
            render_count = len(self._render_times)
            oldest = self._render_times[0] if self._render_times else now
            summary_counts = (
                self._frames_received,
                self._frames_coalesced,
                self._frames_rejected,
                self._capture_skipped,
                self._renders,
            )

        span = now - oldest
        if render_count >= 2 and span > 0:
            render_fps = (render_count - 1) / span
        else:
            render_fps = float(render_count) / self._fps_window_s

        received, coalesced, rejected, skipped, renders = summary_counts
        return FrameStatsSummary(
            frames_received=received,
            frames_coalesced=coalesced,
            frames_rejected=rejected,
            capture_skipped=skipped,
            renders=renders,
            render_fps=render_fps,
            avg_convert_ms=sum(durations) / len(durations) if durations else 0.0,
            p95_convert_ms=_percentile(durations, 95),
            max_convert_ms=durations[-1] if durations else 0.0,
        )

    def reset(self) -> None:
        """Clear all counters and windows."""
        with self._lock:
            self._durations.clear()
            self._render_times.clear()
            self._frames_received = 0
            self._frames_coalesced = 0
            self._frames_rejected = 0
            self._capture_skipped = 0
            self._renders = 0


def _percentile(sorted_data: list[float], p: float) -> float:
    """Linear-interpolated percentile of already sorted data.

    Args:
        sorted_data: Ascending values. Empty input yields 0.0.
        p: Percentile in [0, 100].

    Raises:
        ValueError: If p is outside [0, 100].

    Example:
        >>> _percentile([1.0, 2.0, 3.0, 4.0], 50)
        2.5
    """
    if not 0 <= p <= 100:
        raise ValueError(f"Percentile must be between 0 and 100, got {p}")

    if not sorted_data:
        return 0.0
    if len(sorted_data) == 1:
        return sorted_data[0]

    k = (len(sorted_data) - 1) * (p / 100.0)
    f = int(k)
    c = min(f + 1, len(sorted_data) - 1)
    return sorted_data[f] + (sorted_data[c] - sorted_data[f]) * (k - f)

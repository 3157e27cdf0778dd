"""Event router: the single-threaded control loop.

The router merges three sources into one loop:

- user input, polled from an InputSource each iteration,
- capture frames, control reports and faults, posted to a thread-safe queue
  from other threads,
- the tick, realised as the bounded wait on that queue.

Each iteration drains everything available, applies every control event
in arrival order, keeps only the newest frame in a single-slot buffer and
converts it when the render interval has elapsed. Hardware calls are
never made here; camera requests go to the DeviceStateController's
fire-and-report API and their outcome comes back as a DeviceEvent.

Example:
    router = EventRouter(controller, settings, renderer, input_source)
    source.set_sinks(on_frame=router.post_frame, on_error=router.post_fault)
    controller.set_listener(router.post_device_result)
    router.run()
"""

from __future__ import annotations

import queue
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from glyphcam.app.events import (
    CameraFaultEvent,
    Command,
    ControlEvent,
    DeviceEvent,
    Event,
    FrameEvent,
    ResizeEvent,
    is_control,
)
from glyphcam.app.settings import Settings, target_grid
from glyphcam.app.slot import LatestFrameSlot
from glyphcam.app.status import StatusInfo
from glyphcam.devices.clock import Clock, SystemClock
from glyphcam.devices.controller import (
    CameraState,
    DeviceStateController,
    Operation,
    TransitionResult,
)
from glyphcam.devices.frame import Frame, FrameFormatError
from glyphcam.drivers.cameras import CaptureError
from glyphcam.glyphs.converter import GlyphGrid, convert_frame
from glyphcam.observability import FrameStats, get_logger

logger = get_logger(__name__)

__all__ = [
    "DEFAULT_RENDER_INTERVAL_S",
    "DEFAULT_TICK_INTERVAL_S",
    "EventRouter",
    "InputSource",
    "NullInput",
    "NullRenderer",
    "Renderer",
]

DEFAULT_TICK_INTERVAL_S: float = 0.016
"""Longest the loop waits for an event before running an iteration."""

DEFAULT_RENDER_INTERVAL_S: float = 1 / 30
"""Minimum time between two frame conversions."""

_CLEARING_OPERATIONS = (Operation.STOP, Operation.FORCE_STOP, Operation.RESET)


@runtime_checkable
class Renderer(Protocol):  # pragma: no cover
    """Protocol for the terminal painter.

    Implement this to draw glyph grids somewhere other than curses.

    Example:
        class PrintRenderer:
            def draw(self, grid, status):
                print(grid)
                print(status.format())

            def drawable_size(self):
                return (24, 80)
    """

    def draw(self, grid: GlyphGrid, status: StatusInfo) -> None:
        """Paint ``grid`` and the status line. Synchronous and fast."""
        ...

    def drawable_size(self) -> tuple[int, int]:
        """Rows and columns available to the glyph grid."""
        ...


class NullRenderer:
    """Renderer that draws nothing (headless runs)."""

    def __init__(self, size: tuple[int, int] = (24, 80)) -> None:
        self._size = size

    def draw(self, grid: GlyphGrid, status: StatusInfo) -> None:
        pass

    def drawable_size(self) -> tuple[int, int]:
        return self._size


@runtime_checkable
class InputSource(Protocol):  # pragma: no cover
    """Protocol for non-blocking user input."""

    def poll(self) -> list[Event]:
        """Return every input event available now, without blocking."""
        ...


class NullInput:
    """Input source that never produces events."""

    def poll(self) -> list[Event]:
        return []


class EventRouter:
    """Control loop merging input, frames and device reports.

    Attributes:
        settings: Rendering settings; written only by this router.
        stats: Frame pipeline statistics.
    """

    def __init__(
        self,
        controller: DeviceStateController,
        settings: Settings,
        renderer: Renderer | None = None,
        input_source: InputSource | None = None,
        tick_interval_s: float = DEFAULT_TICK_INTERVAL_S,
        render_interval_s: float = DEFAULT_RENDER_INTERVAL_S,
        clock: Clock | None = None,
        stats: FrameStats | None = None,
        camera_indices: Sequence[int] = (),
    ) -> None:
        """Create a router. Nothing runs until step() or run().

        Args:
            controller: Owner of the camera lifecycle.
            settings: Initial rendering settings.
            renderer: Painter for grids and status; NullRenderer if None.
            input_source: Keyboard events; NullInput if None.
            tick_interval_s: Bounded wait per iteration.
            render_interval_s: Minimum time between conversions.
            clock: Time source for render pacing; SystemClock if None.
            stats: Statistics collector; a new one if None.
            camera_indices: Selectable device indices for next/previous
                camera commands.
        """
        self._controller = controller
        self.settings = settings
        self._renderer: Renderer = renderer or NullRenderer()
        self._input: InputSource = input_source or NullInput()
        self._tick_interval_s = tick_interval_s
        self._render_interval_s = render_interval_s
        self._clock = clock or SystemClock()
        self.stats = stats or FrameStats(time_source=self._clock.monotonic)
        self._camera_indices = list(camera_indices)

        self._queue: queue.Queue[Event] = queue.Queue()
        self._slot = LatestFrameSlot()
        self._grid = GlyphGrid.empty(settings.charset)
        self._last_frame: Frame | None = None
        self._last_render: float | None = None
        self._drawable = self._renderer.drawable_size()
        self._message = ""
        self._quit = False
        self._dirty = True
        self._last_status: StatusInfo | None = None

    def __repr__(self) -> str:
        return f"EventRouter(state={self._controller.state.value}, quit={self._quit})"

    # --- Posting (any thread) ---

    def post(self, event: Event) -> None:
        """Queue an event for the next iteration. Thread-safe."""
        self._queue.put(event)

    def post_frame(self, frame: Frame) -> None:
        self._queue.put(FrameEvent(frame))

    def post_command(self, command: Command) -> None:
        self._queue.put(ControlEvent(command))

    def post_fault(self, error: CaptureError) -> None:
        self._queue.put(CameraFaultEvent(str(error)))

    def post_device_result(self, result: TransitionResult) -> None:
        self._queue.put(DeviceEvent(result))

    # --- Queries ---

    @property
    def grid(self) -> GlyphGrid:
        """The current glyph grid."""
        return self._grid

    @property
    def message(self) -> str:
        return self._message

    @property
    def quit_requested(self) -> bool:
        return self._quit

    @property
    def pending_frame(self) -> Frame | None:
        return self._slot.peek()

    @property
    def drawable_size(self) -> tuple[int, int]:
        return self._drawable

    def status(self) -> StatusInfo:
        return StatusInfo(
            state=self._controller.state,
            camera_index=self._controller.camera_index,
            charset=self.settings.charset.label,
            color_enabled=self.settings.color_enabled,
            scale=self.settings.scale,
            fps=self.stats.get_summary().render_fps,
            message=self._message,
        )

    # --- Loop ---

    def run(self) -> None:
        """Iterate until a quit command is observed."""
        logger.info(
            "Event loop started",
            tick_ms=round(self._tick_interval_s * 1000, 1),
            render_ms=round(self._render_interval_s * 1000, 1),
        )
        try:
            while self.step():
                pass
        finally:
            logger.info("Event loop stopped", **self.stats.get_summary().to_dict())

    def step(self, timeout: float | None = None) -> bool:
        """Run one iteration.

        Args:
            timeout: Longest wait for the first event; the tick interval
                if None.

        Returns:
            False once quit has been observed, True otherwise.
        """
        if self._quit:
            return False

        events = self._drain(self._tick_interval_s if timeout is None else timeout)
        controls: list[Event] = []
        frames: list[Frame] = []
        for event in events:
            if is_control(event):
                controls.append(event)
            elif isinstance(event, FrameEvent):
                frames.append(event.frame)

        for event in controls:
            self._handle_control(event)

        if self._quit:
            self._slot.clear()
            self._draw()
            return False

        if frames:
            self._accept_frames(frames)

        self._maybe_convert()
        self._draw()
        return True

    def _drain(self, timeout: float) -> list[Event]:
        events: list[Event] = list(self._input.poll())
        if not events and self._queue.empty() and timeout > 0:
            try:
                events.append(self._queue.get(timeout=timeout))
            except queue.Empty:
                pass
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                break
        if self._queue.empty():
            events.extend(self._input.poll())
        return events

    # --- Frames ---

    def _accept_frames(self, frames: list[Frame]) -> None:
        self.stats.record_received(len(frames))
        if self._controller.state is not CameraState.ACTIVE:
            # Late frames from a stream that has been stopped since.
            self.stats.record_coalesced(len(frames))
            return
        newest = frames[-1]
        dropped = len(frames) - 1
        if self._slot.put(newest) is not None:
            dropped += 1
        if dropped:
            self.stats.record_coalesced(dropped)

    def _maybe_convert(self) -> None:
        if not self._slot:
            return
        now = self._clock.monotonic()
        if (
            self._last_render is not None
            and now - self._last_render < self._render_interval_s
        ):
            return

        frame = self._slot.take()
        if frame is None:
            return
        snapshot = self.settings.snapshot()
        rows, cols = target_grid(*self._drawable, snapshot.scale)
        try:
            grid = convert_frame(frame, rows, cols, snapshot.charset, snapshot.color_enabled)
        except FrameFormatError as e:
            self.stats.record_rejected()
            logger.warning("Dropped malformed frame", sequence=frame.sequence, error=str(e))
            return

        finished = self._clock.monotonic()
        self.stats.record_render((finished - now) * 1000.0)
        self._grid = grid
        self._last_frame = frame
        self._last_render = now
        self._dirty = True

    def _refresh(self) -> None:
        """Queue the last converted frame again so setting changes show."""
        if not self._slot and self._last_frame is not None:
            self._slot.put(self._last_frame)

    def _clear_picture(self) -> None:
        self._slot.clear()
        self._last_frame = None
        self._grid = GlyphGrid.empty(self.settings.charset)
        self._dirty = True

    # --- Control events ---

    def _handle_control(self, event: Event) -> None:
        if isinstance(event, ControlEvent):
            self._handle_command(event.command)
        elif isinstance(event, ResizeEvent):
            self._drawable = (max(0, event.rows), max(0, event.cols))
            logger.debug("Drawable area resized", rows=event.rows, cols=event.cols)
            self._refresh()
            self._dirty = True
        elif isinstance(event, DeviceEvent):
            self._handle_device_result(event.result)
        elif isinstance(event, CameraFaultEvent):
            self._set_message(f"Camera read error: {event.message}")

    def _handle_command(self, command: Command) -> None:
        logger.debug("Command", command=command.value)
        settings = self.settings
        if command is Command.QUIT:
            self._quit = True
            self._set_message("Quitting...")
        elif command is Command.TOGGLE_CAMERA:
            self._apply_request(self._controller.submit_toggle())
        elif command is Command.FORCE_STOP_CAMERA:
            self._apply_request(self._controller.submit_force_stop())
        elif command is Command.RESET_CAMERA:
            self._apply_request(self._controller.submit_reset())
        elif command is Command.TOGGLE_COLOR:
            enabled = settings.toggle_color()
            self._set_message(f"Color {'enabled' if enabled else 'disabled'}")
            self._refresh()
        elif command is Command.NEXT_CHARACTER_SET:
            self._set_message(f"Character set: {settings.next_charset().label}")
            self._refresh()
        elif command is Command.PREVIOUS_CHARACTER_SET:
            self._set_message(f"Character set: {settings.previous_charset().label}")
            self._refresh()
        elif command is Command.INCREASE_SCALE:
            self._set_message(f"Scale: {settings.increase_scale():.1f}")
            self._refresh()
        elif command is Command.DECREASE_SCALE:
            self._set_message(f"Scale: {settings.decrease_scale():.1f}")
            self._refresh()
        elif command is Command.NEXT_CAMERA:
            self._cycle_camera(1)
        elif command is Command.PREVIOUS_CAMERA:
            self._cycle_camera(-1)

    def _apply_request(self, result: TransitionResult) -> None:
        self._set_message(result.message)
        if not result.pending:
            self._handle_device_result(result)

    def _handle_device_result(self, result: TransitionResult) -> None:
        self._set_message(result.message)
        if result.ok and result.operation in _CLEARING_OPERATIONS:
            self._clear_picture()
        elif result.state is CameraState.FAILED:
            self._clear_picture()

    def _cycle_camera(self, step: int) -> None:
        indices = self._camera_indices
        if len(indices) < 2:
            self._set_message("No other camera available")
            return
        current = self._controller.camera_index
        position = indices.index(current) if current in indices else -step
        target = indices[(position + step) % len(indices)]
        result = self._controller.select_camera(target)
        self._set_message(result.message)

    def _set_message(self, message: str) -> None:
        if message != self._message:
            self._message = message
            self._dirty = True

    # --- Drawing ---

    def _draw(self) -> None:
        status = self.status()
        if not self._dirty and status == self._last_status:
            return
        self._renderer.draw(self._grid, status)
        self._last_status = status
        self._dirty = False

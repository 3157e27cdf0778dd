"""Tests for the EventRouter control loop.

The router fixture is wired to a thread-less CaptureSource, so frames are
produced by calling ``source.poll()`` and lifecycle changes by calling the
controller's synchronous API; both post into the router queue exactly as
the capture and worker threads would.
"""

import numpy as np
import pytest

from glyphcam.app.events import (
    Command,
    ControlEvent,
    ResizeEvent,
    TickEvent,
)
from glyphcam.app.router import EventRouter, InputSource, NullInput, NullRenderer, Renderer
from glyphcam.app.settings import Settings
from glyphcam.devices.controller import CameraState
from glyphcam.devices.frame import Frame
from glyphcam.drivers.cameras import FrameReadError
from glyphcam.glyphs.charsets import CharacterSet
from tests.helpers import assert_implements_protocol, solid_frame

RENDER_WAIT = 1 / 30 + 0.001


def _start(controller, router):
    """Start the camera and let the router see the result."""
    assert controller.start().ok
    router.step(timeout=0)


def _wait_for(router, predicate, steps: int = 200):
    for _ in range(steps):
        router.step(timeout=0.02)
        if predicate():
            return
    raise AssertionError("condition not reached")


class TestProtocols:
    """Null implementations satisfy the boundaries."""

    def test_null_renderer(self):
        """NullRenderer satisfies the Renderer protocol."""
        assert_implements_protocol(NullRenderer(), Renderer)

    def test_null_input(self):
        """NullInput satisfies the InputSource protocol."""
        assert_implements_protocol(NullInput(), InputSource)

    def test_defaults(self, controller):
        """Verifies a router built with only a controller and settings runs.

        Arrangement:
        1. EventRouter with default renderer, input and clock.

        Action:
        Reads the drawable size and runs one non-blocking iteration.

        Assertion Strategy:
        - Drawable size is the NullRenderer's 24x80.
        - step() returns True (no quit observed).

        Testing Principle:
        Every collaborator has a usable default.
        """
        router = EventRouter(controller, Settings())
        assert router.drawable_size == (24, 80)
        assert router.step(timeout=0)


class TestConversion:
    """Frames become glyph grids."""

    def test_white_frame_renders_brightest_glyph(self, router, controller, source, renderer):
        """Verifies a white camera frame fills the drawable area with index 4.

        Arrangement:
        1. Router with the Minimal set and a 12x40 drawable area.
        2. Twin camera producing white frames, started.

        Action:
        One frame captured, one router iteration.

        Assertion Strategy:
        - Grid is 12x40.
        - Every index is 4.
        - Renderer received that grid and an ON status.

        Testing Principle:
        End-to-end path from capture to painter.
        """
        _start(controller, router)
        source.poll()

        router.step(timeout=0)

        grid = router.grid
        assert (grid.rows, grid.cols) == (12, 40)
        assert np.all(grid.indices == 4)
        assert renderer.last_grid is grid
        assert renderer.last_status.camera_on

    def test_newest_frame_wins(self, router, controller):
        """Verifies several frames in one iteration collapse to the newest.

        Arrangement:
        1. Camera active.
        2. Four black frames then one white frame queued.

        Action:
        One router iteration.

        Assertion Strategy:
        - Exactly one conversion (renders == 1).
        - Grid shows the white frame.
        - Four frames counted as coalesced, five received.

        Testing Principle:
        Frames are never queued for conversion; only the latest matters.
        """
        _start(controller, router)
        for seq in range(1, 5):
            router.post_frame(solid_frame(0, 64, 48, sequence=seq))
        router.post_frame(solid_frame(255, 64, 48, sequence=5))

        router.step(timeout=0)

        summary = router.stats.get_summary()
        assert summary.renders == 1
        assert summary.frames_received == 5
        assert summary.frames_coalesced == 4
        assert np.all(router.grid.indices == 4)

    def test_render_interval_limits_conversions(self, router, controller, clock):
        """Verifies a frame arriving before the render interval waits in the slot.

        Arrangement:
        1. Camera active, one black frame already rendered.

        Action:
        Posts a white frame and steps at once, then steps again after the
        render interval has passed.

        Assertion Strategy:
        - First step: still one render, white frame pending, grid still black.
        - Second step: two renders, slot empty, grid white.

        Testing Principle:
        At most one conversion per render interval; the newest frame is kept.
        """
        _start(controller, router)
        router.post_frame(solid_frame(0, 64, 48, sequence=1))
        router.step(timeout=0)

        router.post_frame(solid_frame(255, 64, 48, sequence=2))
        router.step(timeout=0)
        assert router.stats.get_summary().renders == 1
        assert router.pending_frame is not None
        assert np.all(router.grid.indices == 0)

        clock.advance(RENDER_WAIT)
        router.step(timeout=0)
        assert router.stats.get_summary().renders == 2
        assert router.pending_frame is None
        assert np.all(router.grid.indices == 4)

    def test_pending_frame_replaced_while_waiting(self, router, controller, clock):
        """Verifies the pending slot is overwritten, never queued.

        Arrangement:
        1. Camera active, one frame rendered, clock not advanced.

        Action:
        Posts and steps two more frames inside the same render interval.

        Assertion Strategy:
        - The pending frame is the third one.
        - Exactly one frame counted as coalesced.

        Testing Principle:
        Backlog is impossible: at most one frame waits for conversion.
        """
        _start(controller, router)
        router.post_frame(solid_frame(0, 64, 48, sequence=1))
        router.step(timeout=0)

        router.post_frame(solid_frame(128, 64, 48, sequence=2))
        router.step(timeout=0)
        router.post_frame(solid_frame(255, 64, 48, sequence=3))
        router.step(timeout=0)

        assert router.pending_frame.sequence == 3
        assert router.stats.get_summary().frames_coalesced == 1

    def test_malformed_frame_keeps_previous_grid(self, router, controller, clock):
        """Verifies a malformed frame is dropped and the last grid retained.

        Arrangement:
        1. Camera active, a white frame rendered.
        2. Frame whose pixels do not match its declared 8x4 size.

        Action:
        Posts the bad frame after the render interval and steps.

        Assertion Strategy:
        - Grid object unchanged.
        - One frame counted as rejected.

        Testing Principle:
        Frame anomalies are logged and absorbed, never fatal.
        """
        _start(controller, router)
        router.post_frame(solid_frame(255, 64, 48, sequence=1))
        router.step(timeout=0)
        previous = router.grid

        clock.advance(RENDER_WAIT)
        bad = Frame(np.zeros((4, 4, 3), dtype=np.uint8), width=8, height=4, sequence=2)
        router.post_frame(bad)
        router.step(timeout=0)

        assert router.grid is previous
        assert router.stats.get_summary().frames_rejected == 1

    def test_frames_ignored_while_stopped(self, router):
        """Verifies frames arriving while the camera is stopped are not converted.

        Arrangement:
        1. Router with the camera STOPPED.

        Action:
        Posts a white frame and steps.

        Assertion Strategy:
        - Grid stays empty.
        - Frame counted as coalesced, no render.

        Testing Principle:
        Late frames from a stopped stream never reach the screen.
        """
        router.post_frame(solid_frame(255, 64, 48))
        router.step(timeout=0)

        assert router.grid.is_empty
        summary = router.stats.get_summary()
        assert summary.frames_coalesced == 1
        assert summary.renders == 0

    def test_ticks_are_ignored(self, router, renderer):
        """Verifies tick events drive the loop without producing a picture.

        Arrangement:
        1. Router with the camera stopped.

        Action:
        Posts a TickEvent and steps.

        Assertion Strategy:
        - step() returns True.
        - Grid remains empty.

        Testing Principle:
        Ticks are neither control nor frame events.
        """
        router.post(TickEvent(1.0))
        assert router.step(timeout=0)
        assert router.grid.is_empty


class TestControls:
    """Control events are applied before frames."""

    def test_control_applies_to_same_iteration_frame(self, router, controller, scripted_input):
        """Verifies a control event is applied before a frame drained with it.

        Arrangement:
        1. Camera active.
        2. A coloured frame queued and TOGGLE_COLOR pushed on the input.

        Action:
        One router iteration.

        Assertion Strategy:
        - Colour is enabled.
        - The grid built from that same frame carries colour.

        Testing Principle:
        A command issued at tick T is applied at tick T, whatever the frame
        volume.
        """
        _start(controller, router)
        router.post_frame(solid_frame((200, 100, 50), 64, 48))
        scripted_input.push(ControlEvent(Command.TOGGLE_COLOR))

        router.step(timeout=0)

        assert router.settings.color_enabled
        assert router.grid.has_color
        assert router.grid.cell(0, 0).color == (200, 100, 50)

    def test_charset_change_rerenders_last_frame(self, router, controller, clock, scripted_input):
        """Verifies a character set change shows without a new frame.

        Arrangement:
        1. Camera active, white frame rendered with the Minimal set.

        Action:
        Pushes NEXT_CHARACTER_SET after the render interval and steps with no
        new frame.

        Assertion Strategy:
        - Grid now uses the Dense set and shows its brightest glyph.
        - Status message names the new set.

        Testing Principle:
        Settings changes apply to the picture already on screen.
        """
        _start(controller, router)
        router.post_frame(solid_frame(255, 64, 48))
        router.step(timeout=0)
        assert router.grid.charset is CharacterSet.MINIMAL

        clock.advance(RENDER_WAIT)
        scripted_input.push(ControlEvent(Command.NEXT_CHARACTER_SET))
        router.step(timeout=0)

        assert router.grid.charset is CharacterSet.DENSE
        assert router.grid.lines[0] == "@" * 40
        assert router.message == "Character set: Dense"

    def test_scale_change(self, router, controller, clock, scripted_input):
        """Verifies a scale change resizes the grid on the next render.

        Arrangement:
        1. Camera active, white frame rendered at 12x40.

        Action:
        Pushes DECREASE_SCALE after the render interval and steps.

        Assertion Strategy:
        - Scale is 0.9.
        - Grid is floor(12*0.9) x floor(40*0.9) = 10x36.
        - Status message shows the new scale.

        Testing Principle:
        Target grid size is the drawable area times scale, floored.
        """
        _start(controller, router)
        router.post_frame(solid_frame(255, 64, 48))
        router.step(timeout=0)

        clock.advance(RENDER_WAIT)
        scripted_input.push(ControlEvent(Command.DECREASE_SCALE))
        router.step(timeout=0)

        assert router.settings.scale == 0.9
        assert (router.grid.rows, router.grid.cols) == (10, 36)
        assert router.message == "Scale: 0.9"

    def test_resize(self, router, controller, clock):
        """Verifies a terminal resize changes the drawable area and grid size.

        Arrangement:
        1. Camera active, white frame rendered at 12x40.

        Action:
        Posts ResizeEvent(6, 20) after the render interval and steps.

        Assertion Strategy:
        - Drawable size is 6x20.
        - Grid re-rendered at 6x20.

        Testing Principle:
        Resizes re-render the last frame at the new size.
        """
        _start(controller, router)
        router.post_frame(solid_frame(255, 64, 48))
        router.step(timeout=0)

        clock.advance(RENDER_WAIT)
        router.post(ResizeEvent(6, 20))
        router.step(timeout=0)

        assert router.drawable_size == (6, 20)
        assert (router.grid.rows, router.grid.cols) == (6, 20)

    def test_resize_to_zero_gives_empty_grid(self, router, controller, clock):
        """Verifies a zero-sized drawable area yields an empty grid.

        Arrangement:
        1. Camera active.

        Action:
        Posts ResizeEvent(0, 0) and a white frame, then steps once.

        Assertion Strategy:
        - Grid is empty.

        Testing Principle:
        Zero target size is an edge case, not an error.
        """
        _start(controller, router)
        router.post(ResizeEvent(0, 0))
        router.post_frame(solid_frame(255, 64, 48))
        router.step(timeout=0)
        assert router.grid.is_empty

    def test_quit(self, router, controller, scripted_input, renderer):
        """Verifies quit ends the loop before any frame in the same iteration.

        Arrangement:
        1. Camera active.
        2. A white frame and a QUIT command queued together.

        Action:
        Steps twice.

        Assertion Strategy:
        - First step returns False; quit_requested is set.
        - No frame pending and no render happened.
        - Final status shows "Quitting...".
        - Later steps keep returning False.

        Testing Principle:
        No frame is processed after quit is observed.
        """
        _start(controller, router)
        router.post_frame(solid_frame(255, 64, 48))
        scripted_input.push(ControlEvent(Command.QUIT))

        assert router.step(timeout=0) is False

        assert router.quit_requested
        assert router.pending_frame is None
        assert router.stats.get_summary().renders == 0
        assert renderer.last_status.message == "Quitting..."
        assert router.step(timeout=0) is False

    def test_run_returns_on_quit(self, router):
        """run() returns once a posted QUIT is processed."""
        router.post_command(Command.QUIT)
        router.run()
        assert router.quit_requested

    def test_camera_fault_message(self, router):
        """Verifies a capture read fault is shown as a status message.

        Arrangement:
        1. Router with the camera stopped.

        Action:
        Posts a FrameReadError and steps.

        Assertion Strategy:
        - Message carries the fault text.

        Testing Principle:
        Capture errors surface on the status line, never as crashes.
        """
        router.post_fault(FrameReadError("device unplugged"))
        router.step(timeout=0)
        assert router.message == "Camera read error: device unplugged"


class TestDeviceResults:
    """Lifecycle reports from the controller."""

    def test_toggle_through_worker(self, router, controller, renderer):
        """Verifies TOGGLE_CAMERA runs on the worker and reports back.

        Arrangement:
        1. Router and controller with the camera stopped.

        Action:
        Posts TOGGLE_CAMERA, steps until started, then toggles again until
        stopped.

        Assertion Strategy:
        - Immediate message "Starting camera...".
        - Later "Camera started" with the status showing ON.
        - Second toggle ends STOPPED.

        Testing Principle:
        The router never blocks on hardware; results arrive as events.
        """
        router.post_command(Command.TOGGLE_CAMERA)
        router.step(timeout=0)
        assert router.message == "Starting camera..."

        _wait_for(router, lambda: router.message == "Camera started")
        assert controller.is_active
        assert renderer.last_status.format().startswith("Camera 0: ON")

        router.post_command(Command.TOGGLE_CAMERA)
        _wait_for(router, lambda: router.message == "Camera stopped")
        assert controller.state is CameraState.STOPPED

    def test_stop_clears_picture_and_late_frames(self, router, controller, source):
        """Verifies a successful stop clears the picture and drops late frames.

        Arrangement:
        1. Camera active with a rendered frame.

        Action:
        Stops the camera, posts a late frame, steps.

        Assertion Strategy:
        - Grid empty, nothing pending.
        - Status shows OFF.

        Testing Principle:
        The screen matches the confirmed camera state.
        """
        _start(controller, router)
        source.poll()
        router.step(timeout=0)
        assert not router.grid.is_empty

        late = solid_frame(255, 64, 48, sequence=99)
        assert controller.stop().ok
        router.post_frame(late)
        router.step(timeout=0)

        assert router.grid.is_empty
        assert router.pending_frame is None
        assert router.status().format().startswith("Camera 0: OFF")

    def test_refused_stop_keeps_picture(self, router, controller, source, faults):
        """Verifies a refused stop leaves the picture and ON status in place.

        Arrangement:
        1. Camera active with a rendered frame.
        2. One injected stop failure.

        Action:
        Calls stop() and steps.

        Assertion Strategy:
        - Result not ok.
        - Grid still populated.
        - Message explains the camera is still running; status ON.

        Testing Principle:
        A failed stop is surfaced, never shown as stopped.
        """
        _start(controller, router)
        source.poll()
        router.step(timeout=0)
        faults.stop_failures = 1

        result = controller.stop()
        router.step(timeout=0)

        assert not result.ok
        assert not router.grid.is_empty
        assert router.message.startswith("Stop failed, camera still running")
        assert router.status().camera_on

    def test_failed_state_clears_picture(self, router, controller, source, faults):
        """Verifies entering FAILED clears the picture and shows the fault.

        Arrangement:
        1. Camera active with a rendered frame.
        2. Stop failures outnumber the force-stop retries.

        Action:
        Calls force_stop() and steps.

        Assertion Strategy:
        - Grid empty.
        - Message asks for a reset; status shows FAILED.

        Testing Principle:
        Unrecoverable faults are reported through the status surface.
        """
        _start(controller, router)
        source.poll()
        router.step(timeout=0)
        faults.stop_failures = 100

        controller.force_stop()
        router.step(timeout=0)

        assert router.grid.is_empty
        assert router.message == "Camera fault: press r to reset"
        assert router.status().format().startswith("Camera 0: FAILED")

    def test_rejected_start_message(self, router, controller, faults):
        """Verifies starting from FAILED is refused with a reset hint.

        Arrangement:
        1. Camera driven into FAILED by an exhausted force stop.

        Action:
        Posts TOGGLE_CAMERA and steps.

        Assertion Strategy:
        - Message tells the user to reset first.

        Testing Principle:
        Only reset leaves FAILED.
        """
        faults.stop_failures = 100
        controller.start()
        controller.force_stop()
        router.step(timeout=0)

        router.post_command(Command.TOGGLE_CAMERA)
        router.step(timeout=0)

        assert router.message == "Camera fault: press r to reset before starting"

    def test_reset_while_active_rejected(self, router, controller, twin_driver):
        """Verifies RESET_CAMERA on a running camera is refused.

        Arrangement:
        1. Camera active with a rendered frame.

        Action:
        Posts RESET_CAMERA and steps.

        Assertion Strategy:
        - Message asks to stop first.
        - Camera still ACTIVE, light on, picture kept.

        Testing Principle:
        Reset never reports the camera off while it is streaming.
        """
        _start(controller, router)
        router.post_frame(solid_frame(255, 64, 48))
        router.step(timeout=0)

        router.post_command(Command.RESET_CAMERA)
        router.step(timeout=0)

        assert router.message == "Stop the camera before resetting"
        assert controller.state is CameraState.ACTIVE
        assert twin_driver.handles[0].light_on
        assert not router.grid.is_empty


class TestCameraCycling:
    """Next/previous camera commands."""

    def test_next_camera_while_stopped(self, router, controller):
        """Verifies NEXT_CAMERA selects the next device while stopped.

        Arrangement:
        1. Two twin cameras, camera 0 selected, stopped.

        Action:
        Posts NEXT_CAMERA and steps.

        Assertion Strategy:
        - Controller now uses camera 1.
        - Message confirms the selection.

        Testing Principle:
        Camera cycling goes through the controller.
        """
        router.post_command(Command.NEXT_CAMERA)
        router.step(timeout=0)
        assert controller.camera_index == 1
        assert router.message == "Camera 1 selected"

    def test_previous_camera_wraps(self, router, controller):
        """PREVIOUS_CAMERA from the first device wraps to the last."""
        router.post_command(Command.PREVIOUS_CAMERA)
        router.step(timeout=0)
        assert controller.camera_index == 1

    def test_cycle_while_active_rejected(self, router, controller):
        """Verifies cameras cannot be switched while one is streaming.

        Arrangement:
        1. Camera 0 active.

        Action:
        Posts NEXT_CAMERA and steps.

        Assertion Strategy:
        - Camera index unchanged.
        - Message asks to stop first.

        Testing Principle:
        The device in use never changes under a running stream.
        """
        _start(controller, router)
        router.post_command(Command.NEXT_CAMERA)
        router.step(timeout=0)
        assert controller.camera_index == 0
        assert router.message == "Stop the camera before switching devices"

    def test_single_camera(self, controller, renderer):
        """With one device, cycling reports that no other camera exists."""
        router = EventRouter(controller, Settings(), renderer=renderer, camera_indices=[0])
        router.post_command(Command.NEXT_CAMERA)
        router.step(timeout=0)
        assert router.message == "No other camera available"


class TestDrawing:
    """Renderer is called only when something changed."""

    def test_first_step_draws(self, router, renderer):
        """Verifies the first iteration paints the initial status.

        Arrangement:
        1. Fresh router, camera stopped.

        Action:
        One step.

        Assertion Strategy:
        - One draw with an empty grid.
        - Status shows OFF and the Minimal set.

        Testing Principle:
        The screen is never blank at startup.
        """
        router.step(timeout=0)
        assert len(renderer.draws) == 1
        assert renderer.last_grid.is_empty
        assert renderer.last_status.format().startswith("Camera 0: OFF | Set: Minimal")

    def test_idle_steps_do_not_redraw(self, router, renderer):
        """Verifies repeated idle iterations do not repaint.

        Arrangement:
        1. Fresh router.

        Action:
        Three steps with no events.

        Assertion Strategy:
        - Exactly one draw.

        Testing Principle:
        Drawing happens only when grid or status changed.
        """
        router.step(timeout=0)
        router.step(timeout=0)
        router.step(timeout=0)
        assert len(renderer.draws) == 1

    def test_message_change_redraws(self, router, renderer):
        """A status message change triggers a redraw."""
        router.step(timeout=0)
        router.post_command(Command.TOGGLE_COLOR)
        router.step(timeout=0)
        assert len(renderer.draws) == 2
        assert renderer.last_status.message == "Color enabled"

    @pytest.mark.parametrize(
        ("command", "message"),
        [
            (Command.INCREASE_SCALE, "Scale: 1.1"),
            (Command.PREVIOUS_CHARACTER_SET, "Character set: Blocks"),
        ],
    )
    def test_setting_messages(self, router, command, message):
        """Each setting command reports its new value on the status line."""
        router.post_command(command)
        router.step(timeout=0)
        assert router.message == message

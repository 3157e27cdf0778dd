"""Tests for session wiring and the full run loop."""

import time

import numpy as np

from glyphcam.app.config import AppConfig
from glyphcam.app.events import Command, ControlEvent
from glyphcam.app.runtime import _camera_indices, build_session, run_session
from glyphcam.devices.controller import CameraState
from glyphcam.drivers.cameras import (
    DigitalTwinCameraDriver,
    DigitalTwinConfig,
    TwinPattern,
)
from tests.helpers import FakeClock, RecordingRenderer


class QuitWhen:
    """Input source sending QUIT once a condition holds or a deadline passes."""

    def __init__(self, condition, deadline_s: float = 10.0):
        self.condition = condition
        self.deadline = time.monotonic() + deadline_s
        self.sent = False

    def poll(self):
        if self.sent:
            return []
        if self.condition() or time.monotonic() > self.deadline:
            self.sent = True
            return [ControlEvent(Command.QUIT)]
        return []


def _twin(frame_interval_s=0.0, **kwargs):
    config = DigitalTwinConfig(
        pattern=TwinPattern.SOLID,
        fill=(255, 255, 255),
        frame_interval_s=frame_interval_s,
        **kwargs,
    )
    return DigitalTwinCameraDriver(config=config)


class TestCameraIndices:
    """Selectable device list."""

    def test_from_driver(self):
        driver = _twin(camera_names=("A", "B"))
        assert _camera_indices(driver, 0) == [0, 1]

    def test_preferred_added(self):
        driver = _twin(camera_names=("A", "B"))
        assert _camera_indices(driver, 3) == [0, 1, 3]


class TestBuildSession:
    """Component wiring."""

    def test_frames_reach_router(self):
        """Verifies capture output and controller results flow into the router.

        Arrangement:
        1. Session built without a capture thread, 8x20 drawable area.

        Action:
        Starts the camera synchronously, polls one frame, steps the router.

        Assertion Strategy:
        - Router reports the camera started.
        - Grid shows the white frame at the drawable size.

        Testing Principle:
        build_session connects every sink; nothing is left unwired.
        """
        config = AppConfig(charset="minimal", width=32, height=24)
        renderer = RecordingRenderer(size=(8, 20))
        session = build_session(
            config, _twin(), renderer=renderer, clock=FakeClock(), run_thread=False
        )
        try:
            assert session.controller.start().ok
            session.source.poll()
            session.router.step(timeout=0)

            assert session.router.message == "Camera started"
            grid = session.router.grid
            assert (grid.rows, grid.cols) == (8, 20)
            assert np.all(grid.indices == 4)
            assert session.stats.get_summary().renders == 1
        finally:
            session.controller.shutdown(timeout=1.0)

    def test_config_applied(self):
        config = AppConfig(
            camera_index=0,
            charset="blocks",
            scale=0.5,
            color=True,
            target_fps=10,
        )
        session = build_session(config, _twin(), run_thread=False)
        try:
            assert session.router.settings.charset.label == "Blocks"
            assert session.router.settings.scale == 0.5
            assert session.router.settings.color_enabled
            assert session.source.frame_skip_threshold == 0.1
        finally:
            session.controller.shutdown(timeout=1.0)


class TestRunSession:
    """run_session end to end with the capture thread."""

    def test_autostart_render_and_quit(self):
        """Camera starts, a frame is drawn, quit stops the hardware."""
        driver = _twin(frame_interval_s=0.005)
        renderer = RecordingRenderer(size=(6, 16))
        config = AppConfig(charset="minimal", tick_interval_s=0.01, stop_timeout_s=2.0)
        holder = {}
        quit_input = QuitWhen(lambda: not holder["session"].router.grid.is_empty)
        session = build_session(config, driver, renderer=renderer, input_source=quit_input)
        holder["session"] = session

        run_session(session)

        assert any(not grid.is_empty for grid, _ in renderer.draws)
        assert renderer.last_status.message == "Quitting..."
        assert session.controller.state is CameraState.STOPPED
        assert not driver.handles[0].light_on

    def test_no_autostart(self):
        driver = _twin()
        config = AppConfig(autostart=False, tick_interval_s=0.01)
        session = build_session(
            config, driver, input_source=QuitWhen(lambda: True), run_thread=False
        )

        run_session(session)

        assert driver.handles == []
        assert session.controller.state is CameraState.STOPPED

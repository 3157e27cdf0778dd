"""Pytest configuration and fixtures for glyphcam tests.

Hardware is never required: camera fixtures use the digital twin driver
with fault injection, and time is driven through FakeClock.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from glyphcam.app.router import EventRouter
from glyphcam.app.settings import Settings
from glyphcam.devices.capture import CaptureSource
from glyphcam.devices.controller import DeviceStateController
from glyphcam.drivers.cameras import (
    DigitalTwinCameraDriver,
    DigitalTwinConfig,
    DigitalTwinFaults,
    TwinPattern,
)
from glyphcam.glyphs.charsets import CharacterSet
from glyphcam.observability import reset_logging
from tests.helpers import FakeClock, RecordingRenderer, ScriptedInput


@pytest.fixture(autouse=True)
def _clean_logging() -> Iterator[None]:
    """Leave glyphcam logging unconfigured after every test."""
    yield
    reset_logging()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def faults() -> DigitalTwinFaults:
    return DigitalTwinFaults()


@pytest.fixture
def twin_driver(clock: FakeClock, faults: DigitalTwinFaults) -> DigitalTwinCameraDriver:
    """Digital twin producing white frames instantly, two devices."""
    config = DigitalTwinConfig(
        pattern=TwinPattern.SOLID,
        fill=(255, 255, 255),
        frame_interval_s=0.0,
        camera_names=("Twin A", "Twin B"),
    )
    return DigitalTwinCameraDriver(config=config, faults=faults, sleep=clock.sleep)


@pytest.fixture
def source(twin_driver: DigitalTwinCameraDriver, clock: FakeClock) -> CaptureSource:
    """Capture source without a thread; tests call poll() directly."""
    return CaptureSource(twin_driver, camera_index=0, width=64, height=48, clock=clock, run_thread=False)


@pytest.fixture
def controller(source: CaptureSource) -> Iterator[DeviceStateController]:
    ctrl = DeviceStateController(source, force_stop_retries=3, retry_delay_s=0.0)
    yield ctrl
    ctrl.shutdown(timeout=1.0)


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer(size=(12, 40))


@pytest.fixture
def scripted_input() -> ScriptedInput:
    return ScriptedInput()


@pytest.fixture
def router(
    controller: DeviceStateController,
    source: CaptureSource,
    renderer: RecordingRenderer,
    scripted_input: ScriptedInput,
    clock: FakeClock,
) -> EventRouter:
    """Router wired to the twin source, render interval 1/30 s."""
    rtr = EventRouter(
        controller,
        Settings(charset=CharacterSet.MINIMAL),
        renderer=renderer,
        input_source=scripted_input,
        tick_interval_s=0.016,
        render_interval_s=1 / 30,
        clock=clock,
        camera_indices=[0, 1],
    )
    source.set_sinks(on_frame=rtr.post_frame, on_error=rtr.post_fault)
    controller.set_listener(rtr.post_device_result)
    return rtr

"""Session wiring: driver, capture source, controller and router.

build_session() connects the pieces so that frames and faults flow from
the capture thread into the router queue and controller results come back
as DeviceEvents. run_session() drives the loop and always performs the
bounded final stop.
"""

from __future__ import annotations

from dataclasses import dataclass

from glyphcam.app.config import AppConfig
from glyphcam.app.events import Command
from glyphcam.app.router import EventRouter, InputSource, Renderer
from glyphcam.devices.capture import CaptureSource
from glyphcam.devices.clock import Clock, SystemClock
from glyphcam.devices.controller import DeviceStateController
from glyphcam.drivers.cameras import CameraDriver, CaptureError
from glyphcam.observability import FrameStats, LogContext, get_logger

logger = get_logger(__name__)

__all__ = ["Session", "build_session", "run_session"]


@dataclass
class Session:
    """Connected components of one running app."""

    config: AppConfig
    driver: CameraDriver
    source: CaptureSource
    controller: DeviceStateController
    router: EventRouter
    stats: FrameStats


def _camera_indices(driver: CameraDriver, preferred: int) -> list[int]:
    try:
        indices = [camera.index for camera in driver.list_cameras()]
    except CaptureError as e:
        logger.warning("Camera enumeration failed", error=str(e))
        indices = []
    if preferred not in indices:
        indices.append(preferred)
    return sorted(indices)


def build_session(
    config: AppConfig,
    driver: CameraDriver,
    renderer: Renderer | None = None,
    input_source: InputSource | None = None,
    clock: Clock | None = None,
    run_thread: bool = True,
) -> Session:
    """Create and connect every component for ``config``.

    Args:
        config: Validated configuration.
        driver: Camera driver from the DriverFactory.
        renderer: Painter; NullRenderer if None.
        input_source: Keyboard source; NullInput if None.
        clock: Shared time source; SystemClock if None.
        run_thread: Forwarded to CaptureSource.
    """
    clock = clock or SystemClock()
    stats = FrameStats(time_source=clock.monotonic)
    source = CaptureSource(
        driver,
        camera_index=config.camera_index,
        width=config.width,
        height=config.height,
        frame_skip_threshold=config.frame_skip_threshold_s,
        clock=clock,
        stats=stats,
        run_thread=run_thread,
    )
    controller = DeviceStateController(
        source,
        force_stop_retries=config.force_stop_retries,
        retry_delay_s=config.retry_delay_s,
    )
    router = EventRouter(
        controller,
        config.initial_settings(),
        renderer=renderer,
        input_source=input_source,
        tick_interval_s=config.tick_interval_s,
        render_interval_s=config.render_interval_s,
        clock=clock,
        stats=stats,
        camera_indices=_camera_indices(driver, config.camera_index),
    )
    source.set_sinks(on_frame=router.post_frame, on_error=router.post_fault)
    controller.set_listener(router.post_device_result)
    return Session(config, driver, source, controller, router, stats)


def run_session(session: Session) -> None:
    """Run the control loop until quit, then stop the camera.

    The final stop waits at most ``config.stop_timeout_s``.
    """
    config = session.config
    with LogContext(camera_index=config.camera_index):
        if config.autostart:
            session.router.post_command(Command.TOGGLE_CAMERA)
        try:
            session.router.run()
        finally:
            session.controller.shutdown(timeout=config.stop_timeout_s)
            logger.info("Session finished", **session.stats.get_summary().to_dict())

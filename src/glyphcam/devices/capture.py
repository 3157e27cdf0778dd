"""Capture source: owns the camera handle and produces frames.

CaptureSource runs a daemon thread that blocks on the device and hands each
accepted frame to a sink (normally ``EventRouter.post_frame``). It enforces
a minimum inter-frame interval of its own, dropping device frames that
arrive faster than the frame-skip threshold instead of queueing them.

Lifecycle calls (start/stop/force_stop/reset) block on hardware and are
issued by the DeviceStateController, never by the render loop directly.

Stop semantics:
    stop() is two-phase. Frame delivery is paused, the hardware stop is
    issued, and only when the device acknowledges does the source become
    inactive. If the hardware refuses, delivery resumes and
    CaptureStopError is raised; the source is still active.

Example:
    source = CaptureSource(driver, camera_index=0, on_frame=frames.append)
    source.start()
    ...
    source.stop()
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from glyphcam.devices.clock import Clock, SystemClock
from glyphcam.devices.frame import Frame, FrameFormatError
from glyphcam.drivers.cameras import (
    CameraDriver,
    CameraHandle,
    CaptureError,
    DeviceUnavailableError,
    HardwareStopError,
    StreamNotRunningError,
)
from glyphcam.observability import FrameStats, LogContext, get_logger

logger = get_logger(__name__)

__all__ = [
    "CaptureFaultError",
    "CaptureSource",
    "CaptureStartError",
    "CaptureStopError",
    "DEFAULT_FRAME_SKIP_S",
    "DEFAULT_FORCE_STOP_RETRIES",
    "DEFAULT_RETRY_DELAY_S",
]

# --- Constants ---

DEFAULT_FRAME_SKIP_S: float = 1 / 30
"""Minimum seconds between two accepted frames (~30 FPS)."""

DEFAULT_FORCE_STOP_RETRIES: int = 3
"""Hardware stop attempts made by force_stop() before giving up."""

DEFAULT_RETRY_DELAY_S: float = 0.1
"""Pause between force_stop() attempts."""

READ_ERROR_BACKOFF_S: float = 0.1
"""Pause after a failed device read before trying again."""

PAUSED_POLL_S: float = 0.01
"""Idle wait of the capture thread while delivery is paused."""

THREAD_JOIN_TIMEOUT_S: float = 1.0
"""Longest wait for the capture thread to exit after a stop."""

FrameSink = Callable[[Frame], None]
ErrorSink = Callable[[CaptureError], None]


# --- Exceptions ---


class CaptureStartError(CaptureError):
    """Raised when the stream cannot be started on an available device."""

    pass


class CaptureStopError(CaptureError):
    """Raised when the hardware did not acknowledge a stop."""

    pass


class CaptureFaultError(CaptureError):
    """Raised when force_stop() exhausted its retries."""

    pass


def _ignore_frame(frame: Frame) -> None:
    pass


def _ignore_error(error: CaptureError) -> None:
    pass


class CaptureSource:
    """Camera capture running independently of the render loop.

    Attributes:
        frame_skip_threshold: Minimum seconds between two accepted frames.
    """

    def __init__(
        self,
        driver: CameraDriver,
        camera_index: int = 0,
        width: int = 640,
        height: int = 480,
        frame_skip_threshold: float = DEFAULT_FRAME_SKIP_S,
        clock: Clock | None = None,
        on_frame: FrameSink | None = None,
        on_error: ErrorSink | None = None,
        stats: FrameStats | None = None,
        run_thread: bool = True,
    ) -> None:
        """Create an inactive capture source.

        Args:
            driver: Camera driver used to open the device.
            camera_index: System index of the device to capture from.
            width: Requested capture width.
            height: Requested capture height.
            frame_skip_threshold: Minimum seconds between accepted frames.
            clock: Time source; SystemClock if None.
            on_frame: Receives each accepted frame on the capture thread.
            on_error: Receives read failures on the capture thread.
            stats: Optional statistics collector for capture-side skips.
            run_thread: Start a capture thread on start(). Tests pass False
                and drive poll() themselves.
        """
        self._driver = driver
        self._camera_index = camera_index
        self._width = width
        self._height = height
        self.frame_skip_threshold = frame_skip_threshold
        self._clock = clock or SystemClock()
        self._on_frame: FrameSink = on_frame or _ignore_frame
        self._on_error: ErrorSink = on_error or _ignore_error
        self._stats = stats
        self._run_thread = run_thread

        self._handle: CameraHandle | None = None
        self._active = False
        self._paused = threading.Event()
        self._halt = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_frame_time: float | None = None
        self._sequence = 0

    def __repr__(self) -> str:
        return (
            f"CaptureSource(camera_index={self._camera_index}, "
            f"active={self._active})"
        )

    @property
    def camera_index(self) -> int:
        return self._camera_index

    @property
    def is_active(self) -> bool:
        """True from an acknowledged start until an acknowledged stop."""
        return self._active

    @property
    def handle(self) -> CameraHandle | None:
        """The open device handle, if any."""
        return self._handle

    def set_sinks(
        self,
        on_frame: FrameSink | None = None,
        on_error: ErrorSink | None = None,
    ) -> None:
        """Replace the frame and error sinks."""
        if on_frame is not None:
            self._on_frame = on_frame
        if on_error is not None:
            self._on_error = on_error

    def select_camera(self, camera_index: int) -> None:
        """Switch to another device. Only allowed while inactive.

        The previous handle is released so the next start() opens the new
        device.

        Raises:
            CaptureError: The source is active.
        """
        if self._active:
            raise CaptureError("Cannot change camera while capturing")
        if camera_index == self._camera_index:
            return
        self._release_handle()
        self._camera_index = camera_index
        logger.info("Camera selected", camera_index=camera_index)

    # --- Lifecycle ---

    def start(self) -> None:
        """Start the hardware stream and the capture thread.

        A lingering stream from an earlier failed stop is stopped first;
        "not running" is the normal answer to that and is ignored.

        Raises:
            DeviceUnavailableError: The device cannot be opened.
            CaptureStartError: A lingering stream could not be stopped or
                the device refused to stream.
        """
        if self._active:
            return

        with LogContext(camera_index=self._camera_index, operation="start"):
            handle = self._ensure_handle()
            self._stop_lingering(handle)

            try:
                handle.start_stream()
            except DeviceUnavailableError:
                logger.error("Camera unavailable")
                raise
            except CaptureError as e:
                logger.error("Camera stream failed to start", error=str(e))
                raise CaptureStartError(f"Failed to start camera: {e}") from e

            self._last_frame_time = None
            self._sequence = 0
            self._paused.clear()
            self._active = True
            self._launch_thread()
            logger.info("Capture started", resolution=handle.resolution)

    def stop(self) -> None:
        """Stop the stream and wait for the hardware to acknowledge.

        The stop counts only once the handle reports it is no longer
        streaming.

        Idempotent: returns at once when not active.

        Raises:
            CaptureStopError: The hardware did not acknowledge. The source
                stays active and frame delivery resumes.
        """
        if not self._active or self._handle is None:
            return

        handle = self._handle
        with LogContext(camera_index=self._camera_index, operation="stop"):
            self._paused.set()
            try:
                handle.stop_stream()
            except StreamNotRunningError:
                logger.warning("Stream already stopped by device")
            except CaptureError as e:
                self._paused.clear()
                logger.error("Hardware stop failed, camera still running", error=str(e))
                raise CaptureStopError(f"Camera did not stop: {e}") from e

            if handle.is_streaming:
                self._paused.clear()
                logger.error("Device still streaming after stop returned")
                raise CaptureStopError("Camera did not stop: device still streaming")

            self._halt_thread()
            self._active = False
            logger.info("Capture stopped")

    def force_stop(
        self,
        retries: int = DEFAULT_FORCE_STOP_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY_S,
    ) -> None:
        """Emergency stop: retry the hardware stop up to ``retries`` times.

        Frame delivery stays paused whatever the outcome.

        Raises:
            CaptureFaultError: Every attempt failed; the device state is
                unknown and only reset() can recover.
        """
        handle = self._handle
        if handle is None:
            self._active = False
            return

        self._paused.set()
        last_error: CaptureError | None = None
        with LogContext(camera_index=self._camera_index, operation="force_stop"):
            for attempt in range(1, max(1, retries) + 1):
                try:
                    handle.stop_stream()
                    if handle.is_streaming:
                        raise HardwareStopError("device still streaming after stop")
                except StreamNotRunningError:
                    break
                except CaptureError as e:
                    last_error = e
                    logger.warning("Force stop attempt failed", attempt=attempt, error=str(e))
                    if attempt < retries:
                        self._clock.sleep(retry_delay)
                else:
                    break
            else:
                logger.error("Force stop exhausted retries", retries=retries)
                raise CaptureFaultError(
                    f"Camera did not stop after {retries} attempts: {last_error}"
                ) from last_error

            self._halt_thread()
            self._active = False
            logger.info("Capture force-stopped")

    def reset(self) -> None:
        """Tear down the capture thread and device handle completely.

        The next start() opens a fresh handle. Never raises.
        """
        with LogContext(camera_index=self._camera_index, operation="reset"):
            self._paused.set()
            self._halt_thread()
            self._release_handle()
            self._active = False
            self._last_frame_time = None
            self._paused.clear()
            logger.info("Capture source reset")

    # --- Frame production ---

    def poll(self) -> Frame | None:
        """Read one frame from the device and deliver it if accepted.

        Called in a loop by the capture thread. A frame is dropped when it
        arrives sooner than ``frame_skip_threshold`` after the previous
        accepted frame.

        Returns:
            The delivered frame, or None if nothing was delivered.
        """
        handle = self._handle
        if handle is None or not self._active or self._paused.is_set():
            return None

        try:
            pixels = handle.read()
        except CaptureError as e:
            if self._paused.is_set() or not self._active:
                return None
            logger.error(
                "Frame read failed", camera_index=self._camera_index, error=str(e)
            )
            self._on_error(e)
            self._clock.sleep(READ_ERROR_BACKOFF_S)
            return None

        if self._paused.is_set():
            return None

        now = self._clock.monotonic()
        last = self._last_frame_time
        if last is not None and now - last < self.frame_skip_threshold:
            if self._stats is not None:
                self._stats.record_capture_skip()
            return None

        try:
            frame = Frame.from_array(pixels, sequence=self._sequence + 1, timestamp=now)
        except FrameFormatError as e:
            logger.warning("Device returned malformed frame", error=str(e))
            return None

        self._sequence += 1
        self._last_frame_time = now
        self._on_frame(frame)
        return frame

    # --- Internals ---

    def _ensure_handle(self) -> CameraHandle:
        if self._handle is None:
            self._handle = self._driver.open(self._camera_index, self._width, self._height)
        return self._handle

    def _stop_lingering(self, handle: CameraHandle) -> None:
        try:
            handle.stop_stream()
            if handle.is_streaming:
                raise HardwareStopError("device still streaming after stop")
        except StreamNotRunningError:
            logger.debug("No lingering stream")
        except HardwareStopError as e:
            raise CaptureStartError(f"Lingering stream could not be stopped: {e}") from e
        else:
            logger.warning("Stopped lingering stream before start")

    def _release_handle(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.release()

    def _launch_thread(self) -> None:
        if not self._run_thread:
            return
        halt = threading.Event()
        self._halt = halt
        self._thread = threading.Thread(
            target=self._run,
            args=(halt,),
            name=f"glyphcam-capture-{self._camera_index}",
            daemon=True,
        )
        self._thread.start()

    def _run(self, halt: threading.Event) -> None:
        logger.debug("Capture thread running", camera_index=self._camera_index)
        while not halt.is_set():
            if self._paused.is_set():
                halt.wait(PAUSED_POLL_S)
                continue
            self.poll()
        logger.debug("Capture thread exited", camera_index=self._camera_index)

    def _halt_thread(self) -> None:
        self._halt.set()
        thread, self._thread = self._thread, None
        if thread is None or thread is threading.current_thread():
            return
        thread.join(THREAD_JOIN_TIMEOUT_S)
        if thread.is_alive():
            logger.warning(
                "Capture thread still blocked on device, abandoning it",
                camera_index=self._camera_index,
            )

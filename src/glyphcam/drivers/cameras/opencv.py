"""OpenCV camera driver for real webcams.

Wraps ``cv2.VideoCapture``. The stream is opened by ``start_stream`` and
released by ``stop_stream``; a stop only succeeds once OpenCV reports the
device closed, which is what turns the indicator light off.

Example:
    driver = OpenCVCameraDriver()
    for camera in driver.list_cameras():
        print(camera.index, camera.name)

    handle = driver.open(0, width=640, height=480)
    handle.start_stream()
    try:
        rgb = handle.read()
    finally:
        handle.stop_stream()
        handle.release()
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import cv2

from glyphcam.drivers.cameras.errors import (
    DeviceUnavailableError,
    DriverInitError,
    FrameReadError,
    HardwareStopError,
    StreamNotRunningError,
)
from glyphcam.drivers.cameras.types import CameraDescriptor, filter_camera_names
from glyphcam.observability import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = get_logger(__name__)

__all__ = ["OpenCVCameraDriver", "OpenCVCameraHandle"]

#: Highest device index probed by list_cameras().
DEFAULT_MAX_PROBE = 8

#: Linux exposes V4L2 device names here.
_V4L2_SYSFS = Path("/sys/class/video4linux")

CaptureFactory = Callable[[int, int], Any]


def _default_capture_factory(index: int, backend: int) -> Any:
    """Create a ``cv2.VideoCapture`` for the given index and API backend."""
    return cv2.VideoCapture(index, backend)


def _device_name(index: int) -> str:
    """Return the V4L2 device name for ``index`` or a generic label."""
    name_file = _V4L2_SYSFS / f"video{index}" / "name"
    try:
        return name_file.read_text(encoding="utf-8").strip() or f"Camera {index}"
    except OSError:
        return f"Camera {index}"


class OpenCVCameraHandle:
    """Handle to one OpenCV video device.

    A lock serialises access to the underlying ``VideoCapture`` because
    reads happen on the capture thread while start/stop arrive from the
    device worker thread.
    """

    def __init__(
        self,
        index: int,
        width: int,
        height: int,
        backend: int,
        capture_factory: CaptureFactory,
    ) -> None:
        """Create a handle; the device is not opened until start_stream().

        Args:
            index: System device index.
            width: Requested frame width.
            height: Requested frame height.
            backend: OpenCV API preference (e.g. ``cv2.CAP_ANY``).
            capture_factory: Builds the VideoCapture; injectable for tests.
        """
        self._index = index
        self._width = width
        self._height = height
        self._backend = backend
        self._factory = capture_factory
        self._capture: Any = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return (
            f"OpenCVCameraHandle(index={self._index}, "
            f"streaming={self.is_streaming})"
        )

    @property
    def index(self) -> int:
        return self._index

    @property
    def is_streaming(self) -> bool:
        capture = self._capture
        return capture is not None and bool(capture.isOpened())

    @property
    def resolution(self) -> tuple[int, int]:
        capture = self._capture
        if capture is None:
            return (self._width, self._height)
        return (
            int(capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )

    def start_stream(self) -> None:
        """Open the device and request the configured resolution.

        Raises:
            DeviceUnavailableError: OpenCV could not open the device.
        """
        with self._lock:
            if self._capture is not None and self._capture.isOpened():
                return

            logger.debug("Opening video device", camera_index=self._index)
            capture = self._factory(self._index, self._backend)
            if not capture.isOpened():
                capture.release()
                raise DeviceUnavailableError(
                    f"Camera {self._index} could not be opened "
                    "(busy, disconnected, or permission denied)"
                )

            capture.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
            self._capture = capture

        actual = self.resolution
        if actual != (self._width, self._height):
            logger.warning(
                "Requested resolution not supported, using device default",
                camera_index=self._index,
                requested=f"{self._width}x{self._height}",
                actual=f"{actual[0]}x{actual[1]}",
            )
        logger.info(
            "Video device opened",
            camera_index=self._index,
            resolution=f"{actual[0]}x{actual[1]}",
        )

    def stop_stream(self) -> None:
        """Release the device and confirm it reports closed.

        Raises:
            StreamNotRunningError: Nothing to stop.
            HardwareStopError: Release raised, or the device still reports
                open afterwards.
        """
        with self._lock:
            capture = self._capture
            if capture is None or not capture.isOpened():
                self._capture = None
                raise StreamNotRunningError(f"Camera {self._index} is not streaming")

            try:
                capture.release()
            except cv2.error as e:
                raise HardwareStopError(
                    f"Camera {self._index} release failed: {e}"
                ) from e

            if capture.isOpened():
                raise HardwareStopError(
                    f"Camera {self._index} still open after release"
                )
            self._capture = None

        logger.info("Video device closed", camera_index=self._index)

    def read(self) -> NDArray[Any]:
        """Read one frame and convert it from BGR to RGB.

        Raises:
            FrameReadError: Device not streaming or returned no frame.
        """
        with self._lock:
            capture = self._capture
            if capture is None:
                raise FrameReadError(f"Camera {self._index} is not streaming")
            ok, frame = capture.read()

        if not ok or frame is None:
            raise FrameReadError(f"Camera {self._index} returned no frame")

        if frame.ndim == 2:
            return frame
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def release(self) -> None:
        """Release the device if still held; errors are logged, not raised."""
        with self._lock:
            capture, self._capture = self._capture, None
        if capture is None:
            return
        try:
            capture.release()
        except cv2.error as e:
            logger.warning(
                "Error releasing video device",
                camera_index=self._index,
                error=str(e),
            )


class OpenCVCameraDriver:
    """Camera driver backed by OpenCV's videoio module."""

    def __init__(
        self,
        backend: int | None = None,
        capture_factory: CaptureFactory | None = None,
        max_probe: int = DEFAULT_MAX_PROBE,
    ) -> None:
        """Create the driver.

        Args:
            backend: OpenCV API preference; ``cv2.CAP_ANY`` when None.
            capture_factory: Builds VideoCapture objects; tests inject fakes.
            max_probe: Number of device indices probed during discovery.

        Raises:
            DriverInitError: The installed OpenCV build has no videoio
                support.
        """
        if not hasattr(cv2, "VideoCapture"):
            raise DriverInitError("OpenCV build lacks the videoio module")
        self._backend = cv2.CAP_ANY if backend is None else backend
        self._factory = capture_factory or _default_capture_factory
        self._max_probe = max_probe

    def __repr__(self) -> str:
        return f"OpenCVCameraDriver(backend={self._backend})"

    def list_cameras(self) -> list[CameraDescriptor]:
        """Probe device indices and return the cameras that open.

        Returns:
            Filtered descriptors (duplicates and virtual devices removed).
        """
        found: list[CameraDescriptor] = []
        for index in range(self._max_probe):
            capture = self._factory(index, self._backend)
            try:
                if capture.isOpened():
                    found.append(CameraDescriptor(index, _device_name(index)))
            finally:
                capture.release()

        cameras = filter_camera_names(found)
        logger.info(
            "Camera discovery complete",
            probed=self._max_probe,
            found=len(found),
            kept=len(cameras),
        )
        return cameras

    def open(self, index: int, width: int, height: int) -> OpenCVCameraHandle:
        """Create a handle for ``index``; the stream starts on start_stream().

        Raises:
            DeviceUnavailableError: Negative index.
        """
        if index < 0:
            raise DeviceUnavailableError(f"Invalid camera index {index}")
        return OpenCVCameraHandle(index, width, height, self._backend, self._factory)

"""Camera driver types and protocols.

Protocols:
    CameraDriver: Interface for camera discovery and opening
    CameraHandle: Interface for stream start/stop and frame reads

Data:
    CameraDescriptor: Index and human readable name of a device

Helpers:
    filter_camera_names: Drop duplicate and virtual devices from discovery
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from numpy.typing import NDArray


@dataclass(frozen=True, slots=True)
class CameraDescriptor:
    """A discovered camera.

    Attributes:
        index: System device index, passed to ``CameraDriver.open``.
        name: Human readable device name.
    """

    index: int
    name: str


@runtime_checkable
class CameraHandle(Protocol):  # pragma: no cover
    """Protocol for an opened camera device.

    Owns the physical stream. ``start_stream`` and ``stop_stream`` return
    only once the hardware has acknowledged the transition, so that
    ``is_streaming`` always matches the device (indicator light included).
    Implemented by OpenCVCameraHandle and DigitalTwinCameraHandle.
    """

    @property
    def index(self) -> int:
        """System index of the device this handle controls."""
        ...

    @property
    def is_streaming(self) -> bool:
        """True while the hardware stream is running."""
        ...

    @property
    def resolution(self) -> tuple[int, int]:
        """Current (width, height) reported by the device."""
        ...

    def start_stream(self) -> None:
        """Open the hardware stream.

        No-op if the stream is already running.

        Raises:
            DeviceUnavailableError: Device busy, missing, or permission denied.
        """
        ...

    def stop_stream(self) -> None:
        """Stop the hardware stream and wait for the device to confirm.

        Raises:
            StreamNotRunningError: The stream was not running.
            HardwareStopError: The device did not acknowledge the stop; the
                stream must be considered still running.
        """
        ...

    def read(self) -> NDArray[Any]:
        """Block until the next frame is available and return it.

        Returns:
            uint8 array shaped (height, width, 3) in RGB order, or
            (height, width) for monochrome devices.

        Raises:
            FrameReadError: No frame could be read.
        """
        ...

    def release(self) -> None:
        """Release every device resource. Idempotent; never raises."""
        ...


@runtime_checkable
class CameraDriver(Protocol):  # pragma: no cover
    """Protocol for camera drivers (hardware abstraction layer).

    Production code uses OpenCVCameraDriver while tests use
    DigitalTwinCameraDriver with injected faults.
    """

    def list_cameras(self) -> list[CameraDescriptor]:
        """Enumerate available cameras.

        Duplicate names and virtual/dummy devices are filtered out; the
        original system index is preserved on each descriptor.

        Raises:
            DriverInitError: The backend cannot enumerate devices at all.
        """
        ...

    def open(self, index: int, width: int, height: int) -> CameraHandle:
        """Create a handle for the device at ``index``.

        The stream is not started; call ``start_stream`` on the handle.

        Args:
            index: System device index.
            width: Requested frame width. Devices may pick another size.
            height: Requested frame height.

        Raises:
            DeviceUnavailableError: No such device.
        """
        ...


def filter_camera_names(cameras: list[CameraDescriptor]) -> list[CameraDescriptor]:
    """Drop duplicate names and virtual/dummy devices, keeping system indices.

    Example:
        >>> filter_camera_names([
        ...     CameraDescriptor(0, "HD Webcam"),
        ...     CameraDescriptor(1, "HD Webcam"),
        ...     CameraDescriptor(2, "OBS Virtual Camera"),
        ... ])
        [CameraDescriptor(index=0, name='HD Webcam')]
    """
    seen: set[str] = set()
    kept: list[CameraDescriptor] = []
    for camera in cameras:
        lowered = camera.name.lower()
        if camera.name in seen or "virtual" in lowered or "dummy" in lowered:
            continue
        seen.add(camera.name)
        kept.append(camera)
    return kept


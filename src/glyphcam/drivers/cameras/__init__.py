"""Camera driver module.

Provides access to live video devices through OpenCV (real hardware) and a
digital twin simulation for development and tests without hardware.

Protocols:
    CameraDriver: Interface for camera discovery and opening
    CameraHandle: Interface for stream start/stop and frame reads

Implementations:
    OpenCVCameraDriver/OpenCVCameraHandle: Webcams via cv2.VideoCapture
    DigitalTwinCameraDriver/DigitalTwinCameraHandle: Simulated cameras

Errors:
    CaptureError and subclasses, see ``errors``.
"""

from glyphcam.drivers.cameras.errors import (
    CaptureError,
    DeviceUnavailableError,
    DriverInitError,
    FrameReadError,
    HardwareStopError,
    StreamNotRunningError,
)
from glyphcam.drivers.cameras.opencv import (
    OpenCVCameraDriver,
    OpenCVCameraHandle,
)
from glyphcam.drivers.cameras.twin import (
    DigitalTwinCameraDriver,
    DigitalTwinCameraHandle,
    DigitalTwinConfig,
    DigitalTwinFaults,
    TwinPattern,
)
from glyphcam.drivers.cameras.types import (
    CameraDescriptor,
    CameraDriver,
    CameraHandle,
    filter_camera_names,
)

__all__ = [
    # Protocols and data
    "CameraDriver",
    "CameraHandle",
    "CameraDescriptor",
    "filter_camera_names",
    # Errors
    "CaptureError",
    "DeviceUnavailableError",
    "DriverInitError",
    "FrameReadError",
    "HardwareStopError",
    "StreamNotRunningError",
    # OpenCV implementation
    "OpenCVCameraDriver",
    "OpenCVCameraHandle",
    # Digital twin implementation
    "DigitalTwinCameraDriver",
    "DigitalTwinCameraHandle",
    "DigitalTwinConfig",
    "DigitalTwinFaults",
    "TwinPattern",
]

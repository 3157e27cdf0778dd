"""Hardware drivers for glyphcam.

Camera drivers come in two flavours selected through DriverConfig:
OpenCV for real webcams and a digital twin for development and tests.
"""

from glyphcam.drivers.cameras import (
    CameraDescriptor,
    CameraDriver,
    CameraHandle,
    DigitalTwinCameraDriver,
    OpenCVCameraDriver,
)
from glyphcam.drivers.config import DriverConfig, DriverFactory, DriverMode

__all__ = [
    "CameraDescriptor",
    "CameraDriver",
    "CameraHandle",
    "DigitalTwinCameraDriver",
    "OpenCVCameraDriver",
    "DriverConfig",
    "DriverFactory",
    "DriverMode",
]

"""Logical device layer - camera lifecycle above the drivers."""

from glyphcam.devices.capture import (
    CaptureFaultError,
    CaptureSource,
    CaptureStartError,
    CaptureStopError,
)
from glyphcam.devices.clock import Clock, SystemClock
from glyphcam.devices.controller import (
    CameraState,
    DeviceStateController,
    Operation,
    TransitionResult,
)
from glyphcam.devices.frame import Frame, FrameFormatError

__all__ = [
    # Frames
    "Frame",
    "FrameFormatError",
    # Capture
    "CaptureSource",
    "CaptureStartError",
    "CaptureStopError",
    "CaptureFaultError",
    # Clock (shared)
    "Clock",
    "SystemClock",
    # Controller
    "CameraState",
    "DeviceStateController",
    "Operation",
    "TransitionResult",
]

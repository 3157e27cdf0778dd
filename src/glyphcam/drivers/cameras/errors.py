"""Exceptions raised by camera drivers and the capture layer.

Hierarchy:
    CaptureError
    ├── DriverInitError        backend cannot be created at all
    ├── DeviceUnavailableError device cannot be opened (permission, busy, unplugged)
    ├── StreamNotRunningError  stop issued to a stream that is not running
    ├── HardwareStopError      hardware did not acknowledge a stop
    └── FrameReadError         device returned no frame
"""

from __future__ import annotations


class CaptureError(Exception):
    """Base exception for camera hardware and capture operations."""

    pass


class DriverInitError(CaptureError):
    """Raised when a camera backend cannot be initialized."""

    pass


class DeviceUnavailableError(CaptureError):
    """Raised when a camera device cannot be opened."""

    pass


class StreamNotRunningError(CaptureError):
    """Raised when stopping a stream that was not running."""

    pass


class HardwareStopError(CaptureError):
    """Raised when the device fails to acknowledge a stop request."""

    pass


class FrameReadError(CaptureError):
    """Raised when the device fails to deliver a frame."""

    pass

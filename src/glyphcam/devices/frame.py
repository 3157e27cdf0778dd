"""Captured frame container.

A Frame owns one raster image from the capture device: interleaved RGB
(or single-channel) uint8 samples plus width and height. The pixel array is
made read-only when the frame is built, so a frame handed from the capture
thread to the router can never be mutated by either side.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

__all__ = ["Frame", "FrameFormatError"]


class FrameFormatError(ValueError):
    """Raised when a frame buffer does not match its declared geometry."""

    pass


@dataclass(frozen=True, slots=True)
class Frame:
    """One captured image.

    Attributes:
        pixels: uint8 samples shaped (height, width, channels) or
            (height, width). Read-only.
        width: Image width in pixels.
        height: Image height in pixels.
        sequence: Capture sequence number, starting at 1 per stream.
        timestamp: Monotonic time the frame was accepted.
    """

    pixels: NDArray[Any]
    width: int
    height: int
    sequence: int = 0
    timestamp: float = 0.0

    @classmethod
    def from_array(
        cls,
        pixels: NDArray[Any],
        sequence: int = 0,
        timestamp: float = 0.0,
    ) -> Frame:
        """Take ownership of a device array, deriving width and height.

        The array is frozen (``writeable=False``); callers must not reuse it.

        Raises:
            FrameFormatError: Array is not 2-D or 3-D.
        """
        if pixels.ndim not in (2, 3):
            raise FrameFormatError(f"Expected 2-D or 3-D pixel array, got {pixels.ndim}-D")
        pixels.setflags(write=False)
        height, width = pixels.shape[:2]
        return cls(pixels, int(width), int(height), sequence, timestamp)

    @classmethod
    def from_buffer(
        cls,
        data: bytes | bytearray | memoryview,
        width: int,
        height: int,
        channels: int = 3,
        sequence: int = 0,
        timestamp: float = 0.0,
    ) -> Frame:
        """Build a frame from a raw interleaved byte buffer.

        Args:
            data: Row-major interleaved samples.
            width: Image width.
            height: Image height.
            channels: 3 for RGB, 1 for grayscale.

        Raises:
            FrameFormatError: ``len(data)`` differs from
                ``width * height * channels`` or channels is unsupported.

        Example:
            >>> frame = Frame.from_buffer(bytes(12), width=2, height=2)
            >>> frame.pixels.shape
            (2, 2, 3)
        """
        if channels not in (1, 3):
            raise FrameFormatError(f"Unsupported channel count {channels}")
        if width < 0 or height < 0:
            raise FrameFormatError(f"Invalid frame size {width}x{height}")
        expected = width * height * channels
        if len(data) != expected:
            raise FrameFormatError(
                f"Buffer holds {len(data)} bytes, expected {expected} "
                f"for {width}x{height}x{channels}"
            )
        pixels = np.frombuffer(bytes(data), dtype=np.uint8)
        if channels == 1:
            pixels = pixels.reshape(height, width)
        else:
            pixels = pixels.reshape(height, width, channels)
        return cls(pixels, width, height, sequence, timestamp)

    @property
    def channels(self) -> int:
        """Number of samples per pixel (1 or 3)."""
        return 1 if self.pixels.ndim == 2 else int(self.pixels.shape[2])

    def validate(self) -> None:
        """Check that pixels agree with width, height, dtype and channels.

        Raises:
            FrameFormatError: Describing the first mismatch found.
        """
        pixels = self.pixels
        if pixels.dtype != np.uint8:
            raise FrameFormatError(f"Expected uint8 samples, got {pixels.dtype}")
        if pixels.ndim not in (2, 3):
            raise FrameFormatError(f"Expected 2-D or 3-D pixel array, got {pixels.ndim}-D")
        if pixels.shape[:2] != (self.height, self.width):
            raise FrameFormatError(
                f"Pixel array is {pixels.shape[1]}x{pixels.shape[0]}, "
                f"frame declares {self.width}x{self.height}"
            )
        if self.channels not in (1, 3):
            raise FrameFormatError(f"Unsupported channel count {self.channels}")
        if self.width == 0 or self.height == 0:
            raise FrameFormatError("Frame has no pixels")

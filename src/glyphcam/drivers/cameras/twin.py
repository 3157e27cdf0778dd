"""Digital Twin Camera Driver - Simulated Hardware for Testing.

Provides simulated webcams for development and tests without physical
hardware. Follows the CameraDriver protocol for drop-in replacement.

The twin models the parts of a real device that matter to the capture
pipeline: an indicator light that is on exactly while the stream runs,
stops that can fail or stall, opens that can be refused, and reads that
can fail. Faults are configured on a shared DigitalTwinFaults object so a
test can change them while a capture thread is running.

Patterns:
    GRADIENT: Horizontal luminance ramp with a moving marker
    SOLID: Uniform colour (``fill``)
    NOISE: Uniform random noise
    BARS: Vertical luminance bars

Example:
    faults = DigitalTwinFaults(stop_failures=1)
    driver = DigitalTwinCameraDriver(faults=faults)
    handle = driver.open(0, 640, 480)
    handle.start_stream()
    handle.stop_stream()   # raises HardwareStopError, light stays on
    handle.stop_stream()   # succeeds, light off
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, final

import cv2
import numpy as np

from glyphcam.drivers.cameras.errors import (
    DeviceUnavailableError,
    FrameReadError,
    HardwareStopError,
    StreamNotRunningError,
)
from glyphcam.drivers.cameras.types import CameraDescriptor, filter_camera_names
from glyphcam.observability import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = get_logger(__name__)

__all__ = [
    "DigitalTwinCameraDriver",
    "DigitalTwinCameraHandle",
    "DigitalTwinConfig",
    "DigitalTwinFaults",
    "TwinPattern",
]


class TwinPattern(Enum):
    """Image pattern generated by the digital twin."""

    GRADIENT = "gradient"
    SOLID = "solid"
    NOISE = "noise"
    BARS = "bars"


@dataclass
class DigitalTwinConfig:
    """Configuration for simulated camera output.

    Attributes:
        pattern: Generated image pattern.
        fill: RGB colour for the SOLID pattern.
        frame_interval_s: Simulated time between frames; read() sleeps this
            long. Zero returns frames immediately.
        camera_names: Names of the simulated devices, one per index.
        seed: Seed for the NOISE pattern.
    """

    pattern: TwinPattern = TwinPattern.GRADIENT
    fill: tuple[int, int, int] = (255, 255, 255)
    frame_interval_s: float = 1 / 30
    camera_names: tuple[str, ...] = ("Digital Twin Camera",)
    seed: int | None = None


@dataclass
class DigitalTwinFaults:
    """Injectable hardware faults, shared by all handles of a driver.

    Attributes:
        open_unavailable: start_stream() raises DeviceUnavailableError.
        stop_failures: Number of upcoming stop attempts that fail with
            HardwareStopError. Decremented per failed attempt.
        silent_stop_failures: Number of upcoming stop attempts that return
            normally but leave the light on, like a driver that never
            confirms. Decremented per such attempt.
        stop_delay_s: Seconds each stop attempt stalls before resolving.
        read_failures: Number of upcoming reads that raise FrameReadError.
    """

    open_unavailable: bool = False
    stop_failures: int = 0
    silent_stop_failures: int = 0
    stop_delay_s: float = 0.0
    read_failures: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def consume_stop_failure(self) -> bool:
        """Return True (and decrement) if the next stop should fail."""
        with self._lock:
            if self.stop_failures > 0:
                self.stop_failures -= 1
                return True
            return False

    def consume_silent_stop_failure(self) -> bool:
        """Return True (and decrement) if the next stop should be ignored."""
        with self._lock:
            if self.silent_stop_failures > 0:
                self.silent_stop_failures -= 1
                return True
            return False

    def consume_read_failure(self) -> bool:
        """Return True (and decrement) if the next read should fail."""
        with self._lock:
            if self.read_failures > 0:
                self.read_failures -= 1
                return True
            return False


@final
class DigitalTwinCameraHandle:
    """Simulated open camera.

    ``light_on`` mirrors the indicator LED of a webcam: it switches on when
    a start is acknowledged and off only when a stop is acknowledged.
    ``start_calls`` and ``stop_calls`` count hardware calls so tests can
    assert that no duplicate call was issued.
    """

    def __init__(
        self,
        index: int,
        width: int,
        height: int,
        config: DigitalTwinConfig,
        faults: DigitalTwinFaults,
        sleep: Callable[[float], None],
    ) -> None:
        """Create a stopped handle.

        Args:
            index: Simulated device index.
            width: Frame width produced by read().
            height: Frame height produced by read().
            config: Pattern and timing configuration.
            faults: Shared fault injection settings.
            sleep: Sleep function used to simulate frame timing and stalls.
        """
        self._index = index
        self._width = width
        self._height = height
        self._config = config
        self._faults = faults
        self._sleep = sleep
        self._rng = np.random.default_rng(config.seed)
        self._lock = threading.Lock()
        self._frame_number = 0
        self._released = False
        self.light_on = False
        self.start_calls = 0
        self.stop_calls = 0

    def __repr__(self) -> str:
        return (
            f"DigitalTwinCameraHandle(index={self._index}, "
            f"pattern={self._config.pattern.value}, light_on={self.light_on})"
        )

    @property
    def index(self) -> int:
        return self._index

    @property
    def is_streaming(self) -> bool:
        return self.light_on

    @property
    def resolution(self) -> tuple[int, int]:
        return (self._width, self._height)

    def start_stream(self) -> None:
        """Start the simulated stream (light on).

        Raises:
            DeviceUnavailableError: When ``faults.open_unavailable`` is set
                or the handle was released.
        """
        with self._lock:
            self.start_calls += 1
            if self._released or self._faults.open_unavailable:
                raise DeviceUnavailableError(
                    f"Simulated camera {self._index} is unavailable"
                )
            self.light_on = True
        logger.debug("Simulated stream started", camera_index=self._index)

    def stop_stream(self) -> None:
        """Stop the simulated stream (light off) unless a fault is armed.

        Raises:
            StreamNotRunningError: Stream not running.
            HardwareStopError: A stop failure was injected; light stays on.
        """
        with self._lock:
            self.stop_calls += 1
            running = self.light_on
        if not running:
            raise StreamNotRunningError(f"Simulated camera {self._index} not running")

        if self._faults.stop_delay_s > 0:
            self._sleep(self._faults.stop_delay_s)

        if self._faults.consume_stop_failure():
            logger.debug("Injected stop failure", camera_index=self._index)
            raise HardwareStopError(
                f"Simulated camera {self._index} did not acknowledge stop"
            )

        if self._faults.consume_silent_stop_failure():
            logger.debug("Injected silent stop failure", camera_index=self._index)
            return

        with self._lock:
            self.light_on = False
        logger.debug("Simulated stream stopped", camera_index=self._index)

    def read(self) -> NDArray[Any]:
        """Produce the next frame of the configured pattern.

        Raises:
            FrameReadError: Stream not running or a read failure was injected.
        """
        if self._config.frame_interval_s > 0:
            self._sleep(self._config.frame_interval_s)

        if not self.light_on:
            raise FrameReadError(f"Simulated camera {self._index} is not streaming")
        if self._faults.consume_read_failure():
            raise FrameReadError(f"Simulated camera {self._index} read failed")

        self._frame_number += 1
        return self._generate(self._frame_number)

    def _generate(self, frame_number: int) -> NDArray[Any]:
        """Render one RGB frame of the configured pattern."""
        width, height = self._width, self._height
        pattern = self._config.pattern

        if pattern is TwinPattern.SOLID:
            img = np.empty((height, width, 3), dtype=np.uint8)
            img[:, :] = self._config.fill
            return img

        if pattern is TwinPattern.NOISE:
            return self._rng.integers(0, 256, (height, width, 3), dtype=np.uint8)

        if pattern is TwinPattern.BARS:
            bars = 8
            levels = np.linspace(0, 255, bars).astype(np.uint8)
            columns = np.repeat(levels, int(np.ceil(width / bars)))[:width]
            return np.repeat(np.tile(columns, (height, 1))[:, :, None], 3, axis=2)

        ramp = np.linspace(0, 255, width).astype(np.uint8)
        img = np.repeat(np.tile(ramp, (height, 1))[:, :, None], 3, axis=2)
        img = np.ascontiguousarray(img)

        # Moving marker so consecutive frames differ visibly
        radius = max(2, min(width, height) // 8)
        cx = (frame_number * 4) % max(1, width)
        cv2.circle(img, (cx, height // 2), radius, (255, 64, 64), -1)
        return img

    def release(self) -> None:
        """Mark the handle released and switch the light off."""
        with self._lock:
            self._released = True
            self.light_on = False


class DigitalTwinCameraDriver:
    """Driver producing simulated cameras.

    Every handle opened by the driver is kept in ``handles`` for inspection.
    """

    def __init__(
        self,
        config: DigitalTwinConfig | None = None,
        faults: DigitalTwinFaults | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        """Create the driver.

        Args:
            config: Pattern configuration; defaults to DigitalTwinConfig().
            faults: Fault injection; defaults to no faults.
            sleep: Sleep function for frame timing; ``time.sleep`` if None.
        """
        self.config = config or DigitalTwinConfig()
        self.faults = faults or DigitalTwinFaults()
        self._sleep = sleep or time.sleep
        self.handles: list[DigitalTwinCameraHandle] = []

    def __repr__(self) -> str:
        return (
            f"DigitalTwinCameraDriver(pattern={self.config.pattern.value}, "
            f"cameras={list(self.config.camera_names)})"
        )

    def list_cameras(self) -> list[CameraDescriptor]:
        """Return one descriptor per configured simulated device."""
        return filter_camera_names(
            [
                CameraDescriptor(index, name)
                for index, name in enumerate(self.config.camera_names)
            ]
        )

    def open(self, index: int, width: int, height: int) -> DigitalTwinCameraHandle:
        """Create a handle for a simulated device.

        Raises:
            DeviceUnavailableError: Index not among the simulated devices.
        """
        if not 0 <= index < len(self.config.camera_names):
            raise DeviceUnavailableError(f"Simulated camera {index} not found")
        logger.info("Opening simulated camera", camera_index=index)
        handle = DigitalTwinCameraHandle(
            index, width, height, self.config, self.faults, self._sleep
        )
        self.handles.append(handle)
        return handle

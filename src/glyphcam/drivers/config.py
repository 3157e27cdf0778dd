"""Driver configuration and factory.

Supports switching between the OpenCV hardware driver and the digital twin
driver for development and tests without a webcam.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from glyphcam.drivers.cameras import (
    CameraDriver,
    DigitalTwinCameraDriver,
    DigitalTwinConfig,
    DriverInitError,
    OpenCVCameraDriver,
    TwinPattern,
)
from glyphcam.observability import get_logger

logger = get_logger(__name__)


class DriverMode(Enum):
    """Driver mode selection."""

    HARDWARE = "hardware"  # Real webcams through OpenCV
    DIGITAL_TWIN = "digital_twin"  # Simulated cameras


@dataclass
class DriverConfig:
    """Configuration for driver selection.

    Attributes:
        mode: HARDWARE for real devices, DIGITAL_TWIN for simulation.
        twin: Pattern settings used in DIGITAL_TWIN mode.
        max_probe: Device indices probed by hardware discovery.
    """

    mode: DriverMode = DriverMode.HARDWARE
    twin: DigitalTwinConfig = field(default_factory=DigitalTwinConfig)
    max_probe: int = 8


class DriverFactory:
    """Create the camera driver selected by a DriverConfig.

    Example:
        factory = DriverFactory(DriverConfig(mode=DriverMode.DIGITAL_TWIN))
        driver = factory.create_camera_driver()
    """

    def __init__(self, config: DriverConfig | None = None) -> None:
        self.config = config or DriverConfig()

    def __repr__(self) -> str:
        return f"DriverFactory(mode={self.config.mode.value})"

    def create_camera_driver(self) -> CameraDriver:
        """Build the configured driver.

        Returns:
            OpenCVCameraDriver in HARDWARE mode, DigitalTwinCameraDriver in
            DIGITAL_TWIN mode.

        Raises:
            DriverInitError: The hardware backend cannot be initialized.
        """
        if self.config.mode is DriverMode.DIGITAL_TWIN:
            logger.info(
                "Using digital twin camera driver",
                pattern=self.config.twin.pattern.value,
            )
            return DigitalTwinCameraDriver(config=self.config.twin)

        try:
            driver = OpenCVCameraDriver(max_probe=self.config.max_probe)
        except DriverInitError:
            logger.error("OpenCV camera backend unavailable")
            raise
        logger.info("Using OpenCV camera driver")
        return driver


def parse_twin_pattern(value: str) -> TwinPattern:
    """Map a pattern name to TwinPattern.

    Raises:
        ValueError: Unknown pattern name.

    Example:
        >>> parse_twin_pattern("solid")
        <TwinPattern.SOLID: 'solid'>
    """
    try:
        return TwinPattern(value.lower())
    except ValueError:
        choices = ", ".join(p.value for p in TwinPattern)
        raise ValueError(f"Unknown twin pattern {value!r} (choose: {choices})") from None

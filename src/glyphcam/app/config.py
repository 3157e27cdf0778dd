"""Session configuration.

AppConfig holds every startup input of a session: device selection,
capture geometry, loop timings and the initial rendering settings. It is
built by the CLI and validated once; the running app treats it as
read-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from glyphcam.app.settings import MAX_SCALE, MIN_SCALE, Settings
from glyphcam.drivers.cameras import DigitalTwinConfig
from glyphcam.drivers.config import DriverConfig, DriverMode, parse_twin_pattern
from glyphcam.glyphs.charsets import CharacterSet

__all__ = ["AppConfig", "ConfigError"]


class ConfigError(ValueError):
    """Raised when a configuration value is out of range or unknown."""

    pass


@dataclass
class AppConfig:
    """Startup configuration for one glyphcam session.

    Attributes:
        camera_index: System index of the camera to open.
        width: Requested capture width in pixels.
        height: Requested capture height in pixels.
        target_fps: Capture rate cap; frame-skip threshold is 1/target_fps.
        tick_interval_s: Control loop tick, the longest the loop waits for
            an event.
        render_interval_s: Minimum time between two conversions.
        charset: Initial character set name.
        scale: Initial grid scale factor.
        color: Start with colour enabled.
        stop_timeout_s: Longest wait for the final hardware stop on exit.
        force_stop_retries: Attempts made by a force stop.
        retry_delay_s: Pause between force-stop attempts.
        driver_mode: "hardware" or "digital_twin".
        twin_pattern: Test pattern used by the digital twin.
        autostart: Start the camera as soon as the UI is up.
        twin: Remaining digital twin settings; ``pattern`` is taken from
            twin_pattern.
    """

    camera_index: int = 0
    width: int = 640
    height: int = 480
    target_fps: float = 30.0
    tick_interval_s: float = 0.016
    render_interval_s: float = 1 / 30
    charset: str = "Dense"
    scale: float = 1.0
    color: bool = False
    stop_timeout_s: float = 2.0
    force_stop_retries: int = 3
    retry_delay_s: float = 0.1
    driver_mode: str = "hardware"
    twin_pattern: str = "gradient"
    autostart: bool = True
    twin: DigitalTwinConfig = field(default_factory=DigitalTwinConfig)

    @property
    def frame_skip_threshold_s(self) -> float:
        return 1.0 / self.target_fps

    def validate(self) -> None:
        """Check every field.

        Raises:
            ConfigError: Describing the first invalid value.
        """
        if self.camera_index < 0:
            raise ConfigError(f"camera_index must be >= 0, got {self.camera_index}")
        if self.width <= 0 or self.height <= 0:
            raise ConfigError(f"Capture size must be positive, got {self.width}x{self.height}")
        for name in ("target_fps", "tick_interval_s", "render_interval_s", "stop_timeout_s"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigError(f"{name} must be positive, got {value}")
        if self.retry_delay_s < 0:
            raise ConfigError(f"retry_delay_s must be >= 0, got {self.retry_delay_s}")
        if self.force_stop_retries < 1:
            raise ConfigError(
                f"force_stop_retries must be >= 1, got {self.force_stop_retries}"
            )
        if not MIN_SCALE <= self.scale <= MAX_SCALE:
            raise ConfigError(f"scale must be in [{MIN_SCALE}, {MAX_SCALE}], got {self.scale}")
        try:
            CharacterSet.from_name(self.charset)
            parse_twin_pattern(self.twin_pattern)
            DriverMode(self.driver_mode)
        except ValueError as e:
            raise ConfigError(str(e)) from e

    def initial_settings(self) -> Settings:
        return Settings(
            charset=CharacterSet.from_name(self.charset),
            scale=self.scale,
            color_enabled=self.color,
        )

    def driver_config(self) -> DriverConfig:
        """DriverConfig for the DriverFactory."""
        twin = replace(self.twin, pattern=parse_twin_pattern(self.twin_pattern))
        return DriverConfig(mode=DriverMode(self.driver_mode), twin=twin)

"""User-adjustable rendering settings.

Settings has a single writer, the event router, which mutates it only in
response to control events. The converter receives a frozen
SettingsSnapshot taken at conversion time, so it never sees a half-applied
change.
"""

from __future__ import annotations

from dataclasses import dataclass

from glyphcam.glyphs.charsets import CharacterSet

__all__ = [
    "MAX_SCALE",
    "MIN_SCALE",
    "SCALE_STEP",
    "Settings",
    "SettingsSnapshot",
    "target_grid",
]

MIN_SCALE: float = 0.1
MAX_SCALE: float = 2.0
SCALE_STEP: float = 0.1


def _clamp_scale(value: float) -> float:
    # Rounded to one decimal so repeated steps never drift (0.1 + 0.2 != 0.3).
    return round(min(MAX_SCALE, max(MIN_SCALE, value)), 1)


def target_grid(rows: int, cols: int, scale: float) -> tuple[int, int]:
    """Grid size for a drawable area at a scale factor.

    Each dimension is floored and kept at least 1, unless the drawable
    dimension itself is 0.

    Example:
        >>> target_grid(40, 120, 0.5)
        (20, 60)
        >>> target_grid(3, 3, 0.1)
        (1, 1)
    """
    def scaled(n: int) -> int:
        if n <= 0:
            return 0
        return max(1, int(n * scale))

    return scaled(rows), scaled(cols)


@dataclass(frozen=True, slots=True)
class SettingsSnapshot:
    """Immutable copy of Settings handed to the converter."""

    charset: CharacterSet
    scale: float
    color_enabled: bool


@dataclass
class Settings:
    """Mutable rendering settings owned by the event router.

    Attributes:
        charset: Active character set.
        scale: Grid scale factor in [MIN_SCALE, MAX_SCALE].
        color_enabled: Attach colours to glyph cells.
    """

    charset: CharacterSet = CharacterSet.DENSE
    scale: float = 1.0
    color_enabled: bool = False

    def __post_init__(self) -> None:
        self.scale = _clamp_scale(self.scale)

    def snapshot(self) -> SettingsSnapshot:
        return SettingsSnapshot(self.charset, self.scale, self.color_enabled)

    def toggle_color(self) -> bool:
        self.color_enabled = not self.color_enabled
        return self.color_enabled

    def next_charset(self) -> CharacterSet:
        self.charset = self.charset.next()
        return self.charset

    def previous_charset(self) -> CharacterSet:
        self.charset = self.charset.previous()
        return self.charset

    def increase_scale(self) -> float:
        """Step the scale up, saturating at MAX_SCALE."""
        self.scale = _clamp_scale(self.scale + SCALE_STEP)
        return self.scale

    def decrease_scale(self) -> float:
        """Step the scale down, saturating at MIN_SCALE."""
        self.scale = _clamp_scale(self.scale - SCALE_STEP)
        return self.scale

"""Messages merged by the event router.

Everything that reaches the control loop is one of these frozen
dataclasses, posted to a single queue and partitioned each iteration into
frame events and control events (commands, resizes, device reports).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from glyphcam.devices.controller import TransitionResult
from glyphcam.devices.frame import Frame

__all__ = [
    "CameraFaultEvent",
    "Command",
    "ControlEvent",
    "DeviceEvent",
    "Event",
    "FrameEvent",
    "ResizeEvent",
    "TickEvent",
    "is_control",
]


class Command(Enum):
    """User commands, already mapped from raw keys."""

    TOGGLE_CAMERA = "toggle_camera"
    TOGGLE_COLOR = "toggle_color"
    NEXT_CHARACTER_SET = "next_character_set"
    PREVIOUS_CHARACTER_SET = "previous_character_set"
    INCREASE_SCALE = "increase_scale"
    DECREASE_SCALE = "decrease_scale"
    NEXT_CAMERA = "next_camera"
    PREVIOUS_CAMERA = "previous_camera"
    FORCE_STOP_CAMERA = "force_stop_camera"
    RESET_CAMERA = "reset_camera"
    QUIT = "quit"


@dataclass(frozen=True, slots=True)
class ControlEvent:
    command: Command


@dataclass(frozen=True, slots=True)
class ResizeEvent:
    """Drawable area changed (terminal resize)."""

    rows: int
    cols: int


@dataclass(frozen=True, slots=True)
class FrameEvent:
    frame: Frame


@dataclass(frozen=True, slots=True)
class TickEvent:
    timestamp: float


@dataclass(frozen=True, slots=True)
class DeviceEvent:
    """Completed camera lifecycle request reported by the controller."""

    result: TransitionResult


@dataclass(frozen=True, slots=True)
class CameraFaultEvent:
    """Capture-side read failure; informational, never fatal."""

    message: str


Event = ControlEvent | ResizeEvent | FrameEvent | TickEvent | DeviceEvent | CameraFaultEvent


def is_control(event: Event) -> bool:
    """True for events processed before frames: commands, resizes, reports."""
    return isinstance(event, ControlEvent | ResizeEvent | DeviceEvent | CameraFaultEvent)

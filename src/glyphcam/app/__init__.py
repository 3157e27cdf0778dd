"""Application layer: events, settings, the control loop and its wiring."""

from glyphcam.app.config import AppConfig, ConfigError
from glyphcam.app.events import (
    CameraFaultEvent,
    Command,
    ControlEvent,
    DeviceEvent,
    Event,
    FrameEvent,
    ResizeEvent,
    TickEvent,
)
from glyphcam.app.keys import KeyMap
from glyphcam.app.router import EventRouter, InputSource, NullInput, NullRenderer, Renderer
from glyphcam.app.runtime import Session, build_session, run_session
from glyphcam.app.settings import Settings, SettingsSnapshot, target_grid
from glyphcam.app.slot import LatestFrameSlot
from glyphcam.app.status import StatusInfo

__all__ = [
    # Configuration
    "AppConfig",
    "ConfigError",
    # Events
    "CameraFaultEvent",
    "Command",
    "ControlEvent",
    "DeviceEvent",
    "Event",
    "FrameEvent",
    "ResizeEvent",
    "TickEvent",
    "KeyMap",
    # Loop
    "EventRouter",
    "InputSource",
    "LatestFrameSlot",
    "NullInput",
    "NullRenderer",
    "Renderer",
    "StatusInfo",
    # Settings
    "Settings",
    "SettingsSnapshot",
    "target_grid",
    # Wiring
    "Session",
    "build_session",
    "run_session",
]

"""Status line content."""

from __future__ import annotations

from dataclasses import dataclass

from glyphcam.devices.controller import CameraState

__all__ = ["StatusInfo"]


@dataclass(frozen=True, slots=True)
class StatusInfo:
    """Everything shown on the status line.

    Errors and progress messages share this surface with normal state;
    there are no separate error dialogs.
    """

    state: CameraState
    camera_index: int
    charset: str
    color_enabled: bool
    scale: float
    fps: float
    message: str = ""

    @property
    def camera_on(self) -> bool:
        return self.state is CameraState.ACTIVE

    def format(self) -> str:
        """Render as a single line.

        Example:
            >>> StatusInfo(CameraState.ACTIVE, 0, "Dense", False, 1.0, 29.94).format()
            'Camera 0: ON | Set: Dense | Color: OFF | Scale: 1.0 | FPS: 29.9'
        """
        if self.state is CameraState.ACTIVE:
            camera = "ON"
        elif self.state is CameraState.STOPPED:
            camera = "OFF"
        else:
            camera = self.state.label.upper()
        parts = [
            f"Camera {self.camera_index}: {camera}",
            f"Set: {self.charset}",
            f"Color: {'ON' if self.color_enabled else 'OFF'}",
            f"Scale: {self.scale:.1f}",
            f"FPS: {self.fps:.1f}",
        ]
        if self.message:
            parts.append(self.message)
        return " | ".join(parts)

"""Single-slot buffer for the newest unconverted frame."""

from __future__ import annotations

from glyphcam.devices.frame import Frame

__all__ = ["LatestFrameSlot"]


class LatestFrameSlot:
    """Holds at most one frame; a newer frame overwrites the older one.

    Only the event router touches the slot, so it needs no lock.

    Example:
        slot = LatestFrameSlot()
        slot.put(frame_1)
        dropped = slot.put(frame_2)  # frame_1 is returned and discarded
        frame = slot.take()          # frame_2, slot is now empty
    """

    __slots__ = ("_frame",)

    def __init__(self) -> None:
        self._frame: Frame | None = None

    def __bool__(self) -> bool:
        return self._frame is not None

    def put(self, frame: Frame) -> Frame | None:
        """Store ``frame``, returning the frame it replaced, if any."""
        previous, self._frame = self._frame, frame
        return previous

    def peek(self) -> Frame | None:
        return self._frame

    def take(self) -> Frame | None:
        """Remove and return the buffered frame."""
        frame, self._frame = self._frame, None
        return frame

    def clear(self) -> None:
        self._frame = None

"""Character sets used to draw brightness levels.

Every set is ordered from the emptiest glyph (index 0, drawn for black) to
the densest glyph (last index, drawn for white), so a larger index always
means more ink on the terminal cell.
"""

from __future__ import annotations

from enum import Enum

__all__ = ["CharacterSet"]


class CharacterSet(Enum):
    """Available glyph palettes, darkest (emptiest) first."""

    DENSE = ("Dense", " .,:;+*?%S#@")
    SIMPLE = ("Simple", " .-+*#@")
    BLOCKS = ("Blocks", " ▏▎▍▌▋▊▉█")
    MINIMAL = ("Minimal", " ░▒▓█")

    def __init__(self, label: str, glyphs: str) -> None:
        self.label = label
        self.glyphs = glyphs

    def __len__(self) -> int:
        return len(self.glyphs)

    def next(self) -> CharacterSet:
        """Following set in cycle order, wrapping around."""
        members = list(CharacterSet)
        return members[(members.index(self) + 1) % len(members)]

    def previous(self) -> CharacterSet:
        """Preceding set in cycle order, wrapping around."""
        members = list(CharacterSet)
        return members[(members.index(self) - 1) % len(members)]

    @classmethod
    def from_name(cls, name: str) -> CharacterSet:
        """Look a set up by label or member name, case-insensitively.

        Raises:
            ValueError: No set has that name.

        Example:
            >>> CharacterSet.from_name("blocks")
            <CharacterSet.BLOCKS: ('Blocks', ' ▏▎▍▌▋▊▉█')>
        """
        wanted = name.strip().lower()
        for member in cls:
            if member.label.lower() == wanted or member.name.lower() == wanted:
                return member
        choices = ", ".join(m.label for m in cls)
        raise ValueError(f"Unknown character set {name!r} (choose: {choices})")

    @classmethod
    def names(cls) -> list[str]:
        return [m.label for m in cls]

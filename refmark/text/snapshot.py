"""Immutable text snapshot values: ranges, snapshots, points and spans."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from refmark.text.buffer import TextBuffer


@dataclass(frozen=True, slots=True)
class TextRange:
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid text range [{self.start}, {self.end}).")

    @property
    def length(self) -> int:
        return self.end - self.start

    def contains(self, position: int) -> bool:
        # Inclusive on both ends: a caret right after an identifier is still on it.
        return self.start <= int(position) <= self.end


@dataclass(frozen=True, slots=True)
class TextChange:
    buffer_id: str
    old_version: int
    new_version: int
    position: int
    removed: int
    added: int


@dataclass(frozen=True, slots=True)
class TextSnapshot:
    """One version of a buffer's text. Equal snapshots share buffer id and version."""

    buffer_id: str
    version: int
    text: str = field(compare=False, repr=False)
    content_type: str = field(compare=False, default="plaintext")
    buffer: "TextBuffer | None" = field(compare=False, repr=False, default=None)

    @property
    def length(self) -> int:
        return len(self.text)

    def full_span(self) -> "SnapshotSpan":
        return SnapshotSpan(self, TextRange(0, self.length))

    def point(self, position: int) -> "SnapshotPoint":
        return SnapshotPoint(self, max(0, min(self.length, int(position))))

    def span(self, text_range: TextRange) -> "SnapshotSpan":
        if text_range.end > self.length:
            raise ValueError(
                f"Range [{text_range.start}, {text_range.end}) lies outside snapshot "
                f"{self.buffer_id}@{self.version} of length {self.length}."
            )
        return SnapshotSpan(self, text_range)

    def get_text(self, text_range: TextRange) -> str:
        return self.text[text_range.start:text_range.end]


@dataclass(frozen=True, slots=True)
class SnapshotPoint:
    snapshot: TextSnapshot
    position: int


@dataclass(frozen=True, slots=True)
class SnapshotSpan:
    snapshot: TextSnapshot
    range: TextRange

    @property
    def start(self) -> int:
        return self.range.start

    @property
    def end(self) -> int:
        return self.range.end

    def contains(self, point: SnapshotPoint) -> bool:
        return point.snapshot == self.snapshot and self.range.contains(point.position)


def utf16_position(text: str, offset: int) -> int:
    """Qt document position (UTF-16 code units) of a character offset into ``text``."""
    prefix = text[:max(0, int(offset))]
    if prefix.isascii():
        return len(prefix)
    return len(prefix) + sum(1 for ch in prefix if ord(ch) > 0xFFFF)


def offset_from_utf16(text: str, position: int) -> int:
    """Character offset into ``text`` of a Qt document position.

    A position that falls between the halves of a surrogate pair maps to the
    character after it.
    """
    units = max(0, int(position))
    if text.isascii():
        return min(units, len(text))
    count = 0
    for index, ch in enumerate(text):
        if count >= units:
            return index
        count += 2 if ord(ch) > 0xFFFF else 1
    return len(text)

"""Next/previous highlight lookup."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import Enum

from refmark.highlighting.tags import DisplayedTag
from refmark.text.snapshot import SnapshotPoint


class NavigationDirection(Enum):
    NEXT = 1
    PREVIOUS = -1


def order_tags(tags: Iterable[DisplayedTag], buffer_order: Sequence[str]) -> list[DisplayedTag]:
    rank = {buffer_id: idx for idx, buffer_id in enumerate(buffer_order)}
    return sorted(
        tags,
        key=lambda tag: (rank.get(tag.buffer_id, len(rank)), tag.buffer_id, tag.range.start, tag.range.end),
    )


def find_adjacent_tag(
    tags: Iterable[DisplayedTag],
    caret: SnapshotPoint,
    direction: NavigationDirection,
    buffer_order: Sequence[str] = (),
) -> DisplayedTag | None:
    """Tag after/before the one under the caret, wrapping around; None when the caret is on no tag."""
    ordered = order_tags(tags, buffer_order)
    if not ordered:
        return None

    current_idx = -1
    for idx, tag in enumerate(ordered):
        if tag.snapshot == caret.snapshot and tag.range.contains(caret.position):
            current_idx = idx
            break
    if current_idx < 0:
        return None
    return ordered[(current_idx + direction.value) % len(ordered)]

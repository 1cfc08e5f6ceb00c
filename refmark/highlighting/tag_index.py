"""Per-context store of displayed tags."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from refmark.highlighting.tags import DisplayedTag, TagKey, TagKind
from refmark.text.snapshot import SnapshotPoint


class TagSpanIndex:
    def __init__(self, tags: Iterable[DisplayedTag] = ()) -> None:
        self._tags: dict[TagKey, DisplayedTag] = {}
        for tag in tags:
            self.add(tag)

    def add(self, tag: DisplayedTag) -> None:
        existing = self._tags.get(tag.key)
        if (
            existing is not None
            and existing.kind is TagKind.DEFINITION
            and tag.kind is not TagKind.DEFINITION
        ):
            return
        self._tags[tag.key] = tag

    def remove(self, tag: DisplayedTag) -> None:
        if self._tags.get(tag.key) == tag:
            del self._tags[tag.key]

    def clear(self) -> None:
        self._tags.clear()

    def get(self, key: TagKey) -> DisplayedTag | None:
        return self._tags.get(key)

    def tags_containing(self, point: SnapshotPoint) -> list[DisplayedTag]:
        # Tags from an older snapshot of the caret's buffer never count as a hit.
        return [
            tag
            for tag in self._tags.values()
            if tag.snapshot == point.snapshot and tag.range.contains(point.position)
        ]

    def ordered(self) -> list[DisplayedTag]:
        return sorted(self._tags.values(), key=lambda tag: (tag.document_id, tag.range.start, tag.range.end))

    def is_empty(self) -> bool:
        return not self._tags

    def __len__(self) -> int:
        return len(self._tags)

    def __iter__(self) -> Iterator[DisplayedTag]:
        return iter(self.ordered())

    def __contains__(self, tag: object) -> bool:
        return isinstance(tag, DisplayedTag) and self._tags.get(tag.key) == tag

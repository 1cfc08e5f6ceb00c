"""Reconciles a freshly computed tag set with the displayed one."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from refmark.highlighting.tag_index import TagSpanIndex
from refmark.highlighting.tags import DisplayedTag


@dataclass(frozen=True, slots=True)
class TagDiff:
    removed: tuple[DisplayedTag, ...] = ()
    added: tuple[DisplayedTag, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.removed and not self.added


def compute_tag_diff(current: TagSpanIndex, target: TagSpanIndex) -> TagDiff:
    removed = tuple(tag for tag in current if target.get(tag.key) != tag)
    added = tuple(tag for tag in target if current.get(tag.key) != tag)
    return TagDiff(removed=removed, added=added)


class TagReconciler:
    """Sole writer of one context's tag index; each call is one atomic update."""

    def __init__(self, index: TagSpanIndex | None = None) -> None:
        self._index = index if index is not None else TagSpanIndex()

    @property
    def index(self) -> TagSpanIndex:
        return self._index

    def preserve(self) -> TagDiff:
        return TagDiff()

    def replace_all(self, tags: Iterable[DisplayedTag]) -> TagDiff:
        target = TagSpanIndex(tags)
        diff = compute_tag_diff(self._index, target)
        for tag in diff.removed:
            self._index.remove(tag)
        for tag in diff.added:
            self._index.add(tag)
        return diff

    def clear(self) -> TagDiff:
        diff = TagDiff(removed=tuple(self._index))
        self._index.clear()
        return diff

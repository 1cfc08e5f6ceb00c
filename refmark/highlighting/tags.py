"""Displayed highlight tags and the resolver-kind to tag-kind mapping."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from refmark.services.document_highlights import HighlightSpanKind
from refmark.text.snapshot import SnapshotSpan, TextRange, TextSnapshot


class TagKind(Enum):
    DEFINITION = "definition"
    REFERENCE = "reference"


# Written references, unclassified spans and kinds added by future resolvers
# all render as plain references.
FALLBACK_TAG_KIND = TagKind.REFERENCE

_TAG_KIND_BY_HIGHLIGHT_KIND: dict[HighlightSpanKind, TagKind] = {
    HighlightSpanKind.DEFINITION: TagKind.DEFINITION,
    HighlightSpanKind.REFERENCE: TagKind.REFERENCE,
}


def tag_kind_for(kind: object) -> TagKind:
    return _TAG_KIND_BY_HIGHLIGHT_KIND.get(kind, FALLBACK_TAG_KIND)


TagKey = tuple[str, int, int]


@dataclass(frozen=True, slots=True)
class DisplayedTag:
    snapshot: TextSnapshot
    document_id: str
    range: TextRange
    kind: TagKind

    @property
    def key(self) -> TagKey:
        return (self.document_id, self.range.start, self.range.end)

    @property
    def buffer_id(self) -> str:
        return self.snapshot.buffer_id

    @property
    def span(self) -> SnapshotSpan:
        return SnapshotSpan(self.snapshot, self.range)

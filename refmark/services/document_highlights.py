"""Reference-resolution contracts (pure Python).

A document highlights service answers "which spans relate to the symbol at this
position" for a document and a set of candidate documents. Services run on
worker threads and must poll the cancellation token they are given.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from refmark.core.cancellation import CancellationToken
from refmark.text.snapshot import TextRange

if TYPE_CHECKING:
    from refmark.workspace import Document


class HighlightServiceError(RuntimeError):
    """Raised by a service that could not compute highlights."""


class HighlightSpanKind(Enum):
    NONE = "none"
    DEFINITION = "definition"
    REFERENCE = "reference"
    WRITTEN_REFERENCE = "written_reference"


@dataclass(frozen=True, slots=True)
class HighlightSpan:
    range: TextRange
    kind: HighlightSpanKind = HighlightSpanKind.REFERENCE


@dataclass(frozen=True, slots=True)
class DocumentHighlights:
    document: "Document"
    highlight_spans: tuple[HighlightSpan, ...]

    @classmethod
    def create(cls, document: "Document", spans: Iterable[HighlightSpan]) -> "DocumentHighlights":
        ordered = sorted(spans, key=lambda span: (span.range.start, span.range.end))
        return cls(document=document, highlight_spans=tuple(ordered))


class DocumentHighlightsService(Protocol):
    def get_document_highlights(
        self,
        document: "Document",
        position: int,
        documents_to_search: frozenset["Document"],
        cancellation_token: CancellationToken,
    ) -> list[DocumentHighlights] | None:
        ...

    def shutdown(self) -> None:
        ...


def identifier_range_at(text: str, position: int) -> TextRange | None:
    """Range of the identifier touching ``position`` (the caret may sit right after it)."""
    source = str(text or "")
    if not source:
        return None
    col = max(0, min(len(source), int(position)))
    if col >= len(source) or not _is_identifier_char(source[col]):
        if col > 0 and _is_identifier_char(source[col - 1]):
            col -= 1
        else:
            return None

    start = col
    while start > 0 and _is_identifier_char(source[start - 1]):
        start -= 1
    end = col
    while end < len(source) and _is_identifier_char(source[end]):
        end += 1
    if source[start].isdigit():
        return None
    return TextRange(start, end)


def _is_identifier_char(ch: str) -> bool:
    return ch == "_" or ch.isalnum()

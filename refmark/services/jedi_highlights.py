"""Document highlights services backed by jedi and by plain word matching."""

from __future__ import annotations

import bisect
import logging
import re
import threading

import jedi

from refmark.core.cancellation import CancellationToken, OperationCanceledError
from refmark.services.document_highlights import (
    DocumentHighlights,
    HighlightServiceError,
    HighlightSpan,
    HighlightSpanKind,
    identifier_range_at,
)
from refmark.text.snapshot import TextRange
from refmark.workspace import Document

logger = logging.getLogger(__name__)

# jedi keeps process-wide caches and is not thread safe.
_JEDI_LOCK = threading.Lock()


class _LineIndex:
    """Offset <-> (1-based line, 0-based column) for one text."""

    def __init__(self, text: str) -> None:
        self._starts = [0]
        for match in re.finditer("\n", text):
            self._starts.append(match.end())
        self._length = len(text)

    def to_line_col(self, offset: int) -> tuple[int, int]:
        pos = max(0, min(self._length, int(offset)))
        line_idx = bisect.bisect_right(self._starts, pos) - 1
        return line_idx + 1, pos - self._starts[line_idx]

    def to_offset(self, line: int, column: int) -> int | None:
        line_idx = int(line) - 1
        if line_idx < 0 or line_idx >= len(self._starts):
            return None
        offset = self._starts[line_idx] + max(0, int(column))
        if offset > self._length:
            return None
        return offset


def word_occurrences(text: str, symbol: str, cancellation_token: CancellationToken | None = None) -> list[TextRange]:
    if not symbol:
        return []
    pattern = re.compile(rf"\b{re.escape(symbol)}\b")
    out: list[TextRange] = []
    for idx, match in enumerate(pattern.finditer(text)):
        if cancellation_token is not None and idx % 256 == 0:
            cancellation_token.raise_if_cancellation_requested()
        out.append(TextRange(match.start(), match.end()))
    return out


class WordOccurrenceHighlightsService:
    """Highlights every whole-word match of the identifier under the caret.

    No semantic knowledge is available, so every match is a plain reference.
    """

    def get_document_highlights(
        self,
        document: Document,
        position: int,
        documents_to_search: frozenset[Document],
        cancellation_token: CancellationToken,
    ) -> list[DocumentHighlights] | None:
        symbol_range = identifier_range_at(document.text, position)
        if symbol_range is None:
            return None
        symbol = document.text[symbol_range.start:symbol_range.end]

        out: list[DocumentHighlights] = []
        for doc in _search_order(document, documents_to_search):
            cancellation_token.raise_if_cancellation_requested()
            ranges = word_occurrences(doc.text, symbol, cancellation_token)
            if ranges:
                out.append(DocumentHighlights.create(doc, (HighlightSpan(r, HighlightSpanKind.REFERENCE) for r in ranges)))
        return out

    def shutdown(self) -> None:
        return


class JediDocumentHighlightsService:
    def __init__(self, *, fallback: WordOccurrenceHighlightsService | None = None) -> None:
        self._fallback = fallback or WordOccurrenceHighlightsService()

    def get_document_highlights(
        self,
        document: Document,
        position: int,
        documents_to_search: frozenset[Document],
        cancellation_token: CancellationToken,
    ) -> list[DocumentHighlights] | None:
        symbol_range = identifier_range_at(document.text, position)
        if symbol_range is None:
            return None

        spans = self._jedi_spans(document, position, cancellation_token)
        if not spans:
            logger.debug("jedi found no references in %s; using word matches.", document.id)
            return self._fallback.get_document_highlights(document, position, documents_to_search, cancellation_token)

        out = [DocumentHighlights.create(document, spans)]
        # jedi only sees the caret's file; other searched documents get name matches.
        symbol = document.text[symbol_range.start:symbol_range.end]
        for doc in _search_order(document, documents_to_search):
            if doc == document:
                continue
            cancellation_token.raise_if_cancellation_requested()
            ranges = word_occurrences(doc.text, symbol, cancellation_token)
            if ranges:
                out.append(DocumentHighlights.create(doc, (HighlightSpan(r, HighlightSpanKind.REFERENCE) for r in ranges)))
        return out

    def shutdown(self) -> None:
        return

    def _jedi_spans(
        self,
        document: Document,
        position: int,
        cancellation_token: CancellationToken,
    ) -> list[HighlightSpan]:
        text = document.text
        lines = _LineIndex(text)
        line, col = lines.to_line_col(position)
        candidates = [(line, col)]
        if col > 0:
            candidates.append((line, col - 1))

        names = []
        with _JEDI_LOCK:
            cancellation_token.raise_if_cancellation_requested()
            try:
                script = jedi.Script(code=text, path=document.file_path or None)
            except Exception as exc:
                raise HighlightServiceError(f"jedi could not parse {document.id}: {exc}") from exc

            for pline, pcol in candidates:
                cancellation_token.raise_if_cancellation_requested()
                try:
                    names = script.get_references(pline, pcol, include_builtins=False, scope="file")
                except OperationCanceledError:
                    raise
                except Exception as exc:
                    raise HighlightServiceError(f"jedi failed on {document.id}: {exc}") from exc
                if names:
                    break
            found = [
                (int(name.line or 0), int(name.column or 0), str(name.name or ""), name.is_definition())
                for name in names
            ]

        spans: list[HighlightSpan] = []
        seen: set[tuple[int, int]] = set()
        for name_line, name_column, name_text, is_definition in found:
            cancellation_token.raise_if_cancellation_requested()
            start = lines.to_offset(name_line, name_column)
            if start is None:
                continue
            end = start + len(name_text)
            if end <= start or end > len(text) or (start, end) in seen:
                continue
            seen.add((start, end))
            kind = HighlightSpanKind.DEFINITION if is_definition else HighlightSpanKind.REFERENCE
            spans.append(HighlightSpan(TextRange(start, end), kind))
        return spans


def _search_order(document: Document, documents_to_search: frozenset[Document]) -> list[Document]:
    others = sorted((doc for doc in documents_to_search if doc != document), key=lambda doc: doc.id)
    return [document, *others]


def create_highlights_service(backend: str) -> JediDocumentHighlightsService | WordOccurrenceHighlightsService:
    if str(backend or "").strip().lower() == "word":
        return WordOccurrenceHighlightsService()
    return JediDocumentHighlightsService()

"""Resolves the caret and the spans a reference-highlighting tagger must cover."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Callable

from refmark.services.language_id import DEFAULT_SUPPORTED_CONTENT_TYPES, is_supported_content_type
from refmark.text.buffer import TextBuffer
from refmark.text.snapshot import SnapshotPoint, SnapshotSpan
from refmark.text.view import TextView
from refmark.workspace import Document, Workspace, try_get_workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DocumentSnapshotSpan:
    document: Document | None
    span: SnapshotSpan


@dataclass(frozen=True, slots=True)
class CaretScope:
    caret: SnapshotPoint
    workspace: Workspace
    document: Document
    spans_to_tag: tuple[DocumentSnapshotSpan, ...]

    @property
    def documents_to_search(self) -> frozenset[Document]:
        return frozenset(item.document for item in self.spans_to_tag if item.document is not None)


class CaretScopeResolver:
    def __init__(self, is_supported: Callable[[str], bool] | None = None) -> None:
        self._is_supported = is_supported or (
            lambda content_type: is_supported_content_type(content_type, DEFAULT_SUPPORTED_CONTENT_TYPES)
        )

    @classmethod
    def for_content_types(cls, content_types: Iterable[str]) -> "CaretScopeResolver":
        supported = tuple(content_types)
        return cls(lambda content_type: is_supported_content_type(content_type, supported))

    def is_supported_buffer(self, buffer: TextBuffer) -> bool:
        return bool(self._is_supported(buffer.content_type))

    def caret_point(self, view: TextView) -> SnapshotPoint | None:
        return view.caret_point(self.is_supported_buffer)

    def spans_to_tag(self, view: TextView) -> list[DocumentSnapshotSpan]:
        # Every supported buffer of the view, not just the caret's one, so
        # navigation can cycle through all occurrences.
        spans: list[DocumentSnapshotSpan] = []
        for buffer in view.get_text_buffers(self.is_supported_buffer):
            snapshot = buffer.current_snapshot
            workspace = try_get_workspace(buffer)
            document = workspace.document_for_snapshot(snapshot) if workspace is not None else None
            spans.append(DocumentSnapshotSpan(document=document, span=snapshot.full_span()))
        return spans

    def resolve(self, view: TextView) -> CaretScope | None:
        if view.is_closed():
            return None

        caret = self.caret_point(view)
        if caret is None:
            logger.debug("No caret in a supported buffer of view %s.", view.view_id)
            return None

        workspace = try_get_workspace(caret.snapshot.buffer)
        if workspace is None:
            logger.debug("Caret buffer %s is not part of a workspace.", caret.snapshot.buffer_id)
            return None

        spans = self.spans_to_tag(view)
        document = next(
            (item.document for item in spans if item.span.snapshot == caret.snapshot),
            None,
        )
        if document is None:
            logger.debug("No document for caret snapshot %s@%d.", caret.snapshot.buffer_id, caret.snapshot.version)
            return None

        return CaretScope(caret=caret, workspace=workspace, document=document, spans_to_tag=tuple(spans))

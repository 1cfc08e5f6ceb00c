"""Workspace: maps open text buffers to logical documents.

A logical document keeps a stable id however many views project its buffer.
``Document`` values are bound to one snapshot, so a resolver always sees the
exact text it was asked about.
"""

from __future__ import annotations

import os
import weakref
from dataclasses import dataclass

from PySide6.QtCore import QObject, Signal

from refmark.services.highlight_service_hub import DocumentHighlightsServiceHub
from refmark.text.buffer import TextBuffer
from refmark.text.snapshot import TextSnapshot

_WORKSPACES_BY_BUFFER: "weakref.WeakValueDictionary[str, Workspace]" = weakref.WeakValueDictionary()


@dataclass(frozen=True, slots=True)
class Document:
    id: str
    file_path: str
    snapshot: TextSnapshot

    @property
    def language_id(self) -> str:
        return self.snapshot.content_type

    @property
    def text(self) -> str:
        return self.snapshot.text

    @property
    def buffer_id(self) -> str:
        return self.snapshot.buffer_id


def try_get_workspace(buffer: TextBuffer | None) -> "Workspace | None":
    if buffer is None:
        return None
    return _WORKSPACES_BY_BUFFER.get(buffer.buffer_id)


class Workspace(QObject):
    documentOpened = Signal(str)
    documentClosed = Signal(str)

    def __init__(
        self,
        *,
        services: DocumentHighlightsServiceHub | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._services = services if services is not None else DocumentHighlightsServiceHub()
        self._buffers_by_document: dict[str, TextBuffer] = {}
        self._document_by_buffer: dict[str, str] = {}
        self._file_paths: dict[str, str] = {}

    @property
    def services(self) -> DocumentHighlightsServiceHub:
        return self._services

    def open_buffer(self, buffer: TextBuffer, *, file_path: str = "", document_id: str = "") -> str:
        existing = self._document_by_buffer.get(buffer.buffer_id)
        if existing:
            return existing

        path = str(file_path or buffer.file_path or "").strip()
        if path:
            path = os.path.abspath(path)
        doc_id = str(document_id or "").strip() or path or buffer.buffer_id
        if doc_id in self._buffers_by_document:
            raise ValueError(f"Document '{doc_id}' is already open in this workspace.")

        self._buffers_by_document[doc_id] = buffer
        self._document_by_buffer[buffer.buffer_id] = doc_id
        self._file_paths[doc_id] = path
        _WORKSPACES_BY_BUFFER[buffer.buffer_id] = self
        self.documentOpened.emit(doc_id)
        return doc_id

    def close_buffer(self, buffer: TextBuffer) -> None:
        doc_id = self._document_by_buffer.pop(buffer.buffer_id, None)
        if doc_id is None:
            return
        self._buffers_by_document.pop(doc_id, None)
        self._file_paths.pop(doc_id, None)
        if _WORKSPACES_BY_BUFFER.get(buffer.buffer_id) is self:
            _WORKSPACES_BY_BUFFER.pop(buffer.buffer_id, None)
        self.documentClosed.emit(doc_id)

    def close_all(self) -> None:
        for buffer in list(self._buffers_by_document.values()):
            self.close_buffer(buffer)

    def is_open(self, buffer: TextBuffer) -> bool:
        return buffer.buffer_id in self._document_by_buffer

    def open_document_ids(self) -> list[str]:
        return list(self._buffers_by_document)

    def buffer_for_document(self, document_id: str) -> TextBuffer | None:
        return self._buffers_by_document.get(str(document_id or ""))

    def document_id_for_buffer(self, buffer: TextBuffer) -> str:
        return self._document_by_buffer.get(buffer.buffer_id, "")

    def document_for_snapshot(self, snapshot: TextSnapshot) -> Document | None:
        doc_id = self._document_by_buffer.get(snapshot.buffer_id)
        if doc_id is None:
            return None
        return Document(id=doc_id, file_path=self._file_paths.get(doc_id, ""), snapshot=snapshot)

    def current_document(self, document_id: str) -> Document | None:
        buffer = self.buffer_for_document(document_id)
        if buffer is None:
            return None
        return self.document_for_snapshot(buffer.current_snapshot)

    def corresponding_snapshot(self, document: Document) -> TextSnapshot | None:
        """The live snapshot the document was computed against, or None once it is gone."""
        buffer = self._buffers_by_document.get(document.id)
        if buffer is None or buffer.buffer_id != document.buffer_id:
            return None
        current = buffer.current_snapshot
        if current != document.snapshot:
            return None
        return current

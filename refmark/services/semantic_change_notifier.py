"""Debounced "semantics of this document changed" notifications."""

from __future__ import annotations

from PySide6.QtCore import QObject, QTimer, Signal

from refmark.text.buffer import TextBuffer
from refmark.text.snapshot import TextChange
from refmark.workspace import Workspace


class SemanticChangeNotifier(QObject):
    """Emits ``openedDocumentSemanticChanged`` once edits of an open document settle.

    Background analyzers that finish outside of an edit can report through
    ``notify_semantic_changed``.
    """

    openedDocumentSemanticChanged = Signal(str)  # document_id

    def __init__(self, workspace: Workspace, *, debounce_ms: int = 500, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._workspace = workspace
        self._debounce_ms = max(0, int(debounce_ms))
        self._debounce_timers: dict[str, QTimer] = {}
        self._watched: dict[str, TextBuffer] = {}

        workspace.documentOpened.connect(self._on_document_opened)
        workspace.documentClosed.connect(self._on_document_closed)
        for doc_id in workspace.open_document_ids():
            self._on_document_opened(doc_id)

    def set_debounce_ms(self, debounce_ms: int) -> None:
        self._debounce_ms = max(0, int(debounce_ms))

    def notify_semantic_changed(self, document_id: str) -> None:
        key = str(document_id or "")
        if key not in self._watched:
            return
        self._stop_timer(key)
        self.openedDocumentSemanticChanged.emit(key)

    def has_pending(self, document_id: str | None = None) -> bool:
        if document_id is not None:
            timer = self._debounce_timers.get(str(document_id))
            return timer is not None and timer.isActive()
        return any(timer.isActive() for timer in self._debounce_timers.values())

    def flush(self) -> None:
        for doc_id, timer in list(self._debounce_timers.items()):
            if timer.isActive():
                timer.stop()
                self.openedDocumentSemanticChanged.emit(doc_id)

    def shutdown(self) -> None:
        for doc_id in list(self._debounce_timers):
            self._cancel_timer(doc_id)
        for doc_id in list(self._watched):
            self._unwatch(doc_id)

    # ---------- Internals ----------

    def _on_document_opened(self, document_id: str) -> None:
        buffer = self._workspace.buffer_for_document(document_id)
        if buffer is None or document_id in self._watched:
            return
        self._watched[document_id] = buffer
        buffer.changed.connect(self._on_buffer_changed)

    def _on_document_closed(self, document_id: str) -> None:
        self._cancel_timer(document_id)
        self._unwatch(document_id)

    def _unwatch(self, document_id: str) -> None:
        buffer = self._watched.pop(document_id, None)
        if buffer is None:
            return
        try:
            buffer.changed.disconnect(self._on_buffer_changed)
        except (RuntimeError, TypeError):
            pass

    def _on_buffer_changed(self, change: TextChange) -> None:
        for doc_id, buffer in self._watched.items():
            if buffer.buffer_id == change.buffer_id:
                self._schedule(doc_id)
                return

    def _schedule(self, document_id: str) -> None:
        timer = self._debounce_timers.get(document_id)
        if timer is None:
            timer = QTimer(self)
            timer.setSingleShot(True)
            timer.timeout.connect(lambda doc_key=document_id: self.openedDocumentSemanticChanged.emit(doc_key))
            self._debounce_timers[document_id] = timer
        timer.start(self._debounce_ms)

    def _stop_timer(self, document_id: str) -> None:
        timer = self._debounce_timers.get(document_id)
        if timer is not None:
            timer.stop()

    def _cancel_timer(self, document_id: str) -> None:
        timer = self._debounce_timers.pop(document_id, None)
        if timer is None:
            return
        timer.stop()
        timer.deleteLater()

"""Trigger sources telling a tagger when to recompute.

Each source owns a single-shot debounce timer: a new underlying event restarts
it, which drops the previously scheduled firing of the same trigger type.
``compose`` merges several sources into one ``changed`` signal.
"""

from __future__ import annotations

from enum import IntEnum

from PySide6.QtCore import QObject, QTimer, Signal

from refmark.services.semantic_change_notifier import SemanticChangeNotifier
from refmark.text.buffer import TextBuffer
from refmark.text.view import TextView
from refmark.workspace import try_get_workspace


class TaggerDelay(IntEnum):
    NEAR_IMMEDIATE = 50
    SHORT = 250
    MEDIUM = 500
    ON_IDLE = 1500


class TaggerEventSource(QObject):
    changed = Signal()

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._attached = False

    def is_attached(self) -> bool:
        return self._attached

    def attach(self) -> None:
        if self._attached:
            return
        self._attached = True
        self._subscribe()

    def detach(self) -> None:
        if not self._attached:
            return
        self._attached = False
        self.cancel_pending()
        self._unsubscribe()

    def has_pending(self) -> bool:
        return False

    def cancel_pending(self) -> None:
        return

    def flush(self) -> None:
        """Fire a pending debounced trigger right away."""

    def _subscribe(self) -> None:
        return

    def _unsubscribe(self) -> None:
        return


class _DebouncedEventSource(TaggerEventSource):
    def __init__(self, delay_ms: int, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(max(0, int(delay_ms)))
        self._timer.timeout.connect(self.changed.emit)

    @property
    def delay_ms(self) -> int:
        return int(self._timer.interval())

    def set_delay_ms(self, delay_ms: int) -> None:
        self._timer.setInterval(max(0, int(delay_ms)))

    def has_pending(self) -> bool:
        return self._timer.isActive()

    def cancel_pending(self) -> None:
        self._timer.stop()

    def flush(self) -> None:
        if not self._timer.isActive():
            return
        self._timer.stop()
        self.changed.emit()

    def _schedule(self, *_args) -> None:
        if not self._attached:
            return
        self._timer.start()


class CaretPositionChangedEventSource(_DebouncedEventSource):
    def __init__(self, view: TextView, delay_ms: int = TaggerDelay.SHORT, parent: QObject | None = None) -> None:
        super().__init__(delay_ms, parent)
        self._view = view

    def _subscribe(self) -> None:
        self._view.caretPositionChanged.connect(self._schedule)

    def _unsubscribe(self) -> None:
        try:
            self._view.caretPositionChanged.disconnect(self._schedule)
        except (RuntimeError, TypeError):
            pass


class SemanticChangedEventSource(_DebouncedEventSource):
    def __init__(
        self,
        subject_buffer: TextBuffer,
        notifier: SemanticChangeNotifier,
        delay_ms: int = TaggerDelay.ON_IDLE,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(delay_ms, parent)
        self._subject_buffer = subject_buffer
        self._notifier = notifier

    def _subscribe(self) -> None:
        self._notifier.openedDocumentSemanticChanged.connect(self._on_semantic_changed)

    def _unsubscribe(self) -> None:
        try:
            self._notifier.openedDocumentSemanticChanged.disconnect(self._on_semantic_changed)
        except (RuntimeError, TypeError):
            pass

    def _on_semantic_changed(self, document_id: str) -> None:
        workspace = try_get_workspace(self._subject_buffer)
        if workspace is None:
            return
        if workspace.document_id_for_buffer(self._subject_buffer) != document_id:
            return
        self._schedule()


class CompositeEventSource(TaggerEventSource):
    def __init__(self, sources: list[TaggerEventSource], parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._sources = list(sources)
        for source in self._sources:
            source.changed.connect(self.changed.emit)

    @property
    def sources(self) -> list[TaggerEventSource]:
        return list(self._sources)

    def has_pending(self) -> bool:
        return any(source.has_pending() for source in self._sources)

    def cancel_pending(self) -> None:
        for source in self._sources:
            source.cancel_pending()

    def flush(self) -> None:
        for source in self._sources:
            source.flush()

    def _subscribe(self) -> None:
        for source in self._sources:
            source.attach()

    def _unsubscribe(self) -> None:
        for source in self._sources:
            source.detach()


def compose(*sources: TaggerEventSource) -> CompositeEventSource:
    return CompositeEventSource(list(sources))

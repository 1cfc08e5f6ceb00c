"""Text views: a caret plus the graph of buffers projected into one view."""

from __future__ import annotations

import uuid
from typing import Callable

from PySide6.QtCore import QObject, Signal

from refmark.text.buffer import TextBuffer
from refmark.text.snapshot import SnapshotPoint, TextChange

BufferPredicate = Callable[[TextBuffer], bool]


class TextView(QObject):
    """A view onto one or more buffers.

    ``buffer_graph`` lists the top buffer first, then any buffers projected into
    it (embedded regions, split panes showing other buffers of the same view).
    The caret lives in exactly one of them and follows edits made before it.
    """

    caretPositionChanged = Signal(object)  # SnapshotPoint
    bufferGraphChanged = Signal()
    closed = Signal()

    def __init__(
        self,
        buffers: list[TextBuffer],
        *,
        view_id: str = "",
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        if not buffers:
            raise ValueError("A text view needs at least one buffer.")
        self.view_id = str(view_id or "").strip() or uuid.uuid4().hex
        self._buffers: list[TextBuffer] = []
        self._caret_buffer = buffers[0]
        self._caret_offset = 0
        self._closed = False
        for buffer in buffers:
            self._add_buffer(buffer)

    @property
    def text_buffer(self) -> TextBuffer:
        return self._buffers[0]

    @property
    def buffer_graph(self) -> list[TextBuffer]:
        return list(self._buffers)

    def get_text_buffers(self, predicate: BufferPredicate | None = None) -> list[TextBuffer]:
        if predicate is None:
            return list(self._buffers)
        return [buffer for buffer in self._buffers if predicate(buffer)]

    def add_projection(self, buffer: TextBuffer) -> None:
        if buffer in self._buffers:
            return
        self._add_buffer(buffer)
        self.bufferGraphChanged.emit()

    def remove_projection(self, buffer: TextBuffer) -> None:
        if buffer not in self._buffers or buffer is self._buffers[0]:
            return
        self._buffers.remove(buffer)
        try:
            buffer.changed.disconnect(self._on_buffer_changed)
        except (RuntimeError, TypeError):
            pass
        if buffer is self._caret_buffer:
            self._caret_buffer = self._buffers[0]
            self._caret_offset = 0
            self.caretPositionChanged.emit(self.caret_snapshot_point())
        self.bufferGraphChanged.emit()

    # ---------- Caret ----------

    @property
    def caret_buffer(self) -> TextBuffer:
        return self._caret_buffer

    @property
    def caret_offset(self) -> int:
        return self._caret_offset

    def caret_snapshot_point(self) -> SnapshotPoint:
        return self._caret_buffer.current_snapshot.point(self._caret_offset)

    def caret_point(self, predicate: BufferPredicate | None = None) -> SnapshotPoint | None:
        if predicate is not None and not predicate(self._caret_buffer):
            return None
        return self.caret_snapshot_point()

    def move_caret(self, position: int, buffer: TextBuffer | None = None) -> None:
        target = buffer if buffer is not None else self._caret_buffer
        if target not in self._buffers:
            raise ValueError("Cannot move the caret into a buffer outside the view.")
        offset = max(0, min(len(target.text()), int(position)))
        if target is self._caret_buffer and offset == self._caret_offset:
            return
        self._caret_buffer = target
        self._caret_offset = offset
        self._on_caret_moved()
        self.caretPositionChanged.emit(self.caret_snapshot_point())

    # ---------- Lifetime ----------

    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for buffer in self._buffers:
            try:
                buffer.changed.disconnect(self._on_buffer_changed)
            except (RuntimeError, TypeError):
                pass
        self.closed.emit()

    # ---------- Internals ----------

    def _on_caret_moved(self) -> None:
        """Hook for subclasses mirroring the caret into a widget."""

    def _add_buffer(self, buffer: TextBuffer) -> None:
        self._buffers.append(buffer)
        buffer.changed.connect(self._on_buffer_changed)

    def _on_buffer_changed(self, change: TextChange) -> None:
        if change.buffer_id != self._caret_buffer.buffer_id:
            return
        offset = self._caret_offset
        if change.position > offset:
            return
        removed_end = change.position + change.removed
        if offset >= removed_end:
            offset += change.added - change.removed
        else:
            offset = change.position + change.added
        offset = max(0, min(len(self._caret_buffer.text()), offset))
        if offset == self._caret_offset:
            return
        self._caret_offset = offset
        self.caretPositionChanged.emit(self.caret_snapshot_point())

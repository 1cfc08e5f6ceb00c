from __future__ import annotations

from PySide6.QtCore import QObject
from PySide6.QtGui import QTextCursor
from PySide6.QtWidgets import QPlainTextDocumentLayout, QPlainTextEdit
from shiboken6 import isValid as _is_qobject_valid

from refmark.text.buffer import TextBuffer
from refmark.text.view import TextView


def attach_buffer_to_editor(editor: QPlainTextEdit, buffer: TextBuffer) -> None:
    doc = buffer.document()
    if not isinstance(doc.documentLayout(), QPlainTextDocumentLayout):
        doc.setDocumentLayout(QPlainTextDocumentLayout(doc))
    editor.setDocument(doc)


class EditorTextView(TextView):
    """``TextView`` whose caret mirrors a ``QPlainTextEdit`` cursor.

    The editor displays the view's top buffer; the caret follows the editor's
    cursor and ``move_caret`` on that buffer moves the cursor back.
    """

    def __init__(
        self,
        editor: QPlainTextEdit,
        buffer: TextBuffer,
        *,
        projections: list[TextBuffer] | None = None,
        view_id: str = "",
        parent: QObject | None = None,
    ) -> None:
        super().__init__([buffer, *(projections or [])], view_id=view_id, parent=parent)
        self._editor = editor
        self._syncing = False
        self._editor_destroyed = False
        attach_buffer_to_editor(editor, buffer)
        editor.cursorPositionChanged.connect(self._on_editor_cursor_moved)
        editor.destroyed.connect(self._on_editor_destroyed)

    @property
    def editor(self) -> QPlainTextEdit:
        return self._editor

    def close(self) -> None:
        if self.is_closed():
            return
        if not self._editor_destroyed and _is_qobject_valid(self._editor):
            for signal, slot in (
                (self._editor.cursorPositionChanged, self._on_editor_cursor_moved),
                (self._editor.destroyed, self._on_editor_destroyed),
            ):
                try:
                    signal.disconnect(slot)
                except (RuntimeError, TypeError):
                    pass
        super().close()

    def _on_editor_destroyed(self, *_args) -> None:
        if _is_qobject_valid(self):
            self._editor_destroyed = True
            self.close()

    def _on_editor_cursor_moved(self) -> None:
        if self._syncing or self.is_closed():
            return
        self._syncing = True
        try:
            buffer = self.text_buffer
            self.move_caret(buffer.offset_at_qt_position(self._editor.textCursor().position()), buffer)
        finally:
            self._syncing = False

    def _on_caret_moved(self) -> None:
        if self._syncing or self.caret_buffer is not self.text_buffer:
            return
        self._syncing = True
        try:
            cursor = self._editor.textCursor()
            cursor.setPosition(self.text_buffer.qt_position(self.caret_offset), QTextCursor.MoveAnchor)
            self._editor.setTextCursor(cursor)
        finally:
            self._syncing = False

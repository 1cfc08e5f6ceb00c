"""Qt text buffer producing immutable snapshots on every content change."""

from __future__ import annotations

import uuid

from PySide6.QtCore import QObject, Signal
from PySide6.QtGui import QTextCursor, QTextDocument

from refmark.text.snapshot import TextChange, TextSnapshot, offset_from_utf16, utf16_position


class TextBuffer(QObject):
    """Owns a ``QTextDocument`` and versions its plain text.

    Editors may share the document (``QPlainTextEdit.setDocument``); every real
    text change, whichever side makes it, bumps the version and emits ``changed``.
    Formatting-only notifications (syntax highlighting, layout) are ignored.
    """

    changed = Signal(object)  # TextChange
    contentTypeChanged = Signal(str)

    def __init__(
        self,
        text: str = "",
        *,
        content_type: str = "plaintext",
        file_path: str = "",
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.buffer_id = uuid.uuid4().hex
        self._file_path = str(file_path or "")
        self._content_type = str(content_type or "plaintext").strip().lower() or "plaintext"
        self._document = QTextDocument(self)
        self._document.setPlainText(str(text or ""))
        self._text = self._document.toPlainText()
        self._version = 0
        self._snapshot: TextSnapshot | None = None
        self._document.contentsChange.connect(self._on_contents_change)

    @property
    def file_path(self) -> str:
        return self._file_path

    @property
    def content_type(self) -> str:
        return self._content_type

    def set_content_type(self, content_type: str) -> None:
        value = str(content_type or "plaintext").strip().lower() or "plaintext"
        if value == self._content_type:
            return
        self._content_type = value
        self._snapshot = None
        self.contentTypeChanged.emit(value)

    @property
    def version(self) -> int:
        return self._version

    def document(self) -> QTextDocument:
        return self._document

    def text(self) -> str:
        return self._text

    def qt_position(self, offset: int) -> int:
        return utf16_position(self._text, offset)

    def offset_at_qt_position(self, position: int) -> int:
        return offset_from_utf16(self._text, position)

    @property
    def current_snapshot(self) -> TextSnapshot:
        snap = self._snapshot
        if snap is None:
            snap = TextSnapshot(
                buffer_id=self.buffer_id,
                version=self._version,
                text=self._text,
                content_type=self._content_type,
                buffer=self,
            )
            self._snapshot = snap
        return snap

    # ---------- Editing ----------

    def insert(self, position: int, text: str) -> None:
        self.replace(position, position, text)

    def delete(self, start: int, end: int) -> None:
        self.replace(start, end, "")

    def replace(self, start: int, end: int, text: str) -> None:
        length = len(self._text)
        lo = max(0, min(length, int(start)))
        hi = max(lo, min(length, int(end)))
        cursor = QTextCursor(self._document)
        cursor.setPosition(self.qt_position(lo))
        cursor.setPosition(self.qt_position(hi), QTextCursor.KeepAnchor)
        cursor.insertText(str(text or ""))

    def set_text(self, text: str) -> None:
        self.replace(0, len(self._text), text)

    def _on_contents_change(self, position: int, chars_removed: int, chars_added: int) -> None:
        new_text = self._document.toPlainText()
        if new_text == self._text:
            return
        # Qt reports UTF-16 code units; changes carry character offsets.
        old_text = self._text
        units = max(0, int(position))
        start = offset_from_utf16(old_text, units)
        removed = offset_from_utf16(old_text, units + max(0, int(chars_removed))) - start
        added = offset_from_utf16(new_text, units + max(0, int(chars_added))) - start
        old_version = self._version
        self._text = new_text
        self._version += 1
        self._snapshot = None
        self.changed.emit(
            TextChange(
                buffer_id=self.buffer_id,
                old_version=old_version,
                new_version=self._version,
                position=start,
                removed=max(0, removed),
                added=max(0, added),
            )
        )

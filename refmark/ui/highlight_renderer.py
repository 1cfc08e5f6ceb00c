"""Paints displayed tags into editors as ``ExtraSelection`` backgrounds."""

from __future__ import annotations

from PySide6.QtCore import QObject
from PySide6.QtGui import QColor, QTextCursor
from PySide6.QtWidgets import QPlainTextEdit, QTextEdit

from refmark.highlighting.controller import ReferenceHighlightingController
from refmark.highlighting.tags import TagKind
from refmark.text.buffer import TextBuffer


class ExtraSelectionHighlightRenderer(QObject):
    def __init__(self, controller: ReferenceHighlightingController, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._controller = controller
        self._bindings: dict[str, list[tuple[QPlainTextEdit, TextBuffer]]] = {}
        self._selections: dict[int, list[QTextEdit.ExtraSelection]] = {}
        self._colors: dict[TagKind, QColor] = {}
        self.set_visuals(controller.settings.get("visuals", {}))
        controller.tagsChanged.connect(self._on_tags_changed)

    def set_visuals(self, visuals: dict) -> None:
        cfg = visuals if isinstance(visuals, dict) else {}
        alpha = max(0, min(255, int(cfg.get("alpha", 110))))
        self._colors = {
            TagKind.DEFINITION: self._resolve_color(cfg.get("definition_color"), "#D6A853", alpha),
            TagKind.REFERENCE: self._resolve_color(cfg.get("reference_color"), "#4A8FD8", alpha),
        }
        for context_id in list(self._bindings):
            self.repaint(context_id)

    def color_for(self, kind: TagKind) -> QColor:
        return QColor(self._colors[kind])

    def bind(self, context_id: str, editor: QPlainTextEdit, buffer: TextBuffer) -> None:
        bindings = self._bindings.setdefault(context_id, [])
        if any(bound is editor for bound, _ in bindings):
            return
        bindings.append((editor, buffer))
        self.repaint(context_id)

    def unbind(self, context_id: str) -> None:
        for editor, _buffer in self._bindings.pop(context_id, []):
            self._apply(editor, [])

    def selections_for(self, editor: QPlainTextEdit) -> list[QTextEdit.ExtraSelection]:
        return list(self._selections.get(id(editor), []))

    def repaint(self, context_id: str) -> None:
        bindings = self._bindings.get(context_id)
        if not bindings:
            return
        tags = self._controller.tags_for(context_id)
        for editor, buffer in bindings:
            current = buffer.current_snapshot
            selections: list[QTextEdit.ExtraSelection] = []
            for tag in tags:
                if tag.snapshot != current:
                    continue
                selection = QTextEdit.ExtraSelection()
                selection.format.setBackground(self._colors[tag.kind])
                cursor = QTextCursor(editor.document())
                cursor.setPosition(buffer.qt_position(tag.range.start))
                cursor.setPosition(buffer.qt_position(tag.range.end), QTextCursor.KeepAnchor)
                selection.cursor = cursor
                selections.append(selection)
            self._apply(editor, selections)

    def _on_tags_changed(self, context_id: str, diff: object) -> None:
        if getattr(diff, "is_empty", False):
            return
        self.repaint(context_id)

    def _apply(self, editor: QPlainTextEdit, selections: list[QTextEdit.ExtraSelection]) -> None:
        self._selections[id(editor)] = selections
        editor.setExtraSelections(selections)

    @staticmethod
    def _resolve_color(value: object, fallback: str, alpha: int) -> QColor:
        color = QColor(str(value or "").strip())
        if not color.isValid():
            color = QColor(fallback)
        color.setAlpha(alpha)
        return color

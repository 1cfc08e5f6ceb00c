from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from PySide6.QtCore import Qt
from PySide6.QtGui import QFont, QKeySequence, QShortcut
from PySide6.QtWidgets import QMainWindow, QPlainTextEdit, QSplitter

from refmark.highlighting.controller import ReferenceHighlightingController
from refmark.highlighting.navigation import NavigationDirection
from refmark.services.jedi_highlights import create_highlights_service
from refmark.services.language_id import language_id_for_path
from refmark.services.semantic_change_notifier import SemanticChangeNotifier
from refmark.text.buffer import TextBuffer
from refmark.ui.editor_view import EditorTextView
from refmark.ui.highlight_renderer import ExtraSelectionHighlightRenderer
from refmark.workspace import Workspace

logger = logging.getLogger(__name__)

SAMPLE_SOURCE = """\
def greet(name):
    message = "Hello, " + name
    print(message)
    return message


greeting = greet("world")
print(greeting)
"""


class ReferenceHighlightWindow(QMainWindow):
    """Split editor window showing reference highlighting on one or more files.

    A single file opens in two panes over the same buffer; several files get
    one pane each.
    """

    def __init__(self, file_paths: list[str] | None = None, settings: dict | None = None, parent=None) -> None:
        super().__init__(parent)
        self.setWindowTitle("refmark")
        self.resize(1100, 700)

        cfg = settings if isinstance(settings, dict) else {}
        self.workspace = Workspace(parent=self)
        self.notifier = SemanticChangeNotifier(self.workspace, parent=self)
        self.controller = ReferenceHighlightingController(notifier=self.notifier, settings=cfg, parent=self)
        self.renderer = ExtraSelectionHighlightRenderer(self.controller, parent=self)
        self.notifier.set_debounce_ms(int(self.controller.settings["semantic_change_debounce_ms"]))

        service = create_highlights_service(self.controller.settings["backend"])
        self.workspace.services.register_provider(
            service, language_ids=self.controller.settings["supported_languages"]
        )

        self.controller.statusMessage.connect(lambda m: self.statusBar().showMessage(m, 2500))

        self.buffers: list[TextBuffer] = []
        self.editors: list[QPlainTextEdit] = []
        self.views: list[EditorTextView] = []
        self._shortcuts: list[QShortcut] = []

        self._splitter = QSplitter(Qt.Orientation.Horizontal, self)
        self.setCentralWidget(self._splitter)

        paths = [str(p) for p in (file_paths or []) if str(p or "").strip()]
        if paths:
            for path in paths:
                self._add_pane(self._open_file(path))
            if len(paths) == 1:
                self._add_pane(self.buffers[0])
        else:
            buffer = TextBuffer(SAMPLE_SOURCE, content_type="python")
            self.workspace.open_buffer(buffer, document_id="untitled.py")
            self.buffers.append(buffer)
            self._add_pane(buffer)
            self._add_pane(buffer)

        self._rebuild_shortcuts()
        self.statusBar().showMessage("Ready")

    def _open_file(self, path: str) -> TextBuffer:
        file_path = Path(path).expanduser()
        try:
            text = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read %s: %s", file_path, exc)
            text = ""
        buffer = TextBuffer(text, content_type=language_id_for_path(str(file_path)), file_path=str(file_path))
        self.workspace.open_buffer(buffer)
        self.buffers.append(buffer)
        return buffer

    def _add_pane(self, buffer: TextBuffer) -> EditorTextView:
        editor = QPlainTextEdit(self._splitter)
        editor.setFont(QFont("Monospace", 11))
        editor.setLineWrapMode(QPlainTextEdit.LineWrapMode.NoWrap)
        view = EditorTextView(editor, buffer, view_id=f"pane-{len(self.views) + 1}", parent=self)
        self._splitter.addWidget(editor)
        self.editors.append(editor)
        self.views.append(view)

        context_id = self.controller.attach(view, buffer)
        self.renderer.bind(context_id, editor, buffer)
        return view

    # ---------- Navigation ----------

    def active_view(self) -> EditorTextView | None:
        for view in self.views:
            if view.editor.hasFocus():
                return view
        return self.views[0] if self.views else None

    def navigate(self, direction: NavigationDirection) -> bool:
        view = self.active_view()
        if view is None:
            return False
        for context_id in self.controller.contexts_for_view(view):
            if self.controller.navigate(context_id, direction):
                view.editor.centerCursor()
                return True
        return False

    def _rebuild_shortcuts(self) -> None:
        for shortcut in self._shortcuts:
            shortcut.deleteLater()
        self._shortcuts.clear()
        keys = self.controller.settings.get("keybindings", {})
        self._install_shortcut(keys.get("next_highlight", []), lambda: self.navigate(NavigationDirection.NEXT))
        self._install_shortcut(
            keys.get("previous_highlight", []), lambda: self.navigate(NavigationDirection.PREVIOUS)
        )

    def _install_shortcut(self, sequence: list[str], callback: Callable[[], object]) -> None:
        qseq = QKeySequence(", ".join(str(part) for part in sequence if str(part or "").strip()))
        if qseq.isEmpty():
            return
        shortcut = QShortcut(qseq, self)
        shortcut.setContext(Qt.ShortcutContext.WindowShortcut)
        shortcut.activated.connect(callback)
        self._shortcuts.append(shortcut)

    # ---------- Lifetime ----------

    def closeEvent(self, event) -> None:
        self.shutdown()
        super().closeEvent(event)

    def shutdown(self) -> None:
        self.controller.shutdown()
        self.notifier.shutdown()
        self.workspace.services.shutdown()
        for view in self.views:
            view.close()

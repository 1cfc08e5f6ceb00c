"""Tests for caret and scope resolution."""

from __future__ import annotations

from refmark.highlighting.caret_scope import CaretScopeResolver
from refmark.text.buffer import TextBuffer
from refmark.text.view import TextView
from refmark.workspace import Workspace


class TestCaretScopeResolver:
    def test_resolves_caret_document_and_all_supported_spans(self, qapp):
        workspace = Workspace()
        main = TextBuffer("foo = 1", content_type="python")
        side = TextBuffer("foo", content_type="python")
        loose = TextBuffer("foo", content_type="python")
        notes = TextBuffer("foo", content_type="markdown")
        workspace.open_buffer(main, document_id="main.py")
        workspace.open_buffer(side, document_id="side.py")
        view = TextView([main, side, loose, notes])
        view.move_caret(2)

        scope = CaretScopeResolver().resolve(view)

        assert scope is not None
        assert scope.caret.position == 2
        assert scope.document.id == "main.py"
        assert [item.span.snapshot.buffer_id for item in scope.spans_to_tag] == [
            main.buffer_id,
            side.buffer_id,
            loose.buffer_id,
        ]
        assert scope.spans_to_tag[2].document is None
        assert {doc.id for doc in scope.documents_to_search} == {"main.py", "side.py"}
        assert scope.spans_to_tag[0].span.end == len("foo = 1")

    def test_unsupported_caret_buffer_has_no_scope(self, qapp):
        workspace = Workspace()
        buffer = TextBuffer("foo", content_type="markdown")
        workspace.open_buffer(buffer)
        assert CaretScopeResolver().resolve(TextView([buffer])) is None

    def test_buffer_outside_a_workspace_has_no_scope(self, qapp):
        buffer = TextBuffer("foo", content_type="python")
        assert CaretScopeResolver().resolve(TextView([buffer])) is None

    def test_closed_view_has_no_scope(self, qapp):
        workspace = Workspace()
        buffer = TextBuffer("foo", content_type="python")
        workspace.open_buffer(buffer)
        view = TextView([buffer])
        view.close()
        assert CaretScopeResolver().resolve(view) is None

    def test_content_types_are_configurable(self, qapp):
        workspace = Workspace()
        buffer = TextBuffer("fn main() {}", content_type="rust")
        workspace.open_buffer(buffer)
        view = TextView([buffer])

        assert CaretScopeResolver().resolve(view) is None
        assert CaretScopeResolver.for_content_types(["rust"]).resolve(view) is not None

    def test_switching_content_type_changes_scope(self, qapp):
        workspace = Workspace()
        buffer = TextBuffer("foo", content_type="plaintext")
        workspace.open_buffer(buffer)
        view = TextView([buffer])
        changed = []
        buffer.contentTypeChanged.connect(changed.append)

        assert CaretScopeResolver().resolve(view) is None
        buffer.set_content_type("Python")

        assert changed == ["python"]
        assert CaretScopeResolver().resolve(view).document.language_id == "python"

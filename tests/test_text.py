"""Tests for buffers, snapshots, views and the workspace."""

from __future__ import annotations

import pytest

from refmark.text.buffer import TextBuffer
from refmark.text.snapshot import TextRange, TextSnapshot, offset_from_utf16, utf16_position
from refmark.text.view import TextView
from refmark.workspace import Workspace, try_get_workspace


class TestSnapshots:
    def test_range_rejects_inverted_bounds(self):
        with pytest.raises(ValueError):
            TextRange(4, 2)

    def test_snapshot_equality_uses_buffer_and_version(self):
        assert TextSnapshot("a", 1, "x") == TextSnapshot("a", 1, "different")
        assert TextSnapshot("a", 1, "x") != TextSnapshot("a", 2, "x")

    def test_span_outside_snapshot_raises(self):
        snap = TextSnapshot("a", 0, "abc")
        with pytest.raises(ValueError):
            snap.span(TextRange(1, 9))

    def test_utf16_positions_count_surrogate_pairs(self):
        text = "x\U0001F600y"
        assert [utf16_position(text, i) for i in range(4)] == [0, 1, 3, 4]
        assert [offset_from_utf16(text, u) for u in range(5)] == [0, 1, 2, 2, 3]
        assert offset_from_utf16("abc", 10) == 3


class TestTextBuffer:
    def test_edits_bump_version_and_emit_changes(self, qapp):
        buffer = TextBuffer("hello")
        changes = []
        buffer.changed.connect(changes.append)
        first = buffer.current_snapshot

        buffer.insert(5, " world")

        assert buffer.text() == "hello world"
        assert buffer.version == 1
        assert buffer.current_snapshot != first
        assert first.text == "hello"
        assert len(changes) == 1
        assert changes[0].position == 5
        assert (changes[0].old_version, changes[0].new_version) == (0, 1)

    def test_snapshot_is_cached_per_version(self, qapp):
        buffer = TextBuffer("abc")
        assert buffer.current_snapshot is buffer.current_snapshot

    def test_replace_clamps_out_of_range_positions(self, qapp):
        buffer = TextBuffer("abc")
        buffer.replace(1, 99, "Z")
        assert buffer.text() == "aZ"

    def test_changes_after_astral_characters_use_character_offsets(self, qapp):
        buffer = TextBuffer("a\U0001F600b")
        changes = []
        buffer.changed.connect(changes.append)

        buffer.insert(2, "\U0001F600x")

        assert buffer.text() == "a\U0001F600\U0001F600xb"
        assert (changes[0].position, changes[0].removed, changes[0].added) == (2, 0, 2)
        assert buffer.qt_position(2) == 3
        assert buffer.offset_at_qt_position(5) == 3


class TestTextView:
    def test_caret_follows_edits_before_it(self, qapp):
        buffer = TextBuffer("foo bar")
        view = TextView([buffer])
        view.move_caret(4)

        buffer.insert(0, "xx")

        assert view.caret_offset == 6

    def test_caret_tracks_edits_through_astral_characters(self, qapp):
        buffer = TextBuffer("\U0001F600 foo")
        view = TextView([buffer])
        view.move_caret(3)

        buffer.insert(1, "\U0001F600")

        assert view.caret_offset == 4
        assert buffer.text()[view.caret_offset:] == "oo"

    def test_caret_ignores_edits_after_it(self, qapp):
        buffer = TextBuffer("foo bar")
        view = TextView([buffer])
        view.move_caret(2)

        buffer.insert(5, "!!")

        assert view.caret_offset == 2

    def test_move_caret_outside_view_raises(self, qapp):
        view = TextView([TextBuffer("a")])
        with pytest.raises(ValueError):
            view.move_caret(0, TextBuffer("b"))

    def test_caret_point_respects_predicate(self, qapp):
        view = TextView([TextBuffer("a", content_type="plaintext")])
        assert view.caret_point(lambda b: b.content_type == "python") is None
        assert view.caret_point() is not None


class TestWorkspace:
    def test_document_ids_prefer_explicit_then_path(self, qapp, tmp_path):
        workspace = Workspace()
        a = TextBuffer("", file_path=str(tmp_path / "a.py"))
        b = TextBuffer("")

        assert workspace.open_buffer(a) == str(tmp_path / "a.py")
        assert workspace.open_buffer(b, document_id="b.py") == "b.py"
        assert try_get_workspace(a) is workspace

    def test_duplicate_document_id_is_rejected(self, qapp):
        workspace = Workspace()
        workspace.open_buffer(TextBuffer(""), document_id="x")
        with pytest.raises(ValueError):
            workspace.open_buffer(TextBuffer(""), document_id="x")

    def test_corresponding_snapshot_tracks_liveness(self, qapp):
        workspace = Workspace()
        buffer = TextBuffer("foo", content_type="python")
        workspace.open_buffer(buffer, document_id="doc")
        document = workspace.current_document("doc")

        assert workspace.corresponding_snapshot(document) == buffer.current_snapshot
        buffer.insert(0, "#")
        assert workspace.corresponding_snapshot(document) is None

        fresh = workspace.current_document("doc")
        workspace.close_buffer(buffer)
        assert workspace.corresponding_snapshot(fresh) is None
        assert try_get_workspace(buffer) is None

    def test_removing_projection_with_caret_moves_caret_home(self, qapp):
        main = TextBuffer("main")
        side = TextBuffer("side")
        view = TextView([main])
        graph_changes = []
        view.bufferGraphChanged.connect(lambda: graph_changes.append(1))

        view.add_projection(side)
        view.move_caret(2, side)
        view.remove_projection(side)

        assert view.buffer_graph == [main]
        assert view.caret_buffer is main
        assert view.caret_offset == 0
        assert graph_changes == [1, 1]

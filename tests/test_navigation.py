"""Tests for next/previous highlight navigation."""

from __future__ import annotations

from conftest import spans_in_caret_document
from refmark.highlighting.navigation import NavigationDirection, find_adjacent_tag
from refmark.highlighting.tags import DisplayedTag, TagKind
from refmark.services.document_highlights import HighlightSpanKind
from refmark.text.snapshot import TextRange, TextSnapshot

MAIN = TextSnapshot("main", 0, "x" * 40, "python")
SIDE = TextSnapshot("side", 0, "x" * 40, "python")


def tag(snapshot: TextSnapshot, start: int, end: int) -> DisplayedTag:
    return DisplayedTag(snapshot=snapshot, document_id=snapshot.buffer_id, range=TextRange(start, end), kind=TagKind.REFERENCE)


class TestFindAdjacentTag:
    def test_next_and_previous(self):
        tags = [tag(MAIN, 0, 3), tag(MAIN, 10, 13), tag(MAIN, 20, 23)]

        assert find_adjacent_tag(tags, MAIN.point(11), NavigationDirection.NEXT).range.start == 20
        assert find_adjacent_tag(tags, MAIN.point(11), NavigationDirection.PREVIOUS).range.start == 0

    def test_wraps_around(self):
        tags = [tag(MAIN, 0, 3), tag(MAIN, 10, 13)]

        assert find_adjacent_tag(tags, MAIN.point(12), NavigationDirection.NEXT).range.start == 0
        assert find_adjacent_tag(tags, MAIN.point(1), NavigationDirection.PREVIOUS).range.start == 10

    def test_caret_off_every_tag_returns_none(self):
        tags = [tag(MAIN, 0, 3)]
        assert find_adjacent_tag(tags, MAIN.point(7), NavigationDirection.NEXT) is None
        assert find_adjacent_tag([], MAIN.point(0), NavigationDirection.NEXT) is None

    def test_buffers_follow_view_order(self):
        tags = [tag(MAIN, 5, 8), tag(SIDE, 0, 3)]

        nxt = find_adjacent_tag(tags, SIDE.point(1), NavigationDirection.NEXT, buffer_order=["side", "main"])

        assert nxt.snapshot == MAIN


class TestControllerNavigate:
    def test_navigate_moves_caret_and_keeps_tags(self, make_harness):
        h = make_harness(
            responder=spans_in_caret_document(
                (0, 3, HighlightSpanKind.DEFINITION),
                (15, 18, HighlightSpanKind.REFERENCE),
            )
        )
        h.compute()

        assert h.controller.navigate(h.context_id, NavigationDirection.NEXT)
        assert h.view.caret_offset == 15
        assert len(h.tags()) == 2

        h.trigger()
        assert h.service.call_count == 1

        assert h.controller.navigate(h.context_id, NavigationDirection.NEXT)
        assert h.view.caret_offset == 0

    def test_navigate_without_tags_does_nothing(self, make_harness):
        h = make_harness()
        assert not h.controller.navigate(h.context_id, NavigationDirection.PREVIOUS)
        assert h.view.caret_offset == 0

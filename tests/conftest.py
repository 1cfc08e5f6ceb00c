"""Shared fixtures: an offscreen QApplication and a wired highlighting harness."""

from __future__ import annotations

import os
import threading
from typing import Callable

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PySide6.QtWidgets import QApplication  # noqa: E402

from refmark.core.cancellation import CancellationToken  # noqa: E402
from refmark.highlighting.controller import ReferenceHighlightingController  # noqa: E402
from refmark.services.document_highlights import (  # noqa: E402
    DocumentHighlights,
    HighlightSpan,
    HighlightSpanKind,
)
from refmark.services.semantic_change_notifier import SemanticChangeNotifier  # noqa: E402
from refmark.text.buffer import TextBuffer  # noqa: E402
from refmark.text.snapshot import TextRange  # noqa: E402
from refmark.text.view import TextView  # noqa: E402
from refmark.workspace import Document, Workspace  # noqa: E402

E2E_TEXT = "foo = 1; print(foo)"

# Long trigger delays: tests fire triggers through flush() instead of waiting.
QUIET_SETTINGS = {
    "caret_delay_ms": 5000,
    "semantic_delay_ms": 10000,
    "semantic_change_debounce_ms": 10000,
}

Responder = Callable[[Document, int, frozenset, CancellationToken], "list[DocumentHighlights] | None"]


def spans_in_caret_document(*items: tuple[int, int, object]) -> Responder:
    """Responder answering with fixed spans in the caret's document."""

    def respond(document, position, documents_to_search, token):
        return [
            DocumentHighlights.create(
                document,
                [HighlightSpan(TextRange(start, end), kind) for start, end, kind in items],
            )
        ]

    return respond


class SpyHighlightsService:
    def __init__(self, responder: Responder | None = None) -> None:
        self.responder = responder
        self.calls: list[tuple[Document, int, frozenset]] = []
        self.shut_down = False
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)

    def get_document_highlights(self, document, position, documents_to_search, cancellation_token):
        with self._lock:
            self.calls.append((document, position, documents_to_search))
        if self.responder is None:
            return []
        return self.responder(document, position, documents_to_search, cancellation_token)

    def shutdown(self) -> None:
        self.shut_down = True


class BlockingHighlightsService(SpyHighlightsService):
    """Holds every call until ``release`` is set, then honours cancellation."""

    def __init__(self, responder: Responder | None = None) -> None:
        super().__init__(responder)
        self.started = threading.Event()
        self.release = threading.Event()

    def get_document_highlights(self, document, position, documents_to_search, cancellation_token):
        self.started.set()
        self.release.wait(5.0)
        cancellation_token.raise_if_cancellation_requested()
        return super().get_document_highlights(document, position, documents_to_search, cancellation_token)


class FailingHighlightsService(SpyHighlightsService):
    def get_document_highlights(self, document, position, documents_to_search, cancellation_token):
        super().get_document_highlights(document, position, documents_to_search, cancellation_token)
        raise RuntimeError("resolver exploded")


class HighlightHarness:
    def __init__(
        self,
        *,
        text: str,
        service: SpyHighlightsService,
        content_type: str = "python",
        settings: dict | None = None,
    ) -> None:
        self.workspace = Workspace()
        self.buffer = TextBuffer(text, content_type=content_type)
        self.document_id = self.workspace.open_buffer(self.buffer, document_id="main.py")
        self.service = service
        self.workspace.services.register_provider(service, language_ids=["python"])
        self.view = TextView([self.buffer], view_id="view-1")
        self.notifier = SemanticChangeNotifier(self.workspace, debounce_ms=10000)

        cfg = dict(QUIET_SETTINGS)
        cfg.update(settings or {})
        self.controller = ReferenceHighlightingController(notifier=self.notifier, settings=cfg)
        self.context_id = self.controller.attach(self.view, self.buffer)

        self.diffs: list = []
        self.messages: list[str] = []
        self.controller.tagsChanged.connect(lambda ctx, diff: self.diffs.append((ctx, diff)))
        self.controller.statusMessage.connect(self.messages.append)

    def compute(self) -> None:
        self.controller.request_highlights(self.context_id)
        assert self.controller.wait_for_idle(5.0)

    def trigger(self) -> None:
        self.controller.flush_pending_triggers()
        assert self.controller.wait_for_idle(5.0)

    def tags(self) -> list[tuple[int, int, str]]:
        return [
            (tag.range.start, tag.range.end, tag.kind.value)
            for tag in self.controller.tags_for(self.context_id)
        ]

    def close(self) -> None:
        self.controller.shutdown()
        self.notifier.shutdown()
        self.workspace.close_all()


@pytest.fixture(scope="session")
def qapp():
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app


@pytest.fixture
def make_harness(qapp):
    created: list[HighlightHarness] = []

    def factory(
        text: str = E2E_TEXT,
        *,
        service: SpyHighlightsService | None = None,
        responder: Responder | None = None,
        content_type: str = "python",
        settings: dict | None = None,
    ) -> HighlightHarness:
        harness = HighlightHarness(
            text=text,
            service=service if service is not None else SpyHighlightsService(responder),
            content_type=content_type,
            settings=settings,
        )
        created.append(harness)
        return harness

    yield factory
    for harness in created:
        if isinstance(harness.service, BlockingHighlightsService):
            harness.service.release.set()
        harness.close()


@pytest.fixture
def e2e_responder() -> Responder:
    return spans_in_caret_document(
        (0, 3, HighlightSpanKind.DEFINITION),
        (11, 14, HighlightSpanKind.REFERENCE),
    )

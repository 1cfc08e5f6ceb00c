"""Reference highlighting engine.

One tagging context exists per ``(view, subject buffer)`` pair. Triggers from the
context's composed event source run ``request_highlights`` on the Qt thread; the
resolver call itself runs on a worker pool and its result comes back through a
queue drained by a timer. Each request carries a token and only the context's
latest token is ever applied.
"""

from __future__ import annotations

import concurrent.futures
import logging
import queue
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from PySide6.QtCore import QObject, QTimer, Signal

from refmark.core.cancellation import CancellationToken, OperationCanceledError
from refmark.highlighting.caret_scope import CaretScopeResolver, DocumentSnapshotSpan
from refmark.highlighting.event_sources import (
    CaretPositionChangedEventSource,
    SemanticChangedEventSource,
    TaggerEventSource,
    compose,
)
from refmark.highlighting.navigation import NavigationDirection, find_adjacent_tag
from refmark.highlighting.tag_diff import TagDiff, TagReconciler
from refmark.highlighting.tags import DisplayedTag, tag_kind_for
from refmark.services.document_highlights import DocumentHighlights, DocumentHighlightsService
from refmark.services.language_id import normalize_content_types
from refmark.services.semantic_change_notifier import SemanticChangeNotifier
from refmark.settings_models import default_reference_highlighting_settings
from refmark.text.buffer import TextBuffer
from refmark.text.snapshot import TextChange
from refmark.text.view import TextView
from refmark.workspace import Document, try_get_workspace

logger = logging.getLogger(__name__)


class TaggerState(Enum):
    IDLE = "idle"
    CHECKING_REUSE = "checking_reuse"
    COMPUTING = "computing"
    APPLYING = "applying"


@dataclass(frozen=True, slots=True)
class HighlightRequest:
    token: int
    context_id: str
    caret_position: int
    document: Document
    documents_to_search: frozenset[Document]
    candidate_spans: tuple[DocumentSnapshotSpan, ...]


@dataclass(slots=True)
class _HighlightResult:
    request: HighlightRequest
    status: str  # ok | canceled | failed
    highlights: list[DocumentHighlights] | None = None
    error: str = ""


@dataclass(slots=True)
class _TaggerContext:
    context_id: str
    view: TextView
    subject_buffer: TextBuffer
    event_source: TaggerEventSource
    caret_source: CaretPositionChangedEventSource
    semantic_source: SemanticChangedEventSource | None
    reconciler: TagReconciler = field(default_factory=TagReconciler)
    state: TaggerState = TaggerState.IDLE
    latest_token: int = 0
    inflight: concurrent.futures.Future | None = None
    cancellation: CancellationToken | None = None
    watched_buffers: list[TextBuffer] = field(default_factory=list)
    slots: dict[str, Any] = field(default_factory=dict)


def context_id_for(view: TextView, subject_buffer: TextBuffer) -> str:
    return f"{view.view_id}:{subject_buffer.buffer_id}"


class ReferenceHighlightingController(QObject):
    tagsChanged = Signal(str, object)  # context_id, TagDiff
    stateChanged = Signal(str, str)  # context_id, TaggerState.value
    statusMessage = Signal(str)

    DEFAULTS = default_reference_highlighting_settings()
    BACKENDS = {"jedi", "word"}

    def __init__(
        self,
        *,
        notifier: SemanticChangeNotifier | None = None,
        scope_resolver: CaretScopeResolver | None = None,
        settings: dict | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._notifier = notifier
        self._custom_scope_resolver = scope_resolver is not None

        self._cfg: dict[str, Any] = {}
        self._merge_defaults(self._cfg, self.DEFAULTS)
        if isinstance(settings, dict):
            self._merge_defaults(self._cfg, settings)
        self._cfg = self._normalize_cfg(self._cfg)

        self._scope_resolver = scope_resolver or CaretScopeResolver.for_content_types(
            self._cfg["supported_languages"]
        )

        self._max_workers = int(self._cfg["max_workers"])
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="refmark-highlights"
        )
        self._active_futures: set[concurrent.futures.Future] = set()
        self._result_queue: queue.Queue[_HighlightResult] = queue.Queue()

        self._result_pump = QTimer(self)
        self._result_pump.setInterval(int(self._cfg["result_pump_interval_ms"]))
        self._result_pump.timeout.connect(self._drain_results)
        self._result_pump.start()

        self._contexts: dict[str, _TaggerContext] = {}
        self._token_counter = 0
        self._failure_reported = False
        self._is_shutdown = False

    # ---------- Settings ----------

    @property
    def settings(self) -> dict[str, Any]:
        return dict(self._cfg)

    def is_enabled(self) -> bool:
        return bool(self._cfg.get("enabled", True))

    def update_settings(self, cfg: dict) -> None:
        merged: dict[str, Any] = {}
        self._merge_defaults(merged, self.DEFAULTS)
        if isinstance(cfg, dict):
            self._merge_defaults(merged, cfg)
        self._cfg = self._normalize_cfg(merged)

        if not self._custom_scope_resolver:
            self._scope_resolver = CaretScopeResolver.for_content_types(self._cfg["supported_languages"])
        self._result_pump.setInterval(int(self._cfg["result_pump_interval_ms"]))
        if self._notifier is not None:
            self._notifier.set_debounce_ms(int(self._cfg["semantic_change_debounce_ms"]))
        for ctx in self._contexts.values():
            ctx.caret_source.set_delay_ms(int(self._cfg["caret_delay_ms"]))
            if ctx.semantic_source is not None:
                ctx.semantic_source.set_delay_ms(int(self._cfg["semantic_delay_ms"]))

        if int(self._cfg["max_workers"]) != self._max_workers and not self._is_shutdown:
            # Running calls finish on the old pool and still report through the queue.
            old = self._executor
            self._max_workers = int(self._cfg["max_workers"])
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="refmark-highlights"
            )
            old.shutdown(wait=False)

        if not self.is_enabled():
            for ctx in self._contexts.values():
                ctx.event_source.cancel_pending()
                self._cancel_inflight(ctx)
                ctx.latest_token = self._next_token()
                self._clear(ctx)
                self._set_state(ctx, TaggerState.IDLE)
        self._failure_reported = False

    # ---------- Contexts ----------

    def attach(self, view: TextView, subject_buffer: TextBuffer | None = None) -> str:
        buffer = subject_buffer if subject_buffer is not None else view.text_buffer
        context_id = context_id_for(view, buffer)
        if context_id in self._contexts:
            return context_id

        caret_source = CaretPositionChangedEventSource(view, int(self._cfg["caret_delay_ms"]))
        semantic_source = None
        sources: list[TaggerEventSource] = [caret_source]
        if self._notifier is not None:
            semantic_source = SemanticChangedEventSource(
                buffer, self._notifier, int(self._cfg["semantic_delay_ms"])
            )
            sources.append(semantic_source)
        event_source = compose(*sources)
        event_source.setParent(self)
        for source in sources:
            source.setParent(event_source)

        ctx = _TaggerContext(
            context_id=context_id,
            view=view,
            subject_buffer=buffer,
            event_source=event_source,
            caret_source=caret_source,
            semantic_source=semantic_source,
        )
        ctx.slots = {
            "trigger": lambda key=context_id: self.request_highlights(key),
            "caret": lambda point, key=context_id: self._on_caret_moved(key, point),
            "edit": lambda change, key=context_id: self.notify_text_changed(key, change),
            "graph": lambda key=context_id: self._rewatch_buffers(key),
            "closed": lambda v=view: self.detach_view(v),
        }
        self._contexts[context_id] = ctx

        event_source.changed.connect(ctx.slots["trigger"])
        view.caretPositionChanged.connect(ctx.slots["caret"])
        view.bufferGraphChanged.connect(ctx.slots["graph"])
        view.closed.connect(ctx.slots["closed"])
        self._watch_buffers(ctx)
        event_source.attach()
        logger.debug("Attached tagging context %s.", context_id)
        return context_id

    def attach_view(self, view: TextView) -> list[str]:
        """One context per supported buffer of the view."""
        return [
            self.attach(view, buffer)
            for buffer in view.get_text_buffers(self._scope_resolver.is_supported_buffer)
        ]

    def detach(self, context_id: str) -> None:
        ctx = self._contexts.pop(str(context_id or ""), None)
        if ctx is None:
            return
        ctx.event_source.detach()
        self._cancel_inflight(ctx)
        ctx.latest_token = self._next_token()
        self._unwatch_buffers(ctx)
        for signal, key in (
            (ctx.event_source.changed, "trigger"),
            (ctx.view.caretPositionChanged, "caret"),
            (ctx.view.bufferGraphChanged, "graph"),
            (ctx.view.closed, "closed"),
        ):
            try:
                signal.disconnect(ctx.slots[key])
            except (RuntimeError, TypeError):
                pass
        if not ctx.reconciler.index.is_empty():
            self._emit_diff(ctx, ctx.reconciler.clear())
        ctx.event_source.deleteLater()
        logger.debug("Detached tagging context %s.", ctx.context_id)

    def detach_view(self, view: TextView) -> None:
        for context_id in [key for key, ctx in self._contexts.items() if ctx.view is view]:
            self.detach(context_id)

    def context_ids(self) -> list[str]:
        return list(self._contexts)

    def contexts_for_view(self, view: TextView) -> list[str]:
        return [key for key, ctx in self._contexts.items() if ctx.view is view]

    def tags_for(self, context_id: str) -> list[DisplayedTag]:
        ctx = self._contexts.get(str(context_id or ""))
        if ctx is None:
            return []
        return ctx.reconciler.index.ordered()

    def state_for(self, context_id: str) -> TaggerState:
        ctx = self._contexts.get(str(context_id or ""))
        if ctx is None:
            return TaggerState.IDLE
        return ctx.state

    # ---------- Computation ----------

    def request_highlights(self, context_id: str) -> None:
        ctx = self._contexts.get(str(context_id or ""))
        if ctx is None or self._is_shutdown or not self.is_enabled():
            return

        self._cancel_inflight(ctx)
        token = self._next_token()
        ctx.latest_token = token
        self._set_state(ctx, TaggerState.CHECKING_REUSE)

        scope = self._scope_resolver.resolve(ctx.view)
        if scope is None:
            self._set_state(ctx, TaggerState.IDLE)
            return

        if ctx.reconciler.index.tags_containing(scope.caret):
            self._emit_diff(ctx, ctx.reconciler.preserve())
            self._set_state(ctx, TaggerState.IDLE)
            return

        service = scope.workspace.services.provider_for_language(scope.document.language_id)
        if service is None:
            logger.debug("No highlights service for language '%s'.", scope.document.language_id)
            self._clear(ctx)
            self._set_state(ctx, TaggerState.IDLE)
            return

        request = HighlightRequest(
            token=token,
            context_id=ctx.context_id,
            caret_position=scope.caret.position,
            document=scope.document,
            documents_to_search=scope.documents_to_search,
            candidate_spans=scope.spans_to_tag,
        )
        cancellation = CancellationToken()
        try:
            fut = self._executor.submit(self._run_request, service, request, cancellation)
        except RuntimeError:
            logger.exception("Could not schedule highlights request for %s.", ctx.context_id)
            self._set_state(ctx, TaggerState.IDLE)
            return

        ctx.inflight = fut
        ctx.cancellation = cancellation
        self._set_state(ctx, TaggerState.COMPUTING)
        self._active_futures.add(fut)
        fut.add_done_callback(lambda future, req=request: self._queue_result(req, future))

    def notify_text_changed(self, context_id: str, change: TextChange | None = None) -> None:
        """Edits invalidate every span: cancel work and clear all tags."""
        ctx = self._contexts.get(str(context_id or ""))
        if ctx is None:
            return
        self._cancel_inflight(ctx)
        ctx.latest_token = self._next_token()
        self._clear(ctx)
        self._set_state(ctx, TaggerState.IDLE)

    def flush_pending_triggers(self) -> None:
        for ctx in list(self._contexts.values()):
            ctx.event_source.flush()

    def wait_for_idle(self, timeout: float = 5.0) -> bool:
        """Block until in-flight resolver calls finish, applying their results."""
        deadline = time.monotonic() + max(0.0, float(timeout))
        while True:
            self._drain_results()
            pending = list(self._active_futures)
            if not pending:
                self._drain_results()
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            concurrent.futures.wait(pending, timeout=min(remaining, 0.05))

    # ---------- Navigation ----------

    def navigate(self, context_id: str, direction: NavigationDirection) -> bool:
        ctx = self._contexts.get(str(context_id or ""))
        if ctx is None or ctx.view.is_closed():
            return False
        caret = self._scope_resolver.caret_point(ctx.view)
        if caret is None:
            return False
        buffer_order = [buffer.buffer_id for buffer in ctx.view.buffer_graph]
        target = find_adjacent_tag(ctx.reconciler.index, caret, direction, buffer_order)
        if target is None:
            return False
        buffer = target.snapshot.buffer
        if buffer is None or buffer not in ctx.view.buffer_graph or buffer.current_snapshot != target.snapshot:
            return False
        ctx.view.move_caret(target.range.start, buffer)
        return True

    # ---------- Lifetime ----------

    def shutdown(self) -> None:
        self._is_shutdown = True
        for context_id in list(self._contexts):
            self.detach(context_id)

        try:
            self._result_pump.stop()
        except RuntimeError:
            pass

        for fut in list(self._active_futures):
            fut.cancel()
        self._active_futures.clear()
        self._executor.shutdown(wait=False, cancel_futures=True)

    # ---------- Internals ----------

    def _run_request(
        self,
        service: DocumentHighlightsService,
        request: HighlightRequest,
        cancellation: CancellationToken,
    ) -> _HighlightResult:
        try:
            cancellation.raise_if_cancellation_requested()
            highlights = service.get_document_highlights(
                request.document,
                request.caret_position,
                request.documents_to_search,
                cancellation,
            )
            cancellation.raise_if_cancellation_requested()
        except OperationCanceledError:
            return _HighlightResult(request=request, status="canceled")
        return _HighlightResult(request=request, status="ok", highlights=highlights)

    def _queue_result(self, request: HighlightRequest, future: concurrent.futures.Future) -> None:
        if not future.cancelled():
            try:
                result = future.result()
            except Exception as exc:
                result = _HighlightResult(request=request, status="failed", error=str(exc) or type(exc).__name__)
            self._result_queue.put(result)
        self._active_futures.discard(future)

    def _drain_results(self) -> None:
        while True:
            try:
                result = self._result_queue.get_nowait()
            except queue.Empty:
                return
            self._handle_result(result)

    def _handle_result(self, result: _HighlightResult) -> None:
        request = result.request
        ctx = self._contexts.get(request.context_id)
        if ctx is None:
            return
        if request.token != ctx.latest_token:
            logger.debug("Dropping superseded highlights for %s (token %d).", ctx.context_id, request.token)
            return

        ctx.inflight = None
        ctx.cancellation = None

        if result.status == "canceled":
            self._set_state(ctx, TaggerState.IDLE)
            return

        if result.status == "failed":
            logger.warning("Highlights service failed for %s: %s", request.document.id, result.error)
            if not self._failure_reported:
                self._failure_reported = True
                self.statusMessage.emit(f"Reference highlighting failed: {result.error}")
            self._clear(ctx)
            self._set_state(ctx, TaggerState.IDLE)
            return

        if not result.highlights:
            self._clear(ctx)
            self._set_state(ctx, TaggerState.IDLE)
            return

        self._set_state(ctx, TaggerState.APPLYING)
        tags = self._build_tags(ctx, result.highlights)
        self._emit_diff(ctx, ctx.reconciler.replace_all(tags))
        self._set_state(ctx, TaggerState.IDLE)

    def _build_tags(self, ctx: _TaggerContext, groups: list[DocumentHighlights]) -> list[DisplayedTag]:
        limit = int(self._cfg["max_highlights"])
        graph = ctx.view.buffer_graph
        tags: list[DisplayedTag] = []
        for group in groups:
            document = getattr(group, "document", None)
            if document is None:
                continue
            workspace = try_get_workspace(document.snapshot.buffer)
            snapshot = workspace.corresponding_snapshot(document) if workspace is not None else None
            if snapshot is None or snapshot.buffer not in graph:
                logger.debug("Dropping highlights for %s: no live snapshot in view.", document.id)
                continue
            for span in group.highlight_spans:
                if span.range.end > snapshot.length:
                    continue
                tags.append(
                    DisplayedTag(
                        snapshot=snapshot,
                        document_id=document.id,
                        range=span.range,
                        kind=tag_kind_for(span.kind),
                    )
                )
                if len(tags) >= limit:
                    return tags
        return tags

    def _on_caret_moved(self, context_id: str, _point: object = None) -> None:
        if not self._cfg.get("clear_on_caret_exit", True):
            return
        ctx = self._contexts.get(context_id)
        if ctx is None:
            return
        caret = self._scope_resolver.caret_point(ctx.view)
        if caret is not None and ctx.reconciler.index.tags_containing(caret):
            return
        if ctx.inflight is not None:
            self._cancel_inflight(ctx)
            ctx.latest_token = self._next_token()
            self._set_state(ctx, TaggerState.IDLE)
        if not ctx.reconciler.index.is_empty():
            self._clear(ctx)

    def _watch_buffers(self, ctx: _TaggerContext) -> None:
        for buffer in ctx.view.buffer_graph:
            buffer.changed.connect(ctx.slots["edit"])
            ctx.watched_buffers.append(buffer)

    def _unwatch_buffers(self, ctx: _TaggerContext) -> None:
        for buffer in ctx.watched_buffers:
            try:
                buffer.changed.disconnect(ctx.slots["edit"])
            except (RuntimeError, TypeError):
                pass
        ctx.watched_buffers.clear()

    def _rewatch_buffers(self, context_id: str) -> None:
        ctx = self._contexts.get(context_id)
        if ctx is None:
            return
        self._unwatch_buffers(ctx)
        self._watch_buffers(ctx)

    def _cancel_inflight(self, ctx: _TaggerContext) -> None:
        if ctx.cancellation is not None:
            ctx.cancellation.cancel()
        if ctx.inflight is not None and not ctx.inflight.done():
            ctx.inflight.cancel()
        ctx.inflight = None
        ctx.cancellation = None

    def _clear(self, ctx: _TaggerContext) -> None:
        self._emit_diff(ctx, ctx.reconciler.clear())

    def _emit_diff(self, ctx: _TaggerContext, diff: TagDiff) -> None:
        self.tagsChanged.emit(ctx.context_id, diff)

    def _set_state(self, ctx: _TaggerContext, state: TaggerState) -> None:
        if ctx.state is state:
            return
        ctx.state = state
        self.stateChanged.emit(ctx.context_id, state.value)

    def _next_token(self) -> int:
        self._token_counter += 1
        return self._token_counter

    def _merge_defaults(self, target: dict, source: dict) -> None:
        for key, value in source.items():
            if isinstance(value, dict):
                current = target.get(key)
                if not isinstance(current, dict):
                    current = {}
                self._merge_defaults(current, value)
                target[key] = current
            elif isinstance(value, list):
                target[key] = list(value)
            else:
                target[key] = value

    def _normalize_cfg(self, cfg: dict) -> dict:
        out = dict(cfg)
        out["enabled"] = bool(out.get("enabled", True))
        out["clear_on_caret_exit"] = bool(out.get("clear_on_caret_exit", True))
        out["caret_delay_ms"] = max(0, min(5000, int(out.get("caret_delay_ms", 250))))
        out["semantic_delay_ms"] = max(0, min(10000, int(out.get("semantic_delay_ms", 1500))))
        out["semantic_change_debounce_ms"] = max(0, min(10000, int(out.get("semantic_change_debounce_ms", 500))))
        out["max_highlights"] = max(1, min(100000, int(out.get("max_highlights", 2000))))
        out["max_workers"] = max(1, min(8, int(out.get("max_workers", 2))))
        out["result_pump_interval_ms"] = max(1, min(1000, int(out.get("result_pump_interval_ms", 16))))

        backend = str(out.get("backend", "jedi")).strip().lower()
        if backend not in self.BACKENDS:
            backend = "jedi"
        out["backend"] = backend

        languages = normalize_content_types(out.get("supported_languages"))
        out["supported_languages"] = list(languages or ("python",))

        visuals = out.get("visuals")
        if not isinstance(visuals, dict):
            visuals = {}
        visuals["definition_color"] = str(visuals.get("definition_color") or "#D6A853")
        visuals["reference_color"] = str(visuals.get("reference_color") or "#4A8FD8")
        visuals["alpha"] = max(0, min(255, int(visuals.get("alpha", 110))))
        out["visuals"] = visuals

        keybindings = out.get("keybindings")
        if not isinstance(keybindings, dict):
            keybindings = {}
        for action, default in (("next_highlight", "Ctrl+Shift+Down"), ("previous_highlight", "Ctrl+Shift+Up")):
            seqs = keybindings.get(action)
            if isinstance(seqs, str):
                seqs = [seqs]
            if not isinstance(seqs, list):
                seqs = [default]
            keybindings[action] = [str(seq).strip() for seq in seqs if str(seq or "").strip()]
        out["keybindings"] = keybindings
        return out

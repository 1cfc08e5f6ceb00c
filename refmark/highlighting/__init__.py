"""Reference highlighting pipeline: triggers, scope, computation, tags."""

from .caret_scope import CaretScope, CaretScopeResolver, DocumentSnapshotSpan
from .controller import HighlightRequest, ReferenceHighlightingController, TaggerState
from .event_sources import (
    CaretPositionChangedEventSource,
    CompositeEventSource,
    SemanticChangedEventSource,
    TaggerDelay,
    TaggerEventSource,
    compose,
)
from .navigation import NavigationDirection, find_adjacent_tag
from .tag_diff import TagDiff, TagReconciler, compute_tag_diff
from .tag_index import TagSpanIndex
from .tags import FALLBACK_TAG_KIND, DisplayedTag, TagKind, tag_kind_for

__all__ = [
    "CaretPositionChangedEventSource",
    "CaretScope",
    "CaretScopeResolver",
    "CompositeEventSource",
    "DisplayedTag",
    "DocumentSnapshotSpan",
    "FALLBACK_TAG_KIND",
    "HighlightRequest",
    "NavigationDirection",
    "ReferenceHighlightingController",
    "SemanticChangedEventSource",
    "TagDiff",
    "TagKind",
    "TagReconciler",
    "TagSpanIndex",
    "TaggerDelay",
    "TaggerEventSource",
    "TaggerState",
    "compose",
    "compute_tag_diff",
    "find_adjacent_tag",
    "tag_kind_for",
]

from .buffer import TextBuffer
from .snapshot import SnapshotPoint, SnapshotSpan, TextChange, TextRange, TextSnapshot
from .view import TextView

__all__ = [
    "SnapshotPoint",
    "SnapshotSpan",
    "TextBuffer",
    "TextChange",
    "TextRange",
    "TextSnapshot",
    "TextView",
]

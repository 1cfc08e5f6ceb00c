"""Content-type helpers for buffers.

Maps file names to the content type a buffer is created with and decides which
content types take part in reference highlighting.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

DEFAULT_SUPPORTED_CONTENT_TYPES: tuple[str, ...] = ("python",)

# Only Python has a highlights service; every other file opens as plain text.
_EXTENSION_CONTENT_TYPES: dict[str, str] = {
    ".py": "python",
    ".pyw": "python",
    ".pyi": "python",
}


def language_id_for_path(file_path: str | None, *, default: str = "plaintext") -> str:
    """Return a normalized content type for a file path."""
    path_text = str(file_path or "").strip()
    fallback = str(default or "plaintext").strip().lower() or "plaintext"
    if not path_text:
        return fallback

    suffix = Path(path_text).suffix.lower()
    return _EXTENSION_CONTENT_TYPES.get(suffix, fallback)


def normalize_content_types(values: Iterable[str] | str | None) -> tuple[str, ...]:
    if values is None:
        return DEFAULT_SUPPORTED_CONTENT_TYPES
    if isinstance(values, str):
        values = [values]
    out: list[str] = []
    for raw in values:
        key = str(raw or "").strip().lower()
        if key and key not in out:
            out.append(key)
    return tuple(out)


def is_supported_content_type(
    content_type: str | None,
    supported: Iterable[str] = DEFAULT_SUPPORTED_CONTENT_TYPES,
) -> bool:
    key = str(content_type or "").strip().lower()
    return bool(key) and key in set(supported)

from __future__ import annotations

import json
import logging
import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

from refmark.settings_models import (
    AppSettings,
    ReferenceHighlightingSettings,
    SettingsPaths,
    default_app_settings,
)

logger = logging.getLogger(__name__)


class SettingsStoreError(RuntimeError):
    """Raised when a settings file cannot be written."""


def deep_merge_defaults(data: Mapping[str, Any], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """Fill keys missing from ``data`` with defaults, recursing into nested objects."""
    merged = deepcopy(dict(data))
    for key, default_value in defaults.items():
        current = merged.get(key)
        if key not in merged:
            merged[key] = deepcopy(default_value)
        elif isinstance(current, dict) and isinstance(default_value, dict):
            merged[key] = deep_merge_defaults(current, default_value)
    return merged


def _split_key(key: str) -> list[str]:
    parts = [part for part in str(key or "").split(".") if part]
    if not parts:
        raise ValueError("Settings key cannot be empty.")
    return parts


def dot_get(data: Mapping[str, Any], key: str, default: Any = None) -> Any:
    if not key:
        return data
    node: Any = data
    for part in _split_key(key):
        if not isinstance(node, Mapping) or part not in node:
            return default
        node = node[part]
    return node


def dot_set(data: dict[str, Any], key: str, value: Any) -> None:
    *parents, leaf = _split_key(key)
    node = data
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            child = node[part] = {}
        node = child
    node[leaf] = value


def dot_delete(data: dict[str, Any], key: str) -> bool:
    if not key:
        return False
    *parents, leaf = _split_key(key)
    chain: list[tuple[dict[str, Any], str]] = []
    node = data
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            return False
        chain.append((node, part))
        node = child
    if leaf not in node:
        return False
    del node[leaf]

    # Drop containers the deletion left empty.
    for parent, part in reversed(chain):
        if parent[part]:
            break
        del parent[part]
    return True


class JsonSettingsStore:
    """App settings kept in one JSON file, merged over the built-in defaults.

    A broken file never stops the app: ``load`` keeps the defaults (or the last
    good data) and records the problem in ``last_error``.
    """

    def __init__(self, path: Path, defaults: Mapping[str, Any] | None = None) -> None:
        self.path = Path(path)
        self.defaults: dict[str, Any] = deepcopy(dict(defaults if defaults is not None else default_app_settings()))
        self.data: dict[str, Any] = deepcopy(self.defaults)
        self.dirty = False
        self.last_error: str | None = None

    @classmethod
    def for_paths(cls, paths: SettingsPaths) -> "JsonSettingsStore":
        return cls(paths.settings_file)

    def load(self) -> dict[str, Any]:
        self.last_error = None
        if not self.path.exists():
            self.data = deepcopy(self.defaults)
            self.dirty = True
            return self.data

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raw = None
            self.last_error = f"Could not read settings file '{self.path}': {exc}"
        else:
            if not isinstance(raw, dict):
                self.last_error = (
                    f"Settings root in '{self.path}' must be a JSON object, found {type(raw).__name__}."
                )
                raw = None

        if raw is None:
            logger.warning("%s Using defaults.", self.last_error)
            self.data = deep_merge_defaults(self.data, self.defaults)
            self.dirty = False
            return self.data

        self.data = deep_merge_defaults(raw, self.defaults)
        self.dirty = False
        return self.data

    def save(self) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(self.data, indent=2, sort_keys=True), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise SettingsStoreError(f"Could not write settings file '{self.path}': {exc}") from exc
        self.dirty = False
        self.last_error = None

    def get(self, key: str, default: Any = None) -> Any:
        return dot_get(self.data, key, default)

    def set(self, key: str, value: Any) -> bool:
        if self.has(key) and self.get(key) == value:
            return False
        dot_set(self.data, key, deepcopy(value))
        self.dirty = True
        return True

    def delete(self, key: str) -> bool:
        changed = dot_delete(self.data, key)
        if changed:
            self.dirty = True
        return changed

    def has(self, key: str) -> bool:
        missing = object()
        return self.get(key, missing) is not missing

    def restore_defaults(self) -> None:
        self.data = deepcopy(self.defaults)
        self.dirty = True

    def snapshot(self) -> AppSettings:
        return deepcopy(self.data)  # type: ignore[return-value]

    def reference_highlighting(self) -> ReferenceHighlightingSettings:
        section = self.get("reference_highlighting", {})
        return deepcopy(section) if isinstance(section, dict) else {}  # type: ignore[return-value]

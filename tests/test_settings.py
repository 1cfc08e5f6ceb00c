"""Tests for settings defaults and the JSON settings store."""

from __future__ import annotations

import json

import pytest

from refmark.settings_models import SettingsPaths, default_app_settings, default_reference_highlighting_settings
from refmark.settings_store import JsonSettingsStore, SettingsStoreError, deep_merge_defaults, dot_delete, dot_get, dot_set


class TestDefaults:
    def test_reference_highlighting_defaults(self):
        cfg = default_reference_highlighting_settings()
        assert cfg["caret_delay_ms"] == 250
        assert cfg["semantic_delay_ms"] == 1500
        assert cfg["clear_on_caret_exit"] is True
        assert cfg["backend"] == "jedi"
        assert cfg["supported_languages"] == ["python"]

    def test_defaults_are_fresh_copies(self):
        first = default_reference_highlighting_settings()
        first["supported_languages"].append("rust")
        assert default_reference_highlighting_settings()["supported_languages"] == ["python"]

    def test_settings_paths_resolve_file(self, tmp_path):
        paths = SettingsPaths(tmp_path / "cfg")
        assert paths.settings_file == (tmp_path / "cfg").resolve() / "refmark-settings.json"


class TestDotHelpers:
    def test_get_set_delete(self):
        data: dict = {}
        dot_set(data, "reference_highlighting.visuals.alpha", 90)
        assert dot_get(data, "reference_highlighting.visuals.alpha") == 90
        assert dot_get(data, "reference_highlighting.missing", "dflt") == "dflt"

        assert dot_delete(data, "reference_highlighting.visuals.alpha")
        assert data == {}
        assert not dot_delete(data, "reference_highlighting.visuals.alpha")

    def test_empty_key_is_rejected_for_set(self):
        with pytest.raises(ValueError):
            dot_set({}, "", 1)

    def test_merge_keeps_explicit_values(self):
        merged = deep_merge_defaults({"a": {"x": 1}}, {"a": {"x": 0, "y": 2}, "b": 3})
        assert merged == {"a": {"x": 1, "y": 2}, "b": 3}


class TestJsonSettingsStore:
    def test_missing_file_loads_defaults_and_marks_dirty(self, tmp_path):
        store = JsonSettingsStore(tmp_path / "settings.json")
        data = store.load()

        assert data == default_app_settings()
        assert store.dirty
        assert store.last_error is None

    def test_partial_file_is_merged_over_defaults(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"reference_highlighting": {"caret_delay_ms": 100}}), encoding="utf-8")

        store = JsonSettingsStore(path)
        store.load()

        section = store.reference_highlighting()
        assert section["caret_delay_ms"] == 100
        assert section["semantic_delay_ms"] == 1500
        assert not store.dirty

    def test_broken_file_keeps_defaults_and_records_error(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json", encoding="utf-8")

        store = JsonSettingsStore(path)
        data = store.load()

        assert data == default_app_settings()
        assert store.last_error
        assert path.read_text(encoding="utf-8") == "{not json"

    def test_non_object_root_is_rejected(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2]", encoding="utf-8")

        store = JsonSettingsStore(path)
        store.load()

        assert "must be a JSON object" in (store.last_error or "")

    def test_save_round_trips_changes(self, tmp_path):
        path = tmp_path / "nested" / "settings.json"
        store = JsonSettingsStore(path)
        store.load()
        assert store.set("reference_highlighting.backend", "word")
        assert not store.set("reference_highlighting.backend", "word")
        store.save()

        reloaded = JsonSettingsStore(path)
        reloaded.load()
        assert reloaded.get("reference_highlighting.backend") == "word"
        assert not store.dirty

    def test_save_failure_raises_store_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = JsonSettingsStore(blocker / "settings.json")

        with pytest.raises(SettingsStoreError):
            store.save()

    def test_restore_defaults(self, tmp_path):
        store = JsonSettingsStore(tmp_path / "settings.json")
        store.load()
        store.set("logging.verbose", True)
        store.restore_defaults()

        assert store.get("logging.verbose") is False
        assert store.has("reference_highlighting.visuals.alpha")
        assert not store.has("reference_highlighting.nope")

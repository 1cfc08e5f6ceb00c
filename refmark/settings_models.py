from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypedDict


class HighlightVisualSettings(TypedDict, total=False):
    definition_color: str
    reference_color: str
    alpha: int


class HighlightKeybindingSettings(TypedDict, total=False):
    next_highlight: list[str]
    previous_highlight: list[str]


class ReferenceHighlightingSettings(TypedDict, total=False):
    enabled: bool
    caret_delay_ms: int
    semantic_delay_ms: int
    semantic_change_debounce_ms: int
    clear_on_caret_exit: bool
    max_highlights: int
    max_workers: int
    result_pump_interval_ms: int
    backend: str  # jedi | word
    supported_languages: list[str]
    visuals: HighlightVisualSettings
    keybindings: HighlightKeybindingSettings


class LoggingSettings(TypedDict, total=False):
    verbose: bool
    log_file: str


class AppSettings(TypedDict, total=False):
    reference_highlighting: ReferenceHighlightingSettings
    logging: LoggingSettings


@dataclass(slots=True, frozen=True)
class SettingsPaths:
    app_dir: Path
    filename: str = "refmark-settings.json"
    settings_file: Path = field(init=False)

    def __post_init__(self) -> None:
        app_dir = Path(self.app_dir).expanduser().resolve()
        object.__setattr__(self, "app_dir", app_dir)
        object.__setattr__(self, "settings_file", app_dir / self.filename)


def default_reference_highlighting_settings() -> ReferenceHighlightingSettings:
    defaults: ReferenceHighlightingSettings = {
        "enabled": True,
        "caret_delay_ms": 250,
        "semantic_delay_ms": 1500,
        "semantic_change_debounce_ms": 500,
        "clear_on_caret_exit": True,
        "max_highlights": 2000,
        "max_workers": 2,
        "result_pump_interval_ms": 16,
        "backend": "jedi",
        "supported_languages": ["python"],
        "visuals": {
            "definition_color": "#D6A853",
            "reference_color": "#4A8FD8",
            "alpha": 110,
        },
        "keybindings": {
            "next_highlight": ["Ctrl+Shift+Down"],
            "previous_highlight": ["Ctrl+Shift+Up"],
        },
    }
    return deepcopy(defaults)


def default_app_settings() -> AppSettings:
    defaults: AppSettings = {
        "reference_highlighting": default_reference_highlighting_settings(),
        "logging": {
            "verbose": False,
            "log_file": "",
        },
    }
    return deepcopy(defaults)

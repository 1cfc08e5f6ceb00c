import os
import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication

from refmark.core.log_setup import setup_logging
from refmark.settings_models import SettingsPaths
from refmark.settings_store import JsonSettingsStore
from refmark.ui.window import ReferenceHighlightWindow

VERBOSE_ARG = "--verbose"
SETTINGS_DIR_ENV = "REFMARK_HOME"


def _split_startup_args(argv: list[str]) -> tuple[list[str], bool]:
    filtered: list[str] = []
    verbose = False
    for arg in argv:
        if arg in (VERBOSE_ARG, "-v"):
            verbose = True
            continue
        filtered.append(arg)
    return filtered, verbose


def _load_settings_store() -> JsonSettingsStore:
    app_dir = os.environ.get(SETTINGS_DIR_ENV) or str(Path.home() / ".refmark")
    store = JsonSettingsStore.for_paths(SettingsPaths(Path(app_dir)))
    store.load()
    return store


if __name__ == "__main__":
    file_args, verbose = _split_startup_args(sys.argv[1:])
    store = _load_settings_store()
    setup_logging(
        verbose=verbose or bool(store.get("logging.verbose", False)),
        log_file_path=str(store.get("logging.log_file", "") or "") or None,
    )

    app = QApplication(sys.argv[:1])
    window = ReferenceHighlightWindow(file_args, settings=store.reference_highlighting())
    if store.last_error:
        window.statusBar().showMessage(store.last_error, 5000)
    window.show()
    sys.exit(app.exec())

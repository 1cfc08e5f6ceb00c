from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)


def setup_logging(verbose: bool = False, log_file_path: Path | str | None = None) -> None:
    """Route the root logger to a rich console handler and an optional log file.

    Safe to call again after settings change; previous handlers are replaced.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if log_file_path else level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    root.addHandler(
        RichHandler(
            level=level,
            console=console,
            rich_tracebacks=True,
            show_time=True,
            show_path=verbose,
        )
    )

    if not log_file_path:
        return
    try:
        path = Path(log_file_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    except OSError as exc:
        root.error("Could not open log file %s: %s", log_file_path, exc)
        return
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s:%(lineno)d %(message)s")
    )
    root.addHandler(file_handler)
    root.debug("Logging to file: %s", path)

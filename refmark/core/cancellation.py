"""Cooperative cancellation shared between the Qt thread and resolver workers."""

from __future__ import annotations

import threading


class OperationCanceledError(RuntimeError):
    """Raised inside a worker once its request has been superseded or torn down."""


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def raise_if_cancellation_requested(self) -> None:
        if self._event.is_set():
            raise OperationCanceledError("Operation was canceled.")

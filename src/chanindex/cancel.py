"""Cooperative cancellation for long-running passes and external tools."""

from __future__ import annotations

import threading


class OperationCancelled(Exception):
    """Raised inside a pass when its cancellation token fires."""


class CancellationToken:
    """Thread-safe cancellation flag passed explicitly into every long-running call.

    Passes check it at directory and chunk boundaries; the subprocess runner
    polls it while an external tool is running and kills the tool when set.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled()


# Shared "never cancelled" token for callers that do not need cancellation.
NEVER = CancellationToken()

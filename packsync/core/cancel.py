"""
Cooperative cancellation for long-running sync operations.
"""

import threading

from .errors import SyncCancelled


class CancelToken:
    """
    Shared cancellation signal for one sync run.

    The UI (or a signal handler) calls cancel(); the engine only reads it,
    before starting an entry and between chunks of a transfer.
    """

    def __init__(self):
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self):
        """Signal cancellation."""
        self._event.set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise SyncCancelled()

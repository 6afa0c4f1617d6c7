"""
Progress reporting for hashing and downloading.

Engine code only talks to the ProgressSink interface. The aggregator
merges events from many worker threads and coroutines into one snapshot
that a UI or log can read.
"""

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class ProgressSnapshot:
    """Consistent view of a progress phase."""
    done: int = 0
    total: int = 0
    message: str = ""
    finished: bool = False

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 0.0
        return min(1.0, self.done / self.total)


class ProgressSink:
    """Interface every progress consumer implements."""

    def set_length(self, total: int):
        raise NotImplementedError

    def increment(self, n: int = 1):
        raise NotImplementedError

    def set_message(self, message: str):
        raise NotImplementedError

    def reset(self):
        raise NotImplementedError

    def finish(self):
        raise NotImplementedError


class NullProgress(ProgressSink):
    """Discards every event."""

    def set_length(self, total: int):
        pass

    def increment(self, n: int = 1):
        pass

    def set_message(self, message: str):
        pass

    def reset(self):
        pass

    def finish(self):
        pass


class ProgressAggregator(ProgressSink):
    """
    Thread-safe progress state shared by concurrent producers.

    All mutation goes through the methods below under one lock, so
    increments are never lost and snapshot() never sees a done value
    from one update paired with a total from another.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self._done = 0
        self._total = 0
        self._message = ""
        self._finished = False

    def set_length(self, total: int):
        with self.lock:
            # Total never shrinks inside a phase
            self._total = max(self._total, total)
        self._changed()

    def increment(self, n: int = 1):
        with self.lock:
            self._done += n
        self._changed()

    def set_message(self, message: str):
        with self.lock:
            self._message = message
        self._changed()

    def reset(self):
        """Start a new phase."""
        with self.lock:
            self._done = 0
            self._total = 0
            self._finished = False
        self._changed()

    def finish(self):
        with self.lock:
            self._finished = True
        self._changed()

    def snapshot(self) -> ProgressSnapshot:
        with self.lock:
            return ProgressSnapshot(self._done, self._total, self._message, self._finished)

    def _changed(self):
        """Hook for subclasses that render on every update."""

"""
Error taxonomy for the sync engine.

Every failure the engine reports derives from SyncError so callers can
catch one type and map it to a SyncStatus.
"""

from pathlib import Path
from typing import Optional


class SyncError(Exception):
    """Base class for sync failures."""


class TransientNetworkError(SyncError):
    """Connection reset, timeout or non-success HTTP status for one entry."""

    def __init__(self, message: str, url: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status = status

    @property
    def retryable(self) -> bool:
        if self.status is None:
            return True
        return self.status in (408, 425, 429) or 500 <= self.status < 600


class OfflineError(SyncError):
    """The content server could not be reached at all."""


class IntegrityError(SyncError):
    """Downloaded content does not match its expected digest."""

    def __init__(self, path: Path, expected: str, actual: str):
        super().__init__(f"Digest mismatch for {path}: expected {expected}, got {actual}")
        self.path = path
        self.expected = expected
        self.actual = actual


class LocalIOError(SyncError):
    """Permission denied, disk full or similar local filesystem failure."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


class SyncCancelled(SyncError):
    """The run was cancelled through its CancelToken."""

    def __init__(self, message: str = "Sync cancelled"):
        super().__init__(message)


class ManifestError(SyncError, ValueError):
    """The manifest is malformed or names an unsafe path."""

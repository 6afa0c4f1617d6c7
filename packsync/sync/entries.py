"""
Entry types passed between the verifier, the planner and the downloader.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from ..core.errors import ManifestError


@dataclass(frozen=True)
class CheckEntry:
    """One file's expected state."""
    path: Path
    url: str
    sha1: Optional[str] = None  # None: existence is enough
    size: Optional[int] = None

    def __post_init__(self):
        # Frozen dataclass, so bypass __setattr__ to normalize the path
        object.__setattr__(self, "path", Path(self.path).resolve())
        if self.sha1 is not None:
            object.__setattr__(self, "sha1", self.sha1.lower() or None)

    def to_download_entry(self) -> "DownloadEntry":
        return DownloadEntry(url=self.url, path=self.path, size=self.size or 0, sha1=self.sha1)


@dataclass(frozen=True)
class DownloadEntry:
    """A CheckEntry that failed verification and must be fetched."""
    url: str
    path: Path
    size: int = 0
    sha1: Optional[str] = None


def dedupe_check_entries(entries: Iterable[CheckEntry]) -> List[CheckEntry]:
    """
    Collapse identical entries for the same path.

    Two entries for one path that disagree on the expected digest would
    race on the same destination, so that is rejected outright.
    """
    by_path = {}
    for entry in entries:
        existing = by_path.get(entry.path)
        if existing is None:
            by_path[entry.path] = entry
        elif existing.sha1 != entry.sha1:
            raise ManifestError(
                f"Conflicting entries for {entry.path}: {existing.sha1} vs {entry.sha1}"
            )
    return list(by_path.values())

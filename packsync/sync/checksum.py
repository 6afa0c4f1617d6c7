"""
Hash verification for Pack Sync.

Decides which local files already match their expected digest. Hashing is
I/O bound, so it runs on a bounded thread pool rather than one thread per
file; thousands of small asset files would otherwise exhaust descriptors.
"""

import hashlib
import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..core.cancel import CancelToken
from ..core.constants import DIGEST_ALGORITHM, HASH_CHUNK_SIZE
from ..core.errors import SyncCancelled
from ..core.progress import NullProgress, ProgressSink
from .entries import CheckEntry, DownloadEntry, dedupe_check_entries

logger = logging.getLogger(__name__)

# Observed value for an existing file whose entry only requires existence
PRESENT = ""


def default_hash_workers() -> int:
    return min(32, (os.cpu_count() or 1) * 4)


def hash_file(path: Path, algorithm: str = DIGEST_ALGORITHM) -> str:
    """Stream a file through the digest and return its hex form."""
    digest = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


def _digest_or_none(path: Path, algorithm: str) -> Optional[str]:
    try:
        if not path.is_file():
            return None
        return hash_file(path, algorithm)
    except OSError as e:
        # Unreadable files are treated as absent so they get fetched again
        logger.warning("Could not hash %s: %s", path, e)
        return None


def _exists(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError as e:
        logger.warning("Could not stat %s: %s", path, e)
        return False


def hash_files(
    paths: Iterable[Path],
    progress: Optional[ProgressSink] = None,
    algorithm: str = DIGEST_ALGORITHM,
    max_workers: Optional[int] = None,
    cancel: Optional[CancelToken] = None,
) -> Dict[Path, Optional[str]]:
    """
    Compute digests for a set of files concurrently.

    Returns {path: hex digest}, with None for missing or unreadable files.
    Emits one progress increment per file. Raises SyncCancelled once the
    token is set; queued files are then never opened.
    """
    progress = progress or NullProgress()
    cancel = cancel or CancelToken()
    paths = list(paths)
    results: Dict[Path, Optional[str]] = {}
    if not paths:
        return results

    def digest(path: Path) -> Optional[str]:
        if cancel.cancelled:
            return None
        return _digest_or_none(path, algorithm)

    with ThreadPoolExecutor(max_workers=max_workers or default_hash_workers()) as executor:
        futures = {executor.submit(digest, p): p for p in paths}
        try:
            for future in as_completed(futures):
                cancel.raise_if_cancelled()
                results[futures[future]] = future.result()
                progress.increment(1)
            cancel.raise_if_cancelled()
        except SyncCancelled:
            for future in futures:
                future.cancel()
            logger.debug("Hashing cancelled after %d of %d files", len(results), len(paths))
            raise

    return results


def verify(
    entries: Iterable[CheckEntry],
    progress: Optional[ProgressSink] = None,
    max_workers: Optional[int] = None,
    cancel: Optional[CancelToken] = None,
) -> Dict[Path, Optional[str]]:
    """
    Observe the local state of every entry.

    Returns {path: observed}. observed is None when the file is absent or
    unreadable, PRESENT for an existing file whose entry has no digest, and
    the file's digest otherwise. Never writes or deletes anything.
    """
    progress = progress or NullProgress()
    cancel = cancel or CancelToken()
    observed: Dict[Path, Optional[str]] = {}
    to_hash: List[Path] = []

    for entry in entries:
        if entry.sha1 is None:
            cancel.raise_if_cancelled()
            observed[entry.path] = PRESENT if _exists(entry.path) else None
            progress.increment(1)
        else:
            to_hash.append(entry.path)

    observed.update(hash_files(to_hash, progress, max_workers=max_workers, cancel=cancel))
    return observed


def entry_matches(entry: CheckEntry, observed: Optional[str]) -> bool:
    """True if the observed state satisfies the entry."""
    if observed is None:
        return False
    if entry.sha1 is None:
        return True
    return observed.lower() == entry.sha1


def get_download_entries(
    check_entries: Iterable[CheckEntry],
    progress: Optional[ProgressSink] = None,
    max_workers: Optional[int] = None,
    cancel: Optional[CancelToken] = None,
) -> List[DownloadEntry]:
    """Verify check entries and return the ones that need fetching."""
    progress = progress or NullProgress()
    entries = dedupe_check_entries(check_entries)
    progress.set_length(len(entries))

    observed = verify(entries, progress, max_workers, cancel)
    download_entries = [
        entry.to_download_entry()
        for entry in entries
        if not entry_matches(entry, observed.get(entry.path))
    ]
    logger.debug("%d of %d entries need downloading", len(download_entries), len(entries))
    return download_entries

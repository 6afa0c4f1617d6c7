"""
Sync operations module.

Handles verification, orphan cleanup, downloading and the sync record.
"""

from .entries import CheckEntry, DownloadEntry, dedupe_check_entries
from .checksum import hash_file, verify, get_download_entries
from .download_planner import SyncPlan, plan_sync, merge_protected
from .purger import delete_files, prune_empty_dirs
from .concurrency import AdaptiveConcurrency
from .downloader import FileDownloader
from .state import SyncState
from .status import SyncStatus, SyncOutcome
from .content_sync import ContentSync

__all__ = [
    # Entries
    "CheckEntry",
    "DownloadEntry",
    "dedupe_check_entries",
    # Checksum
    "hash_file",
    "verify",
    "get_download_entries",
    # Planning
    "SyncPlan",
    "plan_sync",
    "merge_protected",
    # Purger
    "delete_files",
    "prune_empty_dirs",
    # Downloader
    "AdaptiveConcurrency",
    "FileDownloader",
    # Record and status
    "SyncState",
    "SyncStatus",
    "SyncOutcome",
    # Orchestration
    "ContentSync",
]

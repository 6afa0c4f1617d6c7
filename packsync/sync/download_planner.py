"""
Sync planning for Pack Sync.

Compares a content manifest against the local directories and decides
which files to keep, which to fetch and which orphans to delete.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from ..core.cancel import CancelToken
from ..core.files import get_files_in_dir
from ..core.progress import NullProgress, ProgressSink
from ..manifest.manifest import ContentManifest
from .checksum import entry_matches, verify
from .entries import CheckEntry, DownloadEntry

logger = logging.getLogger(__name__)


@dataclass
class SyncPlan:
    """Result of comparing one manifest to local disk."""
    content_set: str
    to_delete: Set[Path] = field(default_factory=set)
    to_fetch: List[DownloadEntry] = field(default_factory=list)
    kept: int = 0
    # Existing user-owned files that were left alone
    protected: Set[Path] = field(default_factory=set)
    # Every local path the manifest lists, with its digest (None = existence only)
    expected: Dict[Path, Optional[str]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.to_delete and not self.to_fetch

    @property
    def fetch_size(self) -> int:
        return sum(e.size for e in self.to_fetch)


def _collect(base: Path, rel_dirs: Iterable[str]) -> Set[Path]:
    files: Set[Path] = set()
    for rel in rel_dirs:
        files |= get_files_in_dir(base / rel)
    return files


def plan_sync(
    manifest: ContentManifest,
    content_dir: Path,
    assets_dir: Path,
    server_base: str,
    force_overwrite: bool = False,
    progress: Optional[ProgressSink] = None,
    hash_workers: Optional[int] = None,
    cancel: Optional[CancelToken] = None,
) -> SyncPlan:
    """
    Plan the sync of one content set.

    Files under manifest.include are owned by the engine: anything there that
    the manifest does not list is an orphan. Files under
    manifest.include_no_overwrite and the shared assets dir are user-owned
    and are neither deleted nor re-verified, unless force_overwrite is set,
    in which case they are managed like everything else.

    Args:
        manifest: Content manifest to apply
        content_dir: Local directory of this content set
        assets_dir: Shared assets directory
        server_base: Content server base URL for fetch URLs
        force_overwrite: Treat protected files as managed
        progress: Receives one increment per verified file
        hash_workers: Hash thread pool size (None for default)
        cancel: Stops verification early with SyncCancelled

    Returns:
        SyncPlan with orphans to delete and entries to fetch
    """
    progress = progress or NullProgress()
    content_dir = content_dir.resolve()
    assets_dir = assets_dir.resolve()

    managed = _collect(content_dir, manifest.include)
    protected = _collect(content_dir, manifest.include_no_overwrite) | get_files_in_dir(assets_dir)

    if force_overwrite:
        managed |= protected
        protected = set()
    else:
        # A file both managed and protected is protected
        managed -= protected

    expected = {
        manifest.object_path(key, content_dir, assets_dir): key
        for key in manifest.objects
    }

    plan = SyncPlan(
        content_set=manifest.modpack_name,
        protected=protected,
        expected={path: manifest.objects[key].lower() or None for path, key in expected.items()},
    )
    plan.to_delete = {p for p in managed if p not in expected}

    check_entries = [
        CheckEntry(
            path=path,
            url=manifest.object_url(server_base, key),
            sha1=manifest.objects[key] or None,
        )
        for path, key in expected.items()
        if path not in protected
    ]

    progress.set_length(len(check_entries))
    observed = verify(check_entries, progress, max_workers=hash_workers, cancel=cancel)

    for entry in check_entries:
        if entry_matches(entry, observed.get(entry.path)):
            plan.kept += 1
        else:
            plan.to_fetch.append(entry.to_download_entry())

    logger.info(
        "%s: %d up to date, %d to fetch, %d to delete, %d protected",
        manifest.modpack_name, plan.kept, len(plan.to_fetch),
        len(plan.to_delete), len(plan.protected),
    )
    return plan


def merge_protected(plans: List[SyncPlan], protected_paths: Iterable[Path] = ()) -> List[SyncPlan]:
    """
    Drop from every plan's deletions any path another plan protects or lists.

    Content sets share the assets directory, so one set's orphan can be a
    file another set considers user-owned or still needs. Protection always
    wins.
    """
    shield = set(protected_paths)
    for plan in plans:
        shield |= plan.protected
        shield.update(plan.expected)
    for plan in plans:
        spared = plan.to_delete & shield
        if spared:
            logger.debug("%s: keeping %d files protected by other sets", plan.content_set, len(spared))
            plan.to_delete -= spared
    return plans

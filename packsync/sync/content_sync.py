"""
Content set sync orchestration for Pack Sync.

Coordinates planning, orphan deletion, downloading and recording for one
or more content sets, and turns engine errors into a SyncStatus.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional

from ..config import SyncConfig
from ..core.cancel import CancelToken
from ..core.errors import LocalIOError, ManifestError, OfflineError, SyncCancelled, SyncError
from ..core.paths import get_assets_dir, get_content_dir, get_index_path
from ..core.progress import NullProgress, ProgressSink
from ..manifest.manifest import ContentManifest
from .checksum import get_download_entries
from .download_planner import SyncPlan, merge_protected, plan_sync
from .downloader import FileDownloader
from .entries import CheckEntry
from .purger import delete_files
from .state import SyncState
from .status import SyncOutcome, SyncStatus

if TYPE_CHECKING:
    from ..manifest.assets import AssetIndexInfo

logger = logging.getLogger(__name__)

MSG_ASSET_INDEX = "Fetching asset index..."
MSG_CHECKING = "Checking files..."
MSG_DELETING = "Removing obsolete files..."
MSG_DOWNLOADING = "Downloading files..."


class ContentSync:
    """Syncs content sets described by manifests to local disk."""

    def __init__(
        self,
        config: SyncConfig,
        progress: Optional[ProgressSink] = None,
        state: Optional[SyncState] = None,
        downloader: Optional[FileDownloader] = None,
    ):
        self.config = config
        self.progress = progress or NullProgress()
        self.state = state or SyncState(get_index_path(config.data_path)).load()
        self.downloader = downloader or FileDownloader.from_config(config)

    def content_dir(self, manifest: ContentManifest) -> Path:
        return get_content_dir(self.config.data_path, manifest.modpack_name)

    @property
    def assets_dir(self) -> Path:
        return get_assets_dir(self.config.data_path)

    def check(self, manifest: ContentManifest) -> SyncStatus:
        """Cheap status check against the sync record; hashes nothing."""
        if self.state.is_up_to_date(manifest.modpack_name, manifest.modpack_version):
            return SyncStatus.SYNCED
        return SyncStatus.NOT_SYNCED

    def status_offline(self, name: str) -> SyncStatus:
        """
        Status to use when the server is unreachable.

        A content set that was fully synced before is good enough to launch.
        """
        if self.state.get(name) is not None:
            return SyncStatus.SYNCED
        return SyncStatus.NOT_SYNCED

    def plan(
        self,
        manifest: ContentManifest,
        force_overwrite: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> SyncPlan:
        self.progress.set_message(MSG_CHECKING)
        return plan_sync(
            manifest,
            self.content_dir(manifest),
            self.assets_dir,
            self.config.server_base,
            force_overwrite=force_overwrite,
            progress=self.progress,
            hash_workers=self.config.hash_workers or None,
            cancel=cancel,
        )

    def sync(
        self,
        manifest: ContentManifest,
        force_overwrite: bool = False,
        ignore_version: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> SyncOutcome:
        """
        Bring one content set in line with its manifest.

        Skips all work when the record says this version is already applied,
        unless ignore_version is set.
        """
        return self.sync_many([manifest], force_overwrite, ignore_version, cancel)

    def rescan(self, manifest: ContentManifest, cancel: Optional[CancelToken] = None) -> SyncOutcome:
        """Re-verify every file even if the record says the set is current."""
        return self.sync(manifest, ignore_version=True, cancel=cancel)

    def sync_many(
        self,
        manifests: Iterable[ContentManifest],
        force_overwrite: bool = False,
        ignore_version: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> SyncOutcome:
        """
        Sync several content sets in one run.

        Plans are built for every set first so a file protected by any set
        is never deleted as another set's orphan.
        """
        cancel = cancel or CancelToken()
        manifests = [
            m for m in manifests
            if ignore_version or not self.state.is_up_to_date(m.modpack_name, m.modpack_version)
        ]
        if not manifests:
            self.progress.finish()
            return SyncOutcome(SyncStatus.SYNCED, "Already up to date")

        def apply() -> SyncOutcome:
            plans: List[SyncPlan] = []
            for manifest in manifests:
                cancel.raise_if_cancelled()
                self.progress.reset()
                plans.append(self.plan(manifest, force_overwrite, cancel))
            merge_protected(plans)
            cancel.raise_if_cancelled()

            combined = _combine(plans)
            self.progress.set_message(MSG_DELETING)
            deleted = delete_files(
                combined.to_delete,
                [self.assets_dir] + [self.content_dir(m) for m in manifests],
            )

            self.progress.reset()
            self.progress.set_message(MSG_DOWNLOADING)
            self.downloader.fetch(combined.to_fetch, self.progress, cancel)

            for manifest in manifests:
                self.state.commit(manifest.modpack_name, manifest.modpack_version, manifest.to_dict())
            return SyncOutcome(SyncStatus.SYNCED, plan=combined, deleted=deleted)

        return self._guarded(apply)

    def sync_check_entries(
        self,
        entries: Iterable[CheckEntry],
        cancel: Optional[CancelToken] = None,
    ) -> SyncOutcome:
        """
        Verify a flat list of check entries and download the failures.

        Used for libraries, shared asset objects and client archives, which
        have no orphan handling and no sync record.
        """
        cancel = cancel or CancelToken()
        return self._guarded(lambda: self._check_and_fetch(entries, cancel))

    def sync_assets(
        self,
        index_info: "AssetIndexInfo",
        cancel: Optional[CancelToken] = None,
    ) -> SyncOutcome:
        """
        Fetch the shared asset objects an asset index lists.

        The index is cached under the assets dir. Objects are addressed by
        digest, so content sets sharing objects download each one once.
        """
        cancel = cancel or CancelToken()

        def fetch() -> SyncOutcome:
            self.progress.reset()
            self.progress.set_message(MSG_ASSET_INDEX)
            index = index_info.read_or_download(self.assets_dir, self.downloader, cancel)
            entries = index.get_check_entries(self.assets_dir, self.config.resources_base)
            logger.info("Asset index %s lists %d objects", index_info.id, len(entries))
            return self._check_and_fetch(entries, cancel)

        return self._guarded(fetch)

    def _check_and_fetch(self, entries: Iterable[CheckEntry], cancel: CancelToken) -> SyncOutcome:
        self.progress.reset()
        self.progress.set_message(MSG_CHECKING)
        to_fetch = get_download_entries(entries, self.progress, self.config.hash_workers or None, cancel)
        cancel.raise_if_cancelled()

        self.progress.reset()
        self.progress.set_message(MSG_DOWNLOADING)
        self.downloader.fetch(to_fetch, self.progress, cancel)
        return SyncOutcome(SyncStatus.SYNCED, plan=SyncPlan("", to_fetch=to_fetch))

    def _guarded(self, work: Callable[[], SyncOutcome]) -> SyncOutcome:
        """Run one sync step, mapping engine errors to a status."""
        try:
            return work()
        except SyncCancelled:
            logger.info("Sync cancelled")
            return SyncOutcome(SyncStatus.CANCELLED, "Cancelled")
        except OfflineError as e:
            logger.warning("Content server unreachable: %s", e)
            return SyncOutcome(SyncStatus.SYNC_ERROR_OFFLINE, str(e))
        except SyncError as e:
            logger.error("Sync failed: %s", e)
            return SyncOutcome(SyncStatus.SYNC_ERROR, str(e))
        except OSError as e:
            error = LocalIOError(f"Local I/O error: {e}", e.filename)
            logger.error("Sync failed: %s", error)
            return SyncOutcome(SyncStatus.SYNC_ERROR, str(error))
        finally:
            self.progress.finish()


def _combine(plans: List[SyncPlan]) -> SyncPlan:
    """
    Merge several plans into one.

    Sets listing the same path must agree on its digest, since only one
    download can land there.
    """
    combined = SyncPlan(content_set=", ".join(p.content_set for p in plans))
    owners = {}
    seen = set()
    for plan in plans:
        for path, sha1 in plan.expected.items():
            other = combined.expected.get(path)
            if sha1 and other and sha1 != other:
                raise ManifestError(
                    f"{owners[path]} and {plan.content_set} expect different content at {path}"
                )
            if not other:
                combined.expected[path] = sha1
                owners[path] = plan.content_set

        combined.to_delete |= plan.to_delete
        combined.kept += plan.kept
        combined.protected |= plan.protected
        for entry in plan.to_fetch:
            # Shared assets can appear in several sets
            if entry.path not in seen:
                seen.add(entry.path)
                combined.to_fetch.append(entry)
    return combined

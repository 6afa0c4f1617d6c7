"""
Shared asset index handling.

Assets are stored by digest: the object with hash "abcd..." lives at
assets/objects/ab/abcd... locally and at <resources_base>/ab/abcd...
remotely, so content sets sharing an asset never download it twice.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional

from ..config import SyncConfig
from ..core.cancel import CancelToken
from ..core.errors import IntegrityError, ManifestError
from ..sync.checksum import hash_file
from ..sync.entries import CheckEntry, dedupe_check_entries
from .manifest import ContentManifest

if TYPE_CHECKING:
    from ..sync.downloader import FileDownloader

logger = logging.getLogger(__name__)


@dataclass
class AssetIndexInfo:
    """Reference to an asset index document."""
    id: str
    url: str
    sha1: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "AssetIndexInfo":
        return cls(id=data["id"], url=data["url"], sha1=data.get("sha1", ""))

    @classmethod
    def for_content_set(
        cls, manifest: ContentManifest, config: SyncConfig
    ) -> Optional["AssetIndexInfo"]:
        """Index a content set refers to, or None if it uses no shared assets."""
        if not manifest.asset_index:
            return None
        url = config.asset_index_url.format(server_base=config.server_base, id=manifest.asset_index)
        return cls(id=manifest.asset_index, url=url)

    def local_path(self, assets_dir: Path) -> Path:
        return assets_dir / "indexes" / f"{self.id}.json"

    def read_or_download(
        self,
        assets_dir: Path,
        downloader: "FileDownloader",
        cancel: Optional[CancelToken] = None,
    ) -> "AssetIndex":
        """
        Load the index from disk, downloading it when missing or stale.

        Without a known digest a cached copy is always trusted.
        """
        path = self.local_path(assets_dir)
        if path.is_file() and (not self.sha1 or hash_file(path) == self.sha1.lower()):
            return AssetIndex.load(path)

        logger.info("Downloading asset index %s", self.id)
        data = downloader.download_to_memory(self.url, cancel=cancel)
        if self.sha1:
            actual = hashlib.sha1(data).hexdigest()
            if actual != self.sha1.lower():
                raise IntegrityError(path, self.sha1, actual)

        try:
            index = AssetIndex.from_dict(json.loads(data))
        except (ValueError, AttributeError) as e:
            raise ManifestError(f"Asset index {self.id} is not valid JSON: {e}") from e
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return index


@dataclass
class AssetIndex:
    """Mapping of asset names to their content-addressed objects."""
    objects: Dict[str, dict] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> "AssetIndex":
        with open(path) as f:
            return cls.from_dict(json.load(f))

    @classmethod
    def from_dict(cls, data: dict) -> "AssetIndex":
        return cls(objects=data.get("objects", {}))

    def get_check_entries(self, assets_dir: Path, resources_base: str) -> List[CheckEntry]:
        """One CheckEntry per distinct object, addressed by its hash."""
        objects_dir = assets_dir / "objects"
        base = resources_base.rstrip("/")
        entries = []
        for name, info in self.objects.items():
            object_hash = info.get("hash", "").lower()
            if len(object_hash) < 2:
                logger.warning("Asset %s has no usable hash, skipping", name)
                continue
            entries.append(CheckEntry(
                path=objects_dir / object_hash[:2] / object_hash,
                url=f"{base}/{object_hash[:2]}/{object_hash}",
                sha1=object_hash,
                size=info.get("size"),
            ))
        # Different names often share one object
        return dedupe_check_entries(entries)

"""
Local sync record for Pack Sync.

Remembers, per content set, the manifest that was last applied in full.
When the remote version matches, the whole verification pass can be
skipped. The record is only written after a complete sync and always via
an atomic replace, so a crash mid-sync looks like "never synced".
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from ..core.errors import LocalIOError

logger = logging.getLogger(__name__)


class SyncState:
    """
    Persisted {content set name: last applied manifest snapshot}.

    Stored as a JSON list of manifest dicts, each carrying modpack_name
    and modpack_version.
    """

    def __init__(self, path: Path):
        self.path = path
        self._snapshots: Dict[str, dict] = {}

    def load(self) -> "SyncState":
        """Read the record from disk. Missing or corrupt files read as empty."""
        self._snapshots = {}
        if not self.path.is_file():
            return self
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable sync record %s: %s", self.path, e)
            return self

        if not isinstance(data, list):
            logger.warning("Ignoring malformed sync record %s", self.path)
            return self

        for snapshot in data:
            if isinstance(snapshot, dict) and snapshot.get("modpack_name"):
                self._snapshots[snapshot["modpack_name"]] = snapshot
        return self

    def names(self) -> List[str]:
        return sorted(self._snapshots)

    def get(self, name: str) -> Optional[dict]:
        return self._snapshots.get(name)

    def get_version(self, name: str) -> Optional[str]:
        snapshot = self._snapshots.get(name)
        if snapshot is None:
            return None
        return str(snapshot.get("modpack_version", ""))

    def is_up_to_date(self, name: str, remote_version: str) -> bool:
        """True if the last full sync of name applied remote_version."""
        return self.get_version(name) == str(remote_version)

    def commit(self, name: str, version: str, snapshot: Optional[dict] = None):
        """
        Record a fully applied sync and save.

        Only call this after every entry of the plan was fetched.
        """
        data = dict(snapshot or {})
        data["modpack_name"] = name
        data["modpack_version"] = str(version)
        self._snapshots[name] = data
        self.save()
        logger.info("Recorded %s at version %s", name, version)

    def forget(self, name: str) -> bool:
        """Drop a content set so the next sync re-verifies everything."""
        if self._snapshots.pop(name, None) is None:
            return False
        self.save()
        return True

    def save(self):
        """Write the record atomically (temp file + replace)."""
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                json.dump(list(self._snapshots.values()), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise LocalIOError(f"Could not save sync record {self.path}: {e}", self.path) from e

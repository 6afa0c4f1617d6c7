"""
Configuration management for Pack Sync.

Settings live in a JSON file next to the app (packsync.json). A few values
can be overridden from the environment:
- PACKSYNC_SERVER_BASE: content server base URL
- PACKSYNC_DATA_DIR: where content sets, assets and the sync record live
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Optional

from .core.constants import DOWNLOAD_CHUNK_SIZE, RESOURCES_URL_BASE
from .core.paths import get_app_dir

logger = logging.getLogger(__name__)

ENV_SERVER_BASE = "PACKSYNC_SERVER_BASE"
ENV_DATA_DIR = "PACKSYNC_DATA_DIR"


@dataclass
class SyncConfig:
    """Runtime settings for the sync engine."""
    server_base: str = "http://localhost:8000"
    resources_base: str = RESOURCES_URL_BASE
    # Where a content set's asset index lives; {server_base} and {id} are filled in
    asset_index_url: str = "{server_base}/assets/indexes/{id}.json"
    data_dir: str = ""
    # Download worker pool (adaptive between min and max)
    min_workers: int = 1
    max_workers: int = 32
    initial_workers: int = 4
    # Hash verification thread pool (0 = pick from CPU count)
    hash_workers: int = 0
    # Per-request timeouts in seconds
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    chunk_size: int = DOWNLOAD_CHUNK_SIZE
    # Re-hash each file after download and fail on mismatch
    verify_downloads: bool = True
    path: Optional[Path] = field(default=None, repr=False, compare=False)

    @property
    def data_path(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir).expanduser()
        return get_app_dir() / "data"

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("path")
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SyncConfig":
        known = {f.name for f in fields(cls)} - {"path"}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def load(cls, path: Path) -> "SyncConfig":
        """Load settings from file, then apply environment overrides."""
        config = cls()

        if path.exists():
            try:
                with open(path) as f:
                    config = cls.from_dict(json.load(f))
            except (json.JSONDecodeError, IOError, TypeError) as e:
                logger.warning("Could not load %s: %s", path, e)

        config.path = path
        config.apply_env()
        config.validate()
        return config

    def apply_env(self):
        server_base = os.environ.get(ENV_SERVER_BASE)
        if server_base:
            self.server_base = server_base
        data_dir = os.environ.get(ENV_DATA_DIR)
        if data_dir:
            self.data_dir = data_dir

    def validate(self):
        """Clamp worker settings to a usable range."""
        self.min_workers = max(1, self.min_workers)
        self.max_workers = max(self.min_workers, self.max_workers)
        self.initial_workers = min(max(self.initial_workers, self.min_workers), self.max_workers)
        self.server_base = self.server_base.rstrip("/")
        self.resources_base = self.resources_base.rstrip("/")

    def save(self):
        """Save settings to file."""
        if self.path is None:
            raise ValueError("SyncConfig has no path to save to")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

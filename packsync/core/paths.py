"""
Filesystem locations used by Pack Sync.
"""

import sys
from pathlib import Path

from .constants import INDEX_FILENAME


def get_app_dir() -> Path:
    """Get the directory where the app is located (for user-writable files)."""
    if getattr(sys, "frozen", False):
        return Path(sys.executable).parent
    return Path(__file__).resolve().parent.parent.parent


def get_config_path() -> Path:
    """Default settings file next to the app."""
    return get_app_dir() / "packsync.json"


def get_content_dir(data_dir: Path, content_set: str) -> Path:
    """Directory holding one content set's files."""
    return data_dir / "instances" / content_set


def get_assets_dir(data_dir: Path) -> Path:
    """Shared asset pool used by every content set."""
    return data_dir / "assets"


def get_index_path(data_dir: Path) -> Path:
    """Local record of the last applied manifest per content set."""
    return data_dir / INDEX_FILENAME

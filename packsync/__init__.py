"""
Pack Sync - keep local game content in sync with a remote manifest.

This package verifies local files against content manifests, removes
orphaned files, and downloads only what changed.

Import from submodules directly:
    from packsync.config import SyncConfig
    from packsync.manifest import ContentManifest, fetch_manifests
    from packsync.sync import ContentSync, SyncStatus
    from packsync.ui import TerminalProgress
"""

__version__ = "0.3.0"

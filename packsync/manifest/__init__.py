"""
Manifest management for Pack Sync.

A manifest lists every file a content set expects along with its digest,
so the sync engine never has to scan the server.
"""

from .manifest import ContentManifest, find_manifest
from .fetch import fetch_manifests, check_network
from .assets import AssetIndex, AssetIndexInfo

__all__ = [
    "ContentManifest",
    "find_manifest",
    "fetch_manifests",
    "check_network",
    "AssetIndex",
    "AssetIndexInfo",
]

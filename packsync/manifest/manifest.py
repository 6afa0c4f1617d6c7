"""
Content manifest model for Pack Sync.

A content manifest describes one content set (a modpack): the files it
expects, keyed by relative path with their sha1, which directories the
sync engine manages, and launch metadata the engine passes through as-is.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from ..core.constants import ASSETS_PREFIX
from ..core.errors import ManifestError
from ..core.formatting import is_within


@dataclass
class ContentManifest:
    """Remote declaration of one content set."""
    modpack_name: str
    modpack_version: str = ""
    java_version: str = ""
    minecraft_version: str = ""
    asset_index: str = ""
    main_class: str = ""
    libraries: list = field(default_factory=list)
    java_args: list = field(default_factory=list)
    game_args: list = field(default_factory=list)
    # Directories (relative to the content dir) the engine owns
    include: List[str] = field(default_factory=list)
    # Directories holding user-owned files: never deleted or overwritten
    include_no_overwrite: List[str] = field(default_factory=list)
    # Relative path -> sha1 ("" means existence is enough)
    objects: Dict[str, str] = field(default_factory=dict)
    client_filename: str = ""

    def to_dict(self) -> dict:
        return {
            "modpack_name": self.modpack_name,
            "java_version": self.java_version,
            "minecraft_version": self.minecraft_version,
            "modpack_version": self.modpack_version,
            "asset_index": self.asset_index,
            "main_class": self.main_class,
            "libraries": self.libraries,
            "java_args": self.java_args,
            "game_args": self.game_args,
            "include": self.include,
            "include_no_overwrite": self.include_no_overwrite,
            "objects": self.objects,
            "client_filename": self.client_filename,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ContentManifest":
        if not data.get("modpack_name"):
            raise ManifestError("Manifest has no modpack_name")
        return cls(
            modpack_name=data["modpack_name"],
            modpack_version=str(data.get("modpack_version", "")),
            java_version=str(data.get("java_version", "")),
            minecraft_version=data.get("minecraft_version", ""),
            asset_index=data.get("asset_index", ""),
            main_class=data.get("main_class", ""),
            libraries=data.get("libraries", []),
            java_args=data.get("java_args", []),
            game_args=data.get("game_args", []),
            include=data.get("include", []),
            include_no_overwrite=data.get("include_no_overwrite", []),
            objects=data.get("objects", {}),
            client_filename=data.get("client_filename", ""),
        )

    def object_path(self, key: str, content_dir: Path, assets_dir: Path) -> Path:
        """
        Resolve a manifest key to its local destination.

        Keys under "assets/" go to the shared assets directory. Keys that
        would escape their base directory are rejected.
        """
        if key.startswith(ASSETS_PREFIX):
            base = assets_dir.resolve()
            path = (base / key[len(ASSETS_PREFIX):]).resolve()
        else:
            base = content_dir.resolve()
            path = (base / key).resolve()
        if path == base or not is_within(path, base):
            raise ManifestError(f"Unsafe manifest path: {key!r}")
        return path

    def object_url(self, server_base: str, key: str) -> str:
        return f"{server_base.rstrip('/')}/{self.modpack_name}/{key}"


def find_manifest(manifests: List[ContentManifest], name: str) -> ContentManifest:
    """Pick a content set by name."""
    for manifest in manifests:
        if manifest.modpack_name == name:
            return manifest
    raise KeyError(name)

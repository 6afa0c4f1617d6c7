"""
File system utilities for Pack Sync.
"""

import logging
import os
from pathlib import Path
from typing import Set

logger = logging.getLogger(__name__)


def get_files_in_dir(path: Path) -> Set[Path]:
    """
    Collect every regular file under path as resolved absolute paths.

    A path naming a single file yields just that file; a missing path
    yields an empty set. Symlinks are not followed.
    """
    path = path.resolve()
    if path.is_file():
        return {path}

    files: Set[Path] = set()
    if not path.is_dir():
        return files

    def scan_dir(dir_path: str):
        try:
            with os.scandir(dir_path) as entries:
                for entry in entries:
                    if entry.is_file(follow_symlinks=False):
                        files.add(Path(entry.path))
                    elif entry.is_dir(follow_symlinks=False):
                        scan_dir(entry.path)
        except OSError as e:
            logger.warning("Could not scan %s: %s", dir_path, e)

    scan_dir(str(path))
    return files

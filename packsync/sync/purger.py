"""
Orphan deletion for Pack Sync.

Handles deleting files and cleaning up empty directories.
"""

import logging
from pathlib import Path
from typing import Iterable

from ..core.errors import LocalIOError
from ..core.formatting import is_within

logger = logging.getLogger(__name__)


def delete_files(files: Iterable[Path], base_paths: Iterable[Path]) -> int:
    """
    Delete files, then remove directories left empty under base_paths.

    A file that is already gone counts as deleted. Any other failure is a
    local I/O error and stops the run.

    Returns number of files deleted.
    """
    deleted = 0
    for f in sorted(files):
        try:
            f.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise LocalIOError(f"Could not delete {f}: {e}", f) from e
        deleted += 1
        logger.debug("Deleted %s", f)

    for base in base_paths:
        prune_empty_dirs(base)

    return deleted


def prune_empty_dirs(base_path: Path):
    """Remove empty directories below base_path (base_path itself stays)."""
    if not base_path.is_dir():
        return
    base_path = base_path.resolve()
    for d in sorted(base_path.rglob("*"), reverse=True):
        if d.is_dir() and not d.is_symlink() and is_within(d, base_path) and not any(d.iterdir()):
            try:
                d.rmdir()
            except OSError:
                # Something was written into it meanwhile; keep it
                continue

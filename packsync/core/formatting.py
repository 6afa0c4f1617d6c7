"""
Formatting and path utilities for Pack Sync.
"""

from pathlib import Path


# ============================================================================
# Path utilities
# ============================================================================

def is_within(path: Path, base: Path) -> bool:
    """True if path is base itself or somewhere below it."""
    try:
        path.relative_to(base)
        return True
    except ValueError:
        return False


# ============================================================================
# Size and duration formatting
# ============================================================================

def format_size(size_bytes: float) -> str:
    """Format bytes as human readable string."""
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} PB"


def format_duration(seconds: float) -> str:
    """Format seconds as human readable duration."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{int(seconds // 60)}m {int(seconds % 60)}s"
    else:
        return f"{int(seconds // 3600)}h {int((seconds % 3600) // 60)}m"

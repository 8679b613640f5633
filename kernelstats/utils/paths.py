# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Path utilities for kernelstats.
"""

from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """
    Create a directory (and parents) if it doesn't exist. Returns the path for chaining.

    Args:
        path: Directory path to create.

    Returns:
        The same path, now guaranteed to exist.
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def is_within_directory(target: Path, root: Path) -> bool:
    """
    Check that a path doesn't escape a directory.

    Both paths are resolved to their absolute forms before comparing, so tricks
    like ../../etc/passwd get caught. Used when unpacking release archives.
    """
    resolved_target = target.resolve()
    resolved_root = root.resolve()
    try:
        resolved_target.relative_to(resolved_root)
    except ValueError:
        return False
    return True

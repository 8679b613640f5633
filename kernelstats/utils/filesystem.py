# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Crash-safe file writes.

Cache archives, the acquisition manifest and the per-release reports all go
through atomic_write_bytes: the data lands in a `.kernelstats_tmp_*` sibling
of the target, is fsync'd, and only then renamed over the target. The rename
stays on one filesystem, so readers see either the previous file or the
complete new one. A crash mid-write leaves at most a stray temp file, never
a truncated archive under its canonical name.
"""

import os
import tempfile
from pathlib import Path

TEMP_PREFIX = ".kernelstats_tmp_"


def atomic_write_bytes(target_path: Path, data: bytes) -> None:
    """
    Replace target_path with `data`, durably.

    Raises:
        OSError: Creating, writing, syncing or renaming the temp file failed.
            The temp file is removed and target_path is left untouched.
    """
    directory = target_path.parent
    directory.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=".tmp", dir=str(directory))
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, target_path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def atomic_write(target_path: Path, content: str, encoding: str = "utf-8") -> None:
    atomic_write_bytes(target_path, content.encode(encoding))


def safe_delete(file_path: Path) -> bool:
    """
    Remove a file if present. True if something was removed.

    Raises:
        OSError: The file exists but couldn't be removed.
    """
    try:
        file_path.unlink()
    except FileNotFoundError:
        return False
    return True

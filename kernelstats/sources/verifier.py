# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Archive verifier: is this byte stream a well-formed .tar.gz?

The check is structural only. We decompress the whole stream, walk every tar
entry and make sure each one has a usable path, but never look at file
contents and never write anything. That is enough to catch the failures we
actually see in a cache: truncated downloads, HTML error pages saved under an
archive name, and bit rot that breaks the gzip CRC.

A streaming tar reader quietly stops at the first header it can't parse once
it is past the first member, exactly as it does at a proper end-of-archive
marker. So the block where listing stopped is checked afterwards: it must be
all NUL, or the data must end cleanly on that block boundary.

The stream is then read to the very end, past the tar end-of-archive marker,
so the gzip trailer (CRC and length) is checked as well.
"""

import gzip
import tarfile
import zlib
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Optional

from kernelstats.sources.exceptions import ArchiveVerificationError

_DRAIN_CHUNK_SIZE = 1 << 20

# tarfile reads ahead by at most one record past the header it is parsing.
_WINDOW_SIZE = 4 * tarfile.RECORDSIZE


class _RecentBytes:
    """Read-through wrapper that remembers the last _WINDOW_SIZE bytes read."""

    def __init__(self, raw: BinaryIO) -> None:
        self._raw = raw
        self._window = bytearray()
        self._window_start = 0
        self.position = 0

    def read(self, size: int = -1) -> bytes:
        data = self._raw.read(size)
        self._window += data
        self.position += len(data)
        excess = len(self._window) - _WINDOW_SIZE
        if excess > 0:
            del self._window[:excess]
            self._window_start += excess
        return data

    def block_at(self, offset: int) -> Optional[bytes]:
        """The bytes read for the tar block at offset, or None if already dropped."""
        start = offset - self._window_start
        if start < 0:
            return None
        return bytes(self._window[start : start + tarfile.BLOCKSIZE])


def _check_end_of_archive(recent: _RecentBytes, offset: int) -> None:
    if recent.position == offset:
        return
    if recent.position < offset:
        raise ArchiveVerificationError(
            f"failed to list tar entries: unexpected end of data at byte {recent.position}, "
            f"next header expected at {offset}"
        )

    block = recent.block_at(offset)
    if block is None:
        raise ArchiveVerificationError(
            f"failed to list tar entries: lost track of the header at offset {offset}"
        )
    if len(block) < tarfile.BLOCKSIZE:
        raise ArchiveVerificationError(
            f"failed to list tar entries: truncated header at offset {offset}"
        )
    if block.count(0) != tarfile.BLOCKSIZE:
        raise ArchiveVerificationError(
            f"failed to list tar entries: invalid header at offset {offset}"
        )


def _resolve_entry_path(member: tarfile.TarInfo) -> PurePosixPath:
    name = member.name
    if not name or "\x00" in name:
        raise ArchiveVerificationError(f"bad entry: unresolvable path {name!r}")
    return PurePosixPath(name)


def verify_stream(stream: BinaryIO) -> int:
    """
    Verify a gzip-compressed tar stream.

    Args:
        stream: Binary file-like object positioned at the start of the archive.

    Returns:
        The number of entries in the archive.

    Raises:
        ArchiveVerificationError: With a human-readable reason when the stream
            fails to decompress, the tar structure can't be listed, or an
            entry's path can't be resolved.
    """
    decompressed = gzip.GzipFile(fileobj=stream, mode="rb")
    recent = _RecentBytes(decompressed)
    entries = 0

    try:
        with tarfile.open(fileobj=recent, mode="r|") as archive:
            for member in archive:
                _resolve_entry_path(member)
                entries += 1
            _check_end_of_archive(recent, archive.offset)

        while decompressed.read(_DRAIN_CHUNK_SIZE):
            pass
    except (EOFError, zlib.error, gzip.BadGzipFile) as err:
        raise ArchiveVerificationError(f"decompression failed: {err}") from err
    except tarfile.TarError as err:
        raise ArchiveVerificationError(f"failed to list tar entries: {err}") from err
    except OSError as err:
        raise ArchiveVerificationError(f"failed to read archive: {err}") from err
    finally:
        decompressed.close()

    return entries


def verify_file(path: Path) -> int:
    """
    Verify an archive on disk. See verify_stream.

    Raises:
        ArchiveVerificationError: If the file can't be opened or fails verification.
    """
    try:
        handle = open(path, "rb")
    except OSError as err:
        raise ArchiveVerificationError(f"failed to open archive: {err}") from err

    with handle:
        return verify_stream(handle)

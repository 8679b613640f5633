# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Errors raised while acquiring kernel sources.

Every error carries the path, URL or command needed to diagnose it without
re-running. The only one that is ever handled silently is an
ArchiveVerificationError on an already-cached archive: the download manager
deletes the file and fetches it again.
"""


class SourceError(Exception):
    """Base for every source acquisition failure."""


class CatalogError(SourceError):
    """The release table is missing, unparseable or structurally invalid."""


class ArchiveVerificationError(SourceError):
    """A byte stream is not a well-formed gzip-compressed tar archive."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class DownloadError(SourceError):
    """The mirror answered with a non-success status or could not be reached."""

    def __init__(self, message: str, url: str, status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class AcquisitionError(SourceError):
    """Wraps the first hard failure that aborted an acquisition batch."""

    def __init__(self, message: str, version: str) -> None:
        super().__init__(message)
        self.version = version


class VcsError(SourceError):
    """A git invocation failed. `stderr` holds git's diagnostic output verbatim."""

    def __init__(self, message: str, command: list[str], stderr: str = "") -> None:
        super().__init__(message)
        self.command = command
        self.stderr = stderr

# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Source unifier: one ordered queue of things to analyze.

A unit is either a cached archive or a git tag. Each variant carries only
what its own analysis path needs, and both expose a single canonical
version_label(), which is what the report file is named after.

Queue order: every archive unit first, in acquisition order, then every git
tag that survives the exclusion rules, in tag order. The same release can
appear once from each source; both units are queued and analyzed on their
own.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

from kernelstats.logging.logger import get_logger
from kernelstats.sources.catalog import ReleaseSpec
from kernelstats.sources.download import CachedArchive
from kernelstats.sources.git import GitRepository

logger = get_logger(__name__)

# Tags in the kernel history that point at something other than a commit.
EXCLUDED_TAGS: frozenset[str] = frozenset({"v2.6.11"})
EXCLUDED_TAG_SUFFIXES: tuple[str, ...] = ("-tree", "-dontuse")
RELEASE_CANDIDATE_SUFFIX = "-rc"

_ASCII_DIGITS = "0123456789"


@dataclass(frozen=True)
class ArchiveUnit:
    """A release to be unpacked from a cached archive."""

    label: str
    archive_path: Path
    release: ReleaseSpec

    def version_label(self) -> str:
        return self.label


@dataclass(frozen=True)
class GitTagUnit:
    """A release to be checked out from a git clone."""

    tag: str
    repo: GitRepository

    def version_label(self) -> str:
        return self.tag


AnalyzableUnit = Union[ArchiveUnit, GitTagUnit]


def is_release_candidate(tag: str) -> bool:
    """v5.4-rc3, v5.4-rc: anything ending in -rc once trailing digits are gone."""
    return tag.rstrip(_ASCII_DIGITS).endswith(RELEASE_CANDIDATE_SUFFIX)


def is_excluded_tag(tag: str) -> bool:
    """Whether a tag must be left out of the analysis queue."""
    if tag in EXCLUDED_TAGS:
        return True
    if tag.endswith(EXCLUDED_TAG_SUFFIXES):
        return True
    return is_release_candidate(tag)


def filter_tags(tags: Iterable[str]) -> list[str]:
    """Apply the exclusion rules, keeping the original order."""
    kept: list[str] = []
    for tag in tags:
        if is_excluded_tag(tag):
            if is_release_candidate(tag):
                logger.info("Skipping release candidate", extra={"tag": tag})
            else:
                logger.debug("Skipping excluded tag", extra={"tag": tag})
            continue
        kept.append(tag)
    return kept


def archive_unit(cached: CachedArchive) -> ArchiveUnit:
    return ArchiveUnit(
        label=f"v{cached.release.version}",
        archive_path=cached.local_path,
        release=cached.release,
    )


def build_queue(
    cached: Sequence[CachedArchive],
    tags: Optional[Sequence[str]] = None,
    repo: Optional[GitRepository] = None,
) -> list[AnalyzableUnit]:
    """
    Merge cached archives and git tags into one analysis queue.

    Args:
        cached: Output of the download manager, in acquisition order.
        tags: Tags listed from `repo`, or None when no clone is in play.
        repo: The clone the tags belong to.

    Raises:
        ValueError: Tags were given without the repository they came from.
    """
    if tags is not None and repo is None:
        raise ValueError("git tags given without a repository to check them out from")

    queue: list[AnalyzableUnit] = [archive_unit(entry) for entry in cached]

    if tags is not None and repo is not None:
        for tag in filter_tags(tags):
            queue.append(GitTagUnit(tag=tag, repo=repo))

    logger.info(
        "Analysis queue built",
        extra={
            "archives": len(cached),
            "tags": len(queue) - len(cached),
            "total": len(queue),
        },
    )
    return queue

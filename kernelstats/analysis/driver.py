# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Analysis driver: turns the unit queue into per-release reports.

Each unit is handled one at a time:
  - an archive unit is unpacked into work/linux-{label}/, tokei runs on the
    single top-level directory inside, and the unpacked tree is removed again;
  - a git unit forces the clone to the tag and tokei runs on the clone root.

The result lands in stats/linux-{label}.json.gz. A unit whose report already
exists (and loads) is skipped, so an interrupted run picks up where it stopped.

Archive members are untrusted: absolute paths, anything that would land
outside the work directory, and device files are skipped before extraction.
"""

import gzip
import json
import shutil
import tarfile
import zlib
from dataclasses import asdict, dataclass, field
from pathlib import Path, PurePosixPath
from typing import NamedTuple, Sequence

from kernelstats.analysis.tokei import (
    DEFAULT_TOKEI_BINARY,
    DEFAULT_TOKEI_TIMEOUT_SECONDS,
    AnalysisError,
    LanguageStats,
    run_tokei,
)
from kernelstats.logging.logger import get_logger
from kernelstats.sources.unifier import AnalyzableUnit, ArchiveUnit, GitTagUnit
from kernelstats.utils.filesystem import atomic_write_bytes
from kernelstats.utils.paths import ensure_directory, is_within_directory

logger = get_logger(__name__)


@dataclass(frozen=True)
class AnalysisSettings:
    tokei_binary: str = DEFAULT_TOKEI_BINARY
    timeout_seconds: int = DEFAULT_TOKEI_TIMEOUT_SECONDS


@dataclass
class AnalysisReport:
    """Statistics for one analyzed unit."""

    tag: str
    languages: dict[str, LanguageStats] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "tag": self.tag,
            "all": {name: asdict(stats) for name, stats in sorted(self.languages.items())},
        }


class RunSummary(NamedTuple):
    """Counts for a whole queue run."""

    total: int
    analyzed: int
    skipped: int


def report_path(stats_dir: Path, unit: AnalyzableUnit) -> Path:
    return stats_dir / f"linux-{unit.version_label()}.json.gz"


def _is_safe_member(member: tarfile.TarInfo, target: Path) -> bool:
    if member.name.startswith("/") or ".." in PurePosixPath(member.name).parts:
        return False
    if member.ischr() or member.isblk() or member.isfifo():
        return False
    if not is_within_directory(target / member.name, target):
        return False
    if member.issym():
        link_target = target / PurePosixPath(member.name).parent / member.linkname
        return is_within_directory(link_target, target)
    if member.islnk():
        return is_within_directory(target / member.linkname, target)
    return True


def unpack_archive(archive_path: Path, target: Path) -> Path:
    """
    Unpack a release archive and return its top-level source directory.

    Raises:
        AnalysisError: The archive can't be read or holds no directory.
    """
    if target.exists():
        logger.warning("Removing stale work directory", extra={"path": str(target)})
        shutil.rmtree(target)
    ensure_directory(target)

    try:
        with tarfile.open(archive_path, "r:gz") as archive:
            members = []
            for member in archive.getmembers():
                if _is_safe_member(member, target):
                    members.append(member)
                else:
                    logger.warning(
                        "Skipping unsafe archive member",
                        extra={"archive": str(archive_path), "member": member.name},
                    )
            archive.extractall(path=target, members=members, filter="data")
    except (tarfile.TarError, EOFError, OSError) as err:
        raise AnalysisError(f"failed to unpack archive: {archive_path}: {err}") from err

    subdirectories = sorted(entry for entry in target.iterdir() if entry.is_dir())
    if not subdirectories:
        raise AnalysisError(f"no sub-directory in: {target}")
    return subdirectories[0]


def analyze_unit(
    unit: AnalyzableUnit,
    work_dir: Path,
    settings: AnalysisSettings = AnalysisSettings(),
) -> AnalysisReport:
    """
    Produce statistics for a single unit.

    Raises:
        AnalysisError: Unpacking or tokei failed.
        VcsError: The git checkout failed.
    """
    if not isinstance(unit, (ArchiveUnit, GitTagUnit)):
        raise TypeError(f"unknown analysis unit: {unit!r}")

    label = unit.version_label()
    if isinstance(unit, ArchiveUnit):
        target = work_dir / f"linux-{label}"
        try:
            source_dir = unpack_archive(unit.archive_path, target)
            languages = run_tokei(source_dir, settings.tokei_binary, settings.timeout_seconds)
        finally:
            if target.exists():
                shutil.rmtree(target, ignore_errors=True)
        return AnalysisReport(tag=label, languages=languages)

    logger.info("Building statistics for tag", extra={"tag": unit.tag})
    unit.repo.checkout_hard(unit.tag)
    languages = run_tokei(unit.repo.path, settings.tokei_binary, settings.timeout_seconds)
    return AnalysisReport(tag=label, languages=languages)


def write_report(report: AnalysisReport, path: Path) -> Path:
    """Write a report as gzip-compressed JSON, atomically."""
    payload = json.dumps(report.to_dict(), sort_keys=True) + "\n"
    try:
        atomic_write_bytes(path, gzip.compress(payload.encode("utf-8")))
    except OSError as err:
        raise OSError(f"failed to create output file: {path}: {err}") from err
    return path


def read_report(path: Path) -> dict[str, object]:
    """Load a report written by write_report."""
    with gzip.open(path, "rt", encoding="utf-8") as handle:
        return json.load(handle)


def _has_report(output: Path) -> bool:
    if not output.is_file():
        return False
    try:
        read_report(output)
    except (OSError, EOFError, ValueError, zlib.error) as err:
        logger.warning(
            "Unreadable report, regenerating", extra={"path": str(output), "error": str(err)}
        )
        return False
    return True


def run_queue(
    queue: Sequence[AnalyzableUnit],
    work_dir: Path,
    stats_dir: Path,
    settings: AnalysisSettings = AnalysisSettings(),
) -> RunSummary:
    """
    Analyze every unit in order, skipping those that already have a readable
    report. A report that fails to load is written again.

    Stops at the first failure; reports written so far stay valid.
    """
    ensure_directory(work_dir)
    ensure_directory(stats_dir)

    analyzed = 0
    skipped = 0
    for unit in queue:
        output = report_path(stats_dir, unit)
        if _has_report(output):
            logger.debug("Report exists, skipping", extra={"unit": unit.version_label()})
            skipped += 1
            continue

        logger.info("Processing", extra={"unit": unit.version_label(), "output": str(output)})
        report = analyze_unit(unit, work_dir, settings)
        write_report(report, output)
        analyzed += 1

    summary = RunSummary(total=len(queue), analyzed=analyzed, skipped=skipped)
    logger.info(
        "Analysis run complete",
        extra={"total": summary.total, "analyzed": summary.analyzed, "skipped": summary.skipped},
    )
    return summary

# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the kernelstats CLI.

Each function here corresponds to one CLI subcommand and returns an exit
code. Settings come from the optional YAML config first; command-line flags
override them.

No print() calls. Everything goes through the structured logger.
"""

import argparse
import logging
from pathlib import Path
from typing import NamedTuple, Optional

from kernelstats.analysis.driver import AnalysisSettings, run_queue
from kernelstats.analysis.tokei import AnalysisError
from kernelstats.cli.exit_codes import (
    CONFIG_ERROR,
    RUNTIME_ERROR,
    SUCCESS,
    USER_ERROR,
    VALIDATION_ERROR,
)
from kernelstats.config.exceptions import ConfigError
from kernelstats.config.loader import load_config
from kernelstats.config.schema import (
    AcquisitionConfig,
    AnalysisConfig,
    GlobalConfig,
    KernelStatsConfig,
)
from kernelstats.logging.logger import get_logger, set_package_log_level
from kernelstats.runtime.bootstrap import RuntimeDirectories, bootstrap, resolve_directories
from kernelstats.sources.catalog import (
    ReleaseSpec,
    derived_url,
    list_releases,
    select_releases,
)
from kernelstats.sources.download import acquire
from kernelstats.sources.exceptions import (
    ArchiveVerificationError,
    CatalogError,
    SourceError,
)
from kernelstats.sources.git import DEFAULT_GIT_TIMEOUT_SECONDS, GitRepository
from kernelstats.sources.unifier import AnalyzableUnit, build_queue


class RunSettings(NamedTuple):
    """Effective settings for one command after merging config and flags."""

    global_config: GlobalConfig
    acquisition: AcquisitionConfig
    analysis: AnalysisConfig
    directories: RuntimeDirectories
    kernel_git: Optional[Path]
    git_timeout_seconds: int


def _load_config(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, Optional[KernelStatsConfig], logging.Logger]:
    """
    The shared setup every command needs: load config, settle the log level.

    Returns (exit_code, config, logger). If exit_code is not SUCCESS, the
    caller should return it immediately.
    """
    logger = get_logger(f"kernelstats.cli.{command_name}", log_level=args.log_level or "INFO")

    config = None
    if args.config is not None:
        try:
            config = load_config(Path(args.config))
        except ConfigError as err:
            logger.error(
                "Configuration error",
                extra={"command": command_name, "error": str(err)},
            )
            return CONFIG_ERROR, None, logger

    log_level = args.log_level
    if log_level is None:
        log_level = config.global_config.log_level if config is not None else "INFO"
    try:
        set_package_log_level(log_level)
    except ValueError as err:
        logger.error("Configuration error", extra={"command": command_name, "error": str(err)})
        return CONFIG_ERROR, None, logger

    if config is None:
        logger.debug("No config provided, running with defaults", extra={"command": command_name})

    return SUCCESS, config, logger


def _merge_settings(args: argparse.Namespace, config: Optional[KernelStatsConfig]) -> RunSettings:
    """
    Combine config sections with command-line overrides.

    Raises:
        pydantic.ValidationError: An override is out of range (e.g. -p 0).
    """
    if config is not None:
        global_config = config.global_config
        acquisition = config.acquisition or AcquisitionConfig()
        analysis = config.analysis or AnalysisConfig()
        kernel_git = None
        git_timeout = DEFAULT_GIT_TIMEOUT_SECONDS
        if config.git is not None:
            kernel_git = config.git.repository
            git_timeout = config.git.timeout_seconds
    else:
        global_config = GlobalConfig(config_version="1.0.0")
        acquisition = AcquisitionConfig()
        analysis = AnalysisConfig()
        kernel_git = None
        git_timeout = DEFAULT_GIT_TIMEOUT_SECONDS

    if args.log_level is not None:
        global_config = global_config.model_copy(update={"log_level": args.log_level})

    overrides: dict[str, object] = {}
    for key in ("all_releases", "mirror_url", "verify", "parallelism"):
        value = getattr(args, key, None)
        if value is not None:
            overrides[key] = value
    if overrides:
        acquisition = AcquisitionConfig.model_validate(
            {**acquisition.model_dump(), **overrides}
        )

    if getattr(args, "kernel_git", None) is not None:
        kernel_git = args.kernel_git

    directories = resolve_directories(
        global_config,
        Path.cwd(),
        cache=getattr(args, "cache", None),
        work=getattr(args, "work", None),
        stats=getattr(args, "stats", None),
    )

    return RunSettings(
        global_config=global_config,
        acquisition=acquisition,
        analysis=analysis,
        directories=directories,
        kernel_git=Path(kernel_git) if kernel_git is not None else None,
        git_timeout_seconds=git_timeout,
    )


def _select_targets(settings: RunSettings) -> list[ReleaseSpec]:
    catalog_file = settings.acquisition.catalog_file
    releases = list_releases(Path(catalog_file) if catalog_file is not None else None)
    return select_releases(releases, settings.acquisition.all_releases)


def _prepare(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, Optional[RunSettings], list[ReleaseSpec], logging.Logger]:
    exit_code, config, logger = _load_config(args, command_name)
    if exit_code != SUCCESS:
        return exit_code, None, [], logger

    try:
        settings = _merge_settings(args, config)
    except ValueError as err:
        logger.error("Invalid option", extra={"command": command_name, "error": str(err)})
        return USER_ERROR, None, [], logger

    try:
        targets = _select_targets(settings)
    except CatalogError as err:
        logger.error("Catalog error", extra={"command": command_name, "error": str(err)})
        return CONFIG_ERROR, None, [], logger

    return SUCCESS, settings, targets, logger


def _acquire_queue(settings: RunSettings, targets: list[ReleaseSpec]) -> list[AnalyzableUnit]:
    """Download phase, then the single-threaded tag phase, then merge."""
    acquisition = settings.acquisition
    cached = acquire(
        targets,
        settings.directories.cache,
        verify=acquisition.verify,
        parallelism=acquisition.parallelism,
        mirror_url=acquisition.mirror_url,
        timeout_seconds=acquisition.timeout_seconds,
    )

    repo = None
    tags = None
    if settings.kernel_git is not None:
        repo = GitRepository(settings.kernel_git, timeout_seconds=settings.git_timeout_seconds)
        tags = repo.tags()

    return build_queue(cached, tags=tags, repo=repo)


def _failure_exit_code(err: Exception) -> int:
    if isinstance(err, ArchiveVerificationError) or isinstance(
        err.__cause__, ArchiveVerificationError
    ):
        return VALIDATION_ERROR
    return RUNTIME_ERROR


def handle_catalog(args: argparse.Namespace) -> int:
    """Log every selected release together with its download URL."""
    exit_code, settings, targets, logger = _prepare(args, "catalog")
    if exit_code != SUCCESS or settings is None:
        return exit_code

    for release in targets:
        logger.info(
            "Release",
            extra={
                "version": release.version,
                "important": release.important,
                "url": derived_url(release, settings.acquisition.mirror_url),
            },
        )
    logger.info(
        "Catalog listed",
        extra={"releases": len(targets), "all": settings.acquisition.all_releases},
    )
    return SUCCESS


def handle_fetch(args: argparse.Namespace) -> int:
    """Acquire every target archive and log the resulting queue without analyzing it."""
    exit_code, settings, targets, logger = _prepare(args, "fetch")
    if exit_code != SUCCESS or settings is None:
        return exit_code

    if args.dry_run:
        logger.info(
            "Dry run: would acquire releases",
            extra={"releases": [release.version for release in targets]},
        )
        return SUCCESS

    try:
        bootstrap(settings.global_config, settings.directories)
        queue = _acquire_queue(settings, targets)
    except (SourceError, OSError) as err:
        logger.error("Fetch failed", extra={"error": str(err)}, exc_info=True)
        return _failure_exit_code(err)

    for unit in queue:
        logger.info("Verified", extra={"unit": unit.version_label()})
    logger.info("Fetch finished", extra={"queued": len(queue)})
    return SUCCESS


def handle_analyze(args: argparse.Namespace) -> int:
    """Acquire sources, build the queue and write one report per unit."""
    exit_code, settings, targets, logger = _prepare(args, "analyze")
    if exit_code != SUCCESS or settings is None:
        return exit_code

    if args.dry_run:
        logger.info(
            "Dry run: would acquire and analyze releases",
            extra={"releases": [release.version for release in targets]},
        )
        return SUCCESS

    try:
        bootstrap(settings.global_config, settings.directories)
        queue = _acquire_queue(settings, targets)
        summary = run_queue(
            queue,
            settings.directories.work,
            settings.directories.stats,
            AnalysisSettings(
                tokei_binary=settings.analysis.tokei_binary,
                timeout_seconds=settings.analysis.timeout_seconds,
            ),
        )
    except (SourceError, AnalysisError, OSError) as err:
        logger.error("Analyze failed", extra={"error": str(err)}, exc_info=True)
        return _failure_exit_code(err)

    logger.info(
        "Analyze finished",
        extra={"total": summary.total, "analyzed": summary.analyzed, "skipped": summary.skipped},
    )
    return SUCCESS

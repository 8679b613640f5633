# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Runtime bootstrap for kernelstats.

This module handles the one-time setup that happens before any real work
begins. The bootstrap sequence is:
  1. Validate the environment (Python version)
  2. Initialize the logger; a configured log_file is attached to every
     kernelstats logger, not just this one
  3. Ensure the cache, work and stats directories exist

Every command that touches the filesystem goes through this first.
"""

from pathlib import Path
from typing import NamedTuple, Optional

from kernelstats.config.schema import GlobalConfig
from kernelstats.logging.logger import attach_package_log_file, get_logger
from kernelstats.runtime.environment import check_minimum_python, get_system_info
from kernelstats.utils.paths import ensure_directory


class RuntimeDirectories(NamedTuple):
    """Resolved locations of the three working directories."""

    cache: Path
    work: Path
    stats: Path


def resolve_directories(
    config: GlobalConfig,
    base_dir: Path,
    cache: Optional[str] = None,
    work: Optional[str] = None,
    stats: Optional[str] = None,
) -> RuntimeDirectories:
    """
    Turn the configured directory names into paths under base_dir.

    Explicit arguments (from the command line) win over the config. Absolute
    paths are kept as they are.
    """
    dirs = config.directories
    return RuntimeDirectories(
        cache=base_dir / (cache or dirs.cache),
        work=base_dir / (work or dirs.work),
        stats=base_dir / (stats or dirs.stats),
    )


def bootstrap(config: GlobalConfig, directories: RuntimeDirectories) -> None:
    """
    Run the full bootstrap sequence.

    Args:
        config: The validated global configuration.
        directories: Where the cache, work and stats directories must exist.

    Raises:
        RuntimeError: If the Python version is too old.
        OSError: If the log file or one of the directories cannot be created.
    """
    check_minimum_python()

    logger = get_logger("kernelstats.runtime", log_level=config.log_level)
    if config.log_file is not None:
        attach_package_log_file(Path(config.log_file))

    system_info = get_system_info()
    logger.info(
        "kernelstats bootstrap complete",
        extra={
            "project": config.project_name,
            "python_version": system_info.python_version,
            "platform": system_info.platform,
            "architecture": system_info.architecture,
            "git_available": system_info.git_available,
            "tokei_available": system_info.tokei_available,
        },
    )

    for path in (directories.cache, directories.work, directories.stats):
        try:
            ensure_directory(path)
        except OSError as err:
            raise OSError(f"failed to create directory: {path}: {err}") from err

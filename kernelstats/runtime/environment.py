# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Host checks run before any archive is downloaded.

Only the interpreter version is a hard requirement. Whether git and tokei are
on PATH is recorded for the bootstrap log line; the commands that need them
report a missing binary themselves.
"""

import platform
import shutil
import sys
from typing import NamedTuple

MINIMUM_PYTHON = (3, 11)


class SystemInfo(NamedTuple):
    """What the bootstrap logs about the host."""

    python_version: str
    platform: str
    architecture: str
    hostname: str
    git_available: bool
    tokei_available: bool


def get_python_version() -> tuple[int, int, int]:
    return sys.version_info[:3]


def check_minimum_python() -> None:
    """
    Raises:
        RuntimeError: The interpreter is older than MINIMUM_PYTHON.
    """
    current = get_python_version()
    if current[:2] < MINIMUM_PYTHON:
        required = ".".join(str(part) for part in MINIMUM_PYTHON)
        raise RuntimeError(
            f"kernelstats requires Python >= {required}, "
            f"but this is {current[0]}.{current[1]}"
        )


def get_system_info() -> SystemInfo:
    return SystemInfo(
        python_version=platform.python_version(),
        platform=platform.system(),
        architecture=platform.machine(),
        hostname=platform.node(),
        git_available=shutil.which("git") is not None,
        tokei_available=shutil.which("tokei") is not None,
    )

# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for kernelstats tests.

Fixtures here are available to every test file automatically. Archives are
built in memory with tarfile so no test ever touches the network.
"""

import io
import logging
import tarfile
import textwrap
from pathlib import Path
from typing import Callable

import pytest

from kernelstats.logging.logger import close_package_log_files
from kernelstats.sources.catalog import ReleaseSpec


def build_tar_gz(files: dict[str, bytes], top_level: str = "linux") -> bytes:
    """Build a gzip-compressed tar holding `files` under a single top-level directory."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        directory = tarfile.TarInfo(top_level)
        directory.type = tarfile.DIRTYPE
        directory.mode = 0o755
        archive.addfile(directory)
        for name, content in sorted(files.items()):
            info = tarfile.TarInfo(f"{top_level}/{name}")
            info.size = len(content)
            info.mode = 0o644
            archive.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


@pytest.fixture()
def tar_gz_factory() -> Callable[..., bytes]:
    """Returns build_tar_gz so tests can make archives with custom content."""
    return build_tar_gz


@pytest.fixture()
def kernel_archive() -> bytes:
    """A small, valid release archive."""
    return build_tar_gz(
        {
            "Makefile": b"VERSION = 1\nPATCHLEVEL = 0\n",
            "init/main.c": b"int main(void)\n{\n\treturn 0;\n}\n",
            "README": b"Linux kernel release 1.0\n",
        },
        top_level="linux",
    )


@pytest.fixture()
def releases() -> list[ReleaseSpec]:
    return [
        ReleaseSpec(version="1.0", important=True),
        ReleaseSpec(version="1.1.0", important=False),
        ReleaseSpec(version="2.6.11", important=True),
    ]


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """
    Create a minimal valid config YAML file in a temp directory.

    This is the smallest config that passes schema validation.
    """
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          project_name: "kernelstats-test"
          log_level: "DEBUG"
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """Valid YAML that fails schema validation (missing config_version)."""
    config_content = textwrap.dedent("""\
        global:
          project_name: "kernelstats-test"
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file


@pytest.fixture(autouse=True)
def _quiet_kernelstats_loggers() -> None:
    """
    Reset kernelstats logger levels after every test.

    The CLI raises or lowers the level of every package logger; without this
    one test's --log-level would leak into the next. Shared log files are
    detached too.
    """
    yield  # type: ignore[misc]
    close_package_log_files()
    for name in list(logging.Logger.manager.loggerDict):
        if name.startswith("kernelstats"):
            logger = logging.getLogger(name)
            logger.setLevel(logging.INFO)
            for handler in logger.handlers:
                handler.setLevel(logging.INFO)

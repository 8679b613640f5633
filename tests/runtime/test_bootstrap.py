# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the runtime bootstrap and environment checks.
"""

import json
from pathlib import Path
from unittest import mock

import pytest

from kernelstats.config.schema import DirectoryConfig, GlobalConfig
from kernelstats.logging.logger import get_logger
from kernelstats.runtime.bootstrap import RuntimeDirectories, bootstrap, resolve_directories
from kernelstats.runtime.environment import check_minimum_python, get_system_info


class TestResolveDirectories:
    def test_defaults_under_base(self, tmp_path: Path) -> None:
        dirs = resolve_directories(GlobalConfig(config_version="1.0.0"), tmp_path)
        assert dirs == RuntimeDirectories(
            cache=tmp_path / "cache", work=tmp_path / "work", stats=tmp_path / "stats"
        )

    def test_config_directories_are_used(self, tmp_path: Path) -> None:
        config = GlobalConfig(
            config_version="1.0.0",
            directories=DirectoryConfig(cache="archives", stats="out"),
        )
        dirs = resolve_directories(config, tmp_path)
        assert dirs.cache == tmp_path / "archives"
        assert dirs.stats == tmp_path / "out"

    def test_explicit_arguments_win(self, tmp_path: Path) -> None:
        config = GlobalConfig(
            config_version="1.0.0", directories=DirectoryConfig(cache="archives")
        )
        dirs = resolve_directories(config, tmp_path, cache="elsewhere")
        assert dirs.cache == tmp_path / "elsewhere"

    def test_absolute_paths_are_kept(self, tmp_path: Path) -> None:
        absolute = tmp_path / "abs" / "cache"
        dirs = resolve_directories(
            GlobalConfig(config_version="1.0.0"), Path("/unused"), cache=str(absolute)
        )
        assert dirs.cache == absolute


class TestBootstrap:
    def test_creates_directories(self, tmp_path: Path) -> None:
        dirs = resolve_directories(GlobalConfig(config_version="1.0.0"), tmp_path)
        bootstrap(GlobalConfig(config_version="1.0.0"), dirs)
        assert dirs.cache.is_dir()
        assert dirs.work.is_dir()
        assert dirs.stats.is_dir()

    def test_directory_failure_names_the_path(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        dirs = RuntimeDirectories(
            cache=blocker / "cache", work=tmp_path / "work", stats=tmp_path / "stats"
        )
        with pytest.raises(OSError, match="failed to create directory"):
            bootstrap(GlobalConfig(config_version="1.0.0"), dirs)

    def test_log_file_collects_package_events(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "kernelstats.log"
        config = GlobalConfig(config_version="1.0.0", log_file=str(log_file))
        bootstrap(config, resolve_directories(config, tmp_path))
        get_logger("kernelstats.sources.download").info("Downloading archive")

        lines = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        modules = {line["module"] for line in lines}
        assert {"kernelstats.runtime", "kernelstats.sources.download"} <= modules

    def test_old_python_is_rejected(self, tmp_path: Path) -> None:
        dirs = resolve_directories(GlobalConfig(config_version="1.0.0"), tmp_path)
        with mock.patch(
            "kernelstats.runtime.environment.get_python_version", return_value=(3, 8, 10)
        ):
            with pytest.raises(RuntimeError, match="requires Python"):
                bootstrap(GlobalConfig(config_version="1.0.0"), dirs)
        assert not dirs.cache.exists()


class TestEnvironment:
    def test_current_python_passes(self) -> None:
        check_minimum_python()

    def test_system_info(self) -> None:
        info = get_system_info()
        assert info.python_version.startswith("3.")
        assert isinstance(info.git_available, bool)

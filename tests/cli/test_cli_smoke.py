# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI smoke tests.

These verify that:
  - commands execute
  - exit codes are correct
  - help text exists

We use subprocess to test the actual CLI entrypoint the way a user would.
This catches issues that unit tests miss, like broken imports or entrypoint
registration. Nothing here reaches the network: only help, catalog listing
and dry runs are exercised.
"""

import subprocess
import sys

import pytest


def _run_cli(*args: str) -> subprocess.CompletedProcess[str]:
    """Run `kernelstats` with the given arguments and capture output."""
    return subprocess.run(
        [sys.executable, "-m", "kernelstats.cli.main", *args],
        capture_output=True,
        text=True,
        timeout=30,
    )


class TestHelpTexts:
    """Every subcommand must have working --help output."""

    @pytest.mark.parametrize("subcommand", ["catalog", "fetch", "analyze"])
    def test_subcommand_help_exits_zero(self, subcommand: str) -> None:
        result = _run_cli(subcommand, "--help")
        assert result.returncode == 0
        assert "usage" in result.stdout.lower()

    def test_fetch_help_lists_acquisition_flags(self) -> None:
        result = _run_cli("fetch", "--help")
        for flag in ("--verify", "--all", "--cache", "--work", "--stats", "--parallelism", "--kernel-git"):
            assert flag in result.stdout

    def test_root_help_exits_with_user_error(self) -> None:
        """Running kernelstats with no args should show help and exit with USER_ERROR (1)."""
        result = _run_cli()
        assert result.returncode == 1


class TestSubcommandExecution:
    def test_catalog_runs_without_config(self) -> None:
        result = _run_cli("catalog")
        assert result.returncode == 0
        assert "mirrors.kernel.org" in result.stdout

    def test_catalog_all_runs(self) -> None:
        result = _run_cli("catalog", "--all", "--log-level", "WARNING")
        assert result.returncode == 0

    def test_fetch_dry_run(self) -> None:
        result = _run_cli("fetch", "--dry-run")
        assert result.returncode == 0
        assert "Dry run" in result.stdout


class TestConfigLoading:
    """Subcommands should handle config loading failures gracefully."""

    def test_nonexistent_config_returns_config_error(self) -> None:
        result = _run_cli("catalog", "--config", "/nonexistent/path.yaml")
        assert result.returncode == 2  # CONFIG_ERROR

    def test_valid_config_is_accepted(self, tmp_config_file) -> None:  # type: ignore[no-untyped-def]
        result = _run_cli("catalog", "--config", str(tmp_config_file))
        assert result.returncode == 0


class TestGlobalOptions:
    def test_invalid_log_level_is_rejected(self) -> None:
        result = _run_cli("catalog", "--log-level", "LOUD")
        assert result.returncode == 2  # argparse usage error

    def test_non_integer_parallelism_is_rejected(self) -> None:
        result = _run_cli("fetch", "-p", "many", "--dry-run")
        assert result.returncode == 2

# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the git tag source.

These build a throwaway repository with the real git CLI and are skipped
when git isn't installed. Tag creation dates are pinned through
GIT_COMMITTER_DATE so the taggerdate ordering is deterministic.
"""

import os
import shutil
import subprocess
from pathlib import Path
from unittest import mock

import pytest

from kernelstats.sources.exceptions import SourceError, VcsError
from kernelstats.sources.git import GitRepository

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

_IDENTITY = ["-c", "user.name=Kernel Stats", "-c", "user.email=stats@example.org"]


def _git(repo: Path, *args: str, date: str = "2005-04-16T15:20:36") -> None:
    env = {
        **os.environ,
        "GIT_AUTHOR_DATE": date,
        "GIT_COMMITTER_DATE": date,
    }
    subprocess.run(
        ["git", *_IDENTITY, *args],
        cwd=str(repo),
        env=env,
        check=True,
        capture_output=True,
    )


def _commit_and_tag(repo: Path, tag: str, content: str, date: str) -> None:
    (repo / "Makefile").write_text(content, encoding="utf-8")
    _git(repo, "add", "Makefile", date=date)
    _git(repo, "commit", "--quiet", "-m", f"Linux {tag}", date=date)
    _git(repo, "tag", "-a", tag, "-m", f"Linux {tag}", date=date)


@pytest.fixture()
def kernel_repo(tmp_path: Path) -> Path:
    """
    A repo with three annotated tags. Names sort differently from dates on
    purpose: v2.6.9 is the newest tag.
    """
    repo = tmp_path / "linux"
    repo.mkdir()
    _git(repo, "init", "--quiet")
    _commit_and_tag(repo, "v2.6.12", "VERSION = 2.6.12\n", "2005-06-17T12:00:00")
    _commit_and_tag(repo, "v2.6.13", "VERSION = 2.6.13\n", "2005-08-28T12:00:00")
    _commit_and_tag(repo, "v2.6.9", "VERSION = 2.6.9-late\n", "2005-10-27T12:00:00")
    return repo


class TestGitRepositoryConstruction:
    def test_missing_directory_raises(self, tmp_path: Path) -> None:
        with pytest.raises(VcsError, match="missing kernel git directory"):
            GitRepository(tmp_path / "nope")

    def test_equality_by_path(self, tmp_path: Path) -> None:
        assert GitRepository(tmp_path) == GitRepository(tmp_path)
        assert len({GitRepository(tmp_path), GitRepository(tmp_path)}) == 1

    def test_vcs_error_is_a_source_error(self) -> None:
        assert issubclass(VcsError, SourceError)


@requires_git
class TestTags:
    def test_tags_in_creation_order(self, kernel_repo: Path) -> None:
        repo = GitRepository(kernel_repo)
        assert repo.tags() == ["v2.6.12", "v2.6.13", "v2.6.9"]

    def test_repository_without_tags(self, tmp_path: Path) -> None:
        _git(tmp_path, "init", "--quiet")
        assert GitRepository(tmp_path).tags() == []

    def test_not_a_repository(self, tmp_path: Path) -> None:
        plain = tmp_path / "plain"
        plain.mkdir()
        with pytest.raises(VcsError) as exc_info:
            GitRepository(plain).tags()
        assert exc_info.value.command[:2] == ["git", "tag"]
        assert "not a git repository" in exc_info.value.stderr.lower()


@requires_git
class TestCheckoutHard:
    def test_moves_to_tag(self, kernel_repo: Path) -> None:
        repo = GitRepository(kernel_repo)
        repo.checkout_hard("v2.6.12")
        assert (kernel_repo / "Makefile").read_text(encoding="utf-8") == "VERSION = 2.6.12\n"

    def test_discards_local_modifications(self, kernel_repo: Path) -> None:
        (kernel_repo / "Makefile").write_text("local edit\n", encoding="utf-8")
        GitRepository(kernel_repo).checkout_hard("v2.6.13")
        assert (kernel_repo / "Makefile").read_text(encoding="utf-8") == "VERSION = 2.6.13\n"

    def test_removes_untracked_and_ignored_files(self, kernel_repo: Path) -> None:
        (kernel_repo / ".gitignore").write_text("*.o\n", encoding="utf-8")
        (kernel_repo / "main.o").write_bytes(b"\x7fELF")
        (kernel_repo / "scratch").mkdir()
        (kernel_repo / "scratch" / "notes.txt").write_text("x", encoding="utf-8")

        GitRepository(kernel_repo).checkout_hard("v2.6.12")

        assert not (kernel_repo / "main.o").exists()
        assert not (kernel_repo / "scratch").exists()
        assert not (kernel_repo / ".gitignore").exists()

    def test_unknown_reference_raises(self, kernel_repo: Path) -> None:
        with pytest.raises(VcsError) as exc_info:
            GitRepository(kernel_repo).checkout_hard("v9.9")
        assert "v9.9" in exc_info.value.stderr


class TestGitInvocationFailures:
    def test_git_binary_missing(self, tmp_path: Path) -> None:
        with mock.patch(
            "kernelstats.sources.git.subprocess.run",
            side_effect=FileNotFoundError("git"),
        ):
            with pytest.raises(VcsError, match="failed to call"):
                GitRepository(tmp_path).tags()

    def test_timeout(self, tmp_path: Path) -> None:
        with mock.patch(
            "kernelstats.sources.git.subprocess.run",
            side_effect=subprocess.TimeoutExpired(["git", "tag"], 1),
        ):
            with pytest.raises(VcsError, match="timed out after 1 seconds"):
                GitRepository(tmp_path, timeout_seconds=1).tags()

    def test_stderr_kept_verbatim(self, tmp_path: Path) -> None:
        failure = subprocess.CalledProcessError(
            128, ["git", "tag"], output="", stderr="fatal: something broke\n"
        )
        with mock.patch("kernelstats.sources.git.subprocess.run", side_effect=failure):
            with pytest.raises(VcsError) as exc_info:
                GitRepository(tmp_path).tags()
        assert exc_info.value.stderr == "fatal: something broke\n"
        assert "fatal: something broke" in str(exc_info.value)

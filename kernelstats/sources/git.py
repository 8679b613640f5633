# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Git tag source: the releases that live in a local kernel clone.

Only two things are needed from the clone: the list of tags in creation
order, and a way to force the working tree to a tag's exact state. The
checkout is destructive (reset + clean -fdx), so everything here runs
sequentially in the caller's thread; two checkouts against the same clone
would corrupt the tree.

We only ever call the git CLI. Every non-zero exit becomes a VcsError that
carries git's stderr verbatim.
"""

import subprocess
from pathlib import Path

from kernelstats.logging.logger import get_logger
from kernelstats.sources.exceptions import VcsError

logger = get_logger(__name__)

DEFAULT_GIT_TIMEOUT_SECONDS = 600


class GitRepository:
    """Handle on a local git clone. Cheap to copy around; holds only the path."""

    def __init__(self, path: Path, timeout_seconds: int = DEFAULT_GIT_TIMEOUT_SECONDS) -> None:
        if not path.is_dir():
            raise VcsError(f"missing kernel git directory: {path}", ["git"], "")
        self.path = path
        self.timeout_seconds = timeout_seconds

    def __repr__(self) -> str:
        return f"GitRepository(path={str(self.path)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GitRepository):
            return NotImplemented
        return self.path == other.path

    def __hash__(self) -> int:
        return hash(self.path)

    def _git(self, *args: str) -> str:
        command = ["git", *args]
        try:
            result = subprocess.run(
                command,
                cwd=str(self.path),
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as err:
            raise VcsError(f"git: failed to call: {err}", command) from err
        except subprocess.CalledProcessError as err:
            stderr = err.stderr or ""
            raise VcsError(
                f"git error ({' '.join(command)}): {stderr.strip()}", command, stderr
            ) from err
        except subprocess.TimeoutExpired as err:
            raise VcsError(
                f"git timed out after {self.timeout_seconds} seconds: {' '.join(command)}",
                command,
            ) from err

        return result.stdout

    def tags(self) -> list[str]:
        """All tags, oldest first by tag creation date."""
        output = self._git("tag", "--sort=taggerdate")
        return [line for line in output.split("\n") if line]

    def checkout_hard(self, reference: str) -> None:
        """
        Move the working tree to `reference`, discarding every local change.

        Tracked modifications are reset, untracked and ignored files are
        removed, then the reference is checked out. Whatever was in the
        working tree before is gone.
        """
        logger.debug(
            "Forcing checkout",
            extra={"repository": str(self.path), "reference": reference},
        )
        self._git("reset", "--hard", "HEAD")
        self._git("clean", "-fdx")
        self._git("checkout", "--quiet", reference)

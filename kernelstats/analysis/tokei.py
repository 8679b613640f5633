# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Thin wrapper around the tokei line counter.

We run `tokei --output json` inside a source tree and fold its per-language
output into LanguageStats. Both the current JSON layout (per-file entries
under "reports") and the older one (under "stats", with an explicit "lines"
count) are understood, since historical corpora get re-analyzed with
whatever tokei happens to be installed.
"""

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from kernelstats.logging.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TOKEI_BINARY = "tokei"
DEFAULT_TOKEI_TIMEOUT_SECONDS = 3600

# tokei adds a synthetic language summing all the others.
_TOTAL_KEY = "Total"


class AnalysisError(Exception):
    """The statistics tool failed, or a source tree couldn't be prepared for it."""


@dataclass(frozen=True)
class LanguageStats:
    """Aggregate line counts for one language in one source tree."""

    blanks: int
    code: int
    comments: int
    lines: int
    files: int


def _count(entry: dict[str, Any], key: str) -> int:
    value = entry.get(key, 0)
    if not isinstance(value, int):
        raise AnalysisError(f"tokei reported a non-integer '{key}': {value!r}")
    return value


def parse_tokei_output(payload: Any) -> dict[str, LanguageStats]:
    """
    Turn tokei's JSON document into a language -> LanguageStats mapping.

    Raises:
        AnalysisError: The document isn't shaped like tokei output.
    """
    if not isinstance(payload, dict):
        raise AnalysisError(f"tokei output must be a JSON object, got {type(payload).__name__}")

    languages: dict[str, LanguageStats] = {}
    for language, entry in payload.items():
        if language == _TOTAL_KEY:
            continue
        if not isinstance(entry, dict):
            raise AnalysisError(f"tokei entry for {language} is not an object")

        blanks = _count(entry, "blanks")
        code = _count(entry, "code")
        comments = _count(entry, "comments")
        lines = entry.get("lines")
        if not isinstance(lines, int):
            lines = blanks + code + comments

        files = entry.get("reports", entry.get("stats", []))
        languages[language] = LanguageStats(
            blanks=blanks,
            code=code,
            comments=comments,
            lines=lines,
            files=len(files) if isinstance(files, list) else 0,
        )

    return languages


def run_tokei(
    directory: Path,
    binary: str = DEFAULT_TOKEI_BINARY,
    timeout_seconds: int = DEFAULT_TOKEI_TIMEOUT_SECONDS,
) -> dict[str, LanguageStats]:
    """
    Count lines of code under `directory`.

    Raises:
        AnalysisError: tokei is missing, failed, timed out, or printed
            something that isn't tokei JSON. stderr is included verbatim.
    """
    command = [binary, "--output", "json"]
    logger.debug("Running tokei", extra={"directory": str(directory), "command": command})

    try:
        result = subprocess.run(
            command,
            cwd=str(directory),
            check=True,
            capture_output=True,
            text=True,
            timeout=timeout_seconds,
        )
    except FileNotFoundError as err:
        raise AnalysisError(f"tokei: failed to call {binary}: {err}") from err
    except subprocess.CalledProcessError as err:
        raise AnalysisError(
            f"tokei failed in {directory}: {(err.stderr or '').strip()}"
        ) from err
    except subprocess.TimeoutExpired as err:
        raise AnalysisError(
            f"tokei timed out after {timeout_seconds} seconds in {directory}"
        ) from err

    try:
        payload = json.loads(result.stdout)
    except json.JSONDecodeError as err:
        raise AnalysisError(f"tokei printed invalid JSON in {directory}: {err}") from err

    return parse_tokei_output(payload)

# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Download/cache manager for release archives.

For every catalog release we want a verified linux-{version}.tar.gz in the
cache directory. Step by step, per release:
  1. If the cached file exists and `verify` is off, trust it as-is.
  2. If it exists and `verify` is on, run the archive verifier. A bad file is
     logged, deleted, and treated as missing.
  3. If no usable file exists, fetch the derived URL. The whole body is kept
     in memory and verified before it touches disk; fresh downloads are
     verified whether or not `verify` is on.
  4. Write the bytes atomically (temp file, fsync, rename), so an interrupted
     write never shows up under the canonical name.

Releases are processed by a fixed-size thread pool, so at most `parallelism`
of them are in flight at once. The first hard failure (HTTP error, broken
fresh download, I/O error) cancels everything still queued and is re-raised
once the running workers finish; acquiring a silent subset would give a
misleading corpus.

Running it twice against a warm cache performs zero network requests.
"""

import http.client
import io
import json
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from kernelstats.config.schema import DEFAULT_MIRROR_URL
from kernelstats.logging.logger import get_logger
from kernelstats.sources.catalog import ReleaseSpec, derived_url
from kernelstats.sources.exceptions import (
    AcquisitionError,
    ArchiveVerificationError,
    DownloadError,
)
from kernelstats.sources.verifier import verify_file, verify_stream
from kernelstats.utils.filesystem import atomic_write, atomic_write_bytes, safe_delete
from kernelstats.utils.paths import ensure_directory

logger = get_logger(__name__)

MANIFEST_FILENAME = "acquire_manifest.json"
DEFAULT_PARALLELISM = 2
DEFAULT_TIMEOUT_SECONDS = 300
USER_AGENT = "kernelstats/0.1 (+https://mirrors.kernel.org)"

Fetcher = Callable[[str, int], bytes]


@dataclass(frozen=True)
class CachedArchive:
    """A release whose archive sits verified (or trusted) in the cache."""

    release: ReleaseSpec
    local_path: Path
    downloaded: bool = False


def cache_filename(release: ReleaseSpec) -> str:
    """Canonical cache file name, independent of the mirror layout."""
    return f"linux-{release.version}.tar.gz"


def fetch_archive(url: str, timeout: int = DEFAULT_TIMEOUT_SECONDS) -> bytes:
    """
    GET a URL and return the full response body.

    Raises:
        DownloadError: Non-2xx status, a connection-level failure or a body
            cut short by the server.
    """
    request = Request(url, headers={"User-Agent": USER_AGENT}, method="GET")
    try:
        with urlopen(request, timeout=timeout) as response:
            status = response.status
            if not 200 <= status < 300:
                raise DownloadError(f"failed to download: {url}: HTTP {status}", url, status)
            return response.read()
    except HTTPError as err:
        raise DownloadError(f"failed to download: {url}: HTTP {err.code}", url, err.code) from err
    except (URLError, OSError, http.client.HTTPException) as err:
        raise DownloadError(f"failed to get url: {url}: {err}", url) from err


def _reuse_cached(path: Path, verify: bool, index: int, total: int) -> bool:
    """
    Decide whether an existing cache file can be used.

    Returns False when the file is missing or was found corrupt (and has been
    deleted). Never raises on a corrupt archive; that's the self-healing path.
    """
    if not path.is_file():
        return False

    if verify:
        try:
            verify_file(path)
        except ArchiveVerificationError as err:
            logger.warning(
                "Ignoring bad archive",
                extra={"path": str(path), "reason": err.reason, "index": index, "total": total},
            )
            try:
                safe_delete(path)
            except OSError as unlink_err:
                raise OSError(f"failed to remove: {path}: {unlink_err}") from unlink_err
            return False

    logger.info(
        "Using cached archive",
        extra={"path": str(path), "verified": verify, "index": index, "total": total},
    )
    return True


def acquire_release(
    release: ReleaseSpec,
    cache_dir: Path,
    verify: bool,
    index: int,
    total: int,
    mirror_url: str = DEFAULT_MIRROR_URL,
    fetch: Fetcher = fetch_archive,
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
) -> CachedArchive:
    """
    Make one release available in the cache. See the module docstring for the steps.

    Raises:
        DownloadError: The mirror refused or couldn't be reached.
        ArchiveVerificationError: The freshly downloaded body isn't a valid archive.
        OSError: The archive couldn't be written or a bad one couldn't be removed.
    """
    path = cache_dir / cache_filename(release)

    if _reuse_cached(path, verify, index, total):
        return CachedArchive(release=release, local_path=path, downloaded=False)

    url = derived_url(release, mirror_url)
    logger.info(
        "Downloading archive",
        extra={"url": url, "path": str(path), "index": index, "total": total},
    )

    body = fetch(url, timeout_seconds)

    try:
        verify_stream(io.BytesIO(body))
    except ArchiveVerificationError as err:
        raise ArchiveVerificationError(
            f"test on downloaded archive failed: {path}: {err.reason}"
        ) from err

    try:
        atomic_write_bytes(path, body)
    except OSError as err:
        raise OSError(f"failed to write file: {path}: {err}") from err

    logger.info(
        "Archive downloaded",
        extra={"path": str(path), "bytes": len(body), "index": index, "total": total},
    )
    return CachedArchive(release=release, local_path=path, downloaded=True)


def acquire(
    releases: Sequence[ReleaseSpec],
    cache_dir: Path,
    verify: bool = False,
    parallelism: int = DEFAULT_PARALLELISM,
    mirror_url: str = DEFAULT_MIRROR_URL,
    fetch: Fetcher = fetch_archive,
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
) -> list[CachedArchive]:
    """
    Acquire every release into cache_dir using a bounded worker pool.

    Results are returned in completion order, which need not match the order
    of `releases`. Either every release is acquired or the first failure is
    raised; there is no partial-success mode.

    Args:
        releases: The releases to acquire.
        cache_dir: Flat cache directory, created if missing.
        verify: Re-verify archives already in the cache.
        parallelism: Maximum number of releases in flight at once (>= 1).
        mirror_url: Base URL the release paths are appended to.
        fetch: Callable (url, timeout) -> bytes doing the HTTP GET.
        timeout_seconds: Per-request timeout passed to `fetch`.

    Raises:
        ValueError: parallelism is below 1.
        AcquisitionError: Wrapping the first release that failed.
        OSError: The cache directory can't be created.
    """
    if parallelism < 1:
        raise ValueError(f"parallelism must be at least 1, got {parallelism}")

    try:
        ensure_directory(cache_dir)
    except OSError as err:
        raise OSError(f"failed to create cache directory: {cache_dir}: {err}") from err

    total = len(releases)
    results: list[CachedArchive] = []

    logger.info(
        "Acquiring releases",
        extra={"cache_dir": str(cache_dir), "total": total, "parallelism": parallelism, "verify": verify},
    )

    def _task(release: ReleaseSpec, index: int) -> CachedArchive:
        return acquire_release(
            release,
            cache_dir,
            verify,
            index,
            total,
            mirror_url=mirror_url,
            fetch=fetch,
            timeout_seconds=timeout_seconds,
        )

    executor = ThreadPoolExecutor(max_workers=parallelism, thread_name_prefix="kernelstats-dl")
    futures: dict[Future[CachedArchive], ReleaseSpec] = {}
    try:
        for index, release in enumerate(releases, start=1):
            futures[executor.submit(_task, release, index)] = release

        pending = set(futures)
        while pending:
            done, pending = wait(pending, return_when=FIRST_EXCEPTION)
            for future in done:
                err = future.exception()
                if err is not None:
                    failed = futures[future]
                    logger.error(
                        "Acquisition failed",
                        extra={"version": failed.version, "error": str(err)},
                    )
                    raise AcquisitionError(
                        f"failed to acquire linux-{failed.version}: {err}", failed.version
                    ) from err
                results.append(future.result())
    finally:
        executor.shutdown(wait=True, cancel_futures=True)

    write_manifest(cache_dir, results)

    logger.info(
        "Acquisition complete",
        extra={
            "total": total,
            "downloaded": sum(1 for cached in results if cached.downloaded),
            "reused": sum(1 for cached in results if not cached.downloaded),
        },
    )
    return results


def write_manifest(cache_dir: Path, cached: Sequence[CachedArchive]) -> Path:
    """Record what the cache held after the last successful acquisition."""
    manifest_path = cache_dir / MANIFEST_FILENAME
    manifest_data = {
        "total": len(cached),
        "archives": [
            {
                "version": entry.release.version,
                "important": entry.release.important,
                "path": entry.local_path.name,
                "downloaded": entry.downloaded,
            }
            for entry in sorted(cached, key=lambda c: c.release.version)
        ],
    }
    atomic_write(manifest_path, json.dumps(manifest_data, indent=2, sort_keys=True))
    return manifest_path


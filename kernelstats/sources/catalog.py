# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release catalog: the static table of kernel releases fetched as archives.

The table ships inside the package as kernels.yaml and is loaded exactly once
per process. After loading, releases are frozen pydantic models, so nothing
downstream can mutate the catalog.

Every release maps to a path on the mirror. Most follow the
v{major}.{minor}/linux-{version}.tar.gz layout; the handful that don't either
carry an explicit `path` in the table or are covered by the naming exception
in release_path().
"""

import functools
from importlib import resources
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from kernelstats.config.schema import DEFAULT_MIRROR_URL
from kernelstats.sources.exceptions import CatalogError

CATALOG_RESOURCE = "kernels.yaml"

# 1.1.0 was uploaded as v1.1.0.tar.gz rather than linux-1.1.0.tar.gz.
_ARCHIVE_NAME_EXCEPTIONS: frozenset[str] = frozenset({"1.1.0"})


class ReleaseSpec(BaseModel):
    """One kernel release known to the catalog."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    version: str = Field(min_length=1, description="Dotted release version, e.g. '2.6.11'")
    important: bool = Field(
        default=False,
        description="Part of the curated subset analyzed by default",
    )
    path: Optional[str] = Field(
        default=None,
        description="Mirror-relative download path overriding the derived one",
    )

    def __str__(self) -> str:
        return self.version


def _parse_catalog(raw: Any, source: str) -> tuple[ReleaseSpec, ...]:
    if not isinstance(raw, dict) or not isinstance(raw.get("releases"), list):
        raise CatalogError(f"Catalog {source} must be a mapping with a 'releases' list")

    releases: list[ReleaseSpec] = []
    seen: set[str] = set()
    for position, entry in enumerate(raw["releases"]):
        try:
            release = ReleaseSpec.model_validate(entry)
        except ValidationError as err:
            raise CatalogError(
                f"Invalid release #{position} in catalog {source}:\n{err}"
            ) from err
        if release.version in seen:
            raise CatalogError(
                f"Duplicate release '{release.version}' in catalog {source}"
            )
        seen.add(release.version)
        releases.append(release)

    return tuple(releases)


def _load_yaml(text: str, source: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise CatalogError(f"Invalid YAML in catalog {source}: {err}") from err


@functools.lru_cache(maxsize=1)
def _packaged_catalog() -> tuple[ReleaseSpec, ...]:
    resource = resources.files("kernelstats.sources").joinpath(CATALOG_RESOURCE)
    try:
        text = resource.read_text(encoding="utf-8")
    except OSError as err:
        raise CatalogError(f"Cannot read packaged catalog {CATALOG_RESOURCE}: {err}") from err
    return _parse_catalog(_load_yaml(text, CATALOG_RESOURCE), CATALOG_RESOURCE)


def load_catalog(catalog_file: Optional[Path] = None) -> tuple[ReleaseSpec, ...]:
    """
    Load the release table.

    With no argument the packaged table is used; it is parsed on first use and
    then shared for the lifetime of the process. A catalog_file replaces the
    packaged table entirely.

    Raises:
        CatalogError: The table can't be read, isn't valid YAML, or violates
            the release schema. This is a startup failure, not something to
            recover from.
    """
    if catalog_file is None:
        return _packaged_catalog()

    try:
        text = catalog_file.read_text(encoding="utf-8")
    except OSError as err:
        raise CatalogError(f"Cannot read catalog {catalog_file}: {err}") from err
    return _parse_catalog(_load_yaml(text, str(catalog_file)), str(catalog_file))


def list_releases(catalog_file: Optional[Path] = None) -> list[ReleaseSpec]:
    """Every release in catalog order."""
    return list(load_catalog(catalog_file))


def filter_important(releases: Iterable[ReleaseSpec]) -> list[ReleaseSpec]:
    """Keep only the releases flagged as important, preserving order."""
    return [release for release in releases if release.important]


def select_releases(releases: Iterable[ReleaseSpec], all_releases: bool) -> list[ReleaseSpec]:
    """The acquisition targets for a run: everything, or just the important subset."""
    if all_releases:
        return list(releases)
    return filter_important(releases)


def release_path(release: ReleaseSpec) -> str:
    """
    Mirror-relative path of a release archive.

    An explicit `path` wins. Otherwise the directory comes from the first two
    version components (a missing minor becomes "x", so "3" lives in v3.x/).
    """
    if release.path is not None:
        return release.path

    version = release.version
    parts = version.split(".")
    major = parts[0]
    minor = parts[1] if len(parts) > 1 else "x"

    if version in _ARCHIVE_NAME_EXCEPTIONS:
        name = f"v{version}"
    else:
        name = f"linux-{version}"

    return f"v{major}.{minor}/{name}.tar.gz"


def derived_url(release: ReleaseSpec, mirror_url: str = DEFAULT_MIRROR_URL) -> str:
    """Full download URL of a release on the given mirror."""
    return f"{mirror_url.rstrip('/')}/{release_path(release)}"

# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for kernelstats.

Every config section gets its own frozen pydantic model. Frozen means once you
create it, you cannot mutate it. The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked

A YAML file only needs the `global:` section. The acquisition, git and
analysis sections are optional and fall back to their defaults when absent;
command-line flags override whatever the file says.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_MIRROR_URL = "https://mirrors.kernel.org/pub/linux/kernel"


class DirectoryConfig(BaseModel):
    """Working directories, relative to the directory the command runs in."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    cache: str = Field(default="cache", description="Downloaded release archives")
    work: str = Field(default="work", description="Scratch space for unpacked archives")
    stats: str = Field(default="stats", description="Compressed per-release reports")


class GlobalConfig(BaseModel):
    """
    Cross-cutting settings that apply to every command.

    This is the only required section. It controls observability (log_level,
    log_file) and where the cache, work and stats directories live.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    project_name: str = Field(
        default="kernelstats", description="Human-readable corpus identifier"
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )
    directories: DirectoryConfig = Field(default_factory=DirectoryConfig)


class AcquisitionConfig(BaseModel):
    """
    Knobs for the download/cache manager.

    `verify` controls whether archives already present in the cache get
    re-verified. Fresh downloads are always verified regardless of this flag.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(default="1.0.0", description="Schema version")
    mirror_url: str = Field(
        default=DEFAULT_MIRROR_URL,
        description="Base URL of the mirror serving release archives",
    )
    parallelism: int = Field(
        default=2,
        ge=1,
        le=64,
        description="How many downloads are in flight at the same time",
    )
    verify: bool = Field(
        default=False,
        description="Re-verify archives that are already in the cache",
    )
    all_releases: bool = Field(
        default=False,
        description="Acquire every catalog release, not just the important ones",
    )
    timeout_seconds: int = Field(
        default=300,
        ge=1,
        description="Per-request HTTP timeout",
    )
    catalog_file: Optional[str] = Field(
        default=None,
        description="Use this YAML release table instead of the packaged one",
    )

    @field_validator("mirror_url")
    @classmethod
    def _mirror_must_be_http(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"mirror_url must be an http(s) URL, got '{value}'")
        return value


class GitConfig(BaseModel):
    """A local clone of the kernel repository whose tags get analyzed."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(default="1.0.0", description="Schema version")
    repository: str = Field(description="Path to the kernel git clone")
    timeout_seconds: int = Field(
        default=600,
        ge=1,
        description="Max seconds a single git invocation may take",
    )


class AnalysisConfig(BaseModel):
    """Settings for the statistics tool invoked on every unpacked tree."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(default="1.0.0", description="Schema version")
    tokei_binary: str = Field(default="tokei", description="Name or path of tokei")
    timeout_seconds: int = Field(
        default=3600,
        ge=1,
        description="Max seconds tokei may spend on a single tree",
    )


class KernelStatsConfig(BaseModel):
    """
    Top-level config container.

    Sections not present in the YAML stay None; commands fill in defaults for
    whatever they need.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(alias="global")
    acquisition: Optional[AcquisitionConfig] = Field(default=None)
    git: Optional[GitConfig] = Field(default=None)
    analysis: Optional[AnalysisConfig] = Field(default=None)

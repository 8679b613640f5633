# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Turns a YAML file on disk into a frozen KernelStatsConfig.

Two kinds of failure are kept apart so the CLI can report them precisely:
ConfigLoadError when the file can't be read or isn't a YAML mapping, and
ConfigValidationError when it parses but doesn't fit the schema. Either one
stops the command before any archive is fetched.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from kernelstats.config.exceptions import ConfigLoadError, ConfigValidationError
from kernelstats.config.schema import KernelStatsConfig


def _read_mapping(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise ConfigLoadError(f"Config file not found: {config_path}")
    if not config_path.is_file():
        raise ConfigLoadError(f"Config path is not a file: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            document = yaml.safe_load(handle)
    except yaml.YAMLError as err:
        raise ConfigLoadError(f"Invalid YAML in {config_path}: {err}") from err
    except OSError as err:
        raise ConfigLoadError(f"Cannot read config file {config_path}: {err}") from err

    if not isinstance(document, dict):
        raise ConfigLoadError(
            f"{config_path} must hold a YAML mapping at the top level, "
            f"got {type(document).__name__}"
        )
    return document


def load_config(config_path: Path) -> KernelStatsConfig:
    """
    Read and validate a kernelstats config file.

    Only the `global:` section is mandatory; see kernelstats.config.schema
    for the rest.

    Raises:
        ConfigLoadError: Missing file, unreadable file, broken YAML, or a
            document that isn't a mapping.
        ConfigValidationError: Missing or unknown keys, wrong types, values
            out of range.
    """
    document = _read_mapping(config_path)
    try:
        return KernelStatsConfig.model_validate(document)
    except ValidationError as err:
        raise ConfigValidationError(f"Config validation failed for {config_path}:\n{err}") from err

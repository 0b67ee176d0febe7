# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""YAML configuration file loader utilities.

Deployments tune the engine (knowledge tracing parameters, review queue
sizes, session thresholds) with YAML override files. This module loads
those files and merges them over the environment-derived defaults.

Example:
    >>> from pathlib import Path
    >>> from mastery_engine.core.config.yaml_loader import load_yaml, deep_merge
    >>> overrides = load_yaml(Path("config/engine.yaml"))
    >>> merged = deep_merge({"bkt": {"p_init": 0.3}}, overrides)
"""

from pathlib import Path
from typing import Any

import yaml


class YAMLLoadError(Exception):
    """Raised when YAML file cannot be loaded or parsed."""

    def __init__(self, path: Path, reason: str) -> None:
        """Initialize YAMLLoadError.

        Args:
            path: Path to the YAML file that failed to load.
            reason: Description of why the file failed to load.
        """
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load YAML file '{path}': {reason}")


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dictionary.

    Args:
        path: Path to the YAML file to load.

    Returns:
        Dictionary containing the parsed YAML contents.
        Empty dict if file is empty.

    Raises:
        YAMLLoadError: If the file doesn't exist, cannot be read,
            or does not contain a YAML mapping.
    """
    if not path.is_file():
        reason = "File does not exist" if not path.exists() else "Path is not a file"
        raise YAMLLoadError(path, reason)

    try:
        with path.open(encoding="utf-8") as handle:
            parsed = yaml.safe_load(handle)
    except OSError as e:
        raise YAMLLoadError(path, f"Cannot read file: {e}") from e
    except yaml.YAMLError as e:
        raise YAMLLoadError(path, f"Invalid YAML syntax: {e}") from e

    if parsed is None:
        return {}

    if not isinstance(parsed, dict):
        raise YAMLLoadError(
            path, f"YAML root must be a mapping, got {type(parsed).__name__}"
        )

    return parsed


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence.

    Nested dictionaries are merged recursively; any other override value
    replaces the base value. Neither input is modified.

    Example:
        >>> deep_merge({"review": {"max_queue_size": 10, "refresher_slots": 3}},
        ...            {"review": {"refresher_slots": 2}})
        {'review': {'max_queue_size': 10, 'refresher_slots': 2}}
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged

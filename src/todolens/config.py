"""YAML configuration for the todolens pipeline."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

DEFAULT_CONFIG_NAME = "todolens.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "packer": {
        "compress": False,
        "include_patterns": [],
        "ignore_patterns": [],
        "top_files_length": 10,
    },
    "search": {
        "context_lines": 2,
        "semantic_max_results": 100,
        "structural_max_results": 50,
    },
    "validation": {
        "max_workers": 8,
        "timeout_seconds": None,
    },
    "markdown": {
        "enabled": True,
        "skip_dirs": ["node_modules", ".git", "dist", "build", ".next", "coverage"],
    },
}


def default_config() -> Dict[str, Any]:
    """Return a deep copy of the default configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` on top of ``base`` without mutating either."""
    merged: Dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML mapping from disk, guarding against unexpected types."""
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except OSError as error:
        raise ConfigError(f"Failed to read config {path}: {error}") from error
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config {path}: {error}") from error
    if not isinstance(data, Mapping):
        raise ConfigError("Configuration must be a mapping at the top level.")
    return dict(data)


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from ``config_path`` merged over the defaults.

    ``None`` returns the defaults unchanged.
    """
    if config_path is None:
        return default_config()
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    return merge_config(DEFAULT_CONFIG, _load_yaml(config_path))


def section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    """Return the named section, or an empty mapping when absent or malformed."""
    value = config.get(name)
    if isinstance(value, Mapping):
        return value
    return {}


__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_NAME",
    "default_config",
    "load_config",
    "merge_config",
    "section",
]

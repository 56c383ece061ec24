# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
User configuration for zombienet.

Looked up in order: explicit path, $ZOMBIENET_CONFIG, ~/.zombienet/config.yaml.
Values are defaults only; CLI flags always win.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


DEFAULT_CONFIG_PATH = Path("~/.zombienet/config.yaml")

CONFIG_KEYS = {"provider", "spawn_concurrency", "workspace", "credentials", "log_level"}


def _config_path(config_path: Optional[str]) -> Path:
    if config_path:
        return Path(config_path).expanduser()
    env_path = os.environ.get("ZOMBIENET_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the YAML config.

    Args:
        config_path: Explicit config file (must exist if given)

    Returns:
        Config dict, empty if no default config file exists

    Raises:
        FileNotFoundError: If an explicitly requested file is missing
        ValueError: If the file is not a mapping or has unknown keys
    """
    path = _config_path(config_path)
    explicit = bool(config_path or os.environ.get("ZOMBIENET_CONFIG"))

    if not path.exists():
        if explicit:
            raise FileNotFoundError(f"Config file not found: {path}")
        return {}

    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config must be a mapping: {path}")

    unknown = sorted(set(data) - CONFIG_KEYS)
    if unknown:
        raise ValueError(f"Unknown config keys in {path}: {', '.join(unknown)}")

    spawn_concurrency = data.get("spawn_concurrency")
    if spawn_concurrency is not None and (
        isinstance(spawn_concurrency, bool)
        or not isinstance(spawn_concurrency, int)
        or spawn_concurrency < 1
    ):
        raise ValueError(f"spawn_concurrency must be a positive integer, got {spawn_concurrency!r}")

    return data

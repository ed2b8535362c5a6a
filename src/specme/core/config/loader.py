"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import SpecMeConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per process
_config_cache: SpecMeConfig | None = None


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """Path to ~/.config/specme/config.json (or XDG equivalent)."""
    return get_xdg_config_home() / "specme" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """Path to .specme.json in the given (or current) directory."""
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".specme.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`. Nested dicts
    are merged, not replaced.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 10}}, {"b": {"y": 2}})
        {'a': 1, 'b': {'x': 10, 'y': 2}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _set(config_dict: dict[str, Any], section: str, key: str, value: Any) -> None:
    config_dict.setdefault(section, {})
    config_dict[section][key] = value


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        SPECME_DATA_DIR - overrides paths.data_dir
        SPECME_GIT_TIMEOUT - overrides git.timeout_seconds
        SPECME_FORGE_HOST - overrides forge.host
        GITHUB_TOKEN / SPECME_FORGE_TOKEN - sets forge.token (the latter wins)
    """
    result = config_dict.copy()

    if data_dir := os.environ.get("SPECME_DATA_DIR"):
        _set(result, "paths", "data_dir", data_dir)

    if timeout_str := os.environ.get("SPECME_GIT_TIMEOUT"):
        try:
            timeout = int(timeout_str)
            if timeout < 1:
                logger.warning("SPECME_GIT_TIMEOUT must be >= 1, got %s, ignoring", timeout)
            else:
                _set(result, "git", "timeout_seconds", timeout)
        except ValueError:
            logger.warning("Invalid SPECME_GIT_TIMEOUT value '%s', ignoring", timeout_str)

    if host := os.environ.get("SPECME_FORGE_HOST"):
        _set(result, "forge", "host", host)

    token = os.environ.get("SPECME_FORGE_TOKEN") or os.environ.get("GITHUB_TOKEN")
    if token and token.strip():
        _set(result, "forge", "token", token.strip())

    return result


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> SpecMeConfig:
    """
    Load configuration with full precedence chain.

    Args:
        project_dir: Directory holding .specme.json (defaults to cwd)
        use_cache: Whether to reuse a previously loaded config

    Returns:
        Validated SpecMeConfig
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged: dict[str, Any] = {}

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = SpecMeConfig.model_validate(merged)

    if use_cache:
        _config_cache = config

    return config


def clear_cache() -> None:
    """Clear the cached configuration (mainly for tests)."""
    global _config_cache
    _config_cache = None

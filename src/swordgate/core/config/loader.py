"""
Layered configuration loading.

Layers, lowest first: model defaults, the user's config file, the
project's ``.swordgate.json`` and ``SWORDGATE_*`` environment variables.
File layers are deep-merged; the result is validated once and cached for
the rest of the process.
"""

import json
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .models import SwordgateConfig

logger = logging.getLogger(__name__)

PROJECT_CONFIG_NAME = ".swordgate.json"

_config_cache: SwordgateConfig | None = None


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# env var -> (section, key, converter)
ENV_OVERRIDES: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "SWORDGATE_ENGINE": ("engine", "type", str),
    "SWORDGATE_CATALOG": ("engine", "catalog", str),
    "SWORDGATE_PREFER_REPOSITORY_FIRST": ("signatures", "prefer_repository_first", _as_bool),
    "SWORDGATE_SEARCH_TYPE": ("search", "search_type", str),
    "SWORDGATE_SEARCH_SCOPE": ("search", "scope", str),
    "SWORDGATE_LOG_LEVEL": ("logging", "level", str),
}


def get_xdg_config_home() -> Path:
    """``$XDG_CONFIG_HOME``, falling back to ``~/.config``."""
    configured = os.environ.get("XDG_CONFIG_HOME")
    return Path(configured) if configured else Path.home() / ".config"


def get_user_config_path() -> Path:
    return get_xdg_config_home() / "swordgate" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    return (cwd or Path.cwd()) / PROJECT_CONFIG_NAME


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Return ``base`` updated with ``override``, merging nested mappings.

    Example:
        >>> deep_merge({"engine": {"type": "catalog"}}, {"engine": {"step_delay": 0.1}})
        {'engine': {'type': 'catalog', 'step_delay': 0.1}}
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = deep_merge(current, value)
        merged[key] = value
    return merged


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Read one config layer.

    A missing file, unreadable JSON or a top level that is not an object
    all yield None; the latter two are logged.
    """
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Ignoring config at %s: top level is %s, not an object", path, type(data).__name__)
        return None
    return data


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Overlay the ``SWORDGATE_*`` variables listed in ``ENV_OVERRIDES``."""
    overrides: dict[str, Any] = {}
    for var, (section, key, convert) in ENV_OVERRIDES.items():
        raw = os.environ.get(var)
        if raw:
            overrides.setdefault(section, {})[key] = convert(raw)
    return deep_merge(config_dict, overrides)


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> SwordgateConfig:
    """
    Load and validate the merged configuration.

    Args:
        project_dir: Directory holding ``.swordgate.json`` (defaults to cwd)
        use_cache: Return the config from a previous call when there is one

    Raises:
        ValidationError: If the merged layers do not validate
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged: dict[str, Any] = {}
    for path in (get_user_config_path(), get_project_config_path(project_dir)):
        layer = load_json_file(path)
        if layer:
            logger.debug("Merging config layer %s", path)
            merged = deep_merge(merged, layer)

    _config_cache = SwordgateConfig(**apply_env_overrides(merged))
    return _config_cache


def clear_cache() -> None:
    global _config_cache
    _config_cache = None

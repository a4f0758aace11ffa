"""
Layered .env loading.

Variables are collected from the user's env file first and the project's
env files after it, later files winning. The merged result is then copied
into ``os.environ`` for every key the process environment does not
already define, so an exported shell variable always beats a file.
"""

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from dotenv import dotenv_values

from .loader import get_xdg_config_home

logger = logging.getLogger(__name__)

PROJECT_ENV_FILES = (".env", ".env.local")


def default_user_env_paths() -> list[Path]:
    return [get_xdg_config_home() / "swordgate" / ".env"]


def default_project_env_paths(project_dir: Path) -> list[Path]:
    return [project_dir / name for name in PROJECT_ENV_FILES]


def collect_env_files(paths: Iterable[Path]) -> dict[str, str]:
    """Merge the variables of every existing file in ``paths``, in order."""
    merged: dict[str, str] = {}
    for path in map(Path, paths):
        if not path.is_file():
            continue
        logger.debug("Reading env file %s", path)
        merged.update({key: value for key, value in dotenv_values(path).items() if value is not None})
    return merged


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> dict[str, str]:
    """
    Load user and project .env files into the process environment.

    Args:
        project_dir: Base directory for the default project env files
            (defaults to the current directory)
        user_env_paths: Explicit user env files
        project_env_paths: Explicit project env files

    Returns:
        The variables that were actually set
    """
    if user_env_paths is None:
        user_env_paths = default_user_env_paths()
    if project_env_paths is None:
        project_env_paths = default_project_env_paths(project_dir or Path.cwd())

    layered = collect_env_files([*user_env_paths, *project_env_paths])
    applied = {key: value for key, value in layered.items() if key not in os.environ}
    os.environ.update(applied)
    return applied

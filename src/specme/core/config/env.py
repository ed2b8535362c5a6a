"""
.env support.

The forge token and the SPECME_* overrides may come from .env files. Files
are layered, later ones winning, and the merged result only fills in
variables the process environment does not already have:

    exported variable > project .env / .env.local > user ~/.config/specme/.env
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from dotenv import dotenv_values

from .loader import get_xdg_config_home


def default_user_env_files() -> list[Path]:
    return [get_xdg_config_home() / "specme" / ".env"]


def default_project_env_files(project_dir: Path) -> list[Path]:
    return [project_dir / ".env", project_dir / ".env.local"]


def read_env_files(paths: Iterable[Path]) -> dict[str, str]:
    """Merge the given .env files in order; missing files and bare keys are skipped."""
    merged: dict[str, str] = {}
    for path in paths:
        path = Path(path)
        if not path.is_file():
            continue
        merged.update({k: v for k, v in dotenv_values(path).items() if k and v is not None})
    return merged


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> dict[str, str]:
    """
    Export variables from the user and project .env files.

    Args:
        project_dir: Directory holding the project .env (defaults to cwd)
        user_env_paths: Override the user-level files
        project_env_paths: Override the project-level files

    Returns:
        The variables that were actually exported
    """
    if user_env_paths is None:
        user_env_paths = default_user_env_files()
    if project_env_paths is None:
        project_env_paths = default_project_env_files(project_dir or Path.cwd())

    layered = read_env_files([*user_env_paths, *project_env_paths])
    exported = {k: v for k, v in layered.items() if k not in os.environ}
    os.environ.update(exported)
    return exported

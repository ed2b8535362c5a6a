"""
Path sandbox.

Every path the engine writes to is resolved through :func:`resolve_in_root`,
which refuses anything that would land outside the project root. The
functions here are pure path arithmetic: no filesystem access except
:func:`canonicalize`, which follows symlinks when the path exists.
"""

from __future__ import annotations

import fnmatch
import os
import posixpath
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from specme.core.errors import PathViolation, ProtectedFileBlocked


def normalize_relative_path(relative_path: str) -> str:
    """
    Normalize a project-relative path.

    Converts backslashes, collapses ``.``/``..`` segments and strips leading
    slashes, so ``/src//a/../b.py`` becomes ``src/b.py``. A path that
    normalizes to the root itself returns ``""``.

    Args:
        relative_path: Path as provided by the caller or the edit plan

    Returns:
        Normalized POSIX-style relative path (may still start with ``..``)
    """
    raw = (relative_path or "").replace("\\", "/")
    normalized = posixpath.normpath(raw) if raw else ""
    normalized = normalized.lstrip("/")
    if normalized == ".":
        return ""
    return normalized


def is_inside(root: Path | str, candidate: Path | str) -> bool:
    """Return True if ``candidate`` is ``root`` or a descendant of it."""
    root_resolved = os.path.abspath(root)
    candidate_resolved = os.path.abspath(candidate)
    if candidate_resolved == root_resolved:
        return True
    prefix = root_resolved if root_resolved.endswith(os.sep) else root_resolved + os.sep
    return candidate_resolved.startswith(prefix)


def is_inside_any(roots: Iterable[Path | str], candidate: Path | str) -> bool:
    return any(is_inside(root, candidate) for root in roots)


def resolve_in_root(root: Path | str, relative_path: str) -> tuple[Path, str]:
    """
    Resolve a relative path against a project root.

    Args:
        root: Project root directory
        relative_path: Path relative to the root

    Returns:
        Tuple of (absolute target path, normalized relative path)

    Raises:
        PathViolation: If the target is not the root or inside it
    """
    if not str(root).strip():
        raise PathViolation("Path Violation: no project root is set.")

    normalized = normalize_relative_path(relative_path)
    root_resolved = Path(os.path.abspath(root))
    target = Path(os.path.abspath(root_resolved / normalized)) if normalized else root_resolved

    if not is_inside(root_resolved, target):
        raise PathViolation(
            "Path Violation: target is outside selected project root.",
            detail=f"root={root_resolved} path={relative_path}",
        )
    return target, normalized


def to_destination_relative_path(file_path: str, project_root: Path | str | None = None) -> str:
    """
    Turn a planned file name into a path relative to a destination folder.

    Absolute file names are accepted only when they point inside the active
    project root; they are rebased to be relative to it.

    Raises:
        PathViolation: For empty names, absolute names outside the project
            root, or a name that designates the root itself
    """
    raw = (file_path or "").strip()
    if not raw:
        raise PathViolation("Missing file path.")

    if os.path.isabs(raw):
        if not project_root:
            raise PathViolation(
                f"Absolute file path is not allowed without an active project root: {raw}"
            )
        absolute = os.path.abspath(raw)
        resolved_root = os.path.abspath(project_root)
        if not is_inside(resolved_root, absolute):
            raise PathViolation(f"Absolute file path is outside active project root: {raw}")
        normalized = normalize_relative_path(os.path.relpath(absolute, resolved_root))
        if not normalized:
            raise PathViolation(f"Refusing to write project root as a file: {raw}")
        return normalized

    return normalize_relative_path(raw)


def expand_home(input_path: str) -> str:
    """Expand a leading ``~`` the way a shell would."""
    value = (input_path or "").strip()
    if value == "~" or value.startswith("~/") or value.startswith("~\\"):
        return os.path.expanduser(value)
    return value


def canonicalize(path: Path | str) -> Path:
    """Absolute path with symlinks resolved when the path exists."""
    absolute = Path(os.path.abspath(path))
    try:
        return absolute.resolve(strict=True)
    except OSError:
        return absolute


def is_protected(relative_path: str, patterns: Iterable[str]) -> bool:
    """
    Check a relative path against protected-file patterns.

    Patterns are fnmatch globs matched against every path component, so
    ``config/.env.local`` is caught by ``.env.*``.
    """
    parts = PurePosixPath(normalize_relative_path(relative_path)).parts
    pattern_list = list(patterns)
    return any(fnmatch.fnmatch(part, pattern) for part in parts for pattern in pattern_list)


def assert_not_protected(relative_path: str, patterns: Iterable[str]) -> None:
    """
    Raises:
        ProtectedFileBlocked: If the path matches any protected pattern
    """
    if is_protected(relative_path, patterns):
        raise ProtectedFileBlocked(
            "Blocked: Modification of protected files (.env, lockfiles) is not allowed.",
            detail=relative_path,
        )

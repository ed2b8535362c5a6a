"""
Path sandbox for project-rooted file access.

Example:
    >>> from specme.core.sandbox import resolve_in_root
    >>> target, rel = resolve_in_root("/work/repo", "src/../README.md")
    >>> rel
    'README.md'
"""

from specme.core.sandbox.files import atomic_write_text
from specme.core.sandbox.paths import (
    assert_not_protected,
    canonicalize,
    expand_home,
    is_inside,
    is_inside_any,
    is_protected,
    normalize_relative_path,
    resolve_in_root,
    to_destination_relative_path,
)

__all__ = [
    "assert_not_protected",
    "atomic_write_text",
    "canonicalize",
    "expand_home",
    "is_inside",
    "is_inside_any",
    "is_protected",
    "normalize_relative_path",
    "resolve_in_root",
    "to_destination_relative_path",
]

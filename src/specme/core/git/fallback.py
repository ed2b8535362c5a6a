"""
Ordered fallback chains.

Several git questions ("what is the current branch?", "what is the remote's
default branch?") have more than one way to be answered, none of which
works everywhere. Instead of nesting try/except blocks, callers describe the
strategies as an ordered list of ``(name, fn)`` pairs and let
:func:`first_success` evaluate them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TypeVar

from specme.core.errors import GitError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def first_success(
    strategies: Sequence[tuple[str, Callable[[], T | None]]],
    *,
    label: str = "lookup",
    tolerate: tuple[type[BaseException], ...] = (GitError,),
) -> T | None:
    """
    Return the first non-empty result of an ordered list of strategies.

    A strategy that returns ``None`` (or another falsy value) or raises one of
    the ``tolerate`` exception types falls through to the next one. Other
    exceptions propagate.

    Args:
        strategies: Ordered ``(name, fn)`` pairs
        label: Name used in debug logging
        tolerate: Exception types treated as "no answer"

    Returns:
        The first truthy result, or None if every strategy came up empty

    Example:
        >>> first_success([("a", lambda: None), ("b", lambda: "main")])
        'main'
    """
    for name, fn in strategies:
        try:
            result = fn()
        except tolerate as e:
            logger.debug("%s: strategy %s failed: %s", label, name, e)
            continue
        if result:
            logger.debug("%s: strategy %s -> %s", label, name, result)
            return result
        logger.debug("%s: strategy %s gave no result", label, name)
    return None

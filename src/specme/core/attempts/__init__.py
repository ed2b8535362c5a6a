"""
Apply attempts: reversible groups of file writes.

Example:
    >>> from specme.core.attempts import AttemptManager
    >>> manager = AttemptManager(store, config.paths.sessions_root)
    >>> attempt = manager.start(project_root)
"""

from specme.core.attempts.models import (
    ApplyAttempt,
    AttemptFile,
    AttemptStatus,
    AttemptSummary,
    LatestAttemptStatus,
    UndoResult,
)
from specme.core.attempts.service import AttemptManager, make_attempt_id

__all__ = [
    "ApplyAttempt",
    "AttemptFile",
    "AttemptManager",
    "AttemptStatus",
    "AttemptSummary",
    "LatestAttemptStatus",
    "UndoResult",
    "make_attempt_id",
]

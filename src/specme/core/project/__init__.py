"""
Active project descriptor, readiness checks and run history.

Example:
    >>> from specme.core.project import ActiveProjectState
    >>> state = ActiveProjectState(store, config, git)
    >>> state.assert_ready()
"""

from specme.core.project.history import RunHistory
from specme.core.project.models import (
    ConnectionStatus,
    ProjectDescriptor,
    ProjectMode,
    RunSnapshot,
)
from specme.core.project.state import ACTIVE_PROJECT_KEY, ActiveProjectState

__all__ = [
    "ACTIVE_PROJECT_KEY",
    "ActiveProjectState",
    "ConnectionStatus",
    "ProjectDescriptor",
    "ProjectMode",
    "RunHistory",
    "RunSnapshot",
]

"""
Workspace operations: the boundary between the CLI and the engine.
"""

from specme.core.services.models import (
    ApplyResult,
    EditPlan,
    EditPlanGenerator,
    FileWrite,
    OperationResult,
    PlannedFile,
    PublishResult,
    SaveLocalResult,
    SyncResult,
    SyncTarget,
    UndoReport,
)
from specme.core.services.workspace import WorkspaceService

__all__ = [
    "ApplyResult",
    "EditPlan",
    "EditPlanGenerator",
    "FileWrite",
    "OperationResult",
    "PlannedFile",
    "PublishResult",
    "SaveLocalResult",
    "SyncResult",
    "SyncTarget",
    "UndoReport",
    "WorkspaceService",
]

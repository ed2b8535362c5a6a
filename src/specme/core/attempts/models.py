"""
Data models for apply attempts.

An attempt groups every file write of one logical "apply" so the whole
change can be undone at once. Each touched path is recorded once, before
its first write, together with a backup of what was there.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, model_validator


class AttemptStatus(str, Enum):
    """Attempt lifecycle: active -> undone (terminal)."""

    ACTIVE = "active"
    UNDONE = "undone"


class AttemptFile(BaseModel):
    """
    One path touched by an attempt.

    ``backup_ref`` names the backup blob inside the attempt's backup
    directory; it is set exactly when the file existed before the attempt.
    """

    relative_path: str = Field(description="Path relative to the project root")
    existed_before: bool = Field(description="File existed before the first write")
    backup_ref: str | None = Field(default=None, description="Backup blob name, e.g. '1.bak'")

    @model_validator(mode="after")
    def _backup_matches_existence(self) -> AttemptFile:
        if self.existed_before != (self.backup_ref is not None):
            raise ValueError("backup_ref must be set if and only if the file existed before")
        return self


class ApplyAttempt(BaseModel):
    """
    A transactional group of file writes with a recorded undo log.

    Example:
        >>> attempt = manager.start(Path("/work/app"))
        >>> attempt.status
        <AttemptStatus.ACTIVE: 'active'>
        >>> attempt.files
        []
    """

    id: str = Field(description="Opaque attempt id: attempt-<epoch ms>-<random>")
    status: AttemptStatus = Field(default=AttemptStatus.ACTIVE)
    project_root: str = Field(description="Absolute root the attempt writes into")
    created_at: str = Field(description="ISO 8601 creation time (UTC)")
    completed_at: str | None = Field(default=None, description="ISO 8601 undo time")
    files: list[AttemptFile] = Field(default_factory=list, description="Touched paths, in order")

    @property
    def is_active(self) -> bool:
        return self.status == AttemptStatus.ACTIVE

    def entry_for(self, relative_path: str) -> AttemptFile | None:
        for entry in self.files:
            if entry.relative_path == relative_path:
                return entry
        return None


class UndoResult(BaseModel):
    attempt_id: str | None = None
    restored_count: int = 0
    already_closed: bool = False

    @property
    def message(self) -> str:
        if self.already_closed or self.restored_count == 0:
            return "No changes to undo."
        return f"Undo complete. Restored {self.restored_count} file(s)."


class AttemptSummary(BaseModel):
    """Short view of an attempt for status displays."""

    id: str
    created_at: str
    file_count: int
    project_root: str
    files: list[str] = Field(default_factory=list)

    @classmethod
    def of(cls, attempt: ApplyAttempt) -> AttemptSummary:
        return cls(
            id=attempt.id,
            created_at=attempt.created_at,
            file_count=len(attempt.files),
            project_root=attempt.project_root,
            files=[entry.relative_path for entry in attempt.files],
        )


class LatestAttemptStatus(BaseModel):
    has_undoable_changes: bool = False
    attempt: AttemptSummary | None = None

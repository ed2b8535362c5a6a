"""
Request and result models for the workspace service.

Every operation returns a result with ``success`` and, on failure, a
:class:`~specme.core.errors.FailureReport`. Nothing raised inside the engine
crosses the service boundary.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field

from specme.core.attempts.models import AttemptSummary
from specme.core.errors import FailureReport
from specme.core.git.models import GitSyncStatus
from specme.core.project.models import ProjectDescriptor, ProjectMode


class SyncTarget(BaseModel):
    """
    What to sync: a remote repository (with optional branch) or a local folder.

    Example:
        >>> SyncTarget.remote("https://github.com/org/repo.git", branch="develop").mode
        <ProjectMode.REMOTE: 'remote'>
    """

    mode: ProjectMode
    url: str = ""
    branch: str = ""
    path: str = ""

    @classmethod
    def remote(cls, url: str, branch: str = "") -> SyncTarget:
        return cls(mode=ProjectMode.REMOTE, url=url.strip(), branch=(branch or "").strip())

    @classmethod
    def local(cls, path: str) -> SyncTarget:
        return cls(mode=ProjectMode.LOCAL, path=path.strip())

    @classmethod
    def from_descriptor(cls, project: ProjectDescriptor) -> SyncTarget:
        if project.mode == ProjectMode.REMOTE:
            return cls.remote(project.repository_url or "", project.branch or "")
        if project.mode == ProjectMode.LOCAL:
            return cls.local(project.root)
        return cls(mode=ProjectMode.NONE)


class OperationResult(BaseModel):
    success: bool = True
    message: str = ""
    failure: FailureReport | None = None


class SyncResult(OperationResult):
    project: ProjectDescriptor = Field(default_factory=ProjectDescriptor.default)
    branch: str | None = None
    sync_status: GitSyncStatus | None = None
    file_count: int = 0
    stashed_changes: bool = Field(
        default=False, description="Uncommitted mirror changes were stashed during sync"
    )
    reconnect_action: str | None = Field(
        default=None, description="'manual' when the user has to reconnect by hand"
    )


class SkippedFile(BaseModel):
    file_name: str
    reason: str


class ApplyResult(OperationResult):
    relative_path: str = ""
    attempt_id: str | None = None
    safety_branch: str | None = None
    project_root: str = ""
    project_mode: ProjectMode = ProjectMode.NONE


class PlanApplyResult(OperationResult):
    attempt_id: str | None = None
    applied: list[str] = Field(default_factory=list)
    skipped: list[SkippedFile] = Field(default_factory=list)
    safety_branch: str | None = None


class AttemptStartResult(OperationResult):
    attempt: AttemptSummary | None = None


class UndoReport(OperationResult):
    attempt_id: str | None = None
    restored_count: int = 0


class AttemptStatusResult(OperationResult):
    has_undoable_changes: bool = False
    attempt: AttemptSummary | None = None


class PublishResult(OperationResult):
    pushed: bool = False
    source_branch: str | None = None
    branch: str | None = Field(default=None, description="Target branch on the remote")
    commit: str | None = Field(default=None, description="SHA of the commit made, if any")
    command: str | None = Field(default=None, description="The push command that was run")
    changes_kept_locally: bool = False
    written: list[str] = Field(default_factory=list)
    skipped: list[SkippedFile] = Field(default_factory=list)


class ForgetResult(OperationResult):
    run_id: str = ""
    deleted: bool = False


class SaveLocalResult(OperationResult):
    destination_root: str = ""
    remembered_destination: str | None = None
    written: int = 0
    files: list[str] = Field(default_factory=list)
    skipped: list[SkippedFile] = Field(default_factory=list)


class RememberedDestination(OperationResult):
    key: str = ""
    destination_path: str | None = None
    exists: bool = False
    missing_reason: str = ""


class ContextResult(OperationResult):
    file_count: int = 0
    context_path: Path | None = None


class FileWrite(BaseModel):
    """A file to write: project-relative name plus full content."""

    file_name: str
    full_code: str


# Edit plans


class PlannedFile(BaseModel):
    file_name: str = Field(description="Project-relative path of the file to write")
    explanation: str = ""
    full_code: str = Field(description="Complete new content of the file")


class EditPlan(BaseModel):
    """
    A structured set of proposed file writes.

    Only ``file_name`` (non-empty) and ``full_code`` (a string) are checked;
    the plan's content is not validated.
    """

    summary: str = ""
    rationale: str = ""
    project_type: str = ""
    risks: list[str] = Field(default_factory=list)
    files: list[PlannedFile] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)


class EditPlanGenerator(Protocol):
    """Produces an edit plan from the codebase context and a change request."""

    def generate(self, context: str, request: str) -> EditPlan: ...


class FileDiff(BaseModel):
    file_name: str
    is_new: bool = False
    diff: str = ""


class PlanPreview(OperationResult):
    files: list[FileDiff] = Field(default_factory=list)


class PlanResult(OperationResult):
    plan: EditPlan | None = None

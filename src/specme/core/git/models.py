"""
Data models for git adapter results.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class GitResult:
    """Outcome of one git invocation."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GitSyncStatus(BaseModel):
    """
    Working-copy status after a sync.

    ``ahead_count``/``behind_count`` are None when they cannot be computed,
    e.g. when there is no remote-tracking branch or HEAD is unborn.
    """

    branch: str | None = Field(default=None, description="Checked-out branch name")
    head_commit: str | None = Field(default=None, description="SHA of HEAD")
    is_dirty: bool = Field(default=False, description="Uncommitted changes present")
    ahead_count: int | None = Field(default=None)
    behind_count: int | None = Field(default=None)
    head_valid: bool = Field(default=False, description="HEAD points at a commit")

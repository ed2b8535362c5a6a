"""
Data models for repository sync.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from specme.core.git.models import GitSyncStatus


class SyncOutcome(BaseModel):
    """
    Result of syncing a remote repository into its mirror.

    Example:
        >>> outcome.mirror_path
        PosixPath('/home/me/.local/share/specme/external_repos/org__repo')
        >>> outcome.branch
        'main'
    """

    mirror_path: Path = Field(description="Working copy of the synced repository")
    branch: str = Field(description="Checked-out branch")
    sync_status: GitSyncStatus | None = Field(
        default=None,
        description="Best-effort status; None if it could not be computed",
    )
    cloned: bool = Field(default=False, description="A fresh clone was made")
    recovered: bool = Field(
        default=False,
        description="An existing mirror was found corrupted and re-cloned",
    )
    empty_remote: bool = Field(default=False, description="The remote has no branches yet")
    stashed_changes: bool = Field(
        default=False,
        description="Uncommitted mirror changes were stashed before checkout",
    )

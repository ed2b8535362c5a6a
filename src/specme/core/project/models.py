"""
Data models for the active project and run history.

The active project is a single descriptor: which working copy specme reads
from and writes to. Run history keeps one snapshot of a descriptor per run
so a past session can be reconnected later.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class ProjectMode(str, Enum):
    """Where the working copy came from."""

    REMOTE = "remote"
    LOCAL = "local"
    NONE = "none"


class ConnectionStatus(str, Enum):
    CONNECTED = "connected"
    FAILED = "failed"
    DISCONNECTED = "disconnected"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProjectDescriptor(BaseModel):
    """
    The sync target currently in use.

    ``mode == remote`` implies ``repository_url`` is set (redacted form) and
    ``root`` is a mirror under the managed mirrors directory. A failed
    descriptor has an empty ``root`` so nothing can be indexed or written.

    Example:
        >>> ProjectDescriptor.default().mode
        <ProjectMode.NONE: 'none'>
        >>> ProjectDescriptor.failed("Repository not found.").root
        ''
    """

    mode: ProjectMode = Field(default=ProjectMode.NONE)
    root: str = Field(default="", description="Absolute path of the working copy")
    source: str = Field(default="workspace", description="Human-readable origin label")
    repository_url: str | None = Field(default=None, description="Redacted repository URL")
    branch: str | None = Field(default=None, description="Checked-out branch (remote only)")
    connection_status: ConnectionStatus = Field(default=ConnectionStatus.DISCONNECTED)
    last_connection_error: str | None = Field(default=None)

    @classmethod
    def default(cls) -> ProjectDescriptor:
        return cls()

    @classmethod
    def failed(cls, message: str) -> ProjectDescriptor:
        return cls(
            connection_status=ConnectionStatus.FAILED,
            last_connection_error=message,
        )

    @classmethod
    def remote(cls, root: str, repository_url: str, branch: str) -> ProjectDescriptor:
        return cls(
            mode=ProjectMode.REMOTE,
            root=root,
            source=f"github:{repository_url}#{branch}",
            repository_url=repository_url,
            branch=branch,
            connection_status=ConnectionStatus.CONNECTED,
        )

    @classmethod
    def local(cls, root: str) -> ProjectDescriptor:
        return cls(
            mode=ProjectMode.LOCAL,
            root=root,
            source=f"local:{root}",
            connection_status=ConnectionStatus.CONNECTED,
        )

    @property
    def is_remote(self) -> bool:
        return self.mode == ProjectMode.REMOTE

    @property
    def is_connected(self) -> bool:
        return self.connection_status == ConnectionStatus.CONNECTED


class RunSnapshot(BaseModel):
    """
    A descriptor remembered for one run, for reconnect-from-history.

    Example:
        >>> snap = RunSnapshot.of("run-42", descriptor)
        >>> snap.to_descriptor().root == descriptor.root
        True
    """

    run_id: str
    project_type: ProjectMode = Field(default=ProjectMode.NONE)
    repository_url: str | None = None
    branch: str | None = None
    working_copy_path: str | None = Field(default=None, description="Mirror path (remote)")
    local_folder_path: str | None = Field(default=None, description="Folder path (local)")
    source: str = "workspace"
    connection_status: ConnectionStatus = Field(default=ConnectionStatus.DISCONNECTED)
    last_connection_error: str | None = None
    last_opened_at: str = Field(default_factory=_now)
    last_sync_at: str | None = None

    @classmethod
    def of(cls, run_id: str, descriptor: ProjectDescriptor) -> RunSnapshot:
        now = _now()
        return cls(
            run_id=run_id,
            project_type=descriptor.mode,
            repository_url=descriptor.repository_url,
            branch=descriptor.branch,
            working_copy_path=descriptor.root if descriptor.is_remote else None,
            local_folder_path=descriptor.root if descriptor.mode == ProjectMode.LOCAL else None,
            source=descriptor.source,
            connection_status=descriptor.connection_status,
            last_connection_error=descriptor.last_connection_error,
            last_opened_at=now,
            last_sync_at=now,
        )

    @property
    def root(self) -> str:
        return self.working_copy_path or self.local_folder_path or ""

    def to_descriptor(self) -> ProjectDescriptor:
        return ProjectDescriptor(
            mode=self.project_type,
            root=self.root,
            source=self.source,
            repository_url=self.repository_url,
            branch=self.branch,
            connection_status=self.connection_status,
            last_connection_error=self.last_connection_error,
        )

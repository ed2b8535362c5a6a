"""
Active project state.

Exactly one descriptor is active per data directory. It is loaded from the
state store at the start of every operation and replaced wholesale by sync,
disconnect and reconnect-from-history.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from pydantic import ValidationError

from specme.core.config.models import SpecMeConfig
from specme.core.errors import ErrorCode, ProjectNotReady
from specme.core.git.adapter import GitAdapter
from specme.core.project.models import ConnectionStatus, ProjectDescriptor, ProjectMode
from specme.core.sandbox.paths import canonicalize, is_inside, is_inside_any
from specme.core.store.state import StateStore

logger = logging.getLogger(__name__)

ACTIVE_PROJECT_KEY = "active_project"


class ActiveProjectState:
    """
    Load, store and validate the active project descriptor.

    Example:
        >>> state = ActiveProjectState(store, config, GitAdapter())
        >>> project = state.assert_ready()
        >>> project.root
        '/home/me/.local/share/specme/external_repos/org__repo'
    """

    def __init__(self, store: StateStore, config: SpecMeConfig, git: GitAdapter) -> None:
        self.store = store
        self.config = config
        self.git = git

    def load(self, conn: sqlite3.Connection | None = None) -> ProjectDescriptor:
        """
        The stored descriptor, or the default one if none is stored.

        A stored failed descriptor is returned as is (with its empty root).
        An unreadable record falls back to the default descriptor.
        """
        record = self.store.get_value(ACTIVE_PROJECT_KEY, conn)
        if record is None:
            return ProjectDescriptor.default()
        try:
            return ProjectDescriptor.model_validate(record)
        except ValidationError as e:
            logger.warning("Ignoring unreadable active project record: %s", e)
            return ProjectDescriptor.default()

    def save(self, project: ProjectDescriptor, conn: sqlite3.Connection | None = None) -> None:
        self.store.put_value(ACTIVE_PROJECT_KEY, project.model_dump(mode="json"), conn)
        logger.debug(
            "Active project: mode=%s status=%s root=%s",
            project.mode.value,
            project.connection_status.value,
            project.root,
        )

    def mark_failed(self, message: str) -> ProjectDescriptor:
        """Store a failed descriptor with an empty root."""
        project = ProjectDescriptor.failed(message)
        self.save(project)
        return project

    def disconnect(self) -> ProjectDescriptor:
        project = ProjectDescriptor.default()
        self.save(project)
        return project

    def assert_ready(self, project: ProjectDescriptor | None = None) -> ProjectDescriptor:
        """
        Fail closed unless the project can be read from and written to.

        Args:
            project: Descriptor to check; defaults to the stored one

        Returns:
            The checked descriptor

        Raises:
            ProjectNotReady: With a distinct code per failed check
        """
        if project is None:
            if self.store.get_value(ACTIVE_PROJECT_KEY) is None:
                raise ProjectNotReady(
                    "No active project is selected. Connect a project first.",
                    code=ErrorCode.NO_PROJECT,
                )
            project = self.load()

        if project.connection_status == ConnectionStatus.FAILED:
            raise ProjectNotReady(
                project.last_connection_error or "Project connection failed. Reconnect and retry.",
                code=ErrorCode.CONNECTION_FAILED,
            )
        if project.mode == ProjectMode.NONE:
            raise ProjectNotReady(
                "No project connected. Connect a GitHub repository or local folder first.",
                code=ErrorCode.NOT_CONNECTED,
            )
        if not project.root.strip():
            raise ProjectNotReady(
                "No active project path. The project connection is invalid. Reconnect from Sync.",
                code=ErrorCode.PROJECT_PATH_MISSING,
            )

        root = Path(project.root)
        if not root.is_dir():
            raise ProjectNotReady(
                f"Project folder does not exist: {project.root}. Reconnect and retry.",
                code=ErrorCode.FOLDER_MISSING,
            )

        resolved = canonicalize(root)
        if project.mode == ProjectMode.LOCAL:
            if is_inside_any(self.config.internal_roots(), resolved):
                raise ProjectNotReady(
                    "Selected project path points to SpecMe internal folders. Reconnect using "
                    "your target repository/folder outside the SpecMe app directory.",
                    code=ErrorCode.INTERNAL_FOLDER_BLOCKED,
                )
        elif project.is_remote:
            if not is_inside(canonicalize(self.config.paths.mirrors_root), resolved):
                raise ProjectNotReady(
                    "GitHub mode active but project path is outside the managed GitHub working "
                    "copies. Reconnect the GitHub project from Sync.",
                    code=ErrorCode.MIRROR_OUTSIDE_MANAGED_ROOT,
                )
            if not self.git.is_repository(resolved):
                raise ProjectNotReady(
                    "GitHub mode active but target path is not a valid git repository. This may "
                    "indicate a project source mismatch. Reconnect the GitHub project from Sync.",
                    code=ErrorCode.NOT_A_REPOSITORY,
                )
        return project

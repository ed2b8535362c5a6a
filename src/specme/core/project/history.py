"""
Run history: which project each run was working on.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from specme.core.git.urls import redact_repo_url
from specme.core.project.models import (
    ConnectionStatus,
    ProjectDescriptor,
    ProjectMode,
    RunSnapshot,
)
from specme.core.project.state import ActiveProjectState
from specme.core.store.state import StateStore, utc_now

logger = logging.getLogger(__name__)


class RunHistory:
    """
    Snapshots of project descriptors keyed by run id.

    Example:
        >>> history = RunHistory(store, state)
        >>> history.remember("run-42", project)
        >>> [entry.run_id for entry in history.list()]
        ['run-42']
    """

    def __init__(self, store: StateStore, state: ActiveProjectState) -> None:
        self.store = store
        self.state = state

    @property
    def host(self) -> str:
        return self.state.config.forge.host

    def remember(self, run_id: str, project: ProjectDescriptor) -> RunSnapshot:
        snapshot = RunSnapshot.of(run_id, project)
        self._put(snapshot)
        return snapshot

    def get(self, run_id: str) -> RunSnapshot | None:
        data = self.store.get_run(run_id)
        if data is None:
            return None
        return self._parse(run_id, data)

    def list(self) -> list[RunSnapshot]:
        """All snapshots, most recently opened first."""
        snapshots = []
        for run_id, data in self.store.list_runs():
            snapshot = self._parse(run_id, data)
            if snapshot is not None:
                snapshots.append(snapshot)
        return snapshots

    def forget(self, run_id: str) -> bool:
        """Delete a snapshot. Returns False if there was none."""
        return self.store.delete_run(run_id)

    def mark_connected(self, previous: RunSnapshot, project: ProjectDescriptor) -> RunSnapshot:
        snapshot = RunSnapshot.of(previous.run_id, project)
        self._put(snapshot)
        return snapshot

    def mark_failed(self, previous: RunSnapshot, message: str) -> RunSnapshot:
        snapshot = previous.model_copy(
            update={
                "connection_status": ConnectionStatus.FAILED,
                "last_connection_error": message,
                "last_opened_at": utc_now(),
            }
        )
        self._put(snapshot)
        return snapshot

    def branch_hints(self, repository_url: str) -> list[str]:
        """
        Branches previously used with ``repository_url``.

        The active project's branch comes first, then branches from run
        snapshots of the same repository. Order is kept, duplicates dropped.
        """
        target = self._redact(repository_url)
        candidates: list[str | None] = []

        active = self.state.load()
        if active.is_remote and active.repository_url:
            if self._redact(active.repository_url) == target:
                candidates.append(active.branch)

        for snapshot in self.list():
            if snapshot.project_type != ProjectMode.REMOTE or not snapshot.repository_url:
                continue
            if self._redact(snapshot.repository_url) == target:
                candidates.append(snapshot.branch)

        hints: list[str] = []
        for branch in candidates:
            clean = (branch or "").strip()
            if clean and clean not in hints:
                hints.append(clean)
        return hints

    def _redact(self, url: str) -> str:
        return redact_repo_url(url, self.host)

    def _put(self, snapshot: RunSnapshot) -> None:
        self.store.put_run(
            snapshot.run_id,
            snapshot.model_dump(mode="json", exclude={"run_id"}),
            snapshot.last_opened_at,
        )

    @staticmethod
    def _parse(run_id: str, data: dict) -> RunSnapshot | None:
        try:
            return RunSnapshot.model_validate({**data, "run_id": run_id})
        except ValidationError as e:
            logger.warning("Skipping unreadable history entry %s: %s", run_id, e)
            return None

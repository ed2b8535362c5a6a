"""
Tests for the active project descriptor and run history.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from specme.core.config.models import SpecMeConfig
from specme.core.errors import ErrorCode, ProjectNotReady
from specme.core.git.adapter import GitAdapter
from specme.core.project import (
    ACTIVE_PROJECT_KEY,
    ActiveProjectState,
    ConnectionStatus,
    ProjectDescriptor,
    ProjectMode,
    RunHistory,
)
from specme.core.store import StateStore

from conftest import run_git


@pytest.fixture
def store(config: SpecMeConfig) -> StateStore:
    return StateStore(config.paths.state_db_path)


@pytest.fixture
def state(store: StateStore, config: SpecMeConfig) -> ActiveProjectState:
    return ActiveProjectState(store, config, GitAdapter(config.git))


@pytest.fixture
def history(store: StateStore, state: ActiveProjectState) -> RunHistory:
    return RunHistory(store, state)


def remote_descriptor(config: SpecMeConfig, branch: str = "main") -> ProjectDescriptor:
    return ProjectDescriptor.remote(
        str(config.paths.mirrors_root / "org__repo"), "https://github.com/org/repo.git", branch
    )


class TestLoadSave:
    def test_default_when_nothing_stored(self, state: ActiveProjectState) -> None:
        project = state.load()

        assert project.mode == ProjectMode.NONE
        assert project.root == ""
        assert project.connection_status == ConnectionStatus.DISCONNECTED

    def test_round_trip(self, state: ActiveProjectState, local_project: Path) -> None:
        state.save(ProjectDescriptor.local(str(local_project)))

        project = state.load()

        assert project.mode == ProjectMode.LOCAL
        assert project.source == f"local:{local_project}"
        assert project.is_connected

    def test_unreadable_record_falls_back(
        self, state: ActiveProjectState, store: StateStore
    ) -> None:
        store.put_value(ACTIVE_PROJECT_KEY, {"mode": "ftp"})

        assert state.load().mode == ProjectMode.NONE

    def test_mark_failed_clears_root(
        self, state: ActiveProjectState, local_project: Path
    ) -> None:
        state.save(ProjectDescriptor.local(str(local_project)))

        state.mark_failed("Repository not found.")

        project = state.load()
        assert project.root == ""
        assert project.connection_status == ConnectionStatus.FAILED
        assert project.last_connection_error == "Repository not found."

    def test_disconnect(self, state: ActiveProjectState, local_project: Path) -> None:
        state.save(ProjectDescriptor.local(str(local_project)))

        state.disconnect()

        assert state.load().mode == ProjectMode.NONE


class TestAssertReady:
    def test_nothing_stored(self, state: ActiveProjectState) -> None:
        with pytest.raises(ProjectNotReady) as exc_info:
            state.assert_ready()
        assert exc_info.value.code == ErrorCode.NO_PROJECT

    def test_failed_connection(self, state: ActiveProjectState) -> None:
        state.mark_failed("Authentication failed for GitHub.")

        with pytest.raises(ProjectNotReady) as exc_info:
            state.assert_ready()

        assert exc_info.value.code == ErrorCode.CONNECTION_FAILED
        assert str(exc_info.value) == "Authentication failed for GitHub."

    def test_not_connected(self, state: ActiveProjectState) -> None:
        state.disconnect()

        with pytest.raises(ProjectNotReady) as exc_info:
            state.assert_ready()
        assert exc_info.value.code == ErrorCode.NOT_CONNECTED

    def test_empty_root(self, state: ActiveProjectState) -> None:
        project = ProjectDescriptor(mode=ProjectMode.LOCAL, connection_status="connected")

        with pytest.raises(ProjectNotReady) as exc_info:
            state.assert_ready(project)
        assert exc_info.value.code == ErrorCode.PROJECT_PATH_MISSING

    def test_missing_folder(self, state: ActiveProjectState, tmp_path: Path) -> None:
        project = ProjectDescriptor.local(str(tmp_path / "gone"))

        with pytest.raises(ProjectNotReady) as exc_info:
            state.assert_ready(project)
        assert exc_info.value.code == ErrorCode.FOLDER_MISSING

    def test_local_inside_internal_folder(
        self, state: ActiveProjectState, config: SpecMeConfig
    ) -> None:
        inside = config.paths.data_dir / "scratch"
        inside.mkdir(parents=True)

        with pytest.raises(ProjectNotReady) as exc_info:
            state.assert_ready(ProjectDescriptor.local(str(inside)))
        assert exc_info.value.code == ErrorCode.INTERNAL_FOLDER_BLOCKED

    def test_local_ready(self, state: ActiveProjectState, local_project: Path) -> None:
        project = ProjectDescriptor.local(str(local_project))

        assert state.assert_ready(project) == project

    def test_remote_outside_mirrors(self, state: ActiveProjectState, git_repo: Path) -> None:
        project = ProjectDescriptor.remote(str(git_repo), "https://github.com/o/r.git", "main")

        with pytest.raises(ProjectNotReady) as exc_info:
            state.assert_ready(project)
        assert exc_info.value.code == ErrorCode.MIRROR_OUTSIDE_MANAGED_ROOT

    def test_remote_not_a_repository(
        self, state: ActiveProjectState, config: SpecMeConfig
    ) -> None:
        project = remote_descriptor(config)
        Path(project.root).mkdir(parents=True)

        with pytest.raises(ProjectNotReady) as exc_info:
            state.assert_ready(project)
        assert exc_info.value.code == ErrorCode.NOT_A_REPOSITORY

    def test_remote_ready(self, state: ActiveProjectState, config: SpecMeConfig) -> None:
        project = remote_descriptor(config)
        Path(project.root).mkdir(parents=True)
        run_git("init", cwd=Path(project.root))

        assert state.assert_ready(project) == project


class TestRunHistory:
    def test_remember_and_get(
        self, history: RunHistory, local_project: Path
    ) -> None:
        history.remember("run-1", ProjectDescriptor.local(str(local_project)))

        snapshot = history.get("run-1")

        assert snapshot is not None
        assert snapshot.project_type == ProjectMode.LOCAL
        assert snapshot.local_folder_path == str(local_project)
        assert snapshot.working_copy_path is None
        assert snapshot.to_descriptor().root == str(local_project)

    def test_missing(self, history: RunHistory) -> None:
        assert history.get("nope") is None

    def test_list_most_recent_first(self, history: RunHistory, local_project: Path) -> None:
        project = ProjectDescriptor.local(str(local_project))
        history.remember("run-1", project)
        history.remember("run-2", project)
        history.remember("run-1", project)

        assert [s.run_id for s in history.list()] == ["run-1", "run-2"]

    def test_forget(self, history: RunHistory, local_project: Path) -> None:
        history.remember("run-1", ProjectDescriptor.local(str(local_project)))

        assert history.forget("run-1")
        assert not history.forget("run-1")
        assert history.list() == []

    def test_mark_failed_keeps_paths(self, history: RunHistory, config: SpecMeConfig) -> None:
        snapshot = history.remember("run-1", remote_descriptor(config))

        failed = history.mark_failed(snapshot, "Repository not found.")

        assert failed.connection_status == ConnectionStatus.FAILED
        assert failed.working_copy_path == snapshot.working_copy_path
        stored = history.get("run-1")
        assert stored is not None
        assert stored.last_connection_error == "Repository not found."

    def test_branch_hints(
        self, history: RunHistory, state: ActiveProjectState, config: SpecMeConfig
    ) -> None:
        history.remember("run-1", remote_descriptor(config, "develop"))
        history.remember("run-2", remote_descriptor(config, "feature/x"))
        history.remember(
            "run-3",
            ProjectDescriptor.remote(
                str(config.paths.mirrors_root / "org__other"),
                "https://github.com/org/other.git",
                "other-branch",
            ),
        )
        state.save(remote_descriptor(config, "main"))

        hints = history.branch_hints("https://token:x@github.com/org/repo")

        assert hints == ["main", "feature/x", "develop"]

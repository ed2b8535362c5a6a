"""
Tests for publishing: commit, push, and push rejection.

Pushes go to bare repositories of the fake forge; branch protection is
simulated with a pre-receive hook that prints GitHub's GH006 message.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from specme.core.config.models import SpecMeConfig
from specme.core.errors import ErrorCode
from specme.core.services import FileWrite, SyncTarget, WorkspaceService

from conftest import FakeForge, run_git


def connect(service: WorkspaceService, forge: FakeForge, repo: str = "org/repo") -> Path:
    url = forge.create(repo, {"main": {"README.md": "# main\n"}})
    result = service.sync(SyncTarget.remote(url))
    assert result.success, result.message
    return Path(result.project.root)


@pytest.fixture
def service(config: SpecMeConfig) -> WorkspaceService:
    return WorkspaceService(config)


@pytest.fixture
def plain_service(config: SpecMeConfig) -> WorkspaceService:
    """Service that writes straight onto the synced branch."""
    git_config = config.git.model_copy(update={"safety_branches": False})
    return WorkspaceService(config.model_copy(update={"git": git_config}))


class TestPublish:
    def test_commits_and_pushes_safety_branch_to_target(
        self, service: WorkspaceService, forge: FakeForge
    ) -> None:
        connect(service, forge)
        applied = service.apply_file("docs/guide.md", "guide\n")

        result = service.publish("Add guide")

        assert result.success, result.message
        assert result.pushed
        assert result.source_branch == applied.safety_branch
        assert result.branch == "main"
        assert result.commit == forge.head_sha("org/repo", "main")
        assert result.message == f"Committed and pushed {applied.safety_branch} to main"
        assert result.command == (
            f"git push --set-upstream origin {applied.safety_branch}:main"
        )
        assert forge.show("org/repo", "main", "docs/guide.md") == "guide"

    def test_default_commit_message(
        self, plain_service: WorkspaceService, forge: FakeForge
    ) -> None:
        mirror = connect(plain_service, forge)
        plain_service.apply_file("a.md", "a")

        plain_service.publish()

        assert run_git("log", "-1", "--format=%s", cwd=mirror) == "SpecMe automated updates"

    def test_nothing_to_publish(self, service: WorkspaceService, forge: FakeForge) -> None:
        connect(service, forge)

        result = service.publish()

        assert result.success
        assert not result.pushed
        assert result.message == "No local changes to commit."

    def test_writes_files_before_commit(
        self, service: WorkspaceService, forge: FakeForge
    ) -> None:
        connect(service, forge)
        files = [
            FileWrite(file_name="one.md", full_code="1\n"),
            FileWrite(file_name=".env", full_code="SECRET=x\n"),
        ]

        result = service.publish("batch", files)

        assert result.pushed
        assert result.written == ["one.md"]
        assert [s.file_name for s in result.skipped] == [".env"]
        assert result.source_branch is not None
        assert result.source_branch.startswith("specme/push-batch-")
        assert forge.show("org/repo", "main", "one.md") == "1"

    def test_local_mode_rejected(
        self, service: WorkspaceService, local_project: Path
    ) -> None:
        service.sync(SyncTarget.local(str(local_project)))

        result = service.publish()

        assert result.failure is not None
        assert result.failure.reason == ErrorCode.INVALID_REQUEST.value
        assert result.message == "Push is only available for GitHub project mode."

    def test_no_project(self, service: WorkspaceService) -> None:
        result = service.publish()

        assert result.failure is not None
        assert result.failure.reason == ErrorCode.INVALID_REQUEST.value


class TestRejectedPush:
    def test_protected_branch_keeps_commit(
        self, plain_service: WorkspaceService, forge: FakeForge
    ) -> None:
        mirror = connect(plain_service, forge)
        before = forge.head_sha("org/repo", "main")
        forge.protect("org/repo", "main")
        plain_service.apply_file("README.md", "# changed\n")

        result = plain_service.publish("Change readme")

        assert not result.success
        assert not result.pushed
        assert result.changes_kept_locally
        assert result.failure is not None
        assert result.failure.reason == ErrorCode.REMOTE_REJECTED.value
        assert result.failure.exact_reason.startswith("GH006: Protected branch update failed")
        assert result.command == "git push --set-upstream origin main"
        assert result.commit == run_git("rev-parse", "HEAD", cwd=mirror)
        assert forge.head_sha("org/repo", "main") == before

    def test_retry_pushes_kept_commit(
        self, plain_service: WorkspaceService, forge: FakeForge
    ) -> None:
        mirror = connect(plain_service, forge)
        forge.protect("org/repo", "main")
        plain_service.apply_file("README.md", "# changed\n")
        rejected = plain_service.publish("Change readme")
        forge.unprotect("org/repo")

        result = plain_service.publish()

        assert result.pushed
        assert result.commit is None
        assert result.message == "Pushed main to main"
        assert forge.head_sha("org/repo", "main") == rejected.commit
        assert forge.head_sha("org/repo", "main") == run_git("rev-parse", "HEAD", cwd=mirror)

    def test_non_fast_forward(
        self, plain_service: WorkspaceService, forge: FakeForge
    ) -> None:
        connect(plain_service, forge)
        forge.commit("org/repo", "main", {"upstream.md": "newer\n"})
        plain_service.apply_file("local.md", "local\n")

        result = plain_service.publish()

        assert result.failure is not None
        assert result.failure.reason == ErrorCode.NON_FAST_FORWARD.value
        assert result.changes_kept_locally

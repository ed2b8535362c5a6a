"""
Tests for apply attempts: snapshot, undo and status.
"""

from __future__ import annotations

import stat
from pathlib import Path
from unittest.mock import patch

import pytest

from specme.core.attempts import AttemptManager
from specme.core.attempts.models import AttemptFile, AttemptStatus
from specme.core.errors import (
    AttemptNotActive,
    AttemptNotFound,
    AttemptWrongProject,
    PathViolation,
)
from specme.core.sandbox.paths import resolve_in_root
from specme.core.store import StateStore


@pytest.fixture
def manager(tmp_path: Path) -> AttemptManager:
    return AttemptManager(StateStore(tmp_path / "state.db"), tmp_path / "sessions")


@pytest.fixture
def root(local_project: Path) -> Path:
    return local_project


class TestStart:
    def test_start_creates_active_attempt(self, manager: AttemptManager, root: Path) -> None:
        attempt = manager.start(root)

        assert attempt.id.startswith("attempt-")
        assert attempt.status == AttemptStatus.ACTIVE
        assert attempt.project_root == str(root.resolve())
        assert manager.backup_dir(attempt.id).is_dir()
        assert manager.get(attempt.id) == attempt

    def test_ids_are_unique(self, manager: AttemptManager, root: Path) -> None:
        assert manager.start(root).id != manager.start(root).id

    def test_get_unknown(self, manager: AttemptManager) -> None:
        with pytest.raises(AttemptNotFound):
            manager.get("attempt-0-deadbeef")


class TestSnapshot:
    def test_existing_file_is_backed_up(self, manager: AttemptManager, root: Path) -> None:
        attempt = manager.start(root)

        updated = manager.snapshot(attempt.id, root, "README.md")

        entry = updated.files[0]
        assert entry == AttemptFile(
            relative_path="README.md", existed_before=True, backup_ref="1.bak"
        )
        backup = manager.backup_dir(attempt.id) / "1.bak"
        assert backup.read_text() == "# Local project\n"

    def test_new_file_has_no_backup(self, manager: AttemptManager, root: Path) -> None:
        attempt = manager.start(root)

        updated = manager.snapshot(attempt.id, root, "docs/new.md")

        assert updated.files[0].existed_before is False
        assert updated.files[0].backup_ref is None

    def test_idempotent_per_path(self, manager: AttemptManager, root: Path) -> None:
        attempt = manager.start(root)
        manager.snapshot(attempt.id, root, "README.md")
        (root / "README.md").write_text("first write\n")

        updated = manager.snapshot(attempt.id, root, "./README.md")

        assert len(updated.files) == 1
        # backup still holds the pre-attempt content
        assert (manager.backup_dir(attempt.id) / "1.bak").read_text() == "# Local project\n"

    def test_escape_rejected(self, manager: AttemptManager, root: Path) -> None:
        attempt = manager.start(root)

        with pytest.raises(PathViolation):
            manager.snapshot(attempt.id, root, "../outside.txt")

    def test_wrong_project(self, manager: AttemptManager, root: Path, tmp_path: Path) -> None:
        other = tmp_path / "other"
        other.mkdir()
        attempt = manager.start(root)

        with pytest.raises(AttemptWrongProject):
            manager.snapshot(attempt.id, other, "README.md")

    def test_not_active(self, manager: AttemptManager, root: Path) -> None:
        attempt = manager.start(root)
        manager.undo(attempt.id)

        with pytest.raises(AttemptNotActive):
            manager.snapshot(attempt.id, root, "README.md")

    def test_unknown_attempt(self, manager: AttemptManager, root: Path) -> None:
        with pytest.raises(AttemptNotFound):
            manager.snapshot("attempt-0-deadbeef", root, "README.md")


class TestUndo:
    def test_restores_and_deletes(self, manager: AttemptManager, root: Path) -> None:
        attempt = manager.start(root)
        manager.snapshot(attempt.id, root, "README.md")
        (root / "README.md").write_text("changed\n")
        manager.snapshot(attempt.id, root, "src/new.py")
        (root / "src" / "new.py").write_text("new\n")

        result = manager.undo(attempt.id)

        assert result.restored_count == 2
        assert result.message == "Undo complete. Restored 2 file(s)."
        assert (root / "README.md").read_text() == "# Local project\n"
        assert not (root / "src" / "new.py").exists()
        assert manager.get(attempt.id).status == AttemptStatus.UNDONE
        assert manager.get(attempt.id).completed_at is not None

    def test_restores_deleted_file(self, manager: AttemptManager, root: Path) -> None:
        attempt = manager.start(root)
        manager.snapshot(attempt.id, root, "src/app.py")
        (root / "src" / "app.py").unlink()

        manager.undo(attempt.id)

        assert (root / "src" / "app.py").read_text() == "print('hello')\n"

    def test_created_file_already_gone(self, manager: AttemptManager, root: Path) -> None:
        attempt = manager.start(root)
        manager.snapshot(attempt.id, root, "never-written.txt")

        assert manager.undo(attempt.id).restored_count == 1

    def test_replays_last_touched_first(self, manager: AttemptManager, root: Path) -> None:
        attempt = manager.start(root)
        for name in ("a.md", "b.md", "c.md"):
            manager.snapshot(attempt.id, root, name)
            (root / name).write_text(f"{name}\n")

        with patch(
            "specme.core.attempts.service.resolve_in_root", wraps=resolve_in_root
        ) as resolve:
            result = manager.undo(attempt.id)

        assert [c.args[1] for c in resolve.call_args_list] == ["c.md", "b.md", "a.md"]
        assert result.restored_count == 3
        assert not any((root / name).exists() for name in ("a.md", "b.md", "c.md"))

    def test_same_file_touched_twice_restores_original(
        self, manager: AttemptManager, root: Path
    ) -> None:
        attempt = manager.start(root)
        for content in ("first\n", "second\n"):
            manager.snapshot(attempt.id, root, "README.md")
            (root / "README.md").write_text(content)
        manager.snapshot(attempt.id, root, "src/app.py")
        (root / "src" / "app.py").write_text("changed\n")

        manager.undo(attempt.id)

        assert (root / "README.md").read_text() == "# Local project\n"
        assert (root / "src" / "app.py").read_text() == "print('hello')\n"

    def test_restores_file_mode(self, manager: AttemptManager, root: Path) -> None:
        script = root / "run.sh"
        script.write_text("#!/bin/sh\necho hi\n")
        script.chmod(0o755)
        attempt = manager.start(root)
        manager.snapshot(attempt.id, root, "run.sh")
        script.chmod(0o644)
        script.write_text("#!/bin/sh\necho changed\n")

        manager.undo(attempt.id)

        assert stat.S_IMODE(script.stat().st_mode) == 0o755
        assert script.read_text() == "#!/bin/sh\necho hi\n"

    def test_second_undo_is_noop(self, manager: AttemptManager, root: Path) -> None:
        attempt = manager.start(root)
        manager.snapshot(attempt.id, root, "README.md")
        manager.undo(attempt.id)

        result = manager.undo(attempt.id)

        assert result.already_closed
        assert result.restored_count == 0
        assert result.message == "No changes to undo."

    def test_unknown(self, manager: AttemptManager) -> None:
        with pytest.raises(AttemptNotFound):
            manager.undo("attempt-0-deadbeef")


class TestLatestStatus:
    def test_no_attempts(self, manager: AttemptManager, root: Path) -> None:
        status = manager.latest_status(root)

        assert not status.has_undoable_changes
        assert status.attempt is None

    def test_empty_attempt_is_not_undoable(self, manager: AttemptManager, root: Path) -> None:
        attempt = manager.start(root)

        status = manager.latest_status(root)

        assert status.attempt is not None
        assert status.attempt.id == attempt.id
        assert not status.has_undoable_changes

    def test_latest_active_wins(self, manager: AttemptManager, root: Path) -> None:
        manager.start(root)
        newer = manager.start(root)
        manager.snapshot(newer.id, root, "README.md")

        status = manager.latest_status(root)

        assert status.has_undoable_changes
        assert status.attempt is not None
        assert status.attempt.id == newer.id
        assert status.attempt.files == ["README.md"]

    def test_undone_attempts_ignored(self, manager: AttemptManager, root: Path) -> None:
        attempt = manager.start(root)
        manager.undo(attempt.id)

        assert manager.find_latest_active(root) is None

"""
Apply/undo session manager.

Attempt records live in the state database; backup blobs live on disk under
``<sessions_root>/<attempt_id>/<n>.bak``. Snapshot and undo run inside a
``BEGIN IMMEDIATE`` transaction and under a per-attempt lock, so concurrent
callers cannot record the same path twice or undo an attempt twice.
"""

from __future__ import annotations

import logging
import secrets
import shutil
import threading
import time
from pathlib import Path

from specme.core.attempts.models import (
    ApplyAttempt,
    AttemptFile,
    AttemptStatus,
    AttemptSummary,
    LatestAttemptStatus,
    UndoResult,
)
from specme.core.errors import AttemptNotActive, AttemptNotFound, AttemptWrongProject
from specme.core.sandbox.paths import canonicalize, normalize_relative_path, resolve_in_root
from specme.core.store.state import StateStore, utc_now

logger = logging.getLogger(__name__)

_locks_guard = threading.Lock()
_attempt_locks: dict[str, threading.Lock] = {}


def _lock_for(attempt_id: str) -> threading.Lock:
    with _locks_guard:
        lock = _attempt_locks.get(attempt_id)
        if lock is None:
            lock = threading.Lock()
            _attempt_locks[attempt_id] = lock
        return lock


def make_attempt_id() -> str:
    """Opaque, time-ordered attempt id."""
    return f"attempt-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def _same_root(a: str | Path, b: str | Path) -> bool:
    return str(canonicalize(a)) == str(canonicalize(b))


class AttemptManager:
    """
    Creates attempts, snapshots files before they are written, and undoes
    attempts in reverse order.

    Example:
        >>> manager = AttemptManager(store, config.paths.sessions_root)
        >>> attempt = manager.start(root)
        >>> manager.snapshot(attempt.id, root, "src/app.py")
        >>> (root / "src/app.py").write_text("changed")
        >>> manager.undo(attempt.id).restored_count
        1
    """

    def __init__(self, store: StateStore, sessions_root: Path) -> None:
        self.store = store
        self.sessions_root = Path(sessions_root)

    def backup_dir(self, attempt_id: str) -> Path:
        return self.sessions_root / attempt_id

    def start(self, project_root: Path | str) -> ApplyAttempt:
        """Create a new, empty, active attempt for ``project_root``."""
        attempt = ApplyAttempt(
            id=make_attempt_id(),
            project_root=str(canonicalize(project_root)),
            created_at=utc_now(),
        )
        self.backup_dir(attempt.id).mkdir(parents=True, exist_ok=True)
        self.store.save_attempt(attempt.model_dump(mode="json"))
        logger.info("Started apply attempt %s for %s", attempt.id, attempt.project_root)
        return attempt

    def get(self, attempt_id: str) -> ApplyAttempt:
        """
        Load an attempt.

        Raises:
            AttemptNotFound: If no attempt has this id
        """
        record = self.store.get_attempt(attempt_id)
        if record is None:
            raise AttemptNotFound(f"Apply attempt not found: {attempt_id}")
        return ApplyAttempt.model_validate(record)

    def snapshot(
        self, attempt_id: str, project_root: Path | str, relative_path: str
    ) -> ApplyAttempt:
        """
        Record ``relative_path`` in the attempt before it is written.

        Idempotent per path: only the first call copies a backup, so undo
        always restores the content from before the attempt.

        Raises:
            AttemptNotFound: Unknown attempt id
            AttemptNotActive: The attempt was already undone
            AttemptWrongProject: The attempt belongs to another root
            PathViolation: The path escapes the root
        """
        normalized = normalize_relative_path(relative_path)
        with _lock_for(attempt_id), self.store.atomic() as conn:
            record = self.store.get_attempt(attempt_id, conn)
            if record is None:
                raise AttemptNotFound(f"Apply attempt not found: {attempt_id}")
            attempt = ApplyAttempt.model_validate(record)
            if not attempt.is_active:
                raise AttemptNotActive("Apply attempt is no longer active.")
            if not _same_root(attempt.project_root, project_root):
                raise AttemptWrongProject("Apply attempt belongs to a different project.")

            if attempt.entry_for(normalized) is not None:
                return attempt

            target, normalized = resolve_in_root(attempt.project_root, normalized)
            existed = target.is_file()
            backup_ref = None
            if existed:
                backup_ref = f"{len(attempt.files) + 1}.bak"
                backup_dir = self.backup_dir(attempt_id)
                backup_dir.mkdir(parents=True, exist_ok=True)
                shutil.copy2(target, backup_dir / backup_ref)

            attempt.files.append(
                AttemptFile(relative_path=normalized, existed_before=existed, backup_ref=backup_ref)
            )
            self.store.save_attempt(attempt.model_dump(mode="json"), conn)
            logger.debug("Snapshotted %s in %s (existed=%s)", normalized, attempt_id, existed)
            return attempt

    def undo(self, attempt_id: str) -> UndoResult:
        """
        Restore every file of the attempt, last-touched first.

        Files that existed are restored from backup; files the attempt
        created are deleted. An already-undone attempt is a no-op.

        Raises:
            AttemptNotFound: Unknown attempt id
        """
        with _lock_for(attempt_id), self.store.atomic() as conn:
            record = self.store.get_attempt(attempt_id, conn)
            if record is None:
                raise AttemptNotFound(f"Apply attempt not found: {attempt_id}")
            attempt = ApplyAttempt.model_validate(record)
            if not attempt.is_active:
                return UndoResult(attempt_id=attempt_id, restored_count=0, already_closed=True)

            restored = 0
            for entry in reversed(attempt.files):
                target, _ = resolve_in_root(attempt.project_root, entry.relative_path)
                if entry.existed_before and entry.backup_ref:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(self.backup_dir(attempt_id) / entry.backup_ref, target)
                elif target.is_file() or target.is_symlink():
                    target.unlink()
                restored += 1

            attempt.status = AttemptStatus.UNDONE
            attempt.completed_at = utc_now()
            self.store.save_attempt(attempt.model_dump(mode="json"), conn)

        logger.info("Undid apply attempt %s (%d file(s))", attempt_id, restored)
        return UndoResult(attempt_id=attempt_id, restored_count=restored)

    def find_latest_active(self, project_root: Path | str) -> ApplyAttempt | None:
        """Most recently created active attempt for ``project_root``."""
        records = self.store.list_attempts(
            project_root=str(canonicalize(project_root)), status=AttemptStatus.ACTIVE.value
        )
        if not records:
            return None
        return ApplyAttempt.model_validate(records[0])

    def latest_status(self, project_root: Path | str) -> LatestAttemptStatus:
        attempt = self.find_latest_active(project_root)
        if attempt is None:
            return LatestAttemptStatus()
        return LatestAttemptStatus(
            has_undoable_changes=bool(attempt.files),
            attempt=AttemptSummary.of(attempt),
        )

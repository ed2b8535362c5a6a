"""
Workspace service: the operations exposed to the CLI.

Each public method loads the active project from the state store, checks
readiness where the operation reads or writes project files, does its work
through the sync engine, attempt manager and git adapter, and returns a
result model. Failures are classified into a
:class:`~specme.core.errors.FailureReport`; they are never raised.

Example:
    >>> service = WorkspaceService(load_config())
    >>> result = service.sync(SyncTarget.remote("https://github.com/org/repo.git"))
    >>> result.success, result.branch
    (True, 'main')
    >>> service.apply_file("README.md", "# Hello\\n").success
    True
    >>> service.undo().restored_count
    1
"""

from __future__ import annotations

import difflib
import logging
import os
import re
import time
from collections.abc import Sequence
from pathlib import Path

from specme.core.attempts.models import AttemptSummary
from specme.core.attempts.service import AttemptManager
from specme.core.config.loader import load_config
from specme.core.config.models import SpecMeConfig
from specme.core.context.builder import ContextBuilder
from specme.core.errors import (
    ErrorCode,
    FailureReport,
    GitError,
    HeadInvalid,
    PathViolation,
    ProjectNotReady,
    SpecMeError,
)
from specme.core.git.adapter import GitAdapter
from specme.core.git.classify import (
    APPLY_RULES,
    CONNECTION_RULES,
    LOCAL_RULES,
    LOCAL_SAVE_RULES,
    PUSH_RULES,
    SYNC_RULES,
    UNDO_RULES,
    RuleTable,
    report_failure,
    technical_details,
)
from specme.core.git.models import GitSyncStatus
from specme.core.git.urls import redact_credentials, redact_repo_url
from specme.core.project.history import RunHistory
from specme.core.project.models import (
    ConnectionStatus,
    ProjectDescriptor,
    ProjectMode,
    RunSnapshot,
)
from specme.core.project.state import ActiveProjectState
from specme.core.sandbox.files import atomic_write_text
from specme.core.sandbox.paths import (
    assert_not_protected,
    canonicalize,
    expand_home,
    is_inside,
    is_inside_any,
    resolve_in_root,
    to_destination_relative_path,
)
from specme.core.services.models import (
    ApplyResult,
    AttemptStartResult,
    AttemptStatusResult,
    ContextResult,
    EditPlan,
    EditPlanGenerator,
    FileDiff,
    FileWrite,
    ForgetResult,
    OperationResult,
    PlanApplyResult,
    PlanPreview,
    PlanResult,
    PublishResult,
    RememberedDestination,
    SaveLocalResult,
    SkippedFile,
    SyncResult,
    SyncTarget,
    UndoReport,
)
from specme.core.store.state import StateStore
from specme.core.sync.engine import RepositorySyncEngine

logger = logging.getLogger(__name__)

# Failures that end an operation with a FailureReport. Anything else is a bug.
OPERATION_ERRORS = (SpecMeError, GitError, OSError, ValueError)

DEFAULT_COMMIT_MESSAGE = "SpecMe automated updates"
PUSH_BATCH_LABEL = "push-batch"


def _sync_table(mode: ProjectMode) -> RuleTable:
    if mode == ProjectMode.REMOTE:
        return SYNC_RULES
    if mode == ProjectMode.LOCAL:
        return LOCAL_RULES
    return CONNECTION_RULES


class WorkspaceService:
    """
    Sync, apply, undo, publish and history operations over the active project.
    """

    def __init__(
        self,
        config: SpecMeConfig | None = None,
        *,
        store: StateStore | None = None,
        git: GitAdapter | None = None,
        engine: RepositorySyncEngine | None = None,
        cwd: Path | None = None,
    ) -> None:
        self.config = config or load_config()
        self.git = git or GitAdapter(self.config.git)
        self.store = store or StateStore(self.config.paths.state_db_path)
        self.engine = engine or RepositorySyncEngine(self.config, self.git)
        self.state = ActiveProjectState(self.store, self.config, self.git)
        self.history = RunHistory(self.store, self.state)
        self.attempts = AttemptManager(self.store, self.config.paths.sessions_root)
        self.context = ContextBuilder(self.config)
        self.cwd = cwd

    # ------------------------------------------------------------------
    # Sync / disconnect
    # ------------------------------------------------------------------

    def sync(self, target: SyncTarget) -> SyncResult:
        """
        Connect a remote repository or local folder and index it.

        On any failure the active project becomes a failed descriptor with an
        empty root, and the context file is left alone.
        """
        try:
            project, sync_status, stashed = self._connect(target)
            index = self.context.build(project.root, project.source)
        except OPERATION_ERRORS as e:
            return self._sync_failure(target.mode, e)

        return SyncResult(
            message=f"Context Re-Indexed ({index.file_count} files)",
            project=project,
            branch=project.branch,
            sync_status=sync_status,
            file_count=index.file_count,
            stashed_changes=stashed,
        )

    def status(self) -> SyncResult:
        """The active project and, for a remote mirror, its git status."""
        project = self.state.load()
        sync_status = None
        if project.is_remote and project.root and Path(project.root).is_dir():
            sync_status = self.engine.status(Path(project.root), project.branch or "")
        return SyncResult(
            success=project.connection_status != ConnectionStatus.FAILED,
            message=project.last_connection_error or project.source,
            project=project,
            branch=project.branch,
            sync_status=sync_status,
        )

    def disconnect(self) -> SyncResult:
        """Reset the active project to the default descriptor."""
        try:
            project = self.state.disconnect()
            index = self.context.clear(project.source)
        except OPERATION_ERRORS as e:
            report = report_failure(e, CONNECTION_RULES)
            return SyncResult(success=False, message=report.reason_message, failure=report)
        return SyncResult(
            message="Disconnected active project.",
            project=project,
            file_count=index.file_count,
        )

    def _connect(
        self, target: SyncTarget
    ) -> tuple[ProjectDescriptor, GitSyncStatus | None, bool]:
        if target.mode == ProjectMode.REMOTE:
            if not target.url:
                raise SpecMeError(
                    "Repository URL is required for GitHub mode.", code=ErrorCode.INVALID_REQUEST
                )
            hints = self.history.branch_hints(target.url)
            outcome = self.engine.sync(target.url, target.branch, hints)
            project = ProjectDescriptor.remote(
                root=str(outcome.mirror_path),
                repository_url=self.engine.parse(target.url).redacted_url,
                branch=outcome.branch,
            )
            self.state.save(project)
            return project, outcome.sync_status, outcome.stashed_changes

        if target.mode == ProjectMode.LOCAL:
            root = self.resolve_local_root(target.path)
            project = ProjectDescriptor.local(str(root))
            self.state.save(project)
            return project, None, False

        raise SpecMeError(
            "Choose a GitHub repository or a local folder to sync.",
            code=ErrorCode.INVALID_REQUEST,
        )

    def resolve_local_root(self, local_path: str) -> Path:
        """
        Absolute, existing directory for a local sync.

        Raises:
            SpecMeError: If the path is empty or not a directory
            ProjectNotReady: If it overlaps SpecMe's internal folders
        """
        raw = expand_home(local_path)
        if not raw:
            raise SpecMeError(
                "localPath is required for local project sync.", code=ErrorCode.INVALID_REQUEST
            )
        base = self.cwd or Path.cwd()
        resolved = Path(os.path.abspath(raw if os.path.isabs(raw) else base / raw))
        if not resolved.is_dir():
            raise SpecMeError(
                f"Local project folder not found: {resolved}", code=ErrorCode.FOLDER_MISSING
            )
        if is_inside_any(self.config.internal_roots(), canonicalize(resolved)):
            raise ProjectNotReady(
                "Selected project path points to SpecMe internal folders. Choose a folder "
                "outside the SpecMe app and data directories.",
                code=ErrorCode.INTERNAL_FOLDER_BLOCKED,
            )
        return resolved

    def _sync_failure(self, mode: ProjectMode, error: BaseException) -> SyncResult:
        report = report_failure(error, _sync_table(mode))
        logger.warning("Sync failed (%s): %s", report.reason, report.reason_message)
        project = self.state.mark_failed(report.reason_message)
        return SyncResult(
            success=False,
            message=report.reason_message,
            failure=report,
            project=project,
            reconnect_action="manual",
        )

    # ------------------------------------------------------------------
    # Apply / undo
    # ------------------------------------------------------------------

    def start_attempt(self) -> AttemptStartResult:
        try:
            project = self.state.assert_ready()
            attempt = self.attempts.start(project.root)
        except OPERATION_ERRORS as e:
            report = report_failure(e, APPLY_RULES)
            return AttemptStartResult(success=False, message=report.reason_message, failure=report)
        return AttemptStartResult(
            message=f"Started apply attempt {attempt.id}",
            attempt=AttemptSummary.of(attempt),
        )

    def apply_file(
        self, relative_path: str, content: str, attempt_id: str | None = None
    ) -> ApplyResult:
        """
        Write one file into the active project, recording it for undo.

        Without ``attempt_id`` the write joins the latest active attempt of
        the project, or a new one.
        """
        try:
            project = self.state.assert_ready()
            attempt_id = self._attempt_for(project, attempt_id)
            normalized, branch = self._write_project_file(
                project, relative_path, content, attempt_id
            )
        except OPERATION_ERRORS as e:
            report = report_failure(e, APPLY_RULES)
            return ApplyResult(success=False, message=report.reason_message, failure=report)

        return ApplyResult(
            message=f"Applied to {normalized}",
            relative_path=normalized,
            attempt_id=attempt_id,
            safety_branch=branch,
            project_root=project.root,
            project_mode=project.mode,
        )

    def apply_plan(self, plan: EditPlan) -> PlanApplyResult:
        """Apply every file of a plan under one new attempt; bad entries are skipped."""
        try:
            project = self.state.assert_ready()
            attempt = self.attempts.start(project.root)
        except OPERATION_ERRORS as e:
            report = report_failure(e, APPLY_RULES)
            return PlanApplyResult(success=False, message=report.reason_message, failure=report)

        result = PlanApplyResult(attempt_id=attempt.id)
        for planned in plan.files:
            try:
                normalized, branch = self._write_project_file(
                    project, planned.file_name, planned.full_code, attempt.id
                )
            except OPERATION_ERRORS as e:
                logger.info("Skipped %s: %s", planned.file_name, e)
                result.skipped.append(
                    SkippedFile(file_name=planned.file_name or "(missing)", reason=str(e))
                )
                continue
            result.applied.append(normalized)
            result.safety_branch = branch or result.safety_branch

        if plan.files and not result.applied:
            first = result.skipped[0].reason
            result.success = False
            result.message = f"No files were applied. First error: {first}"
            result.failure = FailureReport(
                reason=ErrorCode.APPLY_FAILED.value,
                reason_message="No files were applied.",
                exact_reason=first,
                next_steps=APPLY_RULES.fallback_next_steps,
            )
        elif result.skipped:
            result.message = (
                f"Applied {len(result.applied)} file(s). Skipped {len(result.skipped)} file(s)."
            )
        else:
            result.message = f"Applied {len(result.applied)} file(s)."
        return result

    def undo(self, attempt_id: str | None = None) -> UndoReport:
        """Undo an attempt; without an id, the latest active one of the project."""
        try:
            project = self.state.assert_ready()
            if not attempt_id:
                latest = self.attempts.find_latest_active(project.root)
                if latest is None:
                    return UndoReport(message="No changes to undo.")
                attempt_id = latest.id
            outcome = self.attempts.undo(attempt_id)
        except OPERATION_ERRORS as e:
            report = report_failure(e, UNDO_RULES)
            return UndoReport(success=False, message=report.reason_message, failure=report)
        return UndoReport(
            message=outcome.message,
            attempt_id=attempt_id,
            restored_count=outcome.restored_count,
        )

    def latest_attempt_status(self) -> AttemptStatusResult:
        try:
            project = self.state.assert_ready()
            latest = self.attempts.latest_status(project.root)
        except OPERATION_ERRORS as e:
            report = report_failure(e, UNDO_RULES)
            return AttemptStatusResult(success=False, message=report.reason_message, failure=report)
        return AttemptStatusResult(
            has_undoable_changes=latest.has_undoable_changes,
            attempt=latest.attempt,
        )

    def _attempt_for(self, project: ProjectDescriptor, attempt_id: str | None) -> str:
        if attempt_id and attempt_id.strip():
            return attempt_id.strip()
        latest = self.attempts.find_latest_active(project.root)
        if latest is not None:
            return latest.id
        return self.attempts.start(project.root).id

    def _write_project_file(
        self,
        project: ProjectDescriptor,
        file_name: str,
        content: str,
        attempt_id: str | None,
    ) -> tuple[str, str | None]:
        """
        Sandboxed write of one file into the project.

        Returns:
            (normalized relative path, safety branch or None)
        """
        if not (file_name or "").strip():
            raise SpecMeError("Missing fileName or fullCode.", code=ErrorCode.INVALID_REQUEST)
        target, normalized = resolve_in_root(project.root, file_name)
        self._check_writable(project, target, normalized)

        if attempt_id:
            self.attempts.snapshot(attempt_id, project.root, normalized)

        branch = None
        if project.is_remote:
            branch = self.ensure_safety_branch(Path(project.root), normalized)

        atomic_write_text(target, content)
        logger.info("Applied %s", normalized)
        return normalized, branch

    def _check_writable(self, project: ProjectDescriptor, target: Path, normalized: str) -> None:
        if not normalized:
            raise PathViolation("Refusing to write the project root as a file.")
        if ".git" in normalized.split("/"):
            raise PathViolation(f"Refusing to write into version-control metadata: {normalized}")
        assert_not_protected(normalized, self.config.apply.protected_patterns)

        root = canonicalize(project.root)
        blocked = [r for r in self.config.internal_roots() if not is_inside(r, root)]
        if is_inside_any(blocked, canonicalize(target)):
            raise PathViolation(f"Refusing to write into SpecMe internal folders: {normalized}")

    def ensure_safety_branch(self, root: Path, file_name: str) -> str | None:
        """
        Move the working copy onto a ``<prefix><file>-<ms>`` branch.

        Already being on a safety branch is kept. Any failure only disables
        the safety layer.
        """
        if not self.config.git.safety_branches:
            return None
        prefix = self.config.git.safety_branch_prefix
        try:
            if not self.git.is_repository(root):
                logger.warning("Git safety layer disabled: not a git repo at %s", root)
                return None
            head_valid = self.git.has_commits(root)
            if head_valid:
                current = self.git.current_branch_name(root)
                if current and current.startswith(prefix):
                    return current

            clean = re.sub(r"[^a-z0-9]", "-", Path(file_name).name, flags=re.IGNORECASE).lower()
            branch = f"{prefix}{clean}-{int(time.time() * 1000)}"
            self.git.create_branch(root, branch, orphan=not head_valid)
            logger.info("Created safety branch %s", branch)
            return branch
        except GitError as e:
            logger.warning("Git safety layer disabled: %s", e)
            return None

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    def publish(self, message: str = "", files: Sequence[FileWrite] | None = None) -> PublishResult:
        """
        Commit local changes and push them to the remote.

        A rejected push leaves the commit in place; publishing again with
        nothing new retries the push until it succeeds.
        """
        try:
            project = self.state.load()
            if not project.is_remote:
                raise SpecMeError(
                    "Push is only available for GitHub project mode.",
                    code=ErrorCode.INVALID_REQUEST,
                )
            project = self.state.assert_ready(project)
            root = Path(project.root)

            written: list[str] = []
            skipped: list[SkippedFile] = []
            if files:
                self.ensure_safety_branch(root, PUSH_BATCH_LABEL)
                for item in files:
                    try:
                        normalized, _ = self._write_project_file(
                            project, item.file_name, item.full_code, None
                        )
                        written.append(normalized)
                    except (SpecMeError, OSError) as e:
                        skipped.append(SkippedFile(file_name=item.file_name, reason=str(e)))

            self.git.add_all(root)
            commit = None
            if self.git.status_porcelain(root).strip():
                commit = self.git.commit(root, (message or "").strip() or DEFAULT_COMMIT_MESSAGE)

            if not self.git.has_commits(root):
                raise HeadInvalid("Cannot push: repository HEAD is invalid")
            source = self.git.current_branch_name(root)
            if not source:
                raise SpecMeError(
                    "Cannot determine the checked-out branch for push.",
                    code=ErrorCode.LOCAL_BRANCH_MISSING,
                )
            target = (project.branch or source).strip()

            if commit is None and self.git.unpushed_count(root, target) == 0:
                return PublishResult(
                    message="No local changes to commit.",
                    source_branch=source,
                    branch=target,
                    written=written,
                    skipped=skipped,
                )
        except OPERATION_ERRORS as e:
            report = self._publish_failure(e)
            return PublishResult(
                success=False,
                message=report.reason_message,
                failure=report,
                changes_kept_locally=True,
            )

        refspec = source if source == target else f"{source}:{target}"
        command = f"git push --set-upstream {self.git.remote} {refspec}"
        try:
            self.git.push(root, refspec)
        except GitError as e:
            report = report_failure(e, PUSH_RULES)
            logger.warning("Push failed (%s): %s", report.reason, report.exact_reason)
            return PublishResult(
                success=False,
                message=report.reason_message,
                failure=report,
                source_branch=source,
                branch=target,
                commit=commit,
                command=command,
                changes_kept_locally=True,
                written=written,
                skipped=skipped,
            )

        if project.branch != target:
            self.state.save(project.model_copy(update={"branch": target}))
        verb = "Committed and pushed" if commit else "Pushed"
        return PublishResult(
            message=f"{verb} {source} to {target}",
            pushed=True,
            source_branch=source,
            branch=target,
            commit=commit,
            command=command,
            written=written,
            skipped=skipped,
        )

    @staticmethod
    def _publish_failure(error: BaseException) -> FailureReport:
        if isinstance(error, SpecMeError):
            return report_failure(error, PUSH_RULES)
        exact = redact_credentials(str(error))
        return FailureReport(
            reason=ErrorCode.PUSH_FAILED.value,
            reason_message=PUSH_RULES.fallback_message,
            exact_reason=exact,
            next_steps="Check repository permissions and network state, then retry the push.",
            technical_details=technical_details(error),
        )

    # ------------------------------------------------------------------
    # Run history
    # ------------------------------------------------------------------

    def remember_run(self, run_id: str) -> OperationResult:
        """Associate the (ready) active project with ``run_id``."""
        try:
            run_id = (run_id or "").strip()
            if not run_id:
                raise SpecMeError("runId is required.", code=ErrorCode.INVALID_REQUEST)
            project = self.state.assert_ready()
            self.history.remember(run_id, project)
        except OPERATION_ERRORS as e:
            report = report_failure(e, CONNECTION_RULES)
            return OperationResult(success=False, message=report.reason_message, failure=report)
        return OperationResult(message=f"Remembered {project.source} for run {run_id}")

    def activate_run(self, run_id: str) -> SyncResult:
        """Reconnect the project remembered for ``run_id`` through the sync path."""
        snapshot = self.history.get((run_id or "").strip())
        if snapshot is None:
            message = "No stored project mapping for this run. Reconnect manually from Sync."
            return SyncResult(
                success=False,
                message=message,
                failure=FailureReport(
                    reason=ErrorCode.MISSING_PROJECT_METADATA.value,
                    reason_message=message,
                    exact_reason=message,
                    next_steps=SYNC_RULES.next_steps_for(ErrorCode.MISSING_PROJECT_METADATA),
                ),
                reconnect_action="manual",
            )

        target = SyncTarget.from_descriptor(snapshot.to_descriptor())
        try:
            project, sync_status, _stashed = self._connect(target)
            index = self.context.build(project.root, project.source)
        except OPERATION_ERRORS as e:
            result = self._sync_failure(target.mode, e)
            self.history.mark_failed(snapshot, result.message)
            return result

        self.history.mark_connected(snapshot, project)
        return SyncResult(
            message=f"Reconnected {project.source} ({index.file_count} files)",
            project=project,
            branch=project.branch,
            sync_status=sync_status,
            file_count=index.file_count,
        )

    def project_history(self) -> list[RunSnapshot]:
        return self.history.list()

    def forget_run(self, run_id: str) -> ForgetResult:
        run_id = (run_id or "").strip()
        if self.history.forget(run_id):
            return ForgetResult(message=f"Forgot run {run_id}", run_id=run_id, deleted=True)
        return ForgetResult(message="History item not found.", run_id=run_id, deleted=False)

    # ------------------------------------------------------------------
    # Save to a local folder
    # ------------------------------------------------------------------

    def destination_key(self, project: ProjectDescriptor) -> str:
        """Key under which the save destination of a project is remembered."""
        if project.is_remote:
            repo = (project.repository_url or "").strip()
            if not repo:
                raise SpecMeError(
                    "GitHub project is missing repository URL.",
                    code=ErrorCode.MISSING_PROJECT_METADATA,
                )
            branch = (project.branch or "").strip() or "<default>"
            return f"github:{redact_repo_url(repo, self.config.forge.host)}#{branch}"
        if project.mode == ProjectMode.LOCAL:
            if not project.root.strip():
                raise SpecMeError(
                    "Local project is missing root folder.",
                    code=ErrorCode.PROJECT_PATH_MISSING,
                )
            return f"local:{canonicalize(project.root)}"
        raise ProjectNotReady(
            "No connected project. Connect a GitHub repository or local folder first.",
            code=ErrorCode.NOT_CONNECTED,
        )

    def save_local_changes(self, destination: str, files: Sequence[FileWrite]) -> SaveLocalResult:
        """Write files into a folder outside the project and remember the folder."""
        try:
            project = self.state.assert_ready()
            destination_root = self._destination_root(project, destination)
            if not files:
                raise SpecMeError("No files provided.", code=ErrorCode.INVALID_REQUEST)

            destination_root.mkdir(parents=True, exist_ok=True)
            written: list[str] = []
            skipped: list[SkippedFile] = []
            for item in files:
                if not item.file_name:
                    skipped.append(
                        SkippedFile(file_name="(missing)", reason="Missing fileName or fullCode.")
                    )
                    continue
                try:
                    relative = to_destination_relative_path(item.file_name, project.root)
                    target, normalized = resolve_in_root(destination_root, relative)
                    atomic_write_text(target, item.full_code)
                    written.append(normalized)
                except (SpecMeError, OSError) as e:
                    skipped.append(SkippedFile(file_name=item.file_name, reason=str(e)))

            if not written:
                first = skipped[0].reason if skipped else "No valid files were provided."
                raise SpecMeError(
                    f"No files were saved. First error: {first}",
                    code=ErrorCode.SAVE_LOCAL_FAILED,
                )

            remembered = canonicalize(destination_root)
            self.store.put_destination(self.destination_key(project), str(remembered))
        except OPERATION_ERRORS as e:
            report = report_failure(e, LOCAL_SAVE_RULES)
            return SaveLocalResult(success=False, message=report.reason_message, failure=report)

        message = f"Saved {len(written)} file(s) to {destination_root}"
        if skipped:
            message += f". Skipped {len(skipped)} file(s)."
        return SaveLocalResult(
            message=message,
            destination_root=str(destination_root),
            remembered_destination=str(remembered),
            written=len(written),
            files=written,
            skipped=skipped,
        )

    def _destination_root(self, project: ProjectDescriptor, destination: str) -> Path:
        raw = expand_home(destination)
        if not raw:
            raise SpecMeError("destinationPath is required.", code=ErrorCode.INVALID_REQUEST)
        if not os.path.isabs(raw):
            raise SpecMeError(
                "Destination path must be absolute. Select a destination folder explicitly "
                "(for example: /Users/you/Desktop/output).",
                code=ErrorCode.INVALID_REQUEST,
            )
        destination_root = Path(os.path.abspath(raw))
        resolved = canonicalize(destination_root)
        if is_inside_any(self.config.internal_roots(), resolved):
            raise PathViolation(
                "Destination path cannot be SpecMe's app/internal folder. "
                "Choose a separate project/output directory."
            )
        if is_inside(canonicalize(project.root) / ".git", resolved):
            raise PathViolation("Destination path cannot be inside the project's .git folder.")
        return destination_root

    def remembered_destination(self) -> RememberedDestination:
        try:
            project = self.state.assert_ready()
            key = self.destination_key(project)
            stored = self.store.get_destination(key)
        except OPERATION_ERRORS as e:
            report = report_failure(e, LOCAL_SAVE_RULES)
            return RememberedDestination(
                success=False, message=report.reason_message, failure=report
            )
        if not stored:
            return RememberedDestination(key=key)
        exists = Path(stored).is_dir()
        return RememberedDestination(
            key=key,
            destination_path=stored,
            exists=exists,
            missing_reason=""
            if exists
            else "Your previously saved destination folder no longer exists. "
            "Choose a new folder path.",
        )

    # ------------------------------------------------------------------
    # Context and plans
    # ------------------------------------------------------------------

    def build_context(self) -> ContextResult:
        try:
            project = self.state.assert_ready()
            index = self.context.build(project.root, project.source)
        except OPERATION_ERRORS as e:
            report = report_failure(e, CONNECTION_RULES)
            return ContextResult(success=False, message=report.reason_message, failure=report)
        return ContextResult(
            message=f"Context Re-Indexed ({index.file_count} files)",
            file_count=index.file_count,
            context_path=index.context_path,
        )

    def generate_plan(self, request: str, generator: EditPlanGenerator) -> PlanResult:
        """Ask ``generator`` for an edit plan over the current codebase context."""
        try:
            project = self.state.assert_ready()
            context = self.context.read()
            if not context:
                self.context.build(project.root, project.source)
                context = self.context.read()
            plan = generator.generate(context, request)
            for planned in plan.files:
                if not planned.file_name.strip():
                    raise SpecMeError(
                        "Plan contains a file entry without a file name.",
                        code=ErrorCode.INVALID_REQUEST,
                    )
        except OPERATION_ERRORS as e:
            report = report_failure(e, APPLY_RULES)
            return PlanResult(success=False, message=report.reason_message, failure=report)
        return PlanResult(message=plan.summary, plan=plan)

    def preview_plan(self, plan: EditPlan) -> PlanPreview:
        """Unified diff of every planned file against its current content."""
        try:
            project = self.state.assert_ready()
        except OPERATION_ERRORS as e:
            report = report_failure(e, APPLY_RULES)
            return PlanPreview(success=False, message=report.reason_message, failure=report)

        preview = PlanPreview()
        for planned in plan.files:
            try:
                target, normalized = resolve_in_root(project.root, planned.file_name)
                is_new = not target.is_file()
                current = "" if is_new else target.read_text(encoding="utf-8")
            except (SpecMeError, OSError, UnicodeDecodeError) as e:
                logger.debug("No diff for %s: %s", planned.file_name, e)
                preview.files.append(FileDiff(file_name=planned.file_name))
                continue
            diff = difflib.unified_diff(
                current.splitlines(keepends=True),
                planned.full_code.splitlines(keepends=True),
                fromfile="/dev/null" if is_new else f"a/{normalized}",
                tofile=f"b/{normalized}",
            )
            preview.files.append(FileDiff(file_name=normalized, is_new=is_new, diff="".join(diff)))
        return preview

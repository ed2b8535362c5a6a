"""
Error taxonomy for specme.

Every failure that crosses an operation boundary carries a stable
:class:`ErrorCode`, a short human message, a "what to do next" hint and raw
technical detail. Branch-related failures additionally carry the list of
candidate branches so the caller can let the user pick one.

Exceptions raised inside the engine derive from :class:`SpecMeError` and know
their own code. Raw failures of the git binary are raised as
:class:`GitError` and only get a code when they are classified (see
:mod:`specme.core.git.classify`).
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Stable, user-facing failure codes."""

    # Version control
    REPO_NOT_FOUND = "repo_not_found"
    AUTH_FAILED = "auth_failed"
    NETWORK_ERROR = "network_error"
    BRANCH_MISSING = "branch_missing"
    BRANCH_SELECTION_REQUIRED = "branch_selection_required"
    HEAD_INVALID = "head_invalid"
    PERMISSION_DENIED = "permission_denied"
    NON_FAST_FORWARD = "non_fast_forward"
    REMOTE_REJECTED = "remote_rejected"
    LOCAL_BRANCH_MISSING = "local_branch_missing"

    # Filesystem / apply
    PATH_VIOLATION = "path_violation"
    FOLDER_MISSING = "folder_missing"
    PATH_NOT_FOUND = "path_not_found"
    PROTECTED_FILE_WRITE_BLOCKED = "protected_file_write_blocked"
    ATTEMPT_NOT_ACTIVE = "attempt_not_active"
    ATTEMPT_WRONG_PROJECT = "attempt_wrong_project"
    ATTEMPT_NOT_FOUND = "attempt_not_found"

    # Project readiness
    NO_PROJECT = "no_project"
    NOT_CONNECTED = "not_connected"
    PROJECT_PATH_MISSING = "project_path_missing"
    INTERNAL_FOLDER_BLOCKED = "internal_folder_blocked"
    MIRROR_OUTSIDE_MANAGED_ROOT = "mirror_outside_managed_root"
    NOT_A_REPOSITORY = "not_a_repository"
    MISSING_PROJECT_METADATA = "missing_project_metadata"
    INVALID_REQUEST = "invalid_request"

    # Generic per-operation fallbacks
    GITHUB_SYNC_FAILED = "github_sync_failed"
    LOCAL_RECONNECT_FAILED = "local_reconnect_failed"
    CONNECTION_FAILED = "connection_failed"
    PUSH_FAILED = "push_failed"
    SAVE_LOCAL_FAILED = "save_local_failed"
    APPLY_FAILED = "apply_failed"
    UNDO_FAILED = "undo_failed"


RECOVERABLE_BY_BRANCH_CHOICE = frozenset(
    {ErrorCode.BRANCH_MISSING, ErrorCode.BRANCH_SELECTION_REQUIRED}
)

# Repeating the same request fails the same way; the request has to change.
NOT_RETRYABLE = frozenset(
    {
        ErrorCode.INVALID_REQUEST,
        ErrorCode.PATH_VIOLATION,
        ErrorCode.PROTECTED_FILE_WRITE_BLOCKED,
        ErrorCode.INTERNAL_FOLDER_BLOCKED,
        ErrorCode.MIRROR_OUTSIDE_MANAGED_ROOT,
        ErrorCode.ATTEMPT_NOT_ACTIVE,
        ErrorCode.ATTEMPT_WRONG_PROJECT,
        ErrorCode.ATTEMPT_NOT_FOUND,
        ErrorCode.BRANCH_SELECTION_REQUIRED,
    }
)


# Hints shown after a failed sync or reconnect.
RECONNECT_NEXT_STEPS: dict[ErrorCode, str] = {
    ErrorCode.REPO_NOT_FOUND: "Check repository URL and confirm your account has access.",
    ErrorCode.AUTH_FAILED: "Reconnect GitHub with valid credentials and required token scopes.",
    ErrorCode.NETWORK_ERROR: "Check internet/VPN settings and retry sync.",
    ErrorCode.BRANCH_MISSING: "Select a valid existing branch and retry sync.",
    ErrorCode.BRANCH_SELECTION_REQUIRED: "Select a valid existing branch and retry sync.",
    ErrorCode.PERMISSION_DENIED: (
        "Grant folder access permissions or select a different local folder."
    ),
    ErrorCode.FOLDER_MISSING: "Verify the local folder path still exists and reconnect.",
    ErrorCode.HEAD_INVALID: (
        "Choose a branch manually or make sure the repository has at least one commit."
    ),
    ErrorCode.MISSING_PROJECT_METADATA: "Reconnect this project manually from Sync.",
    ErrorCode.NO_PROJECT: "Connect a GitHub repository or local folder from Sync.",
    ErrorCode.NOT_CONNECTED: "Connect a GitHub repository or local folder from Sync.",
    ErrorCode.INTERNAL_FOLDER_BLOCKED: (
        "Choose a project folder outside SpecMe's app and data directories."
    ),
    ErrorCode.INVALID_REQUEST: "Check the request values and retry.",
}

# Hints for failures while applying, undoing or saving files.
APPLY_NEXT_STEPS: dict[ErrorCode, str] = {
    ErrorCode.PATH_VIOLATION: "Use a file path inside the project folder.",
    ErrorCode.PROTECTED_FILE_WRITE_BLOCKED: (
        "Environment files and lockfiles must be edited manually."
    ),
    ErrorCode.ATTEMPT_NOT_ACTIVE: "Start a new apply attempt and retry.",
    ErrorCode.ATTEMPT_WRONG_PROJECT: "Start a new apply attempt for the active project.",
    ErrorCode.ATTEMPT_NOT_FOUND: "Start a new apply attempt and retry.",
}

DEFAULT_RECONNECT_NEXT_STEPS = "Reconnect from Sync and retry."


def reconnect_next_steps(code: ErrorCode | str) -> str:
    """Return the "what to do next" hint for a failure code."""
    try:
        key = ErrorCode(code)
    except ValueError:
        return DEFAULT_RECONNECT_NEXT_STEPS
    if key in APPLY_NEXT_STEPS:
        return APPLY_NEXT_STEPS[key]
    return RECONNECT_NEXT_STEPS.get(key, DEFAULT_RECONNECT_NEXT_STEPS)


class SpecMeError(Exception):
    """
    Base exception for classified engine failures.

    Attributes:
        code: Stable failure code
        detail: Raw technical detail (never contains credentials)
        available_branches: Candidate branches for branch-related failures
    """

    code: ErrorCode = ErrorCode.CONNECTION_FAILED

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        detail: str = "",
        available_branches: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.detail = detail
        self.available_branches = list(available_branches or [])

    @property
    def message(self) -> str:
        return str(self)


class PathViolation(SpecMeError):
    """Raised when a path escapes its project root."""

    code = ErrorCode.PATH_VIOLATION


class ProtectedFileBlocked(SpecMeError):
    """Raised when a write targets an environment file or lockfile."""

    code = ErrorCode.PROTECTED_FILE_WRITE_BLOCKED


class InvalidRepositoryUrl(SpecMeError):
    """Raised when a repository URL is not a supported forge URL."""

    code = ErrorCode.INVALID_REQUEST


class BranchSelectionRequired(SpecMeError):
    """Raised when no default branch can be chosen without asking the user."""

    code = ErrorCode.BRANCH_SELECTION_REQUIRED

    def __init__(self, available_branches: list[str] | None = None, *, detail: str = "") -> None:
        super().__init__(
            "Could not detect a usable default branch.",
            detail=detail,
            available_branches=available_branches,
        )


class BranchMissing(SpecMeError):
    """Raised when a requested branch does not exist on the remote."""

    code = ErrorCode.BRANCH_MISSING

    def __init__(self, branch: str, available_branches: list[str] | None = None) -> None:
        super().__init__(
            f"Branch '{branch}' was not found on remote.",
            available_branches=available_branches,
        )
        self.branch = branch


class HeadInvalid(SpecMeError):
    """Raised when HEAD is unborn or otherwise unusable."""

    code = ErrorCode.HEAD_INVALID

    def __init__(self, detail: str = "") -> None:
        if detail:
            message = (
                f"Repository state is invalid: {detail}. "
                "The repository may be empty or have no commits yet."
            )
        else:
            message = (
                "Repository state is invalid or no branch is checked out. "
                "The repository may be empty or have no commits yet."
            )
        super().__init__(message, detail=detail)


class AttemptNotActive(SpecMeError):
    code = ErrorCode.ATTEMPT_NOT_ACTIVE


class AttemptWrongProject(SpecMeError):
    code = ErrorCode.ATTEMPT_WRONG_PROJECT


class AttemptNotFound(SpecMeError):
    code = ErrorCode.ATTEMPT_NOT_FOUND


class ProjectNotReady(SpecMeError):
    """Raised by the readiness check; the code tells which check failed."""

    code = ErrorCode.NO_PROJECT


class GitError(Exception):
    """Exception raised when a git command fails."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        stderr: str = "",
        returncode: int | None = None,
        timed_out: bool = False,
    ) -> None:
        super().__init__(message)
        self.command = command
        self.stderr = stderr
        self.returncode = returncode
        self.timed_out = timed_out


class FailureReport(BaseModel):
    """
    Structured failure returned from every exposed operation.

    Mirrors what a user sees: a short reason, a hint, and (for debugging)
    the raw technical detail.
    """

    reason: str = Field(description="Stable failure code")
    reason_message: str = Field(description="Short human-readable reason")
    exact_reason: str = Field(default="", description="Most specific cause available")
    next_steps: str = Field(default="", description="What to do next")
    technical_details: str = Field(default="", description="Raw detail for debugging")
    available_branches: list[str] = Field(
        default_factory=list,
        description="Candidate branches when a branch choice is needed",
    )
    retryable: bool = Field(
        default=True,
        description="Retrying the same request may succeed (e.g. after a network blip)",
    )

    @property
    def needs_branch_choice(self) -> bool:
        return self.reason in {code.value for code in RECOVERABLE_BY_BRANCH_CHOICE}

"""
Failure classification.

git reports failures as free text. This module maps that text onto stable
:class:`~specme.core.errors.ErrorCode` values using ordered tables of
case-insensitive substring rules; the first matching rule wins. The tables
are plain data so they can be tested exhaustively and swapped out if git
ever grows a structured error mode.

Example:
    >>> classify("remote: Repository not found.", SYNC_RULES).code
    <ErrorCode.REPO_NOT_FOUND: 'repo_not_found'>
"""

from __future__ import annotations

import errno
from dataclasses import dataclass

from specme.core.errors import (
    NOT_RETRYABLE,
    ErrorCode,
    FailureReport,
    GitError,
    SpecMeError,
    reconnect_next_steps,
)
from specme.core.git.urls import redact_credentials


@dataclass(frozen=True)
class ClassificationRule:
    """
    One substring rule.

    Matches when any ``any_of`` substring is present (or ``any_of`` is empty)
    and every ``all_of`` substring is present.
    """

    code: ErrorCode
    message: str
    any_of: tuple[str, ...] = ()
    all_of: tuple[str, ...] = ()
    next_steps: str | None = None

    def matches(self, raw: str) -> bool:
        if self.any_of and not any(s in raw for s in self.any_of):
            return False
        return all(s in raw for s in self.all_of)


@dataclass(frozen=True)
class Classification:
    code: ErrorCode
    message: str
    next_steps: str


@dataclass(frozen=True)
class RuleTable:
    """Ordered rules plus the fallback used when nothing matches."""

    name: str
    rules: tuple[ClassificationRule, ...]
    fallback_code: ErrorCode
    fallback_message: str
    fallback_next_steps: str
    use_error_message_on_fallback: bool = True

    def next_steps_for(self, code: ErrorCode) -> str:
        for rule in self.rules:
            if rule.code == code and rule.next_steps:
                return rule.next_steps
        if code == self.fallback_code:
            return self.fallback_next_steps
        return reconnect_next_steps(code)


SYNC_RULES = RuleTable(
    name="sync",
    rules=(
        ClassificationRule(
            ErrorCode.REPO_NOT_FOUND,
            "Repository not found. Verify repo URL and access rights.",
            any_of=("repository not found",),
        ),
        ClassificationRule(
            ErrorCode.AUTH_FAILED,
            "Authentication failed. Check GitHub token/SSH access and repo permissions.",
            any_of=(
                "authentication failed",
                "permission denied",
                "could not read from remote repository",
            ),
        ),
        ClassificationRule(
            ErrorCode.NETWORK_ERROR,
            "Network error while reaching GitHub. Check internet/VPN and retry.",
            any_of=("could not resolve host", "network", "timed out"),
        ),
        ClassificationRule(
            ErrorCode.BRANCH_MISSING,
            "Branch not found on remote. Verify branch name and retry.",
            all_of=("remote branch", "not found"),
        ),
        ClassificationRule(
            ErrorCode.BRANCH_MISSING,
            "Branch not found on remote. Select a valid branch and retry sync.",
            any_of=("is not a commit", "cannot be created from it"),
        ),
    ),
    fallback_code=ErrorCode.GITHUB_SYNC_FAILED,
    fallback_message="GitHub sync failed.",
    fallback_next_steps=reconnect_next_steps(ErrorCode.GITHUB_SYNC_FAILED),
)

LOCAL_RULES = RuleTable(
    name="local",
    rules=(
        ClassificationRule(
            ErrorCode.FOLDER_MISSING,
            "Local folder not found. It may have been moved or deleted.",
            any_of=("no such file", "not found"),
        ),
        ClassificationRule(
            ErrorCode.PERMISSION_DENIED,
            "Permission denied for local folder. Grant access and retry.",
            any_of=("eacces", "permission"),
        ),
    ),
    fallback_code=ErrorCode.LOCAL_RECONNECT_FAILED,
    fallback_message="Local project reconnect failed.",
    fallback_next_steps=reconnect_next_steps(ErrorCode.LOCAL_RECONNECT_FAILED),
)

CONNECTION_RULES = RuleTable(
    name="connection",
    rules=(),
    fallback_code=ErrorCode.CONNECTION_FAILED,
    fallback_message="Connection failed.",
    fallback_next_steps=reconnect_next_steps(ErrorCode.CONNECTION_FAILED),
)

PUSH_RULES = RuleTable(
    name="push",
    rules=(
        ClassificationRule(
            ErrorCode.LOCAL_BRANCH_MISSING,
            "Local branch reference is missing or invalid.",
            any_of=("src refspec", "does not match any"),
            next_steps="Check out the correct branch locally, then retry the push.",
        ),
        ClassificationRule(
            ErrorCode.HEAD_INVALID,
            "Repository HEAD is invalid.",
            any_of=("unknown revision", "ambiguous argument 'head'"),
            next_steps=(
                "Ensure the repository has a valid commit history and checked-out branch."
            ),
        ),
        ClassificationRule(
            ErrorCode.REPO_NOT_FOUND,
            "Repository not found.",
            any_of=("repository not found",),
            next_steps=(
                "Verify the repository URL, ownership, and that your account can access it."
            ),
        ),
        ClassificationRule(
            ErrorCode.AUTH_FAILED,
            "Authentication failed.",
            any_of=(
                "authentication failed",
                "invalid username or password",
                "could not read username",
                "token expired",
                "bad credentials",
            ),
            next_steps="Sign in again or update your GitHub token/SSH credentials, then retry.",
        ),
        ClassificationRule(
            ErrorCode.PERMISSION_DENIED,
            "You do not have permission to push to this repository.",
            any_of=(
                "permission denied",
                "403",
                "access denied",
                "write access to repository not granted",
            ),
            next_steps=(
                "Check repository access rights, token scopes, and organization permissions."
            ),
        ),
        ClassificationRule(
            ErrorCode.REMOTE_REJECTED,
            "GitHub rejected the push due to branch protection or repository rules.",
            any_of=(
                "protected branch",
                "protected branch hook declined",
                "gh006",
                "remote rejected",
            ),
            next_steps=(
                "Push to a feature branch and open a pull request, "
                "or adjust branch protection settings."
            ),
        ),
        ClassificationRule(
            ErrorCode.NON_FAST_FORWARD,
            "Remote branch has new commits and rejected a non-fast-forward push.",
            any_of=("non-fast-forward", "fetch first"),
            next_steps=(
                "Pull/rebase the latest changes, resolve conflicts if needed, then push again."
            ),
        ),
        ClassificationRule(
            ErrorCode.NETWORK_ERROR,
            "Network error while trying to reach GitHub.",
            any_of=(
                "could not resolve host",
                "timed out",
                "failed to connect",
                "network is unreachable",
            ),
            next_steps="Check your internet/VPN/proxy connection and retry the push.",
        ),
    ),
    fallback_code=ErrorCode.PUSH_FAILED,
    fallback_message="Push to GitHub failed.",
    fallback_next_steps=(
        "Retry the push. If it keeps failing, review repository permissions and branch rules."
    ),
    use_error_message_on_fallback=False,
)

LOCAL_SAVE_RULES = RuleTable(
    name="local_save",
    rules=(
        ClassificationRule(
            ErrorCode.PERMISSION_DENIED,
            "Permission denied for the selected folder.",
            any_of=("eacces", "eperm", "permission denied"),
            next_steps=(
                "Grant folder access permissions, pick another writable folder, then try again."
            ),
        ),
        ClassificationRule(
            ErrorCode.PATH_NOT_FOUND,
            "Destination folder path was not found.",
            any_of=("enoent", "no such file or directory"),
            next_steps="Verify the destination path exists or create a new folder and retry.",
        ),
    ),
    fallback_code=ErrorCode.SAVE_LOCAL_FAILED,
    fallback_message="Saving changes to the selected folder failed.",
    fallback_next_steps=(
        "Choose a different folder path and make sure the app has write access."
    ),
    use_error_message_on_fallback=False,
)

_FILESYSTEM_RULES = (
    ClassificationRule(
        ErrorCode.PERMISSION_DENIED,
        "Permission denied while writing project files.",
        any_of=("eacces", "eperm", "permission denied"),
        next_steps="Grant write access to the project folder and retry.",
    ),
    ClassificationRule(
        ErrorCode.PATH_NOT_FOUND,
        "A project file or folder was not found.",
        any_of=("enoent", "no such file or directory"),
        next_steps="Reconnect the project from Sync and retry.",
    ),
)

APPLY_RULES = RuleTable(
    name="apply",
    rules=_FILESYSTEM_RULES,
    fallback_code=ErrorCode.APPLY_FAILED,
    fallback_message="Applying changes failed.",
    fallback_next_steps="Retry the apply. If it keeps failing, reconnect the project from Sync.",
)

UNDO_RULES = RuleTable(
    name="undo",
    rules=_FILESYSTEM_RULES,
    fallback_code=ErrorCode.UNDO_FAILED,
    fallback_message="Undo failed.",
    fallback_next_steps="Retry the undo. Backups are kept until the undo succeeds.",
)

# Failures of an existing mirror's fetch that are real remote-access problems,
# never local corruption.
REMOTE_ACCESS_SIGNATURES = (
    "authentication",
    "could not resolve",
    "permission denied",
    "timed out",
    "repository not found",
    "could not read from remote",
)

MISSING_REMOTE_REF_SIGNATURES = ("couldn't find remote ref", "remote branch", "not found")


def classify(raw_text: str, table: RuleTable) -> Classification:
    """
    Classify raw failure text with a rule table.

    Args:
        raw_text: Any failure text (case is ignored)
        table: Ordered rules to apply

    Returns:
        The first matching rule's classification, or the table fallback
    """
    raw = (raw_text or "").lower()
    for rule in table.rules:
        if rule.matches(raw):
            return Classification(
                code=rule.code,
                message=rule.message,
                next_steps=table.next_steps_for(rule.code),
            )
    return Classification(
        code=table.fallback_code,
        message=table.fallback_message,
        next_steps=table.fallback_next_steps,
    )


def raw_error_text(error: BaseException) -> str:
    """
    Everything an exception says about itself, for substring matching.

    For git failures only stderr is used: the command line itself (branch
    names, URLs) must not influence the classification.
    """
    if isinstance(error, GitError):
        if error.timed_out:
            return f"timed out\n{error.stderr}"
        return error.stderr or str(error)

    parts = [str(error)]
    stderr = getattr(error, "stderr", None)
    if stderr:
        parts.append(str(stderr))
    if isinstance(error, OSError) and error.errno in errno.errorcode:
        parts.append(errno.errorcode[error.errno])
    return "\n".join(parts)


def is_remote_access_failure(error: BaseException) -> bool:
    raw = raw_error_text(error).lower()
    return any(s in raw for s in REMOTE_ACCESS_SIGNATURES)


def is_missing_remote_ref(error: BaseException) -> bool:
    raw = raw_error_text(error).lower()
    return any(s in raw for s in MISSING_REMOTE_REF_SIGNATURES)


def extract_push_reason(stderr: str) -> str:
    """
    Pick the most useful line out of ``git push`` stderr.

    ``error:``, ``fatal:`` and ``To <url>`` lines are skipped; a ``remote:``
    prefix is stripped.
    """
    for line in (stderr or "").splitlines():
        line = line.strip()
        if not line:
            continue
        lower = line.lower()
        if lower.startswith(("error:", "fatal:", "to ")):
            continue
        if lower.startswith("remote:"):
            return line[len("remote:") :].strip()
        return line
    return ""


def error_summary(error: BaseException) -> str:
    """
    One-line description of an exception for display.

    A git failure is described by its stderr (the first ``fatal:`` or
    ``error:`` line, prefix stripped) rather than by the command that ran.
    """
    if isinstance(error, GitError) and error.stderr:
        lines = [line.strip() for line in error.stderr.splitlines() if line.strip()]
        for line in lines:
            lower = line.lower()
            for prefix in ("fatal:", "error:"):
                if lower.startswith(prefix):
                    return line[len(prefix) :].strip()
        if lines:
            return lines[0]
    return str(error)


def technical_details(error: BaseException) -> str:
    code = getattr(error, "code", None)
    label = code.value if isinstance(code, ErrorCode) else type(error).__name__
    parts = [label, str(error)]
    stderr = getattr(error, "stderr", None)
    if stderr:
        parts.append(str(stderr))
    detail = getattr(error, "detail", None)
    if detail:
        parts.append(str(detail))
    return redact_credentials("\n".join(p for p in parts if p).strip())


def report_failure(error: BaseException, table: RuleTable) -> FailureReport:
    """
    Build the user-facing report for an exception.

    Typed :class:`SpecMeError` instances keep their own code and message;
    everything else is classified by text.
    """
    if isinstance(error, SpecMeError):
        message = redact_credentials(error.message)
        return FailureReport(
            reason=error.code.value,
            reason_message=message,
            exact_reason=message,
            next_steps=table.next_steps_for(error.code),
            technical_details=technical_details(error),
            available_branches=error.available_branches,
            retryable=error.code not in NOT_RETRYABLE,
        )

    result = classify(raw_error_text(error), table)
    error_message = redact_credentials(error_summary(error))
    reason_message = result.message
    if result.code == table.fallback_code and table.use_error_message_on_fallback:
        reason_message = error_message or result.message

    exact_reason = error_message or result.message
    if table is PUSH_RULES and isinstance(error, GitError):
        exact_reason = extract_push_reason(error.stderr) or exact_reason

    return FailureReport(
        reason=result.code.value,
        reason_message=reason_message,
        exact_reason=redact_credentials(exact_reason),
        next_steps=result.next_steps,
        technical_details=technical_details(error),
        retryable=result.code not in NOT_RETRYABLE,
    )

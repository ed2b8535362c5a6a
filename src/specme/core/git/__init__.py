"""
Git integration: the adapter around the git binary, forge URL handling and
failure classification.

Example:
    >>> from specme.core.git import GitAdapter, parse_repo_url
    >>> parse_repo_url("https://github.com/org/repo.git").slug
    'org__repo'
"""

from specme.core.git.adapter import GitAdapter
from specme.core.git.classify import (
    APPLY_RULES,
    CONNECTION_RULES,
    LOCAL_RULES,
    LOCAL_SAVE_RULES,
    PUSH_RULES,
    SYNC_RULES,
    UNDO_RULES,
    classify,
    report_failure,
)
from specme.core.git.fallback import first_success
from specme.core.git.models import GitResult, GitSyncStatus
from specme.core.git.urls import (
    RepoRef,
    parse_repo_url,
    redact_credentials,
    redact_repo_url,
    with_credentials,
)

__all__ = [
    "APPLY_RULES",
    "CONNECTION_RULES",
    "GitAdapter",
    "GitResult",
    "GitSyncStatus",
    "LOCAL_RULES",
    "LOCAL_SAVE_RULES",
    "PUSH_RULES",
    "RepoRef",
    "SYNC_RULES",
    "UNDO_RULES",
    "classify",
    "first_success",
    "parse_repo_url",
    "redact_credentials",
    "redact_repo_url",
    "report_failure",
    "with_credentials",
]

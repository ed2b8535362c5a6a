"""
Repository sync engine.

Maintains one managed mirror (a shallow clone) per remote repository under
the mirrors root and brings it to a single, deterministic checkout:

- no mirror yet: shallow-clone the requested branch, falling back to the
  remote's default branch
- mirror exists: re-point the remote URL, fetch with pruning, stash any
  uncommitted edits and hard-checkout the branch in place; a structurally
  broken mirror is wiped and re-cloned
- remote has no branches at all: accept the local state as is
- otherwise check out the requested branch, or the one the
  :class:`~specme.core.sync.resolver.BranchResolver` picks

Syncs of the same mirror are serialized with a per-slug lock.
"""

from __future__ import annotations

import logging
import shutil
import threading
from collections.abc import Sequence
from pathlib import Path

from specme.core.config.models import SpecMeConfig
from specme.core.errors import (
    BranchMissing,
    BranchSelectionRequired,
    GitError,
    HeadInvalid,
)
from specme.core.git.adapter import GitAdapter
from specme.core.git.classify import is_missing_remote_ref, is_remote_access_failure
from specme.core.git.models import GitSyncStatus
from specme.core.git.urls import RepoRef, parse_repo_url, with_credentials
from specme.core.sync.models import SyncOutcome
from specme.core.sync.resolver import BranchResolver, normalize_hints

logger = logging.getLogger(__name__)

_locks_guard = threading.Lock()
_mirror_locks: dict[str, threading.Lock] = {}


def _lock_for(slug: str) -> threading.Lock:
    with _locks_guard:
        lock = _mirror_locks.get(slug)
        if lock is None:
            lock = threading.Lock()
            _mirror_locks[slug] = lock
        return lock


class RepositorySyncEngine:
    """
    Clones, fetches and checks out managed repository mirrors.

    Example:
        >>> engine = RepositorySyncEngine(load_config())
        >>> outcome = engine.sync("https://github.com/org/repo.git")
        >>> outcome.mirror_path.name
        'org__repo'
    """

    def __init__(
        self,
        config: SpecMeConfig,
        git: GitAdapter | None = None,
        resolver: BranchResolver | None = None,
    ) -> None:
        self.config = config
        self.git = git or GitAdapter(config.git)
        self.resolver = resolver or BranchResolver(self.git)

    @property
    def mirrors_root(self) -> Path:
        return self.config.paths.mirrors_root

    def parse(self, repository_url: str) -> RepoRef:
        return parse_repo_url(repository_url, self.config.forge.host)

    def mirror_path_for(self, repository_url: str) -> Path:
        """Where the mirror of ``repository_url`` lives."""
        return self.mirrors_root / self.parse(repository_url).slug

    def sync(
        self,
        repository_url: str,
        requested_branch: str | None = None,
        hints: Sequence[str] | None = None,
    ) -> SyncOutcome:
        """
        Sync a remote repository into its mirror.

        Args:
            repository_url: Forge URL (HTTPS or SSH)
            requested_branch: Branch to check out; empty means "resolve"
            hints: Branches that worked for this repository before

        Returns:
            SyncOutcome with the mirror path, branch and status

        Raises:
            InvalidRepositoryUrl: If the URL is not a forge URL
            BranchSelectionRequired: If the branch is ambiguous or the
                requested one does not exist on an existing mirror's remote
            HeadInvalid: If no branch could be determined after cloning
            GitError: For unrecoverable git failures (classify to report)
        """
        ref = self.parse(repository_url)
        clone_url = with_credentials(
            ref.clone_url, self.config.forge.token, self.config.forge.token_username
        )
        requested = (requested_branch or "").strip()
        hint_list = normalize_hints(hints)
        mirror = self.mirrors_root / ref.slug
        self.mirrors_root.mkdir(parents=True, exist_ok=True)

        with _lock_for(ref.slug):
            logger.info(
                "Syncing %s (branch=%s) into %s", ref.redacted_url, requested or "<default>", mirror
            )
            if not mirror.exists():
                return self._clone_new(mirror, clone_url, requested)

            recovered = self._refresh_existing(mirror, clone_url)

            remote_branches = self.git.remote_branches(mirror)
            if not remote_branches:
                return self._accept_empty_remote(mirror, requested, recovered)

            if requested:
                branch = requested
                try:
                    stashed = self.checkout_branch(mirror, branch)
                except BranchMissing as e:
                    branches = self.git.remote_branches(mirror)
                    if branches:
                        raise BranchSelectionRequired(branches, detail=str(e)) from e
                    raise
            else:
                try:
                    branch = self.resolver.resolve_default_branch(mirror, hint_list)
                except BranchSelectionRequired as e:
                    raise BranchSelectionRequired(remote_branches, detail=e.detail) from e
                stashed = self.checkout_branch(mirror, branch)

            return SyncOutcome(
                mirror_path=mirror,
                branch=branch,
                sync_status=self.status(mirror, branch),
                recovered=recovered,
                stashed_changes=stashed,
            )

    def status(self, mirror: Path, branch: str = "") -> GitSyncStatus | None:
        """Best-effort sync status; never fails the sync."""
        try:
            return self.git.sync_status(mirror, branch)
        except GitError as e:
            logger.warning("Could not compute sync status for %s: %s", mirror, e)
            return None

    def checkout_branch(self, mirror: Path, branch: str) -> bool:
        """
        Fetch exactly ``branch`` and hard-checkout it at the remote tip.

        Uncommitted changes in the mirror are stashed first; if that is not
        possible they are discarded with a warning.

        Returns:
            True if local changes were stashed

        Raises:
            BranchMissing: If the remote has no such branch
        """
        try:
            self.git.fetch_branch(mirror, branch)
        except GitError as e:
            if is_missing_remote_ref(e):
                raise BranchMissing(branch, self.git.remote_branches(mirror)) from e
            raise
        if not self.git.has_ref(mirror, f"refs/remotes/{self.git.remote}/{branch}"):
            raise BranchMissing(branch, self.git.remote_branches(mirror))
        stashed = self._set_aside_local_changes(mirror, branch)
        self.git.checkout_tracking(mirror, branch)
        return stashed

    def _set_aside_local_changes(self, mirror: Path, branch: str) -> bool:
        try:
            stashed = self.git.stash_local_changes(mirror, f"specme: before sync of {branch}")
        except GitError as e:
            logger.warning("Could not stash local changes in %s, discarding them: %s", mirror, e)
            return False
        if stashed:
            logger.warning(
                "Stashed uncommitted changes in %s before checking out %s", mirror, branch
            )
        return stashed

    def _clone_new(self, mirror: Path, clone_url: str, requested: str) -> SyncOutcome:
        if requested:
            try:
                self.git.clone(clone_url, mirror, branch=requested)
                return SyncOutcome(
                    mirror_path=mirror,
                    branch=requested,
                    sync_status=self.status(mirror, requested),
                    cloned=True,
                )
            except GitError as e:
                logger.info("Clone of branch %s failed, cloning default branch: %s", requested, e)
                self._remove_partial(mirror)

        self.git.clone(clone_url, mirror)
        branch = self._detect_cloned_branch(mirror)
        return SyncOutcome(
            mirror_path=mirror,
            branch=branch,
            sync_status=self.status(mirror, branch),
            cloned=True,
        )

    def _detect_cloned_branch(self, mirror: Path) -> str:
        if self.git.has_commits(mirror):
            branch = self.git.current_branch_name(mirror)
        else:
            branch = self.git.symbolic_branch(mirror)
            logger.info("Cloned repository has unborn HEAD (empty repo?). Branch: %s", branch)
        if not branch:
            raise HeadInvalid("no branch is checked out after clone")
        return branch

    def _refresh_existing(self, mirror: Path, clone_url: str) -> bool:
        """
        Re-point and fetch an existing mirror.

        Remote-access failures (auth, network, not found) propagate as they
        are. Other failures are retried, then treated as corruption: the
        mirror is wiped, re-cloned and fetched once more.

        Returns:
            True if the mirror had to be re-cloned
        """
        if self.git.is_repository_root(mirror):
            last_error: GitError | None = None
            for attempt in range(1 + self.config.git.corruption_retry):
                try:
                    self.git.set_remote_url(mirror, clone_url)
                    self.git.fetch_all(mirror)
                    return False
                except GitError as e:
                    if is_remote_access_failure(e):
                        raise
                    last_error = e
                    logger.info("Fetch of %s failed (attempt %d): %s", mirror, attempt + 1, e)
            logger.warning("Mirror at %s keeps failing to fetch: %s", mirror, last_error)
        else:
            logger.warning("Mirror at %s is not a valid repository root", mirror)

        logger.warning("Existing mirror at %s appears corrupted. Removing for fresh clone.", mirror)
        shutil.rmtree(mirror)
        self.git.clone(clone_url, mirror)
        self.git.set_remote_url(mirror, clone_url)
        self.git.fetch_all(mirror)
        return True

    def _accept_empty_remote(self, mirror: Path, requested: str, recovered: bool) -> SyncOutcome:
        logger.info("Remote has no branches. Accepting current local state of %s", mirror)
        branch = self.git.symbolic_branch(mirror) or requested or "main"
        return SyncOutcome(
            mirror_path=mirror,
            branch=branch,
            sync_status=self.status(mirror, branch),
            recovered=recovered,
            empty_remote=True,
        )

    def _remove_partial(self, mirror: Path) -> None:
        if mirror.exists():
            logger.info("Removing partial clone at %s", mirror)
            shutil.rmtree(mirror)

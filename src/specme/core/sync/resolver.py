"""
Default-branch resolution.

Used when sync was not asked for a specific branch. The signals are tried in
a fixed order; the first one that yields a branch wins:

1. a stored hint (branch used by an earlier sync of the same repository)
   that still exists on the remote
2. the mirror's checked-out branch, if HEAD is valid and the remote has it
3. the remote's symbolic default branch
4. ``main``, then ``master``, if present on the remote
5. the only branch of a single-branch remote
6. a conventional name (``develop``, ``dev``, ``trunk``, ``release``)

If none applies the resolver refuses to guess and raises
:class:`~specme.core.errors.BranchSelectionRequired` with the candidates.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from specme.core.errors import BranchSelectionRequired, GitError
from specme.core.git.adapter import GitAdapter
from specme.core.git.fallback import first_success

logger = logging.getLogger(__name__)

WELL_KNOWN_DEFAULTS = ("main", "master")


def normalize_hints(hints: Sequence[str] | None) -> list[str]:
    """Strip and de-duplicate hints, keeping their order."""
    seen: set[str] = set()
    result = []
    for hint in hints or []:
        clean = (hint or "").strip()
        if clean and clean not in seen:
            seen.add(clean)
            result.append(clean)
    return result


class BranchResolver:
    """
    Decides which branch to check out when none was requested.

    Example:
        >>> resolver = BranchResolver(GitAdapter())
        >>> resolver.resolve_default_branch(mirror_dir, hints=["develop"])
        'develop'
    """

    def __init__(
        self,
        git: GitAdapter,
        conventional_branches: Sequence[str] | None = None,
    ) -> None:
        self.git = git
        self.conventional_branches = list(
            conventional_branches
            if conventional_branches is not None
            else git.config.conventional_branches
        )

    def steps(
        self, mirror: Path, hints: Sequence[str] | None = None
    ) -> list[tuple[str, Callable[[], str | None]]]:
        """The ordered resolution strategies for one mirror."""
        hint_list = normalize_hints(hints)
        return [
            ("stored hint", lambda: self._from_hints(mirror, hint_list)),
            ("current branch", lambda: self._from_current_branch(mirror)),
            ("remote default", lambda: self.git.remote_default_branch(mirror)),
            ("main/master", lambda: self._from_well_known(mirror)),
            ("remote branch list", lambda: self._from_branch_list(mirror)),
        ]

    def resolve_default_branch(self, mirror: Path, hints: Sequence[str] | None = None) -> str:
        """
        Resolve the branch to check out.

        Args:
            mirror: Mirror working copy with a configured remote
            hints: Previously successful branches for this repository

        Returns:
            Branch name

        Raises:
            BranchSelectionRequired: When the choice is ambiguous; carries
                the candidate branch list
        """
        branch = first_success(self.steps(mirror, hints), label="default branch")
        if branch:
            logger.info("Resolved default branch: %s", branch)
            return branch
        # _from_branch_list raises when it has candidates; reaching here means none.
        raise BranchSelectionRequired([])

    def _from_hints(self, mirror: Path, hints: list[str]) -> str | None:
        for hint in hints:
            if self.git.remote_has_branch(mirror, hint):
                logger.info("Branch detection: using stored branch hint -> %s", hint)
                return hint
        return None

    def _from_current_branch(self, mirror: Path) -> str | None:
        if not self.git.has_commits(mirror):
            logger.info("Branch detection: current branch skipped (HEAD is invalid/unborn)")
            return None
        current = self.git.current_branch_name(mirror)
        if current and self.git.remote_has_branch(mirror, current):
            logger.info("Branch detection: using current branch -> %s", current)
            return current
        return None

    def _from_well_known(self, mirror: Path) -> str | None:
        for name in WELL_KNOWN_DEFAULTS:
            if self.git.remote_has_branch(mirror, name):
                logger.info("Branch detection: found %s on remote", name)
                return name
        return None

    def _from_branch_list(self, mirror: Path) -> str | None:
        try:
            remote_branches = self.git.remote_branches_from_remote(mirror)
        except GitError as e:
            logger.info("Branch detection: remote branch list unavailable: %s", e)
            remote_branches = []

        if len(remote_branches) == 1:
            logger.info("Branch detection: using only remote branch -> %s", remote_branches[0])
            return remote_branches[0]

        if len(remote_branches) > 1:
            for name in self.conventional_branches:
                if name in remote_branches:
                    logger.info("Branch detection: using conventional branch -> %s", name)
                    return name
            logger.info("Branch detection: ambiguous default branch, manual selection required")
            raise BranchSelectionRequired(remote_branches)

        try:
            local_branches = self.git.remote_branches_from_local(mirror)
        except GitError:
            local_branches = []
        if local_branches:
            logger.info(
                "Branch detection: remote list unavailable; offering cached refs for selection"
            )
        raise BranchSelectionRequired(local_branches)

"""
Thin synchronous wrapper around the git binary.

Every invocation runs non-interactively (no credential prompt can ever block
the process), with captured text output and a timeout. Failures raise
:class:`~specme.core.errors.GitError` carrying the command (credentials
redacted), stderr and exit status; classifying them into user-facing codes
is left to :mod:`specme.core.git.classify`.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from specme.core.config.models import GitConfig
from specme.core.errors import GitError
from specme.core.git.fallback import first_success
from specme.core.git.models import GitResult, GitSyncStatus
from specme.core.git.urls import redact_credentials

logger = logging.getLogger(__name__)

NON_INTERACTIVE_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "GCM_INTERACTIVE": "never",
}


class GitAdapter:
    """
    Runs git commands against a working directory.

    Example:
        >>> git = GitAdapter()
        >>> git.is_repository(Path("."))
        True
    """

    def __init__(self, config: GitConfig | None = None) -> None:
        self.config = config or GitConfig()

    @property
    def remote(self) -> str:
        return self.config.remote_name

    def _env(self) -> dict[str, str]:
        env = dict(os.environ)
        env.update(NON_INTERACTIVE_ENV)
        env.setdefault("GIT_SSH_COMMAND", "ssh -o BatchMode=yes")
        return env

    def run(self, args: list[str], cwd: Path, *, check: bool = True) -> GitResult:
        """
        Run a git command.

        Args:
            args: Git command arguments (without "git" prefix)
            cwd: Working directory
            check: Whether to raise on non-zero exit code

        Returns:
            GitResult with exit status and raw stdout/stderr

        Raises:
            GitError: If the command fails (and check=True), times out, or
                git is not installed
        """
        cmd = [self.config.binary] + args
        printable = redact_credentials(" ".join(cmd))
        logger.debug("Running git command: %s (cwd=%s)", printable, cwd)

        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.config.timeout_seconds,
                env=self._env(),
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired as e:
            raise GitError(
                f"Git command timed out: {printable}",
                command=[redact_credentials(c) for c in cmd],
                timed_out=True,
            ) from e
        except FileNotFoundError as e:
            raise GitError(
                f"git not found in PATH or missing working directory: {cwd}",
                command=[redact_credentials(c) for c in cmd],
            ) from e

        git_result = GitResult(
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=redact_credentials(result.stderr or ""),
        )
        if check and not git_result.ok:
            raise GitError(
                f"Git command failed: {printable}",
                command=[redact_credentials(c) for c in cmd],
                stderr=git_result.stderr.strip(),
                returncode=git_result.returncode,
            )
        return git_result

    def output(self, args: list[str], cwd: Path) -> str:
        """Run a git command and return its stripped stdout."""
        return self.run(args, cwd).stdout.strip()

    # ------------------------------------------------------------------
    # Repository state
    # ------------------------------------------------------------------

    def is_repository(self, path: Path) -> bool:
        """True if ``path`` is inside a git working tree."""
        if not path.is_dir():
            return False
        try:
            return self.output(["rev-parse", "--is-inside-work-tree"], path) == "true"
        except GitError:
            return False

    def is_repository_root(self, path: Path) -> bool:
        """True if ``path`` is the top level of its own working tree."""
        if not self.is_repository(path):
            return False
        try:
            toplevel = self.output(["rev-parse", "--show-toplevel"], path)
        except GitError:
            return False
        return Path(toplevel).resolve() == path.resolve()

    def has_commits(self, path: Path) -> bool:
        """True if HEAD resolves to a commit (not unborn, not broken)."""
        result = self.run(["rev-parse", "--verify", "--quiet", "HEAD"], path, check=False)
        return result.ok and bool(result.stdout.strip())

    def symbolic_branch(self, path: Path) -> str | None:
        """Branch HEAD points at; works for unborn HEAD, None when detached."""
        try:
            branch = self.output(["symbolic-ref", "--short", "HEAD"], path)
        except GitError:
            return None
        return branch or None

    def current_branch_name(self, path: Path) -> str | None:
        """
        Name of the checked-out branch.

        Tries ``rev-parse --abbrev-ref``, then ``symbolic-ref``, then parses
        ``git branch`` output. A detached or ambiguous answer falls through to
        the next strategy.
        """

        def from_abbrev_ref() -> str | None:
            return _usable_branch(self.output(["rev-parse", "--abbrev-ref", "HEAD"], path))

        def from_symbolic_ref() -> str | None:
            return _usable_branch(self.output(["symbolic-ref", "--short", "HEAD"], path))

        def from_branch_list() -> str | None:
            for line in self.output(["branch"], path).splitlines():
                line = line.strip()
                if line.startswith("* "):
                    return _usable_branch(line[2:])
            return None

        return first_success(
            [
                ("abbrev-ref", from_abbrev_ref),
                ("symbolic-ref", from_symbolic_ref),
                ("branch-list", from_branch_list),
            ],
            label="current branch",
        )

    def status_porcelain(self, path: Path) -> str:
        return self.run(["status", "--porcelain"], path).stdout

    def sync_status(self, path: Path, branch_hint: str = "") -> GitSyncStatus:
        """
        Compute branch, HEAD, dirtiness and ahead/behind counts.

        The HEAD, branch and status queries are independent and run
        concurrently. Ahead/behind are None if they cannot be computed.

        Raises:
            GitError: If ``path`` is not a git working tree
        """
        self.output(["rev-parse", "--is-inside-work-tree"], path)
        head_valid = self.has_commits(path)

        head: str | None = None
        branch: str | None = None
        if head_valid:
            with ThreadPoolExecutor(max_workers=3) as executor:
                head_future = executor.submit(self.output, ["rev-parse", "HEAD"], path)
                branch_future = executor.submit(
                    self.output, ["rev-parse", "--abbrev-ref", "HEAD"], path
                )
                status_future = executor.submit(self.status_porcelain, path)
                head = head_future.result() or None
                branch = branch_future.result() or None
                porcelain = status_future.result()
        else:
            branch = self.symbolic_branch(path)
            try:
                porcelain = self.status_porcelain(path)
            except GitError:
                porcelain = ""

        ahead: int | None = None
        behind: int | None = None
        branch_name = branch_hint or branch or ""
        if head_valid and branch_name and branch_name != "HEAD":
            ahead, behind = self._ahead_behind(path, branch_name)

        return GitSyncStatus(
            branch=branch or branch_hint or None,
            head_commit=head,
            is_dirty=bool(porcelain.strip()),
            ahead_count=ahead,
            behind_count=behind,
            head_valid=head_valid,
        )

    def _ahead_behind(self, path: Path, branch: str) -> tuple[int | None, int | None]:
        try:
            counts = self.output(
                ["rev-list", "--left-right", "--count", f"{branch}...{self.remote}/{branch}"],
                path,
            ).split()
            return int(counts[0]), int(counts[1])
        except (GitError, ValueError, IndexError):
            return None, None

    # ------------------------------------------------------------------
    # Remote branches
    # ------------------------------------------------------------------

    def normalize_branch_list(self, branches: list[str]) -> list[str]:
        """Strip, de-duplicate (keeping order), and drop HEAD and safety branches."""
        seen: set[str] = set()
        result: list[str] = []
        prefix = self.config.safety_branch_prefix
        for raw in branches:
            branch = (raw or "").strip()
            if not branch or branch == "HEAD" or branch in seen:
                continue
            if prefix and branch.startswith(prefix):
                continue
            seen.add(branch)
            result.append(branch)
        return result

    def remote_branches_from_remote(self, path: Path) -> list[str]:
        """
        Ask the remote for its branch heads (``ls-remote --heads``).

        Raises:
            GitError: If the remote is unreachable
        """
        stdout = self.output(["ls-remote", "--heads", self.remote], path)
        branches = []
        for line in stdout.splitlines():
            match = re.search(r"refs/heads/(.+)$", line)
            if match:
                branches.append(match.group(1).strip())
        return self.normalize_branch_list(branches)

    def remote_branches_from_local(self, path: Path) -> list[str]:
        """Branches known from locally cached remote-tracking refs."""
        stdout = self.output(
            ["for-each-ref", "--format=%(refname:short)", f"refs/remotes/{self.remote}"],
            path,
        )
        prefix = f"{self.remote}/"
        branches = []
        for line in stdout.splitlines():
            line = line.strip()
            if line.startswith(prefix):
                line = line[len(prefix) :]
            if line and line != self.remote:
                branches.append(line)
        return self.normalize_branch_list(branches)

    def remote_branches(self, path: Path) -> list[str]:
        """
        Remote branch list, preferring the remote itself.

        Falls back to remote-tracking refs when the remote is unreachable or
        reports nothing. Never raises.
        """
        try:
            branches = self.remote_branches_from_remote(path)
        except GitError as e:
            logger.debug("ls-remote failed, using remote-tracking refs: %s", e)
            branches = []
        if branches:
            return branches
        try:
            return self.remote_branches_from_local(path)
        except GitError:
            return []

    def remote_has_branch(self, path: Path, branch: str) -> bool:
        clean = (branch or "").strip()
        if not clean:
            return False
        try:
            stdout = self.output(["ls-remote", "--heads", self.remote, f"refs/heads/{clean}"], path)
        except GitError:
            return False
        return bool(stdout)

    def remote_default_branch(self, path: Path) -> str | None:
        """
        The remote's symbolic default branch.

        Tries the local ``refs/remotes/<remote>/HEAD`` after refreshing it with
        ``remote set-head -a``, then asks the remote with ``ls-remote --symref``.
        """

        def from_remote_head_ref() -> str | None:
            self.run(["remote", "set-head", self.remote, "-a"], path, check=False)
            ref = self.output(["symbolic-ref", "--short", f"refs/remotes/{self.remote}/HEAD"], path)
            prefix = f"{self.remote}/"
            if ref.startswith(prefix) and len(ref) > len(prefix):
                return ref[len(prefix) :]
            return None

        def from_ls_remote_symref() -> str | None:
            stdout = self.output(["ls-remote", "--symref", self.remote, "HEAD"], path)
            for line in stdout.splitlines():
                if line.startswith("ref: refs/heads/") and line.endswith("\tHEAD"):
                    branch = line[len("ref: refs/heads/") : -len("\tHEAD")].strip()
                    if branch:
                        return branch
            return None

        return first_success(
            [
                ("remote HEAD ref", from_remote_head_ref),
                ("ls-remote --symref", from_ls_remote_symref),
            ],
            label="remote default branch",
        )

    # ------------------------------------------------------------------
    # Clone / fetch / checkout
    # ------------------------------------------------------------------

    def clone(self, url: str, dest: Path, *, branch: str | None = None) -> None:
        """Shallow clone ``url`` into ``dest`` (optionally a single branch)."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        args = ["clone", "--depth", str(self.config.clone_depth)]
        if branch:
            args.extend(["--branch", branch])
        args.extend([url, str(dest)])
        self.run(args, dest.parent)

    def set_remote_url(self, path: Path, url: str) -> None:
        self.run(["remote", "set-url", self.remote, url], path)

    def fetch_all(self, path: Path) -> None:
        self.run(["fetch", "--all", "--prune"], path)

    def fetch_branch(self, path: Path, branch: str) -> None:
        """Fetch exactly one branch into its remote-tracking ref."""
        self.run(
            [
                "fetch",
                "--prune",
                "--depth",
                str(self.config.clone_depth),
                self.remote,
                f"+refs/heads/{branch}:refs/remotes/{self.remote}/{branch}",
            ],
            path,
        )

    def has_ref(self, path: Path, ref: str) -> bool:
        result = self.run(["rev-parse", "--verify", "--quiet", ref], path, check=False)
        return result.ok

    def checkout_tracking(self, path: Path, branch: str) -> None:
        """
        Hard checkout of ``branch`` at the remote-tracking tip.

        Tracked local modifications are discarded; set them aside first with
        :meth:`stash_local_changes` to keep them.
        """
        self.run(["checkout", "-f", "-B", branch, f"{self.remote}/{branch}"], path)

    def stash_local_changes(self, path: Path, message: str) -> bool:
        """
        Stash tracked and untracked modifications.

        Returns:
            True if something was stashed, False for a clean working tree

        Raises:
            GitError: If the stash cannot be created (e.g. unborn HEAD)
        """
        if not self.status_porcelain(path).strip():
            return False
        self.run(["stash", "push", "--include-untracked", "-m", message], path)
        return True

    def create_branch(self, path: Path, branch: str, *, orphan: bool = False) -> None:
        self.run(["checkout", "--orphan" if orphan else "-b", branch], path)

    # ------------------------------------------------------------------
    # Commit / push
    # ------------------------------------------------------------------

    def add_all(self, path: Path) -> None:
        self.run(["add", "-A"], path)

    def commit(self, path: Path, message: str) -> str:
        """Commit staged changes and return the new HEAD SHA."""
        self.run(["commit", "-m", message], path)
        return self.output(["rev-parse", "HEAD"], path)

    def unpushed_count(self, path: Path, target_branch: str) -> int | None:
        """
        Commits on HEAD that ``<remote>/<target_branch>`` does not have.

        Returns None when the remote-tracking ref is missing.
        """
        tracking = f"refs/remotes/{self.remote}/{target_branch}"
        if not self.has_ref(path, tracking):
            return None
        try:
            return int(self.output(["rev-list", "--count", f"{tracking}..HEAD"], path))
        except (GitError, ValueError):
            return None

    def push(self, path: Path, refspec: str) -> GitResult:
        return self.run(["push", "--set-upstream", self.remote, refspec], path)


def _usable_branch(name: str) -> str | None:
    branch = (name or "").strip()
    if not branch or branch == "HEAD" or branch.startswith("(HEAD detached"):
        return None
    return branch

"""
Pytest configuration and shared fixtures.

Every test runs against an isolated data directory and a throwaway global
git config. Repositories "on GitHub" are bare repositories under a temporary
directory; ``url.<file-url>.insteadOf`` rewrites ``https://github.com/`` to
point at them, so the forge URL code path runs end to end without network.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from specme.core.config.loader import clear_cache, load_config
from specme.core.config.models import SpecMeConfig

# ==============================================================================
# Git helpers
# ==============================================================================


def run_git(*args: str, cwd: Path) -> str:
    """Run git and return stripped stdout; fail the test on error."""
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


class FakeForge:
    """
    Bare repositories served as ``https://github.com/<owner>/<name>.git``.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def url(self, repo: str) -> str:
        return f"https://github.com/{repo}.git"

    def bare_path(self, repo: str) -> Path:
        return self.root / f"{repo}.git"

    def create(
        self,
        repo: str = "org/repo",
        branches: dict[str, dict[str, str]] | None = None,
        default: str = "main",
    ) -> str:
        """
        Create a bare repository with one commit per branch.

        Args:
            repo: "owner/name"
            branches: branch -> {relative path: content}; None creates an
                empty repository
            default: Branch the bare repository's HEAD points at

        Returns:
            The forge URL of the repository
        """
        bare = self.bare_path(repo)
        bare.parent.mkdir(parents=True, exist_ok=True)
        run_git("init", "--bare", "-b", default, str(bare), cwd=self.root)

        for branch, files in (branches or {}).items():
            self.commit(repo, branch, files, message=f"Initial {branch}")
        return self.url(repo)

    def commit(
        self,
        repo: str,
        branch: str,
        files: dict[str, str],
        message: str = "Update",
    ) -> str:
        """Commit ``files`` onto ``branch`` of the bare repository; returns the SHA."""
        bare = self.bare_path(repo)
        seed = self.root / ".seed" / repo.replace("/", "__") / branch.replace("/", "__")
        if seed.exists():
            run_git("pull", "--quiet", "origin", branch, cwd=seed)
        else:
            seed.parent.mkdir(parents=True, exist_ok=True)
            run_git("init", "-b", branch, str(seed), cwd=self.root)
            run_git("remote", "add", "origin", str(bare), cwd=seed)
            if branch in self.branches(repo):
                run_git("pull", "--quiet", "origin", branch, cwd=seed)

        for rel, content in files.items():
            target = seed / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        run_git("add", "-A", cwd=seed)
        run_git("commit", "--quiet", "--allow-empty", "-m", message, cwd=seed)
        run_git("push", "--quiet", "origin", f"HEAD:refs/heads/{branch}", cwd=seed)
        return run_git("rev-parse", "HEAD", cwd=seed)

    def branches(self, repo: str) -> list[str]:
        out = run_git(
            "for-each-ref", "--format=%(refname:short)", "refs/heads", cwd=self.bare_path(repo)
        )
        return [line for line in out.splitlines() if line]

    def head_sha(self, repo: str, branch: str) -> str:
        return run_git("rev-parse", f"refs/heads/{branch}", cwd=self.bare_path(repo))

    def show(self, repo: str, branch: str, path: str) -> str:
        return run_git("show", f"{branch}:{path}", cwd=self.bare_path(repo))

    def protect(self, repo: str, branch: str) -> None:
        """Install a pre-receive hook that rejects pushes to ``branch``."""
        hook = self.bare_path(repo) / "hooks" / "pre-receive"
        hook.write_text(
            "#!/bin/sh\n"
            "while read old new ref; do\n"
            f'  if [ "$ref" = "refs/heads/{branch}" ]; then\n'
            f'    echo "GH006: Protected branch update failed for refs/heads/{branch}." >&2\n'
            '    echo "error: Cannot push to a protected branch" >&2\n'
            "    exit 1\n"
            "  fi\n"
            "done\n"
            "exit 0\n"
        )
        hook.chmod(0o755)

    def unprotect(self, repo: str) -> None:
        hook = self.bare_path(repo) / "hooks" / "pre-receive"
        if hook.exists():
            hook.unlink()


# ==============================================================================
# Environment Fixtures
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """
    Isolate config, data directory and git configuration for each test.

    Creates:
    - <tmp>/data   specme data directory
    - <tmp>/xdg    XDG config home (no user config)
    - <tmp>/work   current directory (no project config)
    - <tmp>/gitconfig  global git config with identity and URL rewrite
    """
    forge_root = tmp_path / "forge"
    gitconfig = tmp_path / "gitconfig"
    gitconfig.write_text(
        "[user]\n"
        "\tname = Test User\n"
        "\temail = test@example.com\n"
        "[init]\n"
        "\tdefaultBranch = main\n"
        "[advice]\n"
        "\tdetachedHead = false\n"
        f'[url "file://{forge_root}/"]\n'
        "\tinsteadOf = https://github.com/\n"
    )

    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)

    monkeypatch.setenv("SPECME_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(gitconfig))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for var in (
        "GITHUB_TOKEN",
        "SPECME_FORGE_TOKEN",
        "SPECME_GIT_TIMEOUT",
        "SPECME_FORGE_HOST",
        "GIT_DIR",
        "GIT_WORK_TREE",
    ):
        monkeypatch.delenv(var, raising=False)

    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def config() -> SpecMeConfig:
    """Configuration resolved from the isolated environment."""
    return load_config(use_cache=False)


@pytest.fixture
def forge(tmp_path: Path) -> FakeForge:
    return FakeForge(tmp_path / "forge")


@pytest.fixture
def local_project(tmp_path: Path) -> Path:
    """A plain local project folder with a few files."""
    project = tmp_path / "project"
    (project / "src").mkdir(parents=True)
    (project / "README.md").write_text("# Local project\n")
    (project / "src" / "app.py").write_text("print('hello')\n")
    (project / ".env").write_text("SECRET=1\n")
    return project


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A temporary git repository with an initial commit."""
    repo = tmp_path / "repo"
    repo.mkdir()
    run_git("init", cwd=repo)
    (repo / "README.md").write_text("# Test Repo\n")
    run_git("add", "README.md", cwd=repo)
    run_git("commit", "-m", "Initial commit", cwd=repo)
    return repo

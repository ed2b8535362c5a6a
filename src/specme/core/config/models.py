"""
Configuration data models for specme.

These models define the structure of .specme.json and
~/.config/specme/config.json files, with validation and type safety via
Pydantic.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


def default_data_dir() -> Path:
    """Return ``$XDG_DATA_HOME/specme`` (``~/.local/share/specme``)."""
    if xdg_data := os.environ.get("XDG_DATA_HOME"):
        return Path(xdg_data) / "specme"
    return Path.home() / ".local" / "share" / "specme"


class PathsConfig(BaseModel):
    """
    Locations of engine-managed state.

    Everything lives under ``data_dir`` unless overridden. These directories
    are internal: no project may be rooted inside them and no apply may
    write into them.
    """

    data_dir: Path = Field(
        default_factory=default_data_dir,
        description="Root directory for all engine state",
    )
    mirrors_dir: Path | None = Field(
        default=None,
        description="Managed repository mirrors (default: <data_dir>/external_repos)",
    )
    sessions_dir: Path | None = Field(
        default=None,
        description="Apply-attempt backups (default: <data_dir>/apply_sessions)",
    )
    state_db: Path | None = Field(
        default=None,
        description="SQLite state database (default: <data_dir>/state.db)",
    )
    context_file: Path | None = Field(
        default=None,
        description="Indexed codebase text (default: <data_dir>/codebase_context.txt)",
    )

    @field_validator("data_dir", "mirrors_dir", "sessions_dir", "state_db", "context_file")
    @classmethod
    def expand_user(cls, v: Path | None) -> Path | None:
        if v is None:
            return None
        return Path(os.path.abspath(Path(v).expanduser()))

    @property
    def mirrors_root(self) -> Path:
        return self.mirrors_dir or self.data_dir / "external_repos"

    @property
    def sessions_root(self) -> Path:
        return self.sessions_dir or self.data_dir / "apply_sessions"

    @property
    def state_db_path(self) -> Path:
        return self.state_db or self.data_dir / "state.db"

    @property
    def context_path(self) -> Path:
        return self.context_file or self.data_dir / "codebase_context.txt"


class GitConfig(BaseModel):
    """Settings for the git binary and sync behavior."""

    binary: str = Field(default="git", description="git executable")
    timeout_seconds: int = Field(
        default=120,
        ge=1,
        description="Timeout per git invocation; a timeout is reported as a network error",
    )
    clone_depth: int = Field(default=1, ge=1, description="Depth for shallow clones and fetches")
    remote_name: str = Field(default="origin")
    conventional_branches: list[str] = Field(
        default_factory=lambda: ["develop", "dev", "trunk", "release"],
        description="Fallback branch names when the default branch is ambiguous",
    )
    safety_branches: bool = Field(
        default=True,
        description="Switch to a fresh branch before the first write into a mirror",
    )
    safety_branch_prefix: str = Field(default="specme/")
    corruption_retry: int = Field(
        default=1,
        ge=0,
        description="Fetch retries before an existing mirror is treated as corrupted",
    )


class ForgeConfig(BaseModel):
    """The single supported remote host."""

    model_config = ConfigDict(hide_input_in_errors=True)

    host: str = Field(default="github.com")
    token: str | None = Field(
        default=None,
        repr=False,
        description="Access token injected into HTTPS clone URLs",
    )
    token_username: str = Field(default="x-access-token")

    @field_validator("host")
    @classmethod
    def lower_host(cls, v: str) -> str:
        return v.strip().lower()


class ApplyConfig(BaseModel):
    """Write-protection rules for applied edits."""

    protected_patterns: list[str] = Field(
        default_factory=lambda: [".env", ".env.*", "*lock.json", "*.lock", "pnpm-lock.yaml"],
        description="fnmatch patterns; a match on any path component blocks the write",
    )


class ContextConfig(BaseModel):
    """What gets concatenated into the codebase context file."""

    extensions: list[str] = Field(
        default_factory=lambda: [
            ".ts", ".tsx", ".js", ".jsx", ".json", ".sql", ".css", ".md", ".html", ".py",
        ]
    )
    ignore: list[str] = Field(
        default_factory=lambda: [
            "node_modules",
            ".git",
            "dist",
            "external_repos",
            ".DS_Store",
            "package-lock.json",
            "codebase_context.txt",
        ]
    )
    max_file_bytes: int = Field(default=512_000, ge=1)


class SpecMeConfig(BaseModel):
    """
    Top-level configuration.

    Example:
        >>> config = SpecMeConfig()
        >>> config.git.remote_name
        'origin'
    """

    model_config = ConfigDict(extra="ignore")

    paths: PathsConfig = Field(default_factory=PathsConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    forge: ForgeConfig = Field(default_factory=ForgeConfig)
    apply: ApplyConfig = Field(default_factory=ApplyConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)

    def internal_roots(self) -> list[Path]:
        """
        Directories no project may overlap: the installed package and all
        engine state directories.
        """
        package_root = Path(__file__).resolve().parents[2]
        return [
            package_root,
            self.paths.data_dir,
            self.paths.mirrors_root,
            self.paths.sessions_root,
        ]

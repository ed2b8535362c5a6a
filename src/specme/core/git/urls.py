"""
Forge repository URL handling.

Only one forge host is supported (``github.com`` by default). Both HTTPS
(``https://github.com/owner/repo.git``) and SSH
(``git@github.com:owner/repo.git``) forms are accepted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import quote, urlsplit, urlunsplit

from specme.core.errors import InvalidRepositoryUrl

_CREDENTIALS_IN_URL = re.compile(r"(?P<scheme>[a-zA-Z][a-zA-Z0-9+.-]*://)[^/@\s]+@")


@dataclass(frozen=True)
class RepoRef:
    """
    A parsed forge repository URL.

    Attributes:
        kind: "https" or "ssh"
        clone_url: URL as given by the user (may carry credentials)
        redacted_url: Canonical URL without credentials, always ending in .git
        repo_path: "owner/name" path on the forge
    """

    kind: str
    clone_url: str
    redacted_url: str
    repo_path: str

    @property
    def slug(self) -> str:
        """Filesystem-safe mirror directory name, e.g. ``org__repo``."""
        cleaned = re.sub(r"[^a-zA-Z0-9/_-]", "-", self.repo_path)
        return cleaned.replace("/", "__")


def parse_repo_url(repo_url: str, host: str = "github.com") -> RepoRef:
    """
    Parse a forge repository URL.

    Args:
        repo_url: HTTPS or SSH URL
        host: The supported forge host

    Returns:
        Parsed RepoRef

    Raises:
        InvalidRepositoryUrl: For empty, malformed or non-forge URLs
    """
    raw = (repo_url or "").strip()
    if not raw:
        raise InvalidRepositoryUrl("Repository URL is required.")

    host = host.lower()
    ssh_match = re.match(rf"^git@{re.escape(host)}:(.+)$", raw, re.IGNORECASE)
    if ssh_match:
        repo_path = re.sub(r"\.git$", "", ssh_match.group(1), flags=re.IGNORECASE).lstrip("/")
        if "/" not in repo_path:
            raise InvalidRepositoryUrl("Invalid GitHub SSH URL.")
        return RepoRef(
            kind="ssh",
            clone_url=raw,
            redacted_url=f"git@{host}:{repo_path}.git",
            repo_path=repo_path,
        )

    parts = urlsplit(raw)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise InvalidRepositoryUrl(f"Invalid repository URL: {redact_credentials(raw)}")
    if parts.hostname.lower() not in (host, f"www.{host}"):
        raise InvalidRepositoryUrl(
            f"Only {host} repository URLs are currently supported."
        )

    repo_path = re.sub(r"\.git$", "", parts.path.lstrip("/"), flags=re.IGNORECASE).rstrip("/")
    if "/" not in repo_path:
        raise InvalidRepositoryUrl("Invalid GitHub repository path.")
    return RepoRef(
        kind="https",
        clone_url=raw,
        redacted_url=f"https://{host}/{repo_path}.git",
        repo_path=repo_path,
    )


def redact_repo_url(repo_url: str, host: str = "github.com") -> str:
    """Canonical credential-free form of a URL; unparseable input is only scrubbed."""
    try:
        return parse_repo_url(repo_url, host).redacted_url
    except InvalidRepositoryUrl:
        return redact_credentials(repo_url)


def with_credentials(repo_url: str, token: str | None, username: str = "x-access-token") -> str:
    """
    Embed an access token into an HTTPS URL.

    SSH URLs, URLs that already carry credentials, and calls without a token
    are returned unchanged.
    """
    if not token or not token.strip():
        return repo_url
    parts = urlsplit(repo_url)
    if parts.scheme not in ("http", "https"):
        return repo_url
    if parts.username or parts.password:
        return repo_url

    netloc = f"{quote(username, safe='')}:{quote(token.strip(), safe='')}@{parts.netloc}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def redact_credentials(text: str) -> str:
    """Replace ``user:secret@`` in any URL inside ``text`` with ``***@``."""
    return _CREDENTIALS_IN_URL.sub(lambda m: f"{m.group('scheme')}***@", text or "")

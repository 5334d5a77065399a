"""
Canonical git repository URLs.

Accepted input forms:
- https://host/org/repo(.git), http://...
- ssh://[user@]host[:port]/org/repo(.git)
- git://host/org/repo(.git)           -> rewritten to https
- user@host:org/repo(.git)            -> rewritten to https (scp syntax)

The canonical form never ends in ``.git``. Two URLs refer to the same
upstream when their host and repository path match, whatever the scheme.
"""

import re
from typing import Optional
from urllib.parse import urlsplit

from ..errors import ValidationError

SUPPORTED_SCHEMES = ("https", "http", "git", "ssh")

_SCP_RE = re.compile(r"^(?P<user>[A-Za-z0-9._~][A-Za-z0-9._~-]*)@(?P<host>[A-Za-z0-9.-]+):(?P<path>[^/].*)$")
_SCHEME_RE = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*)://")


class GitURLError(ValidationError):
    """Raised when a URL cannot be parsed as a git repository URL."""

    def __init__(self, message: str, value: str, reason: str):
        super().__init__(message, field="url", value=value, reason=reason)


def _strip_git_suffix(path: str) -> str:
    path = path.strip("/")
    if path.endswith(".git"):
        path = path[:-4]
    return path.strip("/")


class GitURL:
    """An immutable, validated git URL."""

    __slots__ = ("_original", "_scheme", "_host", "_port", "_repo_path")

    def __init__(self, url: str):
        if url is None or not str(url).strip():
            raise GitURLError("URL cannot be empty", url, "empty")
        original = str(url).strip()
        if any(c.isspace() or ord(c) < 0x20 for c in original):
            raise GitURLError(f"URL contains whitespace or control characters: '{original}'", original, "invalid_format")

        normalized = self._normalize(original)
        parts = urlsplit(normalized)
        if parts.scheme not in SUPPORTED_SCHEMES:
            raise GitURLError(f"Unsupported URL scheme '{parts.scheme}'", original, "unsupported_scheme")
        try:
            host = parts.hostname
            port = parts.port
        except ValueError as e:
            raise GitURLError(f"Invalid host or port in '{original}'", original, "invalid_format") from e
        if not host:
            raise GitURLError(f"URL has no host: '{original}'", original, "missing_host")
        repo_path = _strip_git_suffix(parts.path)
        if not repo_path:
            raise GitURLError(f"URL has no repository path: '{original}'", original, "missing_repo_path")

        self._original = original
        self._scheme = parts.scheme
        self._host = host
        self._port = port
        self._repo_path = repo_path

    @staticmethod
    def _normalize(url: str) -> str:
        scp = _SCP_RE.match(url)
        if scp and "://" not in url:
            return f"https://{scp.group('host')}/{_strip_git_suffix(scp.group('path'))}"
        match = _SCHEME_RE.match(url)
        if not match:
            raise GitURLError(f"Not a recognizable git URL: '{url}'", url, "invalid_format")
        scheme = match.group("scheme").lower()
        if scheme not in SUPPORTED_SCHEMES:
            raise GitURLError(f"Unsupported URL scheme '{scheme}'", url, "unsupported_scheme")
        if scheme == "git":
            return "https://" + url[match.end():]
        return scheme + url[len(match.group("scheme")):]

    # ---- Accessors

    @property
    def url(self) -> str:
        """Canonical form."""
        netloc = self._host if self._port is None else f"{self._host}:{self._port}"
        return f"{self._scheme}://{netloc}/{self._repo_path}"

    @property
    def original(self) -> str:
        return self._original

    @property
    def scheme(self) -> str:
        return self._scheme

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> Optional[int]:
        return self._port

    @property
    def repo_path(self) -> str:
        return self._repo_path

    @property
    def repo_name(self) -> str:
        return self._repo_path.rsplit("/", 1)[-1]

    @property
    def organization(self) -> Optional[str]:
        segments = self._repo_path.split("/")
        return segments[0] if len(segments) >= 2 else None

    def to_ssh_url(self) -> str:
        return f"git@{self._host}:{self._repo_path}.git"

    def to_https_url(self) -> str:
        return f"https://{self._host}/{self._repo_path}.git"

    def is_same_repo(self, other: "GitURL") -> bool:
        return self._host.lower() == other._host.lower() and self._repo_path == other._repo_path

    # ---- Protocols

    def __str__(self) -> str:
        return self.url

    def __repr__(self) -> str:
        return f"GitURL({self.url!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, GitURL):
            return self.url == other.url
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.url)

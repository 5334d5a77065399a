"""
SCM capability model.

A closed set of backends, each described by a static capability table. Code
that needs backend-specific behavior asks the table instead of branching on
the backend itself.
"""

import re
from dataclasses import dataclass
from enum import Enum

from ..errors import ValidationError

_SCP_LIKE_RE = re.compile(r"^[A-Za-z0-9._~-]+@[A-Za-z0-9.-]+:")


@dataclass(frozen=True)
class ScmCapabilities:
    supports_branches: bool
    supports_remotes: bool
    supports_shallow_clone: bool
    ignore_file_patterns: tuple[str, ...]
    metadata_dir: str
    executable_name: str
    url_prefixes: tuple[str, ...]


class ScmType(str, Enum):
    GIT = "git"
    SVN = "svn"
    P4 = "p4"

    @classmethod
    def from_str(cls, value: str) -> "ScmType":
        key = (value or "").strip().lower()
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError as e:
            raise ValidationError(
                f"Unknown SCM type '{value}' (expected one of: git, svn, p4)",
                field="scm",
                value=value,
                reason="unknown_scm",
            ) from e

    @property
    def capabilities(self) -> ScmCapabilities:
        return SCM_CAPABILITIES[self]

    @property
    def supports_branches(self) -> bool:
        return self.capabilities.supports_branches

    @property
    def supports_remotes(self) -> bool:
        return self.capabilities.supports_remotes

    @property
    def supports_shallow_clone(self) -> bool:
        return self.capabilities.supports_shallow_clone

    @property
    def ignore_file_patterns(self) -> tuple[str, ...]:
        return self.capabilities.ignore_file_patterns

    @property
    def metadata_dir(self) -> str:
        return self.capabilities.metadata_dir

    @property
    def executable_name(self) -> str:
        return self.capabilities.executable_name

    def is_valid_url_scheme(self, url: str) -> bool:
        """Whether ``url`` uses a transport this backend understands."""
        if not url:
            return False
        if url.startswith(self.capabilities.url_prefixes):
            return True
        if self is ScmType.GIT:
            return bool(_SCP_LIKE_RE.match(url))
        if self is ScmType.P4:
            # P4PORT values like "perforce.example.com:1666"
            return ":" in url
        return False


_ALIASES = {
    "subversion": "svn",
    "perforce": "p4",
}

SCM_CAPABILITIES: dict[ScmType, ScmCapabilities] = {
    ScmType.GIT: ScmCapabilities(
        supports_branches=True,
        supports_remotes=True,
        supports_shallow_clone=True,
        ignore_file_patterns=(".gitignore",),
        metadata_dir=".git",
        executable_name="git",
        url_prefixes=("https://", "http://", "git://", "ssh://", "git@", "file://"),
    ),
    ScmType.SVN: ScmCapabilities(
        supports_branches=False,
        supports_remotes=False,
        supports_shallow_clone=False,
        ignore_file_patterns=(".svnignore",),
        metadata_dir=".svn",
        executable_name="svn",
        url_prefixes=("https://", "http://", "svn://", "svn+ssh://", "file://"),
    ),
    ScmType.P4: ScmCapabilities(
        supports_branches=False,
        supports_remotes=False,
        supports_shallow_clone=False,
        ignore_file_patterns=(".p4ignore",),
        metadata_dir=".p4",
        executable_name="p4",
        url_prefixes=("perforce://", "p4://", "ssl:", "tcp:"),
    ),
}

DEFAULT_SCM = ScmType.GIT

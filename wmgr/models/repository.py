"""
Runtime repository entities.

A Repository is derived from a ManifestRepo on every run and never persisted
on its own.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..errors import ValidationError
from .branch_name import BranchName
from .file_path import FilePath
from .git_url import GitURL, GitURLError
from .scm_type import ScmType

ORIGIN = "origin"


@dataclass(frozen=True)
class Remote:
    name: str
    url: str

    def __post_init__(self):
        if not self.name or self.name.startswith("-") or any(c.isspace() for c in self.name):
            raise ValidationError(
                f"Invalid remote name '{self.name}'", field="remote", value=self.name, reason="invalid_remote_name"
            )
        if not self.url or self.url.startswith("-"):
            raise ValidationError(
                f"Invalid remote URL '{self.url}'", field="url", value=self.url, reason="invalid_format"
            )

    @property
    def git_url(self) -> Optional[GitURL]:
        """Parsed network URL, or None for local/file transports."""
        try:
            return GitURL(self.url)
        except GitURLError:
            return None


@dataclass
class Repository:
    """
    A repository as it should exist inside the workspace.

    ``dest`` is relative to the workspace root. ``orig_branch`` keeps the branch
    the manifest asked for before any defaults were applied.
    """
    dest: str
    remotes: list[Remote] = field(default_factory=list)
    branch: Optional[str] = None
    orig_branch: Optional[str] = None
    keep_branch: bool = False
    is_default_branch: bool = False
    sha1: Optional[str] = None
    sha1_full: Optional[str] = None
    tag: Optional[str] = None
    shallow: bool = False
    is_bare: bool = False
    scm: ScmType = ScmType.GIT

    def __post_init__(self):
        self.dest = FilePath.new_relative(self.dest).as_str()
        if self.branch is not None:
            BranchName(self.branch)
        names = [r.name for r in self.remotes]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValidationError(
                f"Duplicate remote names in '{self.dest}': {', '.join(duplicates)}",
                field="remotes",
                value=duplicates,
                reason="duplicate_remote",
            )

    @property
    def dest_path(self) -> FilePath:
        return FilePath(self.dest)

    @property
    def clone_url(self) -> Optional[str]:
        """URL of origin, falling back to the first remote."""
        origin = self.get_origin()
        if origin:
            return origin.url
        return self.remotes[0].url if self.remotes else None

    def get_remote(self, name: str) -> Optional[Remote]:
        for remote in self.remotes:
            if remote.name == name:
                return remote
        return None

    def get_origin(self) -> Optional[Remote]:
        return self.get_remote(ORIGIN)

    def has_fixed_ref(self) -> bool:
        return bool(self.sha1 or self.tag)

    @property
    def fixed_ref(self) -> Optional[str]:
        return self.sha1 or self.tag

    @property
    def tracks_branch(self) -> bool:
        """Branch correction applies to this repository."""
        return bool(self.branch) and not self.has_fixed_ref() and self.scm.supports_branches

"""
Manifest domain model.

A Manifest is immutable once parsed: normalization and group resolution
return new objects instead of mutating the manifest in place.
"""

import re
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from ..errors import ManifestError, ValidationError
from .branch_name import BranchName
from .file_path import FilePath
from .repository import ORIGIN, Remote, Repository
from .scm_type import DEFAULT_SCM, ScmType

_SHA1_RE = re.compile(r"^[0-9a-fA-F]{4,64}$")


@dataclass(frozen=True)
class FileCopy:
    """Copy ``file`` (inside the repository) to ``dest`` (inside the workspace)."""
    file: str
    dest: str


@dataclass(frozen=True)
class FileSymlink:
    """Create a link at ``source`` (inside the workspace) pointing at ``target``."""
    source: str
    target: str


@dataclass(frozen=True)
class Group:
    repos: tuple[str, ...] = ()
    description: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "repos", tuple(self.repos))


@dataclass(frozen=True)
class ManifestRepo:
    url: str
    dest: str
    branch: Optional[str] = None
    sha1: Optional[str] = None
    tag: Optional[str] = None
    remotes: tuple[Remote, ...] = ()
    shallow: Optional[bool] = None
    copy: tuple[FileCopy, ...] = ()
    symlink: tuple[FileSymlink, ...] = ()
    scm: ScmType = DEFAULT_SCM

    def __post_init__(self):
        object.__setattr__(self, "remotes", tuple(self.remotes))
        object.__setattr__(self, "copy", tuple(self.copy))
        object.__setattr__(self, "symlink", tuple(self.symlink))
        object.__setattr__(self, "dest", FilePath.new_relative(self.dest).as_str())
        names = [ORIGIN] + [r.name for r in self.remotes]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValidationError(
                f"Duplicate remote names in '{self.dest}': {', '.join(duplicates)} (origin comes from url)",
                field="remotes",
                value=duplicates,
                reason="duplicate_remote",
            )
        if self.branch is not None:
            BranchName(self.branch)
        if self.tag is not None:
            BranchName(self.tag)
        if self.sha1 is not None and not _SHA1_RE.match(self.sha1):
            raise ValidationError(
                f"Invalid sha1 '{self.sha1}' for '{self.dest}'", field="sha1", value=self.sha1, reason="invalid_sha1"
            )

    def has_fixed_ref(self) -> bool:
        return bool(self.sha1 or self.tag)

    def to_repository(self, singular_remote: Optional[str] = None) -> Repository:
        """
        Build the runtime Repository.

        Origin (from ``url``) comes first, followed by the extra remotes. With
        ``singular_remote`` set, only the remote of that name is kept and it is
        promoted to origin's position.
        """
        remotes = [Remote(ORIGIN, self.url)] + list(self.remotes)
        if singular_remote:
            chosen = [r for r in remotes if r.name == singular_remote]
            if not chosen:
                raise ValidationError(
                    f"Remote '{singular_remote}' is not defined for '{self.dest}'",
                    field="singular_remote",
                    value=singular_remote,
                    reason="unknown_remote",
                )
            remotes = chosen
        return Repository(
            dest=self.dest,
            remotes=remotes,
            branch=self.branch,
            orig_branch=self.branch,
            keep_branch=self.branch is None and not self.has_fixed_ref(),
            sha1=self.sha1,
            tag=self.tag,
            shallow=bool(self.shallow),
            scm=self.scm,
        )


def _member_key(group_name: str, dest: str) -> str:
    """Normalized dest of a group member, so './api' and 'api' compare equal."""
    try:
        return FilePath(dest).as_str()
    except ValidationError as e:
        raise ManifestError(f"Group '{group_name}' has an invalid member '{dest}': {e}", cause=e) from e


@dataclass(frozen=True)
class Manifest:
    """
    Declarative description of a fleet of repositories.

    Example:
    ```yaml
    default_branch: main
    repos:
      - url: git@github.com:acme/api.git
        dest: api
      - url: https://github.com/acme/web
        dest: web
        copy:
          - file: tools/Makefile
            dest: Makefile
    groups:
      backend:
        repos: [api]
    ```
    """
    repos: tuple[ManifestRepo, ...] = ()
    groups: dict[str, Group] = field(default_factory=dict)
    default_branch: Optional[str] = None
    default_scm: Optional[ScmType] = None
    default_shallow: Optional[bool] = None

    def __post_init__(self):
        object.__setattr__(self, "repos", tuple(self.repos))
        if self.default_branch is not None:
            BranchName(self.default_branch)

    # ---- Lookup

    @property
    def group_names(self) -> list[str]:
        return list(self.groups)

    def find_repo(self, dest: str) -> Optional[ManifestRepo]:
        for repo in self.repos:
            if repo.dest == dest:
                return repo
        return None

    def get_repos_in_group(self, name: str) -> list[ManifestRepo]:
        """
        Repositories listed in group ``name``, in manifest order. Unknown groups yield [].

        Raises:
            ManifestError: If a member is not a valid relative path
        """
        group = self.groups.get(name)
        if group is None:
            return []
        members = {_member_key(name, dest) for dest in group.repos}
        return [repo for repo in self.repos if repo.dest in members]

    def resolve_groups(self, names: Iterable[str]) -> list[ManifestRepo]:
        """
        Union of the named groups, following each group's member order and
        de-duplicating by dest (first seen wins).

        Raises:
            ManifestError: If a group is unknown or lists an unknown dest or an invalid path
        """
        names = list(names)
        unknown = [n for n in names if n not in self.groups]
        if unknown:
            raise ManifestError(f"Unknown group(s): {', '.join(unknown)}")

        by_dest = {repo.dest: repo for repo in self.repos}
        seen: set[str] = set()
        resolved: list[ManifestRepo] = []
        for name in names:
            for dest in self.groups[name].repos:
                key = _member_key(name, dest)
                if key not in by_dest:
                    raise ManifestError(f"Group '{name}' references unknown repository '{dest}'")
                if key in seen:
                    continue
                seen.add(key)
                resolved.append(by_dest[key])
        return resolved

    # ---- Defaults and validation

    def normalize_repositories(self) -> list[ManifestRepo]:
        """
        Apply manifest defaults to fields the repository leaves unset.

        - scm: only while the entry is still at the default SCM
        - branch: only when unset and the resolved SCM supports branches
        - shallow: only when unset and the resolved SCM supports shallow clones
        """
        normalized = []
        for repo in self.repos:
            scm = repo.scm
            if self.default_scm is not None and scm is DEFAULT_SCM:
                scm = self.default_scm
            branch = repo.branch
            if branch is None and self.default_branch and scm.supports_branches and not repo.has_fixed_ref():
                branch = self.default_branch
            shallow = repo.shallow
            if shallow is None and self.default_shallow is not None and scm.supports_shallow_clone:
                shallow = self.default_shallow
            normalized.append(replace(repo, scm=scm, branch=branch, shallow=shallow))
        return normalized

    def validate(self, file_path=None) -> None:
        """
        Check manifest-wide rules.

        Raises:
            ManifestError: Listing every problem found
        """
        problems = []
        if not self.repos and not self.groups:
            problems.append("manifest defines neither repositories nor groups")

        seen: set[str] = set()
        for repo in self.normalize_repositories():
            if repo.dest in seen:
                problems.append(f"duplicate dest '{repo.dest}'")
            seen.add(repo.dest)
            if not repo.url:
                problems.append(f"repository '{repo.dest}' has no url")
            elif not repo.scm.is_valid_url_scheme(repo.url):
                problems.append(f"url '{repo.url}' of '{repo.dest}' is not valid for scm '{repo.scm.value}'")
            if repo.remotes and not repo.scm.supports_remotes:
                problems.append(f"repository '{repo.dest}' declares remotes but scm '{repo.scm.value}' has none")
            for remote in repo.remotes:
                if not repo.scm.is_valid_url_scheme(remote.url):
                    problems.append(f"remote '{remote.name}' of '{repo.dest}' has invalid url '{remote.url}'")

        for name, group in self.groups.items():
            if not group.repos:
                problems.append(f"group '{name}' has no repositories")

        if problems:
            raise ManifestError("Invalid manifest: " + "; ".join(problems), file_path=file_path)

    def to_repositories(self, singular_remote: Optional[str] = None) -> list[Repository]:
        """Runtime repositories, defaults applied, in manifest order."""
        repositories = []
        for original, repo in zip(self.repos, self.normalize_repositories()):
            repository = repo.to_repository(singular_remote)
            repository.orig_branch = original.branch
            repository.is_default_branch = original.branch is None and repo.branch is not None
            repositories.append(repository)
        return repositories

    @property
    def copy_operations(self) -> list[tuple[ManifestRepo, FileCopy]]:
        return [(repo, op) for repo in self.repos for op in repo.copy]

    @property
    def symlink_operations(self) -> list[tuple[ManifestRepo, FileSymlink]]:
        return [(repo, op) for repo in self.repos for op in repo.symlink]

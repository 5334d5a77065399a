"""
Workspace model.

Lifecycle:
- uninitialized: no usable marker directory yet
- initialized: config loaded, manifest available
- corrupted: the marker directory exists but its config could not be read;
  only (re-)initialization leaves this state
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..errors import WorkspaceError
from .manifest import Manifest
from .repository import Repository

DEFAULT_GROUP = "default"
DEFAULT_MARKER_DIR = ".wmgr"


class WorkspaceStatus(str, Enum):
    """Workspace lifecycle states."""
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    CORRUPTED = "corrupted"


VALID_TRANSITIONS: Dict[WorkspaceStatus, List[WorkspaceStatus]] = {
    WorkspaceStatus.UNINITIALIZED: [WorkspaceStatus.INITIALIZED, WorkspaceStatus.CORRUPTED],
    WorkspaceStatus.INITIALIZED: [WorkspaceStatus.CORRUPTED],
    WorkspaceStatus.CORRUPTED: [WorkspaceStatus.INITIALIZED],  # re-initialization only
}


@dataclass
class WorkspaceConfig:
    manifest_url: str
    manifest_branch: str = "main"
    shallow_clones: bool = False
    repo_groups: List[str] = field(default_factory=lambda: [DEFAULT_GROUP])
    clone_all_repos: bool = False
    singular_remote: Optional[str] = None

    def is_using_default_group(self) -> bool:
        return not self.repo_groups or self.repo_groups == [DEFAULT_GROUP]


class Workspace:
    """
    A workspace root plus its marker directory.

    Usage:
        ws = Workspace(Path("/src/fleet"))
        ws.initialize(config, manifest)
        for repo in ws.filter_repos_by_groups():
            ...
    """

    def __init__(
        self,
        root: Union[str, Path],
        config: Optional[WorkspaceConfig] = None,
        manifest: Optional[Manifest] = None,
        marker_dir: str = DEFAULT_MARKER_DIR,
    ):
        self.root = Path(root)
        self.marker_dir_name = marker_dir
        self.config = config
        self.manifest: Optional[Manifest] = None
        self.repositories: List[Repository] = []
        self._status = WorkspaceStatus.UNINITIALIZED
        self._corruption_reason: Optional[str] = None
        if manifest is not None:
            self.set_manifest(manifest)

    # ---- Paths

    @property
    def marker_dir(self) -> Path:
        return self.root / self.marker_dir_name

    @property
    def config_path(self) -> Path:
        return self.marker_dir / "config.yml"

    @property
    def manifest_path(self) -> Path:
        return self.marker_dir / "manifest.yml"

    def repo_path(self, dest: str) -> Path:
        return self.root / dest

    # ---- Lifecycle

    @property
    def status(self) -> WorkspaceStatus:
        return self._status

    @property
    def corruption_reason(self) -> Optional[str]:
        return self._corruption_reason

    def is_initialized(self) -> bool:
        return self._status == WorkspaceStatus.INITIALIZED

    def is_corrupted(self) -> bool:
        return self._status == WorkspaceStatus.CORRUPTED

    def can_transition_to(self, new_status: WorkspaceStatus) -> bool:
        return new_status in VALID_TRANSITIONS.get(self._status, [])

    def _transition_to(self, new_status: WorkspaceStatus) -> None:
        if not self.can_transition_to(new_status):
            raise WorkspaceError(
                f"Invalid workspace transition: {self._status.value} -> {new_status.value}",
                workspace_path=self.root,
            )
        self._status = new_status

    def initialize(self, config: WorkspaceConfig, manifest: Optional[Manifest] = None) -> None:
        """Enter the initialized state from uninitialized or corrupted."""
        self._transition_to(WorkspaceStatus.INITIALIZED)
        self.config = config
        self._corruption_reason = None
        if manifest is not None:
            self.set_manifest(manifest)

    def mark_corrupted(self, reason: str) -> None:
        self._transition_to(WorkspaceStatus.CORRUPTED)
        self._corruption_reason = reason

    def require_initialized(self) -> None:
        """
        Raises:
            WorkspaceError: With a corrective message if not usable
        """
        if self.is_corrupted():
            raise WorkspaceError(
                f"Workspace at {self.root} is corrupted ({self._corruption_reason}); "
                f"run 'wmgr init --force' to re-initialize",
                workspace_path=self.root,
            )
        if not self.is_initialized():
            raise WorkspaceError(
                f"No workspace found at {self.root}; run 'wmgr init' first",
                workspace_path=self.root,
            )

    # ---- Repositories

    def set_manifest(self, manifest: Manifest) -> None:
        self.manifest = manifest
        singular = self.config.singular_remote if self.config else None
        repositories = manifest.to_repositories(singular)
        if self.config and self.config.shallow_clones:
            for repo in repositories:
                if repo.scm.supports_shallow_clone:
                    repo.shallow = True
        self.repositories = repositories

    def find_repository(self, dest: str) -> Optional[Repository]:
        for repo in self.repositories:
            if repo.dest == dest:
                return repo
        return None

    def filter_repos_by_groups(self, groups: Optional[List[str]] = None) -> List[Repository]:
        """
        The working set of repositories for an operation.

        Every repository is returned when ``clone_all_repos`` is set or the
        group filter is empty or just the default group. Otherwise the named
        groups are unioned, de-duplicated by dest in first-seen order.

        Raises:
            ManifestError: If a named group is unknown
        """
        if self.manifest is None:
            raise WorkspaceError("Workspace has no manifest loaded", workspace_path=self.root)
        if groups is None:
            groups = self.config.repo_groups if self.config else []
        clone_all = bool(self.config and self.config.clone_all_repos)
        if clone_all or not groups or list(groups) == [DEFAULT_GROUP]:
            return list(self.repositories)

        by_dest = {repo.dest: repo for repo in self.repositories}
        return [by_dest[repo.dest] for repo in self.manifest.resolve_groups(groups)]


def discover_workspace_root(start: Union[str, Path], marker_dir: str = DEFAULT_MARKER_DIR) -> Optional[Path]:
    """Walk up from ``start`` to the first directory containing ``marker_dir``."""
    current = Path(start).resolve()
    for candidate in [current, *current.parents]:
        if (candidate / marker_dir).is_dir():
            return candidate
    return None

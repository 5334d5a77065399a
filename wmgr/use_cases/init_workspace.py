"""Init use case: create the marker directory, store config and manifest."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import httpx

from ..errors import WorkspaceError
from ..models import Workspace, WorkspaceConfig
from ..models.workspace import DEFAULT_GROUP
from ..services.command_executor import default_concurrency
from ..services.git import GitClient
from ..services.manifest_store import load_manifest_source
from ..services.workspace_store import WorkspaceStore
from .sync import SyncConfig, SyncResult, SyncUseCase

logger = logging.getLogger(__name__)


@dataclass
class InitConfig:
    manifest_source: str
    manifest_branch: str = "main"
    groups: list[str] = field(default_factory=lambda: [DEFAULT_GROUP])
    shallow: bool = False
    clone_all: bool = False
    singular_remote: Optional[str] = None
    force: bool = False
    sync: bool = True
    parallel_jobs: int = field(default_factory=default_concurrency)


@dataclass
class InitResult:
    workspace: Workspace
    repo_count: int
    sync: Optional[SyncResult] = None


def _absolute_source(source: str) -> str:
    local = Path(source).expanduser()
    return str(local.resolve()) if local.exists() else source


class InitUseCase:
    def __init__(
        self,
        store: WorkspaceStore,
        git: Optional[GitClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.git = git or GitClient()
        self.transport = transport

    async def execute(self, root: Path, config: InitConfig) -> InitResult:
        """
        Raises:
            WorkspaceError: If already initialized and ``force`` is not set
            ManifestError / NetworkError / GitError: If the manifest cannot be resolved
        """
        workspace = self.store.load(root, with_manifest=False)
        if workspace.is_initialized():
            if not config.force:
                raise WorkspaceError(
                    f"Workspace at {workspace.root} is already initialized; use --force to re-initialize",
                    workspace_path=workspace.root,
                )
            workspace = self.store.new_workspace(root)

        source = _absolute_source(config.manifest_source)
        manifest = await load_manifest_source(
            source,
            branch=config.manifest_branch,
            git=self.git,
            http_timeout=self.store.settings.http_timeout,
            transport=self.transport,
        )
        groups = list(config.groups) or [DEFAULT_GROUP]
        if not config.clone_all and groups != [DEFAULT_GROUP]:
            manifest.resolve_groups(groups)

        workspace_config = WorkspaceConfig(
            manifest_url=source,
            manifest_branch=config.manifest_branch,
            shallow_clones=config.shallow,
            repo_groups=groups,
            clone_all_repos=config.clone_all,
            singular_remote=config.singular_remote,
        )
        self.store.save_config(workspace, workspace_config)
        workspace.initialize(workspace_config)
        self.store.save_manifest(workspace, manifest)
        logger.info(f"Initialized workspace at {workspace.root} with {len(manifest.repos)} repositories")

        result = InitResult(workspace=workspace, repo_count=len(workspace.filter_repos_by_groups()))
        if config.sync:
            result.sync = await SyncUseCase(self.store, self.git).execute(
                workspace, SyncConfig(parallel_jobs=config.parallel_jobs, refresh_manifest=False)
            )
        return result

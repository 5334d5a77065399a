"""
Sync use case.

For every repository in the working set (bounded by ``parallel_jobs``):
- missing: clone (branch, shallow), add extra remotes, check out a pinned ref
- present: point remotes at the manifest URLs, fetch, refuse to touch local
  changes unless forced, correct the branch, fast-forward to upstream (or
  check out the pinned sha1/tag)

Copy/symlink operations of the synced repositories run afterwards.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from ..errors import RepositoryError, WmgrError
from ..models import Repository, ScmType, Workspace
from ..schemas import dump_manifest
from ..services.command_executor import default_concurrency, run_bounded
from ..services.file_operations import FileOperationConfig, FileOperationProcessor, FileOperationResult
from ..services.git import GitClient
from ..services.manifest_store import load_manifest_source
from ..services.workspace_store import WorkspaceStore

logger = logging.getLogger(__name__)


class SyncAction(str, Enum):
    CLONED = "cloned"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class SyncConfig:
    groups: Optional[list[str]] = None
    force: bool = False
    no_correct_branch: bool = False
    parallel_jobs: int = field(default_factory=default_concurrency)
    refresh_manifest: bool = True
    timeout: Optional[float] = None


@dataclass
class RepoSyncResult:
    dest: str
    action: SyncAction
    message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.action != SyncAction.FAILED


@dataclass
class SyncResult:
    repos: list[RepoSyncResult] = field(default_factory=list)
    file_operations: list[FileOperationResult] = field(default_factory=list)
    manifest_backup: Optional[str] = None

    def _count(self, action: SyncAction) -> int:
        return sum(1 for r in self.repos if r.action == action)

    @property
    def cloned_count(self) -> int:
        return self._count(SyncAction.CLONED)

    @property
    def updated_count(self) -> int:
        return self._count(SyncAction.UPDATED)

    @property
    def skipped_count(self) -> int:
        return self._count(SyncAction.SKIPPED)

    @property
    def failed_count(self) -> int:
        return self._count(SyncAction.FAILED)

    @property
    def synced_count(self) -> int:
        return self.cloned_count + self.updated_count

    @property
    def errors(self) -> list[tuple[str, str]]:
        errors = [(r.dest, r.message or "") for r in self.repos if r.action == SyncAction.FAILED]
        errors += [(op.destination, op.error or "") for op in self.file_operations if not op.success]
        return errors

    def is_success(self) -> bool:
        return not self.errors


class SyncUseCase:
    def __init__(self, store: WorkspaceStore, git: Optional[GitClient] = None):
        self.store = store
        self.git = git or GitClient()

    async def execute(self, workspace: Workspace, config: SyncConfig) -> SyncResult:
        """
        Raises:
            WorkspaceError: If the workspace is not initialized
            ManifestError / NetworkError: If the manifest cannot be refreshed
        """
        workspace.require_initialized()
        git = GitClient(self.git.executor, timeout=config.timeout) if config.timeout else self.git
        result = SyncResult()

        if config.refresh_manifest:
            backup = await self._refresh_manifest(workspace, git)
            result.manifest_backup = str(backup) if backup else None

        repos = workspace.filter_repos_by_groups(config.groups)
        logger.info(f"Syncing {len(repos)} repositories with {config.parallel_jobs} job(s)")
        outcomes = await run_bounded(
            repos,
            lambda repo: self._sync_repository(git, workspace.root, repo, config),
            config.parallel_jobs,
        )
        for repo, outcome in zip(repos, outcomes):
            if isinstance(outcome, WmgrError):
                logger.warning(f"Sync failed for {repo.dest}: {outcome}")
                result.repos.append(RepoSyncResult(repo.dest, SyncAction.FAILED, str(outcome)))
            else:
                result.repos.append(outcome)

        synced = [r.dest for r in result.repos if r.success]
        processor = FileOperationProcessor(
            workspace.root,
            FileOperationConfig(max_backups=self.store.settings.max_backups),
        )
        result.file_operations = processor.process_all_file_operations(workspace.manifest, dests=synced)
        return result

    async def _refresh_manifest(self, workspace: Workspace, git: GitClient) -> Optional[Path]:
        manifest = await load_manifest_source(
            workspace.config.manifest_url,
            branch=workspace.config.manifest_branch,
            git=git,
            http_timeout=self.store.settings.http_timeout,
        )
        if workspace.manifest is not None and dump_manifest(manifest) == dump_manifest(workspace.manifest):
            return None
        return self.store.save_manifest(workspace, manifest)

    async def _sync_repository(
        self,
        git: GitClient,
        root: Path,
        repo: Repository,
        config: SyncConfig,
    ) -> RepoSyncResult:
        if repo.scm is not ScmType.GIT:
            return RepoSyncResult(repo.dest, SyncAction.SKIPPED, f"no sync support for {repo.scm.value}")
        if not repo.remotes:
            raise RepositoryError("no remote to sync from", repository_name=repo.dest)

        path = root / repo.dest
        if not path.exists():
            await self._clone(git, path, repo)
            return RepoSyncResult(repo.dest, SyncAction.CLONED)
        if not (path / repo.scm.metadata_dir).exists():
            raise RepositoryError(f"{path} exists but is not a git repository", repository_name=repo.dest)

        try:
            primary = repo.remotes[0].name
            for remote in repo.remotes:
                await git.set_remote(path, remote.name, remote.url)
                await git.fetch(path, remote.name)

            if not config.force and await git.has_local_changes(path):
                raise RepositoryError(
                    "has local changes; commit or stash them, or sync with --force",
                    repository_name=repo.dest,
                )

            if repo.has_fixed_ref():
                await git.checkout_ref(path, repo.fixed_ref)
                return RepoSyncResult(repo.dest, SyncAction.UPDATED, f"at {repo.fixed_ref}")

            message = None
            current = await git.get_current_branch(path)
            if repo.tracks_branch and current != repo.branch:
                if config.no_correct_branch:
                    message = f"on {current or 'detached HEAD'}, expected {repo.branch}"
                else:
                    logger.info(f"Switching {repo.dest} from {current} to {repo.branch}")
                    await git.checkout_branch(path, repo.branch, remote=primary)
                    current = repo.branch

            if current is None:
                return RepoSyncResult(repo.dest, SyncAction.SKIPPED, "detached HEAD, not updated")
            if not await git.has_upstream(path):
                return RepoSyncResult(repo.dest, SyncAction.SKIPPED, f"branch {current} has no upstream")
            await git.merge_ff_only(path)
        except RepositoryError:
            raise
        except WmgrError as e:
            raise RepositoryError(str(e), repository_name=repo.dest, cause=e) from e
        return RepoSyncResult(repo.dest, SyncAction.UPDATED, message)

    async def _clone(self, git: GitClient, path: Path, repo: Repository) -> None:
        primary = repo.remotes[0]
        # git clone --branch accepts tags, which keeps shallow tag clones possible
        branch = repo.tag if repo.tag else (None if repo.sha1 else repo.branch)
        shallow = repo.shallow and not repo.sha1
        try:
            await git.clone(primary.url, path, branch=branch, shallow=shallow, origin=primary.name)
            for remote in repo.remotes[1:]:
                await git.set_remote(path, remote.name, remote.url)
                await git.fetch(path, remote.name)
            if repo.has_fixed_ref():
                await git.checkout_ref(path, repo.fixed_ref)
        except WmgrError as e:
            raise RepositoryError(f"clone failed: {e}", repository_name=repo.dest, cause=e) from e

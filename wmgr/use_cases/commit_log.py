"""Log use case: recent commits of every cloned repository."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..errors import RepositoryError, ValidationError, WmgrError
from ..models import Repository, ScmType, Workspace
from ..services.command_executor import default_concurrency, run_bounded
from ..services.git import CommitInfo, GitClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_COUNT = 10


@dataclass
class LogConfig:
    groups: Optional[list[str]] = None
    max_count: int = DEFAULT_MAX_COUNT
    since: Optional[str] = None
    until: Optional[str] = None
    jobs: int = field(default_factory=default_concurrency)


@dataclass
class RepositoryLog:
    dest: str
    branch: Optional[str] = None
    commits: list[CommitInfo] = field(default_factory=list)
    skipped: bool = False
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None or self.skipped


@dataclass
class LogResult:
    logs: list[RepositoryLog] = field(default_factory=list)

    @property
    def commit_count(self) -> int:
        return sum(len(log.commits) for log in self.logs)

    @property
    def skipped_count(self) -> int:
        return sum(1 for log in self.logs if log.skipped)

    @property
    def error_count(self) -> int:
        return sum(1 for log in self.logs if not log.success)

    def is_success(self) -> bool:
        return self.error_count == 0


class LogUseCase:
    def __init__(self, git: Optional[GitClient] = None):
        self.git = git or GitClient()

    async def execute(self, workspace: Workspace, config: LogConfig) -> LogResult:
        """
        Collect the history of each repository in the working set, in
        manifest order. Repositories that are not cloned are skipped; a
        failing repository is recorded and does not stop the others.

        Raises:
            ValidationError: If max_count is not positive
            WorkspaceError: If the workspace is not initialized
            ManifestError: If a requested group does not exist
        """
        if config.max_count < 1:
            raise ValidationError(
                f"max_count must be at least 1, got {config.max_count}",
                field="max_count",
                value=config.max_count,
                reason="out_of_range",
            )
        workspace.require_initialized()
        repos = workspace.filter_repos_by_groups(config.groups)
        outcomes = await run_bounded(
            repos,
            lambda repo: self._repository_log(workspace.root, repo, config),
            config.jobs,
        )

        result = LogResult()
        for repo, outcome in zip(repos, outcomes):
            if isinstance(outcome, WmgrError):
                logger.warning(f"Log failed for {repo.dest}: {outcome}")
                result.logs.append(RepositoryLog(dest=repo.dest, error=str(outcome)))
            else:
                result.logs.append(outcome)
        return result

    async def _repository_log(self, root: Path, repo: Repository, config: LogConfig) -> RepositoryLog:
        path = Path(root) / repo.dest
        if not path.exists():
            return RepositoryLog(dest=repo.dest, skipped=True, error="not cloned")
        if repo.scm is not ScmType.GIT:
            return RepositoryLog(dest=repo.dest, skipped=True, error=f"no log support for {repo.scm.value}")
        if not (path / repo.scm.metadata_dir).exists():
            raise RepositoryError(f"{path} is not a git repository", repository_name=repo.dest)
        branch = await self.git.get_current_branch(path)
        commits = await self.git.log(path, max_count=config.max_count, since=config.since, until=config.until)
        return RepositoryLog(dest=repo.dest, branch=branch, commits=commits)

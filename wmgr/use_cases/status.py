"""Status use case."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..models import Workspace
from ..services.command_executor import default_concurrency
from ..services.status_engine import RepositoryState, RepositoryStatus, StatusEngine

logger = logging.getLogger(__name__)


@dataclass
class StatusConfig:
    groups: Optional[list[str]] = None
    show_branch: bool = True
    compact: bool = False
    verbose: bool = False
    jobs: int = field(default_factory=default_concurrency)


@dataclass
class StatusResult:
    statuses: list[RepositoryStatus] = field(default_factory=list)

    def _count(self, state: RepositoryState) -> int:
        return sum(1 for s in self.statuses if s.state == state)

    @property
    def clean_count(self) -> int:
        return self._count(RepositoryState.CLEAN)

    @property
    def dirty_count(self) -> int:
        return self._count(RepositoryState.DIRTY)

    @property
    def missing_count(self) -> int:
        return self._count(RepositoryState.MISSING)

    @property
    def error_count(self) -> int:
        return self._count(RepositoryState.ERROR)

    @property
    def wrong_branch_count(self) -> int:
        return self._count(RepositoryState.WRONG_BRANCH)

    @property
    def out_of_sync_count(self) -> int:
        return self._count(RepositoryState.OUT_OF_SYNC)

    @property
    def total_count(self) -> int:
        return len(self.statuses)

    @property
    def has_issues(self) -> bool:
        return any(s.has_issues for s in self.statuses)

    def to_dict(self) -> dict:
        return {
            "repositories": [s.to_dict() for s in self.statuses],
            "summary": {
                "total": self.total_count,
                "clean": self.clean_count,
                "dirty": self.dirty_count,
                "missing": self.missing_count,
                "wrong_branch": self.wrong_branch_count,
                "out_of_sync": self.out_of_sync_count,
                "error": self.error_count,
            },
        }


class StatusUseCase:
    def __init__(self, engine: Optional[StatusEngine] = None):
        self.engine = engine or StatusEngine()

    async def execute(self, workspace: Workspace, config: StatusConfig) -> StatusResult:
        """
        Raises:
            WorkspaceError: If the workspace is not initialized
            ManifestError: If a requested group does not exist
        """
        workspace.require_initialized()
        repos = workspace.filter_repos_by_groups(config.groups)
        logger.info(f"Checking status of {len(repos)} repositories")
        statuses = await self.engine.check_all(workspace.root, repos, config.jobs)
        return StatusResult(statuses=statuses)

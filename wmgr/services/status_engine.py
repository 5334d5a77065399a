"""
Repository status state machine.

Each repository is classified independently; the first matching state wins:

1. missing       - destination does not exist
2. error         - a status command failed or produced unparseable output
3. wrong_branch  - clean tree, but not on the manifest branch
4. dirty         - staged, modified or untracked files
5. out_of_sync   - clean and on the right branch, but local != upstream
                   (or a pinned sha1/tag is not checked out)
6. clean
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

from ..errors import WmgrError
from ..models import Repository, ScmType, classify_branch
from .command_executor import default_concurrency, run_bounded
from .git import GitClient

logger = logging.getLogger(__name__)


class RepositoryState(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    MISSING = "missing"
    WRONG_BRANCH = "wrong_branch"
    OUT_OF_SYNC = "out_of_sync"
    ERROR = "error"


@dataclass
class RepositoryStatus:
    dest: str
    state: RepositoryState
    current_branch: Optional[str] = None
    expected_branch: Optional[str] = None
    staged: int = 0
    modified: int = 0
    untracked: int = 0
    ahead: int = 0
    behind: int = 0
    error_message: Optional[str] = None

    @property
    def has_issues(self) -> bool:
        return self.state != RepositoryState.CLEAN

    @property
    def branch_type(self) -> Optional[str]:
        return classify_branch(self.current_branch).value if self.current_branch else None

    def to_dict(self) -> dict:
        return {
            "dest": self.dest,
            "state": self.state.value,
            "current_branch": self.current_branch,
            "expected_branch": self.expected_branch,
            "staged": self.staged,
            "modified": self.modified,
            "untracked": self.untracked,
            "ahead": self.ahead,
            "behind": self.behind,
            "error_message": self.error_message,
        }


def classify_repository_state(
    exists: bool,
    error: Optional[str] = None,
    current_branch: Optional[str] = None,
    expected_branch: Optional[str] = None,
    staged: int = 0,
    modified: int = 0,
    untracked: int = 0,
    ahead: int = 0,
    behind: int = 0,
    fixed_ref_satisfied: bool = True,
) -> RepositoryState:
    """
    Pure precedence rule. ``expected_branch`` is None when branch checking
    does not apply (fixed ref, branchless SCM, or no declared branch).
    """
    if not exists:
        return RepositoryState.MISSING
    if error:
        return RepositoryState.ERROR
    dirty = bool(staged or modified or untracked)
    if not dirty and expected_branch is not None and current_branch != expected_branch:
        return RepositoryState.WRONG_BRANCH
    if dirty:
        return RepositoryState.DIRTY
    if ahead or behind or not fixed_ref_satisfied:
        return RepositoryState.OUT_OF_SYNC
    return RepositoryState.CLEAN


class StatusEngine:
    """Collects RepositoryStatus for repositories inside a workspace."""

    def __init__(self, git: Optional[GitClient] = None):
        self.git = git or GitClient()

    async def check_repository(self, workspace_root: Path, repo: Repository) -> RepositoryStatus:
        path = Path(workspace_root) / repo.dest
        expected = repo.branch if repo.tracks_branch else None
        status = RepositoryStatus(dest=repo.dest, state=RepositoryState.MISSING, expected_branch=expected)
        if not path.exists():
            return status

        error = None
        fixed_ok = True
        if repo.scm is not ScmType.GIT:
            error = f"status is not available for {repo.scm.value} repositories"
        elif not (path / repo.scm.metadata_dir).exists():
            error = f"{path} is not a git repository"
        else:
            try:
                status.current_branch = await self.git.get_current_branch(path)
                status.staged, status.modified, status.untracked = await self.git.status_counts(path)
                if repo.has_fixed_ref():
                    fixed_ok = await self._fixed_ref_satisfied(path, repo)
                else:
                    counts = await self.git.ahead_behind(path)
                    if counts is not None:
                        status.ahead, status.behind = counts
            except WmgrError as e:
                logger.warning(f"Status check failed for {repo.dest}: {e}")
                error = str(e)

        status.error_message = error
        status.state = classify_repository_state(
            exists=True,
            error=error,
            current_branch=status.current_branch,
            expected_branch=expected,
            staged=status.staged,
            modified=status.modified,
            untracked=status.untracked,
            ahead=status.ahead,
            behind=status.behind,
            fixed_ref_satisfied=fixed_ok,
        )
        return status

    async def _fixed_ref_satisfied(self, path: Path, repo: Repository) -> bool:
        head = await self.git.get_sha(path)
        if repo.sha1:
            return head.lower().startswith(repo.sha1.lower())
        tag_sha = await self.git.get_sha(path, f"refs/tags/{repo.tag}")
        return head == tag_sha

    async def check_all(
        self,
        workspace_root: Path,
        repositories: Sequence[Repository],
        max_concurrency: Optional[int] = None,
    ) -> list[RepositoryStatus]:
        """Status of every repository, in input order."""
        outcomes = await run_bounded(
            list(repositories),
            lambda repo: self.check_repository(workspace_root, repo),
            max_concurrency or default_concurrency(),
        )
        statuses = []
        for repo, outcome in zip(repositories, outcomes):
            if isinstance(outcome, WmgrError):
                statuses.append(
                    RepositoryStatus(dest=repo.dest, state=RepositoryState.ERROR, error_message=str(outcome))
                )
            else:
                statuses.append(outcome)
        return statuses

"""
Foreach use case: run one command inside every repository of the working set.

The command sees these environment variables:
- WMGR_WORKSPACE_ROOT
- WMGR_MANIFEST_URL
- WMGR_MANIFEST_BRANCH
- WMGR_REPO_DEST
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

from ..errors import CommandTimeoutError, ValidationError, WmgrError
from ..models import Repository, Workspace
from ..services.command_executor import (
    CommandExecutor,
    ExecutionConfig,
    ExecutionResult,
    ExecutionTask,
    ParallelConfig,
    default_concurrency,
)

logger = logging.getLogger(__name__)


@dataclass
class ForeachConfig:
    command: Union[str, Sequence[str]]
    groups: Optional[list[str]] = None
    parallel: bool = False
    max_parallel: int = field(default_factory=default_concurrency)
    continue_on_error: bool = False
    timeout: Optional[float] = None
    use_shell: bool = False


@dataclass
class CommandResult:
    dest: str
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    execution_time_ms: float = 0.0
    error: Optional[str] = None
    skipped: bool = False

    @property
    def success(self) -> bool:
        return not self.skipped and self.error is None and self.exit_code == 0


@dataclass
class ForeachResult:
    results: list[CommandResult] = field(default_factory=list)
    stopped_early: bool = False

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success and not r.skipped)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.skipped)

    def is_success(self) -> bool:
        return self.failure_count == 0 and not self.stopped_early


def _to_command_result(dest: str, outcome: Union[ExecutionResult, WmgrError]) -> CommandResult:
    if isinstance(outcome, ExecutionResult):
        return CommandResult(
            dest=dest,
            exit_code=outcome.exit_code,
            stdout=outcome.stdout,
            stderr=outcome.stderr,
            execution_time_ms=outcome.execution_time_ms,
            error=None if outcome.success else f"exited with code {outcome.exit_code}",
        )
    if isinstance(outcome, CommandTimeoutError):
        return CommandResult(dest=dest, error=f"timed out after {outcome.timeout_seconds}s")
    return CommandResult(dest=dest, error=str(outcome))


class ForeachUseCase:
    def __init__(self, executor: Optional[CommandExecutor] = None):
        self.executor = executor or CommandExecutor()

    def _environment(self, workspace: Workspace, repo: Repository) -> dict[str, str]:
        return {
            "WMGR_WORKSPACE_ROOT": str(workspace.root),
            "WMGR_MANIFEST_URL": workspace.config.manifest_url,
            "WMGR_MANIFEST_BRANCH": workspace.config.manifest_branch,
            "WMGR_REPO_DEST": repo.dest,
        }

    def _execution_config(self, workspace: Workspace, repo: Repository, config: ForeachConfig) -> ExecutionConfig:
        return ExecutionConfig(
            working_directory=workspace.repo_path(repo.dest),
            environment_variables=self._environment(workspace, repo),
            timeout_seconds=config.timeout,
            use_shell=config.use_shell,
        )

    async def execute(self, workspace: Workspace, config: ForeachConfig) -> ForeachResult:
        """
        Raises:
            ValidationError: If the command is empty
            WorkspaceError: If the workspace is not initialized
        """
        command = config.command
        if not command or (isinstance(command, str) and not command.strip()):
            raise ValidationError("No command given", field="command", value=command, reason="empty")
        workspace.require_initialized()

        result = ForeachResult()
        runnable = []
        for repo in workspace.filter_repos_by_groups(config.groups):
            if workspace.repo_path(repo.dest).is_dir():
                runnable.append(repo)
            else:
                result.results.append(CommandResult(dest=repo.dest, skipped=True, error="not cloned"))

        if config.parallel:
            tasks = [
                ExecutionTask(id=repo.dest, command=command, config=self._execution_config(workspace, repo, config))
                for repo in runnable
            ]
            batch = await self.executor.execute_parallel(tasks, ParallelConfig(max_concurrency=config.max_parallel))
            for repo in runnable:
                result.results.append(_to_command_result(repo.dest, batch.task_results[repo.dest]))
            return result

        for index, repo in enumerate(runnable):
            logger.info(f"Running in {repo.dest}: {command}")
            try:
                outcome = await self.executor.execute(command, self._execution_config(workspace, repo, config))
            except WmgrError as e:
                outcome = e
            command_result = _to_command_result(repo.dest, outcome)
            result.results.append(command_result)
            if not command_result.success and not config.continue_on_error:
                result.stopped_early = index < len(runnable) - 1
                break
        return result

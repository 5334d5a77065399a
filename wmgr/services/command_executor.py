"""
CommandExecutor - runs external commands, alone or as a bounded batch.

- execute(): one command, captured output, optional timeout. A timed out
  command has its whole process group killed, its pipes drained, and raises
  CommandTimeoutError instead of returning a partial result.
- execute_parallel(): a named list of tasks run by a fixed pool of workers.
  At most ``max_concurrency`` commands run at once; a worker picks the next
  queued task as soon as its current one finishes. Failures (non-zero exit,
  spawn errors, timeouts) are recorded per task and never stop siblings.
"""

import asyncio
import logging
import os
import shlex
import signal
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar, Union

from ..errors import CommandError, CommandTimeoutError, InternalError, ValidationError, WmgrError
from ..models import FilePath

logger = logging.getLogger(__name__)

Command = Union[str, Sequence[str]]
T = TypeVar("T")
R = TypeVar("R")

# Bounded wait for pipes after a kill, in case a grandchild escaped the group.
DRAIN_TIMEOUT_SECONDS = 5.0


def default_concurrency() -> int:
    return max(os.cpu_count() or 1, 1)


@dataclass
class ExecutionConfig:
    """
    How to run a single command.

    Environment variables are merged over the current environment unless
    ``inherit_environment`` is False.
    """
    working_directory: Optional[Union[str, Path, FilePath]] = None
    environment_variables: dict[str, str] = field(default_factory=dict)
    timeout_seconds: Optional[float] = None
    capture_stdout: bool = True
    capture_stderr: bool = True
    inherit_environment: bool = True
    use_shell: bool = False


@dataclass
class ExecutionResult:
    """
    Result of a completed command.

    ``started_at``/``finished_at`` are ``time.monotonic()`` readings.
    """
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    execution_time_ms: float = 0.0
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@dataclass
class ExecutionTask:
    id: str
    command: Command
    config: Optional[ExecutionConfig] = None


@dataclass
class ParallelConfig:
    max_concurrency: int = field(default_factory=default_concurrency)

    def __post_init__(self):
        self.max_concurrency = max(int(self.max_concurrency), 1)


TaskOutcome = Union[ExecutionResult, WmgrError]


@dataclass
class ParallelResult:
    """
    Aggregated outcome of a batch.

    ``task_results`` maps task id to either its ExecutionResult or the error
    that prevented one. Completion order is not preserved.
    """
    task_results: dict[str, TaskOutcome] = field(default_factory=dict)
    total_execution_time_ms: float = 0.0
    success_count: int = 0
    failure_count: int = 0

    def add_result(self, task_id: str, outcome: TaskOutcome) -> None:
        self.task_results[task_id] = outcome
        if isinstance(outcome, ExecutionResult) and outcome.success:
            self.success_count += 1
        else:
            self.failure_count += 1

    @property
    def total_count(self) -> int:
        return len(self.task_results)

    def is_success(self) -> bool:
        return self.failure_count == 0 and self.success_count > 0

    def failed_results(self) -> dict[str, TaskOutcome]:
        return {
            task_id: outcome
            for task_id, outcome in self.task_results.items()
            if not (isinstance(outcome, ExecutionResult) and outcome.success)
        }

    def successful_results(self) -> dict[str, ExecutionResult]:
        return {
            task_id: outcome
            for task_id, outcome in self.task_results.items()
            if isinstance(outcome, ExecutionResult) and outcome.success
        }


# ---- Helper Functions

def describe_command(command: Command) -> str:
    if isinstance(command, str):
        return command
    return shlex.join([str(part) for part in command])


async def run_bounded(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    max_concurrency: int,
) -> list[Union[R, WmgrError]]:
    """
    Run ``worker`` over ``items`` with a fixed-size pool.

    Returns one outcome per item, in input order. A WmgrError raised by the
    worker becomes that item's outcome; any other exception is wrapped in
    InternalError. Cancellation propagates.
    """
    outcomes: list[Any] = [None] * len(items)
    queue: asyncio.Queue[int] = asyncio.Queue()
    for index in range(len(items)):
        queue.put_nowait(index)

    async def _pool_worker() -> None:
        while True:
            try:
                index = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                outcomes[index] = await worker(items[index])
            except WmgrError as e:
                outcomes[index] = e
            except Exception as e:
                logger.exception(f"Unexpected error in worker for item {index}")
                outcomes[index] = InternalError(f"Unexpected error: {e}", cause=e)

    width = min(max(max_concurrency, 1), len(items))
    if width:
        await asyncio.gather(*(_pool_worker() for _ in range(width)))
    return outcomes


class CommandExecutor:
    """
    Runs external commands on the asyncio event loop.

    Usage:
        executor = CommandExecutor()
        result = await executor.execute(["git", "status"], ExecutionConfig(working_directory=repo))

        tasks = [ExecutionTask(id=dest, command=["git", "fetch"], config=...) for dest in dests]
        batch = await executor.execute_parallel(tasks, ParallelConfig(max_concurrency=4))
    """

    def __init__(self, default_config: Optional[ExecutionConfig] = None):
        self.default_config = default_config or ExecutionConfig()

    async def execute(self, command: Command, config: Optional[ExecutionConfig] = None) -> ExecutionResult:
        """
        Run ``command`` to completion.

        Args:
            command: argv list, or a string (split with shlex unless use_shell)
            config: Execution settings, defaults to the executor's default

        Returns:
            ExecutionResult; a non-zero exit is reported, not raised

        Raises:
            CommandError: If the command is empty or cannot be spawned
            CommandTimeoutError: If the timeout elapsed (process killed)
        """
        config = config or self.default_config
        display = describe_command(command)
        cwd = self._resolve_cwd(config.working_directory, display)
        env = self._build_env(config)
        stdout = asyncio.subprocess.PIPE if config.capture_stdout else None
        stderr = asyncio.subprocess.PIPE if config.capture_stderr else None
        new_session = os.name == "posix"

        logger.debug(f"Running: {display} (cwd={cwd or os.getcwd()})")
        started_at = time.monotonic()
        try:
            if config.use_shell:
                proc = await asyncio.create_subprocess_shell(
                    display,
                    cwd=cwd,
                    env=env,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=stdout,
                    stderr=stderr,
                    start_new_session=new_session,
                )
            else:
                argv = self._to_argv(command, display)
                proc = await asyncio.create_subprocess_exec(
                    *argv,
                    cwd=cwd,
                    env=env,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=stdout,
                    stderr=stderr,
                    start_new_session=new_session,
                )
        except OSError as e:
            raise CommandError(f"Failed to spawn '{display}': {e}", command=display, cause=e) from e

        readers = [
            asyncio.ensure_future(stream.read()) if stream is not None else None
            for stream in (proc.stdout, proc.stderr)
        ]

        timeout = config.timeout_seconds if config.timeout_seconds and config.timeout_seconds > 0 else None
        try:
            exit_code = await asyncio.wait_for(proc.wait(), timeout=timeout)
        except asyncio.TimeoutError as e:
            await self._terminate(proc, display, readers)
            elapsed = time.monotonic() - started_at
            logger.warning(f"Command timed out after {elapsed:.1f}s: {display}")
            raise CommandTimeoutError(
                f"Command timed out after {timeout}s: {display}",
                timeout_seconds=timeout,
                command=display,
                cause=e,
            ) from e
        except asyncio.CancelledError:
            await self._terminate(proc, display, readers)
            raise

        out_bytes, err_bytes = await self._collect(readers)
        finished_at = time.monotonic()
        result = ExecutionResult(
            exit_code=exit_code,
            stdout=out_bytes.decode("utf-8", errors="replace"),
            stderr=err_bytes.decode("utf-8", errors="replace"),
            execution_time_ms=(finished_at - started_at) * 1000,
            started_at=started_at,
            finished_at=finished_at,
        )
        logger.debug(f"Finished ({exit_code}) in {result.execution_time_ms:.0f}ms: {display}")
        return result

    async def execute_parallel(
        self,
        tasks: Sequence[ExecutionTask],
        parallel_config: Optional[ParallelConfig] = None,
    ) -> ParallelResult:
        """
        Run every task with at most ``max_concurrency`` active at once.

        Raises:
            ValidationError: If two tasks share an id
        """
        parallel_config = parallel_config or ParallelConfig()
        ids = [task.id for task in tasks]
        duplicates = sorted({task_id for task_id in ids if ids.count(task_id) > 1})
        if duplicates:
            raise ValidationError(
                f"Duplicate task ids: {', '.join(duplicates)}", field="task_id", value=duplicates, reason="duplicate"
            )

        logger.info(f"Running {len(tasks)} task(s), max concurrency {parallel_config.max_concurrency}")
        started_at = time.monotonic()
        outcomes = await run_bounded(
            list(tasks),
            lambda task: self.execute(task.command, task.config),
            parallel_config.max_concurrency,
        )
        result = ParallelResult()
        for task, outcome in zip(tasks, outcomes):
            if isinstance(outcome, WmgrError):
                logger.warning(f"Task {task.id} failed: {outcome}")
            result.add_result(task.id, outcome)
        result.total_execution_time_ms = (time.monotonic() - started_at) * 1000
        return result

    # ---- Internals

    @staticmethod
    def _to_argv(command: Command, display: str) -> list[str]:
        if isinstance(command, str):
            try:
                argv = shlex.split(command)
            except ValueError as e:
                raise CommandError(f"Cannot parse command '{command}': {e}", command=display, cause=e) from e
        else:
            argv = [str(part) for part in command]
        if not argv or not argv[0]:
            raise CommandError("Command cannot be empty", command=display)
        return argv

    @staticmethod
    def _resolve_cwd(working_directory, display: str) -> Optional[str]:
        if working_directory is None:
            return None
        path = FilePath(working_directory).to_path()
        if not path.is_dir():
            raise CommandError(f"Working directory does not exist: {path}", command=display)
        return str(path)

    @staticmethod
    def _build_env(config: ExecutionConfig) -> Optional[dict[str, str]]:
        if config.inherit_environment and not config.environment_variables:
            return None
        env = dict(os.environ) if config.inherit_environment else {}
        env.update({str(k): str(v) for k, v in config.environment_variables.items()})
        return env

    @staticmethod
    async def _collect(readers) -> tuple[bytes, bytes]:
        out = [await reader if reader is not None else b"" for reader in readers]
        return out[0], out[1]

    async def _terminate(self, proc: asyncio.subprocess.Process, display: str, readers) -> None:
        """Kill the process group, reap the process, drain its pipes."""
        try:
            if os.name == "posix":
                os.killpg(proc.pid, signal.SIGKILL)
            else:
                proc.kill()
        except ProcessLookupError:
            pass
        except OSError as e:
            raise CommandError(f"Failed to terminate '{display}': {e}", command=display, cause=e) from e
        await proc.wait()
        pending = [reader for reader in readers if reader is not None]
        if pending:
            done, not_done = await asyncio.wait(pending, timeout=DRAIN_TIMEOUT_SECONDS)
            for reader in not_done:
                reader.cancel()

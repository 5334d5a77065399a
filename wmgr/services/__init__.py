from .command_executor import (
    CommandExecutor,
    ExecutionConfig,
    ExecutionResult,
    ExecutionTask,
    ParallelConfig,
    ParallelResult,
    run_bounded,
)
from .file_operations import (
    FileOperationConfig,
    FileOperationProcessor,
    FileOperationResult,
    OperationType,
    list_backups,
    rotate_backups,
)
from .git import CommitInfo, GitClient
from .manifest_store import ManifestMetadata, ManifestStore, load_manifest_source
from .status_engine import RepositoryState, RepositoryStatus, StatusEngine, classify_repository_state
from .workspace_store import WorkspaceStore

__all__ = [
    "CommandExecutor",
    "ExecutionConfig",
    "ExecutionResult",
    "ExecutionTask",
    "ParallelConfig",
    "ParallelResult",
    "run_bounded",
    "FileOperationConfig",
    "FileOperationProcessor",
    "FileOperationResult",
    "OperationType",
    "list_backups",
    "rotate_backups",
    "CommitInfo",
    "GitClient",
    "ManifestMetadata",
    "ManifestStore",
    "load_manifest_source",
    "RepositoryState",
    "RepositoryStatus",
    "StatusEngine",
    "classify_repository_state",
    "WorkspaceStore",
]

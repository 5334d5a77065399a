from .commit_log import LogConfig, LogResult, LogUseCase, RepositoryLog
from .foreach import CommandResult, ForeachConfig, ForeachResult, ForeachUseCase
from .init_workspace import InitConfig, InitResult, InitUseCase
from .manifest_ops import ApplyResult, apply_manifest, diff_manifests, dump_workspace_manifest
from .status import StatusConfig, StatusResult, StatusUseCase
from .sync import RepoSyncResult, SyncAction, SyncConfig, SyncResult, SyncUseCase

__all__ = [
    "LogConfig",
    "LogResult",
    "LogUseCase",
    "RepositoryLog",
    "CommandResult",
    "ForeachConfig",
    "ForeachResult",
    "ForeachUseCase",
    "InitConfig",
    "InitResult",
    "InitUseCase",
    "ApplyResult",
    "apply_manifest",
    "diff_manifests",
    "dump_workspace_manifest",
    "StatusConfig",
    "StatusResult",
    "StatusUseCase",
    "RepoSyncResult",
    "SyncAction",
    "SyncConfig",
    "SyncResult",
    "SyncUseCase",
]

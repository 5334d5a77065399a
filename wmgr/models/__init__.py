from .branch_name import BranchName, BranchNameError, BranchType, classify_branch
from .file_path import FilePath, FilePathError
from .git_url import GitURL, GitURLError
from .manifest import FileCopy, FileSymlink, Group, Manifest, ManifestRepo
from .repository import ORIGIN, Remote, Repository
from .scm_type import DEFAULT_SCM, SCM_CAPABILITIES, ScmCapabilities, ScmType
from .workspace import (
    DEFAULT_GROUP,
    VALID_TRANSITIONS,
    Workspace,
    WorkspaceConfig,
    WorkspaceStatus,
    discover_workspace_root,
)

__all__ = [
    "BranchName",
    "BranchNameError",
    "BranchType",
    "classify_branch",
    "FilePath",
    "FilePathError",
    "GitURL",
    "GitURLError",
    "FileCopy",
    "FileSymlink",
    "Group",
    "Manifest",
    "ManifestRepo",
    "ORIGIN",
    "Remote",
    "Repository",
    "DEFAULT_SCM",
    "SCM_CAPABILITIES",
    "ScmCapabilities",
    "ScmType",
    "DEFAULT_GROUP",
    "VALID_TRANSITIONS",
    "Workspace",
    "WorkspaceConfig",
    "WorkspaceStatus",
    "discover_workspace_root",
]

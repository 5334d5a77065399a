# Cross-cutting test utilities shared across all test types

from .git_repos import (
    GIT_AVAILABLE,
    commit_file,
    create_remote,
    file_url,
    git,
    push_commit,
    requires_git,
)
from .factories import ManifestFactory, ManifestRepoFactory, fake, group

__all__ = [
    # Git helpers
    "GIT_AVAILABLE",
    "commit_file",
    "create_remote",
    "file_url",
    "git",
    "push_commit",
    "requires_git",
    # Factories
    "ManifestFactory",
    "ManifestRepoFactory",
    "fake",
    "group",
]

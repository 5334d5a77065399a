"""
Error taxonomy for wmgr.

Every failure raised by wmgr is a WmgrError subclass. Library exceptions
(OSError, yaml.YAMLError, httpx.HTTPError, ...) are wrapped at the service
boundary with ``raise ... from e`` so the original cause stays available both
as ``__cause__`` and as ``.cause``.
"""

from typing import Any, Optional


class WmgrError(Exception):
    """Base exception for all wmgr errors."""

    kind = "internal"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self._cause = cause

    @property
    def cause(self) -> Optional[BaseException]:
        """The wrapped exception, if any."""
        return self._cause or self.__cause__

    def __str__(self) -> str:
        return self.message


class GitError(WmgrError):
    """A version-control operation failed."""

    kind = "git"


class GitAuthError(GitError):
    """Raised when git authentication fails."""

    pass


class FileSystemError(WmgrError):
    """A filesystem operation failed."""

    kind = "filesystem"

    def __init__(self, message: str, path: Any = None, cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.path = path

    def __str__(self) -> str:
        if self.path is not None:
            return f"{self.message} (path: {self.path})"
        return self.message


class ConfigError(WmgrError):
    """Workspace or runtime configuration is invalid."""

    kind = "config"


class ManifestError(WmgrError):
    """The manifest could not be read or failed validation."""

    kind = "manifest"

    def __init__(self, message: str, file_path: Any = None, cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.file_path = file_path

    def __str__(self) -> str:
        if self.file_path is not None:
            return f"{self.message} (manifest: {self.file_path})"
        return self.message


class WorkspaceError(WmgrError):
    """The workspace is missing, corrupted, or in the wrong state."""

    kind = "workspace"

    def __init__(self, message: str, workspace_path: Any = None, cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.workspace_path = workspace_path


class RepositoryError(WmgrError):
    """An operation on a single repository failed."""

    kind = "repository"

    def __init__(self, message: str, repository_name: str = "", cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.repository_name = repository_name

    def __str__(self) -> str:
        if self.repository_name:
            return f"{self.repository_name}: {self.message}"
        return self.message


class CommandError(WmgrError):
    """A command could not be spawned or exited unsuccessfully."""

    kind = "command"

    def __init__(
        self,
        message: str,
        command: str = "",
        exit_code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause)
        self.command = command
        self.exit_code = exit_code


class NetworkError(WmgrError):
    """A network request failed."""

    kind = "network"

    def __init__(self, message: str, url: str = "", cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.url = url


class ValidationError(WmgrError):
    """
    Input failed validation.

    ``reason`` is a short machine-readable tag (for example ``path_traversal``)
    so callers and tests can tell failure modes apart without parsing text.
    """

    kind = "validation"

    def __init__(
        self,
        message: str,
        field: str = "",
        value: Any = None,
        reason: str = "invalid",
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause)
        self.field = field
        self.value = value
        self.reason = reason


class SerializationError(WmgrError):
    """A document could not be serialized or deserialized."""

    kind = "serialization"


class CancelledError(WmgrError):
    """The operation was cancelled."""

    kind = "cancelled"


class CommandTimeoutError(WmgrError):
    """A command exceeded its timeout and was terminated."""

    kind = "timeout"

    def __init__(
        self,
        message: str,
        timeout_seconds: float = 0.0,
        command: str = "",
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause)
        self.timeout_seconds = timeout_seconds
        self.command = command


class InternalError(WmgrError):
    """Unclassified failure."""

    kind = "internal"

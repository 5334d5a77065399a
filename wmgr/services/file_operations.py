"""
File operation processor.

Materializes a manifest's ``copy`` and ``symlink`` entries after sync:
- copy:    <root>/<repo.dest>/<file>  ->  <root>/<dest>
- symlink: link at <root>/<source>, pointing at <target> (relative to the
           link's directory)

Every path goes through FilePath, so traversal out of the workspace is
rejected per operation. Each operation yields its own FileOperationResult and
a failing operation does not stop the batch.

Backups are numbered: ``name.bak.1`` is the newest, ``name.bak.<max_backups>``
the oldest kept.
"""

import logging
import os
import re
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from ..errors import FileSystemError, WmgrError
from ..models import FileCopy, FilePath, FileSymlink, Manifest, ManifestRepo

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".bak"


class OperationType(str, Enum):
    COPY = "copy"
    SYMLINK = "symlink"


@dataclass
class FileOperationConfig:
    create_backup: bool = True
    overwrite_existing: bool = False
    create_parent_dirs: bool = True
    validate_paths: bool = True
    max_backups: int = 5


@dataclass
class FileOperationResult:
    source: str
    destination: str
    operation_type: OperationType
    success: bool
    error: Optional[str] = None
    backup_created: Optional[str] = None
    unchanged: bool = False


# ---- Backup rotation

def backup_path(path: Path, index: int) -> Path:
    return path.with_name(f"{path.name}{BACKUP_SUFFIX}.{index}")


def list_backups(path: Path) -> list[Path]:
    """Existing numbered backups of ``path``, newest first."""
    pattern = re.compile(rf"^{re.escape(path.name)}{re.escape(BACKUP_SUFFIX)}\.(\d+)$")
    found = []
    if path.parent.is_dir():
        for candidate in path.parent.iterdir():
            match = pattern.match(candidate.name)
            if match:
                found.append((int(match.group(1)), candidate))
    return [p for _, p in sorted(found)]


def rotate_backups(path: Path, max_backups: int) -> Optional[Path]:
    """
    Shift existing backups up by one and save ``path`` as backup 1.

    Backups numbered above ``max_backups`` are deleted. Returns the new backup,
    or None when there was nothing to back up or backups are disabled.

    Raises:
        FileSystemError: If a backup cannot be written or removed
    """
    if max_backups <= 0 or not (path.exists() or path.is_symlink()):
        return None
    try:
        for existing in list_backups(path):
            index = int(existing.name.rsplit(".", 1)[1])
            if index >= max_backups:
                existing.unlink()
        for index in range(max_backups - 1, 0, -1):
            older = backup_path(path, index)
            if older.exists() or older.is_symlink():
                os.replace(older, backup_path(path, index + 1))
        newest = backup_path(path, 1)
        if path.is_symlink():
            os.symlink(os.readlink(path), newest)
        else:
            shutil.copy2(path, newest)
    except OSError as e:
        raise FileSystemError(f"Could not rotate backups: {e}", path=path, cause=e) from e
    logger.info(f"Backed up {path} to {newest.name}")
    return newest


# ---- Processor

class FileOperationProcessor:
    """
    Runs copy/symlink operations relative to a workspace root.

    Usage:
        processor = FileOperationProcessor(Path("/ws"), FileOperationConfig(max_backups=3))
        results = processor.process_all_file_operations(manifest)
        failed = [r for r in results if not r.success]
    """

    def __init__(self, workspace_root: Path, config: Optional[FileOperationConfig] = None):
        self.workspace_root = Path(workspace_root)
        self.config = config or FileOperationConfig()

    def _resolve(self, *relative: str) -> Path:
        if not self.config.validate_paths:
            return self.workspace_root.joinpath(*relative)
        path = FilePath.new_relative(relative[0])
        for part in relative[1:]:
            path = path.join(FilePath.new_relative(part))
        return self.workspace_root / path.as_str()

    def _make_room(self, destination: Path) -> Optional[str]:
        """Back up or clear an existing destination. Returns the backup path."""
        if not (destination.exists() or destination.is_symlink()):
            return None
        if self.config.create_backup and self.config.max_backups > 0:
            backup = rotate_backups(destination, self.config.max_backups)
            self._remove(destination)
            return str(backup) if backup else None
        if self.config.overwrite_existing:
            self._remove(destination)
            return None
        raise FileSystemError("Destination already exists", path=destination)

    @staticmethod
    def _remove(path: Path) -> None:
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError as e:
            raise FileSystemError(f"Could not remove existing destination: {e}", path=path, cause=e) from e

    def _ensure_parent(self, path: Path) -> None:
        if path.parent.is_dir():
            return
        if not self.config.create_parent_dirs:
            raise FileSystemError("Parent directory does not exist", path=path.parent)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemError(f"Could not create parent directory: {e}", path=path.parent, cause=e) from e

    def process_copy(self, repo: ManifestRepo, op: FileCopy) -> FileOperationResult:
        result = FileOperationResult(
            source=f"{repo.dest}/{op.file}",
            destination=op.dest,
            operation_type=OperationType.COPY,
            success=False,
        )
        try:
            source = self._resolve(repo.dest, op.file)
            destination = self._resolve(op.dest)
            result.source, result.destination = str(source), str(destination)
            if not source.is_file():
                raise FileSystemError("Copy source is not a file", path=source)
            if destination.is_file() and not destination.is_symlink() and _same_content(source, destination):
                result.success = result.unchanged = True
                return result
            self._ensure_parent(destination)
            result.backup_created = self._make_room(destination)
            try:
                shutil.copy2(source, destination)
            except OSError as e:
                raise FileSystemError(f"Copy failed: {e}", path=destination, cause=e) from e
            logger.info(f"Copied {source} -> {destination}")
            result.success = True
        except WmgrError as e:
            logger.warning(f"Copy {op.file} -> {op.dest} failed: {e}")
            result.error = str(e)
        return result

    def process_symlink(self, op: FileSymlink) -> FileOperationResult:
        result = FileOperationResult(
            source=op.source,
            destination=op.target,
            operation_type=OperationType.SYMLINK,
            success=False,
        )
        try:
            link = self._resolve(op.source)
            target = FilePath.new_relative(op.target).as_str() if self.config.validate_paths else op.target
            result.source = str(link)
            if link.is_symlink() and os.readlink(link) == target:
                result.success = result.unchanged = True
                return result
            self._ensure_parent(link)
            result.backup_created = self._make_room(link)
            try:
                os.symlink(target, link)
            except OSError as e:
                raise FileSystemError(f"Symlink failed: {e}", path=link, cause=e) from e
            logger.info(f"Linked {link} -> {target}")
            result.success = True
        except WmgrError as e:
            logger.warning(f"Symlink {op.source} -> {op.target} failed: {e}")
            result.error = str(e)
        except OSError as e:
            logger.warning(f"Symlink {op.source} -> {op.target} failed: {e}")
            result.error = f"Symlink failed: {e}"
        return result

    def process_all_file_operations(
        self,
        manifest: Manifest,
        dests: Optional[Iterable[str]] = None,
    ) -> list[FileOperationResult]:
        """
        Run every copy, then every symlink, of the manifest.

        With ``dests`` given, only operations owned by those repositories run.
        """
        selected = set(dests) if dests is not None else None
        results = []
        for repo, op in manifest.copy_operations:
            if selected is None or repo.dest in selected:
                results.append(self.process_copy(repo, op))
        for repo, op in manifest.symlink_operations:
            if selected is None or repo.dest in selected:
                results.append(self.process_symlink(op))
        return results


def _same_content(a: Path, b: Path) -> bool:
    try:
        if a.stat().st_size != b.stat().st_size:
            return False
        return a.read_bytes() == b.read_bytes()
    except OSError:
        return False

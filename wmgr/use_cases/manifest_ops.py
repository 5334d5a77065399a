"""dump-manifest and apply-manifest."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..errors import FileSystemError, WorkspaceError
from ..models import Manifest, Workspace
from ..schemas import dump_manifest
from ..services.workspace_store import WorkspaceStore

logger = logging.getLogger(__name__)


def dump_workspace_manifest(workspace: Workspace, fmt: str = "yaml", output: Optional[Path] = None) -> str:
    """Serialize the workspace manifest, optionally writing it to ``output``."""
    workspace.require_initialized()
    if workspace.manifest is None:
        raise WorkspaceError("Workspace has no manifest", workspace_path=workspace.root)
    text = dump_manifest(workspace.manifest, fmt)
    if output is not None:
        try:
            Path(output).write_text(text, encoding="utf-8")
        except OSError as e:
            raise FileSystemError(f"Could not write {output}: {e}", path=output, cause=e) from e
    return text


@dataclass
class ApplyResult:
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)
    written: bool = False
    backup: Optional[str] = None

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.changed)


def diff_manifests(old: Optional[Manifest], new: Manifest) -> ApplyResult:
    old_repos = {r.dest: r for r in old.repos} if old else {}
    new_repos = {r.dest: r for r in new.repos}
    result = ApplyResult()
    result.added = [dest for dest in new_repos if dest not in old_repos]
    result.removed = [dest for dest in old_repos if dest not in new_repos]
    result.changed = [dest for dest in new_repos if dest in old_repos and new_repos[dest] != old_repos[dest]]
    return result


def apply_manifest(
    store: WorkspaceStore,
    workspace: Workspace,
    manifest_file: Path,
    force: bool = False,
    dry_run: bool = False,
) -> ApplyResult:
    """
    Replace the workspace manifest with ``manifest_file``.

    Dropping repositories requires ``force``. Nothing is written on a dry run.

    Raises:
        WorkspaceError: If repositories would be dropped without ``force``
        ManifestError / FileSystemError: If the file is unreadable or invalid
    """
    workspace.require_initialized()
    manifest = store.manifests.read_manifest(Path(manifest_file))
    result = diff_manifests(workspace.manifest, manifest)
    if result.removed and not force and not dry_run:
        raise WorkspaceError(
            f"Applying would drop {len(result.removed)} repositories ({', '.join(result.removed)}); use --force",
            workspace_path=workspace.root,
        )
    if dry_run:
        return result
    backup = store.save_manifest(workspace, manifest)
    result.written = True
    result.backup = str(backup) if backup else None
    logger.info(f"Applied manifest from {manifest_file}: +{len(result.added)} -{len(result.removed)} ~{len(result.changed)}")
    return result

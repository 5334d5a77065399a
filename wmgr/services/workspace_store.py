"""
Workspace persistence: the marker directory, its config file and manifest.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from ..config import Settings, get_settings
from ..errors import ConfigError, FileSystemError, WorkspaceError
from ..models import Manifest, Workspace, WorkspaceConfig, discover_workspace_root
from ..schemas import dump_workspace_config, parse_workspace_config
from .manifest_store import ManifestStore

logger = logging.getLogger(__name__)


class WorkspaceStore:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.manifests = ManifestStore(max_backups=self.settings.max_backups)

    def new_workspace(self, root: Union[str, Path]) -> Workspace:
        return Workspace(Path(root).resolve(), marker_dir=self.settings.marker_dir)

    def load(self, root: Union[str, Path], with_manifest: bool = True) -> Workspace:
        """
        Load the workspace rooted at ``root``.

        A missing marker directory yields an uninitialized workspace, an
        unreadable or invalid config a corrupted one. With ``with_manifest``,
        a present but unreadable manifest raises.
        """
        workspace = self.new_workspace(root)
        if not workspace.marker_dir.is_dir():
            return workspace
        try:
            text = workspace.config_path.read_text(encoding="utf-8")
            config = parse_workspace_config(text)
        except (OSError, ConfigError) as e:
            logger.warning(f"Workspace config at {workspace.config_path} is unusable: {e}")
            workspace.mark_corrupted(str(e))
            return workspace
        workspace.initialize(config)
        if with_manifest and workspace.manifest_path.exists():
            workspace.set_manifest(self.manifests.read_manifest(workspace.manifest_path))
        return workspace

    def open(self, start: Union[str, Path]) -> Workspace:
        """
        Find and load the workspace containing ``start``.

        Raises:
            WorkspaceError: If there is none, it is corrupted, or it has no manifest
        """
        root = discover_workspace_root(start, self.settings.marker_dir)
        if root is None:
            raise WorkspaceError(
                f"No workspace found at or above {Path(start).resolve()}; run 'wmgr init' first",
                workspace_path=start,
            )
        workspace = self.load(root)
        workspace.require_initialized()
        if workspace.manifest is None:
            raise WorkspaceError(
                f"Workspace at {root} has no manifest; run 'wmgr init --force' or 'wmgr apply-manifest'",
                workspace_path=root,
            )
        return workspace

    def save_config(self, workspace: Workspace, config: WorkspaceConfig) -> None:
        try:
            workspace.marker_dir.mkdir(parents=True, exist_ok=True)
            workspace.config_path.write_text(dump_workspace_config(config), encoding="utf-8")
        except OSError as e:
            raise FileSystemError(f"Could not write workspace config: {e}", path=workspace.config_path, cause=e) from e
        logger.info(f"Wrote workspace config to {workspace.config_path}")

    def save_manifest(self, workspace: Workspace, manifest: Manifest) -> Optional[Path]:
        backup = self.manifests.write_manifest(manifest, workspace.manifest_path)
        workspace.set_manifest(manifest)
        return backup

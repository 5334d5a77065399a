"""
Tests for loading and saving workspaces on disk.
"""
import pytest

from wmgr.config import Settings
from wmgr.errors import ManifestError, WorkspaceError
from wmgr.models import WorkspaceConfig, WorkspaceStatus
from wmgr.services.workspace_store import WorkspaceStore

from shared import ManifestFactory


def initialized(store, root, manifest=None):
    workspace = store.new_workspace(root)
    config = WorkspaceConfig(manifest_url="/srv/manifest.yml")
    store.save_config(workspace, config)
    workspace.initialize(config)
    if manifest is not None:
        store.save_manifest(workspace, manifest)
    return workspace


class TestLoad:
    def test_uninitialized(self, store, workspace_root):
        assert store.load(workspace_root).status is WorkspaceStatus.UNINITIALIZED

    def test_initialized(self, store, workspace_root):
        initialized(store, workspace_root, ManifestFactory())
        workspace = store.load(workspace_root)
        assert workspace.is_initialized()
        assert workspace.config.manifest_url == "/srv/manifest.yml"
        assert len(workspace.repositories) == 3

    def test_marker_without_config_is_corrupted(self, store, workspace_root):
        (workspace_root / ".wmgr").mkdir()
        workspace = store.load(workspace_root)
        assert workspace.is_corrupted()

    def test_unparseable_config_is_corrupted(self, store, workspace_root):
        (workspace_root / ".wmgr").mkdir()
        (workspace_root / ".wmgr" / "config.yml").write_text("manifest_url: [broken\n")
        workspace = store.load(workspace_root)
        assert workspace.is_corrupted()
        assert "not valid YAML" in workspace.corruption_reason

    def test_invalid_manifest_raises(self, store, workspace_root):
        workspace = initialized(store, workspace_root)
        workspace.manifest_path.write_text("repos: 5\n")
        with pytest.raises(ManifestError):
            store.load(workspace_root)

    def test_custom_marker_dir(self, workspace_root):
        store = WorkspaceStore(Settings(marker_dir=".fleet"))
        initialized(store, workspace_root, ManifestFactory())
        assert (workspace_root / ".fleet" / "config.yml").is_file()
        assert store.load(workspace_root).is_initialized()


class TestOpen:
    def test_from_subdirectory(self, store, workspace_root):
        initialized(store, workspace_root, ManifestFactory())
        nested = workspace_root / "api" / "src"
        nested.mkdir(parents=True)
        workspace = store.open(nested)
        assert workspace.root == workspace_root.resolve()

    def test_no_workspace(self, store, tmp_path):
        store = WorkspaceStore(Settings(marker_dir=".wmgr-test-absent"))
        with pytest.raises(WorkspaceError, match="wmgr init"):
            store.open(tmp_path)

    def test_corrupted(self, store, workspace_root):
        (workspace_root / ".wmgr").mkdir()
        with pytest.raises(WorkspaceError, match="corrupted"):
            store.open(workspace_root)

    def test_without_manifest(self, store, workspace_root):
        initialized(store, workspace_root)
        with pytest.raises(WorkspaceError, match="no manifest"):
            store.open(workspace_root)


class TestSave:
    def test_save_manifest_backs_up_previous(self, store, workspace_root):
        workspace = initialized(store, workspace_root, ManifestFactory())
        backup = store.save_manifest(workspace, ManifestFactory())
        assert backup is not None
        assert backup.name == "manifest.yml.bak.1"
        assert len(workspace.repositories) == 3

    def test_backups_follow_settings(self, workspace_root):
        store = WorkspaceStore(Settings(max_backups=2))
        workspace = initialized(store, workspace_root, ManifestFactory())
        for _ in range(4):
            store.save_manifest(workspace, ManifestFactory())
        assert len(store.manifests.list_backups(workspace.manifest_path)) == 2

"""
Integration tests for workspace initialization.
"""
import pytest
import yaml

from wmgr.errors import ManifestError, WorkspaceError
from wmgr.use_cases import InitConfig, InitUseCase

from shared import file_url, requires_git

pytestmark = [pytest.mark.integration, requires_git]


class TestInit:
    """Tests for InitUseCase.execute."""

    @pytest.mark.asyncio
    async def test_writes_marker_config_and_manifest(self, store, git_client, fleet, workspace_root):
        result = await InitUseCase(store, git_client).execute(
            workspace_root, InitConfig(manifest_source=str(fleet.manifest), sync=False)
        )
        assert result.sync is None
        assert result.repo_count == 3
        assert (workspace_root / ".wmgr" / "config.yml").is_file()
        assert (workspace_root / ".wmgr" / "manifest.yml").is_file()

        loaded = store.load(workspace_root)
        assert loaded.is_initialized()
        assert loaded.config.manifest_url == str(fleet.manifest.resolve())
        assert [r.dest for r in loaded.repositories] == ["api", "web", "docs/site"]

    @pytest.mark.asyncio
    async def test_no_sync_clones_nothing(self, store, git_client, fleet, workspace_root):
        await InitUseCase(store, git_client).execute(
            workspace_root, InitConfig(manifest_source=str(fleet.manifest), sync=False)
        )
        assert not (workspace_root / "api").exists()

    @pytest.mark.asyncio
    async def test_second_init_needs_force(self, store, git_client, fleet, workspace_root):
        use_case = InitUseCase(store, git_client)
        await use_case.execute(workspace_root, InitConfig(manifest_source=str(fleet.manifest), sync=False))

        with pytest.raises(WorkspaceError, match="already initialized"):
            await use_case.execute(workspace_root, InitConfig(manifest_source=str(fleet.manifest), sync=False))

        result = await use_case.execute(
            workspace_root, InitConfig(manifest_source=str(fleet.manifest), sync=False, groups=["frontend"], force=True)
        )
        assert result.repo_count == 2
        assert store.load(workspace_root).config.repo_groups == ["frontend"]

    @pytest.mark.asyncio
    async def test_unknown_group_leaves_no_marker(self, store, git_client, fleet, workspace_root):
        with pytest.raises(ManifestError):
            await InitUseCase(store, git_client).execute(
                workspace_root, InitConfig(manifest_source=str(fleet.manifest), groups=["nope"])
            )
        assert not (workspace_root / ".wmgr").exists()

    @pytest.mark.asyncio
    async def test_reinitializes_corrupted_workspace(self, store, git_client, fleet, workspace_root):
        marker = workspace_root / ".wmgr"
        marker.mkdir()
        (marker / "config.yml").write_text("- not\n- a mapping\n")
        assert store.load(workspace_root).is_corrupted()

        await InitUseCase(store, git_client).execute(
            workspace_root, InitConfig(manifest_source=str(fleet.manifest), sync=False)
        )
        assert store.load(workspace_root).is_initialized()

    @pytest.mark.asyncio
    async def test_manifest_from_git_repository(self, store, git_client, fleet, workspace_root, make_remote):
        manifest_repo = make_remote("manifest", files={"manifest.yml": yaml.safe_dump(fleet.doc, sort_keys=False)})
        result = await InitUseCase(store, git_client).execute(
            workspace_root, InitConfig(manifest_source=file_url(manifest_repo), groups=["backend"])
        )
        assert result.sync.is_success()
        assert (workspace_root / "api" / ".git").is_dir()
        assert result.workspace.config.manifest_url == file_url(manifest_repo)

    @pytest.mark.asyncio
    async def test_manifest_directory_source(self, store, git_client, fleet, workspace_root):
        result = await InitUseCase(store, git_client).execute(
            workspace_root, InitConfig(manifest_source=str(fleet.manifest.parent), sync=False)
        )
        assert result.repo_count == 3

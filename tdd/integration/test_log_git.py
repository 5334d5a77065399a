"""
Integration tests for commit history on real clones.
"""
import pytest

from wmgr.use_cases import LogConfig, LogUseCase

from shared import git, push_commit, requires_git

pytestmark = [pytest.mark.integration, requires_git]


async def logs(workspace, git_client, **kwargs) -> dict:
    result = await LogUseCase(git_client).execute(workspace, LogConfig(jobs=3, **kwargs))
    assert result.is_success(), [log.error for log in result.logs]
    return {log.dest: log for log in result.logs}


class TestLog:
    @pytest.mark.asyncio
    async def test_newest_first(self, synced_workspace, git_client):
        found = await logs(synced_workspace, git_client)
        api = found["api"]
        assert [c.summary for c in api.commits] == ["update ci/Makefile", "update README.md"]
        assert api.branch == "main"
        assert api.commits[0].author_name == "wmgr tests"
        assert api.commits[0].sha == git(["rev-parse", "HEAD"], cwd=synced_workspace.root / "api").strip()
        assert [c.summary for c in found["docs/site"].commits] == ["update README.md"]

    @pytest.mark.asyncio
    async def test_max_count(self, synced_workspace, git_client):
        found = await logs(synced_workspace, git_client, max_count=1)
        assert [len(log.commits) for log in found.values()] == [1, 1, 1]

    @pytest.mark.asyncio
    async def test_group(self, synced_workspace, git_client):
        found = await logs(synced_workspace, git_client, groups=["backend"])
        assert list(found) == ["api"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("window", [{"since": "2999-01-01"}, {"until": "2000-01-01"}])
    async def test_date_window_excludes_everything(self, synced_workspace, git_client, window):
        found = await logs(synced_workspace, git_client, **window)
        assert all(log.commits == [] for log in found.values())

    @pytest.mark.asyncio
    async def test_shows_local_history_only(self, synced_workspace, git_client, fleet):
        push_commit(fleet.remotes["web"], "NEWS.md", "fresh\n")
        before = await logs(synced_workspace, git_client, groups=["frontend"])
        assert len(before["web"].commits) == 1

        git(["pull", "-q", "--ff-only"], cwd=synced_workspace.root / "web")
        after = await logs(synced_workspace, git_client, groups=["frontend"])
        assert after["web"].commits[0].summary == "update NEWS.md"


"""
End-to-end tests for the wmgr command line against real git remotes.
"""
import json
import shutil

import pytest
from click.testing import CliRunner

from wmgr.cli import cli

from shared import git, push_commit, requires_git

pytestmark = [pytest.mark.integration, requires_git]


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def initialized(runner, fleet, workspace_root):
    result = runner.invoke(cli, ["-C", str(workspace_root), "init", str(fleet.manifest), "-j", "3"])
    assert result.exit_code == 0, result.output
    return workspace_root


class TestCommandLine:
    def test_init_clones(self, initialized):
        for dest in ("api", "web", "docs/site"):
            assert (initialized / dest / ".git").is_dir()
        assert (initialized / "Makefile").is_file()

    def test_init_with_group(self, runner, fleet, workspace_root):
        result = runner.invoke(cli, ["-C", str(workspace_root), "init", str(fleet.manifest), "-g", "backend"])
        assert result.exit_code == 0, result.output
        assert (workspace_root / "api").is_dir()
        assert not (workspace_root / "web").exists()

    def test_sync(self, runner, fleet, initialized):
        push_commit(fleet.remotes["api"], "NEWS.md", "fresh\n")
        result = runner.invoke(cli, ["-C", str(initialized), "sync"])
        assert result.exit_code == 0, result.output
        assert "3 synced (0 cloned, 3 updated)" in result.output
        assert (initialized / "api" / "NEWS.md").is_file()

    def test_sync_failure_exit_code(self, runner, fleet, initialized):
        (initialized / "web" / "README.md").write_text("local edit\n")
        result = runner.invoke(cli, ["-C", str(initialized), "sync"])
        assert result.exit_code == 1
        assert "1 failed" in result.output

    def test_status_json_clean(self, runner, initialized):
        result = runner.invoke(cli, ["-C", str(initialized), "status", "-o", "json"])
        assert result.exit_code == 0, result.output
        doc = json.loads(result.stdout)
        assert doc["summary"]["clean"] == 3
        assert [r["dest"] for r in doc["repositories"]] == ["api", "web", "docs/site"]

    def test_status_dirty_repository_is_not_a_failure(self, runner, initialized):
        (initialized / "api" / "scratch.txt").write_text("notes\n")
        result = runner.invoke(cli, ["-C", str(initialized), "status", "-o", "json"])
        assert result.exit_code == 0
        states = {r["dest"]: r["state"] for r in json.loads(result.stdout)["repositories"]}
        assert states["api"] == "dirty"

    def test_status_error_exit_code(self, runner, initialized):
        shutil.rmtree(initialized / "web" / ".git")
        result = runner.invoke(cli, ["-C", str(initialized), "status", "-o", "json"])
        assert result.exit_code == 1
        states = {r["dest"]: r["state"] for r in json.loads(result.stdout)["repositories"]}
        assert states == {"api": "clean", "web": "error", "docs/site": "clean"}

    def test_status_text(self, runner, initialized):
        result = runner.invoke(cli, ["-C", str(initialized), "status", "--compact"])
        assert result.exit_code == 0
        assert "3 repositories: 3 clean" in result.output

    def test_foreach_git(self, runner, initialized):
        result = runner.invoke(cli, ["-C", str(initialized), "foreach", "--", "git", "rev-parse", "--abbrev-ref", "HEAD"])
        assert result.exit_code == 0, result.output
        assert result.output.count("main") == 3

    def test_log_oneline(self, runner, initialized):
        result = runner.invoke(cli, ["-C", str(initialized), "log", "--oneline", "-n", "1"])
        assert result.exit_code == 0, result.output
        head = git(["rev-parse", "HEAD"], cwd=initialized / "api").strip()
        assert f"{head[:7]} update ci/Makefile" in result.output
        for dest in ("api", "web", "docs/site"):
            assert dest in result.output

    def test_log_full_format(self, runner, initialized):
        result = runner.invoke(cli, ["-C", str(initialized), "log", "-g", "backend", "-n", "1"])
        assert result.exit_code == 0, result.output
        assert "Author: wmgr tests <tests@example.com>" in result.output
        assert "      update ci/Makefile" in result.output

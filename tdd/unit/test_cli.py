"""
Tests for the wmgr command line.

None of these clone anything; init runs with --no-sync.
"""
import json
import sys

import pytest
from click.testing import CliRunner

from wmgr.cli import cli


def flat(result) -> str:
    """Output with rich line wrapping undone."""
    return " ".join(result.output.split())


MANIFEST = {
    "repos": [
        {"url": "https://github.com/acme/api.git", "dest": "api"},
        {"url": "https://github.com/acme/web.git", "dest": "web", "branch": "develop"},
    ],
    "groups": {"backend": {"repos": ["api"]}},
}


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def initialized(runner, workspace_root, write_manifest):
    """A workspace initialized from MANIFEST, with api and web as plain directories."""
    result = runner.invoke(cli, ["-C", str(workspace_root), "init", str(write_manifest(MANIFEST)), "--no-sync"])
    assert result.exit_code == 0, result.output
    (workspace_root / "api").mkdir()
    (workspace_root / "web").mkdir()
    return workspace_root


class TestGlobal:
    def test_version_command(self, runner):
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert result.output.startswith("wmgr ")

    def test_version_option(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "wmgr" in result.output

    @pytest.mark.parametrize("command", ["sync", "status", "log", "dump-manifest"])
    def test_outside_workspace(self, runner, tmp_path, command):
        result = runner.invoke(cli, ["-C", str(tmp_path), command])
        assert result.exit_code == 1
        assert "Error:" in result.output


class TestInit:
    def test_no_sync(self, runner, workspace_root, write_manifest):
        result = runner.invoke(cli, ["-C", str(workspace_root), "init", str(write_manifest(MANIFEST)), "--no-sync"])
        assert result.exit_code == 0
        assert "Initialized" in result.output
        assert (workspace_root / ".wmgr" / "manifest.yml").is_file()
        assert not (workspace_root / "api").exists()

    def test_twice_without_force(self, runner, initialized, write_manifest):
        result = runner.invoke(cli, ["-C", str(initialized), "init", str(write_manifest(MANIFEST)), "--no-sync"])
        assert result.exit_code == 1
        assert "already initialized" in flat(result)

    def test_missing_manifest(self, runner, workspace_root, tmp_path):
        result = runner.invoke(cli, ["-C", str(workspace_root), "init", str(tmp_path / "absent.yml"), "--no-sync"])
        assert result.exit_code == 1
        assert "Error:" in result.output


class TestDumpAndApply:
    def test_dump_json(self, runner, initialized):
        result = runner.invoke(cli, ["-C", str(initialized), "dump-manifest", "--format", "json"])
        assert result.exit_code == 0
        doc = json.loads(result.stdout)
        assert [r["dest"] for r in doc["repos"]] == ["api", "web"]

    def test_dump_from_subdirectory(self, runner, initialized):
        result = runner.invoke(cli, ["-C", str(initialized / "api"), "dump-manifest"])
        assert result.exit_code == 0
        assert "dest: web" in result.output

    def test_apply_removal_needs_force(self, runner, initialized, write_manifest):
        smaller = write_manifest({"repos": MANIFEST["repos"][:1]}, name="smaller.yml")

        refused = runner.invoke(cli, ["-C", str(initialized), "apply-manifest", str(smaller)])
        assert refused.exit_code == 1
        assert "Error:" in refused.output

        dry = runner.invoke(cli, ["-C", str(initialized), "apply-manifest", "-n", str(smaller)])
        assert dry.exit_code == 0
        assert "- web" in dry.output
        assert "Dry run" in dry.output

        applied = runner.invoke(cli, ["-C", str(initialized), "apply-manifest", "-f", str(smaller)])
        assert applied.exit_code == 0
        assert "Previous manifest saved" in applied.output

    def test_apply_missing_file(self, runner, initialized, tmp_path):
        result = runner.invoke(cli, ["-C", str(initialized), "apply-manifest", str(tmp_path / "absent.yml")])
        assert result.exit_code == 2


class TestStatus:
    """Exit status follows errors only; other states are just reported."""

    def test_missing_repositories_exit_zero(self, runner, initialized):
        (initialized / "api").rmdir()
        (initialized / "web").rmdir()
        result = runner.invoke(cli, ["-C", str(initialized), "status", "-o", "json"])
        assert result.exit_code == 0
        summary = json.loads(result.stdout)["summary"]
        assert summary["missing"] == 2
        assert summary["error"] == 0

    def test_undeterminable_status_exits_one(self, runner, initialized):
        (initialized / "web").rmdir()
        result = runner.invoke(cli, ["-C", str(initialized), "status", "-o", "json"])
        assert result.exit_code == 1
        states = {r["dest"]: r["state"] for r in json.loads(result.stdout)["repositories"]}
        assert states == {"api": "error", "web": "missing"}


class TestLog:
    def test_plain_directories_fail(self, runner, initialized):
        result = runner.invoke(cli, ["-C", str(initialized), "log", "--oneline"])
        assert result.exit_code == 1
        assert "not a git repository" in flat(result)

    def test_uncloned_are_skipped(self, runner, initialized):
        (initialized / "api").rmdir()
        (initialized / "web").rmdir()
        result = runner.invoke(cli, ["-C", str(initialized), "log"])
        assert result.exit_code == 0
        assert "api skipped (not cloned)" in flat(result)
        assert "web skipped (not cloned)" in flat(result)

    def test_max_count_must_be_positive(self, runner, initialized):
        result = runner.invoke(cli, ["-C", str(initialized), "log", "-n", "0"])
        assert result.exit_code == 1
        assert "max_count must be at least 1" in flat(result)


class TestForeach:
    def test_runs_everywhere(self, runner, initialized):
        code = "import os; print('in', os.environ['WMGR_REPO_DEST'])"
        result = runner.invoke(cli, ["-C", str(initialized), "foreach", "--", sys.executable, "-c", code])
        assert result.exit_code == 0
        assert "in api" in result.output
        assert "in web" in result.output
        assert "2 succeeded, 0 failed, 0 skipped" in result.output

    def test_group(self, runner, initialized):
        result = runner.invoke(
            cli, ["-C", str(initialized), "foreach", "-g", "backend", "--", sys.executable, "-c", "pass"]
        )
        assert result.exit_code == 0
        assert "1 succeeded" in result.output

    def test_failure_stops_without_k(self, runner, initialized):
        result = runner.invoke(
            cli, ["-C", str(initialized), "foreach", "--", sys.executable, "-c", "import sys; sys.exit(3)"]
        )
        assert result.exit_code == 1
        assert "0 succeeded, 1 failed" in result.output
        assert "Stopped after the first failure" in result.output

    def test_continue_on_error(self, runner, initialized):
        result = runner.invoke(
            cli, ["-C", str(initialized), "foreach", "-k", "--", sys.executable, "-c", "import sys; sys.exit(3)"]
        )
        assert result.exit_code == 1
        assert "0 succeeded, 2 failed" in result.output

    def test_skips_uncloned(self, runner, initialized):
        (initialized / "web").rmdir()
        result = runner.invoke(cli, ["-C", str(initialized), "foreach", "--", sys.executable, "-c", "pass"])
        assert result.exit_code == 0
        assert "1 succeeded, 0 failed, 1 skipped" in result.output

    def test_requires_command(self, runner, initialized):
        result = runner.invoke(cli, ["-C", str(initialized), "foreach"])
        assert result.exit_code == 2

"""
Integration fixtures: a small fleet of bare git remotes and a manifest
describing them.

Fleet layout:
- api       (branches: develop; tags: v1.0; ships ci/Makefile)
- web       (branches: feature/x)
- docs/site
Groups: backend = [api], frontend = [web, docs/site]
"""
from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio

from wmgr.services.git import GitClient
from wmgr.use_cases import InitConfig, InitUseCase

from shared import file_url


def fleet_document(remotes: dict[str, Path]) -> dict:
    return {
        "default_branch": "main",
        "repos": [
            {
                "url": file_url(remotes["api"]),
                "dest": "api",
                "copy": [{"file": "ci/Makefile", "dest": "Makefile"}],
            },
            {"url": file_url(remotes["web"]), "dest": "web"},
            {"url": file_url(remotes["docs"]), "dest": "docs/site"},
        ],
        "groups": {
            "backend": {"repos": ["api"]},
            "frontend": {"repos": ["web", "docs/site"]},
        },
    }


@pytest.fixture
def fleet(make_remote, write_manifest) -> SimpleNamespace:
    remotes = {
        "api": make_remote(
            "api",
            files={"README.md": "# api\n", "ci/Makefile": "all:\n\techo api\n"},
            branches=("develop",),
            tags=("v1.0",),
        ),
        "web": make_remote("web", branches=("feature/x",)),
        "docs": make_remote("docs"),
    }
    doc = fleet_document(remotes)
    return SimpleNamespace(
        remotes=remotes,
        doc=doc,
        manifest=write_manifest(doc),
        write=write_manifest,
    )


@pytest.fixture
def git_client() -> GitClient:
    return GitClient(timeout=60)


@pytest_asyncio.fixture
async def synced_workspace(store, git_client, fleet, workspace_root):
    """An initialized workspace with every fleet repository cloned."""
    result = await InitUseCase(store, git_client).execute(
        workspace_root, InitConfig(manifest_source=str(fleet.manifest), parallel_jobs=3)
    )
    assert result.sync.is_success(), result.sync.errors
    return result.workspace

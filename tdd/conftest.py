"""
Root conftest.py - Shared fixtures for all test types.

This file is automatically loaded by pytest and provides:
- Settings and store fixtures pointing at temporary directories
- Bare git remotes reachable over file:// URLs
- Helpers to write manifests and initialized workspaces
"""
from pathlib import Path
from typing import Callable

import pytest
import yaml

from wmgr.config import Settings, get_settings
from wmgr.services.workspace_store import WorkspaceStore

from shared import create_remote


# -----------------------------------------------------------------------------
# Settings Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Each test sees WMGR_* environment changes."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(jobs=4, max_backups=3, http_timeout=5.0)


@pytest.fixture
def store(settings) -> WorkspaceStore:
    return WorkspaceStore(settings)


# -----------------------------------------------------------------------------
# Filesystem Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def workspace_root(tmp_path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def remotes_dir(tmp_path) -> Path:
    path = tmp_path / "remotes"
    path.mkdir()
    return path


@pytest.fixture
def make_remote(remotes_dir) -> Callable[..., Path]:
    """Create a bare repository under remotes_dir; returns its path."""
    def _make(name: str, **kwargs) -> Path:
        return create_remote(remotes_dir, name, **kwargs)
    return _make


@pytest.fixture
def write_manifest(tmp_path) -> Callable[[dict], Path]:
    """Write a manifest dict as YAML and return the file path."""
    def _write(doc: dict, name: str = "manifest.yml") -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(doc, sort_keys=False))
        return path
    return _write

"""
Helpers for building throwaway git repositories on disk.

Remotes are bare repositories reachable through file:// URLs, so no network
or git server is needed.
"""
import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

import pytest

GIT_AVAILABLE = shutil.which("git") is not None

GIT_TEST_ENV = {
    **os.environ,
    "GIT_AUTHOR_NAME": "wmgr tests",
    "GIT_AUTHOR_EMAIL": "tests@example.com",
    "GIT_COMMITTER_NAME": "wmgr tests",
    "GIT_COMMITTER_EMAIL": "tests@example.com",
    "GIT_CONFIG_NOSYSTEM": "1",
    "GIT_TERMINAL_PROMPT": "0",
}


def git(args: list[str], cwd: Optional[Path] = None) -> str:
    """Run git synchronously and return stdout."""
    result = subprocess.run(
        ["git", "-c", "commit.gpgsign=false", "-c", "init.defaultBranch=main"] + args,
        cwd=cwd,
        env=GIT_TEST_ENV,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


def commit_file(work: Path, filename: str, content: str, message: Optional[str] = None) -> str:
    """Write a file, commit it, return the new HEAD sha."""
    path = work / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    git(["add", filename], cwd=work)
    git(["commit", "-q", "-m", message or f"update {filename}"], cwd=work)
    return git(["rev-parse", "HEAD"], cwd=work).strip()


def create_remote(
    base: Path,
    name: str,
    files: Optional[dict[str, str]] = None,
    branches: tuple[str, ...] = (),
    tags: tuple[str, ...] = (),
) -> Path:
    """
    Create a bare repository ``base/<name>.git`` with one commit on main.

    Extra ``branches`` each get one additional commit; ``tags`` point at
    main's first commit.
    """
    seed = base / f"{name}-seed"
    bare = base / f"{name}.git"
    seed.mkdir(parents=True)
    git(["init", "-q"], cwd=seed)
    git(["symbolic-ref", "HEAD", "refs/heads/main"], cwd=seed)
    for filename, content in (files or {"README.md": f"# {name}\n"}).items():
        commit_file(seed, filename, content)
    for tag in tags:
        git(["tag", tag], cwd=seed)
    for branch in branches:
        git(["checkout", "-q", "-b", branch], cwd=seed)
        commit_file(seed, f"{branch.replace('/', '_')}.txt", branch)
        git(["checkout", "-q", "main"], cwd=seed)
    git(["clone", "-q", "--bare", str(seed), str(bare)])
    shutil.rmtree(seed)
    return bare


def push_commit(bare: Path, filename: str, content: str, branch: str = "main") -> str:
    """Add a commit to ``branch`` of a bare remote. Returns its sha."""
    work = bare.parent / f"{bare.stem}-push"
    if work.exists():
        shutil.rmtree(work)
    git(["clone", "-q", "--branch", branch, str(bare), str(work)])
    sha = commit_file(work, filename, content)
    git(["push", "-q", "origin", branch], cwd=work)
    shutil.rmtree(work)
    return sha


def file_url(path: Path) -> str:
    return path.resolve().as_uri()


requires_git = pytest.mark.skipif(not GIT_AVAILABLE, reason="git executable not available")

"""
Manifest persistence and retrieval.

Reading and writing manifest files (with numbered backup rotation), plus
resolving a manifest *source* given to ``wmgr init``:
- a local YAML/JSON file
- an http(s) URL to a .yml/.yaml/.json document, downloaded with httpx
- anything else git accepts, cloned as a manifest repository
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

import httpx

from ..errors import FileSystemError, ManifestError, NetworkError
from ..models import Manifest
from ..schemas import dump_manifest, parse_manifest
from .file_operations import list_backups, rotate_backups
from .git import GitClient

logger = logging.getLogger(__name__)

MANIFEST_CANDIDATES = ("manifest.yml", "manifest.yaml", "wmgr.yml", "wmgr.yaml")
_DOCUMENT_SUFFIXES = (".yml", ".yaml", ".json")


@dataclass
class ManifestMetadata:
    path: str
    size: int
    modified: datetime
    repo_count: int
    group_count: int


class ManifestStore:
    """
    Reads and writes manifest files.

    Only one writer per invocation is expected; concurrent writers are not
    coordinated beyond the backups they leave behind.
    """

    def __init__(self, max_backups: int = 5):
        self.max_backups = max_backups

    def read_manifest(self, path: Path) -> Manifest:
        """
        Raises:
            FileSystemError: If the file cannot be read
            ManifestError: If it is not a valid manifest
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise FileSystemError("Manifest file not found", path=path, cause=e) from e
        except OSError as e:
            raise FileSystemError(f"Could not read manifest: {e}", path=path, cause=e) from e
        return parse_manifest(text, source=path)

    def write_manifest(self, manifest: Manifest, path: Path, fmt: str = "yaml") -> Optional[Path]:
        """
        Write ``manifest`` to ``path``, rotating backups of the previous file.

        Returns:
            The backup created, if any
        """
        path = Path(path)
        content = dump_manifest(manifest, fmt)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemError(f"Could not create directory: {e}", path=path.parent, cause=e) from e
        backup = rotate_backups(path, self.max_backups)
        tmp = path.with_name(f".{path.name}.tmp")
        try:
            tmp.write_text(content, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise FileSystemError(f"Could not write manifest: {e}", path=path, cause=e) from e
        logger.info(f"Wrote manifest to {path}")
        return backup

    def delete_manifest(self, path: Path) -> None:
        path = Path(path)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise FileSystemError("Manifest file not found", path=path, cause=e) from e
        except OSError as e:
            raise FileSystemError(f"Could not delete manifest: {e}", path=path, cause=e) from e

    def list_backups(self, path: Path) -> list[Path]:
        return list_backups(Path(path))

    def metadata(self, path: Path) -> ManifestMetadata:
        path = Path(path)
        manifest = self.read_manifest(path)
        stat = path.stat()
        return ManifestMetadata(
            path=str(path),
            size=stat.st_size,
            modified=datetime.fromtimestamp(stat.st_mtime),
            repo_count=len(manifest.repos),
            group_count=len(manifest.groups),
        )


# ---- Manifest sources

def is_document_url(source: str) -> bool:
    lowered = source.lower()
    return lowered.startswith(("http://", "https://")) and lowered.split("?", 1)[0].endswith(_DOCUMENT_SUFFIXES)


def find_manifest_file(directory: Path) -> Path:
    """
    Raises:
        ManifestError: If no candidate manifest file exists
    """
    for name in MANIFEST_CANDIDATES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    raise ManifestError(
        f"No manifest found (looked for {', '.join(MANIFEST_CANDIDATES)})", file_path=directory
    )


async def download_manifest(url: str, timeout: float = 30.0, transport: Optional[httpx.AsyncBaseTransport] = None) -> Manifest:
    """
    Raises:
        NetworkError: On connection failures or non-2xx responses
        ManifestError: If the body is not a valid manifest
    """
    logger.info(f"Downloading manifest from {url}")
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise NetworkError(
            f"Manifest download returned {e.response.status_code}", url=url, cause=e
        ) from e
    except httpx.HTTPError as e:
        raise NetworkError(f"Could not download manifest: {e}", url=url, cause=e) from e
    return parse_manifest(response.text, source=url)


async def load_manifest_source(
    source: str,
    branch: Optional[str] = None,
    git: Optional[GitClient] = None,
    http_timeout: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Manifest:
    """
    Resolve a manifest from a file, a document URL, or a manifest repository.
    """
    local = Path(source).expanduser()
    if local.is_file():
        return ManifestStore().read_manifest(local)
    if local.is_dir():
        return ManifestStore().read_manifest(find_manifest_file(local))
    if is_document_url(source):
        return await download_manifest(source, timeout=http_timeout, transport=transport)

    git = git or GitClient()
    with tempfile.TemporaryDirectory(prefix="wmgr-manifest-") as tmp:
        checkout = Path(tmp) / "manifest"
        await git.clone(source, checkout, branch=branch, shallow=True)
        return ManifestStore().read_manifest(find_manifest_file(checkout))

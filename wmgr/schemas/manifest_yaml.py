"""
YAML schemas for the manifest document.

The manifest lives at .wmgr/manifest.yml inside a workspace, or anywhere the
user points ``wmgr init`` / ``wmgr apply-manifest`` at.
"""

import json
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from ..errors import ManifestError, SerializationError, WmgrError
from ..models import FileCopy, FileSymlink, Group, Manifest, ManifestRepo, Remote, ScmType
from ..models.scm_type import DEFAULT_SCM


class RemoteYaml(BaseModel):
    name: str = Field(..., description="Remote name, unique within the repository")
    url: str = Field(..., description="Remote URL")


class FileCopyYaml(BaseModel):
    file: str = Field(..., description="Path inside the repository")
    dest: str = Field(..., description="Destination, relative to the workspace root")


class FileSymlinkYaml(BaseModel):
    source: str = Field(..., description="Link location, relative to the workspace root")
    target: str = Field(..., description="Link target, relative to the link's directory")


class ManifestRepoYaml(BaseModel):
    """
    Schema for one repository entry.

    Example:
    ```yaml
    - url: git@github.com:acme/api.git
      dest: services/api
      branch: develop
      remotes:
        - name: upstream
          url: https://github.com/upstream/api
      copy:
        - file: ci/Makefile
          dest: Makefile
    ```
    """
    url: str = Field(..., description="Primary (origin) URL")
    dest: str = Field(..., description="Checkout location relative to the workspace root")
    branch: Optional[str] = Field(None, description="Branch to track")
    sha1: Optional[str] = Field(None, description="Pin to this commit")
    tag: Optional[str] = Field(None, description="Pin to this tag")
    remotes: list[RemoteYaml] = Field(default_factory=list, description="Additional remotes")
    shallow: Optional[bool] = Field(None, description="Clone with truncated history")
    copy_ops: list[FileCopyYaml] = Field(default_factory=list, alias="copy", description="Files to copy after sync")
    symlink: list[FileSymlinkYaml] = Field(default_factory=list, description="Links to create after sync")
    scm: Optional[str] = Field(None, description="git, svn or p4 (default: git)")

    model_config = {"populate_by_name": True}

    def to_domain(self) -> ManifestRepo:
        return ManifestRepo(
            url=self.url,
            dest=self.dest,
            branch=self.branch,
            sha1=self.sha1,
            tag=self.tag,
            remotes=[Remote(r.name, r.url) for r in self.remotes],
            shallow=self.shallow,
            copy=[FileCopy(c.file, c.dest) for c in self.copy_ops],
            symlink=[FileSymlink(s.source, s.target) for s in self.symlink],
            scm=ScmType.from_str(self.scm) if self.scm else DEFAULT_SCM,
        )

    @classmethod
    def from_domain(cls, repo: ManifestRepo) -> "ManifestRepoYaml":
        return cls(
            url=repo.url,
            dest=repo.dest,
            branch=repo.branch,
            sha1=repo.sha1,
            tag=repo.tag,
            remotes=[RemoteYaml(name=r.name, url=r.url) for r in repo.remotes],
            shallow=repo.shallow,
            copy=[FileCopyYaml(file=c.file, dest=c.dest) for c in repo.copy],
            symlink=[FileSymlinkYaml(source=s.source, target=s.target) for s in repo.symlink],
            scm=None if repo.scm is DEFAULT_SCM else repo.scm.value,
        )


class GroupYaml(BaseModel):
    """A group lists dests, or inline repository entries which join the flat list."""
    repos: list[Union[str, ManifestRepoYaml]] = Field(default_factory=list)
    description: Optional[str] = None


class ManifestYaml(BaseModel):
    repos: list[ManifestRepoYaml] = Field(default_factory=list)
    groups: dict[str, GroupYaml] = Field(default_factory=dict)
    default_branch: Optional[str] = None
    default_scm: Optional[str] = None
    default_shallow: Optional[bool] = None

    def to_domain(self) -> Manifest:
        repos = [r.to_domain() for r in self.repos]
        flat_dests = {r.dest for r in repos}
        groups = {}
        for name, group in self.groups.items():
            members = []
            for entry in group.repos:
                if isinstance(entry, str):
                    members.append(entry)
                    continue
                repo = entry.to_domain()
                if repo.dest not in flat_dests:
                    repos.append(repo)
                    flat_dests.add(repo.dest)
                members.append(repo.dest)
            groups[name] = Group(repos=members, description=group.description)
        return Manifest(
            repos=repos,
            groups=groups,
            default_branch=self.default_branch,
            default_scm=ScmType.from_str(self.default_scm) if self.default_scm else None,
            default_shallow=self.default_shallow,
        )

    @classmethod
    def from_domain(cls, manifest: Manifest) -> "ManifestYaml":
        return cls(
            repos=[ManifestRepoYaml.from_domain(r) for r in manifest.repos],
            groups={
                name: GroupYaml(repos=list(g.repos), description=g.description)
                for name, g in manifest.groups.items()
            },
            default_branch=manifest.default_branch,
            default_scm=manifest.default_scm.value if manifest.default_scm else None,
            default_shallow=manifest.default_shallow,
        )


# ---- Helper Functions

def parse_manifest(text: str, source=None) -> Manifest:
    """
    Parse and validate a manifest document (YAML or JSON).

    Args:
        text: Document contents
        source: Where it came from, used in error messages

    Raises:
        ManifestError: On syntax, schema or validation failures
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ManifestError(f"Manifest is not valid YAML: {e}", file_path=source, cause=e) from e
    if not isinstance(data, dict):
        raise ManifestError("Manifest must be a mapping at the top level", file_path=source)
    try:
        manifest = ManifestYaml.model_validate(data).to_domain()
    except PydanticValidationError as e:
        raise ManifestError(f"Manifest schema error: {e}", file_path=source, cause=e) from e
    except ManifestError:
        raise
    except WmgrError as e:
        raise ManifestError(f"Invalid manifest entry: {e}", file_path=source, cause=e) from e
    manifest.validate(file_path=source)
    return manifest


def dump_manifest(manifest: Manifest, fmt: str = "yaml") -> str:
    """Serialize a manifest as ``yaml`` or ``json``."""
    doc = ManifestYaml.from_domain(manifest).model_dump(by_alias=True, exclude_none=True)
    for repo in doc.get("repos", []):
        for key in ("remotes", "copy", "symlink"):
            if not repo.get(key):
                repo.pop(key, None)
    if not doc.get("groups"):
        doc.pop("groups", None)
    try:
        if fmt == "json":
            return json.dumps(doc, indent=2) + "\n"
        if fmt == "yaml":
            return yaml.safe_dump(doc, sort_keys=False, default_flow_style=False)
    except (TypeError, ValueError, yaml.YAMLError) as e:
        raise SerializationError(f"Could not serialize manifest: {e}", cause=e) from e
    raise SerializationError(f"Unknown manifest format '{fmt}' (expected yaml or json)")

"""
YAML schema for .wmgr/config.yml.

Example:
```yaml
manifest_url: git@github.com:acme/manifest.git
manifest_branch: main
shallow_clones: false
repo_groups:
  - backend
clone_all_repos: false
singular_remote: null
```
"""

from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from ..errors import ConfigError
from ..models import BranchName, BranchNameError, WorkspaceConfig
from ..models.workspace import DEFAULT_GROUP


class WorkspaceConfigYaml(BaseModel):
    manifest_url: str = Field(..., description="Where the manifest came from (file, URL or git repository)")
    manifest_branch: str = Field("main", description="Branch of the manifest repository")
    shallow_clones: bool = Field(False, description="Clone every git repository shallowly")
    repo_groups: list[str] = Field(default_factory=lambda: [DEFAULT_GROUP], description="Groups to operate on")
    clone_all_repos: bool = Field(False, description="Ignore groups and use every repository")
    singular_remote: Optional[str] = Field(None, description="Only configure this remote")

    model_config = {"extra": "forbid"}

    @field_validator("manifest_url")
    @classmethod
    def url_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("manifest_url cannot be empty")
        return v.strip()

    @field_validator("manifest_branch")
    @classmethod
    def branch_is_valid(cls, v: str) -> str:
        try:
            BranchName(v)
        except BranchNameError as e:
            raise ValueError(str(e)) from e
        return v

    def to_domain(self) -> WorkspaceConfig:
        return WorkspaceConfig(
            manifest_url=self.manifest_url,
            manifest_branch=self.manifest_branch,
            shallow_clones=self.shallow_clones,
            repo_groups=list(self.repo_groups),
            clone_all_repos=self.clone_all_repos,
            singular_remote=self.singular_remote,
        )

    @classmethod
    def from_domain(cls, config: WorkspaceConfig) -> "WorkspaceConfigYaml":
        return cls(
            manifest_url=config.manifest_url,
            manifest_branch=config.manifest_branch,
            shallow_clones=config.shallow_clones,
            repo_groups=list(config.repo_groups),
            clone_all_repos=config.clone_all_repos,
            singular_remote=config.singular_remote,
        )


def parse_workspace_config(text: str) -> WorkspaceConfig:
    """
    Raises:
        ConfigError: If the document is not a valid workspace config
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Workspace config is not valid YAML: {e}", cause=e) from e
    if not isinstance(data, dict):
        raise ConfigError("Workspace config must be a mapping")
    try:
        return WorkspaceConfigYaml.model_validate(data).to_domain()
    except (PydanticValidationError, ValueError) as e:
        raise ConfigError(f"Invalid workspace config: {e}", cause=e) from e


def dump_workspace_config(config: WorkspaceConfig) -> str:
    doc = WorkspaceConfigYaml.from_domain(config).model_dump()
    return yaml.safe_dump(doc, sort_keys=False, default_flow_style=False)

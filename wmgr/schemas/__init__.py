from .manifest_yaml import (
    FileCopyYaml,
    FileSymlinkYaml,
    GroupYaml,
    ManifestRepoYaml,
    ManifestYaml,
    RemoteYaml,
    dump_manifest,
    parse_manifest,
)
from .workspace_yaml import WorkspaceConfigYaml, dump_workspace_config, parse_workspace_config

__all__ = [
    "FileCopyYaml",
    "FileSymlinkYaml",
    "GroupYaml",
    "ManifestRepoYaml",
    "ManifestYaml",
    "RemoteYaml",
    "dump_manifest",
    "parse_manifest",
    "WorkspaceConfigYaml",
    "dump_workspace_config",
    "parse_workspace_config",
]

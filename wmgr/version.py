"""Build metadata, resolved once per process."""

import os
from dataclasses import dataclass
from functools import lru_cache
from importlib import metadata
from typing import Optional


@dataclass(frozen=True)
class BuildInfo:
    version: str
    commit: Optional[str] = None

    def describe(self) -> str:
        if self.commit:
            return f"{self.version} ({self.commit[:10]})"
        return self.version


@lru_cache
def get_build_info() -> BuildInfo:
    try:
        version = metadata.version("wmgr")
    except metadata.PackageNotFoundError:
        version = "0.0.0+local"
    return BuildInfo(version=version, commit=os.getenv("WMGR_BUILD_COMMIT"))

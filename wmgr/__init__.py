"""
wmgr - keep a fleet of repositories in sync from one manifest.
"""

from .version import BuildInfo, get_build_info

__version__ = get_build_info().version

__all__ = ["BuildInfo", "get_build_info", "__version__"]

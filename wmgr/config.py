from pydantic import BaseModel, field_validator
from functools import lru_cache
import os

from .errors import ConfigError


def _default_jobs() -> int:
    return max(os.cpu_count() or 1, 1)


class Settings(BaseModel):
    app_name: str = "wmgr"
    marker_dir: str = ".wmgr"
    jobs: int = _default_jobs()
    command_timeout: float | None = None  # seconds, applies to git commands
    http_timeout: float = 30.0
    max_backups: int = 5
    log_level: str = "WARNING"

    @field_validator("jobs")
    @classmethod
    def jobs_at_least_one(cls, v: int) -> int:
        return max(v, 1)

    @field_validator("max_backups")
    @classmethod
    def backups_not_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_backups must be >= 0")
        return v


def _env_float(name: str) -> float | None:
    raw = os.getenv(name)
    return float(raw) if raw else None


@lru_cache
def get_settings() -> Settings:
    try:
        return _load_settings()
    except ValueError as e:
        raise ConfigError(f"Invalid WMGR_* environment setting: {e}", cause=e) from e


def _load_settings() -> Settings:
    values = {
        "marker_dir": os.getenv("WMGR_MARKER_DIR", ".wmgr"),
        "log_level": os.getenv("WMGR_LOG_LEVEL", "WARNING").upper(),
        "command_timeout": _env_float("WMGR_COMMAND_TIMEOUT"),
    }
    if os.getenv("WMGR_JOBS"):
        values["jobs"] = int(os.environ["WMGR_JOBS"])
    if os.getenv("WMGR_HTTP_TIMEOUT"):
        values["http_timeout"] = float(os.environ["WMGR_HTTP_TIMEOUT"])
    if os.getenv("WMGR_MAX_BACKUPS"):
        values["max_backups"] = int(os.environ["WMGR_MAX_BACKUPS"])
    return Settings(**values)

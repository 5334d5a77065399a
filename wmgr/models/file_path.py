"""
Validated filesystem paths.

A FilePath is the only way a manifest-supplied path reaches the filesystem or
a spawned process. Construction rejects:
- empty strings and embedded null bytes
- paths longer than MAX_PATH_LENGTH
- any ``..`` component, raw or percent-encoded (``%2e%2e``, ``..%2f``, double
  encoded ``%252e%252e``)
- control characters, and on case-insensitive targets the Windows reserved
  device names and characters

Percent-decoding is applied (repeatedly, until stable) before the traversal
check; the stored path is the normalized *raw* string, never the decoded one.
"""

import os
import re
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote

from ..errors import ValidationError

MAX_PATH_LENGTH = 4096

RESERVED_DEVICE_NAMES = frozenset(
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{i}" for i in range(1, 10)]
    + [f"LPT{i}" for i in range(1, 10)]
)

# Case-insensitive filesystem semantics (reserved names, backslash separator).
CASE_INSENSITIVE_TARGET = os.name == "nt"

_WINDOWS_INVALID_CHARS = set('<>"|?*')
_DRIVE_RE = re.compile(r"^[A-Za-z]:")
_MAX_DECODE_ROUNDS = 4


class FilePathError(ValidationError):
    """Raised when a path fails validation."""

    def __init__(self, message: str, value: str, reason: str):
        super().__init__(message, field="path", value=value, reason=reason)


def _split_components(path: str) -> list[str]:
    return re.split(r"[\\/]", path)


def _has_traversal(path: str) -> bool:
    return any(part == ".." for part in _split_components(path))


def _fully_decoded(path: str) -> str:
    decoded = path
    for _ in range(_MAX_DECODE_ROUNDS):
        nxt = unquote(decoded)
        if nxt == decoded:
            break
        decoded = nxt
    return decoded


def _split_prefix(path: str) -> tuple[str, str, str]:
    """Split into (prefix, root, rest). Prefix is a drive like ``C:``."""
    prefix = ""
    if _DRIVE_RE.match(path):
        prefix, path = path[:2], path[2:]
    root = ""
    if path[:1] in ("/", "\\"):
        root = "/"
        path = path.lstrip("/\\")
    return prefix, root, path


class FilePath:
    """
    An immutable, validated, normalized path.

    Usage:
        FilePath("src/./lib.rs")            # -> FilePath('src/lib.rs'), relative
        FilePath.new_absolute("/srv/ws")    # absolute required
        FilePath("../etc/passwd")           # raises FilePathError(reason="path_traversal")
    """

    __slots__ = ("_path", "_absolute")

    def __init__(self, path: Union[str, "FilePath", os.PathLike]):
        if isinstance(path, FilePath):
            self._path = path._path
            self._absolute = path._absolute
            return
        raw = os.fspath(path) if not isinstance(path, str) else path
        self._path, self._absolute = self._validate_and_normalize(raw)

    @classmethod
    def new_relative(cls, path: Union[str, os.PathLike]) -> "FilePath":
        fp = cls(path)
        if fp.is_absolute:
            raise FilePathError(f"Expected a relative path, got '{fp}'", str(path), "unexpected_absolute")
        return fp

    @classmethod
    def new_absolute(cls, path: Union[str, os.PathLike]) -> "FilePath":
        fp = cls(path)
        if not fp.is_absolute:
            raise FilePathError(f"Expected an absolute path, got '{fp}'", str(path), "unexpected_absolute")
        return fp

    @staticmethod
    def _validate_and_normalize(raw: str) -> tuple[str, bool]:
        if not raw or not raw.strip():
            raise FilePathError("Path cannot be empty", raw, "empty")
        if "\x00" in raw:
            raise FilePathError("Path contains a null byte", raw, "null_byte")
        if len(raw) > MAX_PATH_LENGTH:
            raise FilePathError(
                f"Path is {len(raw)} characters long (max {MAX_PATH_LENGTH})", raw, "too_long"
            )
        if _has_traversal(raw):
            raise FilePathError(f"Path traversal is not allowed: '{raw}'", raw, "path_traversal")

        decoded = _fully_decoded(raw)
        if decoded != raw and (_has_traversal(decoded) or "\x00" in decoded):
            raise FilePathError(f"Path contains an encoded traversal sequence: '{raw}'", raw, "dangerous_pattern")

        if any(ord(c) < 0x20 or ord(c) == 0x7F for c in raw):
            raise FilePathError("Path contains control characters", raw, "invalid_characters")

        prefix, root, rest = _split_prefix(raw)
        parts = [p for p in _split_components(rest) if p not in ("", ".")]

        if CASE_INSENSITIVE_TARGET:
            for part in parts:
                if any(c in _WINDOWS_INVALID_CHARS or c == ":" for c in part):
                    raise FilePathError(f"Path component '{part}' has invalid characters", raw, "invalid_characters")
                stem = part.split(".", 1)[0].rstrip(" ").upper()
                if stem in RESERVED_DEVICE_NAMES:
                    raise FilePathError(f"'{part}' is a reserved device name", raw, "reserved_name")

        absolute = bool(root)
        body = "/".join(parts)
        if absolute:
            normalized = f"{prefix}/{body}"
        elif prefix:
            normalized = f"{prefix}{body}"
        else:
            normalized = body or "."
        return normalized, absolute

    # ---- Accessors

    @property
    def is_absolute(self) -> bool:
        return self._absolute

    @property
    def is_relative(self) -> bool:
        return not self._absolute

    @property
    def parts(self) -> list[str]:
        _, _, rest = _split_prefix(self._path)
        return [p for p in rest.split("/") if p and p != "."]

    @property
    def file_name(self) -> Optional[str]:
        parts = self.parts
        return parts[-1] if parts else None

    @property
    def extension(self) -> Optional[str]:
        name = self.file_name
        if not name or "." not in name.lstrip("."):
            return None
        return name.rsplit(".", 1)[1]

    def as_str(self) -> str:
        return self._path

    def to_path(self) -> Path:
        return Path(self._path)

    # ---- Derivations (all re-validated)

    def parent(self) -> Optional["FilePath"]:
        """Parent directory, or None at a root or a single relative component."""
        parts = self.parts
        if not parts:
            return None
        prefix, root, _ = _split_prefix(self._path)
        if len(parts) == 1:
            return FilePath(f"{prefix}{root}") if root else None
        return FilePath(f"{prefix}{root}" + "/".join(parts[:-1]))

    def join(self, other: Union[str, "FilePath"]) -> "FilePath":
        other_fp = FilePath(other)
        if other_fp.is_absolute:
            raise FilePathError(f"Cannot join absolute path '{other_fp}'", str(other), "unexpected_absolute")
        if self._path == ".":
            return other_fp
        return FilePath(f"{self._path.rstrip('/')}/{other_fp.as_str()}")

    def strip_workspace_prefix(self, workspace_root: Union[str, "FilePath"]) -> "FilePath":
        """Return this path relative to ``workspace_root``."""
        root = FilePath(workspace_root)
        root_parts = root.parts
        parts = self.parts
        same_anchor = _split_prefix(root.as_str())[:2] == _split_prefix(self._path)[:2]
        if not same_anchor or parts[: len(root_parts)] != root_parts:
            raise FilePathError(
                f"'{self}' is not inside workspace '{root}'", self._path, "outside_workspace"
            )
        remainder = parts[len(root_parts):]
        return FilePath.new_relative("/".join(remainder) or ".")

    def is_within(self, other: Union[str, "FilePath"]) -> bool:
        try:
            self.strip_workspace_prefix(other)
        except FilePathError:
            return False
        return True

    # ---- Protocols

    def __fspath__(self) -> str:
        return self._path

    def __str__(self) -> str:
        return self._path

    def __repr__(self) -> str:
        return f"FilePath({self._path!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FilePath):
            return self._path == other._path
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._path)

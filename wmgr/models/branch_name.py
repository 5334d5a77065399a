"""
Validated branch names.

Classification into BranchType is informational (status and reporting) and
never affects whether a name is valid.
"""

import re
from enum import Enum

from ..errors import ValidationError

MAX_BRANCH_LENGTH = 255
RESERVED_REF_NAMES = frozenset(["HEAD", "ORIG_HEAD", "FETCH_HEAD", "MERGE_HEAD"])
_FORBIDDEN_CHARS = set(" ~^:?*[\\\x7f")

DEFAULT_BRANCHES = frozenset(["main", "master", "develop", "development"])
_RELEASE_PREFIXES = ("release/", "releases/", "rel/")
_FEATURE_PREFIXES = ("feature/", "feat/", "features/")
_HOTFIX_PREFIXES = ("hotfix/", "hotfixes/", "fix/")
_VERSION_RE = re.compile(r"^v\d+\.\d+")


class BranchType(str, Enum):
    DEFAULT = "default"
    RELEASE = "release"
    FEATURE = "feature"
    HOTFIX = "hotfix"
    OTHER = "other"


class BranchNameError(ValidationError):
    """Raised when a branch name is not a valid ref name."""

    def __init__(self, message: str, value: str, reason: str):
        super().__init__(message, field="branch", value=value, reason=reason)


def classify_branch(name: str) -> BranchType:
    if name in DEFAULT_BRANCHES:
        return BranchType.DEFAULT
    if name.startswith(_RELEASE_PREFIXES) or _VERSION_RE.match(name):
        return BranchType.RELEASE
    if name.startswith(_FEATURE_PREFIXES):
        return BranchType.FEATURE
    if name.startswith(_HOTFIX_PREFIXES):
        return BranchType.HOTFIX
    return BranchType.OTHER


class BranchName:
    """An immutable, validated branch name."""

    __slots__ = ("_name",)

    def __init__(self, name: str):
        self._validate(name)
        self._name = name

    @staticmethod
    def _validate(name: str) -> None:
        if not name:
            raise BranchNameError("Branch name cannot be empty", name, "empty")
        if len(name) > MAX_BRANCH_LENGTH:
            raise BranchNameError(
                f"Branch name is {len(name)} characters long (max {MAX_BRANCH_LENGTH})", name, "too_long"
            )
        if name.startswith("-"):
            raise BranchNameError(f"Branch name cannot start with '-': '{name}'", name, "starts_with_hyphen")
        if name.endswith(".lock"):
            raise BranchNameError(f"Branch name cannot end with '.lock': '{name}'", name, "ends_with_lock")
        if name in RESERVED_REF_NAMES:
            raise BranchNameError(f"'{name}' is a reserved ref name", name, "reserved")
        for c in name:
            if ord(c) < 0x20 or c in _FORBIDDEN_CHARS:
                raise BranchNameError(f"Branch name contains invalid character {c!r}", name, "invalid_character")
        if ".." in name:
            raise BranchNameError(f"Branch name cannot contain '..': '{name}'", name, "consecutive_dots")

    @property
    def name(self) -> str:
        return self._name

    @property
    def branch_type(self) -> BranchType:
        return classify_branch(self._name)

    @property
    def is_default(self) -> bool:
        return self.branch_type is BranchType.DEFAULT

    def __str__(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"BranchName({self._name!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, BranchName):
            return self._name == other._name
        if isinstance(other, str):
            return self._name == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._name)

"""
Git adapter.

Thin async wrappers around the git executable, run through CommandExecutor.
Arguments are only ever built from validated values: URLs checked against the
git transport table, BranchName refs, and FilePath locations. Positional
URL/path arguments follow ``--`` so manifest content cannot become an option.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..errors import CommandError, CommandTimeoutError, GitAuthError, GitError, ValidationError
from ..models import BranchName, FilePath, ScmType
from .command_executor import CommandExecutor, ExecutionConfig, ExecutionResult

logger = logging.getLogger(__name__)

_AUTH_KEYWORDS = (
    "authentication",
    "permission denied",
    "could not read username",
    "unauthorized",
    "401",
    "403",
    "invalid credentials",
)

GIT_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "LC_ALL": "C",
}

# %x1f separates fields, %x1e ends each commit.
LOG_FORMAT = "%H%x1f%an%x1f%ae%x1f%aI%x1f%s%x1f%b%x1e"


def checked_url(url: str) -> str:
    """
    Raises:
        ValidationError: If ``url`` is not a git transport or looks like an option
    """
    if not url or url.startswith("-") or not ScmType.GIT.is_valid_url_scheme(url):
        raise ValidationError(f"Not a valid git URL: '{url}'", field="url", value=url, reason="invalid_scheme")
    return url


def checked_ref(ref: str) -> str:
    return BranchName(ref).name


def checked_date(value: str, field: str) -> str:
    """
    Raises:
        ValidationError: If ``value`` is empty or contains control characters
    """
    if not value or not value.strip() or any(ord(c) < 0x20 for c in value):
        raise ValidationError(f"Invalid {field} date: {value!r}", field=field, value=value, reason="invalid_date")
    return value


@dataclass
class CommitInfo:
    sha: str
    author_name: str
    author_email: str
    date: str
    summary: str
    body: str = ""

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @property
    def message(self) -> str:
        return f"{self.summary}\n\n{self.body}" if self.body else self.summary


class GitClient:
    """
    Async git operations for a single process-wide executor.

    Usage:
        git = GitClient(CommandExecutor(), timeout=600)
        await git.clone("https://github.com/acme/api", Path("/ws/api"), branch="main")
        branch = await git.get_current_branch(Path("/ws/api"))
    """

    def __init__(self, executor: Optional[CommandExecutor] = None, timeout: Optional[float] = None):
        self.executor = executor or CommandExecutor()
        self.timeout = timeout

    async def run(self, args: list[str], cwd: Optional[Union[Path, FilePath]] = None, check: bool = True) -> ExecutionResult:
        """Run a git command and return the result."""
        config = ExecutionConfig(
            working_directory=cwd,
            environment_variables=GIT_ENV,
            timeout_seconds=self.timeout,
        )
        command = ["git"] + args
        try:
            result = await self.executor.execute(command, config)
        except CommandTimeoutError:
            raise
        except CommandError as e:
            raise GitError(f"Git command could not run: {e}", cause=e) from e
        if check and not result.success:
            stderr = result.stderr.strip()
            lowered = stderr.lower()
            if any(keyword in lowered for keyword in _AUTH_KEYWORDS):
                raise GitAuthError(f"Git authentication failed: {stderr}")
            raise GitError(f"git {args[0]} failed ({result.exit_code}): {stderr}")
        return result

    # ---- Cloning and remotes

    async def clone(
        self,
        url: str,
        path: Union[Path, FilePath],
        branch: Optional[str] = None,
        shallow: bool = False,
        origin: str = "origin",
    ) -> None:
        """
        Clone a repository to ``path``.

        Raises:
            GitError: If the clone operation fails
            GitAuthError: If authentication is required but fails
        """
        target = FilePath(path)
        args = ["clone", "--origin", origin]
        if branch:
            args += ["--branch", checked_ref(branch)]
        if shallow:
            args += ["--depth", "1"]
            if branch:
                args.append("--single-branch")
            else:
                args.append("--no-single-branch")
        args += ["--", checked_url(url), target.as_str()]
        logger.info(f"Cloning {url} into {target}")
        await self.run(args)

    async def get_remotes(self, path: Path) -> dict[str, str]:
        result = await self.run(["remote", "-v"], cwd=path)
        remotes = {}
        for line in result.stdout.splitlines():
            parts = line.split()
            if len(parts) >= 2 and parts[0] not in remotes:
                remotes[parts[0]] = parts[1]
        return remotes

    async def set_remote(self, path: Path, name: str, url: str) -> None:
        """Add remote ``name`` or point it at ``url`` if it exists."""
        existing = await self.get_remotes(path)
        url = checked_url(url)
        if name not in existing:
            logger.info(f"Adding remote {name} -> {url} in {path}")
            await self.run(["remote", "add", "--", name, url], cwd=path)
        elif existing[name] != url:
            logger.info(f"Updating remote {name} -> {url} in {path}")
            await self.run(["remote", "set-url", "--", name, url], cwd=path)

    async def fetch(self, path: Path, remote: str = "origin") -> None:
        await self.run(["fetch", "--tags", "--prune", "--", remote], cwd=path)

    # ---- Refs

    async def get_current_branch(self, path: Path) -> Optional[str]:
        """Current branch name, or None on a detached HEAD."""
        result = await self.run(["symbolic-ref", "--quiet", "--short", "HEAD"], cwd=path, check=False)
        if result.exit_code != 0:
            return None
        return result.stdout.strip() or None

    async def get_sha(self, path: Path, ref: str = "HEAD") -> str:
        result = await self.run(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], cwd=path)
        return result.stdout.strip()

    async def branch_exists(self, path: Path, branch: str) -> bool:
        ref = f"refs/heads/{checked_ref(branch)}"
        result = await self.run(["rev-parse", "--verify", "--quiet", ref], cwd=path, check=False)
        return result.exit_code == 0

    async def checkout_branch(self, path: Path, branch: str, remote: str = "origin") -> None:
        """
        Check out ``branch``, creating it to track ``remote/branch`` if needed.

        Raises:
            GitError: If the branch exists neither locally nor on the remote
        """
        branch = checked_ref(branch)
        if await self.branch_exists(path, branch):
            await self.run(["checkout", branch, "--"], cwd=path)
            return
        try:
            await self.run(["checkout", "-b", branch, "--track", f"{remote}/{branch}", "--"], cwd=path)
        except GitError as e:
            raise GitError(f"Branch '{branch}' does not exist on {remote}") from e

    async def checkout_ref(self, path: Path, ref: str) -> None:
        """Detach HEAD at a tag or commit."""
        await self.run(["-c", "advice.detachedHead=false", "checkout", "--detach", checked_ref(ref), "--"], cwd=path)

    async def has_upstream(self, path: Path) -> bool:
        result = await self.run(["rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{upstream}"], cwd=path, check=False)
        return result.exit_code == 0

    async def merge_ff_only(self, path: Path) -> None:
        await self.run(["merge", "--ff-only", "@{upstream}"], cwd=path)

    # ---- Working tree

    async def status_counts(self, path: Path) -> tuple[int, int, int]:
        """
        Count (staged, modified, untracked) entries from porcelain status.

        Raises:
            GitError: If git status fails or prints an unparseable line
        """
        result = await self.run(["status", "--porcelain=v1", "--untracked-files=normal"], cwd=path)
        return parse_porcelain_status(result.stdout)

    async def has_local_changes(self, path: Path) -> bool:
        staged, modified, untracked = await self.status_counts(path)
        return bool(staged or modified or untracked)

    # ---- History

    async def log(
        self,
        path: Path,
        max_count: int = 10,
        since: Optional[str] = None,
        until: Optional[str] = None,
        ref: Optional[str] = None,
    ) -> list[CommitInfo]:
        """
        Most recent commits reachable from ``ref`` (HEAD by default), newest first.

        ``since``/``until`` take anything ``git log`` understands ("2 weeks ago",
        "2024-01-31"). They are passed as ``--since=``/``--until=`` so they
        cannot be read as separate options.

        Raises:
            ValidationError: If a date or the ref is invalid
            GitError: If git log fails or prints an unparseable record
        """
        args = ["log", f"--max-count={int(max_count)}", f"--format={LOG_FORMAT}"]
        if since is not None:
            args.append(f"--since={checked_date(since, 'since')}")
        if until is not None:
            args.append(f"--until={checked_date(until, 'until')}")
        args += [checked_ref(ref) if ref else "HEAD", "--"]
        result = await self.run(args, cwd=path)
        return parse_log(result.stdout)

    async def ahead_behind(self, path: Path) -> Optional[tuple[int, int]]:
        """(ahead, behind) relative to upstream, or None without an upstream."""
        if not await self.has_upstream(path):
            return None
        result = await self.run(["rev-list", "--left-right", "--count", "HEAD...@{upstream}"], cwd=path)
        fields = result.stdout.split()
        if len(fields) != 2 or not all(f.isdigit() for f in fields):
            raise GitError(f"Unexpected rev-list output: {result.stdout!r}")
        return int(fields[0]), int(fields[1])


def parse_porcelain_status(output: str) -> tuple[int, int, int]:
    """Parse ``git status --porcelain=v1`` into (staged, modified, untracked)."""
    staged = modified = untracked = 0
    for line in output.splitlines():
        if not line:
            continue
        if len(line) < 3:
            raise GitError(f"Unparseable status line: {line!r}")
        index, worktree = line[0], line[1]
        if index == "?" and worktree == "?":
            untracked += 1
            continue
        if index == "!":
            continue
        if index not in (" ", "?"):
            staged += 1
        if worktree not in (" ", "?"):
            modified += 1
    return staged, modified, untracked


def parse_log(output: str) -> list[CommitInfo]:
    """Parse ``git log --format=LOG_FORMAT`` output."""
    commits = []
    for record in output.split("\x1e"):
        record = record.strip("\n")
        if not record:
            continue
        fields = record.split("\x1f")
        if len(fields) != 6:
            raise GitError(f"Unparseable log record: {record[:80]!r}")
        sha, author_name, author_email, date, summary, body = fields
        commits.append(CommitInfo(sha, author_name, author_email, date, summary, body.strip()))
    return commits

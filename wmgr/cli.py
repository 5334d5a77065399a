"""
wmgr CLI - manage groups of repositories from one manifest.

Usage:
    wmgr init git@github.com:acme/manifest.git --group backend
    wmgr sync -j 8
    wmgr status --compact
    wmgr foreach -- git log -1 --oneline
    wmgr log --oneline -n 5
"""

import asyncio
import json
import logging
import sys
from functools import wraps
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config import get_settings
from .errors import WmgrError
from .models import DEFAULT_GROUP
from .services.git import GitClient
from .services.command_executor import CommandExecutor
from .services.status_engine import RepositoryState, StatusEngine
from .services.workspace_store import WorkspaceStore
from .use_cases import (
    ForeachConfig,
    ForeachUseCase,
    InitConfig,
    InitUseCase,
    LogConfig,
    LogUseCase,
    StatusConfig,
    StatusUseCase,
    SyncAction,
    SyncConfig,
    SyncResult,
    SyncUseCase,
    apply_manifest,
    dump_workspace_manifest,
)
from .use_cases.commit_log import DEFAULT_MAX_COUNT
from .version import get_build_info

console = Console()

STATE_STYLES = {
    RepositoryState.CLEAN: "green",
    RepositoryState.DIRTY: "yellow",
    RepositoryState.MISSING: "red",
    RepositoryState.WRONG_BRANCH: "magenta",
    RepositoryState.OUT_OF_SYNC: "cyan",
    RepositoryState.ERROR: "bold red",
}


def setup_logging(verbosity: int = 0):
    """Configure logging."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = getattr(logging, get_settings().log_level, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def handle_errors(func):
    """Turn WmgrError into a red error line and exit status 1."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except WmgrError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            sys.exit(1)
    return wrapper


def _git_client() -> GitClient:
    return GitClient(CommandExecutor(), timeout=get_settings().command_timeout)


def _groups(group: tuple[str, ...]):
    return list(group) or None


@click.group()
@click.version_option(version=get_build_info().describe(), prog_name="wmgr")
@click.option("-C", "--directory", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Run as if started in this directory")
@click.option("-v", "--verbose", count=True, help="More logging (-vv for debug)")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.pass_context
@handle_errors
def cli(ctx, directory: Path | None, verbose: int, no_color: bool):
    """wmgr - keep many repositories in sync from one manifest."""
    global console
    setup_logging(verbose)
    if no_color:
        console = Console(no_color=True, highlight=False)
    ctx.ensure_object(dict)
    ctx.obj["cwd"] = (directory or Path.cwd()).resolve()
    ctx.obj["store"] = WorkspaceStore()


@cli.command()
@click.argument("manifest")
@click.option("--branch", "-b", default="main", help="Branch of the manifest repository")
@click.option("--group", "-g", multiple=True, help="Group to use (repeatable)")
@click.option("--shallow", is_flag=True, help="Shallow-clone git repositories")
@click.option("--clone-all", is_flag=True, help="Ignore groups and clone every repository")
@click.option("--singular-remote", "-r", default=None, help="Only configure this remote")
@click.option("--force", "-f", is_flag=True, help="Re-initialize an existing workspace")
@click.option("--no-sync", is_flag=True, help="Only write config and manifest, do not clone")
@click.option("--jobs", "-j", type=int, default=None, help="Parallel clones")
@click.pass_context
@handle_errors
def init(ctx, manifest: str, branch: str, group, shallow, clone_all, singular_remote, force, no_sync, jobs):
    """
    Create a workspace from MANIFEST (file, URL, or manifest repository).

    Example:
        wmgr init ./manifest.yml
        wmgr init git@github.com:acme/manifest.git -g backend -g tools
    """
    store: WorkspaceStore = ctx.obj["store"]
    config = InitConfig(
        manifest_source=manifest,
        manifest_branch=branch,
        groups=list(group) or [DEFAULT_GROUP],
        shallow=shallow,
        clone_all=clone_all,
        singular_remote=singular_remote,
        force=force,
        sync=not no_sync,
        parallel_jobs=jobs or store.settings.jobs,
    )
    result = asyncio.run(InitUseCase(store, _git_client()).execute(ctx.obj["cwd"], config))
    console.print(Panel.fit(
        f"Workspace: [cyan]{result.workspace.root}[/cyan]\n"
        f"Repositories: {result.repo_count}",
        title="Initialized",
    ))
    if result.sync is not None:
        _print_sync(result.sync)
        if not result.sync.is_success():
            sys.exit(1)


@cli.command()
@click.option("--group", "-g", multiple=True, help="Only sync these groups")
@click.option("--force", "-f", is_flag=True, help="Update repositories even with local changes")
@click.option("--no-correct-branch", is_flag=True, help="Do not switch repositories to the manifest branch")
@click.option("--jobs", "-j", type=int, default=None, help="Parallel jobs")
@click.option("--no-manifest-update", is_flag=True, help="Use the stored manifest as-is")
@click.pass_context
@handle_errors
def sync(ctx, group, force, no_correct_branch, jobs, no_manifest_update):
    """Clone missing repositories and update the others."""
    store: WorkspaceStore = ctx.obj["store"]
    workspace = store.open(ctx.obj["cwd"])
    config = SyncConfig(
        groups=_groups(group),
        force=force,
        no_correct_branch=no_correct_branch,
        parallel_jobs=jobs or store.settings.jobs,
        refresh_manifest=not no_manifest_update,
        timeout=store.settings.command_timeout,
    )
    result = asyncio.run(SyncUseCase(store, _git_client()).execute(workspace, config))
    _print_sync(result)
    if not result.is_success():
        sys.exit(1)


def _print_sync(result: SyncResult) -> None:
    styles = {
        SyncAction.CLONED: "green",
        SyncAction.UPDATED: "green",
        SyncAction.SKIPPED: "yellow",
        SyncAction.FAILED: "red",
    }
    table = Table(show_header=True, header_style="bold")
    table.add_column("Repository")
    table.add_column("Result")
    table.add_column("Details")
    for repo in result.repos:
        style = styles[repo.action]
        table.add_row(repo.dest, f"[{style}]{repo.action.value}[/{style}]", escape(repo.message or ""))
    console.print(table)
    for op in result.file_operations:
        if not op.success:
            console.print(f"[red]{op.operation_type.value} failed:[/red] {escape(op.destination)}: {escape(op.error or '')}")
    if result.manifest_backup:
        console.print(f"Previous manifest saved as {result.manifest_backup}")
    console.print(
        f"{result.synced_count} synced ({result.cloned_count} cloned, {result.updated_count} updated), "
        f"{result.skipped_count} skipped, {result.failed_count} failed"
    )


@cli.command()
@click.option("--group", "-g", multiple=True, help="Only these groups")
@click.option("--branch/--no-branch", "show_branch", default=True, help="Show branch information")
@click.option("--compact", is_flag=True, help="Only list repositories with issues")
@click.option("--output", "-o", type=click.Choice(["text", "json", "yaml"]), default="text")
@click.option("--jobs", "-j", type=int, default=None, help="Parallel jobs")
@click.pass_context
@handle_errors
def status(ctx, group, show_branch, compact, output, jobs):
    """
    Show the state of every repository.

    Dirty, missing or diverged repositories are reported, not failures; the
    exit status is 1 only when some status could not be determined.
    """
    store: WorkspaceStore = ctx.obj["store"]
    workspace = store.open(ctx.obj["cwd"])
    config = StatusConfig(
        groups=_groups(group),
        show_branch=show_branch,
        compact=compact,
        jobs=jobs or store.settings.jobs,
    )
    result = asyncio.run(StatusUseCase(StatusEngine(_git_client())).execute(workspace, config))

    if output == "json":
        click.echo(json.dumps(result.to_dict(), indent=2))
    elif output == "yaml":
        click.echo(yaml.safe_dump(result.to_dict(), sort_keys=False))
    else:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Repository")
        table.add_column("State")
        if show_branch:
            table.add_column("Branch")
        table.add_column("Details")
        for repo_status in result.statuses:
            if compact and not repo_status.has_issues:
                continue
            style = STATE_STYLES[repo_status.state]
            details = []
            if repo_status.staged or repo_status.modified or repo_status.untracked:
                details.append(
                    f"{repo_status.staged} staged, {repo_status.modified} modified, {repo_status.untracked} untracked"
                )
            if repo_status.ahead or repo_status.behind:
                details.append(f"↑{repo_status.ahead} ↓{repo_status.behind}")
            if repo_status.state == RepositoryState.WRONG_BRANCH:
                details.append(f"expected {repo_status.expected_branch}")
            if repo_status.error_message:
                details.append(repo_status.error_message)
            row = [repo_status.dest, f"[{style}]{repo_status.state.value}[/{style}]"]
            if show_branch:
                row.append(repo_status.current_branch or "-")
            row.append(escape("; ".join(details)))
            table.add_row(*row)
        console.print(table)
        console.print(
            f"{result.total_count} repositories: {result.clean_count} clean, {result.dirty_count} dirty, "
            f"{result.missing_count} missing, {result.error_count} errors"
        )
    if result.error_count:
        sys.exit(1)


@cli.command(context_settings={"ignore_unknown_options": True})
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
@click.option("--group", "-g", multiple=True, help="Only these groups")
@click.option("--parallel", "-p", is_flag=True, help="Run in several repositories at once")
@click.option("--jobs", "-j", type=int, default=None, help="Max parallel commands")
@click.option("--continue-on-error", "-k", is_flag=True, help="Keep going after a failure")
@click.option("--shell", "use_shell", is_flag=True, help="Run COMMAND through the shell")
@click.option("--timeout", type=float, default=None, help="Per-repository timeout in seconds")
@click.pass_context
@handle_errors
def foreach(ctx, command, group, parallel, jobs, continue_on_error, use_shell, timeout):
    """
    Run COMMAND in every cloned repository.

    Example:
        wmgr foreach -- git status --short
        wmgr foreach --shell -p -- 'make lint && make test'
    """
    store: WorkspaceStore = ctx.obj["store"]
    workspace = store.open(ctx.obj["cwd"])
    config = ForeachConfig(
        command=" ".join(command) if use_shell else list(command),
        groups=_groups(group),
        parallel=parallel,
        max_parallel=jobs or store.settings.jobs,
        continue_on_error=continue_on_error,
        timeout=timeout,
        use_shell=use_shell,
    )
    result = asyncio.run(ForeachUseCase(CommandExecutor()).execute(workspace, config))
    for item in result.results:
        if item.skipped:
            console.print(f"[yellow]* {item.dest}[/yellow] skipped ({item.error})")
            continue
        marker = "[green]✓[/green]" if item.success else "[red]✗[/red]"
        console.print(f"{marker} [bold]{item.dest}[/bold]")
        if item.stdout:
            console.print(item.stdout.rstrip(), markup=False, highlight=False)
        if item.stderr:
            console.print(item.stderr.rstrip(), markup=False, highlight=False, style="dim")
        if item.error:
            console.print(f"  [red]{escape(item.error)}[/red]")
    console.print(f"{result.success_count} succeeded, {result.failure_count} failed, {result.skipped_count} skipped")
    if result.stopped_early:
        console.print("[yellow]Stopped after the first failure (use -k to continue)[/yellow]")
    if not result.is_success():
        sys.exit(1)


@cli.command("log")
@click.option("--group", "-g", multiple=True, help="Only these groups")
@click.option("--oneline", is_flag=True, help="One line per commit")
@click.option("--max-count", "-n", type=int, default=DEFAULT_MAX_COUNT, show_default=True,
              help="Commits per repository")
@click.option("--since", default=None, help="Only commits after this date (as git log understands it)")
@click.option("--until", default=None, help="Only commits before this date")
@click.option("--jobs", "-j", type=int, default=None, help="Parallel jobs")
@click.pass_context
@handle_errors
def log_cmd(ctx, group, oneline, max_count, since, until, jobs):
    """
    Show recent commits of every cloned repository.

    Example:
        wmgr log --oneline -n 5
        wmgr log -g backend --since "2 weeks ago"
    """
    store: WorkspaceStore = ctx.obj["store"]
    workspace = store.open(ctx.obj["cwd"])
    config = LogConfig(
        groups=_groups(group),
        max_count=max_count,
        since=since,
        until=until,
        jobs=jobs or store.settings.jobs,
    )
    result = asyncio.run(LogUseCase(_git_client()).execute(workspace, config))

    for repo_log in result.logs:
        if repo_log.skipped:
            console.print(f"[yellow]* {escape(repo_log.dest)}[/yellow] skipped ({escape(repo_log.error or '')})")
            continue
        console.print()
        branch = f" [dim]({escape(repo_log.branch or 'detached HEAD')})[/dim]" if repo_log.error is None else ""
        console.print(f"[bold]{escape(repo_log.dest)}[/bold]{branch}")
        if repo_log.error:
            console.print(f"  [red]{escape(repo_log.error)}[/red]")
            continue
        if not repo_log.commits:
            console.print("  [dim]No commits found[/dim]")
        for commit in repo_log.commits:
            if oneline:
                console.print(f"  [yellow]{commit.short_sha}[/yellow] {escape(commit.summary)}")
                continue
            console.print(f"  [yellow]commit {commit.sha}[/yellow]")
            console.print(f"  Author: {escape(commit.author_name)} <{escape(commit.author_email)}>")
            console.print(f"  Date:   {commit.date}")
            console.print()
            for line in commit.message.splitlines():
                console.print(f"      {line}", markup=False, highlight=False)
            console.print()
    if not result.is_success():
        sys.exit(1)


@cli.command("dump-manifest")
@click.option("--format", "fmt", type=click.Choice(["yaml", "json"]), default="yaml")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.pass_context
@handle_errors
def dump_manifest_cmd(ctx, fmt, output):
    """Print the workspace manifest."""
    workspace = ctx.obj["store"].open(ctx.obj["cwd"])
    text = dump_workspace_manifest(workspace, fmt, output)
    if output is None:
        click.echo(text, nl=False)
    else:
        console.print(f"Wrote manifest to {output}")


@cli.command("apply-manifest")
@click.argument("manifest_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--force", "-f", is_flag=True, help="Allow dropping repositories")
@click.option("--dry-run", "-n", is_flag=True, help="Only show what would change")
@click.pass_context
@handle_errors
def apply_manifest_cmd(ctx, manifest_file, force, dry_run):
    """Replace the workspace manifest with MANIFEST_FILE."""
    store: WorkspaceStore = ctx.obj["store"]
    workspace = store.open(ctx.obj["cwd"])
    result = apply_manifest(store, workspace, manifest_file, force=force, dry_run=dry_run)
    for dest in result.added:
        console.print(f"[green]+ {dest}[/green]")
    for dest in result.removed:
        console.print(f"[red]- {dest}[/red]")
    for dest in result.changed:
        console.print(f"[yellow]~ {dest}[/yellow]")
    if not result.has_changes:
        console.print("No repository changes")
    if dry_run:
        console.print("Dry run, nothing written")
    elif result.backup:
        console.print(f"Previous manifest saved as {result.backup}")


@cli.command()
def version():
    """Show version and build information."""
    info = get_build_info()
    console.print(f"wmgr {info.describe()}")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()

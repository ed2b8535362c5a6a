"""
specme CLI - Connect a project.

Mirrors a GitHub repository (or points at a local folder), makes it the
active project and re-indexes its codebase context.
"""

import typer
from rich.console import Console
from rich.table import Table

from specme.cli.errors import fail
from specme.core.services import SyncResult, SyncTarget, WorkspaceService

console = Console()
app = typer.Typer(
    name="sync",
    help="Connect a GitHub repository or local folder",
    no_args_is_help=True,
)


def _print_connected(result: SyncResult) -> None:
    console.print(f"[green]✓[/green] {result.message}")
    console.print(f"[dim]Source: {result.project.source}[/dim]")
    console.print(f"[dim]Working copy: {result.project.root}[/dim]")
    if result.stashed_changes:
        console.print(
            "[yellow]Uncommitted changes in the working copy were stashed "
            "(git stash list).[/yellow]"
        )


@app.command()
def remote(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Repository URL (https or ssh)"),
    branch: str = typer.Option(
        "",
        "--branch",
        "-b",
        help="Branch to check out (default: detected)",
    ),
) -> None:
    """
    Mirror a GitHub repository and make it the active project.

    Examples:
        specme sync remote https://github.com/org/repo.git
        specme sync remote git@github.com:org/repo.git --branch develop
    """
    result = WorkspaceService().sync(SyncTarget.remote(url, branch))
    if not result.success:
        fail(ctx, result.failure, result.message)
    _print_connected(result)


@app.command()
def local(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Project folder (~ is expanded)"),
) -> None:
    """
    Use a local folder as the active project.

    Examples:
        specme sync local ~/code/my-app
    """
    result = WorkspaceService().sync(SyncTarget.local(path))
    if not result.success:
        fail(ctx, result.failure, result.message)
    _print_connected(result)


@app.command()
def status() -> None:
    """
    Show the active project and, for a mirror, its git status.
    """
    result = WorkspaceService().status()
    project = result.project

    table = Table(title="Active Project", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Mode", project.mode.value)
    table.add_row("Status", project.connection_status.value)
    table.add_row("Source", project.source)
    table.add_row("Root", project.root or "[dim]none[/dim]")
    if project.branch:
        table.add_row("Branch", project.branch)
    if project.last_connection_error:
        table.add_row("Last error", f"[red]{project.last_connection_error}[/red]")

    sync_status = result.sync_status
    if sync_status is not None:
        table.add_row("Uncommitted changes", "yes" if sync_status.is_dirty else "no")
        if sync_status.head_commit:
            table.add_row("HEAD", sync_status.head_commit[:8])
        if sync_status.ahead_count is not None:
            table.add_row("Ahead", str(sync_status.ahead_count))
        if sync_status.behind_count is not None:
            table.add_row("Behind", str(sync_status.behind_count))

    console.print(table)


@app.command()
def context(ctx: typer.Context) -> None:
    """
    Re-index the active project into the codebase context file.

    Examples:
        specme sync context
    """
    result = WorkspaceService().build_context()
    if not result.success:
        fail(ctx, result.failure, result.message)
    console.print(f"[green]✓[/green] {result.message}")
    console.print(f"[dim]Context file: {result.context_path}[/dim]")

"""
specme CLI - Apply attempts.

An attempt groups file writes so they can be undone together.
"""

import typer
from rich.console import Console
from rich.table import Table

from specme.cli.errors import fail
from specme.core.services import WorkspaceService

console = Console()
app = typer.Typer(
    name="attempt",
    help="Start, inspect and undo apply attempts",
    no_args_is_help=True,
)


@app.command()
def start(ctx: typer.Context) -> None:
    """Start a new apply attempt for the active project."""
    result = WorkspaceService().start_attempt()
    if not result.success or result.attempt is None:
        fail(ctx, result.failure, result.message)
    console.print(f"[green]✓[/green] {result.message}")
    console.print(result.attempt.id)


@app.command()
def status(ctx: typer.Context) -> None:
    """Show whether the active project has changes that can be undone."""
    result = WorkspaceService().latest_attempt_status()
    if not result.success:
        fail(ctx, result.failure, result.message)

    if not result.has_undoable_changes or result.attempt is None:
        console.print("[blue]No changes to undo.[/blue]")
        return

    attempt = result.attempt
    table = Table(title=f"Attempt {attempt.id}")
    table.add_column("File", style="cyan")
    for path in attempt.files:
        table.add_row(path)
    console.print(table)
    console.print(f"[dim]Started {attempt.created_at}, {attempt.file_count} file(s)[/dim]")


@app.command()
def undo(
    ctx: typer.Context,
    attempt_id: str | None = typer.Option(
        None,
        "--id",
        help="Attempt to undo (default: latest active attempt)",
    ),
) -> None:
    """
    Restore every file an attempt touched.

    Examples:
        specme attempt undo
        specme attempt undo --id attempt-1700000000000-1a2b3c4d
    """
    result = WorkspaceService().undo(attempt_id)
    if not result.success:
        fail(ctx, result.failure, result.message)
    console.print(f"[green]✓[/green] {result.message}")

"""
specme CLI - Run history.

Remembers which project a run worked on so it can be reconnected later.
"""

import typer
from rich.console import Console
from rich.table import Table

from specme.cli.errors import ExitCode, fail, print_error
from specme.core.services import WorkspaceService

console = Console()
app = typer.Typer(
    name="history",
    help="Remember and reconnect projects of past runs",
    no_args_is_help=True,
)


@app.command(name="list")
def list_runs() -> None:
    """List remembered runs, most recently opened first."""
    runs = WorkspaceService().project_history()
    if not runs:
        console.print("[dim]No remembered runs.[/dim]")
        return

    status_colors = {"connected": "green", "failed": "red", "disconnected": "dim"}
    table = Table(title="Run History")
    table.add_column("Run", style="cyan")
    table.add_column("Type")
    table.add_column("Source")
    table.add_column("Status")
    table.add_column("Last opened", style="dim")
    for snapshot in runs:
        status = snapshot.connection_status.value
        color = status_colors.get(status, "white")
        table.add_row(
            snapshot.run_id,
            snapshot.project_type.value,
            snapshot.source,
            f"[{color}]{status}[/{color}]",
            snapshot.last_opened_at,
        )
    console.print(table)


@app.command()
def remember(
    ctx: typer.Context,
    run_id: str = typer.Argument(..., help="Run identifier"),
) -> None:
    """Remember the active project for a run."""
    result = WorkspaceService().remember_run(run_id)
    if not result.success:
        fail(ctx, result.failure, result.message)
    console.print(f"[green]✓[/green] {result.message}")


@app.command()
def activate(
    ctx: typer.Context,
    run_id: str = typer.Argument(..., help="Run identifier"),
) -> None:
    """
    Reconnect the project remembered for a run.

    Examples:
        specme history activate run-42
    """
    result = WorkspaceService().activate_run(run_id)
    if not result.success:
        fail(ctx, result.failure, result.message)
    console.print(f"[green]✓[/green] {result.message}")


@app.command()
def forget(
    run_id: str = typer.Argument(..., help="Run identifier"),
) -> None:
    """Delete a run from the history."""
    result = WorkspaceService().forget_run(run_id)
    if not result.deleted:
        print_error(result.message)
        raise typer.Exit(ExitCode.USER_ERROR)
    console.print(f"[green]✓[/green] {result.message}")

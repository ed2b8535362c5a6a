"""
specme CLI - Commit and push the active mirror.
"""

import typer
from rich.console import Console

from specme.cli.errors import fail
from specme.core.services import WorkspaceService

console = Console()


def publish(
    ctx: typer.Context,
    message: str = typer.Option(
        "",
        "--message",
        "-m",
        help="Commit message (default: 'SpecMe automated updates')",
    ),
) -> None:
    """
    Commit local changes and push them to the project's branch.

    A rejected push keeps the commit locally; run publish again to retry.

    Examples:
        specme publish -m "Add login form"
    """
    result = WorkspaceService().publish(message)
    if not result.success:
        if result.command:
            console.print(f"[dim]$ {result.command}[/dim]")
        if result.changes_kept_locally:
            console.print("[yellow]Changes are kept locally.[/yellow]")
        fail(ctx, result.failure, result.message)

    if not result.pushed:
        console.print(f"[blue]{result.message}[/blue]")
        return

    console.print(f"[green]✓[/green] {result.message}")
    if result.commit:
        console.print(f"[dim]Commit: {result.commit[:8]}[/dim]")

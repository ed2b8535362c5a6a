"""
specme CLI - Apply a file to the active project.
"""

from pathlib import Path

import typer
from rich.console import Console

from specme.cli.errors import ExitCode, fail, print_error
from specme.core.services import WorkspaceService

console = Console()


def apply(
    ctx: typer.Context,
    file: str = typer.Argument(..., help="Project-relative path to write"),
    source: Path = typer.Option(
        ...,
        "--from",
        help="Local file whose content is written",
    ),
    attempt_id: str | None = typer.Option(
        None,
        "--attempt",
        help="Attempt to record the write in (default: latest active, or a new one)",
    ),
) -> None:
    """
    Write a file into the active project; the write can be undone.

    Examples:
        specme apply src/app.py --from /tmp/app.py
        specme apply README.md --from draft.md --attempt attempt-1700000000000-1a2b3c4d
    """
    try:
        content = source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print_error(f"Cannot read {source}", reason=str(e))
        raise typer.Exit(ExitCode.USER_ERROR)

    result = WorkspaceService().apply_file(file, content, attempt_id)
    if not result.success:
        fail(ctx, result.failure, result.message)

    console.print(f"[green]✓[/green] {result.message}")
    console.print(f"[dim]Attempt: {result.attempt_id}[/dim]")
    if result.safety_branch:
        console.print(f"[dim]Safety branch: {result.safety_branch}[/dim]")

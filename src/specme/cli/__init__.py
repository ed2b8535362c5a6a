"""
specme CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging

import typer
from rich.console import Console

from specme import __version__
from specme.cli import apply, attempt, history, publish, sync
from specme.cli.errors import fail
from specme.core.config.env import load_layered_env
from specme.core.services import WorkspaceService

# Help panel names for command grouping
PANEL_PROJECT = "Connect a Project"
PANEL_CHANGES = "Apply and Undo Changes"
PANEL_HISTORY = "Past Runs"

app = typer.Typer(
    name="specme",
    help="Sync a project, apply generated changes safely, and publish them",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    SpecMe - project sync and safe-apply engine.

    Quick Start:
        1. specme sync remote https://github.com/org/repo.git
        2. specme apply src/app.py --from /tmp/app.py
        3. specme attempt undo          # if you change your mind
        4. specme publish -m "Update app"
    """
    # Precedence: OS env > project .env > user .env
    load_layered_env()

    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )

    ctx.obj = {"debug": debug}


@app.command(rich_help_panel=PANEL_PROJECT)
def disconnect(ctx: typer.Context) -> None:
    """Disconnect the active project."""
    result = WorkspaceService().disconnect()
    if not result.success:
        fail(ctx, result.failure, result.message)
    console.print(f"[green]✓[/green] {result.message}")


app.add_typer(sync.app, name="sync", rich_help_panel=PANEL_PROJECT)
app.command(name="apply", rich_help_panel=PANEL_CHANGES)(apply.apply)
app.add_typer(attempt.app, name="attempt", rich_help_panel=PANEL_CHANGES)
app.command(name="publish", rich_help_panel=PANEL_CHANGES)(publish.publish)
app.add_typer(history.app, name="history", rich_help_panel=PANEL_HISTORY)


@app.command()
def version() -> None:
    """Show specme version and exit."""
    console.print(f"specme version {__version__}")
    raise typer.Exit(0)


__all__ = ["app"]

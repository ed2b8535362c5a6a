"""
Standardized error output and exit codes for the specme CLI.
"""

from enum import IntEnum
from typing import NoReturn

import typer
from rich.console import Console
from rich.table import Table

from specme.core.errors import ErrorCode, FailureReport

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for specme CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """The operation ran and failed."""

    USER_ERROR = 2
    """Bad input or a missing/unready project (actionable by user)."""


# Failures the user fixes by changing what they asked for.
USER_ERROR_CODES = frozenset(
    {
        ErrorCode.INVALID_REQUEST.value,
        ErrorCode.BRANCH_MISSING.value,
        ErrorCode.BRANCH_SELECTION_REQUIRED.value,
        ErrorCode.PATH_VIOLATION.value,
        ErrorCode.PROTECTED_FILE_WRITE_BLOCKED.value,
        ErrorCode.NO_PROJECT.value,
        ErrorCode.NOT_CONNECTED.value,
        ErrorCode.INTERNAL_FOLDER_BLOCKED.value,
        ErrorCode.MISSING_PROJECT_METADATA.value,
    }
)


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_failure(report: FailureReport, *, debug: bool = False) -> None:
    """Print a failure report; candidate branches are shown as a table."""
    reason = report.exact_reason if report.exact_reason != report.reason_message else None
    print_error(report.reason_message, reason=reason, solution=report.next_steps or None)
    if not report.retryable:
        console.print("[dim]Retrying the same request will fail again; change it first.[/dim]")

    if report.available_branches:
        table = Table(title="Available branches", show_header=False)
        table.add_column("Branch", style="cyan")
        for branch in report.available_branches:
            table.add_row(branch)
        console.print(table)

    if debug and report.technical_details:
        console.print(f"[dim]{report.reason}: {report.technical_details}[/dim]")


def exit_code_for(report: FailureReport | None) -> ExitCode:
    if report is None:
        return ExitCode.GENERAL_ERROR
    if report.reason in USER_ERROR_CODES:
        return ExitCode.USER_ERROR
    return ExitCode.GENERAL_ERROR


def fail(ctx: typer.Context, report: FailureReport | None, message: str = "") -> NoReturn:
    """Print the failure of an operation and exit with its code."""
    if report is None:
        print_error(message or "Operation failed")
    else:
        print_failure(report, debug=bool((ctx.obj or {}).get("debug")))
    raise typer.Exit(exit_code_for(report))

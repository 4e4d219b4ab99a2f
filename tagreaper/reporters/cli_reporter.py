"""
CLI Reporter Module
===================

Provides rich terminal output for discovery, plans and deletion outcomes
using the Rich library.

This module creates terminal displays with:
- A table of stale resources found by discovery
- The staged deletion plan
- Per-unit outcomes, colored by status
- A summary panel and lister error listing

Classes
-------
CLIReporter
    Main reporter class for terminal output.

Example
-------
>>> from tagreaper.reporters import CLIReporter
>>>
>>> reporter = CLIReporter()
>>> reporter.report_discovery(discovery)
>>> reporter.report_plan(plan)
>>> reporter.report_outcomes(outcomes)

See Also
--------
rich : Python library for rich text and formatting.
JSONReporter : For machine-readable output.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text

from tagreaper.core.discovery import DiscoveryResult
from tagreaper.core.executor import DeleteSummary
from tagreaper.core.models import DeleteStatus, Outcome
from tagreaper.core.planner import DeletionPlan

# Module logger
logger = logging.getLogger(__name__)

STATUS_STYLES = {
    DeleteStatus.DELETED: "green",
    DeleteStatus.DRY_RUN: "cyan",
    DeleteStatus.FAILED: "red",
    DeleteStatus.SKIPPED_DEPENDENCY_FAILED: "yellow",
}


class CLIReporter:
    """
    Reporter for displaying reaper results in the terminal.

    Parameters
    ----------
    console : Console, optional
        Rich Console instance. If not provided, creates a new one.

    Examples
    --------
    >>> reporter = CLIReporter()
    >>> reporter.report_discovery(discovery)

    With a recording console (useful in tests):

    >>> console = Console(record=True, width=120)
    >>> CLIReporter(console=console).report_plan(plan)
    >>> text = console.export_text()
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        """Initialize the CLI reporter with a Rich Console."""
        self.console = console or Console()
        logger.debug("Initialized CLIReporter")

    def print_header(self, title: str, region: str, name_prefix: str) -> None:
        """Print the report header panel."""
        header_text = Text()
        header_text.append(f"\n{title}\n", style="bold blue")
        header_text.append(f"Region: {region}  Name prefix: {name_prefix}", style="dim")

        self.console.print(Panel(header_text, border_style="blue"))

    # =========================================================================
    # Discovery
    # =========================================================================

    def report_discovery(self, result: DiscoveryResult) -> None:
        """Print the stale resources found and any lister errors."""
        if result.resources:
            table = Table(
                title=f"\nStale Resources ({len(result.resources)})",
                title_style="bold",
                show_lines=False,
            )
            table.add_column("Type", style="yellow", no_wrap=True)
            table.add_column("Identifier", style="cyan")
            table.add_column("Details", style="dim", max_width=80)

            for resource in result.resources:
                table.add_row(
                    resource.resource_type.value,
                    self._truncate(resource.identifier, 80),
                    escape(self._truncate(resource.describe(), 80)),
                )
            self.console.print(table)
        else:
            self.console.print("\n[green]No stale resources found.[/green]")

        if result.skipped:
            self.print_warning(f"Listers not run: {', '.join(result.skipped)}")

        if result.error is not None:
            self._print_errors([str(e) for e in result.error.errors])

    # =========================================================================
    # Plan
    # =========================================================================

    def report_plan(self, plan: DeletionPlan) -> None:
        """Print the deletion stages in execution order."""
        if not len(plan):
            self.console.print("\n[green]Nothing to delete.[/green]")
            return

        table = Table(
            title=f"\nDeletion Plan ({len(plan)} unit(s), {len(plan.stages)} stage(s))",
            title_style="bold",
        )
        table.add_column("Stage", style="magenta", justify="right", no_wrap=True)
        table.add_column("Type", style="yellow", no_wrap=True)
        table.add_column("Identifier", style="cyan")
        table.add_column("After", style="dim", max_width=50)

        for number, stage in enumerate(plan.stages, 1):
            for unit in stage:
                after = sorted(plan.dependencies.get(unit.key, ()))
                table.add_row(
                    str(number),
                    unit.resource_type.value,
                    self._truncate(unit.identifier, 80),
                    self._truncate(", ".join(after), 50),
                )
        self.console.print(table)

    # =========================================================================
    # Outcomes
    # =========================================================================

    def print_outcome(self, outcome: Outcome) -> None:
        """Print a single outcome line; suitable as a progress callback."""
        style = STATUS_STYLES.get(outcome.status, "white")
        line = f"[{style}]{outcome.status.value:<26}[/] {outcome.unit.key}"
        if outcome.cause is not None and outcome.status != DeleteStatus.DRY_RUN:
            line += f" [dim]({escape(str(outcome.cause))})[/dim]"
        self.console.print(line, highlight=False)

    def report_outcomes(self, outcomes: List[Outcome], cancelled: bool = False) -> DeleteSummary:
        """Print the outcome table and summary; returns the summary."""
        summary = DeleteSummary.from_outcomes(outcomes, cancelled=cancelled)

        if outcomes:
            table = Table(title="\nDeletion Outcomes", title_style="bold")
            table.add_column("Type", style="yellow", no_wrap=True)
            table.add_column("Identifier", style="cyan")
            table.add_column("Status", no_wrap=True)
            table.add_column("Cause", style="dim", max_width=60)

            for outcome in outcomes:
                style = STATUS_STYLES.get(outcome.status, "white")
                table.add_row(
                    outcome.unit.resource_type.value,
                    self._truncate(outcome.unit.identifier, 80),
                    f"[{style}]{outcome.status.value}[/]",
                    escape(self._truncate(str(outcome.cause) if outcome.cause else "", 60)),
                )
            self.console.print(table)

        self.print_summary(summary)
        return summary

    def print_summary(self, summary: DeleteSummary) -> None:
        """Print outcome counts."""
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="white")

        table.add_row("Total Units:", str(summary.total))
        table.add_row("Deleted:", f"[green]{summary.deleted}[/]")
        if summary.dry_run:
            table.add_row("Dry Run:", f"[cyan]{summary.dry_run}[/]")
        failed_style = "red" if summary.failed else "green"
        table.add_row("Failed:", f"[{failed_style}]{summary.failed}[/]")
        skipped_style = "yellow" if summary.skipped else "green"
        table.add_row("Skipped (dependency failed):", f"[{skipped_style}]{summary.skipped}[/]")
        if summary.cancelled:
            table.add_row("Cancelled:", "[yellow]yes, later stages not started[/]")

        self.console.print("\n")
        self.console.print(table)

    # =========================================================================
    # Messages
    # =========================================================================

    def _print_errors(self, errors: List[str]) -> None:
        if not errors:
            return

        self.console.print("\n[yellow bold]Errors encountered:[/yellow bold]")
        for error in errors:
            self.console.print(f"  [red]• {escape(error)}[/red]", highlight=False)

    @staticmethod
    def _truncate(text: str, max_length: int) -> str:
        """Truncate text to maximum length with ellipsis."""
        if len(text) <= max_length:
            return text
        return text[:max_length - 3] + "..."

    def create_progress(self) -> Progress:
        """Create a spinner for long-running discovery."""
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console,
            transient=True,
        )

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"\n[red bold]Error:[/red bold] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"\n[yellow bold]Warning:[/yellow bold] {message}")

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"\n[green bold]{message}[/green bold]")

    def __repr__(self) -> str:
        """Return string representation."""
        return "CLIReporter()"

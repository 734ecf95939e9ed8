"""
Rich Terminal Display Components.

Provides console UI for:
- Export progress bar
- Summary and state tables
- Status messages
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
)
from rich.table import Table

from svn_sync.utils.logger import console

if TYPE_CHECKING:
    from svn_sync.core.engine import SyncStats
    from svn_sync.core.state import OperationState


class ProgressDisplay:
    """
    Progress bar over the planned commits of an export.

    Log lines emitted through the shared console render above the bar.

    Example:
        with ProgressDisplay() as display:
            engine = SyncEngine(settings, repo, on_progress=display.update)
            stats = engine.push()
    """

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=30),
            MofNCompleteColumn(),
            TextColumn("[dim]{task.fields[current]}"),
            console=console,
            transient=True,
        )
        self._task_id: Any = None
        self._started = False

    def update(self, stats: SyncStats) -> None:
        """Progress callback for SyncEngine."""
        if stats.planned == 0:
            return

        if self._task_id is None:
            self._task_id = self.progress.add_task(
                stats.operation.upper(),
                total=stats.planned,
                current="",
            )
            self.progress.start()
            self._started = True

        self.progress.update(
            self._task_id,
            completed=stats.processed,
            current=stats.current_subject[:50],
        )

    def stop(self) -> None:
        """Stop the progress display."""
        if self._started:
            self.progress.stop()
            self._started = False

    def __enter__(self) -> "ProgressDisplay":
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop()


def print_summary(stats: SyncStats) -> None:
    """Print a summary table after a push."""
    table = Table(title="Sync Summary", border_style="green")

    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Operation", stats.operation.upper())
    table.add_row("Status", _format_status(stats.status.name.lower()))
    if stats.base and stats.tip:
        table.add_row("Range", f"{stats.base[:12]}..{stats.tip[:12]}")
    table.add_row("Planned", str(stats.planned))
    table.add_row("Applied", str(stats.applied))
    table.add_row("Skipped (empty)", str(stats.skipped))
    table.add_row("Conflicts", str(stats.conflicted))
    table.add_row("Duration", f"{stats.duration_seconds:.1f}s")

    console.print(table)


def print_state(state: OperationState) -> None:
    """Print a paused export operation."""
    table = Table(title="Export In Progress", border_style="yellow")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Original branch", state.original_branch)
    table.add_row("Range", f"{state.base_id[:12]}..{state.tip_id[:12]}")
    table.add_row("Current commit", state.current_commit or "[dim]none[/dim]")
    table.add_row("Remaining", str(len(state.remaining_commits)))
    table.add_row("Applied so far", str(state.applied_count))
    table.add_row("Had conflicts", "yes" if state.had_conflicts else "no")

    console.print(table)


def _format_status(status: str) -> str:
    """Format status with color."""
    colors = {
        "ok": "[green]✓ ok[/green]",
        "halted": "[yellow]⏸ halted[/yellow]",
        "conflicts": "[red]✗ conflicts[/red]",
    }
    return colors.get(status, status)


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red bold]Error:[/red bold] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green bold]✓[/green bold] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow bold]⚠[/yellow bold] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]ℹ[/blue] {message}")

"""
SVN Sync CLI - Command Line Interface.

Sync a Git main branch to Subversion without rewriting Git history.

Commands:
    pull    Refresh the SVN mirror and report pending commits (alias: update)
    push    Export pending commits to SVN (alias: export)
    status  Show marker position, paused export and conflict history
    config  Show or initialize configuration

Exit codes:
    0  completed, no conflicts (including "nothing to export")
    1  fatal error, or an interactive conflict halted the export
    2  completed, but some commits were force-committed with conflicts
"""

from __future__ import annotations

import signal
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from svn_sync import __version__
from svn_sync.config import ConflictMode, Settings, load_settings
from svn_sync.core.engine import SyncEngine, SyncStats
from svn_sync.errors import SyncError
from svn_sync.utils.display import (
    ProgressDisplay,
    print_error,
    print_info,
    print_state,
    print_success,
    print_summary,
    print_warning,
)
from svn_sync.utils.logger import setup_logging
from svn_sync.vcs.git import GitRepository


# Create the Typer app
app = typer.Typer(
    name="svn-sync",
    help="Sync a Git main branch to SVN without rewriting Git history.",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]svn-sync[/bold cyan] version {__version__}")
        raise typer.Exit()


def handle_signal(signum: int, frame: Any) -> None:
    """Turn SIGTERM into a normal exit so branch cleanup runs."""
    sys.stderr.write("Interrupted\n")
    sys.exit(1)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config file (TOML or JSON).",
        exists=True,
        dir_okay=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show verbose step-by-step output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress normal output."),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Don't push to SVN or update the marker."
    ),
    debug: bool = typer.Option(False, "--debug", "-d", help="Show git commands as they run."),
    automation: bool = typer.Option(
        False,
        "--automation",
        help="Commit conflicts with markers instead of halting (for cron jobs).",
    ),
    remote: Optional[str] = typer.Option(None, "--remote", help="Git remote name."),
    main_branch: Optional[str] = typer.Option(None, "--main", help="Main branch to sync from."),
    marker: Optional[str] = typer.Option(None, "--marker", help="Marker branch name."),
    svn_ref: Optional[str] = typer.Option(None, "--svn-ref", help="git-svn tracking ref."),
    mirror: Optional[str] = typer.Option(None, "--mirror-branch", help="Local SVN mirror branch."),
    export: Optional[str] = typer.Option(None, "--export-branch", help="Temporary export branch."),
) -> None:
    """SVN Sync - export a Git monorepo's mainline to Subversion."""
    try:
        settings = _build_settings(
            config_file=config_file,
            verbose=verbose,
            quiet=quiet,
            dry_run=dry_run,
            debug=debug,
            automation=automation,
            remote=remote,
            main=main_branch,
            marker=marker,
            svn_remote_ref=svn_ref,
            mirror=mirror,
            export=export,
        )
    except (ValueError, FileNotFoundError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    setup_logging(
        level=settings.logging.effective_level,
        log_file=settings.logging.file,
        format_style=settings.logging.format,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
        echo_commands=settings.logging.debug,
    )
    signal.signal(signal.SIGTERM, handle_signal)

    if settings.sync.dry_run:
        print_warning("DRY RUN - nothing will be pushed to SVN or the remote")
    ctx.obj = settings


# =============================================================================
# PULL Command
# =============================================================================
@app.command("pull")
def pull(ctx: typer.Context) -> None:
    """
    Refresh the SVN mirror and report how many commits await export.

    Example:
        svn-sync pull
    """
    settings: Settings = ctx.obj
    engine = SyncEngine(settings, GitRepository(Path.cwd()))

    try:
        stats = engine.pull()
    except SyncError as e:
        print_error(str(e))
        raise typer.Exit(e.exit_code)

    if not settings.logging.quiet:
        if stats.pending:
            print_info(f"{stats.pending} commit(s) pending export to SVN.")
        else:
            print_success("SVN mirror is up to date; nothing to export.")
    raise typer.Exit(stats.exit_code)


app.command("update", help="Alias for pull.")(pull)


# =============================================================================
# PUSH Command
# =============================================================================
@app.command("push")
def push(
    ctx: typer.Context,
    continue_: bool = typer.Option(
        False,
        "--continue",
        help="Resume a paused export after resolving the conflict.",
    ),
    abort: bool = typer.Option(
        False,
        "--abort",
        help="Discard a paused export and return to the original branch.",
    ),
) -> None:
    """
    Export pending first-parent commits of main to SVN.

    Example:
        svn-sync push --verbose
        svn-sync --automation push
        svn-sync push --continue
    """
    settings: Settings = ctx.obj
    if continue_ and abort:
        print_error("--continue and --abort cannot be used together.")
        raise typer.Exit(1)

    quiet = settings.logging.quiet
    display = ProgressDisplay() if not quiet else None
    engine = SyncEngine(
        settings,
        GitRepository(Path.cwd()),
        on_progress=display.update if display else None,
    )

    try:
        if abort:
            stats = engine.abort()
        elif continue_:
            stats = engine.resume()
        else:
            stats = engine.push()
    except SyncError as e:
        print_error(str(e))
        raise typer.Exit(e.exit_code)
    finally:
        if display:
            display.stop()

    if not quiet and stats.operation != "abort":
        console.print()
        print_summary(stats)

    _report(stats)
    raise typer.Exit(stats.exit_code)


app.command("export", help="Alias for push.")(push)


def _report(stats: SyncStats) -> None:
    if stats.exit_code == 0:
        if stats.operation == "abort":
            print_success("Export aborted.")
        elif stats.processed == 0 and stats.planned == 0:
            print_success("Nothing to export.")
        else:
            print_success("Export completed successfully!")
    elif stats.exit_code == 1:
        print_warning("Export halted on a conflict; state saved for --continue / --abort.")
    else:
        print_warning("Export completed, but some commits carry conflict markers.")


# =============================================================================
# STATUS Command
# =============================================================================
@app.command()
def status(ctx: typer.Context) -> None:
    """Show marker position, paused export and conflict history."""
    settings: Settings = ctx.obj
    engine = SyncEngine(settings, GitRepository(Path.cwd()))

    try:
        report = engine.status()
    except SyncError as e:
        print_error(str(e))
        raise typer.Exit(e.exit_code)

    marker_label = f"{settings.branches.remote}/{settings.branches.marker}"
    if report.marker:
        print_info(f"Marker {marker_label} at {report.marker[:12]}")
    else:
        print_info(f"Marker {marker_label} not initialized yet")

    if report.state:
        print_state(report.state)
    else:
        print_info("No export in progress.")

    if report.conflicts:
        table = Table(title="Forced Conflicts", border_style="red")
        table.add_column("Commit")
        table.add_column("Subject")
        table.add_column("When")
        for entry in report.conflicts[-10:]:
            table.add_row(entry.commit_id[:12], entry.subject, entry.timestamp)
        console.print(table)
        if len(report.conflicts) > 10:
            print_info(f"  ... and {len(report.conflicts) - 10} more")


# =============================================================================
# CONFIG Command
# =============================================================================
@app.command()
def config(
    ctx: typer.Context,
    show: bool = typer.Option(
        False,
        "--show",
        help="Show current configuration.",
    ),
    init: bool = typer.Option(
        False,
        "--init",
        help="Write the current configuration to a file.",
    ),
    output: Path = typer.Option(
        Path("svn-sync.toml"),
        "--output",
        "-o",
        help="Output path for config file.",
    ),
) -> None:
    """Manage configuration."""
    settings: Settings = ctx.obj

    if init:
        settings.to_file(output)
        print_success(f"Generated config file: {output}")
        return

    if show:
        table = Table(title="Current Configuration", border_style="cyan")
        table.add_column("Setting", style="cyan")
        table.add_column("Value")

        branches = settings.branches
        table.add_row("Remote", branches.remote)
        table.add_row("Main branch", branches.main)
        table.add_row("Marker branch", branches.marker)
        table.add_row("SVN tracking ref", branches.svn_remote_ref)
        table.add_row("Mirror branch", branches.mirror)
        table.add_row("Export branch", branches.export)
        table.add_row("Conflict mode", settings.sync.conflict_mode.value)
        table.add_row("Dry run", "yes" if settings.sync.dry_run else "no")

        console.print(table)
        return

    # Default: show help
    console.print("Use --show to view config or --init to create config file.")


# =============================================================================
# Helper Functions
# =============================================================================
def _build_settings(
    config_file: Path | None = None,
    **options: Any,
) -> Settings:
    """Build settings from config file, environment and CLI options."""
    # Flags left at False must not override the file or environment
    flag = lambda value: True if value else None  # noqa: E731

    return load_settings(
        config_file,
        branches={
            "remote": options.get("remote"),
            "main": options.get("main"),
            "marker": options.get("marker"),
            "svn_remote_ref": options.get("svn_remote_ref"),
            "mirror": options.get("mirror"),
            "export": options.get("export"),
        },
        sync={
            "dry_run": flag(options.get("dry_run")),
            "conflict_mode": ConflictMode.AUTOMATION if options.get("automation") else None,
        },
        logging={
            "verbose": flag(options.get("verbose")),
            "quiet": flag(options.get("quiet")),
            "debug": flag(options.get("debug")),
        },
    )


if __name__ == "__main__":
    app()

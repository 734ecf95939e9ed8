"""
Logging setup for SVN Sync.

Two loggers matter:
- ``svn_sync``: progress messages. INFO is the normal level, DEBUG is the
  step-by-step output of --verbose, WARNING and up survive --quiet.
- ``svn_sync.vcs``: every git command as it runs (">>> git ..."), only shown
  with --debug.

Console output goes to stderr through rich; a rotating log file and a JSON
format are available for unattended runs.
"""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler


# Shared console; stderr keeps stdout clean for scripts
console = Console(stderr=True)

logger = logging.getLogger("svn_sync")
command_logger = logging.getLogger("svn_sync.vcs")

_PLAIN_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    format_style: str = "rich",
    max_file_size_mb: int = 10,
    backup_count: int = 3,
    echo_commands: bool = False,
) -> None:
    """
    Configure logging for the application.

    Safe to call more than once; previous handlers are replaced.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        format_style: "rich", "json", or "simple"
        max_file_size_mb: Max log file size before rotation
        backup_count: Number of backup files to keep
        echo_commands: Show every git command as it is run
    """
    logger.handlers.clear()
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    command_logger.setLevel(logging.DEBUG if echo_commands else logging.INFO)

    logger.addHandler(_console_handler(format_style))
    if log_file:
        logger.addHandler(_file_handler(Path(log_file), max_file_size_mb, backup_count))


def _console_handler(format_style: str) -> logging.Handler:
    handler: logging.Handler
    if format_style == "rich":
        handler = RichHandler(
            console=console,
            rich_tracebacks=True,
            show_time=False,
            show_path=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    elif format_style == "json":
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JsonFormatter())
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_PLAIN_FORMAT, datefmt=_DATE_FORMAT))
    return handler


def _file_handler(path: Path, max_file_size_mb: int, backup_count: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path,
        maxBytes=max_file_size_mb * 1024 * 1024,
        backupCount=backup_count,
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
    return handler


class JsonFormatter(logging.Formatter):
    """One JSON object per record; carries ``commit`` when a record has one."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        commit = getattr(record, "commit", None)
        if commit:
            data["commit"] = commit
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data)


def get_logger(name: str = "svn_sync") -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)

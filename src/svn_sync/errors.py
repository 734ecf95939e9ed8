"""
Error types for SVN Sync.

Every fatal condition derives from SyncError and maps to exit status 1.
Apply conflicts are not exceptions; they are reported as results by the
exporter and handled by the conflict controller.
"""

from __future__ import annotations

from typing import Sequence


class SyncError(Exception):
    """Base exception for fatal sync errors."""

    exit_code = 1


class EnvironmentCheckError(SyncError):
    """Raised when the repository is not in a state we can work from."""

    pass


class ConfigurationError(SyncError):
    """Raised when required Subversion tracking is missing."""

    pass


class MarkerError(SyncError):
    """Raised when the export marker cannot be used."""

    pass


class MarkerNotAncestorError(MarkerError):
    """Marker is not an ancestor of the main branch tip at all."""

    def __init__(self, marker: str, tip: str) -> None:
        super().__init__(
            f"Marker {marker[:12]} is not an ancestor of {tip[:12]}. "
            "Inspect the marker branch manually; it will not be repaired."
        )
        self.marker = marker
        self.tip = tip


class MarkerOffFirstParentError(MarkerError):
    """Marker is reachable from the tip only through a merged side history."""

    def __init__(self, marker: str, tip: str) -> None:
        super().__init__(
            f"Stale marker: {marker[:12]} is not on the first-parent path of "
            f"{tip[:12]}. It will not be repaired automatically."
        )
        self.marker = marker
        self.tip = tip


class UpstreamCommandError(SyncError):
    """Raised when submitting to Subversion or refreshing the mirror fails."""

    pass


class OperationInProgressError(SyncError):
    """Raised when starting an export while another one is paused."""

    pass


class NoOperationInProgressError(SyncError):
    """Raised by continue/abort when there is nothing to continue."""

    pass


class GitCommandError(SyncError):
    """A git command exited with a non-zero status."""

    def __init__(
        self,
        args: Sequence[str],
        returncode: int,
        stderr: str = "",
    ) -> None:
        command = " ".join(args)
        message = f"'{command}' failed with exit code {returncode}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr


class StateCorruptedError(SyncError):
    """Persisted operation state exists but cannot be read back."""

    pass

"""
Operation State - pause, resume and abort support.

Provides durable tracking of an in-flight export:
- Which commits remain to be replayed
- Which commit stopped on a conflict
- Whether any conflict was force-committed

FileStateStore keeps one file per field in a directory under the git dir;
MemoryStateStore keeps the same value in memory.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Protocol

from svn_sync.errors import StateCorruptedError
from svn_sync.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OperationState:
    """Complete state of a paused or running export."""

    original_branch: str
    base_id: str
    tip_id: str
    remaining_commits: tuple[str, ...] = ()
    current_commit: str | None = None
    had_conflicts: bool = False
    export_head: str | None = None
    applied_count: int = 0

    def advance(self, export_head: str | None, applied: bool) -> "OperationState":
        """State after the next remaining commit has been processed."""
        return replace(
            self,
            remaining_commits=self.remaining_commits[1:],
            current_commit=None,
            export_head=export_head,
            applied_count=self.applied_count + (1 if applied else 0),
        )

    def to_fields(self) -> dict[str, str]:
        """Serialize each field to its own text value."""
        return {
            "original_branch": self.original_branch,
            "base_id": self.base_id,
            "tip_id": self.tip_id,
            "remaining_commits": "\n".join(self.remaining_commits),
            "current_commit": self.current_commit or "",
            "had_conflicts": "true" if self.had_conflicts else "false",
            "export_head": self.export_head or "",
            "applied_count": str(self.applied_count),
        }

    @classmethod
    def from_fields(cls, data: dict[str, str]) -> "OperationState":
        """Create from per-field text values."""
        return cls(
            original_branch=data["original_branch"],
            base_id=data["base_id"],
            tip_id=data["tip_id"],
            remaining_commits=tuple(data.get("remaining_commits", "").split()),
            current_commit=data.get("current_commit") or None,
            had_conflicts=data.get("had_conflicts", "false") == "true",
            export_head=data.get("export_head") or None,
            applied_count=int(data.get("applied_count") or 0),
        )


class OperationStateStore(Protocol):
    """Persistence interface used by the sync engine."""

    def save(self, state: OperationState) -> None: ...

    def load(self) -> OperationState | None: ...

    def clear(self) -> None: ...


class FileStateStore:
    """
    Directory-backed state store.

    Layout (one file per field):
        <git-dir>/svn-sync/original_branch
        <git-dir>/svn-sync/base_id
        <git-dir>/svn-sync/remaining_commits
        ...

    A save writes a complete sibling directory first and then swaps it in,
    so a reader never sees a mix of old and new fields.

    Example:
        store = FileStateStore(repo.git_dir() / "svn-sync")
        store.save(state)
        state = store.load()
        store.clear()
    """

    REQUIRED = ("original_branch", "base_id", "tip_id")

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)
        self._staging = self.directory.with_name(self.directory.name + ".new")
        self._previous = self.directory.with_name(self.directory.name + ".old")

    def save(self, state: OperationState) -> None:
        """Atomically replace the persisted state."""
        if self._staging.exists():
            shutil.rmtree(self._staging)
        self._staging.mkdir(parents=True)

        for name, value in state.to_fields().items():
            path = self._staging / name
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(value)
                fh.flush()
                os.fsync(fh.fileno())

        if self._previous.exists():
            shutil.rmtree(self._previous)
        if self.directory.exists():
            os.replace(self.directory, self._previous)
        os.replace(self._staging, self.directory)
        if self._previous.exists():
            shutil.rmtree(self._previous)

        logger.debug("Saved operation state to %s", self.directory)

    def load(self) -> OperationState | None:
        """Load state, or None when no operation is in progress."""
        for directory in (self.directory, self._previous):
            if directory.is_dir():
                return self._read(directory)
        return None

    def _read(self, directory: Path) -> OperationState:
        data = {
            path.name: path.read_text(encoding="utf-8")
            for path in directory.iterdir()
            if path.is_file()
        }
        missing = [name for name in self.REQUIRED if not data.get(name)]
        if missing:
            raise StateCorruptedError(
                f"Operation state in {directory} is incomplete "
                f"(missing {', '.join(missing)})"
            )
        return OperationState.from_fields(data)

    def clear(self) -> None:
        """Remove all persisted state."""
        for directory in (self.directory, self._staging, self._previous):
            if directory.exists():
                shutil.rmtree(directory)


@dataclass
class MemoryStateStore:
    """In-memory state store with the FileStateStore interface."""

    state: OperationState | None = None
    saves: int = field(default=0, compare=False)

    def save(self, state: OperationState) -> None:
        self.state = state
        self.saves += 1

    def load(self) -> OperationState | None:
        return self.state

    def clear(self) -> None:
        self.state = None


STATE_FIELDS = tuple(f.name for f in fields(OperationState))

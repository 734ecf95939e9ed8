"""Core sync engine components for SVN Sync."""

from svn_sync.core.conflict import ConflictController, ConflictLog
from svn_sync.core.engine import SyncEngine, SyncStats, SyncStatus
from svn_sync.core.exporter import PatchExporter
from svn_sync.core.marker import MarkerStore
from svn_sync.core.planner import CommitPlanner
from svn_sync.core.state import FileStateStore, MemoryStateStore, OperationState

__all__ = [
    "CommitPlanner",
    "ConflictController",
    "ConflictLog",
    "FileStateStore",
    "MarkerStore",
    "MemoryStateStore",
    "OperationState",
    "PatchExporter",
    "SyncEngine",
    "SyncStats",
    "SyncStatus",
]

"""Version control layer for SVN Sync."""

from svn_sync.vcs.git import GitRepository
from svn_sync.vcs.port import (
    ApplyResult,
    CommitInfo,
    CommitRequest,
    Patch,
    VersionControlPort,
)

__all__ = [
    "ApplyResult",
    "CommitInfo",
    "CommitRequest",
    "GitRepository",
    "Patch",
    "VersionControlPort",
]

"""
Version control capability interface.

The sync engine never runs git itself; it talks to an object implementing
VersionControlPort. GitRepository shells out to git and git-svn; the tests
use an in-memory fake.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol, runtime_checkable


class ApplyResult(str, Enum):
    """Outcome of applying a patch to the index."""

    APPLIED = "applied"
    APPLIED_WITH_CONFLICTS = "applied_with_conflicts"
    REJECTED = "rejected"


@dataclass(frozen=True)
class CommitInfo:
    """Metadata of a single commit."""

    id: str
    parents: tuple[str, ...]
    author_name: str
    author_email: str
    author_date: str
    committer_date: str
    message: str

    @property
    def first_parent(self) -> str | None:
        return self.parents[0] if self.parents else None

    @property
    def subject(self) -> str:
        lines = self.message.strip().splitlines()
        return lines[0] if lines else ""

    @property
    def author_identity(self) -> str:
        return f"{self.author_name} <{self.author_email}>"


@dataclass(frozen=True)
class Patch:
    """Net content change between two commits."""

    source: str | None
    target: str
    data: bytes

    @property
    def is_empty(self) -> bool:
        return not self.data.strip()


@dataclass(frozen=True)
class CommitRequest:
    """Everything needed to create a commit with preserved provenance."""

    message: str
    author: str
    author_date: str
    committer_date: str


@runtime_checkable
class VersionControlPort(Protocol):
    """Operations the sync engine needs from the version control layer."""

    # Environment
    def check_tools(self) -> str: ...
    def is_inside_work_tree(self) -> bool: ...
    def show_prefix(self) -> str: ...
    def git_dir(self) -> Path: ...
    def current_branch(self) -> str | None: ...
    def is_clean(self) -> bool: ...

    # Refs and history
    def fetch(self, remote: str, refspec: str | None = None) -> None: ...
    def rev_parse(self, ref: str) -> str | None: ...
    def ref_exists(self, ref: str) -> bool: ...
    def branch_exists(self, branch: str) -> bool: ...
    def merge_base(self, a: str, b: str) -> str | None: ...
    def is_ancestor(self, ancestor: str, descendant: str) -> bool: ...
    def first_parent_commits(self, base: str | None, tip: str) -> list[str]: ...
    def commit_info(self, commit: str) -> CommitInfo: ...

    # Content
    def diff(self, source: str | None, target: str) -> Patch: ...
    def apply_patch(self, patch: Patch, three_way: bool = False) -> ApplyResult: ...
    def has_staged_changes(self) -> bool: ...
    def reset_hard(self) -> None: ...
    def stage_all(self) -> None: ...
    def commit(self, request: CommitRequest) -> str: ...

    # Branches
    def switch(
        self,
        branch: str,
        start_point: str | None = None,
        force_create: bool = False,
    ) -> None: ...
    def delete_branch(self, branch: str) -> None: ...
    def merge(self, branch: str, message: str, prefer_theirs: bool = False) -> str: ...

    # Remotes, Subversion and notes
    def push_ref(self, remote: str, commit: str, ref: str) -> None: ...
    def push_branch(self, remote: str, branch: str) -> None: ...
    def svn_rebase(self) -> None: ...
    def svn_dcommit(self) -> None: ...
    def add_note(self, commit: str, message: str, ref: str) -> None: ...
    def read_note(self, commit: str, ref: str) -> str | None: ...

"""
Commit Planner - which main-branch commits still need exporting.

Only the first-parent chain is walked. Commits that entered history as the
second parent of a merge (for example the internal history of a vendored
subtree) are never planned on their own; their content arrives through the
merge commit's net diff.
"""

from __future__ import annotations

from dataclasses import dataclass

from svn_sync.vcs.port import VersionControlPort


@dataclass(frozen=True)
class CommitPlanEntry:
    """One commit to export."""

    id: str
    first_parent_id: str | None
    subject: str
    author_identity: str
    author_timestamp: str
    committer_timestamp: str

    @property
    def short_id(self) -> str:
        return self.id[:12]


class CommitPlanner:
    """Builds the ordered export plan between the marker and the main tip."""

    def __init__(self, vcs: VersionControlPort) -> None:
        self.vcs = vcs

    def plan(self, marker: str | None, tip: str) -> list[CommitPlanEntry]:
        """Oldest-first entries on tip's first-parent chain, excluding marker."""
        return [self.entry(commit) for commit in self.vcs.first_parent_commits(marker, tip)]

    def entry(self, commit: str) -> CommitPlanEntry:
        """Look up a single commit; its first parent is read, never assumed."""
        info = self.vcs.commit_info(commit)
        return CommitPlanEntry(
            id=info.id,
            first_parent_id=info.first_parent,
            subject=info.subject,
            author_identity=info.author_identity,
            author_timestamp=info.author_date,
            committer_timestamp=info.committer_date,
        )

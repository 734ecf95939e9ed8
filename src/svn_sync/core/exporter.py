"""
Patch Exporter - replay one commit onto the export branch.

Each commit is exported as its net diff against its first parent, so merge
commits carry everything they brought in without their side history.
Subversion cannot store empty revisions, so a commit whose diff changes
nothing on the export branch is skipped.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from svn_sync.core.conflict import ConflictController
from svn_sync.core.planner import CommitPlanEntry
from svn_sync.utils.logger import get_logger
from svn_sync.vcs.port import ApplyResult, CommitRequest, VersionControlPort

logger = get_logger(__name__)


class ExportOutcome(str, Enum):
    """Result of exporting a single commit."""

    APPLIED = "applied"
    SKIPPED = "skipped"
    CONFLICTED = "conflicted"


@dataclass(frozen=True)
class ExportResult:
    """Outcome of one export, with the created commit when applied."""

    outcome: ExportOutcome
    entry: CommitPlanEntry
    commit_id: str | None = None
    apply_result: ApplyResult | None = None


class PatchExporter:
    """
    Applies plan entries to the currently checked-out export branch.

    Example:
        exporter = PatchExporter(repo, controller)
        for entry in planner.plan(marker, tip):
            result = exporter.export_commit(entry)
    """

    def __init__(self, vcs: VersionControlPort, conflicts: ConflictController) -> None:
        self.vcs = vcs
        self.conflicts = conflicts

    def export_commit(self, entry: CommitPlanEntry) -> ExportResult:
        """Replay entry's net diff and commit it with its original provenance."""
        logger.debug("Export commit %s", entry.short_id)

        patch = self.vcs.diff(entry.first_parent_id, entry.id)
        if patch.is_empty:
            logger.info("  Skip empty export: %s", entry.short_id, extra={"commit": entry.id})
            return ExportResult(ExportOutcome.SKIPPED, entry)

        result = self.conflicts.apply(patch)
        if result is not ApplyResult.APPLIED:
            return ExportResult(ExportOutcome.CONFLICTED, entry, apply_result=result)

        if not self.vcs.has_staged_changes():
            self.vcs.reset_hard()
            logger.info("  Skip empty export: %s", entry.short_id, extra={"commit": entry.id})
            return ExportResult(ExportOutcome.SKIPPED, entry, apply_result=result)

        info = self.vcs.commit_info(entry.id)
        commit_id = self.vcs.commit(
            CommitRequest(
                message=info.message,
                author=entry.author_identity,
                author_date=entry.author_timestamp,
                committer_date=entry.committer_timestamp,
            )
        )
        logger.info(
            "  Exported: %s -> %s",
            entry.short_id,
            entry.subject[:50],
            extra={"commit": entry.id},
        )
        return ExportResult(ExportOutcome.APPLIED, entry, commit_id, result)

"""
Conflict Controller - apply ladder and conflict escalation.

A patch is applied in stages, each tried only if the previous one failed:
1. strict index apply (exact context match)
2. three-way content merge
3. conflicted

What happens to a conflicted commit depends on the conflict mode:
- interactive: nothing is resolved; the engine pauses the run
- automation: the tree is committed as left by the three-way merge (conflict
  markers included), the subject is tagged, a note is attached, and an entry
  is appended to the conflict log
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from svn_sync.config import Settings
from svn_sync.core.planner import CommitPlanEntry
from svn_sync.utils.logger import get_logger
from svn_sync.vcs.port import ApplyResult, CommitRequest, Patch, VersionControlPort

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConflictLogEntry:
    """One force-committed conflict."""

    commit_id: str
    subject: str
    timestamp: str
    note: str


class ConflictLog:
    """
    Append-only JSON-lines log of force-committed conflicts.

    Example:
        log = ConflictLog(repo.git_dir() / "svn-sync-conflicts.log")
        log.append(entry)
        for entry in log.entries():
            ...
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def append(self, entry: ConflictLogEntry) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as fh:
            fh.write(json.dumps(asdict(entry)) + "\n")

    def entries(self) -> list[ConflictLogEntry]:
        if not self.path.exists():
            return []
        return [
            ConflictLogEntry(**json.loads(line))
            for line in self.path.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]


class Resolution(str, Enum):
    """What the controller decided for a conflicted commit."""

    HALT = "halt"
    RECORDED = "recorded"
    RECORDED_EMPTY = "recorded_empty"


@dataclass(frozen=True)
class ConflictOutcome:
    resolution: Resolution
    commit_id: str | None = None


class ConflictController:
    """
    Owns the apply ladder and what to do when it ends in a conflict.

    Example:
        controller = ConflictController(repo, settings, log)
        result = controller.apply(patch)
        if result is not ApplyResult.APPLIED:
            outcome = controller.handle(entry)
    """

    def __init__(
        self,
        vcs: VersionControlPort,
        settings: Settings,
        log: ConflictLog,
        had_conflicts: bool = False,
    ) -> None:
        self.vcs = vcs
        self.log = log
        self.automation = settings.sync.automation
        self.tag = settings.sync.conflict_tag
        self.notes_ref = settings.sync.notes_ref
        self.dry_run = settings.sync.dry_run
        self._had_conflicts = had_conflicts

    @property
    def had_conflicts(self) -> bool:
        """Set once a conflict is force-committed; never cleared within a run."""
        return self._had_conflicts

    def apply(self, patch: Patch) -> ApplyResult:
        """Run the apply ladder. APPLIED means the index holds a clean result."""
        result = self.vcs.apply_patch(patch, three_way=False)
        if result is ApplyResult.APPLIED:
            return result

        logger.debug("Strict apply failed; trying three-way merge")
        result = self.vcs.apply_patch(patch, three_way=True)
        if result is not ApplyResult.APPLIED:
            logger.debug("Three-way merge ended %s", result.value)
        return result

    def handle(self, entry: CommitPlanEntry) -> ConflictOutcome:
        """Escalate a conflicted commit according to the conflict mode."""
        if not self.automation:
            logger.error(
                "Conflict applying %s: %s", entry.short_id, entry.subject
            )
            return ConflictOutcome(Resolution.HALT)

        self._had_conflicts = True
        timestamp = datetime.now(timezone.utc).isoformat()
        note = self._note(entry, timestamp)

        self.vcs.stage_all()
        commit_id = None
        if self.vcs.has_staged_changes():
            info = self.vcs.commit_info(entry.id)
            commit_id = self.vcs.commit(
                CommitRequest(
                    message=f"{self.tag} {info.message}",
                    author=info.author_identity,
                    author_date=info.author_date,
                    committer_date=info.committer_date,
                )
            )
        else:
            self.vcs.reset_hard()

        if self.dry_run:
            logger.info("[dry-run] Would annotate and log conflict for %s", entry.short_id)
        else:
            if commit_id:
                self.vcs.add_note(commit_id, note, self.notes_ref)
            self.log.append(
                ConflictLogEntry(
                    commit_id=entry.id,
                    subject=entry.subject,
                    timestamp=timestamp,
                    note=note,
                )
            )

        logger.warning(
            "Force-committed conflict for %s: %s",
            entry.short_id,
            entry.subject,
            extra={"commit": entry.id},
        )
        if commit_id is None:
            return ConflictOutcome(Resolution.RECORDED_EMPTY)
        return ConflictOutcome(Resolution.RECORDED, commit_id)

    def _note(self, entry: CommitPlanEntry, timestamp: str) -> str:
        return "\n".join(
            [
                "svn-sync: conflict",
                f"source-commit: {entry.id}",
                f"subject: {entry.subject}",
                f"resolved-at: {timestamp}",
                "resolution: committed with unresolved conflict markers",
            ]
        )

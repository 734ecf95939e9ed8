"""
Sync Engine - main orchestration for sync operations.

Coordinates all components to perform pull, push, continue and abort:
- MarkerStore for the last-exported pointer
- CommitPlanner for the first-parent export plan
- PatchExporter and ConflictController for replaying commits
- OperationStateStore for pause/resume
- ExportBranchGuard for branch cleanup on every exit path
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import IntEnum
from pathlib import Path
from typing import Any, Callable

from svn_sync.config import Settings
from svn_sync.core.conflict import (
    ConflictController,
    ConflictLog,
    ConflictLogEntry,
    Resolution,
)
from svn_sync.core.exporter import ExportOutcome, PatchExporter
from svn_sync.core.marker import MarkerStore
from svn_sync.core.planner import CommitPlanEntry, CommitPlanner
from svn_sync.core.state import FileStateStore, OperationState, OperationStateStore
from svn_sync.errors import (
    ConfigurationError,
    EnvironmentCheckError,
    GitCommandError,
    NoOperationInProgressError,
    OperationInProgressError,
    SyncError,
    UpstreamCommandError,
)
from svn_sync.utils.logger import get_logger
from svn_sync.vcs.port import VersionControlPort

logger = get_logger(__name__)


class SyncStatus(IntEnum):
    """Process status of a finished operation."""

    OK = 0
    HALTED = 1
    CONFLICTS = 2


@dataclass
class SyncStats:
    """Statistics for a sync operation."""

    operation: str
    status: SyncStatus = SyncStatus.OK
    base: str | None = None
    tip: str | None = None
    planned: int = 0
    applied: int = 0
    skipped: int = 0
    conflicted: int = 0
    pending: int = 0
    current_subject: str = ""
    start_time: float = field(default_factory=time.time)
    end_time: float = 0.0

    @property
    def processed(self) -> int:
        return self.applied + self.skipped + self.conflicted

    @property
    def duration_seconds(self) -> float:
        """Duration in seconds."""
        end = self.end_time or time.time()
        return end - self.start_time

    @property
    def exit_code(self) -> int:
        return int(self.status)

    def finish(self, status: SyncStatus) -> "SyncStats":
        self.status = status
        self.end_time = time.time()
        return self


@dataclass
class StatusReport:
    """Read-only snapshot for the status command."""

    marker: str | None
    state: OperationState | None
    conflicts: list[ConflictLogEntry]


# Progress callback type
ProgressCallback = Callable[[SyncStats], None]


class ExportBranchGuard:
    """
    Scoped cleanup around the export branch's lifetime.

    On every exit the original branch is restored. Only a successful run
    deletes the export branch; after a failure it is left for inspection. A
    run paused on an interactive conflict is left exactly as it is, because
    the operator resolves on the export branch.

    Usage:
        with ExportBranchGuard(repo, "main", "svn-export") as guard:
            ...
            guard.mark_success()
    """

    def __init__(
        self,
        vcs: VersionControlPort,
        original_branch: str,
        export_branch: str,
    ) -> None:
        self.vcs = vcs
        self.original_branch = original_branch
        self.export_branch = export_branch
        self.success = False
        self.paused = False

    def __enter__(self) -> "ExportBranchGuard":
        return self

    def __exit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> bool:
        if self.paused and exc_type is None:
            return False

        restored = restore_branch(self.vcs, self.original_branch)

        if restored and self.success and exc_type is None:
            if self.vcs.branch_exists(self.export_branch):
                try:
                    self.vcs.delete_branch(self.export_branch)
                except GitCommandError as e:
                    logger.warning(
                        "Could not delete export branch '%s': %s", self.export_branch, e
                    )
        elif self.vcs.branch_exists(self.export_branch):
            logger.warning(
                "Export branch '%s' has been left for inspection. "
                "To clean up manually:  git branch -D %s",
                self.export_branch,
                self.export_branch,
            )

        # Don't suppress exceptions
        return False

    def mark_success(self) -> None:
        self.success = True

    def mark_paused(self) -> None:
        self.paused = True


def restore_branch(vcs: VersionControlPort, branch: str) -> bool:
    """Switch back to branch if needed. Returns False if that failed."""
    current = vcs.current_branch()
    if current == branch:
        return True
    try:
        logger.debug("Returning to original branch: %s", branch)
        vcs.switch(branch)
    except GitCommandError as e:
        logger.error("Failed to switch back to branch %s: %s", branch, e)
        logger.error("You are still on branch: %s", current or "(detached)")
        return False
    return True


class SyncEngine:
    """
    Main sync engine coordinating all operations.

    Example:
        engine = SyncEngine(settings, GitRepository())

        # Refresh the SVN mirror and count pending commits
        stats = engine.pull()

        # Export pending commits to SVN
        stats = engine.push()
        sys.exit(stats.exit_code)
    """

    def __init__(
        self,
        settings: Settings,
        vcs: VersionControlPort,
        state_store: OperationStateStore | None = None,
        conflict_log: ConflictLog | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """
        Initialize sync engine.

        Args:
            settings: Application settings
            vcs: Version control implementation
            state_store: Paused-operation storage (default: under the git dir)
            conflict_log: Conflict log (default: under the git dir)
            on_progress: Optional progress callback
        """
        self.settings = settings
        self.vcs = vcs
        self.branches = settings.branches
        self.dry_run = settings.sync.dry_run
        self.on_progress = on_progress
        self.markers = MarkerStore(vcs, settings)
        self.planner = CommitPlanner(vcs)
        self._state_store = state_store
        self._conflict_log = conflict_log

    @property
    def state_store(self) -> OperationStateStore:
        if self._state_store is None:
            self._state_store = FileStateStore(self._git_path(self.settings.sync.state_dir))
        return self._state_store

    @property
    def conflict_log(self) -> ConflictLog:
        if self._conflict_log is None:
            self._conflict_log = ConflictLog(self._git_path(self.settings.sync.conflict_log))
        return self._conflict_log

    def _git_path(self, path: Path) -> Path:
        return path if path.is_absolute() else self.vcs.git_dir() / path

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def pull(self) -> SyncStats:
        """Refresh the SVN mirror and report how many commits await export."""
        stats = SyncStats(operation="pull")
        original = self._check_environment()

        try:
            tip = self._fetch()
            mirror_tip = self._update_mirror()
            position = self.markers.read()
            if position is None:
                position = self.markers.initial_position(tip, mirror_tip)
            self.markers.validate(position, tip)
            stats.base, stats.tip = position, tip
            stats.pending = len(self.vcs.first_parent_commits(position, tip))
        finally:
            restore_branch(self.vcs, original)

        logger.info("%d commit(s) pending export to SVN.", stats.pending)
        return stats.finish(SyncStatus.OK)

    def push(self) -> SyncStats:
        """Export every pending first-parent commit to SVN."""
        stats = SyncStats(operation="push")
        original = self._check_environment()
        if self.state_store.load() is not None:
            raise OperationInProgressError(
                "An export is already in progress. "
                "Use 'push --continue' to resume or 'push --abort' to discard it."
            )

        with ExportBranchGuard(self.vcs, original, self.branches.export) as guard:
            tip = self._fetch()
            mirror_tip = self._update_mirror()
            base = self._resolve_marker(tip, mirror_tip)
            stats.base, stats.tip = base, tip

            entries = self.planner.plan(base, tip)
            if not entries:
                logger.info(
                    "No new first-parent commits to export (%s..%s).", base[:12], tip[:12]
                )
                guard.mark_success()
                return stats.finish(SyncStatus.OK)

            logger.info("Found %d commit(s) to export.", len(entries))
            stats.planned = len(entries)

            export_head = self._prepare_export_branch()
            state = OperationState(
                original_branch=original,
                base_id=base,
                tip_id=tip,
                remaining_commits=tuple(entry.id for entry in entries),
                export_head=export_head,
            )
            self.state_store.save(state)
            return self._run(state, entries, guard, stats)

    def resume(self) -> SyncStats:
        """Continue a paused export after the operator resolved the conflict."""
        stats = SyncStats(operation="continue")
        self._check_environment(resuming=True)
        state = self.state_store.load()
        if state is None:
            raise NoOperationInProgressError("No export in progress; nothing to continue.")
        stats.base, stats.tip = state.base_id, state.tip_id

        with ExportBranchGuard(self.vcs, state.original_branch, self.branches.export) as guard:
            if self.vcs.current_branch() != self.branches.export:
                self.vcs.switch(self.branches.export)

            if state.current_commit:
                stats.planned += 1
                head = self._head()
                resolved = head != state.export_head
                if resolved:
                    logger.info("  Resolved: %s", state.current_commit[:12])
                    stats.applied += 1
                else:
                    logger.info("  Resolution dropped %s; skipping it", state.current_commit[:12])
                    stats.skipped += 1
                state = replace(
                    state,
                    current_commit=None,
                    export_head=head,
                    applied_count=state.applied_count + (1 if resolved else 0),
                )
                self.state_store.save(state)

            entries = [self.planner.entry(commit) for commit in state.remaining_commits]
            stats.planned += len(entries)
            return self._run(state, entries, guard, stats)

    def abort(self) -> SyncStats:
        """Discard a paused export and return to the original branch."""
        stats = SyncStats(operation="abort")
        state = self.state_store.load()
        if state is None:
            raise NoOperationInProgressError("No export in progress; nothing to abort.")

        if self.vcs.current_branch() == self.branches.export:
            self.vcs.reset_hard()
        if self.vcs.current_branch() != state.original_branch:
            self.vcs.switch(state.original_branch)
        if self.vcs.branch_exists(self.branches.export):
            self.vcs.delete_branch(self.branches.export)
        self.state_store.clear()

        logger.info("Aborted export; back on '%s'.", state.original_branch)
        return stats.finish(SyncStatus.OK)

    def status(self) -> StatusReport:
        """Marker position, paused operation and conflict history."""
        if not self.vcs.is_inside_work_tree():
            raise EnvironmentCheckError("Not inside a git working tree.")
        return StatusReport(
            marker=self.markers.read(),
            state=self.state_store.load(),
            conflicts=self.conflict_log.entries(),
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    def _check_environment(self, resuming: bool = False) -> str:
        version = self.vcs.check_tools()
        logger.debug("Git version: %s", version)

        if not self.vcs.is_inside_work_tree():
            raise EnvironmentCheckError("Not inside a git working tree.")
        if self.vcs.show_prefix():
            raise EnvironmentCheckError(
                "Must run from top level directory (root) of the repository."
            )

        branch = self.vcs.current_branch()
        if not resuming:
            if branch is None:
                raise EnvironmentCheckError("HEAD is detached. Switch to a branch first.")
            if branch == self.branches.export:
                raise EnvironmentCheckError(
                    f"Currently on the export branch '{branch}'. Switch to another branch first."
                )

        logger.debug("Assert working tree is clean")
        if not self.vcs.is_clean():
            raise EnvironmentCheckError("Working tree not clean. Commit or stash first.")

        logger.debug("Original branch: %s", branch)
        return branch or ""

    def _fetch(self) -> str:
        logger.debug("Fetch latest state from %s", self.branches.remote)
        self.vcs.fetch(self.branches.remote)

        tip = self.vcs.rev_parse(self.branches.remote_main)
        if tip is None:
            raise ConfigurationError(
                f"Remote branch {self.branches.remote}/{self.branches.main} not found."
            )
        logger.debug("Remote tip: %s", tip[:12])
        return tip

    def _update_mirror(self) -> str:
        svn_ref = self.branches.svn_remote_ref
        if not self.vcs.ref_exists(svn_ref):
            raise ConfigurationError(
                f"SVN tracking ref {svn_ref} not found. "
                "Set up git-svn (git svn init / git svn fetch) first."
            )

        logger.info("Updating SVN mirror branch '%s'...", self.branches.mirror)
        self.vcs.switch(self.branches.mirror, svn_ref, force_create=True)
        try:
            self.vcs.svn_rebase()
        except GitCommandError as e:
            raise UpstreamCommandError(f"Could not rebase the SVN mirror: {e}") from e

        mirror_tip = self._head()
        if mirror_tip is None:
            raise ConfigurationError(f"SVN mirror branch '{self.branches.mirror}' is empty.")
        return mirror_tip

    def _resolve_marker(self, tip: str, mirror_tip: str) -> str:
        position = self.markers.read()
        if position is None:
            position = self.markers.initialize(tip, mirror_tip)
        self.markers.validate(position, tip)
        logger.debug("Marker position: %s", position[:12])
        return position

    def _prepare_export_branch(self) -> str | None:
        logger.debug(
            "Create export branch '%s' from %s", self.branches.export, self.branches.mirror
        )
        self.vcs.switch(self.branches.export, self.branches.mirror, force_create=True)
        if not self.vcs.is_clean():
            raise SyncError("Export branch not clean. Something is off.")
        return self._head()

    def _run(
        self,
        state: OperationState,
        entries: list[CommitPlanEntry],
        guard: ExportBranchGuard,
        stats: SyncStats,
    ) -> SyncStats:
        controller = ConflictController(
            self.vcs, self.settings, self.conflict_log, had_conflicts=state.had_conflicts
        )
        state = self._export_loop(state, entries, controller, stats)

        if state.current_commit is not None:
            self.state_store.save(state)
            guard.mark_paused()
            logger.error(
                "Export halted on %s. Resolve the conflict on branch '%s' and commit "
                "the result (or 'git reset --hard' to drop the commit), then run "
                "'svn-sync push --continue'. Use 'svn-sync push --abort' to give up.",
                state.current_commit[:12],
                self.branches.export,
            )
            return stats.finish(SyncStatus.HALTED)

        self._complete(state)
        self.state_store.clear()
        guard.mark_success()

        if controller.had_conflicts:
            logger.warning(
                "Completed with forced conflict resolution; see %s", self.conflict_log.path
            )
            return stats.finish(SyncStatus.CONFLICTS)
        return stats.finish(SyncStatus.OK)

    def _export_loop(
        self,
        state: OperationState,
        entries: list[CommitPlanEntry],
        controller: ConflictController,
        stats: SyncStats,
    ) -> OperationState:
        exporter = PatchExporter(self.vcs, controller)

        for entry in entries:
            stats.current_subject = entry.subject
            result = exporter.export_commit(entry)

            if result.outcome is ExportOutcome.APPLIED:
                stats.applied += 1
                applied = True
            elif result.outcome is ExportOutcome.SKIPPED:
                stats.skipped += 1
                applied = False
            else:
                outcome = controller.handle(entry)
                if outcome.resolution is Resolution.HALT:
                    return replace(
                        state,
                        remaining_commits=state.remaining_commits[1:],
                        current_commit=entry.id,
                        had_conflicts=controller.had_conflicts,
                    )
                stats.conflicted += 1
                applied = outcome.resolution is Resolution.RECORDED

            state = replace(
                state.advance(self._head(), applied),
                had_conflicts=controller.had_conflicts,
            )
            self.state_store.save(state)
            self._notify(stats)

        return state

    def _complete(self, state: OperationState) -> None:
        if state.applied_count == 0:
            logger.info("All commits were empty; nothing to dcommit.")
            self.markers.advance(state.tip_id)
        else:
            logger.info("Exported %d commit(s).", state.applied_count)
            mirror_base = self.vcs.rev_parse(f"refs/heads/{self.branches.mirror}")
            exported = self.vcs.first_parent_commits(mirror_base, "HEAD")
            self._submit()
            self._refresh_mirror()
            self._carry_notes(mirror_base, exported)
            self.markers.advance(state.tip_id)
            merge = self._merge_back()
            if merge is not None:
                # Main may have moved past the tip while the run was paused
                if self.vcs.commit_info(merge).first_parent == state.tip_id:
                    self.markers.advance(merge)
                else:
                    logger.warning(
                        "%s moved past %s during the export; marker stays at the "
                        "exported tip so the newer commits are picked up next run.",
                        self.branches.main,
                        state.tip_id[:12],
                    )

        restore_branch(self.vcs, state.original_branch)
        logger.info(
            "Done: exported %s..%s to SVN", state.base_id[:12], state.tip_id[:12]
        )

    def _submit(self) -> None:
        if self.dry_run:
            logger.info("[dry-run] Would run: git svn dcommit")
            return

        logger.info("Pushing to SVN...")
        try:
            self.vcs.svn_dcommit()
        except GitCommandError as e:
            raise UpstreamCommandError(f"git svn dcommit failed: {e}") from e

    def _refresh_mirror(self) -> None:
        if self.dry_run:
            return

        logger.debug("Refresh SVN mirror")
        try:
            self.vcs.switch(self.branches.mirror)
            self.vcs.svn_rebase()
        except GitCommandError as e:
            raise UpstreamCommandError(f"Could not refresh the SVN mirror: {e}") from e

    def _carry_notes(self, mirror_base: str | None, exported: list[str]) -> None:
        """
        Copy conflict notes onto the commits dcommit wrote to the mirror.

        dcommit rewrites each exported commit, keeping its message, so the
        rewritten commits are matched by subject in submission order.
        """
        if self.dry_run:
            return

        ref = self.settings.sync.notes_ref
        noted = []
        for commit in exported:
            note = self.vcs.read_note(commit, ref)
            if note is not None:
                noted.append((self.vcs.commit_info(commit).subject, note))
        if not noted:
            return

        submitted = iter(self.vcs.first_parent_commits(mirror_base, "HEAD"))
        for subject, note in noted:
            for commit in submitted:
                if self.vcs.commit_info(commit).subject == subject:
                    self.vcs.add_note(commit, note, ref)
                    logger.debug("Copied conflict note to %s", commit[:12])
                    break
            else:
                logger.warning("Could not find the SVN revision for '%s'; note not copied", subject)
                return

    def _merge_back(self) -> str | None:
        """Merge the refreshed mirror into main and publish it."""
        main = self.branches.main
        if self.dry_run:
            logger.info("[dry-run] Would merge SVN changes back to %s", main)
            return None

        logger.info("Merging SVN changes back to %s...", main)
        self.vcs.switch(main, self.branches.remote_main, force_create=True)
        merge = self.vcs.merge(
            self.branches.mirror,
            self.settings.sync.merge_message.format(main=main),
            prefer_theirs=self.settings.sync.merge_prefer_mirror,
        )
        self.vcs.push_branch(self.branches.remote, main)
        return merge

    def _head(self) -> str | None:
        return self.vcs.rev_parse("HEAD")

    def _notify(self, stats: SyncStats) -> None:
        if self.on_progress:
            self.on_progress(stats)

"""Tests for patch export and conflict handling."""

from pathlib import Path

import pytest

from fakes import FakeRepository
from svn_sync.config import Settings, SyncOptions
from svn_sync.core.conflict import (
    ConflictController,
    ConflictLog,
    Resolution,
)
from svn_sync.core.exporter import ExportOutcome, PatchExporter
from svn_sync.core.planner import CommitPlanner
from svn_sync.vcs.port import ApplyResult


@pytest.fixture
def root(repo: FakeRepository) -> str:
    commit = repo.rev_parse("main")
    assert commit is not None
    return commit


def start_export(repo: FakeRepository) -> None:
    assert repo.svn_head is not None
    repo.refs["refs/remotes/git-svn"] = repo.svn_head
    repo.switch("svn-export", repo.svn_head, force_create=True)


def exporter_for(
    repo: FakeRepository, settings: Settings, log: ConflictLog
) -> tuple[PatchExporter, ConflictController]:
    controller = ConflictController(repo, settings, log)
    return PatchExporter(repo, controller), controller


class TestPatchExporter:
    """Test replaying single commits."""

    def test_clean_apply_preserves_provenance(
        self, repo: FakeRepository, root: str, settings: Settings, conflict_log: ConflictLog
    ) -> None:
        commit = repo.change(
            root,
            "Add feature\n\nDetails here.\n",
            {"src/feature.txt": "new\n"},
            author="Grace Hopper <grace@example.com>",
        )
        start_export(repo)
        exporter, _ = exporter_for(repo, settings, conflict_log)

        result = exporter.export_commit(CommitPlanner(repo).entry(commit))

        assert result.outcome is ExportOutcome.APPLIED
        assert result.commit_id == repo.rev_parse("HEAD")
        exported = repo.commit_info(result.commit_id)
        original = repo.commit_info(commit)
        assert exported.message == original.message
        assert exported.author_identity == "Grace Hopper <grace@example.com>"
        assert exported.author_date == original.author_date
        assert exported.committer_date == original.committer_date
        assert exported.first_parent == repo.svn_head
        assert repo.worktree["src/feature.txt"] == "new\n"

    def test_empty_diff_is_skipped(
        self, repo: FakeRepository, root: str, settings: Settings, conflict_log: ConflictLog
    ) -> None:
        commit = repo.change(root, "Empty commit")
        start_export(repo)
        head = repo.rev_parse("HEAD")
        exporter, _ = exporter_for(repo, settings, conflict_log)

        result = exporter.export_commit(CommitPlanner(repo).entry(commit))

        assert result.outcome is ExportOutcome.SKIPPED
        assert result.commit_id is None
        assert repo.rev_parse("HEAD") == head

    def test_change_already_in_target_is_skipped(
        self, repo: FakeRepository, root: str, settings: Settings, conflict_log: ConflictLog
    ) -> None:
        repo.svn_commit("Same fix in SVN", {"src/app.txt": "one\n2\nthree\n"})
        commit = repo.change(root, "Same fix in Git", {"src/app.txt": "one\n2\nthree\n"})
        start_export(repo)
        head = repo.rev_parse("HEAD")
        exporter, _ = exporter_for(repo, settings, conflict_log)

        result = exporter.export_commit(CommitPlanner(repo).entry(commit))

        assert result.outcome is ExportOutcome.SKIPPED
        assert result.apply_result is ApplyResult.APPLIED
        assert repo.rev_parse("HEAD") == head
        assert repo.is_clean()

    def test_three_way_fallback(
        self, repo: FakeRepository, root: str, settings: Settings, conflict_log: ConflictLog
    ) -> None:
        """Strict apply fails on a file the target already has; 3-way succeeds."""
        repo.svn_commit("Docs in SVN", {"docs.txt": "docs\n"})
        commit = repo.change(
            root, "Docs and code", {"docs.txt": "docs\n", "src/app.txt": "ONE\ntwo\nthree\n"}
        )
        start_export(repo)
        exporter, _ = exporter_for(repo, settings, conflict_log)

        result = exporter.export_commit(CommitPlanner(repo).entry(commit))

        assert result.outcome is ExportOutcome.APPLIED
        assert repo.worktree["src/app.txt"] == "ONE\ntwo\nthree\n"

    def test_conflict_is_reported(
        self, repo: FakeRepository, root: str, settings: Settings, conflict_log: ConflictLog
    ) -> None:
        repo.svn_commit("SVN edit", {"src/app.txt": "one\nsvn\nthree\n"})
        commit = repo.change(root, "Git edit", {"src/app.txt": "one\ngit\nthree\n"})
        start_export(repo)
        exporter, _ = exporter_for(repo, settings, conflict_log)

        result = exporter.export_commit(CommitPlanner(repo).entry(commit))

        assert result.outcome is ExportOutcome.CONFLICTED
        assert result.apply_result is ApplyResult.APPLIED_WITH_CONFLICTS
        assert repo.unmerged == {"src/app.txt"}


class TestConflictController:
    """Test conflict escalation per mode."""

    def conflicted(self, repo: FakeRepository, root: str) -> str:
        repo.svn_commit("SVN edit", {"src/app.txt": "one\nsvn\nthree\n"})
        commit = repo.change(root, "Git edit\n\nBody.", {"src/app.txt": "one\ngit\nthree\n"})
        start_export(repo)
        return commit

    def test_interactive_halts(
        self, repo: FakeRepository, root: str, settings: Settings, conflict_log: ConflictLog
    ) -> None:
        commit = self.conflicted(repo, root)
        exporter, controller = exporter_for(repo, settings, conflict_log)
        entry = CommitPlanner(repo).entry(commit)
        exporter.export_commit(entry)
        head = repo.rev_parse("HEAD")

        outcome = controller.handle(entry)

        assert outcome.resolution is Resolution.HALT
        assert repo.rev_parse("HEAD") == head
        assert repo.unmerged == {"src/app.txt"}
        assert controller.had_conflicts is False
        assert conflict_log.entries() == []

    def test_automation_records(
        self,
        repo: FakeRepository,
        root: str,
        automation_settings: Settings,
        conflict_log: ConflictLog,
    ) -> None:
        commit = self.conflicted(repo, root)
        exporter, controller = exporter_for(repo, automation_settings, conflict_log)
        entry = CommitPlanner(repo).entry(commit)
        exporter.export_commit(entry)

        outcome = controller.handle(entry)

        assert outcome.resolution is Resolution.RECORDED
        assert outcome.commit_id == repo.rev_parse("HEAD")
        message = repo.commit_info(outcome.commit_id).message
        assert message == "[CONFLICT] Git edit\n\nBody."
        assert "<<<<<<<" in repo.worktree["src/app.txt"]
        assert controller.had_conflicts is True

        note = repo.notes["svn-sync"][outcome.commit_id]
        assert f"source-commit: {commit}" in note

        entries = conflict_log.entries()
        assert len(entries) == 1
        assert entries[0].commit_id == commit
        assert entries[0].subject == "Git edit"

    def test_automation_dry_run_leaves_no_trace(
        self, repo: FakeRepository, root: str, tmp_path: Path
    ) -> None:
        settings = Settings(
            sync=SyncOptions(conflict_mode="automation", dry_run=True)
        )
        log = ConflictLog(tmp_path / "conflicts.log")
        commit = self.conflicted(repo, root)
        exporter, controller = exporter_for(repo, settings, log)
        entry = CommitPlanner(repo).entry(commit)
        exporter.export_commit(entry)

        outcome = controller.handle(entry)

        assert outcome.resolution is Resolution.RECORDED
        assert repo.notes == {}
        assert log.entries() == []

    def test_had_conflicts_is_seeded(
        self, repo: FakeRepository, settings: Settings, conflict_log: ConflictLog
    ) -> None:
        controller = ConflictController(repo, settings, conflict_log, had_conflicts=True)
        assert controller.had_conflicts is True


class TestConflictLog:
    def test_append_and_read(self, tmp_path: Path) -> None:
        from svn_sync.core.conflict import ConflictLogEntry

        log = ConflictLog(tmp_path / "nested" / "conflicts.log")
        assert log.entries() == []
        entry = ConflictLogEntry("abc", "subject", "2024-01-01T00:00:00+00:00", "note")
        log.append(entry)
        log.append(entry)
        assert log.entries() == [entry, entry]
        assert len(log.path.read_text().splitlines()) == 2

"""Tests for the export marker."""

import pytest

from fakes import FakeRepository
from svn_sync.config import Settings, SyncOptions
from svn_sync.core.marker import MarkerStore
from svn_sync.errors import (
    GitCommandError,
    MarkerError,
    MarkerNotAncestorError,
    MarkerOffFirstParentError,
)
from test_planner import subtree_history

MARKER_REF = "refs/remotes/origin/svn-marker"


def heads(repo: FakeRepository) -> tuple[str, str]:
    tip = repo.rev_parse("refs/remotes/origin/main")
    mirror = repo.rev_parse("refs/remotes/git-svn")
    assert tip is not None and mirror is not None
    return tip, mirror


class TestMarkerInitialize:
    """Test first-run marker creation."""

    def test_read_missing(self, repo: FakeRepository, settings: Settings) -> None:
        assert MarkerStore(repo, settings).read() is None

    def test_initialize_publishes_merge_base(
        self, repo: FakeRepository, settings: Settings
    ) -> None:
        root = repo.rev_parse("main")
        assert root is not None
        repo.push_main(repo.change(root, "work", {"a.txt": "a"}))
        repo.fetch("origin")
        tip, mirror = heads(repo)

        position = MarkerStore(repo, settings).initialize(tip, mirror)

        assert position == root
        assert repo.remote_heads["svn-marker"] == root
        assert repo.refs[MARKER_REF] == root

    def test_initialize_twice(self, repo: FakeRepository, settings: Settings) -> None:
        markers = MarkerStore(repo, settings)
        markers.initialize(*heads(repo))
        with pytest.raises(MarkerError, match="already exists"):
            markers.initialize(*heads(repo))

    def test_initialize_is_rerunnable_after_interruption(
        self, repo: FakeRepository, settings: Settings
    ) -> None:
        """A marker pushed by an interrupted run is found by the next fetch."""
        tip, mirror = heads(repo)
        repo.failures.add("fetch")
        with pytest.raises(GitCommandError):
            MarkerStore(repo, settings).initialize(tip, mirror)
        repo.failures.clear()

        repo.fetch("origin")
        assert MarkerStore(repo, settings).read() == repo.merge_base(tip, mirror)

    def test_initialize_dry_run(self, repo: FakeRepository) -> None:
        settings = Settings(sync=SyncOptions(dry_run=True))
        tip, mirror = heads(repo)

        position = MarkerStore(repo, settings).initialize(tip, mirror)

        assert position == repo.merge_base(tip, mirror)
        assert "svn-marker" not in repo.remote_heads

    def test_no_shared_history(self, repo: FakeRepository, settings: Settings) -> None:
        stranger = repo.make_commit((), {"other": "x"}, "unrelated root")
        tip, _ = heads(repo)
        with pytest.raises(MarkerError, match="share no history"):
            MarkerStore(repo, settings).initialize(tip, stranger)


class TestMarkerValidate:
    """Test first-parent reachability checks."""

    def test_on_first_parent_chain(self, repo: FakeRepository, settings: Settings) -> None:
        ids = subtree_history(repo)
        markers = MarkerStore(repo, settings)
        markers.validate(ids["A"], ids["C"])
        markers.validate(ids["B"], ids["C"])
        markers.validate(ids["C"], ids["C"])

    def test_side_history_is_stale(self, repo: FakeRepository, settings: Settings) -> None:
        ids = subtree_history(repo)
        with pytest.raises(MarkerOffFirstParentError):
            MarkerStore(repo, settings).validate(ids["F2"], ids["C"])

    def test_not_an_ancestor(self, repo: FakeRepository, settings: Settings) -> None:
        ids = subtree_history(repo)
        stray = repo.change(ids["A"], "never merged", {"x": "y"})
        with pytest.raises(MarkerNotAncestorError):
            MarkerStore(repo, settings).validate(stray, ids["C"])


class TestMarkerAdvance:
    """Test monotonic marker movement."""

    def test_advance_forward(self, repo: FakeRepository, settings: Settings) -> None:
        ids = subtree_history(repo)
        markers = MarkerStore(repo, settings)
        markers.initialize(ids["C"], repo.rev_parse("refs/remotes/git-svn") or "")

        assert markers.read() == ids["A"]
        markers.advance(ids["C"])
        assert markers.read() == ids["C"]
        assert repo.remote_heads["svn-marker"] == ids["C"]

    def test_advance_backwards_is_refused(
        self, repo: FakeRepository, settings: Settings
    ) -> None:
        ids = subtree_history(repo)
        markers = MarkerStore(repo, settings)
        markers.initialize(*heads(repo))
        markers.advance(ids["C"])

        with pytest.raises(MarkerError):
            markers.advance(ids["B"])
        assert markers.read() == ids["C"]

    def test_advance_to_same_position(
        self, repo: FakeRepository, settings: Settings
    ) -> None:
        markers = MarkerStore(repo, settings)
        position = markers.initialize(*heads(repo))
        pushes = repo.calls.count("push_ref")

        markers.advance(position)
        assert repo.calls.count("push_ref") == pushes

    def test_advance_dry_run(self, repo: FakeRepository) -> None:
        ids = subtree_history(repo)
        MarkerStore(repo, Settings()).initialize(*heads(repo))

        MarkerStore(repo, Settings(sync=SyncOptions(dry_run=True))).advance(ids["C"])
        assert repo.remote_heads["svn-marker"] == ids["A"]

"""
Marker Store - the "last exported" pointer.

The marker is a branch on the remote (default ``svn-marker``) pointing at the
last main-branch commit already exported to Subversion. It is never main
itself, so moving it never rewrites published history.

Invariants:
- The marker is on the first-parent chain of the main tip, not merely an
  ancestor of it.
- It only ever moves forward along that chain.
"""

from __future__ import annotations

from svn_sync.config import Settings
from svn_sync.errors import (
    MarkerError,
    MarkerNotAncestorError,
    MarkerOffFirstParentError,
)
from svn_sync.utils.logger import get_logger
from svn_sync.vcs.port import VersionControlPort

logger = get_logger(__name__)


class MarkerStore:
    """
    Reads, validates, initializes and advances the export marker.

    Example:
        markers = MarkerStore(repo, settings)
        position = markers.read()
        if position is None:
            position = markers.initialize(tip, mirror_tip)
        markers.validate(position, tip)
        ...
        markers.advance(tip)
    """

    def __init__(self, vcs: VersionControlPort, settings: Settings) -> None:
        self.vcs = vcs
        self.remote = settings.branches.remote
        self.branch = settings.branches.marker
        self.tracking_ref = settings.branches.remote_marker
        self.dry_run = settings.sync.dry_run

    @property
    def label(self) -> str:
        return f"{self.remote}/{self.branch}"

    def read(self) -> str | None:
        """Current marker position, or None when the marker is missing."""
        if not self.vcs.ref_exists(self.tracking_ref):
            return None
        return self.vcs.rev_parse(self.tracking_ref)

    def initial_position(self, tip: str, mirror_tip: str) -> str:
        """Where a fresh marker would start: the merge base of main and SVN."""
        base = self.vcs.merge_base(tip, mirror_tip)
        if base is None:
            raise MarkerError(
                f"Cannot initialize marker {self.label}: main and the SVN mirror "
                "share no history."
            )
        return base

    def initialize(self, tip: str, mirror_tip: str) -> str:
        """
        Publish the initial marker so a first run skips shared history.

        Safe to re-run: the base is recomputed from the same inputs, and a
        marker published by an interrupted run is picked up by the next fetch.
        """
        if self.read() is not None:
            raise MarkerError(f"Marker {self.label} already exists")

        base = self.initial_position(tip, mirror_tip)
        logger.info("Marker %s missing; initializing to %s", self.label, base[:12])

        if self.dry_run:
            logger.info("[dry-run] Would push marker %s to %s", self.label, base[:12])
            return base

        self.vcs.push_ref(self.remote, base, f"refs/heads/{self.branch}")
        self.vcs.fetch(self.remote, f"refs/heads/{self.branch}:{self.tracking_ref}")
        position = self.vcs.rev_parse(self.tracking_ref)
        if position is None:
            raise MarkerError(f"Marker {self.label} was pushed but cannot be read back")
        return position

    def validate(self, position: str, tip: str) -> None:
        """Fail unless position lies on the first-parent chain of tip."""
        if position == tip:
            return
        if not self.vcs.is_ancestor(position, tip):
            raise MarkerNotAncestorError(position, tip)

        # The first-parent walk stops just above the marker only when the
        # marker itself is on the chain.
        chain = self.vcs.first_parent_commits(position, tip)
        if not chain or self.vcs.commit_info(chain[0]).first_parent != position:
            raise MarkerOffFirstParentError(position, tip)

    def advance(self, new_position: str) -> None:
        """Move the marker forward to new_position and publish it."""
        current = self.read()
        if current == new_position:
            logger.debug("Marker %s already at %s", self.label, new_position[:12])
            return
        if current is not None:
            self.validate(current, new_position)

        if self.dry_run:
            logger.info("[dry-run] Would advance marker to %s", new_position[:12])
            return

        self.vcs.push_ref(self.remote, new_position, f"refs/heads/{self.branch}")
        self.vcs.fetch(self.remote, f"refs/heads/{self.branch}:{self.tracking_ref}")
        logger.info("Marker advanced to %s.", new_position[:12])

"""Shared fixtures for SVN Sync tests."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable

import pytest

from fakes import FakeRepository, seeded_repository
from svn_sync.config import ConflictMode, Settings, SyncOptions
from svn_sync.core.conflict import ConflictLog
from svn_sync.core.engine import SyncEngine
from svn_sync.core.state import MemoryStateStore


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep SVN_SYNC_* variables and a stray .env out of every test."""
    for name in list(os.environ):
        if name.upper().startswith("SVN_SYNC_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def repo() -> FakeRepository:
    return seeded_repository({"src/app.txt": "one\ntwo\nthree\n"})


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def automation_settings() -> Settings:
    return Settings(sync=SyncOptions(conflict_mode=ConflictMode.AUTOMATION))


@pytest.fixture
def state_store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def conflict_log(tmp_path: Path) -> ConflictLog:
    return ConflictLog(tmp_path / "conflicts.log")


@pytest.fixture
def make_engine(
    repo: FakeRepository,
    state_store: MemoryStateStore,
    conflict_log: ConflictLog,
) -> Callable[..., SyncEngine]:
    """Build engines sharing one repository, state store and conflict log."""

    def factory(settings: Settings | None = None, **kwargs: Any) -> SyncEngine:
        return SyncEngine(
            settings or Settings(),
            repo,
            state_store=state_store,
            conflict_log=conflict_log,
            **kwargs,
        )

    return factory

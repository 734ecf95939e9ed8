"""Tests for configuration module."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from svn_sync.config import (
    BranchConfig,
    ConflictMode,
    LoggingConfig,
    Settings,
    load_settings,
)


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self) -> None:
        """Test default settings creation."""
        settings = Settings()
        assert settings.branches.remote == "origin"
        assert settings.branches.main == "main"
        assert settings.branches.marker == "svn-marker"
        assert settings.branches.svn_remote_ref == "refs/remotes/git-svn"
        assert settings.branches.mirror == "svn"
        assert settings.branches.export == "svn-export"
        assert settings.sync.conflict_mode == ConflictMode.INTERACTIVE
        assert settings.sync.dry_run is False
        assert settings.sync.conflict_tag == "[CONFLICT]"

    def test_remote_refs(self) -> None:
        """Test derived remote-tracking refs."""
        branches = BranchConfig(remote="upstream", main="trunk", marker="m")
        assert branches.remote_main == "refs/remotes/upstream/trunk"
        assert branches.remote_marker == "refs/remotes/upstream/m"

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test settings loading from environment variables."""
        monkeypatch.setenv("SVN_SYNC_BRANCHES__REMOTE", "upstream")
        monkeypatch.setenv("SVN_SYNC_BRANCHES__MAIN", "master")
        monkeypatch.setenv("SVN_SYNC_SYNC__CONFLICT_MODE", "automation")

        settings = Settings()
        assert settings.branches.remote == "upstream"
        assert settings.branches.main == "master"
        assert settings.sync.automation is True

    def test_settings_are_frozen(self) -> None:
        """Settings cannot be mutated after construction."""
        settings = Settings()
        with pytest.raises(ValidationError):
            settings.branches.main = "other"  # type: ignore[misc]

    def test_branch_names_must_differ(self) -> None:
        """Main, mirror and export branches must be distinct."""
        with pytest.raises(ValidationError, match="must all differ"):
            Settings(branches=BranchConfig(mirror="main"))
        with pytest.raises(ValidationError):
            Settings(branches=BranchConfig(export="svn"))

    def test_settings_to_file_json(self, tmp_path: Path) -> None:
        """Test saving settings to JSON file."""
        settings = Settings(branches=BranchConfig(remote="upstream"))
        output_path = tmp_path / "config.json"
        settings.to_file(output_path)

        assert output_path.exists()
        data = json.loads(output_path.read_text())
        assert data["branches"]["remote"] == "upstream"

    def test_settings_round_trip_toml(self, tmp_path: Path) -> None:
        """Test that a generated TOML file loads back unchanged."""
        settings = load_settings(
            branches={"main": "trunk", "marker": "exported"},
            sync={"conflict_mode": "automation"},
        )
        output_path = tmp_path / "svn-sync.toml"
        settings.to_file(output_path)

        loaded = Settings.from_file(output_path)
        assert loaded.branches.main == "trunk"
        assert loaded.branches.marker == "exported"
        assert loaded.sync.conflict_mode == ConflictMode.AUTOMATION

    def test_missing_config_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            Settings.from_file(tmp_path / "nope.toml")

    def test_unsupported_config_format(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("branches: {}\n")
        with pytest.raises(ValueError, match="Unsupported"):
            Settings.from_file(path)


class TestLoggingConfig:
    """Test verbosity resolution."""

    def test_debug_implies_verbose(self) -> None:
        config = LoggingConfig(debug=True)
        assert config.verbose is True
        assert config.effective_level == "DEBUG"

    def test_verbose_implies_not_quiet(self) -> None:
        config = LoggingConfig(verbose=True, quiet=True)
        assert config.quiet is False

    def test_quiet_level(self) -> None:
        assert LoggingConfig(quiet=True).effective_level == "WARNING"
        assert LoggingConfig().effective_level == "INFO"


class TestLoadSettings:
    """Test load_settings overrides."""

    def test_none_overrides_are_ignored(self, tmp_path: Path) -> None:
        """Unset CLI options do not clobber values from the file."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"branches": {"remote": "upstream"}}))

        settings = load_settings(path, branches={"remote": None, "main": "trunk"})
        assert settings.branches.remote == "upstream"
        assert settings.branches.main == "trunk"

    def test_overrides_beat_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SVN_SYNC_SYNC__DRY_RUN", "false")
        settings = load_settings(sync={"dry_run": True})
        assert settings.sync.dry_run is True

    def test_file_beats_environment(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """The environment only fills fields the file leaves out."""
        monkeypatch.setenv("SVN_SYNC_BRANCHES__REMOTE", "from-env")
        monkeypatch.setenv("SVN_SYNC_BRANCHES__MAIN", "master")
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"branches": {"remote": "upstream"}}))

        settings = load_settings(path)
        assert settings.branches.remote == "upstream"
        assert settings.branches.main == "master"

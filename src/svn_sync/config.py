"""
SVN Sync Configuration System.

This module provides an immutable, type-safe configuration using Pydantic.
Settings can be loaded from:
1. Environment variables (prefixed with SVN_SYNC_, nested with __)
2. Config file (TOML or JSON), which wins over the environment
3. CLI arguments (highest priority)

Example usage:
    from svn_sync.config import Settings, load_settings

    # Load from environment
    settings = Settings()

    # Or with explicit overrides
    settings = load_settings(
        branches={"remote": "upstream", "main": "master"},
        sync={"dry_run": True},
    )
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConflictMode(str, Enum):
    """What to do when a patch leaves conflict markers."""

    INTERACTIVE = "interactive"
    AUTOMATION = "automation"


class BranchConfig(BaseModel):
    """Branch and ref names used by the sync. Each is independent."""

    model_config = ConfigDict(frozen=True)

    remote: str = Field(
        default="origin",
        description="Remote carrying the marker and main branch",
    )
    main: str = Field(
        default="main",
        description="Branch walked as the export source",
    )
    marker: str = Field(
        default="svn-marker",
        description="Remote branch recording the last exported main commit",
    )
    svn_remote_ref: str = Field(
        default="refs/remotes/git-svn",
        description="git-svn tracking ref for the Subversion trunk",
    )
    mirror: str = Field(
        default="svn",
        description="Local branch mirroring the Subversion trunk",
    )
    export: str = Field(
        default="svn-export",
        description="Throwaway branch used to replay patches",
    )

    @property
    def remote_main(self) -> str:
        """Remote-tracking ref for the main branch."""
        return f"refs/remotes/{self.remote}/{self.main}"

    @property
    def remote_marker(self) -> str:
        """Remote-tracking ref for the marker branch."""
        return f"refs/remotes/{self.remote}/{self.marker}"


class SyncOptions(BaseModel):
    """Options controlling sync behavior."""

    model_config = ConfigDict(frozen=True)

    dry_run: bool = Field(
        default=False,
        description="Replay locally but never submit to SVN or move the marker",
    )
    conflict_mode: ConflictMode = Field(
        default=ConflictMode.INTERACTIVE,
        description="Halt on conflicts (interactive) or commit them tagged (automation)",
    )
    conflict_tag: str = Field(
        default="[CONFLICT]",
        min_length=1,
        description="Prefix added to the subject of force-committed conflicts",
    )
    notes_ref: str = Field(
        default="svn-sync",
        min_length=1,
        description="Notes ref used to annotate conflicted commits",
    )
    state_dir: Path = Field(
        default=Path("svn-sync"),
        description="Directory under the git dir holding paused-operation state",
    )
    conflict_log: Path = Field(
        default=Path("svn-sync-conflicts.log"),
        description="Append-only conflict log, relative to the git dir",
    )
    merge_message: str = Field(
        default="Merge SVN into {main}",
        description="Message of the merge-back commit on the main branch",
    )
    merge_prefer_mirror: bool = Field(
        default=True,
        description="Resolve merge-back hunk conflicts with the SVN side (-X theirs)",
    )

    @property
    def automation(self) -> bool:
        return self.conflict_mode == ConflictMode.AUTOMATION


class LoggingConfig(BaseModel):
    """Logging and output configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Log level",
    )
    verbose: bool = Field(default=False, description="Show step-by-step output")
    quiet: bool = Field(default=False, description="Suppress normal output")
    debug: bool = Field(default=False, description="Echo git commands as they run")
    file: Path | None = Field(
        default=None,
        description="Log file path (None = console only)",
    )
    format: str = Field(
        default="rich",
        pattern="^(rich|json|simple)$",
        description="Log format: rich (colored), json, or simple",
    )
    max_file_size_mb: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Max log file size before rotation",
    )
    backup_count: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Number of rotated log files to keep",
    )

    @model_validator(mode="after")
    def resolve_verbosity(self) -> Self:
        """Debug implies verbose; verbose implies not quiet."""
        if self.debug and not self.verbose:
            object.__setattr__(self, "verbose", True)
        if self.verbose and self.quiet:
            object.__setattr__(self, "quiet", False)
        return self

    @property
    def effective_level(self) -> str:
        if self.verbose:
            return "DEBUG"
        if self.quiet:
            return "WARNING"
        return self.level


class Settings(BaseSettings):
    """
    Main settings class for SVN Sync.

    Settings are loaded in this priority (highest first):
    1. Explicit constructor arguments (CLI overrides, config file values)
    2. Environment variables (SVN_SYNC_* prefix)
    3. .env file
    4. Defaults

    Instances are frozen; build a new one instead of mutating.

    Example:
        # From environment
        export SVN_SYNC_BRANCHES__REMOTE="upstream"
        export SVN_SYNC_SYNC__CONFLICT_MODE="automation"
        settings = Settings()

        # From config file
        settings = Settings.from_file("svn-sync.toml")
    """

    model_config = SettingsConfigDict(
        env_prefix="SVN_SYNC_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    branches: BranchConfig = Field(default_factory=BranchConfig)
    sync: SyncOptions = Field(default_factory=SyncOptions)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def check_branch_names(self) -> Self:
        """The mirror, export and main branches must be distinct."""
        names = [self.branches.main, self.branches.mirror, self.branches.export]
        if len(set(names)) != len(names):
            raise ValueError(
                "main, mirror and export branch names must all differ"
            )
        return self

    @classmethod
    def from_file(cls, path: Path | str) -> "Settings":
        """Load settings from a TOML or JSON config file."""
        return cls(**_read_config_file(path))

    def to_file(self, path: Path | str) -> None:
        """Save current settings to a config file."""
        path = Path(path)
        data = self.model_dump(mode="json", exclude_none=True)

        if path.suffix in (".toml", ".tml"):
            # Basic TOML serialization, one table per section
            lines = []
            for key, value in data.items():
                if isinstance(value, dict):
                    lines.append(f"\n[{key}]")
                    for k, v in value.items():
                        lines.append(f"{k} = {json.dumps(v)}")
                else:
                    lines.append(f"{key} = {json.dumps(value)}")
            path.write_text("\n".join(lines).lstrip() + "\n")
        else:
            path.write_text(json.dumps(data, indent=2))


def _read_config_file(path: Path | str) -> dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    content = path.read_text()

    if path.suffix in (".toml", ".tml"):
        import tomllib

        return tomllib.loads(content)
    if path.suffix == ".json":
        return json.loads(content)
    raise ValueError(f"Unsupported config format: {path.suffix}")


def _merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(
    config_file: Path | str | None = None,
    **overrides: Any,
) -> Settings:
    """
    Load settings with optional config file and overrides.

    Overrides are nested by section (``branches={"main": "master"}``);
    ``None`` values are ignored so unset CLI options do not clobber the file
    or the environment.

    Args:
        config_file: Optional path to config file
        **overrides: Settings to override (highest priority)

    Returns:
        Configured, frozen Settings instance
    """
    if config_file:
        base = Settings.from_file(config_file).model_dump()
    else:
        base = Settings().model_dump()
    return Settings.model_validate(_merge(base, overrides))

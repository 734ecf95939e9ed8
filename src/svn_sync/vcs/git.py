"""
Git / git-svn implementation of VersionControlPort.

Every operation is a blocking subprocess call. Commands are echoed on the
``svn_sync.vcs`` logger at DEBUG level, which the CLI enables with --debug.
"""

from __future__ import annotations

import os
import re
import subprocess
from pathlib import Path
from svn_sync.errors import EnvironmentCheckError, GitCommandError
from svn_sync.utils.logger import get_logger
from svn_sync.vcs.port import ApplyResult, CommitInfo, CommitRequest, Patch

logger = get_logger("svn_sync.vcs")

# git switch is needed
MIN_GIT_VERSION = (2, 23, 0)

# Hash of the empty tree, used to diff root commits
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

_FIELD_SEP = "\x00"


class GitRepository:
    """
    VersionControlPort backed by the git command line.

    Example:
        repo = GitRepository(Path("."))
        tip = repo.rev_parse("refs/remotes/origin/main")
        commits = repo.first_parent_commits(marker, tip)
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path else Path.cwd()

    def _git(
        self,
        *args: str,
        input: bytes | None = None,
        check: bool = True,
        env: dict[str, str] | None = None,
    ) -> subprocess.CompletedProcess[bytes]:
        argv = ["git", *args]
        logger.debug(">>> %s", " ".join(argv))
        try:
            result = subprocess.run(
                argv,
                cwd=self.path,
                input=input,
                capture_output=True,
                env={**os.environ, **env} if env else None,
                check=False,
            )
        except FileNotFoundError as e:
            raise EnvironmentCheckError("Can't find 'git' command in PATH.") from e

        if check and result.returncode != 0:
            raise GitCommandError(
                argv,
                result.returncode,
                result.stderr.decode("utf-8", errors="replace"),
            )
        return result

    def _text(self, *args: str, check: bool = True) -> str:
        result = self._git(*args, check=check)
        return result.stdout.decode("utf-8", errors="replace").strip()

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------
    def check_tools(self) -> str:
        """Verify git and git-svn are usable. Returns the git version."""
        output = self._text("--version")
        match = re.search(r"(\d+)\.(\d+)(?:\.(\d+))?", output)
        if not match:
            raise EnvironmentCheckError(f"Unrecognized git version: {output}")
        version = tuple(int(part or 0) for part in match.groups())
        if version < MIN_GIT_VERSION:
            required = ".".join(str(p) for p in MIN_GIT_VERSION)
            raise EnvironmentCheckError(
                f"git {match.group(0)} is too old; {required} or newer is required."
            )

        if self._git("svn", "--version", check=False).returncode != 0:
            raise EnvironmentCheckError(
                "Can't find 'git svn' command. Is git-svn installed?"
            )
        return match.group(0)

    def is_inside_work_tree(self) -> bool:
        return self._text("rev-parse", "--is-inside-work-tree", check=False) == "true"

    def show_prefix(self) -> str:
        return self._text("rev-parse", "--show-prefix")

    def git_dir(self) -> Path:
        return Path(self._text("rev-parse", "--absolute-git-dir"))

    def current_branch(self) -> str | None:
        result = self._git("symbolic-ref", "--short", "-q", "HEAD", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.decode().strip() or None

    def is_clean(self) -> bool:
        self._git("update-index", "-q", "--ignore-submodules", "--refresh", check=False)
        unstaged = self._git("diff-files", "--quiet", "--ignore-submodules", check=False)
        if unstaged.returncode != 0:
            return False
        staged = self._git(
            "diff-index", "--cached", "--quiet", "--ignore-submodules", "HEAD", "--",
            check=False,
        )
        return staged.returncode == 0

    # ------------------------------------------------------------------
    # Refs and history
    # ------------------------------------------------------------------
    def fetch(self, remote: str, refspec: str | None = None) -> None:
        if refspec:
            self._git("fetch", remote, refspec)
        else:
            self._git("fetch", "--prune", remote)

    def rev_parse(self, ref: str) -> str | None:
        result = self._git("rev-parse", "--verify", "-q", f"{ref}^{{commit}}", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.decode().strip()

    def ref_exists(self, ref: str) -> bool:
        return self._git("show-ref", "--verify", "--quiet", ref, check=False).returncode == 0

    def branch_exists(self, branch: str) -> bool:
        return self.ref_exists(f"refs/heads/{branch}")

    def merge_base(self, a: str, b: str) -> str | None:
        result = self._git("merge-base", a, b, check=False)
        if result.returncode == 1:
            return None
        if result.returncode != 0:
            raise GitCommandError(
                ["git", "merge-base", a, b],
                result.returncode,
                result.stderr.decode("utf-8", errors="replace"),
            )
        return result.stdout.decode().strip()

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        result = self._git("merge-base", "--is-ancestor", ancestor, descendant, check=False)
        if result.returncode in (0, 1):
            return result.returncode == 0
        raise GitCommandError(
            ["git", "merge-base", "--is-ancestor", ancestor, descendant],
            result.returncode,
            result.stderr.decode("utf-8", errors="replace"),
        )

    def first_parent_commits(self, base: str | None, tip: str) -> list[str]:
        """Commits on the first-parent chain of tip, oldest first, excluding base."""
        revision = f"{base}..{tip}" if base else tip
        output = self._text("rev-list", "--reverse", "--first-parent", revision)
        return output.split() if output else []

    def commit_info(self, commit: str) -> CommitInfo:
        fmt = "%x00".join(["%H", "%P", "%an", "%ae", "%aI", "%cI", "%B"])
        result = self._git("show", "-s", f"--format={fmt}", commit)
        fields = result.stdout.decode("utf-8", errors="replace").split(_FIELD_SEP, 6)
        if len(fields) != 7:
            raise GitCommandError(["git", "show", commit], 0, "unexpected output")
        sha, parents, name, email, adate, cdate, message = fields
        return CommitInfo(
            id=sha.strip(),
            parents=tuple(parents.split()),
            author_name=name,
            author_email=email,
            author_date=adate,
            committer_date=cdate,
            message=message.rstrip("\n"),
        )

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------
    def diff(self, source: str | None, target: str) -> Patch:
        # --binary keeps blobs and mode changes, --full-index lets --3way find bases
        result = self._git(
            "diff", "--binary", "--full-index", "-M", source or EMPTY_TREE, target
        )
        return Patch(source=source, target=target, data=result.stdout)

    def apply_patch(self, patch: Patch, three_way: bool = False) -> ApplyResult:
        if patch.is_empty:
            return ApplyResult.APPLIED

        args = ["apply", "--3way"] if three_way else ["apply", "--index"]
        result = self._git(*args, input=patch.data, check=False)
        if result.returncode == 0:
            return ApplyResult.APPLIED
        if three_way and self._unmerged_paths():
            return ApplyResult.APPLIED_WITH_CONFLICTS
        logger.debug(
            "apply rejected: %s",
            result.stderr.decode("utf-8", errors="replace").strip(),
        )
        return ApplyResult.REJECTED

    def _unmerged_paths(self) -> list[str]:
        output = self._text("diff", "--name-only", "--diff-filter=U")
        return output.splitlines()

    def has_staged_changes(self) -> bool:
        return self._git("diff", "--cached", "--quiet", check=False).returncode != 0

    def reset_hard(self) -> None:
        self._git("reset", "--hard", "-q")

    def stage_all(self) -> None:
        self._git("add", "-A")

    def commit(self, request: CommitRequest) -> str:
        self._git(
            "commit", "-q", "--no-verify", "--cleanup=verbatim",
            f"--author={request.author}", "-F", "-",
            input=request.message.encode("utf-8"),
            env={
                "GIT_AUTHOR_DATE": request.author_date,
                "GIT_COMMITTER_DATE": request.committer_date,
            },
        )
        return self._text("rev-parse", "HEAD")

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------
    def switch(
        self,
        branch: str,
        start_point: str | None = None,
        force_create: bool = False,
    ) -> None:
        if force_create:
            args = ["switch", "-q", "-C", branch]
            if start_point:
                args.append(start_point)
            self._git(*args)
        else:
            self._git("switch", "-q", branch)

    def delete_branch(self, branch: str) -> None:
        self._git("branch", "-D", branch)

    def merge(self, branch: str, message: str, prefer_theirs: bool = False) -> str:
        args = ["merge", "--no-ff", "-q"]
        if prefer_theirs:
            args += ["-X", "theirs"]
        self._git(*args, branch, "-m", message)
        return self._text("rev-parse", "HEAD")

    # ------------------------------------------------------------------
    # Remotes, Subversion and notes
    # ------------------------------------------------------------------
    def push_ref(self, remote: str, commit: str, ref: str) -> None:
        self._git("push", "-q", remote, f"{commit}:{ref}")

    def push_branch(self, remote: str, branch: str) -> None:
        self._git("push", "-q", remote, branch)

    def svn_rebase(self) -> None:
        self._git("svn", "rebase")

    def svn_dcommit(self) -> None:
        self._git("svn", "dcommit")

    def add_note(self, commit: str, message: str, ref: str) -> None:
        self._git("notes", f"--ref={ref}", "add", "-f", "-m", message, commit)


    def read_note(self, commit: str, ref: str) -> str | None:
        result = self._git("notes", f"--ref={ref}", "show", commit, check=False)
        if result.returncode != 0:
            return None
        return result.stdout.decode("utf-8", errors="replace").strip()

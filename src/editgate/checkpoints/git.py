"""
editgate — git stash capability

File: src/editgate/checkpoints/git.py
Last updated: 2026-10-19

Purpose
- The four version-control operations checkpointing needs: repository check,
  stage-and-stash, stash pop, and raw status.

Functional requirements
- Every failure (missing binary, timeout, non-zero exit, nothing to stash) is
  returned as an ``ok=False`` outcome; no public method raises.
- Stashing records a stash commit without touching the working tree.

Non-functional requirements
- Subprocesses run non-interactively with a bounded timeout.
"""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Sequence

DEFAULT_GIT_TIMEOUT_SECONDS: Final[float] = 30.0
NOTHING_TO_STASH: Final[str] = "No local changes to save"


class GitCommandError(RuntimeError):
    """Raised internally when a git subprocess command exits non-zero."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        returncode: int,
        stdout: str,
        stderr: str,
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        message = f"git command failed ({returncode}): {' '.join(command)}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class StashOutcome:
    """Result value of one capability call."""

    ok: bool
    stdout: str = ""
    stderr: str = ""
    error: str | None = None

    @classmethod
    def failure(cls, error: str, *, stdout: str = "", stderr: str = "") -> StashOutcome:
        return cls(ok=False, stdout=stdout, stderr=stderr, error=error)


class GitStashCapability:
    """Subprocess-backed git operations rooted at one workspace."""

    def __init__(
        self,
        workspace: str | Path,
        *,
        timeout_seconds: float = DEFAULT_GIT_TIMEOUT_SECONDS,
        git_binary: str = "git",
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._workspace = Path(workspace)
        self._timeout_seconds = timeout_seconds
        self._git_binary = git_binary

    @property
    def workspace(self) -> Path:
        return self._workspace

    def is_repository(self) -> bool:
        return self._call(["rev-parse", "--git-dir"]).ok

    def stage_and_stash(self, paths: Sequence[str], message: str) -> StashOutcome:
        """
        Stage ``paths`` and store a stash commit of the current state.

        On success ``stdout`` holds the stash commit sha. Paths that cannot be
        staged (for example files that do not exist yet) are skipped. The staged
        paths are reset afterwards, leaving the index at HEAD for them and the
        working tree untouched.
        """

        staged = [path for path in paths if self._call(["add", "--", path]).ok]
        try:
            created = self._call(["stash", "create", message])
            if not created.ok:
                return created
            stash_sha = created.stdout.strip()
            if not stash_sha:
                return StashOutcome.failure(NOTHING_TO_STASH, stdout=created.stdout)

            stored = self._call(["stash", "store", "-m", message, stash_sha])
            if not stored.ok:
                return stored
            return StashOutcome(ok=True, stdout=stash_sha, stderr=stored.stderr)
        finally:
            if staged:
                self._call(["reset", "-q", "--", *staged])

    def pop_stash(self, stash_ref: str | None = None) -> StashOutcome:
        """Pop the stash entry whose commit is ``stash_ref`` (latest entry when omitted)."""

        target = "stash@{0}"
        if stash_ref:
            listing = self._call(["stash", "list", "--format=%H"])
            if not listing.ok:
                return listing
            shas = [line.strip() for line in listing.stdout.splitlines() if line.strip()]
            if stash_ref not in shas:
                return StashOutcome.failure(f"stash entry not found: {stash_ref}")
            target = f"stash@{{{shas.index(stash_ref)}}}"
        return self._call(["stash", "pop", target])

    def raw_status(self) -> StashOutcome:
        return self._call(["status", "--porcelain"])

    def _call(self, args: Sequence[str]) -> StashOutcome:
        try:
            completed = self._run_git(args)
        except GitCommandError as exc:
            return StashOutcome.failure(str(exc), stdout=exc.stdout, stderr=exc.stderr)
        except subprocess.TimeoutExpired:
            return StashOutcome.failure(
                f"git {' '.join(args)} timed out after {self._timeout_seconds:g}s"
            )
        except OSError as exc:
            return StashOutcome.failure(f"git unavailable: {exc}")
        return StashOutcome(ok=True, stdout=completed.stdout, stderr=completed.stderr)

    def _run_git(self, args: Sequence[str]) -> subprocess.CompletedProcess[str]:
        command = (self._git_binary, *args)
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        env.setdefault("GIT_CONFIG_NOSYSTEM", "1")

        completed = subprocess.run(
            command,
            cwd=self._workspace,
            env=env,
            text=True,
            capture_output=True,
            timeout=self._timeout_seconds,
            check=False,
        )
        if completed.returncode != 0:
            raise GitCommandError(
                command=command,
                returncode=completed.returncode,
                stdout=completed.stdout,
                stderr=completed.stderr,
            )
        return completed


__all__ = [
    "DEFAULT_GIT_TIMEOUT_SECONDS",
    "NOTHING_TO_STASH",
    "GitCommandError",
    "GitStashCapability",
    "StashOutcome",
]

"""
editgate — checkpoint manager

File: src/editgate/checkpoints/manager.py
Last updated: 2026-10-19

Purpose
- Make proposed changes reversible: capture pre-change file images before an
  edit is applied and restore them on demand.

What should be included in this file
- Two-branch snapshot strategy: git stash first, file backup as fallback.
- Content-addressed blob store plus ``checkpoint_<id>.json`` metadata records.
- Rollback with post-restore hash verification; listing, lookup, deletion,
  eviction beyond ``max_backups``, and storage accounting.

Functional requirements
- Checkpoint creation never fails because of version control; any git
  failure degrades to the file-backup branch.
- Rollback collects per-file errors and never raises.
- A file recorded as absent is deleted on restore.
- Blobs are written for both strategies so a failed stash pop can still be
  restored from disk.

Non-functional requirements
- Blocking I/O; ``AsyncCheckpointManager`` offloads calls to worker threads.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Final

import structlog

from editgate.checkpoints.git import DEFAULT_GIT_TIMEOUT_SECONDS, GitStashCapability
from editgate.checkpoints.models import (
    CheckpointFile,
    CheckpointMetadata,
    CheckpointType,
    RollbackCheckpoint,
    RollbackResult,
    blob_name,
)
from editgate.domain.ids import generate_checkpoint_id
from editgate.domain.validation import normalize_change_path, utc_now
from editgate.utils.fs import (
    atomic_write,
    directory_size,
    read_text_if_exists,
    resolve_in_workspace,
    safe_delete,
)
from editgate.utils.hashing import sha256_text

DEFAULT_BACKUP_DIR: Final[str] = ".editgate/backups"
DEFAULT_MAX_BACKUPS: Final[int] = 50
METADATA_PREFIX: Final[str] = "checkpoint_"
METADATA_SUFFIX: Final[str] = ".json"


class CheckpointError(RuntimeError):
    """Raised when checkpoint storage is unreadable or inconsistent."""


class CheckpointManager:
    """Creates, persists and restores rollback checkpoints for one workspace."""

    def __init__(
        self,
        workspace: str | Path,
        *,
        backup_dir: str | Path | None = None,
        use_git_stash: bool = True,
        max_backups: int = DEFAULT_MAX_BACKUPS,
        git: GitStashCapability | None = None,
        git_timeout_seconds: float = DEFAULT_GIT_TIMEOUT_SECONDS,
        logger: Any | None = None,
    ) -> None:
        if max_backups < 1:
            raise ValueError("max_backups must be >= 1")
        self._workspace = Path(workspace).resolve()
        backup = Path(backup_dir) if backup_dir is not None else Path(DEFAULT_BACKUP_DIR)
        self._backup_dir = backup if backup.is_absolute() else self._workspace / backup
        self._use_git_stash = use_git_stash
        self._max_backups = max_backups
        self._git = (
            git
            if git is not None
            else GitStashCapability(self._workspace, timeout_seconds=git_timeout_seconds)
        )
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._initialized = False

    @property
    def workspace(self) -> Path:
        return self._workspace

    @property
    def backup_dir(self) -> Path:
        return self._backup_dir

    @property
    def uses_git_stash(self) -> bool:
        return self._use_git_stash

    def initialize(self) -> None:
        self._backup_dir.mkdir(parents=True, exist_ok=True)
        if self._use_git_stash and not self._git.is_repository():
            self._logger.warning(
                "checkpoint_stash_unavailable",
                workspace=str(self._workspace),
                reason="not a git repository",
            )
            self._use_git_stash = False
        self._initialized = True
        self._logger.info(
            "checkpoint_manager_initialized",
            backup_dir=str(self._backup_dir),
            use_git_stash=self._use_git_stash,
        )

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_checkpoint(
        self,
        files: Iterable[str],
        *,
        plan_id: str | None = None,
        phase_id: str | None = None,
        description: str | None = None,
    ) -> RollbackCheckpoint:
        self._ensure_initialized()
        paths = list(dict.fromkeys(normalize_change_path(path) for path in files))
        entries = tuple(
            CheckpointFile.capture(path, read_text_if_exists(self._resolve(path)))
            for path in paths
        )
        checkpoint_id = generate_checkpoint_id()
        self._logger.info("checkpoint_creating", checkpoint_id=checkpoint_id, files=len(paths))

        stash_ref = self._snapshot_with_stash(paths, description)
        checkpoint_type = CheckpointType.STASH if stash_ref else CheckpointType.FILE_BACKUP
        checkpoint = RollbackCheckpoint(
            id=checkpoint_id,
            timestamp=utc_now(),
            type=checkpoint_type,
            files=entries,
            plan_id=plan_id,
            phase_id=phase_id,
            description=description,
            stash_ref=stash_ref,
        )
        self._snapshot_with_file_backup(checkpoint)
        self._save_metadata(checkpoint)
        self.cleanup_old_backups()
        self._logger.info(
            "checkpoint_created",
            checkpoint_id=checkpoint.id,
            type=checkpoint.type.value,
            files=len(entries),
        )
        return checkpoint

    def register_checkpoint(self, checkpoint: RollbackCheckpoint) -> RollbackCheckpoint:
        """Persist a checkpoint that was captured elsewhere (blobs and metadata)."""

        self._ensure_initialized()
        self._snapshot_with_file_backup(checkpoint)
        self._save_metadata(checkpoint)
        self.cleanup_old_backups()
        self._logger.info(
            "checkpoint_registered",
            checkpoint_id=checkpoint.id,
            type=checkpoint.type.value,
            files=len(checkpoint.files),
        )
        return checkpoint

    def _snapshot_with_stash(self, paths: list[str], description: str | None) -> str | None:
        if not self._use_git_stash or not paths:
            return None
        message = description or f"editgate checkpoint {utc_now().isoformat()}"
        outcome = self._git.stage_and_stash(paths, message)
        if outcome.ok and outcome.stdout.strip():
            return outcome.stdout.strip()
        self._logger.warning(
            "checkpoint_fallback",
            reason=outcome.error or outcome.stderr.strip() or "stash unavailable",
            strategy=CheckpointType.FILE_BACKUP.value,
        )
        return None

    def _snapshot_with_file_backup(self, checkpoint: RollbackCheckpoint) -> None:
        for entry in checkpoint.files:
            if not entry.exists:
                continue
            target = self._backup_dir / entry.blob_name
            if target.is_file():
                continue
            atomic_write(target, entry.original_content)

    def _save_metadata(self, checkpoint: RollbackCheckpoint) -> None:
        atomic_write(
            self._metadata_path(checkpoint.id),
            json.dumps(checkpoint.to_metadata(), indent=2, sort_keys=True) + "\n",
        )

    # -------------------------------------------------------------------------
    # Restore
    # -------------------------------------------------------------------------

    def rollback(self, checkpoint: RollbackCheckpoint | str) -> RollbackResult:
        resolved = self._resolve_checkpoint(checkpoint)
        if resolved is None:
            return RollbackResult(success=False, errors=(f"Checkpoint not found: {checkpoint}",))

        self._logger.info(
            "checkpoint_rollback_started", checkpoint_id=resolved.id, type=resolved.type.value
        )
        restored: list[str] = []
        errors: list[str] = []
        warnings: list[str] = []

        popped = False
        if resolved.type is CheckpointType.STASH:
            outcome = self._git.pop_stash(resolved.stash_ref)
            if outcome.ok:
                popped = True
                restored.extend(resolved.paths)
            else:
                reason = outcome.error or outcome.stderr.strip()
                warnings.append(f"Git stash pop failed: {reason}")
                self._logger.warning(
                    "checkpoint_stash_pop_failed", checkpoint_id=resolved.id, error=reason
                )

        if not popped:
            for entry in resolved.files:
                try:
                    self._restore_file(entry)
                except (OSError, ValueError, CheckpointError) as exc:
                    errors.append(f"Failed to restore {entry.path}: {exc}")
                    continue
                restored.append(entry.path)

        if popped:
            # A pop can succeed while leaving later edits in place; recorded content wins.
            for entry in resolved.files:
                if self._verify_restored(entry) is None:
                    continue
                try:
                    self._restore_file(entry)
                except (OSError, ValueError, CheckpointError) as exc:
                    errors.append(f"Failed to restore {entry.path}: {exc}")
                    continue
                warnings.append(f"Restored {entry.path} from recorded content after stash pop")

        for entry in resolved.files:
            if entry.path in restored:
                mismatch = self._verify_restored(entry)
                if mismatch is not None:
                    errors.append(mismatch)

        result = RollbackResult(
            success=not errors,
            restored_files=tuple(restored),
            errors=tuple(errors),
            warnings=tuple(warnings),
        )
        log = self._logger.info if result.success else self._logger.error
        log(
            "checkpoint_rollback_finished",
            checkpoint_id=resolved.id,
            success=result.success,
            restored=len(restored),
            errors=len(errors),
        )
        return result

    def _restore_file(self, entry: CheckpointFile) -> None:
        target = self._resolve(entry.path)
        if entry.should_delete_on_restore:
            if target.exists() or target.is_symlink():
                safe_delete(target, self._workspace)
            return
        if not entry.verify():
            raise CheckpointError(f"backup content missing or corrupt for {entry.path}")
        atomic_write(target, entry.original_content, create_parents=True)

    def _verify_restored(self, entry: CheckpointFile) -> str | None:
        current = read_text_if_exists(self._resolve(entry.path))
        if entry.should_delete_on_restore:
            if current is not None:
                return f"Restored file still present: {entry.path}"
            return None
        if current is None:
            return f"Restored file missing: {entry.path}"
        if sha256_text(current) != entry.hash:
            return f"Hash mismatch after restore: {entry.path}"
        return None

    # -------------------------------------------------------------------------
    # Catalogue
    # -------------------------------------------------------------------------

    def list_checkpoints(self) -> list[CheckpointMetadata]:
        """Readable checkpoint records, newest first; unreadable records are skipped."""

        if not self._backup_dir.is_dir():
            return []
        records: list[CheckpointMetadata] = []
        for path in self._backup_dir.glob(f"{METADATA_PREFIX}*{METADATA_SUFFIX}"):
            try:
                records.append(self._read_metadata(path))
            except CheckpointError as exc:
                self._logger.warning("checkpoint_metadata_skipped", path=str(path), error=str(exc))
        records.sort(key=lambda record: (record.timestamp, record.id), reverse=True)
        return records

    def get_checkpoint(self, checkpoint_id: str) -> RollbackCheckpoint | None:
        """Rebuild a checkpoint with contents from its blobs; ``None`` if unknown."""

        path = self._metadata_path(checkpoint_id)
        if not path.is_file():
            return None
        metadata = self._read_metadata(path)
        files: list[CheckpointFile] = []
        for file_path, file_hash, exists in metadata.files:
            content = ""
            if exists:
                content = read_text_if_exists(self._backup_dir / blob_name(file_path, file_hash)) or ""
            files.append(
                CheckpointFile(path=file_path, original_content=content, hash=file_hash, exists=exists)
            )
        return RollbackCheckpoint(
            id=metadata.id,
            timestamp=metadata.timestamp,
            type=metadata.type,
            files=tuple(files),
            plan_id=metadata.plan_id,
            phase_id=metadata.phase_id,
            description=metadata.description,
            stash_ref=metadata.stash_ref,
        )

    def delete_checkpoint(self, checkpoint_id: str) -> bool:
        path = self._metadata_path(checkpoint_id)
        if not path.is_file():
            return False
        try:
            metadata = self._read_metadata(path)
        except CheckpointError:
            path.unlink(missing_ok=True)
            return True
        path.unlink(missing_ok=True)

        still_referenced = {
            blob_name(file_path, file_hash)
            for record in self.list_checkpoints()
            for file_path, file_hash, exists in record.files
            if exists
        }
        for file_path, file_hash, exists in metadata.files:
            name = blob_name(file_path, file_hash)
            if exists and name not in still_referenced:
                (self._backup_dir / name).unlink(missing_ok=True)
        self._logger.info("checkpoint_deleted", checkpoint_id=checkpoint_id)
        return True

    def cleanup_old_backups(self) -> int:
        records = self.list_checkpoints()
        if len(records) <= self._max_backups:
            return 0
        evicted = records[self._max_backups :]
        removed = sum(1 for record in evicted if self.delete_checkpoint(record.id))
        self._logger.debug("checkpoint_backups_evicted", removed=removed)
        return removed

    def get_storage_size(self) -> int:
        return directory_size(self._backup_dir)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self.initialize()

    def _resolve(self, path: str) -> Path:
        return resolve_in_workspace(self._workspace, path)

    def _metadata_path(self, checkpoint_id: str) -> Path:
        if not checkpoint_id or "/" in checkpoint_id or "\\" in checkpoint_id:
            raise ValueError(f"invalid checkpoint id: {checkpoint_id!r}")
        return self._backup_dir / f"{METADATA_PREFIX}{checkpoint_id}{METADATA_SUFFIX}"

    def _resolve_checkpoint(self, checkpoint: RollbackCheckpoint | str) -> RollbackCheckpoint | None:
        if isinstance(checkpoint, RollbackCheckpoint):
            return checkpoint
        try:
            return self.get_checkpoint(checkpoint)
        except (CheckpointError, ValueError) as exc:
            self._logger.error("checkpoint_unreadable", checkpoint_id=checkpoint, error=str(exc))
            return None

    @staticmethod
    def _read_metadata(path: Path) -> CheckpointMetadata:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return CheckpointMetadata.from_dict(raw)
        except (OSError, ValueError, TypeError) as exc:
            raise CheckpointError(f"unreadable checkpoint metadata {path.name}: {exc}") from exc


class AsyncCheckpointManager:
    """Async facade: each blocking call runs in a worker thread."""

    def __init__(self, manager: CheckpointManager) -> None:
        self._manager = manager

    @property
    def manager(self) -> CheckpointManager:
        return self._manager

    async def initialize(self) -> None:
        await asyncio.to_thread(self._manager.initialize)

    async def create_checkpoint(
        self,
        files: Iterable[str],
        *,
        plan_id: str | None = None,
        phase_id: str | None = None,
        description: str | None = None,
    ) -> RollbackCheckpoint:
        return await asyncio.to_thread(
            self._manager.create_checkpoint,
            list(files),
            plan_id=plan_id,
            phase_id=phase_id,
            description=description,
        )

    async def register_checkpoint(self, checkpoint: RollbackCheckpoint) -> RollbackCheckpoint:
        return await asyncio.to_thread(self._manager.register_checkpoint, checkpoint)

    async def rollback(self, checkpoint: RollbackCheckpoint | str) -> RollbackResult:
        return await asyncio.to_thread(self._manager.rollback, checkpoint)

    async def list_checkpoints(self) -> list[CheckpointMetadata]:
        return await asyncio.to_thread(self._manager.list_checkpoints)

    async def get_checkpoint(self, checkpoint_id: str) -> RollbackCheckpoint | None:
        return await asyncio.to_thread(self._manager.get_checkpoint, checkpoint_id)

    async def delete_checkpoint(self, checkpoint_id: str) -> bool:
        return await asyncio.to_thread(self._manager.delete_checkpoint, checkpoint_id)


__all__ = [
    "DEFAULT_BACKUP_DIR",
    "DEFAULT_MAX_BACKUPS",
    "AsyncCheckpointManager",
    "CheckpointError",
    "CheckpointManager",
]

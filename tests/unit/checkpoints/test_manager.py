"""
editgate — unit tests for the checkpoint manager

File: tests/unit/checkpoints/test_manager.py
Last updated: 2026-10-19

Purpose
- Validate checkpoint capture, restore, catalogue maintenance, and the git
  stash branch with its file-backup fallback.

What this test file should cover
- A file absent at checkpoint time is deleted on rollback.
- Restores are verified against the captured hash; corrupt blobs are reported.
- A failed stash pop degrades to restoring from file backups; a pop that
  leaves later edits in place is corrected from recorded content.
- Creating a stash checkpoint leaves the index untouched.
- Eviction keeps at most ``max_backups`` records and shared blobs survive.

Functional requirements
- Every test works inside its own ``tmp_path`` workspace.
- Tests that need a real git binary carry the ``git`` marker.
"""

from __future__ import annotations

import json
import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path

import pytest

from editgate.checkpoints import (
    AsyncCheckpointManager,
    CheckpointFile,
    CheckpointManager,
    CheckpointMetadata,
    CheckpointType,
    StashOutcome,
)
from editgate.checkpoints.models import blob_name
from editgate.utils.hashing import sha256_text


class _FakeGit:
    """In-memory stand-in for the stash capability."""

    def __init__(self, *, repository: bool = True, stash_ok: bool = True, pop_ok: bool = False):
        self.repository = repository
        self.stash_ok = stash_ok
        self.pop_ok = pop_ok
        self.stashed: list[tuple[tuple[str, ...], str]] = []
        self.popped: list[str | None] = []

    def is_repository(self) -> bool:
        return self.repository

    def stage_and_stash(self, paths: Sequence[str], message: str) -> StashOutcome:
        self.stashed.append((tuple(paths), message))
        if not self.stash_ok:
            return StashOutcome.failure("No local changes to save")
        return StashOutcome(ok=True, stdout="0123456789abcdef")

    def pop_stash(self, stash_ref: str | None = None) -> StashOutcome:
        self.popped.append(stash_ref)
        if self.pop_ok:
            return StashOutcome(ok=True)
        return StashOutcome.failure("conflict in src/a.ts")


def _write(root: Path, relative: str, content: str) -> Path:
    target = root / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return target


def _manager(root: Path, **kwargs: object) -> CheckpointManager:
    kwargs.setdefault("use_git_stash", False)
    return CheckpointManager(root, **kwargs)  # type: ignore[arg-type]


def test_file_backup_checkpoint_restores_modified_file(tmp_path: Path) -> None:
    target = _write(tmp_path, "src/a.ts", "const a = 1;\n")
    manager = _manager(tmp_path)

    checkpoint = manager.create_checkpoint(["./src/a.ts"], plan_id="plan-1", description="before")
    target.write_text("const a = 2;\n", encoding="utf-8")
    result = manager.rollback(checkpoint)

    assert checkpoint.type is CheckpointType.FILE_BACKUP
    assert checkpoint.paths == ("src/a.ts",)
    assert checkpoint.id.startswith("ckpt-")
    assert result.success
    assert result.restored_files == ("src/a.ts",)
    assert target.read_text(encoding="utf-8") == "const a = 1;\n"
    assert (manager.backup_dir / checkpoint.files[0].blob_name).is_file()


def test_rollback_deletes_file_that_did_not_exist(tmp_path: Path) -> None:
    manager = _manager(tmp_path)

    checkpoint = manager.create_checkpoint(["src/new.ts"])
    entry = checkpoint.files[0]
    created = _write(tmp_path, "src/new.ts", "export {};\n")
    result = manager.rollback(checkpoint)

    assert not entry.exists
    assert entry.original_content == ""
    assert entry.hash == sha256_text("")
    assert result.success
    assert result.restored_files == ("src/new.ts",)
    assert not created.exists()


def test_rollback_keeps_file_that_existed_empty(tmp_path: Path) -> None:
    target = _write(tmp_path, "src/empty.ts", "")
    manager = _manager(tmp_path)

    checkpoint = manager.create_checkpoint(["src/empty.ts"])
    target.write_text("export const filled = true;\n", encoding="utf-8")
    result = manager.rollback(checkpoint.id)

    assert checkpoint.files[0].exists
    assert result.success
    assert result.restored_files == ("src/empty.ts",)
    assert target.is_file()
    assert target.read_text(encoding="utf-8") == ""


def test_rollback_by_id_reads_content_from_blobs(tmp_path: Path) -> None:
    target = _write(tmp_path, "src/a.ts", "original\n")
    manager = _manager(tmp_path)
    checkpoint = manager.create_checkpoint(["src/a.ts"])
    target.unlink()

    result = manager.rollback(checkpoint.id)

    assert result.success
    assert target.read_text(encoding="utf-8") == "original\n"


def test_rollback_reports_corrupt_backup(tmp_path: Path) -> None:
    _write(tmp_path, "src/a.ts", "original\n")
    manager = _manager(tmp_path)
    checkpoint = manager.create_checkpoint(["src/a.ts"])
    (manager.backup_dir / checkpoint.files[0].blob_name).unlink()

    result = manager.rollback(checkpoint.id)

    assert not result.success
    assert result.restored_files == ()
    assert result.errors == (
        "Failed to restore src/a.ts: backup content missing or corrupt for src/a.ts",
    )


def test_rollback_of_unknown_checkpoint_fails_without_raising(tmp_path: Path) -> None:
    manager = _manager(tmp_path)

    result = manager.rollback("ckpt-missing")

    assert not result.success
    assert result.errors == ("Checkpoint not found: ckpt-missing",)


def test_metadata_record_is_written_and_listed(tmp_path: Path) -> None:
    _write(tmp_path, "src/a.ts", "a\n")
    manager = _manager(tmp_path)
    checkpoint = manager.create_checkpoint(["src/a.ts", "src/b.ts"], phase_id="phase-1")

    record_path = manager.backup_dir / f"checkpoint_{checkpoint.id}.json"
    record = json.loads(record_path.read_text(encoding="utf-8"))
    listed = manager.list_checkpoints()

    assert record["type"] == "file_backup"
    assert record["phaseId"] == "phase-1"
    assert [item["exists"] for item in record["files"]] == [True, False]
    assert "originalContent" not in record["files"][0]
    assert [item.id for item in listed] == [checkpoint.id]
    assert listed[0].file_count == 2


def test_list_skips_unreadable_records(tmp_path: Path) -> None:
    _write(tmp_path, "src/a.ts", "a\n")
    manager = _manager(tmp_path)
    checkpoint = manager.create_checkpoint(["src/a.ts"])
    (manager.backup_dir / "checkpoint_broken.json").write_text("{not json", encoding="utf-8")

    assert [item.id for item in manager.list_checkpoints()] == [checkpoint.id]


def test_get_checkpoint_round_trips_contents(tmp_path: Path) -> None:
    _write(tmp_path, "src/a.ts", "alpha\n")
    manager = _manager(tmp_path)
    checkpoint = manager.create_checkpoint(["src/a.ts", "src/missing.ts"])

    loaded = manager.get_checkpoint(checkpoint.id)

    assert loaded is not None
    assert loaded.files == checkpoint.files
    assert manager.get_checkpoint("ckpt-unknown") is None
    with pytest.raises(ValueError, match="invalid checkpoint id"):
        manager.get_checkpoint("../escape")


def test_delete_keeps_blobs_shared_with_other_checkpoints(tmp_path: Path) -> None:
    _write(tmp_path, "src/a.ts", "shared\n")
    manager = _manager(tmp_path)
    first = manager.create_checkpoint(["src/a.ts"])
    second = manager.create_checkpoint(["src/a.ts"])
    blob = manager.backup_dir / first.files[0].blob_name

    assert manager.delete_checkpoint(first.id)
    assert blob.is_file()
    assert manager.delete_checkpoint(second.id)
    assert not blob.exists()
    assert not manager.delete_checkpoint(second.id)


def test_old_checkpoints_are_evicted_beyond_max_backups(tmp_path: Path) -> None:
    target = _write(tmp_path, "src/a.ts", "v0\n")
    manager = _manager(tmp_path, max_backups=2)

    for version in range(1, 4):
        manager.create_checkpoint(["src/a.ts"])
        target.write_text(f"v{version}\n", encoding="utf-8")

    records = manager.list_checkpoints()
    blobs = [
        path.name
        for path in manager.backup_dir.iterdir()
        if not path.name.startswith("checkpoint_")
    ]

    assert len(records) == 2
    assert len(blobs) == 2
    assert manager.cleanup_old_backups() == 0


def test_storage_size_counts_backup_directory(tmp_path: Path) -> None:
    manager = _manager(tmp_path)

    assert manager.get_storage_size() == 0

    _write(tmp_path, "src/a.ts", "x" * 100)
    manager.create_checkpoint(["src/a.ts"])

    assert manager.get_storage_size() > 100


def test_max_backups_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="max_backups"):
        CheckpointManager(tmp_path, max_backups=0)


def test_initialize_disables_stash_outside_repository(tmp_path: Path) -> None:
    manager = CheckpointManager(tmp_path, git=_FakeGit(repository=False))  # type: ignore[arg-type]

    manager.initialize()

    assert not manager.uses_git_stash
    assert manager.backup_dir.is_dir()


def test_stash_checkpoint_records_stash_ref(tmp_path: Path) -> None:
    _write(tmp_path, "src/a.ts", "a\n")
    git = _FakeGit()
    manager = CheckpointManager(tmp_path, git=git)  # type: ignore[arg-type]

    checkpoint = manager.create_checkpoint(["src/a.ts"], description="edit a")

    assert checkpoint.type is CheckpointType.STASH
    assert checkpoint.stash_ref == "0123456789abcdef"
    assert git.stashed == [(("src/a.ts",), "edit a")]
    assert (manager.backup_dir / checkpoint.files[0].blob_name).is_file()


def test_failed_stash_falls_back_to_file_backup(tmp_path: Path) -> None:
    _write(tmp_path, "src/a.ts", "a\n")
    manager = CheckpointManager(tmp_path, git=_FakeGit(stash_ok=False))  # type: ignore[arg-type]

    checkpoint = manager.create_checkpoint(["src/a.ts"])

    assert checkpoint.type is CheckpointType.FILE_BACKUP
    assert checkpoint.stash_ref is None


def test_failed_stash_pop_restores_from_file_backup(tmp_path: Path) -> None:
    target = _write(tmp_path, "src/a.ts", "before\n")
    git = _FakeGit(pop_ok=False)
    manager = CheckpointManager(tmp_path, git=git)  # type: ignore[arg-type]
    checkpoint = manager.create_checkpoint(["src/a.ts"])
    target.write_text("after\n", encoding="utf-8")

    result = manager.rollback(checkpoint)

    assert git.popped == ["0123456789abcdef"]
    assert result.success
    assert result.warnings == ("Git stash pop failed: conflict in src/a.ts",)
    assert target.read_text(encoding="utf-8") == "before\n"


def test_successful_stash_pop_that_leaves_edits_restores_recorded_content(
    tmp_path: Path,
) -> None:
    target = _write(tmp_path, "src/a.ts", "before\n")
    manager = CheckpointManager(tmp_path, git=_FakeGit(pop_ok=True))  # type: ignore[arg-type]
    checkpoint = manager.create_checkpoint(["src/a.ts"])
    target.write_text("after\n", encoding="utf-8")

    # The fake pop reports success but leaves the working tree untouched.
    result = manager.rollback(checkpoint)

    assert result.success
    assert result.restored_files == ("src/a.ts",)
    assert result.warnings == ("Restored src/a.ts from recorded content after stash pop",)
    assert target.read_text(encoding="utf-8") == "before\n"


def test_stash_pop_restore_reports_corrupt_recorded_content(tmp_path: Path) -> None:
    target = _write(tmp_path, "src/a.ts", "before\n")
    manager = CheckpointManager(tmp_path, git=_FakeGit(pop_ok=True))  # type: ignore[arg-type]
    checkpoint = manager.create_checkpoint(["src/a.ts"])
    target.write_text("after\n", encoding="utf-8")
    (manager.backup_dir / checkpoint.files[0].blob_name).write_text("tampered", encoding="utf-8")

    result = manager.rollback(checkpoint.id)

    assert not result.success
    assert result.errors[0].startswith("Failed to restore src/a.ts:")
    assert "Hash mismatch after restore: src/a.ts" in result.errors


@pytest.mark.asyncio
async def test_async_facade_delegates_to_manager(tmp_path: Path) -> None:
    target = _write(tmp_path, "src/a.ts", "one\n")
    facade = AsyncCheckpointManager(_manager(tmp_path))

    await facade.initialize()
    checkpoint = await facade.create_checkpoint(["src/a.ts"])
    target.write_text("two\n", encoding="utf-8")
    result = await facade.rollback(checkpoint.id)
    listed = await facade.list_checkpoints()
    loaded = await facade.get_checkpoint(checkpoint.id)

    assert result.success
    assert target.read_text(encoding="utf-8") == "one\n"
    assert [item.id for item in listed] == [checkpoint.id]
    assert loaded is not None
    assert await facade.delete_checkpoint(checkpoint.id)
    assert await facade.list_checkpoints() == []


@pytest.mark.git
@pytest.mark.skipif(shutil.which("git") is None, reason="git binary not available")
def test_real_git_stash_round_trip(tmp_path: Path) -> None:
    def git(*args: str) -> None:
        subprocess.run(["git", *args], cwd=tmp_path, check=True, capture_output=True)

    def status() -> str:
        completed = subprocess.run(
            ["git", "status", "--porcelain"],
            cwd=tmp_path,
            check=True,
            capture_output=True,
            text=True,
        )
        tracked = [line for line in completed.stdout.splitlines() if not line.startswith("??")]
        return "\n".join(tracked)

    git("init", "-q")
    git("config", "user.email", "dev@example.com")
    git("config", "user.name", "Dev")
    target = _write(tmp_path, "a.txt", "committed\n")
    git("add", "a.txt")
    git("commit", "-q", "-m", "init")
    target.write_text("working copy\n", encoding="utf-8")

    manager = CheckpointManager(tmp_path)
    checkpoint = manager.create_checkpoint(["a.txt"], description="before edit")

    assert checkpoint.type is CheckpointType.STASH
    assert checkpoint.stash_ref
    assert target.read_text(encoding="utf-8") == "working copy\n"
    assert status() == " M a.txt"

    target.write_text("edited\n", encoding="utf-8")
    result = manager.rollback(checkpoint)

    assert result.success
    assert target.read_text(encoding="utf-8") == "working copy\n"


def test_checkpoint_file_capture_and_blob_names() -> None:
    present = CheckpointFile.capture("src\\dir\\a.ts", "text")
    absent = CheckpointFile.capture("src/b.ts", None)

    assert present.path == "src/dir/a.ts"
    assert present.verify()
    assert present.blob_name == f"{sha256_text('text')[:8]}_a.ts"
    assert blob_name("x/y/z.json", "abcdef0123") == "abcdef01_z.json"
    assert absent.should_delete_on_restore
    assert absent.to_metadata() == {"path": "src/b.ts", "hash": sha256_text(""), "exists": False}


def test_checkpoint_metadata_from_dict() -> None:
    record = CheckpointMetadata.from_dict(
        {
            "id": "ckpt-1",
            "timestamp": "2026-10-19T12:00:00.000000Z",
            "type": "stash",
            "files": [{"path": "a.ts", "hash": "ff"}],
            "stashRef": "abc",
        }
    )

    assert record.type is CheckpointType.STASH
    assert record.files == (("a.ts", "ff", True),)
    assert record.stash_ref == "abc"
    with pytest.raises(ValueError, match="checkpoint.files"):
        CheckpointMetadata.from_dict(
            {"id": "c", "timestamp": "2026-10-19T12:00:00Z", "type": "stash", "files": "x"}
        )

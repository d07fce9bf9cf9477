"""Rollback checkpoints: git stash snapshots with a file-backup fallback."""

from editgate.checkpoints.git import GitStashCapability, StashOutcome
from editgate.checkpoints.manager import (
    AsyncCheckpointManager,
    CheckpointError,
    CheckpointManager,
)
from editgate.checkpoints.models import (
    CheckpointFile,
    CheckpointMetadata,
    CheckpointType,
    RollbackCheckpoint,
    RollbackResult,
)

__all__ = [
    "AsyncCheckpointManager",
    "CheckpointError",
    "CheckpointFile",
    "CheckpointManager",
    "CheckpointMetadata",
    "CheckpointType",
    "GitStashCapability",
    "RollbackCheckpoint",
    "RollbackResult",
    "StashOutcome",
]

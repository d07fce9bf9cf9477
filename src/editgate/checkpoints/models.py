"""Rollback checkpoint records and their persisted metadata form."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from pathlib import PurePosixPath

from editgate.domain.validation import (
    as_bool,
    as_datetime,
    as_enum,
    as_optional_str,
    as_sequence,
    as_str,
    datetime_to_iso8601z,
    expect_object,
    normalize_change_path,
)
from editgate.utils.hashing import sha256_text

_BLOB_HASH_PREFIX_LENGTH = 8


class CheckpointType(StrEnum):
    STASH = "stash"
    FILE_BACKUP = "file_backup"


@dataclass(frozen=True, slots=True)
class CheckpointFile:
    """Pre-change image of one file; ``hash`` always covers ``original_content``."""

    path: str
    original_content: str
    hash: str
    exists: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", normalize_change_path(self.path))

    @classmethod
    def capture(cls, path: str, content: str | None) -> CheckpointFile:
        if content is None:
            return cls(path=path, original_content="", hash=sha256_text(""), exists=False)
        return cls(path=path, original_content=content, hash=sha256_text(content), exists=True)

    @property
    def blob_name(self) -> str:
        return blob_name(self.path, self.hash)

    @property
    def should_delete_on_restore(self) -> bool:
        return not self.exists

    def verify(self) -> bool:
        return sha256_text(self.original_content) == self.hash

    def to_metadata(self) -> dict[str, object]:
        return {"path": self.path, "hash": self.hash, "exists": self.exists}


@dataclass(frozen=True, slots=True)
class RollbackCheckpoint:
    """Immutable snapshot of pre-change file state."""

    id: str
    timestamp: datetime
    type: CheckpointType
    files: tuple[CheckpointFile, ...] = ()
    plan_id: str | None = None
    phase_id: str | None = None
    description: str | None = None
    stash_ref: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "files", tuple(self.files))
        object.__setattr__(self, "type", as_enum(CheckpointType, self.type, "checkpoint.type"))
        object.__setattr__(self, "timestamp", as_datetime(self.timestamp, "checkpoint.timestamp"))

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(item.path for item in self.files)

    def file_for(self, path: str) -> CheckpointFile | None:
        normalized = normalize_change_path(path)
        for item in self.files:
            if item.path == normalized:
                return item
        return None

    def to_metadata(self) -> dict[str, object]:
        """Persisted record: file hashes only, contents live in blobs."""

        payload: dict[str, object] = {
            "id": self.id,
            "timestamp": datetime_to_iso8601z(self.timestamp),
            "type": self.type.value,
            "files": [item.to_metadata() for item in self.files],
        }
        if self.plan_id is not None:
            payload["planId"] = self.plan_id
        if self.phase_id is not None:
            payload["phaseId"] = self.phase_id
        if self.description is not None:
            payload["description"] = self.description
        if self.stash_ref is not None:
            payload["stashRef"] = self.stash_ref
        return payload

    def to_dict(self) -> dict[str, object]:
        payload = self.to_metadata()
        payload["files"] = [
            {
                "path": item.path,
                "originalContent": item.original_content,
                "hash": item.hash,
                "exists": item.exists,
            }
            for item in self.files
        ]
        return payload


@dataclass(frozen=True, slots=True)
class CheckpointMetadata:
    """Parsed ``checkpoint_<id>.json`` record."""

    id: str
    timestamp: datetime
    type: CheckpointType
    files: tuple[tuple[str, str, bool], ...] = ()
    plan_id: str | None = None
    phase_id: str | None = None
    description: str | None = None
    stash_ref: str | None = None

    @property
    def file_count(self) -> int:
        return len(self.files)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> CheckpointMetadata:
        parsed = expect_object(
            data,
            "checkpoint",
            required={"id", "timestamp", "type", "files"},
            optional={"planId", "phaseId", "description", "stashRef"},
        )
        files: list[tuple[str, str, bool]] = []
        for index, raw in enumerate(as_sequence(parsed["files"], "checkpoint.files")):
            entry = expect_object(
                raw, f"checkpoint.files[{index}]", required={"path", "hash"}, optional={"exists"}
            )
            files.append(
                (
                    as_str(entry["path"], f"checkpoint.files[{index}].path", min_len=1),
                    as_str(entry["hash"], f"checkpoint.files[{index}].hash", min_len=1),
                    as_bool(entry.get("exists", True), f"checkpoint.files[{index}].exists"),
                )
            )
        return cls(
            id=as_str(parsed["id"], "checkpoint.id", min_len=1),
            timestamp=as_datetime(parsed["timestamp"], "checkpoint.timestamp"),
            type=as_enum(CheckpointType, parsed["type"], "checkpoint.type"),
            files=tuple(files),
            plan_id=as_optional_str(parsed.get("planId"), "checkpoint.planId"),
            phase_id=as_optional_str(parsed.get("phaseId"), "checkpoint.phaseId"),
            description=as_optional_str(parsed.get("description"), "checkpoint.description"),
            stash_ref=as_optional_str(parsed.get("stashRef"), "checkpoint.stashRef"),
        )


@dataclass(frozen=True, slots=True)
class RollbackResult:
    success: bool
    restored_files: tuple[str, ...] = ()
    errors: tuple[str, ...] = field(default_factory=tuple)
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "restoredFiles": list(self.restored_files),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def blob_name(path: str, content_hash: str) -> str:
    """Content-addressed blob name ``<hash-prefix>_<basename>``."""

    basename = PurePosixPath(normalize_change_path(path)).name
    return f"{content_hash[:_BLOB_HASH_PREFIX_LENGTH]}_{basename}"


__all__ = [
    "CheckpointFile",
    "CheckpointMetadata",
    "CheckpointType",
    "RollbackCheckpoint",
    "RollbackResult",
    "blob_name",
]

"""Proposed-change and validator-context models with strict parsing."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType

from editgate.domain.validation import (
    as_enum,
    as_optional_str,
    as_sequence,
    as_str,
    expect_object,
    fail,
    normalize_change_path,
)


class FileOperation(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class FileChange:
    """One proposed file edit; immutable once submitted to the pipeline."""

    path: str
    operation: FileOperation
    content: str = ""
    explanation: str | None = None
    diff: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.path, str) or not self.path.strip():
            fail("FileChange.path", "must be a non-empty string")
        object.__setattr__(self, "path", normalize_change_path(self.path))
        object.__setattr__(
            self, "operation", as_enum(FileOperation, self.operation, "FileChange.operation")
        )
        if not isinstance(self.content, str):
            raise TypeError("FileChange.content must be a string")

    @property
    def line_count(self) -> int:
        return len(self.content.split("\n"))

    @property
    def lines(self) -> list[str]:
        return self.content.split("\n")

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "path": self.path,
            "operation": self.operation.value,
            "content": self.content,
        }
        if self.explanation is not None:
            payload["explanation"] = self.explanation
        if self.diff is not None:
            payload["diff"] = self.diff
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, path: str = "FileChange") -> FileChange:
        parsed = expect_object(
            data,
            path,
            required={"path", "operation"},
            optional={"content", "explanation", "diff"},
        )
        return cls(
            path=as_str(parsed["path"], f"{path}.path", min_len=1),
            operation=as_enum(FileOperation, parsed["operation"], f"{path}.operation"),
            content=as_str(parsed.get("content", "") or "", f"{path}.content"),
            explanation=as_optional_str(parsed.get("explanation"), f"{path}.explanation"),
            diff=as_optional_str(parsed.get("diff"), f"{path}.diff"),
        )


@dataclass(frozen=True, slots=True)
class ValidatorContext:
    """Read-only input shared by every validator of one pipeline run."""

    changes: tuple[FileChange, ...]
    existing_files: Mapping[str, str] = field(default_factory=dict)
    project_path: str = "."
    plan_id: str | None = None
    phase_id: str | None = None
    config: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        changes = tuple(self.changes)
        for index, change in enumerate(changes):
            if not isinstance(change, FileChange):
                raise TypeError(f"ValidatorContext.changes[{index}] must be FileChange")
        existing = {
            normalize_change_path(str(key)): str(value) for key, value in self.existing_files.items()
        }
        object.__setattr__(self, "changes", changes)
        object.__setattr__(self, "existing_files", MappingProxyType(existing))
        object.__setattr__(self, "config", MappingProxyType(dict(self.config)))

    @property
    def changed_paths(self) -> tuple[str, ...]:
        return tuple(change.path for change in self.changes)

    def change_for(self, path: str) -> FileChange | None:
        normalized = normalize_change_path(path)
        for change in self.changes:
            if change.path == normalized:
                return change
        return None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "changes": [change.to_dict() for change in self.changes],
            "existingFiles": dict(self.existing_files),
            "projectPath": self.project_path,
            "config": dict(self.config),
        }
        if self.plan_id is not None:
            payload["planId"] = self.plan_id
        if self.phase_id is not None:
            payload["phaseId"] = self.phase_id
        return payload

    @classmethod
    def from_dict(
        cls, data: Mapping[str, object], *, project_path: str | None = None
    ) -> ValidatorContext:
        parsed = expect_object(
            data,
            "ValidatorContext",
            required={"changes"},
            optional={"existingFiles", "planId", "phaseId", "projectPath", "config"},
        )
        changes = [
            FileChange.from_dict(
                _as_mapping(item, f"ValidatorContext.changes[{index}]"),
                path=f"ValidatorContext.changes[{index}]",
            )
            for index, item in enumerate(as_sequence(parsed["changes"], "ValidatorContext.changes"))
        ]
        existing_raw = _as_mapping(parsed.get("existingFiles", {}), "ValidatorContext.existingFiles")
        existing = {
            as_str(key, "ValidatorContext.existingFiles.<key>"): as_str(
                value, f"ValidatorContext.existingFiles.{key}"
            )
            for key, value in existing_raw.items()
        }
        resolved_project = project_path
        if resolved_project is None:
            resolved_project = as_str(
                parsed.get("projectPath", "."), "ValidatorContext.projectPath", min_len=1
            )
        return cls(
            changes=tuple(changes),
            existing_files=existing,
            project_path=resolved_project,
            plan_id=as_optional_str(parsed.get("planId"), "ValidatorContext.planId"),
            phase_id=as_optional_str(parsed.get("phaseId"), "ValidatorContext.phaseId"),
            config=_as_mapping(parsed.get("config", {}), "ValidatorContext.config"),
        )


def build_context(
    changes: Iterable[FileChange | Mapping[str, object]],
    existing_files: Mapping[str, str] | None = None,
    *,
    project_path: str = ".",
    plan_id: str | None = None,
    phase_id: str | None = None,
    config: Mapping[str, object] | None = None,
) -> ValidatorContext:
    """Build a context from change objects or raw change dictionaries."""

    normalized = tuple(
        item
        if isinstance(item, FileChange)
        else FileChange.from_dict(item, path=f"changes[{index}]")
        for index, item in enumerate(changes)
    )
    return ValidatorContext(
        changes=normalized,
        existing_files=dict(existing_files or {}),
        project_path=project_path,
        plan_id=plan_id,
        phase_id=phase_id,
        config=dict(config or {}),
    )


def _as_mapping(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        fail(path, f"expected object, got {type(value).__name__}")
    return value


__all__ = [
    "FileChange",
    "FileOperation",
    "ValidatorContext",
    "build_context",
]

"""
editgate — plan models

File: src/editgate/plans/models.py
Last updated: 2026-10-19

Purpose
- Plan / phase / task records owned by the plan manager, plus the derived
  ``PlanLock`` and the flat ``PlanSpec`` input used to create plans.

Functional requirements
- ``Plan.affected_files`` is always the ordered union of its phases' files.
- Wire form uses camelCase keys; ``from_dict`` reports the failing path.

Non-functional requirements
- Plan records are mutable (the manager drives their state machine); the
  lock and approval records are frozen.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from types import MappingProxyType

from editgate.domain.validation import (
    as_enum,
    as_int,
    as_optional_datetime,
    as_optional_str,
    as_sequence,
    as_str,
    as_str_tuple,
    datetime_to_iso8601z,
    expect_object,
    normalize_change_path,
    utc_now,
)

DEFAULT_TASK_TYPE = "implementation"


class PlanStatus(StrEnum):
    DRAFT = "draft"
    APPROVED = "approved"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (PlanStatus.COMPLETED, PlanStatus.CANCELLED)

    @property
    def holds_lock(self) -> bool:
        return self in (PlanStatus.APPROVED, PlanStatus.IN_PROGRESS)


class PhaseStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class Complexity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _iso(value: datetime | None) -> str | None:
    return None if value is None else datetime_to_iso8601z(value)


def unique_paths(paths: Iterable[str]) -> list[str]:
    """Normalized paths in first-seen order without duplicates."""

    seen: dict[str, None] = {}
    for path in paths:
        seen.setdefault(normalize_change_path(path), None)
    return list(seen)


# -----------------------------------------------------------------------------
# Plan records
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class PlanTask:
    id: str
    phase_id: str
    description: str
    type: str = DEFAULT_TASK_TYPE
    status: TaskStatus = TaskStatus.PENDING
    target_file: str | None = None
    target_function: str | None = None
    expected_changes: str | None = None
    completed_at: datetime | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": self.id,
            "phaseId": self.phase_id,
            "description": self.description,
            "type": self.type,
            "status": self.status.value,
        }
        if self.target_file is not None:
            payload["targetFile"] = self.target_file
        if self.target_function is not None:
            payload["targetFunction"] = self.target_function
        if self.expected_changes is not None:
            payload["expectedChanges"] = self.expected_changes
        if self.completed_at is not None:
            payload["completedAt"] = _iso(self.completed_at)
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, path: str = "task") -> PlanTask:
        parsed = expect_object(
            data,
            path,
            required={"id", "phaseId", "description"},
            optional={
                "type",
                "status",
                "targetFile",
                "targetFunction",
                "expectedChanges",
                "completedAt",
            },
        )
        return cls(
            id=as_str(parsed["id"], f"{path}.id", min_len=1),
            phase_id=as_str(parsed["phaseId"], f"{path}.phaseId"),
            description=as_str(parsed["description"], f"{path}.description"),
            type=as_str(parsed.get("type", DEFAULT_TASK_TYPE), f"{path}.type", min_len=1),
            status=as_enum(TaskStatus, parsed.get("status", "pending"), f"{path}.status"),
            target_file=as_optional_str(parsed.get("targetFile"), f"{path}.targetFile"),
            target_function=as_optional_str(parsed.get("targetFunction"), f"{path}.targetFunction"),
            expected_changes=as_optional_str(
                parsed.get("expectedChanges"), f"{path}.expectedChanges"
            ),
            completed_at=as_optional_datetime(parsed.get("completedAt"), f"{path}.completedAt"),
        )


@dataclass(slots=True)
class PlanPhase:
    id: str
    plan_id: str
    index: int
    title: str
    description: str = ""
    status: PhaseStatus = PhaseStatus.PENDING
    tasks: list[PlanTask] = field(default_factory=list)
    affected_files: list[str] = field(default_factory=list)
    estimated_tokens: int = 0
    actual_tokens_used: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": self.id,
            "planId": self.plan_id,
            "index": self.index,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "tasks": [task.to_dict() for task in self.tasks],
            "affectedFiles": list(self.affected_files),
            "estimatedTokens": self.estimated_tokens,
            "actualTokensUsed": self.actual_tokens_used,
        }
        if self.started_at is not None:
            payload["startedAt"] = _iso(self.started_at)
        if self.completed_at is not None:
            payload["completedAt"] = _iso(self.completed_at)
        if self.error is not None:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, path: str = "phase") -> PlanPhase:
        parsed = expect_object(
            data,
            path,
            required={"id", "planId", "index", "title"},
            optional={
                "description",
                "status",
                "tasks",
                "affectedFiles",
                "estimatedTokens",
                "actualTokensUsed",
                "startedAt",
                "completedAt",
                "error",
            },
        )
        tasks = [
            PlanTask.from_dict(_mapping(item, f"{path}.tasks[{index}]"), path=f"{path}.tasks[{index}]")
            for index, item in enumerate(as_sequence(parsed.get("tasks", []), f"{path}.tasks"))
        ]
        return cls(
            id=as_str(parsed["id"], f"{path}.id", min_len=1),
            plan_id=as_str(parsed["planId"], f"{path}.planId"),
            index=as_int(parsed["index"], f"{path}.index", minimum=0),
            title=as_str(parsed["title"], f"{path}.title"),
            description=as_str(parsed.get("description", ""), f"{path}.description"),
            status=as_enum(PhaseStatus, parsed.get("status", "pending"), f"{path}.status"),
            tasks=tasks,
            affected_files=list(
                as_str_tuple(parsed.get("affectedFiles", []), f"{path}.affectedFiles")
            ),
            estimated_tokens=as_int(
                parsed.get("estimatedTokens", 0), f"{path}.estimatedTokens", minimum=0
            ),
            actual_tokens_used=as_int(
                parsed.get("actualTokensUsed", 0), f"{path}.actualTokensUsed", minimum=0
            ),
            started_at=as_optional_datetime(parsed.get("startedAt"), f"{path}.startedAt"),
            completed_at=as_optional_datetime(parsed.get("completedAt"), f"{path}.completedAt"),
            error=as_optional_str(parsed.get("error"), f"{path}.error"),
        )


@dataclass(slots=True)
class PlanMetadata:
    assumptions: list[str] = field(default_factory=list)
    risks: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    estimated_complexity: Complexity = Complexity.LOW

    def to_dict(self) -> dict[str, object]:
        return {
            "assumptions": list(self.assumptions),
            "risks": list(self.risks),
            "dependencies": list(self.dependencies),
            "estimatedComplexity": self.estimated_complexity.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, path: str = "metadata") -> PlanMetadata:
        parsed = expect_object(
            data,
            path,
            required=set(),
            optional={"assumptions", "risks", "dependencies", "estimatedComplexity"},
        )
        return cls(
            assumptions=list(as_str_tuple(parsed.get("assumptions", []), f"{path}.assumptions")),
            risks=list(as_str_tuple(parsed.get("risks", []), f"{path}.risks")),
            dependencies=list(
                as_str_tuple(parsed.get("dependencies", []), f"{path}.dependencies")
            ),
            estimated_complexity=as_enum(
                Complexity,
                parsed.get("estimatedComplexity", "low"),
                f"{path}.estimatedComplexity",
            ),
        )


@dataclass(slots=True)
class Plan:
    """A multi-phase unit of approved work; the manager owns its transitions."""

    id: str
    title: str
    description: str
    phases: list[PlanPhase] = field(default_factory=list)
    status: PlanStatus = PlanStatus.DRAFT
    current_phase_index: int = 0
    affected_files: list[str] = field(default_factory=list)
    metadata: PlanMetadata = field(default_factory=PlanMetadata)
    created_at: datetime = field(default_factory=utc_now)
    approved_at: datetime | None = None
    completed_at: datetime | None = None
    total_estimated_tokens: int = 0
    actual_tokens_used: int = 0
    original_request: str = ""

    @property
    def current_phase(self) -> PlanPhase | None:
        if 0 <= self.current_phase_index < len(self.phases):
            return self.phases[self.current_phase_index]
        return None

    @property
    def is_last_phase(self) -> bool:
        return self.current_phase_index >= len(self.phases) - 1

    @property
    def task_count(self) -> int:
        return sum(len(phase.tasks) for phase in self.phases)

    def recompute_affected_files(self) -> list[str]:
        self.affected_files = unique_paths(
            path for phase in self.phases for path in phase.affected_files
        )
        return self.affected_files

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "phases": [phase.to_dict() for phase in self.phases],
            "currentPhaseIndex": self.current_phase_index,
            "affectedFiles": list(self.affected_files),
            "metadata": self.metadata.to_dict(),
            "createdAt": _iso(self.created_at),
            "totalEstimatedTokens": self.total_estimated_tokens,
            "actualTokensUsed": self.actual_tokens_used,
            "originalRequest": self.original_request,
        }
        if self.approved_at is not None:
            payload["approvedAt"] = _iso(self.approved_at)
        if self.completed_at is not None:
            payload["completedAt"] = _iso(self.completed_at)
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, path: str = "plan") -> Plan:
        parsed = expect_object(
            data,
            path,
            required={"id", "title", "description", "status", "phases"},
            optional={
                "currentPhaseIndex",
                "affectedFiles",
                "metadata",
                "createdAt",
                "approvedAt",
                "completedAt",
                "totalEstimatedTokens",
                "actualTokensUsed",
                "originalRequest",
            },
        )
        phases = [
            PlanPhase.from_dict(
                _mapping(item, f"{path}.phases[{index}]"), path=f"{path}.phases[{index}]"
            )
            for index, item in enumerate(as_sequence(parsed["phases"], f"{path}.phases"))
        ]
        created_at = as_optional_datetime(parsed.get("createdAt"), f"{path}.createdAt")
        plan = cls(
            id=as_str(parsed["id"], f"{path}.id", min_len=1),
            title=as_str(parsed["title"], f"{path}.title"),
            description=as_str(parsed["description"], f"{path}.description"),
            phases=phases,
            status=as_enum(PlanStatus, parsed["status"], f"{path}.status"),
            current_phase_index=as_int(
                parsed.get("currentPhaseIndex", 0), f"{path}.currentPhaseIndex", minimum=0
            ),
            metadata=PlanMetadata.from_dict(
                _mapping(parsed.get("metadata", {}), f"{path}.metadata"), path=f"{path}.metadata"
            ),
            created_at=created_at if created_at is not None else utc_now(),
            approved_at=as_optional_datetime(parsed.get("approvedAt"), f"{path}.approvedAt"),
            completed_at=as_optional_datetime(parsed.get("completedAt"), f"{path}.completedAt"),
            total_estimated_tokens=as_int(
                parsed.get("totalEstimatedTokens", 0), f"{path}.totalEstimatedTokens", minimum=0
            ),
            actual_tokens_used=as_int(
                parsed.get("actualTokensUsed", 0), f"{path}.actualTokensUsed", minimum=0
            ),
            original_request=as_str(parsed.get("originalRequest", ""), f"{path}.originalRequest"),
        )
        plan.recompute_affected_files()
        if phases and plan.current_phase_index > len(phases) - 1:
            raise ValueError(f"{path}.currentPhaseIndex: exceeds last phase index")
        return plan


@dataclass(frozen=True, slots=True)
class PlanLock:
    """Scope lock derived from an approved plan; present only while it is active."""

    plan_id: str
    allowed_files: tuple[str, ...]
    allowed_functions: Mapping[str, tuple[str, ...]]
    checksum: str
    locked_at: datetime = field(default_factory=utc_now)
    locked_by: str = "user"

    def __post_init__(self) -> None:
        object.__setattr__(self, "allowed_files", tuple(self.allowed_files))
        functions = {
            normalize_change_path(path): tuple(names)
            for path, names in self.allowed_functions.items()
        }
        object.__setattr__(self, "allowed_functions", MappingProxyType(functions))

    def to_dict(self) -> dict[str, object]:
        return {
            "planId": self.plan_id,
            "allowedFiles": list(self.allowed_files),
            "allowedFunctions": {path: list(names) for path, names in self.allowed_functions.items()},
            "checksum": self.checksum,
            "lockedAt": _iso(self.locked_at),
            "lockedBy": self.locked_by,
        }


# -----------------------------------------------------------------------------
# Plan creation input
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TaskSpec:
    description: str
    type: str = DEFAULT_TASK_TYPE
    target_file: str | None = None
    target_function: str | None = None
    expected_changes: str | None = None


@dataclass(frozen=True, slots=True)
class PhaseSpec:
    title: str
    description: str = ""
    tasks: tuple[TaskSpec, ...] = ()
    affected_files: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PlanSpec:
    """Flat plan description produced by planning and consumed by ``create_plan``."""

    title: str
    description: str
    phases: tuple[PhaseSpec, ...] = ()
    original_request: str = ""
    assumptions: tuple[str, ...] = ()
    risks: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, path: str = "planSpec") -> PlanSpec:
        """Parse snake_case or camelCase input."""

        def pick(source: Mapping[str, object], snake: str, camel: str, default: object) -> object:
            if snake in source:
                return source[snake]
            return source.get(camel, default)

        source = _mapping(data, path)
        phases: list[PhaseSpec] = []
        for index, raw_phase in enumerate(as_sequence(source.get("phases", []), f"{path}.phases")):
            phase_path = f"{path}.phases[{index}]"
            phase = _mapping(raw_phase, phase_path)
            tasks: list[TaskSpec] = []
            raw_tasks = as_sequence(phase.get("tasks", []), f"{phase_path}.tasks")
            for task_index, raw_task in enumerate(raw_tasks):
                task_path = f"{phase_path}.tasks[{task_index}]"
                if isinstance(raw_task, str):
                    tasks.append(TaskSpec(description=raw_task))
                    continue
                task = _mapping(raw_task, task_path)
                tasks.append(
                    TaskSpec(
                        description=as_str(task.get("description", ""), f"{task_path}.description"),
                        type=as_str(task.get("type", DEFAULT_TASK_TYPE), f"{task_path}.type"),
                        target_file=as_optional_str(
                            pick(task, "target_file", "targetFile", None), f"{task_path}.targetFile"
                        ),
                        target_function=as_optional_str(
                            pick(task, "target_function", "targetFunction", None),
                            f"{task_path}.targetFunction",
                        ),
                        expected_changes=as_optional_str(
                            pick(task, "expected_changes", "expectedChanges", None),
                            f"{task_path}.expectedChanges",
                        ),
                    )
                )
            phases.append(
                PhaseSpec(
                    title=as_str(phase.get("title", ""), f"{phase_path}.title"),
                    description=as_str(phase.get("description", ""), f"{phase_path}.description"),
                    tasks=tuple(tasks),
                    affected_files=as_str_tuple(
                        pick(phase, "affected_files", "affectedFiles", []),
                        f"{phase_path}.affectedFiles",
                    ),
                )
            )
        return cls(
            title=as_str(source.get("title", ""), f"{path}.title"),
            description=as_str(source.get("description", ""), f"{path}.description"),
            phases=tuple(phases),
            original_request=as_str(
                pick(source, "original_request", "originalRequest", ""), f"{path}.originalRequest"
            ),
            assumptions=as_str_tuple(source.get("assumptions", []), f"{path}.assumptions"),
            risks=as_str_tuple(source.get("risks", []), f"{path}.risks"),
        )


# -----------------------------------------------------------------------------
# Manager outputs
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ApprovalConfirmation:
    type: str
    description: str
    acknowledged: bool = False


@dataclass(frozen=True, slots=True)
class ApprovalRequest:
    plan: Plan
    confidence: int
    explanation: str
    warnings: tuple[str, ...] = ()
    required_confirmations: tuple[ApprovalConfirmation, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "planId": self.plan.id,
            "confidence": self.confidence,
            "explanation": self.explanation,
            "warnings": list(self.warnings),
            "requiredConfirmations": [
                {"type": item.type, "description": item.description, "acknowledged": item.acknowledged}
                for item in self.required_confirmations
            ],
        }


@dataclass(frozen=True, slots=True)
class PhaseFailure:
    phase_index: int
    error: str
    recoverable: bool = True


@dataclass(frozen=True, slots=True)
class ExecutionSummary:
    plan_id: str
    success: bool
    phases_completed: int
    total_phases: int
    files_modified: tuple[str, ...]
    tokens_used: int
    duration_ms: float
    errors: tuple[PhaseFailure, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "planId": self.plan_id,
            "success": self.success,
            "phasesCompleted": self.phases_completed,
            "totalPhases": self.total_phases,
            "filesModified": list(self.files_modified),
            "tokensUsed": self.tokens_used,
            "duration": self.duration_ms,
            "errors": [
                {"phaseIndex": item.phase_index, "error": item.error, "recoverable": item.recoverable}
                for item in self.errors
            ],
        }


def _mapping(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{path}: expected object, got {type(value).__name__}")
    return value


__all__ = [
    "DEFAULT_TASK_TYPE",
    "ApprovalConfirmation",
    "ApprovalRequest",
    "Complexity",
    "ExecutionSummary",
    "PhaseFailure",
    "PhaseSpec",
    "PhaseStatus",
    "Plan",
    "PlanLock",
    "PlanMetadata",
    "PlanPhase",
    "PlanSpec",
    "PlanStatus",
    "PlanTask",
    "TaskSpec",
    "TaskStatus",
    "unique_paths",
]

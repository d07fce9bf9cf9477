"""
editgate — plan manager

File: src/editgate/plans/manager.py
Last updated: 2026-10-19

Purpose
- Own the plan state machine and the scope lock derived from the active plan.

What should be included in this file
- ``PlanManager`` with create / approve / start / complete-phase / fail-phase /
  resume / cancel transitions, approval requests, and scope queries.

Functional requirements
- Transitions: draft -> approved -> in_progress -> completed; in_progress ->
  paused on phase failure; paused -> in_progress on resume; any non-terminal
  state -> cancelled.
- Unmet preconditions return ``False`` / ``None``; nothing here raises for a
  wrong state.
- The lock exists iff the active plan is approved or in progress.
- ``current_phase_index`` never decreases and never passes the last phase.

Non-functional requirements
- Active plan and lock are instance state, not module globals.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Final

import structlog

from editgate.domain.ids import generate_phase_id, generate_plan_id, generate_task_id
from editgate.domain.validation import normalize_change_path, utc_now
from editgate.plans.lock import PlanLockManager
from editgate.plans.models import (
    ApprovalConfirmation,
    ApprovalRequest,
    Complexity,
    ExecutionSummary,
    PhaseFailure,
    PhaseStatus,
    Plan,
    PlanLock,
    PlanMetadata,
    PlanPhase,
    PlanSpec,
    PlanStatus,
    PlanTask,
    TaskStatus,
    unique_paths,
)
from editgate.plans.store import InMemoryPlanStore, PlanStore

BASE_PHASE_TOKENS: Final[int] = 2_000
TOKENS_PER_TASK: Final[int] = 500
TOKENS_PER_FILE: Final[int] = 1_000

BASE_CONFIDENCE: Final[int] = 95
MIN_CONFIDENCE: Final[int] = 50
_CONFIDENCE_PENALTY: Final[dict[Complexity, int]] = {
    Complexity.HIGH: 15,
    Complexity.MEDIUM: 5,
    Complexity.LOW: 0,
}
_RISK_PENALTY: Final[int] = 3

_ENTRY_POINT_RE: Final = re.compile(r"(?:^|/)(?:index|main|app)\.[^/]+$")
_SECURITY_FILE_RE: Final = re.compile(r"auth|security|token|password", re.IGNORECASE)


@dataclass(slots=True)
class ActivePlanState:
    """The single active plan reference and the lock manager scoped to it."""

    plan_id: str | None = None
    locks: PlanLockManager = field(default_factory=PlanLockManager)

    @property
    def lock(self) -> PlanLock | None:
        return self.locks.lock

    def clear(self) -> None:
        self.plan_id = None
        self.locks.release_lock()


def estimate_phase_tokens(task_count: int, file_count: int) -> int:
    return BASE_PHASE_TOKENS + task_count * TOKENS_PER_TASK + file_count * TOKENS_PER_FILE


def estimate_complexity(phases: list[PlanPhase]) -> Complexity:
    total_tasks = sum(len(phase.tasks) for phase in phases)
    total_files = len(unique_paths(path for phase in phases for path in phase.affected_files))
    if total_tasks > 10 or total_files > 5 or len(phases) > 4:
        return Complexity.HIGH
    if total_tasks > 5 or total_files > 3 or len(phases) > 2:
        return Complexity.MEDIUM
    return Complexity.LOW


def validate_plan(plan: Plan) -> list[str]:
    """Structural issues that block approval, as human-readable strings."""

    issues: list[str] = []
    if not plan.title.strip():
        issues.append("Plan missing title")
    if not plan.phases:
        issues.append("Plan has no phases")
    if not plan.affected_files:
        issues.append("Plan has no affected files listed")
    for number, phase in enumerate(plan.phases, start=1):
        if not phase.title.strip():
            issues.append(f"Phase {number} missing title")
        if not phase.tasks:
            issues.append(f"Phase {number} has no tasks")
        if not phase.affected_files:
            issues.append(f"Phase {number} has no affected files")
    return issues


def phase_file_overlaps(plan: Plan) -> list[tuple[int, int, list[str]]]:
    """(phase number, later phase number, shared files) for each overlapping pair."""

    overlaps: list[tuple[int, int, list[str]]] = []
    for left_index, left in enumerate(plan.phases):
        left_files = set(left.affected_files)
        for right_index in range(left_index + 1, len(plan.phases)):
            shared = [
                path for path in plan.phases[right_index].affected_files if path in left_files
            ]
            if shared:
                overlaps.append((left_index + 1, right_index + 1, shared))
    return overlaps


def explain_plan(plan: Plan) -> str:
    lines = [f"I'm going to {plan.description.lower()}.", "", "Here's what I'll do:"]
    for number, phase in enumerate(plan.phases, start=1):
        lines.append(f"{number}. {phase.title}: {phase.description}")
    if plan.metadata.assumptions:
        lines.extend(["", "I'm assuming:"])
        lines.extend(f"• {assumption}" for assumption in plan.metadata.assumptions)
    if plan.metadata.risks:
        lines.extend(["", "Potential risks:"])
        lines.extend(f"• {risk}" for risk in plan.metadata.risks)
    return "\n".join(lines)


class PlanManager:
    """Plan lifecycle owner; one manager instance tracks at most one active plan."""

    def __init__(self, store: PlanStore | None = None, *, logger: Any | None = None) -> None:
        self._store: PlanStore = store if store is not None else InMemoryPlanStore()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._active = ActivePlanState(locks=PlanLockManager(logger=self._logger))

    # -------------------------------------------------------------------------
    # Creation and approval
    # -------------------------------------------------------------------------

    def create_plan(self, spec: PlanSpec | Mapping[str, object]) -> Plan:
        parsed = spec if isinstance(spec, PlanSpec) else PlanSpec.from_dict(spec)
        plan_id = generate_plan_id()
        phases: list[PlanPhase] = []
        for index, phase_spec in enumerate(parsed.phases):
            phase_id = generate_phase_id()
            affected = unique_paths(phase_spec.affected_files)
            tasks = [
                PlanTask(
                    id=generate_task_id(),
                    phase_id=phase_id,
                    description=task.description,
                    type=task.type,
                    target_file=(
                        normalize_change_path(task.target_file) if task.target_file else None
                    ),
                    target_function=task.target_function,
                    expected_changes=task.expected_changes,
                )
                for task in phase_spec.tasks
            ]
            phases.append(
                PlanPhase(
                    id=phase_id,
                    plan_id=plan_id,
                    index=index,
                    title=phase_spec.title,
                    description=phase_spec.description,
                    tasks=tasks,
                    affected_files=affected,
                    estimated_tokens=estimate_phase_tokens(len(tasks), len(affected)),
                )
            )

        plan = Plan(
            id=plan_id,
            title=parsed.title,
            description=parsed.description,
            phases=phases,
            metadata=PlanMetadata(
                assumptions=list(parsed.assumptions),
                risks=list(parsed.risks),
                estimated_complexity=estimate_complexity(phases),
            ),
            total_estimated_tokens=sum(phase.estimated_tokens for phase in phases),
            original_request=parsed.original_request,
        )
        plan.recompute_affected_files()
        self._store.save(plan)
        self._logger.info(
            "plan_created",
            plan_id=plan.id,
            title=plan.title,
            phases=len(plan.phases),
            complexity=plan.metadata.estimated_complexity.value,
        )
        return plan

    def validate_plan(self, plan: Plan) -> list[str]:
        for first, second, files in phase_file_overlaps(plan):
            self._logger.info(
                "plan_phase_file_overlap",
                plan_id=plan.id,
                phases=[first, second],
                files=files,
            )
        return validate_plan(plan)

    def request_approval(self, plan_id: str) -> ApprovalRequest | None:
        plan = self._store.get(plan_id)
        if plan is None:
            return None

        warnings: list[str] = []
        confirmations: list[ApprovalConfirmation] = []
        if any(_ENTRY_POINT_RE.search(path) for path in plan.affected_files):
            warnings.append("This plan modifies entry point files")
            confirmations.append(
                ApprovalConfirmation(
                    type="file_modification",
                    description="Entry point files will be modified",
                )
            )
        if any(_SECURITY_FILE_RE.search(path) for path in plan.affected_files):
            warnings.append("This plan modifies security-related files")
            confirmations.append(
                ApprovalConfirmation(
                    type="security_impact",
                    description="Security-related files will be modified",
                )
            )

        confidence = BASE_CONFIDENCE - _CONFIDENCE_PENALTY[plan.metadata.estimated_complexity]
        confidence -= _RISK_PENALTY * len(plan.metadata.risks)
        return ApprovalRequest(
            plan=plan,
            confidence=max(MIN_CONFIDENCE, confidence),
            explanation=explain_plan(plan),
            warnings=tuple(warnings),
            required_confirmations=tuple(confirmations),
        )

    def approve_plan(
        self, plan_id: str, *, file_contents: Mapping[str, str] | None = None
    ) -> bool:
        plan = self._store.get(plan_id)
        if plan is None or plan.status is not PlanStatus.DRAFT:
            return False

        issues = self.validate_plan(plan)
        if issues:
            self._logger.error("plan_validation_failed", plan_id=plan_id, issues=issues)
            return False

        plan.status = PlanStatus.APPROVED
        plan.approved_at = utc_now()
        self._store.save(plan)

        if self._active.plan_id is not None and self._active.plan_id != plan_id:
            self._logger.warning(
                "plan_active_replaced", previous_plan_id=self._active.plan_id, plan_id=plan_id
            )
        self._active.plan_id = plan_id
        lock = self._active.locks.create_lock(plan, file_contents)
        self._logger.info("plan_approved", plan_id=plan_id, allowed_files=len(lock.allowed_files))
        return True

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def start_execution(self, plan_id: str) -> bool:
        plan = self._store.get(plan_id)
        if plan is None or plan.status is not PlanStatus.APPROVED:
            return False

        plan.status = PlanStatus.IN_PROGRESS
        first = plan.current_phase
        if first is not None:
            first.status = PhaseStatus.IN_PROGRESS
            first.started_at = utc_now()
        self._store.save(plan)
        self._logger.info("plan_execution_started", plan_id=plan_id)
        return True

    def complete_phase(self, plan_id: str, tokens_used: int = 0) -> PlanPhase | None:
        """Finish the current phase; returns the next phase, or ``None`` when the plan is done."""

        plan = self._store.get(plan_id)
        if plan is None or plan.status is not PlanStatus.IN_PROGRESS:
            return None
        current = plan.current_phase
        if current is None:
            return None

        now = utc_now()
        for task in current.tasks:
            task.status = TaskStatus.COMPLETED
            task.completed_at = now
        current.status = PhaseStatus.COMPLETED
        current.completed_at = now
        current.actual_tokens_used = max(0, int(tokens_used))
        plan.actual_tokens_used += current.actual_tokens_used
        self._logger.info(
            "plan_phase_completed",
            plan_id=plan_id,
            phase_index=plan.current_phase_index,
            tokens_used=current.actual_tokens_used,
        )

        if plan.is_last_phase:
            plan.status = PlanStatus.COMPLETED
            plan.completed_at = now
            self._store.save(plan)
            if self._active.plan_id == plan_id:
                self._active.clear()
            self._logger.info("plan_completed", plan_id=plan_id)
            return None

        plan.current_phase_index += 1
        next_phase = plan.phases[plan.current_phase_index]
        next_phase.status = PhaseStatus.IN_PROGRESS
        next_phase.started_at = now
        self._store.save(plan)
        return next_phase

    def fail_phase(self, plan_id: str, error: str) -> bool:
        plan = self._store.get(plan_id)
        if plan is None or plan.status is not PlanStatus.IN_PROGRESS:
            return False

        current = plan.current_phase
        if current is not None:
            current.status = PhaseStatus.FAILED
            current.error = error
        plan.status = PlanStatus.PAUSED
        self._store.save(plan)
        self._logger.error(
            "plan_phase_failed",
            plan_id=plan_id,
            phase=current.title if current is not None else None,
            error=error,
        )
        return True

    def resume_plan(self, plan_id: str) -> bool:
        plan = self._store.get(plan_id)
        if plan is None or plan.status is not PlanStatus.PAUSED:
            return False

        plan.status = PlanStatus.IN_PROGRESS
        current = plan.current_phase
        if current is not None and current.status is PhaseStatus.FAILED:
            current.status = PhaseStatus.IN_PROGRESS
            current.error = None
            current.started_at = utc_now()
        self._store.save(plan)
        self._logger.info("plan_resumed", plan_id=plan_id)
        return True

    def cancel_plan(self, plan_id: str) -> bool:
        plan = self._store.get(plan_id)
        if plan is None or plan.status.is_terminal:
            return False

        plan.status = PlanStatus.CANCELLED
        self._store.save(plan)
        if self._active.plan_id == plan_id:
            self._active.clear()
        self._logger.info("plan_cancelled", plan_id=plan_id)
        return True

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_plan(self, plan_id: str) -> Plan | None:
        return self._store.get(plan_id)

    def list_plan_ids(self) -> list[str]:
        return self._store.list_ids()

    def get_active_plan(self) -> Plan | None:
        if self._active.plan_id is None:
            return None
        return self._store.get(self._active.plan_id)

    def get_current_phase(self, plan_id: str) -> PlanPhase | None:
        plan = self._store.get(plan_id)
        return None if plan is None else plan.current_phase

    def get_plan_lock(self) -> PlanLock | None:
        return self._active.locks.get_lock()

    def is_file_allowed(self, path: str) -> bool:
        return self._active.locks.is_allowed(path)

    def is_change_allowed(self, path: str, function_name: str | None = None) -> bool:
        return self._active.locks.is_change_allowed(path, function_name)

    def verify_lock_integrity(self) -> bool:
        """False when there is no lock or the active plan drifted since approval."""

        plan = self.get_active_plan()
        if plan is None:
            return False
        return self._active.locks.verify_integrity(plan)

    def get_execution_summary(self, plan_id: str) -> ExecutionSummary | None:
        plan = self._store.get(plan_id)
        if plan is None:
            return None
        duration_ms = 0.0
        if plan.completed_at is not None and plan.approved_at is not None:
            duration_ms = (plan.completed_at - plan.approved_at).total_seconds() * 1000.0
        return ExecutionSummary(
            plan_id=plan.id,
            success=plan.status is PlanStatus.COMPLETED,
            phases_completed=sum(
                1 for phase in plan.phases if phase.status is PhaseStatus.COMPLETED
            ),
            total_phases=len(plan.phases),
            files_modified=tuple(plan.affected_files),
            tokens_used=plan.actual_tokens_used,
            duration_ms=duration_ms,
            errors=tuple(
                PhaseFailure(phase_index=index, error=phase.error)
                for index, phase in enumerate(plan.phases)
                if phase.status is PhaseStatus.FAILED and phase.error
            ),
        )

    def clear_all(self) -> None:
        self._store.clear()
        self._active.clear()


__all__ = [
    "BASE_PHASE_TOKENS",
    "TOKENS_PER_FILE",
    "TOKENS_PER_TASK",
    "ActivePlanState",
    "PlanManager",
    "estimate_complexity",
    "estimate_phase_tokens",
    "explain_plan",
    "phase_file_overlaps",
    "validate_plan",
]

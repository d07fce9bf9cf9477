"""Plan state machine, scope lock, and plan storage."""

from editgate.plans.lock import PlanLockManager, build_plan_lock, compute_plan_checksum
from editgate.plans.manager import ActivePlanState, PlanManager, validate_plan
from editgate.plans.models import (
    ApprovalConfirmation,
    ApprovalRequest,
    Complexity,
    ExecutionSummary,
    PhaseSpec,
    PhaseStatus,
    Plan,
    PlanLock,
    PlanMetadata,
    PlanPhase,
    PlanSpec,
    PlanStatus,
    PlanTask,
    TaskSpec,
    TaskStatus,
)
from editgate.plans.store import InMemoryPlanStore, PlanStore

__all__ = [
    "ActivePlanState",
    "ApprovalConfirmation",
    "ApprovalRequest",
    "Complexity",
    "ExecutionSummary",
    "InMemoryPlanStore",
    "PhaseSpec",
    "PhaseStatus",
    "Plan",
    "PlanLock",
    "PlanLockManager",
    "PlanManager",
    "PlanMetadata",
    "PlanPhase",
    "PlanSpec",
    "PlanStatus",
    "PlanStore",
    "PlanTask",
    "TaskSpec",
    "TaskStatus",
    "build_plan_lock",
    "compute_plan_checksum",
    "validate_plan",
]

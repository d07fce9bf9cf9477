"""Shared deterministic builders for persistence tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Final

from editgate.domain import ids
from editgate.plans.models import (
    Complexity,
    PhaseStatus,
    Plan,
    PlanMetadata,
    PlanPhase,
    PlanStatus,
    PlanTask,
)

_BASE_TS: Final[datetime] = datetime(2026, 10, 1, 12, 0, 0, tzinfo=UTC)


def fixed_now(seed: int) -> datetime:
    return _BASE_TS + timedelta(seconds=seed)


def _randbytes(seed: int) -> Callable[[int], bytes]:
    byte_value = (seed % 251) + 1

    def _provider(size: int) -> bytes:
        return bytes([byte_value]) * size

    return _provider


def _timestamp_ms(seed: int) -> int:
    return int(fixed_now(seed).timestamp() * 1000)


def make_plan(seed: int, *, status: PlanStatus = PlanStatus.DRAFT) -> Plan:
    plan_id = ids.generate_plan_id(timestamp_ms=_timestamp_ms(seed), randbytes=_randbytes(seed))
    phase_id = ids.generate_phase_id(
        timestamp_ms=_timestamp_ms(seed), randbytes=_randbytes(seed + 1)
    )
    task = PlanTask(
        id=ids.generate_task_id(timestamp_ms=_timestamp_ms(seed), randbytes=_randbytes(seed + 2)),
        phase_id=phase_id,
        description=f"Update module {seed}",
        target_file=f"src/module_{seed}.ts",
        target_function="render",
    )
    phase = PlanPhase(
        id=phase_id,
        plan_id=plan_id,
        index=0,
        title=f"Phase {seed}",
        description="Single phase",
        status=PhaseStatus.PENDING,
        tasks=[task],
        affected_files=[f"src/module_{seed}.ts", "src/shared.ts"],
        estimated_tokens=4_000,
    )
    plan = Plan(
        id=plan_id,
        title=f"Plan {seed}",
        description=f"Deterministic plan {seed}",
        phases=[phase],
        status=status,
        metadata=PlanMetadata(
            assumptions=["Tests exist"],
            risks=["Regression"],
            estimated_complexity=Complexity.LOW,
        ),
        created_at=fixed_now(seed),
        total_estimated_tokens=4_000,
        original_request=f"please update module {seed}",
    )
    plan.recompute_affected_files()
    if status is not PlanStatus.DRAFT:
        plan.approved_at = fixed_now(seed + 60)
    return plan


__all__ = ["fixed_now", "make_plan"]

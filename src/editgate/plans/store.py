"""Plan table abstraction used by the plan manager."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from editgate.plans.models import Plan


@runtime_checkable
class PlanStore(Protocol):
    """Read/write by id; no joins."""

    def save(self, plan: Plan) -> Plan: ...

    def get(self, plan_id: str) -> Plan | None: ...

    def list_ids(self) -> list[str]: ...

    def delete(self, plan_id: str) -> bool: ...

    def clear(self) -> None: ...


class InMemoryPlanStore:
    """Process-local plan table; stores the live objects the manager mutates."""

    def __init__(self) -> None:
        self._plans: dict[str, Plan] = {}

    def save(self, plan: Plan) -> Plan:
        self._plans[plan.id] = plan
        return plan

    def get(self, plan_id: str) -> Plan | None:
        return self._plans.get(plan_id)

    def list_ids(self) -> list[str]:
        return list(self._plans)

    def delete(self, plan_id: str) -> bool:
        return self._plans.pop(plan_id, None) is not None

    def clear(self) -> None:
        self._plans.clear()

    def __len__(self) -> int:
        return len(self._plans)


__all__ = ["InMemoryPlanStore", "PlanStore"]

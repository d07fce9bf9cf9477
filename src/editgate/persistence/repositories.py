"""
editgate — repositories

File: src/editgate/persistence/repositories.py
Last updated: 2026-10-19

Purpose
- Durable plan table over ``StateDB`` satisfying the ``PlanStore`` protocol.

Functional requirements
- Phases, affected files and metadata are stored as canonical JSON columns; the
  full wire form is kept in ``payload_json`` and is the source of truth on read.
- ``save`` is an upsert.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime

from editgate.domain.validation import datetime_to_iso8601z
from editgate.persistence.state_db import RowValue, SQLParams, StateDB, StateDBError
from editgate.plans.models import Plan
from editgate.utils.hashing import canonical_json


class PlanRepository:
    """Repository for plan rows keyed by plan id."""

    def __init__(self, db: StateDB) -> None:
        self._db = db
        self._db.migrate()

    def save(self, plan: Plan) -> Plan:
        payload = plan.to_dict()
        params: SQLParams = (
            plan.id,
            plan.title,
            plan.description,
            plan.status.value,
            canonical_json(payload["phases"]),
            plan.current_phase_index,
            canonical_json(list(plan.affected_files)),
            canonical_json(payload["metadata"]),
            canonical_json(payload),
            datetime_to_iso8601z(plan.created_at),
            _optional_iso(plan.approved_at),
            _optional_iso(plan.completed_at),
            datetime_to_iso8601z(datetime.now(UTC)),
        )
        self._db.execute(
            """
            INSERT INTO plans (
                id,
                title,
                description,
                status,
                phases_json,
                current_phase_index,
                affected_files_json,
                metadata_json,
                payload_json,
                created_at,
                approved_at,
                completed_at,
                updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                title=excluded.title,
                description=excluded.description,
                status=excluded.status,
                phases_json=excluded.phases_json,
                current_phase_index=excluded.current_phase_index,
                affected_files_json=excluded.affected_files_json,
                metadata_json=excluded.metadata_json,
                payload_json=excluded.payload_json,
                approved_at=excluded.approved_at,
                completed_at=excluded.completed_at,
                updated_at=excluded.updated_at
            """,
            params,
        )
        return plan

    def get(self, plan_id: str) -> Plan | None:
        row = self._db.query_one("SELECT payload_json FROM plans WHERE id = ?", (plan_id,))
        if row is None:
            return None
        return Plan.from_dict(_row_json(row, "payload_json", f"plans[{plan_id}].payload_json"))

    def list_ids(self) -> list[str]:
        rows = self._db.query_all("SELECT id FROM plans ORDER BY created_at ASC, id ASC")
        return [str(row["id"]) for row in rows]

    def list_by_status(self, status: str) -> list[Plan]:
        rows = self._db.query_all(
            "SELECT payload_json FROM plans WHERE status = ? ORDER BY created_at DESC, id DESC",
            (status,),
        )
        return [Plan.from_dict(_row_json(row, "payload_json", "plans.payload_json")) for row in rows]

    def delete(self, plan_id: str) -> bool:
        return self._db.execute("DELETE FROM plans WHERE id = ?", (plan_id,)) > 0

    def clear(self) -> None:
        self._db.execute("DELETE FROM plans")


def _optional_iso(value: datetime | None) -> str | None:
    return None if value is None else datetime_to_iso8601z(value)


def _row_json(row: dict[str, RowValue], key: str, label: str) -> dict[str, object]:
    raw = row.get(key)
    if not isinstance(raw, str):
        raise StateDBError(f"{label} must be text")
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StateDBError(f"{label} is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise StateDBError(f"{label} must be a JSON object")
    return parsed


__all__ = ["PlanRepository"]

"""
editgate — unit tests for the plan lock

File: tests/unit/plans/test_lock.py
Last updated: 2026-10-19

Purpose
- Validate checksum stability, function-name extraction, and the lock
  manager's scope answers.

What this test file should cover
- Paths match only exactly once normalized; a directory prefix is a different
  path, the same rule ``PlanManager.is_file_allowed`` answers with.
"""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from editgate.plans import PlanLockManager, PlanManager, compute_plan_checksum
from editgate.plans.lock import build_allowed_functions, extract_function_names
from editgate.plans.models import Plan

_SEGMENT = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789_-", min_size=1, max_size=12)


def _plan() -> Plan:
    return PlanManager().create_plan(
        {
            "title": "Retry",
            "description": "Add retry",
            "phases": [
                {
                    "title": "Implement",
                    "tasks": [
                        {
                            "description": "Wrap request",
                            "targetFile": "src/client.ts",
                            "targetFunction": "request",
                        }
                    ],
                    "affectedFiles": ["src/client.ts", "src/backoff.ts"],
                }
            ],
        }
    )


def test_checksum_is_stable_and_tracks_structure() -> None:
    plan = _plan()
    first = compute_plan_checksum(plan)

    assert compute_plan_checksum(plan) == first
    assert len(first) == 64

    plan.affected_files.append("src/extra.ts")
    assert compute_plan_checksum(plan) != first


def test_extract_function_names_covers_declaration_forms() -> None:
    content = "\n".join(
        [
            "export async function load() {}",
            "const run = async () => 1;",
            "const go = x => x;",
            "  render(props) {",
            "  if (ready) {",
        ]
    )

    assert extract_function_names(content) == ["load", "run", "go", "render"]


def test_lock_paths_match_exactly_after_normalizing() -> None:
    manager = PlanLockManager()
    manager.create_lock(_plan())

    assert manager.is_allowed("src/client.ts")
    assert manager.is_allowed("./src/client.ts")
    assert manager.is_allowed("src\\client.ts")
    assert not manager.is_allowed("repo/src/client.ts")
    assert not manager.is_allowed("client.ts")
    assert not manager.is_allowed("")


@given(st.lists(_SEGMENT, min_size=1, max_size=4), st.lists(_SEGMENT, min_size=1, max_size=3))
def test_lock_and_manager_agree_on_prefixed_paths(prefix: list[str], tail: list[str]) -> None:
    allowed = "/".join(tail)
    prefixed = "/".join([*prefix, *tail])
    manager = PlanManager()
    plan = manager.create_plan(
        {
            "title": "Scope",
            "description": "Touch one file",
            "phases": [
                {
                    "title": "Edit",
                    "tasks": [{"description": "Edit", "targetFile": allowed}],
                    "affectedFiles": [allowed],
                }
            ],
        }
    )
    assert manager.approve_plan(plan.id)
    locks = PlanLockManager()
    locks.create_lock(plan)

    assert manager.is_file_allowed(allowed) and locks.is_allowed(allowed)
    assert not manager.is_file_allowed(prefixed)
    assert not locks.is_allowed(prefixed)


def test_build_allowed_functions_pins_targets_and_supplied_files() -> None:
    plan = _plan()

    allowed = build_allowed_functions(
        plan,
        {
            "src/client.ts": "function ignored() {}",
            "./src/backoff.ts": "export function delayFor(attempt) {}",
        },
    )

    assert allowed == {"src/client.ts": ("request",), "src/backoff.ts": ("delayFor",)}


def test_lock_manager_answers_scope_queries() -> None:
    plan = _plan()
    manager = PlanLockManager()

    assert manager.is_allowed("anything")
    assert manager.get_allowed_functions("src/client.ts") is None

    lock = manager.create_lock(plan, locked_by="ci")

    assert lock.locked_by == "ci"
    assert manager.get_lock() is lock
    assert manager.is_allowed("src/client.ts")
    assert not manager.is_allowed("repo/src/client.ts")
    assert not manager.is_allowed("src/other.ts")
    assert manager.is_change_allowed("src/client.ts", "request")
    assert not manager.is_change_allowed("src/client.ts", "sneaky")
    assert manager.is_change_allowed("src/backoff.ts", "anything")
    assert manager.verify_integrity(plan)

    plan.phases[0].tasks[0].target_function = "other"
    assert not manager.verify_integrity(plan)

    manager.release_lock()
    assert manager.lock is None
    assert not manager.verify_integrity(plan)


def test_lock_round_trips_to_wire_form() -> None:
    lock = PlanLockManager().create_lock(_plan())

    wire = lock.to_dict()

    assert wire["allowedFiles"] == ["src/client.ts", "src/backoff.ts"]
    assert wire["allowedFunctions"] == {"src/client.ts": ["request"]}
    assert str(wire["lockedAt"]).endswith("Z")

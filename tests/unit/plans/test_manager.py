"""
editgate — unit tests for the plan manager

File: tests/unit/plans/test_manager.py
Last updated: 2026-10-19

Purpose
- Validate plan creation, structural validation, approval, the execution state
  machine, and scope queries against the active plan's lock.

What this test file should cover
- Transitions only happen from their documented source states.
- The lock exists iff the active plan is approved or in progress.
- Approval requests flag entry-point and security-sensitive files.
- ``complete_phase`` on a completed plan returns ``None`` and changes nothing.
- A plan's affected files are always the ordered union of its phases' files.
"""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from editgate.plans import (
    Complexity,
    PhaseStatus,
    PlanManager,
    PlanSpec,
    PlanStatus,
    TaskStatus,
)
from editgate.plans.manager import estimate_complexity, estimate_phase_tokens, explain_plan


def _two_phase_spec() -> dict[str, object]:
    return {
        "title": "Add retry",
        "description": "Add retry logic to the client",
        "phases": [
            {
                "title": "Helpers",
                "description": "Backoff helper",
                "tasks": [
                    "Write backoff helper",
                    {
                        "description": "Wire into client",
                        "targetFile": "./src/client.ts",
                        "targetFunction": "request",
                    },
                ],
                "affectedFiles": ["src/backoff.ts", "src/client.ts"],
            },
            {
                "title": "Tests",
                "description": "Cover retry",
                "tasks": ["Add retry tests"],
                "affectedFiles": ["src/client.test.ts", "src/client.ts"],
            },
        ],
        "assumptions": ["Server is idempotent"],
        "risks": ["Retry storms"],
    }


def test_create_plan_builds_phases_and_estimates() -> None:
    manager = PlanManager()

    plan = manager.create_plan(_two_phase_spec())

    assert plan.status is PlanStatus.DRAFT
    assert plan.id.startswith("plan-")
    assert plan.affected_files == ["src/backoff.ts", "src/client.ts", "src/client.test.ts"]
    first, second = plan.phases
    assert first.estimated_tokens == estimate_phase_tokens(2, 2) == 5_000
    assert second.estimated_tokens == 4_500
    assert plan.total_estimated_tokens == 9_500
    assert first.tasks[1].target_file == "src/client.ts"
    assert all(task.phase_id == first.id for task in first.tasks)
    assert plan.metadata.estimated_complexity is Complexity.LOW
    assert manager.get_plan(plan.id) is plan
    assert manager.list_plan_ids() == [plan.id]


def test_validate_plan_reports_structural_gaps() -> None:
    manager = PlanManager()
    empty = manager.create_plan({"title": " ", "description": "nothing"})
    partial = manager.create_plan(
        {"title": "Partial", "description": "d", "phases": [{"title": "", "affectedFiles": ["a"]}]}
    )

    assert manager.validate_plan(empty) == [
        "Plan missing title",
        "Plan has no phases",
        "Plan has no affected files listed",
    ]
    assert manager.validate_plan(partial) == ["Phase 1 missing title", "Phase 1 has no tasks"]
    assert not manager.approve_plan(empty.id)
    assert empty.status is PlanStatus.DRAFT


def test_approve_installs_lock_and_only_from_draft() -> None:
    manager = PlanManager()
    plan = manager.create_plan(_two_phase_spec())

    assert manager.get_plan_lock() is None
    assert manager.approve_plan(plan.id)
    assert not manager.approve_plan(plan.id)

    lock = manager.get_plan_lock()
    assert lock is not None
    assert lock.plan_id == plan.id
    assert lock.allowed_files == tuple(plan.affected_files)
    assert dict(lock.allowed_functions) == {"src/client.ts": ("request",)}
    assert plan.status is PlanStatus.APPROVED
    assert plan.approved_at is not None
    assert manager.get_active_plan() is plan
    assert manager.verify_lock_integrity()


def test_execution_walks_phases_to_completion() -> None:
    manager = PlanManager()
    plan = manager.create_plan(_two_phase_spec())

    assert not manager.start_execution(plan.id)
    manager.approve_plan(plan.id)
    assert manager.start_execution(plan.id)
    assert plan.status is PlanStatus.IN_PROGRESS
    assert plan.phases[0].status is PhaseStatus.IN_PROGRESS

    next_phase = manager.complete_phase(plan.id, tokens_used=1_200)
    assert next_phase is plan.phases[1]
    assert plan.current_phase_index == 1
    assert all(task.status is TaskStatus.COMPLETED for task in plan.phases[0].tasks)

    assert manager.complete_phase(plan.id, tokens_used=800) is None
    assert plan.status is PlanStatus.COMPLETED
    assert plan.current_phase_index == 1
    assert manager.get_active_plan() is None
    assert manager.get_plan_lock() is None

    summary = manager.get_execution_summary(plan.id)
    assert summary is not None
    assert summary.success
    assert (summary.phases_completed, summary.total_phases) == (2, 2)
    assert summary.tokens_used == 2_000
    assert summary.duration_ms >= 0


def test_fail_pause_resume_and_cancel() -> None:
    manager = PlanManager()
    plan = manager.create_plan(_two_phase_spec())
    manager.approve_plan(plan.id)

    assert not manager.fail_phase(plan.id, "too early")
    manager.start_execution(plan.id)
    assert manager.fail_phase(plan.id, "tests failed")
    assert plan.status is PlanStatus.PAUSED
    assert plan.phases[0].status is PhaseStatus.FAILED

    summary = manager.get_execution_summary(plan.id)
    assert summary is not None
    assert [failure.error for failure in summary.errors] == ["tests failed"]

    assert manager.resume_plan(plan.id)
    assert plan.status is PlanStatus.IN_PROGRESS
    assert plan.phases[0].status is PhaseStatus.IN_PROGRESS
    assert plan.phases[0].error is None
    assert not manager.resume_plan(plan.id)

    assert manager.cancel_plan(plan.id)
    assert plan.status is PlanStatus.CANCELLED
    assert manager.get_plan_lock() is None
    assert not manager.cancel_plan(plan.id)


def test_unknown_plan_ids_are_rejected_quietly() -> None:
    manager = PlanManager()

    assert not manager.approve_plan("plan-missing")
    assert not manager.start_execution("plan-missing")
    assert manager.complete_phase("plan-missing") is None
    assert manager.request_approval("plan-missing") is None
    assert manager.get_execution_summary("plan-missing") is None


def test_scope_queries_follow_the_lock() -> None:
    manager = PlanManager()
    plan = manager.create_plan(_two_phase_spec())

    assert manager.is_file_allowed("anything.ts")
    manager.approve_plan(plan.id)

    assert manager.is_file_allowed("src/client.ts")
    assert manager.is_file_allowed("./src/backoff.ts")
    assert not manager.is_file_allowed("repo/src/client.ts")
    assert not manager.is_file_allowed("src/other.ts")
    assert manager.is_change_allowed("src/client.ts", "request")
    assert not manager.is_change_allowed("src/client.ts", "sneaky")
    assert manager.is_change_allowed("src/backoff.ts", "anything")
    assert not manager.is_change_allowed("src/other.ts")


def test_lock_integrity_detects_plan_drift() -> None:
    manager = PlanManager()
    plan = manager.create_plan(_two_phase_spec())

    assert not manager.verify_lock_integrity()
    manager.approve_plan(plan.id)
    plan.phases[0].title = "Renamed"

    assert not manager.verify_lock_integrity()


def test_request_approval_flags_sensitive_files() -> None:
    manager = PlanManager()
    plan = manager.create_plan(
        {
            "title": "Auth",
            "description": "Harden login",
            "phases": [
                {
                    "title": "Login",
                    "tasks": ["Harden login"],
                    "affectedFiles": ["src/index.ts", "src/auth/session.ts"],
                }
            ],
            "risks": ["Lockouts", "Session loss"],
        }
    )

    request = manager.request_approval(plan.id)

    assert request is not None
    assert request.warnings == (
        "This plan modifies entry point files",
        "This plan modifies security-related files",
    )
    assert [item.type for item in request.required_confirmations] == [
        "file_modification",
        "security_impact",
    ]
    assert request.confidence == 89
    assert request.explanation.startswith("I'm going to harden login.")


def test_request_approval_confidence_has_a_floor() -> None:
    manager = PlanManager()
    plan = manager.create_plan(
        {
            "title": "Big",
            "description": "Everything",
            "phases": [
                {
                    "title": "All",
                    "tasks": ["Do it"],
                    "affectedFiles": [f"src/f{index}.ts" for index in range(6)],
                }
            ],
            "risks": [f"risk {index}" for index in range(20)],
        }
    )

    request = manager.request_approval(plan.id)

    assert plan.metadata.estimated_complexity is Complexity.HIGH
    assert request is not None
    assert request.confidence == 50


def test_estimate_complexity_thresholds() -> None:
    manager = PlanManager()

    def complexity(files: int, phases: int = 1) -> Complexity:
        plan = manager.create_plan(
            {
                "title": "t",
                "description": "d",
                "phases": [
                    {
                        "title": f"p{number}",
                        "tasks": ["x"],
                        "affectedFiles": [f"f{index}" for index in range(files)],
                    }
                    for number in range(phases)
                ],
            }
        )
        return estimate_complexity(plan.phases)

    assert complexity(3) is Complexity.LOW
    assert complexity(4) is Complexity.MEDIUM
    assert complexity(1, phases=3) is Complexity.MEDIUM
    assert complexity(1, phases=5) is Complexity.HIGH


def test_explain_plan_lists_phases_assumptions_and_risks() -> None:
    plan = PlanManager().create_plan(_two_phase_spec())

    text = explain_plan(plan)

    assert "1. Helpers: Backoff helper" in text
    assert "• Server is idempotent" in text
    assert "• Retry storms" in text


def test_plan_spec_accepts_snake_case_and_rejects_bad_shapes() -> None:
    spec = PlanSpec.from_dict(
        {
            "title": "t",
            "description": "d",
            "original_request": "please",
            "phases": [
                {
                    "title": "p",
                    "tasks": [{"description": "x", "target_file": "a.ts"}],
                    "affected_files": ["a.ts"],
                }
            ],
        }
    )

    assert spec.original_request == "please"
    assert spec.phases[0].tasks[0].target_file == "a.ts"
    assert spec.phases[0].affected_files == ("a.ts",)
    with pytest.raises(ValueError, match="planSpec.phases"):
        PlanSpec.from_dict({"title": "t", "phases": "nope"})


def test_clear_all_drops_plans_and_lock() -> None:
    manager = PlanManager()
    plan = manager.create_plan(_two_phase_spec())
    manager.approve_plan(plan.id)

    manager.clear_all()

    assert manager.list_plan_ids() == []
    assert manager.get_plan_lock() is None
    assert manager.get_active_plan() is None


def test_complete_phase_on_a_completed_plan_changes_nothing() -> None:
    manager = PlanManager()
    plan = manager.create_plan(_two_phase_spec())
    manager.approve_plan(plan.id)
    manager.start_execution(plan.id)
    manager.complete_phase(plan.id, tokens_used=100)
    assert manager.complete_phase(plan.id, tokens_used=100) is None
    assert plan.status is PlanStatus.COMPLETED
    before = plan.to_dict()

    assert manager.complete_phase(plan.id, tokens_used=999) is None

    assert plan.to_dict() == before
    assert plan.actual_tokens_used == 200
    assert manager.get_active_plan() is None


_PATH = st.lists(
    st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=1, max_size=6), min_size=1, max_size=3
).map(lambda parts: "src/" + "/".join(parts) + ".ts")


@given(st.lists(st.lists(_PATH, min_size=1, max_size=5), min_size=1, max_size=4))
def test_plan_affected_files_are_the_ordered_union_of_phase_files(
    phase_files: list[list[str]],
) -> None:
    plan = PlanManager().create_plan(
        {
            "title": "Union",
            "description": "Spread files over phases",
            "phases": [
                {"title": f"Phase {index}", "tasks": ["Edit"], "affectedFiles": files}
                for index, files in enumerate(phase_files)
            ],
        }
    )

    expected = list(dict.fromkeys(path for files in phase_files for path in files))
    assert plan.affected_files == expected
    assert plan.affected_files == list(
        dict.fromkeys(path for phase in plan.phases for path in phase.affected_files)
    )

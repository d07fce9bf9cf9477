"""
editgate — unit tests for the validation pipeline

File: tests/unit/pipeline/test_pipeline.py
Last updated: 2026-10-19

Purpose
- Validate mode selection, sequential execution, the plan scope pre-check,
  security early exit, crash containment, and result aggregation.

What this test file should cover
- A change outside an approved plan yields exactly one scope-guard result.
- A blocking security finding stops the run; later validators are absent.
- Only an error-severity result with a SEC_/SECRET_ error stops the run; a
  warning-severity scanner or a crashing security validator does not.
- ``run`` never raises for validator or factory failures, and a crash is
  recorded against its validator while every other result is kept.
- Strict mode reports at least as many issues as any single stage run alone.

Functional requirements
- No filesystem access except where a test builds its own tmp workspace.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from editgate.domain.models import FileChange, FileOperation, ValidatorContext
from editgate.pipeline import (
    MODE_VALIDATORS,
    ValidationPipeline,
    ValidatorMode,
    aggregate_results,
    context_from_changes,
    is_security_stop,
)
from editgate.plans import PlanManager
from editgate.validators.base import (
    DEFAULT_VALIDATOR_REGISTRY,
    BaseValidator,
    Severity,
    ValidationIssue,
    ValidationResult,
    ValidatorCategory,
    ValidatorRegistry,
    ValidatorStage,
)

BENIGN = "export const answer = 1;\n"


def _context(*changes: FileChange, **kwargs: object) -> ValidatorContext:
    return ValidatorContext(changes=changes, **kwargs)  # type: ignore[arg-type]


def _change(path: str, content: str = BENIGN, **kwargs: object) -> FileChange:
    kwargs.setdefault("operation", FileOperation.UPDATE)
    kwargs.setdefault("explanation", "Update module")
    return FileChange(path=path, content=content, **kwargs)  # type: ignore[arg-type]


def _approved_manager(affected: list[str], *, target_function: str | None = None) -> PlanManager:
    manager = PlanManager()
    task: dict[str, object] = {"description": "Add retry", "targetFile": affected[0]}
    if target_function is not None:
        task["targetFunction"] = target_function
    plan = manager.create_plan(
        {
            "title": "Retry",
            "description": "Add retry to the client",
            "phases": [{"title": "Implement", "tasks": [task], "affectedFiles": affected}],
        }
    )
    assert manager.approve_plan(plan.id)
    return manager


class _BrokenFactoryError(RuntimeError):
    pass


def _broken_factory() -> BaseValidator:
    raise _BrokenFactoryError("factory failed")


class _WarningValidator(BaseValidator):
    name = "warns"
    stage = ValidatorStage.SCOPE

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        return [self.create_issue("src/a.ts", "looks odd", Severity.WARNING)]


class _TrailingValidator(_WarningValidator):
    name = "after"
    stage = ValidatorStage.INTEGRITY


class _MangledResultValidator(BaseValidator):
    name = "mangled"
    stage = ValidatorStage.QUALITY

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        return [None]  # type: ignore[list-item]


class _CrashingSecurityValidator(BaseValidator):
    name = "guard"
    stage = ValidatorStage.QUALITY
    category = ValidatorCategory.SECURITY

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        raise RuntimeError("scanner unavailable")


def test_mode_tables() -> None:
    assert len(MODE_VALIDATORS[ValidatorMode.STRICT]) == 29
    assert len(set(MODE_VALIDATORS[ValidatorMode.STRICT])) == 29
    assert MODE_VALIDATORS[ValidatorMode.FAST] == (
        "syntax-validator",
        "type-integrity",
        "import-export",
        "scope-guard",
        "hook-rules-checker",
        "api-existence-validator",
    )
    assert "docker-best-practices" in MODE_VALIDATORS[ValidatorMode.INFRASTRUCTURE_FOCUS]
    assert "secrets-exposure-checker" in MODE_VALIDATORS[ValidatorMode.INTEGRATION_FOCUS]
    assert MODE_VALIDATORS[ValidatorMode.AI_ACCURACY_FOCUS][-1] == "doc-sync-validator"
    assert ValidationPipeline.modes() == tuple(ValidatorMode)


def test_custom_validators_switch_mode_and_reject_unknown_names() -> None:
    pipeline = ValidationPipeline(custom_validators=["syntax-validator"])

    assert pipeline.mode is ValidatorMode.CUSTOM
    assert pipeline.validators_for_mode() == ("syntax-validator",)
    with pytest.raises(ValueError, match="unknown validators"):
        pipeline.set_custom_validators(["syntax-validator", "no-such-validator"])
    assert pipeline.validators_for_mode() == ("syntax-validator",)

    pipeline.set_mode("fast")
    assert pipeline.validators_for_mode() == MODE_VALIDATORS[ValidatorMode.FAST]


@pytest.mark.asyncio
async def test_fast_mode_runs_validators_in_table_order() -> None:
    pipeline = ValidationPipeline(mode="fast")

    outcome = await pipeline.run(_context(_change("src/a.ts")))

    assert outcome.passed
    assert outcome.mode is ValidatorMode.FAST
    assert tuple(result.validator for result in outcome.results) == MODE_VALIDATORS[
        ValidatorMode.FAST
    ]
    assert not outcome.early_exit


@pytest.mark.asyncio
async def test_disabled_validators_are_skipped() -> None:
    pipeline = ValidationPipeline(
        mode="fast", validator_settings={"syntax-validator": {"enabled": False}}
    )

    outcome = await pipeline.run(_context(_change("src/a.ts", "function f() {")))

    names = [result.validator for result in outcome.results]
    assert "syntax-validator" not in names
    assert len(names) == 5


@pytest.mark.asyncio
async def test_security_finding_stops_the_run_early() -> None:
    secret = "sk-live-" + "a" * 30
    pipeline = ValidationPipeline(mode="strict")

    outcome = await pipeline.run(_context(_change("x.ts", f'const key = "{secret}";')))

    assert not outcome.passed
    assert outcome.early_exit
    names = [result.validator for result in outcome.results]
    assert names[-1] == "security-scanner"
    assert names == list(MODE_VALIDATORS[ValidatorMode.STRICT][: len(names)])
    assert "secrets-exposure-checker" not in names
    assert any(issue.code == "SEC_HARDCODED_SECRET" for issue in outcome.must_fix())


@pytest.mark.asyncio
async def test_change_outside_active_plan_yields_single_scope_result() -> None:
    manager = _approved_manager(["src/a.ts"])
    pipeline = ValidationPipeline(mode="strict", plan_manager=manager)

    outcome = await pipeline.run(_context(_change("src/b.ts")))

    assert not outcome.passed
    assert [result.validator for result in outcome.results] == ["scope-guard"]
    issue = outcome.results[0].issues[0]
    assert issue.code == "SCOPE_FILE_NOT_ALLOWED"
    assert issue.message == "File src/b.ts is not in the approved plan"
    assert outcome.errors == 1
    assert outcome.total_issues == 1


@pytest.mark.asyncio
async def test_explicit_plan_argument_controls_scope() -> None:
    manager = _approved_manager(["src/a.ts"])
    plan = manager.get_active_plan()
    assert plan is not None
    pipeline = ValidationPipeline(custom_validators=["syntax-validator"])

    blocked = await pipeline.run(_context(_change("src/b.ts")), plan=plan)
    allowed = await pipeline.run(_context(_change("src/a.ts")), plan=plan)

    assert [result.validator for result in blocked.results] == ["scope-guard"]
    assert allowed.passed
    assert [result.validator for result in allowed.results] == ["syntax-validator"]


@pytest.mark.asyncio
async def test_plan_lock_is_injected_into_validator_config() -> None:
    manager = _approved_manager(["src/a.ts"], target_function="allowed")
    pipeline = ValidationPipeline(custom_validators=["scope-guard"], plan_manager=manager)
    diff = "\n".join(["+function allowed() {", "+function sneaky() {"])

    outcome = await pipeline.run(
        _context(_change("src/a.ts", "function allowed() {}\nfunction sneaky() {}", diff=diff))
    )

    assert not outcome.passed
    assert [issue.code for issue in outcome.issues] == ["SCOPE_FUNCTION_NOT_ALLOWED"]


@pytest.mark.asyncio
async def test_explicit_plan_lock_is_injected_without_a_plan_manager() -> None:
    plan = _approved_manager(["src/a.ts"], target_function="allowed").get_active_plan()
    assert plan is not None
    pipeline = ValidationPipeline(custom_validators=["scope-guard"])
    diff = "\n".join(["+function allowed() {", "+function sneaky() {"])

    outcome = await pipeline.run(
        _context(_change("src/a.ts", "function allowed() {}\nfunction sneaky() {}", diff=diff)),
        plan=plan,
    )

    assert not outcome.passed
    assert [issue.code for issue in outcome.issues] == ["SCOPE_FUNCTION_NOT_ALLOWED"]


@pytest.mark.asyncio
async def test_checkpoint_payload_is_lifted_into_pipeline_result() -> None:
    pipeline = ValidationPipeline(custom_validators=["rollback-checkpoint"])

    outcome = await pipeline.run(
        _context(_change("src/a.ts"), existing_files={"src/a.ts": "old"}, plan_id="plan-1")
    )

    assert outcome.passed
    assert outcome.checkpoint is not None
    assert outcome.checkpoint.paths == ("src/a.ts",)
    assert outcome.to_dict()["checkpoint"]["planId"] == "plan-1"  # type: ignore[index]


@pytest.mark.asyncio
async def test_factory_failure_is_attributed_to_its_validator() -> None:
    registry = ValidatorRegistry()
    registry.register("broken", _broken_factory, stage=ValidatorStage.QUALITY)
    pipeline = ValidationPipeline(registry, custom_validators=["broken"])

    outcome = await pipeline.run(_context(_change("src/a.ts")))

    assert not outcome.passed
    assert [result.validator for result in outcome.results] == ["broken"]
    assert outcome.results[0].issues[0].message == "Validator error: factory failed"


@pytest.mark.asyncio
async def test_crashing_validator_keeps_earlier_and_later_results() -> None:
    registry = ValidatorRegistry()
    registry.register("warns", _WarningValidator, stage=ValidatorStage.SCOPE)
    registry.register("mangled", _MangledResultValidator, stage=ValidatorStage.QUALITY)
    registry.register("broken", _broken_factory, stage=ValidatorStage.QUALITY)
    registry.register("after", _TrailingValidator, stage=ValidatorStage.INTEGRITY)
    pipeline = ValidationPipeline(
        registry, custom_validators=["warns", "mangled", "broken", "after"]
    )

    outcome = await pipeline.run(_context(_change("src/a.ts")))

    assert not outcome.passed
    assert not outcome.early_exit
    names = [result.validator for result in outcome.results]
    assert names == ["warns", "mangled", "broken", "after"]
    assert outcome.warnings == 2
    assert outcome.errors == 2
    mangled = outcome.results[1]
    assert not mangled.passed
    assert mangled.issues[0].message.startswith("Validator error:")


@pytest.mark.asyncio
async def test_security_scanner_configured_as_warning_does_not_stop_the_run() -> None:
    pipeline = ValidationPipeline(
        custom_validators=["security-scanner", "syntax-validator"],
        validator_settings={"security-scanner": {"severity": "warning"}},
    )

    outcome = await pipeline.run(_context(_change("src/a.ts", "const y = eval(x);\n")))

    assert not outcome.early_exit
    names = [result.validator for result in outcome.results]
    assert "security-scanner" in names
    assert "syntax-validator" in names
    assert any(issue.code == "SEC_EVAL" for issue in outcome.issues)


@pytest.mark.asyncio
async def test_crashing_security_validator_does_not_stop_the_run() -> None:
    registry = ValidatorRegistry()
    registry.register("guard", _CrashingSecurityValidator, stage=ValidatorStage.QUALITY)
    registry.register("after", _TrailingValidator, stage=ValidatorStage.INTEGRITY)
    pipeline = ValidationPipeline(registry, custom_validators=["guard", "after"])

    outcome = await pipeline.run(_context(_change("src/a.ts")))

    assert not outcome.early_exit
    assert [result.validator for result in outcome.results] == ["guard", "after"]
    assert outcome.results[0].issues[0].message == "Validator error: scanner unavailable"


def test_is_security_stop_needs_error_severity_and_security_code() -> None:
    secret = ValidationIssue(file="a", message="m", severity=Severity.ERROR, code="SECRET_LOGGED")
    injected = ValidationIssue(file="a", message="m", severity=Severity.ERROR, code="SEC_EVAL")
    plain = ValidationIssue(file="a", message="m", severity=Severity.ERROR, code="SYNTAX_X")
    crash = ValidationIssue(file="", message="Validator error: boom", severity=Severity.ERROR)

    def failed(issue: ValidationIssue, severity: Severity = Severity.ERROR) -> ValidationResult:
        return ValidationResult(validator="v", passed=False, severity=severity, issues=(issue,))

    assert is_security_stop(failed(secret))
    assert is_security_stop(failed(injected))
    assert not is_security_stop(failed(injected, Severity.WARNING))
    assert not is_security_stop(failed(plain))
    assert not is_security_stop(failed(crash))
    assert not is_security_stop(ValidationResult(validator="v", passed=True, severity="error"))


@pytest.mark.asyncio
async def test_strict_mode_reports_at_least_what_each_stage_reports_alone() -> None:
    content = "var count = 1;\nconsole.log(count);\nexport const answer: any = count;\n"
    context = _context(_change("src/a.ts", content))
    strict = ValidationPipeline(mode="strict")

    full = await strict.run(context)

    assert not full.early_exit
    assert full.warnings > 0
    strict_names = set(MODE_VALIDATORS[ValidatorMode.STRICT])
    for stage in ValidatorStage:
        names = [
            name
            for name in DEFAULT_VALIDATOR_REGISTRY.names_for_stage(stage)
            if name in strict_names
        ]
        if not names:
            continue
        alone = await ValidationPipeline(custom_validators=names).run(context)
        assert full.total_issues >= alone.total_issues, stage
        assert full.errors >= alone.errors, stage


def test_aggregate_results_counts_and_groups() -> None:
    warning = ValidationIssue(file="a", message="w", severity=Severity.WARNING)
    error = ValidationIssue(file="a", message="e", severity=Severity.ERROR)
    results = [
        ValidationResult(validator="one", passed=True, severity="error", issues=(warning,)),
        ValidationResult(validator="two", passed=False, severity="error", issues=(error,)),
    ]

    outcome = aggregate_results(results, duration_ms=1.5, mode=ValidatorMode.CUSTOM)

    assert not outcome.passed
    assert (outcome.total_issues, outcome.errors, outcome.warnings) == (2, 1, 1)
    assert outcome.must_fix() == [error]
    assert outcome.suggestions() == [warning]
    assert outcome.issues_by_validator() == {"one": [warning], "two": [error]}
    assert outcome.to_dict()["mode"] == "custom"


def test_context_from_changes_reads_pre_images(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "a.ts").write_text("old a", encoding="utf-8")

    context = context_from_changes(
        [
            {"path": "src/a.ts", "operation": "update", "content": "new a"},
            {"path": "src/new.ts", "operation": "create", "content": "x"},
            {"path": "src/gone.ts", "operation": "delete"},
        ],
        project_path=tmp_path,
    )

    assert dict(context.existing_files) == {"src/a.ts": "old a"}
    assert context.project_path == str(tmp_path)

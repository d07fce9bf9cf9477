"""
editgate — validation pipeline

File: src/editgate/pipeline.py
Last updated: 2026-10-19

Purpose
- Run an ordered list of validators over one proposed edit and fold their
  results into a single verdict.

What should be included in this file
- Mode table (strict, fast, focus modes, custom) over validator names.
- ``ValidationPipeline.run`` with the scope pre-check, sequential execution,
  security early exit, aggregation, and checkpoint lift.

Functional requirements
- Validators run strictly sequentially in mode order on the same context.
- An active plan's scope violations short-circuit the run with one synthetic
  ``scope-guard`` result; nothing else runs.
- A failed security finding of severity ``error`` stops the run; validators
  that did not run are absent from ``results``.
- ``run`` never raises (cancellation excepted).

Non-functional requirements
- No timeouts here; callers bound latency externally.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final, Protocol

import structlog

import editgate.validators  # noqa: F401  registers the built-in validators
from editgate.checkpoints.models import RollbackCheckpoint
from editgate.domain.models import FileOperation, ValidatorContext, build_context
from editgate.domain.validation import normalize_change_path
from editgate.plans.lock import build_plan_lock
from editgate.utils.fs import read_text_if_exists, resolve_in_workspace
from editgate.validators.base import (
    DEFAULT_VALIDATOR_REGISTRY,
    BaseValidator,
    Severity,
    ValidationIssue,
    ValidationResult,
    ValidatorRegistry,
)
from editgate.validators.payloads import CheckpointPayload

if TYPE_CHECKING:
    from editgate.plans.models import Plan, PlanLock

SCOPE_GUARD: Final[str] = "scope-guard"
SECURITY_CODE_PREFIXES: Final[tuple[str, ...]] = ("SEC_", "SECRET_")


class ValidatorMode(StrEnum):
    STRICT = "strict"
    FAST = "fast"
    INTEGRATION_FOCUS = "integration-focus"
    INFRASTRUCTURE_FOCUS = "infrastructure-focus"
    AI_ACCURACY_FOCUS = "ai-accuracy-focus"
    CUSTOM = "custom"


CORE_VALIDATORS: Final[tuple[str, ...]] = (
    "scope-guard",
    "hallucination-detector",
    "change-size-monitor",
    "syntax-validator",
    "best-practices",
    "security-scanner",
    "type-integrity",
    "import-export",
    "test-preservation",
    "plan-compliance",
    "breaking-change",
    "snapshot-diff",
    "rollback-checkpoint",
)
INTEGRATION_VALIDATORS: Final[tuple[str, ...]] = (
    "api-contract-validator",
    "auth-flow-validator",
    "secrets-exposure-checker",
)
INFRASTRUCTURE_VALIDATORS: Final[tuple[str, ...]] = (
    "environment-consistency",
    "docker-best-practices",
    "cloud-config-validator",
)
ACCURACY_VALIDATORS: Final[tuple[str, ...]] = (
    "api-existence-validator",
    "dependency-verifier",
    "deprecation-detector",
    "style-matcher",
    "complexity-analyzer",
    "edge-case-checker",
    "refactor-completeness",
    "doc-sync-validator",
)
SPECIALIST_VALIDATORS: Final[tuple[str, ...]] = (
    "hook-rules-checker",
    "event-leak-detector",
    "api-contract-validator",
    "auth-flow-validator",
    "environment-consistency",
    "secrets-exposure-checker",
    "docker-best-practices",
    "cloud-config-validator",
)

MODE_VALIDATORS: Final[Mapping[ValidatorMode, tuple[str, ...]]] = {
    ValidatorMode.STRICT: (
        *CORE_VALIDATORS,
        *SPECIALIST_VALIDATORS,
        *ACCURACY_VALIDATORS,
    ),
    ValidatorMode.FAST: (
        "syntax-validator",
        "type-integrity",
        "import-export",
        "scope-guard",
        "hook-rules-checker",
        "api-existence-validator",
    ),
    ValidatorMode.INTEGRATION_FOCUS: (*CORE_VALIDATORS, *INTEGRATION_VALIDATORS),
    ValidatorMode.INFRASTRUCTURE_FOCUS: (*CORE_VALIDATORS, *INFRASTRUCTURE_VALIDATORS),
    ValidatorMode.AI_ACCURACY_FOCUS: (*CORE_VALIDATORS, *ACCURACY_VALIDATORS),
    ValidatorMode.CUSTOM: (),
}


class ScopeAuthority(Protocol):
    """What the pipeline needs from a plan manager."""

    def get_active_plan(self) -> Plan | None: ...

    def get_plan_lock(self) -> PlanLock | None: ...

    def is_file_allowed(self, path: str) -> bool: ...


@dataclass(frozen=True, slots=True)
class ValidationPipelineResult:
    passed: bool
    results: tuple[ValidationResult, ...]
    total_issues: int
    errors: int
    warnings: int
    duration_ms: float
    mode: ValidatorMode
    checkpoint: RollbackCheckpoint | None = None
    early_exit: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "results", tuple(self.results))

    @property
    def issues(self) -> tuple[ValidationIssue, ...]:
        return tuple(issue for result in self.results for issue in result.issues)

    def must_fix(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity is Severity.ERROR]

    def suggestions(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity is not Severity.ERROR]

    def issues_by_validator(self) -> dict[str, list[ValidationIssue]]:
        grouped: dict[str, list[ValidationIssue]] = {}
        for result in self.results:
            grouped.setdefault(result.validator, []).extend(result.issues)
        return grouped

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "passed": self.passed,
            "mode": self.mode.value,
            "results": [result.to_dict() for result in self.results],
            "totalIssues": self.total_issues,
            "errors": self.errors,
            "warnings": self.warnings,
            "duration": round(self.duration_ms, 3),
            "earlyExit": self.early_exit,
        }
        if self.checkpoint is not None:
            payload["checkpoint"] = self.checkpoint.to_dict()
        return payload


def aggregate_results(
    results: Sequence[ValidationResult],
    *,
    duration_ms: float,
    mode: ValidatorMode,
    early_exit: bool = False,
) -> ValidationPipelineResult:
    checkpoint: RollbackCheckpoint | None = None
    for result in results:
        if isinstance(result.payload, CheckpointPayload):
            checkpoint = result.payload.checkpoint
    return ValidationPipelineResult(
        passed=all(result.passed for result in results),
        results=tuple(results),
        total_issues=sum(len(result.issues) for result in results),
        errors=sum(result.error_count for result in results),
        warnings=sum(result.warning_count for result in results),
        duration_ms=duration_ms,
        mode=mode,
        checkpoint=checkpoint,
        early_exit=early_exit,
    )


def crash_result(validator: str, exc: BaseException) -> ValidationResult:
    """Failed error result standing in for a validator that raised."""

    return ValidationResult(
        validator=validator,
        passed=False,
        severity=Severity.ERROR,
        issues=(
            ValidationIssue(
                file="",
                message=f"Validator error: {exc}",
                severity=Severity.ERROR,
            ),
        ),
    )


def is_security_stop(result: ValidationResult) -> bool:
    """
    A failed error-severity result with a ``SEC_``/``SECRET_`` error issue ends the run.

    Crash issues carry no code, so a crashing security validator does not stop it.
    """

    if result.passed or result.severity is not Severity.ERROR:
        return False
    return any(
        issue.is_error and (issue.code or "").startswith(SECURITY_CODE_PREFIXES)
        for issue in result.issues
    )


class ValidationPipeline:
    """Sequential validator runner producing one aggregated verdict."""

    def __init__(
        self,
        registry: ValidatorRegistry | None = None,
        *,
        mode: ValidatorMode | str = ValidatorMode.STRICT,
        custom_validators: Iterable[str] = (),
        plan_manager: ScopeAuthority | None = None,
        logger: Any | None = None,
        validator_settings: Mapping[str, Mapping[str, object]] | None = None,
    ) -> None:
        self._registry = registry if registry is not None else DEFAULT_VALIDATOR_REGISTRY
        self._plan_manager = plan_manager
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._validators: dict[str, BaseValidator] = {}
        self._mode = ValidatorMode(mode)
        self._custom: tuple[str, ...] = ()
        custom = tuple(custom_validators)
        if custom or self._mode is ValidatorMode.CUSTOM:
            self.set_custom_validators(custom)
        for name, settings in (validator_settings or {}).items():
            self.configure_validator(
                name,
                enabled=_optional_bool(settings.get("enabled")),
                severity=_optional_str(settings.get("severity")),
                options=_optional_mapping(settings.get("options")),
            )

    @property
    def mode(self) -> ValidatorMode:
        return self._mode

    @property
    def registry(self) -> ValidatorRegistry:
        return self._registry

    @staticmethod
    def modes() -> tuple[ValidatorMode, ...]:
        return tuple(ValidatorMode)

    def set_mode(self, mode: ValidatorMode | str) -> None:
        self._mode = ValidatorMode(mode)

    def set_custom_validators(self, names: Iterable[str]) -> None:
        wanted = tuple(names)
        unknown = [name for name in wanted if not self._registry.contains(name)]
        if unknown:
            known = ", ".join(self._registry.registered_names())
            raise ValueError(f"unknown validators: {unknown}; registered: [{known}]")
        self._custom = wanted
        self._mode = ValidatorMode.CUSTOM

    def validators_for_mode(self, mode: ValidatorMode | str | None = None) -> tuple[str, ...]:
        selected = self._mode if mode is None else ValidatorMode(mode)
        if selected is ValidatorMode.CUSTOM:
            return self._custom
        return MODE_VALIDATORS[selected]

    def get_validator(self, name: str) -> BaseValidator:
        validator = self._validators.get(name)
        if validator is None:
            validator = self._registry.create(name)
            self._validators[name] = validator
        return validator

    def configure_validator(
        self,
        name: str,
        *,
        enabled: bool | None = None,
        severity: Severity | str | None = None,
        options: Mapping[str, object] | None = None,
    ) -> None:
        self.get_validator(name).configure(enabled=enabled, severity=severity, options=options)

    async def run(
        self, context: ValidatorContext, *, plan: Plan | None = None
    ) -> ValidationPipelineResult:
        started = time.perf_counter()
        names = self.validators_for_mode()
        self._logger.info(
            "pipeline_started",
            mode=self._mode.value,
            validators=len(names),
            changes=len(context.changes),
        )
        results: list[ValidationResult] = []
        early_exit = False
        try:
            scope_result = self._scope_precheck(context, plan)
            if scope_result is not None:
                result = aggregate_results(
                    [scope_result], duration_ms=_elapsed_ms(started), mode=self._mode
                )
                self._logger.warning(
                    "pipeline_scope_violation",
                    violations=len(scope_result.issues),
                    duration_ms=result.duration_ms,
                )
                return result

            run_context = self._with_plan_lock(context, plan)
            for name in names:
                try:
                    validator = self.get_validator(name)
                    if not validator.enabled:
                        continue
                    result = await validator.run(run_context)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:  # noqa: BLE001 - becomes this validator's result
                    self._logger.error(
                        "validator_crashed", validator=name, error=f"{type(exc).__name__}: {exc}"
                    )
                    result = crash_result(name, exc)
                results.append(result)
                if is_security_stop(result):
                    early_exit = True
                    self._logger.warning(
                        "pipeline_early_exit",
                        validator=name,
                        errors=result.error_count,
                        skipped=len(names) - names.index(name) - 1,
                    )
                    break
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - the pipeline always returns a verdict
            self._logger.error("pipeline_crashed", error=f"{type(exc).__name__}: {exc}")
            return aggregate_results(
                [*results, crash_result("pipeline", exc)],
                duration_ms=_elapsed_ms(started),
                mode=self._mode,
            )

        outcome = aggregate_results(
            results, duration_ms=_elapsed_ms(started), mode=self._mode, early_exit=early_exit
        )
        self._logger.info(
            "pipeline_finished",
            mode=self._mode.value,
            passed=outcome.passed,
            errors=outcome.errors,
            warnings=outcome.warnings,
            total_issues=outcome.total_issues,
            early_exit=outcome.early_exit,
            duration_ms=round(outcome.duration_ms, 3),
        )
        return outcome

    def _scope_precheck(
        self, context: ValidatorContext, plan: Plan | None
    ) -> ValidationResult | None:
        started = time.perf_counter()
        disallowed = [path for path in context.changed_paths if not self._path_allowed(path, plan)]
        if not disallowed:
            return None
        issues = tuple(
            ValidationIssue(
                file=path,
                message=f"File {path} is not in the approved plan",
                severity=Severity.ERROR,
                code="SCOPE_FILE_NOT_ALLOWED",
                suggestion="Update the plan to include this file or remove the change",
            )
            for path in disallowed
        )
        return ValidationResult(
            validator=SCOPE_GUARD,
            passed=False,
            severity=Severity.ERROR,
            issues=issues,
            duration_ms=_elapsed_ms(started),
        )

    def _path_allowed(self, path: str, plan: Plan | None) -> bool:
        if plan is not None:
            if not plan.status.holds_lock:
                return True
            return normalize_change_path(path) in plan.affected_files
        if self._plan_manager is not None and self._plan_manager.get_active_plan() is not None:
            return self._plan_manager.is_file_allowed(path)
        return True

    def _with_plan_lock(self, context: ValidatorContext, plan: Plan | None) -> ValidatorContext:
        """Expose the governing plan's lock to validators as ``config["planLock"]``."""

        if "planLock" in context.config:
            return context
        if plan is not None:
            lock = build_plan_lock(plan) if plan.status.holds_lock else None
        elif self._plan_manager is not None:
            lock = self._plan_manager.get_plan_lock()
        else:
            lock = None
        if lock is None:
            return context
        return dataclasses.replace(context, config={**context.config, "planLock": lock.to_dict()})


def load_existing_files(project_path: str | Path, paths: Iterable[str]) -> dict[str, str]:
    """Read current on-disk content for each path that exists inside the workspace."""

    existing: dict[str, str] = {}
    for path in paths:
        content = read_text_if_exists(resolve_in_workspace(project_path, path))
        if content is not None:
            existing[path] = content
    return existing


def context_from_changes(
    changes: Iterable[Mapping[str, object]],
    *,
    project_path: str | Path = ".",
    existing_files: Mapping[str, str] | None = None,
    config: Mapping[str, object] | None = None,
    plan_id: str | None = None,
    phase_id: str | None = None,
) -> ValidatorContext:
    """
    Build a context, reading pre-images from disk for update/delete targets that
    ``existing_files`` does not already supply.
    """

    context = build_context(
        changes,
        existing_files,
        project_path=str(project_path),
        plan_id=plan_id,
        phase_id=phase_id,
        config=config,
    )
    missing = [
        change.path
        for change in context.changes
        if change.operation in (FileOperation.UPDATE, FileOperation.DELETE)
        and change.path not in context.existing_files
    ]
    if not missing:
        return context
    loaded = load_existing_files(project_path, missing)
    return dataclasses.replace(context, existing_files={**context.existing_files, **loaded})


def _elapsed_ms(started: float) -> float:
    return max(0.0, (time.perf_counter() - started) * 1000.0)


def _optional_bool(value: object) -> bool | None:
    return None if value is None else bool(value)


def _optional_str(value: object) -> str | None:
    return None if value is None else str(value)


def _optional_mapping(value: object) -> Mapping[str, object] | None:
    return value if isinstance(value, Mapping) else None


__all__ = [
    "ACCURACY_VALIDATORS",
    "CORE_VALIDATORS",
    "INFRASTRUCTURE_VALIDATORS",
    "INTEGRATION_VALIDATORS",
    "MODE_VALIDATORS",
    "SPECIALIST_VALIDATORS",
    "ScopeAuthority",
    "ValidationPipeline",
    "ValidationPipelineResult",
    "ValidatorMode",
    "aggregate_results",
    "build_context",
    "context_from_changes",
    "crash_result",
    "is_security_stop",
    "load_existing_files",
]

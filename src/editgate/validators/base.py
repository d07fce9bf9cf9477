"""
editgate — validator contracts

File: src/editgate/validators/base.py
Last updated: 2026-10-19

Purpose
- Define the validator interface: a ``ValidatorContext`` in, a ``ValidationResult`` out.
- Provide the deterministic validator registry used by the pipeline's mode tables.

What should be included in this file
- Severity / stage / category enums, issue and result records.
- ``BaseValidator`` with the timing and exception-safe ``run`` wrapper.
- Registry plus the ``register_builtin_validator`` decorator.

Functional requirements
- ``ValidationResult.passed`` is true iff no issue of severity ``error`` was produced.
- A validator that raises yields exactly one synthetic ``error`` issue and never propagates.
- Disabled validators pass with no issues.

Non-functional requirements
- ``validate`` is synchronous CPU-bound work; ``run`` is the async boundary.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar, Literal, NoReturn, TypeVar

import structlog

if TYPE_CHECKING:
    from editgate.domain.models import ValidatorContext
    from editgate.validators.payloads import ValidatorPayload


ValidatorSource = Literal["builtin", "external"]
ValidatorFactory = Callable[[], "BaseValidator"]

_MAX_NAME_LENGTH = 128


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ValidatorStage(StrEnum):
    """Validator stages in pipeline execution order."""

    SCOPE = "scope"
    QUALITY = "quality"
    INTEGRITY = "integrity"
    COMPLIANCE = "compliance"
    SPECIALIST = "specialist"
    ACCURACY = "accuracy"


STAGE_ORDER: tuple[ValidatorStage, ...] = tuple(ValidatorStage)


class ValidatorCategory(StrEnum):
    GENERAL = "general"
    SECURITY = "security"


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """Atomic unit of feedback; no identity beyond its content."""

    file: str
    message: str
    severity: Severity
    line: int | None = None
    code: str | None = None
    suggestion: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.file, str):
            raise TypeError("ValidationIssue.file must be a string")
        if not isinstance(self.message, str) or not self.message:
            raise ValueError("ValidationIssue.message must be a non-empty string")
        object.__setattr__(self, "severity", Severity(self.severity))
        if self.line is not None and (isinstance(self.line, bool) or self.line < 0):
            raise ValueError("ValidationIssue.line must be >= 0")

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "file": self.file,
            "message": self.message,
            "severity": self.severity.value,
        }
        if self.line is not None:
            payload["line"] = self.line
        if self.code is not None:
            payload["code"] = self.code
        if self.suggestion is not None:
            payload["suggestion"] = self.suggestion
        return payload


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """One validator's verdict for one pipeline run."""

    validator: str
    passed: bool
    severity: Severity
    issues: tuple[ValidationIssue, ...] = ()
    duration_ms: float = 0.0
    payload: ValidatorPayload | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "issues", tuple(self.issues))
        object.__setattr__(self, "severity", Severity(self.severity))
        has_error = any(issue.is_error for issue in self.issues)
        if self.passed == has_error:
            raise ValueError(
                f"ValidationResult.passed must be {not has_error} for validator {self.validator!r}"
            )
        if self.duration_ms < 0:
            raise ValueError("ValidationResult.duration_ms must be >= 0")

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity is Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity is Severity.WARNING)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "validator": self.validator,
            "passed": self.passed,
            "severity": self.severity.value,
            "issues": [issue.to_dict() for issue in self.issues],
            "duration": round(self.duration_ms, 3),
        }
        if self.payload is not None:
            payload["payload"] = self.payload.to_dict()
        return payload


class BaseValidator(ABC):
    """
    Stateless policy unit.

    Subclasses set ``name`` and ``stage`` and implement ``validate``. Per-instance
    configuration (``enabled``, ``severity``, ``options``) is owned by the pipeline
    that created the instance.
    """

    name: ClassVar[str] = ""
    stage: ClassVar[ValidatorStage]
    default_severity: ClassVar[Severity] = Severity.ERROR
    category: ClassVar[ValidatorCategory] = ValidatorCategory.GENERAL
    default_options: ClassVar[Mapping[str, object]] = {}

    def __init__(self, *, logger: Any | None = None) -> None:
        self.enabled = True
        self.severity = self.default_severity
        self.options: dict[str, object] = dict(self.default_options)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @abstractmethod
    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        """Return every issue found for ``context``; must not mutate it."""

    def evaluate(
        self, context: ValidatorContext
    ) -> tuple[list[ValidationIssue], ValidatorPayload | None]:
        """Issues plus the validator-specific payload; payload-producing validators override."""

        return self.validate(context), None

    async def run(self, context: ValidatorContext) -> ValidationResult:
        if not self.enabled:
            return self._result([], 0.0)

        started = time.perf_counter()
        try:
            issues, payload = self.evaluate(context)
            result = self._result(issues, _duration_ms(started), payload)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - validator failures become issues
            duration_ms = _duration_ms(started)
            self._logger.error(
                "validator_crashed",
                validator=self.name,
                error=f"{type(exc).__name__}: {exc}",
                duration_ms=duration_ms,
            )
            crash = ValidationIssue(
                file="",
                message=f"Validator error: {exc}",
                severity=Severity.ERROR,
            )
            return self._result([crash], duration_ms)

        self._logger.debug(
            "validator_finished",
            validator=self.name,
            passed=result.passed,
            issues=len(result.issues),
            duration_ms=result.duration_ms,
        )
        return result

    def configure(
        self,
        *,
        enabled: bool | None = None,
        severity: Severity | str | None = None,
        options: Mapping[str, object] | None = None,
    ) -> None:
        if enabled is not None:
            self.enabled = bool(enabled)
        if severity is not None:
            self.severity = Severity(severity)
        if options:
            self.options = {**self.options, **dict(options)}

    def get_config(self) -> dict[str, object]:
        return {
            "name": self.name,
            "stage": self.stage.value,
            "enabled": self.enabled,
            "severity": self.severity.value,
            "options": dict(self.options),
        }

    def option(self, context: ValidatorContext, key: str, default: object = None) -> object:
        """
        Resolve an option by precedence: configured options, then
        ``context.config[<validator name>][key]``, then ``context.config[key]``.
        """

        if key in self.options:
            return self.options[key]
        scoped = context.config.get(self.name)
        if isinstance(scoped, Mapping) and key in scoped:
            return scoped[key]
        return context.config.get(key, default)

    def create_issue(
        self,
        file: str,
        message: str,
        severity: Severity | str | None = None,
        *,
        line: int | None = None,
        code: str | None = None,
        suggestion: str | None = None,
    ) -> ValidationIssue:
        return ValidationIssue(
            file=file,
            message=message,
            severity=Severity(severity) if severity is not None else self.severity,
            line=line,
            code=code,
            suggestion=suggestion,
        )

    def _result(
        self,
        issues: list[ValidationIssue],
        duration_ms: float,
        payload: ValidatorPayload | None = None,
    ) -> ValidationResult:
        return ValidationResult(
            validator=self.name,
            passed=not any(issue.is_error for issue in issues),
            severity=self.severity,
            issues=tuple(issues),
            duration_ms=duration_ms,
            payload=payload,
        )


@dataclass(frozen=True, slots=True)
class ValidatorRegistration:
    name: str
    stage: ValidatorStage
    source: ValidatorSource
    factory: ValidatorFactory


class ValidatorRegistry:
    """Deterministic validator factory registry (registration order is preserved per stage)."""

    def __init__(self) -> None:
        self._registrations: dict[str, ValidatorRegistration] = {}

    def register(
        self,
        name: str,
        factory: ValidatorFactory,
        *,
        stage: ValidatorStage,
        source: ValidatorSource = "external",
    ) -> None:
        normalized = _as_name(name)
        if not callable(factory):
            _fail("factory", "must be callable")

        existing = self._registrations.get(normalized)
        if existing is not None:
            _fail("name", f"already registered by {existing.source} validator '{existing.name}'")

        self._registrations[normalized] = ValidatorRegistration(
            name=normalized,
            stage=ValidatorStage(stage),
            source=source,
            factory=factory,
        )

    def contains(self, name: str) -> bool:
        return name in self._registrations

    def get_registration(self, name: str) -> ValidatorRegistration:
        registration = self._registrations.get(name)
        if registration is None:
            known = ", ".join(self.registered_names())
            raise KeyError(f"unknown validator {name!r}; registered: [{known}]")
        return registration

    def create(self, name: str) -> BaseValidator:
        validator = self.get_registration(name).factory()
        if not isinstance(validator, BaseValidator):
            _fail("factory", f"'{name}' factory did not return a BaseValidator")
        return validator

    def registered_names(self) -> tuple[str, ...]:
        return tuple(sorted(self._registrations))

    def names_for_stage(self, stage: ValidatorStage | str) -> tuple[str, ...]:
        wanted = ValidatorStage(stage)
        return tuple(
            registration.name
            for registration in self._registrations.values()
            if registration.stage is wanted
        )

    def names_in_stage_order(self) -> tuple[str, ...]:
        ordered: list[str] = []
        for stage in STAGE_ORDER:
            ordered.extend(self.names_for_stage(stage))
        return tuple(ordered)

    def stage_of(self, name: str) -> ValidatorStage:
        return self.get_registration(name).stage


ValidatorType = TypeVar("ValidatorType", bound=BaseValidator)

DEFAULT_VALIDATOR_REGISTRY = ValidatorRegistry()


def register_builtin_validator(
    *,
    registry: ValidatorRegistry | None = None,
) -> Callable[[type[ValidatorType]], type[ValidatorType]]:
    """Decorator that registers a built-in validator class under its ``name``/``stage``."""

    target = registry if registry is not None else DEFAULT_VALIDATOR_REGISTRY

    def decorator(validator_cls: type[ValidatorType]) -> type[ValidatorType]:
        name = _as_name(validator_cls.name)
        _validate_zero_arg_constructor(validator_cls, name=name)
        target.register(name, validator_cls, stage=validator_cls.stage, source="builtin")
        return validator_cls

    return decorator


def _duration_ms(started: float) -> float:
    return max(0.0, (time.perf_counter() - started) * 1000.0)


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _as_name(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        _fail("name", "must be a non-empty string")
    if len(value) > _MAX_NAME_LENGTH:
        _fail("name", f"must be <= {_MAX_NAME_LENGTH} characters")
    return value.strip()


def _validate_zero_arg_constructor(validator_cls: type[object], *, name: str) -> None:
    signature = inspect.signature(validator_cls)
    for parameter in signature.parameters.values():
        if (
            parameter.kind
            in {
                inspect.Parameter.POSITIONAL_ONLY,
                inspect.Parameter.POSITIONAL_OR_KEYWORD,
                inspect.Parameter.KEYWORD_ONLY,
            }
            and parameter.default is inspect.Signature.empty
        ):
            _fail(
                "validator_cls",
                (
                    f"{name!r} validator decorator requires a zero-arg constructor; "
                    f"parameter '{parameter.name}' is required"
                ),
            )


__all__ = [
    "DEFAULT_VALIDATOR_REGISTRY",
    "STAGE_ORDER",
    "BaseValidator",
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "ValidatorCategory",
    "ValidatorFactory",
    "ValidatorRegistration",
    "ValidatorRegistry",
    "ValidatorStage",
    "register_builtin_validator",
]

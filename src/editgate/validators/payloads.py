"""Validator-specific result payloads, tagged by the producing validator's name."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar, Literal

if TYPE_CHECKING:
    from editgate.checkpoints.models import RollbackCheckpoint

ScopeViolationReason = Literal["file_not_in_plan", "function_not_in_plan", "unexpected_addition"]
UnattributedReason = Literal["no_plan_reference", "exceeds_plan_scope", "unspecified_functionality"]
SizeAlert = Literal["none", "warning", "critical"]
SecurityTier = Literal["critical", "high", "medium", "low"]
SecurityIssueType = Literal["hardcoded_secret", "sql_injection", "xss", "path_traversal", "other"]


@dataclass(frozen=True, slots=True)
class ValidatorPayload:
    kind: ClassVar[str] = ""

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.kind, **self._fields()}

    def _fields(self) -> dict[str, object]:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class ScopeViolation:
    file: str
    reason: ScopeViolationReason
    details: str


@dataclass(frozen=True, slots=True)
class ScopeGuardPayload(ValidatorPayload):
    kind: ClassVar[str] = "scope-guard"
    violations: tuple[ScopeViolation, ...] = ()

    def _fields(self) -> dict[str, object]:
        return {
            "violations": [
                {"file": item.file, "reason": item.reason, "details": item.details}
                for item in self.violations
            ]
        }


@dataclass(frozen=True, slots=True)
class UnattributedCode:
    file: str
    line_range: tuple[int, int]
    code: str
    reason: UnattributedReason


@dataclass(frozen=True, slots=True)
class HallucinationPayload(ValidatorPayload):
    kind: ClassVar[str] = "hallucination-detector"
    unattributed_code: tuple[UnattributedCode, ...] = ()

    def _fields(self) -> dict[str, object]:
        return {
            "unattributed_code": [
                {
                    "file": item.file,
                    "line_range": list(item.line_range),
                    "code": item.code,
                    "reason": item.reason,
                }
                for item in self.unattributed_code
            ]
        }


@dataclass(frozen=True, slots=True)
class ChangeSizePayload(ValidatorPayload):
    kind: ClassVar[str] = "change-size-monitor"
    actual_lines: int = 0
    actual_files: int = 0
    expected_lines: int = 0
    expected_files: int = 0
    percentage_over: int = 0
    alert: SizeAlert = "none"

    def _fields(self) -> dict[str, object]:
        return {
            "actual_lines": self.actual_lines,
            "actual_files": self.actual_files,
            "expected_lines": self.expected_lines,
            "expected_files": self.expected_files,
            "percentage_over": self.percentage_over,
            "alert": self.alert,
        }


@dataclass(frozen=True, slots=True)
class SyntaxFinding:
    file: str
    line: int
    column: int
    message: str
    severity: Literal["error", "warning"]


@dataclass(frozen=True, slots=True)
class SyntaxPayload(ValidatorPayload):
    kind: ClassVar[str] = "syntax-validator"
    errors: tuple[SyntaxFinding, ...] = ()

    def _fields(self) -> dict[str, object]:
        return {
            "errors": [
                {
                    "file": item.file,
                    "line": item.line,
                    "column": item.column,
                    "message": item.message,
                    "severity": item.severity,
                }
                for item in self.errors
            ]
        }


@dataclass(frozen=True, slots=True)
class BestPracticeViolation:
    file: str
    line: int
    rule: str
    message: str
    suggestion: str


@dataclass(frozen=True, slots=True)
class BestPracticesPayload(ValidatorPayload):
    kind: ClassVar[str] = "best-practices"
    violations: tuple[BestPracticeViolation, ...] = ()

    def _fields(self) -> dict[str, object]:
        return {
            "violations": [
                {
                    "file": item.file,
                    "line": item.line,
                    "rule": item.rule,
                    "message": item.message,
                    "suggestion": item.suggestion,
                }
                for item in self.violations
            ]
        }


@dataclass(frozen=True, slots=True)
class SecurityFinding:
    file: str
    line: int
    severity: SecurityTier
    type: SecurityIssueType
    description: str
    recommendation: str


@dataclass(frozen=True, slots=True)
class SecurityPayload(ValidatorPayload):
    kind: ClassVar[str] = "security-scanner"
    security_issues: tuple[SecurityFinding, ...] = ()

    def _fields(self) -> dict[str, object]:
        return {
            "security_issues": [
                {
                    "file": item.file,
                    "line": item.line,
                    "severity": item.severity,
                    "type": item.type,
                    "description": item.description,
                    "recommendation": item.recommendation,
                }
                for item in self.security_issues
            ]
        }


@dataclass(frozen=True, slots=True)
class CheckpointPayload(ValidatorPayload):
    kind: ClassVar[str] = "rollback-checkpoint"
    checkpoint: RollbackCheckpoint | None = None

    def _fields(self) -> dict[str, object]:
        return {"checkpoint": self.checkpoint.to_dict() if self.checkpoint is not None else None}


@dataclass(frozen=True, slots=True)
class ApiHallucination:
    file: str
    line: int
    call: str
    type: Literal["method", "function", "property", "class"]
    suggestion: str | None = None


@dataclass(frozen=True, slots=True)
class ApiExistencePayload(ValidatorPayload):
    kind: ClassVar[str] = "api-existence-validator"
    hallucinations: tuple[ApiHallucination, ...] = ()

    def _fields(self) -> dict[str, object]:
        return {
            "hallucinations": [
                {
                    "file": item.file,
                    "line": item.line,
                    "call": item.call,
                    "type": item.type,
                    "suggestion": item.suggestion,
                }
                for item in self.hallucinations
            ]
        }


@dataclass(frozen=True, slots=True)
class StyleFingerprint:
    quotes: Literal["single", "double", "mixed"]
    semicolons: bool
    indent: Literal["tabs", "spaces"]
    indent_size: int


@dataclass(frozen=True, slots=True)
class StylePayload(ValidatorPayload):
    kind: ClassVar[str] = "style-matcher"
    detected_patterns: StyleFingerprint | None = None

    def _fields(self) -> dict[str, object]:
        if self.detected_patterns is None:
            return {"detected_patterns": None}
        fingerprint = self.detected_patterns
        return {
            "detected_patterns": {
                "quotes": fingerprint.quotes,
                "semicolons": fingerprint.semicolons,
                "indent": fingerprint.indent,
                "indent_size": fingerprint.indent_size,
            }
        }


AnyPayload = (
    ScopeGuardPayload
    | HallucinationPayload
    | ChangeSizePayload
    | SyntaxPayload
    | BestPracticesPayload
    | SecurityPayload
    | CheckpointPayload
    | ApiExistencePayload
    | StylePayload
)


__all__ = [
    "AnyPayload",
    "ApiExistencePayload",
    "ApiHallucination",
    "BestPracticeViolation",
    "BestPracticesPayload",
    "ChangeSizePayload",
    "CheckpointPayload",
    "HallucinationPayload",
    "ScopeGuardPayload",
    "ScopeViolation",
    "SecurityFinding",
    "SecurityPayload",
    "StyleFingerprint",
    "StylePayload",
    "SyntaxFinding",
    "SyntaxPayload",
    "UnattributedCode",
    "ValidatorPayload",
]

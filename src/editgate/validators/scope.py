"""
editgate — scope stage validators

File: src/editgate/validators/scope.py
Last updated: 2026-10-19

Purpose
- Keep proposed edits inside the approved plan: allowed files and functions,
  justified changes, and change volume close to what the plan expected.

Functional requirements
- ``scope-guard`` flags files outside the allow-list and, for updates, functions
  outside the per-file allow-list; unexpected new files are warnings.
- ``hallucination-detector`` flags unexplained, unrelated, or placeholder changes.
- ``change-size-monitor`` compares actual file/line counts to expectations.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Final

from editgate.domain.models import FileOperation
from editgate.validators.base import (
    BaseValidator,
    Severity,
    ValidationIssue,
    ValidatorStage,
    register_builtin_validator,
)
from editgate.validators.payloads import (
    ChangeSizePayload,
    HallucinationPayload,
    ScopeGuardPayload,
    ScopeViolation,
    SizeAlert,
    UnattributedCode,
)
from editgate.validators.text import significant_words

if TYPE_CHECKING:
    from editgate.domain.models import FileChange, ValidatorContext

_DIFF_FUNCTION_RE: Final = re.compile(
    r"^[+-]\s*(?:async\s+)?(?:function\s+(\w+)|(?:const|let|var)\s+(\w+)\s*=|(\w+)\s*\()",
    re.MULTILINE,
)
_PLACEHOLDER_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"TODO:\s*implement", re.IGNORECASE),
    re.compile(r"placeholder", re.IGNORECASE),
    re.compile(r"not\s+implemented", re.IGNORECASE),
    re.compile(r"will\s+be\s+added", re.IGNORECASE),
)
_MIN_RELEVANT_WORDS: Final = 2
_CODE_EXCERPT_CHARS: Final = 200


def extract_changed_functions(diff: str) -> list[str]:
    """Function names declared or called on added/removed diff lines, first-seen order."""

    names: list[str] = []
    for found in _DIFF_FUNCTION_RE.finditer(diff):
        name = found.group(1) or found.group(2) or found.group(3)
        if name and name not in names:
            names.append(name)
    return names


@register_builtin_validator()
class ScopeGuardValidator(BaseValidator):
    name = "scope-guard"
    stage = ValidatorStage.SCOPE

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        return self.evaluate(context)[0]

    def evaluate(self, context: ValidatorContext) -> tuple[list[ValidationIssue], ScopeGuardPayload]:
        allowed_files, allowed_functions = self._allow_lists(context)
        issues: list[ValidationIssue] = []
        violations: list[ScopeViolation] = []

        for change in context.changes:
            if allowed_files and change.path not in allowed_files:
                issues.append(
                    self.create_issue(
                        change.path,
                        "File not in approved plan scope",
                        Severity.ERROR,
                        code="SCOPE_FILE_NOT_ALLOWED",
                    )
                )
                violations.append(
                    ScopeViolation(
                        file=change.path,
                        reason="file_not_in_plan",
                        details=f"File {change.path} is not in the approved plan scope",
                    )
                )
                continue

            allowed = allowed_functions.get(change.path, ())
            if change.operation is FileOperation.UPDATE and allowed:
                for function_name in extract_changed_functions(change.diff or ""):
                    if function_name in allowed:
                        continue
                    issues.append(
                        self.create_issue(
                            change.path,
                            f"Function '{function_name}' not in approved scope",
                            Severity.ERROR,
                            code="SCOPE_FUNCTION_NOT_ALLOWED",
                        )
                    )
                    violations.append(
                        ScopeViolation(
                            file=change.path,
                            reason="function_not_in_plan",
                            details=(
                                f"Function '{function_name}' in {change.path} "
                                "is not in the approved scope"
                            ),
                        )
                    )

            if change.operation is FileOperation.CREATE and allowed_files:
                if not any(_matches_allow_entry(change.path, entry) for entry in allowed_files):
                    issues.append(
                        self.create_issue(
                            change.path,
                            "New file creation not in approved scope",
                            Severity.WARNING,
                            code="SCOPE_UNEXPECTED_FILE",
                        )
                    )
                    violations.append(
                        ScopeViolation(
                            file=change.path,
                            reason="unexpected_addition",
                            details=f"New file {change.path} was not expected in the plan scope",
                        )
                    )

        return issues, ScopeGuardPayload(violations=tuple(violations))

    def _allow_lists(
        self, context: ValidatorContext
    ) -> tuple[tuple[str, ...], dict[str, tuple[str, ...]]]:
        files = _as_str_list(self.option(context, "allowedFiles"))
        functions = _as_function_map(self.option(context, "allowedFunctions"))
        if not files and not functions:
            lock = context.config.get("planLock")
            if isinstance(lock, Mapping):
                files = _as_str_list(lock.get("allowedFiles"))
                functions = _as_function_map(lock.get("allowedFunctions"))
        return files, functions


@register_builtin_validator()
class HallucinationDetectorValidator(BaseValidator):
    name = "hallucination-detector"
    stage = ValidatorStage.SCOPE

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        return self.evaluate(context)[0]

    def evaluate(
        self, context: ValidatorContext
    ) -> tuple[list[ValidationIssue], HallucinationPayload]:
        plan_description = str(self.option(context, "planDescription", "") or "")
        plan_tasks = [
            task if isinstance(task, str) else str(_task_description(task))
            for task in _as_sequence(self.option(context, "planTasks"))
        ]
        issues: list[ValidationIssue] = []
        unattributed: list[UnattributedCode] = []

        for change in context.changes:
            if not change.explanation:
                issues.append(
                    self.create_issue(
                        change.path,
                        "Change lacks explanation/justification",
                        Severity.WARNING,
                        code="HALLUCINATION_NO_EXPLANATION",
                    )
                )
                unattributed.append(_unattributed(change, "no_plan_reference"))
                continue

            if (plan_description or plan_tasks) and not is_relevant(
                change.explanation, plan_description, plan_tasks
            ):
                issues.append(
                    self.create_issue(
                        change.path,
                        f'Change explanation doesn\'t match plan scope: "{change.explanation}"',
                        Severity.WARNING,
                        code="HALLUCINATION_UNRELATED_CHANGE",
                    )
                )
                unattributed.append(_unattributed(change, "exceeds_plan_scope"))

            if any(pattern.search(change.content) for pattern in _PLACEHOLDER_PATTERNS):
                issues.append(
                    self.create_issue(
                        change.path,
                        "Contains incomplete/placeholder code",
                        Severity.WARNING,
                        code="HALLUCINATION_INCOMPLETE",
                    )
                )
                unattributed.append(_unattributed(change, "unspecified_functionality"))

        return issues, HallucinationPayload(unattributed_code=tuple(unattributed))


def is_relevant(explanation: str, plan_description: str, plan_tasks: Sequence[str]) -> bool:
    """True when the plan text or any task shares at least two significant words."""

    lowered = explanation.lower()
    sources = [plan_description, *plan_tasks] if plan_description else list(plan_tasks)
    for source in sources:
        matching = [word for word in significant_words(source) if word in lowered]
        if len(matching) >= _MIN_RELEVANT_WORDS:
            return True
    return False


@register_builtin_validator()
class ChangeSizeMonitorValidator(BaseValidator):
    name = "change-size-monitor"
    stage = ValidatorStage.SCOPE
    default_options = {"warningThreshold": 0.5, "errorThreshold": 1.0}

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        return self.evaluate(context)[0]

    def evaluate(
        self, context: ValidatorContext
    ) -> tuple[list[ValidationIssue], ChangeSizePayload]:
        expected_lines = int(_as_number(self.option(context, "expectedLines", 0)))
        expected_files = int(_as_number(self.option(context, "expectedFiles", 0)))
        warning_threshold = _as_number(self.option(context, "warningThreshold", 0.5), 0.5)
        error_threshold = _as_number(self.option(context, "errorThreshold", 1.0), 1.0)

        actual_files = len(context.changes)
        actual_lines = sum(change.line_count for change in context.changes)

        issues: list[ValidationIssue] = []
        percentage_over = 0
        alert: SizeAlert = "none"

        checks = (
            ("File", "FILES", actual_files, expected_files),
            ("Line", "LINES", actual_lines, expected_lines),
        )
        for label, code_part, actual, expected in checks:
            if expected <= 0:
                continue
            ratio = (actual - expected) / expected
            percent = _round_half_up(ratio * 100)
            message = f"{label} count ({actual}) exceeds expected ({expected}) by {percent}%"
            if ratio > error_threshold:
                issues.append(
                    self.create_issue(
                        "", message, Severity.ERROR, code=f"SIZE_{code_part}_EXCEEDED"
                    )
                )
                percentage_over = max(percentage_over, percent)
                alert = "critical"
            elif ratio > warning_threshold:
                issues.append(
                    self.create_issue("", message, Severity.WARNING, code=f"SIZE_{code_part}_WARNING")
                )
                percentage_over = max(percentage_over, percent)
                if alert != "critical":
                    alert = "warning"

        payload = ChangeSizePayload(
            actual_lines=actual_lines,
            actual_files=actual_files,
            expected_lines=expected_lines,
            expected_files=expected_files,
            percentage_over=percentage_over,
            alert=alert,
        )
        return issues, payload


def _matches_allow_entry(path: str, entry: str) -> bool:
    return path == entry or path.startswith(entry.replace("*", "", 1))


def _unattributed(change: FileChange, reason: str) -> UnattributedCode:
    return UnattributedCode(
        file=change.path,
        line_range=(1, change.line_count),
        code=change.content[:_CODE_EXCERPT_CHARS],
        reason=reason,  # type: ignore[arg-type]
    )


def _task_description(task: object) -> object:
    if isinstance(task, Mapping):
        return task.get("description", "")
    return task


def _round_half_up(value: float) -> int:
    # Half-up rounding, matching the percentages shown in review dialogs.
    return math.floor(value + 0.5)


def _as_sequence(value: object) -> list[object]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def _as_str_list(value: object) -> tuple[str, ...]:
    return tuple(str(item).replace("\\", "/") for item in _as_sequence(value))


def _as_function_map(value: object) -> dict[str, tuple[str, ...]]:
    if not isinstance(value, Mapping):
        return {}
    return {
        str(path).replace("\\", "/"): tuple(str(name) for name in _as_sequence(names))
        for path, names in value.items()
    }


def _as_number(value: object, default: float = 0.0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


__all__ = [
    "ChangeSizeMonitorValidator",
    "HallucinationDetectorValidator",
    "ScopeGuardValidator",
    "extract_changed_functions",
    "is_relevant",
]

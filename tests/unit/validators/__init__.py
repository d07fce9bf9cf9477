"""Shared builders for validator unit tests."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping

from editgate.domain.models import FileChange, FileOperation, ValidatorContext
from editgate.validators.base import BaseValidator, ValidationResult


def make_change(
    path: str,
    content: str = "",
    *,
    operation: FileOperation | str = FileOperation.UPDATE,
    explanation: str | None = "Update module",
    diff: str | None = None,
) -> FileChange:
    return FileChange(
        path=path,
        operation=FileOperation(operation),
        content=content,
        explanation=explanation,
        diff=diff,
    )


def make_context(
    *changes: FileChange,
    existing_files: Mapping[str, str] | None = None,
    config: Mapping[str, object] | None = None,
    plan_id: str | None = None,
    phase_id: str | None = None,
) -> ValidatorContext:
    return ValidatorContext(
        changes=changes,
        existing_files=dict(existing_files or {}),
        config=dict(config or {}),
        plan_id=plan_id,
        phase_id=phase_id,
    )


def run_validator(validator: BaseValidator, context: ValidatorContext) -> ValidationResult:
    return asyncio.run(validator.run(context))


def codes(result_or_issues: object) -> list[str | None]:
    issues = getattr(result_or_issues, "issues", result_or_issues)
    return [issue.code for issue in issues]  # type: ignore[attr-defined]

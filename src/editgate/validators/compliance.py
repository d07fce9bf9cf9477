"""
editgate — compliance stage validators

File: src/editgate/validators/compliance.py
Last updated: 2026-10-19

Purpose
- Compare the proposed edit against what was agreed: plan task coverage,
  public API stability, the expected change snapshot, and a restore point.

Functional requirements
- Plan and snapshot findings are advisory (warning/info).
- Removed exports and removed required interface properties are blocking.
- ``rollback-checkpoint`` never reports issues; it returns a file-backup
  checkpoint of every update/delete target as its payload.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from editgate.checkpoints.models import CheckpointFile, CheckpointType, RollbackCheckpoint
from editgate.domain.ids import generate_checkpoint_id
from editgate.domain.models import FileOperation
from editgate.domain.validation import utc_now
from editgate.validators.base import (
    BaseValidator,
    Severity,
    ValidationIssue,
    ValidatorStage,
    register_builtin_validator,
)
from editgate.validators.payloads import CheckpointPayload

if TYPE_CHECKING:
    from collections.abc import Sequence

    from editgate.domain.models import FileChange, ValidatorContext

_EXPORTED_NAME_RE: Final = re.compile(
    r"export\s+(?:default\s+)?(?:async\s+)?"
    r"(?:const|let|var|function|class|interface|type|enum)\s+(\w+)"
)
_FUNCTION_SIGNATURE_RE: Final = re.compile(
    r"(?:export\s+)?(?:async\s+)?function\s+(\w+)\s*\(([^)]*)\)"
)
_INTERFACE_RE: Final = re.compile(r"interface\s+(\w+)\s*\{([^}]+)\}")
_KEYWORD_MIN_LENGTH: Final = 4
_EXPLANATION_PREFIX_CHARS: Final = 20
_SNAPSHOT_LINE_TOLERANCE: Final = 0.5


@dataclass(frozen=True, slots=True)
class PlanTaskRef:
    """The slice of a plan task that compliance checks need."""

    description: str
    target_file: str | None = None
    expected_changes: str | None = None

    @classmethod
    def coerce(cls, value: object) -> PlanTaskRef:
        if isinstance(value, PlanTaskRef):
            return value
        if isinstance(value, str):
            return cls(description=value)
        if isinstance(value, Mapping):
            target = value.get("targetFile", value.get("target_file"))
            expected = value.get("expectedChanges", value.get("expected_changes"))
            return cls(
                description=str(value.get("description", "")),
                target_file=str(target).replace("\\", "/") if target else None,
                expected_changes=str(expected) if expected else None,
            )
        return cls(
            description=str(getattr(value, "description", "")),
            target_file=getattr(value, "target_file", None),
            expected_changes=getattr(value, "expected_changes", None),
        )


@register_builtin_validator()
class PlanComplianceValidator(BaseValidator):
    name = "plan-compliance"
    stage = ValidatorStage.COMPLIANCE

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        raw_tasks = self.option(context, "planTasks")
        if not isinstance(raw_tasks, (list, tuple)) or not raw_tasks:
            return []
        tasks = [PlanTaskRef.coerce(task) for task in raw_tasks]
        issues: list[ValidationIssue] = []

        for task in tasks:
            if not task_addressed(task, context.changes):
                issues.append(
                    self.create_issue(
                        task.target_file or "",
                        f'Plan task not addressed: "{task.description}"',
                        Severity.WARNING,
                        code="PLAN_TASK_MISSING",
                    )
                )

        for change in context.changes:
            if not _change_in_plan(change, tasks):
                issues.append(
                    self.create_issue(
                        change.path,
                        "Change not explicitly in plan - verify it's necessary",
                        Severity.INFO,
                        code="PLAN_EXTRA_CHANGE",
                    )
                )
        return issues


def task_addressed(task: PlanTaskRef, changes: Sequence[FileChange]) -> bool:
    """
    A task is addressed when its target file (if any) changed and at least half of
    the significant words of ``expected_changes`` (if any) occur in the changes.
    """

    if task.target_file and not any(change.path == task.target_file for change in changes):
        return False
    if not task.expected_changes:
        return True
    keywords = [
        word
        for word in task.expected_changes.lower().split()
        if len(word) >= _KEYWORD_MIN_LENGTH
    ]
    combined = "\n".join(change.content.lower() for change in changes)
    matching = [word for word in keywords if word in combined]
    return len(matching) >= len(keywords) / 2


def _change_in_plan(change: FileChange, tasks: Sequence[PlanTaskRef]) -> bool:
    prefix = (change.explanation or "").lower()[:_EXPLANATION_PREFIX_CHARS]
    for task in tasks:
        if task.target_file == change.path:
            return True
        if prefix and prefix in task.description.lower():
            return True
    return False


@register_builtin_validator()
class BreakingChangeValidator(BaseValidator):
    name = "breaking-change"
    stage = ValidatorStage.COMPLIANCE

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for change in context.changes:
            if change.operation is not FileOperation.UPDATE:
                continue
            original = context.existing_files.get(change.path)
            if not original:
                continue
            issues.extend(self._removed_exports(change.path, original, change.content))
            issues.extend(self._changed_signatures(change.path, original, change.content))
            issues.extend(self._removed_properties(change.path, original, change.content))
        return issues

    def _removed_exports(self, path: str, original: str, updated: str) -> list[ValidationIssue]:
        remaining = exported_names(updated)
        return [
            self.create_issue(
                path,
                f"Export '{name}' was removed - this may break consumers",
                Severity.ERROR,
                code="BREAKING_REMOVED_EXPORT",
            )
            for name in exported_names(original)
            if name not in remaining
        ]

    def _changed_signatures(self, path: str, original: str, updated: str) -> list[ValidationIssue]:
        before = function_signatures(original)
        after = function_signatures(updated)
        issues: list[ValidationIssue] = []
        for name, params in before.items():
            new_params = after.get(name)
            if new_params is None or new_params == params:
                continue
            if removed_required_params(params, new_params):
                issues.append(
                    self.create_issue(
                        path,
                        f"Function '{name}' signature changed - may break callers",
                        Severity.WARNING,
                        code="BREAKING_SIGNATURE_CHANGE",
                    )
                )
        return issues

    def _removed_properties(self, path: str, original: str, updated: str) -> list[ValidationIssue]:
        before = interface_properties(original)
        after = interface_properties(updated)
        issues: list[ValidationIssue] = []
        for interface, properties in before.items():
            new_properties = after.get(interface)
            if new_properties is None:
                continue
            for prop in properties:
                if "?" in prop:
                    continue
                prop_name = prop.split(":", 1)[0]
                if any(candidate.startswith(prop_name) for candidate in new_properties):
                    continue
                issues.append(
                    self.create_issue(
                        path,
                        f"Required property '{prop_name.strip()}' removed from '{interface}' interface",
                        Severity.ERROR,
                        code="BREAKING_REMOVED_PROPERTY",
                    )
                )
        return issues


def exported_names(content: str) -> list[str]:
    names: list[str] = []
    for found in _EXPORTED_NAME_RE.finditer(content):
        if found.group(1) not in names:
            names.append(found.group(1))
    return names


def function_signatures(content: str) -> dict[str, str]:
    """Function name -> raw parameter list text (last declaration wins)."""

    return {found.group(1): found.group(2) for found in _FUNCTION_SIGNATURE_RE.finditer(content)}


def interface_properties(content: str) -> dict[str, list[str]]:
    interfaces: dict[str, list[str]] = {}
    for found in _INTERFACE_RE.finditer(content):
        body_lines = (line.strip() for line in found.group(2).split("\n"))
        interfaces[found.group(1)] = [
            line for line in body_lines if line and not line.startswith("//")
        ]
    return interfaces


def removed_required_params(original: str, updated: str) -> bool:
    before = _param_names(original)
    after = _param_names(updated)
    return any("?" not in name and name not in after for name in before)


def _param_names(params: str) -> list[str]:
    names = (part.strip().split(":", 1)[0].strip() for part in params.split(","))
    return [name for name in names if name]


@register_builtin_validator()
class SnapshotDiffValidator(BaseValidator):
    name = "snapshot-diff"
    stage = ValidatorStage.COMPLIANCE

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        expected = _expected_changes(self.option(context, "expectedChanges"))
        if not expected:
            return []
        actual_paths = set(context.changed_paths)
        issues: list[ValidationIssue] = []

        for change in context.changes:
            if change.path not in expected:
                issues.append(
                    self.create_issue(
                        change.path,
                        "Unexpected file change not in plan",
                        Severity.WARNING,
                        code="SNAPSHOT_UNEXPECTED",
                    )
                )

        for path in expected:
            if path not in actual_paths:
                issues.append(
                    self.create_issue(
                        path, "Expected change not made", Severity.WARNING, code="SNAPSHOT_MISSING"
                    )
                )

        for change in context.changes:
            expected_content = expected.get(change.path)
            if expected_content is None or expected_content == change.content:
                continue
            actual_lines = change.line_count
            expected_lines = len(expected_content.split("\n"))
            if abs(actual_lines - expected_lines) > expected_lines * _SNAPSHOT_LINE_TOLERANCE:
                issues.append(
                    self.create_issue(
                        change.path,
                        (
                            "Content significantly differs from expected "
                            f"({actual_lines} vs {expected_lines} lines)"
                        ),
                        Severity.INFO,
                        code="SNAPSHOT_CONTENT_DIFF",
                    )
                )
        return issues


def _expected_changes(value: object) -> dict[str, str]:
    """Expected path -> expected content, in declaration order."""

    expected: dict[str, str] = {}
    if not isinstance(value, (list, tuple)):
        return expected
    for item in value:
        if isinstance(item, Mapping):
            path = item.get("path", item.get("file"))
            content = item.get("content", "")
        else:
            path = getattr(item, "path", None)
            content = getattr(item, "content", "")
        if path:
            expected[str(path).replace("\\", "/")] = str(content or "")
    return expected


@register_builtin_validator()
class RollbackCheckpointValidator(BaseValidator):
    name = "rollback-checkpoint"
    stage = ValidatorStage.COMPLIANCE

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        return []

    def evaluate(
        self, context: ValidatorContext
    ) -> tuple[list[ValidationIssue], CheckpointPayload]:
        files = [
            CheckpointFile.capture(change.path, context.existing_files.get(change.path))
            for change in context.changes
            if change.operation in (FileOperation.UPDATE, FileOperation.DELETE)
        ]
        phase_id = self.option(context, "phaseId") or context.phase_id
        checkpoint = RollbackCheckpoint(
            id=generate_checkpoint_id(),
            timestamp=utc_now(),
            type=CheckpointType.FILE_BACKUP,
            files=tuple(files),
            plan_id=context.plan_id,
            phase_id=str(phase_id) if phase_id else None,
            description=f"Pre-validation snapshot of {len(files)} file(s)",
        )
        return [], CheckpointPayload(checkpoint=checkpoint)


__all__ = [
    "BreakingChangeValidator",
    "PlanComplianceValidator",
    "PlanTaskRef",
    "RollbackCheckpointValidator",
    "SnapshotDiffValidator",
    "exported_names",
    "function_signatures",
    "interface_properties",
    "removed_required_params",
    "task_addressed",
]

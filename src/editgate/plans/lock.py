"""
editgate — plan lock

File: src/editgate/plans/lock.py
Last updated: 2026-10-19

Purpose
- Derive the scope lock (allowed files and per-file allowed functions) from an
  approved plan and answer scope questions against it.

Functional requirements
- The checksum is SHA-256 over canonical JSON of the plan's id, phase titles,
  task targets and affected files; any structural edit changes it.
- With no lock installed every path and function is allowed.
- Path matching is exact membership once both sides are normalized (forward
  slashes, no leading ``./``). This is the only path rule; ``PlanManager``
  delegates its scope queries here.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Final

import structlog

from editgate.domain.validation import normalize_change_path, utc_now
from editgate.plans.models import Plan, PlanLock
from editgate.utils.hashing import sha256_json

_FUNCTION_NAME_RES: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"(?:export\s+)?(?:async\s+)?function\s+(\w+)\s*\("),
    re.compile(r"(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s+)?\([^)]*\)\s*=>"),
    re.compile(r"(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s+)?\w+\s*=>"),
    re.compile(
        r"^\s*(?:(?:public|private|protected|static|async)\s+)*(\w+)\s*\([^)]*\)"
        r"\s*(?::\s*\w+(?:<[^>]+>)?)?\s*\{",
        re.MULTILINE,
    ),
)
_NON_FUNCTION_WORDS: Final[frozenset[str]] = frozenset(
    {
        "if",
        "else",
        "for",
        "while",
        "switch",
        "case",
        "return",
        "new",
        "class",
        "constructor",
        "get",
        "set",
        "try",
        "catch",
        "finally",
        "throw",
        "import",
        "export",
    }
)


def compute_plan_checksum(plan: Plan) -> str:
    return sha256_json(
        {
            "id": plan.id,
            "phases": [
                {
                    "title": phase.title,
                    "tasks": [
                        {
                            "description": task.description,
                            "targetFile": task.target_file,
                            "targetFunction": task.target_function,
                        }
                        for task in phase.tasks
                    ],
                }
                for phase in plan.phases
            ],
            "affectedFiles": list(plan.affected_files),
        }
    )


def extract_function_names(content: str) -> list[str]:
    names: list[str] = []
    for pattern in _FUNCTION_NAME_RES:
        for found in pattern.finditer(content):
            name = found.group(1)
            if name and name not in names and name not in _NON_FUNCTION_WORDS:
                names.append(name)
    return names


def build_allowed_functions(
    plan: Plan, file_contents: Mapping[str, str] | None = None
) -> dict[str, tuple[str, ...]]:
    """
    Per-file function allow-lists.

    Tasks naming both a target file and a target function pin that file to the
    named functions. Other affected files whose content is supplied are pinned to
    the functions they already declare.
    """

    allowed: dict[str, list[str]] = {}
    for phase in plan.phases:
        for task in phase.tasks:
            if not (task.target_file and task.target_function):
                continue
            names = allowed.setdefault(normalize_change_path(task.target_file), [])
            if task.target_function not in names:
                names.append(task.target_function)

    contents = {normalize_change_path(path): text for path, text in (file_contents or {}).items()}
    for path in plan.affected_files:
        if path in allowed:
            continue
        content = contents.get(normalize_change_path(path))
        if content is None:
            continue
        names = extract_function_names(content)
        if names:
            allowed[path] = names

    return {path: tuple(names) for path, names in allowed.items()}


def build_plan_lock(
    plan: Plan,
    file_contents: Mapping[str, str] | None = None,
    *,
    locked_by: str = "user",
) -> PlanLock:
    return PlanLock(
        plan_id=plan.id,
        allowed_files=tuple(plan.affected_files),
        allowed_functions=build_allowed_functions(plan, file_contents),
        checksum=compute_plan_checksum(plan),
        locked_at=utc_now(),
        locked_by=locked_by,
    )


class PlanLockManager:
    """Holds at most one active lock and answers file/function scope queries."""

    def __init__(self, *, logger: Any | None = None) -> None:
        self._lock: PlanLock | None = None
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def lock(self) -> PlanLock | None:
        return self._lock

    def get_lock(self) -> PlanLock | None:
        return self._lock

    def create_lock(
        self,
        plan: Plan,
        file_contents: Mapping[str, str] | None = None,
        *,
        locked_by: str = "user",
    ) -> PlanLock:
        self._lock = build_plan_lock(plan, file_contents, locked_by=locked_by)
        self._logger.info(
            "plan_locked",
            plan_id=plan.id,
            files=len(self._lock.allowed_files),
            function_restricted_files=len(self._lock.allowed_functions),
        )
        return self._lock

    def install(self, lock: PlanLock | None) -> None:
        self._lock = lock

    def release_lock(self) -> None:
        if self._lock is None:
            return
        self._logger.info("plan_lock_released", plan_id=self._lock.plan_id)
        self._lock = None

    def is_allowed(self, path: str) -> bool:
        if self._lock is None:
            return True
        return normalize_change_path(path) in self._lock.allowed_files

    def is_change_allowed(self, path: str, function_name: str | None = None) -> bool:
        if self._lock is None:
            return True
        if not self.is_allowed(path):
            return False
        if not function_name:
            return True
        functions = self.get_allowed_functions(path)
        if not functions:
            return True
        return function_name in functions

    def get_allowed_functions(self, path: str) -> tuple[str, ...] | None:
        if self._lock is None:
            return None
        return self._lock.allowed_functions.get(normalize_change_path(path))

    def verify_integrity(self, plan: Plan) -> bool:
        if self._lock is None or self._lock.plan_id != plan.id:
            return False
        return compute_plan_checksum(plan) == self._lock.checksum


__all__ = [
    "PlanLockManager",
    "build_allowed_functions",
    "build_plan_lock",
    "compute_plan_checksum",
    "extract_function_names",
]

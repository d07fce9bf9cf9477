"""
editgate — integrity stage validators

File: src/editgate/validators/integrity.py
Last updated: 2026-10-19

Purpose
- Catch edits that compile in isolation but break the surrounding codebase:
  weakened typing, unresolved or circular relative imports, and degraded tests.

Functional requirements
- ``type-integrity`` inspects only ``.ts``/``.tsx`` changes, line by line.
- ``import-export`` resolves relative specifiers against the changed set plus
  the existing files; unresolved imports are blocking.
- ``test-preservation`` never blocks except for a committed ``.only``.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from editgate.domain.models import FileOperation
from editgate.validators.base import (
    BaseValidator,
    Severity,
    ValidationIssue,
    ValidatorStage,
    register_builtin_validator,
)
from editgate.validators.text import (
    extract_imports,
    is_code_file,
    is_test_file,
    is_typescript_file,
    resolve_import,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from editgate.domain.models import FileChange, ValidatorContext

_UNTYPED_PARAMS_RE: Final = re.compile(
    r"(?:function\s+\w+|(?:const|let)\s+\w+\s*=\s*(?:async\s+)?)\(([^)]+)\)"
)
_TYPED_PARAM_RE: Final = re.compile(r":\s*\w")
_NON_NULL_RE: Final = re.compile(r"\w+!\.|\w+!\[")
_AS_ANY_RE: Final = re.compile(r"as\s+any\b")
_RAW_PROMISE_RE: Final = re.compile(r":\s*Promise\s*[^<]|new\s+Promise\s*\(")
_RAW_ARRAY_RE: Final = re.compile(r":\s*Array\s*[^<]")
_LOOSE_NULL_RE: Final = re.compile(r"[^!=]=\s*null\b")
_STRICT_NULL_RE: Final = re.compile(r"===\s*null")
_LOOSE_UNDEFINED_RE: Final = re.compile(r"[^!=]=\s*undefined\b")
_STRICT_UNDEFINED_RE: Final = re.compile(r"===\s*undefined")

_IMPORT_SUFFIXES: Final[tuple[str, ...]] = ("", ".ts", ".tsx", ".js", ".jsx", "/index.ts")

_NEEDS_TESTS_RES: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"export\s+(async\s+)?function"),
    re.compile(r"export\s+class"),
    re.compile(r"export\s+const\s+\w+\s*=\s*(?:async\s+)?\("),
)
_SOURCE_SUFFIX_RE: Final = re.compile(r"\.(ts|tsx|js|jsx)$")
_SKIPPED_TEST_RE: Final = re.compile(r"\b(it|test|describe)\.skip\s*\(")
_ONLY_TEST_RE: Final = re.compile(r"\b(it|test|describe)\.only\s*\(")
_EMPTY_TEST_RE: Final = re.compile(
    r"\b(it|test)\s*\([^)]+,\s*(?:async\s*)?\(\s*\)\s*=>\s*\{\s*\}\s*\)"
)
_ASSERTION_RE: Final = re.compile(r"expect\s*\(|assert\.|should\.")


@register_builtin_validator()
class TypeIntegrityValidator(BaseValidator):
    name = "type-integrity"
    stage = ValidatorStage.INTEGRITY

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for change in context.changes:
            if not is_typescript_file(change.path):
                continue
            for index, line in enumerate(change.content.split("\n")):
                issues.extend(self._check_line(change.path, line, index + 1))
        return issues

    def _check_line(self, path: str, line: str, line_no: int) -> list[ValidationIssue]:
        found: list[ValidationIssue] = []

        params = _UNTYPED_PARAMS_RE.search(line)
        if params is not None:
            declared = params.group(1)
            if declared.strip() and not _TYPED_PARAM_RE.search(declared):
                found.append(
                    self.create_issue(
                        path,
                        "Function parameters lack type annotations",
                        Severity.WARNING,
                        line=line_no,
                        code="TYPE_IMPLICIT_ANY",
                    )
                )

        if _NON_NULL_RE.search(line):
            found.append(
                self.create_issue(
                    path,
                    "Non-null assertion (!) used - ensure value cannot be null",
                    Severity.INFO,
                    line=line_no,
                    code="TYPE_NON_NULL_ASSERTION",
                )
            )

        if _AS_ANY_RE.search(line):
            found.append(
                self.create_issue(
                    path,
                    "Type assertion to 'any' bypasses type checking",
                    Severity.WARNING,
                    line=line_no,
                    code="TYPE_AS_ANY",
                )
            )

        if _RAW_PROMISE_RE.search(line) and "Promise<" not in line:
            found.append(
                self.create_issue(
                    path,
                    "Promise should have type parameter: Promise<T>",
                    Severity.WARNING,
                    line=line_no,
                    code="TYPE_RAW_PROMISE",
                )
            )

        if _RAW_ARRAY_RE.search(line):
            found.append(
                self.create_issue(
                    path,
                    "Array should have type parameter: Array<T> or T[]",
                    Severity.WARNING,
                    line=line_no,
                    code="TYPE_RAW_ARRAY",
                )
            )

        if _LOOSE_NULL_RE.search(line) and not _STRICT_NULL_RE.search(line):
            found.append(
                self.create_issue(
                    path,
                    "Use === null instead of == null",
                    Severity.WARNING,
                    line=line_no,
                    code="TYPE_LOOSE_NULL_CHECK",
                )
            )

        if _LOOSE_UNDEFINED_RE.search(line) and not _STRICT_UNDEFINED_RE.search(line):
            found.append(
                self.create_issue(
                    path,
                    "Use === undefined instead of == undefined",
                    Severity.WARNING,
                    line=line_no,
                    code="TYPE_LOOSE_UNDEFINED_CHECK",
                )
            )

        return found


@register_builtin_validator()
class ImportExportValidator(BaseValidator):
    name = "import-export"
    stage = ValidatorStage.INTEGRITY

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        known_files = set(context.changed_paths) | set(context.existing_files)
        graph = relative_import_graph(context.changes)
        issues: list[ValidationIssue] = []

        for change in context.changes:
            for ref in extract_imports(change.content):
                if not ref.module.startswith((".", "/")):
                    continue
                target = resolve_import(change.path, ref.module)
                if any(f"{target}{suffix}" in known_files for suffix in _IMPORT_SUFFIXES):
                    continue
                issues.append(
                    self.create_issue(
                        change.path,
                        f"Import '{ref.module}' - file not found",
                        Severity.ERROR,
                        line=ref.line,
                        code="IMPORT_FILE_NOT_FOUND",
                    )
                )

            cycle = find_import_cycle(change.path, graph)
            if cycle:
                issues.append(
                    self.create_issue(
                        change.path,
                        f"Circular dependency detected: {' -> '.join(cycle)}",
                        Severity.WARNING,
                        code="IMPORT_CIRCULAR",
                    )
                )

        return issues


def relative_import_graph(changes: Iterable[FileChange]) -> dict[str, list[str]]:
    """
    Changed path -> resolved relative import targets. A target that names another
    changed file once an import suffix is added maps to that file's path.
    """

    changes = list(changes)
    changed = {change.path for change in changes}
    graph: dict[str, list[str]] = {}
    for change in changes:
        targets: list[str] = []
        for ref in extract_imports(change.content):
            if not ref.module.startswith("."):
                continue
            target = resolve_import(change.path, ref.module)
            candidates = (f"{target}{suffix}" for suffix in _IMPORT_SUFFIXES)
            targets.append(next((path for path in candidates if path in changed), target))
        graph[change.path] = targets
    return graph


def find_import_cycle(start: str, graph: Mapping[str, list[str]]) -> list[str]:
    """
    First cycle reachable from ``start`` by depth-first search, closed on its
    first node (``[a, b, a]``); empty when none is found.
    """

    visited: set[str] = set()
    trail: list[str] = []

    def visit(node: str) -> list[str] | None:
        if node in trail:
            return [*trail[trail.index(node) :], node]
        if node in visited:
            return None
        visited.add(node)
        trail.append(node)
        for target in graph.get(node, ()):
            cycle = visit(target)
            if cycle is not None:
                return cycle
        trail.pop()
        return None

    return visit(start) or []


@register_builtin_validator()
class TestPreservationValidator(BaseValidator):
    name = "test-preservation"
    stage = ValidatorStage.INTEGRITY
    __test__ = False  # keep pytest from collecting this class

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        live_changes = [
            change for change in context.changes if change.operation is not FileOperation.DELETE
        ]

        for change in live_changes:
            if is_test_file(change.path) or not is_code_file(change.path):
                continue
            if has_test_for(change.path, context.existing_files) or not likely_needs_tests(
                change.content
            ):
                continue
            issues.append(
                self.create_issue(
                    change.path,
                    "Modified file has no corresponding test file",
                    Severity.INFO,
                    code="TEST_NO_TEST_FILE",
                )
            )

        for change in live_changes:
            if is_test_file(change.path):
                issues.extend(self._check_test_quality(change.path, change.content))

        return issues

    def _check_test_quality(self, path: str, content: str) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for index, line in enumerate(content.split("\n")):
            if _SKIPPED_TEST_RE.search(line):
                issues.append(
                    self.create_issue(
                        path,
                        "Skipped test found - ensure this is intentional",
                        Severity.WARNING,
                        line=index + 1,
                        code="TEST_SKIPPED",
                    )
                )
            if _ONLY_TEST_RE.search(line):
                issues.append(
                    self.create_issue(
                        path,
                        ".only() will skip other tests - remove before committing",
                        Severity.ERROR,
                        line=index + 1,
                        code="TEST_ONLY",
                    )
                )
            if _EMPTY_TEST_RE.search(line):
                issues.append(
                    self.create_issue(
                        path, "Empty test body", Severity.WARNING, line=index + 1, code="TEST_EMPTY"
                    )
                )

        if not _ASSERTION_RE.search(content):
            issues.append(
                self.create_issue(
                    path,
                    "Test file contains no assertions",
                    Severity.WARNING,
                    code="TEST_NO_ASSERTIONS",
                )
            )
        return issues


def has_test_for(source_path: str, existing_files: Iterable[str]) -> bool:
    base = _SOURCE_SUFFIX_RE.sub("", source_path)
    basename = base.rsplit("/", 1)[-1]
    markers = (f"{base}.test.", f"{base}.spec.", f"__tests__/{basename}")
    return any(marker in existing for existing in existing_files for marker in markers)


def likely_needs_tests(content: str) -> bool:
    return any(pattern.search(content) for pattern in _NEEDS_TESTS_RES)


__all__ = [
    "ImportExportValidator",
    "TestPreservationValidator",
    "TypeIntegrityValidator",
    "find_import_cycle",
    "has_test_for",
    "likely_needs_tests",
    "relative_import_graph",
]

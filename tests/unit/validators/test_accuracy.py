"""
editgate — unit tests for accuracy stage validators

File: tests/unit/validators/test_accuracy.py
Last updated: 2026-10-19

Purpose
- Validate the checks aimed at generated-code mistakes: invented APIs and packages,
  deprecated calls, style drift, complexity, edge cases, renames, and doc drift.
"""

from __future__ import annotations

from editgate.validators.accuracy import (
    ApiExistenceValidator,
    ComplexityAnalyzerValidator,
    DependencyVerifierValidator,
    DeprecationDetectorValidator,
    DocSyncValidator,
    EdgeCaseCheckerValidator,
    RefactorCompletenessValidator,
    StyleMatcherValidator,
    are_similar,
    cyclomatic_complexity,
    is_likely_hallucination,
    is_node_builtin,
    package_name,
)
from editgate.validators.base import Severity
from editgate.validators.payloads import ApiExistencePayload, StylePayload

from . import codes, make_change, make_context, run_validator


def _lines(*lines: str) -> str:
    return "\n".join(lines)


def test_api_existence_blocks_known_mistakes() -> None:
    context = make_context(make_change("src/a.ts", "const data = JSON.parseJSON(raw);"))

    result = run_validator(ApiExistenceValidator(), context)

    assert not result.passed
    assert codes(result) == ["API_HALLUCINATED"]
    assert result.issues[0].suggestion == "JSON.parse"
    assert isinstance(result.payload, ApiExistencePayload)
    hallucination = result.payload.hallucinations[0]
    assert hallucination.call == "JSON.parseJSON"
    assert hallucination.type == "method"


def test_api_existence_warns_on_receiver_heuristics() -> None:
    context = make_context(make_change("src/a.ts", "if (items.contains(x)) {}"))

    result = run_validator(ApiExistenceValidator(), context)

    assert result.passed
    assert codes(result) == ["API_UNVERIFIED"]
    assert result.issues[0].message == "'items.contains' may not exist - verify this method"


def test_is_likely_hallucination() -> None:
    assert is_likely_hallucination("userList", "first")
    assert is_likely_hallucination("nameText", "isEmpty")
    assert not is_likely_hallucination("items", "includes")
    assert not is_likely_hallucination("client", "contains")


def test_dependency_verifier_flags_misspellings_without_manifest() -> None:
    context = make_context(make_change("src/a.ts", "import _ from 'lodahs';"))

    result = run_validator(DependencyVerifierValidator(), context)

    assert not result.passed
    assert codes(result) == ["DEP_MISSPELLED"]
    assert result.issues[0].message == "Package 'lodahs' may be misspelled - did you mean 'lodash'?"


def test_dependency_verifier_reads_package_json() -> None:
    content = _lines(
        "import axios from 'axios';",
        "import fs from 'fs';",
        "import { h } from '@scope/pkg/sub';",
        "import React from 'react';",
    )
    context = make_context(
        make_change("src/a.ts", content),
        existing_files={"package.json": '{"dependencies": {"react": "^18.0.0"}}'},
    )

    result = run_validator(DependencyVerifierValidator(), context)

    assert result.passed
    assert codes(result) == ["DEP_NOT_INSTALLED", "DEP_NOT_INSTALLED"]
    assert [issue.line for issue in result.issues] == [1, 3]
    assert result.issues[1].message == "Package '@scope/pkg' may not be installed"


def test_dependency_verifier_options_override_manifest() -> None:
    validator = DependencyVerifierValidator()
    validator.configure(options={"dependencies": ["axios"]})
    context = make_context(
        make_change("src/a.ts", "import axios from 'axios';"),
        existing_files={"package.json": '{"dependencies": {}}'},
    )

    assert run_validator(validator, context).issues == ()


def test_package_name_and_builtins() -> None:
    assert package_name("@scope/pkg/sub") == "@scope/pkg"
    assert package_name("lodash/fp") == "lodash"
    assert is_node_builtin("node:fs")
    assert is_node_builtin("path")
    assert not is_node_builtin("express")


def test_deprecation_detector() -> None:
    content = _lines("const part = name.substr(1);", "const buf = new Buffer(10);")
    context = make_context(make_change("src/a.js", content))

    result = run_validator(DeprecationDetectorValidator(), context)

    assert result.passed
    assert codes(result) == ["DEPRECATED_API", "DEPRECATED_API"]
    assert [issue.message for issue in result.issues] == [
        "String.substr is deprecated",
        "new Buffer() is deprecated",
    ]


def test_style_matcher_compares_against_existing_code() -> None:
    context = make_context(
        make_change("src/b.ts", _lines('const c = "z"', 'const d = "w"')),
        existing_files={"src/a.ts": _lines("const a = 'x';", "const b = 'y';")},
    )

    result = run_validator(StyleMatcherValidator(), context)

    assert codes(result) == ["STYLE_QUOTES", "STYLE_SEMICOLONS"]
    assert result.issues[0].message == (
        "Quote style inconsistent (project uses single, file uses double)"
    )
    assert all(issue.severity is Severity.INFO for issue in result.issues)
    assert isinstance(result.payload, StylePayload)
    assert result.payload.detected_patterns is not None
    assert result.payload.detected_patterns.quotes == "single"


def test_style_matcher_reports_indentation_drift() -> None:
    context = make_context(
        make_change("src/b.ts", _lines("function g() {", "\treturn 2;", "}")),
        existing_files={"src/a.ts": _lines("function f() {", "  return 1;", "}")},
    )

    result = run_validator(StyleMatcherValidator(), context)

    assert codes(result) == ["STYLE_INDENT"]


def test_style_matcher_without_existing_code_has_no_fingerprint() -> None:
    context = make_context(
        make_change("src/b.ts", "const c = 1"),
        existing_files={"README.md": "# readme"},
    )

    result = run_validator(StyleMatcherValidator(), context)

    assert result.issues == ()
    assert isinstance(result.payload, StylePayload)
    assert result.payload.detected_patterns is None


def test_complexity_analyzer_threshold_is_configurable() -> None:
    content = _lines(
        "function decide(a, b) {",
        "  if (a && b) {",
        "    return 1;",
        "  }",
        "  return a || b;",
        "}",
    )
    validator = ComplexityAnalyzerValidator()
    validator.configure(options={"maxCyclomaticComplexity": 2})
    context = make_context(make_change("src/a.js", content))

    result = run_validator(validator, context)

    assert codes(result) == ["COMPLEX_HIGH_CYCLOMATIC"]
    assert result.issues[0].message == "Function 'decide' has high cyclomatic complexity (4)"
    assert result.issues[0].line == 1


def test_complexity_analyzer_reports_long_functions() -> None:
    content = _lines("function big() {", "  a();", "  b();", "  c();", "  d();", "}")
    validator = ComplexityAnalyzerValidator()
    validator.configure(options={"maxFunctionLength": 3})
    context = make_context(make_change("src/a.js", content))

    result = run_validator(validator, context)

    assert codes(result) == ["COMPLEX_LONG_FUNCTION"]
    assert result.issues[0].message == "Function 'big' is 6 lines long"


def test_complexity_analyzer_notes_unhandled_async_work() -> None:
    content = _lines(
        "async function load() {",
        "  const res = await fetch(url);",
        "  return res.json();",
        "}",
    )
    context = make_context(make_change("src/a.ts", content))

    result = run_validator(ComplexityAnalyzerValidator(), context)

    assert codes(result) == ["COMPLEX_NO_ERROR_HANDLING"]
    assert result.issues[0].severity is Severity.INFO


def test_cyclomatic_complexity_counts_decision_points() -> None:
    assert cyclomatic_complexity("return 1;") == 1
    assert cyclomatic_complexity("if (a) {} else if (b) {}") == 3
    assert cyclomatic_complexity("const v = a ?? b;") == 2


def test_edge_case_checker_requires_try_around_json_parse() -> None:
    bare = make_context(make_change("src/a.ts", "const config = JSON.parse(raw);"))
    guarded = make_context(
        make_change(
            "src/a.ts",
            _lines(
                "try {",
                "  const config = JSON.parse(raw);",
                "} catch (err) {",
                "  report(err);",
                "}",
            ),
        )
    )

    result = run_validator(EdgeCaseCheckerValidator(), bare)

    assert codes(result) == ["EDGE_JSON_PARSE"]
    assert result.issues[0].severity is Severity.WARNING
    assert run_validator(EdgeCaseCheckerValidator(), guarded).issues == ()


def test_edge_case_checker_division_and_indexing() -> None:
    unguarded = make_context(
        make_change("src/a.ts", _lines("const avg = total / count;", "const first = items[index];"))
    )
    guarded = make_context(
        make_change("src/a.ts", _lines("if (count === 0) return 0;", "const avg = total / count;"))
    )

    result = run_validator(EdgeCaseCheckerValidator(), unguarded)

    assert codes(result) == ["EDGE_DIVISION_BY_ZERO", "EDGE_NO_BOUNDS_CHECK"]
    assert all(issue.severity is Severity.INFO for issue in result.issues)
    assert run_validator(EdgeCaseCheckerValidator(), guarded).issues == ()


def test_edge_case_checker_skips_comments() -> None:
    context = make_context(make_change("src/a.ts", "// JSON.parse(raw) / count"))

    assert run_validator(EdgeCaseCheckerValidator(), context).issues == ()


def test_refactor_completeness_reports_stale_references() -> None:
    diff = _lines("-export function formatDate() {", "+export function formatDateV2() {")
    context = make_context(
        make_change("src/util.ts", "export function formatDateV2() {}", diff=diff),
        existing_files={
            "src/util.ts": "export function formatDate() {}",
            "src/view.ts": _lines("import { formatDate } from './util';", "formatDate(now);"),
        },
    )

    result = run_validator(RefactorCompletenessValidator(), context)

    assert result.passed
    assert codes(result) == ["REFACTOR_INCOMPLETE_RENAME"]
    issue = result.issues[0]
    assert issue.file == "src/view.ts"
    assert issue.line == 1
    assert issue.message == "'formatDate' was renamed to 'formatDateV2' but references remain"


def test_refactor_completeness_ignores_changes_without_diff() -> None:
    context = make_context(
        make_change("src/util.ts", "export function formatDateV2() {}"),
        existing_files={"src/view.ts": "formatDate(now);"},
    )

    assert run_validator(RefactorCompletenessValidator(), context).issues == ()


def test_are_similar() -> None:
    assert are_similar("load", "loadAll")
    assert not are_similar("getUser", "fetchUser")
    assert not are_similar("", "x")


def test_doc_sync_reports_param_drift_and_markers() -> None:
    content = _lines(
        "/**",
        " * @param {string} userId the user",
        " */",
        "function load(id) {",
        "  // TODO: cache",
        "  // FIXME: retries",
        "}",
    )
    context = make_context(make_change("src/a.ts", content))

    result = run_validator(DocSyncValidator(), context)

    assert result.passed
    assert codes(result) == ["DOC_PARAM_MISMATCH", "DOC_TODO_FOUND", "DOC_FIXME_FOUND"]
    assert [issue.line for issue in result.issues] == [2, 5, 6]
    assert result.issues[2].severity is Severity.WARNING

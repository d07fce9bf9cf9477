"""
editgate — accuracy stage validators

File: src/editgate/validators/accuracy.py
Last updated: 2026-10-19

Purpose
- Catch the characteristic mistakes of generated code: APIs and packages that do
  not exist, deprecated calls, style drift from the surrounding project, bloated
  functions, unguarded edge cases, half-finished renames, and stale docs.

Functional requirements
- ``api-existence-validator`` and ``style-matcher`` return typed payloads.
- ``dependency-verifier`` only reports missing packages when a dependency list
  is known (options or a ``package.json`` among the changes/existing files).
- ``refactor-completeness`` reports references left in files the edit does not touch.
"""

from __future__ import annotations

import json
import re
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Literal

from editgate.domain.models import FileOperation
from editgate.validators.base import (
    BaseValidator,
    Severity,
    ValidationIssue,
    ValidatorStage,
    register_builtin_validator,
)
from editgate.validators.payloads import (
    ApiExistencePayload,
    ApiHallucination,
    StyleFingerprint,
    StylePayload,
)
from editgate.validators.text import (
    extract_function_calls,
    extract_imports,
    is_code_file,
    line_of_offset,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from editgate.domain.models import ValidatorContext


# ---------------------------------------------------------------------------
# api-existence-validator
# ---------------------------------------------------------------------------

KNOWN_API_MISTAKES: Final[Mapping[str, str]] = {
    "fs.readFilePromise": "fs.promises.readFile",
    "fs.writeFilePromise": "fs.promises.writeFile",
    "array.contains": "array.includes",
    "string.contains": "string.includes",
    "str.contains": "str.includes",
    "object.hasKey": 'Object.hasOwn or "key" in object',
    "array.remove": "array.filter or array.splice",
    "array.first": "array[0] or array.at(0)",
    "array.last": "array[array.length-1] or array.at(-1)",
    "string.isEmpty": "string.length === 0 or !string",
    "JSON.parseJSON": "JSON.parse",
    "axios.postJSON": "axios.post",
    "console.write": "console.log",
    "Math.clamp": "Math.min(Math.max(val, min), max)",
}

_RECEIVER_RULES: Final[tuple[tuple[tuple[str, ...], frozenset[str]], ...]] = (
    (
        ("array", "arr", "list", "items"),
        frozenset({"contains", "remove", "first", "last", "isEmpty", "clear"}),
    ),
    (("string", "str", "text", "name"), frozenset({"contains", "isEmpty", "toArray", "chars"})),
    (("object", "obj", "data"), frozenset({"hasKey", "getKeys", "getValues"})),
)


def is_likely_hallucination(receiver: str, method: str) -> bool:
    """True when ``method`` does not exist on the kind of value ``receiver`` names."""

    lowered = receiver.lower()
    for hints, invalid_methods in _RECEIVER_RULES:
        if any(hint in lowered for hint in hints) and method in invalid_methods:
            return True
    return False


@register_builtin_validator()
class ApiExistenceValidator(BaseValidator):
    name = "api-existence-validator"
    stage = ValidatorStage.ACCURACY

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        return self.evaluate(context)[0]

    def evaluate(
        self, context: ValidatorContext
    ) -> tuple[list[ValidationIssue], ApiExistencePayload]:
        issues: list[ValidationIssue] = []
        hallucinations: list[ApiHallucination] = []

        for change in context.changes:
            for call in extract_function_calls(change.content):
                full_call = f"{call.object}.{call.call}" if call.object else call.call
                kind: Literal["method", "function"] = "method" if call.object else "function"
                replacement = KNOWN_API_MISTAKES.get(full_call)
                if replacement is not None:
                    issues.append(
                        self.create_issue(
                            change.path,
                            f"'{full_call}' doesn't exist - use {replacement}",
                            Severity.ERROR,
                            line=call.line,
                            code="API_HALLUCINATED",
                            suggestion=replacement,
                        )
                    )
                    hallucinations.append(
                        ApiHallucination(
                            file=change.path,
                            line=call.line,
                            call=full_call,
                            type=kind,
                            suggestion=replacement,
                        )
                    )
                if call.object and is_likely_hallucination(call.object, call.call):
                    issues.append(
                        self.create_issue(
                            change.path,
                            f"'{full_call}' may not exist - verify this method",
                            Severity.WARNING,
                            line=call.line,
                            code="API_UNVERIFIED",
                        )
                    )
                    hallucinations.append(
                        ApiHallucination(
                            file=change.path, line=call.line, call=full_call, type="method"
                        )
                    )

        return issues, ApiExistencePayload(hallucinations=tuple(hallucinations))


# ---------------------------------------------------------------------------
# dependency-verifier
# ---------------------------------------------------------------------------

NODE_BUILTINS: Final[frozenset[str]] = frozenset(
    {
        "assert",
        "buffer",
        "child_process",
        "cluster",
        "console",
        "crypto",
        "dgram",
        "dns",
        "domain",
        "events",
        "fs",
        "http",
        "https",
        "module",
        "net",
        "os",
        "path",
        "process",
        "querystring",
        "readline",
        "repl",
        "stream",
        "timers",
        "tls",
        "tty",
        "url",
        "util",
        "vm",
        "zlib",
    }
)

COMMON_MISSPELLINGS: Final[Mapping[str, str]] = {
    "axois": "axios",
    "expresss": "express",
    "reat": "react",
    "raect": "react",
    "mongose": "mongoose",
    "sequalize": "sequelize",
    "knexjs": "knex",
    "lodahs": "lodash",
}


def package_name(module: str) -> str:
    """npm package a module specifier belongs to (``@scope/name`` for scoped packages)."""

    parts = module.split("/")
    if module.startswith("@"):
        return "/".join(parts[:2])
    return parts[0]


def is_node_builtin(name: str) -> bool:
    return name.startswith("node:") or name in NODE_BUILTINS


@register_builtin_validator()
class DependencyVerifierValidator(BaseValidator):
    name = "dependency-verifier"
    stage = ValidatorStage.ACCURACY

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        known = self._known_dependencies(context)
        issues: list[ValidationIssue] = []
        for change in context.changes:
            for ref in extract_imports(change.content):
                if ref.module.startswith((".", "/")):
                    continue
                name = package_name(ref.module)
                if not name or is_node_builtin(name):
                    continue
                if known and name not in known:
                    issues.append(
                        self.create_issue(
                            change.path,
                            f"Package '{name}' may not be installed",
                            Severity.WARNING,
                            line=ref.line,
                            code="DEP_NOT_INSTALLED",
                            suggestion=f"Run: npm install {name}",
                        )
                    )
                correction = COMMON_MISSPELLINGS.get(name.lower())
                if correction is not None and correction != name:
                    issues.append(
                        self.create_issue(
                            change.path,
                            f"Package '{name}' may be misspelled - did you mean '{correction}'?",
                            Severity.ERROR,
                            line=ref.line,
                            code="DEP_MISSPELLED",
                            suggestion=correction,
                        )
                    )
        return issues

    def _known_dependencies(self, context: ValidatorContext) -> set[str]:
        dependencies = self.option(context, "dependencies")
        dev_dependencies = self.option(context, "devDependencies")
        if dependencies is None and dev_dependencies is None:
            return manifest_dependencies(context)
        return set(_names(dependencies)) | set(_names(dev_dependencies))


_MANIFEST_SECTIONS: Final = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)


def manifest_dependencies(context: ValidatorContext) -> set[str]:
    """Dependency names from the shallowest ``package.json`` in the changes or existing files."""

    candidates: dict[str, str] = dict(context.existing_files)
    for change in context.changes:
        if change.operation is not FileOperation.DELETE:
            candidates[change.path] = change.content
    manifests = sorted(
        (path for path in candidates if path.rsplit("/", 1)[-1] == "package.json"),
        key=lambda path: (path.count("/"), path),
    )
    for path in manifests:
        try:
            manifest = json.loads(candidates[path])
        except json.JSONDecodeError:
            continue
        if not isinstance(manifest, Mapping):
            continue
        names: set[str] = set()
        for section in _MANIFEST_SECTIONS:
            names.update(_names(manifest.get(section)))
        return names
    return set()


def _names(value: object) -> list[str]:
    if isinstance(value, Mapping):
        return [str(key) for key in value]
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(item) for item in value]
    return []


# ---------------------------------------------------------------------------
# deprecation-detector
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Deprecation:
    pattern: re.Pattern[str]
    message: str
    replacement: str


DEPRECATIONS: Final[tuple[Deprecation, ...]] = (
    Deprecation(
        re.compile(r"componentWillMount\s*\("),
        "componentWillMount is deprecated",
        "Use componentDidMount or useEffect",
    ),
    Deprecation(
        re.compile(r"componentWillReceiveProps\s*\("),
        "componentWillReceiveProps is deprecated",
        "Use getDerivedStateFromProps or useEffect",
    ),
    Deprecation(
        re.compile(r"componentWillUpdate\s*\("),
        "componentWillUpdate is deprecated",
        "Use getSnapshotBeforeUpdate or useEffect",
    ),
    Deprecation(re.compile(r"findDOMNode\s*\("), "findDOMNode is deprecated", "Use refs instead"),
    Deprecation(
        re.compile(r"\.substr\s*\("),
        "String.substr is deprecated",
        "Use String.slice or String.substring",
    ),
    Deprecation(
        re.compile(r"__proto__"),
        "__proto__ is deprecated",
        "Use Object.getPrototypeOf/setPrototypeOf",
    ),
    Deprecation(
        re.compile(r"(?<![\w.])escape\s*\("), "escape() is deprecated", "Use encodeURIComponent"
    ),
    Deprecation(
        re.compile(r"(?<![\w.])unescape\s*\("), "unescape() is deprecated", "Use decodeURIComponent"
    ),
    Deprecation(
        re.compile(r"new\s+Buffer\s*\("),
        "new Buffer() is deprecated",
        "Use Buffer.from() or Buffer.alloc()",
    ),
    Deprecation(
        re.compile(r"document\.execCommand\s*\("),
        "document.execCommand is deprecated",
        "Use the Clipboard API or Selection/Range APIs",
    ),
)


@register_builtin_validator()
class DeprecationDetectorValidator(BaseValidator):
    name = "deprecation-detector"
    stage = ValidatorStage.ACCURACY
    default_severity = Severity.WARNING

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for change in context.changes:
            for index, line in enumerate(change.content.split("\n")):
                for deprecation in DEPRECATIONS:
                    if deprecation.pattern.search(line):
                        issues.append(
                            self.create_issue(
                                change.path,
                                deprecation.message,
                                Severity.WARNING,
                                line=index + 1,
                                code="DEPRECATED_API",
                                suggestion=deprecation.replacement,
                            )
                        )
        return issues


# ---------------------------------------------------------------------------
# style-matcher
# ---------------------------------------------------------------------------

_CONTINUATION_ENDINGS: Final = ("{", "}", ",", "(", "[", ")", "=>", "*/")
_COMMENT_PREFIXES: Final = ("//", "/*", "*")
_DEFAULT_INDENT_SIZE: Final = 2


def detect_style(contents: Iterable[str]) -> StyleFingerprint | None:
    """
    Style fingerprint of the given sources, or ``None`` when they hold no code.

    Semicolon style looks only at statement-ending lines (lines that do not open
    or close a block or continue a list).
    """

    single = double = terminated = statements = tabs = spaces = 0
    widths: Counter[int] = Counter()
    seen_any = False
    for content in contents:
        for raw in content.split("\n"):
            stripped = raw.strip()
            if not stripped:
                continue
            seen_any = True
            single += raw.count("'")
            double += raw.count('"')
            if raw.startswith("\t"):
                tabs += 1
            elif raw.startswith("  "):
                spaces += 1
                widths[len(raw) - len(raw.lstrip(" "))] += 1
            if stripped.startswith(_COMMENT_PREFIXES) or stripped.endswith(_CONTINUATION_ENDINGS):
                continue
            statements += 1
            if stripped.endswith(";"):
                terminated += 1
    if not seen_any:
        return None

    quotes: Literal["single", "double", "mixed"]
    if single > double:
        quotes = "single"
    elif double > single:
        quotes = "double"
    else:
        quotes = "mixed"
    indent_size = min(widths) if widths else _DEFAULT_INDENT_SIZE
    return StyleFingerprint(
        quotes=quotes,
        semicolons=statements > 0 and terminated * 2 > statements,
        indent="tabs" if tabs > spaces else "spaces",
        indent_size=indent_size,
    )


@register_builtin_validator()
class StyleMatcherValidator(BaseValidator):
    name = "style-matcher"
    stage = ValidatorStage.ACCURACY
    default_severity = Severity.INFO

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        return self.evaluate(context)[0]

    def evaluate(self, context: ValidatorContext) -> tuple[list[ValidationIssue], StylePayload]:
        project = detect_style(
            content for path, content in context.existing_files.items() if is_code_file(path)
        )
        if project is None:
            return [], StylePayload(detected_patterns=None)

        issues: list[ValidationIssue] = []
        for change in context.changes:
            if change.operation is FileOperation.DELETE or not is_code_file(change.path):
                continue
            observed = detect_style([change.content])
            if observed is None:
                continue
            issues.extend(self._compare(change.path, project, observed))
        return issues, StylePayload(detected_patterns=project)

    def _compare(
        self, path: str, project: StyleFingerprint, observed: StyleFingerprint
    ) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        if "mixed" not in (project.quotes, observed.quotes) and project.quotes != observed.quotes:
            issues.append(
                self.create_issue(
                    path,
                    (
                        f"Quote style inconsistent (project uses {project.quotes}, "
                        f"file uses {observed.quotes})"
                    ),
                    Severity.INFO,
                    code="STYLE_QUOTES",
                )
            )
        if project.semicolons != observed.semicolons:
            issues.append(
                self.create_issue(
                    path,
                    "Semicolon usage inconsistent with project style",
                    Severity.INFO,
                    code="STYLE_SEMICOLONS",
                )
            )
        if project.indent != observed.indent:
            issues.append(
                self.create_issue(
                    path,
                    f"Indentation style inconsistent (project uses {project.indent})",
                    Severity.INFO,
                    code="STYLE_INDENT",
                )
            )
        return issues


# ---------------------------------------------------------------------------
# complexity-analyzer
# ---------------------------------------------------------------------------

_FUNCTION_RE: Final = re.compile(
    r"(?:async\s+)?(?:function\s+(\w+)"
    r"|(?:const|let|var)\s+(\w+)\s*=\s*(?:async\s+)?(?:\([^)]*\)|[^=\s])\s*=>"
    r"|(\w+)\s*\([^)]*\)\s*\{)"
)
_NOT_FUNCTION_NAMES: Final = frozenset(
    {"if", "for", "while", "switch", "catch", "function", "return", "with"}
)
_DECISION_RES: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"\bif\s*\("),
    re.compile(r"\bfor\s*\("),
    re.compile(r"\bwhile\s*\("),
    re.compile(r"\bcase\s+"),
    re.compile(r"\bcatch\s*\("),
    re.compile(r"\?\?"),
    re.compile(r"\|\|"),
    re.compile(r"&&"),
    re.compile(r"\?[^:?.]*:"),
)
_ASYNC_OPERATION_RE: Final = re.compile(r"await\s+|\.then\s*\(|fetch\s*\(|axios\.|\.subscribe\s*\(")
_ERROR_HANDLING_RE: Final = re.compile(r"try\s*\{|\.catch\s*\(|\.finally\s*\(")


@dataclass(frozen=True, slots=True)
class FunctionSpan:
    name: str
    body: str
    start_line: int


def extract_functions(content: str) -> list[FunctionSpan]:
    """Named functions with their brace-delimited bodies (unterminated bodies run to EOF)."""

    functions: list[FunctionSpan] = []
    for found in _FUNCTION_RE.finditer(content):
        name = found.group(1) or found.group(2) or found.group(3) or "anonymous"
        if name in _NOT_FUNCTION_NAMES:
            continue
        depth = 0
        body_start = found.start()
        body_end = len(content)
        opened = False
        for index in range(found.start(), len(content)):
            char = content[index]
            if char == "{":
                if not opened:
                    body_start = index
                    opened = True
                depth += 1
            elif char == "}" and opened:
                depth -= 1
                if depth == 0:
                    body_end = index + 1
                    break
        functions.append(
            FunctionSpan(
                name=name,
                body=content[body_start:body_end],
                start_line=line_of_offset(content, found.start()),
            )
        )
    return functions


def cyclomatic_complexity(code: str) -> int:
    """1 plus the number of decision points (branches, loops, cases, short-circuits)."""

    return 1 + sum(len(pattern.findall(code)) for pattern in _DECISION_RES)


@register_builtin_validator()
class ComplexityAnalyzerValidator(BaseValidator):
    name = "complexity-analyzer"
    stage = ValidatorStage.ACCURACY
    default_options = {"maxCyclomaticComplexity": 10, "maxFunctionLength": 50}

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        max_complexity = _as_int(self.option(context, "maxCyclomaticComplexity", 10), 10)
        max_length = _as_int(self.option(context, "maxFunctionLength", 50), 50)
        issues: list[ValidationIssue] = []
        for change in context.changes:
            if not is_code_file(change.path):
                continue
            for function in extract_functions(change.content):
                issues.extend(
                    self._check_function(change.path, function, max_complexity, max_length)
                )
        return issues

    def _check_function(
        self, path: str, function: FunctionSpan, max_complexity: int, max_length: int
    ) -> list[ValidationIssue]:
        found: list[ValidationIssue] = []
        complexity = cyclomatic_complexity(function.body)
        if complexity > max_complexity:
            found.append(
                self.create_issue(
                    path,
                    f"Function '{function.name}' has high cyclomatic complexity ({complexity})",
                    Severity.WARNING,
                    line=function.start_line,
                    code="COMPLEX_HIGH_CYCLOMATIC",
                    suggestion="Consider breaking into smaller functions",
                )
            )
        length = len(function.body.split("\n"))
        if length > max_length:
            found.append(
                self.create_issue(
                    path,
                    f"Function '{function.name}' is {length} lines long",
                    Severity.WARNING,
                    line=function.start_line,
                    code="COMPLEX_LONG_FUNCTION",
                    suggestion=f"Consider breaking into smaller functions (max {max_length} lines)",
                )
            )
        if _ASYNC_OPERATION_RE.search(function.body) and not _ERROR_HANDLING_RE.search(
            function.body
        ):
            found.append(
                self.create_issue(
                    path,
                    f"Function '{function.name}' has async operations without error handling",
                    Severity.INFO,
                    line=function.start_line,
                    code="COMPLEX_NO_ERROR_HANDLING",
                    suggestion="Add try/catch or .catch() for error handling",
                )
            )
        return found


def _as_int(value: object, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(value)


# ---------------------------------------------------------------------------
# edge-case-checker
# ---------------------------------------------------------------------------

_INDEXED_ACCESS_RE: Final = re.compile(r"\w+\[\w+\]")
_CONSTANT_INDEX_RE: Final = re.compile(r"\[\d+\]")
_BOUNDS_GUARD_RE: Final = re.compile(r"\.length|\.at\(|if\s*\(")
_DIVISION_RE: Final = re.compile(r"""(?<![/*<])/\s*[A-Za-z_]\w*(?![/\w'"`>])""")
_ZERO_GUARD_RE: Final = re.compile(r"if\s*\(.*===?\s*0|!==?\s*0")
_PROPERTY_ACCESS_RE: Final = re.compile(r"\w+\.\w+")
_NULLABLE_SOURCE_RE: Final = re.compile(r"\|\|\s*null|\?\s*:")
_OPTIONAL_CHAIN_RE: Final = re.compile(r"\?\.\w+")
_STRING_OP_RE: Final = re.compile(r"\.split\s*\(|\.substring\s*\(|\.slice\s*\(")
_EMPTY_GUARD_RE: Final = re.compile(r"\.length|if\s*\(|&&")
_JSON_PARSE_RE: Final = re.compile(r"JSON\.parse\s*\(")
_TRY_RE: Final = re.compile(r"try\s*\{")
_SKIPPED_LINE_PREFIXES: Final = ("//", "/*", "*", "import ", "export * from")


@register_builtin_validator()
class EdgeCaseCheckerValidator(BaseValidator):
    name = "edge-case-checker"
    stage = ValidatorStage.ACCURACY

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for change in context.changes:
            if not is_code_file(change.path):
                continue
            lines = change.content.split("\n")
            for index, line in enumerate(lines):
                if line.strip().startswith(_SKIPPED_LINE_PREFIXES):
                    continue
                issues.extend(self._check_line(change.path, lines, index, line))
        return issues

    def _check_line(
        self, path: str, lines: list[str], index: int, line: str
    ) -> list[ValidationIssue]:
        found: list[ValidationIssue] = []
        line_no = index + 1

        def window(before: int, *, include_current: bool = True) -> str:
            end = index + 1 if include_current else index
            return "\n".join(lines[max(0, index - before) : end])

        if (
            _INDEXED_ACCESS_RE.search(line)
            and not _CONSTANT_INDEX_RE.search(line)
            and not _BOUNDS_GUARD_RE.search(window(2))
        ):
            found.append(
                self.create_issue(
                    path,
                    "Array access without bounds checking",
                    Severity.INFO,
                    line=line_no,
                    code="EDGE_NO_BOUNDS_CHECK",
                )
            )

        if _DIVISION_RE.search(line) and not _ZERO_GUARD_RE.search(window(3)):
            found.append(
                self.create_issue(
                    path,
                    "Division without zero check",
                    Severity.INFO,
                    line=line_no,
                    code="EDGE_DIVISION_BY_ZERO",
                )
            )

        if (
            _PROPERTY_ACCESS_RE.search(line)
            and _NULLABLE_SOURCE_RE.search(window(2, include_current=False))
            and not _OPTIONAL_CHAIN_RE.search(line)
        ):
            found.append(
                self.create_issue(
                    path,
                    "Property access on potentially null value - consider optional chaining",
                    Severity.INFO,
                    line=line_no,
                    code="EDGE_NULL_ACCESS",
                )
            )

        if _STRING_OP_RE.search(line) and not _EMPTY_GUARD_RE.search(window(3)):
            found.append(
                self.create_issue(
                    path,
                    "String operation without empty string check",
                    Severity.INFO,
                    line=line_no,
                    code="EDGE_EMPTY_STRING",
                )
            )

        if _JSON_PARSE_RE.search(line) and not _TRY_RE.search(window(3)):
            found.append(
                self.create_issue(
                    path,
                    "JSON.parse without try/catch",
                    Severity.WARNING,
                    line=line_no,
                    code="EDGE_JSON_PARSE",
                )
            )
        return found


# ---------------------------------------------------------------------------
# refactor-completeness
# ---------------------------------------------------------------------------

_DECLARED_NAME_RES: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"(?:function|const|let|var|class|interface|type)\s+(\w+)"),
    re.compile(r"export\s+(?:default\s+)?(?:function|const|class)\s+(\w+)"),
)
_RENAME_PREFIX_RATIO: Final = 0.5


@dataclass(frozen=True, slots=True)
class Rename:
    file: str
    old_name: str
    new_name: str


def declared_names(code: str) -> list[str]:
    names: list[str] = []
    for pattern in _DECLARED_NAME_RES:
        for found in pattern.finditer(code):
            if found.group(1) not in names:
                names.append(found.group(1))
    return names


def are_similar(old: str, new: str) -> bool:
    """Names share a common prefix covering at least half of the shorter name."""

    if not old or not new:
        return False
    prefix = 0
    for left, right in zip(old, new):
        if left != right:
            break
        prefix += 1
    return prefix >= min(len(old), len(new)) * _RENAME_PREFIX_RATIO


def detect_renames(context: ValidatorContext) -> list[Rename]:
    renames: list[Rename] = []
    for change in context.changes:
        if change.operation is not FileOperation.UPDATE or not change.diff:
            continue
        removed = declared_names(_diff_side(change.diff, "-"))
        added = declared_names(_diff_side(change.diff, "+"))
        for old in removed:
            if old in added:
                continue
            for new in added:
                if new != old and are_similar(old, new):
                    renames.append(Rename(file=change.path, old_name=old, new_name=new))
    return renames


def _diff_side(diff: str, marker: str) -> str:
    header = marker * 3
    return "\n".join(
        line for line in diff.split("\n") if line.startswith(marker) and not line.startswith(header)
    )


@register_builtin_validator()
class RefactorCompletenessValidator(BaseValidator):
    name = "refactor-completeness"
    stage = ValidatorStage.ACCURACY

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        changed = set(context.changed_paths)
        issues: list[ValidationIssue] = []
        for rename in detect_renames(context):
            reference = re.compile(rf"\b{re.escape(rename.old_name)}\b")
            for path, content in context.existing_files.items():
                if path in changed:
                    continue
                found = reference.search(content)
                if found is None:
                    continue
                issues.append(
                    self.create_issue(
                        path,
                        (
                            f"'{rename.old_name}' was renamed to '{rename.new_name}' "
                            "but references remain"
                        ),
                        Severity.WARNING,
                        line=line_of_offset(content, found.start()),
                        code="REFACTOR_INCOMPLETE_RENAME",
                        suggestion=f"Update references to use '{rename.new_name}'",
                    )
                )
        return issues


# ---------------------------------------------------------------------------
# doc-sync-validator
# ---------------------------------------------------------------------------

_PARAM_TAG_RE: Final = re.compile(r"@param\s+\{[^}]+\}\s+(\w+)")
_SIGNATURE_HINT_RE: Final = re.compile(r"function|=>|:\s*\(")
_TODO_RE: Final = re.compile(r"//\s*TODO|/\*\s*TODO")
_FIXME_RE: Final = re.compile(r"//\s*FIXME|/\*\s*FIXME")
_SIGNATURE_LOOKAHEAD_LINES: Final = 10


@register_builtin_validator()
class DocSyncValidator(BaseValidator):
    name = "doc-sync-validator"
    stage = ValidatorStage.ACCURACY
    default_severity = Severity.INFO

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for change in context.changes:
            lines = change.content.split("\n")
            for index, line in enumerate(lines):
                param = _PARAM_TAG_RE.search(line)
                if param is not None and self._param_missing(param.group(1), lines, index):
                    issues.append(
                        self.create_issue(
                            change.path,
                            f"@param '{param.group(1)}' may not exist in function signature",
                            Severity.INFO,
                            line=index + 1,
                            code="DOC_PARAM_MISMATCH",
                        )
                    )
                if _TODO_RE.search(line):
                    issues.append(
                        self.create_issue(
                            change.path,
                            "TODO comment found - verify if still applicable",
                            Severity.INFO,
                            line=index + 1,
                            code="DOC_TODO_FOUND",
                        )
                    )
                if _FIXME_RE.search(line):
                    issues.append(
                        self.create_issue(
                            change.path,
                            "FIXME comment found - this should be addressed",
                            Severity.WARNING,
                            line=index + 1,
                            code="DOC_FIXME_FOUND",
                        )
                    )
        return issues

    @staticmethod
    def _param_missing(param: str, lines: list[str], index: int) -> bool:
        for candidate in lines[index + 1 : index + _SIGNATURE_LOOKAHEAD_LINES]:
            if _SIGNATURE_HINT_RE.search(candidate):
                return param not in candidate
        return False


__all__ = [
    "COMMON_MISSPELLINGS",
    "DEPRECATIONS",
    "KNOWN_API_MISTAKES",
    "NODE_BUILTINS",
    "ApiExistenceValidator",
    "ComplexityAnalyzerValidator",
    "DependencyVerifierValidator",
    "DeprecationDetectorValidator",
    "DocSyncValidator",
    "EdgeCaseCheckerValidator",
    "FunctionSpan",
    "RefactorCompletenessValidator",
    "Rename",
    "StyleMatcherValidator",
    "are_similar",
    "cyclomatic_complexity",
    "declared_names",
    "detect_renames",
    "detect_style",
    "extract_functions",
    "is_likely_hallucination",
    "is_node_builtin",
    "manifest_dependencies",
    "package_name",
]

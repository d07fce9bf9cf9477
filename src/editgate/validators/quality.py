"""
editgate — quality stage validators

File: src/editgate/validators/quality.py
Last updated: 2026-10-19

Purpose
- Syntax sanity, coding standards, and security findings for proposed JS/TS/JSON changes.

Functional requirements
- JSON parse failures and bracket mismatches are blocking errors.
- Bracket scanning skips string literals and ``//`` / ``/* */`` comments.
- Every security finding carries a severity tier, a type, and a recommendation.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from editgate.validators.base import (
    BaseValidator,
    Severity,
    ValidationIssue,
    ValidatorCategory,
    ValidatorStage,
    register_builtin_validator,
)
from editgate.validators.payloads import (
    BestPracticesPayload,
    BestPracticeViolation,
    SecurityFinding,
    SecurityIssueType,
    SecurityPayload,
    SecurityTier,
    SyntaxFinding,
    SyntaxPayload,
)
from editgate.validators.text import (
    block_line_count,
    contains_pattern,
    get_extension,
    is_code_file,
    is_typescript_file,
    line_of_offset,
)

if TYPE_CHECKING:
    from editgate.domain.models import ValidatorContext

_SYNTAX_EXTENSIONS: Final = frozenset({"ts", "tsx", "js", "jsx", "json"})
_BRACKET_PAIRS: Final = {"(": ")", "[": "]", "{": "}"}
_BRACKET_CLOSERS: Final = {")": "(", "]": "[", "}": "{"}
_ASSIGNMENT_IN_CONDITION_RE: Final = re.compile(r"if\s*\([^=]*[^!=<>]=[^=][^)]*\)")


# ---------------------------------------------------------------------------
# syntax-validator
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _ScanState:
    string_char: str = ""
    in_block_comment: bool = False


@register_builtin_validator()
class SyntaxValidator(BaseValidator):
    name = "syntax-validator"
    stage = ValidatorStage.QUALITY

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        return self.evaluate(context)[0]

    def evaluate(self, context: ValidatorContext) -> tuple[list[ValidationIssue], SyntaxPayload]:
        issues: list[ValidationIssue] = []
        findings: list[SyntaxFinding] = []
        for change in context.changes:
            ext = get_extension(change.path)
            if ext not in _SYNTAX_EXTENSIONS:
                continue
            for issue, column in self._check_file(change.content, change.path, ext):
                issues.append(issue)
                findings.append(
                    SyntaxFinding(
                        file=issue.file,
                        line=issue.line or 1,
                        column=column,
                        message=issue.message,
                        severity="error" if issue.is_error else "warning",
                    )
                )
        return issues, SyntaxPayload(errors=tuple(findings))

    def _check_file(
        self, content: str, path: str, ext: str
    ) -> list[tuple[ValidationIssue, int]]:
        if ext == "json":
            try:
                json.loads(content)
            except json.JSONDecodeError as exc:
                issue = self.create_issue(
                    path,
                    f"Invalid JSON: {exc.msg} (line {exc.lineno} column {exc.colno})",
                    Severity.ERROR,
                    line=1,
                    code="SYNTAX_INVALID_JSON",
                )
                return [(issue, 1)]
            return []

        found = self._check_brackets(content, path)
        for index, line in enumerate(content.split("\n"), start=1):
            if has_unclosed_string(line):
                found.append(
                    (
                        self.create_issue(
                            path,
                            "Possible unclosed string",
                            Severity.WARNING,
                            line=index,
                            code="SYNTAX_UNCLOSED_STRING",
                        ),
                        1,
                    )
                )
            if ";;" in line:
                found.append(
                    (
                        self.create_issue(
                            path,
                            "Double semicolon",
                            Severity.WARNING,
                            line=index,
                            code="SYNTAX_DOUBLE_SEMICOLON",
                        ),
                        1,
                    )
                )
            if _ASSIGNMENT_IN_CONDITION_RE.search(line):
                found.append(
                    (
                        self.create_issue(
                            path,
                            "Possible assignment in condition (use === for comparison)",
                            Severity.WARNING,
                            line=index,
                            code="SYNTAX_ASSIGNMENT_IN_CONDITION",
                        ),
                        1,
                    )
                )
        return found

    def _check_brackets(self, content: str, path: str) -> list[tuple[ValidationIssue, int]]:
        found: list[tuple[ValidationIssue, int]] = []
        stack: list[tuple[str, int]] = []
        state = _ScanState()

        for line_index, line in enumerate(content.split("\n"), start=1):
            # Quoted strings end at the line break; template literals and block comments span lines.
            if state.string_char in {"'", '"'}:
                state.string_char = ""
            column = 0
            while column < len(line):
                char = line[column]
                nxt = line[column + 1] if column + 1 < len(line) else ""
                prev = line[column - 1] if column > 0 else ""

                if state.in_block_comment:
                    if char == "*" and nxt == "/":
                        state.in_block_comment = False
                        column += 2
                        continue
                    column += 1
                    continue

                if char in {'"', "'", "`"} and prev != "\\":
                    if not state.string_char:
                        state.string_char = char
                    elif char == state.string_char:
                        state.string_char = ""
                    column += 1
                    continue

                if state.string_char:
                    column += 1
                    continue

                if char == "/" and nxt == "/":
                    break
                if char == "/" and nxt == "*":
                    state.in_block_comment = True
                    column += 2
                    continue

                if char in _BRACKET_PAIRS:
                    stack.append((char, line_index))
                elif char in _BRACKET_CLOSERS:
                    last = stack.pop() if stack else None
                    if last is None or last[0] != _BRACKET_CLOSERS[char]:
                        found.append(
                            (
                                self.create_issue(
                                    path,
                                    f"Unmatched '{char}'",
                                    Severity.ERROR,
                                    line=line_index,
                                    code="SYNTAX_UNMATCHED_BRACKET",
                                ),
                                column + 1,
                            )
                        )
                column += 1

        for char, line_index in stack:
            found.append(
                (
                    self.create_issue(
                        path,
                        f"Unclosed '{char}'",
                        Severity.ERROR,
                        line=line_index,
                        code="SYNTAX_UNCLOSED_BRACKET",
                    ),
                    1,
                )
            )
        return found


def has_unclosed_string(line: str) -> bool:
    """True when a single- or double-quoted string is still open at end of line."""

    string_char = ""
    for index, char in enumerate(line):
        prev = line[index - 1] if index > 0 else ""
        if char in {'"', "'"} and prev != "\\":
            if not string_char:
                string_char = char
            elif char == string_char:
                string_char = ""
    return bool(string_char)


# ---------------------------------------------------------------------------
# best-practices
# ---------------------------------------------------------------------------

_CONSOLE_RE: Final = re.compile(r"console\.(log|warn|error|debug|info)\(")
_DEBUGGER_RE: Final = re.compile(r"\bdebugger\b")
_VAR_RE: Final = re.compile(r"\bvar\s+\w+")
_ANY_TYPE_RE: Final = re.compile(r":\s*any\b")
_EMPTY_CATCH_RE: Final = re.compile(r"catch\s*\([^)]*\)\s*\{\s*\}")
_MAGIC_NUMBER_RE: Final = re.compile(r"(?<![.\d])([2-9]\d{2,}|[3-9]\d|\d{4,})(?!\d)")
_MAGIC_SKIP_LINE_RE: Final = re.compile(r"^\s*(//|/\*|\*|import|export)")
_MAGIC_CONTEXT_RE: Final = re.compile(
    r"(?:port|timeout|delay|width|height|size|length|index|version)", re.IGNORECASE
)
FUNCTION_START_RE: Final = re.compile(
    r"(?:function\s+\w+|(?:const|let|var)\s+\w+\s*=\s*(?:async\s+)?(?:\([^)]*\)|[^=])\s*=>"
    r"|(?:async\s+)?\w+\s*\([^)]*\)\s*\{)"
)


@register_builtin_validator()
class BestPracticesValidator(BaseValidator):
    name = "best-practices"
    stage = ValidatorStage.QUALITY
    default_options = {"maxFunctionLines": 50}

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        max_lines = _as_int(self.option(context, "maxFunctionLines", 50), 50)
        for change in context.changes:
            if not is_code_file(change.path):
                continue
            content = change.content
            path = change.path
            for hit in contains_pattern(content, _CONSOLE_RE):
                issues.append(
                    self.create_issue(
                        path,
                        "Console statement found (remove before production)",
                        Severity.WARNING,
                        line=hit.line,
                        code="BP_CONSOLE_STATEMENT",
                    )
                )
            for hit in contains_pattern(content, _DEBUGGER_RE):
                issues.append(
                    self.create_issue(
                        path,
                        "Debugger statement found",
                        Severity.ERROR,
                        line=hit.line,
                        code="BP_DEBUGGER_STATEMENT",
                    )
                )
            for hit in contains_pattern(content, _VAR_RE):
                issues.append(
                    self.create_issue(
                        path,
                        "Use 'const' or 'let' instead of 'var'",
                        Severity.WARNING,
                        line=hit.line,
                        code="BP_VAR_USAGE",
                        suggestion="Replace var with const or let",
                    )
                )
            if is_typescript_file(path):
                for hit in contains_pattern(content, _ANY_TYPE_RE):
                    issues.append(
                        self.create_issue(
                            path,
                            "Avoid using 'any' type",
                            Severity.WARNING,
                            line=hit.line,
                            code="BP_ANY_TYPE",
                            suggestion="Use a specific type or unknown",
                        )
                    )
            for found in _EMPTY_CATCH_RE.finditer(content):
                issues.append(
                    self.create_issue(
                        path,
                        "Empty catch block - handle or log the error",
                        Severity.WARNING,
                        line=line_of_offset(content, found.start()),
                        code="BP_EMPTY_CATCH",
                    )
                )
            issues.extend(self._magic_numbers(content, path))
            issues.extend(self._long_functions(content, path, max_lines))
        return issues

    def evaluate(
        self, context: ValidatorContext
    ) -> tuple[list[ValidationIssue], BestPracticesPayload]:
        issues = self.validate(context)
        violations = tuple(
            BestPracticeViolation(
                file=issue.file,
                line=issue.line or 0,
                rule=issue.code or "best-practice",
                message=issue.message,
                suggestion=issue.suggestion or "",
            )
            for issue in issues
        )
        return issues, BestPracticesPayload(violations=violations)

    def _magic_numbers(self, content: str, path: str) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for index, line in enumerate(content.split("\n"), start=1):
            if _MAGIC_SKIP_LINE_RE.search(line) or _MAGIC_CONTEXT_RE.search(line):
                continue
            if _MAGIC_NUMBER_RE.search(line):
                issues.append(
                    self.create_issue(
                        path,
                        "Consider extracting magic number to named constant",
                        Severity.INFO,
                        line=index,
                        code="BP_MAGIC_NUMBER",
                    )
                )
        return issues

    def _long_functions(self, content: str, path: str, max_lines: int) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for found in FUNCTION_START_RE.finditer(content):
            line_count = block_line_count(content, found.start())
            if line_count > max_lines:
                issues.append(
                    self.create_issue(
                        path,
                        f"Function is {line_count} lines (max recommended: {max_lines})",
                        Severity.WARNING,
                        line=line_of_offset(content, found.start()),
                        code="BP_LONG_FUNCTION",
                        suggestion="Consider breaking into smaller functions",
                    )
                )
        return issues


# ---------------------------------------------------------------------------
# security-scanner
# ---------------------------------------------------------------------------

_SECRET_PATTERNS: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (re.compile(r"""['"]sk[-_](?:live|test)[-_][a-zA-Z0-9]{24,}['"]"""), "Stripe key"),
    (re.compile(r"""['"](?:AKIA|ABIA|ACCA)[A-Z0-9]{16}['"]"""), "AWS access key"),
    (re.compile(r"""['"][a-f0-9]{32}['"]"""), "Possible API key (32 char hex)"),
    (re.compile(r"""password\s*[:=]\s*['"][^'"]{8,}['"]"""), "Hardcoded password"),
    (re.compile(r"""api[-_]?key\s*[:=]\s*['"][^'"]+['"]"""), "Hardcoded API key"),
    (re.compile(r"""secret\s*[:=]\s*['"][^'"]+['"]"""), "Hardcoded secret"),
    (re.compile(r"""['"]ghp_[a-zA-Z0-9]{36}['"]"""), "GitHub token"),
)
_SECRET_EXEMPT_RE: Final = re.compile(r"^\s*//|process\.env")
_SQL_INJECTION_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"`SELECT[^`]*\$\{", re.IGNORECASE),
    re.compile(r"`INSERT[^`]*\$\{", re.IGNORECASE),
    re.compile(r"`UPDATE[^`]*\$\{", re.IGNORECASE),
    re.compile(r"`DELETE[^`]*\$\{", re.IGNORECASE),
    re.compile(r'"SELECT[^"]*"\s*\+', re.IGNORECASE),
    re.compile(r"query\s*\(\s*`[^`]*\$\{", re.IGNORECASE),
)
_XSS_PATTERNS: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (re.compile(r"dangerouslySetInnerHTML"), "dangerouslySetInnerHTML usage"),
    (re.compile(r"innerHTML\s*="), "innerHTML assignment"),
    (re.compile(r"document\.write\s*\("), "document.write usage"),
    (re.compile(r"\.html\s*\(\s*[^)]*\$"), "jQuery .html() with variable"),
)
_PATH_TRAVERSAL_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"path\.join\([^)]*req\."),
    re.compile(r"fs\.\w+\([^)]*req\."),
    re.compile(r"readFile\([^)]*\+"),
)
_RANDOM_RE: Final = re.compile(r"Math\.random\s*\(\s*\)")
_SECURITY_CONTEXT_RE: Final = re.compile(r"token|key|secret|password|id|uuid", re.IGNORECASE)
_EVAL_PATTERNS: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (re.compile(r"\beval\s*\("), "eval() usage"),
    (re.compile(r"new\s+Function\s*\("), "new Function() usage"),
    (re.compile(r"""setTimeout\s*\(\s*['"]"""), "setTimeout with string"),
    (re.compile(r"""setInterval\s*\(\s*['"]"""), "setInterval with string"),
)
SECURITY_RECOMMENDATIONS: Final[dict[str, str]] = {
    "SEC_HARDCODED_SECRET": "Use environment variables or a secrets manager",
    "SEC_SQL_INJECTION": "Use parameterized queries or an ORM",
    "SEC_XSS": "Sanitize user input and use safe DOM APIs",
    "SEC_PATH_TRAVERSAL": "Validate and sanitize file paths",
    "SEC_INSECURE_RANDOM": "Use crypto.randomBytes() for security-sensitive values",
    "SEC_EVAL": "Avoid dynamic code execution; use safer alternatives",
}


def security_tier(code: str) -> SecurityTier:
    if "SECRET" in code or "SQL_INJECTION" in code or "EVAL" in code:
        return "critical"
    if "XSS" in code or "PATH_TRAVERSAL" in code:
        return "high"
    if "INSECURE_RANDOM" in code:
        return "medium"
    return "low"


def security_type(code: str) -> SecurityIssueType:
    if "SECRET" in code:
        return "hardcoded_secret"
    if "SQL_INJECTION" in code:
        return "sql_injection"
    if "XSS" in code:
        return "xss"
    if "PATH_TRAVERSAL" in code:
        return "path_traversal"
    return "other"


@register_builtin_validator()
class SecurityScannerValidator(BaseValidator):
    name = "security-scanner"
    stage = ValidatorStage.QUALITY
    category = ValidatorCategory.SECURITY

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for change in context.changes:
            content = change.content
            path = change.path
            issues.extend(self._hardcoded_secrets(content, path))
            for pattern in _SQL_INJECTION_PATTERNS:
                for hit in contains_pattern(content, pattern):
                    issues.append(
                        self.create_issue(
                            path,
                            "Possible SQL injection vulnerability - use parameterized queries",
                            Severity.ERROR,
                            line=hit.line,
                            code="SEC_SQL_INJECTION",
                        )
                    )
            for pattern, label in _XSS_PATTERNS:
                for hit in contains_pattern(content, pattern):
                    issues.append(
                        self.create_issue(
                            path,
                            f"Possible XSS vulnerability: {label}",
                            Severity.WARNING,
                            line=hit.line,
                            code="SEC_XSS",
                        )
                    )
            for pattern in _PATH_TRAVERSAL_PATTERNS:
                for hit in contains_pattern(content, pattern):
                    issues.append(
                        self.create_issue(
                            path,
                            "Possible path traversal vulnerability - validate user input",
                            Severity.WARNING,
                            line=hit.line,
                            code="SEC_PATH_TRAVERSAL",
                        )
                    )
            lines = content.split("\n")
            for hit in contains_pattern(content, _RANDOM_RE):
                if _SECURITY_CONTEXT_RE.search(lines[hit.line - 1]):
                    issues.append(
                        self.create_issue(
                            path,
                            "Math.random() is not cryptographically secure - use crypto.randomBytes()",
                            Severity.WARNING,
                            line=hit.line,
                            code="SEC_INSECURE_RANDOM",
                        )
                    )
            for pattern, label in _EVAL_PATTERNS:
                for hit in contains_pattern(content, pattern):
                    issues.append(
                        self.create_issue(
                            path,
                            f"Dangerous {label} - avoid dynamic code execution",
                            Severity.ERROR,
                            line=hit.line,
                            code="SEC_EVAL",
                        )
                    )
        return issues

    def evaluate(self, context: ValidatorContext) -> tuple[list[ValidationIssue], SecurityPayload]:
        issues = self.validate(context)
        findings = tuple(
            SecurityFinding(
                file=issue.file,
                line=issue.line or 0,
                severity=security_tier(issue.code or ""),
                type=security_type(issue.code or ""),
                description=issue.message,
                recommendation=issue.suggestion
                or SECURITY_RECOMMENDATIONS.get(issue.code or "", "Review and fix the security issue"),
            )
            for issue in issues
        )
        return issues, SecurityPayload(security_issues=findings)

    def _hardcoded_secrets(self, content: str, path: str) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for index, line in enumerate(content.split("\n"), start=1):
            if _SECRET_EXEMPT_RE.search(line):
                continue
            for pattern, label in _SECRET_PATTERNS:
                if pattern.search(line):
                    issues.append(
                        self.create_issue(
                            path,
                            f"Possible hardcoded {label} detected",
                            Severity.ERROR,
                            line=index,
                            code="SEC_HARDCODED_SECRET",
                        )
                    )
        return issues


def _as_int(value: object, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(value)


__all__ = [
    "FUNCTION_START_RE",
    "SECURITY_RECOMMENDATIONS",
    "BestPracticesValidator",
    "SecurityScannerValidator",
    "SyntaxValidator",
    "has_unclosed_string",
    "security_tier",
    "security_type",
]

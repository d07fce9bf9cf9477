"""Line-oriented source scanning helpers shared by the validator stages."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Final

CODE_EXTENSIONS: Final[frozenset[str]] = frozenset({"ts", "tsx", "js", "jsx"})
TYPESCRIPT_EXTENSIONS: Final[frozenset[str]] = frozenset({"ts", "tsx"})

_IMPORT_RE: Final = re.compile(
    r"""import\s+(?:(\w+)|\{[^}]+\}|\*\s+as\s+\w+)\s+from\s+['"]([^'"]+)['"]"""
)
_REQUIRE_RE: Final = re.compile(
    r"""(?:const|let|var)\s+(?:(\w+)|\{[^}]+\})\s*=\s*require\s*\(\s*['"]([^'"]+)['"]\s*\)"""
)
_CALL_RE: Final = re.compile(r"(?:(\w+)\.)?(\w+)\s*\(")
_TEST_FILE_RE: Final = re.compile(r"\.(?:test|spec)\.")
_NAMED_EXPORT_RE: Final = re.compile(
    r"export\s+(?:const|let|var|function|class|interface|type|enum)\s+(\w+)"
)
_EXPORT_LIST_RE: Final = re.compile(r"export\s*\{\s*([^}]+)\s*\}")
_DEFAULT_EXPORT_RE: Final = re.compile(r"export\s+default\b")


@dataclass(frozen=True, slots=True)
class PatternMatch:
    line: int
    match: str


@dataclass(frozen=True, slots=True)
class ImportRef:
    line: int
    module: str
    is_default: bool


@dataclass(frozen=True, slots=True)
class CallRef:
    line: int
    call: str
    object: str | None = None


def contains_pattern(content: str, pattern: re.Pattern[str]) -> list[PatternMatch]:
    """First match of ``pattern`` on every non-empty line, 1-based line numbers."""

    results: list[PatternMatch] = []
    for index, line in enumerate(content.split("\n")):
        if not line:
            continue
        found = pattern.search(line)
        if found is not None:
            results.append(PatternMatch(line=index + 1, match=found.group(0)))
    return results


def extract_imports(content: str) -> list[ImportRef]:
    imports: list[ImportRef] = []
    for index, line in enumerate(content.split("\n")):
        if not line:
            continue
        found = _IMPORT_RE.search(line) or _REQUIRE_RE.search(line)
        if found is not None:
            imports.append(
                ImportRef(line=index + 1, module=found.group(2) or "", is_default=bool(found.group(1)))
            )
    return imports


def extract_function_calls(content: str) -> list[CallRef]:
    calls: list[CallRef] = []
    for index, line in enumerate(content.split("\n")):
        for found in _CALL_RE.finditer(line):
            calls.append(CallRef(line=index + 1, call=found.group(2), object=found.group(1)))
    return calls


def extract_exports(content: str) -> set[str]:
    """Names exported by declaration, by ``export { ... }`` lists, and ``default``."""

    exported: set[str] = set(found.group(1) for found in _NAMED_EXPORT_RE.finditer(content))
    for found in _EXPORT_LIST_RE.finditer(content):
        for raw in found.group(1).split(","):
            name = re.split(r"\s+as\s+", raw.strip())[0].strip()
            if name:
                exported.add(name)
    if _DEFAULT_EXPORT_RE.search(content):
        exported.add("default")
    return exported


def resolve_import(from_path: str, import_path: str) -> str:
    """Resolve a relative module specifier against the importing file's directory."""

    if not import_path.startswith("."):
        return import_path
    parts = [part for part in from_path.split("/")[:-1] if part]
    for part in import_path.split("/"):
        if part == ".":
            continue
        if part == "..":
            if parts:
                parts.pop()
        else:
            parts.append(part)
    return "/".join(parts)


def get_extension(path: str) -> str:
    """Lower-cased suffix without the dot (``"ts"`` for ``src/a.ts``)."""

    suffix = PurePosixPath(path).suffix
    return suffix[1:].lower() if suffix else ""


def is_code_file(path: str) -> bool:
    return get_extension(path) in CODE_EXTENSIONS


def is_typescript_file(path: str) -> bool:
    return get_extension(path) in TYPESCRIPT_EXTENSIONS


def is_test_file(path: str) -> bool:
    normalized = path.replace("\\", "/")
    return bool(_TEST_FILE_RE.search(normalized)) or "__tests__" in normalized


def line_of_offset(content: str, offset: int) -> int:
    """1-based line number of a character offset."""

    return content.count("\n", 0, offset) + 1


def block_line_count(content: str, start: int) -> int:
    """
    Lines spanned from ``start`` to the brace closing the first ``{`` after it.

    Returns 0 when no balanced block follows ``start``.
    """

    depth = 0
    opened = False
    for index in range(start, len(content)):
        char = content[index]
        if char == "{":
            depth += 1
            opened = True
        elif char == "}":
            depth -= 1
            if opened and depth == 0:
                return content.count("\n", start, index) + 1
    return 0


def block_text(content: str, start: int) -> str:
    """Text of the first balanced ``{...}`` block at or after ``start`` (empty if none)."""

    depth = 0
    opened_at = -1
    for index in range(start, len(content)):
        char = content[index]
        if char == "{":
            if depth == 0:
                opened_at = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                return content[opened_at : index + 1]
    return ""


def significant_words(text: str, *, min_length: int = 4) -> list[str]:
    """Lower-cased whitespace-separated words of at least ``min_length`` characters."""

    return [word for word in text.lower().split() if len(word) >= min_length]


__all__ = [
    "CODE_EXTENSIONS",
    "TYPESCRIPT_EXTENSIONS",
    "CallRef",
    "ImportRef",
    "PatternMatch",
    "block_line_count",
    "block_text",
    "contains_pattern",
    "extract_exports",
    "extract_function_calls",
    "extract_imports",
    "get_extension",
    "is_code_file",
    "is_test_file",
    "is_typescript_file",
    "line_of_offset",
    "resolve_import",
    "significant_words",
]

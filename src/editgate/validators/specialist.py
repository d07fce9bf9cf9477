"""
editgate — specialist stage validators

File: src/editgate/validators/specialist.py
Last updated: 2026-10-19

Purpose
- Domain checks that only make sense for particular kinds of files: component
  hooks, listener cleanup, HTTP client usage, auth flows, environment variables,
  secret exposure, Dockerfiles, and cloud deployment configuration.

Functional requirements
- Each validator decides applicability per file and skips the rest silently.
- ``secrets-exposure-checker`` is a security-category validator; a failing
  result stops the pipeline early.
- ``cloud-config-validator`` reads structured YAML/JSON when it parses so that
  wildcard IAM statements written as block lists are still found; otherwise it
  falls back to line patterns only.

Non-functional requirements
- Pure functions of the change content; no filesystem or network access.
"""

from __future__ import annotations

import json
import math
import re
from collections import Counter
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Final

import yaml

from editgate.validators.base import (
    BaseValidator,
    Severity,
    ValidationIssue,
    ValidatorCategory,
    ValidatorStage,
    register_builtin_validator,
)
from editgate.validators.text import get_extension, is_code_file

if TYPE_CHECKING:
    from collections.abc import Iterator

    from editgate.domain.models import ValidatorContext


_HOOK_CALL_RE: Final = re.compile(r"\buse[A-Z]\w*\s*\(")
_INLINE_CONDITIONAL_HOOK_RE: Final = re.compile(r"if\s*\([^)]*\)\s*\{[^}]*use[A-Z]\w*\s*\(")
_IF_RE: Final = re.compile(r"\bif\s*\(")
_LOOP_START_RE: Final = re.compile(r"\b(?:for|while|do)\s*[({]")
_RETURN_RE: Final = re.compile(r"^\s*return\b")
_BLOCK_CLOSE_RE: Final = re.compile(r"^\s*\}")
_LINE_COMMENT_RE: Final = re.compile(r"^\s*//")
_USE_EFFECT_RE: Final = re.compile(r"useEffect\s*\(\s*\(\s*\)\s*=>\s*\{")
_DEPS_ARRAY_RE: Final = re.compile(r"\[[^\]]*\]")
_FUNCTION_DECL_RE: Final = re.compile(
    r"(?:const|function)\s+([a-z]\w*)\s*=?\s*(?:\([^)]*\)\s*=>|\()"
)
_LOOP_LOOKAHEAD_LINES: Final = 10


@register_builtin_validator()
class HookRulesCheckerValidator(BaseValidator):
    name = "hook-rules-checker"
    stage = ValidatorStage.SPECIALIST

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for change in context.changes:
            if is_code_file(change.path):
                issues.extend(self._check_hooks(change.path, change.content.split("\n")))
        return issues

    def _check_hooks(self, path: str, lines: list[str]) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for index, line in enumerate(lines):
            following = lines[index + 1] if index + 1 < len(lines) else ""
            if _INLINE_CONDITIONAL_HOOK_RE.search(line) or (
                _IF_RE.search(line) and _HOOK_CALL_RE.search(following)
            ):
                issues.append(
                    self.create_issue(
                        path,
                        "Hook may be called conditionally - hooks must be called unconditionally",
                        Severity.ERROR,
                        line=index + 1,
                        code="HOOK_CONDITIONAL",
                    )
                )

            if _LOOP_START_RE.search(line):
                for inner in range(index, min(index + _LOOP_LOOKAHEAD_LINES, len(lines))):
                    if "}" in lines[inner]:
                        break
                    if _HOOK_CALL_RE.search(lines[inner]):
                        issues.append(
                            self.create_issue(
                                path,
                                "Hook called inside loop - hooks must not be in loops",
                                Severity.ERROR,
                                line=inner + 1,
                                code="HOOK_IN_LOOP",
                            )
                        )

            if _RETURN_RE.search(line):
                for inner in range(index + 1, len(lines)):
                    candidate = lines[inner]
                    if _BLOCK_CLOSE_RE.search(candidate):
                        break
                    if _HOOK_CALL_RE.search(candidate) and not _LINE_COMMENT_RE.search(candidate):
                        issues.append(
                            self.create_issue(
                                path,
                                "Hook called after early return",
                                Severity.ERROR,
                                line=inner + 1,
                                code="HOOK_AFTER_RETURN",
                            )
                        )

            if _USE_EFFECT_RE.search(line) and not _effect_has_deps(lines, index):
                issues.append(
                    self.create_issue(
                        path,
                        "useEffect may be missing dependency array",
                        Severity.WARNING,
                        line=index + 1,
                        code="HOOK_MISSING_DEPS",
                    )
                )

            declared = _FUNCTION_DECL_RE.search(line)
            if declared is not None and _misnamed_hook_user(declared.group(1), lines, index):
                issues.append(
                    self.create_issue(
                        path,
                        f"Function '{declared.group(1)}' uses hooks but name doesn't start with 'use'",
                        Severity.WARNING,
                        line=index + 1,
                        code="HOOK_INVALID_NAME",
                    )
                )
        return issues


def _effect_has_deps(lines: list[str], start: int) -> bool:
    depth = 0
    found_deps = False
    for line in lines[start:]:
        depth += line.count("{") - line.count("}")
        if _DEPS_ARRAY_RE.search(line):
            found_deps = True
        if depth == 0:
            return found_deps
    # Unbalanced effect body; nothing reliable to report.
    return True


def _misnamed_hook_user(function_name: str, lines: list[str], start: int) -> bool:
    if function_name.startswith("use"):
        return False
    lowered = function_name.lower()
    if "render" in lowered or "component" in lowered:
        return False
    body: list[str] = []
    depth = 0
    for offset, line in enumerate(lines[start:]):
        body.append(line)
        depth += line.count("{") - line.count("}")
        if depth == 0 and offset > 0:
            break
    return bool(_HOOK_CALL_RE.search("".join(body)))


# ---------------------------------------------------------------------------
# event-leak-detector
# ---------------------------------------------------------------------------

_ADD_LISTENER_RE: Final = re.compile(r"addEventListener\s*\(")
_SET_INTERVAL_RE: Final = re.compile(r"setInterval\s*\(")
_SET_TIMEOUT_RE: Final = re.compile(r"setTimeout\s*\(")
_EMITTER_ON_RE: Final = re.compile(r"""\.on\s*\(\s*['"][^'"]+['"]""")
_SUBSCRIBE_RE: Final = re.compile(r"\.subscribe\s*\(")
_EFFECT_LOOKBEHIND_LINES: Final = 10
_CLEANUP_LOOKAHEAD_LINES: Final = 20


@register_builtin_validator()
class EventLeakDetectorValidator(BaseValidator):
    name = "event-leak-detector"
    stage = ValidatorStage.SPECIALIST

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for change in context.changes:
            issues.extend(self._check_leaks(change.path, change.content))
        return issues

    def _check_leaks(self, path: str, content: str) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        lines = content.split("\n")
        has_remove_listener = "removeEventListener" in content
        has_clear_interval = "clearInterval" in content
        has_emitter_off = ".off(" in content or ".removeListener(" in content
        has_unsubscribe = "unsubscribe" in content or "takeUntil" in content

        for index, line in enumerate(lines):
            line_no = index + 1
            if _ADD_LISTENER_RE.search(line) and not has_remove_listener:
                issues.append(
                    self.create_issue(
                        path,
                        "addEventListener without removeEventListener - potential memory leak",
                        Severity.WARNING,
                        line=line_no,
                        code="LEAK_EVENT_LISTENER",
                    )
                )
            if _SET_INTERVAL_RE.search(line) and not has_clear_interval:
                issues.append(
                    self.create_issue(
                        path,
                        "setInterval without clearInterval - potential memory leak",
                        Severity.WARNING,
                        line=line_no,
                        code="LEAK_INTERVAL",
                    )
                )
            if _SET_TIMEOUT_RE.search(line):
                before = "\n".join(lines[max(0, index - _EFFECT_LOOKBEHIND_LINES) : index])
                after = "\n".join(lines[index : index + _CLEANUP_LOOKAHEAD_LINES])
                if "useEffect" in before and "clearTimeout" not in after:
                    issues.append(
                        self.create_issue(
                            path,
                            "setTimeout in useEffect without clearTimeout in cleanup",
                            Severity.INFO,
                            line=line_no,
                            code="LEAK_TIMEOUT",
                        )
                    )
            if _EMITTER_ON_RE.search(line) and not has_emitter_off:
                issues.append(
                    self.create_issue(
                        path,
                        "Event emitter .on() without .off() - potential memory leak",
                        Severity.WARNING,
                        line=line_no,
                        code="LEAK_EMITTER",
                    )
                )
            if _SUBSCRIBE_RE.search(line) and not has_unsubscribe:
                issues.append(
                    self.create_issue(
                        path,
                        "Observable subscription without unsubscribe - potential memory leak",
                        Severity.WARNING,
                        line=line_no,
                        code="LEAK_SUBSCRIPTION",
                    )
                )
        return issues


# ---------------------------------------------------------------------------
# api-contract-validator / auth-flow-validator
# ---------------------------------------------------------------------------

_FETCH_RE: Final = re.compile(r"fetch\s*\(")
_FETCH_CALL_RE: Final = re.compile(r"fetch\s*\([^)]+\)")
_API_HINT_RE: Final = re.compile(r"api|endpoint", re.IGNORECASE)
_AUTH_HINT_RE: Final = re.compile(r"[Aa]uthorization|[Aa]uth|[Tt]oken|[Aa]pi[-_]?[Kk]ey")
_AXIOS_CALL_RE: Final = re.compile(r"axios\.\w+\s*\(")
_CATCH_RE: Final = re.compile(r"\.catch\s*\(")
_TRY_RE: Final = re.compile(r"try\s*\{")
_HANDLER_LOOKAHEAD_LINES: Final = 10
_TRY_LOOKBEHIND_LINES: Final = 5
_AUTH_LOOKAHEAD_LINES: Final = 5


@register_builtin_validator()
class ApiContractValidator(BaseValidator):
    name = "api-contract-validator"
    stage = ValidatorStage.SPECIALIST

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for change in context.changes:
            lines = change.content.split("\n")
            for index, line in enumerate(lines):
                issues.extend(self._check_line(change.path, lines, index, line))
        return issues

    def _check_line(
        self, path: str, lines: list[str], index: int, line: str
    ) -> list[ValidationIssue]:
        found: list[ValidationIssue] = []
        handled = _has_error_handling(lines, index)
        if _FETCH_RE.search(line) and not handled:
            found.append(
                self.create_issue(
                    path,
                    "fetch() call without error handling",
                    Severity.WARNING,
                    line=index + 1,
                    code="API_NO_ERROR_HANDLING",
                )
            )
        if _FETCH_CALL_RE.search(line) and _API_HINT_RE.search(line):
            window = "\n".join(lines[index : index + _AUTH_LOOKAHEAD_LINES])
            if not _AUTH_HINT_RE.search(window):
                found.append(
                    self.create_issue(
                        path,
                        "API call may be missing authentication",
                        Severity.INFO,
                        line=index + 1,
                        code="API_MISSING_AUTH",
                    )
                )
        if _AXIOS_CALL_RE.search(line) and not handled:
            found.append(
                self.create_issue(
                    path,
                    "axios call without error handling",
                    Severity.WARNING,
                    line=index + 1,
                    code="API_AXIOS_NO_CATCH",
                )
            )
        return found


def _has_error_handling(lines: list[str], index: int) -> bool:
    after = "\n".join(lines[index : index + _HANDLER_LOOKAHEAD_LINES])
    before = "\n".join(lines[max(0, index - _TRY_LOOKBEHIND_LINES) : index])
    return bool(_CATCH_RE.search(after) or _TRY_RE.search(before))


_AUTH_RELEVANT_RE: Final = re.compile(r"auth|login|token|session", re.IGNORECASE)
_TOKEN_STORAGE_RE: Final = re.compile(
    r"localStorage\.\w+\s*\([^)]*(?:token|auth|jwt)", re.IGNORECASE
)
_TOKEN_ASSIGN_RE: Final = re.compile(r"(?:jwt|token)\s*=")
_TOKEN_CHECK_RE: Final = re.compile(r"verify|decode|validate", re.IGNORECASE)
_TOKEN_IN_URL_RE: Final = re.compile(r"\?.*(?:token|api_key|auth)=", re.IGNORECASE)
_LOGIN_RE: Final = re.compile(r"login|signIn|authenticate", re.IGNORECASE)
_LOGOUT_RE: Final = re.compile(r"logout|signOut|clearSession", re.IGNORECASE)


@register_builtin_validator()
class AuthFlowValidator(BaseValidator):
    name = "auth-flow-validator"
    stage = ValidatorStage.SPECIALIST

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for change in context.changes:
            if _AUTH_RELEVANT_RE.search(change.path + change.content):
                issues.extend(self._check_auth(change.path, change.content))
        return issues

    def _check_auth(self, path: str, content: str) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        token_checked = bool(_TOKEN_CHECK_RE.search(content))
        for index, line in enumerate(content.split("\n")):
            if _TOKEN_STORAGE_RE.search(line):
                issues.append(
                    self.create_issue(
                        path,
                        (
                            "Storing auth tokens in localStorage is vulnerable to XSS - "
                            "consider httpOnly cookies"
                        ),
                        Severity.WARNING,
                        line=index + 1,
                        code="AUTH_INSECURE_STORAGE",
                    )
                )
            if _TOKEN_ASSIGN_RE.search(line) and not token_checked:
                issues.append(
                    self.create_issue(
                        path,
                        "JWT/token usage without apparent validation",
                        Severity.WARNING,
                        line=index + 1,
                        code="AUTH_NO_VALIDATION",
                    )
                )
            if _TOKEN_IN_URL_RE.search(line):
                issues.append(
                    self.create_issue(
                        path,
                        "Token exposed in URL query parameter - use headers instead",
                        Severity.ERROR,
                        line=index + 1,
                        code="AUTH_TOKEN_IN_URL",
                    )
                )
        if _LOGIN_RE.search(content) and not _LOGOUT_RE.search(content):
            issues.append(
                self.create_issue(
                    path,
                    "Auth implementation without logout/cleanup functionality",
                    Severity.INFO,
                    code="AUTH_NO_LOGOUT",
                )
            )
        return issues


# ---------------------------------------------------------------------------
# environment-consistency / secrets-exposure-checker
# ---------------------------------------------------------------------------

_ENV_USAGE_RE: Final = re.compile(r"process\.env\.(\w+)|import\.meta\.env\.(\w+)")
_ENV_DEFINITION_RE: Final = re.compile(r"^(?:export\s+)?([A-Z][A-Z0-9_]*)=", re.MULTILINE)
COMMON_ENV_VARS: Final[frozenset[str]] = frozenset(
    {"NODE_ENV", "PORT", "HOST", "DEBUG", "HOME", "PATH", "USER"}
)


@register_builtin_validator()
class EnvironmentConsistencyValidator(BaseValidator):
    name = "environment-consistency"
    stage = ValidatorStage.SPECIALIST

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        usage: dict[str, str] = {}
        for change in context.changes:
            for found in _ENV_USAGE_RE.finditer(change.content):
                usage.setdefault(found.group(1) or found.group(2), change.path)

        defined: set[str] = set()
        for change in context.changes:
            if _is_env_file(change.path):
                defined.update(_ENV_DEFINITION_RE.findall(change.content))
        for path, content in context.existing_files.items():
            if _is_env_file(path):
                defined.update(_ENV_DEFINITION_RE.findall(content))

        return [
            self.create_issue(
                first_path,
                f"Environment variable '{name}' used but may not be defined",
                Severity.WARNING,
                code="ENV_UNDEFINED_VAR",
            )
            for name, first_path in usage.items()
            if name not in defined and name not in COMMON_ENV_VARS
        ]


def _is_env_file(path: str) -> bool:
    return ".env" in path.rsplit("/", 1)[-1]


_LOGGED_SECRET_RE: Final = re.compile(
    r"console\.\w+\([^)]*(?:password|secret|token|key|auth)", re.IGNORECASE
)
_SECRET_IN_ERROR_RE: Final = re.compile(
    r"(?:throw|Error)\s*\([^)]*(?:password|secret|token|apiKey)", re.IGNORECASE
)
_SECRET_CANDIDATE_RES: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"""['"]([A-Za-z0-9+/=]{32,})['"]"""),
    re.compile(r"""['"]([a-f0-9]{32,})['"]"""),
    re.compile(r"""['"](sk-[A-Za-z0-9]{32,})['"]"""),
)
_ENV_REFERENCE_RE: Final = re.compile(r"process\.env|import\.meta\.env")
MIN_SECRET_ENTROPY: Final = 3.0


def shannon_entropy(value: str) -> float:
    """Bits per character of ``value``'s empirical character distribution."""

    if not value:
        return 0.0
    total = len(value)
    return -sum(
        (count / total) * math.log2(count / total) for count in Counter(value).values()
    )


@register_builtin_validator()
class SecretsExposureCheckerValidator(BaseValidator):
    name = "secrets-exposure-checker"
    stage = ValidatorStage.SPECIALIST
    category = ValidatorCategory.SECURITY

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for change in context.changes:
            for index, line in enumerate(change.content.split("\n")):
                issues.extend(self._check_line(change.path, index + 1, line))
        return issues

    def _check_line(self, path: str, line_no: int, line: str) -> list[ValidationIssue]:
        found: list[ValidationIssue] = []
        if _LOGGED_SECRET_RE.search(line):
            found.append(
                self.create_issue(
                    path,
                    "Possible secret being logged",
                    Severity.ERROR,
                    line=line_no,
                    code="SECRET_LOGGED",
                )
            )
        if _SECRET_IN_ERROR_RE.search(line):
            found.append(
                self.create_issue(
                    path,
                    "Possible secret in error message",
                    Severity.WARNING,
                    line=line_no,
                    code="SECRET_IN_ERROR",
                )
            )
        if not _ENV_REFERENCE_RE.search(line) and _has_high_entropy_literal(line):
            found.append(
                self.create_issue(
                    path,
                    "High-entropy string detected - possible hardcoded secret",
                    Severity.WARNING,
                    line=line_no,
                    code="SECRET_HIGH_ENTROPY",
                )
            )
        return found


def _has_high_entropy_literal(line: str) -> bool:
    for pattern in _SECRET_CANDIDATE_RES:
        for found in pattern.finditer(line):
            if shannon_entropy(found.group(1)) >= MIN_SECRET_ENTROPY:
                return True
    return False


# ---------------------------------------------------------------------------
# docker-best-practices
# ---------------------------------------------------------------------------

_DOCKERFILE_RE: Final = re.compile(r"dockerfile", re.IGNORECASE)
_FROM_RE: Final = re.compile(
    r"^\s*FROM\s+(?:--platform=\S+\s+)?(\S+)(?:\s+AS\s+(\S+))?", re.IGNORECASE
)
_USER_RE: Final = re.compile(r"^\s*USER\s+(\S+)", re.IGNORECASE)
_SECRET_ARG_RE: Final = re.compile(r"^\s*ARG\s+\w*(?:PASSWORD|SECRET|TOKEN|KEY)", re.IGNORECASE)
_SECRET_ENV_RE: Final = re.compile(
    r"^\s*ENV\s+\w*(?:PASSWORD|SECRET|TOKEN|KEY)\w*(?:\s*=\s*|\s+)\S", re.IGNORECASE
)
_HEALTHCHECK_RE: Final = re.compile(r"^\s*HEALTHCHECK\b", re.IGNORECASE | re.MULTILINE)
_ROOT_USERS: Final = frozenset({"root", "0", "0:0", "root:root"})


@register_builtin_validator()
class DockerBestPracticesValidator(BaseValidator):
    name = "docker-best-practices"
    stage = ValidatorStage.SPECIALIST

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for change in context.changes:
            if _DOCKERFILE_RE.search(change.path):
                issues.extend(self._check_dockerfile(change.path, change.content))
        return issues

    def _check_dockerfile(self, path: str, content: str) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        stage_names: set[str] = set()
        last_user: tuple[int, str] | None = None
        first_from: int | None = None

        for index, line in enumerate(content.split("\n")):
            line_no = index + 1
            base = _FROM_RE.search(line)
            if base is not None:
                if first_from is None:
                    first_from = line_no
                image = base.group(1)
                issue = self._image_tag_issue(path, line_no, image, stage_names)
                if issue is not None:
                    issues.append(issue)
                if base.group(2):
                    stage_names.add(base.group(2).lower())

            user = _USER_RE.search(line)
            if user is not None:
                last_user = (line_no, user.group(1))

            if _SECRET_ARG_RE.search(line) or _SECRET_ENV_RE.search(line):
                issues.append(
                    self.create_issue(
                        path,
                        "Secrets in ARG/ENV are visible in image history",
                        Severity.ERROR,
                        line=line_no,
                        code="DOCKER_SECRET_ARG",
                    )
                )

        if first_from is not None:
            if last_user is None:
                issues.append(
                    self.create_issue(
                        path,
                        "Container runs as root - add USER instruction",
                        Severity.WARNING,
                        line=first_from,
                        code="DOCKER_ROOT_USER",
                    )
                )
            elif last_user[1].lower() in _ROOT_USERS:
                issues.append(
                    self.create_issue(
                        path,
                        "Container runs as root - switch to an unprivileged USER",
                        Severity.WARNING,
                        line=last_user[0],
                        code="DOCKER_ROOT_USER",
                    )
                )

        if not _HEALTHCHECK_RE.search(content):
            issues.append(
                self.create_issue(
                    path,
                    "No HEALTHCHECK instruction - consider adding for better orchestration",
                    Severity.INFO,
                    code="DOCKER_NO_HEALTHCHECK",
                )
            )
        return issues

    def _image_tag_issue(
        self, path: str, line_no: int, image: str, stage_names: set[str]
    ) -> ValidationIssue | None:
        if image.lower() == "scratch" or image.lower() in stage_names or "$" in image:
            return None
        if image.lower().endswith(":latest"):
            return self.create_issue(
                path,
                "Avoid :latest tag - use specific version for reproducibility",
                Severity.WARNING,
                line=line_no,
                code="DOCKER_LATEST_TAG",
            )
        name_part = image.rsplit("/", 1)[-1]
        if ":" not in name_part and "@" not in image:
            return self.create_issue(
                path,
                f"Base image '{image}' has no tag - pin a specific version",
                Severity.WARNING,
                line=line_no,
                code="DOCKER_LATEST_TAG",
            )
        return None


# ---------------------------------------------------------------------------
# cloud-config-validator
# ---------------------------------------------------------------------------

_CLOUD_CONFIG_RE: Final = re.compile(
    r"serverless\.ya?ml|vercel\.json|netlify\.toml|\.aws|\.tf$", re.IGNORECASE
)
_PERMISSIVE_ACTION_RE: Final = re.compile(r""""Action"\s*:\s*"\*"|Action:\s*['"]?\*""")
_PERMISSIVE_RESOURCE_RE: Final = re.compile(r""""Resource"\s*:\s*"\*"|Resource:\s*['"]?\*""")
_PUBLIC_ACCESS_RE: Final = re.compile(
    r"public[_-]?access.*true|acl.*public|0\.0\.0\.0/0", re.IGNORECASE
)

_CLOUD_MESSAGES: Final[dict[str, str]] = {
    "CLOUD_PERMISSIVE_ACTION": "Overly permissive action (*) - follow least privilege principle",
    "CLOUD_PERMISSIVE_RESOURCE": "Overly permissive resource (*) - scope to specific resources",
    "CLOUD_PUBLIC_ACCESS": "Public access enabled - ensure this is intentional",
}


class _TolerantLoader(yaml.SafeLoader):
    """Safe loader that keeps values behind CloudFormation tags such as ``!Ref``."""


def _construct_tagged(loader: yaml.SafeLoader, tag_suffix: str, node: yaml.Node) -> Any:
    if isinstance(node, yaml.ScalarNode):
        return loader.construct_scalar(node)
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node)
    return loader.construct_mapping(node)  # type: ignore[arg-type]


_TolerantLoader.add_multi_constructor("!", _construct_tagged)


@register_builtin_validator()
class CloudConfigValidator(BaseValidator):
    name = "cloud-config-validator"
    stage = ValidatorStage.SPECIALIST

    def validate(self, context: ValidatorContext) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for change in context.changes:
            if _CLOUD_CONFIG_RE.search(change.path):
                issues.extend(self._check_config(change.path, change.content))
        return issues

    def _check_config(self, path: str, content: str) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        reported: set[str] = set()
        checks = (
            ("CLOUD_PERMISSIVE_ACTION", _PERMISSIVE_ACTION_RE),
            ("CLOUD_PERMISSIVE_RESOURCE", _PERMISSIVE_RESOURCE_RE),
            ("CLOUD_PUBLIC_ACCESS", _PUBLIC_ACCESS_RE),
        )
        for index, line in enumerate(content.split("\n")):
            for code, pattern in checks:
                if pattern.search(line):
                    reported.add(code)
                    issues.append(
                        self.create_issue(
                            path, _CLOUD_MESSAGES[code], Severity.WARNING, line=index + 1, code=code
                        )
                    )

        document = parse_structured_config(path, content)
        if document is not None:
            for code in sorted(structural_findings(document) - reported):
                issues.append(
                    self.create_issue(path, _CLOUD_MESSAGES[code], Severity.WARNING, code=code)
                )
        return issues


def parse_structured_config(path: str, content: str) -> object | None:
    """Parsed YAML/JSON document, or ``None`` when the file is not structured or malformed."""

    extension = get_extension(path)
    if extension in {"yml", "yaml"}:
        try:
            return yaml.load(content, Loader=_TolerantLoader)  # noqa: S506 - safe loader subclass
        except yaml.YAMLError:
            return None
    if extension == "json":
        try:
            return json.loads(content)
        except json.JSONDecodeError:
            return None
    return None


def structural_findings(document: object) -> set[str]:
    """Cloud finding codes present anywhere in a parsed configuration document."""

    codes: set[str] = set()
    for key, value in _walk_items(document):
        lowered = key.lower()
        if lowered == "action" and _contains_wildcard(value):
            codes.add("CLOUD_PERMISSIVE_ACTION")
        elif lowered == "resource" and _contains_wildcard(value):
            codes.add("CLOUD_PERMISSIVE_RESOURCE")
        elif lowered == "principal" and (
            _contains_wildcard(value)
            or (isinstance(value, Mapping) and _contains_wildcard(value.get("AWS")))
        ):
            codes.add("CLOUD_PUBLIC_ACCESS")
        elif lowered in {"acl", "accesscontrol"} and "public" in str(value).lower():
            codes.add("CLOUD_PUBLIC_ACCESS")
    return codes


def _walk_items(node: object) -> Iterator[tuple[str, object]]:
    if isinstance(node, Mapping):
        for key, value in node.items():
            yield str(key), value
            yield from _walk_items(value)
    elif isinstance(node, list):
        for item in node:
            yield from _walk_items(item)


def _contains_wildcard(value: object) -> bool:
    if isinstance(value, str):
        return value.strip() == "*"
    if isinstance(value, list):
        return any(_contains_wildcard(item) for item in value)
    return False


__all__ = [
    "COMMON_ENV_VARS",
    "MIN_SECRET_ENTROPY",
    "ApiContractValidator",
    "AuthFlowValidator",
    "CloudConfigValidator",
    "DockerBestPracticesValidator",
    "EnvironmentConsistencyValidator",
    "EventLeakDetectorValidator",
    "HookRulesCheckerValidator",
    "SecretsExposureCheckerValidator",
    "parse_structured_config",
    "shannon_entropy",
    "structural_findings",
]

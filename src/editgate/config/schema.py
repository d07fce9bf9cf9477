"""
editgate — configuration schema and validation.

File: src/editgate/config/schema.py
Last updated: 2026-10-19

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Validation rules for required fields, types, enums, and numeric constraints.
- Profile overlay validation and deterministic deep-merge helpers.
- Redaction rules for sensitive fields.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Support built-in profile overlays strict/fast/ci.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

CONFIG_SCHEMA_VERSION: Final[int] = 1
BUILTIN_PROFILE_NAMES: Final[tuple[str, ...]] = ("strict", "fast", "ci")
PIPELINE_MODES: Final[tuple[str, ...]] = (
    "strict",
    "fast",
    "integration-focus",
    "infrastructure-focus",
    "ai-accuracy-focus",
    "custom",
)
SEVERITIES: Final[tuple[str, ...]] = ("error", "warning", "info")
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")
LOG_FORMATS: Final[tuple[str, ...]] = ("json", "console")

_PROFILE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
_VALIDATOR_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$")
_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

_SENSITIVE_KEY_TOKENS: Final[frozenset[str]] = frozenset(
    {"secret", "token", "password", "passwd", "apikey", "credential", "credentials", "bearer"}
)
_SENSITIVE_KEY_PHRASES: Final[tuple[str, ...]] = (
    "api_key",
    "access_token",
    "refresh_token",
    "client_secret",
    "private_key",
    "password",
    "secret",
    "authorization",
)

# Config paths resolved relative to the workspace at use time.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("checkpoints", "backup_dir"),
    ("plans", "state_db_path"),
)


class MetaConfig(TypedDict):
    schema_version: int


class ValidatorSettings(TypedDict, total=False):
    enabled: bool
    severity: Literal["error", "warning", "info"]
    options: dict[str, object]


class PipelineConfig(TypedDict):
    mode: str
    custom_validators: list[str]
    validators: dict[str, ValidatorSettings]


class CheckpointsConfig(TypedDict):
    backup_dir: str
    use_git_stash: bool
    max_backups: int
    git_timeout_seconds: float


class PlansConfig(TypedDict):
    state_db_path: str


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_format: Literal["json", "console"]
    redact_secrets: bool


class ProfileOverlay(TypedDict, total=False):
    pipeline: dict[str, object]
    checkpoints: dict[str, object]
    plans: dict[str, object]
    observability: dict[str, object]


class EditgateConfig(TypedDict):
    meta: MetaConfig
    pipeline: PipelineConfig
    checkpoints: CheckpointsConfig
    plans: PlansConfig
    observability: ObservabilityConfig
    profiles: dict[str, ProfileOverlay]


DEFAULT_CONFIG: Final[EditgateConfig] = {
    "meta": {"schema_version": CONFIG_SCHEMA_VERSION},
    "pipeline": {
        "mode": "strict",
        "custom_validators": [],
        "validators": {},
    },
    "checkpoints": {
        "backup_dir": ".editgate/backups",
        "use_git_stash": True,
        "max_backups": 50,
        "git_timeout_seconds": 30.0,
    },
    "plans": {
        "state_db_path": ".editgate/state.sqlite3",
    },
    "observability": {
        "log_level": "INFO",
        "log_format": "console",
        "redact_secrets": True,
    },
    "profiles": {
        "strict": {"pipeline": {"mode": "strict"}},
        "fast": {"pipeline": {"mode": "fast"}},
        "ci": {
            "pipeline": {"mode": "strict"},
            "checkpoints": {"use_git_stash": False},
            "observability": {"log_format": "json"},
        },
    },
}

_SECTIONS: Final[tuple[str, ...]] = ("pipeline", "checkpoints", "plans", "observability")


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> EditgateConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def apply_profile_overlay(config: Mapping[str, object], profile: str | None) -> dict[str, Any]:
    """Apply a named profile overlay and re-validate the result."""

    materialized = _deep_copy_mapping(config)
    selected = profile.strip() if profile is not None else ""
    if not selected:
        return materialized

    profiles_raw = materialized.get("profiles")
    overlay_raw = profiles_raw.get(selected) if isinstance(profiles_raw, Mapping) else None
    if overlay_raw is None:
        raise ConfigValidationError(
            (ConfigValidationIssue("profiles", f"profile {selected!r} is not defined"),)
        )
    if not isinstance(overlay_raw, Mapping):
        raise ConfigValidationError(
            (ConfigValidationIssue(f"profiles.{selected}", "profile overlay must be an object"),)
        )
    return assert_valid_config(merge_config(materialized, overlay_raw))


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return every issue with a dotted field path."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Return a redacted copy with sensitive-looking values masked."""

    if not isinstance(config, Mapping):
        return {}
    redacted = _redact_value(config, parent_key=None)
    return redacted if isinstance(redacted, dict) else {}


def looks_sensitive_key(key: str) -> bool:
    normalized = _normalize_key(key)
    if any(phrase in normalized for phrase in _SENSITIVE_KEY_PHRASES):
        return True
    tokens = tuple(token for token in normalized.split("_") if token)
    return any(token in _SENSITIVE_KEY_TOKENS for token in tokens)


# ---------------------------------------------------------------------------
# Section validators
# ---------------------------------------------------------------------------


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    allowed = {"meta", "profiles", *_SECTIONS}
    _reject_unknown_keys(payload, allowed, "", issues)
    _require_keys(payload, {"meta", *_SECTIONS}, "", issues)

    out: dict[str, Any] = {}
    meta = _section(payload, "meta", issues)
    if meta is not None:
        out["meta"] = _validate_meta(meta, "meta", issues)
    for name, validator in _SECTION_VALIDATORS.items():
        section = _section(payload, name, issues)
        if section is not None:
            out[name] = validator(section, name, issues, partial=False)

    profiles = payload.get("profiles", {})
    profiles_obj = _as_object(profiles, "profiles", issues)
    if profiles_obj is not None:
        out["profiles"] = _validate_profiles(profiles_obj, "profiles", issues)

    pipeline = out.get("pipeline", {})
    if pipeline.get("mode") == "custom" and not pipeline.get("custom_validators"):
        issues.add("pipeline.custom_validators", "custom mode requires at least one validator")
    return out


def _section(
    payload: Mapping[str, object], key: str, issues: _IssueCollector
) -> dict[str, object] | None:
    raw = payload.get(key)
    if raw is None:
        return None
    return _as_object(raw, key, issues)


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    _require_keys(payload, {"schema_version"}, path, issues)
    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_int(payload["schema_version"], _join(path, "schema_version"), issues, minimum=1)
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != CONFIG_SCHEMA_VERSION:
                issues.add(
                    _join(path, "schema_version"),
                    f"unsupported schema version {parsed}; expected {CONFIG_SCHEMA_VERSION}",
                )
    return out


def _validate_pipeline(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, *, partial: bool
) -> dict[str, Any]:
    allowed = {"mode", "custom_validators", "validators"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, {"mode"}, path, issues)

    out: dict[str, Any] = {}
    if "mode" in payload:
        mode = _as_enum(payload["mode"], _join(path, "mode"), issues, allowed_values=PIPELINE_MODES)
        if mode is not None:
            out["mode"] = mode
    elif not partial:
        out["mode"] = "strict"

    if "custom_validators" in payload:
        names = _as_name_list(payload["custom_validators"], _join(path, "custom_validators"), issues)
        if names is not None:
            out["custom_validators"] = names
    elif not partial:
        out["custom_validators"] = []

    if "validators" in payload:
        validators_path = _join(path, "validators")
        raw = _as_object(payload["validators"], validators_path, issues)
        if raw is not None:
            settings_by_name: dict[str, Any] = {}
            for name in sorted(raw):
                settings = _validate_validator_settings(
                    name, raw[name], _join(validators_path, name), issues
                )
                if settings is not None:
                    settings_by_name[name] = settings
            out["validators"] = settings_by_name
    elif not partial:
        out["validators"] = {}
    return out


def _validate_validator_settings(
    name: str, raw: object, path: str, issues: _IssueCollector
) -> dict[str, Any] | None:
    if not _VALIDATOR_NAME_PATTERN.fullmatch(name):
        issues.add(path, "validator name must match ^[a-z][a-z0-9-]*$")
        return None
    payload = _as_object(raw, path, issues)
    if payload is None:
        return None
    _reject_unknown_keys(payload, {"enabled", "severity", "options"}, path, issues)
    out: dict[str, Any] = {}
    if "enabled" in payload:
        enabled = _as_bool(payload["enabled"], _join(path, "enabled"), issues)
        if enabled is not None:
            out["enabled"] = enabled
    if "severity" in payload:
        severity = _as_enum(
            payload["severity"], _join(path, "severity"), issues, allowed_values=SEVERITIES
        )
        if severity is not None:
            out["severity"] = severity
    if "options" in payload:
        options = _as_object(payload["options"], _join(path, "options"), issues)
        if options is not None:
            out["options"] = _deep_copy_mapping(options)
    return out


def _validate_checkpoints(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, *, partial: bool
) -> dict[str, Any]:
    allowed = {"backup_dir", "use_git_stash", "max_backups", "git_timeout_seconds"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "backup_dir" in payload:
        backup_dir = _as_path_text(payload["backup_dir"], _join(path, "backup_dir"), issues)
        if backup_dir is not None:
            out["backup_dir"] = backup_dir
    if "use_git_stash" in payload:
        use_stash = _as_bool(payload["use_git_stash"], _join(path, "use_git_stash"), issues)
        if use_stash is not None:
            out["use_git_stash"] = use_stash
    if "max_backups" in payload:
        max_backups = _as_int(payload["max_backups"], _join(path, "max_backups"), issues, minimum=1)
        if max_backups is not None:
            out["max_backups"] = max_backups
    if "git_timeout_seconds" in payload:
        timeout = _as_float(
            payload["git_timeout_seconds"], _join(path, "git_timeout_seconds"), issues
        )
        if timeout is not None:
            out["git_timeout_seconds"] = timeout
    return out


def _validate_plans(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, *, partial: bool
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"state_db_path"}, path, issues)
    if not partial:
        _require_keys(payload, {"state_db_path"}, path, issues)
    out: dict[str, Any] = {}
    if "state_db_path" in payload:
        db_path = _as_path_text(payload["state_db_path"], _join(path, "state_db_path"), issues)
        if db_path is not None:
            out["state_db_path"] = db_path
    return out


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector, *, partial: bool
) -> dict[str, Any]:
    allowed = {"log_level", "log_format", "redact_secrets"}
    _reject_unknown_keys(payload, allowed, path, issues)
    if not partial:
        _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        level = _as_enum(
            payload["log_level"], _join(path, "log_level"), issues, allowed_values=LOG_LEVELS
        )
        if level is not None:
            out["log_level"] = level
    if "log_format" in payload:
        log_format = _as_enum(
            payload["log_format"], _join(path, "log_format"), issues, allowed_values=LOG_FORMATS
        )
        if log_format is not None:
            out["log_format"] = log_format
    if "redact_secrets" in payload:
        redact = _as_bool(payload["redact_secrets"], _join(path, "redact_secrets"), issues)
        if redact is not None:
            out["redact_secrets"] = redact
    return out


_SECTION_VALIDATORS: Final[dict[str, Callable[..., dict[str, Any]]]] = {
    "pipeline": _validate_pipeline,
    "checkpoints": _validate_checkpoints,
    "plans": _validate_plans,
    "observability": _validate_observability,
}


def _validate_profiles(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for profile_name in sorted(payload):
        profile_path = _join(path, profile_name)
        if not _PROFILE_NAME_PATTERN.fullmatch(profile_name):
            issues.add(profile_path, "profile name must match ^[a-z][a-z0-9_-]*$")
            continue
        profile_obj = _as_object(payload[profile_name], profile_path, issues)
        if profile_obj is None:
            continue
        _reject_unknown_keys(profile_obj, set(_SECTIONS), profile_path, issues)
        overlay: dict[str, Any] = {}
        for section in _SECTIONS:
            raw = profile_obj.get(section)
            if raw is None:
                continue
            section_path = _join(profile_path, section)
            section_obj = _as_object(raw, section_path, issues)
            if section_obj is None:
                continue
            overlay[section] = _SECTION_VALIDATORS[section](
                section_obj, section_path, issues, partial=True
            )
        out[profile_name] = overlay
    return out


# ---------------------------------------------------------------------------
# Scalar coercion
# ---------------------------------------------------------------------------


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object, path: str, issues: _IssueCollector, *, minimum: int | None = None
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(value: object, path: str, issues: _IssueCollector) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not parsed > 0 or parsed == float("inf"):
        issues.add(path, "must be a finite number > 0")
        return None
    return parsed


def _as_enum(
    value: object, path: str, issues: _IssueCollector, *, allowed_values: tuple[str, ...]
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _as_name_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if isinstance(value, str) or not isinstance(value, Sequence):
        issues.add(path, f"expected list of strings, got {type(value).__name__}")
        return None
    names: list[str] = []
    for index, item in enumerate(value):
        parsed = _as_str(item, f"{path}[{index}]", issues)
        if parsed is None:
            continue
        if not _VALIDATOR_NAME_PATTERN.fullmatch(parsed):
            issues.add(f"{path}[{index}]", "validator name must match ^[a-z][a-z0-9-]*$")
            continue
        if parsed not in names:
            names.append(parsed)
    return names


def _reject_unknown_keys(
    payload: Mapping[str, object], allowed: set[str], path: str, issues: _IssueCollector
) -> None:
    for key in sorted(payload):
        if key in allowed:
            continue
        key_path = _join(path, key)
        if looks_sensitive_key(key):
            issues.add(key_path, "embedded secret values are forbidden in configuration")
        else:
            issues.add(key_path, "unknown field")


def _require_keys(
    payload: Mapping[str, object], required: set[str], path: str, issues: _IssueCollector
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            nested = _deep_copy_mapping(existing) if isinstance(existing, Mapping) else {}
            _merge_into(nested, value)
            target[key] = nested
        else:
            target[key] = _deep_copy_value(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    return {key: _deep_copy_value(value[key]) for key in sorted(value)}


def _deep_copy_value(value: object) -> Any:
    if isinstance(value, Mapping):
        return {key: _deep_copy_value(item) for key, item in value.items() if isinstance(key, str)}
    if isinstance(value, list):
        return [_deep_copy_value(item) for item in value]
    if isinstance(value, tuple):
        return tuple(_deep_copy_value(item) for item in value)
    return copy.deepcopy(value)


def _redact_value(value: object, parent_key: str | None) -> object:
    if isinstance(value, Mapping):
        out: dict[str, object] = {}
        for key in sorted(value):
            if looks_sensitive_key(key) and not isinstance(value[key], bool):
                out[key] = "<redacted>"
            else:
                out[key] = _redact_value(value[key], key)
        return out
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, parent_key) for item in value]
    return value


__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CONFIG",
    "LOG_FORMATS",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "PIPELINE_MODES",
    "SEVERITIES",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "EditgateConfig",
    "ProfileOverlay",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "looks_sensitive_key",
    "merge_config",
    "redact_config",
    "validate_config",
]

"""
editgate config package public API.

File: src/editgate/config/__init__.py
Last updated: 2026-10-19

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from ``editgate.toml`` + ``EDITGATE_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from editgate.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    effective_config,
    load_config,
    resolve_config_path,
)
from editgate.config.schema import (
    BUILTIN_PROFILE_NAMES,
    CONFIG_SCHEMA_VERSION,
    DEFAULT_CONFIG,
    PATH_FIELDS,
    PIPELINE_MODES,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    EditgateConfig,
    ProfileOverlay,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
    validate_config,
)

__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "CONFIG_SCHEMA_VERSION",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "PATH_FIELDS",
    "PIPELINE_MODES",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "EditgateConfig",
    "ProfileOverlay",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "effective_config",
    "load_config",
    "merge_config",
    "redact_config",
    "resolve_config_path",
    "validate_config",
]

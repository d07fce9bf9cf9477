"""Structured logging for editgate components."""

from editgate.observability.logging import (
    REDACTED_VALUE,
    correlation_scope,
    redact_event_dict,
    redact_string,
    redact_value,
    reset_logging,
    setup_logging,
)

__all__ = [
    "REDACTED_VALUE",
    "correlation_scope",
    "redact_event_dict",
    "redact_string",
    "redact_value",
    "reset_logging",
    "setup_logging",
]

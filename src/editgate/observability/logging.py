"""Structured logging setup (structlog over stdlib logging) with redaction support."""

from __future__ import annotations

import contextlib
import logging
import re
import sys
from collections.abc import Iterator, Mapping, MutableMapping
from typing import IO, Any, Final

import structlog

from editgate.config.schema import looks_sensitive_key

REDACTED_VALUE: Final[str] = "***REDACTED***"
_ROOT_LOGGER_NAME: Final[str] = "editgate"
_HANDLER_MARKER: Final[str] = "_editgate_handler"

_SENSITIVE_ASSIGNMENT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret|client_secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)
_BEARER_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")
_OPENAI_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bsk-[A-Za-z0-9_-]{12,}\b")
_GITHUB_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}\b")

# Keys structlog itself adds; never redacted.
_RESERVED_KEYS: Final[frozenset[str]] = frozenset({"event", "level", "timestamp", "logger"})


def setup_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """
    Configure structlog and the ``editgate`` stdlib logger from the
    ``observability`` config section and return that logger.

    Calling it again replaces the previously installed handler.
    """

    config = observability_config or {}
    level = _parse_log_level(config.get("log_level", "INFO"))
    log_format = str(config.get("log_format", "console"))
    redact = bool(config.get("redact_secrets", True))

    shared: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if redact:
        shared.append(redact_event_dict)

    renderer: Any
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared,
        )
    )
    setattr(handler, _HANDLER_MARKER, True)

    root = logging.getLogger(_ROOT_LOGGER_NAME)
    for existing in list(root.handlers):
        if getattr(existing, _HANDLER_MARKER, False):
            root.removeHandler(existing)
            existing.close()
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
    return root


def reset_logging() -> None:
    """Remove the installed handler and restore structlog defaults."""

    root = logging.getLogger(_ROOT_LOGGER_NAME)
    for existing in list(root.handlers):
        if getattr(existing, _HANDLER_MARKER, False):
            root.removeHandler(existing)
            existing.close()
    root.propagate = True
    structlog.reset_defaults()


@contextlib.contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Bind correlation fields (``plan_id``, ``checkpoint_id``, ...) to every log line."""

    bound = {key: value for key, value in fields.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def redact_event_dict(
    _logger: object, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor masking secret-looking keys and inline credentials."""

    for key in list(event_dict):
        if key in _RESERVED_KEYS:
            if key == "event" and isinstance(event_dict[key], str):
                event_dict[key] = redact_string(event_dict[key])
            continue
        event_dict[key] = redact_value(event_dict[key], key_context=key)
    return event_dict


def redact_value(value: object, *, key_context: str | None = None) -> object:
    if key_context is not None and looks_sensitive_key(key_context) and not isinstance(value, bool):
        return REDACTED_VALUE
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, (list, tuple)):
        return [redact_value(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): redact_value(item, key_context=str(key)) for key, item in value.items()}
    return value


def redact_string(text: str) -> str:
    redacted = _SENSITIVE_ASSIGNMENT_PATTERN.sub(
        lambda match: f"{match.group(1)}{match.group(2)}{REDACTED_VALUE}", text
    )
    redacted = _BEARER_TOKEN_PATTERN.sub(f"Bearer {REDACTED_VALUE}", redacted)
    redacted = _OPENAI_KEY_PATTERN.sub(REDACTED_VALUE, redacted)
    return _GITHUB_TOKEN_PATTERN.sub(REDACTED_VALUE, redacted)


def _parse_log_level(value: object) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        level = logging.getLevelName(value.strip().upper())
        if isinstance(level, int):
            return level
    raise ValueError(f"invalid log level: {value!r}")


__all__ = [
    "REDACTED_VALUE",
    "correlation_scope",
    "redact_event_dict",
    "redact_string",
    "redact_value",
    "reset_logging",
    "setup_logging",
]

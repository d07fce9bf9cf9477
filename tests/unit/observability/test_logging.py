"""
editgate — unit tests for observability logging

File: tests/unit/observability/test_logging.py
Last updated: 2026-10-19

Purpose
- Validate structlog setup, JSON and console rendering, correlation fields, and redaction.

What this test file should cover
- JSON line validity and redaction guarantees.
- Correlation field propagation.
- Foreign stdlib log records share the same pipeline.
- Re-running setup does not stack handlers.

Functional requirements
- Offline operation.

Non-functional requirements
- Deterministic and non-flaky.
"""

from __future__ import annotations

import io
import json
import logging
from typing import TYPE_CHECKING

import pytest
import structlog

from editgate.observability.logging import (
    REDACTED_VALUE,
    correlation_scope,
    redact_string,
    redact_value,
    reset_logging,
    setup_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    reset_logging()


def _json_lines(buffer: io.StringIO) -> list[dict[str, object]]:
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line.strip()]


def test_json_logging_redacts_secrets_and_keeps_correlation_fields() -> None:
    buffer = io.StringIO()
    setup_logging({"log_format": "json", "log_level": "INFO"}, stream=buffer)
    log = structlog.get_logger("editgate.tests")

    with correlation_scope(plan_id="plan-1", checkpoint_id=None):
        log.info(
            "payload token=tok-FAKE",
            api_key="sk-FAKE123456789012345",
            nested={"password": "hunter2", "safe": "ok"},
        )

    (record,) = _json_lines(buffer)
    assert record["event"] == f"payload token={REDACTED_VALUE}"
    assert record["api_key"] == REDACTED_VALUE
    assert record["nested"] == {"password": REDACTED_VALUE, "safe": "ok"}
    assert record["plan_id"] == "plan-1"
    assert "checkpoint_id" not in record
    assert record["level"] == "info"
    assert record["logger"] == "editgate.tests"


def test_level_filtering_drops_debug_records() -> None:
    buffer = io.StringIO()
    setup_logging({"log_format": "json", "log_level": "INFO"}, stream=buffer)
    log = structlog.get_logger("editgate.tests")

    log.debug("noisy")
    log.warning("kept")

    assert [record["event"] for record in _json_lines(buffer)] == ["kept"]


def test_foreign_stdlib_records_are_rendered_and_redacted() -> None:
    buffer = io.StringIO()
    setup_logging({"log_format": "json"}, stream=buffer)

    logging.getLogger("editgate.foreign").warning("retry with password=hunter2")

    (record,) = _json_lines(buffer)
    assert record["event"] == f"retry with password={REDACTED_VALUE}"
    assert record["level"] == "warning"


def test_redaction_can_be_disabled() -> None:
    buffer = io.StringIO()
    setup_logging({"log_format": "json", "redact_secrets": False}, stream=buffer)

    structlog.get_logger("editgate.tests").info("plain", api_key="visible")

    (record,) = _json_lines(buffer)
    assert record["api_key"] == "visible"


def test_console_format_renders_key_values() -> None:
    buffer = io.StringIO()
    setup_logging(stream=buffer)

    structlog.get_logger("editgate.tests").info("checkpoint_created", files=2)

    output = buffer.getvalue()
    assert "checkpoint_created" in output
    assert "files=2" in output


def test_setup_twice_replaces_the_handler() -> None:
    first = io.StringIO()
    second = io.StringIO()
    setup_logging({"log_format": "json"}, stream=first)
    root = setup_logging({"log_format": "json"}, stream=second)

    structlog.get_logger("editgate.tests").info("once")

    assert len(root.handlers) == 1
    assert first.getvalue() == ""
    assert [record["event"] for record in _json_lines(second)] == ["once"]


def test_invalid_log_level_is_rejected() -> None:
    with pytest.raises(ValueError, match="invalid log level"):
        setup_logging({"log_level": "LOUD"})


def test_redact_string_masks_known_token_shapes() -> None:
    github_token = "ghp_" + "a" * 24

    assert redact_string("use Bearer abc.def-ghi") == f"use Bearer {REDACTED_VALUE}"
    assert redact_string("key sk-abcdefghijklmnop") == f"key {REDACTED_VALUE}"
    assert redact_string(f"push {github_token}") == f"push {REDACTED_VALUE}"
    assert redact_string("nothing secret here") == "nothing secret here"


def test_redact_value_walks_containers_and_keeps_booleans() -> None:
    assert redact_value(True, key_context="redact_secrets") is True
    assert redact_value("x", key_context="client_secret") == REDACTED_VALUE
    assert redact_value(["token=abc", 3]) == [f"token={REDACTED_VALUE}", 3]
    assert redact_value({"Authorization": "Basic abc"}) == {"Authorization": REDACTED_VALUE}

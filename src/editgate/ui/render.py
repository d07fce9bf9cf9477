"""Output rendering abstraction for the editgate CLI.

File: src/editgate/ui/render.py
Last updated: 2026-10-19

Purpose
- Provide a thin rendering layer for CLI output.
- Respect NO_COLOR environment variable and --no-color CLI flag.

What should be included in this file
- CLIRenderer class with methods for common output patterns.
- Renderers for pipeline verdicts and checkpoint listings.

Functional requirements
- Plain-text rendering must always work without external dependencies.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from editgate.checkpoints.models import CheckpointMetadata, RollbackCheckpoint, RollbackResult
    from editgate.pipeline import ValidationPipelineResult
    from editgate.validators.base import ValidationIssue


def _color_allowed(no_color_flag: bool) -> bool:
    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


class CLIRenderer:
    """Thin CLI output renderer.

    Produces clean, deterministic plain-text output.
    """

    _GREEN = "\033[32m"
    _RED = "\033[31m"
    _RESET = "\033[0m"

    def __init__(self, *, no_color: bool = False, verbose: bool = False) -> None:
        self.verbose = verbose
        self._color = _color_allowed(no_color)

    def heading(self, text: str) -> None:
        print(text)

    def kv(self, key: str, value: object) -> None:
        print(f"{key}: {value}")

    def text(self, line: str) -> None:
        print(line)

    def section(self, title: str) -> None:
        print(f"\n{title}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            print(f"  {prefix}{entry}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a formatted ASCII table."""

        if not rows:
            return

        col_count = len(headers)
        widths = [len(h) for h in headers]
        for row in rows:
            for i in range(min(len(row), col_count)):
                widths[i] = max(widths[i], len(str(row[i])))

        def _pad(cells: Sequence[str]) -> str:
            parts: list[str] = []
            for i in range(col_count):
                cell = str(cells[i]) if i < len(cells) else ""
                parts.append(cell.ljust(widths[i]))
            return "  ".join(parts).rstrip()

        if title:
            self.section(title)
        print(f"  {_pad(list(headers))}")
        print(f"  {'  '.join('-' * w for w in widths)}")
        for row in rows:
            print(f"  {_pad(list(row))}")

    def ok(self, label: str) -> None:
        print(f"  {self._paint('OK', self._GREEN)}  {label}")

    def fail(self, label: str) -> None:
        print(f"  {self._paint('FAIL', self._RED)}  {label}")

    def _paint(self, text: str, color: str) -> str:
        if not self._color:
            return text
        return f"{color}{text}{self._RESET}"


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    return CLIRenderer(no_color=no_color, verbose=verbose)


def format_issue(issue: ValidationIssue) -> str:
    location = issue.file if issue.line is None else f"{issue.file}:{issue.line}"
    code = f" [{issue.code}]" if issue.code else ""
    line = f"{location}{code} {issue.message}"
    if issue.suggestion:
        line = f"{line} (suggestion: {issue.suggestion})"
    return line


def render_pipeline_result(renderer: CLIRenderer, result: ValidationPipelineResult) -> None:
    """Approved / not-approved verdict, then must-fix and suggestion lists."""

    if result.passed:
        renderer.ok(f"Approved ({result.mode.value} mode)")
    else:
        renderer.fail(f"Not approved ({result.mode.value} mode)")
    renderer.kv("Validators run", len(result.results))
    renderer.kv("Errors", result.errors)
    renderer.kv("Warnings", result.warnings)
    if result.early_exit:
        renderer.text("Stopped early on a security finding.")

    must_fix = result.must_fix()
    if must_fix:
        renderer.section("Must fix:")
        renderer.items([format_issue(issue) for issue in must_fix])
    suggestions = result.suggestions()
    if suggestions:
        renderer.section("Suggestions:")
        renderer.items([format_issue(issue) for issue in suggestions])

    if renderer.verbose:
        renderer.table(
            ("validator", "passed", "issues", "ms"),
            [
                (
                    item.validator,
                    "yes" if item.passed else "no",
                    str(len(item.issues)),
                    f"{item.duration_ms:.1f}",
                )
                for item in result.results
            ],
            title="Validators:",
        )
    if result.checkpoint is not None:
        renderer.kv("Checkpoint", result.checkpoint.id)


def render_checkpoint_list(renderer: CLIRenderer, records: Sequence[CheckpointMetadata]) -> None:
    if not records:
        renderer.text("No checkpoints.")
        return
    renderer.table(
        ("id", "created", "type", "files", "description"),
        [
            (
                record.id,
                record.timestamp.isoformat(timespec="seconds"),
                record.type.value,
                str(record.file_count),
                record.description or "",
            )
            for record in records
        ],
    )


def render_checkpoint(renderer: CLIRenderer, checkpoint: RollbackCheckpoint) -> None:
    renderer.kv("Checkpoint", checkpoint.id)
    renderer.kv("Created", checkpoint.timestamp.isoformat(timespec="seconds"))
    renderer.kv("Type", checkpoint.type.value)
    if checkpoint.plan_id:
        renderer.kv("Plan", checkpoint.plan_id)
    if checkpoint.phase_id:
        renderer.kv("Phase", checkpoint.phase_id)
    if checkpoint.stash_ref:
        renderer.kv("Stash", checkpoint.stash_ref)
    renderer.section("Files:")
    renderer.items(
        [
            f"{item.path} ({item.hash[:12]})" if item.exists else f"{item.path} (absent)"
            for item in checkpoint.files
        ]
    )


def render_rollback_result(renderer: CLIRenderer, result: RollbackResult) -> None:
    if result.success:
        renderer.ok(f"Restored {len(result.restored_files)} file(s)")
    else:
        renderer.fail("Rollback incomplete")
    if result.restored_files:
        renderer.items(list(result.restored_files))
    if result.warnings:
        renderer.section("Warnings:")
        renderer.items(list(result.warnings))
    if result.errors:
        renderer.section("Errors:")
        renderer.items(list(result.errors))


__all__ = [
    "CLIRenderer",
    "create_renderer",
    "format_issue",
    "render_checkpoint",
    "render_checkpoint_list",
    "render_pipeline_result",
    "render_rollback_result",
]

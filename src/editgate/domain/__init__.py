"""Domain models and identifiers shared across the quality-gate engine."""

from editgate.domain.ids import (
    generate_checkpoint_id,
    generate_phase_id,
    generate_plan_id,
    generate_task_id,
)
from editgate.domain.models import FileChange, FileOperation, ValidatorContext, build_context

__all__ = [
    "FileChange",
    "FileOperation",
    "ValidatorContext",
    "build_context",
    "generate_checkpoint_id",
    "generate_phase_id",
    "generate_plan_id",
    "generate_task_id",
]

"""Command-line interface router for editgate."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from editgate.checkpoints import CheckpointManager
from editgate.config import (
    ConfigLoadError,
    ConfigValidationError,
    effective_config,
    load_config,
    resolve_config_path,
)
from editgate.observability import setup_logging
from editgate.persistence import PlanRepository, StateDB, StateDBError
from editgate.pipeline import (
    MODE_VALIDATORS,
    ValidationPipeline,
    ValidatorMode,
    context_from_changes,
)
from editgate.plans import Plan
from editgate.ui.render import (
    CLIRenderer,
    create_renderer,
    render_checkpoint,
    render_checkpoint_list,
    render_pipeline_result,
    render_rollback_result,
)

EXIT_PASSED = 0
EXIT_REJECTED = 1
EXIT_CONFIG_ERROR = 2


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = EXIT_REJECTED

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="editgate",
        description=(
            "editgate: quality gate for proposed code edits.\n\n"
            "Common workflows:\n"
            "  editgate validate changes.json      Run the validator pipeline\n"
            "  editgate modes                      List validation modes\n"
            "  editgate checkpoints list           Show rollback checkpoints\n"
            "  editgate config                     Show effective configuration\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--workspace",
        default=".",
        help="Workspace root directory (default: current working directory).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to editgate TOML config (default: <workspace>/editgate.toml if present).",
    )
    common.add_argument("--profile", default=None, help="Optional config profile overlay name.")
    common.add_argument("--json", action="store_true", default=False, help="Emit JSON output.")
    common.add_argument(
        "--verbose", "-v", action="store_true", default=False, help="Show detailed output."
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # validate ------------------------------------------------------------
    validate_parser = subparsers.add_parser(
        "validate",
        parents=[common],
        help="Run the validator pipeline over a change set",
        description=(
            "Validate a JSON change set {changes, existingFiles?, config?, planId?, phaseId?}.\n"
            "Use '-' to read the document from stdin.\n\n"
            "Exit codes: 0 approved, 1 rejected, 2 input/config error, 4 internal error.\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    validate_parser.add_argument("changes", help="Path to the change-set JSON document, or '-'.")
    validate_parser.add_argument(
        "--mode", choices=[mode.value for mode in ValidatorMode], default=None
    )
    validate_parser.add_argument(
        "--validators",
        default=None,
        help="Comma-separated validator names; implies --mode custom.",
    )
    validate_parser.add_argument(
        "--plan",
        dest="plan_id",
        default=None,
        help="Enforce the scope of a stored plan (default: the document planId, if stored).",
    )
    validate_parser.add_argument(
        "--save-checkpoint",
        action="store_true",
        default=False,
        help="Persist the pre-change checkpoint produced by rollback-checkpoint.",
    )
    validate_parser.set_defaults(handler=_cmd_validate)

    # modes ---------------------------------------------------------------
    modes_parser = subparsers.add_parser(
        "modes", parents=[common], help="List validation modes and their validators"
    )
    modes_parser.set_defaults(handler=_cmd_modes)

    # checkpoints ---------------------------------------------------------
    checkpoints_parser = subparsers.add_parser(
        "checkpoints", help="Inspect, restore, or delete checkpoints"
    )
    checkpoint_commands = checkpoints_parser.add_subparsers(dest="checkpoint_command", required=True)
    list_parser = checkpoint_commands.add_parser("list", parents=[common], help="List checkpoints")
    list_parser.set_defaults(handler=_cmd_checkpoints_list)
    for name, handler, help_text in (
        ("show", _cmd_checkpoints_show, "Show one checkpoint"),
        ("rollback", _cmd_checkpoints_rollback, "Restore files from a checkpoint"),
        ("delete", _cmd_checkpoints_delete, "Delete a checkpoint and unreferenced blobs"),
    ):
        sub = checkpoint_commands.add_parser(name, parents=[common], help=help_text)
        sub.add_argument("checkpoint_id")
        sub.set_defaults(handler=handler)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show effective configuration (redacted)",
        description=(
            "Display the effective config after merging defaults, profile, file, and env.\n"
            "Sensitive values are redacted.\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_validate(args: argparse.Namespace) -> int:
    workspace = _workspace(args)
    overrides: dict[str, object] = {}
    if args.mode is not None:
        overrides["pipeline.mode"] = args.mode
    if args.validators:
        names = [name.strip() for name in args.validators.split(",") if name.strip()]
        overrides["pipeline.custom_validators"] = names
        overrides["pipeline.mode"] = ValidatorMode.CUSTOM.value
    config = _load_effective_config(args, workspace, overrides)
    pipeline_config = config["pipeline"]
    logger = structlog.get_logger("editgate.cli")

    document = _read_change_document(args.changes)
    try:
        pipeline = ValidationPipeline(
            mode=pipeline_config["mode"],
            custom_validators=(
                pipeline_config["custom_validators"]
                if pipeline_config["mode"] == ValidatorMode.CUSTOM.value
                else ()
            ),
            validator_settings=pipeline_config["validators"],
        )
        context = context_from_changes(
            _require_sequence(document.get("changes"), "changes"),
            project_path=workspace,
            existing_files=_optional_mapping(document.get("existingFiles"), "existingFiles"),
            config=_optional_mapping(document.get("config"), "config"),
            plan_id=_optional_str(document.get("planId")),
            phase_id=_optional_str(document.get("phaseId")),
        )
    except (ValueError, TypeError) as exc:
        raise CLIError(f"invalid change set: {exc}", exit_code=EXIT_CONFIG_ERROR) from exc

    plan = _load_plan(config, workspace, args.plan_id, context.plan_id)
    result = asyncio.run(pipeline.run(context, plan=plan))

    saved_checkpoint: str | None = None
    if args.save_checkpoint and result.checkpoint is not None:
        manager = _checkpoint_manager(config, workspace)
        saved_checkpoint = manager.register_checkpoint(result.checkpoint).id
        logger.info("cli_checkpoint_saved", checkpoint_id=saved_checkpoint)

    if args.json:
        payload = result.to_dict()
        payload["savedCheckpoint"] = saved_checkpoint
        _emit_json(payload)
    else:
        render_pipeline_result(_get_renderer(args), result)
    return EXIT_PASSED if result.passed else EXIT_REJECTED


def _cmd_modes(args: argparse.Namespace) -> int:
    modes = {mode.value: list(MODE_VALIDATORS[mode]) for mode in ValidatorMode}
    if args.json:
        _emit_json({"command": "modes", "modes": modes})
        return EXIT_PASSED
    renderer = _get_renderer(args)
    for mode, names in modes.items():
        renderer.section(f"{mode} ({len(names)} validators)")
        renderer.items(names or ["(chosen with --validators)"])
    return EXIT_PASSED


def _cmd_checkpoints_list(args: argparse.Namespace) -> int:
    manager = _manager_from_args(args)
    records = manager.list_checkpoints()
    if args.json:
        _emit_json(
            {
                "command": "checkpoints list",
                "checkpoints": [
                    {
                        "id": record.id,
                        "timestamp": record.timestamp.isoformat(),
                        "type": record.type.value,
                        "files": [path for path, _hash, _exists in record.files],
                        "description": record.description,
                    }
                    for record in records
                ],
                "storageBytes": manager.get_storage_size(),
            }
        )
        return EXIT_PASSED
    renderer = _get_renderer(args)
    render_checkpoint_list(renderer, records)
    renderer.kv("Storage", f"{manager.get_storage_size()} bytes")
    return EXIT_PASSED


def _cmd_checkpoints_show(args: argparse.Namespace) -> int:
    manager = _manager_from_args(args)
    checkpoint = _guarded(lambda: manager.get_checkpoint(args.checkpoint_id))
    if checkpoint is None:
        raise CLIError(f"checkpoint not found: {args.checkpoint_id}", exit_code=EXIT_REJECTED)
    if args.json:
        _emit_json(checkpoint.to_metadata())
    else:
        render_checkpoint(_get_renderer(args), checkpoint)
    return EXIT_PASSED


def _cmd_checkpoints_rollback(args: argparse.Namespace) -> int:
    manager = _manager_from_args(args)
    result = _guarded(lambda: manager.rollback(args.checkpoint_id))
    if args.json:
        _emit_json(result.to_dict())
    else:
        render_rollback_result(_get_renderer(args), result)
    return EXIT_PASSED if result.success else EXIT_REJECTED


def _cmd_checkpoints_delete(args: argparse.Namespace) -> int:
    manager = _manager_from_args(args)
    deleted = _guarded(lambda: manager.delete_checkpoint(args.checkpoint_id))
    if args.json:
        _emit_json({"command": "checkpoints delete", "id": args.checkpoint_id, "deleted": deleted})
    elif deleted:
        _get_renderer(args).ok(f"Deleted {args.checkpoint_id}")
    else:
        _get_renderer(args).fail(f"Checkpoint not found: {args.checkpoint_id}")
    return EXIT_PASSED if deleted else EXIT_REJECTED


def _cmd_config(args: argparse.Namespace) -> int:
    workspace = _workspace(args)
    config = _load_effective_config(args, workspace)
    redacted = effective_config(config)
    payload: dict[str, object] = {
        "command": "config",
        "active_profile": args.profile,
        "config": redacted,
    }
    if args.json:
        _emit_json(payload)
        return EXIT_PASSED

    renderer = _get_renderer(args)
    renderer.kv("Active profile", args.profile or "(default)")
    renderer.text(json.dumps(redacted, indent=2, sort_keys=True, ensure_ascii=False))
    return EXIT_PASSED


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=args.no_color, verbose=args.verbose)


# ---------------------------------------------------------------------------
# Helpers: config, paths, input
# ---------------------------------------------------------------------------


def _workspace(args: argparse.Namespace) -> Path:
    candidate = Path(args.workspace).expanduser().resolve()
    if not candidate.is_dir():
        raise CLIError(f"workspace is not a directory: {candidate}", exit_code=EXIT_CONFIG_ERROR)
    return candidate


def _load_effective_config(
    args: argparse.Namespace,
    workspace: Path,
    overrides: Mapping[str, object] | None = None,
) -> dict[str, Any]:
    try:
        config = load_config(
            args.config_path,
            profile=args.profile,
            cli_overrides=overrides,
            workspace=workspace,
        )
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=EXIT_CONFIG_ERROR) from exc
    observability = dict(config["observability"])
    if args.verbose:
        observability["log_level"] = "DEBUG"
    setup_logging(observability)
    return config


def _checkpoint_manager(config: Mapping[str, Any], workspace: Path) -> CheckpointManager:
    checkpoints = config["checkpoints"]
    return CheckpointManager(
        workspace,
        backup_dir=resolve_config_path(config, ("checkpoints", "backup_dir"), workspace),
        use_git_stash=checkpoints["use_git_stash"],
        max_backups=checkpoints["max_backups"],
        git_timeout_seconds=checkpoints["git_timeout_seconds"],
    )


def _load_plan(
    config: Mapping[str, Any],
    workspace: Path,
    explicit_id: str | None,
    document_id: str | None,
) -> Plan | None:
    """Stored plan for scope enforcement; an explicit ``--plan`` must exist."""

    plan_id = explicit_id or document_id
    if plan_id is None:
        return None
    db_path = resolve_config_path(config, ("plans", "state_db_path"), workspace)
    plan = None
    if db_path.is_file():
        try:
            plan = PlanRepository(StateDB(db_path)).get(plan_id)
        except StateDBError as exc:
            message = f"unable to read plan state: {exc}"
            raise CLIError(message, exit_code=EXIT_CONFIG_ERROR) from exc
    if plan is None and explicit_id is not None:
        raise CLIError(f"plan not found: {explicit_id}", exit_code=EXIT_CONFIG_ERROR)
    return plan


def _manager_from_args(args: argparse.Namespace) -> CheckpointManager:
    workspace = _workspace(args)
    return _checkpoint_manager(_load_effective_config(args, workspace), workspace)


def _guarded(call: Any) -> Any:
    try:
        return call()
    except ValueError as exc:
        raise CLIError(str(exc), exit_code=EXIT_CONFIG_ERROR) from exc


def _read_change_document(source: str) -> dict[str, object]:
    try:
        if source == "-":
            raw = sys.stdin.read()
        else:
            raw = Path(source).expanduser().read_text(encoding="utf-8")
        document = json.loads(raw)
    except OSError as exc:
        raise CLIError(f"unable to read change set: {exc}", exit_code=EXIT_CONFIG_ERROR) from exc
    except json.JSONDecodeError as exc:
        raise CLIError(f"change set is not valid JSON: {exc}", exit_code=EXIT_CONFIG_ERROR) from exc
    if not isinstance(document, dict):
        raise CLIError("change set root must be an object", exit_code=EXIT_CONFIG_ERROR)
    return document


def _require_sequence(value: object, name: str) -> list[Mapping[str, object]]:
    if not isinstance(value, list):
        raise CLIError(f"{name} must be a list", exit_code=EXIT_CONFIG_ERROR)
    return value


def _optional_mapping(value: object, name: str) -> Mapping[str, Any] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise CLIError(f"{name} must be an object", exit_code=EXIT_CONFIG_ERROR)
    return value


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None


__all__ = ["CLIError", "build_parser", "run_cli"]

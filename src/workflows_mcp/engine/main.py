"""CLI entrypoint for workflows-mcp.

Manages stored definitions, steps through a run interactively and starts the
REST or MCP server.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from workflows_mcp import __version__
from workflows_mcp.engine.config import WorkflowSettings
from workflows_mcp.engine.definitions.storage import WorkflowFilter, WorkflowSort
from workflows_mcp.engine.definitions.validator import validate_workflow
from workflows_mcp.engine.errors import (
    InvalidBranchTarget,
    MalformedDefinition,
    NotFound,
    ValidationFailed,
)
from workflows_mcp.engine.logging import configure_logging
from workflows_mcp.engine.service import WorkflowService, summarize

logger = logging.getLogger(__name__)

STOP_WORDS = {"q", "quit", "stop"}


def _parse_tags(value: str | None) -> list[str] | None:
    if value is None:
        return None
    tags = [p.strip() for p in value.split(",") if p.strip()]
    return tags or None


def _parse_input(raw: str) -> tuple[str, Any]:
    """Parse `name=value`; the value is read as JSON when it parses, else as text."""

    name, sep, value = raw.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Expected name=value, got {raw!r}")
    try:
        return name.strip(), json.loads(value)
    except json.JSONDecodeError:
        return name.strip(), value


def _parse_step_result(raw: str) -> Any:
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _read_definition_file(path: Path) -> dict[str, Any]:
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValidationFailed(f"Definition file must contain a JSON object: {path}")
    return raw


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workflows-mcp",
        description="Step-by-step workflow execution for agents",
    )
    parser.add_argument("--version", action="version", version=f"workflows-mcp {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Validate a workflow definition file")
    validate.add_argument("path", type=Path, help="Path to a JSON workflow definition")

    create = subparsers.add_parser("create", help="Store a new workflow from a definition file")
    create.add_argument("path", type=Path, help="Path to a JSON workflow definition")

    list_cmd = subparsers.add_parser("list", help="List stored workflows")
    list_cmd.add_argument("--tags", default=None, help="Comma-separated tags (any match)")
    list_cmd.add_argument("--name-contains", default=None, help="Case-insensitive name filter")
    list_cmd.add_argument(
        "--include-deleted", action="store_true", help="Also list soft-deleted workflows"
    )
    list_cmd.add_argument(
        "--sort",
        default=None,
        choices=["name", "created_at", "updated_at", "times_run", "success_rate"],
        help="Sort field",
    )
    list_cmd.add_argument("--desc", action="store_true", help="Sort descending")

    show = subparsers.add_parser("show", help="Print a stored workflow as JSON")
    show.add_argument("workflow_id")

    delete = subparsers.add_parser("delete", help="Soft delete a workflow")
    delete.add_argument("workflow_id")

    versions = subparsers.add_parser("versions", help="List stored versions of a workflow")
    versions.add_argument("workflow_id")

    rollback = subparsers.add_parser("rollback", help="Restore a previous version")
    rollback.add_argument("workflow_id")
    rollback.add_argument("target_version")

    run = subparsers.add_parser(
        "run",
        help=(
            "Run a workflow interactively: print each instruction and read the step "
            "result from stdin (empty line = no result, 'q' = stop)"
        ),
    )
    run.add_argument("workflow_id")
    run.add_argument(
        "--input",
        dest="inputs",
        action="append",
        type=_parse_input,
        default=[],
        help="Workflow input as name=value (repeatable; JSON values are decoded)",
    )

    serve = subparsers.add_parser("serve", help="Start the REST server")
    serve.add_argument("--host", default=None, help="Bind address (overrides WORKFLOWS_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Port (overrides WORKFLOWS_PORT)")

    subparsers.add_parser("mcp", help="Serve the MCP tools over stdio")

    return parser


def _run_interactive(service: WorkflowService, workflow_id: str, inputs: dict[str, Any]) -> int:
    response = service.start_workflow(workflow_id, inputs)
    print(response.text)

    while not response.completed:
        try:
            raw = input("\nstep_result> ")
        except EOFError:
            raw = "q"

        stop = raw.strip().lower() in STOP_WORDS
        step_result = None if stop else _parse_step_result(raw)
        response = service.run_workflow_step(
            response.execution_id, step_result, next_step_needed=not stop
        )
        print(response.text)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = WorkflowSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    # stdout belongs to the protocol when serving MCP over stdio.
    configure_logging(settings.log_level, stream=sys.stderr if args.command == "mcp" else None)

    try:
        if args.command == "validate":
            workflow = validate_workflow(_read_definition_file(args.path))
            print(f"Valid workflow: {workflow.name} ({len(workflow.steps)} steps)")
            return 0

        if args.command == "serve":
            from workflows_mcp.server.app import run_server

            run_server(host=args.host, port=args.port)
            return 0

        if args.command == "mcp":
            from workflows_mcp.server.mcp_server import run_stdio

            run_stdio(settings)
            return 0

        service = WorkflowService.from_settings(settings)

        if args.command == "create":
            workflow = service.create_workflow(_read_definition_file(args.path))
            print(f'Created workflow "{workflow.name}": {workflow.id}')
            return 0

        if args.command == "list":
            filter = WorkflowFilter(
                tags=_parse_tags(args.tags),
                name_contains=args.name_contains,
                is_deleted=None if args.include_deleted else False,
            )
            sort = (
                WorkflowSort(field=args.sort, order="desc" if args.desc else "asc")
                if args.sort
                else None
            )
            summaries = [summarize(w) for w in service.list_workflows(filter, sort)]
            print(json.dumps(summaries, indent=2, ensure_ascii=False))
            return 0

        if args.command == "show":
            workflow = service.get_workflow(args.workflow_id)
            print(json.dumps(workflow.to_json(), indent=2, ensure_ascii=False))
            return 0

        if args.command == "delete":
            service.delete_workflow(args.workflow_id)
            print(f"Deleted workflow {args.workflow_id} (soft delete)")
            return 0

        if args.command == "versions":
            for version in service.get_workflow_versions(args.workflow_id):
                print(version)
            return 0

        if args.command == "rollback":
            workflow = service.rollback_workflow(args.workflow_id, args.target_version)
            print(f'Rolled back "{workflow.name}" to v{workflow.version}')
            return 0

        if args.command == "run":
            return _run_interactive(service, args.workflow_id, dict(args.inputs))

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except NotFound as e:
        print(str(e), file=sys.stderr)
        return 3

    except (MalformedDefinition, ValidationFailed) as e:
        print(f"Validation failed: {e}", file=sys.stderr)
        return 4

    except InvalidBranchTarget as e:
        logger.warning(str(e), extra={"execution_id": e.execution_id, "step_id": e.step_id})
        print(str(e), file=sys.stderr)
        return 5

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

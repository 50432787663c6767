"""MCP server exposing workflow authoring and step-by-step execution as tools.

Transport: stdio (`workflows-mcp mcp`). Every tool returns text; failures are
reported as `Error: <message>` instead of raising, so the calling agent sees
the reason in-band.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

from workflows_mcp import __version__
from workflows_mcp.engine.config import WorkflowSettings
from workflows_mcp.engine.definitions.storage import WorkflowFilter, WorkflowSort
from workflows_mcp.engine.errors import WorkflowError
from workflows_mcp.engine.service import WorkflowService, summarize

logger = logging.getLogger(__name__)

SERVER_NAME = "workflows-mcp"

INSTRUCTIONS = (
    "Store multi-step workflows and execute them one step at a time. Call "
    "start_workflow, follow the returned instruction, then call run_workflow_step "
    "with the step's result until the workflow reports completion."
)

CREATE_WORKFLOW_DESCRIPTION = """Create a new workflow.

Fields: name, description, goal, version (default "1.0.0"), tags, inputs
({name: {type, description, required, default}}), outputs, required_tools,
strict_dependencies (default false) and steps.

Step fields: id (sequential from 1), action, description, save_result_as,
error_handling (stop | continue | retry), dependencies (step ids whose outputs
the step may see), show_all_variables.

Actions: tool_call (tool_name, parameters), analyze / consider / research /
validate / summarize / decide / extract / compose (input_from, criteria),
wait_for_input (prompt, input_type), transform (input_from, transformation),
branch (conditions [{if, goto_step}]), loop (over, as, steps), parallel
(parallel_steps), checkpoint (checkpoint_name), notify (message, channel),
assert (condition, message), retry (step_id, max_attempts).

Use {{variable_name}} in string fields to reference inputs and saved results.
With strict_dependencies, steps without dependencies see no variables."""

RUN_STEP_DESCRIPTION = """Execute the next step of an active workflow session.

Follow each instruction exactly and move straight on to the next step. Pass the
step's result as step_result. For branch steps answer with the target, e.g.
"Branching to step 8". Set next_step_needed to false to end the workflow."""


def _json_text(payload: object) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)


class WorkflowTools:
    """Text-in/text-out tool implementations, independent of the MCP runtime."""

    def __init__(self, service: WorkflowService) -> None:
        self.service = service

    def _guarded(self, tool: str, call: Callable[[], str]) -> str:
        try:
            return call()
        except (WorkflowError, ValidationError) as e:
            logger.warning("Tool call failed", extra={"tool": tool, "error": str(e)})
            return f"Error: {e}"

    def create_workflow(self, workflow: dict[str, Any]) -> str:
        def call() -> str:
            created = self.service.create_workflow(workflow)
            return _json_text(
                {
                    "success": True,
                    "workflow_id": created.id,
                    "message": f'Workflow "{created.name}" created successfully',
                }
            )

        return self._guarded("create_workflow", call)

    def list_workflows(
        self, filter: dict[str, Any] | None = None, sort: dict[str, Any] | None = None
    ) -> str:
        def call() -> str:
            workflows = self.service.list_workflows(
                WorkflowFilter.model_validate(filter) if filter else None,
                WorkflowSort.model_validate(sort) if sort else None,
            )
            summaries = [summarize(w) for w in workflows]
            return _json_text({"success": True, "count": len(summaries), "workflows": summaries})

        return self._guarded("list_workflows", call)

    def get_workflow(self, id: str) -> str:
        def call() -> str:
            workflow = self.service.get_workflow(id)
            return _json_text({"success": True, "workflow": workflow.to_json()})

        return self._guarded("get_workflow", call)

    def update_workflow(
        self, id: str, updates: dict[str, Any], increment_version: bool = False
    ) -> str:
        def call() -> str:
            workflow = self.service.update_workflow(
                id, updates, increment_version=increment_version
            )
            return _json_text(
                {
                    "success": True,
                    "workflow_id": id,
                    "version": workflow.version,
                    "message": f'Workflow "{workflow.name}" updated successfully',
                }
            )

        return self._guarded("update_workflow", call)

    def delete_workflow(self, id: str) -> str:
        def call() -> str:
            self.service.delete_workflow(id)
            return _json_text(
                {
                    "success": True,
                    "workflow_id": id,
                    "message": "Workflow deleted successfully (soft delete)",
                }
            )

        return self._guarded("delete_workflow", call)

    def start_workflow(self, id: str, inputs: dict[str, Any] | None = None) -> str:
        return self._guarded(
            "start_workflow", lambda: self.service.start_workflow(id, inputs).text
        )

    def run_workflow_step(
        self, execution_id: str, next_step_needed: bool, step_result: Any = None
    ) -> str:
        return self._guarded(
            "run_workflow_step",
            lambda: self.service.run_workflow_step(
                execution_id, step_result, next_step_needed=next_step_needed
            ).text,
        )

    def get_workflow_versions(self, workflow_id: str) -> str:
        def call() -> str:
            workflow = self.service.get_workflow(workflow_id)
            versions = self.service.get_workflow_versions(workflow_id)
            return _json_text(
                {
                    "success": True,
                    "workflow_id": workflow_id,
                    "workflow_name": workflow.name,
                    "current_version": workflow.version,
                    "available_versions": versions,
                    "version_count": len(versions),
                }
            )

        return self._guarded("get_workflow_versions", call)

    def rollback_workflow(
        self, workflow_id: str, target_version: str, reason: str | None = None
    ) -> str:
        def call() -> str:
            previous = self.service.get_workflow(workflow_id)
            restored = self.service.rollback_workflow(workflow_id, target_version)
            return _json_text(
                {
                    "success": True,
                    "workflow_id": workflow_id,
                    "workflow_name": previous.name,
                    "previous_version": previous.version,
                    "rolled_back_to": restored.version,
                    "reason": reason or "No reason provided",
                    "message": (
                        f'Successfully rolled back "{previous.name}" from v{previous.version} '
                        f"to v{restored.version}"
                    ),
                }
            )

        return self._guarded("rollback_workflow", call)


def build_mcp_server(tools: WorkflowTools) -> FastMCP:
    mcp = FastMCP(name=SERVER_NAME, instructions=INSTRUCTIONS)

    @mcp.tool(description=CREATE_WORKFLOW_DESCRIPTION)
    def create_workflow(workflow: dict[str, Any]) -> str:
        return tools.create_workflow(workflow)

    @mcp.tool()
    def list_workflows(
        filter: dict[str, Any] | None = None, sort: dict[str, Any] | None = None
    ) -> str:
        """List workflows with optional filter (tags, name_contains, created_after,
        created_before, min_success_rate, is_deleted) and sort ({field, order})."""
        return tools.list_workflows(filter, sort)

    @mcp.tool()
    def get_workflow(id: str) -> str:
        """Get a specific workflow by ID."""
        return tools.get_workflow(id)

    @mcp.tool()
    def update_workflow(id: str, updates: dict[str, Any], increment_version: bool = False) -> str:
        """Update an existing workflow, optionally bumping its patch version."""
        return tools.update_workflow(id, updates, increment_version)

    @mcp.tool()
    def delete_workflow(id: str) -> str:
        """Soft delete a workflow (can be recovered by rollback)."""
        return tools.delete_workflow(id)

    @mcp.tool()
    def start_workflow(id: str, inputs: dict[str, Any] | None = None) -> str:
        """Start a workflow execution session with step-by-step control."""
        return tools.start_workflow(id, inputs)

    @mcp.tool(description=RUN_STEP_DESCRIPTION)
    def run_workflow_step(execution_id: str, next_step_needed: bool, step_result: Any = None) -> str:
        return tools.run_workflow_step(execution_id, next_step_needed, step_result)

    @mcp.tool()
    def get_workflow_versions(workflow_id: str) -> str:
        """List all available versions of a workflow."""
        return tools.get_workflow_versions(workflow_id)

    @mcp.tool()
    def rollback_workflow(workflow_id: str, target_version: str, reason: str | None = None) -> str:
        """Rollback a workflow to a previous version."""
        return tools.rollback_workflow(workflow_id, target_version, reason)

    return mcp


def run_stdio(settings: WorkflowSettings | None = None) -> None:
    service = WorkflowService.from_settings(settings or WorkflowSettings())
    server = build_mcp_server(WorkflowTools(service))
    logger.info(
        "MCP server started",
        extra={"server": SERVER_NAME, "version": __version__, "transport": "stdio"},
    )
    try:
        server.run()
    finally:
        service.shutdown()

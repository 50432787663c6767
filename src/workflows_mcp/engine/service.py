"""Boundary operations shared by the CLI, the REST server and the MCP server.

The service owns the collaborators around the session core: definition
storage, authoring-time validation and input checks. It also serializes
`start`/`advance` calls, since the sequencer itself does not.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

from workflows_mcp.engine.config import WorkflowSettings
from workflows_mcp.engine.definitions.models import WorkflowDefinition, WorkflowMetadata
from workflows_mcp.engine.definitions.storage import (
    WorkflowFilter,
    WorkflowSort,
    WorkflowStorage,
    utc_iso_now,
)
from workflows_mcp.engine.definitions.validator import (
    validate_inputs,
    validate_partial_workflow,
    validate_workflow,
)
from workflows_mcp.engine.errors import NotFound, ValidationFailed
from workflows_mcp.engine.session.sequencer import CompletionSummary, StepSequencer
from workflows_mcp.engine.session.store import Session, SessionStore

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "1.0.0"


@dataclass(frozen=True, slots=True)
class StepResponse:
    """Outcome of a start or advance call, as handed to a transport."""

    execution_id: str
    text: str
    completed: bool
    final_variables: dict[str, Any] | None = None


def bump_patch(version: str) -> str:
    major, minor, patch = (int(part) for part in version.split("."))
    return f"{major}.{minor}.{patch + 1}"


def summarize(workflow: WorkflowDefinition) -> dict[str, object]:
    metadata = workflow.metadata
    return {
        "id": workflow.id,
        "name": workflow.name,
        "description": workflow.description,
        "version": workflow.version,
        "tags": list(workflow.tags),
        "steps_count": len(workflow.steps),
        "created_at": metadata.created_at if metadata else None,
        "times_run": metadata.times_run if metadata else 0,
        "success_rate": metadata.success_rate if metadata else None,
        "is_deleted": workflow.is_deleted,
    }


class WorkflowService:
    def __init__(
        self,
        storage: WorkflowStorage,
        sequencer: StepSequencer,
    ) -> None:
        self.storage = storage
        self.sequencer = sequencer
        self._run_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: WorkflowSettings) -> WorkflowService:
        storage = WorkflowStorage(settings.workflows_dir)
        storage.initialize()
        sequencer = StepSequencer(SessionStore(), preview_limit=settings.preview_steps)
        return cls(storage=storage, sequencer=sequencer)

    @property
    def sessions(self) -> SessionStore:
        return self.sequencer.store

    def shutdown(self) -> None:
        self.sessions.clear()

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def _require(self, workflow_id: str) -> WorkflowDefinition:
        workflow = self.storage.get(workflow_id)
        if workflow is None:
            raise NotFound(f"Workflow not found: {workflow_id}")
        return workflow

    def create_workflow(self, draft: dict[str, Any]) -> WorkflowDefinition:
        now = utc_iso_now()
        data = {
            **draft,
            "id": self.storage.generate_id(),
            "version": draft.get("version") or DEFAULT_VERSION,
            "metadata": {"created_at": now, "updated_at": now, "times_run": 0},
            "is_deleted": False,
        }
        workflow = validate_workflow(data)
        self.storage.save(workflow)
        logger.info(
            "Workflow created", extra={"workflow_id": workflow.id, "workflow_name": workflow.name}
        )
        return workflow

    def list_workflows(
        self, filter: WorkflowFilter | None = None, sort: WorkflowSort | None = None
    ) -> list[WorkflowDefinition]:
        return self.storage.list(filter, sort)

    def get_workflow(self, workflow_id: str) -> WorkflowDefinition:
        return self._require(workflow_id)

    def update_workflow(
        self, workflow_id: str, updates: dict[str, Any], *, increment_version: bool = False
    ) -> WorkflowDefinition:
        current = self._require(workflow_id)
        validate_partial_workflow(updates)

        now = utc_iso_now()
        metadata = current.metadata or WorkflowMetadata(created_at=now, updated_at=now)
        merged = {
            **current.to_json(),
            **updates,
            "id": current.id,
            "metadata": {**metadata.model_dump(), "updated_at": now},
        }
        if increment_version:
            merged["version"] = bump_patch(str(merged["version"]))

        workflow = validate_workflow(merged)
        self.storage.save(workflow)
        return workflow

    def delete_workflow(self, workflow_id: str) -> None:
        if not self.storage.delete(workflow_id):
            raise NotFound(f"Workflow not found: {workflow_id}")

    def get_workflow_versions(self, workflow_id: str) -> list[str]:
        self._require(workflow_id)
        return self.storage.list_versions(workflow_id)

    def rollback_workflow(self, workflow_id: str, target_version: str) -> WorkflowDefinition:
        self._require(workflow_id)
        if self.storage.get_version(workflow_id, target_version) is None:
            raise NotFound(f"Version {target_version} not found for workflow {workflow_id}")
        restored = self.storage.rollback(workflow_id, target_version)
        if restored is None:
            raise NotFound(f"Version {target_version} not found for workflow {workflow_id}")
        return restored

    # ------------------------------------------------------------------
    # Executions
    # ------------------------------------------------------------------

    def start_workflow(
        self, workflow_id: str, inputs: dict[str, Any] | None = None
    ) -> StepResponse:
        workflow = self._require(workflow_id)
        if workflow.is_deleted:
            raise ValidationFailed("Cannot run deleted workflow")

        resolved_inputs = validate_inputs(workflow, inputs or {})
        with self._run_lock:
            session, text = self.sequencer.begin(workflow, resolved_inputs)

        self.storage.record_run_started(workflow_id, session.started_at)
        return StepResponse(execution_id=session.execution_id, text=text, completed=False)

    def run_workflow_step(
        self, execution_id: str, step_result: Any = None, *, next_step_needed: bool = True
    ) -> StepResponse:
        with self._run_lock:
            session = self.sessions.get(execution_id)
            outcome = self.sequencer.advance(
                session, step_result, continue_flag=next_step_needed
            )

        if isinstance(outcome, CompletionSummary):
            # A definition removed from disk mid-run leaves nothing to update.
            self.storage.record_run_duration(outcome.workflow_id, outcome.duration_ms)
            return StepResponse(
                execution_id=execution_id,
                text=outcome.render(),
                completed=True,
                final_variables=outcome.final_variables,
            )
        return StepResponse(execution_id=execution_id, text=outcome, completed=False)

    def get_execution(self, execution_id: str) -> Session:
        return self.sessions.get(execution_id)

"""Step-by-step execution of a workflow definition.

The sequencer is the only stateful piece of the session core. Each call is a
synchronous read-modify-write over one session:

1. record the previous step's result (committed before anything can fail)
2. stop if the caller asked to, or if the cursor ran past the last step
3. follow a branch decision, or move to the next step
4. render the instruction for the new current step

Templates, visibility and change tracking are pure helpers; the sequencer
only wires them together.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from workflows_mcp.engine.definitions.models import BaseStep, BranchStep, WorkflowDefinition
from workflows_mcp.engine.errors import InvalidBranchTarget
from workflows_mcp.engine.logging import execution_logger

from .branching import resolve_branch_target
from .changes import diff_variables
from .instructions import render_step_instructions
from .store import Session, SessionStatus, SessionStore, StepOutput, new_execution_id
from .templates import resolve_templates
from .visibility import visible_variables

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CompletionSummary:
    """What the caller gets back once a session has finished."""

    execution_id: str
    workflow_id: str
    workflow_name: str
    final_variables: dict[str, Any]
    started_at: str
    completed_at: str

    @property
    def duration_ms(self) -> float:
        started = datetime.fromisoformat(self.started_at)
        completed = datetime.fromisoformat(self.completed_at)
        return max((completed - started).total_seconds() * 1000.0, 0.0)

    def to_json(self) -> dict[str, object]:
        return {
            "status": SessionStatus.COMPLETED.value,
            "execution_id": self.execution_id,
            "message": f'Workflow "{self.workflow_name}" completed successfully',
            "final_variables": self.final_variables,
        }

    def render(self) -> str:
        return json.dumps(self.to_json(), indent=2, ensure_ascii=False, default=str)


def resolve_step(step: BaseStep, variables: dict[str, Any]) -> BaseStep:
    """Copy of `step` with its templated fields resolved against `variables`."""

    update = {
        name: resolve_templates(getattr(step, name), variables)
        for name in step.templated_fields
        if getattr(step, name) is not None
    }
    return step.model_copy(update=update)


class StepSequencer:
    def __init__(self, store: SessionStore, *, preview_limit: int = 3) -> None:
        self.store = store
        self.preview_limit = preview_limit

    def begin(
        self, definition: WorkflowDefinition, inputs: dict[str, Any]
    ) -> tuple[Session, str]:
        """Create and register a session, returning it with the instructions for step 0.

        `inputs` must already have been validated against the definition.
        """

        session = Session(
            definition=definition.model_copy(deep=True),
            execution_id=new_execution_id(),
            started_at=datetime.now(tz=UTC).isoformat(),
            variables=dict(inputs),
        )
        self.store.register(session)
        execution_logger(
            logger, execution_id=session.execution_id, workflow_id=session.workflow_id
        ).info("Session started", extra={"total_steps": session.total_steps})
        return session, self.instructions(session)

    def advance(
        self, session: Session, step_result: Any = None, *, continue_flag: bool = True
    ) -> str | CompletionSummary:
        """Record `step_result` for the current step and move on.

        Returns the next instruction text, or a CompletionSummary once the
        session is finished (and deregistered).

        Raises:
            InvalidBranchTarget: a branch result named an unknown step. The
                result assignment has already been committed and the session
                stays registered.
        """

        log = execution_logger(
            logger, execution_id=session.execution_id, workflow_id=session.workflow_id
        )
        previous_step = session.current_step

        if step_result is not None and previous_step is not None:
            session.previous_variables = dict(session.variables)
            if previous_step.save_result_as:
                session.step_outputs[previous_step.id] = StepOutput(
                    variable_name=previous_step.save_result_as, value=step_result
                )
                session.variables[previous_step.save_result_as] = step_result

        if not continue_flag or session.current_step_index >= session.total_steps:
            return self._complete(session)

        next_index = session.current_step_index + 1
        if isinstance(previous_step, BranchStep) and step_result is not None:
            target = resolve_branch_target(step_result)
            if target is not None:
                target_index = session.definition.step_index(target)
                if target_index is None:
                    log.warning("Branch target rejected", extra={"step_id": target})
                    raise InvalidBranchTarget(execution_id=session.execution_id, step_id=target)
                log.info(
                    "Branch taken", extra={"from_step": previous_step.id, "to_step": target}
                )
                next_index = target_index

        session.current_step_index = next_index
        if session.current_step_index >= session.total_steps:
            return self._complete(session)

        log.debug("Step advanced", extra={"step_index": session.current_step_index})
        return self.instructions(session)

    def instructions(self, session: Session) -> str:
        """Render the instruction text for the session's current step."""

        step = session.current_step
        if step is None:
            raise ValueError(f"Session {session.execution_id} has no current step")

        resolved = resolve_step(step, session.variables)
        visible = visible_variables(session.definition, step, session)

        changes = None
        if session.previous_variables:
            changes = diff_variables(session.variables, session.previous_variables).restricted_to(
                visible
            )

        return render_step_instructions(
            session,
            resolved,
            visible=visible,
            changes=changes,
            preview_limit=self.preview_limit,
        )

    def _complete(self, session: Session) -> CompletionSummary:
        session.status = SessionStatus.COMPLETED
        self.store.remove(session.execution_id)
        summary = CompletionSummary(
            execution_id=session.execution_id,
            workflow_id=session.workflow_id,
            workflow_name=session.workflow_name,
            final_variables=dict(session.variables),
            started_at=session.started_at,
            completed_at=datetime.now(tz=UTC).isoformat(),
        )
        execution_logger(
            logger, execution_id=session.execution_id, workflow_id=session.workflow_id
        ).info(
            "Session completed",
            extra={"step_index": session.current_step_index, "duration_ms": summary.duration_ms},
        )
        return summary

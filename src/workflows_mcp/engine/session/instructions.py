"""Render the text block an agent receives for one step.

The layout is deterministic: header, position, action, description, the
directive for the step's kind, result target, variable changes, visible
variables, upcoming steps and the call-back hint.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from typing import Any

from workflows_mcp.engine.definitions.models import (
    AssertStep,
    BaseStep,
    BranchStep,
    CheckpointStep,
    CognitiveStep,
    LoopStep,
    NotifyStep,
    ParallelStep,
    RetryStep,
    ToolCallStep,
    TransformStep,
    WaitForInputStep,
)

from .changes import VariableChanges
from .store import Session

NO_VISIBLE_VARIABLES = "  (none - use dependencies to access previous step outputs)"


def _value(value: object) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _bound_inputs(names: list[str] | None, variables: Mapping[str, Any]) -> list[str]:
    return [f"  {name}: {_value(variables[name])}" for name in names or [] if name in variables]


def _tool_call(step: ToolCallStep, variables: Mapping[str, Any]) -> list[str]:
    return [
        "Execute the following tool:",
        f"Tool: {step.tool_name}",
        f"Parameters: {json.dumps(step.parameters, indent=2, ensure_ascii=False, default=str)}",
    ]


def _cognitive(step: CognitiveStep, variables: Mapping[str, Any]) -> list[str]:
    lines = [f"Perform the cognitive action: {step.action}"]
    bound = _bound_inputs(step.input_from, variables)
    if bound:
        lines.append("Using input from:")
        lines.extend(bound)
    if step.criteria:
        lines.append(f"Criteria: {step.criteria}")
    return lines


def _wait_for_input(step: WaitForInputStep, variables: Mapping[str, Any]) -> list[str]:
    lines = ["Request input from the user:", f"Prompt: {step.prompt}"]
    lines.append(f"Expected type: {step.input_type}")
    if step.validation:
        lines.append(f"Validation: {step.validation}")
    return lines


def _transform(step: TransformStep, variables: Mapping[str, Any]) -> list[str]:
    lines = ["Apply transformation:", step.transformation]
    bound = _bound_inputs(step.input_from, variables)
    if bound:
        lines.append("To variables:")
        lines.extend(bound)
    return lines


def _branch(step: BranchStep, variables: Mapping[str, Any]) -> list[str]:
    lines = ["Evaluate conditions and determine next step:", ""]
    lines.extend(f"IF {c.if_} THEN GOTO step {c.goto_step}" for c in step.conditions)
    if step.default_step is not None:
        lines.append(f"OTHERWISE GOTO step {step.default_step}")
    lines.extend(
        [
            "",
            "Evaluate the conditions using the current variables and respond with:",
            "- Which condition is true",
            '- The step number to jump to (e.g., "Branching to step 8")',
        ]
    )
    return lines


def _loop(step: LoopStep, variables: Mapping[str, Any]) -> list[str]:
    lines = [
        f"Iterate over: {step.over}",
        f"Bind each item as: {step.as_}",
        f"Run steps: {', '.join(str(i) for i in step.steps)}",
    ]
    if step.max_iterations is not None:
        lines.append(f"Max iterations: {step.max_iterations}")
    return lines


def _parallel(step: ParallelStep, variables: Mapping[str, Any]) -> list[str]:
    return [
        f"Run steps in parallel: {', '.join(str(i) for i in step.parallel_steps)}",
        f"Wait for all: {'yes' if step.wait_for_all else 'no'}",
    ]


def _checkpoint(step: CheckpointStep, variables: Mapping[str, Any]) -> list[str]:
    return [f"Record checkpoint: {step.checkpoint_name}"]


def _notify(step: NotifyStep, variables: Mapping[str, Any]) -> list[str]:
    lines = ["Send notification:", f"Message: {step.message}"]
    if step.channel:
        lines.append(f"Channel: {step.channel}")
    return lines


def _assert(step: AssertStep, variables: Mapping[str, Any]) -> list[str]:
    lines = ["Verify that the following holds:", f"Condition: {step.condition}"]
    if step.message:
        lines.append(f"On failure: {step.message}")
    return lines


def _retry(step: RetryStep, variables: Mapping[str, Any]) -> list[str]:
    return [f"Retry step {step.step_id} (up to {step.max_attempts} attempts)"]


_DIRECTIVES: dict[type[BaseStep], Callable[[Any, Mapping[str, Any]], list[str]]] = {
    ToolCallStep: _tool_call,
    CognitiveStep: _cognitive,
    WaitForInputStep: _wait_for_input,
    TransformStep: _transform,
    BranchStep: _branch,
    LoopStep: _loop,
    ParallelStep: _parallel,
    CheckpointStep: _checkpoint,
    NotifyStep: _notify,
    AssertStep: _assert,
    RetryStep: _retry,
}


def render_step_instructions(
    session: Session,
    step: BaseStep,
    *,
    visible: Mapping[str, Any],
    changes: VariableChanges | None,
    preview_limit: int = 3,
) -> str:
    """Build the instruction text for `step`, which must already be template-resolved.

    `changes` must already be restricted to the names in `visible`.
    """

    lines = [
        "=== WORKFLOW STEP EXECUTION ===",
        "",
        f"Workflow: {session.workflow_name} ({session.execution_id})",
        f"Step {session.current_step_index + 1} of {session.total_steps}",
        "",
        f"Action: {step.action.upper()}",
        f"Description: {step.description}",
        "",
    ]
    lines.extend(_DIRECTIVES[type(step)](step, visible))

    if step.error_handling != "stop":
        lines.append(f"On error: {step.error_handling}")
    if step.timeout_ms is not None:
        lines.append(f"Timeout: {step.timeout_ms} ms")

    if step.save_result_as:
        lines.extend(["", f"Save the result as: {step.save_result_as}"])

    if changes is not None and changes.has_changes:
        lines.extend(["", "Variable changes:"])
        lines.extend(f"  + {name}: {_value(visible[name])}" for name in changes.added)
        lines.extend(f"  ~ {name}: {_value(visible[name])}" for name in changes.modified)

    lines.extend(["", "Available variables:"])
    if visible:
        lines.extend(f"  {name}: {_value(value)}" for name, value in visible.items())
    else:
        lines.append(NO_VISIBLE_VARIABLES)

    upcoming = session.definition.steps[
        session.current_step_index + 1 : session.current_step_index + 1 + preview_limit
    ]
    remaining = session.total_steps - (session.current_step_index + 1 + len(upcoming))
    if upcoming or remaining > 0:
        lines.extend(["", "Upcoming steps:"])
        first = session.current_step_index + 2
        lines.extend(
            f"  {position}. {s.action}: {s.description}"
            for position, s in enumerate(upcoming, start=first)
        )
        if remaining > 0:
            lines.append(f"  ... and {remaining} more steps")

    lines.extend(
        [
            "",
            "After completing this step, call run_workflow_step with:",
            f"- execution_id: {session.execution_id}",
            "- step_result: <the result of this step, if any>",
            "- next_step_needed: true (or false if the workflow should end)",
        ]
    )
    return "\n".join(lines)

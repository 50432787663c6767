"""Which session variables a step is allowed to see."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from workflows_mcp.engine.definitions.models import BaseStep, WorkflowDefinition

if TYPE_CHECKING:
    from .store import Session


def visible_variables(
    definition: WorkflowDefinition, step: BaseStep, session: Session
) -> dict[str, Any]:
    """Dependency-scoped view of `session.variables` for `step`.

    Rules, first match wins:
    1. `show_all_variables` exposes everything.
    2. Without dependencies, strict workflows expose nothing and others expose everything.
    3. With dependencies, expose the workflow inputs present in the session plus
       the variable saved by each listed step that has already produced output.
    """

    if step.show_all_variables:
        return dict(session.variables)

    if not step.dependencies:
        return {} if definition.strict_dependencies else dict(session.variables)

    visible: dict[str, Any] = {}
    for name in definition.inputs:
        if name in session.variables:
            visible[name] = session.variables[name]

    for step_id in step.dependencies:
        output = session.step_outputs.get(step_id)
        # A dependency that has not run yet contributes nothing.
        if output is not None and output.variable_name in session.variables:
            visible[output.variable_name] = session.variables[output.variable_name]

    return visible

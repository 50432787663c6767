"""Authoring-time validation of workflow definitions and run-time input checks.

Structural problems are collected rather than raised one at a time, so an
author sees every issue with a definition in a single message.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from workflows_mcp.engine.errors import MalformedDefinition, ValidationFailed

from .models import (
    BranchStep,
    LoopStep,
    ParallelStep,
    RetryStep,
    ToolCallStep,
    WorkflowDefinition,
)

# Stand-ins for required fields so a partial update can be checked on its own.
_PLACEHOLDERS: dict[str, object] = {
    "id": "temp-id",
    "name": "temp-name",
    "description": "temp",
    "goal": "temp",
    "version": "1.0.0",
    "steps": [{"id": 1, "action": "checkpoint", "description": "temp", "checkpoint_name": "temp"}],
}


def _format_validation_error(error: ValidationError) -> list[str]:
    problems: list[str] = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        problems.append(f"{location}: {item['msg']}" if location else item["msg"])
    return problems


def _structural_problems(workflow: WorkflowDefinition) -> list[str]:
    problems: list[str] = []

    step_ids: set[int] = set()
    for step in workflow.steps:
        if step.id in step_ids:
            problems.append(f"Duplicate step ID found: {step.id}")
        step_ids.add(step.id)

    for position, step_id in enumerate(sorted(step_ids), start=1):
        if step_id != position:
            problems.append(
                "Step IDs must be sequential starting from 1. "
                f"Missing or incorrect ID at position {position}"
            )

    for step in workflow.steps:
        if isinstance(step, BranchStep):
            for condition in step.conditions:
                if condition.goto_step not in step_ids:
                    problems.append(
                        f"Branch step {step.id} references non-existent step {condition.goto_step}"
                    )
            if step.default_step is not None and step.default_step not in step_ids:
                problems.append(
                    f"Branch step {step.id} default references non-existent step "
                    f"{step.default_step}"
                )
        elif isinstance(step, LoopStep):
            for loop_step_id in step.steps:
                if loop_step_id not in step_ids:
                    problems.append(
                        f"Loop step {step.id} references non-existent step {loop_step_id}"
                    )
        elif isinstance(step, ParallelStep):
            for parallel_step_id in step.parallel_steps:
                if parallel_step_id not in step_ids:
                    problems.append(
                        f"Parallel step {step.id} references non-existent step {parallel_step_id}"
                    )
        elif isinstance(step, RetryStep) and step.step_id not in step_ids:
            problems.append(f"Retry step {step.id} references non-existent step {step.step_id}")

        for dependency in step.dependencies or []:
            if dependency not in step_ids:
                problems.append(f"Step {step.id} depends on non-existent step {dependency}")

    # input_from may only name workflow inputs or results saved by earlier steps.
    known_variables = set(workflow.inputs)
    for step in workflow.steps:
        for name in getattr(step, "input_from", None) or []:
            if name not in known_variables:
                problems.append(f"Step {step.id} references undefined variable: {name}")
        if step.save_result_as:
            known_variables.add(step.save_result_as)

    used_tools = {step.tool_name for step in workflow.steps if isinstance(step, ToolCallStep)}
    if used_tools and workflow.required_tools is None:
        problems.append("Workflow uses tools but does not specify required_tools")
    elif workflow.required_tools is not None:
        for tool in sorted(used_tools):
            if tool not in workflow.required_tools:
                problems.append(f'Tool "{tool}" is used but not listed in required_tools')

    return problems


def validate_workflow(data: Any) -> WorkflowDefinition:
    """Parse and structurally check a complete definition.

    Raises:
        MalformedDefinition: listing every schema and structural problem found.
    """

    if isinstance(data, WorkflowDefinition):
        data = data.to_json()
    try:
        workflow = WorkflowDefinition.model_validate(data)
    except ValidationError as e:
        raise MalformedDefinition(_format_validation_error(e)) from e

    problems = _structural_problems(workflow)
    if problems:
        raise MalformedDefinition(problems)
    return workflow


def validate_partial_workflow(updates: dict[str, Any]) -> None:
    """Check a partial update before it is merged into a stored definition.

    Raises:
        ValidationFailed: unknown keys or values of the wrong shape.
    """

    aliases = {
        name: field.alias or name for name, field in WorkflowDefinition.model_fields.items()
    }
    unknown = sorted(key for key in updates if key not in aliases.values())
    if unknown:
        raise ValidationFailed(f"Unknown workflow fields: {', '.join(unknown)}")

    candidate: dict[str, Any] = {**_PLACEHOLDERS, **updates}
    try:
        if "steps" in updates:
            validate_workflow(candidate)
        else:
            WorkflowDefinition.model_validate(candidate)
    except MalformedDefinition as e:
        raise ValidationFailed(str(e)) from e
    except ValidationError as e:
        raise ValidationFailed("; ".join(_format_validation_error(e))) from e


_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list, tuple),
    "object": (dict,),
}


def _json_type_name(value: object) -> str:
    if isinstance(value, bool):
        return "boolean"
    for name, types in _JSON_TYPES.items():
        if isinstance(value, types):
            return name
    if value is None:
        return "null"
    return type(value).__name__


def validate_inputs(definition: WorkflowDefinition, inputs: dict[str, Any]) -> dict[str, Any]:
    """Check run inputs against the declared parameters.

    Returns:
        A new mapping: the caller's inputs plus defaults for absent optional inputs.

    Raises:
        ValidationFailed: missing required inputs or type mismatches.
    """

    resolved = dict(inputs)
    errors: list[str] = []

    for name, param in definition.inputs.items():
        if name not in resolved:
            if param.required:
                errors.append(f'Required input "{name}" is missing')
            elif param.default is not None:
                resolved[name] = param.default
            continue

        actual = _json_type_name(resolved[name])
        if actual != param.type:
            errors.append(f'Input "{name}" expected type {param.type} but got {actual}')

    if errors:
        raise ValidationFailed("Input validation failed: " + "; ".join(errors))
    return resolved

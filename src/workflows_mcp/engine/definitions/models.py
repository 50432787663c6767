"""Pydantic models for workflow definitions.

A definition is an ordered list of steps tagged by their `action`. Each step
variant carries only the fields its kind needs and names the fields that may
contain `{{variable}}` references.
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field

ErrorHandling = Literal["stop", "continue", "retry"]

COGNITIVE_ACTIONS: tuple[str, ...] = (
    "analyze",
    "consider",
    "research",
    "validate",
    "summarize",
    "decide",
    "extract",
    "compose",
)

CognitiveAction = Literal[
    "analyze",
    "consider",
    "research",
    "validate",
    "summarize",
    "decide",
    "extract",
    "compose",
]


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class BaseStep(_Model):
    id: int = Field(gt=0)
    action: str
    description: str
    save_result_as: str | None = None
    error_handling: ErrorHandling = "stop"
    timeout_ms: int | None = Field(default=None, gt=0)
    retry_count: int = Field(default=0, ge=0)

    dependencies: list[int] | None = Field(
        default=None,
        description="Only the outputs of these step ids (plus workflow inputs) are visible",
    )
    show_all_variables: bool = False

    templated_fields: ClassVar[tuple[str, ...]] = ("description",)


class ToolCallStep(BaseStep):
    action: Literal["tool_call"]
    tool_name: str
    parameters: dict[str, Any] = Field(default_factory=dict)

    templated_fields: ClassVar[tuple[str, ...]] = ("description", "tool_name", "parameters")


class CognitiveStep(BaseStep):
    action: CognitiveAction
    input_from: list[str] | None = None
    criteria: str | None = None

    templated_fields: ClassVar[tuple[str, ...]] = ("description", "criteria")


class WaitForInputStep(BaseStep):
    action: Literal["wait_for_input"]
    prompt: str
    input_type: Literal["text", "number", "boolean", "json"] = "text"
    validation: str | None = None

    templated_fields: ClassVar[tuple[str, ...]] = ("description", "prompt")


class TransformStep(BaseStep):
    action: Literal["transform"]
    input_from: list[str]
    transformation: str

    templated_fields: ClassVar[tuple[str, ...]] = ("description", "transformation")


class BranchCondition(_Model):
    if_: str = Field(alias="if")
    goto_step: int = Field(gt=0)


class BranchStep(BaseStep):
    action: Literal["branch"]
    conditions: list[BranchCondition]
    default_step: int | None = Field(default=None, gt=0)


class LoopStep(BaseStep):
    action: Literal["loop"]
    over: str
    as_: str = Field(alias="as")
    steps: list[int]
    max_iterations: int | None = Field(default=None, gt=0)


class ParallelStep(BaseStep):
    action: Literal["parallel"]
    parallel_steps: list[int]
    wait_for_all: bool = True


class CheckpointStep(BaseStep):
    action: Literal["checkpoint"]
    checkpoint_name: str

    templated_fields: ClassVar[tuple[str, ...]] = ("description", "checkpoint_name")


class NotifyStep(BaseStep):
    action: Literal["notify"]
    message: str
    channel: str | None = None

    templated_fields: ClassVar[tuple[str, ...]] = ("description", "message", "channel")


class AssertStep(BaseStep):
    action: Literal["assert"]
    condition: str
    message: str | None = None

    templated_fields: ClassVar[tuple[str, ...]] = ("description", "condition", "message")


class RetryStep(BaseStep):
    action: Literal["retry"]
    step_id: int = Field(gt=0)
    max_attempts: int = Field(default=3, gt=0)


Step = Annotated[
    ToolCallStep
    | CognitiveStep
    | WaitForInputStep
    | TransformStep
    | BranchStep
    | LoopStep
    | ParallelStep
    | CheckpointStep
    | NotifyStep
    | AssertStep
    | RetryStep,
    Field(discriminator="action"),
]


class InputParameter(_Model):
    type: Literal["string", "number", "boolean", "array", "object"]
    description: str
    required: bool = True
    default: Any = None
    validation: str | None = None


class WorkflowMetadata(_Model):
    created_at: str
    updated_at: str
    created_by: str | None = None
    times_run: int = Field(default=0, ge=0)
    average_duration_ms: float | None = Field(default=None, ge=0)
    success_rate: float | None = Field(default=None, ge=0, le=1)
    last_run_at: str | None = None


class WorkflowDefinition(_Model):
    """A stored, versioned workflow.

    Sessions treat a definition as read-only: they capture a copy at start and
    never reload it, even if the stored copy is edited mid-run.
    """

    id: str
    name: str = Field(min_length=1)
    description: str
    goal: str
    version: str = Field(pattern=r"^\d+\.\d+\.\d+$")
    tags: list[str] = Field(default_factory=list)
    inputs: dict[str, InputParameter] = Field(default_factory=dict)
    outputs: list[str] | None = None
    required_tools: list[str] | None = None
    steps: list[Step] = Field(min_length=1)
    strict_dependencies: bool = False
    metadata: WorkflowMetadata | None = None
    is_deleted: bool = False

    def step_index(self, step_id: int) -> int | None:
        """Position of the step with `step_id`, or None when absent."""

        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index
        return None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

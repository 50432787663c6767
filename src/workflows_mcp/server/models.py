"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class CreateWorkflowRequest(BaseModel):
    workflow: dict[str, Any] = Field(description="Complete workflow definition (id is assigned)")


class UpdateWorkflowRequest(BaseModel):
    updates: dict[str, Any]
    increment_version: bool = False


class RollbackRequest(BaseModel):
    target_version: str
    reason: str | None = None


class StartWorkflowRequest(BaseModel):
    inputs: dict[str, Any] = Field(default_factory=dict)


class RunStepRequest(BaseModel):
    step_result: Any = None
    next_step_needed: bool


class ApiWorkflowSummary(BaseModel):
    id: str
    name: str
    description: str
    version: str
    tags: list[str]
    steps_count: int
    created_at: str | None = None
    times_run: int = 0
    success_rate: float | None = None
    is_deleted: bool = False


class ApiWorkflowVersions(BaseModel):
    workflow_id: str
    workflow_name: str
    current_version: str
    available_versions: list[str]


class ApiRollback(BaseModel):
    workflow_id: str
    previous_version: str
    rolled_back_to: str
    reason: str


ExecutionStatus = Literal["active", "completed"]


class ApiStep(BaseModel):
    execution_id: str
    status: ExecutionStatus
    instructions: str | None = None
    final_variables: dict[str, Any] | None = None


class ApiExecution(BaseModel):
    workflow_id: str
    workflow_name: str
    execution_id: str
    status: ExecutionStatus
    current_step_index: int
    total_steps: int
    started_at: str
    variables: dict[str, Any] = Field(default_factory=dict)
    step_outputs: dict[str, dict[str, Any]] = Field(default_factory=dict)

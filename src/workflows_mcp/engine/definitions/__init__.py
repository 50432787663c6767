"""Workflow definitions: models, validation and on-disk storage."""

from workflows_mcp.engine.definitions.models import Step, WorkflowDefinition
from workflows_mcp.engine.definitions.storage import WorkflowFilter, WorkflowSort, WorkflowStorage

__all__ = ["Step", "WorkflowDefinition", "WorkflowFilter", "WorkflowSort", "WorkflowStorage"]

"""Failure taxonomy shared by the session core, the definition store and the transports.

Every failure surfaces to the immediate caller as a single descriptive message.
Nothing here is retried automatically.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for every workflow failure."""


class NotFound(WorkflowError, LookupError):
    """Unknown workflow id, execution id or definition version."""


class ValidationFailed(WorkflowError, ValueError):
    """Inputs (or a partial update) do not match what the definition declares."""


class MalformedDefinition(WorkflowError, ValueError):
    """A workflow definition failed schema or structural validation."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class InvalidBranchTarget(WorkflowError):
    """A branch decision named a step id that the definition does not contain.

    The owning session stays registered so its last-known state can be inspected.
    """

    def __init__(self, *, execution_id: str, step_id: int) -> None:
        self.execution_id = execution_id
        self.step_id = step_id
        super().__init__(f"Branch target step {step_id} not found")

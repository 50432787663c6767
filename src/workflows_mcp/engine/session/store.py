"""Live execution sessions and the registry that owns them.

Sessions are volatile: they are never persisted, and a process restart
discards every active one. A session leaves the registry the moment it
completes, after which its execution id cannot be advanced again.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from workflows_mcp.engine.definitions.models import BaseStep, WorkflowDefinition
from workflows_mcp.engine.errors import NotFound

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True, slots=True)
class StepOutput:
    """The variable a step saved its result under, and the result itself."""

    variable_name: str
    value: Any


@dataclass(slots=True)
class Session:
    definition: WorkflowDefinition
    execution_id: str
    started_at: str
    variables: dict[str, Any] = field(default_factory=dict)
    previous_variables: dict[str, Any] = field(default_factory=dict)
    step_outputs: dict[int, StepOutput] = field(default_factory=dict)
    current_step_index: int = 0
    status: SessionStatus = SessionStatus.ACTIVE

    @property
    def workflow_id(self) -> str:
        return self.definition.id

    @property
    def workflow_name(self) -> str:
        return self.definition.name

    @property
    def total_steps(self) -> int:
        return len(self.definition.steps)

    @property
    def current_step(self) -> BaseStep | None:
        if self.current_step_index >= self.total_steps:
            return None
        return self.definition.steps[self.current_step_index]

    def to_json(self) -> dict[str, object]:
        return {
            "workflow_id": self.workflow_id,
            "workflow_name": self.workflow_name,
            "execution_id": self.execution_id,
            "status": self.status.value,
            "current_step_index": self.current_step_index,
            "total_steps": self.total_steps,
            "started_at": self.started_at,
            "variables": dict(self.variables),
            "step_outputs": {
                str(step_id): {"variable_name": out.variable_name, "value": out.value}
                for step_id, out in self.step_outputs.items()
            },
        }


def new_execution_id() -> str:
    return uuid.uuid4().hex


class SessionStore:
    """Process-wide registry of live sessions keyed by execution id.

    The lock protects the mapping only. Callers must not advance the same
    session concurrently; that serialization belongs to the transport.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def register(self, session: Session) -> None:
        with self._lock:
            if session.execution_id in self._sessions:
                raise ValueError(f"Execution id already registered: {session.execution_id}")
            self._sessions[session.execution_id] = session

    def get(self, execution_id: str) -> Session:
        with self._lock:
            session = self._sessions.get(execution_id)
        if session is None:
            raise NotFound(f"No active workflow session found: {execution_id}")
        return session

    def remove(self, execution_id: str) -> Session | None:
        with self._lock:
            return self._sessions.pop(execution_id, None)

    def execution_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def clear(self) -> int:
        """Drop every live session (shutdown teardown). Returns how many were dropped."""

        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
        if count:
            logger.info("Discarded active sessions", extra={"count": count})
        return count

    def __contains__(self, execution_id: object) -> bool:
        with self._lock:
            return execution_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

"""Test configuration and fixtures."""

from __future__ import annotations

import copy
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from workflows_mcp.engine.config import WorkflowSettings
from workflows_mcp.engine.definitions.models import WorkflowDefinition
from workflows_mcp.engine.definitions.storage import WorkflowStorage
from workflows_mcp.engine.definitions.validator import validate_workflow
from workflows_mcp.engine.service import WorkflowService
from workflows_mcp.engine.session.sequencer import StepSequencer
from workflows_mcp.engine.session.store import SessionStore

SEQUENTIAL_WORKFLOW: dict[str, Any] = {
    "name": "Review pull request",
    "description": "Summarize, assess and report on a pull request",
    "goal": "Produce a short review",
    "tags": ["review", "github"],
    "inputs": {
        "x": {"type": "number", "description": "Pull request number"},
    },
    "steps": [
        {
            "id": 1,
            "action": "analyze",
            "description": "Read pull request {{x}}",
            "input_from": ["x"],
            "save_result_as": "summary",
        },
        {
            "id": 2,
            "action": "transform",
            "description": "Turn the summary into findings",
            "input_from": ["summary"],
            "transformation": "Bullet the risks in {{summary}}",
            "save_result_as": "findings",
        },
        {
            "id": 3,
            "action": "notify",
            "description": "Report back",
            "message": "Review of {{x}}: {{findings}}",
            "save_result_as": "report",
        },
    ],
}

BRANCHING_WORKFLOW: dict[str, Any] = {
    "name": "Triage",
    "description": "Route a ticket by severity",
    "goal": "Handle the ticket on the right path",
    "tags": ["support"],
    "inputs": {
        "ticket": {"type": "string", "description": "Ticket text"},
    },
    "steps": [
        {
            "id": 1,
            "action": "decide",
            "description": "Classify {{ticket}}",
            "save_result_as": "severity",
        },
        {
            "id": 2,
            "action": "branch",
            "description": "Route by severity",
            "conditions": [
                {"if": "severity == 'high'", "goto_step": 5},
                {"if": "severity == 'low'", "goto_step": 3},
            ],
        },
        {"id": 3, "action": "compose", "description": "Draft a reply"},
        {"id": 4, "action": "checkpoint", "description": "Reply drafted", "checkpoint_name": "low"},
        {"id": 5, "action": "notify", "description": "Page on-call", "message": "{{ticket}}"},
        {"id": 6, "action": "summarize", "description": "Close out"},
    ],
}


@pytest.fixture
def sequential_workflow() -> dict[str, Any]:
    """Provide a fresh copy of a three step, non-branching definition."""
    return copy.deepcopy(SEQUENTIAL_WORKFLOW)


@pytest.fixture
def branching_workflow() -> dict[str, Any]:
    """Provide a fresh copy of a definition with a branch at step 2."""
    return copy.deepcopy(BRANCHING_WORKFLOW)


@pytest.fixture
def build_definition() -> Callable[..., WorkflowDefinition]:
    """Build a validated definition from a draft, filling in id and version."""

    def _build(draft: dict[str, Any], **overrides: Any) -> WorkflowDefinition:
        data = {"id": "wf-test", "version": "1.0.0", **copy.deepcopy(draft), **overrides}
        return validate_workflow(data)

    return _build


@pytest.fixture
def sequencer() -> StepSequencer:
    """Provide a sequencer over an empty session registry."""
    return StepSequencer(SessionStore())


@pytest.fixture
def workflows_dir(tmp_path: Path) -> Path:
    """Provide a temporary definitions directory."""
    root = tmp_path / "workflows"
    root.mkdir()
    return root


@pytest.fixture
def storage(workflows_dir: Path) -> WorkflowStorage:
    """Provide an initialized definition store."""
    store = WorkflowStorage(workflows_dir)
    store.initialize()
    return store


@pytest.fixture
def settings(workflows_dir: Path) -> WorkflowSettings:
    """Provide settings that ignore any local `.env`."""
    return WorkflowSettings(_env_file=None, WORKFLOWS_DIR=workflows_dir, LOG_LEVEL="DEBUG")


@pytest.fixture
def service(settings: WorkflowSettings) -> WorkflowService:
    """Provide a workflow service backed by the temporary directory."""
    return WorkflowService.from_settings(settings)

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from workflows_mcp.server.app import create_app
from workflows_mcp.server.config import ServerSettings


@pytest.fixture
def client(workflows_dir: Path) -> TestClient:
    settings = ServerSettings(_env_file=None, WORKFLOWS_DIR=workflows_dir)
    return TestClient(create_app(settings))


def _create(client: TestClient, draft: dict[str, Any]) -> str:
    resp = client.post("/api/workflows", json={"workflow": draft})
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def test_health_and_docs(client: TestClient) -> None:
    health = client.get("/api/health").json()
    assert health["status"] == "ok"
    assert health["active_sessions"] == 0
    assert "version" in health

    assert client.get("/api/openapi.json").status_code == 200


def test_workflow_crud(client: TestClient, sequential_workflow: dict[str, Any]) -> None:
    workflow_id = _create(client, sequential_workflow)

    listed = client.get("/api/workflows", params={"tags": "review"}).json()
    assert [w["id"] for w in listed] == [workflow_id]
    assert listed[0]["steps_count"] == 3

    full = client.get(f"/api/workflows/{workflow_id}").json()
    assert full["steps"][0]["action"] == "analyze"

    patched = client.patch(
        f"/api/workflows/{workflow_id}",
        json={"updates": {"description": "New"}, "increment_version": True},
    )
    assert patched.status_code == 200
    assert patched.json()["version"] == "1.0.1"

    versions = client.get(f"/api/workflows/{workflow_id}/versions").json()
    assert versions["available_versions"] == ["1.0.0", "1.0.1"]
    assert versions["current_version"] == "1.0.1"

    rolled = client.post(
        f"/api/workflows/{workflow_id}/rollback", json={"target_version": "1.0.0"}
    ).json()
    assert rolled["previous_version"] == "1.0.1"
    assert rolled["rolled_back_to"] == "1.0.0"
    assert rolled["reason"] == "No reason provided"

    assert client.delete(f"/api/workflows/{workflow_id}").status_code == 200
    assert client.get("/api/workflows", params={"is_deleted": "false"}).json() == []


def test_error_status_codes(client: TestClient, branching_workflow: dict[str, Any]) -> None:
    assert client.get("/api/workflows/nope").status_code == 404

    bad = client.post("/api/workflows", json={"workflow": {"name": "x"}})
    assert bad.status_code == 422

    workflow_id = _create(client, branching_workflow)
    missing_input = client.post(f"/api/workflows/{workflow_id}/executions", json={})
    assert missing_input.status_code == 422
    assert 'Required input "ticket" is missing' in missing_input.json()["detail"]

    started = client.post(
        f"/api/workflows/{workflow_id}/executions", json={"inputs": {"ticket": "t"}}
    ).json()
    execution_id = started["execution_id"]
    client.post(
        f"/api/executions/{execution_id}/steps",
        json={"step_result": "high", "next_step_needed": True},
    )
    conflict = client.post(
        f"/api/executions/{execution_id}/steps",
        json={"step_result": "Branching to step 99", "next_step_needed": True},
    )
    assert conflict.status_code == 409
    assert conflict.json()["detail"] == "Branch target step 99 not found"

    inspected = client.get(f"/api/executions/{execution_id}").json()
    assert inspected["status"] == "active"
    assert inspected["current_step_index"] == 1


def test_execution_flow(client: TestClient, branching_workflow: dict[str, Any]) -> None:
    workflow_id = _create(client, branching_workflow)

    started = client.post(
        f"/api/workflows/{workflow_id}/executions", json={"inputs": {"ticket": "disk full"}}
    )
    assert started.status_code == 201
    body = started.json()
    assert body["status"] == "active"
    assert "Step 1 of 6" in body["instructions"]
    execution_id = body["execution_id"]

    step = client.post(
        f"/api/executions/{execution_id}/steps",
        json={"step_result": "high", "next_step_needed": True},
    ).json()
    assert "Step 2 of 6" in step["instructions"]

    step = client.post(
        f"/api/executions/{execution_id}/steps",
        json={"step_result": "Branching to step 5", "next_step_needed": True},
    ).json()
    assert "Step 5 of 6" in step["instructions"]

    done = client.post(
        f"/api/executions/{execution_id}/steps",
        json={"next_step_needed": False},
    ).json()
    assert done["status"] == "completed"
    assert done["final_variables"] == {"ticket": "disk full", "severity": "high"}

    assert client.get(f"/api/executions/{execution_id}").status_code == 404
    assert client.get("/api/health").json()["active_sessions"] == 0

"""Unit tests for JSON-file definition storage."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from workflows_mcp.engine.definitions.models import WorkflowDefinition
from workflows_mcp.engine.definitions.storage import WorkflowFilter, WorkflowSort, WorkflowStorage
from workflows_mcp.engine.errors import NotFound


def _stored(
    build_definition: Callable[..., WorkflowDefinition],
    draft: dict[str, Any],
    *,
    workflow_id: str,
    name: str,
    created_at: str = "2026-01-01T00:00:00+00:00",
    times_run: int = 0,
    **overrides: Any,
) -> WorkflowDefinition:
    return build_definition(
        draft,
        id=workflow_id,
        name=name,
        metadata={"created_at": created_at, "updated_at": created_at, "times_run": times_run},
        **overrides,
    )


def test_save_writes_current_and_version_snapshot(
    storage: WorkflowStorage,
    workflows_dir: Path,
    build_definition: Callable[..., WorkflowDefinition],
    sequential_workflow: dict[str, Any],
) -> None:
    workflow = _stored(build_definition, sequential_workflow, workflow_id="wf-a", name="A")

    storage.save(workflow)

    current = json.loads((workflows_dir / "wf-a.json").read_text(encoding="utf-8"))
    assert current["name"] == "A"
    assert (workflows_dir / "versions" / "wf-a" / "1.0.0.json").exists()
    assert storage.get("wf-a") == workflow
    assert storage.exists("wf-a")
    assert storage.get("missing") is None


def test_invalid_files_are_skipped(
    storage: WorkflowStorage,
    workflows_dir: Path,
    build_definition: Callable[..., WorkflowDefinition],
    sequential_workflow: dict[str, Any],
) -> None:
    storage.save(_stored(build_definition, sequential_workflow, workflow_id="wf-a", name="A"))
    (workflows_dir / "broken.json").write_text("{not json", encoding="utf-8")
    (workflows_dir / "wrong.json").write_text('{"name": "x"}', encoding="utf-8")

    assert [w.id for w in storage.list()] == ["wf-a"]
    assert storage.get("broken") is None


def test_filter_and_sort(
    storage: WorkflowStorage,
    build_definition: Callable[..., WorkflowDefinition],
    sequential_workflow: dict[str, Any],
    branching_workflow: dict[str, Any],
) -> None:
    storage.save(
        _stored(
            build_definition,
            sequential_workflow,
            workflow_id="wf-a",
            name="Review pull request",
            created_at="2026-01-01T00:00:00+00:00",
            times_run=5,
        )
    )
    storage.save(
        _stored(
            build_definition,
            branching_workflow,
            workflow_id="wf-b",
            name="Triage tickets",
            created_at="2026-03-01T00:00:00+00:00",
            times_run=2,
        )
    )

    by_tag = storage.list(WorkflowFilter(tags=["support", "other"]))
    assert [w.id for w in by_tag] == ["wf-b"]

    by_name = storage.list(WorkflowFilter(name_contains="REVIEW"))
    assert [w.id for w in by_name] == ["wf-a"]

    recent = storage.list(WorkflowFilter(created_after="2026-02-01T00:00:00Z"))
    assert [w.id for w in recent] == ["wf-b"]

    most_run = storage.list(sort=WorkflowSort(field="times_run", order="desc"))
    assert [w.id for w in most_run] == ["wf-a", "wf-b"]

    by_name_desc = storage.list(sort=WorkflowSort(field="name", order="desc"))
    assert [w.name for w in by_name_desc] == ["Triage tickets", "Review pull request"]


def test_soft_delete_keeps_file(
    storage: WorkflowStorage,
    build_definition: Callable[..., WorkflowDefinition],
    sequential_workflow: dict[str, Any],
) -> None:
    storage.save(_stored(build_definition, sequential_workflow, workflow_id="wf-a", name="A"))

    assert storage.delete("wf-a") is True
    assert storage.delete("missing") is False

    deleted = storage.get("wf-a")
    assert deleted is not None and deleted.is_deleted
    assert storage.list(WorkflowFilter(is_deleted=False)) == []
    assert [w.id for w in storage.list(WorkflowFilter(is_deleted=True))] == ["wf-a"]


def test_versions_and_rollback(
    storage: WorkflowStorage,
    build_definition: Callable[..., WorkflowDefinition],
    sequential_workflow: dict[str, Any],
) -> None:
    first = _stored(build_definition, sequential_workflow, workflow_id="wf-a", name="First")
    storage.save(first)
    for version, name in (("1.0.10", "Tenth"), ("1.0.2", "Second")):
        storage.save(first.model_copy(update={"version": version, "name": name}))
    storage.update_metadata("wf-a", times_run=9)
    storage.delete("wf-a")

    assert storage.list_versions("wf-a") == ["1.0.0", "1.0.2", "1.0.10"]
    assert storage.get_version("wf-a", "1.0.2") is not None
    assert storage.get_version("wf-a", "9.9.9") is None

    restored = storage.rollback("wf-a", "1.0.0")

    assert restored is not None
    assert restored.name == "First"
    assert restored.version == "1.0.0"
    assert restored.is_deleted is False
    assert restored.metadata is not None and restored.metadata.times_run == 9
    assert storage.get("wf-a") == restored
    assert storage.rollback("wf-a", "9.9.9") is None


def test_update_metadata_leaves_snapshots_alone(
    storage: WorkflowStorage,
    build_definition: Callable[..., WorkflowDefinition],
    sequential_workflow: dict[str, Any],
) -> None:
    storage.save(_stored(build_definition, sequential_workflow, workflow_id="wf-a", name="A"))

    metadata = storage.update_metadata("wf-a", times_run=3, last_run_at="2026-05-01T00:00:00+00:00")

    assert metadata is not None and metadata.times_run == 3
    snapshot = storage.get_version("wf-a", "1.0.0")
    assert snapshot is not None and snapshot.metadata is not None
    assert snapshot.metadata.times_run == 0
    assert storage.update_metadata("missing", times_run=1) is None


def test_generate_id_is_unique(storage: WorkflowStorage) -> None:
    assert storage.generate_id() != storage.generate_id()


def test_path_like_ids_and_versions_are_not_found(
    storage: WorkflowStorage,
    build_definition: Callable[..., WorkflowDefinition],
    sequential_workflow: dict[str, Any],
) -> None:
    storage.save(_stored(build_definition, sequential_workflow, workflow_id="wf-a", name="A"))

    for workflow_id in ("../wf-a", "a/b", "..", ""):
        with pytest.raises(NotFound):
            storage.get(workflow_id)
        with pytest.raises(NotFound):
            storage.delete(workflow_id)
    for version in ("../../wf-a", "1.0", "1.0.0/..", "١.0.0"):
        with pytest.raises(NotFound):
            storage.get_version("wf-a", version)
        with pytest.raises(NotFound):
            storage.rollback("wf-a", version)


def test_run_stats_accumulate_from_the_stored_file(
    storage: WorkflowStorage,
    build_definition: Callable[..., WorkflowDefinition],
    sequential_workflow: dict[str, Any],
) -> None:
    storage.save(_stored(build_definition, sequential_workflow, workflow_id="wf-a", name="A"))

    storage.record_run_started("wf-a", "2026-05-01T00:00:00+00:00")
    storage.record_run_duration("wf-a", 100.0)
    storage.record_run_started("wf-a", "2026-05-02T00:00:00+00:00")
    metadata = storage.record_run_duration("wf-a", 300.0)

    assert metadata is not None
    assert metadata.times_run == 2
    assert metadata.last_run_at == "2026-05-02T00:00:00+00:00"
    assert metadata.average_duration_ms == 200.0
    assert storage.record_run_started("missing", "2026-05-01T00:00:00+00:00") is None

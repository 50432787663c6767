"""JSON-file backed store for workflow definitions.

Layout under the root directory:
- `<id>.json`                    the current definition
- `versions/<id>/<version>.json` one snapshot per saved version

Every save also writes the version snapshot, which is what rollback restores.
"""

from __future__ import annotations

import json
import logging
import re
import threading
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ValidationError

from workflows_mcp.engine.errors import NotFound

from .models import WorkflowDefinition, WorkflowMetadata

logger = logging.getLogger(__name__)

WORKFLOW_ID = re.compile(r"[A-Za-z0-9_-]+")
VERSION = re.compile(r"\d+\.\d+\.\d+", re.ASCII)


def utc_iso_now() -> str:
    return datetime.now(tz=UTC).isoformat()


def _parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def _version_key(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in version.split("."))


class WorkflowFilter(BaseModel):
    tags: list[str] | None = None
    name_contains: str | None = None
    created_after: str | None = None
    created_before: str | None = None
    min_success_rate: float | None = None
    is_deleted: bool | None = None

    def matches(self, workflow: WorkflowDefinition) -> bool:
        if self.is_deleted is not None and workflow.is_deleted != self.is_deleted:
            return False
        if self.tags and not any(tag in workflow.tags for tag in self.tags):
            return False
        if self.name_contains and self.name_contains.lower() not in workflow.name.lower():
            return False

        metadata = workflow.metadata
        if metadata is not None:
            created = _parse_iso(metadata.created_at)
            if self.created_after and created < _parse_iso(self.created_after):
                return False
            if self.created_before and created > _parse_iso(self.created_before):
                return False
            if (
                self.min_success_rate is not None
                and (metadata.success_rate or 0) < self.min_success_rate
            ):
                return False
        return True


SortField = Literal["name", "created_at", "updated_at", "times_run", "success_rate"]


class WorkflowSort(BaseModel):
    field: SortField
    order: Literal["asc", "desc"] = "asc"

    def key(self, workflow: WorkflowDefinition) -> Any:
        if self.field == "name":
            return workflow.name
        metadata = workflow.metadata
        if self.field in ("created_at", "updated_at"):
            return getattr(metadata, self.field, "") if metadata else ""
        if self.field == "times_run":
            return metadata.times_run if metadata else 0
        return (metadata.success_rate or 0) if metadata else 0


class WorkflowStorage:
    """Definitions on disk. Sessions never read from here after they start."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def initialize(self) -> None:
        self._root.mkdir(parents=True, exist_ok=True)

    # Ids and versions become path components; anything else must never reach the filesystem.
    def _path(self, workflow_id: str) -> Path:
        if not WORKFLOW_ID.fullmatch(workflow_id):
            raise NotFound(f"Workflow not found: {workflow_id}")
        return self._root / f"{workflow_id}.json"

    def _version_dir(self, workflow_id: str) -> Path:
        if not WORKFLOW_ID.fullmatch(workflow_id):
            raise NotFound(f"Workflow not found: {workflow_id}")
        return self._root / "versions" / workflow_id

    def _version_path(self, workflow_id: str, version: str) -> Path:
        if not VERSION.fullmatch(version):
            raise NotFound(f"Version {version} not found for workflow {workflow_id}")
        return self._version_dir(workflow_id) / f"{version}.json"

    def _write(self, path: Path, workflow: WorkflowDefinition) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(workflow.to_json(), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )

    def _read(self, path: Path) -> WorkflowDefinition | None:
        if not path.exists():
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return WorkflowDefinition.model_validate(raw)
        except (json.JSONDecodeError, ValidationError):
            logger.warning(
                "Workflow file is not a valid definition; skipping",
                extra={"path": str(path)},
            )
            return None

    def _save_unlocked(self, workflow: WorkflowDefinition) -> None:
        self._write(self._path(workflow.id), workflow)
        self._write(self._version_path(workflow.id, workflow.version), workflow)

    def save(self, workflow: WorkflowDefinition) -> None:
        with self._lock:
            self._save_unlocked(workflow)
        logger.info(
            "Workflow saved",
            extra={"workflow_id": workflow.id, "version": workflow.version},
        )

    def get(self, workflow_id: str) -> WorkflowDefinition | None:
        with self._lock:
            return self._read(self._path(workflow_id))

    def exists(self, workflow_id: str) -> bool:
        return self._path(workflow_id).exists()

    def generate_id(self) -> str:
        while True:
            workflow_id = str(uuid.uuid4())
            if not self.exists(workflow_id):
                return workflow_id

    def list(
        self, filter: WorkflowFilter | None = None, sort: WorkflowSort | None = None
    ) -> list[WorkflowDefinition]:
        if not self._root.exists():
            return []

        with self._lock:
            workflows: list[WorkflowDefinition] = []
            for path in sorted(self._root.glob("*.json")):
                workflow = self._read(path)
                if workflow is None:
                    continue
                if filter is not None and not filter.matches(workflow):
                    continue
                workflows.append(workflow)

        if sort is not None:
            workflows.sort(key=sort.key, reverse=sort.order == "desc")
        return workflows

    def delete(self, workflow_id: str) -> bool:
        """Soft delete: the definition stays on disk with `is_deleted` set."""

        with self._lock:
            workflow = self._read(self._path(workflow_id))
            if workflow is None:
                return False
            update: dict[str, Any] = {"is_deleted": True}
            if workflow.metadata is not None:
                update["metadata"] = workflow.metadata.model_copy(
                    update={"updated_at": utc_iso_now()}
                )
            self._write(self._path(workflow_id), workflow.model_copy(update=update))
        logger.info("Workflow soft-deleted", extra={"workflow_id": workflow_id})
        return True

    def _merge_metadata_unlocked(
        self,
        workflow_id: str,
        updates: Callable[[WorkflowMetadata], dict[str, object]],
    ) -> WorkflowMetadata | None:
        workflow = self._read(self._path(workflow_id))
        if workflow is None:
            return None
        now = utc_iso_now()
        current = workflow.metadata or WorkflowMetadata(created_at=now, updated_at=now)
        metadata = WorkflowMetadata.model_validate(
            {**current.model_dump(), **updates(current), "updated_at": now}
        )
        self._write(self._path(workflow_id), workflow.model_copy(update={"metadata": metadata}))
        return metadata

    def update_metadata(self, workflow_id: str, **updates: object) -> WorkflowMetadata | None:
        """Merge run statistics into the current definition only; snapshots are untouched."""

        with self._lock:
            return self._merge_metadata_unlocked(workflow_id, lambda _current: dict(updates))

    def record_run_started(self, workflow_id: str, started_at: str) -> WorkflowMetadata | None:
        """Increment `times_run` against the file as it is now, not a copy read earlier."""

        with self._lock:
            return self._merge_metadata_unlocked(
                workflow_id,
                lambda current: {"times_run": current.times_run + 1, "last_run_at": started_at},
            )

    def record_run_duration(self, workflow_id: str, duration_ms: float) -> WorkflowMetadata | None:
        """Fold one completed run into the running mean `average_duration_ms`."""

        def _mean(current: WorkflowMetadata) -> dict[str, object]:
            runs = max(current.times_run, 1)
            previous = current.average_duration_ms
            if previous is None:
                return {"average_duration_ms": duration_ms}
            return {"average_duration_ms": previous + (duration_ms - previous) / runs}

        with self._lock:
            return self._merge_metadata_unlocked(workflow_id, _mean)

    def list_versions(self, workflow_id: str) -> list[str]:
        version_dir = self._version_dir(workflow_id)
        if not version_dir.exists():
            return []
        versions = [p.stem for p in version_dir.glob("*.json")]
        return sorted(versions, key=_version_key)

    def get_version(self, workflow_id: str, version: str) -> WorkflowDefinition | None:
        with self._lock:
            return self._read(self._version_path(workflow_id, version))

    def rollback(self, workflow_id: str, version: str) -> WorkflowDefinition | None:
        """Make a stored snapshot the current definition.

        The current metadata counters are kept; only `updated_at` moves.
        """

        with self._lock:
            current = self._read(self._path(workflow_id))
            target = self._read(self._version_path(workflow_id, version))
            if current is None or target is None:
                return None
            metadata = current.metadata or target.metadata
            if metadata is not None:
                metadata = metadata.model_copy(update={"updated_at": utc_iso_now()})
            restored = target.model_copy(update={"metadata": metadata, "is_deleted": False})
            self._write(self._path(workflow_id), restored)
        logger.info(
            "Workflow rolled back",
            extra={"workflow_id": workflow_id, "version": version},
        )
        return restored

"""FastAPI app factory.

Endpoints are thin wrappers over `WorkflowService`. Failures map to status
codes: unknown ids 404, invalid definitions or inputs 422, rejected branch
targets 409.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Literal

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from workflows_mcp import __version__
from workflows_mcp.engine.definitions.storage import SortField, WorkflowFilter, WorkflowSort
from workflows_mcp.engine.errors import (
    InvalidBranchTarget,
    MalformedDefinition,
    NotFound,
    ValidationFailed,
    WorkflowError,
)
from workflows_mcp.engine.service import StepResponse, WorkflowService, summarize
from workflows_mcp.server.config import ServerSettings
from workflows_mcp.server.models import (
    ApiExecution,
    ApiRollback,
    ApiStep,
    ApiWorkflowSummary,
    ApiWorkflowVersions,
    CreateWorkflowRequest,
    RollbackRequest,
    RunStepRequest,
    StartWorkflowRequest,
    UpdateWorkflowRequest,
)

logger = logging.getLogger(__name__)


def _http_error(error: WorkflowError) -> HTTPException:
    if isinstance(error, NotFound):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (MalformedDefinition, ValidationFailed)):
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, InvalidBranchTarget):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))


def _to_api_step(response: StepResponse) -> ApiStep:
    if response.completed:
        return ApiStep(
            execution_id=response.execution_id,
            status="completed",
            final_variables=response.final_variables,
        )
    return ApiStep(
        execution_id=response.execution_id, status="active", instructions=response.text
    )


def create_app(
    settings: ServerSettings | None = None, service: WorkflowService | None = None
) -> FastAPI:
    settings = settings or ServerSettings()
    service = service or WorkflowService.from_settings(settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        service.shutdown()

    app = FastAPI(
        title="workflows-mcp",
        version=__version__,
        description="REST API over step-by-step workflow execution.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    # Expose settings and the service for request handlers that want to read them.
    app.state.settings = settings
    app.state.service = service

    origins = settings.parsed_cors_origins()
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/api/health")
    def health() -> dict[str, object]:
        return {
            "status": "ok",
            "version": __version__,
            "active_sessions": len(service.sessions),
        }

    @app.post("/api/workflows", response_model=ApiWorkflowSummary, status_code=201)
    def create_workflow(req: CreateWorkflowRequest) -> ApiWorkflowSummary:
        try:
            workflow = service.create_workflow(req.workflow)
        except WorkflowError as e:
            raise _http_error(e) from e
        return ApiWorkflowSummary.model_validate(summarize(workflow))

    @app.get("/api/workflows", response_model=list[ApiWorkflowSummary])
    def list_workflows(
        tags: str | None = None,
        name_contains: str | None = None,
        created_after: str | None = None,
        created_before: str | None = None,
        min_success_rate: float | None = Query(default=None, ge=0, le=1),
        is_deleted: bool | None = None,
        sort: SortField | None = None,
        order: Literal["asc", "desc"] = "asc",
    ) -> list[ApiWorkflowSummary]:
        filter = WorkflowFilter(
            tags=[t.strip() for t in tags.split(",") if t.strip()] if tags else None,
            name_contains=name_contains,
            created_after=created_after,
            created_before=created_before,
            min_success_rate=min_success_rate,
            is_deleted=is_deleted,
        )
        sorting = WorkflowSort(field=sort, order=order) if sort else None
        return [
            ApiWorkflowSummary.model_validate(summarize(w))
            for w in service.list_workflows(filter, sorting)
        ]

    @app.get("/api/workflows/{workflow_id}")
    def get_workflow(workflow_id: str) -> dict[str, Any]:
        try:
            return service.get_workflow(workflow_id).to_json()
        except WorkflowError as e:
            raise _http_error(e) from e

    @app.patch("/api/workflows/{workflow_id}", response_model=ApiWorkflowSummary)
    def update_workflow(workflow_id: str, req: UpdateWorkflowRequest) -> ApiWorkflowSummary:
        try:
            workflow = service.update_workflow(
                workflow_id, req.updates, increment_version=req.increment_version
            )
        except WorkflowError as e:
            raise _http_error(e) from e
        return ApiWorkflowSummary.model_validate(summarize(workflow))

    @app.delete("/api/workflows/{workflow_id}")
    def delete_workflow(workflow_id: str) -> dict[str, object]:
        try:
            service.delete_workflow(workflow_id)
        except WorkflowError as e:
            raise _http_error(e) from e
        return {"success": True, "workflow_id": workflow_id}

    @app.get("/api/workflows/{workflow_id}/versions", response_model=ApiWorkflowVersions)
    def get_versions(workflow_id: str) -> ApiWorkflowVersions:
        try:
            workflow = service.get_workflow(workflow_id)
            versions = service.get_workflow_versions(workflow_id)
        except WorkflowError as e:
            raise _http_error(e) from e
        return ApiWorkflowVersions(
            workflow_id=workflow_id,
            workflow_name=workflow.name,
            current_version=workflow.version,
            available_versions=versions,
        )

    @app.post("/api/workflows/{workflow_id}/rollback", response_model=ApiRollback)
    def rollback(workflow_id: str, req: RollbackRequest) -> ApiRollback:
        try:
            previous = service.get_workflow(workflow_id)
            restored = service.rollback_workflow(workflow_id, req.target_version)
        except WorkflowError as e:
            raise _http_error(e) from e
        return ApiRollback(
            workflow_id=workflow_id,
            previous_version=previous.version,
            rolled_back_to=restored.version,
            reason=req.reason or "No reason provided",
        )

    @app.post("/api/workflows/{workflow_id}/executions", response_model=ApiStep, status_code=201)
    def start_workflow(workflow_id: str, req: StartWorkflowRequest) -> ApiStep:
        try:
            response = service.start_workflow(workflow_id, req.inputs)
        except WorkflowError as e:
            raise _http_error(e) from e
        return _to_api_step(response)

    @app.post("/api/executions/{execution_id}/steps", response_model=ApiStep)
    def run_step(execution_id: str, req: RunStepRequest) -> ApiStep:
        try:
            response = service.run_workflow_step(
                execution_id, req.step_result, next_step_needed=req.next_step_needed
            )
        except WorkflowError as e:
            raise _http_error(e) from e
        return _to_api_step(response)

    @app.get("/api/executions/{execution_id}", response_model=ApiExecution)
    def get_execution(execution_id: str) -> ApiExecution:
        try:
            session = service.get_execution(execution_id)
        except WorkflowError as e:
            raise _http_error(e) from e
        return ApiExecution.model_validate(session.to_json())

    return app


def run_server(host: str | None = None, port: int | None = None) -> None:
    import uvicorn

    settings = ServerSettings()
    logger.info(
        "Starting REST server",
        extra={"host": host or settings.host, "port": port or settings.port},
    )
    uvicorn.run(create_app(settings), host=host or settings.host, port=port or settings.port)

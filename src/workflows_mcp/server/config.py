"""Configuration for the REST server.

Extends the engine settings with bind address and CORS origins. The MCP
server needs nothing beyond the engine settings.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from workflows_mcp.engine.config import WorkflowSettings


class ServerSettings(WorkflowSettings):
    """Settings for the REST API."""

    host: str = Field(default="127.0.0.1", validation_alias="WORKFLOWS_HOST")
    port: int = Field(default=8000, ge=1, le=65535, validation_alias="WORKFLOWS_PORT")

    cors_origins: str = Field(
        default="",
        validation_alias="WORKFLOWS_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins (empty disables CORS).",
    )

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

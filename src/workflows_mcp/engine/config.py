"""Configuration for the workflow engine.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkflowSettings(BaseSettings):
    """Settings shared by the CLI and both servers.

    Environment variables:
    - LOG_LEVEL                (optional)
    - WORKFLOWS_DIR            (optional)
    - WORKFLOWS_PREVIEW_STEPS  (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `WorkflowSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    workflows_dir: Path = Field(
        default=Path("workflows"),
        validation_alias="WORKFLOWS_DIR",
        description="Directory where workflow definitions and their versions are stored",
    )

    preview_steps: int = Field(
        default=3,
        ge=0,
        validation_alias="WORKFLOWS_PREVIEW_STEPS",
        description="How many upcoming steps each instruction previews",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @property
    def versions_dir(self) -> Path:
        """Directory holding one snapshot per saved definition version."""

        return self.workflows_dir / "versions"

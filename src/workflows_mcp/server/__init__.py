"""Transport adapters for workflows-mcp.

This package exposes the workflow service over REST (FastAPI) and MCP (stdio).

Design intent:
- Keep session and definition logic in `workflows_mcp.engine.*`
- Keep transport concerns (routing, CORS, status codes, tool text) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from workflows_mcp.server.app import create_app

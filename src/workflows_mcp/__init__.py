"""workflows-mcp.

Lets an external agent execute a declarative, multi-step workflow one step
at a time:
- workflow definitions stored as versioned JSON files
- a session core that tracks progress, scopes visible variables and renders
  the next instruction
- MCP (stdio) and REST transports plus a small CLI
"""

__version__ = "0.3.0"

from workflows_mcp.engine.config import WorkflowSettings

__all__ = ["__version__", "WorkflowSettings"]

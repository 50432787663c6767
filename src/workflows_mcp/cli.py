"""Console script entrypoint.

The CLI is implemented in `workflows_mcp.engine.main`.
"""

from __future__ import annotations

from workflows_mcp.engine.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())

"""Step-by-step execution sessions.

This package holds the session core:
- template resolution (`{{name}}` references)
- dependency-scoped variable visibility
- added / modified / unchanged change tracking
- free-text branch target extraction
- the live session registry
- the sequencer that advances a session and renders instructions
"""

from workflows_mcp.engine.session.sequencer import CompletionSummary, StepSequencer
from workflows_mcp.engine.session.store import Session, SessionStatus, SessionStore, StepOutput

__all__ = [
    "CompletionSummary",
    "Session",
    "SessionStatus",
    "SessionStore",
    "StepOutput",
    "StepSequencer",
]

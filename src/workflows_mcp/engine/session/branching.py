"""Extract the step a branch decision points at."""

from __future__ import annotations

import re
from collections.abc import Mapping

from .templates import canonical_json

BRANCH_TARGET = re.compile(r"\bstep\s+(\d+)", re.IGNORECASE | re.ASCII)


def resolve_branch_target(result: object) -> int | None:
    """Return the step id named by a branch result, or None.

    A mapping with an integer `selected_step_id` is taken as-is. Anything else
    is searched for "step <n>" (case-insensitive), e.g. "Branching to step 8".
    Whether the id exists is the caller's concern.
    """

    if isinstance(result, Mapping):
        selected = result.get("selected_step_id")
        if isinstance(selected, int) and not isinstance(selected, bool):
            return selected

    text = result if isinstance(result, str) else canonical_json(result)
    match = BRANCH_TARGET.search(text)
    if match is None:
        return None
    return int(match.group(1))

"""`{{name}}` template substitution over strings, sequences and mappings."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

TEMPLATE_TOKEN = re.compile(r"\{\{(\w+)\}\}", re.ASCII)


def canonical_json(value: object) -> str:
    """Compact JSON with sorted object keys. Array order is preserved."""

    return json.dumps(
        value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str
    )


def resolve_string(template: str, variables: Mapping[str, Any]) -> str:
    """Replace every known `{{name}}` token in one pass.

    Unknown names are left untouched; substituted text is never re-scanned.
    """

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        value = variables[name]
        return value if isinstance(value, str) else canonical_json(value)

    return TEMPLATE_TOKEN.sub(_substitute, template)


def resolve_templates(value: Any, variables: Mapping[str, Any]) -> Any:
    if isinstance(value, str):
        return resolve_string(value, variables)
    if isinstance(value, Mapping):
        return {key: resolve_templates(item, variables) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_templates(item, variables) for item in value]
    if isinstance(value, tuple):
        return tuple(resolve_templates(item, variables) for item in value)
    return value

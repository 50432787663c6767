"""Added / modified / unchanged classification across one step transition."""

from __future__ import annotations

from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from typing import Any

from .templates import canonical_json


@dataclass(frozen=True, slots=True)
class VariableChanges:
    added: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.modified)

    def restricted_to(self, names: Collection[str]) -> VariableChanges:
        """Drop every name the step cannot see."""

        return VariableChanges(
            added=[n for n in self.added if n in names],
            modified=[n for n in self.modified if n in names],
            unchanged=[n for n in self.unchanged if n in names],
        )


def diff_variables(current: Mapping[str, Any], previous: Mapping[str, Any]) -> VariableChanges:
    added: list[str] = []
    modified: list[str] = []
    unchanged: list[str] = []

    for name, value in current.items():
        if name not in previous:
            added.append(name)
        elif canonical_json(value) != canonical_json(previous[name]):
            modified.append(name)
        else:
            unchanged.append(name)

    return VariableChanges(added=added, modified=modified, unchanged=unchanged)

"""Unit tests for added / modified / unchanged classification."""

from __future__ import annotations

from workflows_mcp.engine.session.changes import VariableChanges, diff_variables


def test_classification_is_exhaustive_and_disjoint() -> None:
    previous = {"a": 1, "b": [1, 2], "c": {"x": 1, "y": 2}}
    current = {"a": 1, "b": [2, 1], "c": {"y": 2, "x": 1}, "d": "new"}

    changes = diff_variables(current, previous)

    assert changes.added == ["d"]
    assert changes.modified == ["b"]
    assert changes.unchanged == ["a", "c"]
    names = changes.added + changes.modified + changes.unchanged
    assert sorted(names) == sorted(current)
    assert len(names) == len(set(names))


def test_restricted_to_hides_invisible_changes() -> None:
    changes = VariableChanges(added=["secret", "x"], modified=["y"], unchanged=["z"])

    visible = changes.restricted_to({"x", "z"})

    assert visible.added == ["x"]
    assert visible.modified == []
    assert visible.unchanged == ["z"]
    assert visible.has_changes


def test_has_changes_ignores_unchanged() -> None:
    assert not diff_variables({"a": 1}, {"a": 1}).has_changes

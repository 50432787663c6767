"""Unit tests for the command line interface."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from workflows_mcp.engine.main import main


@pytest.fixture(autouse=True)
def _env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("WORKFLOWS_DIR", str(tmp_path / "workflows"))
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _write(path: Path, payload: dict[str, Any]) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def _create(tmp_path: Path, draft: dict[str, Any], capsys: pytest.CaptureFixture[str]) -> str:
    assert main(["create", str(_write(tmp_path / "wf.json", draft))]) == 0
    out = capsys.readouterr().out
    return out.strip().rsplit(": ", 1)[1]


def test_validate(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], sequential_workflow: dict[str, Any]
) -> None:
    draft = {"id": "local", "version": "1.0.0", **sequential_workflow}

    assert main(["validate", str(_write(tmp_path / "ok.json", draft))]) == 0
    assert "Valid workflow: Review pull request (3 steps)" in capsys.readouterr().out

    draft["steps"][1]["id"] = 7
    assert main(["validate", str(_write(tmp_path / "bad.json", draft))]) == 4
    assert "Validation failed" in capsys.readouterr().err


def test_create_list_show_versions(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], sequential_workflow: dict[str, Any]
) -> None:
    workflow_id = _create(tmp_path, sequential_workflow, capsys)

    assert main(["list", "--tags", "review"]) == 0
    listed = json.loads(capsys.readouterr().out)
    assert [w["id"] for w in listed] == [workflow_id]

    assert main(["show", workflow_id]) == 0
    assert json.loads(capsys.readouterr().out)["id"] == workflow_id

    assert main(["versions", workflow_id]) == 0
    assert capsys.readouterr().out.split() == ["1.0.0"]

    assert main(["rollback", workflow_id, "1.0.0"]) == 0
    assert "to v1.0.0" in capsys.readouterr().out

    assert main(["delete", workflow_id]) == 0
    capsys.readouterr()
    assert main(["list"]) == 0
    assert json.loads(capsys.readouterr().out) == []


def test_unknown_workflow_exit_code(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["show", "nope"]) == 3
    assert "Workflow not found: nope" in capsys.readouterr().err


def test_interactive_run(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
    sequential_workflow: dict[str, Any],
) -> None:
    workflow_id = _create(tmp_path, sequential_workflow, capsys)
    answers = iter(["first summary", '["a", "b"]', "q"])
    monkeypatch.setattr("builtins.input", lambda _prompt="": next(answers))

    assert main(["run", workflow_id, "--input", "x=3"]) == 0

    out = capsys.readouterr().out
    assert "Step 1 of 3" in out
    assert "Step 3 of 3" in out
    completion = json.loads(out[out.index('{\n  "status"') :])
    assert completion["final_variables"] == {
        "x": 3,
        "summary": "first summary",
        "findings": ["a", "b"],
    }


def test_interactive_run_stops_on_eof(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
    sequential_workflow: dict[str, Any],
) -> None:
    workflow_id = _create(tmp_path, sequential_workflow, capsys)

    def _eof(_prompt: str = "") -> str:
        raise EOFError

    monkeypatch.setattr("builtins.input", _eof)

    assert main(["run", workflow_id, "--input", "x=3"]) == 0
    assert '"status": "completed"' in capsys.readouterr().out


def test_bad_input_value_is_reported(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], sequential_workflow: dict[str, Any]
) -> None:
    workflow_id = _create(tmp_path, sequential_workflow, capsys)

    assert main(["run", workflow_id, "--input", "x=three"]) == 4
    assert 'expected type number but got string' in capsys.readouterr().err

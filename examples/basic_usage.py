#!/usr/bin/env python3
"""Programmatic workflow run example.

This demonstrates driving a session through the service directly:

* load settings from `.env`
* store the definition in `examples/triage.json`
* start a run and answer each step with canned results

The branch step is answered with "Branching to step 5", so steps 3 and 4
are skipped.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Sequence

from workflows_mcp.engine.config import WorkflowSettings
from workflows_mcp.engine.logging import configure_logging
from workflows_mcp.engine.service import WorkflowService

DEFINITION = Path(__file__).with_name("triage.json")

CANNED_RESULTS = ["high", "Severity is high. Branching to step 5", "paged", "closed"]


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the triage workflow (programmatic example).")
    parser.add_argument("--ticket", default="Disk full on db-1", help="Ticket text to triage")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = WorkflowSettings()
    configure_logging(settings.log_level)

    service = WorkflowService.from_settings(settings)
    workflow = service.create_workflow(json.loads(DEFINITION.read_text(encoding="utf-8")))
    print(f"Stored workflow {workflow.id} in {settings.workflows_dir}")

    response = service.start_workflow(workflow.id, {"ticket": args.ticket})
    results = iter(CANNED_RESULTS)
    while not response.completed:
        print(response.text)
        response = service.run_workflow_step(response.execution_id, next(results, None))

    print(response.text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

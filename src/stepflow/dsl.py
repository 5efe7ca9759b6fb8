# src/stepflow/dsl.py
from __future__ import annotations

from typing import Dict, List, Optional

from .schema import SUPPORTED_VERSION, StepDocument, WorkflowDocument


def step(name: str, command: str, *, needs: Optional[List[str]] = None) -> StepDocument:
    """Create a step running `command` once every step in `needs` succeeded."""
    return StepDocument(name=name, command=command, depends_on=list(needs or []))


def wf(
    *steps: StepDocument,
    version: str = SUPPORTED_VERSION,
    metadata: Optional[Dict[str, str]] = None,
) -> WorkflowDocument:
    """
    Workflow definition helper. Use this name so you can define your own
    def workflow(): return wf(step(...), step(...)).

    Users can write:
        from stepflow.dsl import wf, step

        def workflow():
            return wf(
                step("build", "make build"),
                step("test", "make test", needs=["build"]),
            )

    Or use WORKFLOW directly:
        WORKFLOW = wf(step(...), step(...))
    """
    return WorkflowDocument(version=version, metadata=dict(metadata or {}), steps=list(steps))

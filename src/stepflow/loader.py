# loader.py
from __future__ import annotations

import runpy
from pathlib import Path
from typing import IO, Any, Dict, List, Union

import yaml

from .errors import WorkflowValidationError
from .model import Step
from .schema import WorkflowDocument, parse_document, validate_document
from .workflow import Workflow

YAML_SUFFIXES = {".yml", ".yaml"}


def build_workflow(doc: WorkflowDocument) -> Workflow:
    """Resolve dependency names to indices and build a fresh Workflow."""
    validate_document(doc)

    index: Dict[str, int] = {s.name: i for i, s in enumerate(doc.steps)}
    steps: List[Step] = []
    for s in doc.steps:
        # de-duplicate while keeping declaration order
        needs = tuple(dict.fromkeys(s.depends_on))
        steps.append(
            Step(
                name=s.name,
                command=s.command,
                depends_on=tuple(index[d] for d in needs),
                needs=needs,
            )
        )
    return Workflow(version=doc.version, metadata=doc.metadata, steps=steps)


def load_workflow_from_mapping(data: Any) -> Workflow:
    return build_workflow(parse_document(data))


def load_workflow_from_bytes(buff: Union[bytes, str]) -> Workflow:
    try:
        data = yaml.safe_load(buff)
    except yaml.YAMLError as e:
        raise WorkflowValidationError([f"could not parse YAML: {e}"]) from e
    return load_workflow_from_mapping(data)


def load_workflow_from_reader(reader: IO) -> Workflow:
    return load_workflow_from_bytes(reader.read())


def _document_from_python(wf_path: Path) -> Any:
    """
    Execute a python workflow file.

    The file must define either:
      - workflow() -> WorkflowDocument | dict
      - WORKFLOW = WorkflowDocument | dict
    """
    module_name = f"stepflow_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        try:
            return globals_dict["workflow"]()
        except TypeError as e:
            if "positional argument" in str(e):
                raise TypeError(
                    "Your workflow() is being called with arguments (name collision with the helper). "
                    "Use the 'wf' helper instead: `from stepflow.dsl import wf, step` then "
                    "`def workflow(): return wf(step(...), step(...))`"
                ) from e
            raise
    if "WORKFLOW" in globals_dict:
        return globals_dict["WORKFLOW"]

    raise WorkflowValidationError(
        [f"{wf_path.name} must define workflow() -> WorkflowDocument or WORKFLOW = ..."]
    )


def load_document(path: str | Path) -> WorkflowDocument:
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")

    if wf_path.suffix in YAML_SUFFIXES:
        try:
            data = yaml.safe_load(wf_path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise WorkflowValidationError([f"could not parse YAML in {wf_path.name}: {e}"]) from e
    elif wf_path.suffix == ".py":
        data = _document_from_python(wf_path)
    else:
        raise ValueError(f"Workflow must be a .yml, .yaml or .py file, got: {wf_path.name}")

    return parse_document(data)


def load_workflow(path: str | Path) -> Workflow:
    """
    Load a workflow from a YAML document or a python file.

    Every call returns an independent Workflow; nothing is cached.
    """
    return build_workflow(load_document(path))

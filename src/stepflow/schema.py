# schema.py
from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import WorkflowValidationError

SUPPORTED_VERSION = "1"


class StepDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    command: str
    depends_on: List[str] = Field(default_factory=list)


class WorkflowDocument(BaseModel):
    """The serialized form of a workflow: version, metadata, ordered steps."""

    model_config = ConfigDict(extra="forbid")

    version: str
    metadata: Dict[str, str] = Field(default_factory=dict)
    steps: List[StepDocument] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def _scalar_version(cls, v: Any) -> Any:
        # YAML reads `version: 1` as an int
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


def _format_pydantic_error(err: Mapping[str, Any]) -> str:
    loc = ".".join(str(p) for p in err.get("loc", ())) or "<document>"
    return f"{loc}: {err.get('msg', 'invalid value')}"


def parse_document(data: Any) -> WorkflowDocument:
    """Turn already-deserialized data into a WorkflowDocument (shape only)."""
    if isinstance(data, WorkflowDocument):
        return data
    if not isinstance(data, Mapping):
        raise WorkflowValidationError(
            [f"workflow document must be a mapping, got {type(data).__name__}"]
        )
    try:
        return WorkflowDocument.model_validate(dict(data))
    except ValidationError as e:
        raise WorkflowValidationError([_format_pydantic_error(err) for err in e.errors()]) from e


def find_problems(doc: WorkflowDocument) -> List[str]:
    """
    Every constraint the document violates, in document order.

    Cycles are not checked here: the scheduler terminates on them, leaving the
    steps involved idle.
    """
    problems: List[str] = []

    if doc.version != SUPPORTED_VERSION:
        problems.append(
            f"unsupported version {doc.version!r} (expected {SUPPORTED_VERSION!r})"
        )

    counts = Counter(s.name for s in doc.steps)
    for name in sorted(n for n, c in counts.items() if c > 1):
        problems.append(f"duplicate step name {name!r} ({counts[name]} definitions)")

    known = set(counts)
    for s in doc.steps:
        if not s.name.strip():
            problems.append("step with an empty name")
        if not s.command.strip():
            problems.append(f"step {s.name!r} has an empty command")
        for dep in s.depends_on:
            if dep == s.name:
                problems.append(f"step {s.name!r} depends on itself")
            elif dep not in known:
                problems.append(f"step {s.name!r} depends on unknown step {dep!r}")

    return problems


def validate_document(doc: WorkflowDocument) -> WorkflowDocument:
    problems = find_problems(doc)
    if problems:
        raise WorkflowValidationError(problems)
    return doc

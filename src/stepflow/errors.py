# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List


class StepflowError(Exception):
    """Base class for every error raised by stepflow."""


class WorkflowError(StepflowError):
    """A workflow object was used in a way it does not support."""


class ConfigError(StepflowError):
    """Run configuration is invalid (bad concurrency, timeout, ...)."""


class IllegalTransitionError(ValueError):
    pass


class WorkflowValidationError(StepflowError):
    """
    Raised when a workflow document cannot be loaded.

    Carries every problem found, not just the first one, so a user can fix
    the whole document in one pass.
    """

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__(self.__str__())

    def __str__(self) -> str:
        if len(self.problems) == 1:
            return f"invalid workflow: {self.problems[0]}"
        lines = [f"invalid workflow ({len(self.problems)} problems):"]
        lines.extend(f"  - {p}" for p in self.problems)
        return "\n".join(lines)


# ----------------------------------------------------------------------
# Step execution errors
# ----------------------------------------------------------------------

@dataclass(eq=False)
class StepError(StepflowError):
    """
    Structured step error with enough context for:
      - clean CLI output
      - event payloads
      - debugging without full tracebacks
    """
    kind: str
    step: str
    message: str
    details: Dict[str, object] = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}", f"step={self.step}"]
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


class LaunchError(StepError):
    """The process could not be started (binary missing, not executable, ...)."""


class WaitError(StepError):
    """Monitoring a started process failed for a reason other than its exit status."""


class StepTimeout(StepError):
    """The step ran past its deadline and was killed."""


# ----------------------------------------------------------------------
# Admission errors
# ----------------------------------------------------------------------

class AdmissionError(StepflowError):
    """Capacity could not be acquired from the admission gate."""


class Cancelled(AdmissionError):
    """The caller's cancellation signal fired while waiting for capacity."""


class AdmissionTimeout(AdmissionError):
    """No capacity became available before the admission deadline."""

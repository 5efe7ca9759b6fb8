# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, ContextManager, Dict, Sequence, Set, Tuple

from .errors import IllegalTransitionError

if TYPE_CHECKING:
    from .process import ProcessRunner, RunResult


class StepStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


ALLOWED_TRANSITIONS: Dict[StepStatus, Set[StepStatus]] = {
    StepStatus.IDLE: {StepStatus.PENDING},
    StepStatus.PENDING: {StepStatus.RUNNING},
    StepStatus.RUNNING: {StepStatus.SUCCESS, StepStatus.FAILED},
    StepStatus.SUCCESS: set(),
    StepStatus.FAILED: set(),
}

DONE = frozenset({StepStatus.SUCCESS, StepStatus.FAILED})


@dataclass
class Step:
    """
    A single command inside a workflow, plus its place in the dependency graph.

    `depends_on` holds indices into the owning workflow's step list; `needs`
    keeps the names as they were declared. Status only moves forward:
    idle -> pending -> running -> success|failed. A step never runs twice.
    """
    name: str
    command: str
    depends_on: Tuple[int, ...] = ()
    needs: Tuple[str, ...] = ()
    status: StepStatus = field(default=StepStatus.IDLE)

    def transition(self, to: StepStatus) -> None:
        allowed = ALLOWED_TRANSITIONS.get(self.status, set())
        if to not in allowed:
            raise IllegalTransitionError(
                f"Illegal transition for step '{self.name}': {self.status.value} -> {to.value}"
            )
        self.status = to

    def is_done(self) -> bool:
        return self.status in DONE

    def should_run(self, steps: Sequence[Step]) -> bool:
        """True when the step is idle and every dependency has succeeded."""
        if self.status is not StepStatus.IDLE:
            return False
        return all(steps[i].status is StepStatus.SUCCESS for i in self.depends_on)

    def is_blocked(self, steps: Sequence[Step]) -> bool:
        """
        True for an idle step that can no longer become runnable because a
        dependency (direct or through idle ancestors) has failed.
        """
        if self.status is not StepStatus.IDLE:
            return False

        seen: Set[int] = set()
        stack = list(self.depends_on)
        while stack:
            i = stack.pop()
            if i in seen:
                continue
            seen.add(i)
            dep = steps[i]
            if dep.status is StepStatus.FAILED:
                return True
            if dep.status is StepStatus.IDLE:
                stack.extend(dep.depends_on)
        return False

    def run(self, runner: ProcessRunner, guard: ContextManager) -> RunResult:
        """
        Execute a claimed (pending) step.

        Status changes happen under `guard` (the workflow's lock); the process
        itself runs outside it. Any exception from the runner marks the step
        `failed` and is re-raised for the scheduler to classify, so a step
        never stays `running`.
        """
        with guard:
            self.transition(StepStatus.RUNNING)

        try:
            result = runner.run(self.name, self.command)
        except BaseException:
            with guard:
                self.transition(StepStatus.FAILED)
            raise

        with guard:
            self.transition(StepStatus.SUCCESS if result.ok else StepStatus.FAILED)
        return result

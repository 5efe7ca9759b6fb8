# workflow.py
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Mapping, Optional

from .errors import (
    AdmissionError,
    ConfigError,
    LaunchError,
    StepError,
    WorkflowError,
)
from .events import Notifier, NullNotifier
from .gate import AdmissionGate
from .model import Step, StepStatus
from .process import ProcessRunner, RunResult
from .schema import StepDocument, WorkflowDocument
from .sink import Sink
from .ui.console import get_console


class Workflow:
    """
    Dependency-aware, concurrency-bounded executor for a list of steps.

    One coordinating thread selects runnable steps and hands them to a thread
    pool; each step's process runs out-of-process. A single condition guards
    the stop flag, every status change and the selection scan, and doubles as
    the wake-up signal when a dispatched step finishes.

    A Workflow runs once. Build a new one (e.g. load the document again) to
    run it again.
    """

    def __init__(self, version: str, metadata: Mapping[str, str], steps: Iterable[Step]):
        self.version = version
        self.metadata: Dict[str, str] = dict(metadata)
        self.steps: List[Step] = list(steps)

        self.results: Dict[str, RunResult] = {}
        self.failures: Dict[str, StepError] = {}

        self._cond = threading.Condition()
        self._stopped = False
        self._in_flight = 0
        self._errors: List[BaseException] = []
        self._ran = False

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def step(self, name: str) -> Step:
        for s in self.steps:
            if s.name == name:
                return s
        raise KeyError(name)

    @property
    def stopped(self) -> bool:
        with self._cond:
            return self._stopped

    def statuses(self) -> Dict[str, StepStatus]:
        with self._cond:
            return {s.name: s.status for s in self.steps}

    def blocked(self) -> List[str]:
        """Idle steps that can never run because something upstream failed."""
        with self._cond:
            view = tuple(self.steps)
            return [s.name for s in self.steps if s.is_blocked(view)]

    def succeeded(self) -> bool:
        with self._cond:
            return all(s.status is StepStatus.SUCCESS for s in self.steps)

    def to_document(self) -> WorkflowDocument:
        return WorkflowDocument(
            version=self.version,
            metadata=dict(self.metadata),
            steps=[
                StepDocument(name=s.name, command=s.command, depends_on=list(s.needs))
                for s in self.steps
            ],
        )

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def stop(self) -> None:
        """Stop dispatching new steps. Running steps are left to finish."""
        with self._cond:
            self._stopped = True
            self._cond.notify_all()

    def _all_done(self) -> bool:
        return all(s.is_done() for s in self.steps)

    def _claim_next(self) -> Optional[Step]:
        # caller holds self._cond
        if self._stopped:
            return None
        view = tuple(self.steps)
        for step in self.steps:
            if step.should_run(view):
                step.transition(StepStatus.PENDING)
                return step
        return None

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(
        self,
        concurrency: int,
        timeout: Optional[float] = None,
        *,
        notifier: Optional[Notifier] = None,
        sink: Optional[Sink] = None,
        cancel: Optional[threading.Event] = None,
        admission_timeout: Optional[float] = None,
        fail_fast: bool = True,
    ) -> Dict[str, StepStatus]:
        """
        Run every step whose dependencies succeed, at most `concurrency` at a time.

        Args:
            concurrency: Maximum number of steps executing at once
            timeout: Per-step deadline in seconds (None for no limit)
            notifier: Receives lifecycle events
            sink: Where child stdout/stderr go (inherited by default)
            cancel: Set it to abort while waiting for capacity
            admission_timeout: Give up waiting for capacity after this long
            fail_fast: Stop dispatching after the first failed step

        Returns:
            Final status of every step, in declaration order.

        Raises:
            WaitError / StepTimeout: a step could not be monitored or ran past
                its deadline (raised after every dispatched step has finished)
            AdmissionError: cancelled or timed out waiting for capacity

        A non-zero exit is not raised: inspect the returned statuses.
        """
        if concurrency < 1:
            raise ConfigError(f"concurrency must be a positive integer, got {concurrency}")

        with self._cond:
            if self._ran:
                raise WorkflowError("workflow has already been run; load it again to re-run")
            self._ran = True

        notifier = notifier or NullNotifier()
        runner = ProcessRunner(notifier=notifier, sink=sink, timeout=timeout)
        gate = AdmissionGate(concurrency)

        notifier.start()
        try:
            # Leaving the block joins every dispatched step.
            with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="stepflow") as pool:
                self._schedule(pool, gate, runner, cancel, admission_timeout, fail_fast)
        finally:
            notifier.stop()

        if self._errors:
            raise self._errors[0]
        return self.statuses()

    def _schedule(
        self,
        pool: ThreadPoolExecutor,
        gate: AdmissionGate,
        runner: ProcessRunner,
        cancel: Optional[threading.Event],
        admission_timeout: Optional[float],
        fail_fast: bool,
    ) -> None:
        console = get_console()

        while True:
            with self._cond:
                if self._stopped:
                    console.print_debug("stop requested, no new steps will be dispatched")
                    return
                if self._all_done():
                    return

            # Admission comes before the claim so a step is never reserved
            # while it waits for capacity.
            try:
                gate.acquire(1, cancel=cancel, timeout=admission_timeout)
            except AdmissionError as e:
                with self._cond:
                    self._errors.append(e)
                    self._stopped = True
                return

            with self._cond:
                step = self._claim_next()
                if step is None:
                    gate.release(1)
                    if self._stopped:
                        continue
                    if self._in_flight == 0:
                        view = tuple(self.steps)
                        waiting = [s.name for s in self.steps if not s.is_done()]
                        console.print_debug(
                            f"nothing runnable and nothing running; leaving {waiting} idle "
                            f"(blocked: {[s.name for s in self.steps if s.is_blocked(view)]})"
                        )
                        return
                    self._cond.wait()
                    continue
                self._in_flight += 1

            console.print_debug(f"dispatching '{step.name}'")
            pool.submit(self._execute, step, runner, gate, fail_fast)

    def _execute(self, step: Step, runner: ProcessRunner, gate: AdmissionGate, fail_fast: bool) -> None:
        console = get_console()
        hard_error: Optional[BaseException] = None
        step_error: Optional[StepError] = None
        result: Optional[RunResult] = None

        try:
            result = step.run(runner, self._cond)
        except LaunchError as e:
            step_error = e
        except StepError as e:
            step_error = e
            hard_error = e
        except Exception as e:
            console.print_exception(e)
            hard_error = e
        finally:
            with self._cond:
                self._in_flight -= 1
                if result is not None:
                    self.results[step.name] = result
                if step_error is not None:
                    self.failures[step.name] = step_error
                if hard_error is not None:
                    self._errors.append(hard_error)

                failed = step.status is StepStatus.FAILED or hard_error is not None
                if hard_error is not None or step_error is not None or (fail_fast and failed):
                    if not self._stopped:
                        console.print_debug(f"'{step.name}' failed, stopping dispatch")
                    self._stopped = True
                self._cond.notify_all()
            # Stop flag is visible before capacity frees up.
            gate.release(1)

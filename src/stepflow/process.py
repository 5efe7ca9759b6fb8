# process.py
from __future__ import annotations

import os
import subprocess
import time
from dataclasses import dataclass
from typing import List, Optional

from .errors import LaunchError, StepTimeout, WaitError
from .events import Event, EventKind, Notifier, NullNotifier
from .sink import Sink
from .ui.console import get_console


TOOL_HINTS = {
    "npm": "Install Node.js (includes npm) or fix PATH.",
    "node": "Install Node.js or fix PATH.",
    "pytest": "Install pytest (e.g., pip install pytest).",
    "ruff": "Install ruff (e.g., pip install ruff).",
    "docker": "Install Docker and ensure the daemon is running.",
    "python3": "Install Python 3 or fix PATH (python3).",
    "make": "Install make (build-essential / Xcode command line tools).",
    "git": "Install Git or fix PATH.",
}


def split_command(command: str) -> List[str]:
    """
    First whitespace-delimited token is the executable, the rest are arguments.

    No shell is involved: quotes, globs and $VARS are passed through verbatim.
    """
    return command.split()


def hint_for(executable: str) -> Optional[str]:
    return TOOL_HINTS.get(os.path.basename(executable))


@dataclass(frozen=True)
class RunResult:
    step: str
    exit_code: int
    duration: float

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


# ----------------------------------------------------------------------
# Runner
# ----------------------------------------------------------------------

class ProcessRunner:
    """
    Runs one step's command as an external process and classifies the outcome.

    Every call emits RunRequested, then RunStarted or RunError, then exactly
    one of RunFail / RunWaitError / RunTimeout / RunSuccess. Non-zero exits are
    returned (RunResult.ok is False); launch, wait and timeout failures raise.
    """

    def __init__(
        self,
        notifier: Optional[Notifier] = None,
        sink: Optional[Sink] = None,
        timeout: Optional[float] = None,
    ):
        self.notifier = notifier or NullNotifier()
        self.sink = sink or Sink()
        self.timeout = timeout

    def _push(self, step: str, kind: EventKind, payload: object = None) -> None:
        try:
            self.notifier.push(Event(step=step, kind=kind, payload=payload))
        except Exception as e:
            get_console().print_warning(f"[{step}] notifier rejected {kind.value}: {e}")

    def run(self, step: str, command: str) -> RunResult:
        self._push(step, EventKind.RUN_REQUESTED)

        started = time.monotonic()
        deadline = None if self.timeout is None else started + self.timeout

        argv = split_command(command)
        if not argv:
            self._push(step, EventKind.RUN_ERROR)
            raise LaunchError(kind="launch", step=step, message="empty command", details={})

        try:
            proc = subprocess.Popen(argv, stdout=self.sink.stdout, stderr=self.sink.stderr)
        except (OSError, ValueError) as e:
            # ValueError: argv Popen refuses outright (e.g. an embedded NUL byte)
            self._push(step, EventKind.RUN_ERROR, str(e))
            details: dict = {"cmd": command}
            hint = hint_for(argv[0])
            if hint:
                details["hint"] = hint
            reason = e.strerror if isinstance(e, OSError) and e.strerror else e
            raise LaunchError(
                kind="launch",
                step=step,
                message=f"could not start '{argv[0]}': {reason}",
                details=details,
            ) from e

        self._push(step, EventKind.RUN_STARTED, proc.pid)
        get_console().print_debug(f"[{step}] pid={proc.pid} argv={argv}")

        timed_out = False
        try:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            returncode = proc.wait(timeout=remaining)
        except subprocess.TimeoutExpired:
            timed_out = True
            proc.kill()
            returncode = proc.wait()
        except OSError as e:
            # Reap if it already exited; a still-running child is left alone.
            proc.poll()
            self._push(step, EventKind.RUN_WAIT_ERROR, str(e))
            raise WaitError(
                kind="wait",
                step=step,
                message=f"waiting for pid {proc.pid} failed: {e}",
                details={"cmd": command},
            ) from e

        duration = time.monotonic() - started

        # Deadline wins over whatever exit status was observed after it.
        if timed_out or (deadline is not None and time.monotonic() > deadline):
            self._push(step, EventKind.RUN_TIMEOUT)
            raise StepTimeout(
                kind="timeout",
                step=step,
                message=f"deadline exceeded after {self.timeout:g}s",
                details={"cmd": command, "exit_code": returncode},
            )

        if returncode != 0:
            self._push(step, EventKind.RUN_FAIL, returncode)
        else:
            self._push(step, EventKind.RUN_SUCCESS)

        return RunResult(step=step, exit_code=returncode, duration=duration)

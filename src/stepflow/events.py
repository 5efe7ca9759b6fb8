# events.py
from __future__ import annotations

import itertools
import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import IO, Any, Dict, List, Optional

from .ui.console import get_console


class EventKind(str, Enum):
    RUN_REQUESTED = "RunRequested"
    RUN_STARTED = "RunStarted"
    RUN_ERROR = "RunError"
    RUN_FAIL = "RunFail"
    RUN_WAIT_ERROR = "RunWaitError"
    RUN_TIMEOUT = "RunTimeout"
    RUN_SUCCESS = "RunSuccess"


TERMINAL_KINDS = frozenset(
    {
        EventKind.RUN_ERROR,
        EventKind.RUN_FAIL,
        EventKind.RUN_WAIT_ERROR,
        EventKind.RUN_TIMEOUT,
        EventKind.RUN_SUCCESS,
    }
)

_seq = itertools.count(1)
_seq_lock = threading.Lock()


def _next_seq() -> int:
    with _seq_lock:
        return next(_seq)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Event:
    """
    A lifecycle occurrence for one step.

    `seq` is assigned at creation and increases across the whole process, so
    sorting by it reproduces emission order even when events from different
    steps interleave.
    """
    step: str
    kind: EventKind
    payload: Any = None
    seq: int = field(default_factory=_next_seq)
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.kind in TERMINAL_KINDS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seq": self.seq,
            "timestamp": self.timestamp.isoformat(),
            "step": self.step,
            "kind": self.kind.value,
            "payload": self.payload,
        }


# ----------------------------------------------------------------------
# Notifiers
# ----------------------------------------------------------------------

class Notifier:
    """
    Receives events from the process runner.

    `push` may raise; the runner reports the failure and carries on, a broken
    notifier never fails a step. `start`/`stop` bracket a workflow run.
    """

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass

    def push(self, event: Event) -> None:
        raise NotImplementedError


class NullNotifier(Notifier):
    def push(self, event: Event) -> None:
        pass


class MemoryNotifier(Notifier):
    """Thread-safe in-memory event log."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: List[Event] = []

    def push(self, event: Event) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[Event]:
        with self._lock:
            return list(self._events)

    def events_for(self, step: str) -> List[Event]:
        return [e for e in self.events if e.step == step]

    def kinds_for(self, step: str) -> List[EventKind]:
        return [e.kind for e in self.events_for(step)]


class JsonLinesNotifier(Notifier):
    """Append one JSON object per event to a file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._fh: Optional[IO[str]] = None

    def start(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("a", encoding="utf-8")

    def stop(self) -> None:
        with self._lock:
            if self._fh is not None:
                self._fh.close()
                self._fh = None

    def push(self, event: Event) -> None:
        with self._lock:
            if self._fh is None:
                raise RuntimeError(f"notifier for {self.path} is not started")
            self._fh.write(json.dumps(event.to_dict(), default=str) + "\n")
            self._fh.flush()


class ConsoleNotifier(Notifier):
    """Print step lifecycle lines through the global console."""

    _LABELS = {
        EventKind.RUN_REQUESTED: "requested",
        EventKind.RUN_STARTED: "started",
        EventKind.RUN_ERROR: "could not start",
        EventKind.RUN_FAIL: "failed",
        EventKind.RUN_WAIT_ERROR: "wait error",
        EventKind.RUN_TIMEOUT: "timed out",
        EventKind.RUN_SUCCESS: "success",
    }

    def push(self, event: Event) -> None:
        console = get_console()
        if event.kind is EventKind.RUN_REQUESTED and not console.debug:
            return
        detail = None
        if event.kind is EventKind.RUN_FAIL:
            detail = f"exit={event.payload}"
        console.print_step_event(event.step, self._LABELS[event.kind], detail)


class FanoutNotifier(Notifier):
    """Forward every event to each wrapped notifier, in order."""

    def __init__(self, *notifiers: Notifier):
        self.notifiers = list(notifiers)

    def start(self) -> None:
        for n in self.notifiers:
            n.start()

    def stop(self) -> None:
        for n in self.notifiers:
            n.stop()

    def push(self, event: Event) -> None:
        for n in self.notifiers:
            n.push(event)

# gate.py
from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from .errors import AdmissionTimeout, Cancelled

# How often a blocked acquire re-checks the cancellation event.
CANCEL_POLL_SECONDS = 0.05


class AdmissionGate:
    """
    Counting admission control: at most `capacity` units held at once.

    acquire() blocks until enough units are free, the caller's cancel event is
    set (Cancelled) or the optional timeout passes (AdmissionTimeout). A failed
    acquire takes nothing. Releasing more than is held is a ValueError.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be a positive integer, got {capacity}")
        self.capacity = capacity
        self._in_use = 0
        self._cond = threading.Condition()

    @property
    def in_use(self) -> int:
        with self._cond:
            return self._in_use

    def _check_n(self, n: int) -> None:
        if n < 1 or n > self.capacity:
            raise ValueError(f"n must be between 1 and {self.capacity}, got {n}")

    def acquire(
        self,
        n: int = 1,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._check_n(n)
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._cond:
            while True:
                if cancel is not None and cancel.is_set():
                    raise Cancelled("cancelled while waiting for admission")
                if self._in_use + n <= self.capacity:
                    self._in_use += n
                    return

                wait_for = None
                if deadline is not None:
                    wait_for = deadline - time.monotonic()
                    if wait_for <= 0:
                        raise AdmissionTimeout(f"no capacity freed within {timeout:g}s")
                if cancel is not None:
                    wait_for = CANCEL_POLL_SECONDS if wait_for is None else min(wait_for, CANCEL_POLL_SECONDS)
                self._cond.wait(wait_for)

    def release(self, n: int = 1) -> None:
        self._check_n(n)
        with self._cond:
            if n > self._in_use:
                raise ValueError(f"release({n}) with only {self._in_use} unit(s) held")
            self._in_use -= n
            self._cond.notify_all()

    @contextmanager
    def slot(
        self,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> Iterator[None]:
        self.acquire(1, cancel=cancel, timeout=timeout)
        try:
            yield
        finally:
            self.release(1)

"""Unit tests for the admission gate."""

from __future__ import annotations

import threading
import time

import pytest

from stepflow.errors import AdmissionTimeout, Cancelled
from stepflow.gate import AdmissionGate


def test_acquire_up_to_capacity() -> None:
    gate = AdmissionGate(2)
    gate.acquire()
    gate.acquire()
    assert gate.in_use == 2

    with pytest.raises(AdmissionTimeout):
        gate.acquire(timeout=0.05)
    assert gate.in_use == 2

    gate.release()
    gate.acquire(timeout=0.05)
    assert gate.in_use == 2


def test_blocked_acquire_wakes_on_release() -> None:
    gate = AdmissionGate(1)
    gate.acquire()
    acquired = threading.Event()

    def worker() -> None:
        gate.acquire()
        acquired.set()

    t = threading.Thread(target=worker)
    t.start()
    assert not acquired.wait(0.1)

    gate.release()
    assert acquired.wait(2)
    t.join(2)
    assert gate.in_use == 1


def test_cancel_already_set_fails_even_with_capacity() -> None:
    gate = AdmissionGate(1)
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(Cancelled):
        gate.acquire(cancel=cancel)
    assert gate.in_use == 0


def test_cancel_while_waiting_takes_nothing() -> None:
    gate = AdmissionGate(1)
    gate.acquire()
    cancel = threading.Event()
    threading.Timer(0.1, cancel.set).start()

    started = time.monotonic()
    with pytest.raises(Cancelled):
        gate.acquire(cancel=cancel)
    assert time.monotonic() - started < 2
    assert gate.in_use == 1


def test_release_never_goes_negative() -> None:
    gate = AdmissionGate(2)
    with pytest.raises(ValueError):
        gate.release()
    gate.acquire(2)
    gate.release(2)
    assert gate.in_use == 0


@pytest.mark.parametrize("n", [0, 3])
def test_acquire_rejects_impossible_amounts(n: int) -> None:
    gate = AdmissionGate(2)
    with pytest.raises(ValueError):
        gate.acquire(n)


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        AdmissionGate(0)


def test_slot_releases_on_error() -> None:
    gate = AdmissionGate(1)
    with pytest.raises(RuntimeError):
        with gate.slot():
            assert gate.in_use == 1
            raise RuntimeError("boom")
    assert gate.in_use == 0

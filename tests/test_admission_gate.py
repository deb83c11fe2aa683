"""Tests for the admission gate utility."""

from __future__ import annotations

import threading
import time

import pytest

from conftest import wait_for
from nocturne.utils.admission_gate import AdmissionGate
from nocturne.utils.cancellation import CancelToken


class TestAdmissionGate:
    def test_rejects_non_positive_limit(self):
        with pytest.raises(ValueError):
            AdmissionGate(0)

    def test_acquire_below_limit_does_not_block(self):
        gate = AdmissionGate(2)
        assert gate.acquire()
        assert gate.acquire()
        assert gate.active == 2
        gate.release()
        gate.release()
        assert gate.active == 0

    def test_release_without_acquire_raises(self):
        gate = AdmissionGate(1)
        with pytest.raises(RuntimeError):
            gate.release()

    def test_context_manager_releases_on_error(self):
        gate = AdmissionGate(1)
        with pytest.raises(KeyError):
            with gate:
                assert gate.active == 1
                raise KeyError("boom")
        assert gate.active == 0

    def test_never_exceeds_limit(self):
        gate = AdmissionGate(3)
        lock = threading.Lock()
        current = [0]
        peak = [0]

        def worker():
            with gate:
                with lock:
                    current[0] += 1
                    peak[0] = max(peak[0], current[0])
                time.sleep(0.01)
                with lock:
                    current[0] -= 1

        threads = [threading.Thread(target=worker) for _ in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5.0)

        assert peak[0] <= 3
        assert gate.active == 0

    def test_waiters_admitted_in_arrival_order(self):
        gate = AdmissionGate(1)
        gate.acquire()
        order: list[int] = []

        def worker(n: int):
            with gate:
                order.append(n)

        threads = []
        for n in range(4):
            t = threading.Thread(target=worker, args=(n,))
            t.start()
            threads.append(t)
            assert wait_for(lambda: gate.waiting == n + 1)

        gate.release()
        for t in threads:
            t.join(timeout=5.0)

        assert order == [0, 1, 2, 3]

    def test_cancelled_waiter_leaves_queue(self):
        gate = AdmissionGate(1)
        gate.acquire()
        token = CancelToken()
        outcome: list[bool] = []

        t = threading.Thread(target=lambda: outcome.append(gate.acquire(token)))
        t.start()
        assert wait_for(lambda: gate.waiting == 1)

        token.cancel()
        t.join(timeout=5.0)

        assert outcome == [False]
        assert gate.waiting == 0
        assert gate.active == 1

    def test_already_cancelled_token_is_refused(self):
        gate = AdmissionGate(1)
        token = CancelToken()
        token.cancel()
        assert gate.acquire(token) is False
        assert gate.active == 0

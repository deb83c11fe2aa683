"""Bounded-concurrency admission gate for Nocturne's background workers."""

from __future__ import annotations

import threading
from collections import deque

from nocturne.utils.cancellation import CancelToken
from nocturne.utils.constants import GATE_CANCEL_POLL_SECONDS


class AdmissionGate:
    """Thread-safe counting gate with first-come, first-served release.

    At most ``limit`` holders are admitted at once. Callers that arrive while
    the gate is full queue up and are admitted strictly in arrival order, so no
    waiter starves. Waiters can give up early through a :class:`CancelToken`.

    Usage:
        gate = AdmissionGate(4)
        with gate:
            extract(path)

        if gate.acquire(cancel_token):
            try:
                extract(path)
            finally:
                gate.release()
    """

    def __init__(self, limit: int) -> None:
        """Initialize the gate.

        Args:
            limit: Maximum number of concurrent holders (>= 1).

        Raises:
            ValueError: If limit is less than 1.
        """
        if limit < 1:
            raise ValueError(f"AdmissionGate limit must be >= 1, got {limit}")
        self._limit = limit
        self._active = 0
        self._waiters: deque[object] = deque()
        self._cond = threading.Condition()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def active(self) -> int:
        """Number of slots currently held."""
        with self._cond:
            return self._active

    @property
    def waiting(self) -> int:
        """Number of callers queued for a slot."""
        with self._cond:
            return len(self._waiters)

    def acquire(self, cancel_token: CancelToken | None = None) -> bool:
        """Block until a slot is free and this caller is first in line.

        Args:
            cancel_token: Optional token; if it fires while queued, the caller
                leaves the queue without taking a slot.

        Returns:
            True if a slot was taken (caller must :meth:`release` it), False if
            the wait was cancelled.
        """
        with self._cond:
            if cancel_token is not None and cancel_token.is_cancelled():
                return False
            if self._active < self._limit and not self._waiters:
                self._active += 1
                return True

            ticket = object()
            self._waiters.append(ticket)
            try:
                while not (self._waiters[0] is ticket and self._active < self._limit):
                    if cancel_token is not None and cancel_token.is_cancelled():
                        return False
                    self._cond.wait(
                        GATE_CANCEL_POLL_SECONDS if cancel_token is not None else None
                    )
                self._waiters.popleft()
                self._active += 1
                # The next waiter may also fit if more than one slot is free
                self._cond.notify_all()
                return True
            finally:
                # Cancelled or interrupted while queued: give up our place in line
                if ticket in self._waiters:
                    self._waiters.remove(ticket)
                    self._cond.notify_all()

    def release(self) -> None:
        """Return a slot and wake the next waiter.

        Raises:
            RuntimeError: If called more times than :meth:`acquire` succeeded.
        """
        with self._cond:
            if self._active <= 0:
                raise RuntimeError("AdmissionGate released more times than acquired")
            self._active -= 1
            self._cond.notify_all()

    def __enter__(self) -> AdmissionGate:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        self.release()

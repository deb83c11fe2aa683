"""Cooperative cancellation flag shared between a coordinator and its workers."""

from __future__ import annotations

import threading


class CancelToken:
    """Thread-safe, one-way cancellation flag.

    Long-running loops call :meth:`is_cancelled` between units of work and stop
    when it returns True. Cancellation cannot be undone; start a new run with a
    fresh token instead.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    def is_cancelled(self) -> bool:
        """Return True once :meth:`cancel` has been called."""
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or *timeout* elapses. Returns the flag."""
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        return f"CancelToken(cancelled={self.is_cancelled()})"

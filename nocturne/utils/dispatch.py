"""Coordinating-context dispatchers.

All mutable library and playback state is owned by a single coordinating
context. Background threads never touch that state directly; they *post* a
call into the context through a dispatcher, and the owning thread runs it.

``QueueDispatcher`` is the headless implementation (the owning thread drains
the queue). The Qt implementation lives in ``nocturne.gui.dispatcher``.
"""

from __future__ import annotations

import queue
import time
from typing import Any, Callable, Protocol

from nocturne.utils.logger import get_logger

logger = get_logger("utils.dispatch")

# How long run_until() blocks on an empty queue before re-checking its predicate.
_IDLE_WAIT_SECONDS = 0.02


class Dispatcher(Protocol):
    """Anything that can run a callable on the coordinating context."""

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        ...


class ImmediateDispatcher:
    """Runs posted calls synchronously on the caller's thread.

    Only suitable when everything already runs on one thread (scripts, tests).
    """

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        fn(*args)


class QueueDispatcher:
    """FIFO queue of posted calls, drained by the thread that owns the state.

    Usage:
        dispatcher = QueueDispatcher()
        worker_thread_posts(dispatcher)        # any thread
        dispatcher.run_until(lambda: done, 5)  # owning thread
    """

    def __init__(self) -> None:
        self._queue: queue.Queue[tuple[Callable[..., Any], tuple[Any, ...]]] = queue.Queue()

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        """Enqueue *fn(*args)* for the owning thread. Safe from any thread."""
        self._queue.put((fn, args))

    @property
    def pending(self) -> int:
        """Approximate number of queued calls."""
        return self._queue.qsize()

    def process_pending(self) -> int:
        """Run every call queued so far without blocking.

        Returns:
            Number of calls executed.
        """
        executed = 0
        while True:
            try:
                fn, args = self._queue.get_nowait()
            except queue.Empty:
                return executed
            self._run(fn, args)
            executed += 1

    def run_until(self, predicate: Callable[[], bool], timeout: float) -> bool:
        """Run queued calls as they arrive until *predicate* holds.

        Args:
            predicate: Checked before every call and whenever the queue is idle.
            timeout: Maximum seconds to wait.

        Returns:
            True if the predicate became true, False on timeout.
        """
        deadline = time.monotonic() + timeout
        while True:
            if predicate():
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            try:
                fn, args = self._queue.get(timeout=min(remaining, _IDLE_WAIT_SECONDS))
            except queue.Empty:
                continue
            self._run(fn, args)

    def _run(self, fn: Callable[..., Any], args: tuple[Any, ...]) -> None:
        try:
            fn(*args)
        except Exception as e:
            # One failing handler must not stall the coordinating loop
            logger.error("Posted call %r failed: %s", fn, e, exc_info=True)

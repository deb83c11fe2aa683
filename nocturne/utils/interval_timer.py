"""Repeating timer that delivers its ticks on the coordinating context."""

from __future__ import annotations

import threading
from typing import Callable, Protocol

from nocturne.utils.dispatch import Dispatcher


class RepeatingTimer(Protocol):
    """Minimal timer surface used by the playback session."""

    @property
    def is_active(self) -> bool:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...


# (interval_seconds, on_tick) -> timer
TimerFactory = Callable[[float, Callable[[], None]], RepeatingTimer]


class IntervalTimer:
    """Fires ``callback`` every ``interval`` seconds via a dispatcher.

    The ticking happens on a daemon thread; the callback itself is posted to
    the dispatcher so it runs on the coordinating context. ``start`` and
    ``stop`` are idempotent.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        dispatcher: Dispatcher,
    ) -> None:
        self._interval = interval
        self._callback = callback
        self._dispatcher = dispatcher
        self._stop_event: threading.Event | None = None
        self._lock = threading.Lock()

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._stop_event is not None

    def start(self) -> None:
        with self._lock:
            if self._stop_event is not None:
                return
            stop_event = threading.Event()
            self._stop_event = stop_event
        thread = threading.Thread(
            target=self._run, args=(stop_event,), name="nocturne-timer", daemon=True,
        )
        thread.start()

    def stop(self) -> None:
        with self._lock:
            if self._stop_event is None:
                return
            self._stop_event.set()
            self._stop_event = None

    def _run(self, stop_event: threading.Event) -> None:
        # Each start() gets its own event, so a stale thread exits on its own
        while not stop_event.wait(self._interval):
            self._dispatcher.post(self._tick, stop_event)

    def _tick(self, stop_event: threading.Event) -> None:
        # A tick queued just before stop() must not fire afterwards
        if not stop_event.is_set():
            self._callback()


def interval_timer_factory(dispatcher: Dispatcher) -> TimerFactory:
    """Build a :data:`TimerFactory` producing :class:`IntervalTimer` instances."""

    def _factory(interval: float, callback: Callable[[], None]) -> IntervalTimer:
        return IntervalTimer(interval, callback, dispatcher)

    return _factory

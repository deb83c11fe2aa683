"""QTimer-backed repeating timer for the playback poller."""

from __future__ import annotations

from typing import Callable

from PyQt6.QtCore import QObject, QTimer

_MS_PER_SECOND = 1000


class QtIntervalTimer(QObject):
    """Repeating timer that fires on the thread that created it."""

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._timer = QTimer(self)
        self._timer.setInterval(int(interval * _MS_PER_SECOND))
        self._timer.timeout.connect(callback)

    @property
    def is_active(self) -> bool:
        return self._timer.isActive()

    def start(self) -> None:
        if not self._timer.isActive():
            self._timer.start()

    def stop(self) -> None:
        self._timer.stop()


def qt_timer_factory(interval: float, callback: Callable[[], None]) -> QtIntervalTimer:
    """:data:`~nocturne.utils.interval_timer.TimerFactory` for Qt applications."""
    return QtIntervalTimer(interval, callback)

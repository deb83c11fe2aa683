"""Qt dispatcher -- posts calls onto the Qt main thread's event loop."""

from __future__ import annotations

from typing import Any, Callable

from PyQt6.QtCore import QObject, Qt, pyqtSignal

from nocturne.utils.logger import get_logger

logger = get_logger("gui.dispatcher")


class QtDispatcher(QObject):
    """Dispatcher backed by a queued Qt signal.

    Create it on the thread that owns the library state (normally the Qt
    main thread). ``post`` may be called from any thread; the call runs on
    the owner's event loop, in posting order.

    Signals:
        _posted: (callable, args) -- internal, queued to the owning thread
    """

    _posted = pyqtSignal(object, tuple)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._posted.connect(self._run, Qt.ConnectionType.QueuedConnection)

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        self._posted.emit(fn, args)

    def _run(self, fn: Callable[..., Any], args: tuple) -> None:
        try:
            fn(*args)
        except Exception as e:
            # An exception escaping a slot would abort the Qt event loop
            logger.error("Posted call %r failed: %s", fn, e, exc_info=True)

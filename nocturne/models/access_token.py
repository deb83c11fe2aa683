"""Access token model -- an opaque, renewable capability for reading a path."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field

from nocturne.exceptions import TokenError


@dataclass
class AccessToken:
    """Capability handle for one filesystem path.

    A token must be *active* (between :meth:`begin` and :meth:`end`) for the
    duration of any read of its path. Begin/end calls are counted, so the same
    token can be bracketed by several workers at once.

    Attributes:
        path: The path this token grants access to.
        data: Opaque token payload, as persisted by the token store.
    """

    path: str
    data: str
    _active: int = field(default=0, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._active > 0

    def begin(self) -> None:
        """Start using the token.

        Raises:
            TokenError: If the path is no longer reachable.
        """
        if not os.path.exists(self.path):
            raise TokenError(self.path, "Path no longer reachable")
        with self._lock:
            self._active += 1

    def end(self) -> None:
        """Stop using the token. Extra calls are ignored."""
        with self._lock:
            if self._active > 0:
                self._active -= 1

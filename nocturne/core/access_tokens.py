"""Access token store -- persists and resolves per-path read capabilities."""

from __future__ import annotations

import os
import sqlite3
import threading
import uuid
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Iterator

from nocturne.db.repositories import AccessTokenRepository
from nocturne.exceptions import TokenError
from nocturne.models.access_token import AccessToken
from nocturne.utils.logger import get_logger

logger = get_logger("core.access_tokens")


class AccessTokenStore:
    """Stores, resolves, and brackets access tokens for files and folders.

    A token is bound to the identity (device + inode) of the path it was
    issued for. A token whose path has gone away, or now points at a
    different file, is *stale*: :meth:`resolve` drops it and returns None so
    callers re-issue one with :meth:`store`.

    Safe to call from worker threads. Give it its own connection
    (``Database.open_connection()``) so token commits never land inside a
    track batch transaction.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._repo = AccessTokenRepository(connection)
        self._lock = threading.Lock()

    def store(self, path: Path | str) -> AccessToken:
        """Issue (or re-issue) a token for a path.

        Args:
            path: File or folder to grant access to.

        Returns:
            The new token.

        Raises:
            TokenError: If the path cannot be reached or the token cannot be saved.
        """
        key = str(path)
        try:
            st = os.stat(key)
        except OSError as e:
            raise TokenError(key, f"Cannot create access token ({e.strerror})") from e

        data = uuid.uuid4().hex
        try:
            with self._lock:
                self._repo.put(key, data, st.st_dev, st.st_ino)
        except sqlite3.Error as e:
            raise TokenError(key, f"Cannot save access token ({e})") from e

        logger.debug("Stored access token for %s", key)
        return AccessToken(path=key, data=data)

    def resolve(self, path: Path | str) -> AccessToken | None:
        """Look up a usable token for a path.

        Returns:
            The stored token, or None if none exists or it went stale.
        """
        key = str(path)
        with self._lock:
            row = self._repo.get(key)
            if row is None:
                return None
            if self._is_stale(key, row["device"], row["inode"]):
                logger.info("Dropping stale access token for %s", key)
                self._repo.remove(key)
                return None
        return AccessToken(path=key, data=row["token"])

    def remove(self, path: Path | str) -> bool:
        """Forget a path's token. Returns True if one existed."""
        with self._lock:
            return self._repo.remove(str(path))

    def nearest_stored_ancestor(self, path: Path | str) -> str | None:
        """Closest enclosing folder that has a token, or None."""
        with self._lock:
            stored = set(self._repo.all_paths())
        for parent in Path(path).parents:
            if str(parent) in stored:
                return str(parent)
        return None

    @contextmanager
    def access(self, *paths: Path | str) -> Iterator[list[AccessToken]]:
        """Hold tokens for every path for the duration of the block.

        Tokens are begun in order and ended in reverse order. If any path has
        no usable token, or a token cannot be begun, every token begun so
        far is ended before the error propagates.

        Raises:
            TokenError: If a path has no usable token.
        """
        with ExitStack() as stack:
            tokens = []
            for path in paths:
                token = self.resolve(path)
                if token is None:
                    raise TokenError(str(path), "No access token")
                token.begin()
                stack.callback(token.end)
                tokens.append(token)
            yield tokens

    @staticmethod
    def _is_stale(path: str, device: int, inode: int) -> bool:
        try:
            st = os.stat(path)
        except OSError:
            return True
        return (st.st_dev, st.st_ino) != (device, inode)

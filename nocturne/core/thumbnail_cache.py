"""On-disk album thumbnail cache, content-addressed by album name."""

from __future__ import annotations

import os
import tempfile
import threading
from pathlib import Path

from nocturne.utils.constants import THUMBNAIL_FILE_SUFFIX
from nocturne.utils.file_utils import album_cache_key
from nocturne.utils.logger import get_logger

logger = get_logger("core.thumbnail_cache")


class ThumbnailCache:
    """Flat directory of ``<sha256(album)>.jpg`` files.

    The directory is created on first write. If it cannot be created, the
    cache logs one warning and from then on behaves as always-miss: ``get``
    returns None and ``set`` does nothing. Thumbnails degrade; nothing fails.

    Writes go to a temp file in the same directory and are moved into place
    with ``os.replace``, so concurrent readers see either the old file or the
    complete new one.
    """

    def __init__(self, cache_dir: Path | str) -> None:
        self._dir = Path(cache_dir).expanduser()
        self._lock = threading.Lock()
        self._ready = False
        self._disabled = False

    @property
    def directory(self) -> Path:
        return self._dir

    @property
    def is_disabled(self) -> bool:
        return self._disabled

    def path_for(self, album: str) -> Path:
        """File that holds (or would hold) an album's thumbnail."""
        return self._dir / f"{album_cache_key(album)}{THUMBNAIL_FILE_SUFFIX}"

    def get(self, album: str) -> bytes | None:
        """Return the cached thumbnail for an album, or None on a miss."""
        if self._disabled:
            return None
        try:
            return self.path_for(album).read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Could not read thumbnail for '%s': %s", album, e)
            return None

    def set(self, album: str, data: bytes) -> bool:
        """Store an album's thumbnail, replacing any previous one.

        Returns:
            True if the thumbnail was written.
        """
        if not self._ensure_dir():
            return False

        target = self.path_for(album)
        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self._dir, suffix=".tmp")
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, target)
        except OSError as e:
            logger.warning("Could not write thumbnail for '%s': %s", album, e)
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            return False

        logger.debug("Cached thumbnail for '%s' (%d bytes)", album, len(data))
        return True

    def clear(self) -> int:
        """Delete every cached thumbnail.

        Returns:
            Number of files removed.
        """
        if not self._dir.is_dir():
            return 0
        removed = 0
        for entry in self._dir.glob(f"*{THUMBNAIL_FILE_SUFFIX}"):
            try:
                entry.unlink()
                removed += 1
            except OSError as e:
                logger.warning("Could not remove %s: %s", entry, e)
        logger.info("Cleared %d cached thumbnails", removed)
        return removed

    def _ensure_dir(self) -> bool:
        with self._lock:
            if self._disabled:
                return False
            if self._ready:
                return True
            try:
                self._dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                self._disabled = True
                logger.warning(
                    "Thumbnail cache disabled, cannot create %s: %s", self._dir, e,
                )
                return False
            self._ready = True
            return True

"""Folder scanner -- discovers candidate audio files under a library root."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable

from nocturne.utils.cancellation import CancelToken
from nocturne.utils.constants import DEFAULT_SCAN_PROGRESS_INTERVAL
from nocturne.utils.file_utils import is_audio_file, is_hidden, is_package_dir
from nocturne.utils.logger import get_logger

logger = get_logger("core.scanner")

# Sorts after every real timestamp
_UNKNOWN_MTIME = float("-inf")


class FolderScanner:
    """Lists supported audio files under a root, most recently modified first.

    Hidden files and directories are skipped, and so is everything inside a
    package bundle (``Foo.app``, ``Bar.photoslibrary``...). Directories that
    cannot be read are skipped without error; the scan never fails, it can
    only find fewer files.

    Usage:
        scanner = FolderScanner()
        paths = scanner.scan("/music", on_progress=print)
    """

    def __init__(self, progress_interval: int = DEFAULT_SCAN_PROGRESS_INTERVAL) -> None:
        """Initialize the scanner.

        Args:
            progress_interval: Report progress every N entries (and on the last).
        """
        if progress_interval < 1:
            raise ValueError(f"progress_interval must be >= 1, got {progress_interval}")
        self._progress_interval = progress_interval

    def scan(
        self,
        root: Path | str,
        cancel_token: CancelToken | None = None,
        on_progress: Callable[[float], None] | None = None,
    ) -> list[str]:
        """Scan a directory tree.

        Args:
            root: Root directory to scan.
            cancel_token: Checked between entries; a cancelled scan returns [].
            on_progress: Called with the fraction of entries checked so far.

        Returns:
            Absolute audio file paths, newest modification time first.
        """
        root = Path(root).expanduser()
        if not root.is_dir():
            logger.warning("Library folder not found or not a directory: %s", root)
            return []

        logger.info("Scanning directory: %s", root)

        # Collect every entry first so progress has a denominator
        entries = self._enumerate(root, cancel_token)
        if cancel_token is not None and cancel_token.is_cancelled():
            logger.info("Scan cancelled during enumeration of %s", root)
            return []
        total = len(entries)

        found: list[str] = []
        for idx, entry in enumerate(entries, start=1):
            if cancel_token is not None and cancel_token.is_cancelled():
                logger.info("Scan cancelled after %d/%d entries", idx - 1, total)
                return []
            if is_audio_file(entry):
                found.append(entry)
            if on_progress and (idx % self._progress_interval == 0 or idx == total):
                if cancel_token is not None and cancel_token.is_cancelled():
                    return []
                on_progress(idx / total)

        result = self._sort_by_recency(found)
        logger.info("Scan complete: %d audio files in %d entries", len(result), total)
        return result

    def _enumerate(self, root: Path, cancel_token: CancelToken | None) -> list[str]:
        entries: list[str] = []
        for dirpath, dirnames, filenames in os.walk(root, onerror=self._on_walk_error):
            if cancel_token is not None and cancel_token.is_cancelled():
                return []
            # Prune in place so os.walk never descends into them
            dirnames[:] = sorted(
                d for d in dirnames if not is_hidden(d) and not is_package_dir(d)
            )
            entries.extend(
                os.path.join(dirpath, name)
                for name in sorted(filenames)
                if not is_hidden(name)
            )
        return entries

    @staticmethod
    def _on_walk_error(error: OSError) -> None:
        logger.debug("Skipping unreadable directory: %s", error)

    @staticmethod
    def _sort_by_recency(paths: list[str]) -> list[str]:
        def mtime(path: str) -> float:
            try:
                return os.stat(path).st_mtime
            except OSError:
                return _UNKNOWN_MTIME

        # sorted() is stable, so unreadable files keep enumeration order
        return sorted(paths, key=mtime, reverse=True)

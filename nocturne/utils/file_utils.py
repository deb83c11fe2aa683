"""Path helpers and small formatting utilities for Nocturne."""

from __future__ import annotations

import hashlib
import math
import os
from pathlib import Path

from nocturne.utils.constants import (
    DEFAULT_DURATION,
    PACKAGE_DIR_SUFFIXES,
    SECONDS_PER_MINUTE,
    SUPPORTED_EXTENSIONS,
)


def is_audio_file(path: Path | str) -> bool:
    """Check if a path has a supported audio extension (case-insensitive).

    Args:
        path: File path to check.

    Returns:
        True if the extension is one Nocturne ingests.
    """
    return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS


def is_hidden(name: str) -> bool:
    """Return True for dot-files and dot-directories."""
    return name.startswith(".")


def is_package_dir(name: str) -> bool:
    """Return True if a directory name denotes an opaque bundle (e.g. ``Foo.app``)."""
    return os.path.splitext(name)[1].lower() in PACKAGE_DIR_SUFFIXES


def format_duration(seconds: float | None) -> str:
    """Format a duration as ``m:ss``.

    Non-finite, missing, or non-positive durations format as ``0:00``.

    Args:
        seconds: Duration in seconds.

    Returns:
        Display string such as ``3:07``.
    """
    if seconds is None or not math.isfinite(seconds) or seconds <= 0:
        return DEFAULT_DURATION
    total = int(seconds)
    minutes, remainder = divmod(total, SECONDS_PER_MINUTE)
    return f"{minutes}:{remainder:02d}"


def album_cache_key(album_name: str) -> str:
    """Stable content address for an album's thumbnail.

    Args:
        album_name: Album name exactly as stored on the track.

    Returns:
        Hex SHA-256 digest of the UTF-8 album name.
    """
    return hashlib.sha256(album_name.encode("utf-8")).hexdigest()


def common_parent(paths: list[str]) -> Path | None:
    """Return the deepest directory containing every path, or None for an empty list."""
    if not paths:
        return None
    parents = [str(Path(p).parent) for p in paths]
    try:
        return Path(os.path.commonpath(parents))
    except ValueError:
        # Mixed drives (Windows) or mixed absolute/relative paths
        return None

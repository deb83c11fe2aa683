"""Library index -- albums and other derived views over the track store."""

from __future__ import annotations

import time
from typing import Callable

from nocturne.db.repositories import TrackRepository
from nocturne.models.album import Album
from nocturne.models.search_results import SearchResults
from nocturne.models.track import Track
from nocturne.utils.constants import (
    ALL_ARTISTS_KEY,
    DEFAULT_INDEX_CACHE_TTL_SECONDS,
    DEFAULT_RECENTLY_ADDED_LIMIT,
    DEFAULT_SEARCH_MIN_CHARS,
)
from nocturne.utils.logger import get_logger

logger = get_logger("core.library_index")


class LibraryIndex:
    """Groups tracks into albums, caching the result per artist for a while.

    Album lists are cached under the artist name (or ``ALL_ARTISTS_KEY``) for
    ``ttl_seconds`` after they were computed. Anything that can change the
    grouping (ingestion, deletion, thumbnail regeneration) must call
    :meth:`invalidate`; favorite and play-count changes do not.

    Lives on the coordinating context, like the repository it reads.
    """

    def __init__(
        self,
        repo: TrackRepository,
        ttl_seconds: float = DEFAULT_INDEX_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        search_min_chars: int = DEFAULT_SEARCH_MIN_CHARS,
    ) -> None:
        self._repo = repo
        self._ttl = ttl_seconds
        self._clock = clock
        self._search_min_chars = search_min_chars
        self._cache: dict[str, tuple[float, list[Album]]] = {}

    def albums(self, artist: str | None = None) -> list[Album]:
        """Albums sorted by name, optionally limited to one track artist.

        Tracks with an empty album name belong to no album. When filtering by
        artist, only that artist's tracks are grouped, so a compilation shows
        up with just their tracks.

        Args:
            artist: Track artist to filter by, or None for the whole library.

        Returns:
            Albums sorted by name, each with tracks in (disc, track) order.
        """
        key = artist if artist is not None else ALL_ARTISTS_KEY
        now = self._clock()
        cached = self._cache.get(key)
        if cached is not None and now - cached[0] < self._ttl:
            return list(cached[1])

        predicate = None if artist is None else (lambda t: t.artist == artist)
        albums = group_albums(self._repo.fetch(predicate))
        self._cache[key] = (now, albums)
        logger.debug("Indexed %d albums for %s", len(albums), key)
        return list(albums)

    def invalidate(self) -> None:
        """Drop every cached album list."""
        self._cache.clear()

    def artists(self) -> list[str]:
        """Unique track artists, sorted case-insensitively."""
        names = {t.artist for t in self._repo.fetch() if t.artist}
        return sorted(names, key=str.casefold)

    def search(self, query: str) -> SearchResults:
        """Case-insensitive substring search over albums and tracks.

        Albums match on name or album artist; tracks on title, artist or
        album. Queries shorter than the minimum length return nothing.
        """
        needle = query.strip().casefold()
        if len(needle) < self._search_min_chars:
            return SearchResults()

        albums = [
            a for a in self.albums()
            if needle in a.name.casefold() or needle in a.album_artist.casefold()
        ]
        tracks = [
            t for t in self._repo.fetch()
            if needle in t.title.casefold()
            or needle in t.artist.casefold()
            or needle in t.album.casefold()
        ]
        tracks.sort(key=lambda t: (t.title.casefold(), t.path))
        return SearchResults(albums=albums, tracks=tracks)

    def recently_added(self, limit: int = DEFAULT_RECENTLY_ADDED_LIMIT) -> list[Album]:
        """Albums by the time their first track was added, newest first."""
        albums = sorted(self.albums(), key=lambda a: a.earliest_added, reverse=True)
        return albums[:limit]

    def favorites(self) -> list[Track]:
        """Favorite tracks, sorted by artist then title."""
        tracks = self._repo.fetch(lambda t: t.favorite)
        return sorted(tracks, key=lambda t: (t.artist.casefold(), t.title.casefold()))


def group_albums(tracks: list[Track]) -> list[Album]:
    """Group tracks by album name and sort the albums by name.

    Args:
        tracks: Any track set; tracks with an empty album name are dropped.

    Returns:
        Albums sorted by name ascending.
    """
    groups: dict[str, list[Track]] = {}
    for track in tracks:
        if not track.album:
            continue
        groups.setdefault(track.album, []).append(track)
    return [Album.from_tracks(name, groups[name]) for name in sorted(groups)]

"""Album model -- derived from tracks, never persisted."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from nocturne.models.track import Track
from nocturne.utils.constants import DEFAULT_ALBUM_ARTIST


@dataclass(frozen=True)
class Album:
    """A group of tracks sharing an album name.

    Built by :meth:`from_tracks`; the library index rebuilds albums from the
    current track set, so an Album never outlives the tracks it was made from.

    Attributes:
        name: Album name.
        album_artist: First track's album artist, or ``"Unknown"``.
        genre: First track's genre.
        release_year: First track's release year.
        artwork: Cover art of the first track that has any.
        thumbnail: Thumbnail of the first track that has one.
        tracks: Tracks sorted by (disc number, track number).
    """

    name: str
    album_artist: str
    genre: str
    release_year: int
    artwork: bytes | None = field(default=None, repr=False)
    thumbnail: bytes | None = field(default=None, repr=False)
    tracks: tuple[Track, ...] = ()

    @classmethod
    def from_tracks(cls, name: str, tracks: list[Track]) -> Album:
        """Create an album from its (unsorted, non-empty) member tracks.

        Args:
            name: Album name shared by the tracks.
            tracks: Member tracks.

        Returns:
            Album with tracks in (disc, track) order.
        """
        ordered = tuple(sorted(tracks, key=lambda t: t.sort_key))
        first = ordered[0]
        return cls(
            name=name,
            album_artist=first.album_artist or DEFAULT_ALBUM_ARTIST,
            genre=first.genre,
            release_year=first.release_year,
            artwork=next((t.artwork for t in ordered if t.artwork), None),
            thumbnail=next((t.thumbnail for t in ordered if t.thumbnail), None),
            tracks=ordered,
        )

    @property
    def total_tracks(self) -> int:
        return len(self.tracks)

    @property
    def paths(self) -> list[str]:
        return [t.path for t in self.tracks]

    @property
    def earliest_added(self) -> datetime:
        """When the first of this album's tracks entered the library."""
        return min(t.added_at for t in self.tracks)

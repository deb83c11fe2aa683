"""Track data model -- a single audio file in the library and its metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from nocturne.utils.constants import (
    DEFAULT_ALBUM,
    DEFAULT_ARTIST,
    DEFAULT_DISC_NUMBER,
    DEFAULT_DURATION,
    DEFAULT_GENRE,
    DEFAULT_RELEASE_YEAR,
    DEFAULT_TRACK_NUMBER,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Track:
    """A library track. Identity is the file path.

    Attributes:
        path: Absolute path to the audio file (unique key in the store).
        title: Track title (file name when the tags have none).
        artist: Track artist.
        album: Album name. An empty string means "not part of an album".
        album_artist: Album artist, or None if the tags do not set one.
        genre: Genre tag.
        disc_number: Disc number, -1 when unknown.
        track_number: Track number within the disc, -1 when unknown.
        duration: Display duration (``m:ss``).
        release_year: Four-digit year, 0 when unknown.
        artwork: Raw embedded cover art bytes.
        thumbnail: Downsized cover art (JPEG) for list/grid display.
        play_count: Number of completed plays.
        favorite: User favorite flag.
        added_at: When the track entered the library.
        id: Database row ID (assigned on save; used by playlist membership).
    """

    path: str
    title: str = ""
    artist: str = DEFAULT_ARTIST
    album: str = DEFAULT_ALBUM
    album_artist: str | None = None
    genre: str = DEFAULT_GENRE
    disc_number: int = DEFAULT_DISC_NUMBER
    track_number: int = DEFAULT_TRACK_NUMBER
    duration: str = DEFAULT_DURATION
    release_year: int = DEFAULT_RELEASE_YEAR

    artwork: bytes | None = field(default=None, repr=False)
    thumbnail: bytes | None = field(default=None, repr=False)

    play_count: int = 0
    favorite: bool = False
    added_at: datetime = field(default_factory=_utcnow)

    id: int | None = None

    def __post_init__(self) -> None:
        """Normalize the path to a string and default the title to the file name."""
        if isinstance(self.path, Path):
            self.path = str(self.path)
        if not self.title:
            self.title = Path(self.path).name
        if self.play_count < 0:
            raise ValueError(f"play_count must be >= 0, got {self.play_count}")

    @property
    def file_name(self) -> str:
        return Path(self.path).name

    @property
    def folder(self) -> str:
        """Directory that contains the file."""
        return str(Path(self.path).parent)

    @property
    def sort_key(self) -> tuple[int, int]:
        """Intra-album ordering: (disc, track)."""
        return (self.disc_number, self.track_number)

    def as_dict(self) -> dict:
        """Serialize the track to a dictionary (for database storage).

        Returns:
            Dictionary of column values, keyed by column name.
        """
        return {
            "path": self.path,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "album_artist": self.album_artist,
            "genre": self.genre,
            "disc_number": self.disc_number,
            "track_number": self.track_number,
            "duration": self.duration,
            "release_year": self.release_year,
            "artwork": self.artwork,
            "thumbnail": self.thumbnail,
            "play_count": self.play_count,
            "favorite": int(self.favorite),
            "added_at": self.added_at.isoformat(),
        }

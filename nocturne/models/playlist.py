"""Playlist model -- a named, non-owning collection of tracks."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from nocturne.models.track import Track


@dataclass
class Playlist:
    """A user playlist.

    Membership is non-owning: deleting a playlist never deletes its tracks,
    and deleting a track only removes it from the playlists that held it.

    Attributes:
        id: Generated identifier (hex UUID).
        name: Display name, non-empty after trimming.
        tracks: Member tracks in insertion order.
        created_at: Creation timestamp.
    """

    id: str
    name: str
    tracks: list[Track] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        self.name = normalize_playlist_name(self.name)

    def contains(self, track: Track) -> bool:
        return any(t.path == track.path for t in self.tracks)

    @property
    def track_count(self) -> int:
        return len(self.tracks)


def normalize_playlist_name(name: str) -> str:
    """Trim a playlist name.

    Raises:
        ValueError: If nothing is left after trimming.
    """
    trimmed = (name or "").strip()
    if not trimmed:
        raise ValueError("Playlist name must not be empty")
    return trimmed

"""Search result container."""

from __future__ import annotations

from dataclasses import dataclass, field

from nocturne.models.album import Album
from nocturne.models.track import Track


@dataclass
class SearchResults:
    """Albums and tracks matching a library search."""

    albums: list[Album] = field(default_factory=list)
    tracks: list[Track] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.albums and not self.tracks

    @property
    def total_count(self) -> int:
        return len(self.albums) + len(self.tracks)

"""Playback state snapshot published by the playback session."""

from __future__ import annotations

from dataclasses import dataclass

from nocturne.models.track import Track


@dataclass(frozen=True)
class PlaybackState:
    """Immutable view of the playback session.

    Attributes:
        current_track: Track loaded in the engine, if any.
        is_playing: True while audio is playing (False when paused or stopped).
        is_shuffle_enabled: Next-track selection is random when True.
        is_repeat_enabled: A finished track replays instead of advancing.
        current_time: Elapsed seconds within the current track.
        play_queue: The active track list the current track was started from.
        play_history: Previously started tracks, most recent last.
        current_index: Position of ``current_track`` within ``play_queue``.
    """

    current_track: Track | None = None
    is_playing: bool = False
    is_shuffle_enabled: bool = False
    is_repeat_enabled: bool = False
    current_time: float = 0.0
    play_queue: tuple[Track, ...] = ()
    play_history: tuple[Track, ...] = ()
    current_index: int | None = None

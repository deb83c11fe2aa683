"""Data models for Nocturne."""

from nocturne.models.access_token import AccessToken
from nocturne.models.album import Album
from nocturne.models.config import AppConfig
from nocturne.models.ingestion_phase import IngestionPhase, PhaseUpdate
from nocturne.models.playback_state import PlaybackState
from nocturne.models.playlist import Playlist
from nocturne.models.search_results import SearchResults
from nocturne.models.track import Track

__all__ = [
    "AccessToken",
    "Album",
    "AppConfig",
    "IngestionPhase",
    "PhaseUpdate",
    "PlaybackState",
    "Playlist",
    "SearchResults",
    "Track",
]

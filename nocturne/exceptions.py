"""Exception hierarchy for Nocturne."""

from __future__ import annotations


class NocturneError(Exception):
    """Base class for all Nocturne errors."""


class PersistenceError(NocturneError):
    """The track store could not commit (I/O failure or constraint violation)."""


class TokenError(NocturneError):
    """An access token could not be stored, resolved, or activated for a path."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{reason}: {path}")
        self.path = path
        self.reason = reason


class PlaybackError(NocturneError):
    """The audio engine could not load or decode a file."""


class MetadataError(NocturneError):
    """A file could not be read at all during metadata extraction."""

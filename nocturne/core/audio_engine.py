"""Audio engine interface used by the playback session."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

# Receives True when a track played to the end, False on a decode/output error
FinishedCallback = Callable[[bool], None]


class AudioEngine(ABC):
    """Single-stream audio output.

    Implementations may invoke the finished callback from any thread; the
    playback session posts it onto the coordinating context itself.
    """

    @abstractmethod
    def load(self, path: str) -> None:
        """Open a file for playback, replacing whatever was loaded.

        Raises:
            PlaybackError: If the file cannot be opened or decoded.
        """

    @abstractmethod
    def play(self) -> None:
        ...

    @abstractmethod
    def pause(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        """Stop playback and release the loaded file."""

    @abstractmethod
    def seek(self, seconds: float) -> None:
        ...

    @property
    @abstractmethod
    def current_time(self) -> float:
        """Playback position of the loaded file, in seconds."""

    @property
    @abstractmethod
    def duration(self) -> float:
        """Length of the loaded file in seconds (0.0 if unknown)."""

    @abstractmethod
    def set_finished_callback(self, callback: FinishedCallback | None) -> None:
        ...

"""Audio engine on PyQt6 multimedia (QMediaPlayer + QAudioOutput)."""

from __future__ import annotations

import os

from PyQt6.QtCore import QObject, QUrl
from PyQt6.QtMultimedia import QAudioOutput, QMediaPlayer

from nocturne.core.audio_engine import AudioEngine, FinishedCallback
from nocturne.exceptions import PlaybackError
from nocturne.utils.logger import get_logger

logger = get_logger("gui.audio_engine")

_MS_PER_SECOND = 1000.0


class QtAudioEngine(AudioEngine):
    """Single-stream player. Must be created and driven on the Qt main thread.

    The finished callback receives True on end-of-media and False when the
    player reports an error.
    """

    def __init__(self, parent: QObject | None = None) -> None:
        self._player = QMediaPlayer(parent)
        self._output = QAudioOutput(parent)
        self._player.setAudioOutput(self._output)
        self._callback: FinishedCallback | None = None

        self._player.mediaStatusChanged.connect(self._on_media_status)
        self._player.errorOccurred.connect(self._on_error)

    def load(self, path: str) -> None:
        if not os.path.isfile(path):
            raise PlaybackError(f"File not found: {path}")
        self._player.setSource(QUrl.fromLocalFile(path))
        if self._player.error() != QMediaPlayer.Error.NoError:
            raise PlaybackError(f"Cannot open {path}: {self._player.errorString()}")
        if self._player.mediaStatus() == QMediaPlayer.MediaStatus.InvalidMedia:
            raise PlaybackError(f"Unsupported or corrupt media: {path}")
        logger.debug("Loaded %s", path)

    def play(self) -> None:
        self._player.play()

    def pause(self) -> None:
        self._player.pause()

    def stop(self) -> None:
        self._player.stop()
        self._player.setSource(QUrl())

    def seek(self, seconds: float) -> None:
        self._player.setPosition(int(seconds * _MS_PER_SECOND))

    @property
    def current_time(self) -> float:
        return self._player.position() / _MS_PER_SECOND

    @property
    def duration(self) -> float:
        return max(0, self._player.duration()) / _MS_PER_SECOND

    def set_finished_callback(self, callback: FinishedCallback | None) -> None:
        self._callback = callback

    def _on_media_status(self, status: QMediaPlayer.MediaStatus) -> None:
        if status == QMediaPlayer.MediaStatus.EndOfMedia and self._callback:
            self._callback(True)

    def _on_error(self, error: QMediaPlayer.Error, message: str) -> None:
        logger.error("Player error (%s): %s", error, message)
        if self._callback:
            self._callback(False)

"""Shared fixtures and fakes for the Nocturne test suite."""

from __future__ import annotations

import threading
import time
from io import BytesIO
from pathlib import Path
from typing import Callable, Iterator

import pytest
from PIL import Image

from nocturne.core.access_tokens import AccessTokenStore
from nocturne.core.audio_engine import AudioEngine, FinishedCallback
from nocturne.core.metadata_extractor import ContainerInfo, TagFields
from nocturne.db.database import Database
from nocturne.db.repositories import PlaylistRepository, TrackRepository
from nocturne.exceptions import PlaybackError


# ------------------------------------------------------------------
# Database fixtures
# ------------------------------------------------------------------


@pytest.fixture
def database() -> Iterator[Database]:
    db = Database(":memory:")
    db.connect()
    yield db
    db.close()


@pytest.fixture
def track_repo(database: Database) -> TrackRepository:
    return TrackRepository(database.connection)


@pytest.fixture
def playlist_repo(database: Database) -> PlaylistRepository:
    return PlaylistRepository(database.connection)


@pytest.fixture
def token_store(database: Database) -> AccessTokenStore:
    return AccessTokenStore(database.open_connection())


# ------------------------------------------------------------------
# Fakes
# ------------------------------------------------------------------


class FakeTagReader:
    """Tag reader returning canned TagFields keyed by file name."""

    def __init__(self, tags: dict[str, TagFields] | None = None) -> None:
        self.tags = tags or {}
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def read(self, path: str) -> TagFields | None:
        with self._lock:
            self.calls.append(path)
        return self.tags.get(Path(path).name)


class FakeContainerReader:
    """Container reader with a fixed duration and optional per-file artwork."""

    def __init__(self, duration: float | None = 187.0, artwork: dict[str, bytes] | None = None) -> None:
        self.duration = duration
        self.artwork = artwork or {}

    def read(self, path: str) -> ContainerInfo | None:
        return ContainerInfo(duration=self.duration, artwork=self.artwork.get(Path(path).name))


class FakeAudioEngine(AudioEngine):
    """In-memory audio engine that records every call."""

    def __init__(self, duration: float = 200.0) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.loaded: str | None = None
        self.position = 0.0
        self._duration = duration
        self.fail_paths: set[str] = set()
        self.failures_left = 0
        self.callback: FinishedCallback | None = None

    def load(self, path: str) -> None:
        self.calls.append(("load", path))
        if path in self.fail_paths:
            raise PlaybackError(f"cannot decode {path}")
        if self.failures_left > 0:
            self.failures_left -= 1
            raise PlaybackError(f"transient failure for {path}")
        self.loaded = path
        self.position = 0.0

    def play(self) -> None:
        self.calls.append(("play",))

    def pause(self) -> None:
        self.calls.append(("pause",))

    def stop(self) -> None:
        self.calls.append(("stop",))
        self.loaded = None

    def seek(self, seconds: float) -> None:
        self.calls.append(("seek", str(seconds)))
        self.position = seconds

    @property
    def current_time(self) -> float:
        return self.position

    @property
    def duration(self) -> float:
        return self._duration

    def set_finished_callback(self, callback: FinishedCallback | None) -> None:
        self.callback = callback

    def finish(self, success: bool = True) -> None:
        """Simulate the end of the loaded file."""
        assert self.callback is not None
        self.callback(success)


class ManualTimer:
    """Timer that only fires when the test calls :meth:`fire`."""

    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        self.interval = interval
        self.callback = callback
        self.is_active = False
        self.starts = 0

    def start(self) -> None:
        self.is_active = True
        self.starts += 1

    def stop(self) -> None:
        self.is_active = False

    def fire(self) -> None:
        if self.is_active:
            self.callback()


@pytest.fixture
def fake_engine() -> FakeAudioEngine:
    return FakeAudioEngine()


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def make_image_bytes(width: int = 640, height: int = 480, fmt: str = "PNG", mode: str = "RGB") -> bytes:
    """Encode a solid-color image with Pillow."""
    img = Image.new(mode, (width, height), color=(200, 30, 90) if mode == "RGB" else (200, 30, 90, 128))
    output = BytesIO()
    img.save(output, format=fmt)
    return output.getvalue()


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll until predicate() is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()

"""Tests for PlaybackSession -- transport, queue, history, and engine events."""

from __future__ import annotations

import random
from pathlib import Path

import pytest

from conftest import FakeAudioEngine, FakeContainerReader, FakeTagReader, ManualTimer
from nocturne.core.access_tokens import AccessTokenStore
from nocturne.core.ingestion import IngestionPipeline
from nocturne.core.metadata_extractor import MetadataExtractor
from nocturne.core.playback import PlaybackSession
from nocturne.core.thumbnail_cache import ThumbnailCache
from nocturne.models.access_token import AccessToken
from nocturne.models.playback_state import PlaybackState
from nocturne.models.track import Track
from nocturne.utils.cancellation import CancelToken
from nocturne.utils.dispatch import QueueDispatcher


class FixedRandom:
    """Stands in for random.Random; randrange always returns a chosen index."""

    def __init__(self, index: int) -> None:
        self.index = index
        self.calls: list[int] = []

    def randrange(self, stop: int) -> int:
        self.calls.append(stop)
        return self.index


class Harness:
    def __init__(self, engine: FakeAudioEngine, token_store: AccessTokenStore, rng=None) -> None:
        self.engine = engine
        self.tokens = token_store
        self.dispatcher = QueueDispatcher()
        self.played: list[str] = []
        self.timers: list[ManualTimer] = []
        self.states: list[PlaybackState] = []

        def factory(interval: float, callback) -> ManualTimer:
            timer = ManualTimer(interval, callback)
            self.timers.append(timer)
            return timer

        self.session = PlaybackSession(
            engine,
            token_store,
            lambda track: self.played.append(track.path),
            self.dispatcher,
            timer_factory=factory,
            rng=rng,
        )
        self.session.subscribe(self.states.append)

    @property
    def poller(self) -> ManualTimer:
        return self.timers[0]


@pytest.fixture
def tracks(tmp_path: Path, token_store: AccessTokenStore) -> list[Track]:
    folder = tmp_path / "music"
    folder.mkdir()
    result = []
    for i, title in enumerate(["Airegin", "Tune Up", "Oleo", "Doxy"]):
        p = folder / f"{i}.mp3"
        p.write_bytes(b"\x00")
        token_store.store(p)
        result.append(Track(path=str(p), title=title))
    return result


@pytest.fixture
def cache(tmp_path: Path) -> ThumbnailCache:
    return ThumbnailCache(tmp_path / "thumbs")


@pytest.fixture
def h(fake_engine: FakeAudioEngine, token_store: AccessTokenStore) -> Harness:
    return Harness(fake_engine, token_store)


class TestPlay:
    def test_play_sets_state(self, h: Harness, tracks):
        assert h.session.play(tracks[1], tracks) is True

        state = h.session.state
        assert state.current_track is tracks[1]
        assert state.is_playing
        assert state.current_index == 1
        assert state.play_queue == tuple(tracks)
        assert state.play_history == (tracks[1],)
        assert state.current_time == 0.0
        assert h.engine.calls == [("load", tracks[1].path), ("play",)]
        assert h.poller.is_active
        assert h.states[-1] == state

    def test_index_is_first_matching_path(self, h: Harness, tracks):
        queue = [tracks[0], tracks[2], tracks[0]]
        h.session.play(tracks[0], queue)
        assert h.session.state.current_index == 0

    def test_track_outside_list_has_no_index(self, h: Harness, tracks):
        h.session.play(tracks[3], tracks[:2])
        assert h.session.state.current_index is None

    def test_replaying_same_track_does_not_grow_history(self, h: Harness, tracks):
        h.session.play(tracks[0], tracks)
        h.session.play(tracks[0], tracks)
        assert h.session.state.play_history == (tracks[0],)

    def test_missing_token_is_issued_on_retry(self, h: Harness, tracks):
        h.tokens.remove(tracks[0].path)

        assert h.session.play(tracks[0], tracks) is True
        assert h.tokens.resolve(tracks[0].path) is not None
        assert h.engine.loaded == tracks[0].path

    def test_transient_engine_failure_is_retried_once(self, h: Harness, tracks):
        h.engine.failures_left = 1
        assert h.session.play(tracks[0], tracks) is True
        loads = [c for c in h.engine.calls if c[0] == "load"]
        assert len(loads) == 2

    def test_persistent_failure_leaves_state_unchanged(self, h: Harness, tracks):
        h.session.play(tracks[0], tracks)
        before = h.session.state
        h.engine.fail_paths.add(tracks[2].path)

        assert h.session.play(tracks[2], tracks) is False
        assert h.session.state == before

    def test_missing_file_fails(self, h: Harness, tracks):
        Path(tracks[0].path).unlink()
        assert h.session.play(tracks[0], tracks) is False
        assert h.session.state.current_track is None
        assert h.engine.calls == []

    def test_tokens_released_after_load(self, h: Harness, tracks, monkeypatch):
        handed_out = []
        original = h.tokens.resolve

        def tracking_resolve(path):
            token = original(path)
            if token is not None:
                handed_out.append(token)
            return token

        monkeypatch.setattr(h.tokens, "resolve", tracking_resolve)
        h.tokens.store(Path(tracks[0].path).parent)

        h.session.play(tracks[0], tracks)

        assert [t.path for t in handed_out] == [tracks[0].path, str(Path(tracks[0].path).parent)]
        assert not any(t.is_active for t in handed_out)


    def test_ingested_track_brackets_file_and_folder(self, h: Harness, tmp_path, cache, monkeypatch):
        folder = tmp_path / "session"
        folder.mkdir()
        (folder / "so_what.mp3").write_bytes(b"\x00")
        pipeline = IngestionPipeline(
            MetadataExtractor(FakeTagReader(), FakeContainerReader()), cache, h.tokens,
        )
        [track] = pipeline.run(folder, set(), CancelToken()).tracks

        began: list[str] = []
        original_begin = AccessToken.begin

        def recording_begin(token):
            began.append(token.path)
            original_begin(token)

        monkeypatch.setattr(AccessToken, "begin", recording_begin)
        assert h.session.play(track, [track]) is True

        assert began == [track.path, str(folder)]

class TestTransport:
    def test_pause_and_resume(self, h: Harness, tracks):
        h.session.play(tracks[0], tracks)

        h.session.pause()
        assert not h.session.state.is_playing
        assert not h.poller.is_active

        h.session.resume()
        assert h.session.state.is_playing
        assert h.poller.is_active
        assert h.engine.calls[-2:] == [("pause",), ("play",)]

    def test_pause_and_resume_without_track_are_noops(self, h: Harness):
        h.session.pause()
        h.session.resume()
        assert h.engine.calls == []
        assert h.states == []

    def test_stop(self, h: Harness, tracks):
        h.session.play(tracks[0], tracks)
        h.session.stop()

        state = h.session.state
        assert state.current_track is None
        assert not state.is_playing
        assert not h.poller.is_active
        assert h.engine.loaded is None

    def test_seek_clamps_to_duration(self, h: Harness, tracks):
        h.session.play(tracks[0], tracks)

        h.session.seek(-5)
        assert h.session.state.current_time == 0.0
        h.session.seek(500)
        assert h.session.state.current_time == 200.0
        h.session.seek(42.5)
        assert h.engine.position == 42.5

    def test_seek_without_track_is_ignored(self, h: Harness):
        h.session.seek(10)
        assert h.engine.calls == []

    def test_toggles(self, h: Harness):
        assert h.session.toggle_shuffle() is True
        assert h.session.toggle_repeat() is True
        assert h.session.state.is_shuffle_enabled
        assert h.session.state.is_repeat_enabled
        assert h.session.toggle_shuffle() is False
        assert h.session.toggle_repeat() is False


class TestNavigation:
    def test_next_advances_and_wraps(self, h: Harness, tracks):
        h.session.play(tracks[2], tracks)

        assert h.session.next_track()
        assert h.session.state.current_track is tracks[3]
        assert h.session.next_track()
        assert h.session.state.current_track is tracks[0]

    @pytest.mark.parametrize("length", [1, 2, 10])
    def test_next_wraps_from_every_position(self, h: Harness, tmp_path, length):
        queue = []
        for i in range(length):
            p = tmp_path / f"wrap_{i}.mp3"
            p.write_bytes(b"\x00")
            h.tokens.store(p)
            queue.append(Track(path=str(p)))

        for start in range(length):
            h.session.play(queue[start], queue)
            assert h.session.next_track()
            assert h.session.state.current_index == (start + 1) % length

    def test_next_without_position(self, h: Harness, tracks):
        assert h.session.next_track() is False
        h.session.play(tracks[3], tracks[:2])
        assert h.session.next_track() is False

    def test_shuffle_picks_random_index(self, fake_engine, token_store, tracks):
        rng = FixedRandom(2)
        h = Harness(fake_engine, token_store, rng=rng)
        h.session.play(tracks[0], tracks)
        h.session.toggle_shuffle()

        assert h.session.next_track()
        assert h.session.state.current_track is tracks[2]
        assert rng.calls == [4]

    def test_shuffle_stays_inside_queue(self, fake_engine, token_store, tracks):
        h = Harness(fake_engine, token_store, rng=random.Random(1234))
        h.session.play(tracks[0], tracks)
        h.session.toggle_shuffle()

        for _ in range(200):
            assert h.session.next_track()
            assert 0 <= h.session.state.current_index < len(tracks)

    def test_previous_returns_to_last_started(self, h: Harness, tracks):
        h.session.play(tracks[0], tracks)
        h.session.play(tracks[3], tracks)

        assert h.session.previous_track()
        assert h.session.state.current_track is tracks[0]
        assert h.session.state.play_history == (tracks[0],)

    def test_failed_previous_keeps_history(self, h: Harness, tracks):
        h.session.play(tracks[0], tracks)
        h.session.play(tracks[3], tracks)
        h.engine.fail_paths.add(tracks[0].path)

        assert h.session.previous_track() is False
        assert h.session.state.current_track is tracks[3]
        assert h.session.state.play_history == (tracks[0], tracks[3])

    def test_previous_with_short_history(self, h: Harness, tracks):
        assert h.session.previous_track() is False
        h.session.play(tracks[0], tracks)
        assert h.session.previous_track() is False


class TestElapsedPolling:
    def test_publishes_only_meaningful_changes(self, h: Harness, tracks):
        h.session.play(tracks[0], tracks)
        published = len(h.states)

        h.engine.position = 0.3
        h.poller.fire()
        assert len(h.states) == published
        assert h.session.state.current_time == 0.0

        h.engine.position = 1.2
        h.poller.fire()
        assert len(h.states) == published + 1
        assert h.session.state.current_time == 1.2

    def test_no_polling_while_paused(self, h: Harness, tracks):
        h.session.play(tracks[0], tracks)
        h.session.pause()
        h.engine.position = 30.0
        h.session.poll_elapsed()
        assert h.session.state.current_time == 0.0


class TestEngineFinished:
    def test_finish_is_handled_on_the_dispatcher(self, h: Harness, tracks):
        h.session.play(tracks[0], tracks)

        h.engine.finish(True)
        assert h.played == []
        assert h.session.state.current_track is tracks[0]

        h.dispatcher.process_pending()
        assert h.played == [tracks[0].path]
        assert h.session.state.current_track is tracks[1]

    def test_repeat_replays_the_same_track(self, h: Harness, tracks):
        h.session.play(tracks[0], tracks)
        h.session.toggle_repeat()

        h.engine.finish(True)
        h.dispatcher.process_pending()

        assert h.played == [tracks[0].path]
        assert h.session.state.current_track is tracks[0]
        assert [c for c in h.engine.calls if c[0] == "load"] == [("load", tracks[0].path)] * 2

    def test_error_finish_neither_counts_nor_advances(self, h: Harness, tracks):
        h.session.play(tracks[0], tracks)

        h.engine.finish(False)
        h.dispatcher.process_pending()

        assert h.played == []
        assert h.session.state.current_track is tracks[0]


class TestSubscriptions:
    def test_unsubscribe(self, h: Harness, tracks):
        seen: list[PlaybackState] = []
        unsubscribe = h.session.subscribe(seen.append)
        h.session.toggle_shuffle()
        unsubscribe()
        h.session.toggle_shuffle()
        assert len(seen) == 1

    def test_snapshots_are_frozen(self, h: Harness, tracks):
        queue = list(tracks)
        h.session.play(tracks[0], queue)
        snapshot = h.session.state
        queue.clear()
        h.session.next_track()

        assert snapshot.current_track is tracks[0]
        assert len(snapshot.play_queue) == 4
        with pytest.raises(AttributeError):
            snapshot.is_playing = False  # type: ignore[misc]

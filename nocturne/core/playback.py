"""Playback session -- current track, queue, history, shuffle and repeat."""

from __future__ import annotations

import random
from typing import Callable

from nocturne.core.access_tokens import AccessTokenStore
from nocturne.core.audio_engine import AudioEngine
from nocturne.exceptions import PlaybackError, TokenError
from nocturne.models.playback_state import PlaybackState
from nocturne.models.track import Track
from nocturne.utils.constants import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_TIME_UPDATE_THRESHOLD_SECONDS,
)
from nocturne.utils.dispatch import Dispatcher
from nocturne.utils.interval_timer import TimerFactory, interval_timer_factory
from nocturne.utils.logger import get_logger

logger = get_logger("core.playback")

StateListener = Callable[[PlaybackState], None]


class PlaybackSession:
    """Owns playback state and drives the audio engine.

    Every method must be called on the coordinating context. Engine
    finished notifications and poller ticks are posted there through the
    dispatcher, so state is never touched from another thread.

    Usage:
        session = PlaybackSession(engine, tokens, library.increment_play_count, dispatcher)
        session.subscribe(render)
        session.play(album.tracks[0], list(album.tracks))
    """

    def __init__(
        self,
        engine: AudioEngine,
        access_tokens: AccessTokenStore,
        play_counter: Callable[[Track], None],
        dispatcher: Dispatcher,
        timer_factory: TimerFactory | None = None,
        rng: random.Random | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        time_update_threshold: float = DEFAULT_TIME_UPDATE_THRESHOLD_SECONDS,
    ) -> None:
        """Initialize the session.

        Args:
            engine: Audio output.
            access_tokens: Token store used to open files.
            play_counter: Called with each track that plays to the end.
            dispatcher: Posts engine callbacks onto the coordinating context.
            timer_factory: Builds the elapsed-time poller.
            rng: Random source for shuffle.
            poll_interval: Seconds between elapsed-time polls.
            time_update_threshold: Minimum elapsed-time change to publish.
        """
        self._engine = engine
        self._tokens = access_tokens
        self._play_counter = play_counter
        self._dispatcher = dispatcher
        self._rng = rng or random.Random()
        self._threshold = time_update_threshold

        factory = timer_factory or interval_timer_factory(dispatcher)
        self._poller = factory(poll_interval, self.poll_elapsed)
        self._listeners: list[StateListener] = []

        self._current_track: Track | None = None
        self._is_playing = False
        self._shuffle = False
        self._repeat = False
        self._current_time = 0.0
        self._queue: list[Track] = []
        self._history: list[Track] = []
        self._current_index: int | None = None

        engine.set_finished_callback(self._on_engine_finished)

    # --- State ---

    @property
    def state(self) -> PlaybackState:
        """Immutable snapshot of the session."""
        return PlaybackState(
            current_track=self._current_track,
            is_playing=self._is_playing,
            is_shuffle_enabled=self._shuffle,
            is_repeat_enabled=self._repeat,
            current_time=self._current_time,
            play_queue=tuple(self._queue),
            play_history=tuple(self._history),
            current_index=self._current_index,
        )

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register for state snapshots.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # --- Transport ---

    def play(self, track: Track, track_list: list[Track]) -> bool:
        """Start a track and make ``track_list`` the active queue.

        On a token or engine failure the file's token is re-issued and the
        open is retried once. If that fails too, nothing changes.

        Args:
            track: Track to play.
            track_list: The list the track was picked from.

        Returns:
            True if playback started.
        """
        if not self._open(track):
            return False

        # First occurrence when the list holds the same path more than once
        self._current_index = next(
            (i for i, t in enumerate(track_list) if t.path == track.path), None,
        )
        self._current_track = track
        self._is_playing = True
        self._current_time = 0.0
        if not self._history or self._history[-1].path != track.path:
            self._history.append(track)
        self._queue = list(track_list)
        self._poller.start()

        logger.info("Playing %s - %s", track.artist, track.title)
        self._publish()
        return True

    def pause(self) -> None:
        if self._current_track is None or not self._is_playing:
            return
        self._engine.pause()
        self._is_playing = False
        self._poller.stop()
        self._publish()

    def resume(self) -> None:
        if self._current_track is None or self._is_playing:
            return
        self._engine.play()
        self._is_playing = True
        self._poller.start()
        self._publish()

    def stop(self) -> None:
        """Stop playback and release the engine's file."""
        self._poller.stop()
        self._engine.stop()
        self._current_track = None
        self._is_playing = False
        self._current_time = 0.0
        self._publish()

    def seek(self, seconds: float) -> None:
        """Jump within the current track, clamped to [0, duration]."""
        if self._current_track is None:
            return
        duration = max(0.0, self._engine.duration)
        target = min(max(0.0, seconds), duration)
        self._engine.seek(target)
        self._current_time = target
        self._publish()

    def next_track(self) -> bool:
        """Play the next queue entry (random under shuffle, wrapping otherwise).

        Returns:
            True if a track started.
        """
        if self._current_index is None or not self._queue:
            logger.info("Next track ignored: no current position in the queue")
            return False

        if self._shuffle:
            index = self._rng.randrange(len(self._queue))
        else:
            index = (self._current_index + 1) % len(self._queue)
        return self.play(self._queue[index], self._queue)

    def previous_track(self) -> bool:
        """Go back to the previously started track.

        Returns:
            True if a track started.
        """
        if len(self._history) <= 1:
            return False
        popped = None
        if self._current_track is not None and self._history[-1].path == self._current_track.path:
            popped = self._history.pop()
        if self.play(self._history[-1], self._queue):
            return True
        if popped is not None:
            self._history.append(popped)
        return False

    def toggle_shuffle(self) -> bool:
        self._shuffle = not self._shuffle
        self._publish()
        return self._shuffle

    def toggle_repeat(self) -> bool:
        self._repeat = not self._repeat
        self._publish()
        return self._repeat

    # --- Engine and poller callbacks (coordinating context) ---

    def poll_elapsed(self) -> None:
        """Sample the engine position; publish only on a meaningful change."""
        if self._current_track is None or not self._is_playing:
            return
        now = self._engine.current_time
        if abs(now - self._current_time) > self._threshold:
            self._current_time = now
            self._publish()

    def handle_finished(self, success: bool) -> None:
        """Count the finished track, then replay it (repeat) or advance."""
        track = self._current_track
        if not success:
            logger.error(
                "Playback of %s ended with an error",
                track.path if track else "<no track>",
            )
            return
        if track is None:
            return

        self._play_counter(track)
        if self._repeat:
            self.play(track, self._queue)
        else:
            self.next_track()

    def _on_engine_finished(self, success: bool) -> None:
        # Engine thread -> coordinating context
        self._dispatcher.post(self.handle_finished, success)

    # --- Private ---

    def _open(self, track: Track) -> bool:
        try:
            self._load(track)
            return True
        except (TokenError, PlaybackError) as e:
            logger.warning("Could not open %s (%s), renewing access token", track.path, e)

        try:
            self._tokens.store(track.path)
            self._load(track)
            return True
        except (TokenError, PlaybackError) as e:
            logger.error("Giving up on %s: %s", track.path, e)
            return False

    def _load(self, track: Track) -> None:
        paths = [track.path]
        folder = self._tokens.nearest_stored_ancestor(track.path)
        if folder is not None:
            paths.append(folder)
        with self._tokens.access(*paths):
            self._engine.load(track.path)
            self._engine.play()

    def _publish(self) -> None:
        snapshot = self.state
        for listener in list(self._listeners):
            listener(snapshot)

"""Library service -- the coordinating owner of library state.

Ingestion runs on a background thread; everything else here (and every
callback it posts) runs on the coordinating context, which is the only
place the track store and the index are touched.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable

from nocturne.core.ingestion import IngestionPipeline, IngestionResult
from nocturne.core.library_index import LibraryIndex
from nocturne.core.thumbnail_cache import ThumbnailCache
from nocturne.core.thumbnails import make_thumbnail
from nocturne.db.repositories import PlaylistRepository, TrackRepository
from nocturne.exceptions import PersistenceError
from nocturne.models.album import Album
from nocturne.models.ingestion_phase import IngestionPhase, PhaseUpdate
from nocturne.models.playlist import Playlist
from nocturne.models.search_results import SearchResults
from nocturne.models.track import Track
from nocturne.utils.cancellation import CancelToken
from nocturne.utils.constants import (
    DEFAULT_RECENTLY_ADDED_LIMIT,
    DEFAULT_THUMBNAIL_MAX_DIMENSION,
    DEFAULT_THUMBNAIL_QUALITY,
)
from nocturne.utils.dispatch import Dispatcher
from nocturne.utils.file_utils import common_parent
from nocturne.utils.logger import get_logger

logger = get_logger("core.library")

PhaseListener = Callable[[PhaseUpdate], None]
DoneCallback = Callable[["IngestionHandle"], None]


class IngestionHandle:
    """One ingestion run, as seen from the coordinating context.

    Attributes:
        root: Folder being ingested.
        token: Cancels the run.
        result: Pipeline result, once the run has finished.
        error: Terminal error (e.g. PersistenceError) if the run failed.
    """

    def __init__(self, root: str, replace_paths: frozenset[str] = frozenset()) -> None:
        self.root = root
        self.token = CancelToken()
        self.replace_paths = replace_paths
        self.result: IngestionResult | None = None
        self.error: Exception | None = None
        self._done = threading.Event()
        self._callbacks: list[DoneCallback] = []

    @property
    def is_done(self) -> bool:
        return self._done.is_set()

    @property
    def cancelled(self) -> bool:
        return self.token.is_cancelled()

    @property
    def succeeded(self) -> bool:
        """True if the batch was committed."""
        return (
            self.is_done and not self.cancelled and self.error is None
            and self.result is not None and not self.result.cancelled
        )

    def cancel(self) -> None:
        self.token.cancel()

    def add_done_callback(self, callback: DoneCallback) -> None:
        """Call ``callback(handle)`` on the coordinating context once finished."""
        if self.is_done:
            callback(self)
        else:
            self._callbacks.append(callback)

    def _finish(self) -> None:
        self._done.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self)

    def __repr__(self) -> str:
        return f"IngestionHandle(root={self.root!r}, done={self.is_done}, cancelled={self.cancelled})"


class LibraryService:
    """Runs ingestions and owns every library mutation and query.

    At most one ingestion is active: starting one cancels the previous run.
    A run's batch is committed in one transaction, and only if its token is
    still clear when the result reaches the coordinating context; a
    cancelled run leaves the store exactly as it was.
    """

    def __init__(
        self,
        tracks: TrackRepository,
        playlists: PlaylistRepository,
        index: LibraryIndex,
        pipeline: IngestionPipeline,
        thumbnail_cache: ThumbnailCache,
        dispatcher: Dispatcher,
        thumbnail_max_dimension: int = DEFAULT_THUMBNAIL_MAX_DIMENSION,
        thumbnail_quality: int = DEFAULT_THUMBNAIL_QUALITY,
        recently_added_limit: int = DEFAULT_RECENTLY_ADDED_LIMIT,
    ) -> None:
        self._tracks = tracks
        self._playlists = playlists
        self._index = index
        self._pipeline = pipeline
        self._cache = thumbnail_cache
        self._dispatcher = dispatcher
        self._thumbnail_max_dimension = thumbnail_max_dimension
        self._thumbnail_quality = thumbnail_quality
        self._recently_added_limit = recently_added_limit

        self._active: IngestionHandle | None = None
        self._phase = PhaseUpdate.idle()
        self._phase_listeners: list[PhaseListener] = []

    # --- Phase reporting ---

    @property
    def phase(self) -> PhaseUpdate:
        return self._phase

    @property
    def active_ingest(self) -> IngestionHandle | None:
        return self._active

    def subscribe_phase(self, listener: PhaseListener) -> Callable[[], None]:
        """Register for phase updates. Returns a function that unsubscribes."""
        self._phase_listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._phase_listeners:
                self._phase_listeners.remove(listener)

        return _unsubscribe

    def _set_phase(self, update: PhaseUpdate) -> None:
        self._phase = update
        for listener in list(self._phase_listeners):
            listener(update)

    # --- Ingestion ---

    def start_ingest(
        self,
        root: Path | str,
        on_done: DoneCallback | None = None,
        replace_paths: frozenset[str] = frozenset(),
    ) -> IngestionHandle:
        """Ingest a folder in the background, cancelling any active run.

        Args:
            root: Folder to ingest.
            on_done: Called with the handle on the coordinating context.
            replace_paths: Library paths deleted in the same transaction as
                the new batch (used by album rescans).

        Returns:
            Handle for the new run.
        """
        self.cancel_ingest()

        handle = IngestionHandle(str(root), replace_paths)
        if on_done is not None:
            handle.add_done_callback(on_done)
        self._active = handle
        self._set_phase(PhaseUpdate.idle())

        existing = frozenset(self._tracks.all_paths() - replace_paths)
        thread = threading.Thread(
            target=self._run_pipeline,
            args=(handle, existing),
            name="nocturne-ingest",
            daemon=True,
        )
        thread.start()
        logger.info("Started ingestion of %s", handle.root)
        return handle

    def cancel_ingest(self) -> bool:
        """Cancel the active run, if any. Returns True if one was cancelled."""
        handle = self._active
        if handle is None:
            return False
        handle.cancel()
        self._active = None
        self._set_phase(PhaseUpdate.idle())
        logger.info("Cancelled ingestion of %s", handle.root)
        return True

    def rescan_album(self, album: Album, on_done: DoneCallback | None = None) -> IngestionHandle | None:
        """Re-ingest the folder holding an album's tracks.

        The album's current tracks are deleted in the same transaction that
        saves the rescanned batch, so a cancelled rescan keeps them.

        Returns:
            The handle, or None if the album has no common folder.
        """
        folder = common_parent(album.paths)
        if folder is None:
            logger.warning("Album '%s' has no common folder to rescan", album.name)
            return None
        logger.info("Rescanning album '%s' in %s", album.name, folder)
        return self.start_ingest(folder, on_done, replace_paths=frozenset(album.paths))

    def _run_pipeline(self, handle: IngestionHandle, existing: frozenset[str]) -> None:
        # Background thread: only the pipeline and dispatcher are touched here
        try:
            result = self._pipeline.run(
                handle.root,
                existing,
                handle.token,
                lambda update: self._dispatcher.post(self._on_progress, handle, update),
            )
        except Exception as e:
            logger.error("Ingestion of %s crashed: %s", handle.root, e, exc_info=True)
            self._dispatcher.post(self._fail_ingest, handle, e)
            return
        self._dispatcher.post(self._finish_ingest, handle, result)

    def _on_progress(self, handle: IngestionHandle, update: PhaseUpdate) -> None:
        if handle is not self._active or handle.cancelled:
            return
        self._set_phase(update)

    def _finish_ingest(self, handle: IngestionHandle, result: IngestionResult) -> None:
        handle.result = result
        if handle.cancelled or handle is not self._active or result.cancelled:
            logger.info("Discarding results of cancelled ingestion of %s", handle.root)
            handle._finish()
            return

        self._set_phase(PhaseUpdate(IngestionPhase.SAVING, 0.0))
        for path in handle.replace_paths:
            self._tracks.delete(Track(path=path))
        for track in result.tracks:
            self._tracks.insert(track)
        try:
            self._tracks.save()
        except PersistenceError as e:
            handle.error = e
            logger.error("Could not save ingestion batch for %s: %s", handle.root, e)
        else:
            self._index.invalidate()
            self._set_phase(PhaseUpdate(IngestionPhase.SAVING, 1.0))
            logger.info("Saved %d new tracks from %s", result.new_count, handle.root)

        self._active = None
        self._set_phase(PhaseUpdate.idle())
        handle._finish()

    def _fail_ingest(self, handle: IngestionHandle, error: Exception) -> None:
        handle.error = error
        if handle is self._active:
            self._active = None
            self._set_phase(PhaseUpdate.idle())
        handle._finish()

    # --- Mutations ---

    def delete_album(self, album: Album) -> None:
        """Delete every track of an album.

        Raises:
            PersistenceError: If the deletion cannot be committed.
        """
        for track in album.tracks:
            self._tracks.delete(track)
        self._tracks.save()
        self._index.invalidate()
        logger.info("Deleted album '%s' (%d tracks)", album.name, album.total_tracks)

    def clear_library(self) -> None:
        """Delete every track and cached thumbnail, cancelling any ingestion.

        Raises:
            PersistenceError: If the deletion cannot be committed.
        """
        self.cancel_ingest()
        self._tracks.delete_all()
        self._tracks.save()
        self._cache.clear()
        self._index.invalidate()
        logger.info("Library cleared")

    def toggle_favorite(self, track: Track) -> bool:
        """Flip a track's favorite flag. Returns the new value."""
        favorite = not track.favorite
        self._tracks.set_favorite(track.path, favorite)
        track.favorite = favorite
        return favorite

    def increment_play_count(self, track: Track) -> None:
        """Record one completed play. Failures are logged, not raised."""
        try:
            count = self._tracks.increment_play_count(track.path)
        except PersistenceError as e:
            logger.error("Could not record play of %s: %s", track.path, e)
            return
        if count is None:
            logger.warning("Play count not updated, track not in library: %s", track.path)
            return
        track.play_count = count

    def regenerate_thumbnails(self) -> int:
        """Rebuild every album thumbnail from its artwork.

        Returns:
            Number of albums that got a thumbnail.
        """
        self._cache.clear()
        regenerated = 0
        for album in self._index.albums():
            thumbnail = make_thumbnail(
                album.artwork, self._thumbnail_max_dimension, self._thumbnail_quality,
            )
            if thumbnail is not None:
                self._cache.set(album.name, thumbnail)
                regenerated += 1
            for track in album.tracks:
                self._tracks.update_thumbnail(track.path, thumbnail)
        self._index.invalidate()
        logger.info("Regenerated thumbnails for %d albums", regenerated)
        return regenerated

    # --- Queries ---

    def albums(self, artist: str | None = None) -> list[Album]:
        return self._index.albums(artist)

    def artists(self) -> list[str]:
        return self._index.artists()

    def search(self, query: str) -> SearchResults:
        return self._index.search(query)

    def recently_added(self) -> list[Album]:
        return self._index.recently_added(self._recently_added_limit)

    def favorites(self) -> list[Track]:
        return self._index.favorites()

    def find_album(self, name: str) -> Album | None:
        """Album with exactly this name (case-insensitive), or None."""
        wanted = name.casefold()
        return next((a for a in self._index.albums() if a.name.casefold() == wanted), None)

    # --- Playlists ---

    def playlists(self) -> list[Playlist]:
        return self._playlists.get_all()

    def playlist(self, playlist_id: str) -> Playlist | None:
        return self._playlists.get_by_id(playlist_id)

    def create_playlist(self, name: str) -> Playlist:
        return self._playlists.create(name)

    def rename_playlist(self, playlist_id: str, name: str) -> bool:
        return self._playlists.rename(playlist_id, name)

    def delete_playlist(self, playlist_id: str) -> bool:
        return self._playlists.delete(playlist_id)

    def add_to_playlist(self, playlist_id: str, track: Track) -> bool:
        return self._playlists.add_track(playlist_id, track)

    def remove_from_playlist(self, playlist_id: str, track: Track) -> bool:
        return self._playlists.remove_track(playlist_id, track)

"""Service wiring -- builds Nocturne's object graph from an AppConfig."""

from __future__ import annotations

from dataclasses import dataclass

from nocturne.core.access_tokens import AccessTokenStore
from nocturne.core.audio_engine import AudioEngine
from nocturne.core.ingestion import IngestionPipeline
from nocturne.core.library import LibraryService
from nocturne.core.library_index import LibraryIndex
from nocturne.core.metadata_extractor import MetadataExtractor
from nocturne.core.playback import PlaybackSession
from nocturne.core.scanner import FolderScanner
from nocturne.core.thumbnail_cache import ThumbnailCache
from nocturne.db.database import Database
from nocturne.db.repositories import PlaylistRepository, TrackRepository
from nocturne.models.config import AppConfig
from nocturne.utils.dispatch import Dispatcher
from nocturne.utils.interval_timer import TimerFactory
from nocturne.utils.logger import get_logger

logger = get_logger("app")


@dataclass
class Services:
    """Everything a front end needs, built once and passed around explicitly."""

    database: Database
    tracks: TrackRepository
    playlists: PlaylistRepository
    access_tokens: AccessTokenStore
    thumbnail_cache: ThumbnailCache
    index: LibraryIndex
    pipeline: IngestionPipeline
    library: LibraryService
    playback: PlaybackSession | None = None

    def close(self) -> None:
        """Stop playback, cancel ingestion, and close the database."""
        if self.playback is not None:
            self.playback.stop()
        self.library.cancel_ingest()
        self.database.close()


def build_services(
    config: AppConfig,
    dispatcher: Dispatcher,
    engine: AudioEngine | None = None,
    timer_factory: TimerFactory | None = None,
    database: Database | None = None,
) -> Services:
    """Construct and connect every service.

    Args:
        config: Validated application config.
        dispatcher: Coordinating context for background results.
        engine: Audio output; without one no playback session is built.
        timer_factory: Poller timer factory (default: thread-based).
        database: Pre-built database (default: ``config.database_path``).

    Returns:
        Wired Services.
    """
    db = database or Database(config.database_path_resolved)
    connection = db.connect()

    tracks = TrackRepository(connection)
    playlists = PlaylistRepository(connection)
    # Workers write tokens while the coordinating context commits batches
    tokens = AccessTokenStore(db.open_connection())
    cache = ThumbnailCache(config.thumbnail_cache_dir_resolved)

    index = LibraryIndex(
        tracks,
        ttl_seconds=config.index_cache_ttl_seconds,
        search_min_chars=config.search_min_chars,
    )
    pipeline = IngestionPipeline(
        MetadataExtractor(),
        cache,
        tokens,
        scanner=FolderScanner(config.scan_progress_interval),
        max_concurrent_extractions=config.max_concurrent_extractions,
        max_concurrent_thumbnails=config.max_concurrent_thumbnails,
        workers=config.extraction_workers,
        progress_interval=config.processing_progress_interval,
        thumbnail_max_dimension=config.thumbnail_max_dimension,
        thumbnail_quality=config.thumbnail_quality,
    )
    library = LibraryService(
        tracks,
        playlists,
        index,
        pipeline,
        cache,
        dispatcher,
        thumbnail_max_dimension=config.thumbnail_max_dimension,
        thumbnail_quality=config.thumbnail_quality,
        recently_added_limit=config.recently_added_limit,
    )

    playback = None
    if engine is not None:
        playback = PlaybackSession(
            engine,
            tokens,
            library.increment_play_count,
            dispatcher,
            timer_factory=timer_factory,
            poll_interval=config.poll_interval_seconds,
            time_update_threshold=config.time_update_threshold_seconds,
        )

    logger.debug("Services built (database: %s)", db.path)
    return Services(
        database=db,
        tracks=tracks,
        playlists=playlists,
        access_tokens=tokens,
        thumbnail_cache=cache,
        index=index,
        pipeline=pipeline,
        library=library,
        playback=playback,
    )

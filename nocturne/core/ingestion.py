"""Ingestion pipeline -- scan, extract, thumbnail, and dedupe a library folder.

The pipeline turns a folder into a batch of new, unsaved Track objects. It
never touches the track store; LibraryService commits the batch from the
coordinating context once the run finishes uncancelled.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from nocturne.core.access_tokens import AccessTokenStore
from nocturne.core.metadata_extractor import MetadataExtractor
from nocturne.core.scanner import FolderScanner
from nocturne.core.thumbnail_cache import ThumbnailCache
from nocturne.core.thumbnails import make_thumbnail
from nocturne.exceptions import MetadataError, TokenError
from nocturne.models.ingestion_phase import IngestionPhase, PhaseUpdate
from nocturne.models.track import Track
from nocturne.utils.admission_gate import AdmissionGate
from nocturne.utils.cancellation import CancelToken
from nocturne.utils.constants import (
    DEFAULT_EXTRACTION_WORKERS,
    DEFAULT_MAX_CONCURRENT_EXTRACTIONS,
    DEFAULT_MAX_CONCURRENT_THUMBNAILS,
    DEFAULT_PROCESSING_PROGRESS_INTERVAL,
    DEFAULT_THUMBNAIL_MAX_DIMENSION,
    DEFAULT_THUMBNAIL_QUALITY,
)
from nocturne.utils.logger import get_logger

logger = get_logger("core.ingestion")

ProgressCallback = Callable[[PhaseUpdate], None]


@dataclass
class IngestionResult:
    """Outcome of one pipeline run.

    Attributes:
        root: Folder that was ingested.
        tracks: New tracks in discovery order (empty when cancelled).
        discovered: Audio files the scanner found.
        skipped: Files already in the library.
        failed: Files that could not be read or extracted.
        cancelled: True if the run stopped on its cancel token.
    """

    root: str
    tracks: list[Track] = field(default_factory=list)
    discovered: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False

    @property
    def new_count(self) -> int:
        return len(self.tracks)

    def summary(self) -> str:
        """One-line human-readable summary."""
        if self.cancelled:
            return f"Cancelled ingestion of {self.root}"
        return (
            f"{self.new_count} new, {self.skipped} already in library, "
            f"{self.failed} failed ({self.discovered} files found)"
        )


class IngestionPipeline:
    """Folder -> new tracks, with bounded concurrency and cooperative cancellation.

    Phases reported through ``on_progress``:

    1. ``SCANNING_FILES``: the scanner's batched progress.
    2. ``PROCESSING_FILES``: every N completed files and always on the last.
       The fractions never decrease and reach 1.0 exactly once.

    Per-file work runs on a thread pool. Each unit is admitted through the
    extraction gate; thumbnail get-or-generate goes through its own (by
    default serial) gate so two tracks of one album never render the same
    thumbnail twice. Results are consumed on the calling thread only.
    """

    def __init__(
        self,
        extractor: MetadataExtractor,
        thumbnail_cache: ThumbnailCache,
        access_tokens: AccessTokenStore,
        scanner: FolderScanner | None = None,
        max_concurrent_extractions: int = DEFAULT_MAX_CONCURRENT_EXTRACTIONS,
        max_concurrent_thumbnails: int = DEFAULT_MAX_CONCURRENT_THUMBNAILS,
        workers: int = DEFAULT_EXTRACTION_WORKERS,
        progress_interval: int = DEFAULT_PROCESSING_PROGRESS_INTERVAL,
        thumbnail_max_dimension: int = DEFAULT_THUMBNAIL_MAX_DIMENSION,
        thumbnail_quality: int = DEFAULT_THUMBNAIL_QUALITY,
    ) -> None:
        """Initialize the pipeline.

        Args:
            extractor: Turns a file into a Track.
            thumbnail_cache: Shared per-album thumbnail cache.
            access_tokens: Token store; new files get a token before reading.
            scanner: Folder scanner (default: FolderScanner()).
            max_concurrent_extractions: Admission limit for per-file work.
            max_concurrent_thumbnails: Admission limit for thumbnail work.
            workers: Thread pool size.
            progress_interval: Report processing progress every N files.
            thumbnail_max_dimension: Longest thumbnail edge in pixels.
            thumbnail_quality: Thumbnail JPEG quality.
        """
        if progress_interval < 1:
            raise ValueError(f"progress_interval must be >= 1, got {progress_interval}")
        self._extractor = extractor
        self._cache = thumbnail_cache
        self._tokens = access_tokens
        self._scanner = scanner or FolderScanner()
        self._extraction_gate = AdmissionGate(max_concurrent_extractions)
        self._thumbnail_gate = AdmissionGate(max_concurrent_thumbnails)
        self._workers = max(1, workers)
        self._progress_interval = progress_interval
        self._thumbnail_max_dimension = thumbnail_max_dimension
        self._thumbnail_quality = thumbnail_quality

    @property
    def extraction_gate(self) -> AdmissionGate:
        return self._extraction_gate

    @property
    def thumbnail_gate(self) -> AdmissionGate:
        return self._thumbnail_gate

    def run(
        self,
        root: Path | str,
        existing_paths: set[str] | frozenset[str],
        cancel_token: CancelToken,
        on_progress: ProgressCallback | None = None,
    ) -> IngestionResult:
        """Ingest one folder.

        A token is stored for the root folder first and held for the whole
        run. An unreachable root still completes, with nothing found.

        Args:
            root: Folder to scan.
            existing_paths: Paths already in the library; these are skipped.
            cancel_token: Checked before every unit of work and every
                progress report. Once observed, the run returns with
                ``cancelled=True`` and reports nothing more.
            on_progress: Receives PhaseUpdate objects on this thread.

        Returns:
            IngestionResult with the new tracks and counters.
        """
        result = IngestionResult(root=str(root))
        folder = self._grant_folder(root)
        if folder is None:
            return self._run(result, None, existing_paths, cancel_token, on_progress)
        with self._tokens.access(folder):
            return self._run(result, folder, existing_paths, cancel_token, on_progress)

    def _run(
        self,
        result: IngestionResult,
        folder: str | None,
        existing_paths: set[str] | frozenset[str],
        cancel_token: CancelToken,
        on_progress: ProgressCallback | None,
    ) -> IngestionResult:
        root = result.root

        # --- Phase 1: scan ---
        if not self._emit(on_progress, cancel_token, IngestionPhase.SCANNING_FILES, 0.0):
            return self._cancelled(result)

        def _on_scan_progress(fraction: float) -> None:
            self._emit(on_progress, cancel_token, IngestionPhase.SCANNING_FILES, fraction)

        paths = self._scanner.scan(root, cancel_token, _on_scan_progress)
        if cancel_token.is_cancelled():
            return self._cancelled(result)

        result.discovered = len(paths)
        new_paths = [p for p in paths if p not in existing_paths]
        result.skipped = result.discovered - len(new_paths)
        logger.info(
            "Found %d audio files in %s (%d new, %d already in library)",
            result.discovered, root, len(new_paths), result.skipped,
        )

        # --- Phase 2: extract ---
        if not self._emit(on_progress, cancel_token, IngestionPhase.PROCESSING_FILES, 0.0):
            return self._cancelled(result)

        if not new_paths:
            if not self._emit(on_progress, cancel_token, IngestionPhase.PROCESSING_FILES, 1.0):
                return self._cancelled(result)
            return result

        extracted = self._process_all(new_paths, folder, cancel_token, on_progress, result)
        if extracted is None:
            return self._cancelled(result)

        # Keep discovery order (newest first) rather than completion order
        result.tracks = [extracted[p] for p in new_paths if p in extracted]
        self._backfill_thumbnails(result.tracks)

        logger.info("Ingestion of %s finished: %s", root, result.summary())
        return result

    # --- Private: processing ---

    def _process_all(
        self,
        paths: list[str],
        folder: str | None,
        cancel_token: CancelToken,
        on_progress: ProgressCallback | None,
        result: IngestionResult,
    ) -> dict[str, Track] | None:
        """Fan paths out to the pool and consume results here.

        Returns:
            Extracted tracks by path, or None if the run was cancelled.
        """
        total = len(paths)
        completed = 0
        extracted: dict[str, Track] = {}

        # Managed manually (no `with`) so cancellation can tear the pool
        # down without waiting for queued work
        pool = ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="nocturne-ingest")
        interrupted = False
        try:
            future_to_path = {
                pool.submit(self._process_file, path, folder, cancel_token): path for path in paths
            }
            for future in as_completed(future_to_path):
                if cancel_token.is_cancelled():
                    interrupted = True
                    break

                completed += 1
                path = future_to_path[future]
                try:
                    track = future.result()
                except (MetadataError, TokenError) as e:
                    result.failed += 1
                    logger.warning("Skipping %s: %s", path, e)
                except Exception as e:
                    result.failed += 1
                    logger.error("Unexpected error processing %s: %s", path, e, exc_info=True)
                else:
                    if track is not None:
                        extracted[path] = track

                if completed % self._progress_interval == 0 or completed == total:
                    if not self._emit(
                        on_progress, cancel_token,
                        IngestionPhase.PROCESSING_FILES, completed / total,
                    ):
                        interrupted = True
                        break
        finally:
            if interrupted:
                pool.shutdown(wait=False, cancel_futures=True)
            else:
                pool.shutdown(wait=True)

        if interrupted or cancel_token.is_cancelled():
            return None
        return extracted

    def _process_file(self, path: str, folder: str | None, cancel_token: CancelToken) -> Track | None:
        """Worker: token, extract, thumbnail. Runs on a pool thread.

        The file is read with both its own token and, when the run holds
        one, the root folder's token active.

        Returns:
            The new Track, or None if cancelled while waiting for admission.

        Raises:
            TokenError: If the file cannot be granted a token.
            MetadataError: If the file cannot be read.
        """
        if not self._extraction_gate.acquire(cancel_token):
            return None
        try:
            if cancel_token.is_cancelled():
                return None
            self._tokens.store(path)
            scope = (folder, path) if folder is not None else (path,)
            with self._tokens.access(*scope):
                track = self._extractor.extract(path)
            if track.album:
                track.thumbnail = self._resolve_thumbnail(track, cancel_token)
            return track
        finally:
            self._extraction_gate.release()

    def _resolve_thumbnail(self, track: Track, cancel_token: CancelToken) -> bytes | None:
        """Get the album's cached thumbnail, generating and caching it on a miss."""
        if not self._thumbnail_gate.acquire(cancel_token):
            return None
        try:
            cached = self._cache.get(track.album)
            if cached is not None:
                return cached
            if not track.artwork:
                return None
            thumbnail = make_thumbnail(
                track.artwork, self._thumbnail_max_dimension, self._thumbnail_quality,
            )
            if thumbnail is not None:
                try:
                    self._cache.set(track.album, thumbnail)
                except OSError as e:
                    logger.warning("Could not cache thumbnail for '%s': %s", track.album, e)
            return thumbnail
        finally:
            self._thumbnail_gate.release()

    def _grant_folder(self, root: Path | str) -> str | None:
        """Store a token for the root folder. Returns its path, or None if unreachable."""
        try:
            return self._tokens.store(root).path
        except TokenError as e:
            logger.warning("No folder access token for %s: %s", root, e)
            return None

    def _backfill_thumbnails(self, tracks: list[Track]) -> None:
        """Give artwork-less tracks the thumbnail a sibling put in the cache."""
        filled = 0
        for track in tracks:
            if track.album and track.thumbnail is None:
                cached = self._cache.get(track.album)
                if cached is not None:
                    track.thumbnail = cached
                    filled += 1
        if filled:
            logger.debug("Back-filled %d thumbnails from album siblings", filled)

    # --- Private: reporting ---

    @staticmethod
    def _emit(
        on_progress: ProgressCallback | None,
        cancel_token: CancelToken,
        phase: IngestionPhase,
        fraction: float,
    ) -> bool:
        """Report progress unless cancelled. Returns False if cancelled."""
        if cancel_token.is_cancelled():
            return False
        if on_progress is not None:
            on_progress(PhaseUpdate(phase, min(1.0, max(0.0, fraction))))
        return True

    @staticmethod
    def _cancelled(result: IngestionResult) -> IngestionResult:
        logger.info("Ingestion of %s cancelled", result.root)
        result.tracks = []
        result.cancelled = True
        return result

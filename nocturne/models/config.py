"""Typed configuration model for Nocturne."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path

from nocturne.utils.constants import (
    DEFAULT_DB_FILENAME,
    DEFAULT_EXTRACTION_WORKERS,
    DEFAULT_INDEX_CACHE_TTL_SECONDS,
    DEFAULT_MAX_CONCURRENT_EXTRACTIONS,
    DEFAULT_MAX_CONCURRENT_THUMBNAILS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_PROCESSING_PROGRESS_INTERVAL,
    DEFAULT_RECENTLY_ADDED_LIMIT,
    DEFAULT_SCAN_PROGRESS_INTERVAL,
    DEFAULT_SEARCH_MIN_CHARS,
    DEFAULT_THUMBNAIL_DIRNAME,
    DEFAULT_THUMBNAIL_MAX_DIMENSION,
    DEFAULT_THUMBNAIL_QUALITY,
    DEFAULT_TIME_UPDATE_THRESHOLD_SECONDS,
)


@dataclass
class AppConfig:
    """Strongly-typed configuration for Nocturne.

    Attributes:
        library_folders: Folders ingested by ``nocturne sync``.
        database_path: SQLite database file for tracks, playlists and tokens.
        thumbnail_cache_dir: Directory for cached album thumbnails.
        thumbnail_max_dimension: Longest edge of generated thumbnails, in pixels.
        thumbnail_quality: JPEG quality (1-95) for generated thumbnails.
        max_concurrent_extractions: Admission limit for per-file metadata work.
        max_concurrent_thumbnails: Admission limit for thumbnail generation.
        extraction_workers: Thread pool size for per-file work.
        scan_progress_interval: Scanner reports progress every N entries.
        processing_progress_interval: Pipeline reports progress every N files.
        index_cache_ttl_seconds: How long derived album lists stay cached.
        poll_interval_seconds: Elapsed-time poller interval during playback.
        time_update_threshold_seconds: Minimum elapsed-time change to publish.
        search_min_chars: Shortest query that runs a library search.
        recently_added_limit: Maximum albums in the recently-added list.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        log_file: Path to log file (None = console only).
    """

    # --- Library ---
    library_folders: list[str] = field(default_factory=list)
    database_path: str = DEFAULT_DB_FILENAME

    # --- Thumbnails ---
    thumbnail_cache_dir: str = DEFAULT_THUMBNAIL_DIRNAME
    thumbnail_max_dimension: int = DEFAULT_THUMBNAIL_MAX_DIMENSION
    thumbnail_quality: int = DEFAULT_THUMBNAIL_QUALITY

    # --- Ingestion ---
    max_concurrent_extractions: int = DEFAULT_MAX_CONCURRENT_EXTRACTIONS
    max_concurrent_thumbnails: int = DEFAULT_MAX_CONCURRENT_THUMBNAILS
    extraction_workers: int = DEFAULT_EXTRACTION_WORKERS
    scan_progress_interval: int = DEFAULT_SCAN_PROGRESS_INTERVAL
    processing_progress_interval: int = DEFAULT_PROCESSING_PROGRESS_INTERVAL

    # --- Library Index ---
    index_cache_ttl_seconds: float = DEFAULT_INDEX_CACHE_TTL_SECONDS
    search_min_chars: int = DEFAULT_SEARCH_MIN_CHARS
    recently_added_limit: int = DEFAULT_RECENTLY_ADDED_LIMIT

    # --- Playback ---
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    time_update_threshold_seconds: float = DEFAULT_TIME_UPDATE_THRESHOLD_SECONDS

    # --- Logging ---
    log_level: str = "INFO"
    log_file: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> AppConfig:
        """Create an AppConfig from a raw dictionary (e.g., from YAML).

        Unknown keys are silently ignored so YAML files with extra keys
        don't break older code.

        Args:
            data: Dictionary of configuration values.

        Returns:
            Populated AppConfig instance.
        """
        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in known_fields and v is not None}
        if "library_folders" in filtered:
            filtered["library_folders"] = [str(p) for p in filtered["library_folders"]]
        return cls(**filtered)

    def to_dict(self) -> dict:
        return asdict(self)

    @property
    def library_folders_resolved(self) -> list[Path]:
        """Library folders as expanded, resolved paths."""
        return [Path(p).expanduser().resolve() for p in self.library_folders]

    @property
    def database_path_resolved(self) -> Path:
        return Path(self.database_path).expanduser()

    @property
    def thumbnail_cache_dir_resolved(self) -> Path:
        return Path(self.thumbnail_cache_dir).expanduser()

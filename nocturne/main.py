"""Nocturne -- Entry point and application initialization."""

from __future__ import annotations

import argparse
import signal
import sys
from pathlib import Path

import yaml

from nocturne.utils.constants import (
    APP_NAME,
    APP_VERSION,
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_EXTRACTION_WORKERS,
    DEFAULT_INDEX_CACHE_TTL_SECONDS,
    DEFAULT_MAX_CONCURRENT_EXTRACTIONS,
    DEFAULT_MAX_CONCURRENT_THUMBNAILS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_PROCESSING_PROGRESS_INTERVAL,
    DEFAULT_RECENTLY_ADDED_LIMIT,
    DEFAULT_SCAN_PROGRESS_INTERVAL,
    DEFAULT_SEARCH_MIN_CHARS,
    DEFAULT_THUMBNAIL_MAX_DIMENSION,
    DEFAULT_THUMBNAIL_QUALITY,
    DEFAULT_TIME_UPDATE_THRESHOLD_SECONDS,
)
from nocturne.utils.logger import get_logger, setup_logger

# Directories that should never be ingested as a whole (exact matches).
_DANGEROUS_PATHS = frozenset(
    {
        "/",
        "/usr",
        "/etc",
        "/var",
        "/tmp",
        "/proc",
        "/sys",
        "/dev",
        "/System",
        "/Library",
        "/Applications",
        "/bin",
        "/sbin",
        "/lib",
        "/opt",
    }
)

# Minimum number of path components (after the root) for a library folder.
# "/home" has 1 component and would scan every user's files.
_MIN_PATH_DEPTH = 2

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# key -> (default, minimum)
_POSITIVE_INTS = {
    "thumbnail_max_dimension": (DEFAULT_THUMBNAIL_MAX_DIMENSION, 1),
    "max_concurrent_extractions": (DEFAULT_MAX_CONCURRENT_EXTRACTIONS, 1),
    "max_concurrent_thumbnails": (DEFAULT_MAX_CONCURRENT_THUMBNAILS, 1),
    "extraction_workers": (DEFAULT_EXTRACTION_WORKERS, 1),
    "scan_progress_interval": (DEFAULT_SCAN_PROGRESS_INTERVAL, 1),
    "processing_progress_interval": (DEFAULT_PROCESSING_PROGRESS_INTERVAL, 1),
    "search_min_chars": (DEFAULT_SEARCH_MIN_CHARS, 1),
    "recently_added_limit": (DEFAULT_RECENTLY_ADDED_LIMIT, 1),
}

# key -> (default, minimum, minimum is exclusive)
_NON_NEGATIVE_FLOATS = {
    "index_cache_ttl_seconds": (DEFAULT_INDEX_CACHE_TTL_SECONDS, 0.0, False),
    "poll_interval_seconds": (DEFAULT_POLL_INTERVAL_SECONDS, 0.0, True),
    "time_update_threshold_seconds": (DEFAULT_TIME_UPDATE_THRESHOLD_SECONDS, 0.0, False),
}


def _is_dangerous_path(resolved: str) -> str | None:
    """Check if a resolved path is too broad to ingest as a library folder.

    Uses two strategies:
    1. Exact blocklist for known system directories.
    2. Depth check -- paths with fewer than ``_MIN_PATH_DEPTH`` components
       after the filesystem root are considered dangerous (e.g. ``/home``).

    Args:
        resolved: Resolved, normalized path string.

    Returns:
        A human-readable reason string if the path is dangerous, or None
        if it's safe.
    """
    normalized = resolved.rstrip("/\\") or "/"

    for dangerous in _DANGEROUS_PATHS:
        if normalized.lower() == dangerous.lower():
            return f"resolves to a known system directory ({normalized})."

    depth = len(Path(normalized).parts) - 1
    if depth < _MIN_PATH_DEPTH:
        return (
            f"is only {depth} level(s) deep from the filesystem root. "
            f"Library folders should be at least {_MIN_PATH_DEPTH} levels "
            f"deep (e.g. '/home/me/Music')."
        )
    return None


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: dict) -> list[str]:
    """Validate configuration values and return a list of warnings.

    Checks:
    - library_folders is a list of folders that exist and are not system
      directories or filesystem roots
    - counts and limits are positive integers
    - thumbnail_quality is within 1-95
    - intervals and TTLs are non-negative numbers
    - log_level is a known logging level

    Invalid values are replaced with their defaults in ``config``.

    Args:
        config: Configuration dictionary.

    Returns:
        List of human-readable warning strings. Empty if all checks pass.
    """
    warnings: list[str] = []

    folders = config.get("library_folders")
    if folders is not None:
        if isinstance(folders, str):
            folders = [folders]
            config["library_folders"] = folders
        if not isinstance(folders, list):
            warnings.append(
                f"library_folders must be a list of paths, got {folders!r}. Ignoring it."
            )
            config["library_folders"] = []
            folders = []
        for folder in folders:
            resolved = Path(str(folder)).expanduser().resolve()
            reason = _is_dangerous_path(str(resolved))
            if reason:
                warnings.append(f"library folder '{folder}' {reason}")
            elif not resolved.is_dir():
                warnings.append(f"library folder '{folder}' does not exist or is not a folder.")

    for key, (default, minimum) in _POSITIVE_INTS.items():
        value = config.get(key, default)
        if not isinstance(value, int) or isinstance(value, bool) or value < minimum:
            warnings.append(
                f"{key} must be an integer >= {minimum}, got {value!r}. "
                f"Using default ({default})."
            )
            config[key] = default

    quality = config.get("thumbnail_quality", DEFAULT_THUMBNAIL_QUALITY)
    if not isinstance(quality, int) or isinstance(quality, bool) or not (1 <= quality <= 95):
        warnings.append(
            f"thumbnail_quality must be 1-95, got {quality!r}. "
            f"Using default ({DEFAULT_THUMBNAIL_QUALITY})."
        )
        config["thumbnail_quality"] = DEFAULT_THUMBNAIL_QUALITY

    for key, (default, minimum, exclusive) in _NON_NEGATIVE_FLOATS.items():
        value = config.get(key, default)
        too_small = _is_number(value) and (value <= minimum if exclusive else value < minimum)
        if not _is_number(value) or too_small:
            bound = ">" if exclusive else ">="
            warnings.append(
                f"{key} must be a number {bound} {minimum:g}, got {value!r}. "
                f"Using default ({default:g})."
            )
            config[key] = default

    log_level = config.get("log_level", "INFO")
    if not isinstance(log_level, str) or log_level.upper() not in _LOG_LEVELS:
        warnings.append(f"log_level '{log_level}' is not a logging level. Using INFO.")
        config["log_level"] = "INFO"
    else:
        config["log_level"] = log_level.upper()

    return warnings


def load_config(path: Path | str | None = None) -> dict:
    """Load configuration from config.yaml.

    Args:
        path: Explicit config file. Defaults to ``config/config.yaml`` at the
            project root.

    Returns:
        Configuration dictionary (suitable for ``AppConfig.from_dict()``).
    """
    config: dict = {}

    config_path = (
        Path(path) if path
        else Path(__file__).parent.parent / "config" / DEFAULT_CONFIG_FILENAME
    )
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}

    return config


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nocturne",
        description=f"{APP_NAME} -- local music library and player",
    )
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {APP_VERSION}")

    commands = parser.add_subparsers(dest="command")
    sync = commands.add_parser("sync", help="Ingest library folders (default)")
    sync.add_argument("folders", nargs="*", help="Folders to ingest instead of the configured ones")
    play = commands.add_parser("play", help="Play an album by name")
    play.add_argument("album", help="Album name (case-insensitive)")
    play.add_argument("--shuffle", action="store_true", help="Shuffle the album")
    play.add_argument("--repeat", action="store_true", help="Repeat the current track")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Application entry point. Loads config, sets up logging, and runs a command."""
    from nocturne.models.config import AppConfig

    args = _build_parser().parse_args(argv)

    raw_config = load_config(args.config)

    # Validate the raw dict first (mutates to fix invalid values)
    config_warnings = validate_config(raw_config)

    # Build typed config from the validated dict
    config = AppConfig.from_dict(raw_config)

    setup_logger(log_level=config.log_level, log_file=config.log_file)
    logger = get_logger("main")

    logger.info("%s v%s starting", APP_NAME, APP_VERSION)

    for warning in config_warnings:
        logger.warning("Config: %s", warning)

    try:
        from PyQt6.QtCore import QCoreApplication
    except ImportError as e:
        logger.error("PyQt6 is required: %s", e)
        logger.info("Install with: pip install PyQt6")
        sys.exit(1)

    from nocturne.app import build_services
    from nocturne.gui.dispatcher import QtDispatcher

    app = QCoreApplication(sys.argv[:1])
    app.setApplicationName(APP_NAME)
    app.setApplicationVersion(APP_VERSION)
    # Let Ctrl+C end the event loop
    signal.signal(signal.SIGINT, signal.SIG_DFL)

    dispatcher = QtDispatcher()

    if args.command == "play":
        from nocturne.gui.audio_engine import QtAudioEngine
        from nocturne.gui.timer import qt_timer_factory

        services = build_services(
            config, dispatcher, engine=QtAudioEngine(), timer_factory=qt_timer_factory,
        )
        exit_code = _run_play(app, services, args, logger)
    else:
        services = build_services(config, dispatcher)
        folders = getattr(args, "folders", None) or config.library_folders
        exit_code = _run_sync(app, services, folders, logger)

    services.close()
    sys.exit(exit_code)


def _run_sync(app, services, folders: list[str], logger) -> int:
    """Ingest folders one after the other on the Qt event loop."""
    if not folders:
        logger.error("No library folders configured. Set library_folders in config/config.yaml.")
        return 1

    library = services.library
    pending = [str(Path(f).expanduser()) for f in folders]
    failures: list[str] = []

    def _on_phase(update) -> None:
        if update.phase.is_active():
            logger.info("%s %3.0f%%", update.label, update.progress * 100)

    def _next(handle=None) -> None:
        if handle is not None:
            if handle.error is not None:
                failures.append(handle.root)
                logger.error("Ingestion of %s failed: %s", handle.root, handle.error)
            elif handle.result is not None:
                logger.info("%s: %s", handle.root, handle.result.summary())
        if not pending:
            app.quit()
            return
        library.start_ingest(pending.pop(0), on_done=_next)

    library.subscribe_phase(_on_phase)
    _next()
    app.exec()

    albums = library.albums()
    logger.info(
        "Library: %d albums, %d tracks",
        len(albums), sum(a.total_tracks for a in albums),
    )
    return 1 if failures else 0


def _run_play(app, services, args, logger) -> int:
    """Play one album until interrupted."""
    album = services.library.find_album(args.album)
    if album is None:
        logger.error("Album not found: %s", args.album)
        return 1

    session = services.playback
    if args.shuffle:
        session.toggle_shuffle()
    if args.repeat:
        session.toggle_repeat()

    last_path: list[str | None] = [None]  # mutable for closure

    def _on_state(state) -> None:
        track_path = state.current_track.path if state.current_track else None
        if track_path == last_path[0]:
            return
        last_path[0] = track_path
        if state.current_track is not None:
            logger.info(
                "Now playing: %s - %s [%s]",
                state.current_track.artist,
                state.current_track.title,
                state.current_track.duration,
            )

    session.subscribe(_on_state)
    tracks = list(album.tracks)
    if not session.play(tracks[0], tracks):
        logger.error("Could not start playback of '%s'", album.name)
        return 1

    logger.info("Playing '%s' (%d tracks). Press Ctrl+C to stop.", album.name, album.total_tracks)
    return app.exec()


if __name__ == "__main__":
    main()

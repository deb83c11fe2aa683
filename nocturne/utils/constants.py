"""Named constants for Nocturne. No magic numbers."""

import os as _os

# --- Application ---
APP_NAME = "Nocturne"
APP_VERSION = "0.1.0"

# --- Supported Audio Extensions ---
SUPPORTED_EXTENSIONS = frozenset({
    ".mp3",
    ".m4a",
    ".flac",
    ".aac",
})

# Directories with these suffixes are opaque bundles; nothing under them is scanned.
PACKAGE_DIR_SUFFIXES = frozenset({
    ".app",
    ".bundle",
    ".framework",
    ".plugin",
    ".kext",
    ".pkg",
    ".photoslibrary",
    ".musiclibrary",
    ".logicx",
    ".band",
    ".rtfd",
})

# --- Scanning ---
DEFAULT_SCAN_PROGRESS_INTERVAL = 50  # Report scan progress every N entries

# --- Ingestion ---
DEFAULT_PROCESSING_PROGRESS_INTERVAL = 10  # Report processing progress every N files
DEFAULT_MAX_CONCURRENT_EXTRACTIONS = 4
DEFAULT_MAX_CONCURRENT_THUMBNAILS = 1  # Serial: avoids generating one album's thumbnail twice
# Half the logical cores, minimum 2, so the coordinating thread stays responsive.
DEFAULT_EXTRACTION_WORKERS = max(2, (_os.cpu_count() or 4) // 2)
GATE_CANCEL_POLL_SECONDS = 0.05  # How often a queued worker re-checks its cancel token

# --- Metadata Defaults ---
DEFAULT_ARTIST = "Unknown Artist"
DEFAULT_ALBUM = "Unknown Album"
DEFAULT_GENRE = "Unknown Genre"
DEFAULT_ALBUM_ARTIST = "Unknown"
DEFAULT_TRACK_NUMBER = -1
DEFAULT_DISC_NUMBER = -1
DEFAULT_RELEASE_YEAR = 0
DEFAULT_DURATION = "0:00"
SECONDS_PER_MINUTE = 60

# --- ID3 Tag Constants ---
ID3_PICTURE_TYPE_COVER_FRONT = 3

# --- Thumbnails ---
DEFAULT_THUMBNAIL_MAX_DIMENSION = 300
DEFAULT_THUMBNAIL_QUALITY = 80
THUMBNAIL_FILE_SUFFIX = ".jpg"

# --- Library Index ---
DEFAULT_INDEX_CACHE_TTL_SECONDS = 300.0  # 5 minutes
ALL_ARTISTS_KEY = "__all__"
DEFAULT_SEARCH_MIN_CHARS = 3
DEFAULT_RECENTLY_ADDED_LIMIT = 100

# --- Playback ---
DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_TIME_UPDATE_THRESHOLD_SECONDS = 0.5

# --- Paths ---
DEFAULT_CONFIG_FILENAME = "config.yaml"
DEFAULT_LOG_FILENAME = "nocturne.log"
DEFAULT_DB_FILENAME = "nocturne.db"
DEFAULT_THUMBNAIL_DIRNAME = "thumbnails"

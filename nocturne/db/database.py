"""SQLite database for the track library, playlists, and access tokens."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from nocturne.utils.constants import DEFAULT_DB_FILENAME
from nocturne.utils.logger import get_logger

logger = get_logger("db.database")

SCHEMA_VERSION = 1

CREATE_TABLES_SQL = """
-- Tracks: one row per audio file, keyed by its unique path
CREATE TABLE IF NOT EXISTS tracks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL,
    artist TEXT NOT NULL,
    album TEXT NOT NULL,
    album_artist TEXT,
    genre TEXT NOT NULL,
    disc_number INTEGER NOT NULL DEFAULT -1,
    track_number INTEGER NOT NULL DEFAULT -1,
    duration TEXT NOT NULL DEFAULT '0:00',
    release_year INTEGER NOT NULL DEFAULT 0,
    artwork BLOB,
    thumbnail BLOB,
    play_count INTEGER NOT NULL DEFAULT 0 CHECK (play_count >= 0),
    favorite INTEGER NOT NULL DEFAULT 0,
    added_at TEXT NOT NULL
);

-- Playlists: membership is non-owning (deleting a playlist keeps its tracks)
CREATE TABLE IF NOT EXISTS playlists (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS playlist_tracks (
    playlist_id TEXT NOT NULL,
    track_id INTEGER NOT NULL,
    position INTEGER NOT NULL,
    PRIMARY KEY (playlist_id, track_id),
    FOREIGN KEY (playlist_id) REFERENCES playlists(id) ON DELETE CASCADE,
    FOREIGN KEY (track_id) REFERENCES tracks(id) ON DELETE CASCADE
);

-- Access tokens: renewable read capabilities per file or folder path
CREATE TABLE IF NOT EXISTS access_tokens (
    path TEXT PRIMARY KEY,
    token TEXT NOT NULL,
    device INTEGER NOT NULL,
    inode INTEGER NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_tracks_album ON tracks(album);
CREATE INDEX IF NOT EXISTS idx_tracks_artist ON tracks(artist);
CREATE INDEX IF NOT EXISTS idx_tracks_favorite ON tracks(favorite);
CREATE INDEX IF NOT EXISTS idx_playlist_tracks_track ON playlist_tracks(track_id);
"""


class Database:
    """SQLite database manager for Nocturne.

    Handles connection management and schema creation. The main connection
    belongs to the coordinating context; components that write from worker
    threads (the access token store) get their own connection through
    :meth:`open_connection` so their commits never interleave with a track
    batch transaction.
    """

    def __init__(self, db_path: Path | str | None = None) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file, or ``":memory:"``. If
                None, uses the default filename in the current directory.
        """
        self._db_path = str(db_path) if db_path else DEFAULT_DB_FILENAME
        self._connection: sqlite3.Connection | None = None
        self._extra_connections: list[sqlite3.Connection] = []

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def is_memory(self) -> bool:
        return self._db_path == ":memory:"

    def connect(self) -> sqlite3.Connection:
        """Open the main connection and ensure the schema exists.

        Returns:
            Active SQLite connection.
        """
        if self._connection is not None:
            return self._connection

        self._connection = self._open()
        self._ensure_schema_version(self._connection)
        logger.info("Database connected: %s", self._db_path)
        return self._connection

    def open_connection(self) -> sqlite3.Connection:
        """Open an additional connection to the same database.

        For ``":memory:"`` databases this is a separate, empty database with
        the same schema, which is enough for components that own their tables.

        Returns:
            A new SQLite connection, closed together with the database.
        """
        conn = self._open()
        self._extra_connections.append(conn)
        return conn

    def close(self) -> None:
        """Close every connection opened by this manager."""
        for conn in self._extra_connections:
            conn.close()
        self._extra_connections.clear()
        if self._connection:
            self._connection.close()
            self._connection = None
            logger.debug("Database connection closed")

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active connection, connecting if necessary."""
        if self._connection is None:
            return self.connect()
        return self._connection

    def _open(self) -> sqlite3.Connection:
        if not self.is_memory:
            Path(self._db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)

        # check_same_thread=False: the coordinating context may be a different
        # thread from the one that opened the database (e.g. a Qt main thread).
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.executescript(CREATE_TABLES_SQL)
        return conn

    def _ensure_schema_version(self, conn: sqlite3.Connection) -> None:
        """Record the schema version on first use and flag newer databases."""
        cursor = conn.execute("SELECT version FROM schema_version")
        row = cursor.fetchone()

        if row is None:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info("Database schema created (version %d)", SCHEMA_VERSION)
        elif row["version"] > SCHEMA_VERSION:
            logger.warning(
                "Database schema v%d is newer than this build (v%d); "
                "some data may be ignored",
                row["version"], SCHEMA_VERSION,
            )

    def __enter__(self) -> Database:
        """Open the database connection for use as a context manager."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the database connection when exiting the context."""
        self.close()

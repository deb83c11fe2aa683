"""Data access layer -- repository pattern for tracks, playlists, and tokens."""

from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Callable

from nocturne.exceptions import PersistenceError
from nocturne.models.playlist import Playlist, normalize_playlist_name
from nocturne.models.track import Track
from nocturne.utils.logger import get_logger

logger = get_logger("db.repositories")


def _row_to_track(row: sqlite3.Row) -> Track:
    """Convert a ``tracks`` row to a Track object."""
    return Track(
        path=row["path"],
        title=row["title"],
        artist=row["artist"],
        album=row["album"],
        album_artist=row["album_artist"],
        genre=row["genre"],
        disc_number=row["disc_number"],
        track_number=row["track_number"],
        duration=row["duration"],
        release_year=row["release_year"],
        artwork=row["artwork"],
        thumbnail=row["thumbnail"],
        play_count=row["play_count"],
        favorite=bool(row["favorite"]),
        added_at=_parse_timestamp(row["added_at"]),
        id=row["id"],
    )


def _parse_timestamp(raw: str | None) -> datetime:
    if not raw:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        logger.warning("Unparseable timestamp in database: %r", raw)
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class TrackRepository:
    """Transactional store for Track objects, keyed by unique path.

    ``insert`` and ``delete`` only stage changes; ``save`` commits everything
    staged in one transaction. A failed save rolls the whole transaction back
    and discards the staged changes, so readers only ever see the library as
    it was before the save or as it is after it.

    Must only be used from the coordinating context.
    """

    # Whitelist of allowed column names for SQL construction.
    _VALID_COLUMNS: frozenset[str] = frozenset({
        "path", "title", "artist", "album", "album_artist", "genre",
        "disc_number", "track_number", "duration", "release_year",
        "artwork", "thumbnail", "play_count", "favorite", "added_at",
    })

    def __init__(self, connection: sqlite3.Connection) -> None:
        """Initialize with an active database connection.

        Args:
            connection: SQLite connection (with Row factory enabled).
        """
        self._conn = connection
        self._pending_inserts: list[Track] = []
        self._pending_deletes: list[str] = []
        self._pending_wipe = False

    # --- Unit of work ---

    def insert(self, track: Track) -> None:
        """Stage a new track for the next :meth:`save`.

        Raises:
            ValueError: If as_dict() contains keys not in the column whitelist.
        """
        invalid = set(track.as_dict()) - self._VALID_COLUMNS
        if invalid:
            raise ValueError(f"Track.as_dict() contains unexpected keys: {invalid}")
        self._pending_inserts.append(track)

    def delete(self, track: Track) -> None:
        """Stage a track deletion for the next :meth:`save`."""
        self._pending_deletes.append(track.path)

    def delete_all(self) -> None:
        """Stage deletion of every track for the next :meth:`save`."""
        self._pending_wipe = True

    @property
    def has_changes(self) -> bool:
        return bool(self._pending_inserts or self._pending_deletes or self._pending_wipe)

    def save(self) -> None:
        """Commit all staged inserts and deletes in one transaction.

        Deletes are applied before inserts, so a rescan can delete and
        re-insert the same paths in one save.

        Raises:
            PersistenceError: On I/O failure or constraint violation (e.g. a
                duplicate path). Nothing staged is applied in that case.
        """
        if not self.has_changes:
            return

        inserts = self._pending_inserts
        deletes = self._pending_deletes
        wipe = self._pending_wipe
        self.discard()

        try:
            with self._conn:
                if wipe:
                    self._conn.execute("DELETE FROM tracks")
                for path in deletes:
                    self._conn.execute("DELETE FROM tracks WHERE path = ?", (path,))
                for track in inserts:
                    data = track.as_dict()
                    columns = ", ".join(data.keys())
                    placeholders = ", ".join("?" for _ in data)
                    cursor = self._conn.execute(
                        f"INSERT INTO tracks ({columns}) VALUES ({placeholders})",
                        list(data.values()),
                    )
                    track.id = cursor.lastrowid
        except sqlite3.Error as e:
            for track in inserts:
                track.id = None
            logger.error(
                "Save failed (%d inserts, %d deletes): %s", len(inserts), len(deletes), e,
            )
            raise PersistenceError(f"Could not save tracks: {e}") from e

        logger.debug("Saved %d inserts, %d deletes", len(inserts), len(deletes))

    def discard(self) -> None:
        """Drop all staged changes without touching the database."""
        self._pending_inserts = []
        self._pending_deletes = []
        self._pending_wipe = False

    # --- Queries ---

    def fetch(self, predicate: Callable[[Track], bool] | None = None) -> list[Track]:
        """Retrieve committed tracks, optionally filtered.

        Args:
            predicate: Optional filter applied to each Track.

        Returns:
            Matching tracks ordered by album, disc and track number.
        """
        cursor = self._conn.execute(
            "SELECT * FROM tracks ORDER BY album, disc_number, track_number, path"
        )
        tracks = [_row_to_track(row) for row in cursor.fetchall()]
        if predicate is None:
            return tracks
        return [t for t in tracks if predicate(t)]

    def get_by_path(self, path: str) -> Track | None:
        """Retrieve a track by its file path, or None if not found."""
        cursor = self._conn.execute("SELECT * FROM tracks WHERE path = ?", (path,))
        row = cursor.fetchone()
        return _row_to_track(row) if row else None

    def all_paths(self) -> set[str]:
        """Return the set of every committed track path."""
        cursor = self._conn.execute("SELECT path FROM tracks")
        return {row["path"] for row in cursor.fetchall()}

    def count(self) -> int:
        cursor = self._conn.execute("SELECT COUNT(*) FROM tracks")
        return cursor.fetchone()[0]

    # --- In-place mutations (committed immediately) ---

    def increment_play_count(self, path: str) -> int | None:
        """Add one to a track's play count.

        Returns:
            The new play count, or None if no track has that path.

        Raises:
            PersistenceError: On database failure.
        """
        try:
            with self._conn:
                cursor = self._conn.execute(
                    "UPDATE tracks SET play_count = play_count + 1 WHERE path = ?", (path,),
                )
                if cursor.rowcount == 0:
                    return None
                row = self._conn.execute(
                    "SELECT play_count FROM tracks WHERE path = ?", (path,),
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not update play count: {e}") from e
        return row["play_count"]

    def set_favorite(self, path: str, favorite: bool) -> bool:
        """Set a track's favorite flag. Returns True if a row was updated."""
        return self._update_column(path, "favorite", int(favorite))

    def update_thumbnail(self, path: str, thumbnail: bytes | None) -> bool:
        """Replace a track's thumbnail. Returns True if a row was updated."""
        return self._update_column(path, "thumbnail", thumbnail)

    def _update_column(self, path: str, column: str, value: object) -> bool:
        if column not in self._VALID_COLUMNS:
            raise ValueError(f"Unknown column: {column}")
        try:
            with self._conn:
                cursor = self._conn.execute(
                    f"UPDATE tracks SET {column} = ? WHERE path = ?", (value, path),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not update {column}: {e}") from e
        return cursor.rowcount > 0


class PlaylistRepository:
    """Data access layer for playlists and their (non-owning) membership."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        """Initialize with an active database connection.

        Args:
            connection: SQLite connection (with Row factory enabled).
        """
        self._conn = connection

    def create(self, name: str) -> Playlist:
        """Create an empty playlist.

        Raises:
            ValueError: If the name is empty after trimming.
        """
        playlist = Playlist(id=uuid.uuid4().hex, name=name)
        with self._conn:
            self._conn.execute(
                "INSERT INTO playlists (id, name, created_at) VALUES (?, ?, ?)",
                (playlist.id, playlist.name, playlist.created_at.isoformat()),
            )
        logger.info("Created playlist '%s'", playlist.name)
        return playlist

    def rename(self, playlist_id: str, name: str) -> bool:
        """Rename a playlist. Returns True if it existed.

        Raises:
            ValueError: If the name is empty after trimming.
        """
        trimmed = normalize_playlist_name(name)
        with self._conn:
            cursor = self._conn.execute(
                "UPDATE playlists SET name = ? WHERE id = ?", (trimmed, playlist_id),
            )
        return cursor.rowcount > 0

    def delete(self, playlist_id: str) -> bool:
        """Delete a playlist and its membership rows (never the tracks)."""
        with self._conn:
            cursor = self._conn.execute("DELETE FROM playlists WHERE id = ?", (playlist_id,))
        return cursor.rowcount > 0

    def add_track(self, playlist_id: str, track: Track) -> bool:
        """Append a track to a playlist.

        Returns:
            True if added, False if the track was already a member.

        Raises:
            ValueError: If the track is not in the library.
        """
        track_id = self._track_id(track)
        with self._conn:
            row = self._conn.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 AS next FROM playlist_tracks "
                "WHERE playlist_id = ?",
                (playlist_id,),
            ).fetchone()
            cursor = self._conn.execute(
                "INSERT OR IGNORE INTO playlist_tracks (playlist_id, track_id, position) "
                "VALUES (?, ?, ?)",
                (playlist_id, track_id, row["next"]),
            )
        return cursor.rowcount > 0

    def remove_track(self, playlist_id: str, track: Track) -> bool:
        """Remove a track from a playlist. Returns True if it was a member."""
        track_id = self._track_id(track)
        with self._conn:
            cursor = self._conn.execute(
                "DELETE FROM playlist_tracks WHERE playlist_id = ? AND track_id = ?",
                (playlist_id, track_id),
            )
        return cursor.rowcount > 0

    def get_by_id(self, playlist_id: str) -> Playlist | None:
        """Load one playlist with its tracks, or None if not found."""
        row = self._conn.execute(
            "SELECT * FROM playlists WHERE id = ?", (playlist_id,),
        ).fetchone()
        return self._row_to_playlist(row) if row else None

    def get_all(self) -> list[Playlist]:
        """Load every playlist (oldest first) with its tracks."""
        cursor = self._conn.execute("SELECT * FROM playlists ORDER BY created_at, name")
        return [self._row_to_playlist(row) for row in cursor.fetchall()]

    def _row_to_playlist(self, row: sqlite3.Row) -> Playlist:
        cursor = self._conn.execute(
            "SELECT t.* FROM playlist_tracks pt JOIN tracks t ON t.id = pt.track_id "
            "WHERE pt.playlist_id = ? ORDER BY pt.position",
            (row["id"],),
        )
        return Playlist(
            id=row["id"],
            name=row["name"],
            tracks=[_row_to_track(r) for r in cursor.fetchall()],
            created_at=_parse_timestamp(row["created_at"]),
        )

    def _track_id(self, track: Track) -> int:
        if track.id is not None:
            return track.id
        row = self._conn.execute(
            "SELECT id FROM tracks WHERE path = ?", (track.path,),
        ).fetchone()
        if row is None:
            raise ValueError(f"Track is not in the library: {track.path}")
        track.id = row["id"]
        return track.id


class AccessTokenRepository:
    """Raw storage for access tokens. Locking is the caller's job."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        """Initialize with a connection dedicated to token storage.

        Args:
            connection: SQLite connection (with Row factory enabled).
        """
        self._conn = connection

    def put(self, path: str, token: str, device: int, inode: int) -> None:
        """Insert or replace the token for a path."""
        with self._conn:
            self._conn.execute(
                """INSERT OR REPLACE INTO access_tokens (path, token, device, inode, created_at)
                   VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP)""",
                (path, token, device, inode),
            )

    def get(self, path: str) -> sqlite3.Row | None:
        return self._conn.execute(
            "SELECT * FROM access_tokens WHERE path = ?", (path,),
        ).fetchone()

    def remove(self, path: str) -> bool:
        with self._conn:
            cursor = self._conn.execute("DELETE FROM access_tokens WHERE path = ?", (path,))
        return cursor.rowcount > 0

    def all_paths(self) -> list[str]:
        cursor = self._conn.execute("SELECT path FROM access_tokens ORDER BY path")
        return [row["path"] for row in cursor.fetchall()]

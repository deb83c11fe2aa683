"""Metadata extractor -- turns an audio file into a Track via mutagen."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import mutagen
from mutagen.flac import Picture
from mutagen.id3 import ID3

from nocturne.exceptions import MetadataError
from nocturne.models.track import Track
from nocturne.utils.constants import (
    DEFAULT_ALBUM,
    DEFAULT_ARTIST,
    DEFAULT_DISC_NUMBER,
    DEFAULT_GENRE,
    DEFAULT_RELEASE_YEAR,
    DEFAULT_TRACK_NUMBER,
    ID3_PICTURE_TYPE_COVER_FRONT,
)
from nocturne.utils.file_utils import format_duration
from nocturne.utils.logger import get_logger

logger = get_logger("core.metadata_extractor")


@dataclass
class TagFields:
    """Values read from a file's tags. None means "not present"."""

    title: str | None = None
    artist: str | None = None
    album: str | None = None
    album_artist: str | None = None
    genre: str | None = None
    track_number: int | None = None
    disc_number: int | None = None
    release_year: int | None = None
    artwork: bytes | None = None


@dataclass
class ContainerInfo:
    """Container-level facts, independent of the tag format."""

    duration: float | None = None
    artwork: bytes | None = None


class TagReader(Protocol):
    def read(self, path: str) -> TagFields | None:
        """Read tags. Must not raise; None means the tags were unreadable."""
        ...


class ContainerReader(Protocol):
    def read(self, path: str) -> ContainerInfo | None:
        """Read duration and any embedded picture. Must not raise."""
        ...


# --- Picture helpers shared by both readers ---

def _embedded_pictures(audio: Any) -> list[tuple[int, bytes]]:
    """List (picture type, data) pairs for every picture in a mutagen file.

    MP4 ``covr`` atoms carry no picture type and are reported as front covers.
    """
    pictures: list[tuple[int, bytes]] = []
    tags = getattr(audio, "tags", None)

    if isinstance(tags, ID3):
        for frame in tags.getall("APIC"):
            pictures.append((int(frame.type), bytes(frame.data)))

    for pic in getattr(audio, "pictures", None) or []:
        pictures.append((int(pic.type), bytes(pic.data)))

    if tags is not None and hasattr(tags, "get") and not isinstance(tags, ID3):
        for cover in tags.get("covr") or []:
            pictures.append((ID3_PICTURE_TYPE_COVER_FRONT, bytes(cover)))
        for encoded in tags.get("metadata_block_picture") or []:
            try:
                pic = Picture(base64.b64decode(encoded))
            except (binascii.Error, mutagen.MutagenError, ValueError) as e:
                logger.debug("Skipping undecodable embedded picture: %s", e)
                continue
            pictures.append((int(pic.type), bytes(pic.data)))

    return [(kind, data) for kind, data in pictures if data]


class MutagenTagReader:
    """Reads common tags (easy interface) plus the front cover."""

    def read(self, path: str) -> TagFields | None:
        try:
            audio = mutagen.File(path, easy=True)
            if audio is None:
                logger.debug("Mutagen could not identify: %s", path)
                return None

            raw_track = self._get_tag(audio, "tracknumber")
            raw_disc = self._get_tag(audio, "discnumber")
            fields = TagFields(
                title=self._get_tag(audio, "title"),
                artist=self._get_tag(audio, "artist"),
                album=self._get_tag(audio, "album"),
                album_artist=self._get_tag(audio, "albumartist"),
                genre=self._get_tag(audio, "genre"),
                track_number=parse_position(raw_track),
                disc_number=parse_position(raw_disc),
                release_year=parse_year(self._get_tag(audio, "date")),
            )

            # The easy interface hides pictures; reopen with full tags
            full = mutagen.File(path)
            front = [data for kind, data in _embedded_pictures(full)
                     if kind == ID3_PICTURE_TYPE_COVER_FRONT]
            fields.artwork = front[0] if front else None
            return fields

        except (mutagen.MutagenError, OSError, ValueError) as e:
            logger.warning("Error reading tags from %s: %s", path, e)
            return None

    def _get_tag(self, audio: Any, key: str) -> str | None:
        """Extract a single tag value from a mutagen file object.

        Args:
            audio: Mutagen file object (opened with easy=True).
            key: Tag key name.

        Returns:
            Tag value as string, or None.
        """
        try:
            value = audio.get(key)
            if value:
                # Mutagen returns lists for most tag types
                if isinstance(value, list):
                    return str(value[0]).strip() if value[0] else None
                return str(value).strip() or None
        except (KeyError, IndexError, TypeError, ValueError):
            pass
        return None


class MutagenContainerReader:
    """Reads stream duration and the first embedded picture of any type."""

    def read(self, path: str) -> ContainerInfo | None:
        try:
            audio = mutagen.File(path)
        except (mutagen.MutagenError, OSError, ValueError) as e:
            logger.warning("Error opening container %s: %s", path, e)
            return None
        if audio is None:
            return None

        duration = None
        info = getattr(audio, "info", None)
        if info is not None:
            duration = getattr(info, "length", None)

        pictures = _embedded_pictures(audio)
        return ContainerInfo(
            duration=duration,
            artwork=pictures[0][1] if pictures else None,
        )


def parse_year(date_str: str | None) -> int | None:
    """Parse a year from a date string (may be 'YYYY', 'YYYY-MM-DD', etc.).

    Args:
        date_str: Raw date string from tags.

    Returns:
        Four-digit year as int, or None.
    """
    if not date_str:
        return None
    try:
        # Take first 4 characters as the year
        year = int(date_str[:4])
        if 1900 <= year <= 2100:
            return year
    except (ValueError, IndexError):
        pass
    return None


def parse_position(raw: str | None) -> int | None:
    """Parse a track/disc number from a string (may be '5' or '5/12').

    Args:
        raw: Raw track number string.

    Returns:
        Number as int, or None.
    """
    if not raw:
        return None
    try:
        return int(raw.split("/")[0].strip())
    except (ValueError, IndexError):
        return None


class MetadataExtractor:
    """Builds a Track from a file: tags, then container fallbacks, then defaults.

    Usage:
        extractor = MetadataExtractor()
        track = extractor.extract("/music/album/01.mp3")
    """

    def __init__(
        self,
        tag_reader: TagReader | None = None,
        container_reader: ContainerReader | None = None,
    ) -> None:
        self._tag_reader = tag_reader or MutagenTagReader()
        self._container_reader = container_reader or MutagenContainerReader()

    def extract(self, path: Path | str) -> Track:
        """Extract a Track for one file.

        Tags the reader cannot supply fall back to defaults; artwork the tag
        reader does not supply falls back to any picture in the container.
        A file mutagen cannot parse still yields a Track with default values.

        Args:
            path: Audio file to read.

        Returns:
            New, unsaved Track.

        Raises:
            MetadataError: If the file cannot be opened at all.
        """
        key = str(path)
        try:
            with open(key, "rb"):
                pass
        except OSError as e:
            raise MetadataError(f"Cannot read {key}: {e.strerror or e}") from e

        tags = self._tag_reader.read(key) or TagFields()
        container = self._container_reader.read(key) or ContainerInfo()

        track = Track(
            path=key,
            title=tags.title or Path(key).name,
            artist=tags.artist or DEFAULT_ARTIST,
            album=tags.album or DEFAULT_ALBUM,
            album_artist=tags.album_artist,
            genre=tags.genre or DEFAULT_GENRE,
            track_number=_or_default(tags.track_number, DEFAULT_TRACK_NUMBER),
            disc_number=_or_default(tags.disc_number, DEFAULT_DISC_NUMBER),
            release_year=_or_default(tags.release_year, DEFAULT_RELEASE_YEAR),
            duration=format_duration(container.duration),
            artwork=tags.artwork or container.artwork,
        )
        logger.debug("Extracted %s -> %s - %s", track.file_name, track.artist, track.title)
        return track


def _or_default(value: int | None, default: int) -> int:
    return default if value is None else value

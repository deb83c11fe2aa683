"""Tests for LibraryIndex -- album grouping, caching, search, and derived views."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from nocturne.core.library_index import LibraryIndex, group_albums
from nocturne.db.repositories import TrackRepository
from nocturne.models.track import Track
from nocturne.utils.constants import DEFAULT_ALBUM_ARTIST


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _add(repo: TrackRepository, *tracks: Track) -> None:
    for t in tracks:
        repo.insert(t)
    repo.save()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def index(track_repo: TrackRepository, clock: FakeClock) -> LibraryIndex:
    return LibraryIndex(track_repo, ttl_seconds=300, clock=clock, search_min_chars=3)


@pytest.fixture
def library(track_repo: TrackRepository) -> TrackRepository:
    _add(
        track_repo,
        Track(path="/m/kob/02.mp3", title="Freddie Freeloader", artist="Miles Davis",
              album="Kind of Blue", track_number=2, added_at=T0),
        Track(path="/m/kob/01.mp3", title="So What", artist="Miles Davis",
              album="Kind of Blue", album_artist="Miles Davis", track_number=1,
              thumbnail=b"kob-thumb", added_at=T0),
        Track(path="/m/ms/01.mp3", title="Moanin'", artist="Art Blakey",
              album="Moanin'", genre="Hard Bop", added_at=T0 + timedelta(days=2)),
        Track(path="/m/comp/01.mp3", title="Blue Monk", artist="Thelonious Monk",
              album="Jazz Classics", disc_number=2, track_number=1,
              added_at=T0 + timedelta(days=1)),
        Track(path="/m/comp/02.mp3", title="Walkin'", artist="Miles Davis",
              album="Jazz Classics", disc_number=1, track_number=5,
              favorite=True, added_at=T0 + timedelta(days=1)),
        Track(path="/m/loose.mp3", title="Demo", artist="anonymous", album=""),
    )
    return track_repo


class TestGroupAlbums:
    def test_groups_by_name_sorted(self):
        albums = group_albums([
            Track(path="/b1", album="B"),
            Track(path="/a1", album="A"),
            Track(path="/b2", album="B"),
        ])
        assert [a.name for a in albums] == ["A", "B"]
        assert albums[1].total_tracks == 2

    def test_empty_album_name_is_not_an_album(self):
        assert group_albums([Track(path="/x", album="")]) == []

    def test_tracks_sorted_by_disc_then_track(self):
        album = group_albums([
            Track(path="/3", album="A", disc_number=2, track_number=1),
            Track(path="/2", album="A", disc_number=1, track_number=9),
            Track(path="/1", album="A", disc_number=1, track_number=2),
        ])[0]
        assert album.paths == ["/1", "/2", "/3"]

    def test_album_fields_come_from_first_track(self):
        album = group_albums([
            Track(path="/2", album="A", track_number=2, genre="Rock", artwork=b"two"),
            Track(path="/1", album="A", track_number=1, genre="Jazz", release_year=1959),
        ])[0]
        assert album.genre == "Jazz"
        assert album.release_year == 1959
        assert album.album_artist == DEFAULT_ALBUM_ARTIST
        # First track has no artwork, so the next one that does wins
        assert album.artwork == b"two"


class TestAlbums:
    def test_all_albums(self, index: LibraryIndex, library):
        albums = index.albums()
        assert [a.name for a in albums] == ["Jazz Classics", "Kind of Blue", "Moanin'"]
        kob = albums[1]
        assert [t.title for t in kob.tracks] == ["So What", "Freddie Freeloader"]
        assert kob.album_artist == "Miles Davis"
        assert kob.thumbnail == b"kob-thumb"

    def test_artist_filter_keeps_only_their_tracks(self, index: LibraryIndex, library):
        albums = index.albums("Miles Davis")
        assert [a.name for a in albums] == ["Jazz Classics", "Kind of Blue"]
        assert [t.title for t in albums[0].tracks] == ["Walkin'"]

    def test_cached_until_ttl(self, index: LibraryIndex, track_repo, library, clock: FakeClock):
        assert len(index.albums()) == 3
        _add(track_repo, Track(path="/m/new/01.mp3", album="Blue Train"))

        clock.now += 299
        assert len(index.albums()) == 3

        clock.now += 2
        assert len(index.albums()) == 4

    def test_invalidate(self, index: LibraryIndex, track_repo, library):
        index.albums()
        _add(track_repo, Track(path="/m/new/01.mp3", album="Blue Train"))
        index.invalidate()
        assert "Blue Train" in [a.name for a in index.albums()]

    def test_cache_is_per_artist(self, index: LibraryIndex, track_repo, library):
        index.albums("Art Blakey")
        _add(track_repo, Track(path="/m/new/01.mp3", artist="Art Blakey", album="Free for All"))
        # The all-artists view was never cached, so it sees the new album
        assert "Free for All" in [a.name for a in index.albums()]
        assert [a.name for a in index.albums("Art Blakey")] == ["Moanin'"]

    def test_returned_list_is_a_copy(self, index: LibraryIndex, library):
        index.albums().clear()
        assert len(index.albums()) == 3


class TestDerivedViews:
    def test_artists(self, index: LibraryIndex, library):
        assert index.artists() == ["anonymous", "Art Blakey", "Miles Davis", "Thelonious Monk"]

    def test_recently_added(self, index: LibraryIndex, library):
        assert [a.name for a in index.recently_added(2)] == ["Moanin'", "Jazz Classics"]

    def test_favorites(self, index: LibraryIndex, library):
        assert [t.title for t in index.favorites()] == ["Walkin'"]


class TestSearch:
    def test_short_query_returns_nothing(self, index: LibraryIndex, library):
        assert index.search("so").is_empty
        assert index.search("  so  ").is_empty

    def test_matches_albums_and_tracks(self, index: LibraryIndex, library):
        results = index.search("BLUE")
        assert [a.name for a in results.albums] == ["Kind of Blue"]
        assert [t.title for t in results.tracks] == ["Blue Monk", "Freddie Freeloader", "So What"]

    def test_album_matches_on_album_artist(self, index: LibraryIndex, library):
        results = index.search("miles davis")
        assert [a.name for a in results.albums] == ["Kind of Blue"]
        assert len(results.tracks) == 3

    def test_no_match(self, index: LibraryIndex, library):
        results = index.search("coltrane")
        assert results.is_empty
        assert results.total_count == 0

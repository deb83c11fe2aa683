"""Tests for nocturne/utils/file_utils.py -- path checks and duration formatting."""

from pathlib import Path

import pytest

from nocturne.utils.file_utils import (
    album_cache_key,
    common_parent,
    format_duration,
    is_audio_file,
    is_hidden,
    is_package_dir,
)

# ---------------------------------------------------------------------------
# is_audio_file
# ---------------------------------------------------------------------------


class TestIsAudioFile:
    @pytest.mark.parametrize("name", ["a.mp3", "b.m4a", "c.flac", "d.aac"])
    def test_supported_extensions(self, name):
        assert is_audio_file(name)

    def test_case_insensitive(self):
        assert is_audio_file("LOUD.MP3")
        assert is_audio_file(Path("/music/Song.FlAc"))

    @pytest.mark.parametrize("name", ["a.ogg", "b.wav", "cover.jpg", "notes.txt", "mp3"])
    def test_unsupported(self, name):
        assert not is_audio_file(name)


class TestHiddenAndPackages:
    def test_dot_names_are_hidden(self):
        assert is_hidden(".DS_Store")
        assert is_hidden(".git")
        assert not is_hidden("Album")

    @pytest.mark.parametrize("name", ["Foo.app", "Lib.photoslibrary", "Song.logicx", "X.BUNDLE"])
    def test_package_dirs(self, name):
        assert is_package_dir(name)

    def test_regular_dirs(self):
        assert not is_package_dir("Greatest Hits")
        assert not is_package_dir("Vol. 2")


# ---------------------------------------------------------------------------
# format_duration
# ---------------------------------------------------------------------------


class TestFormatDuration:
    def test_minutes_and_padded_seconds(self):
        assert format_duration(187) == "3:07"

    def test_fraction_truncated(self):
        assert format_duration(59.9) == "0:59"

    def test_long_track(self):
        assert format_duration(3600) == "60:00"

    @pytest.mark.parametrize("value", [None, 0, -3, float("nan"), float("inf")])
    def test_invalid_durations(self, value):
        assert format_duration(value) == "0:00"


# ---------------------------------------------------------------------------
# album_cache_key / common_parent
# ---------------------------------------------------------------------------


class TestAlbumCacheKey:
    def test_is_sha256_hex(self):
        key = album_cache_key("Blue Train")
        assert len(key) == 64
        int(key, 16)

    def test_stable_and_distinct(self):
        assert album_cache_key("Blue Train") == album_cache_key("Blue Train")
        assert album_cache_key("Blue Train") != album_cache_key("blue train")


class TestCommonParent:
    def test_same_folder(self):
        assert common_parent(["/m/a/1.mp3", "/m/a/2.mp3"]) == Path("/m/a")

    def test_disc_subfolders(self):
        paths = ["/m/album/CD1/1.mp3", "/m/album/CD2/1.mp3"]
        assert common_parent(paths) == Path("/m/album")

    def test_empty(self):
        assert common_parent([]) is None

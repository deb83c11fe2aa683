"""Tests for FolderScanner -- discovery rules, ordering, and progress batching."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from nocturne.core.scanner import FolderScanner
from nocturne.utils.cancellation import CancelToken


def _touch(path: Path, mtime: float | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\x00")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def library(tmp_path: Path) -> Path:
    root = tmp_path / "music"
    _touch(root / "a.mp3")
    _touch(root / "B.FLAC")
    _touch(root / "Album" / "c.m4a")
    _touch(root / "Album" / "Disc 2" / "d.aac")
    _touch(root / "Album" / "cover.jpg")
    _touch(root / "notes.txt")
    _touch(root / ".hidden.mp3")
    _touch(root / ".cache" / "e.mp3")
    _touch(root / "GarageBand.band" / "Media" / "f.mp3")
    _touch(root / "Old.app" / "Contents" / "g.m4a")
    return root


class TestFolderScanner:
    def test_finds_supported_files_only(self, library: Path):
        found = {Path(p).relative_to(library).as_posix() for p in FolderScanner().scan(library)}
        assert found == {"a.mp3", "B.FLAC", "Album/c.m4a", "Album/Disc 2/d.aac"}

    def test_sorted_by_modification_time_descending(self, tmp_path: Path):
        root = tmp_path / "music"
        _touch(root / "old.mp3", mtime=1_000_000)
        _touch(root / "new.mp3", mtime=3_000_000)
        _touch(root / "sub" / "middle.mp3", mtime=2_000_000)

        names = [Path(p).name for p in FolderScanner().scan(root)]
        assert names == ["new.mp3", "middle.mp3", "old.mp3"]

    def test_unreadable_mtime_sorts_last_in_stable_order(self, tmp_path: Path):
        root = tmp_path / "music"
        _touch(root / "real.mp3", mtime=1_000_000)
        # Dangling symlinks cannot be stat()ed
        os.symlink(tmp_path / "gone-1", root / "x-broken.mp3")
        os.symlink(tmp_path / "gone-2", root / "y-broken.mp3")

        names = [Path(p).name for p in FolderScanner().scan(root)]
        assert names == ["real.mp3", "x-broken.mp3", "y-broken.mp3"]

    def test_progress_batched_and_ends_at_one(self, tmp_path: Path):
        root = tmp_path / "music"
        for i in range(120):
            _touch(root / f"{i:03d}.mp3")

        updates: list[float] = []
        FolderScanner(progress_interval=50).scan(root, on_progress=updates.append)

        assert updates == [50 / 120, 100 / 120, 1.0]
        assert updates == sorted(updates)

    def test_progress_counts_non_audio_entries(self, library: Path):
        updates: list[float] = []
        FolderScanner(progress_interval=50).scan(library, on_progress=updates.append)
        # Fewer entries than the interval: a single report on the last one
        assert updates == [1.0]

    def test_missing_root_returns_empty(self, tmp_path: Path):
        assert FolderScanner().scan(tmp_path / "nope") == []

    def test_empty_root_reports_nothing(self, tmp_path: Path):
        updates: list[float] = []
        assert FolderScanner().scan(tmp_path, on_progress=updates.append) == []
        assert updates == []

    def test_cancelled_scan_returns_empty(self, library: Path):
        token = CancelToken()
        token.cancel()
        updates: list[float] = []
        assert FolderScanner().scan(library, token, updates.append) == []
        assert updates == []

    @pytest.mark.skipif(
        hasattr(os, "geteuid") and os.geteuid() == 0,
        reason="root ignores directory permissions",
    )
    def test_unreadable_directory_skipped(self, library: Path):
        locked = library / "Locked"
        _touch(locked / "secret.mp3")
        locked.chmod(0)
        try:
            found = {Path(p).name for p in FolderScanner().scan(library)}
        finally:
            locked.chmod(0o755)
        assert "secret.mp3" not in found
        assert "a.mp3" in found

    def test_rejects_zero_interval(self):
        with pytest.raises(ValueError):
            FolderScanner(progress_interval=0)

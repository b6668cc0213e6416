from dataclasses import replace
import math
import zipfile

import pytest
import rarfile

from uploadguard.config import DEFAULT_LIMITS
from uploadguard.inspection.archive import (
    ArchiveBombDetector,
    compression_ratio,
    detect_archive_bomb,
)
from uploadguard.inspection.errors import UnsupportedArchiveError
from uploadguard.inspection.results import ArchiveType

from samples import build_zip


@pytest.fixture
def detector():
    return ArchiveBombDetector()


# ─── ZIP ──────────────────────────────────────────────────────────────────────

def test_small_zip_is_not_a_bomb(detector, write_file):
    path = write_file("notes.zip", build_zip({"a.txt": b"hello", "b.txt": b"world"}))
    report = detector.inspect(path, ".zip")
    assert report.is_bomb is False
    assert report.archive_type == ArchiveType.ZIP
    assert report.entry_count == 2
    assert report.total_uncompressed_bytes == 10
    assert report.compressed_bytes == path.stat().st_size


def test_too_many_entries(detector, write_file):
    entries = {f"f{i}.txt": b"" for i in range(5001)}
    report = detector.inspect(write_file("many.zip", build_zip(entries)), ".zip")
    assert report.entry_count == 5001
    assert report.is_bomb is True


def test_high_compression_ratio(detector, write_file):
    data = build_zip({"zeros.bin": b"\x00" * (1024 * 1024)}, zipfile.ZIP_DEFLATED)
    report = detector.inspect(write_file("zeros.zip", data), ".zip")
    assert report.compression_ratio > 50
    assert report.is_bomb is True


def test_directories_count_as_entries_but_not_size(detector, write_file):
    path = write_file("tree.zip", build_zip({"docs/": b"", "docs/a.txt": b"abc"}))
    report = detector.inspect(path, ".zip")
    assert report.entry_count == 2
    assert report.total_uncompressed_bytes == 3


def test_extension_is_case_insensitive(detector, write_file):
    path = write_file("UPPER.ZIP", build_zip({"a.txt": b"x"}))
    assert detector.inspect(path, ".ZIP").archive_type == ArchiveType.ZIP


def test_unreadable_zip_raises(detector, write_file):
    path = write_file("broken.zip", b"PK\x03\x04 this is not really a zip")
    with pytest.raises(zipfile.BadZipFile):
        detector.inspect(path, ".zip")


# ─── Thresholds ───────────────────────────────────────────────────────────────

class TestReport:
    def test_limits_are_exclusive(self, detector):
        report = detector._report(ArchiveType.ZIP, 5000, 50, 1)
        assert report.compression_ratio == 50
        assert report.is_bomb is False

    def test_entry_limit(self, detector):
        assert detector._report(ArchiveType.ZIP, 5001, 0, 100).is_bomb is True

    def test_total_size_limit(self):
        detector = ArchiveBombDetector(replace(DEFAULT_LIMITS, archive_max_uncompressed=100))
        assert detector._report(ArchiveType.RAR, 1, 100, 10).is_bomb is False
        assert detector._report(ArchiveType.RAR, 1, 101, 10).is_bomb is True

    def test_empty_archive_file_has_infinite_ratio(self, detector):
        report = detector._report(ArchiveType.ZIP, 0, 0, 0)
        assert math.isinf(report.compression_ratio)
        assert report.is_bomb is True
        assert report.to_dict()["compression_ratio"] == "inf"

    def test_sum_stops_once_limit_is_exceeded(self):
        detector = ArchiveBombDetector(replace(DEFAULT_LIMITS, archive_max_uncompressed=10))
        sizes = iter([6, 6, 100])
        assert detector._sum_sizes(sizes) == 12
        assert next(sizes) == 100


def test_compression_ratio():
    assert compression_ratio(100, 4) == 25
    assert compression_ratio(1, 0) == float("inf")


# ─── RAR ──────────────────────────────────────────────────────────────────────

class FakeRarEntry:
    def __init__(self, file_size, directory=False):
        self.file_size = file_size
        self._directory = directory

    def is_dir(self):
        return self._directory


class FakeRarFile:
    entries = []

    def __init__(self, fileobj):
        self.fileobj = fileobj

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def infolist(self):
        return self.entries


def test_unparseable_rar_is_treated_as_bomb(detector, write_file):
    data = b"this is not a rar archive"
    report = detector.inspect(write_file("broken.rar", data), ".rar")
    assert report.is_bomb is True
    assert report.archive_type == ArchiveType.RAR
    assert report.error == "RAR corrupt or unreadable"
    assert report.compressed_bytes == len(data)


def test_rar_sizes_come_from_headers(detector, write_file, monkeypatch):
    FakeRarFile.entries = [FakeRarEntry(400), FakeRarEntry(0, directory=True), FakeRarEntry(None)]
    monkeypatch.setattr(rarfile, "RarFile", FakeRarFile)
    report = detector.inspect(write_file("ok.rar", b"x" * 100), ".rar")
    assert report.is_bomb is False
    assert report.entry_count == 3
    assert report.total_uncompressed_bytes == 400
    assert report.compression_ratio == 4


def test_rar_ratio_bomb(detector, write_file, monkeypatch):
    FakeRarFile.entries = [FakeRarEntry(10 * 1024 * 1024)]
    monkeypatch.setattr(rarfile, "RarFile", FakeRarFile)
    report = detector.inspect(write_file("bomb.rar", b"x" * 1024), ".rar")
    assert report.is_bomb is True


# ─── Dispatch ─────────────────────────────────────────────────────────────────

def test_unsupported_extension_raises(detector, write_file):
    path = write_file("archive.7z", b"7z\xbc\xaf\x27\x1c")
    with pytest.raises(UnsupportedArchiveError) as excinfo:
        detector.inspect(path, ".7z")
    assert excinfo.value.extension == ".7z"
    assert isinstance(excinfo.value, ValueError)


def test_detect_archive_bomb_ignores_other_extensions(write_file):
    assert detect_archive_bomb(write_file("photo.png", b"\x89PNG"), ".png") is None


def test_detect_archive_bomb_with_custom_limits(write_file):
    path = write_file("two.zip", build_zip({"a.txt": b"a", "b.txt": b"b"}))
    limits = replace(DEFAULT_LIMITS, archive_max_entries=1)
    assert detect_archive_bomb(path, ".zip").is_bomb is False
    assert detect_archive_bomb(path, ".zip", limits).is_bomb is True

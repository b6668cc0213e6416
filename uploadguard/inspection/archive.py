"""
Archive bomb detection from entry metadata only.

Nothing is decompressed: ZIP sizes come from the central directory and RAR
sizes from the file headers. Open and read failures are not handled here;
callers must treat them as a rejection.
"""

from collections.abc import Iterable
from pathlib import Path
import io
import logging
import zipfile

import rarfile

from uploadguard.config import DEFAULT_LIMITS, InspectionLimits
from uploadguard.inspection.errors import UnsupportedArchiveError
from uploadguard.inspection.results import ArchiveBombReport, ArchiveType

logger = logging.getLogger("uploadguard.inspection.archive")

ARCHIVE_EXTENSIONS = {".zip": ArchiveType.ZIP, ".rar": ArchiveType.RAR}


def compression_ratio(total_uncompressed: int, compressed: int) -> float:
    if compressed <= 0:
        return float("inf")
    return total_uncompressed / compressed


class ArchiveBombDetector:
    def __init__(self, limits: InspectionLimits = DEFAULT_LIMITS):
        self.limits = limits

    def _sum_sizes(self, sizes: Iterable[int]) -> int:
        total = 0
        for size in sizes:
            total += size
            if total > self.limits.archive_max_uncompressed:
                break
        return total

    def _report(
        self,
        archive_type: ArchiveType,
        entry_count: int,
        total: int,
        compressed: int,
    ) -> ArchiveBombReport:
        ratio = compression_ratio(total, compressed)
        is_bomb = (
            entry_count > self.limits.archive_max_entries
            or total > self.limits.archive_max_uncompressed
            or ratio > self.limits.archive_max_ratio
        )
        return ArchiveBombReport(
            is_bomb=is_bomb,
            archive_type=archive_type,
            entry_count=entry_count,
            total_uncompressed_bytes=total,
            compressed_bytes=compressed,
            compression_ratio=ratio,
        )

    def inspect_zip(self, path: str | Path) -> ArchiveBombReport:
        compressed = Path(path).stat().st_size
        with zipfile.ZipFile(path) as archive:
            entries = archive.infolist()
        total = self._sum_sizes(info.file_size for info in entries if not info.is_dir())
        return self._report(ArchiveType.ZIP, len(entries), total, compressed)

    def inspect_rar(self, path: str | Path) -> ArchiveBombReport:
        # Headers are parsed from an in-memory copy of the whole archive.
        data = Path(path).read_bytes()
        try:
            with rarfile.RarFile(io.BytesIO(data)) as archive:
                entries = archive.infolist()
        except rarfile.Error as exc:
            logger.warning("RAR header listing failed: %s", exc)
            return ArchiveBombReport(
                is_bomb=True,
                archive_type=ArchiveType.RAR,
                compressed_bytes=len(data),
                error="RAR corrupt or unreadable",
            )
        total = self._sum_sizes(info.file_size or 0 for info in entries if not info.is_dir())
        return self._report(ArchiveType.RAR, len(entries), total, len(data))

    def inspect(self, path: str | Path, extension: str) -> ArchiveBombReport:
        archive_type = ARCHIVE_EXTENSIONS.get(extension.lower())
        if archive_type is None:
            raise UnsupportedArchiveError(extension)
        if archive_type is ArchiveType.ZIP:
            report = self.inspect_zip(path)
        else:
            report = self.inspect_rar(path)
        log = logger.warning if report.is_bomb else logger.debug
        log(
            "Archive inspected: type=%s entries=%d uncompressed=%d compressed=%d ratio=%.2f bomb=%s",
            report.archive_type, report.entry_count, report.total_uncompressed_bytes,
            report.compressed_bytes, report.compression_ratio, report.is_bomb,
        )
        return report


_default_detector = ArchiveBombDetector()


def detect_archive_bomb(
    path: str | Path,
    extension: str,
    limits: InspectionLimits | None = None,
) -> ArchiveBombReport | None:
    """Inspect a .zip or .rar upload; returns None for any other extension."""
    if extension.lower() not in ARCHIVE_EXTENSIONS:
        return None
    detector = _default_detector if limits is None else ArchiveBombDetector(limits)
    return detector.inspect(path, extension)

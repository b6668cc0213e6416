"""
Static magic-byte catalog and signature lookup helpers.

Matching is always exact: a signature either occurs byte-for-byte at an offset
or it does not. Adding a format means adding a catalog entry.
"""

from dataclasses import dataclass
from collections.abc import Iterable, Iterator
import heapq

from uploadguard.inspection.results import DetectionHit, FileType, RiskLevel


@dataclass(frozen=True)
class FileSignature:
    label: FileType
    magic: bytes
    risk: RiskLevel


CATALOG: dict[FileType, FileSignature] = {
    sig.label: sig
    for sig in (
        # Archives
        FileSignature(FileType.ZIP, b"PK\x03\x04", RiskLevel.HIGH),
        FileSignature(FileType.RAR, b"Rar!", RiskLevel.HIGH),
        FileSignature(FileType.SEVENZ, b"7z\xbc\xaf", RiskLevel.HIGH),
        # Executables
        FileSignature(FileType.EXE, b"MZ", RiskLevel.CRITICAL),
        FileSignature(FileType.ELF, b"\x7fELF", RiskLevel.CRITICAL),
        # Documents
        FileSignature(FileType.PDF, b"%PDF", RiskLevel.MEDIUM),
        # Images
        FileSignature(FileType.JPEG, b"\xff\xd8\xff", RiskLevel.LOW),
        FileSignature(FileType.PNG, b"\x89PNG", RiskLevel.LOW),
        FileSignature(FileType.GIF, b"GIF8", RiskLevel.LOW),
        FileSignature(FileType.BMP, b"BM", RiskLevel.LOW),
        FileSignature(FileType.WEBP, b"RIFF", RiskLevel.LOW),
    )
}

# Offset-0 type detection order.
CONTAINER_PRIORITY: tuple[FileType, ...] = (
    FileType.JPEG,
    FileType.PNG,
    FileType.GIF,
    FileType.BMP,
    FileType.WEBP,
    FileType.PDF,
    FileType.ZIP,
    FileType.RAR,
    FileType.SEVENZ,
    FileType.EXE,
    FileType.ELF,
)


def matches(buffer: bytes, magic: bytes, offset: int = 0) -> bool:
    if offset < 0 or offset + len(magic) > len(buffer):
        return False
    return buffer[offset:offset + len(magic)] == magic


def lookup(buffer: bytes, offset: int, format: FileType) -> bool:
    """Exact catalog match of `format` starting at `offset`."""
    signature = CATALOG.get(format)
    if signature is None:
        return False
    return matches(buffer, signature.magic, offset)


def detect_file_type(buffer: bytes) -> FileType:
    for file_type in CONTAINER_PRIORITY:
        if lookup(buffer, 0, file_type):
            return file_type
    return FileType.UNKNOWN


def _occurrences(view: bytes, signature: FileSignature, rank: int, start: int, end: int):
    pos = view.find(signature.magic, start, end)
    while pos != -1:
        yield (pos, rank, signature)
        pos = view.find(signature.magic, pos + 1, end)


class SignatureScan:
    """
    Lazy scan of a buffer for a set of catalog signatures.

    Iterating yields DetectionHit objects in offset order (ties follow the
    order of `formats`). Every iteration starts over, so the same scan can be
    consumed for its first hit and later materialised in full.
    """

    def __init__(
        self,
        buffer: bytes,
        formats: Iterable[FileType],
        start: int = 0,
        end: int | None = None,
    ):
        self.buffer = buffer
        self.signatures = tuple(CATALOG[fmt] for fmt in formats)
        self.start = max(0, start)
        self.end = len(buffer) if end is None else min(end, len(buffer))

    def __iter__(self) -> Iterator[DetectionHit]:
        streams = [
            _occurrences(self.buffer, sig, rank, self.start, self.end)
            for rank, sig in enumerate(self.signatures)
        ]
        for offset, _rank, sig in heapq.merge(*streams):
            yield DetectionHit(format=sig.label, offset=offset, risk=sig.risk)

    def first(self) -> DetectionHit | None:
        return next(iter(self), None)


def find_signatures(
    buffer: bytes,
    formats: Iterable[FileType],
    start: int = 0,
    end: int | None = None,
) -> SignatureScan:
    return SignatureScan(buffer, formats, start=start, end=end)

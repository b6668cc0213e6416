from collections.abc import Iterable

from uploadguard.config import DEFAULT_LIMITS
from uploadguard.inspection.results import DetectionHit, FileType
from uploadguard.inspection.signatures import SignatureScan, find_signatures

# Executables are reported at any offset, offset 0 included.
EMBEDDED_FORMATS: tuple[FileType, ...] = (
    FileType.ZIP,
    FileType.RAR,
    FileType.SEVENZ,
    FileType.EXE,
    FileType.ELF,
    FileType.PDF,
)


def scan_embedded(buffer: bytes, scan_bytes: int = DEFAULT_LIMITS.embedded_scan_bytes) -> SignatureScan:
    """Lazy scan for secondary file signatures in the first `scan_bytes` bytes."""
    return find_signatures(buffer, EMBEDDED_FORMATS, end=scan_bytes)


def drop_self_signature(hits: Iterable[DetectionHit], file_type: FileType) -> list[DetectionHit]:
    """Remove the hit at offset 0 that is simply the file's own header."""
    return [
        hit for hit in hits
        if not (hit.offset == 0 and hit.format == file_type)
    ]

from collections.abc import Callable
import logging

from uploadguard.config import DEFAULT_LIMITS, InspectionLimits
from uploadguard.inspection.results import FileType, StructuralVerdict
from uploadguard.inspection.signatures import lookup, matches

logger = logging.getLogger("uploadguard.inspection.structure")

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_EOI = b"\xff\xd9"
GIF_HEADERS = (b"GIF87a", b"GIF89a")
GIF_TRAILER = 0x3B
MIN_JPEG_MARKERS = 3

_VALID = StructuralVerdict(valid=True)


def _count_jpeg_markers(buffer: bytes, enough: int) -> int:
    count = 0
    pos = buffer.find(b"\xff")
    while pos != -1 and pos + 1 < len(buffer):
        if buffer[pos + 1] not in (0x00, 0xFF):
            count += 1
            if count >= enough:
                break
        pos = buffer.find(b"\xff", pos + 1)
    return count


def validate_jpeg(buffer: bytes, limits: InspectionLimits = DEFAULT_LIMITS) -> StructuralVerdict:
    if not lookup(buffer, 0, FileType.JPEG):
        return StructuralVerdict(False, "Invalid JPEG signature")
    # EOI may sit anywhere; data appended after it is judged by the trailing inspector.
    if buffer.rfind(JPEG_EOI) == -1:
        return StructuralVerdict(False, "JPEG has no end-of-image (EOI) marker")
    if _count_jpeg_markers(buffer, MIN_JPEG_MARKERS) < MIN_JPEG_MARKERS:
        return StructuralVerdict(False, "Corrupted JPEG structure (not enough markers)")
    return _VALID


def find_last_iend(buffer: bytes, search_bytes: int | None = None) -> int:
    """
    Offset of the chunk start (length field) of the last IEND chunk, or -1.

    Candidates run backwards from len-12; with `search_bytes` set, only starts
    greater than len-search_bytes are considered.
    """
    lowest = 0
    if search_bytes is not None:
        lowest = max(0, len(buffer) - search_bytes + 1)
    # The type field sits 4 bytes after the chunk start and needs 4 more after it.
    type_pos = buffer.rfind(b"IEND", lowest + 4, len(buffer) - 4)
    if type_pos == -1:
        return -1
    return type_pos - 4


def validate_png(buffer: bytes, limits: InspectionLimits = DEFAULT_LIMITS) -> StructuralVerdict:
    if not matches(buffer, PNG_SIGNATURE):
        return StructuralVerdict(False, "Invalid PNG signature")
    if not matches(buffer, b"IHDR", 12):
        return StructuralVerdict(False, "PNG without a valid IHDR chunk")
    if find_last_iend(buffer, limits.png_iend_search_bytes) == -1:
        return StructuralVerdict(False, "PNG without an IEND chunk (corrupted)")
    return _VALID


def validate_gif(buffer: bytes, limits: InspectionLimits = DEFAULT_LIMITS) -> StructuralVerdict:
    if not any(matches(buffer, header) for header in GIF_HEADERS):
        return StructuralVerdict(False, "Invalid GIF signature")
    if buffer[-1] != GIF_TRAILER:
        return StructuralVerdict(False, "GIF without a valid trailer (corrupted)")
    return _VALID


def _no_grammar(buffer: bytes, limits: InspectionLimits = DEFAULT_LIMITS) -> StructuralVerdict:
    return _VALID


Validator = Callable[[bytes, InspectionLimits], StructuralVerdict]

VALIDATORS: dict[FileType, Validator] = {
    FileType.JPEG: validate_jpeg,
    FileType.PNG: validate_png,
    FileType.GIF: validate_gif,
    FileType.BMP: _no_grammar,
    FileType.WEBP: _no_grammar,
    FileType.PDF: _no_grammar,
    FileType.ZIP: _no_grammar,
    FileType.RAR: _no_grammar,
    FileType.SEVENZ: _no_grammar,
    FileType.EXE: _no_grammar,
    FileType.ELF: _no_grammar,
    FileType.UNKNOWN: _no_grammar,
}


def validate_structure(
    buffer: bytes,
    file_type: FileType,
    limits: InspectionLimits = DEFAULT_LIMITS,
) -> StructuralVerdict:
    try:
        return VALIDATORS[file_type](buffer, limits)
    except Exception:
        logger.exception("Structure validation failed for type %s", file_type)
        return StructuralVerdict(False, "Error validating file structure")

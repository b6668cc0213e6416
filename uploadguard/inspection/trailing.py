"""
Inspection of bytes appended after a format's logical end marker.

Appending an archive or executable after a JPEG's EOI (or a PNG's IEND) is a
common way to smuggle a payload past naive type checks.
"""

from collections.abc import Callable

from uploadguard.config import DEFAULT_LIMITS, InspectionLimits
from uploadguard.inspection.results import FileType, TrailingDataReport
from uploadguard.inspection.signatures import find_signatures
from uploadguard.inspection.structure import JPEG_EOI, find_last_iend

TRAILING_FORMATS: tuple[FileType, ...] = (
    FileType.ZIP,
    FileType.RAR,
    FileType.SEVENZ,
    FileType.EXE,
    FileType.ELF,
    FileType.PDF,
)

_JPEG_MESSAGES = {
    FileType.ZIP: "Suspicious data appended after JPEG end of image (possible embedded archive)",
    FileType.RAR: "Suspicious data appended after JPEG end of image (possible embedded archive)",
    FileType.SEVENZ: "Suspicious data appended after JPEG end of image (possible embedded archive)",
    FileType.EXE: "Executable embedded after JPEG end of image",
    FileType.ELF: "Executable embedded after JPEG end of image",
    FileType.PDF: "PDF found after JPEG end of image (possible hidden file)",
}


def inspect_jpeg_trailing(buffer: bytes, limits: InspectionLimits = DEFAULT_LIMITS) -> TrailingDataReport | None:
    eoi = buffer.rfind(JPEG_EOI)
    if eoi == -1:
        return None
    data_end = eoi + len(JPEG_EOI)
    trailing = len(buffer) - data_end
    if trailing <= 0:
        return None

    scan_end = data_end + min(trailing, limits.trailing_scan_bytes)
    hit = find_signatures(buffer, TRAILING_FORMATS, start=data_end, end=scan_end).first()
    if hit is not None:
        return TrailingDataReport(
            suspicious=True,
            trailing_bytes=trailing,
            message=_JPEG_MESSAGES[hit.format],
        )
    if trailing > limits.jpeg_trailing_threshold:
        return TrailingDataReport(
            suspicious=True,
            trailing_bytes=trailing,
            message="Significant extra data after JPEG end of image",
        )
    return None


def inspect_png_trailing(buffer: bytes, limits: InspectionLimits = DEFAULT_LIMITS) -> TrailingDataReport | None:
    iend = find_last_iend(buffer)
    if iend == -1:
        return None
    trailing = len(buffer) - iend - 12
    if trailing > limits.png_trailing_threshold:
        return TrailingDataReport(
            suspicious=True,
            trailing_bytes=trailing,
            message="Suspicious data after PNG end of image",
        )
    return None


def _not_applicable(buffer: bytes, limits: InspectionLimits = DEFAULT_LIMITS) -> None:
    return None


TrailingInspector = Callable[[bytes, InspectionLimits], TrailingDataReport | None]

TRAILING_INSPECTORS: dict[FileType, TrailingInspector] = {
    FileType.JPEG: inspect_jpeg_trailing,
    FileType.PNG: inspect_png_trailing,
    FileType.GIF: _not_applicable,
    FileType.BMP: _not_applicable,
    FileType.WEBP: _not_applicable,
    FileType.PDF: _not_applicable,
    FileType.ZIP: _not_applicable,
    FileType.RAR: _not_applicable,
    FileType.SEVENZ: _not_applicable,
    FileType.EXE: _not_applicable,
    FileType.ELF: _not_applicable,
    FileType.UNKNOWN: _not_applicable,
}


def inspect_trailing(
    buffer: bytes,
    file_type: FileType,
    limits: InspectionLimits = DEFAULT_LIMITS,
) -> TrailingDataReport | None:
    return TRAILING_INSPECTORS[file_type](buffer, limits)

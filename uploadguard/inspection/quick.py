"""
Cheap extension/MIME pre-filter.

Only rejects obviously hostile uploads before any I/O is spent on deep
inspection. Passing it says nothing about whether the content is safe.
"""

import re

from uploadguard.inspection.results import QuickValidationResult

DANGEROUS_EXTENSIONS = frozenset({
    ".exe", ".bat", ".cmd", ".com", ".scr", ".vbs", ".js", ".jar",
    ".app", ".deb", ".rpm", ".sh", ".bash", ".elf", ".bin",
})

DANGEROUS_MIME_TYPES = frozenset({
    "application/x-msdownload",
    "application/x-executable",
    "application/x-sh",
    "application/x-bat",
    "text/x-sh",
})

_FINAL_EXTENSION_RE = re.compile(r"\.[^.]+$")


def final_extension(filename: str | None) -> str | None:
    """`photo.jpg.exe` -> `.exe`; names without a dot have no extension."""
    match = _FINAL_EXTENSION_RE.search((filename or "").lower())
    return match.group(0) if match else None


def _normalize_mime(mime_type: str | None) -> str:
    return (mime_type or "").split(";", 1)[0].strip().lower()


def quick_validation(mime_type: str | None, filename: str | None) -> QuickValidationResult:
    if final_extension(filename) in DANGEROUS_EXTENSIONS:
        return QuickValidationResult(safe=False, reason="File extension not allowed")
    if _normalize_mime(mime_type) in DANGEROUS_MIME_TYPES:
        return QuickValidationResult(safe=False, reason="File type not allowed")
    return QuickValidationResult(safe=True)

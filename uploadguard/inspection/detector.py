"""
Verdict aggregation for uploaded files.

SteganographyDetector runs every cheap detector over the in-memory buffer,
decides whether the expensive LSB pass is worth paying for, and folds all
signals into a single Verdict. It never raises: a file that cannot be
analysed is reported as unsafe.
"""

from pathlib import Path
import logging
import time
from typing import cast

from uploadguard.config import DEFAULT_LIMITS, InspectionLimits
from uploadguard.inspection.chunks import inspect_png_chunks
from uploadguard.inspection.embedded import drop_self_signature, scan_embedded
from uploadguard.inspection.entropy import global_entropy, windowed_entropy
from uploadguard.inspection.lsb import LSBAnalyzer, PillowPixelDecoder, PixelDecoder
from uploadguard.inspection.results import (
    ARCHIVE_TYPES,
    IMAGE_TYPES,
    ChunkAnomaly,
    DetectionHit,
    EntropyWindowReport,
    FileType,
    LSBReport,
    RiskLevel,
    TrailingDataReport,
    Verdict,
)
from uploadguard.inspection.signatures import detect_file_type
from uploadguard.inspection.structure import validate_structure
from uploadguard.inspection.trailing import inspect_trailing

logger = logging.getLogger("uploadguard.inspection.detector")

SAFE_DETAILS = "No hidden content detected"
DETAILS_SEPARATOR = " | "
_BLOCKING_RISKS = (RiskLevel.CRITICAL, RiskLevel.HIGH)

# Placeholder default: the detector builds a PillowPixelDecoder from its own limits.
DEFAULT_PIXEL_DECODER: PixelDecoder = cast(PixelDecoder, object())


def build_details(
    hits: list[DetectionHit],
    trailing: TrailingDataReport | None,
    high_entropy: bool,
    entropy: float,
    window: EntropyWindowReport,
    anomalies: list[ChunkAnomaly],
    lsb: LSBReport | None,
) -> str:
    parts = [hit.label() for hit in hits]
    if trailing is not None and trailing.suspicious:
        parts.append(f"{trailing.message} ({trailing.trailing_bytes} bytes)")
    if high_entropy:
        parts.append(f"Abnormally high global entropy ({entropy:.2f})")
    if window.suspicious:
        parts.append(
            f"High entropy region at offset {window.offset} (entropy={window.entropy_bits:.2f})"
        )
    if anomalies:
        parts.append(
            "Unusual PNG chunks: "
            + ", ".join(f"{chunk.chunk_type}:{chunk.length}" for chunk in anomalies)
        )
    if lsb is not None:
        if lsb.suspicious:
            parts.append(f"Suspicious LSB plane: {lsb.reason}")
        parts.append(lsb.summary())
    return DETAILS_SEPARATOR.join(parts)


class SteganographyDetector:
    def __init__(
        self,
        limits: InspectionLimits = DEFAULT_LIMITS,
        pixel_decoder: PixelDecoder | None = DEFAULT_PIXEL_DECODER,
    ):
        self.limits = limits
        if pixel_decoder is DEFAULT_PIXEL_DECODER:
            pixel_decoder = PillowPixelDecoder(limits)
        # No decoder means LSB analysis is switched off for this detector.
        self.lsb = LSBAnalyzer(pixel_decoder, limits) if pixel_decoder is not None else None

    def inspect_file(self, path: str | Path) -> Verdict:
        try:
            buffer = Path(path).read_bytes()
        except Exception as exc:
            logger.exception("Failed to read %s for inspection", path)
            return self._error_verdict(exc, 0)
        return self.inspect_bytes(buffer)

    def inspect_bytes(self, buffer: bytes) -> Verdict:
        started = time.perf_counter()
        try:
            verdict = self._inspect(buffer)
        except Exception as exc:
            logger.exception("Inspection failed")
            return self._error_verdict(exc, len(buffer))

        log = logger.info if verdict.safe else logger.warning
        log(
            "Inspection finished: type=%s safe=%s size=%d elapsed_ms=%.1f",
            verdict.detected_type, verdict.safe, verdict.file_size_bytes,
            (time.perf_counter() - started) * 1000,
            extra={
                "detected_type": str(verdict.detected_type),
                "safe": verdict.safe,
                "corrupted": verdict.corrupted,
            },
        )
        return verdict

    def _error_verdict(self, exc: Exception, size: int) -> Verdict:
        return Verdict(
            safe=False,
            detected_type=FileType.UNKNOWN,
            details=f"Error analyzing file: {exc}",
            file_size_bytes=size,
            error=str(exc),
        )

    def _should_run_lsb(
        self,
        file_type: FileType,
        size: int,
        raw_high_entropy: bool,
        trailing: TrailingDataReport | None,
        window: EntropyWindowReport,
        anomalies: list[ChunkAnomaly],
    ) -> bool:
        if self.lsb is None:
            return False
        if file_type in IMAGE_TYPES and size <= self.limits.lsb_max_file_size:
            return True
        return (
            window.suspicious
            or raw_high_entropy
            or (trailing is not None and trailing.suspicious)
            or bool(anomalies)
        )

    def _inspect(self, buffer: bytes) -> Verdict:
        limits = self.limits
        size = len(buffer)

        if size < limits.min_file_size:
            return Verdict(
                safe=False,
                detected_type=FileType.UNKNOWN,
                details="File too small or empty",
                file_size_bytes=size,
            )

        file_type = detect_file_type(buffer)
        if file_type is FileType.UNKNOWN:
            return Verdict(
                safe=False,
                detected_type=FileType.UNKNOWN,
                details="Unrecognized or corrupted file type",
                file_size_bytes=size,
            )

        entropy = global_entropy(buffer, limits.entropy_sample_bytes)

        structure = validate_structure(buffer, file_type, limits)
        if not structure.valid:
            return Verdict(
                safe=False,
                detected_type=file_type,
                details=f"Corrupted file: {structure.reason}",
                file_size_bytes=size,
                entropy_bits=entropy,
                corrupted=True,
            )

        hits = drop_self_signature(scan_embedded(buffer, limits.embedded_scan_bytes), file_type)
        trailing = inspect_trailing(buffer, file_type, limits)

        raw_high_entropy = entropy > limits.global_entropy_threshold
        # Archives are expected to look random.
        high_entropy = raw_high_entropy and file_type not in ARCHIVE_TYPES

        window = windowed_entropy(
            buffer,
            window_size=limits.window_size,
            step=limits.window_step,
            threshold=limits.window_threshold,
            scan_bytes=limits.window_scan_bytes,
        )
        anomalies = (
            inspect_png_chunks(buffer, limits.ancillary_chunk_threshold)
            if file_type is FileType.PNG else []
        )

        lsb = None
        if self._should_run_lsb(file_type, size, raw_high_entropy, trailing, window, anomalies):
            lsb = self.lsb.analyze(buffer)

        suspicious = (
            any(hit.risk in _BLOCKING_RISKS for hit in hits)
            or (trailing is not None and trailing.suspicious)
            or high_entropy
            or window.suspicious
            or bool(anomalies)
            or (lsb is not None and lsb.suspicious)
        )
        details = (
            build_details(hits, trailing, high_entropy, entropy, window, anomalies, lsb)
            if suspicious else SAFE_DETAILS
        )

        return Verdict(
            safe=not suspicious,
            detected_type=file_type,
            details=details,
            file_size_bytes=size,
            entropy_bits=entropy,
            hidden_files=tuple(hits),
            trailing_data=trailing,
            high_entropy=high_entropy,
            high_entropy_window=window if window.suspicious else None,
            container_anomalies=tuple(anomalies),
            lsb_report=lsb,
        )


_default_detector: SteganographyDetector | None = None


def get_default_detector() -> SteganographyDetector:
    global _default_detector
    if _default_detector is None:
        _default_detector = SteganographyDetector()
    return _default_detector


def detect_steganography(
    file_path: str | Path,
    detector: SteganographyDetector | None = None,
) -> Verdict:
    """Inspect the file at `file_path`; always returns a Verdict."""
    return (detector or get_default_detector()).inspect_file(file_path)

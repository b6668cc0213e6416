"""
Least-significant-bit plane analysis.

The LSB of every colour channel is collected into a bit stream, packed
MSB-first into bytes and then checked the same way the raw file is: for
near-random entropy and for embedded file signatures. Natural image noise
produces a fairly structured LSB plane; ciphertext or compressed payloads
written into it do not.
"""

from typing import Protocol
import io
import logging
import math
import struct

import numpy as np
from PIL import Image, UnidentifiedImageError

from uploadguard.config import DEFAULT_LIMITS, InspectionLimits
from uploadguard.inspection.entropy import shannon_entropy
from uploadguard.inspection.results import FileType, LSBReport
from uploadguard.inspection.signatures import find_signatures

logger = logging.getLogger("uploadguard.inspection.lsb")

LSB_FORMATS: tuple[FileType, ...] = (
    FileType.ZIP,
    FileType.RAR,
    FileType.SEVENZ,
    FileType.EXE,
    FileType.PDF,
)


class PixelDecoder(Protocol):
    def decode_rgba(self, data: bytes) -> np.ndarray | None:
        """Return an (H, W, 4) uint8 array, or None if `data` is not decodable."""


class PillowPixelDecoder:
    """
    Decode common raster formats to RGBA with Pillow.

    Only the rows that analyze_lsb() will read are converted. Images with
    more than `lsb_max_decoded_pixels` pixels are not decoded at all.
    """

    def __init__(self, limits: InspectionLimits = DEFAULT_LIMITS):
        self.limits = limits

    def decode_rgba(self, data: bytes) -> np.ndarray | None:
        try:
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
                if width * height > self.limits.lsb_max_decoded_pixels:
                    logger.warning(
                        "Pixel decoding skipped: %dx%d exceeds %d pixels",
                        width, height, self.limits.lsb_max_decoded_pixels,
                    )
                    return None
                rows = min(height, math.ceil(self.limits.lsb_max_pixels / max(width, 1)))
                if rows < height:
                    img = img.crop((0, 0, width, rows))
                rgba = img.convert("RGBA")
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError, EOFError, struct.error) as exc:
            # Image.DecompressionBombError is deliberately not caught here.
            logger.debug("Pixel decoding failed: %s", exc)
            return None
        return np.asarray(rgba, dtype=np.uint8)


def extract_lsb_stream(pixels: np.ndarray, max_pixels: int = DEFAULT_LIMITS.lsb_max_pixels) -> bytes:
    channels = pixels.shape[-1] if pixels.ndim == 3 else 1
    flat = pixels.reshape(-1)
    total_pixels = flat.size // channels
    bits = flat[:min(total_pixels, max_pixels) * channels] & 1
    # Incomplete trailing byte is dropped.
    usable = (bits.size // 8) * 8
    return np.packbits(bits[:usable].astype(np.uint8), bitorder="big").tobytes()


def analyze_lsb(pixels: np.ndarray, limits: InspectionLimits = DEFAULT_LIMITS) -> LSBReport:
    stream = extract_lsb_stream(pixels, limits.lsb_max_pixels)
    entropy = shannon_entropy(stream)
    found = tuple(find_signatures(stream, LSB_FORMATS, end=limits.lsb_signature_scan_bytes))

    if found:
        reason = "Signatures: " + ",".join(str(hit.format) for hit in found)
    elif entropy > limits.lsb_entropy_threshold:
        reason = "High entropy in LSB plane"
    else:
        reason = None

    return LSBReport(
        suspicious=bool(found) or entropy > limits.lsb_entropy_threshold,
        entropy_bits=entropy,
        signatures_found=found,
        reason=reason,
    )


class LSBAnalyzer:
    def __init__(self, decoder: PixelDecoder, limits: InspectionLimits = DEFAULT_LIMITS):
        self.decoder = decoder
        self.limits = limits

    def analyze(self, data: bytes) -> LSBReport | None:
        pixels = self.decoder.decode_rgba(data)
        if pixels is None:
            logger.warning("LSB analysis skipped: image could not be decoded")
            return None
        return analyze_lsb(pixels, self.limits)

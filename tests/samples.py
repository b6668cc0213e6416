"""Byte-level sample files used across the test suite."""

import io
import struct
import zipfile
import zlib

import numpy as np
from PIL import Image

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_HEADER = bytes([0xFF, 0xD8, 0xFF, 0xE0, 0x00, 0x10, 0x4A, 0x46, 0x49, 0x46, 0x00, 0x01])
JPEG_EOI = b"\xff\xd9"
ZIP_SIGNATURE = b"PK\x03\x04"


def png_chunk(chunk_type: bytes, data: bytes = b"") -> bytes:
    crc = zlib.crc32(chunk_type + data) & 0xFFFFFFFF
    return struct.pack(">I", len(data)) + chunk_type + data + struct.pack(">I", crc)


def build_minimal_png() -> bytes:
    # Signature + empty IHDR + IEND, nothing else.
    ihdr = b"\x00\x00\x00\x00IHDR\x00\x00\x00\x00"
    iend = b"\x00\x00\x00\x00IEND\xaeB`\x82"
    return PNG_SIGNATURE + ihdr + iend


def build_png(*chunks: bytes) -> bytes:
    ihdr = png_chunk(b"IHDR", struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0))
    return PNG_SIGNATURE + ihdr + b"".join(chunks) + png_chunk(b"IEND")


def build_jpeg(trailer: bytes = b"") -> bytes:
    return JPEG_HEADER + JPEG_EOI + trailer


def build_zip(entries: dict[str, bytes], compression=zipfile.ZIP_STORED) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=compression) as archive:
        for name, data in entries.items():
            info = zipfile.ZipInfo(name, date_time=(2024, 1, 1, 0, 0, 0))
            info.compress_type = compression
            archive.writestr(info, data)
    return buf.getvalue()


def encode_image(pixels, fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    Image.fromarray(pixels).save(buf, format=fmt)
    return buf.getvalue()


def pixels_carrying(payload: bytes, total_pixels: int = 256):
    """RGBA pixels whose LSB plane spells out `payload`, zero-padded."""
    bits = np.unpackbits(np.frombuffer(payload, dtype=np.uint8))
    plane = np.zeros(total_pixels * 4, dtype=np.uint8)
    plane[:bits.size] = bits
    # Upper bits are noise that must not leak into the stream.
    return (plane | 0xAA).reshape(1, total_pixels, 4)

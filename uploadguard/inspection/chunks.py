from collections.abc import Iterator
import struct

from uploadguard.config import DEFAULT_LIMITS
from uploadguard.inspection.results import ChunkAnomaly

# length(4) + type(4) + crc(4)
CHUNK_OVERHEAD = 12


def iter_png_chunks(buffer: bytes) -> Iterator[tuple[int, int, str]]:
    """
    Yield (offset, length, chunk_type) for each chunk after the PNG signature.

    The walk stops quietly at the first chunk whose declared length runs past
    the end of the buffer.
    """
    pos = 8
    while pos + 8 < len(buffer):
        (length,) = struct.unpack_from(">I", buffer, pos)
        chunk_type = buffer[pos + 4:pos + 8].decode("latin-1")
        if pos + CHUNK_OVERHEAD + length > len(buffer):
            return
        yield pos, length, chunk_type
        pos += CHUNK_OVERHEAD + length


def is_ancillary(chunk_type: str) -> bool:
    # Bit 5 of the first byte: lowercase means ancillary.
    return bool(chunk_type) and bool(ord(chunk_type[0]) & 0x20)


def inspect_png_chunks(
    buffer: bytes,
    threshold: int = DEFAULT_LIMITS.ancillary_chunk_threshold,
) -> list[ChunkAnomaly]:
    return [
        ChunkAnomaly(chunk_type=chunk_type, length=length, offset=offset)
        for offset, length, chunk_type in iter_png_chunks(buffer)
        if is_ancillary(chunk_type) and length > threshold
    ]

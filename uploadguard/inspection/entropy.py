"""Shannon entropy over byte buffers, whole-prefix and sliding-window."""

import numpy as np

from uploadguard.config import DEFAULT_LIMITS
from uploadguard.inspection.results import EntropyWindowReport


def _as_array(data: bytes | bytearray | memoryview | np.ndarray) -> np.ndarray:
    if isinstance(data, np.ndarray):
        return data.astype(np.uint8, copy=False).ravel()
    return np.frombuffer(data, dtype=np.uint8)


def _entropy_of(values: np.ndarray) -> float:
    if values.size == 0:
        return 0.0
    counts = np.bincount(values, minlength=256)
    probabilities = counts[counts > 0] / values.size
    # log2(1/p) keeps a single-symbol buffer at +0.0 rather than -0.0.
    return float((probabilities * np.log2(1 / probabilities)).sum())


def shannon_entropy(data) -> float:
    """Base-2 entropy of the byte-value distribution, in [0, 8]."""
    return _entropy_of(_as_array(data))


def global_entropy(buffer, sample_bytes: int = DEFAULT_LIMITS.entropy_sample_bytes) -> float:
    return _entropy_of(_as_array(buffer)[:sample_bytes])


def windowed_entropy(
    buffer,
    window_size: int = DEFAULT_LIMITS.window_size,
    step: int = DEFAULT_LIMITS.window_step,
    threshold: float = DEFAULT_LIMITS.window_threshold,
    scan_bytes: int = DEFAULT_LIMITS.window_scan_bytes,
) -> EntropyWindowReport:
    """
    Slide a window over the buffer prefix and report the first window whose
    entropy exceeds `threshold`.

    The reported offset is always the lowest one that crosses the threshold,
    not the window with maximum entropy.
    """
    values = _as_array(buffer)
    limit = min(values.size, scan_bytes)
    for start in range(0, limit - window_size + 1, step):
        entropy = _entropy_of(values[start:start + window_size])
        if entropy > threshold:
            return EntropyWindowReport(suspicious=True, offset=start, entropy_bits=entropy)
    return EntropyWindowReport(suspicious=False)

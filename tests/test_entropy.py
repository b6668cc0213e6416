import math

import numpy as np
import pytest

from uploadguard.inspection.entropy import global_entropy, shannon_entropy, windowed_entropy


def random_bytes(size: int, seed: int = 7) -> bytes:
    return np.random.default_rng(seed).integers(0, 256, size, dtype=np.uint8).tobytes()


# ─── shannon_entropy ──────────────────────────────────────────────────────────

def test_entropy_of_empty_buffer_is_zero():
    assert shannon_entropy(b"") == 0.0


def test_entropy_of_constant_buffer_is_zero():
    entropy = shannon_entropy(b"\x00" * 500)
    assert entropy == 0.0
    assert math.copysign(1.0, entropy) == 1.0
    assert f"{entropy:.2f}" == "0.00"


def test_entropy_of_two_symbols_is_one_bit():
    assert shannon_entropy(b"ab" * 50) == pytest.approx(1.0)


def test_entropy_of_every_byte_value_once_is_eight_bits():
    assert shannon_entropy(bytes(range(256))) == pytest.approx(8.0)


def test_entropy_accepts_numpy_arrays():
    assert shannon_entropy(np.arange(256, dtype=np.uint8)) == pytest.approx(8.0)


# ─── global_entropy ───────────────────────────────────────────────────────────

def test_global_entropy_only_samples_prefix():
    buffer = b"\x00" * 10 + bytes(range(256))
    assert global_entropy(buffer, sample_bytes=10) == 0.0
    assert global_entropy(buffer, sample_bytes=len(buffer)) > 7.0


# ─── windowed_entropy ─────────────────────────────────────────────────────────

def test_random_data_is_suspicious_at_offset_zero():
    report = windowed_entropy(random_bytes(8192))
    assert report.suspicious is True
    assert report.offset == 0
    assert report.entropy_bits > 7.5


def test_zeros_are_not_suspicious():
    report = windowed_entropy(b"\x00" * 16384)
    assert report.suspicious is False
    assert report.offset == 0
    assert report.entropy_bits == 0.0


def test_reports_first_offset_crossing_threshold():
    buffer = b"\x00" * 4096 + random_bytes(8192)
    report = windowed_entropy(buffer)
    assert report.suspicious is True
    assert report.offset == 4096


def test_buffer_shorter_than_window_is_not_evaluated():
    report = windowed_entropy(random_bytes(4095))
    assert report.suspicious is False


def test_scan_is_capped_at_scan_bytes():
    buffer = b"\x00" * 4096 + random_bytes(8192)
    report = windowed_entropy(buffer, scan_bytes=4096)
    assert report.suspicious is False


def test_custom_window_parameters():
    buffer = b"\x00" * 300 + bytes(range(256))
    report = windowed_entropy(buffer, window_size=256, step=100, threshold=7.0)
    # Window at 300 holds every byte value once.
    assert report.suspicious is True
    assert report.offset == 300

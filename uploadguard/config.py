from dataclasses import dataclass, fields
import os

KIB = 1024
MIB = 1024 * 1024


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = int(value)
        return parsed if parsed > 0 else default
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = float(value)
        return parsed if parsed > 0 else default
    except ValueError:
        return default


def env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class InspectionLimits:
    """
    Thresholds and read caps shared by every detector.

    Instances are immutable; tests derive variants with dataclasses.replace().
    """

    min_file_size: int = 12

    entropy_sample_bytes: int = 100_000
    global_entropy_threshold: float = 8.0

    window_size: int = 4096
    window_step: int = 1024
    window_threshold: float = 7.5
    window_scan_bytes: int = 20 * MIB

    embedded_scan_bytes: int = 10 * MIB

    trailing_scan_bytes: int = 1 * MIB
    jpeg_trailing_threshold: int = 10 * KIB
    png_trailing_threshold: int = 1 * KIB
    png_iend_search_bytes: int = 100

    ancillary_chunk_threshold: int = 5 * KIB

    lsb_max_file_size: int = 5 * MIB
    lsb_max_pixels: int = 200_000
    lsb_max_decoded_pixels: int = 4096 * 4096
    lsb_signature_scan_bytes: int = 500_000
    lsb_entropy_threshold: float = 7.5

    archive_max_entries: int = 5000
    archive_max_uncompressed: int = 200 * MIB
    archive_max_ratio: float = 50.0

    @classmethod
    def from_env(cls, prefix: str = "UPLOADGUARD_") -> "InspectionLimits":
        """Build limits with overrides from UPLOADGUARD_<FIELD> variables."""
        overrides = {}
        for field in fields(cls):
            env_name = f"{prefix}{field.name.upper()}"
            if isinstance(field.default, float):
                overrides[field.name] = env_float(env_name, field.default)
            else:
                overrides[field.name] = env_int(env_name, field.default)
        return cls(**overrides)


DEFAULT_LIMITS = InspectionLimits()

from dataclasses import asdict, dataclass
from enum import StrEnum
import math


class FileType(StrEnum):
    JPEG = "JPEG"
    PNG = "PNG"
    GIF = "GIF"
    BMP = "BMP"
    WEBP = "WEBP"
    PDF = "PDF"
    ZIP = "ZIP"
    RAR = "RAR"
    SEVENZ = "7Z"
    EXE = "EXE"
    ELF = "ELF"
    UNKNOWN = "UNKNOWN"


IMAGE_TYPES = frozenset(
    {FileType.JPEG, FileType.PNG, FileType.GIF, FileType.BMP, FileType.WEBP}
)
ARCHIVE_TYPES = frozenset({FileType.ZIP, FileType.RAR})


class RiskLevel(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ArchiveType(StrEnum):
    ZIP = "zip"
    RAR = "rar"


@dataclass(frozen=True)
class DetectionHit:
    format: FileType
    offset: int
    risk: RiskLevel

    def label(self) -> str:
        return f"{self.format}@{self.offset}"


@dataclass(frozen=True)
class StructuralVerdict:
    valid: bool
    reason: str | None = None


@dataclass(frozen=True)
class TrailingDataReport:
    suspicious: bool
    trailing_bytes: int
    message: str


@dataclass(frozen=True)
class EntropyWindowReport:
    suspicious: bool
    offset: int = 0
    entropy_bits: float = 0.0


@dataclass(frozen=True)
class ChunkAnomaly:
    chunk_type: str
    length: int
    offset: int


@dataclass(frozen=True)
class LSBReport:
    suspicious: bool
    entropy_bits: float
    signatures_found: tuple[DetectionHit, ...] = ()
    reason: str | None = None

    def summary(self) -> str:
        text = f"LSB: entropy={self.entropy_bits:.2f}"
        if self.signatures_found:
            text += " signatures=" + ",".join(str(hit.format) for hit in self.signatures_found)
        return text


@dataclass(frozen=True)
class ArchiveBombReport:
    is_bomb: bool
    archive_type: ArchiveType
    entry_count: int = 0
    total_uncompressed_bytes: int = 0
    compressed_bytes: int = 0
    compression_ratio: float = 0.0
    error: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        if math.isinf(self.compression_ratio):
            data["compression_ratio"] = "inf"
        return data


@dataclass(frozen=True)
class Verdict:
    safe: bool
    detected_type: FileType
    details: str
    file_size_bytes: int = 0
    entropy_bits: float = 0.0
    hidden_files: tuple[DetectionHit, ...] = ()
    trailing_data: TrailingDataReport | None = None
    high_entropy: bool = False
    high_entropy_window: EntropyWindowReport | None = None
    container_anomalies: tuple[ChunkAnomaly, ...] = ()
    lsb_report: LSBReport | None = None
    corrupted: bool = False
    error: str | None = None

    @property
    def has_critical_hit(self) -> bool:
        return any(hit.risk == RiskLevel.CRITICAL for hit in self.hidden_files)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class QuickValidationResult:
    safe: bool
    reason: str | None = None

    def to_dict(self) -> dict:
        data = {"safe": self.safe}
        if self.reason is not None:
            data["reason"] = self.reason
        return data


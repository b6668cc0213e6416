from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

BlockStage = Literal["quick_filter", "archive_bomb", "steganography"]


class BlockedUploadRecord(BaseModel):
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    original_name: str
    stored_filename: str | None = None
    mimetype: str | None = None
    stage: BlockStage
    reason: str
    detected_type: str | None = None
    entropy: float | None = None
    hidden_files: list[dict] = Field(default_factory=list)
    details: str = Field(default="")
    critical: bool = Field(default=False)
    room: str | None = None
    sender: str | None = None
    client_ip: str = Field(default="unknown")

from pathlib import Path, PurePosixPath
import asyncio
import logging
import os
import re
import uuid

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.staticfiles import StaticFiles

from uploadguard.alerts import maybe_send_alert
from uploadguard.config import InspectionLimits, env_bool, env_int
from uploadguard.db import ensure_blocked_upload_indexes, get_db
from uploadguard.inspection.archive import ARCHIVE_EXTENSIONS, ArchiveBombDetector
from uploadguard.inspection.detector import SteganographyDetector
from uploadguard.inspection.lsb import PillowPixelDecoder
from uploadguard.inspection.quick import final_extension, quick_validation
from uploadguard.inspection.results import Verdict
from uploadguard.logging_config import setup_logging
from uploadguard.models import BlockedUploadRecord
from uploadguard.routers import blocked_uploads

logger = logging.getLogger("uploadguard")

UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", "uploads"))
MAX_FILE_SIZE_BYTES = env_int("MAX_FILE_SIZE_BYTES", 25 * 1024 * 1024)
MAX_FILENAME_LENGTH = 255
SAFE_FILENAME_RE = re.compile(r"^[\w\-. ]+$")
LSB_ANALYSIS_ENABLED = env_bool("LSB_ANALYSIS_ENABLED", True)

LIMITS = InspectionLimits.from_env()
detector = SteganographyDetector(
    LIMITS,
    pixel_decoder=PillowPixelDecoder(LIMITS) if LSB_ANALYSIS_ENABLED else None,
)
bomb_detector = ArchiveBombDetector(LIMITS)

app = FastAPI(title="UploadGuard API")

app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR, check_dir=False), name="uploads")

app.include_router(blocked_uploads.router)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.on_event("startup")
async def startup():
    setup_logging()
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    try:
        await ensure_blocked_upload_indexes()
    except Exception:
        # Service should stay available even if the audit store is down.
        logger.exception("Failed to ensure MongoDB indexes on startup")


def sanitize_filename(raw: str | None) -> str:
    """Validate and sanitize an uploaded filename."""
    if not raw:
        raise HTTPException(status_code=400, detail="Filename is required")

    # Strip path components (defence against path-traversal)
    name = PurePosixPath(raw).name
    name = name.split("\\")[-1]

    if not name or name in (".", ".."):
        raise HTTPException(status_code=400, detail="Invalid filename")

    if len(name) > MAX_FILENAME_LENGTH:
        raise HTTPException(status_code=400, detail="Filename too long")

    if not SAFE_FILENAME_RE.match(name):
        raise HTTPException(
            status_code=400,
            detail="Filename contains invalid characters",
        )

    return name


async def read_limited(request: Request, file: UploadFile) -> bytes:
    # Early rejection based on Content-Length header (before reading body)
    cl = request.headers.get("content-length")
    if cl and cl.isdigit() and int(cl) > MAX_FILE_SIZE_BYTES:
        raise HTTPException(status_code=413, detail="File too large")

    content = await file.read(MAX_FILE_SIZE_BYTES + 1)
    if len(content) > MAX_FILE_SIZE_BYTES:
        raise HTTPException(status_code=413, detail="File too large")
    return content


def store_upload(content: bytes, extension: str) -> Path:
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    path = UPLOAD_DIR / f"{uuid.uuid4().hex}{extension}"
    path.write_bytes(content)
    return path


def discard_upload(path: Path | None) -> None:
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.exception("Failed to delete rejected upload %s", path)


async def record_blocked_upload(record: BlockedUploadRecord) -> str:
    """Persist the audit record and raise an alert; returns the db status."""
    db_status = "stored"
    try:
        db = get_db()
        await db.blocked_uploads.insert_one(record.model_dump())
    except Exception:
        logger.exception("Failed to store blocked upload record for %s", record.original_name)
        db_status = "unavailable"
    await maybe_send_alert(record)
    return db_status


def rejection_reason(verdict: Verdict) -> str:
    if verdict.corrupted:
        return "Corrupted file"
    if verdict.error:
        return "File could not be analyzed"
    return "File blocked: possible hidden content"


async def reject(
    record: BlockedUploadRecord,
    stored: Path | None = None,
    corrupted: bool = False,
) -> HTTPException:
    discard_upload(stored)
    logger.warning(
        "Upload rejected: file=%s stage=%s reason=%s type=%s details=%s",
        record.original_name, record.stage, record.reason, record.detected_type, record.details,
    )
    db_status = await record_blocked_upload(record)
    return HTTPException(
        status_code=403,
        detail={
            "stage": record.stage,
            "reason": record.reason,
            "details": record.details,
            "detected_type": record.detected_type,
            "corrupted": corrupted,
            "db_status": db_status,
        },
    )


@app.post("/upload")
async def upload(
    request: Request,
    file: UploadFile = File(...),
    room_id: str | None = Form(None),
    sender: str | None = Form(None),
):
    client_ip = request.client.host if request.client else "unknown"
    filename = sanitize_filename(file.filename)
    mimetype = file.content_type

    def blocked(stage: str, reason: str, **fields) -> BlockedUploadRecord:
        return BlockedUploadRecord(
            original_name=filename,
            mimetype=mimetype,
            stage=stage,
            reason=reason,
            room=room_id,
            sender=sender,
            client_ip=client_ip,
            **fields,
        )

    quick = quick_validation(mimetype, filename)
    if not quick.safe:
        raise await reject(blocked("quick_filter", quick.reason, details=quick.reason))

    content = await read_limited(request, file)
    extension = final_extension(filename) or ""
    stored = store_upload(content, extension)

    if extension in ARCHIVE_EXTENSIONS:
        try:
            report = await asyncio.to_thread(bomb_detector.inspect, stored, extension)
        except Exception as exc:
            # Fail closed: an archive we cannot list is not accepted.
            raise await reject(
                blocked(
                    "archive_bomb",
                    "Archive could not be inspected",
                    stored_filename=stored.name,
                    details=str(exc),
                ),
                stored,
            )
        if report.is_bomb:
            raise await reject(
                blocked(
                    "archive_bomb",
                    "Archive bomb detected",
                    stored_filename=stored.name,
                    detected_type=str(report.archive_type),
                    details=(
                        report.error
                        or f"entries={report.entry_count} "
                        f"uncompressed={report.total_uncompressed_bytes} "
                        f"ratio={report.compression_ratio:.2f}"
                    ),
                    critical=True,
                ),
                stored,
            )

    verdict = await asyncio.to_thread(detector.inspect_file, stored)
    if not verdict.safe:
        raise await reject(
            blocked(
                "steganography",
                rejection_reason(verdict),
                stored_filename=stored.name,
                detected_type=str(verdict.detected_type),
                entropy=round(verdict.entropy_bits, 2),
                hidden_files=[
                    {"type": str(hit.format), "offset": hit.offset, "risk": str(hit.risk)}
                    for hit in verdict.hidden_files
                ],
                details=verdict.details,
                critical=verdict.has_critical_hit,
            ),
            stored,
            corrupted=verdict.corrupted,
        )

    logger.info(
        "Upload accepted: file=%s stored=%s type=%s size=%d",
        filename, stored.name, verdict.detected_type, len(content),
    )
    return {
        "message": "File uploaded successfully",
        "file_url": f"/uploads/{stored.name}",
        "file_name": filename,
        "stored_filename": stored.name,
        "detected_type": str(verdict.detected_type),
        "size_bytes": len(content),
        "room": room_id,
    }


@app.post("/diagnose")
async def diagnose(request: Request, file: UploadFile = File(...)):
    """Run the full inspection on an upload and return the raw verdict."""
    content = await read_limited(request, file)
    verdict = await asyncio.to_thread(detector.inspect_bytes, content)
    return {"analysis": verdict.to_dict()}

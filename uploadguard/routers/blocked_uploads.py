import logging

from fastapi import APIRouter, HTTPException, Query
from pymongo import DESCENDING

from uploadguard.config import env_int
from uploadguard.db import get_db

logger = logging.getLogger("uploadguard.routers.blocked_uploads")

DEFAULT_LIST_LIMIT = env_int("BLOCKED_UPLOAD_LIST_LIMIT_DEFAULT", 50)
MAX_LIST_LIMIT = env_int("BLOCKED_UPLOAD_LIST_LIMIT_MAX", 200)

router = APIRouter(
    prefix="/api/v1/blocked-uploads",
    tags=["Blocked uploads"],
)


@router.get("", summary="List the most recent blocked upload attempts")
async def list_blocked_uploads(
    room_id: str | None = Query(None),
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1),
):
    """
    Audit log of rejected uploads, newest first, optionally for one room.
    """
    safe_limit = min(limit, MAX_LIST_LIMIT)
    query = {"room": room_id} if room_id else {}
    try:
        db = get_db()
        cursor = (
            db.blocked_uploads.find(query, {"_id": 0})
            .sort("created_at", DESCENDING)
            .limit(safe_limit)
        )
        items = [item async for item in cursor]
    except Exception:
        logger.exception("Failed to list blocked uploads")
        raise HTTPException(status_code=503, detail="Database unavailable")
    return {"items": items}

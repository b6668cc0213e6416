from functools import lru_cache
import os

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConfigurationError

from uploadguard.config import env_int

DEFAULT_DB_NAME = "uploadguard"
SECONDS_PER_DAY = 24 * 60 * 60


@lru_cache
def _mongo_uri() -> str:
    return os.getenv("MONGODB_URI", f"mongodb://localhost:27017/{DEFAULT_DB_NAME}")


@lru_cache
def get_mongo_client() -> AsyncIOMotorClient:
    # One client per process; Motor pools connections itself.
    return AsyncIOMotorClient(_mongo_uri())


def get_db():
    client = get_mongo_client()
    try:
        return client.get_default_database()
    except ConfigurationError:
        # URI without a database path.
        return client.get_database(os.getenv("MONGO_DB", DEFAULT_DB_NAME))


async def ensure_blocked_upload_indexes():
    """
    Indexes for the blocked-upload audit log: newest-first listing per room,
    and a TTL index so audit records expire after the retention period.
    """
    db = get_db()
    retention_days = env_int("BLOCKED_UPLOAD_RETENTION_DAYS", 90)
    await db.blocked_uploads.create_index(
        [("room", ASCENDING), ("created_at", DESCENDING)],
        name="blocked_uploads_room_created_at",
    )
    await db.blocked_uploads.create_index(
        "created_at",
        expireAfterSeconds=retention_days * SECONDS_PER_DAY,
        name="blocked_uploads_created_at_ttl",
    )

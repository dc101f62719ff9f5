# app/core/database.py

import logging
from typing import Optional, Tuple

from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from app.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

READINGS_COLLECTION = "source_energy_readings"
LEGACY_READINGS_COLLECTION = "energies"
CONTRACTS_COLLECTION = "contracts"
METERS_COLLECTION = "meters"
DISPLAY_DATA_COLLECTION = "display_energy_data"
FEATURE_FLAGS_COLLECTION = "feature_flags"


def _get_db_name_from_uri(uri: str, fallback: str) -> str:
    # If the URI carries /dbname, use it. Otherwise fall back to MONGODB_DB.
    after_slash = uri.rsplit("/", 1)[-1]
    if "?" in after_slash:
        after_slash = after_slash.split("?", 1)[0]
    if after_slash and after_slash != uri and "@" not in after_slash and ":" not in after_slash:
        return after_slash.strip()
    return fallback


async def connect_to_mongo(
    cfg: Optional[Settings] = None,
) -> Tuple[AsyncIOMotorClient, AsyncIOMotorDatabase]:
    cfg = cfg or default_settings
    mongo_url = cfg.get_mongo_uri()

    db_name = _get_db_name_from_uri(mongo_url, cfg.MONGODB_DB)
    logger.info(f"Connecting to MongoDB (db={db_name})")

    client = AsyncIOMotorClient(mongo_url)
    db = client[db_name]

    # quick ping
    await db.command("ping")
    logger.info("MongoDB connection OK")

    return client, db


async def close_mongo_connection(client: Optional[AsyncIOMotorClient]) -> None:
    if client is not None:
        client.close()
    logger.info("MongoDB connection closed")


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the indexes the repositories rely on. Safe to call repeatedly."""
    await db[READINGS_COLLECTION].create_index([("user_id", ASCENDING), ("date", ASCENDING)])
    await db[READINGS_COLLECTION].create_index(
        [("user_id", ASCENDING), ("type", ASCENDING), ("date", ASCENDING)]
    )
    await db[LEGACY_READINGS_COLLECTION].create_index([("user_id", ASCENDING), ("date", ASCENDING)])
    await db[CONTRACTS_COLLECTION].create_index(
        [("user_id", ASCENDING), ("type", ASCENDING), ("start_date", DESCENDING)]
    )
    await db[METERS_COLLECTION].create_index(
        [("user_id", ASCENDING), ("meter_number", ASCENDING)], unique=True
    )
    # one display data record per user per display type
    await db[DISPLAY_DATA_COLLECTION].create_index(
        [("user_id", ASCENDING), ("display_type", ASCENDING)], unique=True
    )
    await db[FEATURE_FLAGS_COLLECTION].create_index("name", unique=True)
    await db.users.create_index("username", unique=True)
    await db.users.create_index("email", unique=True)
    logger.info("MongoDB indexes ensured")


async def get_db(request: Request) -> AsyncIOMotorDatabase:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise RuntimeError("Database not initialized. The application lifespan must run startup() first.")
    return db

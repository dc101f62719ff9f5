# app/repositories/feature_flags.py

from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument

from app.core.database import FEATURE_FLAGS_COLLECTION
from app.models.feature_flag import FeatureFlag
from app.repositories.base import now_utc, without_none


class FeatureFlagRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[FEATURE_FLAGS_COLLECTION]

    async def get(self, name: str) -> Optional[FeatureFlag]:
        doc = await self.collection.find_one({"name": name}, {"_id": 0})
        return FeatureFlag(**doc) if doc else None

    async def find_all(self) -> List[FeatureFlag]:
        docs = await self.collection.find({}, {"_id": 0}).sort([("name", ASCENDING)]).to_list(length=None)
        return [FeatureFlag(**d) for d in docs]

    async def set(self, name: str, changes: Dict[str, Any]) -> FeatureFlag:
        changes = without_none(changes)
        changes["name"] = name
        changes["updated_at"] = now_utc()
        doc = await self.collection.find_one_and_update(
            {"name": name},
            {"$set": changes},
            projection={"_id": 0},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return FeatureFlag(**doc)

    async def create_if_missing(self, flag: FeatureFlag) -> bool:
        """Insert the flag unless one with that name exists. True if inserted."""
        doc = flag.model_dump()
        doc["updated_at"] = now_utc()
        result = await self.collection.update_one(
            {"name": flag.name},
            {"$setOnInsert": doc},
            upsert=True,
        )
        return result.upserted_id is not None

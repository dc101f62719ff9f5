# app/repositories/display_data.py

from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.core.database import DISPLAY_DATA_COLLECTION
from app.models.display_data import DisplayData, DisplayDataType
from app.repositories.base import normalize_doc


class DisplayDataRepository:
    """One cached payload per (user_id, display_type); writes overwrite in place."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[DISPLAY_DATA_COLLECTION]

    async def upsert(self, entry: DisplayData) -> DisplayData:
        doc = entry.model_dump(exclude={"id"}, mode="python")
        doc["display_type"] = entry.display_type.value
        saved = await self.collection.find_one_and_update(
            {"user_id": entry.user_id, "display_type": doc["display_type"]},
            {"$set": doc},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return DisplayData(**normalize_doc(saved))

    async def find_by_type(self, user_id: str, display_type: DisplayDataType) -> Optional[DisplayData]:
        doc = await self.collection.find_one(
            {"user_id": user_id, "display_type": DisplayDataType(display_type).value}
        )
        return DisplayData(**normalize_doc(doc)) if doc else None

    async def find_by_type_and_filters(
        self,
        user_id: str,
        display_type: DisplayDataType,
        filters: Dict[str, Any],
    ) -> Optional[DisplayData]:
        # one field per filter key so key order does not matter
        query: Dict[str, Any] = {"user_id": user_id, "display_type": DisplayDataType(display_type).value}
        for key, value in filters.items():
            query[f"metadata.filters.{key}"] = value
        doc = await self.collection.find_one(query)
        return DisplayData(**normalize_doc(doc)) if doc else None

    async def delete_by_type(self, user_id: str, display_type: DisplayDataType) -> bool:
        result = await self.collection.delete_one(
            {"user_id": user_id, "display_type": DisplayDataType(display_type).value}
        )
        return result.deleted_count > 0

    async def invalidate_for_user(self, user_id: str) -> int:
        result = await self.collection.delete_many({"user_id": user_id})
        return result.deleted_count

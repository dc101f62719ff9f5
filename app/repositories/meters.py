# app/repositories/meters.py

from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core.database import METERS_COLLECTION
from app.models.energy import Meter, MeterCreate
from app.repositories.base import normalize_doc, now_utc, to_object_id, without_none


class DuplicateMeterError(Exception):
    """A meter with this number already exists for the user."""


class MeterRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[METERS_COLLECTION]

    async def find_all(self, user_id: str) -> List[Meter]:
        cursor = self.collection.find({"user_id": user_id}).sort([("name", ASCENDING)])
        return [Meter(**normalize_doc(d)) for d in await cursor.to_list(length=None)]

    async def find_by_id(self, meter_id: str, user_id: str) -> Optional[Meter]:
        oid = to_object_id(meter_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid, "user_id": user_id})
        return Meter(**normalize_doc(doc)) if doc else None

    async def create(self, user_id: str, meter: MeterCreate) -> Meter:
        number = meter.meter_number.strip()
        # checked up front as well as by the unique index
        existing = await self.collection.find_one({"user_id": user_id, "meter_number": number})
        if existing:
            raise DuplicateMeterError(number)

        doc = {
            "user_id": user_id,
            "name": meter.name.strip(),
            "meter_number": number,
            "type": meter.type.value,
            "unit": meter.unit or meter.type.default_unit,
            "created_at": now_utc(),
            "updated_at": now_utc(),
        }
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError:
            raise DuplicateMeterError(number)
        doc["_id"] = result.inserted_id
        return Meter(**normalize_doc(doc))

    async def update(self, meter_id: str, user_id: str, changes: Dict[str, Any]) -> Optional[Meter]:
        oid = to_object_id(meter_id)
        if oid is None:
            return None
        changes = without_none(changes)
        if "meter_number" in changes:
            changes["meter_number"] = changes["meter_number"].strip()
        changes["updated_at"] = now_utc()
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": oid, "user_id": user_id},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            raise DuplicateMeterError(changes.get("meter_number"))
        return Meter(**normalize_doc(doc)) if doc else None

    async def delete(self, meter_id: str, user_id: str) -> bool:
        oid = to_object_id(meter_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid, "user_id": user_id})
        return result.deleted_count > 0

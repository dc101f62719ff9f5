# app/repositories/readings.py
"""
Reading stores.

Two collections hold readings while the data model migration is running:
``energies`` (legacy, written by the old forms) and ``source_energy_readings``.
Both repositories expose the same interface so callers never branch on the
backend; ``app.services.feature_flags.select_reading_repository`` picks one.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from app.core.database import LEGACY_READINGS_COLLECTION, READINGS_COLLECTION
from app.models.energy import EnergyType, Reading, ReadingCreate
from app.repositories.base import normalize_doc, now_utc, to_object_id, without_none

logger = logging.getLogger(__name__)


class MongoReadingRepository:
    collection_name = READINGS_COLLECTION
    tracks_timestamps = True

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[self.collection_name]

    @property
    def backend(self) -> str:
        return self.collection_name

    def _to_model(self, doc: Dict[str, Any]) -> Reading:
        data = normalize_doc(doc)
        if not data.get("unit"):
            data["unit"] = EnergyType(data["type"]).default_unit
        return Reading(**data)

    def _to_doc(self, user_id: str, reading: ReadingCreate) -> Dict[str, Any]:
        doc = {
            "user_id": user_id,
            "type": reading.type.value,
            "amount": reading.amount,
            "date": reading.date,
            "unit": reading.unit or reading.type.default_unit,
            "meter_id": reading.meter_id,
        }
        if self.tracks_timestamps:
            doc["created_at"] = doc["updated_at"] = now_utc()
        return doc

    @staticmethod
    def _query(
        user_id: str,
        energy_type: Optional[EnergyType] = None,
        meter_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {"user_id": user_id}
        if energy_type is not None:
            query["type"] = EnergyType(energy_type).value
        if meter_id is not None:
            query["meter_id"] = meter_id
        if start is not None or end is not None:
            query["date"] = without_none({"$gte": start, "$lte": end})
        return query

    async def find_all(
        self,
        user_id: str,
        energy_type: Optional[EnergyType] = None,
        meter_id: Optional[str] = None,
        ascending: bool = True,
        limit: int = 0,
        offset: int = 0,
    ) -> List[Reading]:
        cursor = self.collection.find(self._query(user_id, energy_type, meter_id)).sort(
            [("date", ASCENDING if ascending else DESCENDING)]
        )
        if offset:
            cursor = cursor.skip(offset)
        if limit:
            cursor = cursor.limit(limit)
        docs = await cursor.to_list(length=limit or None)
        return [self._to_model(d) for d in docs]

    async def find_by_date_range(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        energy_type: Optional[EnergyType] = None,
    ) -> List[Reading]:
        cursor = self.collection.find(
            self._query(user_id, energy_type, start=start, end=end)
        ).sort([("date", ASCENDING)])
        docs = await cursor.to_list(length=None)
        return [self._to_model(d) for d in docs]

    async def find_by_id(self, reading_id: str, user_id: str) -> Optional[Reading]:
        oid = to_object_id(reading_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid, "user_id": user_id})
        return self._to_model(doc) if doc else None

    async def count(self, user_id: str, energy_type: Optional[EnergyType] = None) -> int:
        return await self.collection.count_documents(self._query(user_id, energy_type))

    async def create(self, user_id: str, reading: ReadingCreate) -> Reading:
        doc = self._to_doc(user_id, reading)
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return self._to_model(doc)

    async def create_many(self, user_id: str, readings: List[ReadingCreate]) -> List[Reading]:
        docs = [self._to_doc(user_id, r) for r in readings]
        result = await self.collection.insert_many(docs)
        for doc, _id in zip(docs, result.inserted_ids):
            doc["_id"] = _id
        return [self._to_model(d) for d in docs]

    async def update(self, reading_id: str, user_id: str, changes: Dict[str, Any]) -> Optional[Reading]:
        oid = to_object_id(reading_id)
        if oid is None:
            return None
        changes = without_none(changes)
        if self.tracks_timestamps:
            changes["updated_at"] = now_utc()
        doc = await self.collection.find_one_and_update(
            {"_id": oid, "user_id": user_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        return self._to_model(doc) if doc else None

    async def delete(self, reading_id: str, user_id: str) -> bool:
        oid = to_object_id(reading_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid, "user_id": user_id})
        return result.deleted_count > 0


class SourceReadingRepository(MongoReadingRepository):
    """Readings in the normalized ``source_energy_readings`` collection."""


class LegacyEnergyRepository(MongoReadingRepository):
    """Readings in the old ``energies`` collection (no unit or timestamps stored)."""

    collection_name = LEGACY_READINGS_COLLECTION
    tracks_timestamps = False

    def _to_doc(self, user_id: str, reading: ReadingCreate) -> Dict[str, Any]:
        doc = {
            "user_id": user_id,
            "type": reading.type.value,
            "amount": reading.amount,
            "date": reading.date,
        }
        if reading.meter_id:
            doc["meter_id"] = reading.meter_id
        return doc

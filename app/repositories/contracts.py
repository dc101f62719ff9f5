# app/repositories/contracts.py

from datetime import datetime
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument

from app.core.database import CONTRACTS_COLLECTION
from app.models.energy import Contract, ContractCreate, EnergyType
from app.repositories.base import normalize_doc, now_utc, to_object_id, without_none


class ContractRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[CONTRACTS_COLLECTION]

    async def find_all(self, user_id: str) -> List[Contract]:
        cursor = self.collection.find({"user_id": user_id}).sort([("start_date", DESCENDING)])
        return [Contract(**normalize_doc(d)) for d in await cursor.to_list(length=None)]

    async def find_by_type(self, user_id: str, energy_type: EnergyType) -> List[Contract]:
        cursor = self.collection.find(
            {"user_id": user_id, "type": EnergyType(energy_type).value}
        ).sort([("start_date", DESCENDING)])
        return [Contract(**normalize_doc(d)) for d in await cursor.to_list(length=None)]

    async def find_by_id(self, contract_id: str, user_id: str) -> Optional[Contract]:
        oid = to_object_id(contract_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid, "user_id": user_id})
        return Contract(**normalize_doc(doc)) if doc else None

    async def find_active(
        self,
        user_id: str,
        energy_type: EnergyType,
        on: Optional[datetime] = None,
    ) -> Optional[Contract]:
        """Started on or before `on`, open-ended or ending on/after it; newest start wins."""
        on = on or now_utc()
        cursor = (
            self.collection.find(
                {
                    "user_id": user_id,
                    "type": EnergyType(energy_type).value,
                    "start_date": {"$lte": on},
                    "$or": [
                        {"end_date": None},
                        {"end_date": {"$gte": on}},
                    ],
                }
            )
            .sort([("start_date", DESCENDING)])
            .limit(1)
        )
        docs = await cursor.to_list(length=1)
        return Contract(**normalize_doc(docs[0])) if docs else None

    async def create(self, user_id: str, contract: ContractCreate) -> Contract:
        doc = contract.model_dump()
        doc["type"] = contract.type.value
        doc["user_id"] = user_id
        doc["created_at"] = doc["updated_at"] = now_utc()
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return Contract(**normalize_doc(doc))

    async def update(self, contract_id: str, user_id: str, changes: Dict[str, Any]) -> Optional[Contract]:
        oid = to_object_id(contract_id)
        if oid is None:
            return None
        # an explicit null end_date reopens the contract
        changes = {k: v for k, v in changes.items() if v is not None or k == "end_date"}
        changes["updated_at"] = now_utc()
        doc = await self.collection.find_one_and_update(
            {"_id": oid, "user_id": user_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        return Contract(**normalize_doc(doc)) if doc else None

    async def delete(self, contract_id: str, user_id: str) -> bool:
        oid = to_object_id(contract_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid, "user_id": user_id})
        return result.deleted_count > 0

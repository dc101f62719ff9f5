# app/api/contracts.py

from datetime import datetime
from fastapi import APIRouter, HTTPException, Depends
from typing import Optional

from app.api.auth import get_current_user
from app.api.deps import get_contract_repository
from app.models.energy import ContractCreate, ContractUpdate, EnergyType
from app.repositories.contracts import ContractRepository
from app.services.consumption import as_utc

router = APIRouter()


@router.get("")
async def list_contracts(
    type: Optional[EnergyType] = None,
    user=Depends(get_current_user),
    repo: ContractRepository = Depends(get_contract_repository),
):
    if type is not None:
        contracts = await repo.find_by_type(user["id"], type)
    else:
        contracts = await repo.find_all(user["id"])
    return {"success": True, "contracts": contracts}


@router.get("/active")
async def get_active_contract(
    type: EnergyType,
    date: Optional[datetime] = None,
    user=Depends(get_current_user),
    repo: ContractRepository = Depends(get_contract_repository),
):
    """Contract in force for the energy type on `date` (default: now), or null."""
    contract = await repo.find_active(user["id"], type, date)
    return {"success": True, "contract": contract}


@router.post("", status_code=201)
async def create_contract(
    payload: ContractCreate,
    user=Depends(get_current_user),
    repo: ContractRepository = Depends(get_contract_repository),
):
    contract = await repo.create(user["id"], payload)
    return {"success": True, "contract": contract}


@router.put("/{contract_id}")
async def update_contract(
    contract_id: str,
    payload: ContractUpdate,
    user=Depends(get_current_user),
    repo: ContractRepository = Depends(get_contract_repository),
):
    existing = await repo.find_by_id(contract_id, user["id"])
    if existing is None:
        raise HTTPException(status_code=404, detail="Contract not found")

    changes = payload.model_dump(exclude_unset=True)
    start = as_utc(changes.get("start_date") or existing.start_date)
    end = changes["end_date"] if "end_date" in changes else existing.end_date
    if end is not None and as_utc(end) < start:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")

    contract = await repo.update(contract_id, user["id"], changes)
    return {"success": True, "contract": contract}


@router.delete("/{contract_id}")
async def delete_contract(
    contract_id: str,
    user=Depends(get_current_user),
    repo: ContractRepository = Depends(get_contract_repository),
):
    if not await repo.delete(contract_id, user["id"]):
        raise HTTPException(status_code=404, detail="Contract not found")
    return {"success": True}

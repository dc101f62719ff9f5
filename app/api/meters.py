# app/api/meters.py

from fastapi import APIRouter, HTTPException, Depends
from datetime import datetime
from typing import Optional
import logging

from app.api.auth import get_current_user
from app.api.deps import get_meter_repository, get_projection_service, reading_repository_for
from app.models.energy import MeterCreate, MeterUpdate
from app.repositories.meters import DuplicateMeterError, MeterRepository
from app.services.projection_service import ProjectionService

router = APIRouter()
logger = logging.getLogger(__name__)


async def _get_meter_or_404(repo: MeterRepository, meter_id: str, user_id: str):
    meter = await repo.find_by_id(meter_id, user_id)
    if meter is None:
        raise HTTPException(status_code=404, detail="Meter not found")
    return meter


@router.get("")
async def list_meters(
    user=Depends(get_current_user),
    repo: MeterRepository = Depends(get_meter_repository),
):
    return {"success": True, "meters": await repo.find_all(user["id"])}


@router.post("", status_code=201)
async def create_meter(
    payload: MeterCreate,
    user=Depends(get_current_user),
    repo: MeterRepository = Depends(get_meter_repository),
):
    try:
        meter = await repo.create(user["id"], payload)
    except DuplicateMeterError:
        raise HTTPException(
            status_code=409,
            detail={
                "message": "Meter number already exists",
                "meter_number": payload.meter_number,
            },
        )
    logger.info(f"Created meter {meter.meter_number} for user {user['id']}")
    return {"success": True, "meter": meter}


@router.get("/{meter_id}")
async def get_meter(
    meter_id: str,
    user=Depends(get_current_user),
    repo: MeterRepository = Depends(get_meter_repository),
):
    return {"success": True, "meter": await _get_meter_or_404(repo, meter_id, user["id"])}


@router.put("/{meter_id}")
async def update_meter(
    meter_id: str,
    payload: MeterUpdate,
    user=Depends(get_current_user),
    repo: MeterRepository = Depends(get_meter_repository),
):
    try:
        meter = await repo.update(meter_id, user["id"], payload.model_dump())
    except DuplicateMeterError:
        raise HTTPException(status_code=409, detail="Meter number already exists")
    if meter is None:
        raise HTTPException(status_code=404, detail="Meter not found")
    return {"success": True, "meter": meter}


@router.delete("/{meter_id}")
async def delete_meter(
    meter_id: str,
    user=Depends(get_current_user),
    repo: MeterRepository = Depends(get_meter_repository),
):
    """Delete a meter. Its readings are kept."""
    if not await repo.delete(meter_id, user["id"]):
        raise HTTPException(status_code=404, detail="Meter not found")
    return {"success": True}


@router.get("/{meter_id}/readings")
async def get_meter_readings(
    meter_id: str,
    user=Depends(get_current_user),
    repo: MeterRepository = Depends(get_meter_repository),
    readings=Depends(reading_repository_for("form")),
):
    meter = await _get_meter_or_404(repo, meter_id, user["id"])
    items = await readings.find_all(user["id"], energy_type=meter.type, meter_id=meter.id, ascending=False)
    return {"success": True, "meter": meter, "readings": items}


@router.get("/{meter_id}/projection")
async def get_meter_projection(
    meter_id: str,
    as_of: Optional[datetime] = None,
    user=Depends(get_current_user),
    repo: MeterRepository = Depends(get_meter_repository),
    service: ProjectionService = Depends(get_projection_service),
):
    """
    Yearly consumption and cost estimate for one meter.

    projection is null while the meter has fewer than two readings.
    """
    meter = await _get_meter_or_404(repo, meter_id, user["id"])
    projection = await service.get_meter_projection(user["id"], meter.id, meter.type, as_of)
    return {"success": True, "meter": meter, "projection": projection}

# app/api/readings.py

from fastapi import APIRouter, HTTPException, Depends
from typing import Optional
import logging

from app.api.auth import get_current_user
from app.api.deps import get_display_repository, reading_repository_for
from app.models.energy import BulkReadingCreate, EnergyType, ReadingCreate, ReadingUpdate
from app.repositories.display_data import DisplayDataRepository

router = APIRouter()
logger = logging.getLogger(__name__)

get_reading_repository = reading_repository_for("form")


async def _invalidate(display: DisplayDataRepository, user_id: str) -> None:
    removed = await display.invalidate_for_user(user_id)
    if removed:
        logger.debug(f"Dropped {removed} cached display entries for user {user_id}")


@router.get("")
async def list_readings(
    type: Optional[EnergyType] = None,
    meter_id: Optional[str] = None,
    limit: int = 1000,
    offset: int = 0,
    user=Depends(get_current_user),
    repo=Depends(get_reading_repository),
):
    """Readings of the current user, newest first."""
    readings = await repo.find_all(
        user["id"], energy_type=type, meter_id=meter_id, ascending=False, limit=limit, offset=offset
    )
    total = await repo.count(user["id"], energy_type=type)
    return {"success": True, "count": len(readings), "total": total, "readings": readings}


@router.post("", status_code=201)
async def create_reading(
    payload: ReadingCreate,
    user=Depends(get_current_user),
    repo=Depends(get_reading_repository),
    display: DisplayDataRepository = Depends(get_display_repository),
):
    reading = await repo.create(user["id"], payload)
    await _invalidate(display, user["id"])
    return {"success": True, "reading": reading}


@router.post("/bulk", status_code=201)
async def create_readings_bulk(
    payload: BulkReadingCreate,
    user=Depends(get_current_user),
    repo=Depends(get_reading_repository),
    display: DisplayDataRepository = Depends(get_display_repository),
):
    readings = await repo.create_many(user["id"], payload.readings)
    # one invalidation for the whole import
    await _invalidate(display, user["id"])
    return {"success": True, "count": len(readings), "readings": readings}


@router.put("/{reading_id}")
async def update_reading(
    reading_id: str,
    payload: ReadingUpdate,
    user=Depends(get_current_user),
    repo=Depends(get_reading_repository),
    display: DisplayDataRepository = Depends(get_display_repository),
):
    reading = await repo.update(reading_id, user["id"], payload.model_dump())
    if reading is None:
        raise HTTPException(status_code=404, detail="Reading not found")
    await _invalidate(display, user["id"])
    return {"success": True, "reading": reading}


@router.delete("/{reading_id}")
async def delete_reading(
    reading_id: str,
    user=Depends(get_current_user),
    repo=Depends(get_reading_repository),
    display: DisplayDataRepository = Depends(get_display_repository),
):
    if not await repo.delete(reading_id, user["id"]):
        raise HTTPException(status_code=404, detail="Reading not found")
    await _invalidate(display, user["id"])
    return {"success": True}

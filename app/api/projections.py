# app/api/projections.py

from fastapi import APIRouter, Depends
from datetime import datetime
from typing import Optional

from app.api.auth import get_current_user
from app.api.deps import get_projection_service
from app.models.energy import EnergyType
from app.services.projection_service import ProjectionService

router = APIRouter()


@router.get("/{energy_type}")
async def get_projections(
    energy_type: EnergyType,
    as_of: Optional[datetime] = None,
    user=Depends(get_current_user),
    service: ProjectionService = Depends(get_projection_service),
):
    """
    Current-month and current-year projection for one energy type.

    - as_of: reference date (default: now, UTC)

    projection is null when fewer than two readings exist.
    """
    projection = await service.get_projections(user["id"], energy_type, as_of)
    return {"success": True, "projection": projection}

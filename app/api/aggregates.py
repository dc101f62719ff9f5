# app/api/aggregates.py

from fastapi import APIRouter, Depends
from datetime import datetime
from typing import Optional

from app.api.auth import get_current_user
from app.api.deps import get_aggregates_service
from app.services.aggregates import AggregatesService

router = APIRouter()


@router.get("")
async def get_aggregates(
    as_of: Optional[datetime] = None,
    user=Depends(get_current_user),
    service: AggregatesService = Depends(get_aggregates_service),
):
    """
    Dashboard totals: estimated yearly cost per energy type and the cost
    and consumption of every year with readings.
    """
    return {"success": True, "aggregates": await service.get_aggregates(user["id"], as_of)}

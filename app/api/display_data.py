# app/api/display_data.py

from fastapi import APIRouter, HTTPException, Depends
import logging

from app.api.auth import get_current_user
from app.api.deps import get_display_data_service
from app.models.display_data import DisplayDataRequest
from app.services.display_data_service import DisplayDataService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/display-data")
async def get_display_data(
    body: DisplayDataRequest,
    user=Depends(get_current_user),
    service: DisplayDataService = Depends(get_display_data_service),
):
    """
    Pre-calculated chart data, served from cache while the source readings
    are unchanged.

    Body:
      {"display_type": "monthly-chart" | "histogram" | "<kind>-<type>",
       "filters": {"type": "power", "year": 2024, "bucket_count": 60,
                   "start_date": "...", "end_date": "..."}}
    """
    try:
        entry, cache_hit = await service.get_or_calculate(user["id"], body.display_type, body.filters)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "cache_hit": cache_hit,
        "data": entry,
    }

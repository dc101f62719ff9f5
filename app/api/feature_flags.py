# app/api/feature_flags.py

from fastapi import APIRouter, Depends

from app.api.auth import admin_required, get_current_user
from app.api.deps import get_feature_flag_service
from app.models.feature_flag import FeatureFlagUpdate
from app.services.feature_flags import FeatureFlagService

router = APIRouter()


@router.get("")
async def list_flags(
    user=Depends(get_current_user),
    flags: FeatureFlagService = Depends(get_feature_flag_service),
):
    return {
        "success": True,
        "flags": await flags.repository.find_all(),
        "new_backend": await flags.use_new_backend(user_id=user["id"]),
    }


@router.put("/{name}")
async def update_flag(
    name: str,
    payload: FeatureFlagUpdate,
    admin=Depends(admin_required),
    flags: FeatureFlagService = Depends(get_feature_flag_service),
):
    flag = await flags.repository.set(name, payload.model_dump())
    return {"success": True, "flag": flag}

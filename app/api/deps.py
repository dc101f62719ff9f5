# app/api/deps.py
"""Per-request wiring of repositories and services."""

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.api.auth import get_current_user
from app.core.config import Settings, settings
from app.core.database import get_db
from app.repositories.contracts import ContractRepository
from app.repositories.display_data import DisplayDataRepository
from app.repositories.feature_flags import FeatureFlagRepository
from app.repositories.meters import MeterRepository
from app.services.aggregates import AggregatesService
from app.services.display_data_service import DisplayDataService
from app.services.feature_flags import FeatureFlagService, select_reading_repository
from app.services.projection_service import ProjectionService


def get_settings() -> Settings:
    return settings


def get_feature_flag_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    cfg: Settings = Depends(get_settings),
) -> FeatureFlagService:
    return FeatureFlagService(FeatureFlagRepository(db), cfg)


def reading_repository_for(component: str):
    """
    Dependency that picks the reading store for one component, once per
    request, from the backend flags.
    """

    async def _dependency(
        db: AsyncIOMotorDatabase = Depends(get_db),
        user=Depends(get_current_user),
        flags: FeatureFlagService = Depends(get_feature_flag_service),
    ):
        use_new = await flags.use_new_backend(component, user["id"])
        return select_reading_repository(db, use_new)

    return _dependency


def get_contract_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> ContractRepository:
    return ContractRepository(db)


def get_meter_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> MeterRepository:
    return MeterRepository(db)


def get_display_repository(db: AsyncIOMotorDatabase = Depends(get_db)) -> DisplayDataRepository:
    return DisplayDataRepository(db)


def get_projection_service(
    readings=Depends(reading_repository_for("dashboard")),
    contracts: ContractRepository = Depends(get_contract_repository),
) -> ProjectionService:
    return ProjectionService(readings, contracts)


def get_display_data_service(
    readings=Depends(reading_repository_for("charts")),
    display: DisplayDataRepository = Depends(get_display_repository),
    cfg: Settings = Depends(get_settings),
) -> DisplayDataService:
    return DisplayDataService(readings, display, cfg)


def get_aggregates_service(
    readings=Depends(reading_repository_for("dashboard")),
    contracts: ContractRepository = Depends(get_contract_repository),
) -> AggregatesService:
    return AggregatesService(readings, contracts)

# app/services/feature_flags.py
"""
Backend selection for the reading store migration.

Flags:
  NEW_BACKEND_ENABLED           global switch
  {COMPONENT}_NEW_BACKEND       per-component override, e.g. DASHBOARD_NEW_BACKEND

Resolution order for (component, user):
  1. settings.NEW_BACKEND_ENABLED when it is set
  2. the component flag, if it exists
  3. the global flag
A flag applies to a user when the user is not blacklisted and is either
whitelisted or the flag is enabled.
"""

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import Settings
from app.models.feature_flag import FeatureFlag
from app.repositories.feature_flags import FeatureFlagRepository
from app.repositories.readings import (
    LegacyEnergyRepository,
    MongoReadingRepository,
    SourceReadingRepository,
)

logger = logging.getLogger(__name__)

GLOBAL_BACKEND_FLAG = "NEW_BACKEND_ENABLED"

DEFAULT_BACKEND_FLAGS = [
    FeatureFlag(name=GLOBAL_BACKEND_FLAG, description="Use source_energy_readings for every component"),
    FeatureFlag(name="DASHBOARD_NEW_BACKEND", description="Use the new backend for projections and summaries"),
    FeatureFlag(name="CHARTS_NEW_BACKEND", description="Use the new backend for monthly charts"),
    FeatureFlag(name="TIMELINE_NEW_BACKEND", description="Use the new backend for the timeline histogram"),
    FeatureFlag(name="FORM_NEW_BACKEND", description="Use the new backend for reading forms"),
]


def component_flag_name(component: str) -> str:
    return f"{component.upper()}_NEW_BACKEND"


def flag_applies(flag: Optional[FeatureFlag], user_id: Optional[str] = None) -> bool:
    if flag is None:
        return False
    if user_id is not None:
        if user_id in flag.blacklist:
            return False
        if user_id in flag.whitelist:
            return True
    return flag.enabled


class FeatureFlagService:
    def __init__(self, repository: FeatureFlagRepository, cfg: Settings):
        self.repository = repository
        self.settings = cfg

    async def is_enabled(self, name: str, user_id: Optional[str] = None) -> bool:
        return flag_applies(await self.repository.get(name), user_id)

    async def use_new_backend(self, component: Optional[str] = None, user_id: Optional[str] = None) -> bool:
        override = self.settings.NEW_BACKEND_ENABLED
        if override is not None:
            return bool(override)

        if component:
            flag = await self.repository.get(component_flag_name(component))
            if flag is not None:
                return flag_applies(flag, user_id)

        return await self.is_enabled(GLOBAL_BACKEND_FLAG, user_id)

    async def initialize_backend_flags(self) -> int:
        """Create the default (disabled) backend flags that do not exist yet."""
        created = 0
        for flag in DEFAULT_BACKEND_FLAGS:
            if await self.repository.create_if_missing(flag):
                logger.info(f"Initialized feature flag {flag.name}")
                created += 1
        return created


def select_reading_repository(db: AsyncIOMotorDatabase, use_new_backend: bool) -> MongoReadingRepository:
    if use_new_backend:
        return SourceReadingRepository(db)
    return LegacyEnergyRepository(db)

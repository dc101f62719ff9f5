from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel


class FeatureFlag(BaseModel):
    name: str
    enabled: bool = False
    description: Optional[str] = None
    whitelist: List[str] = []
    blacklist: List[str] = []
    updated_at: Optional[datetime] = None


class FeatureFlagUpdate(BaseModel):
    enabled: Optional[bool] = None
    description: Optional[str] = None
    whitelist: Optional[List[str]] = None
    blacklist: Optional[List[str]] = None

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field
from enum import Enum


class DisplayDataType(str, Enum):
    MONTHLY_CHART_POWER = "monthly-chart-power"
    MONTHLY_CHART_GAS = "monthly-chart-gas"
    HISTOGRAM_POWER = "histogram-power"
    HISTOGRAM_GAS = "histogram-gas"


class DisplayDataMetadata(BaseModel):
    source_reading_count: int = 0
    calculation_time_ms: float = 0.0
    filters: Dict[str, Any] = {}


class DisplayData(BaseModel):
    id: Optional[str] = None
    user_id: str
    display_type: DisplayDataType
    data: Any
    calculated_at: datetime
    source_data_hash: str
    metadata: DisplayDataMetadata = Field(default_factory=DisplayDataMetadata)


class DisplayDataRequest(BaseModel):
    # "monthly-chart" / "histogram" are resolved against filters.type
    display_type: str
    filters: Dict[str, Any] = {}

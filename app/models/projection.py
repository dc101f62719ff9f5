from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel

from app.models.energy import EnergyType


class MonthProjection(BaseModel):
    actual: float
    projected: float
    estimated_total: float
    estimated_cost: float
    days_remaining: float


class YearProjection(BaseModel):
    actual_to_date: float
    projected_remainder: float
    estimated_total: float
    estimated_cost: float
    days_remaining: float


class MonthlyProjectionPoint(BaseModel):
    month: int  # 1-12
    actual: Optional[float] = None
    projected: float


class ProjectionResult(BaseModel):
    type: EnergyType
    as_of: datetime
    daily_average: float
    has_contract: bool
    current_month: MonthProjection
    year: YearProjection
    monthly_data: List[MonthlyProjectionPoint]


class MeterProjection(BaseModel):
    meter_id: str
    total_consumption: float
    daily_average: float
    estimated_yearly_consumption: float
    estimated_yearly_cost: float
    days_tracked: int
    has_contract: bool


class YearStats(BaseModel):
    year: int
    power_consumption: float = 0.0
    gas_consumption: float = 0.0
    power_cost: float = 0.0
    gas_cost: float = 0.0
    cost: float = 0.0


class AggregateResult(BaseModel):
    as_of: datetime
    total_yearly_cost: float
    power_yearly_cost: float
    gas_yearly_cost: float
    previous_year_total: float
    previous_year_power: float
    previous_year_gas: float
    yearly_history: List[YearStats]

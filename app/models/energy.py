from datetime import datetime, timezone
from typing import Optional, List
from pydantic import BaseModel, Field, model_validator
from enum import Enum


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class EnergyType(str, Enum):
    POWER = "power"
    GAS = "gas"

    @property
    def default_unit(self) -> str:
        return "kWh" if self is EnergyType.POWER else "m³"


class Reading(BaseModel):
    id: Optional[str] = None
    user_id: str
    type: EnergyType
    amount: float
    date: datetime
    unit: Optional[str] = None
    meter_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReadingCreate(BaseModel):
    type: EnergyType
    amount: float
    date: datetime
    unit: Optional[str] = None
    meter_id: Optional[str] = None


class ReadingUpdate(BaseModel):
    amount: Optional[float] = None
    date: Optional[datetime] = None
    unit: Optional[str] = None


class BulkReadingCreate(BaseModel):
    readings: List[ReadingCreate] = Field(min_length=1)


class Contract(BaseModel):
    id: Optional[str] = None
    user_id: str
    type: EnergyType
    start_date: datetime
    end_date: Optional[datetime] = None
    base_price: float  # annual fixed fee
    working_price: float  # price per unit
    provider_name: Optional[str] = None
    meter_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ContractCreate(BaseModel):
    type: EnergyType
    start_date: datetime
    end_date: Optional[datetime] = None
    base_price: float = Field(ge=0)
    working_price: float = Field(ge=0)
    provider_name: Optional[str] = None
    meter_id: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date is not None and _naive_utc(self.end_date) < _naive_utc(self.start_date):
            raise ValueError("end_date must not be before start_date")
        return self


class ContractUpdate(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    base_price: Optional[float] = Field(default=None, ge=0)
    working_price: Optional[float] = Field(default=None, ge=0)
    provider_name: Optional[str] = None


class Meter(BaseModel):
    id: Optional[str] = None
    user_id: str
    name: str
    meter_number: str
    type: EnergyType
    unit: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MeterCreate(BaseModel):
    name: str = Field(min_length=1)
    meter_number: str = Field(min_length=1)
    type: EnergyType
    unit: Optional[str] = None


class MeterUpdate(BaseModel):
    name: Optional[str] = None
    meter_number: Optional[str] = None
    unit: Optional[str] = None

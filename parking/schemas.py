from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class VehicleRequest(BaseModel):
    plate: Optional[str] = None
    date: Optional[str] = None  # ISO 8601, validated by the tracker


class VehicleSessionResponse(BaseModel):
    session_id: int
    plate: str
    entry_date: datetime
    departure_date: Optional[datetime] = None
    is_active: bool


class VehicleStatusResponse(BaseModel):
    plate: str
    entry_date: str
    departure_date: str  # "-" while parked
    duration: str  # HH:MM
    elapsed_minutes: int
    billable_minutes: int
    charge: Decimal
    initial_block_value: Decimal


class PricingCreate(BaseModel):
    effective_from: datetime
    effective_to: Optional[datetime] = None
    grace_minutes: int = Field(0, ge=0)
    initial_block_minutes: int = Field(..., ge=0)
    initial_block_value: Decimal = Field(..., ge=0)
    increment_minutes: int = Field(..., gt=0)
    increment_value: Decimal = Field(..., ge=0)


class PricingResponse(PricingCreate):
    pass

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.clock import to_naive_utc

MIN_VOYAGE_DAYS = 3
MAX_VOYAGE_DAYS = 60


class VoyageAllocationBase(BaseModel):
    parcel_id: int
    vessel_id: int
    loading_date: datetime
    discharge_date: datetime
    freight_rate: Decimal = Field(ge=0, le=999999)      # USD per barrel
    demurrage_rate: Decimal = Field(ge=0, le=999999)    # USD per day

    @field_validator("loading_date", "discharge_date")
    @classmethod
    def store_as_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    @model_validator(mode="after")
    def check_voyage_dates(self):
        if self.discharge_date <= self.loading_date:
            raise ValueError("Discharge date must be after loading date")
        duration = (self.discharge_date - self.loading_date).days
        if duration < MIN_VOYAGE_DAYS:
            raise ValueError(f"Voyage duration must be at least {MIN_VOYAGE_DAYS} days")
        if duration > MAX_VOYAGE_DAYS:
            raise ValueError(f"Voyage duration cannot exceed {MAX_VOYAGE_DAYS} days")
        return self


class VoyageAllocationCreate(VoyageAllocationBase):
    pass


class VoyageAllocationUpdate(VoyageAllocationBase):
    pass


class VoyageAllocationResponse(BaseModel):
    id: int
    parcel_id: int
    vessel_id: int
    parcel_name: Optional[str] = None
    vessel_name: Optional[str] = None
    loading_date: datetime
    discharge_date: datetime
    freight_rate: float
    demurrage_rate: float
    voyage_duration_days: int = 0

    class Config:
        from_attributes = True

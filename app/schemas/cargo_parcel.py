from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, constr, field_validator, model_validator

from app.core.clock import to_naive_utc
from app.models.enums import CargoParcelStatus


class CargoParcelBase(BaseModel):
    parcel_name: constr(min_length=1, max_length=200)
    crude_grade: constr(min_length=1, max_length=100)
    quantity_bbls: Decimal = Field(ge=0, le=999999999)
    loading_port: constr(min_length=1, max_length=200)
    discharge_port: constr(min_length=1, max_length=200)
    laycan_start: datetime
    laycan_end: datetime
    status: CargoParcelStatus = CargoParcelStatus.PLANNED

    @field_validator("laycan_start", "laycan_end")
    @classmethod
    def store_as_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    @model_validator(mode="after")
    def check_laycan_and_ports(self):
        if self.laycan_end <= self.laycan_start:
            raise ValueError("Laycan end date must be after laycan start date")
        if self.loading_port.strip().lower() == self.discharge_port.strip().lower():
            raise ValueError("Loading port and discharge port cannot be the same")
        return self


class CargoParcelCreate(CargoParcelBase):
    pass


class CargoParcelUpdate(CargoParcelBase):
    pass


class CargoParcelResponse(BaseModel):
    id: int
    parcel_name: str
    crude_grade: str
    quantity_bbls: float
    loading_port: str
    discharge_port: str
    laycan_start: datetime
    laycan_end: datetime
    status: CargoParcelStatus
    created_date: datetime
    voyage_allocation_count: int = 0

    class Config:
        from_attributes = True

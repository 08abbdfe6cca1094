from decimal import Decimal

from pydantic import BaseModel, Field, constr

from app.models.enums import VesselType, VesselStatus


class VesselBase(BaseModel):
    vessel_name: constr(min_length=1, max_length=200)
    # VALIDATION: "IMO" followed by exactly 7 digits
    imo_number: constr(pattern=r'^IMO\d{7}$')
    dwt: Decimal = Field(gt=0, le=999999, decimal_places=2)
    vessel_type: VesselType
    current_status: VesselStatus = VesselStatus.AVAILABLE


class VesselCreate(VesselBase):
    pass


class VesselUpdate(VesselBase):
    pass


class VesselResponse(BaseModel):
    id: int
    vessel_name: str
    imo_number: str
    dwt: float
    vessel_type: VesselType
    current_status: VesselStatus
    voyage_allocation_count: int = 0

    class Config:
        from_attributes = True

from sqlalchemy import Column, Integer, String, Numeric, Enum as SQLEnum
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.models.enums import VesselType, VesselStatus, enum_values


class Vessel(Base):
    __tablename__ = "vessels"

    id = Column(Integer, primary_key=True, autoincrement=True)

    vessel_name = Column(String(200), nullable=False)    # e.g., "MT Pacific Star"
    # IMO registration, "IMO" + 7 digits (e.g., "IMO9123456")
    imo_number = Column(String(20), unique=True, index=True, nullable=False)
    dwt = Column(Numeric(18, 2), nullable=False)
    vessel_type = Column(
        SQLEnum(VesselType, name="vesseltype", native_enum=False, values_callable=enum_values),
        nullable=False
    )
    current_status = Column(
        SQLEnum(VesselStatus, name="vesselstatus", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=VesselStatus.AVAILABLE
    )

    # RELATIONS
    # Deleting a vessel that still has allocations is blocked (RESTRICT on the FK)
    voyage_allocations = relationship(
        "VoyageAllocation",
        back_populates="vessel",
        passive_deletes="all"
    )

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum as SQLEnum
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.core.database import Base
from app.models.enums import CargoParcelStatus, enum_values


class CargoParcel(Base):
    __tablename__ = "cargo_parcels"

    id = Column(Integer, primary_key=True, autoincrement=True)

    parcel_name = Column(String(200), nullable=False)
    crude_grade = Column(String(100), nullable=False)    # e.g., "Brent", "WTI", "Arab Light"
    quantity_bbls = Column(Numeric(18, 2), nullable=False)
    loading_port = Column(String(200), nullable=False)
    discharge_port = Column(String(200), nullable=False)

    # Laycan window, stored as naive UTC.
    # start <= end is only checked by the request schemas.
    laycan_start = Column(DateTime, nullable=False)
    laycan_end = Column(DateTime, nullable=False, index=True)

    status = Column(
        SQLEnum(CargoParcelStatus, name="cargoparcelstatus", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=CargoParcelStatus.PLANNED,
        index=True
    )
    created_date = Column(DateTime, default=utcnow, nullable=False)

    # RELATIONS
    voyage_allocations = relationship(
        "VoyageAllocation",
        back_populates="cargo_parcel",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

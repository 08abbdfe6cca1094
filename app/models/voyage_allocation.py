from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from app.core.database import Base


class VoyageAllocation(Base):
    __tablename__ = "voyage_allocations"

    id = Column(Integer, primary_key=True, autoincrement=True)

    parcel_id = Column(Integer, ForeignKey("cargo_parcels.id", ondelete="CASCADE"), nullable=False, index=True)
    vessel_id = Column(Integer, ForeignKey("vessels.id", ondelete="RESTRICT"), nullable=False, index=True)

    loading_date = Column(DateTime, nullable=False)
    discharge_date = Column(DateTime, nullable=False)

    freight_rate = Column(Numeric(18, 4), nullable=False)     # USD per barrel
    demurrage_rate = Column(Numeric(18, 2), nullable=False)   # USD per day

    # RELATIONS
    cargo_parcel = relationship("CargoParcel", back_populates="voyage_allocations")
    vessel = relationship("Vessel", back_populates="voyage_allocations")

import enum


def enum_values(enum_cls):
    """Persist enum *values* ("OnVoyage"), not member names ("ON_VOYAGE")."""
    return [member.value for member in enum_cls]

# --- VESSEL TYPES ---
class VesselType(str, enum.Enum):
    VLCC = "VLCC"              # Very Large Crude Carrier
    SUEZMAX = "Suezmax"
    AFRAMAX = "Aframax"
    PANAMAX = "Panamax"
    HANDYSIZE = "Handysize"
    PRODUCT_TANKER = "ProductTanker"

# --- VESSEL STATUS ---
class VesselStatus(str, enum.Enum):
    AVAILABLE = "Available"
    ON_VOYAGE = "OnVoyage"
    LOADING = "Loading"
    DISCHARGING = "Discharging"
    IN_DRYDOCK = "InDrydock"
    MAINTENANCE = "Maintenance"
    INACTIVE = "Inactive"

# --- CARGO PARCEL STATUS ---
class CargoParcelStatus(str, enum.Enum):
    PLANNED = "Planned"
    NOMINATED = "Nominated"
    CONFIRMED = "Confirmed"
    LOADING = "Loading"
    IN_TRANSIT = "InTransit"
    DISCHARGING = "Discharging"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

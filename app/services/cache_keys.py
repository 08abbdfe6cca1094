# Centralized cache key definitions
ALL_VESSELS = "vessels:all"
ALL_PARCELS = "parcels:all"
ALL_VOYAGE_ALLOCATIONS = "voyages:all"
DASHBOARD_STATS = "dashboard:stats"


def _value(member) -> str:
    return member.value if hasattr(member, "value") else str(member)


def vessel_by_id(vessel_id: int) -> str:
    return f"vessel:{vessel_id}"


def parcel_by_id(parcel_id: int) -> str:
    return f"parcel:{parcel_id}"


def voyage_by_id(allocation_id: int) -> str:
    return f"voyage:{allocation_id}"


def vessels_by_status(status) -> str:
    return f"vessels:status:{_value(status)}"


def vessels_by_type(vessel_type) -> str:
    return f"vessels:type:{_value(vessel_type)}"


def parcels_by_status(status) -> str:
    return f"parcels:status:{_value(status)}"

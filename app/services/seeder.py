"""
Demo data for local runs: 50 vessels, 75 parcels and up to 75 voyage allocations.

Generated from a fixed random seed so every fresh database looks the same
(dates are relative to the moment of seeding).
"""
import logging
import random
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.clock import utcnow
from app.models.cargo_parcel import CargoParcel
from app.models.enums import CargoParcelStatus, VesselStatus, VesselType
from app.models.vessel import Vessel
from app.models.voyage_allocation import VoyageAllocation

logger = logging.getLogger(__name__)

SEED = 42

VESSEL_PREFIXES = ["MT", "MV", "VLCC"]
VESSEL_NAMES = [
    "Pacific", "Atlantic", "Ocean", "Marine", "Horizon", "Navigator", "Explorer",
    "Pioneer", "Victory", "Liberty", "Freedom", "Spirit", "Unity", "Destiny",
    "Enterprise", "Endeavour", "Discovery", "Triumph", "Majestic", "Noble",
    "Sovereign", "Imperial", "Royal", "Elite", "Premier", "Supreme", "Grand",
    "Golden", "Silver", "Diamond", "Platinum", "Crystal", "Pearl", "Sapphire",
    "Emerald", "Ruby", "Topaz", "Amber", "Jade", "Coral", "Aurora", "Stellar",
    "Celestial", "Galaxy", "Cosmos", "Nebula", "Polaris", "Sirius", "Vega",
]

# DWT range per vessel class
DWT_RANGES = {
    VesselType.VLCC: (200000, 320000),
    VesselType.SUEZMAX: (120000, 200000),
    VesselType.AFRAMAX: (80000, 120000),
    VesselType.PANAMAX: (60000, 80000),
    VesselType.HANDYSIZE: (30000, 60000),
    VesselType.PRODUCT_TANKER: (20000, 50000),
}

CRUDE_GRADES = [
    "Brent Crude", "WTI (West Texas Intermediate)", "Dubai Crude", "Oman Crude",
    "Urals", "Bonny Light", "Arab Light", "Arab Heavy", "Basra Light",
    "Forcados", "Qua Iboe", "Escravos", "Brass River", "Pennington",
    "Alaska North Slope", "Maya", "Kirkuk", "Iranian Heavy", "Iranian Light",
    "Kuwait Export", "Murban", "Das Blend", "Upper Zakum", "Qatar Marine",
]

PORTS = [
    "Ras Tanura, Saudi Arabia", "Houston, USA", "Rotterdam, Netherlands",
    "Singapore", "Jebel Ali, UAE", "Fujairah, UAE", "Ningbo, China",
    "Shanghai, China", "Ulsan, South Korea", "Yokohama, Japan",
    "Mumbai, India", "Lagos, Nigeria", "Bonny, Nigeria",
    "Valdez, USA", "Corpus Christi, USA", "Galveston, USA",
    "Kharg Island, Iran", "Basra, Iraq", "Kuwait City, Kuwait",
    "Dampier, Australia", "Gladstone, Australia", "Port Harcourt, Nigeria",
]


def generate_vessels(rng: random.Random, count: int = 50) -> list[Vessel]:
    vessels = []
    for i in range(count):
        vessel_type = rng.choice(list(VesselType))
        low, high = DWT_RANGES[vessel_type]
        suffix = " II" if i > 25 else ""
        vessels.append(Vessel(
            vessel_name=f"{rng.choice(VESSEL_PREFIXES)} {rng.choice(VESSEL_NAMES)}{suffix}",
            imo_number=f"IMO{1000000 + i:07d}",
            dwt=Decimal(rng.randrange(low, high)),
            vessel_type=vessel_type,
            current_status=rng.choice(list(VesselStatus)),
        ))
    return vessels


def generate_parcels(rng: random.Random, count: int = 75) -> list[CargoParcel]:
    now = utcnow()
    parcels = []
    for i in range(count):
        laycan_start = now + timedelta(days=rng.randrange(-30, 60))
        loading_port = rng.choice(PORTS)
        parcels.append(CargoParcel(
            parcel_name=f"PARCEL-{now.year}-{i + 1:04d}",
            crude_grade=rng.choice(CRUDE_GRADES),
            quantity_bbls=Decimal(rng.randrange(300000, 2000000)),
            loading_port=loading_port,
            discharge_port=rng.choice([p for p in PORTS if p != loading_port]),
            laycan_start=laycan_start,
            laycan_end=laycan_start + timedelta(days=rng.randrange(3, 10)),
            status=rng.choice(list(CargoParcelStatus)),
            created_date=now - timedelta(days=rng.randrange(1, 90)),
        ))
    return parcels


def generate_allocations(rng: random.Random, vessels, parcels, count: int = 100) -> list[VoyageAllocation]:
    # At most one allocation per parcel
    chosen = rng.sample(parcels, min(count, len(parcels)))
    allocations = []
    for parcel in chosen:
        loading_date = parcel.laycan_start + timedelta(days=rng.randrange(0, 3))
        allocations.append(VoyageAllocation(
            cargo_parcel=parcel,
            vessel=rng.choice(vessels),
            loading_date=loading_date,
            discharge_date=loading_date + timedelta(days=rng.randrange(10, 30)),
            freight_rate=Decimal(str(round(rng.random() * 5 + 1, 4))),   # $1-6 per barrel
            demurrage_rate=Decimal(rng.randrange(15000, 50000)),         # $15k-50k per day
        ))
    return allocations


async def seed_database(db: AsyncSession) -> bool:
    """Insert demo data unless vessels already exist. Returns True when data was written."""
    result = await db.execute(select(Vessel.id).limit(1))
    if result.first() is not None:
        logger.info("Database already seeded, skipping demo data")
        return False

    rng = random.Random(SEED)
    vessels = generate_vessels(rng)
    parcels = generate_parcels(rng)
    allocations = generate_allocations(rng, vessels, parcels)

    db.add_all(vessels)
    db.add_all(parcels)
    db.add_all(allocations)
    await db.commit()

    logger.info(
        f"✅ Seeded {len(vessels)} vessels, {len(parcels)} cargo parcels "
        f"and {len(allocations)} voyage allocations"
    )
    return True

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from app.api.deps import get_cache, get_performance_monitor
from app.core.database import get_db
from app.models.cargo_parcel import CargoParcel
from app.models.vessel import Vessel
from app.models.voyage_allocation import VoyageAllocation
from app.schemas.voyage_allocation import (
    VoyageAllocationCreate,
    VoyageAllocationResponse,
    VoyageAllocationUpdate,
)
from app.services import cache_keys
from app.services.cache_service import CacheService
from app.services.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)

router = APIRouter()


def to_response(allocation: VoyageAllocation) -> VoyageAllocationResponse:
    return VoyageAllocationResponse(
        id=allocation.id,
        parcel_id=allocation.parcel_id,
        vessel_id=allocation.vessel_id,
        parcel_name=allocation.cargo_parcel.parcel_name if allocation.cargo_parcel else None,
        vessel_name=allocation.vessel.vessel_name if allocation.vessel else None,
        loading_date=allocation.loading_date,
        discharge_date=allocation.discharge_date,
        freight_rate=allocation.freight_rate,
        demurrage_rate=allocation.demurrage_rate,
        voyage_duration_days=(allocation.discharge_date - allocation.loading_date).days,
    )


async def invalidate_allocation(cache: CacheService, allocation_id: int, parcels=(), vessels=()):
    keys = [
        cache_keys.ALL_VOYAGE_ALLOCATIONS,
        cache_keys.voyage_by_id(allocation_id),
        cache_keys.ALL_PARCELS,
        cache_keys.ALL_VESSELS,
        cache_keys.DASHBOARD_STATS,
    ]
    # Allocation counts appear in every parcel and vessel view of the references
    for parcel in parcels:
        keys.append(cache_keys.parcel_by_id(parcel.id))
        keys.append(cache_keys.parcels_by_status(parcel.status))
    for vessel in vessels:
        keys.append(cache_keys.vessel_by_id(vessel.id))
        keys.append(cache_keys.vessels_by_status(vessel.current_status))
        keys.append(cache_keys.vessels_by_type(vessel.vessel_type))
    await cache.invalidate(*keys)


def _with_names(stmt):
    return stmt.options(
        selectinload(VoyageAllocation.cargo_parcel),
        selectinload(VoyageAllocation.vessel),
    )


async def _get_allocation(db: AsyncSession, allocation_id: int) -> VoyageAllocation:
    stmt = _with_names(select(VoyageAllocation).where(VoyageAllocation.id == allocation_id))
    result = await db.execute(stmt)
    allocation = result.scalars().first()
    if not allocation:
        raise HTTPException(status_code=404, detail=f"Voyage allocation with ID {allocation_id} not found")
    return allocation


async def _check_references(db: AsyncSession, parcel_id: int, vessel_id: int):
    if await db.get(CargoParcel, parcel_id) is None:
        raise HTTPException(status_code=400, detail=f"Cargo parcel with ID {parcel_id} does not exist")
    if await db.get(Vessel, vessel_id) is None:
        raise HTTPException(status_code=400, detail=f"Vessel with ID {vessel_id} does not exist")


# 1. GET ALL ALLOCATIONS (CACHED)
@router.get("/", response_model=List[VoyageAllocationResponse])
async def read_allocations(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    monitor: PerformanceMonitor = Depends(get_performance_monitor),
):
    cached = cache.get(cache_keys.ALL_VOYAGE_ALLOCATIONS)
    if cached is not None:
        return cached

    try:
        with monitor.measure("GetAllVoyageAllocations"):
            stmt = _with_names(select(VoyageAllocation).order_by(VoyageAllocation.loading_date.desc()))
            result = await db.execute(stmt)
            allocations = [to_response(a) for a in result.scalars().all()]
    except Exception as e:
        logger.error(f"❌ Error retrieving voyage allocations: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while retrieving voyage allocations")

    cache.set(cache_keys.ALL_VOYAGE_ALLOCATIONS, allocations)
    return allocations


# 2. GET ONE ALLOCATION (CACHED)
@router.get("/{allocation_id}", response_model=VoyageAllocationResponse)
async def read_allocation(
    allocation_id: int,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    cache_key = cache_keys.voyage_by_id(allocation_id)
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    try:
        allocation = to_response(await _get_allocation(db, allocation_id))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error retrieving voyage allocation {allocation_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while retrieving the voyage allocation")

    cache.set(cache_key, allocation)
    return allocation


# 3. CREATE ALLOCATION
@router.post("/", response_model=VoyageAllocationResponse, status_code=status.HTTP_201_CREATED)
async def create_allocation(
    allocation_in: VoyageAllocationCreate,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    try:
        await _check_references(db, allocation_in.parcel_id, allocation_in.vessel_id)

        new_allocation = VoyageAllocation(**allocation_in.model_dump())
        db.add(new_allocation)
        await db.commit()
        allocation = await _get_allocation(db, new_allocation.id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error creating voyage allocation: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while creating the voyage allocation")

    logger.info(
        f"✅ Voyage allocation created: parcel {allocation.parcel_id} on vessel {allocation.vessel_id}"
    )
    await invalidate_allocation(
        cache, allocation.id, parcels=[allocation.cargo_parcel], vessels=[allocation.vessel]
    )
    return to_response(allocation)


# 4. UPDATE ALLOCATION
@router.put("/{allocation_id}", response_model=VoyageAllocationResponse)
async def update_allocation(
    allocation_id: int,
    allocation_in: VoyageAllocationUpdate,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    try:
        allocation = await _get_allocation(db, allocation_id)
        await _check_references(db, allocation_in.parcel_id, allocation_in.vessel_id)
        old_parcel, old_vessel = allocation.cargo_parcel, allocation.vessel

        for field, value in allocation_in.model_dump().items():
            setattr(allocation, field, value)

        await db.commit()
        # Reload so the parcel / vessel names follow the new references
        db.expire(allocation)
        allocation = await _get_allocation(db, allocation_id)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error updating voyage allocation {allocation_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while updating the voyage allocation")

    await invalidate_allocation(
        cache, allocation_id,
        parcels=[old_parcel, allocation.cargo_parcel],
        vessels=[old_vessel, allocation.vessel],
    )
    return to_response(allocation)


# 5. DELETE ALLOCATION
@router.delete("/{allocation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_allocation(
    allocation_id: int,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    try:
        allocation = await _get_allocation(db, allocation_id)
        await db.delete(allocation)
        await db.commit()
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error deleting voyage allocation {allocation_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while deleting the voyage allocation")

    await invalidate_allocation(
        cache, allocation_id, parcels=[allocation.cargo_parcel], vessels=[allocation.vessel]
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from app.api.deps import get_broadcaster, get_cache, get_current_user_name, get_performance_monitor
from app.core.database import get_db
from app.models.cargo_parcel import CargoParcel
from app.models.enums import CargoParcelStatus
from app.models.voyage_allocation import VoyageAllocation
from app.schemas.cargo_parcel import CargoParcelCreate, CargoParcelResponse, CargoParcelUpdate
from app.schemas.common import PagedResult
from app.services import cache_keys
from app.services.cache_service import CacheService
from app.services.notification_service import (
    NewParcelCreated,
    NotificationBroadcaster,
    NotificationTopic,
    ParcelDeleted,
    ParcelStatusChanged,
)
from app.services.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)

router = APIRouter()

SORT_COLUMNS = {
    "parcel_name": CargoParcel.parcel_name,
    "quantity_bbls": CargoParcel.quantity_bbls,
    "laycan_start": CargoParcel.laycan_start,
}


def to_response(parcel: CargoParcel, allocation_count: Optional[int] = None) -> CargoParcelResponse:
    if allocation_count is None:
        allocation_count = len(parcel.voyage_allocations)
    return CargoParcelResponse.model_validate(parcel).model_copy(
        update={"voyage_allocation_count": allocation_count}
    )


async def invalidate_parcel(cache: CacheService, parcel_id: int, statuses=(), allocations=()):
    keys = [cache_keys.ALL_PARCELS, cache_keys.parcel_by_id(parcel_id), cache_keys.DASHBOARD_STATS]
    keys += [cache_keys.parcels_by_status(s) for s in statuses]
    if allocations:
        # Removed allocations change the vessel views too
        keys.append(cache_keys.ALL_VOYAGE_ALLOCATIONS)
        keys.append(cache_keys.ALL_VESSELS)
        for allocation in allocations:
            vessel = allocation.vessel
            keys.append(cache_keys.voyage_by_id(allocation.id))
            keys.append(cache_keys.vessel_by_id(vessel.id))
            keys.append(cache_keys.vessels_by_status(vessel.current_status))
            keys.append(cache_keys.vessels_by_type(vessel.vessel_type))
    await cache.invalidate(*keys)


async def _get_parcel(db: AsyncSession, parcel_id: int, with_vessels: bool = False) -> CargoParcel:
    allocations = selectinload(CargoParcel.voyage_allocations)
    if with_vessels:
        allocations = allocations.selectinload(VoyageAllocation.vessel)
    stmt = select(CargoParcel).where(CargoParcel.id == parcel_id).options(allocations)
    result = await db.execute(stmt)
    parcel = result.scalars().first()
    if not parcel:
        raise HTTPException(status_code=404, detail=f"Cargo parcel with ID {parcel_id} not found")
    return parcel


# 1. GET PARCELS (PAGED)
@router.get("/", response_model=PagedResult[CargoParcelResponse])
async def read_parcels(
    page_number: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    status: Optional[CargoParcelStatus] = None,
    crude_grade: Optional[str] = None,
    sort_by: str = Query("laycan_start", pattern="^(parcel_name|quantity_bbls|laycan_start)$"),
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
    monitor: PerformanceMonitor = Depends(get_performance_monitor),
):
    try:
        with monitor.measure("GetParcelsPaged"):
            stmt = select(CargoParcel)
            if status:
                stmt = stmt.where(CargoParcel.status == status)
            if crude_grade:
                stmt = stmt.where(CargoParcel.crude_grade.ilike(f"%{crude_grade}%"))

            total_count = (await db.execute(
                select(func.count()).select_from(stmt.subquery())
            )).scalar_one()

            column = SORT_COLUMNS[sort_by]
            stmt = stmt.order_by(column.desc() if sort_order == "desc" else column.asc(), CargoParcel.id)
            stmt = stmt.options(selectinload(CargoParcel.voyage_allocations))
            stmt = stmt.offset((page_number - 1) * page_size).limit(page_size)

            result = await db.execute(stmt)
            parcels = result.scalars().all()

        return PagedResult[CargoParcelResponse](
            items=[to_response(p) for p in parcels],
            total_count=total_count,
            page_number=page_number,
            page_size=page_size,
        )
    except Exception as e:
        logger.error(f"❌ Error retrieving cargo parcels: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while retrieving cargo parcels")


# 2. GET ALL PARCELS (CACHED)
@router.get("/all", response_model=List[CargoParcelResponse])
async def read_all_parcels(
    status: Optional[CargoParcelStatus] = None,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    monitor: PerformanceMonitor = Depends(get_performance_monitor),
):
    cache_key = cache_keys.parcels_by_status(status) if status else cache_keys.ALL_PARCELS
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    try:
        with monitor.measure("GetAllParcels"):
            stmt = (
                select(CargoParcel)
                .options(selectinload(CargoParcel.voyage_allocations))
                .order_by(CargoParcel.laycan_start)
            )
            if status:
                stmt = stmt.where(CargoParcel.status == status)
            result = await db.execute(stmt)
            parcels = [to_response(p) for p in result.scalars().all()]
    except Exception as e:
        logger.error(f"❌ Error retrieving cargo parcels: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while retrieving cargo parcels")

    cache.set(cache_key, parcels)
    return parcels


# 3. GET ONE PARCEL (CACHED)
@router.get("/{parcel_id}", response_model=CargoParcelResponse)
async def read_parcel(
    parcel_id: int,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    cache_key = cache_keys.parcel_by_id(parcel_id)
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    try:
        parcel = to_response(await _get_parcel(db, parcel_id))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error retrieving cargo parcel {parcel_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while retrieving the cargo parcel")

    cache.set(cache_key, parcel)
    return parcel


# 4. CREATE PARCEL
@router.post("/", response_model=CargoParcelResponse, status_code=status.HTTP_201_CREATED)
async def create_parcel(
    parcel_in: CargoParcelCreate,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster),
    user_name: str = Depends(get_current_user_name),
):
    try:
        new_parcel = CargoParcel(**parcel_in.model_dump())
        db.add(new_parcel)
        await db.commit()
        await db.refresh(new_parcel)
    except Exception as e:
        logger.error(f"❌ Error creating cargo parcel: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while creating the cargo parcel")

    logger.info(f"✅ Cargo parcel created: {new_parcel.parcel_name} by {user_name}")
    await invalidate_parcel(cache, new_parcel.id, statuses=[new_parcel.status])
    broadcaster.publish(NotificationTopic.NEW_PARCEL_CREATED, NewParcelCreated(
        parcel_id=new_parcel.id,
        parcel_name=new_parcel.parcel_name,
        crude_grade=new_parcel.crude_grade,
        quantity=float(new_parcel.quantity_bbls),
        user_name=user_name,
    ))
    return to_response(new_parcel, allocation_count=0)


# 5. UPDATE PARCEL
@router.put("/{parcel_id}", response_model=CargoParcelResponse)
async def update_parcel(
    parcel_id: int,
    parcel_in: CargoParcelUpdate,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster),
    user_name: str = Depends(get_current_user_name),
):
    try:
        parcel = await _get_parcel(db, parcel_id)
        old_status = parcel.status

        for field, value in parcel_in.model_dump().items():
            setattr(parcel, field, value)

        await db.commit()
        await db.refresh(parcel)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error updating cargo parcel {parcel_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while updating the cargo parcel")

    await invalidate_parcel(cache, parcel_id, statuses=[old_status, parcel.status])

    if old_status != parcel.status:
        logger.info(
            f"Parcel {parcel.parcel_name} status changed: {old_status.value} -> {parcel.status.value}"
        )
        broadcaster.publish(NotificationTopic.PARCEL_STATUS_CHANGED, ParcelStatusChanged(
            parcel_id=parcel.id,
            parcel_name=parcel.parcel_name,
            old_status=old_status.value,
            new_status=parcel.status.value,
            user_name=user_name,
        ))
    return to_response(await _get_parcel(db, parcel_id))


# 6. DELETE PARCEL
@router.delete("/{parcel_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_parcel(
    parcel_id: int,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster),
    user_name: str = Depends(get_current_user_name),
):
    try:
        # Allocations are loaded so they are deleted along with the parcel
        parcel = await _get_parcel(db, parcel_id, with_vessels=True)
        allocations = list(parcel.voyage_allocations)
        await db.delete(parcel)
        await db.commit()
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error deleting cargo parcel {parcel_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while deleting the cargo parcel")

    logger.info(f"Cargo parcel deleted: {parcel.parcel_name} ({len(allocations)} allocations removed)")
    await invalidate_parcel(cache, parcel_id, statuses=[parcel.status], allocations=allocations)
    broadcaster.publish(NotificationTopic.PARCEL_DELETED, ParcelDeleted(
        parcel_id=parcel.id,
        parcel_name=parcel.parcel_name,
        user_name=user_name,
    ))
    return Response(status_code=status.HTTP_204_NO_CONTENT)

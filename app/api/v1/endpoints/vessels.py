import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from app.api.deps import get_broadcaster, get_cache, get_current_user_name, get_performance_monitor
from app.core.database import get_db
from app.models.enums import VesselStatus, VesselType
from app.models.vessel import Vessel
from app.models.voyage_allocation import VoyageAllocation
from app.schemas.common import PagedResult
from app.schemas.vessel import VesselCreate, VesselResponse, VesselUpdate
from app.services import cache_keys
from app.services.cache_service import CacheService
from app.services.notification_service import NotificationBroadcaster, NotificationTopic, VesselChanged
from app.services.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)

router = APIRouter()

SORT_COLUMNS = {
    "vessel_name": Vessel.vessel_name,
    "dwt": Vessel.dwt,
    "vessel_type": Vessel.vessel_type,
}


def to_response(vessel: Vessel, allocation_count: Optional[int] = None) -> VesselResponse:
    if allocation_count is None:
        allocation_count = len(vessel.voyage_allocations)
    return VesselResponse.model_validate(vessel).model_copy(
        update={"voyage_allocation_count": allocation_count}
    )


async def invalidate_vessel(cache: CacheService, vessel_id: int, statuses=(), types=()):
    keys = [cache_keys.ALL_VESSELS, cache_keys.vessel_by_id(vessel_id), cache_keys.DASHBOARD_STATS]
    keys += [cache_keys.vessels_by_status(s) for s in statuses]
    keys += [cache_keys.vessels_by_type(t) for t in types]
    await cache.invalidate(*keys)


async def _imo_taken(db: AsyncSession, imo_number: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(Vessel.id).where(Vessel.imo_number == imo_number)
    if exclude_id is not None:
        stmt = stmt.where(Vessel.id != exclude_id)
    result = await db.execute(stmt)
    return result.first() is not None


async def _get_vessel(db: AsyncSession, vessel_id: int) -> Vessel:
    stmt = select(Vessel).where(Vessel.id == vessel_id).options(selectinload(Vessel.voyage_allocations))
    result = await db.execute(stmt)
    vessel = result.scalars().first()
    if not vessel:
        raise HTTPException(status_code=404, detail=f"Vessel with ID {vessel_id} not found")
    return vessel


# 1. GET VESSELS (PAGED)
@router.get("/", response_model=PagedResult[VesselResponse])
async def read_vessels(
    page_number: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    vessel_type: Optional[VesselType] = None,
    status: Optional[VesselStatus] = None,
    sort_by: str = Query("vessel_name", pattern="^(vessel_name|dwt|vessel_type)$"),
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
    monitor: PerformanceMonitor = Depends(get_performance_monitor),
):
    try:
        with monitor.measure("GetVesselsPaged"):
            stmt = select(Vessel)
            if vessel_type:
                stmt = stmt.where(Vessel.vessel_type == vessel_type)
            if status:
                stmt = stmt.where(Vessel.current_status == status)

            total_count = (await db.execute(
                select(func.count()).select_from(stmt.subquery())
            )).scalar_one()

            column = SORT_COLUMNS[sort_by]
            stmt = stmt.order_by(column.desc() if sort_order == "desc" else column.asc(), Vessel.id)
            stmt = stmt.options(selectinload(Vessel.voyage_allocations))
            stmt = stmt.offset((page_number - 1) * page_size).limit(page_size)

            result = await db.execute(stmt)
            vessels = result.scalars().all()

        return PagedResult[VesselResponse](
            items=[to_response(v) for v in vessels],
            total_count=total_count,
            page_number=page_number,
            page_size=page_size,
        )
    except Exception as e:
        logger.error(f"❌ Error retrieving vessels: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while retrieving vessels")


# 2. GET ALL VESSELS (CACHED)
@router.get("/all", response_model=List[VesselResponse])
async def read_all_vessels(
    vessel_type: Optional[VesselType] = None,
    status: Optional[VesselStatus] = None,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    monitor: PerformanceMonitor = Depends(get_performance_monitor),
):
    if vessel_type and status:
        cache_key = None
    elif vessel_type:
        cache_key = cache_keys.vessels_by_type(vessel_type)
    elif status:
        cache_key = cache_keys.vessels_by_status(status)
    else:
        cache_key = cache_keys.ALL_VESSELS

    if cache_key:
        cached = cache.get(cache_key)
        if cached is not None:
            return cached

    try:
        with monitor.measure("GetAllVessels"):
            stmt = select(Vessel).options(selectinload(Vessel.voyage_allocations)).order_by(Vessel.vessel_name)
            if vessel_type:
                stmt = stmt.where(Vessel.vessel_type == vessel_type)
            if status:
                stmt = stmt.where(Vessel.current_status == status)
            result = await db.execute(stmt)
            vessels = [to_response(v) for v in result.scalars().all()]
    except Exception as e:
        logger.error(f"❌ Error retrieving vessels: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while retrieving vessels")

    if cache_key:
        cache.set(cache_key, vessels)
    return vessels


# 3. GET AVAILABLE VESSELS
@router.get("/available", response_model=List[VesselResponse])
async def read_available_vessels(db: AsyncSession = Depends(get_db)):
    try:
        stmt = (
            select(Vessel)
            .where(Vessel.current_status == VesselStatus.AVAILABLE)
            .order_by(Vessel.vessel_name)
        )
        result = await db.execute(stmt)
        return [to_response(v, allocation_count=0) for v in result.scalars().all()]
    except Exception as e:
        logger.error(f"❌ Error retrieving available vessels: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while retrieving available vessels")


# 4. GET ONE VESSEL (CACHED)
@router.get("/{vessel_id}", response_model=VesselResponse)
async def read_vessel(
    vessel_id: int,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    cache_key = cache_keys.vessel_by_id(vessel_id)
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    try:
        vessel = to_response(await _get_vessel(db, vessel_id))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Error retrieving vessel {vessel_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while retrieving the vessel")

    cache.set(cache_key, vessel)
    return vessel


# 5. CREATE VESSEL
@router.post("/", response_model=VesselResponse, status_code=status.HTTP_201_CREATED)
async def create_vessel(
    vessel_in: VesselCreate,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster),
    user_name: str = Depends(get_current_user_name),
):
    try:
        # Check duplicate
        if await _imo_taken(db, vessel_in.imo_number):
            raise HTTPException(
                status_code=400,
                detail=f"Vessel with IMO number {vessel_in.imo_number} already exists"
            )

        new_vessel = Vessel(**vessel_in.model_dump())
        db.add(new_vessel)
        await db.commit()
        await db.refresh(new_vessel)
    except HTTPException:
        raise
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=400,
            detail=f"Vessel with IMO number {vessel_in.imo_number} already exists"
        )
    except Exception as e:
        logger.error(f"❌ Error creating vessel: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while creating the vessel")

    logger.info(f"✅ Vessel created: {new_vessel.vessel_name} ({new_vessel.imo_number})")
    await invalidate_vessel(
        cache, new_vessel.id, statuses=[new_vessel.current_status], types=[new_vessel.vessel_type]
    )
    broadcaster.publish(NotificationTopic.VESSEL_CREATED, VesselChanged(
        vessel_id=new_vessel.id,
        vessel_name=new_vessel.vessel_name,
        imo_number=new_vessel.imo_number,
        new_status=new_vessel.current_status.value,
        user_name=user_name,
    ))
    return to_response(new_vessel, allocation_count=0)


# 6. UPDATE VESSEL
@router.put("/{vessel_id}", response_model=VesselResponse)
async def update_vessel(
    vessel_id: int,
    vessel_in: VesselUpdate,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster),
    user_name: str = Depends(get_current_user_name),
):
    try:
        vessel = await _get_vessel(db, vessel_id)
        if await _imo_taken(db, vessel_in.imo_number, exclude_id=vessel_id):
            raise HTTPException(
                status_code=400,
                detail=f"Vessel with IMO number {vessel_in.imo_number} already exists"
            )

        old_status, old_type = vessel.current_status, vessel.vessel_type
        for field, value in vessel_in.model_dump().items():
            setattr(vessel, field, value)

        await db.commit()
        await db.refresh(vessel)
    except HTTPException:
        raise
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=400,
            detail=f"Vessel with IMO number {vessel_in.imo_number} already exists"
        )
    except Exception as e:
        logger.error(f"❌ Error updating vessel {vessel_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while updating the vessel")

    await invalidate_vessel(
        cache, vessel_id,
        statuses=[old_status, vessel.current_status],
        types=[old_type, vessel.vessel_type],
    )
    broadcaster.publish(NotificationTopic.VESSEL_UPDATED, VesselChanged(
        vessel_id=vessel.id,
        vessel_name=vessel.vessel_name,
        imo_number=vessel.imo_number,
        old_status=old_status.value,
        new_status=vessel.current_status.value,
        user_name=user_name,
    ))
    return to_response(await _get_vessel(db, vessel_id))


# 7. DELETE VESSEL
@router.delete("/{vessel_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vessel(
    vessel_id: int,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster),
    user_name: str = Depends(get_current_user_name),
):
    try:
        vessel = await _get_vessel(db, vessel_id)

        # Vessels referenced by an allocation cannot be removed
        in_use = (await db.execute(
            select(func.count(VoyageAllocation.id)).where(VoyageAllocation.vessel_id == vessel_id)
        )).scalar_one()
        if in_use:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot delete vessel {vessel.vessel_name}: it is used by {in_use} voyage allocation(s)"
            )

        await db.delete(vessel)
        await db.commit()
    except HTTPException:
        raise
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="Cannot delete vessel: it is used by voyage allocations")
    except Exception as e:
        logger.error(f"❌ Error deleting vessel {vessel_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while deleting the vessel")

    logger.info(f"Vessel deleted: {vessel.vessel_name} ({vessel.imo_number})")
    await invalidate_vessel(cache, vessel_id, statuses=[vessel.current_status], types=[vessel.vessel_type])
    broadcaster.publish(NotificationTopic.VESSEL_DELETED, VesselChanged(
        vessel_id=vessel.id,
        vessel_name=vessel.vessel_name,
        imo_number=vessel.imo_number,
        old_status=vessel.current_status.value,
        user_name=user_name,
    ))
    return Response(status_code=status.HTTP_204_NO_CONTENT)

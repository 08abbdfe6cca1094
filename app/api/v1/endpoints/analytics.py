import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from app.api.deps import get_cache, get_performance_monitor
from app.api.v1.endpoints.parcels import to_response as parcel_response
from app.core.database import get_db
from app.models.cargo_parcel import CargoParcel
from app.models.vessel import Vessel
from app.models.voyage_allocation import VoyageAllocation
from app.schemas.analytics import DashboardSummary, ParcelsByStatus, VesselUtilizationByType, VolumeByGrade
from app.schemas.cargo_parcel import CargoParcelResponse
from app.services import cache_keys, reports
from app.services.cache_service import CacheService
from app.services.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)

router = APIRouter()


async def _all_parcels(db: AsyncSession):
    result = await db.execute(select(CargoParcel))
    return result.scalars().all()


async def _all_vessels(db: AsyncSession):
    result = await db.execute(select(Vessel))
    return result.scalars().all()


@router.get("/volume-by-grade", response_model=List[VolumeByGrade])
async def get_volume_by_grade(db: AsyncSession = Depends(get_db)):
    try:
        return reports.volume_by_grade(await _all_parcels(db))
    except Exception as e:
        logger.error(f"❌ Error retrieving volume by grade: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while retrieving volume by grade")


@router.get("/parcels-by-status", response_model=List[ParcelsByStatus])
async def get_parcels_by_status(db: AsyncSession = Depends(get_db)):
    try:
        return reports.parcels_by_status(await _all_parcels(db))
    except Exception as e:
        logger.error(f"❌ Error retrieving parcels by status: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while retrieving parcels by status")


@router.get("/vessel-utilization", response_model=List[VesselUtilizationByType])
async def get_vessel_utilization(db: AsyncSession = Depends(get_db)):
    try:
        return reports.vessel_utilization_by_type(await _all_vessels(db))
    except Exception as e:
        logger.error(f"❌ Error retrieving vessel utilization: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while retrieving vessel utilization")


@router.get("/dashboard", response_model=DashboardSummary)
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
    monitor: PerformanceMonitor = Depends(get_performance_monitor),
):
    """Dashboard totals. Served from the local cache, then the remote mirror, then the database."""
    summary = cache.get(cache_keys.DASHBOARD_STATS)
    if summary is not None:
        return summary

    summary = await cache.get_remote(cache_keys.DASHBOARD_STATS, DashboardSummary)
    if summary is not None:
        cache.set(cache_keys.DASHBOARD_STATS, summary)
        return summary

    try:
        with monitor.measure("GetDashboardSummary"):
            total_allocations = (await db.execute(select(func.count(VoyageAllocation.id)))).scalar_one()
            summary = reports.dashboard_summary(
                await _all_vessels(db), await _all_parcels(db), total_allocations
            )
    except Exception as e:
        logger.error(f"❌ Error generating dashboard summary: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while generating the dashboard summary")

    cache.set(cache_keys.DASHBOARD_STATS, summary)
    await cache.set_remote(cache_keys.DASHBOARD_STATS, summary)
    return summary


@router.get("/top-parcels", response_model=List[CargoParcelResponse])
async def get_top_parcels(limit: int = Query(10, ge=1, le=50), db: AsyncSession = Depends(get_db)):
    try:
        stmt = (
            select(CargoParcel)
            .options(selectinload(CargoParcel.voyage_allocations))
            .order_by(CargoParcel.quantity_bbls.desc(), CargoParcel.id)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return [parcel_response(p) for p in result.scalars().all()]
    except Exception as e:
        logger.error(f"❌ Error retrieving top parcels by volume: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while retrieving top parcels")


@router.get("/grade/{grade}", response_model=VolumeByGrade)
async def get_grade_statistics(grade: str, db: AsyncSession = Depends(get_db)):
    try:
        stats = reports.grade_statistics(await _all_parcels(db), grade)
    except Exception as e:
        logger.error(f"❌ Error retrieving statistics for grade {grade}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while retrieving grade statistics")

    if stats is None:
        raise HTTPException(status_code=404, detail=f"No parcels found for crude grade '{grade}'")
    return stats

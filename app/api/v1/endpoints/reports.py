import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from app.api.deps import get_performance_monitor
from app.core.clock import utcnow
from app.core.database import get_db
from app.models.cargo_parcel import CargoParcel
from app.models.vessel import Vessel
from app.models.voyage_allocation import VoyageAllocation
from app.schemas.analytics import (
    CrudeGradeAnalysis,
    FinancialSummary,
    LaycanCalendarEntry,
    ParcelSummary,
    PortActivity,
    ReportCounts,
    RouteAnalysis,
    VesselUtilization,
)
from app.services import reports
from app.services.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)

router = APIRouter()


async def _parcels_with_allocations(db: AsyncSession):
    stmt = select(CargoParcel).options(
        selectinload(CargoParcel.voyage_allocations).selectinload(VoyageAllocation.vessel)
    )
    result = await db.execute(stmt)
    return result.scalars().all()


async def _vessels_with_allocations(db: AsyncSession):
    stmt = select(Vessel).options(
        selectinload(Vessel.voyage_allocations).selectinload(VoyageAllocation.cargo_parcel)
    )
    result = await db.execute(stmt)
    return result.scalars().all()


async def _allocations(db: AsyncSession):
    stmt = select(VoyageAllocation).options(
        selectinload(VoyageAllocation.cargo_parcel),
        selectinload(VoyageAllocation.vessel),
    )
    result = await db.execute(stmt)
    return result.scalars().all()


async def _count(db: AsyncSession, column) -> int:
    return (await db.execute(select(func.count(column)))).scalar_one()


@router.get("/", response_model=ReportCounts)
async def get_report_counts(db: AsyncSession = Depends(get_db)):
    try:
        return ReportCounts(
            total_parcels=await _count(db, CargoParcel.id),
            total_vessels=await _count(db, Vessel.id),
            total_allocations=await _count(db, VoyageAllocation.id),
        )
    except Exception as e:
        logger.error(f"❌ Error loading reports index: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while loading reports")


@router.get("/parcel-summary", response_model=List[ParcelSummary])
async def get_parcel_summary(
    db: AsyncSession = Depends(get_db),
    monitor: PerformanceMonitor = Depends(get_performance_monitor),
):
    try:
        with monitor.measure("ParcelSummaryReport"):
            return reports.parcel_summary(await _parcels_with_allocations(db))
    except Exception as e:
        logger.error(f"❌ Error generating parcel summary report: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while generating the parcel summary report")


@router.get("/vessel-utilization", response_model=List[VesselUtilization])
async def get_vessel_utilization_report(
    db: AsyncSession = Depends(get_db),
    monitor: PerformanceMonitor = Depends(get_performance_monitor),
):
    try:
        with monitor.measure("VesselUtilizationReport"):
            return reports.vessel_utilization(await _vessels_with_allocations(db))
    except Exception as e:
        logger.error(f"❌ Error generating vessel utilization report: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while generating the vessel utilization report")


@router.get("/crude-grade-analysis", response_model=List[CrudeGradeAnalysis])
async def get_crude_grade_analysis(db: AsyncSession = Depends(get_db)):
    try:
        return reports.crude_grade_analysis(await _parcels_with_allocations(db))
    except Exception as e:
        logger.error(f"❌ Error generating crude grade analysis: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while generating the crude grade analysis")


@router.get("/laycan-calendar", response_model=List[LaycanCalendarEntry])
async def get_laycan_calendar(
    days_ahead: int = Query(30, ge=0, le=365),
    db: AsyncSession = Depends(get_db),
):
    try:
        return reports.laycan_calendar(await _parcels_with_allocations(db), utcnow(), days_ahead)
    except Exception as e:
        logger.error(f"❌ Error generating laycan calendar: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while generating the laycan calendar")


@router.get("/port-activity", response_model=List[PortActivity])
async def get_port_activity(db: AsyncSession = Depends(get_db)):
    try:
        return reports.port_activity(await _parcels_with_allocations(db))
    except Exception as e:
        logger.error(f"❌ Error generating port activity report: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while generating the port activity report")


@router.get("/route-analysis", response_model=List[RouteAnalysis])
async def get_route_analysis(db: AsyncSession = Depends(get_db)):
    try:
        return reports.route_analysis(await _parcels_with_allocations(db))
    except Exception as e:
        logger.error(f"❌ Error generating route analysis: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while generating the route analysis")


@router.get("/financial", response_model=FinancialSummary)
async def get_financial_summary(db: AsyncSession = Depends(get_db)):
    try:
        return reports.financial_summary(await _allocations(db), utcnow())
    except Exception as e:
        logger.error(f"❌ Error generating financial summary: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An error occurred while generating the financial summary")

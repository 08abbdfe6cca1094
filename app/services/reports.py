"""
Aggregations behind the analytics and reports endpoints.

All functions are pure: they take already-loaded ORM rows (parcels with
``voyage_allocations``, vessels with ``voyage_allocations`` ->
``cargo_parcel``, allocations with ``cargo_parcel`` and ``vessel``) and
return response schemas. Group order follows first appearance, so ties in
the sorted outputs keep input order.
"""
from collections import Counter
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from app.models.enums import VesselStatus
from app.schemas.analytics import (
    CrudeGradeAnalysis,
    DashboardSummary,
    FinancialSummary,
    LaycanCalendarEntry,
    ParcelsByStatus,
    ParcelSummary,
    PortActivity,
    RouteAnalysis,
    VesselUtilization,
    VesselUtilizationByType,
    VolumeByGrade,
)

DAYS_PER_YEAR = 365


def _label(value) -> str:
    return value.value if hasattr(value, "value") else str(value)


def _amount(value) -> Decimal:
    return Decimal(value) if value is not None else Decimal(0)


def _average(values) -> Decimal:
    values = list(values)
    if not values:
        return Decimal(0)
    return sum(values, Decimal(0)) / len(values)


def _percent(part, whole) -> float:
    return float(Decimal(part) / Decimal(whole) * 100) if whole else 0.0


def _group_by(items: Iterable, key) -> dict:
    groups: dict = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return groups


def _distinct(values) -> list:
    return list(dict.fromkeys(values))


def _days(start: datetime, end: datetime) -> int:
    # Whole days, truncated toward zero
    delta = end - start
    days = delta.days
    if days < 0 and delta != timedelta(days=days):
        days += 1
    return days


def _allocations(parcel) -> list:
    return list(getattr(parcel, "voyage_allocations", None) or [])


# --- ANALYTICS ---

def volume_by_grade(parcels) -> list[VolumeByGrade]:
    rows = [
        VolumeByGrade(
            crude_grade=grade,
            total_volume_bbls=float(sum((_amount(p.quantity_bbls) for p in group), Decimal(0))),
            parcel_count=len(group),
            average_volume_bbls=float(_average(_amount(p.quantity_bbls) for p in group)),
        )
        for grade, group in _group_by(parcels, lambda p: p.crude_grade).items()
    ]
    rows.sort(key=lambda r: r.total_volume_bbls, reverse=True)
    return rows


def grade_statistics(parcels, grade: str) -> Optional[VolumeByGrade]:
    matching = [p for p in parcels if p.crude_grade.lower() == grade.lower()]
    if not matching:
        return None
    return VolumeByGrade(
        crude_grade=grade,
        total_volume_bbls=float(sum((_amount(p.quantity_bbls) for p in matching), Decimal(0))),
        parcel_count=len(matching),
        average_volume_bbls=float(_average(_amount(p.quantity_bbls) for p in matching)),
    )


def parcels_by_status(parcels) -> list[ParcelsByStatus]:
    parcels = list(parcels)
    total = len(parcels)
    rows = [
        ParcelsByStatus(
            status=_label(status),
            count=len(group),
            total_volume_bbls=float(sum((_amount(p.quantity_bbls) for p in group), Decimal(0))),
            percentage=_percent(len(group), total),
        )
        for status, group in _group_by(parcels, lambda p: p.status).items()
    ]
    rows.sort(key=lambda r: r.count, reverse=True)
    return rows


def vessel_utilization_by_type(vessels) -> list[VesselUtilizationByType]:
    rows = []
    for vessel_type, group in _group_by(vessels, lambda v: v.vessel_type).items():
        in_use = sum(1 for v in group if v.current_status != VesselStatus.AVAILABLE)
        rows.append(VesselUtilizationByType(
            vessel_type=_label(vessel_type),
            total_vessels=len(group),
            available_vessels=len(group) - in_use,
            in_use_vessels=in_use,
            utilization_percentage=_percent(in_use, len(group)),
        ))
    rows.sort(key=lambda r: r.vessel_type)
    return rows


def dashboard_summary(vessels, parcels, total_allocations: int) -> DashboardSummary:
    vessels, parcels = list(vessels), list(parcels)
    return DashboardSummary(
        total_vessels=len(vessels),
        total_parcels=len(parcels),
        total_allocations=total_allocations,
        available_vessels=sum(1 for v in vessels if v.current_status == VesselStatus.AVAILABLE),
        total_volume_bbls=float(sum((_amount(p.quantity_bbls) for p in parcels), Decimal(0))),
        volume_by_grade=volume_by_grade(parcels),
        parcels_by_status=parcels_by_status(parcels),
    )


# --- REPORTS ---

def parcel_summary(parcels) -> list[ParcelSummary]:
    parcels = list(parcels)
    total = len(parcels)
    rows = []
    for status, group in _group_by(parcels, lambda p: p.status).items():
        volumes = [_amount(p.quantity_bbls) for p in group]
        rows.append(ParcelSummary(
            status=_label(status),
            parcel_count=len(group),
            total_volume_bbls=float(sum(volumes, Decimal(0))),
            average_volume_bbls=float(_average(volumes)),
            min_volume_bbls=float(min(volumes)),
            max_volume_bbls=float(max(volumes)),
            allocation_count=sum(len(_allocations(p)) for p in group),
            percentage_of_total=_percent(len(group), total),
        ))
    rows.sort(key=lambda r: r.total_volume_bbls, reverse=True)
    return rows


def vessel_utilization(vessels) -> list[VesselUtilization]:
    rows = []
    for vessel in vessels:
        allocations = list(vessel.voyage_allocations or [])
        days_at_sea = sum(_days(a.loading_date, a.discharge_date) for a in allocations)
        cargo = [_amount(a.cargo_parcel.quantity_bbls if a.cargo_parcel else None) for a in allocations]
        rows.append(VesselUtilization(
            vessel_id=vessel.id,
            vessel_name=vessel.vessel_name,
            imo_number=vessel.imo_number,
            vessel_type=_label(vessel.vessel_type),
            current_status=_label(vessel.current_status),
            total_voyages=len(allocations),
            days_at_sea=days_at_sea,
            days_idle=max(0, DAYS_PER_YEAR - days_at_sea),
            utilization_percentage=_percent(days_at_sea, DAYS_PER_YEAR),
            total_cargo_carried_bbls=float(sum(cargo, Decimal(0))),
            average_freight_rate=float(_average(_amount(a.freight_rate) for a in allocations)),
            total_revenue=float(sum(
                (_amount(a.freight_rate) * qty for a, qty in zip(allocations, cargo)), Decimal(0)
            )),
        ))
    rows.sort(key=lambda r: (r.utilization_percentage, r.total_revenue), reverse=True)
    return rows


def crude_grade_analysis(parcels) -> list[CrudeGradeAnalysis]:
    parcels = list(parcels)
    total_volume = sum((_amount(p.quantity_bbls) for p in parcels), Decimal(0))
    rows = []
    for grade, group in _group_by(parcels, lambda p: p.crude_grade).items():
        rates = [_amount(a.freight_rate) for p in group for a in _allocations(p)]
        volume = sum((_amount(p.quantity_bbls) for p in group), Decimal(0))
        port, _ = Counter(p.loading_port for p in group).most_common(1)[0]
        status, _ = Counter(_label(p.status) for p in group).most_common(1)[0]
        rows.append(CrudeGradeAnalysis(
            crude_grade=grade,
            parcel_count=len(group),
            total_volume_bbls=float(volume),
            average_volume_bbls=float(_average(_amount(p.quantity_bbls) for p in group)),
            market_share_percentage=_percent(volume, total_volume),
            allocation_count=len(rates),
            average_freight_rate=float(_average(rates)),
            min_freight_rate=float(min(rates)) if rates else 0.0,
            max_freight_rate=float(max(rates)) if rates else 0.0,
            most_used_port=port,
            most_common_status=status,
        ))
    rows.sort(key=lambda r: r.total_volume_bbls, reverse=True)
    return rows


def urgency_level(days_until: int) -> str:
    if days_until < 0:
        return "Critical"
    if days_until <= 7:
        return "Urgent"
    if days_until <= 14:
        return "Soon"
    return "Normal"


def laycan_calendar(parcels, today: datetime, days_ahead: int = 30) -> list[LaycanCalendarEntry]:
    """Parcels whose laycan window overlaps [today, today + days_ahead]."""
    today = today.replace(hour=0, minute=0, second=0, microsecond=0)
    end_date = today + timedelta(days=days_ahead)
    rows = []
    for parcel in parcels:
        if not (parcel.laycan_start <= end_date and parcel.laycan_end >= today):
            continue
        allocations = _allocations(parcel)
        allocation = allocations[0] if allocations else None
        days_until = _days(today, parcel.laycan_start)
        rows.append(LaycanCalendarEntry(
            parcel_id=parcel.id,
            parcel_name=parcel.parcel_name,
            crude_grade=parcel.crude_grade,
            quantity_bbls=float(_amount(parcel.quantity_bbls)),
            loading_port=parcel.loading_port,
            discharge_port=parcel.discharge_port,
            laycan_start=parcel.laycan_start,
            laycan_end=parcel.laycan_end,
            laycan_duration=_days(parcel.laycan_start, parcel.laycan_end),
            days_until_laycan=days_until,
            status=_label(parcel.status),
            is_allocated=allocation is not None,
            vessel_name=allocation.vessel.vessel_name if allocation is not None and allocation.vessel else None,
            urgency_level=urgency_level(days_until),
        ))
    rows.sort(key=lambda r: (r.laycan_start, r.loading_port))
    return rows


def port_activity(parcels) -> list[PortActivity]:
    parcels = list(parcels)
    loading = _group_by(parcels, lambda p: p.loading_port)
    discharge = _group_by(parcels, lambda p: p.discharge_port)
    ports = _distinct(port for p in parcels for port in (p.loading_port, p.discharge_port))

    rows = []
    for port in ports:
        loaded = loading.get(port, [])
        discharged = discharge.get(port, [])
        grades = _distinct(p.crude_grade for p in loaded) + _distinct(p.crude_grade for p in discharged)
        turnarounds = [
            _days(a.loading_date, a.discharge_date)
            for p in parcels if port in (p.loading_port, p.discharge_port)
            for a in _allocations(p)
        ]
        rows.append(PortActivity(
            port_name=port,
            loading_count=len(loaded),
            discharge_count=len(discharged),
            total_operations=len(loaded) + len(discharged),
            total_volume_loaded=float(sum((_amount(p.quantity_bbls) for p in loaded), Decimal(0))),
            total_volume_discharged=float(sum((_amount(p.quantity_bbls) for p in discharged), Decimal(0))),
            top_crude_grades=_distinct(grades)[:3],
            average_turnaround_days=sum(turnarounds) / len(turnarounds) if turnarounds else 0.0,
        ))
    rows.sort(key=lambda r: r.total_operations, reverse=True)
    return rows


def route_analysis(parcels) -> list[RouteAnalysis]:
    rows = []
    for (loading_port, discharge_port), group in _group_by(
        parcels, lambda p: (p.loading_port, p.discharge_port)
    ).items():
        allocations = [a for p in group for a in _allocations(p)]
        transit = [_days(a.loading_date, a.discharge_date) for a in allocations]
        rows.append(RouteAnalysis(
            loading_port=loading_port,
            discharge_port=discharge_port,
            route=f"{loading_port} → {discharge_port}",
            shipment_count=len(group),
            total_volume=float(sum((_amount(p.quantity_bbls) for p in group), Decimal(0))),
            average_volume=float(_average(_amount(p.quantity_bbls) for p in group)),
            average_freight_rate=float(_average(_amount(a.freight_rate) for a in allocations)),
            crude_grades=_distinct(p.crude_grade for p in group),
            average_transit_days=int(sum(transit) / len(transit)) if transit else 0,
        ))
    rows.sort(key=lambda r: (r.shipment_count, r.total_volume), reverse=True)
    return rows


def _freight(allocation) -> Decimal:
    quantity = allocation.cargo_parcel.quantity_bbls if allocation.cargo_parcel else None
    return _amount(allocation.freight_rate) * _amount(quantity)


def financial_summary(allocations, now: datetime) -> FinancialSummary:
    allocations = list(allocations)

    revenue_by_type: dict[str, Decimal] = {}
    revenue_by_grade: dict[str, Decimal] = {}
    for a in allocations:
        vessel_type = _label(a.vessel.vessel_type) if a.vessel else "Unknown"
        grade = a.cargo_parcel.crude_grade if a.cargo_parcel else "Unknown"
        revenue_by_type[vessel_type] = revenue_by_type.get(vessel_type, Decimal(0)) + _freight(a)
        revenue_by_grade[grade] = revenue_by_grade.get(grade, Decimal(0)) + _freight(a)

    return FinancialSummary(
        total_freight_revenue=float(sum((_freight(a) for a in allocations), Decimal(0))),
        total_demurrage=float(sum(
            (_amount(a.demurrage_rate) * _days(a.loading_date, a.discharge_date) for a in allocations),
            Decimal(0),
        )),
        average_freight_rate=float(_average(_amount(a.freight_rate) for a in allocations)),
        average_demurrage_rate=float(_average(_amount(a.demurrage_rate) for a in allocations)),
        total_allocations=len(allocations),
        active_voyages=sum(1 for a in allocations if a.loading_date <= now <= a.discharge_date),
        total_volume_transported=float(sum(
            (_amount(a.cargo_parcel.quantity_bbls if a.cargo_parcel else None) for a in allocations),
            Decimal(0),
        )),
        revenue_by_vessel_type={k: float(v) for k, v in revenue_by_type.items()},
        revenue_by_grade={k: float(v) for k, v in revenue_by_grade.items()},
    )

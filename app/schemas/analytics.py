from datetime import datetime
from typing import Optional, List, Dict
from pydantic import BaseModel


# --- ANALYTICS API ---

class VolumeByGrade(BaseModel):
    crude_grade: str
    total_volume_bbls: float
    parcel_count: int
    average_volume_bbls: float


class ParcelsByStatus(BaseModel):
    status: str
    count: int
    total_volume_bbls: float
    percentage: float


class VesselUtilizationByType(BaseModel):
    vessel_type: str
    total_vessels: int
    available_vessels: int
    in_use_vessels: int
    utilization_percentage: float


class DashboardSummary(BaseModel):
    total_vessels: int
    total_parcels: int
    total_allocations: int
    available_vessels: int
    total_volume_bbls: float
    volume_by_grade: List[VolumeByGrade] = []
    parcels_by_status: List[ParcelsByStatus] = []


# --- REPORTS ---

class ReportCounts(BaseModel):
    total_parcels: int
    total_vessels: int
    total_allocations: int


class ParcelSummary(BaseModel):
    status: str
    parcel_count: int
    total_volume_bbls: float
    average_volume_bbls: float
    min_volume_bbls: float
    max_volume_bbls: float
    allocation_count: int
    percentage_of_total: float


class VesselUtilization(BaseModel):
    vessel_id: int
    vessel_name: str
    imo_number: str
    vessel_type: str
    current_status: str
    total_voyages: int
    days_at_sea: int
    days_idle: int
    utilization_percentage: float
    total_cargo_carried_bbls: float
    average_freight_rate: float
    total_revenue: float


class CrudeGradeAnalysis(BaseModel):
    crude_grade: str
    parcel_count: int
    total_volume_bbls: float
    average_volume_bbls: float
    market_share_percentage: float
    allocation_count: int
    average_freight_rate: float
    min_freight_rate: float
    max_freight_rate: float
    most_used_port: str
    most_common_status: str


class LaycanCalendarEntry(BaseModel):
    parcel_id: int
    parcel_name: str
    crude_grade: str
    quantity_bbls: float
    loading_port: str
    discharge_port: str
    laycan_start: datetime
    laycan_end: datetime
    laycan_duration: int
    days_until_laycan: int
    status: str
    is_allocated: bool
    vessel_name: Optional[str] = None
    urgency_level: str


class PortActivity(BaseModel):
    port_name: str
    loading_count: int
    discharge_count: int
    total_operations: int
    total_volume_loaded: float
    total_volume_discharged: float
    top_crude_grades: List[str] = []
    average_turnaround_days: float


class RouteAnalysis(BaseModel):
    loading_port: str
    discharge_port: str
    route: str
    shipment_count: int
    total_volume: float
    average_volume: float
    average_freight_rate: float
    crude_grades: List[str] = []
    average_transit_days: int


class FinancialSummary(BaseModel):
    total_freight_revenue: float
    total_demurrage: float
    average_freight_rate: float
    average_demurrage_rate: float
    total_allocations: int
    active_voyages: int
    total_volume_transported: float
    revenue_by_vessel_type: Dict[str, float] = {}
    revenue_by_grade: Dict[str, float] = {}

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel

from app.services.cache_service import CacheStatistics
from app.services.performance_monitor import PerformanceStatistics


class HealthStatus(BaseModel):
    status: str = "Healthy"
    timestamp: datetime
    application: str
    version: str


class HealthCheckResult(BaseModel):
    component: str
    status: str
    response_time_ms: float = 0
    details: Optional[Any] = None
    error: Optional[str] = None


class DetailedHealth(BaseModel):
    status: str
    timestamp: datetime
    checks: List[HealthCheckResult] = []


class AdminDashboard(BaseModel):
    cache_statistics: CacheStatistics
    performance_statistics: PerformanceStatistics
    notifications_dropped: int = 0
    connected_clients: int = 0

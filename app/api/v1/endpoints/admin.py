import logging

from fastapi import APIRouter, Depends

from app.api.deps import connection_manager, get_broadcaster, get_cache, get_performance_monitor
from app.schemas.health import AdminDashboard
from app.services import cache_keys
from app.services.cache_service import CacheService
from app.services.notification_service import NotificationBroadcaster
from app.services.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/dashboard", response_model=AdminDashboard)
async def get_admin_dashboard(
    cache: CacheService = Depends(get_cache),
    monitor: PerformanceMonitor = Depends(get_performance_monitor),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster),
):
    return AdminDashboard(
        cache_statistics=cache.get_statistics(),
        performance_statistics=monitor.get_statistics(),
        notifications_dropped=broadcaster.dropped,
        connected_clients=len(connection_manager.active_connections),
    )


@router.post("/clear-cache")
async def clear_cache(cache: CacheService = Depends(get_cache)):
    cache.clear()
    # The dashboard summary is the only value mirrored remotely
    await cache.remove_remote(cache_keys.DASHBOARD_STATS)
    logger.warning("⚠️ Cache cleared by administrator")
    return {"message": "Cache cleared successfully"}

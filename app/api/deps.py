from typing import Optional

from fastapi import Header

from app.services.cache_service import CacheService, build_cache_service
from app.services.notification_service import ConnectionManager, NotificationBroadcaster
from app.services.performance_monitor import PerformanceMonitor

# Process-wide singletons shared by every request
cache_service = build_cache_service()
connection_manager = ConnectionManager()
notification_broadcaster = NotificationBroadcaster(connection_manager)
performance_monitor = PerformanceMonitor()


def get_cache() -> CacheService:
    return cache_service


def get_broadcaster() -> NotificationBroadcaster:
    return notification_broadcaster


def get_performance_monitor() -> PerformanceMonitor:
    return performance_monitor


def get_current_user_name(x_user_name: Optional[str] = Header(default=None)) -> str:
    """
    Name recorded on notifications. There is no authentication; callers
    may identify themselves with the X-User-Name header.
    """
    return x_user_name.strip() if x_user_name and x_user_name.strip() else "Anonymous"

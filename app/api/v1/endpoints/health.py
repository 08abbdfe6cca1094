import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_cache
from app.core.clock import utcnow
from app.core.config import settings
from app.core.database import get_db
from app.schemas.health import DetailedHealth, HealthCheckResult, HealthStatus
from app.services.cache_service import CacheService

logger = logging.getLogger(__name__)

router = APIRouter()

HEALTHY = "Healthy"
DEGRADED = "Degraded"
UNHEALTHY = "Unhealthy"


def overall_status(checks) -> str:
    if all(c.status == HEALTHY for c in checks):
        return HEALTHY
    if any(c.status == UNHEALTHY for c in checks):
        return UNHEALTHY
    return DEGRADED


async def check_database(db: AsyncSession) -> HealthCheckResult:
    started = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
        return HealthCheckResult(
            component="Database",
            status=HEALTHY,
            response_time_ms=round((time.perf_counter() - started) * 1000, 2),
        )
    except Exception as e:
        logger.error(f"❌ Database health check failed: {e}", exc_info=True)
        return HealthCheckResult(component="Database", status=UNHEALTHY, error=str(e))


async def check_cache(cache: CacheService) -> HealthCheckResult:
    stats = cache.get_statistics()
    details = {"hits": stats.hits, "misses": stats.misses, "hitRate": stats.hit_rate_percent}
    try:
        await cache.remote.ping()
        return HealthCheckResult(component="Cache", status=HEALTHY, details=details)
    except Exception as e:
        # Local tier still serves; only the remote mirror is down
        logger.error(f"❌ Cache health check failed: {e}", exc_info=True)
        return HealthCheckResult(component="Cache", status=DEGRADED, details=details, error=str(e))


@router.get("", response_model=HealthStatus)
async def health():
    return HealthStatus(
        status=HEALTHY,
        timestamp=utcnow(),
        application=settings.PROJECT_NAME,
        version=settings.VERSION,
    )


@router.get("/detailed", response_model=DetailedHealth)
async def health_detailed(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    checks = [await check_database(db), await check_cache(cache)]
    report = DetailedHealth(status=overall_status(checks), timestamp=utcnow(), checks=checks)

    if report.status == UNHEALTHY:
        return JSONResponse(status_code=503, content=report.model_dump(mode="json"))
    return report

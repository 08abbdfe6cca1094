"""
Background sweeper that cancels nominated parcels whose laycan has passed.

The service is a long-lived singleton: it only holds a session *factory* and
opens a fresh session for every tick, so no connection outlives a sweep.

Cached parcel views are NOT invalidated here; a cancelled parcel may still
show as Nominated until the affected cache entries expire.
"""
import asyncio
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.future import select

from app.core.clock import utcnow
from app.core.config import settings
from app.core.database import SessionLocal
from app.models.cargo_parcel import CargoParcel
from app.models.enums import CargoParcelStatus

logger = logging.getLogger(__name__)


class ParcelExpirationService:
    """Runs the Nominated -> Cancelled sweep on a fixed interval."""

    JOB_ID = "parcel_expiration"

    def __init__(self, session_factory=None, interval_seconds=None, clock=utcnow):
        self.scheduler = AsyncIOScheduler()
        self.session_factory = session_factory or SessionLocal
        self.interval_seconds = interval_seconds or settings.PARCEL_EXPIRATION_INTERVAL_SECONDS
        self.clock = clock
        self._initialized = False

    async def start(self):
        """Schedule the sweep (first run immediately) and start the scheduler."""
        if self._initialized:
            return

        logger.info("Parcel expiration service is starting")
        self.scheduler.add_job(
            self.run_once,
            IntervalTrigger(seconds=self.interval_seconds),
            id=self.JOB_ID,
            next_run_time=datetime.now(timezone.utc),
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        self._initialized = True

    async def stop(self):
        """Stop scheduling ticks. An in-flight tick is not awaited."""
        if self._initialized:
            logger.info("Parcel expiration service is stopping")
            self.scheduler.shutdown(wait=False)
            # AsyncIOScheduler applies the shutdown on the next loop iteration
            await asyncio.sleep(0)
            self._initialized = False

    async def run_once(self) -> int:
        """
        Execute one sweep. Returns the number of parcels cancelled.

        Failures are logged and swallowed; the next scheduled tick retries.
        """
        logger.info(f"Parcel expiration service is working: {self.clock().isoformat()}")
        try:
            async with self.session_factory() as db:
                now = self.clock()
                stmt = select(CargoParcel).where(
                    CargoParcel.status == CargoParcelStatus.NOMINATED,
                    CargoParcel.laycan_end < now,
                )
                result = await db.execute(stmt)
                expired_parcels = result.scalars().all()

                if not expired_parcels:
                    logger.info("No expired parcels found")
                    return 0

                for parcel in expired_parcels:
                    logger.info(
                        f"Expiring parcel: ID={parcel.id}, Name={parcel.parcel_name}, "
                        f"LaycanEnd={parcel.laycan_end.isoformat()}"
                    )
                    parcel.status = CargoParcelStatus.CANCELLED

                # One batch commit for the whole tick
                await db.commit()

                summary = ", ".join(f"{p.id} (laycan end {p.laycan_end.isoformat()})" for p in expired_parcels)
                logger.warning(
                    f"Found {len(expired_parcels)} expired parcels, updated to Cancelled: {summary}"
                )
                return len(expired_parcels)
        except Exception as e:
            logger.error(f"❌ Error occurred while processing expired parcels: {e}", exc_info=True)
            return 0

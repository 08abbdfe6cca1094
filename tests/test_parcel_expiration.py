import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.future import select

from app.core.clock import utcnow
from app.models.cargo_parcel import CargoParcel
from app.models.enums import CargoParcelStatus
from app.services.parcel_expiration import ParcelExpirationService


async def _add_parcel(session_factory, name, status, laycan_end):
    async with session_factory() as db:
        parcel = CargoParcel(
            parcel_name=name,
            crude_grade="Arab Light",
            quantity_bbls=Decimal("500000"),
            loading_port="Ras Tanura, Saudi Arabia",
            discharge_port="Ningbo, China",
            laycan_start=laycan_end - timedelta(days=5),
            laycan_end=laycan_end,
            status=status,
        )
        db.add(parcel)
        await db.commit()
        return parcel.id


async def _status_of(session_factory, parcel_id):
    async with session_factory() as db:
        result = await db.execute(select(CargoParcel.status).where(CargoParcel.id == parcel_id))
        return result.scalar_one()


class FailingSessionFactory:
    def __call__(self):
        raise ConnectionError("database unreachable")


@pytest.mark.asyncio
async def test_expired_nominated_parcel_is_cancelled_once(session_factory, caplog):
    parcel_id = await _add_parcel(
        session_factory, "PARCEL-EXPIRED", CargoParcelStatus.NOMINATED, utcnow() - timedelta(days=1)
    )
    service = ParcelExpirationService(session_factory=session_factory, interval_seconds=300)

    with caplog.at_level(logging.INFO, logger="app.services.parcel_expiration"):
        assert await service.run_once() == 1
    assert await _status_of(session_factory, parcel_id) == CargoParcelStatus.CANCELLED
    assert "Found 1 expired parcels, updated to Cancelled" in caplog.text
    assert str(parcel_id) in caplog.text

    caplog.clear()
    with caplog.at_level(logging.INFO, logger="app.services.parcel_expiration"):
        assert await service.run_once() == 0
    assert "No expired parcels found" in caplog.text


@pytest.mark.asyncio
async def test_future_laycan_is_left_alone(session_factory):
    parcel_id = await _add_parcel(
        session_factory, "PARCEL-FUTURE", CargoParcelStatus.NOMINATED, utcnow() + timedelta(days=1)
    )
    service = ParcelExpirationService(session_factory=session_factory, interval_seconds=300)

    assert await service.run_once() == 0
    assert await _status_of(session_factory, parcel_id) == CargoParcelStatus.NOMINATED


@pytest.mark.asyncio
async def test_only_nominated_parcels_expire(session_factory):
    yesterday = utcnow() - timedelta(days=1)
    confirmed = await _add_parcel(session_factory, "PARCEL-CONFIRMED", CargoParcelStatus.CONFIRMED, yesterday)
    planned = await _add_parcel(session_factory, "PARCEL-PLANNED", CargoParcelStatus.PLANNED, yesterday)
    nominated = await _add_parcel(session_factory, "PARCEL-NOMINATED", CargoParcelStatus.NOMINATED, yesterday)
    service = ParcelExpirationService(session_factory=session_factory, interval_seconds=300)

    assert await service.run_once() == 1
    assert await _status_of(session_factory, confirmed) == CargoParcelStatus.CONFIRMED
    assert await _status_of(session_factory, planned) == CargoParcelStatus.PLANNED
    assert await _status_of(session_factory, nominated) == CargoParcelStatus.CANCELLED


@pytest.mark.asyncio
async def test_injected_clock_decides_expiry(session_factory):
    laycan_end = utcnow() + timedelta(days=3)
    parcel_id = await _add_parcel(session_factory, "PARCEL-CLOCK", CargoParcelStatus.NOMINATED, laycan_end)
    service = ParcelExpirationService(
        session_factory=session_factory,
        interval_seconds=300,
        clock=lambda: laycan_end + timedelta(minutes=1),
    )

    assert await service.run_once() == 1
    assert await _status_of(session_factory, parcel_id) == CargoParcelStatus.CANCELLED


@pytest.mark.asyncio
async def test_store_outage_is_logged_and_next_tick_recovers(session_factory, caplog):
    parcel_id = await _add_parcel(
        session_factory, "PARCEL-RETRY", CargoParcelStatus.NOMINATED, utcnow() - timedelta(hours=2)
    )
    service = ParcelExpirationService(session_factory=FailingSessionFactory(), interval_seconds=300)

    with caplog.at_level(logging.ERROR, logger="app.services.parcel_expiration"):
        assert await service.run_once() == 0
    assert "Error occurred while processing expired parcels" in caplog.text
    assert await _status_of(session_factory, parcel_id) == CargoParcelStatus.NOMINATED

    service.session_factory = session_factory
    assert await service.run_once() == 1
    assert await _status_of(session_factory, parcel_id) == CargoParcelStatus.CANCELLED


@pytest.mark.asyncio
async def test_start_schedules_interval_job_and_stop_shuts_down(session_factory):
    service = ParcelExpirationService(session_factory=session_factory, interval_seconds=300)

    await service.start()
    try:
        job = service.scheduler.get_job(ParcelExpirationService.JOB_ID)
        assert job is not None
        assert job.trigger.interval == timedelta(seconds=300)
        assert job.next_run_time <= datetime.now(timezone.utc)
        assert service.scheduler.running
    finally:
        await service.stop()

    assert not service.scheduler.running

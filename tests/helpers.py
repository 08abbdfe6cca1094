from datetime import timedelta

from app.core.clock import utcnow
from app.services.notification_service import NotificationBroadcaster


def drain_events(broadcaster: NotificationBroadcaster) -> list:
    events = []
    while not broadcaster.queue.empty():
        events.append(broadcaster.queue.get_nowait())
    return events


def vessel_payload(**overrides) -> dict:
    payload = {
        "vessel_name": "MT Pacific Star",
        "imo_number": "IMO1234567",
        "dwt": 300000,
        "vessel_type": "VLCC",
        "current_status": "Available",
    }
    payload.update(overrides)
    return payload


def parcel_payload(**overrides) -> dict:
    start = utcnow().replace(microsecond=0) + timedelta(days=10)
    payload = {
        "parcel_name": "PARCEL-2025-0001",
        "crude_grade": "Brent Crude",
        "quantity_bbls": 600000,
        "loading_port": "Ras Tanura, Saudi Arabia",
        "discharge_port": "Rotterdam, Netherlands",
        "laycan_start": start.isoformat(),
        "laycan_end": (start + timedelta(days=5)).isoformat(),
        "status": "Planned",
    }
    payload.update(overrides)
    return payload


def allocation_payload(parcel_id: int, vessel_id: int, **overrides) -> dict:
    loading = utcnow().replace(microsecond=0) + timedelta(days=11)
    payload = {
        "parcel_id": parcel_id,
        "vessel_id": vessel_id,
        "loading_date": loading.isoformat(),
        "discharge_date": (loading + timedelta(days=20)).isoformat(),
        "freight_rate": 2.5,
        "demurrage_rate": 25000,
    }
    payload.update(overrides)
    return payload


class BrokenRemote:
    """Remote cache backend whose every call fails."""

    async def get(self, key):
        raise ConnectionError("remote cache unreachable")

    async def set(self, key, payload, ttl_seconds):
        raise ConnectionError("remote cache unreachable")

    async def delete(self, key):
        raise ConnectionError("remote cache unreachable")

    async def ping(self):
        raise ConnectionError("remote cache unreachable")

    async def close(self):
        return None

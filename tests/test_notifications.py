import asyncio

import pytest
from pydantic import BaseModel, ConfigDict

from app.services.notification_service import (
    ConnectionManager,
    NewParcelCreated,
    NotificationBroadcaster,
    NotificationTopic,
    ParcelStatusChanged,
    build_message,
)


class FakeWebSocket:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


def _created(parcel_id: int) -> NewParcelCreated:
    return NewParcelCreated(
        parcel_id=parcel_id, parcel_name=f"PARCEL-{parcel_id}", crude_grade="Murban", quantity=750000
    )


def test_message_uses_camel_case_payload():
    message = build_message(
        NotificationTopic.PARCEL_STATUS_CHANGED,
        ParcelStatusChanged(
            parcel_id=7, parcel_name="PARCEL-7", old_status="Planned", new_status="Nominated", user_name="ops"
        ),
    )
    assert message["event"] == "ParcelStatusChanged"
    data = message["data"]
    assert data["parcelId"] == 7
    assert data["oldStatus"] == "Planned"
    assert data["newStatus"] == "Nominated"
    assert data["userName"] == "ops"
    assert "timestampUtc" in data


def test_publish_drops_oldest_when_full():
    broadcaster = NotificationBroadcaster(ConnectionManager(), maxsize=2)
    for parcel_id in (1, 2, 3):
        broadcaster.publish(NotificationTopic.NEW_PARCEL_CREATED, _created(parcel_id))

    assert broadcaster.dropped == 1
    queued = [broadcaster.queue.get_nowait()["data"]["parcelId"] for _ in range(2)]
    assert queued == [2, 3]


class Unserializable(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    thing: object


def test_publish_never_raises_on_bad_payload():
    broadcaster = NotificationBroadcaster(ConnectionManager(), maxsize=2)
    broadcaster.publish(NotificationTopic.PARCEL_DELETED, Unserializable(thing=object()))
    assert broadcaster.queue.empty()


@pytest.mark.asyncio
async def test_connect_sends_welcome():
    manager = ConnectionManager()
    socket = FakeWebSocket()

    await manager.connect("c1", socket, "Alice")

    assert socket.accepted
    assert socket.sent[0]["event"] == "Connected"
    assert "Welcome Alice" in socket.sent[0]["data"]["message"]


@pytest.mark.asyncio
async def test_broadcast_reaches_all_clients_and_drops_failed_ones():
    manager = ConnectionManager()
    healthy, broken = FakeWebSocket(), FakeWebSocket()
    await manager.connect("healthy", healthy)
    await manager.connect("broken", broken)
    broken.fail = True

    delivered = await manager.broadcast({"event": "ParcelDeleted", "data": {"parcelId": 1}})

    assert delivered == 1
    assert healthy.sent[-1]["event"] == "ParcelDeleted"
    assert "broken" not in manager.active_connections
    assert "healthy" in manager.active_connections


@pytest.mark.asyncio
async def test_dispatcher_delivers_queued_events_in_order():
    manager = ConnectionManager()
    socket = FakeWebSocket()
    await manager.connect("c1", socket)
    broadcaster = NotificationBroadcaster(manager, maxsize=10)

    # Published before the dispatcher starts: carried over
    broadcaster.publish(NotificationTopic.NEW_PARCEL_CREATED, _created(1))
    await broadcaster.start()
    try:
        broadcaster.publish(NotificationTopic.NEW_PARCEL_CREATED, _created(2))
        await asyncio.wait_for(broadcaster.queue.join(), timeout=2)
    finally:
        await broadcaster.stop()

    events = [m["data"]["parcelId"] for m in socket.sent if m["event"] == "NewParcelCreated"]
    assert events == [1, 2]


@pytest.mark.asyncio
async def test_drain_without_clients_is_harmless():
    broadcaster = NotificationBroadcaster(ConnectionManager(), maxsize=10)
    broadcaster.publish(NotificationTopic.NEW_PARCEL_CREATED, _created(1))
    await broadcaster.drain()
    assert broadcaster.queue.empty()

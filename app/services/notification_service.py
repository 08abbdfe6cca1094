"""
Fire-and-forget notifications for parcel and vessel changes.

Write paths call ``NotificationBroadcaster.publish`` after a successful
commit. Publishing never blocks and never raises: events go into a bounded
queue (oldest event dropped when full) that a dispatcher task drains into
the WebSocket ``ConnectionManager``. Delivery is best-effort, at most once.
"""
import asyncio
import contextlib
import enum
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import WebSocket
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.core.clock import utcnow
from app.core.config import settings

logger = logging.getLogger(__name__)

PARCEL_UPDATES_GROUP = "ParcelUpdates"


class NotificationTopic(str, enum.Enum):
    CONNECTED = "Connected"
    PARCEL_STATUS_CHANGED = "ParcelStatusChanged"
    NEW_PARCEL_CREATED = "NewParcelCreated"
    PARCEL_DELETED = "ParcelDeleted"
    VESSEL_CREATED = "VesselCreated"
    VESSEL_UPDATED = "VesselUpdated"
    VESSEL_DELETED = "VesselDeleted"


# --- PAYLOADS (camelCase on the wire) ---

class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_name: str = "Anonymous"
    timestamp_utc: datetime = Field(default_factory=utcnow)


class ParcelStatusChanged(_Payload):
    parcel_id: int
    parcel_name: str
    old_status: str
    new_status: str


class NewParcelCreated(_Payload):
    parcel_id: int
    parcel_name: str
    crude_grade: str
    quantity: float


class ParcelDeleted(_Payload):
    parcel_id: int
    parcel_name: str


class VesselChanged(_Payload):
    vessel_id: int
    vessel_name: str
    imo_number: str
    old_status: Optional[str] = None
    new_status: Optional[str] = None


def build_message(topic, payload) -> Dict[str, Any]:
    data = payload.model_dump(mode="json", by_alias=True) if isinstance(payload, BaseModel) else payload
    event = topic.value if hasattr(topic, "value") else str(topic)
    return {"event": event, "data": data}


# --- CONNECTIONS ---

class ConnectionManager:
    """Tracks WebSocket clients of the parcel updates group."""

    SEND_TIMEOUT = 1.0

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}
        self.client_users: Dict[str, str] = {}

    async def connect(self, client_id: str, websocket: WebSocket, user_name: str = "Anonymous") -> None:
        await websocket.accept()
        self.active_connections[client_id] = websocket
        self.client_users[client_id] = user_name
        logger.info(f"Client connected: {client_id} - User: {user_name}")

        await websocket.send_json(build_message(
            NotificationTopic.CONNECTED,
            {
                "group": PARCEL_UPDATES_GROUP,
                "message": f"Welcome {user_name}! You're now receiving real-time parcel updates.",
            },
        ))

    def disconnect(self, client_id: str) -> None:
        self.active_connections.pop(client_id, None)
        user_name = self.client_users.pop(client_id, "Anonymous")
        logger.info(f"Client disconnected: {client_id} - User: {user_name}")

    async def broadcast(self, message: Dict[str, Any]) -> int:
        """Send to every client; returns how many sends succeeded."""
        delivered = 0
        for client_id, websocket in list(self.active_connections.items()):
            try:
                await asyncio.wait_for(websocket.send_json(message), timeout=self.SEND_TIMEOUT)
                delivered += 1
            except Exception as e:
                logger.warning(f"⚠️ Dropping client {client_id} after failed send: {e}")
                self.disconnect(client_id)
        return delivered


# --- DISPATCH ---

class NotificationBroadcaster:
    def __init__(self, manager: ConnectionManager, maxsize: Optional[int] = None):
        self.manager = manager
        self.maxsize = maxsize or settings.NOTIFICATION_QUEUE_SIZE
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=self.maxsize)
        self.dropped = 0
        self._task: Optional[asyncio.Task] = None

    def publish(self, topic, payload) -> None:
        """Enqueue an event without waiting. When the queue is full the oldest event is dropped."""
        try:
            message = build_message(topic, payload)
            try:
                self.queue.put_nowait(message)
            except asyncio.QueueFull:
                with contextlib.suppress(asyncio.QueueEmpty):
                    oldest = self.queue.get_nowait()
                    self.queue.task_done()
                    self.dropped += 1
                    logger.warning(f"⚠️ Notification queue full, dropped oldest event: {oldest['event']}")
                self.queue.put_nowait(message)
        except Exception as e:
            logger.error(f"❌ Failed to publish {topic} notification: {e}", exc_info=True)

    async def dispatch_once(self) -> None:
        message = await self.queue.get()
        try:
            delivered = await self.manager.broadcast(message)
            logger.debug(f"Broadcast {message['event']} to {delivered} clients")
        except Exception as e:
            logger.error(f"❌ Error broadcasting {message.get('event')}: {e}", exc_info=True)
        finally:
            self.queue.task_done()

    async def drain(self) -> None:
        """Dispatch everything currently queued."""
        while not self.queue.empty():
            await self.dispatch_once()

    async def run(self) -> None:
        while True:
            await self.dispatch_once()

    async def start(self) -> None:
        if self._task is None:
            # Fresh queue bound to the running loop, carrying over anything queued before startup
            pending, self.queue = self.queue, asyncio.Queue(maxsize=self.maxsize)
            while not pending.empty():
                self.queue.put_nowait(pending.get_nowait())
            self._task = asyncio.create_task(self.run())
            logger.info("Notification dispatcher started")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info("Notification dispatcher stopped")

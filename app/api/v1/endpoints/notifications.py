import logging
import uuid
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.api.deps import connection_manager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/parcel-status")
async def parcel_status_socket(websocket: WebSocket, user_name: Optional[str] = None):
    """
    Real-time parcel updates. Clients only listen; anything they send is ignored.

    Query Parameters:
        user_name: Optional display name used in the welcome message
    """
    client_id = str(uuid.uuid4())
    try:
        await connection_manager.connect(client_id, websocket, user_name or "Anonymous")
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"WebSocket connection closed for client {client_id}")
    except Exception as e:
        logger.error(f"❌ WebSocket error for client {client_id}: {e}")
    finally:
        connection_manager.disconnect(client_id)

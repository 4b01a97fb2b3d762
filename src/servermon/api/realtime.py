"""
Real-time broadcast channel at /ws.

Every text or binary frame received from any client is rebroadcast verbatim
to all connected clients, sender included.
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from servermon.core.logging import get_logger
from servermon.ws.connection_manager import ConnectionManager

logger = get_logger(__name__)

router = APIRouter()


def origin_allowed(websocket: WebSocket) -> bool:
    """Apply the configured CORS origin to the WebSocket handshake."""
    settings = websocket.app.state.settings
    if settings.client_url == "*":
        return True
    origin = websocket.headers.get("origin")
    return origin is None or origin == settings.client_url


@router.websocket("/ws")
async def broadcast_websocket(websocket: WebSocket) -> None:
    if not origin_allowed(websocket):
        logger.warning("ws.origin_rejected", origin=websocket.headers.get("origin"))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    manager: ConnectionManager = websocket.app.state.connection_manager
    connection_id = await manager.connect(websocket)

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            message = frame.get("text")
            if message is None:
                message = frame.get("bytes")
            if message is None:
                continue
            logger.info("ws.message", connection_id=connection_id, size=len(message))
            manager.broadcast(message)
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(connection_id)

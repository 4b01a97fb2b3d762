"""In-process WebSocket connection set with fire-and-forget broadcast fan-out."""

from __future__ import annotations

import asyncio
import uuid
from functools import partial

from fastapi import WebSocket

from servermon.core.logging import get_logger

logger = get_logger(__name__)


class ConnectionManager:
    """Track connected WebSocket clients by connection id.

    Mutated only from coroutines (and task callbacks) on the server's event loop.
    Each broadcast starts one send task per receiver, so a slow receiver never
    holds up the sender or the other receivers. Receivers whose send fails are
    dropped when their task completes.
    """

    def __init__(self) -> None:
        self.connections: dict[str, WebSocket] = {}
        self._pending: set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket) -> str:
        """Accept a WebSocket and register it. Returns the new connection id."""
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self.connections[connection_id] = websocket
        logger.info("ws.connected", connection_id=connection_id, clients=len(self.connections))
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        if self.connections.pop(connection_id, None) is not None:
            logger.info("ws.disconnected", connection_id=connection_id, clients=len(self.connections))

    def broadcast(self, message: str | bytes) -> None:
        """Schedule delivery of a message verbatim to every connected client."""
        for connection_id, websocket in list(self.connections.items()):
            task = asyncio.create_task(self._send(websocket, message))
            self._pending.add(task)
            task.add_done_callback(partial(self._on_sent, connection_id))

    def _on_sent(self, connection_id: str, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug("ws.dead_connection", connection_id=connection_id, error=repr(error))
            self.disconnect(connection_id)

    @property
    def pending_sends(self) -> int:
        return len(self._pending)

    @staticmethod
    async def _send(websocket: WebSocket, message: str | bytes) -> None:
        if isinstance(message, bytes):
            await websocket.send_bytes(message)
        else:
            await websocket.send_text(message)

    async def close_all(self, code: int = 1001) -> None:
        """Cancel undelivered sends and close every open connection (server going away)."""
        for task in list(self._pending):
            task.cancel()
        for connection_id, websocket in list(self.connections.items()):
            try:
                await websocket.close(code=code)
            except RuntimeError:
                pass  # already closed by the peer
            self.disconnect(connection_id)

    def __len__(self) -> int:
        return len(self.connections)

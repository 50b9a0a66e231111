"""WebSocket fan-out of change events to connected UI clients."""

from __future__ import annotations

import logging
from typing import Iterable

from fastapi import WebSocket, WebSocketDisconnect

from .events import ChangeEvent

logger = logging.getLogger(__name__)


class Broadcaster:
    """Sends every published event, in order, to every open connection.

    Delivery is best effort: a connection whose send fails is dropped.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.connections: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.connections.add(websocket)
        logger.info("WebSocket connection established (%d open)", len(self.connections))

    def disconnect(self, websocket: WebSocket) -> None:
        self.connections.discard(websocket)
        logger.info("WebSocket connection closed (%d open)", len(self.connections))

    async def publish(self, events: Iterable[ChangeEvent]) -> int:
        """Returns the number of messages sent."""
        if not self.enabled:
            return 0
        sent = 0
        for event in events:
            message = event.to_message()
            for websocket in list(self.connections):
                try:
                    await websocket.send_text(message)
                    sent += 1
                except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                    logger.warning("Dropping WebSocket connection after failed send: %s", exc)
                    self.connections.discard(websocket)
        return sent

    async def close_all(self) -> None:
        for websocket in list(self.connections):
            try:
                await websocket.close()
            except RuntimeError as exc:
                # already closed by the client
                logger.debug("Ignoring close on finished connection: %s", exc)
        self.connections.clear()

"""
Relay of store notifications to connected renderers
"""

import logging
from typing import Dict, Iterable, Optional, Set

from fastapi import WebSocket

from events.event_bus import Event, EventBus, EventTypes

logger = logging.getLogger(__name__)


class WebSocketManager:
    def __init__(self):
        self.active_connections: Dict[WebSocket, Set[str]] = {}

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections[websocket] = set()

    async def disconnect(self, websocket: WebSocket):
        self.active_connections.pop(websocket, None)

    def subscribe(self, websocket: WebSocket, update_types: Optional[Iterable[str]] = None):
        if websocket in self.active_connections:
            types = set(update_types) if update_types else set(EventTypes.ALL)
            self.active_connections[websocket] = types
            logger.info(f"Renderer subscribed to {sorted(types)}")

    async def broadcast(self, message: dict, update_type: str):
        sent_count = 0
        for connection, subscriptions in list(self.active_connections.items()):
            if update_type not in subscriptions:
                continue
            try:
                await connection.send_json(message)
                sent_count += 1
            except Exception as e:
                logger.error(f"Failed to send {update_type} to renderer: {e}")
                await self.disconnect(connection)
        logger.debug(f"Broadcast {update_type} to {sent_count} renderers")
        return sent_count


class RendererEventHandlers:
    """
    Event bus listener forwarding every store notification
    """

    def __init__(self, websocket_manager: WebSocketManager):
        self.websocket_manager = websocket_manager
        logger.info("RendererEventHandlers initialized")

    async def handle_notification(self, event: Event):
        await self.websocket_manager.broadcast(event.to_dict(), event.type)

    def register_handlers(self, event_bus: EventBus):
        event_bus.subscribe("*", self.handle_notification)
        logger.info("Renderer event handlers registered")

"""
Websocket client feeding the visualization stream into an EventProcessor
"""
import asyncio
import logging
from typing import Optional

import aiohttp

from config.config import RECONNECT_DELAY, VISUALIZATION_PROTOCOL, shutdown_event
from monitoring.metrics import stream_connected
from stream.processor import EventProcessor

logger = logging.getLogger(__name__)


class VisualizationClient:
    """
    Reads the simulator's ``visualization`` websocket one frame at a time.

    Frames are processed to completion before the next read, so the store
    sees events strictly in arrival order. On disconnect the client waits
    ``reconnect_delay`` seconds and dials again until stopped; state already
    folded into the store is kept.
    """

    def __init__(self, url: str, processor: EventProcessor, protocol: str = VISUALIZATION_PROTOCOL,
                 reconnect_delay: float = RECONNECT_DELAY, stop_event: Optional[asyncio.Event] = None):
        self.url = url
        self.processor = processor
        self.protocol = protocol
        self.reconnect_delay = reconnect_delay
        self.stop_event = stop_event or shutdown_event
        self.connected = False
        self.connections = 0
        self.frames = 0

    async def run(self):
        """Connect, consume and reconnect until stopped"""
        while not self.stop_event.is_set():
            try:
                await self.consume()
            except aiohttp.ClientError as e:
                logger.warning(f"Visualization stream {self.url} unavailable: {e}")
            except asyncio.CancelledError:
                logger.info("Visualization client cancelled")
                raise
            finally:
                self._set_connected(False)

            if self.stop_event.is_set():
                break
            logger.info(f"Reconnecting to {self.url} in {self.reconnect_delay}s")
            try:
                await asyncio.wait_for(self.stop_event.wait(), timeout=self.reconnect_delay)
            except asyncio.TimeoutError:
                continue
        logger.info("Visualization client stopped")

    async def consume(self):
        """One connection's worth of frames"""
        async with aiohttp.ClientSession() as session:
            async with session.ws_connect(self.url, protocols=(self.protocol,)) as ws:
                self.connections += 1
                self._set_connected(True)
                logger.info(f"Connected to visualization stream {self.url}")
                async for msg in ws:
                    if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                        self.frames += 1
                        self.processor.process(msg.data)
                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        logger.error(f"Visualization stream error: {ws.exception()}")
                        break
                    if self.stop_event.is_set():
                        await ws.close()
                        break
                logger.info(f"Visualization stream {self.url} closed")

    def stop(self):
        self.stop_event.set()

    def _set_connected(self, connected: bool):
        self.connected = connected
        stream_connected.set(1 if connected else 0)

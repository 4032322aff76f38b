"""
Event Bus carrying store notifications to renderers
"""

import asyncio
import logging
from typing import Dict, List, Callable, Any
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

from config.config import NOTIFICATION_QUEUE_SIZE
from monitoring.metrics import notifications_dropped_total

logger = logging.getLogger(__name__)


@dataclass
class Event:
    """Notification data structure"""
    type: str
    data: Dict[str, Any]
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())
    source: str = "store"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "data": self.data, "timestamp": self.timestamp, "source": self.source}


class EventBus:
    """
    Queue of notifications published by the DAG store.

    Publishing never blocks and never runs listeners inline: the store finishes
    its mutation first, and the processor task delivers to async listeners
    afterwards, in publication order. The queue is bounded so a bus that
    nobody drains keeps only the newest ``maxsize`` notifications.
    """

    def __init__(self, maxsize: int = NOTIFICATION_QUEUE_SIZE):
        self.listeners: Dict[str, List[Callable]] = defaultdict(list)
        self.event_queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.running = False
        self.processor_task = None
        self.published = 0
        self.dropped = 0
        logger.info("EventBus initialized")

    async def start(self):
        """Start the event processor"""
        if not self.running:
            self.running = True
            self.processor_task = asyncio.create_task(self._process_events())
            logger.info("EventBus started")

    async def stop(self):
        """Stop the event processor"""
        self.running = False
        if self.processor_task:
            await self.processor_task
            self.processor_task = None
            logger.info("EventBus stopped")

    async def _process_events(self):
        while self.running:
            try:
                # Timeout so the running flag is re-checked
                event = await asyncio.wait_for(self.event_queue.get(), timeout=1.0)
                await self._dispatch_event(event)
            except asyncio.TimeoutError:
                continue
            except Exception as e:
                logger.error(f"Error processing event: {e}")

    async def _dispatch_event(self, event: Event):
        """Dispatch event to all registered listeners"""
        listeners = self.listeners.get(event.type, []) + self.listeners.get("*", [])

        if not listeners:
            logger.debug(f"No listeners for event type: {event.type}")
            return

        results = await asyncio.gather(
            *(self._call_listener(listener, event) for listener in listeners),
            return_exceptions=True
        )

        for listener, result in zip(listeners, results):
            if isinstance(result, Exception):
                logger.error(f"Listener {getattr(listener, '__name__', listener)} failed: {result}")

    async def _call_listener(self, listener: Callable, event: Event):
        try:
            await listener(event)
        except Exception as e:
            logger.error(f"Error in listener {getattr(listener, '__name__', listener)}: {e}")
            raise

    def subscribe(self, event_type: str, listener: Callable):
        """Subscribe to an event type, or to every type with "*" """
        self.listeners[event_type].append(listener)
        logger.info(f"Subscribed {getattr(listener, '__name__', listener)} to {event_type}")

    def unsubscribe(self, event_type: str, listener: Callable):
        """Unsubscribe from an event type"""
        if listener in self.listeners[event_type]:
            self.listeners[event_type].remove(listener)
            logger.info(f"Unsubscribed {getattr(listener, '__name__', listener)} from {event_type}")

    def publish(self, event_type: str, data: Dict[str, Any], source: str = "store") -> Event:
        """Queue a notification without waiting; a full queue loses its oldest entry"""
        event = Event(type=event_type, data=data, source=source)
        if self.event_queue.full():
            self.event_queue.get_nowait()
            self.dropped += 1
            notifications_dropped_total.inc()
            if self.dropped == 1 or self.dropped % 1000 == 0:
                logger.warning(f"Notification queue full, {self.dropped} notifications dropped so far")
        self.event_queue.put_nowait(event)
        self.published += 1
        logger.debug(f"Published event: {event_type} from {source}")
        return event

    def drain(self) -> List[Event]:
        """Pop every queued notification (for callers that poll instead of listening)"""
        events = []
        while not self.event_queue.empty():
            events.append(self.event_queue.get_nowait())
        return events


class EventTypes:
    """Notification types published by the DAG store"""
    NODE_ADDED = "node_added"
    PROPOSER_BLOCK_ADDED = "proposer_block_added"
    TRANSACTION_BLOCK_ADDED = "transaction_block_added"
    VOTER_BLOCK_ADDED = "voter_block_added"
    PROPOSER_BLOCK_CONFIRMED = "proposer_block_confirmed"
    ANOMALY = "anomaly"

    ALL = (
        NODE_ADDED,
        PROPOSER_BLOCK_ADDED,
        TRANSACTION_BLOCK_ADDED,
        VOTER_BLOCK_ADDED,
        PROPOSER_BLOCK_CONFIRMED,
        ANOMALY,
    )

"""
Real-Time Channel
=================

In-process publish/subscribe broker used to push notification inserts and
ticket change events to subscribers. Delivery is best effort: a full
subscriber buffer drops the event, and consumers recover on their next full
refetch. Events carry the entity timestamp so consumers reconcile by time,
not by arrival order.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Iterable, Optional, Set
from uuid import uuid4

from facilityops.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def notifications_topic(user_id: str) -> str:
    return f"notifications:{user_id}"


def tickets_topic(property_id: str) -> str:
    return f"tickets:{property_id}"


@dataclass(frozen=True)
class RealtimeEvent:
    """One server-pushed message."""
    topic: str
    kind: str
    payload: Dict[str, Any]
    occurred_at: datetime
    id: str = field(default_factory=lambda: str(uuid4()))


class Subscription:
    """
    A subscriber's view of one or more topics.

    Iterate with `async for event in subscription`; `close()` unregisters and
    ends iteration, which is how a torn-down view stops consuming.
    """

    _CLOSED = object()

    def __init__(self, broker: "RealtimeBroker", topics: Iterable[str], maxsize: int):
        self._broker = broker
        self.topics = frozenset(topics)
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False
        self.dropped = 0

    def offer(self, event: RealtimeEvent) -> bool:
        if self.closed:
            return False
        try:
            self._queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            return False

    async def get(self) -> Optional[RealtimeEvent]:
        """Next event, or None once the subscription is closed."""
        if self.closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is self._CLOSED:
            return None
        return item

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._broker._unregister(self)
        try:
            self._queue.put_nowait(self._CLOSED)
        except asyncio.QueueFull:
            pass

    def __aiter__(self) -> AsyncIterator[RealtimeEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[RealtimeEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event


class RealtimeBroker:
    """Topic-keyed fan-out to live subscriptions."""

    def __init__(self, queue_size: int = 256):
        self._queue_size = queue_size
        self._subscriptions: Dict[str, Set[Subscription]] = {}

    def subscribe(self, *topics: str) -> Subscription:
        subscription = Subscription(self, topics, self._queue_size)
        for topic in subscription.topics:
            self._subscriptions.setdefault(topic, set()).add(subscription)
        return subscription

    def _unregister(self, subscription: Subscription) -> None:
        for topic in subscription.topics:
            subscribers = self._subscriptions.get(topic)
            if subscribers is None:
                continue
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscriptions[topic]

    async def publish(
        self,
        topic: str,
        kind: str,
        payload: Dict[str, Any],
        occurred_at: Optional[datetime] = None,
    ) -> int:
        """Deliver to every live subscriber of `topic`; returns the delivered count."""
        event = RealtimeEvent(
            topic=topic,
            kind=kind,
            payload=payload,
            occurred_at=occurred_at or datetime.now(timezone.utc),
        )
        delivered = 0
        for subscription in list(self._subscriptions.get(topic, ())):
            if subscription.offer(event):
                delivered += 1
            else:
                logger.warning(
                    "Real-time event dropped",
                    extra={"topic": topic, "kind": kind, "event_id": event.id}
                )
        return delivered

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscriptions.get(topic, ()))

"""
Real-Time Cache Subscribers
===========================

Consumes the real-time channel on behalf of one view and applies each event
to the view's cache and notification feed:

- `ticket.updated` evicts the property's list entries and merges the ticket
  entry by its `updated_at`
- `notification.created` is merged into the feed by id
"""

import asyncio
from datetime import datetime
from typing import Iterable, Optional

from facilityops.cache.coherence import CoherentCache, Origin, ViewContext
from facilityops.cache.feed import NotificationFeed
from facilityops.infrastructure.realtime import (
    RealtimeBroker, RealtimeEvent, Subscription, notifications_topic, tickets_topic,
)
from facilityops.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def property_scope(property_id: str) -> str:
    return f"property:{property_id}"


def ticket_key(ticket_id: str) -> str:
    return f"ticket-{ticket_id}"


def ticket_list_key(property_id: str, status_filter: str = "all") -> str:
    """e.g. tickets-propertyA-open"""
    return f"tickets-{property_id}-{status_filter}"


class RealtimeCacheSync:
    """Keeps one view's cache and feed coherent with pushed events."""

    def __init__(
        self,
        broker: RealtimeBroker,
        cache: CoherentCache,
        feed: Optional[NotificationFeed] = None,
    ):
        self._broker = broker
        self._cache = cache
        self._feed = feed
        self._subscription: Optional[Subscription] = None
        self._task: Optional[asyncio.Task] = None

    def start(self, view: ViewContext, user_id: str, property_ids: Iterable[str]) -> None:
        """Subscribe and consume in a task owned by `view`."""
        topics = [notifications_topic(user_id)] + [tickets_topic(p) for p in property_ids]
        self._subscription = self._broker.subscribe(*topics)
        self._task = view.spawn(self._consume(view, self._subscription))
        if self._task is None:
            self._subscription.close()

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.close()

    async def _consume(self, view: ViewContext, subscription: Subscription) -> None:
        try:
            async for event in subscription:
                if not view.alive:
                    break
                self.apply(event)
        finally:
            subscription.close()

    def apply(self, event: RealtimeEvent) -> None:
        if event.kind == "ticket.updated":
            self._apply_ticket(event)
        elif event.kind == "notification.created":
            if self._feed is not None:
                self._feed.merge_pushed(event.payload)
        else:
            logger.debug("Ignoring real-time event", extra={"kind": event.kind, "topic": event.topic})

    def _apply_ticket(self, event: RealtimeEvent) -> None:
        ticket = event.payload
        scope = property_scope(ticket["property_id"])
        self._cache.evict_scope(scope)
        updated_at = ticket.get("updated_at")
        timestamp = datetime.fromisoformat(updated_at) if updated_at else event.occurred_at
        self._cache.merge(
            ticket_key(ticket["id"]),
            ticket,
            timestamp,
            origin=Origin.REMOTE,
            scopes=[f"ticket:{ticket['id']}"],
        )

"""
Dashboard Session
=================

Client-side state of one open dashboard: the navigation state, the
coherent cache in front of the loader, the notification feed, and the
real-time subscription that keeps them current. Closing the session
cancels everything it started.
"""

from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from facilityops.cache import CoherentCache, NotificationFeed, Origin, RealtimeCacheSync, ViewContext
from facilityops.cache.subscribers import property_scope, ticket_key, ticket_list_key
from facilityops.dashboards.application.navigation import NavigationState
from facilityops.infrastructure.realtime import RealtimeBroker
from facilityops.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

Loader = Callable[[NavigationState], Awaitable[Dict[str, Any]]]


class DashboardSession:

    def __init__(
        self,
        user_id: str,
        loader: Loader,
        nav: NavigationState,
        property_ids: Iterable[str] = (),
        cache: Optional[CoherentCache] = None,
        broker: Optional[RealtimeBroker] = None,
        feed: Optional[NotificationFeed] = None,
    ):
        self.user_id = user_id
        self.nav = nav
        self.property_ids: List[str] = list(property_ids)
        self.cache = cache or CoherentCache()
        self.feed = feed or NotificationFeed()
        self._loader = loader
        self._broker = broker
        self._view = ViewContext(name=f"dashboard:{user_id}")
        self._sync: Optional[RealtimeCacheSync] = None

    async def __aenter__(self) -> "DashboardSession":
        self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def open(self) -> None:
        if self._broker is not None and self._sync is None:
            self._sync = RealtimeCacheSync(self._broker, self.cache, self.feed)
            self._sync.start(self._view, self.user_id, self.property_ids)

    async def close(self) -> None:
        if self._sync is not None:
            self._sync.stop()
        await self._view.close()

    @property
    def view(self) -> ViewContext:
        return self._view

    def cache_key(self, nav: Optional[NavigationState] = None) -> str:
        nav = nav or self.nav
        status = nav.status_filter or nav.tab
        if nav.property_id:
            return ticket_list_key(nav.property_id, f"{nav.view}-{status}")
        return f"dashboard-{self.user_id}-{nav.view}-{status}"

    def _scopes(self, nav: NavigationState) -> List[str]:
        properties = [nav.property_id] if nav.property_id else self.property_ids
        return [property_scope(p) for p in properties] + [f"user:{self.user_id}"]

    async def show(self) -> Tuple[Dict[str, Any], bool]:
        """Payload of the current navigation state and whether it is stale."""
        nav = self.nav
        return await self.cache.get(
            self.cache_key(nav),
            fetch=lambda: self._loader(nav),
            view=self._view,
            scopes=self._scopes(nav),
        )

    def navigate(self, **changes) -> NavigationState:
        self.nav = self.nav.with_changes(**changes)
        return self.nav

    def record_mutation(self, ticket: Dict[str, Any]) -> None:
        """
        After this client's own successful mutation: evict affected lists and
        keep the returned ticket as a local entry until the server echo arrives.
        """
        self.cache.evict_scope(property_scope(ticket["property_id"]))
        self.cache.evict_scope(f"user:{self.user_id}")
        self.cache.merge(
            ticket_key(ticket["id"]),
            ticket,
            datetime.fromisoformat(ticket["updated_at"]),
            origin=Origin.LOCAL,
            scopes=[f"ticket:{ticket['id']}"],
        )

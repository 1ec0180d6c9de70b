"""
Coherent Cache
==============

Keyed, timestamped read-through cache for dashboard reads.

- `get` serves whatever is cached at once, flagged stale after the TTL, and
  schedules at most one background revalidation per key
- a miss blocks on the fetch, bounded by the dashboard load timeout
- mutations evict by scope instead of waiting for the TTL
- pushed and optimistic writes merge by timestamp: newer wins, and on a tie
  the remote copy wins over a local one
- freshness runs from when the cache received a payload, not from the
  entity time it carries

Background revalidations belong to a ViewContext. Once the view is closed
its tasks are cancelled and any completion that still arrives is dropped.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from facilityops.config import settings
from facilityops.core import ApplicationException
from facilityops.shared.infrastructure.clock import Clock, utcnow
from facilityops.shared.infrastructure.logging import get_logger
from facilityops.shared.infrastructure.resilience import bounded

logger = get_logger(__name__)

Fetcher = Callable[[], Awaitable[Any]]


class Origin(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: Any
    timestamp: datetime
    origin: Origin = Origin.REMOTE
    scopes: FrozenSet[str] = field(default_factory=frozenset)
    # When the cache received the payload; `timestamp` orders merges
    fetched_at: Optional[datetime] = None

    def is_stale(self, now: datetime, ttl: timedelta) -> bool:
        received = self.fetched_at if self.fetched_at is not None else self.timestamp
        return now - received >= ttl


def merge_entries(current: Optional[CacheEntry], incoming: CacheEntry) -> CacheEntry:
    """Newer timestamp wins; on equal timestamps remote beats local."""
    if current is None or incoming.timestamp > current.timestamp:
        return incoming
    if incoming.timestamp == current.timestamp and incoming.origin == Origin.REMOTE:
        return incoming
    return current


class ViewContext:
    """
    Lifetime of one dashboard view.

    Owns the background tasks started on its behalf. `alive` is checked by
    every completion before it touches shared state.
    """

    def __init__(self, name: str = "view"):
        self.name = name
        self._alive = True
        self._tasks: Set[asyncio.Task] = set()

    @property
    def alive(self) -> bool:
        return self._alive

    def spawn(self, coro: Awaitable[Any]) -> Optional[asyncio.Task]:
        if not self._alive:
            coro.close()
            return None
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def close(self) -> None:
        """Mark dead and cancel everything still running."""
        self._alive = False
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug("View closed", extra={"view": self.name, "cancelled": len(tasks)})

    async def __aenter__(self) -> "ViewContext":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class CoherentCache:
    """Stale-while-revalidate cache keyed by view query."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Clock = utcnow,
        load_timeout: Optional[float] = None,
    ):
        self._ttl = timedelta(seconds=settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds)
        self._clock = clock
        self._load_timeout = settings.dashboard_load_timeout_seconds if load_timeout is None else load_timeout
        self._entries: Dict[str, CacheEntry] = {}
        # Bumped by every write or eviction of a key; a revalidation that
        # started under an older version is discarded
        self._versions: Dict[str, int] = {}
        self._revalidating: Dict[str, asyncio.Task] = {}

    # ========== Reads ==========

    async def get(
        self,
        key: str,
        fetch: Optional[Fetcher] = None,
        view: Optional[ViewContext] = None,
        scopes: Iterable[str] = (),
    ) -> Tuple[Any, bool]:
        """
        Returns (payload, is_stale).

        Raises KeyError on a miss without a fetcher, and
        UpstreamUnavailableException when the blocking fetch times out.
        """
        entry = self._entries.get(key)
        if entry is None:
            if fetch is None:
                raise KeyError(key)
            version = self._versions.get(key, 0)
            payload = await bounded(fetch(), f"cache.load:{key}", timeout=self._load_timeout, service_name="Dashboard")
            if view is not None and not view.alive:
                return payload, False
            if self._versions.get(key, 0) == version:
                self.set(key, payload, scopes=scopes)
            return payload, False

        stale = entry.is_stale(self._clock(), self._ttl)
        if stale and fetch is not None:
            self._schedule_revalidation(key, fetch, view, entry.scopes)
        return entry.payload, stale

    def peek(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def keys(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    # ========== Writes ==========

    def set(
        self,
        key: str,
        payload: Any,
        origin: Origin = Origin.REMOTE,
        scopes: Iterable[str] = (),
    ) -> CacheEntry:
        """Store with timestamp=now, overwriting any prior entry."""
        now = self._clock()
        entry = CacheEntry(key, payload, now, origin, frozenset(scopes), fetched_at=now)
        self._write(entry)
        return entry

    def merge(
        self,
        key: str,
        payload: Any,
        timestamp: datetime,
        origin: Origin = Origin.REMOTE,
        scopes: Iterable[str] = (),
    ) -> bool:
        """Apply the merge rule; returns True if the incoming payload won."""
        current = self._entries.get(key)
        incoming = CacheEntry(
            key, payload, timestamp, origin,
            frozenset(scopes) or (current.scopes if current else frozenset()),
            fetched_at=self._clock(),
        )
        winner = merge_entries(current, incoming)
        if winner is incoming:
            self._write(incoming)
            return True
        return False

    def evict(self, key: str) -> bool:
        self._bump(key)
        return self._entries.pop(key, None) is not None

    def evict_scope(self, scope: str) -> List[str]:
        """Evict every entry tagged with `scope`."""
        doomed = [key for key, entry in self._entries.items() if scope in entry.scopes]
        for key in doomed:
            self.evict(key)
        if doomed:
            logger.debug("Cache scope evicted", extra={"scope": scope, "keys": doomed})
        return doomed

    def clear(self) -> None:
        for key in list(self._entries):
            self.evict(key)

    def _write(self, entry: CacheEntry) -> None:
        self._bump(entry.key)
        self._entries[entry.key] = entry

    def _bump(self, key: str) -> None:
        self._versions[key] = self._versions.get(key, 0) + 1

    # ========== Revalidation ==========

    def _schedule_revalidation(
        self,
        key: str,
        fetch: Fetcher,
        view: Optional[ViewContext],
        scopes: FrozenSet[str],
    ) -> None:
        if key in self._revalidating:
            return
        coro = self._revalidate(key, fetch, view, scopes, self._versions.get(key, 0))
        task = view.spawn(coro) if view is not None else asyncio.ensure_future(coro)
        if task is None:
            return
        self._revalidating[key] = task
        task.add_done_callback(lambda t, k=key: self._revalidation_done(k, t))

    async def _revalidate(
        self,
        key: str,
        fetch: Fetcher,
        view: Optional[ViewContext],
        scopes: FrozenSet[str],
        version: int,
    ) -> None:
        try:
            payload = await bounded(fetch(), f"cache.revalidate:{key}", service_name="Dashboard")
        except ApplicationException as exc:
            logger.warning(
                "Revalidation failed, serving last known good data",
                extra={"key": key, "error": exc.message}
            )
            return

        if view is not None and not view.alive:
            return
        if self._versions.get(key, 0) != version:
            # Evicted or overwritten meanwhile
            return
        self.set(key, payload, scopes=scopes)

    def _revalidation_done(self, key: str, task: asyncio.Task) -> None:
        if self._revalidating.get(key) is task:
            del self._revalidating[key]
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Revalidation crashed",
                extra={"key": key, "error": repr(task.exception())}
            )

    @property
    def revalidating(self) -> List[str]:
        return list(self._revalidating)

    async def wait_revalidations(self) -> None:
        """Wait for in-flight revalidations (used at shutdown and in tests)."""
        tasks = list(self._revalidating.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

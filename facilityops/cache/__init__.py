"""
Cache Coherence Module
======================

Client-side read-through cache with stale-while-revalidate, the live
notification feed, and the real-time subscribers that keep both coherent
with the server.
"""

from facilityops.cache.coherence import CacheEntry, CoherentCache, Origin, ViewContext, merge_entries
from facilityops.cache.feed import NotificationFeed
from facilityops.cache.subscribers import RealtimeCacheSync, property_scope, ticket_key, ticket_list_key

__all__ = [
    "CacheEntry",
    "CoherentCache",
    "Origin",
    "ViewContext",
    "merge_entries",
    "NotificationFeed",
    "RealtimeCacheSync",
    "property_scope",
    "ticket_list_key",
    "ticket_key",
]

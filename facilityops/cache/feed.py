"""
Notification Feed
=================

A recipient's live notification list. Server-pushed inserts are merged by
id, so a redelivered event never bumps the unread count twice.
"""

from typing import Any, Dict, Iterable, List, Optional


class NotificationFeed:
    """Recency-ordered notifications plus the unread count."""

    def __init__(self, items: Iterable[Dict[str, Any]] = (), unread_count: Optional[int] = None):
        self._items: List[Dict[str, Any]] = []
        self._unread = 0
        self.replace(items, unread_count)

    def replace(self, items: Iterable[Dict[str, Any]], unread_count: Optional[int] = None) -> None:
        """Swap in the result of a full refetch."""
        self._items = sorted((dict(i) for i in items), key=lambda i: i["created_at"], reverse=True)
        if unread_count is None:
            unread_count = sum(1 for i in self._items if not i.get("is_read"))
        self._unread = unread_count

    def merge_pushed(self, notification: Dict[str, Any]) -> bool:
        """Insert a pushed notification; returns False if it was already present."""
        if any(item["id"] == notification["id"] for item in self._items):
            return False
        self._items.append(dict(notification))
        self._items.sort(key=lambda i: i["created_at"], reverse=True)
        if not notification.get("is_read"):
            self._unread += 1
        return True

    def mark_read(self, notification_id: str) -> bool:
        """Optimistic local read; idempotent."""
        for item in self._items:
            if item["id"] == notification_id:
                if item.get("is_read"):
                    return False
                item["is_read"] = True
                self._unread = max(0, self._unread - 1)
                return True
        return False

    def mark_all_read(self) -> int:
        changed = 0
        for item in self._items:
            if not item.get("is_read"):
                item["is_read"] = True
                changed += 1
        self._unread = 0
        return changed

    @property
    def items(self) -> List[Dict[str, Any]]:
        return list(self._items)

    @property
    def unread_count(self) -> int:
        return self._unread

    def __len__(self) -> int:
        return len(self._items)

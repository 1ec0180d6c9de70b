"""
Notification In-Memory Repository
=================================
"""

from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from facilityops.infrastructure.memory import InMemoryStore
from facilityops.notifications.application.repositories import INotificationRepository
from facilityops.notifications.domain import Notification


class InMemoryNotificationRepository(INotificationRepository):

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._rows = store.table("notifications")

    async def insert_unless_duplicate(self, notification: Notification, window_start: datetime) -> bool:
        await self._store.suspend()
        # Check and write with no await in between
        duplicate = self._rows.where(
            lambda n: n.dedup_key == notification.dedup_key
            and not n.is_read
            and n.created_at >= window_start
        )
        if duplicate:
            return False
        self._rows.put(notification.id, replace(notification))
        return True

    async def list_for_recipient(
        self,
        recipient_id: str,
        limit: int = 50,
        unread_only: bool = False
    ) -> List[Notification]:
        await self._store.suspend()
        rows = self._rows.where(
            lambda n: n.recipient_id == recipient_id and (not unread_only or not n.is_read)
        )
        rows.sort(key=lambda n: (n.created_at, n.id), reverse=True)
        return [replace(n) for n in rows[:limit]]

    async def count_unread(self, recipient_id: str) -> int:
        await self._store.suspend()
        return len(self._rows.where(lambda n: n.recipient_id == recipient_id and not n.is_read))

    async def mark_read(self, recipient_id: str, notification_id: str, read_at: datetime) -> Optional[Notification]:
        await self._store.suspend()
        current = self._rows.get(notification_id)
        if current is None or current.recipient_id != recipient_id:
            return None
        if not current.is_read:
            current = replace(current, is_read=True, read_at=read_at)
            self._rows.put(notification_id, current)
        return replace(current)

    async def mark_all_read(self, recipient_id: str, read_at: datetime) -> int:
        await self._store.suspend()
        unread = self._rows.where(lambda n: n.recipient_id == recipient_id and not n.is_read)
        for n in unread:
            self._rows.put(n.id, replace(n, is_read=True, read_at=read_at))
        return len(unread)

    async def delete_for_ticket(self, ticket_id: str) -> int:
        await self._store.suspend()
        doomed = self._rows.where(lambda n: n.ticket_id == ticket_id)
        for n in doomed:
            self._rows.delete(n.id)
        return len(doomed)

"""
Notification Repository Interface
=================================
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from facilityops.notifications.domain import Notification


class INotificationRepository(ABC):
    """Interface for notification data access."""

    @abstractmethod
    async def insert_unless_duplicate(self, notification: Notification, window_start: datetime) -> bool:
        """
        Conditional insert: skip when an unread notification with the same
        (recipient, type, ticket) was created at or after `window_start`.

        Returns True if the row was written.
        """

    @abstractmethod
    async def list_for_recipient(
        self,
        recipient_id: str,
        limit: int = 50,
        unread_only: bool = False
    ) -> List[Notification]:
        """Newest first."""

    @abstractmethod
    async def count_unread(self, recipient_id: str) -> int:
        """Unread notifications for a recipient."""

    @abstractmethod
    async def mark_read(self, recipient_id: str, notification_id: str, read_at: datetime) -> Optional[Notification]:
        """
        Mark one notification read. Already-read rows are returned unchanged;
        None means no such notification for this recipient.
        """

    @abstractmethod
    async def mark_all_read(self, recipient_id: str, read_at: datetime) -> int:
        """Mark every unread notification read; returns how many changed."""

    @abstractmethod
    async def delete_for_ticket(self, ticket_id: str) -> int:
        """Drop notifications referencing a ticket (hard delete)."""

"""
Notification Domain Entities
============================
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import uuid4

from facilityops.config import NotificationType


@dataclass
class Notification:
    """
    A message for one recipient.

    At most one unread notification exists per (recipient, type, ticket)
    inside the debounce window; the repository enforces it on insert.
    """
    recipient_id: str
    type: NotificationType
    title: str
    message: str
    created_at: datetime
    ticket_id: Optional[str] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: str(uuid4()))

    def __post_init__(self):
        self.type = NotificationType(self.type)

    @property
    def dedup_key(self) -> tuple:
        return (self.recipient_id, self.type, self.ticket_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "ticket_id": self.ticket_id,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat(),
        }

"""
Notification Application DTOs
=============================
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

NotificationTypeStr = Literal[
    "TICKET_CREATED", "TICKET_ASSIGNED", "TICKET_WAITLISTED", "TICKET_COMPLETED", "SLA_BREACHED"
]


class NotificationResponse(BaseModel):
    """Response model for a notification."""
    id: str
    recipient_id: str
    type: NotificationTypeStr
    title: str
    message: str
    ticket_id: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    """Recency-ordered notifications plus the unread badge count."""
    notifications: List[NotificationResponse] = Field(default_factory=list)
    unread_count: int = Field(..., ge=0)


class MarkAllReadResponse(BaseModel):
    updated: int = Field(..., ge=0)
    unread_count: int = Field(..., ge=0)

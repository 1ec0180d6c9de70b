"""
Notifications Application Layer
===============================

Contains:
- Services: NotificationFanout (events -> persisted, deduplicated, pushed),
  NotificationService (list, mark read)
- DTOs: API response models
- Repository interface: INotificationRepository
"""

from facilityops.notifications.application.repositories import INotificationRepository
from facilityops.notifications.application.dto import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from facilityops.notifications.application.services import (
    NotificationFanout,
    NotificationService,
)

__all__ = [
    "INotificationRepository",
    "MarkAllReadResponse",
    "NotificationListResponse",
    "NotificationResponse",
    "NotificationFanout",
    "NotificationService",
]

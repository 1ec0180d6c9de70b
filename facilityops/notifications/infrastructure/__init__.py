"""
Notifications Infrastructure Layer
==================================

- Models: SQLAlchemy ORM models
- Repositories: SQL and in-memory implementations of INotificationRepository
"""

from facilityops.notifications.infrastructure.models import NotificationModel
from facilityops.notifications.infrastructure.repositories import SQLAlchemyNotificationRepository
from facilityops.notifications.infrastructure.memory import InMemoryNotificationRepository

__all__ = [
    "NotificationModel",
    "SQLAlchemyNotificationRepository",
    "InMemoryNotificationRepository",
]

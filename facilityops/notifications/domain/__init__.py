"""
Notifications Domain Layer
==========================

Contains:
- Entities: Notification
"""

from facilityops.notifications.domain.entities import Notification

__all__ = ["Notification"]

"""
Notification Interfaces Layer
=============================
"""

from facilityops.notifications.interfaces.controllers import router as notifications_router

__all__ = ["notifications_router"]

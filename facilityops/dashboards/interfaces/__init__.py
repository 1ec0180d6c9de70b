"""
Dashboard Interfaces Layer
==========================
"""

from facilityops.dashboards.interfaces.controllers import router as dashboards_router

__all__ = ["dashboards_router"]

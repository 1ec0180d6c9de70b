"""
Dashboards Application Layer
============================
"""

from facilityops.dashboards.application.navigation import DEFAULT_VIEW, TABS, VIEWS, NavigationState
from facilityops.dashboards.application.read_models import DashboardReadModels
from facilityops.dashboards.application.session import DashboardSession

__all__ = [
    "DEFAULT_VIEW",
    "TABS",
    "VIEWS",
    "NavigationState",
    "DashboardReadModels",
    "DashboardSession",
]

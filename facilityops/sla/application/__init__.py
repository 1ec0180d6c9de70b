"""
SLA Application Layer
=====================

Services and DTOs for SLA status, dashboards and the periodic jobs.
"""

from facilityops.sla.application.dto import (
    DashboardQueryDTO,
    DashboardResponse,
    DashboardSummary,
    SLAStatusResponse,
    TicketSLAResponse,
)
from facilityops.sla.application.services import (
    OPEN_CLOCK_STATUSES,
    GracePeriodCloser,
    ISLAConfigProvider,
    SLABreachScanner,
    SLAService,
)

__all__ = [
    "DashboardQueryDTO",
    "DashboardResponse",
    "DashboardSummary",
    "SLAStatusResponse",
    "TicketSLAResponse",
    "OPEN_CLOCK_STATUSES",
    "GracePeriodCloser",
    "ISLAConfigProvider",
    "SLABreachScanner",
    "SLAService",
]

"""
Dashboard Controllers (API Routes)
==================================
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from facilityops.config import settings
from facilityops.dashboards.application import NavigationState
from facilityops.directory.domain import Actor
from facilityops.shared.api.dependencies import Services, get_actor, get_services
from facilityops.shared.infrastructure.resilience import bounded

router = APIRouter(tags=["Dashboards"])


@router.get(
    "/dashboard",
    summary="Role dashboard",
    description="""
    Read model for the view addressed by the navigation query parameters
    (`view`, `tab`, `status`, `property_id`). Missing parameters default to
    the actor's role. The response echoes the normalized navigation state so
    it can be bookmarked or shared.
    """,
)
async def get_dashboard(
    view: Optional[str] = Query(None),
    tab: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    property_id: Optional[str] = Query(None),
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    params = {"view": view, "tab": tab, "status": status, "property_id": property_id}
    nav = NavigationState.from_query({k: v for k, v in params.items() if v}, role=actor.role)
    return await bounded(
        services.dashboards.build(actor, nav),
        "dashboard.load",
        timeout=settings.dashboard_load_timeout_seconds,
        service_name="Dashboard",
    )

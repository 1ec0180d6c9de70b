"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA monitoring endpoints.

Controllers are thin - they delegate to application services.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from facilityops.directory.domain import Actor
from facilityops.shared.api.dependencies import Services, get_actor, get_services
from facilityops.shared.infrastructure.logging import get_logger
from facilityops.sla.application import (
    DashboardResponse,
    DashboardSummary,
    SLAStatusResponse,
    TicketSLAResponse,
)
from facilityops.sla.application.dto import SLAStateStr
from facilityops.sla.domain import SLAStatus
from facilityops.tickets.application.dto import PriorityStr
from facilityops.tickets.domain import Ticket

logger = get_logger(__name__)
router = APIRouter(prefix="/sla", tags=["SLA Monitoring"])


# ========== Example payloads for Swagger ==========

TICKET_SLA_RESPONSE_EXAMPLE = {
    "ticket_id": "6f1c2b9e-8d0a-4b7e-9a51-2f7f0c3d9e11",
    "display_code": "TKT-20240115-1A2B3C",
    "property_id": "prop-1",
    "priority": "high",
    "category": "plumbing",
    "status": "paused",
    "assignee_id": "resolver-3",
    "created_at": "2024-01-15T10:00:00+00:00",
    "sla": {
        "state": "paused",
        "is_breached": False,
        "is_paused": True,
        "threshold_seconds": 14400.0,
        "elapsed_service_seconds": 3600.0,
        "paused_seconds": 1800.0,
        "remaining_seconds": 10800.0,
        "projected_deadline": "2024-01-15T14:30:00+00:00",
        "resolution_seconds": None
    }
}


def _ticket_sla(ticket: Ticket, sla: SLAStatus) -> TicketSLAResponse:
    return TicketSLAResponse(
        ticket_id=ticket.id,
        display_code=ticket.display_code,
        property_id=ticket.property_id,
        priority=ticket.priority.value,
        category=ticket.category.value,
        status=ticket.status.value,
        assignee_id=ticket.assignee_id,
        created_at=ticket.created_at,
        sla=SLAStatusResponse(**{k: v for k, v in sla.to_dict().items() if k != "ticket_id"}),
    )


# ========== Route Handlers ==========

@router.get(
    "/tickets/{ticket_id}",
    response_model=TicketSLAResponse,
    summary="Get ticket SLA status",
    description="""
    SLA clock of one ticket.

    Elapsed service time excludes every pause window, including one still
    open. A paused ticket's clock is frozen and cannot breach while paused.
    """,
    responses={
        200: {"content": {"application/json": {"example": TICKET_SLA_RESPONSE_EXAMPLE}}},
        404: {"description": "Ticket not found"}
    }
)
async def get_ticket_sla(
    ticket_id: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    ticket, sla = await services.sla.ticket_status(actor, ticket_id)
    return _ticket_sla(ticket, sla)


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="SLA dashboard",
    description="Non-closed tickets of your properties, breached and nearest-deadline first.",
)
async def get_dashboard(
    property_id: Optional[str] = Query(None),
    priority: Optional[PriorityStr] = Query(None),
    sla_state: Optional[SLAStateStr] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    rows, summary = await services.sla.dashboard(actor, property_id, priority, sla_state, limit)
    logger.debug("SLA dashboard built", extra={"actor_id": actor.user_id, "rows": len(rows)})
    return DashboardResponse(
        tickets=[_ticket_sla(ticket, sla) for ticket, sla in rows],
        total_count=summary["total_tickets"],
        summary=DashboardSummary(**summary),
    )

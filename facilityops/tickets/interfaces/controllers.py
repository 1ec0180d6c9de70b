"""
Ticket Controllers (API Routes)
===============================

FastAPI routes for the ticket lifecycle.

Controllers are thin - they delegate to TicketService.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import ValidationError

from facilityops.core import ValidationException
from facilityops.directory.domain import Actor
from facilityops.shared.api.dependencies import Services, get_actor, get_services
from facilityops.shared.infrastructure.logging import get_logger, log_latency
from facilityops.tickets.application import (
    DeleteResponse,
    ExportFormatStr,
    ExportQuery,
    TicketActivityListResponse,
    TicketActivityResponse,
    TicketCommentListResponse,
    TicketCommentRequest,
    TicketCommentResponse,
    TicketCreateRequest,
    TicketResponse,
    TicketUpdateRequest,
    render_csv,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/tickets", tags=["Tickets"])


# ========== Example payloads for Swagger ==========

TICKET_RESPONSE_EXAMPLE = {
    "id": "6f1c2b9e-8d0a-4b7e-9a51-2f7f0c3d9e11",
    "display_code": "TKT-20240115-1A2B3C",
    "title": "Water leak in lobby",
    "description": "Ceiling tile dripping next to the lifts",
    "category": "plumbing",
    "priority": "high",
    "status": "assigned",
    "property_id": "prop-1",
    "organization_id": "org-1",
    "creator_id": "tenant-7",
    "raised_by_role": "tenant",
    "assignee_id": "resolver-3",
    "created_at": "2024-01-15T10:00:00+00:00",
    "updated_at": "2024-01-15T10:00:00+00:00",
    "assigned_at": "2024-01-15T10:00:00+00:00",
    "sla_paused": False,
    "sla_accumulated_pause_seconds": 0.0
}


def _response(ticket) -> TicketResponse:
    return TicketResponse(**ticket.to_dict())


# ========== Route Handlers ==========

@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Raise a ticket",
    description="""
    Raise a ticket at a property.

    The ticket is placed immediately:
    - `assigned` to the best eligible resolver
    - `open` for categories a dispatcher assigns by hand
    - `waitlist` when no resolver is eligible; it is re-dispatched when one checks in
    """,
    responses={201: {"content": {"application/json": {"example": TICKET_RESPONSE_EXAMPLE}}}}
)
async def create_ticket(
    request: TicketCreateRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    with log_latency(logger, "create_ticket", property_id=request.property_id):
        ticket = await services.tickets.create_ticket(actor, request)
    return _response(ticket)


@router.get(
    "/export",
    summary="Export ticket history",
    description="Tickets created in `[start, end]` at the properties you oversee, as JSON rows or CSV.",
)
async def export_history(
    start: datetime = Query(..., description="Window start (inclusive)"),
    end: datetime = Query(..., description="Window end (inclusive)"),
    format: ExportFormatStr = Query("json"),
    property_id: Optional[str] = Query(None),
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    try:
        query = ExportQuery(start=start, end=end, format=format, property_id=property_id)
    except ValidationError as exc:
        errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors(include_url=False)]
        raise ValidationException("Invalid export window", {"errors": errors}) from exc

    rows = await services.tickets.export_history(actor, query.start, query.end, query.property_id)
    logger.info("Ticket history exported", extra={"actor_id": actor.user_id, "rows": len(rows), "format": query.format})

    if query.format == "csv":
        filename = f"tickets_{query.start:%Y%m%d}_{query.end:%Y%m%d}.csv"
        return Response(
            content=render_csv(rows),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )
    return {"rows": rows, "count": len(rows)}


@router.get(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Get a ticket",
    responses={404: {"description": "Ticket not found or deleted"}}
)
async def get_ticket(
    ticket_id: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    return _response(await services.tickets.get_ticket(actor, ticket_id))


@router.get(
    "/{ticket_id}/activity",
    response_model=TicketActivityListResponse,
    summary="Ticket audit trail",
)
async def get_activity(
    ticket_id: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    activity = await services.tickets.get_activity(actor, ticket_id)
    return TicketActivityListResponse(
        ticket_id=ticket_id,
        activity=[TicketActivityResponse(**a.to_dict()) for a in activity],
    )


@router.get(
    "/{ticket_id}/comments",
    response_model=TicketCommentListResponse,
    summary="Ticket comments",
    description="Oldest first. Internal notes are only listed for admins.",
)
async def list_comments(
    ticket_id: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    comments = await services.tickets.list_comments(actor, ticket_id)
    return TicketCommentListResponse(
        ticket_id=ticket_id,
        comments=[TicketCommentResponse(**c.to_dict()) for c in comments],
    )


@router.post(
    "/{ticket_id}/comments",
    response_model=TicketCommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Comment on a ticket",
)
async def add_comment(
    ticket_id: str,
    request: TicketCommentRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    comment = await services.tickets.add_comment(actor, ticket_id, request.body, request.is_internal)
    return TicketCommentResponse(**comment.to_dict())


@router.patch(
    "/{ticket_id}",
    response_model=TicketResponse,
    summary="Update a ticket",
    description="""
    Edit title/description and/or move the ticket through its lifecycle.

    - `{"assignee_id": "..."}` assigns, claims (your own id) or reassigns
    - `{"status": "paused", "reason": "..."}` pauses the SLA clock
    - a lost race answers 409 with a "please refresh" message
    """,
    responses={409: {"description": "Transition denied or concurrent modification"}}
)
async def update_ticket(
    ticket_id: str,
    request: TicketUpdateRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    ticket = await services.tickets.update_ticket(actor, ticket_id, request)
    return _response(ticket)


@router.delete(
    "/{ticket_id}",
    response_model=DeleteResponse,
    summary="Delete a ticket",
    description="Soft delete by default. `hard=true` removes the ticket and its history (org admins only).",
)
async def delete_ticket(
    ticket_id: str,
    hard: bool = Query(False),
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    await services.tickets.delete_ticket(actor, ticket_id, hard=hard)
    return DeleteResponse(ticket_id=ticket_id, hard=hard)

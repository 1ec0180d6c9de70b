"""
Dispatch Controllers (API Routes)
=================================
"""

from fastapi import APIRouter, Depends

from facilityops.directory.domain import Actor
from facilityops.dispatch.application import CandidateListResponse, CandidateResponse, WaitlistDispatchResponse
from facilityops.shared.api.dependencies import Services, get_actor, get_services

router = APIRouter(prefix="/dispatch", tags=["Dispatch"])


@router.post(
    "/properties/{property_id}/waitlist",
    response_model=WaitlistDispatchResponse,
    summary="Dispatch a property's waitlist",
    description="Re-runs resolver selection for the oldest waitlisted tickets of the property.",
)
async def dispatch_waitlist(
    property_id: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    assigned, remaining = await services.dispatch.dispatch_waitlist(actor, property_id)
    return WaitlistDispatchResponse(property_id=property_id, assigned=assigned, remaining=remaining)


@router.get(
    "/tickets/{ticket_id}/candidates",
    response_model=CandidateListResponse,
    summary="Ranked resolvers for a ticket",
    description="Checked-in first, then fewest active tickets, then earliest check-in today.",
)
async def ticket_candidates(
    ticket_id: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    candidates = await services.dispatch.suggest(actor, ticket_id)
    return CandidateListResponse(
        ticket_id=ticket_id,
        candidates=[CandidateResponse(**c.to_dict()) for c in candidates],
    )

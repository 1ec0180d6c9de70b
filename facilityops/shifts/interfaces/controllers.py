"""
Shift Controllers (API Routes)
==============================
"""

from fastapi import APIRouter, Depends, Query

from facilityops.directory.domain import Actor
from facilityops.shared.api.dependencies import Services, get_actor, get_services
from facilityops.shifts.application import ShiftStatusResponse, ShiftToggleRequest, ShiftToggleResponse

router = APIRouter(prefix="/shifts", tags=["Shifts"])


@router.post(
    "",
    response_model=ShiftToggleResponse,
    summary="Check in or out",
    description="""
    `check_in` opens a shift at the property and re-dispatches its waitlist.
    `check_out` closes the open shift.

    Checking in twice, or out without a shift, answers 409.
    """,
)
async def toggle_shift(
    request: ShiftToggleRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    is_checked_in, message = await services.shifts.toggle(actor, request.property_id, request.action)
    return ShiftToggleResponse(is_checked_in=is_checked_in, message=message)


@router.get("/status", response_model=ShiftStatusResponse, summary="Current shift status")
async def shift_status(
    property_id: str = Query(..., min_length=1),
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    record = await services.shifts.current_shift(actor.user_id, property_id)
    return ShiftStatusResponse(
        property_id=property_id,
        is_checked_in=record is not None,
        checked_in_at=record.checked_in_at if record else None,
    )

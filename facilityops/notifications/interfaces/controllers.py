"""
Notification Controllers (API Routes)
=====================================
"""

from fastapi import APIRouter, Depends, Query

from facilityops.directory.domain import Actor
from facilityops.notifications.application import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from facilityops.shared.api.dependencies import Services, get_actor, get_services

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse, summary="My notifications")
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    unread_only: bool = Query(False),
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    items, unread = await services.notifications.list_notifications(actor.user_id, limit, unread_only)
    return NotificationListResponse(
        notifications=[NotificationResponse(**n.to_dict()) for n in items],
        unread_count=unread,
    )


@router.post(
    "/read-all",
    response_model=MarkAllReadResponse,
    summary="Mark all notifications read",
)
async def mark_all_read(
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    updated = await services.notifications.mark_all_read(actor.user_id)
    return MarkAllReadResponse(updated=updated, unread_count=0)


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark one notification read",
    description="Idempotent: marking an already-read notification returns it unchanged.",
)
async def mark_read(
    notification_id: str,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services)
):
    notification = await services.notifications.mark_read(actor.user_id, notification_id)
    return NotificationResponse(**notification.to_dict())

"""Ticket lifecycle use cases over the in-memory store."""

import asyncio
from dataclasses import replace
from datetime import timedelta

import pytest

from facilityops.config import NotificationType, TicketStatus
from facilityops.core import (
    ConcurrentModificationException,
    PermissionDeniedException,
    ResourceNotFoundException,
    TransitionDeniedException,
    ValidationException,
)
from facilityops.tickets.application import TicketFilter, TicketUpdateRequest

pytestmark = pytest.mark.usefixtures("on_shift")


async def notification_types(services, user_id):
    items, _ = await services.notifications.list_notifications(user_id)
    return [n.type for n in items]


@pytest.mark.asyncio
async def test_create_auto_assigns_best_resolver(services, actors, raise_ticket):
    ticket = await raise_ticket(category="electrical")

    # Both checked in at T0 with no load: user id breaks the tie
    assert ticket.status == TicketStatus.ASSIGNED
    assert ticket.assignee_id == "res-1"
    assert ticket.display_code.startswith("TKT-20240115-")

    activity = await services.tickets.get_activity(actors["tenant-1"], ticket.id)
    assert [a.action for a in activity] == ["created", "assigned"]

    assert NotificationType.TICKET_ASSIGNED in await notification_types(services, "res-1")
    assert NotificationType.TICKET_ASSIGNED in await notification_types(services, "tenant-1")
    assert await notification_types(services, "admin-1") == [NotificationType.TICKET_CREATED]


@pytest.mark.asyncio
async def test_plumbing_goes_to_the_only_skilled_resolver(raise_ticket):
    ticket = await raise_ticket(category="plumbing")
    assert ticket.assignee_id == "res-2"


@pytest.mark.asyncio
async def test_manual_category_stays_open(raise_ticket):
    ticket = await raise_ticket(category="security")
    assert ticket.status == TicketStatus.OPEN
    assert ticket.assignee_id is None


@pytest.mark.asyncio
async def test_create_on_unknown_property_is_not_found(raise_ticket):
    with pytest.raises(ResourceNotFoundException):
        await raise_ticket(property_id="nowhere")


@pytest.mark.asyncio
async def test_create_outside_own_property_is_denied(raise_ticket, store):
    with pytest.raises(PermissionDeniedException):
        await raise_ticket(property_id="propertyB", creator="tenant-1")
    assert store.table("tickets").where(lambda t: t.property_id == "propertyB") == []

    # Org admins serve both properties
    ticket = await raise_ticket(property_id="propertyB", creator="org-1")
    assert ticket.property_id == "propertyB"


@pytest.mark.asyncio
async def test_full_lifecycle(services, actors, raise_ticket, clock):
    ticket = await raise_ticket(category="electrical", priority="high")
    resolver, admin = actors["res-1"], actors["admin-1"]

    clock.advance(minutes=10)
    ticket = await services.tickets.transition(resolver, ticket.id, TicketStatus.IN_PROGRESS)
    clock.advance(minutes=20)
    ticket = await services.tickets.transition(resolver, ticket.id, TicketStatus.PAUSED, reason="waiting for fuse")
    clock.advance(hours=1)
    ticket = await services.tickets.transition(resolver, ticket.id, TicketStatus.IN_PROGRESS)
    clock.advance(minutes=30)
    ticket = await services.tickets.transition(resolver, ticket.id, TicketStatus.RESOLVED)
    ticket = await services.tickets.transition(admin, ticket.id, TicketStatus.CLOSED)

    assert ticket.status == TicketStatus.CLOSED
    assert ticket.sla_accumulated_pause_seconds == 3600.0

    with pytest.raises(TransitionDeniedException):
        await services.tickets.transition(admin, ticket.id, TicketStatus.IN_PROGRESS)

    assert NotificationType.TICKET_COMPLETED in await notification_types(services, "tenant-1")


@pytest.mark.asyncio
async def test_tenant_cannot_start_work(services, actors, raise_ticket):
    ticket = await raise_ticket()

    with pytest.raises(TransitionDeniedException):
        await services.tickets.transition(actors["tenant-1"], ticket.id, TicketStatus.IN_PROGRESS)

    unchanged = await services.tickets.get_ticket(actors["tenant-1"], ticket.id)
    assert unchanged.status == TicketStatus.ASSIGNED


@pytest.mark.asyncio
async def test_staff_outside_property_cannot_read(services, actors, raise_ticket):
    ticket = await raise_ticket(property_id="propertyA")

    outsider = replace(actors["org-1"], user_id="stranger")
    with pytest.raises(PermissionDeniedException):
        await services.tickets.get_ticket(outsider, ticket.id)


@pytest.mark.asyncio
async def test_assign_to_non_resolver_is_rejected(services, actors, raise_ticket):
    ticket = await raise_ticket(category="security")

    with pytest.raises(ValidationException):
        await services.tickets.transition(actors["admin-1"], ticket.id, TicketStatus.ASSIGNED, assignee_id="tenant-2")


@pytest.mark.asyncio
async def test_stale_write_raises_concurrent_modification(services, actors, raise_ticket, clock):
    ticket = await raise_ticket(category="electrical")
    stale = await services.tickets.get_ticket(actors["res-1"], ticket.id)

    clock.advance(minutes=1)
    await services.tickets.transition(
        actors["res-1"], ticket.id, TicketStatus.BLOCKED, reason="no access"
    )

    clock.advance(minutes=1)
    with pytest.raises(ConcurrentModificationException):
        await services.tickets.transition(actors["res-1"], ticket.id, TicketStatus.IN_PROGRESS, observed=stale)


@pytest.mark.asyncio
async def test_lost_race_with_unchanged_status_retries_once(services, actors, raise_ticket, clock):
    ticket = await raise_ticket(category="electrical")
    stale = await services.tickets.get_ticket(actors["res-1"], ticket.id)

    clock.advance(minutes=1)
    await services.tickets.update_ticket(
        actors["tenant-1"], ticket.id, TicketUpdateRequest(description="Now also sparking")
    )

    clock.advance(minutes=1)
    started = await services.tickets.transition(
        actors["res-1"], ticket.id, TicketStatus.IN_PROGRESS, observed=stale
    )
    assert started.status == TicketStatus.IN_PROGRESS
    assert started.description == "Now also sparking"


@pytest.mark.asyncio
async def test_concurrent_claims_have_exactly_one_winner(services, actors, raise_ticket, clock):
    ticket = await raise_ticket(category="security")
    clock.advance(minutes=1)

    results = await asyncio.gather(
        services.tickets.transition(actors["res-1"], ticket.id, TicketStatus.ASSIGNED, assignee_id="res-1"),
        services.tickets.transition(actors["res-2"], ticket.id, TicketStatus.ASSIGNED, assignee_id="res-2"),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], (ConcurrentModificationException, TransitionDeniedException))

    stored = await services.tickets.get_ticket(actors["admin-1"], ticket.id)
    assert stored.assignee_id == winners[0].assignee_id

    activity = await services.tickets.get_activity(actors["admin-1"], ticket.id)
    assert [a.action for a in activity].count("assigned") == 1


@pytest.mark.asyncio
async def test_reassignment_notifies_new_assignee(services, actors, raise_ticket, clock):
    ticket = await raise_ticket(category="electrical")
    assert ticket.assignee_id == "res-1"

    clock.advance(minutes=5)
    updated = await services.tickets.update_ticket(
        actors["admin-1"], ticket.id, TicketUpdateRequest(assignee_id="res-2")
    )

    assert updated.assignee_id == "res-2"
    assert NotificationType.TICKET_ASSIGNED in await notification_types(services, "res-2")
    activity = await services.tickets.get_activity(actors["admin-1"], ticket.id)
    assert activity[-1].action == "reassigned"
    assert (activity[-1].old_value, activity[-1].new_value) == ("res-1", "res-2")


@pytest.mark.asyncio
async def test_dispatcher_unassign_returns_ticket_to_waitlist(services, actors, raise_ticket, clock):
    ticket = await raise_ticket(category="electrical")
    assert ticket.assignee_id == "res-1"

    with pytest.raises(TransitionDeniedException):
        await services.tickets.update_ticket(actors["res-1"], ticket.id, TicketUpdateRequest(status="waitlist"))

    clock.advance(minutes=5)
    waiting = await services.tickets.update_ticket(
        actors["admin-1"], ticket.id, TicketUpdateRequest(status="waitlist")
    )

    assert waiting.status == TicketStatus.WAITLIST
    assert waiting.assignee_id is None
    activity = await services.tickets.get_activity(actors["admin-1"], ticket.id)
    assert (activity[-1].action, activity[-1].old_value) == ("unassigned", "res-1")
    assert NotificationType.TICKET_WAITLISTED in await notification_types(services, "tenant-1")
    assert NotificationType.TICKET_WAITLISTED in await notification_types(services, "res-1")

    # Back in the queue, the next dispatch run places it again
    assert await services.dispatch.dispatch_waitlist(actors["admin-1"], "propertyA") == (1, 0)


@pytest.mark.asyncio
async def test_self_claim_does_not_notify_claimer(services, actors, raise_ticket, clock):
    ticket = await raise_ticket(category="security")
    clock.advance(minutes=1)

    await services.tickets.transition(actors["res-1"], ticket.id, TicketStatus.ASSIGNED, assignee_id="res-1")

    assert await notification_types(services, "res-1") == []
    assert NotificationType.TICKET_ASSIGNED in await notification_types(services, "tenant-1")


@pytest.mark.asyncio
async def test_soft_delete_hides_ticket(services, actors, raise_ticket, clock):
    ticket = await raise_ticket()
    clock.advance(minutes=1)

    await services.tickets.delete_ticket(actors["admin-1"], ticket.id)

    with pytest.raises(ResourceNotFoundException):
        await services.tickets.get_ticket(actors["admin-1"], ticket.id)
    listed = await services.tickets.list_tickets(TicketFilter(property_ids=["propertyA"]))
    assert ticket.id not in [t.id for t in listed]


@pytest.mark.asyncio
async def test_hard_delete_needs_org_admin_and_removes_history(services, actors, raise_ticket, store):
    ticket = await raise_ticket()
    await services.tickets.add_comment(actors["tenant-1"], ticket.id, "Still flickering")

    with pytest.raises(PermissionDeniedException):
        await services.tickets.delete_ticket(actors["admin-1"], ticket.id, hard=True)

    await services.tickets.delete_ticket(actors["org-1"], ticket.id, hard=True)

    assert store.table("tickets").get(ticket.id) is None
    assert store.table("ticket_activity").where(lambda a: a.ticket_id == ticket.id) == []
    assert store.table("notifications").where(lambda n: n.ticket_id == ticket.id) == []
    assert store.table("ticket_comments").where(lambda c: c.ticket_id == ticket.id) == []


@pytest.mark.asyncio
async def test_comments_hide_internal_notes_from_non_admins(services, actors, raise_ticket, clock):
    ticket = await raise_ticket()

    await services.tickets.add_comment(actors["tenant-1"], ticket.id, "  Also the stairwell  ")
    clock.advance(minutes=1)
    await services.tickets.add_comment(actors["admin-1"], ticket.id, "Electrician booked", internal=True)
    clock.advance(minutes=1)
    # Only admins can post internal notes
    downgraded = await services.tickets.add_comment(actors["res-1"], ticket.id, "On my way", internal=True)
    assert downgraded.is_internal is False

    admin_view = await services.tickets.list_comments(actors["admin-1"], ticket.id)
    assert [c.body for c in admin_view] == ["Also the stairwell", "Electrician booked", "On my way"]
    tenant_view = await services.tickets.list_comments(actors["tenant-1"], ticket.id)
    assert [c.body for c in tenant_view] == ["Also the stairwell", "On my way"]

    with pytest.raises(ValidationException):
        await services.tickets.add_comment(actors["tenant-1"], ticket.id, "   ")
    with pytest.raises(PermissionDeniedException):
        await services.tickets.add_comment(replace(actors["tenant-2"], user_id="stranger"), ticket.id, "Me too")


@pytest.mark.asyncio
async def test_only_creator_or_staff_edit_content(services, actors, raise_ticket):
    ticket = await raise_ticket()

    with pytest.raises(PermissionDeniedException):
        await services.tickets.update_ticket(
            actors["res-2"], ticket.id, TicketUpdateRequest(title="Hijacked")
        )

    edited = await services.tickets.update_ticket(
        actors["tenant-1"], ticket.id, TicketUpdateRequest(title="  Lights out on level 3  ")
    )
    assert edited.title == "Lights out on level 3"


@pytest.mark.asyncio
async def test_export_filters_by_creation_window(services, actors, raise_ticket, clock):
    start = clock.now
    first = await raise_ticket(title="Old ticket")
    clock.advance(days=2)
    second = await raise_ticket(title="New ticket")

    rows = await services.tickets.export_history(
        actors["admin-1"], start + timedelta(days=1), start + timedelta(days=3)
    )
    assert [r["display_code"] for r in rows] == [second.display_code]

    rows = await services.tickets.export_history(actors["admin-1"], start, start + timedelta(days=3))
    assert [r["display_code"] for r in rows] == [first.display_code, second.display_code]
    assert rows[0]["resolution_seconds"] == ""

    with pytest.raises(PermissionDeniedException):
        await services.tickets.export_history(actors["tenant-1"], start, start + timedelta(days=3))
    with pytest.raises(PermissionDeniedException):
        await services.tickets.export_history(
            actors["admin-1"], start, start + timedelta(days=3), property_id="propertyB"
        )

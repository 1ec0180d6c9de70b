"""Notification fan-out, deduplication, push delivery and read state."""

import asyncio
from datetime import datetime, timezone

import pytest

from facilityops.config import NotificationType, TicketEventType, TicketStatus
from facilityops.core import ResourceNotFoundException
from facilityops.directory.domain import SYSTEM_ACTOR
from facilityops.infrastructure.realtime import RealtimeBroker, notifications_topic, tickets_topic
from facilityops.notifications.application import NotificationFanout, NotificationService
from facilityops.notifications.infrastructure import InMemoryNotificationRepository
from facilityops.tickets.domain import Ticket, TicketEvent

T0 = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


def assigned_ticket(ticket_id="K", assignee_id="U") -> Ticket:
    return Ticket(
        id=ticket_id,
        display_code=f"TKT-20240115-{ticket_id}",
        title="Broken heater",
        description="Radiator cold",
        category="hvac",
        priority="medium",
        status=TicketStatus.ASSIGNED,
        property_id="propertyA",
        organization_id="org",
        creator_id="tenant-1",
        raised_by_role="tenant",
        created_at=T0,
        updated_at=T0,
        assignee_id=assignee_id,
        assigned_at=T0,
    )


def assignment(ticket: Ticket, at: datetime) -> TicketEvent:
    return TicketEvent(type=TicketEventType.ASSIGNED, ticket=ticket, actor=SYSTEM_ACTOR, occurred_at=at)


@pytest.fixture
def repo(store):
    return InMemoryNotificationRepository(store)


@pytest.fixture
def broker():
    return RealtimeBroker()


@pytest.fixture
def fanout(repo, directory, broker, clock):
    return NotificationFanout(repo, directory, broker, clock=clock, debounce_seconds=60)


@pytest.mark.asyncio
async def test_duplicate_unread_notification_is_suppressed(fanout, repo, clock):
    ticket = assigned_ticket()

    await fanout.publish([assignment(ticket, clock.now)])
    clock.advance(seconds=5)
    await fanout.publish([assignment(ticket, clock.now)])

    rows = await repo.list_for_recipient("U")
    assert len(rows) == 1
    assert rows[0].type == NotificationType.TICKET_ASSIGNED
    assert rows[0].created_at == T0


@pytest.mark.asyncio
async def test_read_or_expired_notification_no_longer_suppresses(fanout, repo, clock):
    ticket = assigned_ticket()
    await fanout.publish([assignment(ticket, clock.now)])

    first = (await repo.list_for_recipient("U"))[0]
    await repo.mark_read("U", first.id, clock.now)
    clock.advance(seconds=1)
    await fanout.publish([assignment(ticket, clock.now)])
    assert await repo.count_unread("U") == 1

    clock.advance(seconds=61)
    await fanout.publish([assignment(ticket, clock.now)])
    assert len(await repo.list_for_recipient("U")) == 3


@pytest.mark.asyncio
async def test_other_tickets_are_not_deduplicated(fanout, repo, clock):
    await fanout.publish([assignment(assigned_ticket("K1"), clock.now)])
    await fanout.publish([assignment(assigned_ticket("K2"), clock.now)])

    assert await repo.count_unread("U") == 2


@pytest.mark.asyncio
async def test_persisted_notifications_are_pushed(fanout, broker, clock):
    personal = broker.subscribe(notifications_topic("U"))
    property_feed = broker.subscribe(tickets_topic("propertyA"))

    await fanout.publish([assignment(assigned_ticket(), clock.now)])

    event = await asyncio.wait_for(personal.get(), timeout=1)
    assert event.kind == "notification.created"
    assert event.payload["recipient_id"] == "U"
    assert event.payload["ticket_id"] == "K"

    update = await asyncio.wait_for(property_feed.get(), timeout=1)
    assert update.kind == "ticket.updated"
    assert update.payload["status"] == "assigned"
    assert update.occurred_at == T0


@pytest.mark.asyncio
async def test_dropped_push_keeps_persisted_row(repo, directory, clock):
    broker = RealtimeBroker(queue_size=1)
    fanout = NotificationFanout(repo, directory, broker, clock=clock)
    slow = broker.subscribe(notifications_topic("tenant-1"))

    await fanout.publish([assignment(assigned_ticket("K1"), clock.now)])
    await fanout.publish([assignment(assigned_ticket("K2"), clock.now)])

    assert slow.dropped == 1
    assert await repo.count_unread("tenant-1") == 2


@pytest.mark.asyncio
async def test_completion_notifies_creator_only(fanout, repo, clock):
    ticket = assigned_ticket()
    ticket.status = TicketStatus.RESOLVED
    ticket.resolved_at = T0
    event = TicketEvent(
        type=TicketEventType.COMPLETED, ticket=ticket, actor=SYSTEM_ACTOR, occurred_at=T0,
        previous_status=TicketStatus.IN_PROGRESS,
    )

    await fanout.publish([event])

    assert [n.type for n in await repo.list_for_recipient("tenant-1")] == [NotificationType.TICKET_COMPLETED]
    assert await repo.list_for_recipient("U") == []


@pytest.mark.asyncio
async def test_mark_read_is_idempotent(fanout, repo, clock):
    await fanout.publish([assignment(assigned_ticket(), clock.now)])
    service = NotificationService(repo, clock)
    notification = (await repo.list_for_recipient("U"))[0]

    first = await service.mark_read("U", notification.id)
    clock.advance(minutes=5)
    second = await service.mark_read("U", notification.id)

    assert first.is_read and second.is_read
    assert second.read_at == first.read_at == T0
    assert await service.unread_count("U") == 0


@pytest.mark.asyncio
async def test_mark_read_of_someone_elses_notification_is_not_found(fanout, repo, clock):
    await fanout.publish([assignment(assigned_ticket(), clock.now)])
    notification = (await repo.list_for_recipient("U"))[0]

    with pytest.raises(ResourceNotFoundException):
        await NotificationService(repo, clock).mark_read("tenant-1", notification.id)


@pytest.mark.asyncio
async def test_mark_all_read(fanout, repo, clock):
    await fanout.publish([assignment(assigned_ticket("K1"), clock.now)])
    await fanout.publish([assignment(assigned_ticket("K2"), clock.now)])
    service = NotificationService(repo, clock)

    assert await service.mark_all_read("U") == 2
    assert await service.mark_all_read("U") == 0
    items, unread = await service.list_notifications("U")
    assert unread == 0
    assert all(n.is_read for n in items)

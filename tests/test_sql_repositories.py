"""SQLAlchemy repositories against an in-memory SQLite database."""

from dataclasses import replace
from datetime import timedelta

import pytest
import pytest_asyncio

from facilityops.config import NotificationType, TicketStatus
from facilityops.directory.domain import Actor, Property, Role, Skill, StaffMember
from facilityops.infrastructure.database import close_database, create_tables, get_session_maker, init_database
from facilityops.infrastructure.realtime import RealtimeBroker
from facilityops.notifications.domain import Notification
from facilityops.notifications.infrastructure.repositories import dedup_lock_id
from facilityops.shared.api.dependencies import AppContext, Services, sql_repositories
from facilityops.shifts.domain import ShiftRecord
from facilityops.sla.domain import SLAConfig
from facilityops.sla.infrastructure import SLAConfigManager
from facilityops.tickets.application import TicketCreateRequest, TicketFilter


@pytest_asyncio.fixture
async def session():
    init_database("sqlite+aiosqlite:///:memory:")
    await create_tables()
    async with get_session_maker()() as session:
        yield session
    await close_database()


@pytest_asyncio.fixture
async def sql_services(session, clock):
    repos = sql_repositories(session)
    await repos.directory.add_property(Property(id="propertyA", organization_id="org", name="Tower A"))
    await repos.directory.add_staff(StaffMember("tenant-1", Role.TENANT, frozenset({"propertyA"})))
    await repos.directory.add_staff(
        StaffMember("res-1", Role.RESOLVER, frozenset({"propertyA"}), frozenset({Skill.GENERAL}))
    )
    await repos.directory.add_staff(StaffMember("admin-1", Role.PROPERTY_ADMIN, frozenset({"propertyA"})))
    await session.commit()

    ctx = AppContext(
        store_backend="sql",
        broker=RealtimeBroker(),
        sla_config=SLAConfigManager(SLAConfig()),
        clock=clock,
    )
    return Services(repos, ctx)


def request(category="plumbing", priority="high") -> TicketCreateRequest:
    return TicketCreateRequest(
        property_id="propertyA",
        title="Burst pipe",
        description="Water on the floor of unit 12",
        category=category,
        priority=priority,
    )


@pytest.mark.asyncio
async def test_directory_round_trip(sql_services):
    staff = await sql_services.repos.directory.get_staff("res-1")
    assert staff.skills == frozenset({Skill.GENERAL})
    assert staff.serves("propertyA")

    watchers = await sql_services.repos.directory.list_staff("propertyA", roles=[Role.PROPERTY_ADMIN])
    assert [m.user_id for m in watchers] == ["admin-1"]


@pytest.mark.asyncio
async def test_ticket_lifecycle_persists(sql_services, clock):
    tenant, resolver = Actor("tenant-1", Role.TENANT), Actor("res-1", Role.RESOLVER)
    await sql_services.shifts.check_in(resolver, "propertyA")

    ticket = await sql_services.tickets.create_ticket(tenant, request())
    assert ticket.status == TicketStatus.ASSIGNED
    assert ticket.assignee_id == "res-1"

    clock.advance(minutes=10)
    await sql_services.tickets.transition(resolver, ticket.id, TicketStatus.IN_PROGRESS)
    clock.advance(minutes=10)
    await sql_services.tickets.transition(resolver, ticket.id, TicketStatus.PAUSED, reason="parts on order")
    clock.advance(hours=1)
    stored = await sql_services.tickets.transition(resolver, ticket.id, TicketStatus.IN_PROGRESS)

    reloaded = await sql_services.repos.tickets.get(ticket.id)
    assert reloaded.status == TicketStatus.IN_PROGRESS
    assert reloaded.sla_accumulated_pause_seconds == 3600.0
    assert reloaded.updated_at == stored.updated_at
    assert reloaded.created_at.tzinfo is not None

    activity = await sql_services.tickets.get_activity(tenant, ticket.id)
    assert [a.action for a in activity] == ["created", "assigned", "status_changed", "status_changed", "status_changed"]


@pytest.mark.asyncio
async def test_compare_and_update_rejects_stale_writes(sql_services, clock):
    await sql_services.shifts.check_in(Actor("res-1", Role.RESOLVER), "propertyA")
    ticket = await sql_services.tickets.create_ticket(Actor("tenant-1", Role.TENANT), request())
    repo = sql_services.repos.tickets
    later = clock.advance(minutes=1)

    first = replace(ticket, status=TicketStatus.BLOCKED, block_reason="no access", updated_at=later)
    assert await repo.compare_and_update(first, ticket.status, ticket.updated_at)

    second = replace(ticket, status=TicketStatus.IN_PROGRESS, work_started_at=later, updated_at=later)
    assert not await repo.compare_and_update(second, ticket.status, ticket.updated_at)
    assert (await repo.get(ticket.id)).status == TicketStatus.BLOCKED


@pytest.mark.asyncio
async def test_list_filters_and_counts(sql_services, clock):
    tenant = Actor("tenant-1", Role.TENANT)
    await sql_services.shifts.check_in(Actor("res-1", Role.RESOLVER), "propertyA")
    first = await sql_services.tickets.create_ticket(tenant, request(priority="low"))
    clock.advance(days=1)
    second = await sql_services.tickets.create_ticket(tenant, request(category="security"))

    repo = sql_services.repos.tickets
    open_only = await repo.list(TicketFilter(property_ids=["propertyA"], statuses=[TicketStatus.OPEN]))
    assert [t.id for t in open_only] == [second.id]

    windowed = await repo.list(TicketFilter(created_to=first.created_at + timedelta(hours=1)))
    assert [t.id for t in windowed] == [first.id]

    assert await repo.count_by_status(["propertyA"]) == {TicketStatus.ASSIGNED: 1, TicketStatus.OPEN: 1}
    assert await repo.count_active_by_assignee(["res-1", "res-9"]) == {"res-1": 1, "res-9": 0}


@pytest.mark.asyncio
async def test_comments_persist_with_internal_filter(sql_services, clock):
    tenant, admin = Actor("tenant-1", Role.TENANT), Actor("admin-1", Role.PROPERTY_ADMIN)
    ticket = await sql_services.tickets.create_ticket(tenant, request())

    await sql_services.tickets.add_comment(tenant, ticket.id, "Water reaching the hallway")
    clock.advance(minutes=1)
    await sql_services.tickets.add_comment(admin, ticket.id, "Plumber on call", internal=True)

    repo = sql_services.repos.comments
    assert [c.body for c in await repo.list_for_ticket(ticket.id)] == ["Water reaching the hallway"]
    both = await repo.list_for_ticket(ticket.id, include_internal=True)
    assert [c.is_internal for c in both] == [False, True]
    assert both[0].created_at.tzinfo is not None

    assert await repo.delete_for_ticket(ticket.id) == 2


@pytest.mark.asyncio
async def test_soft_deleted_ticket_is_hidden(sql_services):
    ticket = await sql_services.tickets.create_ticket(Actor("tenant-1", Role.TENANT), request())
    await sql_services.tickets.delete_ticket(Actor("admin-1", Role.PROPERTY_ADMIN), ticket.id)

    repo = sql_services.repos.tickets
    assert await repo.get(ticket.id) is None
    assert (await repo.get(ticket.id, include_deleted=True)).deleted_at is not None
    assert await repo.list(TicketFilter(property_ids=["propertyA"])) == []


@pytest.mark.asyncio
async def test_notification_insert_is_deduplicated(sql_services, clock):
    repo = sql_services.repos.notifications
    window = timedelta(seconds=60)

    def note():
        return Notification(
            recipient_id="res-1",
            type=NotificationType.TICKET_ASSIGNED,
            title="Ticket assigned to you",
            message="TKT-1: Burst pipe",
            ticket_id="K",
            created_at=clock.now,
        )

    assert await repo.insert_unless_duplicate(note(), clock.now - window)
    clock.advance(seconds=5)
    assert not await repo.insert_unless_duplicate(note(), clock.now - window)
    assert await repo.count_unread("res-1") == 1

    [stored] = await repo.list_for_recipient("res-1")
    assert (await repo.mark_read("res-1", stored.id, clock.now)).is_read
    assert (await repo.mark_read("res-1", stored.id, clock.now + window)).read_at == clock.now
    assert await repo.insert_unless_duplicate(note(), clock.now - window)


def test_dedup_lock_id_follows_the_dedup_key(clock):
    def note(ticket_id, type=NotificationType.TICKET_ASSIGNED):
        return Notification(
            recipient_id="res-1", type=type, title="t", message="m", ticket_id=ticket_id, created_at=clock.now
        )

    first = dedup_lock_id(note("K"))
    assert first == dedup_lock_id(note("K"))
    assert -(2 ** 63) <= first < 2 ** 63
    assert first != dedup_lock_id(note("L"))
    assert first != dedup_lock_id(note("K", NotificationType.TICKET_COMPLETED))
    assert dedup_lock_id(note(None)) == dedup_lock_id(note(None))


@pytest.mark.asyncio
async def test_only_one_open_shift_per_user_and_property(sql_services, clock):
    repo = sql_services.repos.shifts

    assert await repo.open_shift(ShiftRecord("res-1", "propertyA", clock.now))
    assert not await repo.open_shift(ShiftRecord("res-1", "propertyA", clock.now))

    record = await repo.get_open("res-1", "propertyA")
    assert await repo.open_check_ins("propertyA", ["res-1", "res-2"]) == {"res-1": record.checked_in_at}

    clock.advance(hours=4)
    assert await repo.close_shift(record.id, clock.now)
    assert not await repo.close_shift(record.id, clock.now)
    assert await repo.get_open("res-1", "propertyA") is None
    assert await repo.open_shift(ShiftRecord("res-1", "propertyA", clock.now))

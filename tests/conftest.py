"""
Shared fixtures: a manual clock, an in-memory store with a seeded directory,
application services wired by the composition root, and an API client.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from facilityops.directory.domain import Actor, Property, Role, Skill, StaffMember
from facilityops.directory.infrastructure import InMemoryDirectoryRepository
from facilityops.infrastructure.memory import InMemoryStore
from facilityops.infrastructure.realtime import RealtimeBroker
from facilityops.main import create_app
from facilityops.shared.api.dependencies import AppContext, Services, memory_repositories
from facilityops.sla.domain import SLAConfig
from facilityops.sla.infrastructure import SLAConfigManager
from facilityops.tickets.application import TicketCreateRequest

T0 = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

PROPERTY_A = "propertyA"
PROPERTY_B = "propertyB"


class ManualClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now += timedelta(**delta)
        return self.now


STAFF = [
    StaffMember("tenant-1", Role.TENANT, frozenset({PROPERTY_A})),
    StaffMember("tenant-2", Role.TENANT, frozenset({PROPERTY_A})),
    StaffMember("res-1", Role.RESOLVER, frozenset({PROPERTY_A}), frozenset({Skill.TECHNICAL}), "Ravi"),
    StaffMember("res-2", Role.RESOLVER, frozenset({PROPERTY_A}), frozenset({Skill.TECHNICAL, Skill.PLUMBING}), "Sam"),
    StaffMember("admin-1", Role.PROPERTY_ADMIN, frozenset({PROPERTY_A})),
    StaffMember("org-1", Role.ORG_ADMIN, frozenset({PROPERTY_A, PROPERTY_B})),
]


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest_asyncio.fixture
async def directory(store):
    repo = InMemoryDirectoryRepository(store)
    await repo.add_property(Property(id=PROPERTY_A, organization_id="org", name="Tower A"))
    await repo.add_property(Property(id=PROPERTY_B, organization_id="org", name="Tower B"))
    for member in STAFF:
        await repo.add_staff(member)
    return repo


@pytest.fixture
def actors():
    return {member.user_id: Actor(member.user_id, member.role) for member in STAFF}


@pytest.fixture
def sla_config():
    return SLAConfigManager(SLAConfig())


@pytest.fixture
def context(store, clock, sla_config):
    return AppContext(
        store_backend="memory",
        broker=RealtimeBroker(),
        sla_config=sla_config,
        clock=clock,
        store=store,
    )


@pytest.fixture
def services(context, store, directory):
    return Services(memory_repositories(store), context)


@pytest_asyncio.fixture
async def on_shift(services, actors):
    """res-1 and res-2 checked in at property A since T0."""
    for user_id in ("res-1", "res-2"):
        await services.shifts.check_in(actors[user_id], PROPERTY_A)


@pytest.fixture
def raise_ticket(services, actors):
    """Factory raising a ticket through the ticket service."""

    async def _raise(
        category: str = "electrical",
        priority: str = "medium",
        property_id: str = PROPERTY_A,
        creator: str = "tenant-1",
        title: str = "Flickering lights in corridor",
    ):
        request = TicketCreateRequest(
            property_id=property_id,
            title=title,
            description="Reported from the tenant app",
            category=category,
            priority=priority,
        )
        return await services.tickets.create_ticket(actors[creator], request)

    return _raise


@pytest_asyncio.fixture
async def client(store, clock, sla_config, directory):
    app = create_app(store_backend="memory", clock=clock, sla_config=sla_config, store=store)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def headers_for(user_id: str, role: str) -> dict:
    return {"X-Actor-Id": user_id, "X-Actor-Role": role}


@pytest.fixture
def as_user():
    """Request headers for a seeded user."""
    roles = {member.user_id: member.role.value for member in STAFF}

    def _headers(user_id: str) -> dict:
        return headers_for(user_id, roles[user_id])

    return _headers

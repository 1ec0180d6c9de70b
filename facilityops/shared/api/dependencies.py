"""
API Dependencies
================

Composition root. Builds the repositories for the configured store backend
and wires every application service on top of them, once per request (or
once per scheduled job run).
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncGenerator, AsyncIterator, Awaitable, Callable, Optional, Set

from fastapi import Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from facilityops.core import PermissionDeniedException, ValidationException
from facilityops.dashboards.application import DashboardReadModels
from facilityops.directory.application import IDirectoryRepository
from facilityops.directory.domain import Actor, Role
from facilityops.directory.infrastructure import InMemoryDirectoryRepository, SQLAlchemyDirectoryRepository
from facilityops.dispatch.application import DispatchService, ResolverSelector
from facilityops.infrastructure.database import get_session_context
from facilityops.infrastructure.memory import InMemoryStore
from facilityops.infrastructure.realtime import RealtimeBroker
from facilityops.notifications.application import INotificationRepository, NotificationFanout, NotificationService
from facilityops.notifications.infrastructure import InMemoryNotificationRepository, SQLAlchemyNotificationRepository
from facilityops.shared.infrastructure.clock import Clock, utcnow
from facilityops.shifts.application import IShiftRepository, ShiftService
from facilityops.shifts.infrastructure import InMemoryShiftRepository, SQLAlchemyShiftRepository
from facilityops.sla.application import GracePeriodCloser, SLABreachScanner, SLAService
from facilityops.sla.infrastructure import SLAConfigManager, SlackClient
from facilityops.tickets.application import (
    ITicketActivityRepository,
    ITicketCommentRepository,
    ITicketRepository,
    TicketService,
)
from facilityops.tickets.infrastructure import (
    InMemoryTicketActivityRepository,
    InMemoryTicketCommentRepository,
    InMemoryTicketRepository,
    SQLAlchemyTicketActivityRepository,
    SQLAlchemyTicketCommentRepository,
    SQLAlchemyTicketRepository,
)

Commit = Callable[[], Awaitable[None]]


async def _no_commit() -> None:
    return None


# ========== Repositories ==========

@dataclass
class Repositories:
    directory: IDirectoryRepository
    tickets: ITicketRepository
    activity: ITicketActivityRepository
    comments: ITicketCommentRepository
    notifications: INotificationRepository
    shifts: IShiftRepository
    commit: Commit = _no_commit


def sql_repositories(session: AsyncSession) -> Repositories:
    return Repositories(
        directory=SQLAlchemyDirectoryRepository(session),
        tickets=SQLAlchemyTicketRepository(session),
        activity=SQLAlchemyTicketActivityRepository(session),
        comments=SQLAlchemyTicketCommentRepository(session),
        notifications=SQLAlchemyNotificationRepository(session),
        shifts=SQLAlchemyShiftRepository(session),
        commit=session.commit,
    )


def memory_repositories(store: InMemoryStore) -> Repositories:
    return Repositories(
        directory=InMemoryDirectoryRepository(store),
        tickets=InMemoryTicketRepository(store),
        activity=InMemoryTicketActivityRepository(store),
        comments=InMemoryTicketCommentRepository(store),
        notifications=InMemoryNotificationRepository(store),
        shifts=InMemoryShiftRepository(store),
    )


# ========== Application context ==========

@dataclass
class AppContext:
    """Process-wide collaborators shared by every request."""
    store_backend: str
    broker: RealtimeBroker
    sla_config: SLAConfigManager
    clock: Clock = utcnow
    store: Optional[InMemoryStore] = None
    slack: Optional[SlackClient] = None
    reported_breaches: Set[str] = field(default_factory=set)


class Services:
    """Application services over one set of repositories."""

    def __init__(self, repos: Repositories, ctx: AppContext):
        self.repos = repos
        self._ctx = ctx
        clock = ctx.clock

        self.fanout = NotificationFanout(repos.notifications, repos.directory, ctx.broker, repos.commit, clock)
        self.selector = ResolverSelector(repos.directory, repos.tickets, repos.shifts)
        self.tickets = TicketService(
            repos.tickets,
            repos.activity,
            repos.comments,
            repos.directory,
            repos.notifications,
            self.selector,
            publisher=self.fanout,
            commit=repos.commit,
            clock=clock,
        )
        self.dispatch = DispatchService(self.selector, repos.tickets, self.tickets, repos.directory, clock)
        self.shifts = ShiftService(repos.shifts, repos.directory, self.dispatch, repos.commit, clock)
        self.notifications = NotificationService(repos.notifications, clock)
        self.sla = SLAService(self.tickets, repos.tickets, repos.directory, ctx.sla_config, clock)
        self.dashboards = DashboardReadModels(repos.tickets, repos.directory, self.shifts, self.sla, clock)

    def breach_scanner(self) -> SLABreachScanner:
        return SLABreachScanner(
            self.repos.tickets,
            self._ctx.sla_config,
            self.fanout,
            escalator=self._ctx.slack,
            clock=self._ctx.clock,
            seen=self._ctx.reported_breaches,
        )

    def grace_closer(self) -> GracePeriodCloser:
        return GracePeriodCloser(self.repos.tickets, self.tickets, self._ctx.clock)


@asynccontextmanager
async def open_services(ctx: AppContext) -> AsyncIterator[Services]:
    """Services for one unit of work; SQL sessions commit on success, roll back on error."""
    if ctx.store_backend == "memory":
        yield Services(memory_repositories(ctx.store), ctx)
        return

    async with get_session_context() as session:
        yield Services(sql_repositories(session), ctx)


# ========== FastAPI dependencies ==========

async def get_services(request: Request) -> AsyncGenerator[Services, None]:
    async with open_services(request.app.state.context) as services:
        yield services


def get_actor(
    x_actor_id: str = Header(..., min_length=1, description="Authenticated user id"),
    x_actor_role: str = Header(..., description="Role of the authenticated user"),
) -> Actor:
    """Actor identity as asserted by the upstream auth layer."""
    try:
        role = Role(x_actor_role)
    except ValueError:
        raise ValidationException(
            f"Unknown role '{x_actor_role}'",
            {"allowed": [r.value for r in Role if r != Role.SYSTEM]}
        )
    if role == Role.SYSTEM:
        raise PermissionDeniedException("act as the system", role.value)
    return Actor(user_id=x_actor_id, role=role)

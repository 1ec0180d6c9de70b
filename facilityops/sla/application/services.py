"""
SLA Application Services
=========================

- SLAService: per-ticket SLA status and the SLA dashboard
- SLABreachScanner: periodic derivation of breach events
- GracePeriodCloser: closes tickets left resolved past the grace period
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Protocol, Sequence, Set, Tuple

from facilityops.config import (
    ACTIVE_STATUSES, UNASSIGNED_STATUSES,
    SLAState, TicketStatus, settings,
)
from facilityops.core import (
    ConcurrentModificationException,
    PermissionDeniedException,
    TransitionDeniedException,
)
from facilityops.directory.application import IDirectoryRepository
from facilityops.directory.domain import SYSTEM_ACTOR, Actor, Capability
from facilityops.shared.infrastructure.clock import Clock, utcnow
from facilityops.shared.infrastructure.logging import get_logger, log_latency
from facilityops.shared.infrastructure.resilience import bounded
from facilityops.sla.domain import SLABreach, SLAConfig, SLAStatus
from facilityops.tickets.application import ITicketRepository, TicketFilter, TicketService
from facilityops.tickets.domain import Ticket

logger = get_logger(__name__)

# Tickets whose SLA clock is still running (or paused)
OPEN_CLOCK_STATUSES = UNASSIGNED_STATUSES + ACTIVE_STATUSES

_PAGE_SIZE = 500


class ISLAConfigProvider(Protocol):
    @property
    def config(self) -> SLAConfig:
        ...


class BreachPublisher(Protocol):
    async def publish_breaches(self, breaches: Sequence[SLABreach]) -> int:
        ...


class BreachEscalator(Protocol):
    async def send_breach(self, breach: SLABreach) -> bool:
        ...


async def _iter_tickets(tickets: ITicketRepository, filters: TicketFilter):
    offset = 0
    while True:
        page = await bounded(tickets.list(filters, limit=_PAGE_SIZE, offset=offset), "tickets.list")
        for ticket in page:
            yield ticket
        if len(page) < _PAGE_SIZE:
            return
        offset += _PAGE_SIZE


class SLAService:
    """Read-side SLA evaluation."""

    def __init__(
        self,
        ticket_service: TicketService,
        tickets: ITicketRepository,
        directory: IDirectoryRepository,
        config_provider: ISLAConfigProvider,
        clock: Clock = utcnow,
    ):
        self._ticket_service = ticket_service
        self._tickets = tickets
        self._directory = directory
        self._config_provider = config_provider
        self._clock = clock

    def evaluate(self, ticket: Ticket, now: Optional[datetime] = None) -> SLAStatus:
        return SLAStatus.evaluate(ticket, self._config_provider.config, now or self._clock())

    async def ticket_status(self, actor: Actor, ticket_id: str) -> Tuple[Ticket, SLAStatus]:
        """SLA status of a ticket the actor can see."""
        ticket = await self._ticket_service.get_ticket(actor, ticket_id)
        return ticket, self.evaluate(ticket)

    async def dashboard(
        self,
        actor: Actor,
        property_id: Optional[str] = None,
        priority: Optional[str] = None,
        sla_state: Optional[str] = None,
        limit: int = 100,
    ) -> Tuple[List[Tuple[Ticket, SLAStatus]], Dict[str, float]]:
        """
        Non-closed tickets of the actor's properties with their SLA status,
        most urgent first, plus summary counts over everything listed.
        """
        property_ids = await self._watched_properties(actor, property_id)
        now = self._clock()

        rows: List[Tuple[Ticket, SLAStatus]] = []
        statuses = [s for s in TicketStatus if s != TicketStatus.CLOSED]
        async for ticket in _iter_tickets(self._tickets, TicketFilter(property_ids=property_ids, statuses=statuses)):
            if priority is not None and ticket.priority.value != priority:
                continue
            status = self.evaluate(ticket, now)
            if sla_state is not None and status.state.value != sla_state:
                continue
            rows.append((ticket, status))

        summary = self._summarize([status for _, status in rows])
        rows.sort(key=lambda row: (not row[1].is_breached, row[1].remaining_seconds, row[0].created_at))
        return rows[:limit], summary

    @staticmethod
    def _summarize(statuses: List[SLAStatus]) -> Dict[str, float]:
        counts = {state: 0 for state in SLAState}
        for status in statuses:
            counts[status.state] += 1
        total = len(statuses)
        breached = counts[SLAState.BREACHED]
        return {
            "total_tickets": total,
            "breached_count": breached,
            "paused_count": counts[SLAState.PAUSED],
            "on_track_count": counts[SLAState.ON_TRACK],
            "met_count": counts[SLAState.MET],
            "breach_rate": round(breached / total * 100, 2) if total else 0.0,
        }

    async def _watched_properties(self, actor: Actor, property_id: Optional[str]) -> List[str]:
        if not actor.can(Capability.WATCH_SLA):
            raise PermissionDeniedException("view the SLA dashboard", actor.role.value)
        staff = await bounded(self._directory.get_staff(actor.user_id), "directory.get_staff")
        served = sorted(staff.property_ids) if staff is not None else []
        if property_id is None:
            return served
        if property_id not in served:
            raise PermissionDeniedException("view this property's SLA", actor.role.value)
        return [property_id]


class SLABreachScanner:
    """
    Derives breach events from ticket clocks.

    A ticket is reported once per breach: `seen` carries the ids already
    reported and is pruned to the currently breached set on every scan, so
    it should outlive a single scan.
    """

    def __init__(
        self,
        tickets: ITicketRepository,
        config_provider: ISLAConfigProvider,
        publisher: BreachPublisher,
        escalator: Optional[BreachEscalator] = None,
        clock: Clock = utcnow,
        seen: Optional[Set[str]] = None,
    ):
        self._tickets = tickets
        self._config_provider = config_provider
        self._publisher = publisher
        self._escalator = escalator
        self._clock = clock
        self._seen = seen if seen is not None else set()

    async def detect(self) -> List[SLABreach]:
        """Every currently breached ticket with a running or paused clock."""
        config = self._config_provider.config
        now = self._clock()
        breaches: List[SLABreach] = []
        async for ticket in _iter_tickets(self._tickets, TicketFilter(statuses=list(OPEN_CLOCK_STATUSES))):
            status = SLAStatus.evaluate(ticket, config, now)
            if status.is_breached:
                breaches.append(SLABreach(
                    ticket_id=ticket.id,
                    display_code=ticket.display_code,
                    property_id=ticket.property_id,
                    priority=ticket.priority.value,
                    category=ticket.category.value,
                    elapsed_service_seconds=status.elapsed_service_seconds,
                    threshold_seconds=status.threshold_seconds,
                    detected_at=now,
                ))
        return breaches

    async def scan(self) -> List[SLABreach]:
        """Report breaches not reported before. Returns the newly reported ones."""
        with log_latency(logger, "sla_breach_scan"):
            breaches = await self.detect()
            current = {b.ticket_id for b in breaches}
            self._seen.intersection_update(current)
            new = [b for b in breaches if b.ticket_id not in self._seen]
            if not new:
                return []

            written = await self._publisher.publish_breaches(new)
            self._seen.update(b.ticket_id for b in new)

            escalated = 0
            if self._escalator is not None:
                for breach in new:
                    if await self._escalator.send_breach(breach):
                        escalated += 1

        logger.info(
            "SLA breaches reported",
            extra={"breached": len(breaches), "new": len(new), "notifications": written, "escalated": escalated}
        )
        return new


class GracePeriodCloser:
    """Closes resolved tickets nobody confirmed within the grace period."""

    def __init__(
        self,
        tickets: ITicketRepository,
        ticket_service: TicketService,
        clock: Clock = utcnow,
        grace_hours: Optional[float] = None,
    ):
        self._tickets = tickets
        self._ticket_service = ticket_service
        self._clock = clock
        self._grace = timedelta(
            hours=settings.resolved_grace_period_hours if grace_hours is None else grace_hours
        )

    async def close_expired(self) -> int:
        cutoff = self._clock() - self._grace
        expired = await bounded(
            self._tickets.list(
                TicketFilter(statuses=[TicketStatus.RESOLVED], resolved_before=cutoff, oldest_first=True),
                limit=_PAGE_SIZE,
            ),
            "tickets.list",
        )

        closed = 0
        for ticket in expired:
            try:
                await self._ticket_service.transition(
                    SYSTEM_ACTOR, ticket.id, TicketStatus.CLOSED, observed=ticket
                )
            except (ConcurrentModificationException, TransitionDeniedException) as exc:
                logger.info(
                    "Skipped grace-period close",
                    extra={"ticket_id": ticket.id, "reason": exc.message}
                )
                continue
            closed += 1

        if closed:
            logger.info("Resolved tickets closed after grace period", extra={"closed": closed})
        return closed

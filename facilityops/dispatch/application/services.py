"""
Dispatch Application Services
=============================

ResolverSelector places new tickets and picks resolvers for waitlisted ones.
DispatchService re-dispatches a property's waitlist, either when a resolver
checks in there or when a dispatcher asks for it.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from facilityops.config import TicketCategory, TicketStatus, settings
from facilityops.core import (
    ConcurrentModificationException,
    PermissionDeniedException,
    ResourceNotFoundException,
    TransitionDeniedException,
)
from facilityops.directory.application import IDirectoryRepository
from facilityops.directory.domain import SYSTEM_ACTOR, Actor, Capability, Role, required_skill
from facilityops.dispatch.domain import Candidate, eligible, rank_candidates
from facilityops.shared.infrastructure.clock import Clock, utcnow
from facilityops.shared.infrastructure.logging import get_logger
from facilityops.shared.infrastructure.resilience import bounded
from facilityops.shifts.application import IShiftRepository
from facilityops.tickets.application import ITicketRepository, TicketFilter, TicketService
from facilityops.tickets.domain import Ticket

logger = get_logger(__name__)


class ResolverSelector:
    """Filters and ranks resolvers for a ticket."""

    def __init__(
        self,
        directory: IDirectoryRepository,
        tickets: ITicketRepository,
        shifts: IShiftRepository,
        manual_categories: Optional[Iterable[str]] = None,
    ):
        self._directory = directory
        self._tickets = tickets
        self._shifts = shifts
        if manual_categories is None:
            manual_categories = settings.manual_assign_categories
        self._manual = frozenset(TicketCategory(c) for c in manual_categories)

    async def candidates(self, ticket: Ticket, now: datetime, on_shift_only: bool = True) -> List[Candidate]:
        """
        Eligible resolvers for the ticket, best first.

        Automatic placement only considers resolvers with an open shift at
        the property. Dispatchers choosing by hand see everyone qualified.
        """
        staff = await bounded(
            self._directory.list_staff(ticket.property_id, roles=[Role.RESOLVER]), "directory.list_staff"
        )
        members = eligible(staff, ticket.property_id, required_skill(ticket.category))
        if not members:
            return []

        user_ids = [m.user_id for m in members]
        check_ins = await bounded(
            self._shifts.open_check_ins(ticket.property_id, user_ids), "shifts.open_check_ins"
        )
        if on_shift_only:
            members = [m for m in members if m.user_id in check_ins]
            if not members:
                return []
            user_ids = [m.user_id for m in members]
        loads = await bounded(self._tickets.count_active_by_assignee(user_ids), "tickets.count_active")
        return rank_candidates(members, check_ins, loads, now)

    async def select(self, ticket: Ticket, now: datetime) -> Optional[Candidate]:
        ranked = await self.candidates(ticket, now)
        return ranked[0] if ranked else None

    async def place(self, ticket: Ticket, now: datetime) -> Tuple[TicketStatus, Optional[str]]:
        """
        Initial placement of a new ticket.

        Manual-assign categories stay open for a dispatcher. Otherwise the
        best candidate gets it, and with no candidate the ticket waits.
        """
        if ticket.category in self._manual:
            return TicketStatus.OPEN, None
        best = await self.select(ticket, now)
        if best is None:
            logger.info(
                "No eligible resolver on shift, ticket waitlisted",
                extra={"property_id": ticket.property_id, "category": ticket.category.value}
            )
            return TicketStatus.WAITLIST, None
        return TicketStatus.ASSIGNED, best.user_id


class DispatchService:
    """Waitlist reconciliation and dispatcher tools."""

    def __init__(
        self,
        selector: ResolverSelector,
        tickets: ITicketRepository,
        ticket_service: TicketService,
        directory: IDirectoryRepository,
        clock: Clock = utcnow,
        batch_size: Optional[int] = None,
    ):
        self._selector = selector
        self._tickets = tickets
        self._ticket_service = ticket_service
        self._directory = directory
        self._clock = clock
        self._batch_size = batch_size or settings.waitlist_reconcile_batch_size

    async def reconcile(self, property_id: str, limit: Optional[int] = None) -> int:
        """
        Re-run selection for the oldest waitlisted tickets of a property.

        Tickets that moved in the meantime are skipped. Returns the number
        assigned.
        """
        waiting = await bounded(
            self._tickets.list(
                TicketFilter(property_ids=[property_id], statuses=[TicketStatus.WAITLIST], oldest_first=True),
                limit=limit or self._batch_size,
            ),
            "tickets.list",
        )

        assigned = 0
        for ticket in waiting:
            best = await self._selector.select(ticket, self._clock())
            if best is None:
                continue
            try:
                await self._ticket_service.transition(
                    SYSTEM_ACTOR,
                    ticket.id,
                    TicketStatus.ASSIGNED,
                    assignee_id=best.user_id,
                    observed=ticket,
                )
            except (ConcurrentModificationException, TransitionDeniedException) as exc:
                logger.info(
                    "Skipped waitlisted ticket during reconciliation",
                    extra={"ticket_id": ticket.id, "reason": exc.message}
                )
                continue
            assigned += 1

        logger.info(
            "Waitlist reconciled",
            extra={"property_id": property_id, "examined": len(waiting), "assigned": assigned}
        )
        return assigned

    async def dispatch_waitlist(self, actor: Actor, property_id: str) -> Tuple[int, int]:
        """Dispatcher-initiated bulk dispatch. Returns (assigned, still waiting)."""
        await self._ensure_dispatcher(actor, property_id)
        assigned = await self.reconcile(property_id)
        counts = await bounded(self._tickets.count_by_status([property_id]), "tickets.count_by_status")
        return assigned, counts.get(TicketStatus.WAITLIST, 0)

    async def suggest(self, actor: Actor, ticket_id: str) -> List[Candidate]:
        """Ranked resolvers a dispatcher can pick from for one ticket."""
        ticket = await bounded(self._tickets.get(ticket_id), "tickets.get")
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        await self._ensure_dispatcher(actor, ticket.property_id)
        return await self._selector.candidates(ticket, self._clock(), on_shift_only=False)

    async def _ensure_dispatcher(self, actor: Actor, property_id: str) -> None:
        if not actor.can(Capability.DISPATCH):
            raise PermissionDeniedException("dispatch tickets", actor.role.value)
        if actor.role == Role.SYSTEM:
            return
        staff = await bounded(self._directory.get_staff(actor.user_id), "directory.get_staff")
        if staff is None or not staff.serves(property_id):
            raise PermissionDeniedException("dispatch at this property", actor.role.value)

"""
Dashboard Read Models
=====================

Per-role aggregates for the dashboard views:

- tenant: the actor's own tickets
- resolver: the actor's queue, claimable tickets and shift status
- admin: status counts, waitlist size and breached count for a property
"""

from typing import List, Optional, Sequence

from facilityops.config import (
    ACTIVE_STATUSES, COMPLETED_STATUSES, UNASSIGNED_STATUSES,
    TicketStatus,
)
from facilityops.core import PermissionDeniedException
from facilityops.dashboards.application.navigation import NavigationState
from facilityops.directory.application import IDirectoryRepository
from facilityops.directory.domain import Actor, Capability, Role
from facilityops.shared.infrastructure.clock import Clock, utcnow
from facilityops.shared.infrastructure.logging import get_logger
from facilityops.shared.infrastructure.resilience import bounded
from facilityops.shifts.application import ShiftService
from facilityops.sla.application import OPEN_CLOCK_STATUSES, SLAService
from facilityops.tickets.application import ITicketRepository, TicketFilter
from facilityops.tickets.domain import Ticket

logger = get_logger(__name__)

_TAB_STATUSES = {
    "active": UNASSIGNED_STATUSES + ACTIVE_STATUSES,
    "completed": COMPLETED_STATUSES,
    "all": tuple(TicketStatus),
}


def _statuses(nav: NavigationState) -> Sequence[TicketStatus]:
    if nav.status_filter:
        return [TicketStatus(nav.status_filter)]
    return list(_TAB_STATUSES[nav.tab])


class DashboardReadModels:
    """Builds the payload of a dashboard view for an actor."""

    def __init__(
        self,
        tickets: ITicketRepository,
        directory: IDirectoryRepository,
        shifts: ShiftService,
        sla: SLAService,
        clock: Clock = utcnow,
        page_size: int = 50,
    ):
        self._tickets = tickets
        self._directory = directory
        self._shifts = shifts
        self._sla = sla
        self._clock = clock
        self._page_size = page_size

    async def build(self, actor: Actor, nav: NavigationState) -> dict:
        if nav.view == "tenant":
            data = await self.tenant_view(actor, nav)
        elif nav.view == "resolver":
            data = await self.resolver_view(actor, nav)
        else:
            data = await self.admin_view(actor, nav)
        return {"navigation": nav.to_dict(), "query": nav.to_query_string(), "data": data}

    async def tenant_view(self, actor: Actor, nav: NavigationState) -> dict:
        filters = TicketFilter(creator_id=actor.user_id, statuses=_statuses(nav))
        if nav.property_id:
            filters.property_ids = [nav.property_id]
        tickets = await self._list(filters)
        return {"tickets": [t.to_dict() for t in tickets]}

    async def resolver_view(self, actor: Actor, nav: NavigationState) -> dict:
        if actor.role != Role.RESOLVER:
            raise PermissionDeniedException("open the resolver dashboard", actor.role.value)
        property_ids = await self._served(actor, nav.property_id)

        queue = await self._list(TicketFilter(
            assignee_id=actor.user_id, property_ids=property_ids, statuses=_statuses(nav),
        ))
        claimable = await self._list(TicketFilter(
            property_ids=property_ids, statuses=list(UNASSIGNED_STATUSES), oldest_first=True,
        ))
        shifts = {}
        for property_id in property_ids:
            record = await self._shifts.current_shift(actor.user_id, property_id)
            shifts[property_id] = {
                "is_checked_in": record is not None,
                "checked_in_at": record.checked_in_at.isoformat() if record else None,
            }
        return {
            "queue": [t.to_dict() for t in queue],
            "claimable": [t.to_dict() for t in claimable],
            "shifts": shifts,
        }

    async def admin_view(self, actor: Actor, nav: NavigationState) -> dict:
        if not actor.can(Capability.VIEW_PROPERTY):
            raise PermissionDeniedException("open the admin dashboard", actor.role.value)
        property_ids = await self._served(actor, nav.property_id)
        if not property_ids:
            return {"status_counts": {}, "waitlist_size": 0, "breached_count": 0, "tickets": []}

        counts = await bounded(self._tickets.count_by_status(property_ids), "tickets.count_by_status")
        now = self._clock()
        breached = 0
        for ticket in await self._list(
            TicketFilter(property_ids=property_ids, statuses=list(OPEN_CLOCK_STATUSES)), limit=1000
        ):
            if self._sla.evaluate(ticket, now).is_breached:
                breached += 1

        recent = await self._list(TicketFilter(property_ids=property_ids, statuses=_statuses(nav)))
        return {
            "status_counts": {status.value: counts.get(status, 0) for status in TicketStatus},
            "waitlist_size": counts.get(TicketStatus.WAITLIST, 0),
            "breached_count": breached,
            "tickets": [t.to_dict() for t in recent],
        }

    async def _list(self, filters: TicketFilter, limit: Optional[int] = None) -> List[Ticket]:
        return await bounded(self._tickets.list(filters, limit or self._page_size), "tickets.list")

    async def _served(self, actor: Actor, property_id: Optional[str]) -> List[str]:
        staff = await bounded(self._directory.get_staff(actor.user_id), "directory.get_staff")
        served = sorted(staff.property_ids) if staff else []
        if property_id is None:
            return served
        if property_id not in served:
            raise PermissionDeniedException("view this property", actor.role.value)
        return [property_id]

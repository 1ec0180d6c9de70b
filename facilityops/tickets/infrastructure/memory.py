"""
Ticket In-Memory Repositories
=============================

Same contract as the SQL repositories. Rows are copied on the way in and out
so callers never share a mutable Ticket with the table.
"""

from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from facilityops.config import ACTIVE_STATUSES, TicketStatus
from facilityops.infrastructure.memory import InMemoryStore
from facilityops.tickets.application.services import (
    ITicketActivityRepository,
    ITicketCommentRepository,
    ITicketRepository,
    TicketFilter,
)
from facilityops.tickets.domain import Ticket, TicketActivity, TicketComment


def _matches(ticket: Ticket, f: TicketFilter) -> bool:
    if not f.include_deleted and ticket.is_deleted:
        return False
    if f.property_ids is not None and ticket.property_id not in f.property_ids:
        return False
    if f.statuses is not None and ticket.status not in [TicketStatus(s) for s in f.statuses]:
        return False
    if f.creator_id is not None and ticket.creator_id != f.creator_id:
        return False
    if f.assignee_id is not None and ticket.assignee_id != f.assignee_id:
        return False
    if f.created_from is not None and ticket.created_at < f.created_from:
        return False
    if f.created_to is not None and ticket.created_at > f.created_to:
        return False
    if f.resolved_before is not None and (ticket.resolved_at is None or ticket.resolved_at > f.resolved_before):
        return False
    return True


class InMemoryTicketRepository(ITicketRepository):

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._rows = store.table("tickets")

    async def get(self, ticket_id: str, include_deleted: bool = False) -> Optional[Ticket]:
        await self._store.suspend()
        ticket = self._rows.get(ticket_id)
        if ticket is None or (ticket.is_deleted and not include_deleted):
            return None
        return replace(ticket)

    async def add(self, ticket: Ticket) -> Ticket:
        await self._store.suspend()
        self._rows.put(ticket.id, replace(ticket))
        return ticket

    async def compare_and_update(
        self,
        ticket: Ticket,
        expected_status: TicketStatus,
        expected_updated_at: datetime
    ) -> bool:
        await self._store.suspend()
        return self._rows.compare_and_set(
            ticket.id,
            lambda current: (
                current.status == expected_status
                and current.updated_at == expected_updated_at
                and not current.is_deleted
            ),
            replace(ticket),
        )

    async def delete(self, ticket_id: str) -> bool:
        await self._store.suspend()
        return self._rows.delete(ticket_id)

    async def list(self, filters: TicketFilter, limit: int = 100, offset: int = 0) -> List[Ticket]:
        await self._store.suspend()
        rows = self._rows.where(lambda t: _matches(t, filters))
        rows.sort(key=lambda t: (t.created_at, t.id), reverse=not filters.oldest_first)
        return [replace(t) for t in rows[offset:offset + limit]]

    async def count_by_status(self, property_ids: Sequence[str]) -> Dict[TicketStatus, int]:
        await self._store.suspend()
        counts: Dict[TicketStatus, int] = {}
        for t in self._rows.where(lambda t: t.property_id in property_ids and not t.is_deleted):
            counts[t.status] = counts.get(t.status, 0) + 1
        return counts

    async def count_active_by_assignee(self, assignee_ids: Iterable[str]) -> Dict[str, int]:
        await self._store.suspend()
        counts = {user_id: 0 for user_id in assignee_ids}
        for t in self._rows.where(
            lambda t: t.assignee_id in counts and t.status in ACTIVE_STATUSES and not t.is_deleted
        ):
            counts[t.assignee_id] += 1
        return counts


class InMemoryTicketActivityRepository(ITicketActivityRepository):

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._rows = store.table("ticket_activity")

    async def add(self, activity: TicketActivity) -> None:
        await self._store.suspend()
        self._rows.put(activity.id, replace(activity))

    async def list_for_ticket(self, ticket_id: str) -> List[TicketActivity]:
        await self._store.suspend()
        rows = self._rows.where(lambda a: a.ticket_id == ticket_id)
        # Stable sort keeps insertion order for equal timestamps
        rows.sort(key=lambda a: a.created_at)
        return [replace(a) for a in rows]

    async def delete_for_ticket(self, ticket_id: str) -> int:
        await self._store.suspend()
        doomed = self._rows.where(lambda a: a.ticket_id == ticket_id)
        for a in doomed:
            self._rows.delete(a.id)
        return len(doomed)


class InMemoryTicketCommentRepository(ITicketCommentRepository):

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._rows = store.table("ticket_comments")

    async def add(self, comment: TicketComment) -> None:
        await self._store.suspend()
        self._rows.put(comment.id, replace(comment))

    async def list_for_ticket(self, ticket_id: str, include_internal: bool = False) -> List[TicketComment]:
        await self._store.suspend()
        rows = self._rows.where(
            lambda c: c.ticket_id == ticket_id and (include_internal or not c.is_internal)
        )
        rows.sort(key=lambda c: c.created_at)
        return [replace(c) for c in rows]

    async def delete_for_ticket(self, ticket_id: str) -> int:
        await self._store.suspend()
        doomed = self._rows.where(lambda c: c.ticket_id == ticket_id)
        for c in doomed:
            self._rows.delete(c.id)
        return len(doomed)

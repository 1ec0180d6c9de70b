"""
Ticket Application Services
===========================

Orchestrates ticket creation, guarded transitions, edits, deletes and
history export.

Every status change is one conditional update keyed on the status (and
updated_at) the caller observed. A lost race refetches once: if nothing but
unrelated fields moved, the same transition is re-validated and retried;
otherwise the caller gets ConcurrentModificationException and must refresh.

Mutations are committed before fan-out. Fan-out failures are logged and never
undo the mutation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from facilityops.config import TicketEventType, TicketStatus
from facilityops.core import (
    ConcurrentModificationException,
    PermissionDeniedException,
    ResourceNotFoundException,
    TransitionDeniedException,
    ValidationException,
)
from facilityops.directory.application import IDirectoryRepository
from facilityops.directory.domain import SYSTEM_ACTOR, Actor, Capability, Role
from facilityops.notifications.application.repositories import INotificationRepository
from facilityops.shared.infrastructure.clock import Clock, utcnow
from facilityops.shared.infrastructure.logging import get_logger
from facilityops.shared.infrastructure.resilience import bounded
from facilityops.sla.domain import SLACalculator
from facilityops.tickets.application.dto import TicketCreateRequest, TicketUpdateRequest
from facilityops.tickets.domain import (
    Ticket,
    TicketActivity,
    TicketComment,
    TicketEvent,
    TicketStateMachine,
    TransitionRequest,
    new_display_code,
    new_ticket_id,
)

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

@dataclass
class TicketFilter:
    """Query filter for ticket listings. Soft-deleted rows are excluded unless asked for."""
    property_ids: Optional[Sequence[str]] = None
    statuses: Optional[Sequence[TicketStatus]] = None
    creator_id: Optional[str] = None
    assignee_id: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    resolved_before: Optional[datetime] = None
    include_deleted: bool = False
    oldest_first: bool = False


class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def get(self, ticket_id: str, include_deleted: bool = False) -> Optional[Ticket]:
        """Get a ticket by ID."""

    @abstractmethod
    async def add(self, ticket: Ticket) -> Ticket:
        """Insert a new ticket."""

    @abstractmethod
    async def compare_and_update(
        self,
        ticket: Ticket,
        expected_status: TicketStatus,
        expected_updated_at: datetime
    ) -> bool:
        """
        Write `ticket` only if the stored row is live and still has the
        expected status and updated_at. Returns False when the race was lost.
        """

    @abstractmethod
    async def delete(self, ticket_id: str) -> bool:
        """Remove the row permanently."""

    @abstractmethod
    async def list(self, filters: TicketFilter, limit: int = 100, offset: int = 0) -> List[Ticket]:
        """List tickets, newest first unless `filters.oldest_first`."""

    @abstractmethod
    async def count_by_status(self, property_ids: Sequence[str]) -> Dict[TicketStatus, int]:
        """Live ticket counts per status for the given properties."""

    @abstractmethod
    async def count_active_by_assignee(self, assignee_ids: Iterable[str]) -> Dict[str, int]:
        """Number of assigned/in-progress/paused/blocked tickets per resolver."""


class ITicketActivityRepository(ABC):
    """Interface for the ticket audit trail."""

    @abstractmethod
    async def add(self, activity: TicketActivity) -> None:
        """Append one audit row."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str) -> List[TicketActivity]:
        """Audit rows for a ticket, oldest first."""

    @abstractmethod
    async def delete_for_ticket(self, ticket_id: str) -> int:
        """Drop a ticket's audit rows (hard delete)."""


class ITicketCommentRepository(ABC):
    """Interface for ticket comments."""

    @abstractmethod
    async def add(self, comment: TicketComment) -> None:
        """Store one comment."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: str, include_internal: bool = False) -> List[TicketComment]:
        """Comments on a ticket, oldest first."""

    @abstractmethod
    async def delete_for_ticket(self, ticket_id: str) -> int:
        """Drop a ticket's comments (hard delete)."""


# ========== Collaborator Protocols ==========

class IResolverSelector(Protocol):
    """Decides where a new ticket lands: assigned, open or waitlist."""

    async def place(self, ticket: Ticket, now: datetime) -> Tuple[TicketStatus, Optional[str]]:
        ...


class ITicketEventPublisher(Protocol):
    """Consumes lifecycle events after the mutation is committed."""

    async def publish(self, events: Sequence[TicketEvent]) -> None:
        ...


# ========== Application Services ==========

_ACTIONS = {
    TicketEventType.CREATED: "created",
    TicketEventType.ASSIGNED: "assigned",
    TicketEventType.WAITLISTED: "unassigned",
    TicketEventType.COMPLETED: "status_changed",
    TicketEventType.STATUS_CHANGED: "status_changed",
}


class TicketService:
    """Ticket lifecycle use cases."""

    def __init__(
        self,
        tickets: ITicketRepository,
        activity: ITicketActivityRepository,
        comments: ITicketCommentRepository,
        directory: IDirectoryRepository,
        notifications: INotificationRepository,
        selector: IResolverSelector,
        publisher: Optional[ITicketEventPublisher] = None,
        commit: Optional[Callable[[], Awaitable[None]]] = None,
        clock: Clock = utcnow,
    ):
        self._tickets = tickets
        self._activity = activity
        self._comments = comments
        self._directory = directory
        self._notifications = notifications
        self._selector = selector
        self._publisher = publisher
        self._commit = commit
        self._clock = clock
        self._machine = TicketStateMachine()

    # ---------- Reads ----------

    async def get_ticket(self, actor: Actor, ticket_id: str) -> Ticket:
        return await self._load_visible(actor, ticket_id)

    async def get_activity(self, actor: Actor, ticket_id: str) -> List[TicketActivity]:
        await self._load_visible(actor, ticket_id)
        return await bounded(self._activity.list_for_ticket(ticket_id), "activity.list")

    async def list_comments(self, actor: Actor, ticket_id: str) -> List[TicketComment]:
        await self._load_visible(actor, ticket_id)
        include_internal = actor.can(Capability.VIEW_PROPERTY)
        return await bounded(self._comments.list_for_ticket(ticket_id, include_internal), "comments.list")

    async def list_tickets(self, filters: TicketFilter, limit: int = 100, offset: int = 0) -> List[Ticket]:
        return await bounded(self._tickets.list(filters, limit, offset), "tickets.list")

    # ---------- Create ----------

    async def create_ticket(self, actor: Actor, request: TicketCreateRequest) -> Ticket:
        """
        Raise a ticket and place it: auto-assigned to the best resolver, left
        open for manual dispatch, or waitlisted when nobody is eligible.
        """
        if not actor.can(Capability.RAISE_TICKET):
            raise PermissionDeniedException("raise tickets", actor.role.value)

        prop = await bounded(self._directory.get_property(request.property_id), "directory.get_property")
        if prop is None:
            raise ResourceNotFoundException("Property", request.property_id)
        if actor.role != Role.SYSTEM:
            staff = await bounded(self._directory.get_staff(actor.user_id), "directory.get_staff")
            if staff is None or not staff.serves(prop.id):
                raise PermissionDeniedException("raise tickets at this property", actor.role.value)

        now = self._clock()
        ticket = Ticket(
            id=new_ticket_id(),
            display_code=new_display_code(now),
            title=request.title.strip(),
            description=request.description.strip(),
            category=request.category,
            priority=request.priority,
            status=TicketStatus.OPEN,
            property_id=prop.id,
            organization_id=prop.organization_id,
            creator_id=actor.user_id,
            raised_by_role=actor.role.value,
            created_at=now,
            updated_at=now,
        )

        status, assignee_id = await self._selector.place(ticket, now)
        ticket.status = status
        if status == TicketStatus.ASSIGNED:
            ticket.assignee_id = assignee_id
            ticket.assigned_at = now
        ticket.check_invariants()

        await bounded(self._tickets.add(ticket), "tickets.add")

        events = [TicketEvent(type=TicketEventType.CREATED, ticket=ticket, actor=actor, occurred_at=now)]
        await self._record(TicketActivity(
            ticket_id=ticket.id, actor_id=actor.user_id, action="created",
            new_value=ticket.status.value, created_at=now,
        ))
        if ticket.status == TicketStatus.ASSIGNED:
            events.append(TicketEvent(
                type=TicketEventType.ASSIGNED,
                ticket=ticket,
                actor=SYSTEM_ACTOR,
                occurred_at=now,
                previous_status=TicketStatus.OPEN,
            ))
            await self._record(TicketActivity(
                ticket_id=ticket.id, actor_id=SYSTEM_ACTOR.user_id, action="assigned",
                new_value=ticket.assignee_id, created_at=now,
            ))

        logger.info(
            "Ticket created",
            extra={
                "ticket_id": ticket.id,
                "display_code": ticket.display_code,
                "property_id": ticket.property_id,
                "status": ticket.status.value,
                "assignee_id": ticket.assignee_id,
            }
        )
        await self._finish(events)
        return ticket

    # ---------- Update ----------

    async def update_ticket(self, actor: Actor, ticket_id: str, request: TicketUpdateRequest) -> Ticket:
        """Apply content edits and/or a status transition from a PATCH body."""
        ticket = await self._load_visible(actor, ticket_id)

        if request.title is not None or request.description is not None:
            ticket = await self._edit_content(actor, ticket, request.title, request.description)

        target = request.target_status
        if target is not None:
            ticket = await self.transition(
                actor,
                ticket_id,
                TicketStatus(target),
                assignee_id=request.assignee_id,
                reason=request.reason,
                observed=ticket,
            )
        return ticket

    async def transition(
        self,
        actor: Actor,
        ticket_id: str,
        to_status: TicketStatus,
        assignee_id: Optional[str] = None,
        reason: Optional[str] = None,
        observed: Optional[Ticket] = None,
    ) -> Ticket:
        """
        Move a ticket through the state machine with a conditional write.

        Raises:
            TransitionDeniedException: guard failed, nothing changed
            ConcurrentModificationException: the ticket moved under us
        """
        ticket = observed or await self._load_visible(actor, ticket_id)
        request = TransitionRequest(to_status=to_status, actor=actor, assignee_id=assignee_id, reason=reason)

        if to_status == TicketStatus.ASSIGNED:
            await self._ensure_assignable(ticket, assignee_id)

        for attempt in range(2):
            updated, events = self._machine.apply(ticket, request, self._clock())
            won = await bounded(
                self._tickets.compare_and_update(updated, ticket.status, ticket.updated_at),
                "tickets.compare_and_update",
            )
            if won:
                break

            refreshed = await bounded(self._tickets.get(ticket_id), "tickets.get")
            logger.info(
                "Conditional ticket update lost a race",
                extra={
                    "ticket_id": ticket_id,
                    "expected_status": ticket.status.value,
                    "current_status": refreshed.status.value if refreshed else None,
                    "attempt": attempt + 1,
                }
            )
            if attempt == 0 and refreshed is not None and refreshed.status == ticket.status:
                try:
                    self._machine.validate(refreshed, request)
                except TransitionDeniedException as exc:
                    raise ConcurrentModificationException("Ticket", ticket_id) from exc
                ticket = refreshed
                continue
            raise ConcurrentModificationException("Ticket", ticket_id)

        for event in events:
            await self._record(self._activity_for(event))

        logger.info(
            "Ticket transitioned",
            extra={
                "ticket_id": ticket_id,
                "from_status": ticket.status.value,
                "to_status": updated.status.value,
                "actor_id": actor.user_id,
                "actor_role": actor.role.value,
            }
        )
        await self._finish(events)
        return updated

    async def _edit_content(
        self,
        actor: Actor,
        ticket: Ticket,
        title: Optional[str],
        description: Optional[str]
    ) -> Ticket:
        allowed = (
            actor.user_id in (ticket.creator_id, ticket.assignee_id)
            or actor.can(Capability.OVERRIDE_STATUS)
        )
        if not allowed:
            raise PermissionDeniedException("edit this ticket", actor.role.value)
        if ticket.is_terminal:
            raise TransitionDeniedException(
                ticket.status.value, ticket.status.value, actor.role.value, "closed tickets are read-only"
            )

        now = self._clock()
        updated = replace(
            ticket,
            title=title.strip() if title is not None else ticket.title,
            description=description.strip() if description is not None else ticket.description,
            updated_at=max(now, ticket.updated_at),
        )
        won = await bounded(
            self._tickets.compare_and_update(updated, ticket.status, ticket.updated_at),
            "tickets.compare_and_update",
        )
        if not won:
            raise ConcurrentModificationException("Ticket", ticket.id)

        await self._record(TicketActivity(
            ticket_id=ticket.id, actor_id=actor.user_id, action="edited",
            old_value=ticket.title, new_value=updated.title, created_at=now,
        ))
        await self._finish([])
        return updated

    # ---------- Delete ----------

    async def add_comment(self, actor: Actor, ticket_id: str, body: str, internal: bool = False) -> TicketComment:
        """
        Comment on a visible ticket. An internal flag from a non-admin is
        dropped and the comment is posted as a public one.
        """
        await self._load_visible(actor, ticket_id)
        text = body.strip()
        if not text:
            raise ValidationException("Comment cannot be blank", {"field": "body"})

        comment = TicketComment(
            ticket_id=ticket_id,
            author_id=actor.user_id,
            body=text,
            created_at=self._clock(),
            is_internal=internal and actor.can(Capability.VIEW_PROPERTY),
        )
        await bounded(self._comments.add(comment), "comments.add")
        if self._commit is not None:
            await self._commit()
        logger.info(
            "Comment added",
            extra={"ticket_id": ticket_id, "actor_id": actor.user_id, "internal": comment.is_internal}
        )
        return comment

    async def delete_ticket(self, actor: Actor, ticket_id: str, hard: bool = False) -> None:
        """
        Soft delete hides the ticket from every read. Hard delete removes the
        row together with its activity log, comments and notifications.
        """
        if hard:
            if not actor.can(Capability.DELETE_HARD):
                raise PermissionDeniedException("permanently delete tickets", actor.role.value)
            ticket = await bounded(self._tickets.get(ticket_id, include_deleted=True), "tickets.get")
            if ticket is None:
                raise ResourceNotFoundException("Ticket", ticket_id)
            await self._ensure_scope(actor, ticket)
            await bounded(self._notifications.delete_for_ticket(ticket_id), "notifications.delete")
            await bounded(self._comments.delete_for_ticket(ticket_id), "comments.delete")
            await bounded(self._activity.delete_for_ticket(ticket_id), "activity.delete")
            await bounded(self._tickets.delete(ticket_id), "tickets.delete")
            logger.warning("Ticket hard-deleted", extra={"ticket_id": ticket_id, "actor_id": actor.user_id})
            await self._finish([])
            return

        ticket = await self._load_visible(actor, ticket_id)
        if not (actor.can(Capability.DELETE_SOFT) or actor.user_id == ticket.creator_id):
            raise PermissionDeniedException("delete this ticket", actor.role.value)

        now = self._clock()
        updated = replace(ticket, deleted_at=now, updated_at=max(now, ticket.updated_at))
        won = await bounded(
            self._tickets.compare_and_update(updated, ticket.status, ticket.updated_at),
            "tickets.compare_and_update",
        )
        if not won:
            raise ConcurrentModificationException("Ticket", ticket_id)
        await self._record(TicketActivity(
            ticket_id=ticket_id, actor_id=actor.user_id, action="deleted",
            old_value=ticket.status.value, created_at=now,
        ))
        logger.info("Ticket soft-deleted", extra={"ticket_id": ticket_id, "actor_id": actor.user_id})
        await self._finish([])

    # ---------- Export ----------

    async def export_history(
        self,
        actor: Actor,
        start: datetime,
        end: datetime,
        property_id: Optional[str] = None
    ) -> List[dict]:
        """Rows for tickets created in [start, end] at properties the actor oversees."""
        if not actor.can(Capability.VIEW_PROPERTY):
            raise PermissionDeniedException("export ticket history", actor.role.value)

        staff = await bounded(self._directory.get_staff(actor.user_id), "directory.get_staff")
        scope = sorted(staff.property_ids) if staff else []
        if property_id is not None:
            if property_id not in scope:
                raise PermissionDeniedException("export this property", actor.role.value)
            scope = [property_id]

        rows: List[dict] = []
        if not scope:
            return rows
        filters = TicketFilter(property_ids=scope, created_from=start, created_to=end, oldest_first=True)
        offset = 0
        while True:
            page = await bounded(self._tickets.list(filters, limit=500, offset=offset), "tickets.list")
            rows.extend(self._export_row(t) for t in page)
            if len(page) < 500:
                return rows
            offset += 500

    @staticmethod
    def _export_row(ticket: Ticket) -> dict:
        def iso(value: Optional[datetime]) -> str:
            return value.isoformat() if value else ""

        resolution = SLACalculator.resolution_seconds(ticket)
        return {
            "display_code": ticket.display_code,
            "title": ticket.title,
            "category": ticket.category.value,
            "priority": ticket.priority.value,
            "status": ticket.status.value,
            "property_id": ticket.property_id,
            "creator_id": ticket.creator_id,
            "assignee_id": ticket.assignee_id or "",
            "created_at": iso(ticket.created_at),
            "assigned_at": iso(ticket.assigned_at),
            "work_started_at": iso(ticket.work_started_at),
            "resolved_at": iso(ticket.resolved_at),
            "paused_seconds": round(SLACalculator.total_paused_seconds(ticket, ticket.resolved_at or ticket.updated_at), 1),
            "resolution_seconds": round(resolution, 1) if resolution is not None else "",
        }

    # ---------- Helpers ----------

    async def _load_visible(self, actor: Actor, ticket_id: str) -> Ticket:
        ticket = await bounded(self._tickets.get(ticket_id), "tickets.get")
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        if actor.user_id != ticket.creator_id:
            await self._ensure_scope(actor, ticket)
        return ticket

    async def _ensure_scope(self, actor: Actor, ticket: Ticket) -> None:
        """Staff act only on tickets of properties they serve."""
        if actor.role == Role.SYSTEM:
            return
        staff = await bounded(self._directory.get_staff(actor.user_id), "directory.get_staff")
        if staff is None or not staff.serves(ticket.property_id):
            raise PermissionDeniedException("access this ticket", actor.role.value)

    async def _ensure_assignable(self, ticket: Ticket, assignee_id: Optional[str]) -> None:
        if not assignee_id:
            return
        staff = await bounded(self._directory.get_staff(assignee_id), "directory.get_staff")
        if staff is None or staff.role != Role.RESOLVER or not staff.serves(ticket.property_id):
            raise ValidationException(
                "Assignee must be a resolver serving this property",
                {"assignee_id": assignee_id, "property_id": ticket.property_id}
            )

    @staticmethod
    def _activity_for(event: TicketEvent) -> TicketActivity:
        action = _ACTIONS[event.type]
        if event.type == TicketEventType.ASSIGNED and event.previous_status == TicketStatus.ASSIGNED:
            return TicketActivity(
                ticket_id=event.ticket.id, actor_id=event.actor.user_id, action="reassigned",
                old_value=event.previous_assignee_id, new_value=event.ticket.assignee_id,
                created_at=event.occurred_at,
            )
        if event.type == TicketEventType.ASSIGNED:
            return TicketActivity(
                ticket_id=event.ticket.id, actor_id=event.actor.user_id, action=action,
                new_value=event.ticket.assignee_id, created_at=event.occurred_at,
            )
        if event.type == TicketEventType.WAITLISTED:
            return TicketActivity(
                ticket_id=event.ticket.id, actor_id=event.actor.user_id, action=action,
                old_value=event.previous_assignee_id, new_value=event.ticket.status.value,
                created_at=event.occurred_at,
            )
        return TicketActivity(
            ticket_id=event.ticket.id, actor_id=event.actor.user_id, action=action,
            old_value=event.previous_status.value if event.previous_status else None,
            new_value=event.ticket.status.value, created_at=event.occurred_at,
        )

    async def _record(self, activity: TicketActivity) -> None:
        await bounded(self._activity.add(activity), "activity.add")

    async def _finish(self, events: List[TicketEvent]) -> None:
        """Commit, then hand events to fan-out."""
        if self._commit is not None:
            await self._commit()
        if not events or self._publisher is None:
            return
        try:
            await self._publisher.publish(events)
        except Exception:
            logger.exception(
                "Ticket event fan-out failed",
                extra={"ticket_id": events[0].ticket.id, "event_types": [e.type.value for e in events]}
            )

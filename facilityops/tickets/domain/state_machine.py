"""
Ticket State Machine
====================

Validates and applies lifecycle transitions.

    open/waitlist -> assigned           dispatcher, or a resolver claiming for themselves
    assigned      -> assigned           reassignment by a dispatcher
    assigned      -> waitlist           a dispatcher unassigns, back in the queue
    assigned      -> in_progress        the assignee starts work
    in_progress   -> paused             any actor, with a reason (pauses the SLA clock)
    paused        -> in_progress        resume (resumes the SLA clock)
    non-terminal  -> blocked            any actor, with a reason (SLA keeps running)
    blocked       -> in_progress        assignee or admin
    in_progress/blocked -> resolved     assignee or admin
    resolved      -> closed             admin, or the system grace-period policy
    resolved      -> in_progress        admin reopen

`closed` has no outgoing transitions.

`apply()` never mutates the ticket it is given: it returns an updated copy
plus the events to emit, so a lost conditional update leaves the caller's
view untouched.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from facilityops.config import TicketEventType, TicketStatus
from facilityops.core import TransitionDeniedException
from facilityops.directory.domain import Actor, Capability
from facilityops.sla.domain import SLACalculator
from facilityops.tickets.domain.entities import Ticket, TicketEvent

S = TicketStatus

TRANSITIONS: Dict[TicketStatus, FrozenSet[TicketStatus]] = {
    S.WAITLIST: frozenset({S.ASSIGNED, S.BLOCKED}),
    S.OPEN: frozenset({S.ASSIGNED, S.BLOCKED}),
    S.ASSIGNED: frozenset({S.ASSIGNED, S.WAITLIST, S.IN_PROGRESS, S.BLOCKED}),
    S.IN_PROGRESS: frozenset({S.PAUSED, S.BLOCKED, S.RESOLVED}),
    S.PAUSED: frozenset({S.IN_PROGRESS, S.BLOCKED}),
    S.BLOCKED: frozenset({S.IN_PROGRESS, S.RESOLVED}),
    S.RESOLVED: frozenset({S.CLOSED, S.IN_PROGRESS}),
    S.CLOSED: frozenset(),
}


@dataclass(frozen=True)
class TransitionRequest:
    """What an actor asks the state machine to do."""
    to_status: TicketStatus
    actor: Actor
    assignee_id: Optional[str] = None
    reason: Optional[str] = None


Guard = Callable[[Ticket, TransitionRequest], Optional[str]]


def _is_assignee(ticket: Ticket, actor: Actor) -> bool:
    return ticket.assignee_id is not None and ticket.assignee_id == actor.user_id


def _is_assignee_or_admin(ticket: Ticket, actor: Actor) -> bool:
    return _is_assignee(ticket, actor) or actor.can(Capability.RESOLVE_ANY)


def _guard_assign(ticket: Ticket, request: TransitionRequest) -> Optional[str]:
    if not request.assignee_id:
        return "a resolver must be supplied"
    actor = request.actor
    if actor.can(Capability.DISPATCH):
        return None
    if actor.can(Capability.CLAIM_TICKET) and request.assignee_id == actor.user_id:
        return None
    return "only a dispatcher or the claiming resolver may assign"


def _guard_reassign(ticket: Ticket, request: TransitionRequest) -> Optional[str]:
    if not request.assignee_id:
        return "a resolver must be supplied"
    if request.assignee_id == ticket.assignee_id:
        return "ticket is already assigned to this resolver"
    if not request.actor.can(Capability.DISPATCH):
        return "only a dispatcher may reassign"
    return None


def _guard_unassign(ticket: Ticket, request: TransitionRequest) -> Optional[str]:
    if request.assignee_id:
        return "a waitlisted ticket has no resolver"
    if not request.actor.can(Capability.DISPATCH):
        return "only a dispatcher may unassign"
    return None


def _guard_start(ticket: Ticket, request: TransitionRequest) -> Optional[str]:
    if not _is_assignee(ticket, request.actor):
        return "only the assignee may start work"
    return None


def _guard_reason(ticket: Ticket, request: TransitionRequest) -> Optional[str]:
    if not (request.reason and request.reason.strip()):
        return "a reason is required"
    return None


def _guard_resume(ticket: Ticket, request: TransitionRequest) -> Optional[str]:
    return None


def _guard_unblock(ticket: Ticket, request: TransitionRequest) -> Optional[str]:
    if ticket.assignee_id is None:
        return "assign the ticket before resuming work"
    if not _is_assignee_or_admin(ticket, request.actor):
        return "only the assignee or an admin may unblock"
    return None


def _guard_resolve(ticket: Ticket, request: TransitionRequest) -> Optional[str]:
    if not _is_assignee_or_admin(ticket, request.actor):
        return "only the assignee or an admin may resolve"
    return None


def _guard_close(ticket: Ticket, request: TransitionRequest) -> Optional[str]:
    if not request.actor.can(Capability.CLOSE):
        return "only an admin may confirm closure"
    return None


def _guard_reopen(ticket: Ticket, request: TransitionRequest) -> Optional[str]:
    if not request.actor.can(Capability.REOPEN):
        return "only an admin may reopen"
    return None


def _guard_for(from_status: TicketStatus, to_status: TicketStatus) -> Guard:
    if to_status == S.ASSIGNED:
        return _guard_reassign if from_status == S.ASSIGNED else _guard_assign
    if to_status == S.WAITLIST:
        return _guard_unassign
    if to_status == S.BLOCKED or to_status == S.PAUSED:
        return _guard_reason
    if to_status == S.IN_PROGRESS:
        return {
            S.ASSIGNED: _guard_start,
            S.PAUSED: _guard_resume,
            S.BLOCKED: _guard_unblock,
            S.RESOLVED: _guard_reopen,
        }[from_status]
    if to_status == S.RESOLVED:
        return _guard_resolve
    return _guard_close


class TicketStateMachine:
    """Guard checks and side effects for ticket transitions."""

    @staticmethod
    def can_transition(from_status: TicketStatus, to_status: TicketStatus) -> bool:
        return TicketStatus(to_status) in TRANSITIONS[TicketStatus(from_status)]

    def validate(self, ticket: Ticket, request: TransitionRequest) -> None:
        """Raise TransitionDeniedException if the request may not proceed."""
        from_status = ticket.status
        to_status = TicketStatus(request.to_status)
        role = request.actor.role.value

        if ticket.is_deleted:
            raise TransitionDeniedException(from_status.value, to_status.value, role, "ticket was deleted")
        if not self.can_transition(from_status, to_status):
            raise TransitionDeniedException(
                from_status.value, to_status.value, role,
                "ticket is closed" if from_status == S.CLOSED else "transition not allowed"
            )
        failure = _guard_for(from_status, to_status)(ticket, request)
        if failure:
            raise TransitionDeniedException(from_status.value, to_status.value, role, failure)

    def apply(
        self,
        ticket: Ticket,
        request: TransitionRequest,
        now: datetime
    ) -> Tuple[Ticket, List[TicketEvent]]:
        """Validate, then return the transitioned copy and its events."""
        self.validate(ticket, request)

        from_status = ticket.status
        to_status = TicketStatus(request.to_status)
        # Copy first: the intermediate state would fail the entity invariants
        updated = replace(ticket)
        updated.status = to_status
        updated.updated_at = now

        # Leaving an explicit pause closes the SLA pause window
        if from_status == S.PAUSED:
            SLACalculator.resume(updated, now)
            updated.pause_reason = None
        if from_status == S.BLOCKED:
            updated.block_reason = None

        if to_status == S.ASSIGNED:
            updated.assignee_id = request.assignee_id
            updated.assigned_at = now
        elif to_status == S.WAITLIST:
            updated.assignee_id = None
            updated.assigned_at = None
        elif to_status == S.IN_PROGRESS:
            if updated.work_started_at is None:
                updated.work_started_at = now
            if from_status == S.RESOLVED:
                updated.resolved_at = None
        elif to_status == S.PAUSED:
            SLACalculator.pause(updated, now)
            updated.pause_reason = request.reason.strip()
        elif to_status == S.BLOCKED:
            updated.block_reason = request.reason.strip()
        elif to_status == S.RESOLVED:
            updated.resolved_at = now

        updated.check_invariants()

        if to_status == S.ASSIGNED:
            event_type = TicketEventType.ASSIGNED
        elif to_status == S.WAITLIST:
            event_type = TicketEventType.WAITLISTED
        elif to_status in (S.RESOLVED, S.CLOSED):
            event_type = TicketEventType.COMPLETED
        else:
            event_type = TicketEventType.STATUS_CHANGED

        event = TicketEvent(
            type=event_type,
            ticket=updated,
            actor=request.actor,
            occurred_at=now,
            previous_status=from_status,
            previous_assignee_id=ticket.assignee_id,
        )
        return updated, [event]

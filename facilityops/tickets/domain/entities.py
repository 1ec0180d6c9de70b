"""
Ticket Domain Entities
======================

Pure Python domain entities for the ticket lifecycle.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

import secrets
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import uuid4

from facilityops.config import (
    COMPLETED_STATUSES, UNASSIGNED_STATUSES,
    Priority, TicketCategory, TicketEventType, TicketStatus,
)
from facilityops.directory.domain import Actor


def new_ticket_id() -> str:
    return str(uuid4())


def new_display_code(created_at: datetime) -> str:
    """Human-facing ticket code, e.g. TKT-20240115-1A2B3C."""
    return f"TKT-{created_at:%Y%m%d}-{secrets.token_hex(3).upper()}"


@dataclass
class Ticket:
    """
    Ticket entity representing a maintenance/service request.

    Invariants are checked on construction and after every transition:
    - resolved_at is set iff status is resolved or closed
    - sla_paused implies sla_pause_started_at is set
    - an assignee implies the ticket is past open/waitlist
    """

    # Core attributes
    id: str
    display_code: str
    title: str
    description: str
    category: TicketCategory
    priority: Priority
    status: TicketStatus

    # Scope and ownership
    property_id: str
    organization_id: str
    creator_id: str
    raised_by_role: str

    # Timestamps
    created_at: datetime
    updated_at: datetime

    assignee_id: Optional[str] = None
    assigned_at: Optional[datetime] = None
    work_started_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    # SLA timer state
    sla_paused: bool = False
    sla_pause_started_at: Optional[datetime] = None
    sla_accumulated_pause_seconds: float = 0.0

    pause_reason: Optional[str] = None
    block_reason: Optional[str] = None
    deleted_at: Optional[datetime] = None

    def __post_init__(self):
        self.category = TicketCategory(self.category)
        self.priority = Priority(self.priority)
        self.status = TicketStatus(self.status)
        if self.updated_at < self.created_at:
            raise ValueError("updated_at cannot be before created_at")
        self.check_invariants()

    def check_invariants(self) -> None:
        """Raise ValueError if the lifecycle invariants do not hold."""
        completed = self.status in COMPLETED_STATUSES
        if completed != (self.resolved_at is not None):
            raise ValueError(
                f"resolved_at must be set exactly when status is resolved/closed (status={self.status.value})"
            )
        if self.sla_paused and self.sla_pause_started_at is None:
            raise ValueError("sla_paused requires sla_pause_started_at")
        if self.assignee_id is not None and self.status in UNASSIGNED_STATUSES:
            raise ValueError(f"an assigned ticket cannot be {self.status.value}")

    @property
    def is_terminal(self) -> bool:
        return self.status == TicketStatus.CLOSED

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses and real-time payloads."""
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "display_code": self.display_code,
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "priority": self.priority.value,
            "status": self.status.value,
            "property_id": self.property_id,
            "organization_id": self.organization_id,
            "creator_id": self.creator_id,
            "raised_by_role": self.raised_by_role,
            "assignee_id": self.assignee_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
            "assigned_at": iso(self.assigned_at),
            "work_started_at": iso(self.work_started_at),
            "resolved_at": iso(self.resolved_at),
            "sla_paused": self.sla_paused,
            "sla_pause_started_at": iso(self.sla_pause_started_at),
            "sla_accumulated_pause_seconds": self.sla_accumulated_pause_seconds,
            "pause_reason": self.pause_reason,
            "block_reason": self.block_reason,
        }


@dataclass(frozen=True)
class TicketEvent:
    """Lifecycle event produced by a successful creation or transition."""
    type: TicketEventType
    ticket: Ticket
    actor: Actor
    occurred_at: datetime
    previous_status: Optional[TicketStatus] = None
    previous_assignee_id: Optional[str] = None

    @property
    def is_self_claim(self) -> bool:
        return self.type == TicketEventType.ASSIGNED and self.ticket.assignee_id == self.actor.user_id


@dataclass
class TicketActivity:
    """Audit trail row for one change to a ticket."""
    ticket_id: str
    actor_id: str
    action: str
    created_at: datetime
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid4()))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "actor_id": self.actor_id,
            "action": self.action,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class TicketComment:
    """
    A note left on a ticket.

    Internal comments are admin-only: only admins post them and only
    admins see them.
    """
    ticket_id: str
    author_id: str
    body: str
    created_at: datetime
    is_internal: bool = False
    id: str = field(default_factory=lambda: str(uuid4()))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "author_id": self.author_id,
            "body": self.body,
            "is_internal": self.is_internal,
            "created_at": self.created_at.isoformat(),
        }

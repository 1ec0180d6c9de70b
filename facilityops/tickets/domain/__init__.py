"""
Tickets Domain Layer
====================

Contains:
- Entities: Ticket, TicketEvent, TicketActivity, TicketComment
- State machine: transition table, guards and side effects

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from facilityops.tickets.domain.entities import (
    Ticket,
    TicketActivity,
    TicketComment,
    TicketEvent,
    new_display_code,
    new_ticket_id,
)
from facilityops.tickets.domain.state_machine import (
    TRANSITIONS,
    TicketStateMachine,
    TransitionRequest,
)

__all__ = [
    "Ticket",
    "TicketActivity",
    "TicketComment",
    "TicketEvent",
    "new_display_code",
    "new_ticket_id",
    "TRANSITIONS",
    "TicketStateMachine",
    "TransitionRequest",
]

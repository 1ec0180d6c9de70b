"""
Tickets Infrastructure Layer
============================

- Models: SQLAlchemy ORM models
- Repositories: SQL (conditional UPDATE) and in-memory implementations
"""

from facilityops.tickets.infrastructure.models import TicketActivityModel, TicketCommentModel, TicketModel
from facilityops.tickets.infrastructure.repositories import (
    SQLAlchemyTicketActivityRepository,
    SQLAlchemyTicketCommentRepository,
    SQLAlchemyTicketRepository,
)
from facilityops.tickets.infrastructure.memory import (
    InMemoryTicketActivityRepository,
    InMemoryTicketCommentRepository,
    InMemoryTicketRepository,
)

__all__ = [
    "TicketActivityModel",
    "TicketCommentModel",
    "TicketModel",
    "SQLAlchemyTicketActivityRepository",
    "SQLAlchemyTicketCommentRepository",
    "SQLAlchemyTicketRepository",
    "InMemoryTicketActivityRepository",
    "InMemoryTicketCommentRepository",
    "InMemoryTicketRepository",
]

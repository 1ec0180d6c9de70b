"""
Tickets Application Layer
=========================

Contains:
- Services: TicketService (create, transition, edit, delete, export)
- DTOs: request/response models
- Repository interfaces: ITicketRepository, ITicketActivityRepository, ITicketCommentRepository
- Export rendering: CSV/JSON rows
"""

from facilityops.tickets.application.dto import (
    DeleteResponse,
    ExportFormatStr,
    ExportQuery,
    TicketActivityListResponse,
    TicketActivityResponse,
    TicketCommentListResponse,
    TicketCommentRequest,
    TicketCommentResponse,
    TicketCreateRequest,
    TicketResponse,
    TicketUpdateRequest,
)
from facilityops.tickets.application.services import (
    IResolverSelector,
    ITicketActivityRepository,
    ITicketCommentRepository,
    ITicketEventPublisher,
    ITicketRepository,
    TicketFilter,
    TicketService,
)
from facilityops.tickets.application.export import EXPORT_COLUMNS, render_csv

__all__ = [
    "DeleteResponse",
    "ExportFormatStr",
    "ExportQuery",
    "TicketActivityListResponse",
    "TicketActivityResponse",
    "TicketCommentListResponse",
    "TicketCommentRequest",
    "TicketCommentResponse",
    "TicketCreateRequest",
    "TicketResponse",
    "TicketUpdateRequest",
    "IResolverSelector",
    "ITicketActivityRepository",
    "ITicketCommentRepository",
    "ITicketEventPublisher",
    "ITicketRepository",
    "TicketFilter",
    "TicketService",
    "EXPORT_COLUMNS",
    "render_csv",
]

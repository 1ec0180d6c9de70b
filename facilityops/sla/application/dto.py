"""
SLA Application DTOs
=====================

Response models for the SLA endpoints.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from facilityops.tickets.application.dto import PriorityStr, CategoryStr, TicketStatusStr


# ========== Type Aliases for Literals ==========
SLAStateStr = Literal["on_track", "paused", "breached", "met"]


# ========== Query DTOs ==========

class DashboardQueryDTO(BaseModel):
    """Query parameters for the SLA dashboard."""
    property_id: Optional[str] = None
    priority: Optional[PriorityStr] = None
    sla_state: Optional[SLAStateStr] = None
    limit: int = Field(default=100, ge=1, le=1000)


# ========== Response DTOs ==========

class SLAStatusResponse(BaseModel):
    """SLA clock of one ticket."""
    state: SLAStateStr
    is_breached: bool
    is_paused: bool
    threshold_seconds: float
    elapsed_service_seconds: float
    paused_seconds: float
    remaining_seconds: float
    projected_deadline: datetime
    resolution_seconds: Optional[float] = None


class TicketSLAResponse(BaseModel):
    """Ticket summary with its SLA status."""
    ticket_id: str
    display_code: str
    property_id: str
    priority: PriorityStr
    category: CategoryStr
    status: TicketStatusStr
    assignee_id: Optional[str] = None
    created_at: datetime
    sla: SLAStatusResponse


class DashboardSummary(BaseModel):
    total_tickets: int
    breached_count: int
    paused_count: int
    on_track_count: int
    met_count: int
    breach_rate: float = Field(..., description="Breached share of listed tickets, 0-100")


class DashboardResponse(BaseModel):
    tickets: List[TicketSLAResponse]
    total_count: int
    summary: DashboardSummary

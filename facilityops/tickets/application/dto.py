"""
Ticket Application DTOs
=======================

Pydantic models for ticket API requests and responses.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["critical", "high", "medium", "low"]
CategoryStr = Literal["electrical", "plumbing", "hvac", "cleaning", "security", "other"]
TicketStatusStr = Literal[
    "waitlist", "open", "assigned", "in_progress", "paused", "blocked", "resolved", "closed"
]
ExportFormatStr = Literal["json", "csv"]


# ========== Request DTOs ==========

class TicketCreateRequest(BaseModel):
    """Request model for raising a ticket."""
    property_id: str = Field(..., min_length=1, description="Property the issue is at")
    title: str = Field(..., min_length=1, max_length=255, description="Short summary")
    description: str = Field(..., min_length=1, description="What is wrong")
    category: CategoryStr = Field(..., description="Issue category, decides the required skill")
    priority: PriorityStr = Field(default="medium", description="Ticket priority")


class TicketUpdateRequest(BaseModel):
    """
    Partial update.

    `status` drives a state machine transition; `assignee_id` on its own means
    "assign/reassign to this resolver". Title and description are plain edits.
    """
    status: Optional[TicketStatusStr] = None
    assignee_id: Optional[str] = Field(None, min_length=1)
    reason: Optional[str] = Field(None, max_length=500)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)

    @model_validator(mode="after")
    def validate_not_empty(self) -> "TicketUpdateRequest":
        if not any(v is not None for v in (self.status, self.assignee_id, self.title, self.description)):
            raise ValueError("Nothing to update")
        if self.assignee_id is not None and self.status not in (None, "assigned"):
            raise ValueError("assignee_id can only be combined with status 'assigned'")
        return self

    @property
    def target_status(self) -> Optional[str]:
        if self.status is not None:
            return self.status
        if self.assignee_id is not None:
            return "assigned"
        return None


class ExportQuery(BaseModel):
    """History export window."""
    start: datetime
    end: datetime
    format: ExportFormatStr = "json"
    property_id: Optional[str] = None

    @model_validator(mode="after")
    def validate_window(self) -> "ExportQuery":
        if self.end < self.start:
            raise ValueError("end cannot be before start")
        return self


# ========== Response DTOs ==========

class TicketResponse(BaseModel):
    """Response model for a ticket."""
    id: str
    display_code: str
    title: str
    description: str
    category: CategoryStr
    priority: PriorityStr
    status: TicketStatusStr
    property_id: str
    organization_id: str
    creator_id: str
    raised_by_role: str
    assignee_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    assigned_at: Optional[datetime] = None
    work_started_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    sla_paused: bool = False
    sla_pause_started_at: Optional[datetime] = None
    sla_accumulated_pause_seconds: float = 0.0
    pause_reason: Optional[str] = None
    block_reason: Optional[str] = None


class TicketActivityResponse(BaseModel):
    """One audit row."""
    id: str
    ticket_id: str
    actor_id: str
    action: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    created_at: datetime


class TicketActivityListResponse(BaseModel):
    ticket_id: str
    activity: List[TicketActivityResponse]


class TicketCommentRequest(BaseModel):
    """Request model for commenting on a ticket."""
    body: str = Field(..., min_length=1, max_length=5000, description="Comment text")
    is_internal: bool = Field(default=False, description="Admin-only note, ignored for other roles")


class TicketCommentResponse(BaseModel):
    id: str
    ticket_id: str
    author_id: str
    body: str
    is_internal: bool
    created_at: datetime


class TicketCommentListResponse(BaseModel):
    ticket_id: str
    comments: List[TicketCommentResponse]


class DeleteResponse(BaseModel):
    ticket_id: str
    hard: bool
    deleted: bool = True

"""
Dispatch Application DTOs
=========================
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class WaitlistDispatchResponse(BaseModel):
    property_id: str
    assigned: int
    remaining: int


class CandidateResponse(BaseModel):
    user_id: str
    checked_in: bool
    active_tickets: int
    checked_in_at: Optional[datetime] = None


class CandidateListResponse(BaseModel):
    """Ranked resolvers for a ticket, best first."""
    ticket_id: str
    candidates: List[CandidateResponse]

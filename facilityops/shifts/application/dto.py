"""
Shift Application DTOs
======================
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

ShiftActionStr = Literal["check_in", "check_out"]


class ShiftToggleRequest(BaseModel):
    property_id: str = Field(..., min_length=1)
    action: ShiftActionStr


class ShiftToggleResponse(BaseModel):
    is_checked_in: bool
    message: str


class ShiftStatusResponse(BaseModel):
    property_id: str
    is_checked_in: bool
    checked_in_at: Optional[datetime] = None

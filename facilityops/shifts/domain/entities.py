"""
Shift Domain Entities
=====================
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import uuid4


@dataclass
class ShiftRecord:
    """
    One attendance window of a user at a property.

    A record is open while checked_out_at is None. At most one open record
    exists per (user, property).
    """
    user_id: str
    property_id: str
    checked_in_at: datetime
    checked_out_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: str(uuid4()))

    def __post_init__(self):
        if self.checked_out_at is not None and self.checked_out_at < self.checked_in_at:
            raise ValueError("checked_out_at cannot be before checked_in_at")

    @property
    def checked_in(self) -> bool:
        return self.checked_out_at is None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.checked_out_at is None:
            return None
        return (self.checked_out_at - self.checked_in_at).total_seconds()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "property_id": self.property_id,
            "checked_in": self.checked_in,
            "checked_in_at": self.checked_in_at.isoformat(),
            "checked_out_at": self.checked_out_at.isoformat() if self.checked_out_at else None,
        }

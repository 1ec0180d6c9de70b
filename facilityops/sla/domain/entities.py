"""
SLA Domain Entities
====================

Derived SLA events. Breaches are not ticket transitions: they are detected
periodically by comparing a ticket's service clock against its threshold.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class SLABreach:
    """A ticket whose elapsed service time exceeded its threshold."""
    ticket_id: str
    display_code: str
    property_id: str
    priority: str
    category: str
    elapsed_service_seconds: float
    threshold_seconds: float
    detected_at: datetime

    @property
    def overdue_seconds(self) -> float:
        return max(0.0, self.elapsed_service_seconds - self.threshold_seconds)

    def to_dict(self) -> dict:
        return {
            "ticket_id": self.ticket_id,
            "display_code": self.display_code,
            "property_id": self.property_id,
            "priority": self.priority,
            "category": self.category,
            "elapsed_service_seconds": self.elapsed_service_seconds,
            "threshold_seconds": self.threshold_seconds,
            "overdue_seconds": self.overdue_seconds,
            "detected_at": self.detected_at.isoformat(),
        }

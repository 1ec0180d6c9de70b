"""
Shifts Infrastructure Layer
===========================
"""

from facilityops.shifts.infrastructure.models import ShiftRecordModel
from facilityops.shifts.infrastructure.repositories import SQLAlchemyShiftRepository
from facilityops.shifts.infrastructure.memory import InMemoryShiftRepository

__all__ = [
    "ShiftRecordModel",
    "SQLAlchemyShiftRepository",
    "InMemoryShiftRepository",
]

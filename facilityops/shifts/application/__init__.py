"""
Shifts Application Layer
========================
"""

from facilityops.shifts.application.repositories import IShiftRepository
from facilityops.shifts.application.dto import (
    ShiftStatusResponse,
    ShiftToggleRequest,
    ShiftToggleResponse,
)
from facilityops.shifts.application.services import IWaitlistReconciler, ShiftService

__all__ = [
    "IShiftRepository",
    "ShiftStatusResponse",
    "ShiftToggleRequest",
    "ShiftToggleResponse",
    "IWaitlistReconciler",
    "ShiftService",
]

"""
Shift Interfaces Layer
======================
"""

from facilityops.shifts.interfaces.controllers import router as shifts_router

__all__ = ["shifts_router"]

"""
Shifts Domain Layer
===================
"""

from facilityops.shifts.domain.entities import ShiftRecord

__all__ = ["ShiftRecord"]

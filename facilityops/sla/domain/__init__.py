"""
SLA Domain Layer
================

Domain layer for the SLA timer.

Contains:
- Value Objects: SLAConfig, SLAStatus
- Domain Services: SLACalculator (pause/resume, breach predicate, resolution time)
- Entities: SLABreach (derived, periodic)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from facilityops.sla.domain.entities import SLABreach
from facilityops.sla.domain.value_objects import (
    DEFAULT_THRESHOLD_HOURS,
    SLACalculator,
    SLAConfig,
    SLAStatus,
)

__all__ = [
    "SLABreach",
    "DEFAULT_THRESHOLD_HOURS",
    "SLACalculator",
    "SLAConfig",
    "SLAStatus",
]

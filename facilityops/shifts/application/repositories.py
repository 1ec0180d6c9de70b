"""
Shift Repository Interface
==========================
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, Optional

from facilityops.shifts.domain import ShiftRecord


class IShiftRepository(ABC):
    """Interface for attendance records."""

    @abstractmethod
    async def open_shift(self, record: ShiftRecord) -> bool:
        """Insert `record` unless an open record exists for its (user, property)."""

    @abstractmethod
    async def get_open(self, user_id: str, property_id: str) -> Optional[ShiftRecord]:
        """The most recent open record, if any."""

    @abstractmethod
    async def close_shift(self, record_id: str, checked_out_at: datetime) -> bool:
        """Close a record only if it is still open."""

    @abstractmethod
    async def open_check_ins(self, property_id: str, user_ids: Iterable[str]) -> Dict[str, datetime]:
        """checked_in_at of each user's open record at the property."""

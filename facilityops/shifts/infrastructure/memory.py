"""
Shift In-Memory Repository
==========================
"""

from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, Optional

from facilityops.infrastructure.memory import InMemoryStore
from facilityops.shifts.application.repositories import IShiftRepository
from facilityops.shifts.domain import ShiftRecord


class InMemoryShiftRepository(IShiftRepository):

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._rows = store.table("shift_records")

    def _open_records(self, user_id: str, property_id: str):
        return self._rows.where(
            lambda r: r.user_id == user_id and r.property_id == property_id and r.checked_in
        )

    async def open_shift(self, record: ShiftRecord) -> bool:
        await self._store.suspend()
        if self._open_records(record.user_id, record.property_id):
            return False
        self._rows.put(record.id, replace(record))
        return True

    async def get_open(self, user_id: str, property_id: str) -> Optional[ShiftRecord]:
        await self._store.suspend()
        records = self._open_records(user_id, property_id)
        if not records:
            return None
        return replace(max(records, key=lambda r: r.checked_in_at))

    async def close_shift(self, record_id: str, checked_out_at: datetime) -> bool:
        await self._store.suspend()
        current = self._rows.get(record_id)
        if current is None:
            return False
        return self._rows.compare_and_set(
            record_id,
            lambda r: r.checked_in,
            replace(current, checked_out_at=checked_out_at),
        )

    async def open_check_ins(self, property_id: str, user_ids: Iterable[str]) -> Dict[str, datetime]:
        await self._store.suspend()
        wanted = set(user_ids)
        return {
            r.user_id: r.checked_in_at
            for r in self._rows.where(lambda r: r.property_id == property_id and r.user_id in wanted and r.checked_in)
        }

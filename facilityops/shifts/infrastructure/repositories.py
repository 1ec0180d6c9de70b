"""
Shift Infrastructure Repositories
=================================
"""

from datetime import datetime
from typing import Dict, Iterable, Optional

from sqlalchemy import String, exists, literal, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from facilityops.infrastructure.database import UTCDateTime
from facilityops.shifts.application.repositories import IShiftRepository
from facilityops.shifts.domain import ShiftRecord
from facilityops.shifts.infrastructure.models import ShiftRecordModel
from facilityops.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class SQLAlchemyShiftRepository(IShiftRepository):
    """Attendance records with async SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def open_shift(self, record: ShiftRecord) -> bool:
        m = ShiftRecordModel
        already_open = select(m.id).where(
            m.user_id == record.user_id,
            m.property_id == record.property_id,
            m.checked_out_at.is_(None),
        )
        values = select(
            literal(record.id, String),
            literal(record.user_id, String),
            literal(record.property_id, String),
            literal(record.checked_in_at, UTCDateTime()),
        ).where(~exists(already_open))
        stmt = m.__table__.insert().from_select(
            ["id", "user_id", "property_id", "checked_in_at"], values
        )
        try:
            result = await self._session.execute(stmt)
        except IntegrityError:
            # Lost the race to a concurrent check-in; the partial unique index held.
            # The statement is the only write of a check-in request.
            await self._session.rollback()
            logger.info(
                "Concurrent check-in rejected",
                extra={"user_id": record.user_id, "property_id": record.property_id}
            )
            return False
        return result.rowcount == 1

    async def get_open(self, user_id: str, property_id: str) -> Optional[ShiftRecord]:
        stmt = (
            select(ShiftRecordModel)
            .where(
                ShiftRecordModel.user_id == user_id,
                ShiftRecordModel.property_id == property_id,
                ShiftRecordModel.checked_out_at.is_(None),
            )
            .order_by(ShiftRecordModel.checked_in_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        model = (await self._session.execute(stmt)).scalar_one_or_none()
        if model is None:
            return None
        return ShiftRecord(
            id=model.id,
            user_id=model.user_id,
            property_id=model.property_id,
            checked_in_at=model.checked_in_at,
            checked_out_at=model.checked_out_at,
        )

    async def close_shift(self, record_id: str, checked_out_at: datetime) -> bool:
        result = await self._session.execute(
            update(ShiftRecordModel)
            .where(ShiftRecordModel.id == record_id, ShiftRecordModel.checked_out_at.is_(None))
            .values(checked_out_at=checked_out_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def open_check_ins(self, property_id: str, user_ids: Iterable[str]) -> Dict[str, datetime]:
        ids = list(user_ids)
        if not ids:
            return {}
        stmt = select(ShiftRecordModel.user_id, ShiftRecordModel.checked_in_at).where(
            ShiftRecordModel.property_id == property_id,
            ShiftRecordModel.user_id.in_(ids),
            ShiftRecordModel.checked_out_at.is_(None),
        )
        return {user_id: checked_in_at for user_id, checked_in_at in (await self._session.execute(stmt)).all()}

"""
Notification Infrastructure Repositories
========================================

SQLAlchemy implementation of INotificationRepository.
"""

import hashlib
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, String, Text, delete, exists, func, insert, literal, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from facilityops.infrastructure.database import UTCDateTime
from facilityops.notifications.application.repositories import INotificationRepository
from facilityops.notifications.domain import Notification
from facilityops.notifications.infrastructure.models import NotificationModel


def dedup_lock_id(notification: Notification) -> int:
    """Signed 64-bit advisory lock id for a (recipient, type, ticket) triple."""
    key = "|".join((notification.recipient_id, notification.type.value, notification.ticket_id or ""))
    digest = hashlib.blake2b(key.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


class SQLAlchemyNotificationRepository(INotificationRepository):
    """Persists notifications with async SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def insert_unless_duplicate(self, notification: Notification, window_start: datetime) -> bool:
        """
        INSERT ... SELECT ... WHERE NOT EXISTS, so the check and write are one statement.

        On PostgreSQL a transaction-scoped advisory lock on the dedup key
        serialises concurrent writers, so a READ COMMITTED peer sees the
        first row once it commits.
        """
        m = NotificationModel
        if self._session.get_bind().dialect.name == "postgresql":
            await self._session.execute(select(func.pg_advisory_xact_lock(dedup_lock_id(notification))))
        same_ticket = (
            m.ticket_id.is_(None) if notification.ticket_id is None else m.ticket_id == notification.ticket_id
        )
        duplicate = (
            select(m.id)
            .where(
                m.recipient_id == notification.recipient_id,
                m.type == notification.type.value,
                same_ticket,
                m.is_read.is_(False),
                m.created_at >= window_start,
            )
        )
        values = select(
            literal(notification.id, String),
            literal(notification.recipient_id, String),
            literal(notification.type.value, String),
            literal(notification.title, String),
            literal(notification.message, Text),
            literal(notification.ticket_id, String),
            literal(False, Boolean),
            literal(notification.created_at, UTCDateTime()),
        ).where(~exists(duplicate))

        stmt = insert(m).from_select(
            ["id", "recipient_id", "type", "title", "message", "ticket_id", "is_read", "created_at"],
            values,
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return result.rowcount == 1

    async def list_for_recipient(
        self,
        recipient_id: str,
        limit: int = 50,
        unread_only: bool = False
    ) -> List[Notification]:
        stmt = select(NotificationModel).where(NotificationModel.recipient_id == recipient_id)
        if unread_only:
            stmt = stmt.where(NotificationModel.is_read.is_(False))
        stmt = stmt.order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc()).limit(limit)
        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def count_unread(self, recipient_id: str) -> int:
        stmt = select(func.count()).select_from(NotificationModel).where(
            NotificationModel.recipient_id == recipient_id,
            NotificationModel.is_read.is_(False),
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def mark_read(self, recipient_id: str, notification_id: str, read_at: datetime) -> Optional[Notification]:
        await self._session.execute(
            update(NotificationModel)
            .where(
                NotificationModel.id == notification_id,
                NotificationModel.recipient_id == recipient_id,
                NotificationModel.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
        )
        stmt = select(NotificationModel).where(
            NotificationModel.id == notification_id,
            NotificationModel.recipient_id == recipient_id,
        ).execution_options(populate_existing=True)
        model = (await self._session.execute(stmt)).scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def mark_all_read(self, recipient_id: str, read_at: datetime) -> int:
        result = await self._session.execute(
            update(NotificationModel)
            .where(
                NotificationModel.recipient_id == recipient_id,
                NotificationModel.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
        )
        return result.rowcount

    async def delete_for_ticket(self, ticket_id: str) -> int:
        result = await self._session.execute(
            delete(NotificationModel).where(NotificationModel.ticket_id == ticket_id)
        )
        return result.rowcount

    @staticmethod
    def _to_domain(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            recipient_id=model.recipient_id,
            type=model.type,
            title=model.title,
            message=model.message,
            ticket_id=model.ticket_id,
            is_read=model.is_read,
            read_at=model.read_at,
            created_at=model.created_at,
        )

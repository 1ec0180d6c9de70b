"""
Ticket Infrastructure Repositories
==================================

Concrete implementations of the ticket repository interfaces using SQLAlchemy.

Status changes go through `compare_and_update`, a single
UPDATE ... WHERE status = :observed AND updated_at = :observed statement whose
rowcount tells whether this writer won.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from facilityops.config import ACTIVE_STATUSES, TicketStatus
from facilityops.tickets.application.services import (
    ITicketActivityRepository,
    ITicketCommentRepository,
    ITicketRepository,
    TicketFilter,
)
from facilityops.tickets.domain import Ticket, TicketActivity, TicketComment
from facilityops.tickets.infrastructure.models import TicketActivityModel, TicketCommentModel, TicketModel

_MUTABLE_COLUMNS = (
    "title", "description", "status", "assignee_id", "updated_at", "assigned_at",
    "work_started_at", "resolved_at", "deleted_at", "sla_paused", "sla_pause_started_at",
    "sla_accumulated_pause_seconds", "pause_reason", "block_reason",
)


def _column_value(ticket: Ticket, name: str):
    value = getattr(ticket, name)
    return getattr(value, "value", value)


class SQLAlchemyTicketRepository(ITicketRepository):
    """
    SQLAlchemy implementation of ticket repository.

    Handles persistence of Ticket entities using async SQLAlchemy.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, ticket_id: str, include_deleted: bool = False) -> Optional[Ticket]:
        stmt = select(TicketModel).where(TicketModel.id == ticket_id).execution_options(populate_existing=True)
        if not include_deleted:
            stmt = stmt.where(TicketModel.deleted_at.is_(None))
        model = (await self._session.execute(stmt)).scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def add(self, ticket: Ticket) -> Ticket:
        model = TicketModel(
            id=ticket.id,
            display_code=ticket.display_code,
            category=ticket.category.value,
            priority=ticket.priority.value,
            property_id=ticket.property_id,
            organization_id=ticket.organization_id,
            creator_id=ticket.creator_id,
            raised_by_role=ticket.raised_by_role,
            created_at=ticket.created_at,
            **{name: _column_value(ticket, name) for name in _MUTABLE_COLUMNS},
        )
        self._session.add(model)
        await self._session.flush()
        return ticket

    async def compare_and_update(
        self,
        ticket: Ticket,
        expected_status: TicketStatus,
        expected_updated_at: datetime
    ) -> bool:
        stmt = (
            update(TicketModel)
            .where(
                TicketModel.id == ticket.id,
                TicketModel.status == TicketStatus(expected_status).value,
                TicketModel.updated_at == expected_updated_at,
                TicketModel.deleted_at.is_(None),
            )
            .values({name: _column_value(ticket, name) for name in _MUTABLE_COLUMNS})
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def delete(self, ticket_id: str) -> bool:
        result = await self._session.execute(
            delete(TicketModel).where(TicketModel.id == ticket_id).execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list(self, filters: TicketFilter, limit: int = 100, offset: int = 0) -> List[Ticket]:
        stmt = select(TicketModel)

        # Apply filters
        conditions = []
        if not filters.include_deleted:
            conditions.append(TicketModel.deleted_at.is_(None))
        if filters.property_ids is not None:
            conditions.append(TicketModel.property_id.in_(list(filters.property_ids)))
        if filters.statuses is not None:
            conditions.append(TicketModel.status.in_([TicketStatus(s).value for s in filters.statuses]))
        if filters.creator_id is not None:
            conditions.append(TicketModel.creator_id == filters.creator_id)
        if filters.assignee_id is not None:
            conditions.append(TicketModel.assignee_id == filters.assignee_id)
        if filters.created_from is not None:
            conditions.append(TicketModel.created_at >= filters.created_from)
        if filters.created_to is not None:
            conditions.append(TicketModel.created_at <= filters.created_to)
        if filters.resolved_before is not None:
            conditions.append(TicketModel.resolved_at <= filters.resolved_before)

        if conditions:
            stmt = stmt.where(*conditions)

        if filters.oldest_first:
            stmt = stmt.order_by(TicketModel.created_at.asc(), TicketModel.id.asc())
        else:
            stmt = stmt.order_by(TicketModel.created_at.desc(), TicketModel.id.desc())
        stmt = stmt.limit(limit).offset(offset).execution_options(populate_existing=True)

        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def count_by_status(self, property_ids: Sequence[str]) -> Dict[TicketStatus, int]:
        stmt = (
            select(TicketModel.status, func.count())
            .where(TicketModel.property_id.in_(list(property_ids)), TicketModel.deleted_at.is_(None))
            .group_by(TicketModel.status)
        )
        rows = (await self._session.execute(stmt)).all()
        return {TicketStatus(status): count for status, count in rows}

    async def count_active_by_assignee(self, assignee_ids: Iterable[str]) -> Dict[str, int]:
        ids = list(assignee_ids)
        counts = {user_id: 0 for user_id in ids}
        if not ids:
            return counts
        stmt = (
            select(TicketModel.assignee_id, func.count())
            .where(
                TicketModel.assignee_id.in_(ids),
                TicketModel.status.in_([s.value for s in ACTIVE_STATUSES]),
                TicketModel.deleted_at.is_(None),
            )
            .group_by(TicketModel.assignee_id)
        )
        for assignee_id, count in (await self._session.execute(stmt)).all():
            counts[assignee_id] = count
        return counts

    @staticmethod
    def _to_domain(model: TicketModel) -> Ticket:
        return Ticket(
            id=model.id,
            display_code=model.display_code,
            title=model.title,
            description=model.description,
            category=model.category,
            priority=model.priority,
            status=model.status,
            property_id=model.property_id,
            organization_id=model.organization_id,
            creator_id=model.creator_id,
            raised_by_role=model.raised_by_role,
            created_at=model.created_at,
            updated_at=model.updated_at,
            assignee_id=model.assignee_id,
            assigned_at=model.assigned_at,
            work_started_at=model.work_started_at,
            resolved_at=model.resolved_at,
            sla_paused=model.sla_paused,
            sla_pause_started_at=model.sla_pause_started_at,
            sla_accumulated_pause_seconds=model.sla_accumulated_pause_seconds or 0.0,
            pause_reason=model.pause_reason,
            block_reason=model.block_reason,
            deleted_at=model.deleted_at,
        )


class SQLAlchemyTicketActivityRepository(ITicketActivityRepository):
    """Append-only audit trail."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, activity: TicketActivity) -> None:
        self._session.add(TicketActivityModel(
            id=activity.id,
            ticket_id=activity.ticket_id,
            actor_id=activity.actor_id,
            action=activity.action,
            old_value=activity.old_value,
            new_value=activity.new_value,
            created_at=activity.created_at,
        ))
        await self._session.flush()

    async def list_for_ticket(self, ticket_id: str) -> List[TicketActivity]:
        stmt = (
            select(TicketActivityModel)
            .where(TicketActivityModel.ticket_id == ticket_id)
            .order_by(TicketActivityModel.created_at.asc(), TicketActivityModel.seq.asc())
        )
        models = (await self._session.execute(stmt)).scalars().all()
        return [
            TicketActivity(
                id=m.id,
                ticket_id=m.ticket_id,
                actor_id=m.actor_id,
                action=m.action,
                old_value=m.old_value,
                new_value=m.new_value,
                created_at=m.created_at,
            )
            for m in models
        ]

    async def delete_for_ticket(self, ticket_id: str) -> int:
        result = await self._session.execute(
            delete(TicketActivityModel).where(TicketActivityModel.ticket_id == ticket_id)
        )
        return result.rowcount


class SQLAlchemyTicketCommentRepository(ITicketCommentRepository):

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, comment: TicketComment) -> None:
        self._session.add(TicketCommentModel(
            id=comment.id,
            ticket_id=comment.ticket_id,
            author_id=comment.author_id,
            body=comment.body,
            is_internal=comment.is_internal,
            created_at=comment.created_at,
        ))
        await self._session.flush()

    async def list_for_ticket(self, ticket_id: str, include_internal: bool = False) -> List[TicketComment]:
        m = TicketCommentModel
        stmt = select(m).where(m.ticket_id == ticket_id)
        if not include_internal:
            stmt = stmt.where(m.is_internal.is_(False))
        stmt = stmt.order_by(m.created_at.asc(), m.seq.asc())
        return [
            TicketComment(
                id=row.id,
                ticket_id=row.ticket_id,
                author_id=row.author_id,
                body=row.body,
                is_internal=row.is_internal,
                created_at=row.created_at,
            )
            for row in (await self._session.execute(stmt)).scalars().all()
        ]

    async def delete_for_ticket(self, ticket_id: str) -> int:
        result = await self._session.execute(
            delete(TicketCommentModel).where(TicketCommentModel.ticket_id == ticket_id)
        )
        return result.rowcount

"""
Directory Infrastructure Repositories
=====================================

SQLAlchemy implementation of the directory lookups.
"""

from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from facilityops.directory.application import IDirectoryRepository
from facilityops.directory.domain import Property, Role, Skill, StaffMember
from facilityops.directory.infrastructure.models import (
    PropertyMembershipModel,
    PropertyModel,
    StaffMemberModel,
)


class SQLAlchemyDirectoryRepository(IDirectoryRepository):
    """Reads properties and memberships with async SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_property(self, property_id: str) -> Optional[Property]:
        model = await self._session.get(PropertyModel, property_id)
        if model is None:
            return None
        return Property(id=model.id, organization_id=model.organization_id, name=model.name)

    async def get_staff(self, user_id: str) -> Optional[StaffMember]:
        model = await self._session.get(StaffMemberModel, user_id)
        if model is None:
            return None
        stmt = select(PropertyMembershipModel.property_id).where(
            PropertyMembershipModel.user_id == user_id
        )
        property_ids = (await self._session.execute(stmt)).scalars().all()
        return self._to_domain(model, property_ids)

    async def list_staff(
        self,
        property_id: str,
        roles: Optional[Iterable[Role]] = None
    ) -> List[StaffMember]:
        stmt = (
            select(StaffMemberModel)
            .join(PropertyMembershipModel, PropertyMembershipModel.user_id == StaffMemberModel.user_id)
            .where(PropertyMembershipModel.property_id == property_id)
            .order_by(StaffMemberModel.user_id)
        )
        if roles is not None:
            stmt = stmt.where(StaffMemberModel.role.in_([Role(r).value for r in roles]))

        models = (await self._session.execute(stmt)).scalars().all()
        members = []
        for model in models:
            scope_stmt = select(PropertyMembershipModel.property_id).where(
                PropertyMembershipModel.user_id == model.user_id
            )
            property_ids = (await self._session.execute(scope_stmt)).scalars().all()
            members.append(self._to_domain(model, property_ids))
        return members

    async def add_property(self, prop: Property) -> None:
        """Seed helper for local runs and tests."""
        self._session.add(PropertyModel(id=prop.id, organization_id=prop.organization_id, name=prop.name))
        await self._session.flush()

    async def add_staff(self, member: StaffMember) -> None:
        """Seed helper for local runs and tests."""
        self._session.add(StaffMemberModel(
            user_id=member.user_id,
            role=member.role.value,
            full_name=member.full_name,
            skills=sorted(s.value for s in member.skills),
        ))
        for property_id in sorted(member.property_ids):
            self._session.add(PropertyMembershipModel(user_id=member.user_id, property_id=property_id))
        await self._session.flush()

    @staticmethod
    def _to_domain(model: StaffMemberModel, property_ids: Iterable[str]) -> StaffMember:
        return StaffMember(
            user_id=model.user_id,
            role=Role(model.role),
            property_ids=frozenset(property_ids),
            skills=frozenset(Skill(s) for s in model.skills or []),
            full_name=model.full_name,
        )

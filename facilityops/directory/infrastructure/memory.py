"""
Directory In-Memory Repository
==============================
"""

from typing import Iterable, List, Optional

from facilityops.directory.application import IDirectoryRepository
from facilityops.directory.domain import Property, Role, StaffMember
from facilityops.infrastructure.memory import InMemoryStore


class InMemoryDirectoryRepository(IDirectoryRepository):

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._properties = store.table("properties")
        self._staff = store.table("staff_members")

    async def get_property(self, property_id: str) -> Optional[Property]:
        await self._store.suspend()
        return self._properties.get(property_id)

    async def get_staff(self, user_id: str) -> Optional[StaffMember]:
        await self._store.suspend()
        return self._staff.get(user_id)

    async def list_staff(
        self,
        property_id: str,
        roles: Optional[Iterable[Role]] = None
    ) -> List[StaffMember]:
        await self._store.suspend()
        wanted = set(roles) if roles is not None else None
        members = self._staff.where(
            lambda m: m.serves(property_id) and (wanted is None or m.role in wanted)
        )
        return sorted(members, key=lambda m: m.user_id)

    async def add_property(self, prop: Property) -> None:
        self._properties.put(prop.id, prop)

    async def add_staff(self, member: StaffMember) -> None:
        self._staff.put(member.user_id, member)

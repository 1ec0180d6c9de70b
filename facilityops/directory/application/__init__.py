"""
Directory Application Layer
===========================

Repository interface consumed by dispatch, notifications and tickets.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from facilityops.directory.domain import Property, Role, StaffMember


class IDirectoryRepository(ABC):
    """Interface for property and membership lookups."""

    @abstractmethod
    async def get_property(self, property_id: str) -> Optional[Property]:
        """Get a property by ID."""

    @abstractmethod
    async def get_staff(self, user_id: str) -> Optional[StaffMember]:
        """Get a staff membership by user ID."""

    @abstractmethod
    async def list_staff(
        self,
        property_id: str,
        roles: Optional[Iterable[Role]] = None
    ) -> List[StaffMember]:
        """List members scoped to a property, optionally filtered by role."""


__all__ = ["IDirectoryRepository"]

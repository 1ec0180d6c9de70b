"""
Directory Domain Entities
=========================

Pure Python entities for properties, staff and request actors.
"""

from dataclasses import dataclass, field
from typing import FrozenSet

from facilityops.directory.domain.roles import ROLES, Capability, Role, Skill


@dataclass(frozen=True)
class Actor:
    """The authenticated user issuing a request."""
    user_id: str
    role: Role

    def can(self, capability: Capability) -> bool:
        return ROLES.grants(self.role, capability)


SYSTEM_ACTOR = Actor(user_id="system", role=Role.SYSTEM)


@dataclass(frozen=True)
class Property:
    """A managed property belonging to one organization."""
    id: str
    organization_id: str
    name: str


@dataclass(frozen=True)
class StaffMember:
    """A user's membership: role, property scope and skill tags."""
    user_id: str
    role: Role
    property_ids: FrozenSet[str] = field(default_factory=frozenset)
    skills: FrozenSet[Skill] = field(default_factory=frozenset)
    full_name: str = ""

    def serves(self, property_id: str) -> bool:
        return property_id in self.property_ids

    def covers(self, skill: Skill) -> bool:
        """General resolvers form the fallback pool for every category."""
        return skill in self.skills or Skill.GENERAL in self.skills

"""
Directory Domain Layer
======================

Contains:
- Roles: closed role set with validated capability sets, skills, category skills
- Entities: Actor, Property, StaffMember
"""

from facilityops.directory.domain.roles import (
    ROLES,
    CATEGORY_SKILLS,
    Capability,
    Role,
    RoleDefinition,
    RoleRegistry,
    Skill,
    required_skill,
)
from facilityops.directory.domain.entities import (
    SYSTEM_ACTOR,
    Actor,
    Property,
    StaffMember,
)

__all__ = [
    "ROLES",
    "CATEGORY_SKILLS",
    "Capability",
    "Role",
    "RoleDefinition",
    "RoleRegistry",
    "Skill",
    "required_skill",
    "SYSTEM_ACTOR",
    "Actor",
    "Property",
    "StaffMember",
]

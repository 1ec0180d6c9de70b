"""
Roles, Capabilities and Skills
==============================

Roles are a closed set. Each role carries an explicit, enumerable capability
set that is validated when the registry is built, so a missing or misspelled
entry fails at import time rather than silently denying an action later.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping

from facilityops.config import TicketCategory


class Role(str, Enum):
    """Actor roles."""
    TENANT = "tenant"
    RESOLVER = "resolver"
    PROPERTY_ADMIN = "property_admin"
    ORG_ADMIN = "org_admin"
    SYSTEM = "system"


class Capability(str, Enum):
    """Actions a role may be granted."""
    RAISE_TICKET = "raise_ticket"
    CLAIM_TICKET = "claim_ticket"
    DISPATCH = "dispatch"
    RESOLVE_ANY = "resolve_any"
    CLOSE = "close"
    REOPEN = "reopen"
    OVERRIDE_STATUS = "override_status"
    DELETE_SOFT = "delete_soft"
    DELETE_HARD = "delete_hard"
    VIEW_PROPERTY = "view_property"
    WATCH_SLA = "watch_sla"
    CHECK_IN = "check_in"


class Skill(str, Enum):
    """Resolver skill tags."""
    TECHNICAL = "technical"
    PLUMBING = "plumbing"
    SOFT_SERVICES = "soft_services"
    VENDOR = "vendor"
    GENERAL = "general"


@dataclass(frozen=True)
class RoleDefinition:
    """A role and the capabilities it grants."""
    role: Role
    capabilities: FrozenSet[Capability]

    def __post_init__(self):
        if not isinstance(self.role, Role):
            raise ValueError(f"Unknown role: {self.role!r}")
        if not self.capabilities:
            raise ValueError(f"Role {self.role.value} must grant at least one capability")
        unknown = [c for c in self.capabilities if not isinstance(c, Capability)]
        if unknown:
            raise ValueError(f"Role {self.role.value} has unknown capabilities: {unknown}")


class RoleRegistry:
    """Complete, validated mapping of every Role to its definition."""

    def __init__(self, definitions: Iterable[RoleDefinition]):
        by_role: Dict[Role, RoleDefinition] = {}
        for definition in definitions:
            if definition.role in by_role:
                raise ValueError(f"Role {definition.role.value} defined twice")
            by_role[definition.role] = definition

        missing = set(Role) - set(by_role)
        if missing:
            raise ValueError(f"Roles without a definition: {sorted(r.value for r in missing)}")
        self._by_role = by_role

    def capabilities_of(self, role: Role) -> FrozenSet[Capability]:
        return self._by_role[role].capabilities

    def grants(self, role: Role, capability: Capability) -> bool:
        return capability in self._by_role[role].capabilities


_ADMIN_CAPABILITIES = frozenset({
    Capability.RAISE_TICKET,
    Capability.DISPATCH,
    Capability.RESOLVE_ANY,
    Capability.CLOSE,
    Capability.REOPEN,
    Capability.OVERRIDE_STATUS,
    Capability.DELETE_SOFT,
    Capability.VIEW_PROPERTY,
    Capability.WATCH_SLA,
})

ROLES = RoleRegistry([
    RoleDefinition(Role.TENANT, frozenset({Capability.RAISE_TICKET})),
    RoleDefinition(Role.RESOLVER, frozenset({
        Capability.RAISE_TICKET,
        Capability.CLAIM_TICKET,
        Capability.CHECK_IN,
    })),
    RoleDefinition(Role.PROPERTY_ADMIN, _ADMIN_CAPABILITIES),
    RoleDefinition(Role.ORG_ADMIN, _ADMIN_CAPABILITIES | {Capability.DELETE_HARD}),
    RoleDefinition(Role.SYSTEM, frozenset({Capability.DISPATCH, Capability.CLOSE})),
])


def _validate_category_skills(mapping: Mapping[TicketCategory, Skill]) -> Dict[TicketCategory, Skill]:
    missing = set(TicketCategory) - set(mapping)
    if missing:
        raise ValueError(f"Categories without a required skill: {sorted(c.value for c in missing)}")
    return dict(mapping)


CATEGORY_SKILLS = _validate_category_skills({
    TicketCategory.ELECTRICAL: Skill.TECHNICAL,
    TicketCategory.HVAC: Skill.TECHNICAL,
    TicketCategory.PLUMBING: Skill.PLUMBING,
    TicketCategory.CLEANING: Skill.SOFT_SERVICES,
    TicketCategory.SECURITY: Skill.VENDOR,
    TicketCategory.OTHER: Skill.GENERAL,
})


def required_skill(category: TicketCategory) -> Skill:
    """Skill a resolver needs to take a ticket of this category."""
    return CATEGORY_SKILLS[TicketCategory(category)]

"""Role registry and skill coverage."""

import pytest

from facilityops.config import TicketCategory
from facilityops.directory.domain import (
    ROLES, SYSTEM_ACTOR, Actor, Capability, Role, Skill, StaffMember, required_skill,
)
from facilityops.directory.domain.roles import RoleDefinition, RoleRegistry


def test_every_role_has_capabilities():
    for role in Role:
        assert ROLES.capabilities_of(role)


def test_capability_matrix():
    assert Actor("t", Role.TENANT).can(Capability.RAISE_TICKET)
    assert not Actor("t", Role.TENANT).can(Capability.CLAIM_TICKET)
    assert Actor("r", Role.RESOLVER).can(Capability.CHECK_IN)
    assert not Actor("r", Role.RESOLVER).can(Capability.DISPATCH)
    assert not Actor("a", Role.PROPERTY_ADMIN).can(Capability.DELETE_HARD)
    assert Actor("o", Role.ORG_ADMIN).can(Capability.DELETE_HARD)
    assert SYSTEM_ACTOR.can(Capability.CLOSE)
    assert not SYSTEM_ACTOR.can(Capability.RAISE_TICKET)


def test_registry_rejects_incomplete_or_duplicate_definitions():
    full = [RoleDefinition(role, frozenset({Capability.RAISE_TICKET})) for role in Role]

    with pytest.raises(ValueError):
        RoleRegistry(full[:-1])
    with pytest.raises(ValueError):
        RoleRegistry(full + [full[0]])


def test_definition_rejects_empty_or_unknown_capabilities():
    with pytest.raises(ValueError):
        RoleDefinition(Role.TENANT, frozenset())
    with pytest.raises(ValueError):
        RoleDefinition(Role.TENANT, frozenset({"raise_ticket"}))
    with pytest.raises(ValueError):
        RoleDefinition("janitor", frozenset({Capability.RAISE_TICKET}))


def test_every_category_needs_a_skill():
    assert required_skill(TicketCategory.PLUMBING) == Skill.PLUMBING
    assert required_skill("security") == Skill.VENDOR
    for category in TicketCategory:
        assert isinstance(required_skill(category), Skill)


def test_general_resolvers_cover_everything():
    generalist = StaffMember("g", Role.RESOLVER, frozenset({"p"}), frozenset({Skill.GENERAL}))
    specialist = StaffMember("s", Role.RESOLVER, frozenset({"p"}), frozenset({Skill.PLUMBING}))

    assert all(generalist.covers(skill) for skill in Skill)
    assert specialist.covers(Skill.PLUMBING)
    assert not specialist.covers(Skill.TECHNICAL)

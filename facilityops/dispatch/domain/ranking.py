"""
Resolver Ranking
================

Pure ranking of eligible resolvers. Order, most preferred first:

1. checked in at the property
2. fewest active tickets (assigned, in progress, paused, blocked)
3. earliest check-in today (UTC); older check-ins sort after today's
4. user id, so equal candidates always come out in the same order
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from facilityops.directory.domain import Role, Skill, StaffMember


@dataclass(frozen=True)
class Candidate:
    """A resolver eligible for a ticket, with the signals used to rank them."""
    user_id: str
    checked_in: bool
    active_tickets: int
    checked_in_at: Optional[datetime] = None

    def sort_key(self, today: date) -> tuple:
        if self.checked_in_at is not None and self.checked_in_at.date() == today:
            check_in_rank = self.checked_in_at.timestamp()
        else:
            check_in_rank = float("inf")
        return (not self.checked_in, self.active_tickets, check_in_rank, self.user_id)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "checked_in": self.checked_in,
            "active_tickets": self.active_tickets,
            "checked_in_at": self.checked_in_at.isoformat() if self.checked_in_at else None,
        }


def eligible(members: Iterable[StaffMember], property_id: str, skill: Skill) -> List[StaffMember]:
    """Resolvers serving the property whose skills cover the requirement."""
    return [
        m for m in members
        if m.role == Role.RESOLVER and m.serves(property_id) and m.covers(skill)
    ]


def rank_candidates(
    members: Iterable[StaffMember],
    check_ins: Dict[str, datetime],
    loads: Dict[str, int],
    now: datetime,
) -> List[Candidate]:
    """Rank already-filtered members; deterministic for identical inputs."""
    candidates = [
        Candidate(
            user_id=m.user_id,
            checked_in=m.user_id in check_ins,
            active_tickets=loads.get(m.user_id, 0),
            checked_in_at=check_ins.get(m.user_id),
        )
        for m in members
    ]
    today = now.date()
    return sorted(candidates, key=lambda c: c.sort_key(today))

"""
Dispatch Domain Layer
=====================
"""

from facilityops.dispatch.domain.ranking import Candidate, eligible, rank_candidates

__all__ = ["Candidate", "eligible", "rank_candidates"]

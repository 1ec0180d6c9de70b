"""
Dispatch Application Layer
==========================
"""

from facilityops.dispatch.application.dto import (
    CandidateListResponse,
    CandidateResponse,
    WaitlistDispatchResponse,
)
from facilityops.dispatch.application.services import DispatchService, ResolverSelector

__all__ = [
    "CandidateListResponse",
    "CandidateResponse",
    "WaitlistDispatchResponse",
    "DispatchService",
    "ResolverSelector",
]

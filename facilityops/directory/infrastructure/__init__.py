"""
Directory Infrastructure Layer
==============================

- Models: SQLAlchemy ORM models
- Repositories: SQL and in-memory implementations of IDirectoryRepository
"""

from facilityops.directory.infrastructure.models import (
    PropertyModel,
    StaffMemberModel,
    PropertyMembershipModel,
)
from facilityops.directory.infrastructure.repositories import SQLAlchemyDirectoryRepository
from facilityops.directory.infrastructure.memory import InMemoryDirectoryRepository

__all__ = [
    "PropertyModel",
    "StaffMemberModel",
    "PropertyMembershipModel",
    "SQLAlchemyDirectoryRepository",
    "InMemoryDirectoryRepository",
]

"""
Directory Infrastructure Models
===============================

SQLAlchemy ORM models for properties and staff memberships.
"""

from typing import List

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from facilityops.infrastructure.database import Base


class PropertyModel(Base):
    """Maps to the 'properties' table (owned by the admin surface)."""
    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    organization_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class StaffMemberModel(Base):
    """Maps to the 'staff_members' table."""
    __tablename__ = "staff_members"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    skills: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)


class PropertyMembershipModel(Base):
    """Maps to the 'property_memberships' table: a member's property scope."""
    __tablename__ = "property_memberships"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("staff_members.user_id", ondelete="CASCADE"), primary_key=True
    )
    property_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("properties.id", ondelete="CASCADE"), primary_key=True, index=True
    )

"""
Shift Infrastructure Models
===========================
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from facilityops.infrastructure.database import Base, UTCDateTime


class ShiftRecordModel(Base):
    """
    Database model for ShiftRecord entity.

    Maps to the 'shift_records' table. The partial unique index enforces a
    single open record per (user, property).
    """
    __tablename__ = "shift_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    property_id: Mapped[str] = mapped_column(String(36), nullable=False)
    checked_in_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    checked_out_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index(
            "uq_shift_records_open",
            "user_id",
            "property_id",
            unique=True,
            postgresql_where=checked_out_at.is_(None),
            sqlite_where=checked_out_at.is_(None),
        ),
        Index("ix_shift_records_property_open", "property_id", "checked_out_at"),
    )

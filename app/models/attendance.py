"""Attendance ledger: one row per (enrollment-session, class date)."""

import datetime as dt
import enum
from typing import TYPE_CHECKING, Optional, Sequence
from uuid import uuid4

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.enrollment import EnrollmentSession


class AttendanceStatus(str, enum.Enum):
    """Status of attendance."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"


class AttendanceRecord(Base, TimestampMixin):
    """Attendance mark for one enrollment-session on one class date."""

    __tablename__ = "attendance_records"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    enrollment_session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("enrollment_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Denormalised from the enrollment-session for per-class aggregation
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sessions.id"), nullable=False, index=True
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[AttendanceStatus] = mapped_column(
        Enum(AttendanceStatus, native_enum=False,
             values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    marked_by: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    marked_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    enrollment_session: Mapped["EnrollmentSession"] = relationship(
        "EnrollmentSession"
    )

    __table_args__ = (
        UniqueConstraint(
            "enrollment_session_id",
            "date",
            name="uq_attendance_enrollment_session_date",
        ),
        Index("idx_attendance_session_date", "session_id", "date"),
    )

    @classmethod
    async def get_for_date(
        cls, db_session: AsyncSession, enrollment_session_id: str, on_date: dt.date
    ) -> Optional["AttendanceRecord"]:
        result = await db_session.execute(
            select(cls).where(
                cls.enrollment_session_id == enrollment_session_id,
                cls.date == on_date,
            )
        )
        return result.scalars().first()

    @classmethod
    async def get_by_session_and_date(
        cls, db_session: AsyncSession, session_id: str, on_date: dt.date
    ) -> dict[str, "AttendanceRecord"]:
        """Marks for one class date, keyed by enrollment-session id."""
        result = await db_session.execute(
            select(cls).where(cls.session_id == session_id, cls.date == on_date)
        )
        return {r.enrollment_session_id: r for r in result.scalars().all()}

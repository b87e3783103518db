"""Cancellation-of-occurrence requests."""

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
    Text,
    select,
    text,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column, relationship, selectinload

from core.db import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.enrollment import EnrollmentSession


class CancellationStatus(str, enum.Enum):
    """Review state of a cancellation request."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    def can_transition(self, target: "CancellationStatus") -> bool:
        return target in CANCELLATION_TRANSITIONS[self]


CANCELLATION_TRANSITIONS = {
    CancellationStatus.PENDING: {CancellationStatus.ACCEPTED, CancellationStatus.REJECTED},
    CancellationStatus.ACCEPTED: set(),
    CancellationStatus.REJECTED: set(),
}

OPEN_STATUS_CLAUSE = "status IN ('pending', 'accepted')"


class CancellationRequest(Base, TimestampMixin):
    """A customer's request to be excused from one class date."""

    __tablename__ = "cancellation_requests"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    enrollment_session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("enrollment_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    # Storage key of the uploaded medical certificate or other evidence
    evidence_ref: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[CancellationStatus] = mapped_column(
        Enum(CancellationStatus, native_enum=False,
             values_callable=lambda x: [e.value for e in x]),
        default=CancellationStatus.PENDING,
        nullable=False,
        index=True,
    )
    reject_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    requested_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    reviewed_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reviewed_by: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )

    enrollment_session: Mapped["EnrollmentSession"] = relationship(
        "EnrollmentSession"
    )

    __table_args__ = (
        # At most one open (pending or accepted) request per date
        Index(
            "uq_cancellation_open_date",
            "enrollment_session_id",
            "date",
            unique=True,
            sqlite_where=text(OPEN_STATUS_CLAUSE),
            postgresql_where=text(OPEN_STATUS_CLAUSE),
        ),
    )

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, id: str
    ) -> Optional["CancellationRequest"]:
        from app.models.enrollment import Enrollment, EnrollmentSession

        result = await db_session.execute(
            select(cls)
            .options(
                selectinload(cls.enrollment_session)
                .selectinload(EnrollmentSession.enrollment)
                .selectinload(Enrollment.customer)
            )
            .where(cls.id == id)
            # Reviews change status with bulk UPDATE statements
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @classmethod
    async def get_open_for_dates(
        cls,
        db_session: AsyncSession,
        enrollment_session_id: str,
        dates: Sequence[dt.date],
    ) -> Sequence["CancellationRequest"]:
        """Pending or accepted requests covering any of ``dates``."""
        result = await db_session.execute(
            select(cls).where(
                cls.enrollment_session_id == enrollment_session_id,
                cls.date.in_(list(dates)),
                cls.status.in_([CancellationStatus.PENDING, CancellationStatus.ACCEPTED]),
            )
        )
        return result.scalars().all()

    @classmethod
    async def get_by_status(
        cls,
        db_session: AsyncSession,
        status: CancellationStatus = CancellationStatus.PENDING,
        skip: int = 0,
        limit: int = 50,
    ) -> Sequence["CancellationRequest"]:
        result = await db_session.execute(
            select(cls)
            .where(cls.status == status)
            .order_by(cls.date, cls.requested_at)
            .offset(skip)
            .limit(limit)
        )
        return result.scalars().all()

    @classmethod
    async def get_accepted_dates(
        cls,
        db_session: AsyncSession,
        enrollment_session_ids: Sequence[str],
        start: dt.date,
        end: dt.date,
    ) -> set[tuple[str, dt.date]]:
        """(enrollment_session_id, date) pairs excused by an accepted request."""
        if not enrollment_session_ids:
            return set()
        result = await db_session.execute(
            select(cls.enrollment_session_id, cls.date).where(
                cls.enrollment_session_id.in_(list(enrollment_session_ids)),
                cls.status == CancellationStatus.ACCEPTED,
                cls.date >= start,
                cls.date <= end,
            )
        )
        return {(row[0], row[1]) for row in result.all()}

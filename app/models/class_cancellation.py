"""Class occurrences called off by staff (public holiday, instructor away)."""

import datetime as dt
from typing import Optional, Sequence, Set
from uuid import uuid4

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.class_session import ClassSession
from core.db import Base, TimestampMixin


class SessionCancellation(Base, TimestampMixin):
    """One dated occurrence of a session that will not run."""

    __tablename__ = "session_cancellations"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    cancelled_by: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=True
    )
    cancelled_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    session: Mapped["ClassSession"] = relationship("ClassSession", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("session_id", "date", name="uq_session_cancellation_date"),
    )

    @classmethod
    async def get_for_session(
        cls, db_session: AsyncSession, session_id: str
    ) -> Sequence["SessionCancellation"]:
        result = await db_session.execute(
            select(cls).where(cls.session_id == session_id).order_by(cls.date)
        )
        return result.scalars().all()

    @classmethod
    async def get_for_date(
        cls, db_session: AsyncSession, session_id: str, on_date: dt.date
    ) -> Optional["SessionCancellation"]:
        result = await db_session.execute(
            select(cls).where(cls.session_id == session_id, cls.date == on_date)
        )
        return result.scalars().first()

    @classmethod
    async def is_cancelled(
        cls, db_session: AsyncSession, session_id: str, on_date: dt.date
    ) -> bool:
        result = await db_session.execute(
            select(cls.id).where(cls.session_id == session_id, cls.date == on_date)
        )
        return result.first() is not None

    @classmethod
    async def get_dates(
        cls, db_session: AsyncSession, session_ids: Sequence[str]
    ) -> Set[tuple]:
        """(session_id, date) pairs called off for any of ``session_ids``."""
        if not session_ids:
            return set()
        result = await db_session.execute(
            select(cls.session_id, cls.date).where(cls.session_id.in_(list(session_ids)))
        )
        return {(row.session_id, row.date) for row in result.all()}

    @classmethod
    async def get_in_range(
        cls,
        db_session: AsyncSession,
        start_date: dt.date,
        end_date: dt.date,
        instructor_id: Optional[str] = None,
        venue_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Sequence["SessionCancellation"]:
        conditions = [cls.date >= start_date, cls.date <= end_date]
        if instructor_id:
            conditions.append(ClassSession.instructor_id == instructor_id)
        if venue_id:
            conditions.append(ClassSession.venue_id == venue_id)
        if reason:
            conditions.append(cls.reason.ilike(f"%{reason}%"))

        result = await db_session.execute(
            select(cls)
            .join(ClassSession, ClassSession.id == cls.session_id)
            .where(*conditions)
            .order_by(cls.date, ClassSession.start_time)
        )
        return result.scalars().all()

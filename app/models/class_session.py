"""Recurring weekly class slot scheduled within a term."""

import enum
from datetime import date, time
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Time,
    case,
    func,
    select,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column, relationship, selectinload

from core.db import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.catalog import ExerciseType, Instructor, Venue
    from app.models.term import Term


class Weekday(str, enum.Enum):
    """Days a session can run on. The studio is closed on Sundays."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"

    @property
    def python_weekday(self) -> int:
        """Index as returned by ``date.weekday()`` (Monday == 0)."""
        return list(Weekday).index(self)

    @classmethod
    def from_date(cls, day: date) -> Optional["Weekday"]:
        index = day.weekday()
        members = list(cls)
        return members[index] if index < len(members) else None


def weekday_order(column):
    """Calendar position of a weekday column; the stored values sort alphabetically."""
    return case(*[(column == day, index) for index, day in enumerate(Weekday)])


class ClassSession(Base, TimestampMixin):
    """A weekly class slot. Fee is the full-term price."""

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    term_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("terms.id"), nullable=False, index=True
    )
    day_of_week: Mapped[Weekday] = mapped_column(
        Enum(Weekday, native_enum=False, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    fee_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    venue_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("venues.id"), nullable=False, index=True
    )
    instructor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("instructors.id"), nullable=False, index=True
    )
    exercise_type_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("exercise_types.id"), nullable=False, index=True
    )
    capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # Subsidised classes do not earn credit when a cancellation is accepted
    is_subsidised: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )

    term: Mapped["Term"] = relationship("Term", lazy="selectin")
    venue: Mapped["Venue"] = relationship("Venue", lazy="selectin")
    instructor: Mapped["Instructor"] = relationship("Instructor", lazy="selectin")
    exercise_type: Mapped["ExerciseType"] = relationship(
        "ExerciseType", lazy="selectin"
    )

    def occurrence_dates(self) -> List[date]:
        """Dated occurrences of this session within its term."""
        from app.services.term_calendar import occurrence_dates

        return occurrence_dates(self.term, self.day_of_week)

    @property
    def total_occurrences(self) -> int:
        from app.services.term_calendar import total_occurrences

        return total_occurrences(self.term, self.day_of_week)

    @classmethod
    async def get_by_id(
        cls, db_session: AsyncSession, id: str
    ) -> Optional["ClassSession"]:
        result = await db_session.execute(
            select(cls).options(selectinload(cls.term)).where(cls.id == id)
        )
        return result.scalars().first()

    @classmethod
    async def get_by_ids(
        cls, db_session: AsyncSession, ids: Sequence[str]
    ) -> dict[str, "ClassSession"]:
        if not ids:
            return {}
        result = await db_session.execute(
            select(cls).options(selectinload(cls.term)).where(cls.id.in_(list(ids)))
        )
        return {s.id: s for s in result.scalars().all()}

    @classmethod
    async def get_filtered(
        cls,
        db_session: AsyncSession,
        term_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
        venue_id: Optional[str] = None,
        day_of_week: Optional[Weekday] = None,
    ) -> Sequence["ClassSession"]:
        conditions = []
        if term_id:
            conditions.append(cls.term_id == term_id)
        if instructor_id:
            conditions.append(cls.instructor_id == instructor_id)
        if venue_id:
            conditions.append(cls.venue_id == venue_id)
        if day_of_week:
            conditions.append(cls.day_of_week == day_of_week)

        result = await db_session.execute(
            select(cls)
            .where(*conditions)
            .order_by(weekday_order(cls.day_of_week), cls.start_time)
        )
        return result.scalars().all()

    async def is_referenced(self, db_session: AsyncSession) -> bool:
        """Whether any enrollment-session subscribes to this session."""
        from app.models.enrollment import EnrollmentSession

        result = await db_session.execute(
            select(func.count(EnrollmentSession.id)).where(
                EnrollmentSession.session_id == self.id
            )
        )
        return (result.scalar() or 0) > 0

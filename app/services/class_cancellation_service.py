"""Staff calling off whole class occurrences.

A called-off date drops out of the session's register: nobody is on the
roster and attendance cannot be marked for it.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.attendance import AttendanceRecord
from app.models.class_cancellation import SessionCancellation
from app.models.class_session import ClassSession
from core.exceptions import (
    BadRequestException,
    ConflictException,
    InvalidDateSelection,
    NotFoundException,
)
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CancelledClass:
    """One line of the class cancellation report."""

    id: str
    session_id: str
    session_name: Optional[str]
    day_of_week: str
    start_time: time
    end_time: Optional[time]
    venue_id: str
    venue_name: str
    instructor_id: str
    instructor_name: str
    date: date
    reason: str
    cancelled_by: Optional[str]
    cancelled_at: datetime


class ClassCancellationService:
    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def cancel_occurrences(
        self,
        session_id: str,
        dates: Sequence[date],
        reason: str,
        cancelled_by: Optional[str] = None,
    ) -> List[SessionCancellation]:
        """
        Call off one or more dated classes of a session, all or none.

        Raises:
            InvalidDateSelection: a date is not an occurrence of the session
            ConflictException: a date is already called off or has
                attendance recorded
        """
        if not reason or not reason.strip():
            raise BadRequestException(message="A reason is required")
        if not dates:
            raise BadRequestException(message="Select at least one date")
        if len(set(dates)) != len(dates):
            raise BadRequestException(message="Dates must not repeat")

        session = await ClassSession.get_by_id(self.db_session, session_id)
        if not session:
            raise NotFoundException(message="Session not found")

        occurrences = set(session.occurrence_dates())
        not_scheduled = sorted(d for d in dates if d not in occurrences)
        if not_scheduled:
            raise InvalidDateSelection(
                message="Selected dates are not scheduled occurrences of this session",
                data={"dates": [d.isoformat() for d in not_scheduled]},
            )

        called_off = await SessionCancellation.get_dates(self.db_session, [session_id])
        clashes = sorted(d for d in dates if (session_id, d) in called_off)
        if clashes:
            raise ConflictException(
                message="Class is already cancelled on these dates",
                data={"dates": [d.isoformat() for d in clashes]},
            )

        result = await self.db_session.execute(
            select(AttendanceRecord.date)
            .where(
                AttendanceRecord.session_id == session_id,
                AttendanceRecord.date.in_(list(dates)),
            )
            .distinct()
        )
        marked = sorted(result.scalars().all())
        if marked:
            raise ConflictException(
                message="Attendance has already been recorded for these dates",
                data={"dates": [d.isoformat() for d in marked]},
            )

        cancelled_at = datetime.now(timezone.utc)
        cancellations = [
            SessionCancellation(
                session_id=session_id,
                date=d,
                reason=reason.strip(),
                cancelled_by=cancelled_by,
                cancelled_at=cancelled_at,
            )
            for d in sorted(dates)
        ]
        self.db_session.add_all(cancellations)
        try:
            await self.db_session.commit()
        except IntegrityError:
            await self.db_session.rollback()
            raise ConflictException(message="Class is already cancelled on these dates")

        logger.info(
            f"Session {session_id} called off on "
            f"{', '.join(d.isoformat() for d in sorted(dates))} by {cancelled_by}"
        )
        return cancellations

    async def reinstate(self, session_id: str, on_date: date) -> None:
        """Undo a call-off so the class runs again."""
        cancellation = await SessionCancellation.get_for_date(
            self.db_session, session_id, on_date
        )
        if not cancellation:
            raise NotFoundException(message="Class is not cancelled on this date")

        await self.db_session.delete(cancellation)
        await self.db_session.commit()
        logger.info(f"Session {session_id} reinstated on {on_date}")

    async def list_for_session(self, session_id: str) -> Sequence[SessionCancellation]:
        if not await ClassSession.get_by_id(self.db_session, session_id):
            raise NotFoundException(message="Session not found")
        return await SessionCancellation.get_for_session(self.db_session, session_id)

    async def report(
        self,
        start_date: date,
        end_date: date,
        instructor_id: Optional[str] = None,
        venue_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> List[CancelledClass]:
        """Called-off classes in a date range, optionally by instructor, venue or reason."""
        if start_date > end_date:
            raise BadRequestException(message="start_date must be on or before end_date")

        rows = await SessionCancellation.get_in_range(
            self.db_session,
            start_date,
            end_date,
            instructor_id=instructor_id,
            venue_id=venue_id,
            reason=reason,
        )
        return [
            CancelledClass(
                id=row.id,
                session_id=row.session_id,
                session_name=row.session.name,
                day_of_week=row.session.day_of_week.value,
                start_time=row.session.start_time,
                end_time=row.session.end_time,
                venue_id=row.session.venue_id,
                venue_name=row.session.venue.name,
                instructor_id=row.session.instructor_id,
                instructor_name=row.session.instructor.name,
                date=row.date,
                reason=row.reason,
                cancelled_by=row.cancelled_by,
                cancelled_at=row.cancelled_at,
            )
            for row in rows
        ]

"""Session (weekly class slot) endpoints."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import ensure_runs_session, get_current_admin, get_current_staff
from app.models.catalog import ExerciseType, Instructor, Venue
from app.models.class_session import ClassSession, Weekday
from app.models.term import Term
from app.models.user import User
from app.schemas.class_session import (
    SessionCancellationCreate,
    SessionCancellationResponse,
    SessionCreate,
    SessionOccurrencesResponse,
    SessionResponse,
    SessionUpdate,
)
from app.services.class_cancellation_service import ClassCancellationService
from app.services.term_calendar import occurrence_dates
from core.db import get_db
from core.exceptions.base import ConflictException, NotFoundException
from core.exceptions.domain import InvalidTermConfiguration
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])


async def _check_references(db_session: AsyncSession, **ids: Optional[str]) -> None:
    lookups = {
        "term_id": Term,
        "venue_id": Venue,
        "instructor_id": Instructor,
        "exercise_type_id": ExerciseType,
    }
    for field, value in ids.items():
        if value is not None and not await db_session.get(lookups[field], value):
            raise NotFoundException(message=f"Unknown {field}", data={field: value})


def _require_occurrences(term: Term, day_of_week: Weekday) -> None:
    if not occurrence_dates(term, day_of_week):
        raise InvalidTermConfiguration(
            message=f"{term.label} has no {day_of_week.value} classes",
            data={"term_id": term.id, "day_of_week": day_of_week.value},
        )


@router.get("/", response_model=List[SessionResponse])
async def list_sessions(
    term_id: Optional[str] = None,
    instructor_id: Optional[str] = None,
    venue_id: Optional[str] = None,
    day_of_week: Optional[Weekday] = None,
    db_session: AsyncSession = Depends(get_db),
) -> List[SessionResponse]:
    """List sessions with optional filters. Public."""
    sessions = await ClassSession.get_filtered(
        db_session,
        term_id=term_id,
        instructor_id=instructor_id,
        venue_id=venue_id,
        day_of_week=day_of_week,
    )
    return [SessionResponse.model_validate(s) for s in sessions]


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    db_session: AsyncSession = Depends(get_db),
) -> SessionResponse:
    session = await ClassSession.get_by_id(db_session, session_id)
    if not session:
        raise NotFoundException(message="Session not found")
    return SessionResponse.model_validate(session)


@router.get("/{session_id}/occurrences", response_model=SessionOccurrencesResponse)
async def get_session_occurrences(
    session_id: str,
    db_session: AsyncSession = Depends(get_db),
) -> SessionOccurrencesResponse:
    """Dated classes of a session within its term, in order."""
    session = await ClassSession.get_by_id(db_session, session_id)
    if not session:
        raise NotFoundException(message="Session not found")

    dates = session.occurrence_dates()
    return SessionOccurrencesResponse(
        session_id=session.id,
        term_id=session.term_id,
        occurrences=dates,
        total=len(dates),
    )


@router.post("/", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    data: SessionCreate,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> SessionResponse:
    """Schedule a weekly session. Its weekday must occur at least once in the term."""
    await _check_references(
        db_session,
        term_id=data.term_id,
        venue_id=data.venue_id,
        instructor_id=data.instructor_id,
        exercise_type_id=data.exercise_type_id,
    )
    term = await Term.get_by_id(db_session, data.term_id)
    _require_occurrences(term, data.day_of_week)

    session = ClassSession(**data.model_dump())
    db_session.add(session)
    await db_session.commit()

    logger.info(f"Session {session.id} created by {current_user.id}")
    session = await ClassSession.get_by_id(db_session, session.id)
    return SessionResponse.model_validate(session)


@router.put("/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: str,
    data: SessionUpdate,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> SessionResponse:
    """
    Edit a session.

    The weekday cannot change once customers are enrolled, since their
    booked dates are occurrences of the old weekday.
    """
    session = await ClassSession.get_by_id(db_session, session_id)
    if not session:
        raise NotFoundException(message="Session not found")

    updates = data.model_dump(exclude_unset=True)
    await _check_references(
        db_session,
        venue_id=updates.get("venue_id"),
        instructor_id=updates.get("instructor_id"),
        exercise_type_id=updates.get("exercise_type_id"),
    )

    new_day = updates.get("day_of_week")
    if new_day and new_day != session.day_of_week:
        if await session.is_referenced(db_session):
            raise ConflictException(message="Weekday cannot change while customers are enrolled")
        _require_occurrences(session.term, new_day)

    for field, value in updates.items():
        setattr(session, field, value)
    await db_session.commit()

    logger.info(f"Session {session.id} updated by {current_user.id}")
    session = await ClassSession.get_by_id(db_session, session.id)
    return SessionResponse.model_validate(session)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> None:
    """Delete a session that nobody has enrolled in."""
    session = await ClassSession.get_by_id(db_session, session_id)
    if not session:
        raise NotFoundException(message="Session not found")
    if await session.is_referenced(db_session):
        raise ConflictException(message="Session has enrollments and cannot be deleted")

    await db_session.delete(session)
    await db_session.commit()
    logger.info(f"Session {session_id} deleted by {current_user.id}")


@router.get(
    "/{session_id}/cancellations",
    response_model=List[SessionCancellationResponse],
)
async def list_session_cancellations(
    session_id: str,
    db_session: AsyncSession = Depends(get_db),
) -> List[SessionCancellationResponse]:
    """Dates on which the class will not run. Public."""
    cancellations = await ClassCancellationService(db_session).list_for_session(session_id)
    return [SessionCancellationResponse.model_validate(c) for c in cancellations]


@router.post(
    "/{session_id}/cancellations",
    response_model=List[SessionCancellationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def cancel_session_dates(
    session_id: str,
    data: SessionCancellationCreate,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_staff),
) -> List[SessionCancellationResponse]:
    """Call off dated classes. Instructors may only call off their own sessions."""
    await ensure_runs_session(db_session, current_user, session_id)
    cancellations = await ClassCancellationService(db_session).cancel_occurrences(
        session_id, data.dates, data.reason, cancelled_by=current_user.id
    )
    return [SessionCancellationResponse.model_validate(c) for c in cancellations]


@router.delete(
    "/{session_id}/cancellations/{cancelled_date}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def reinstate_session_date(
    session_id: str,
    cancelled_date: date,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin),
) -> None:
    await ClassCancellationService(db_session).reinstate(session_id, cancelled_date)
    logger.info(f"Session {session_id} on {cancelled_date} reinstated by {current_user.id}")

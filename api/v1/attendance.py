"""Attendance API: class registers, marking and reports."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import ensure_runs_session, get_current_staff
from app.models.user import User
from app.schemas.attendance import (
    AttendanceMarkBulk,
    AttendanceRecordResponse,
    AttendanceReportResponse,
    OccurrenceAttendanceResponse,
    RosterEntryResponse,
    RosterResponse,
)
from app.schemas.class_session import CancelledClassResponse
from app.services.attendance_service import AttendanceService
from app.services.class_cancellation_service import ClassCancellationService
from core.db import get_db
from core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/attendance", tags=["Attendance"])


@router.get("/roster", response_model=RosterResponse)
async def get_roster(
    session_id: str,
    date: date,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_staff),
) -> RosterResponse:
    """Everyone enrolled to attend a session on a date, with contact details."""
    await ensure_runs_session(db_session, current_user, session_id)
    roster = await AttendanceService(db_session).roster_for(session_id, date)
    return RosterResponse(
        session_id=session_id,
        date=date,
        entries=[RosterEntryResponse.model_validate(r) for r in roster],
    )


@router.post(
    "/mark",
    response_model=List[AttendanceRecordResponse],
    status_code=status.HTTP_201_CREATED,
)
async def mark_attendance(
    data: AttendanceMarkBulk,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_staff),
) -> List[AttendanceRecordResponse]:
    """Mark a class register. Rejected as a whole if any entry is not eligible."""
    await ensure_runs_session(db_session, current_user, data.session_id)
    logger.info(
        f"Marking attendance for {len(data.records)} customers "
        f"in session {data.session_id} on {data.date}"
    )
    records = await AttendanceService(db_session).mark_bulk(
        session_id=data.session_id,
        on_date=data.date,
        records=[(r.enrollment_session_id, r.status) for r in data.records],
        marked_by=current_user.id,
    )
    return [AttendanceRecordResponse.model_validate(r) for r in records]


@router.get("/report", response_model=AttendanceReportResponse)
async def get_attendance_report(
    start_date: date,
    end_date: date,
    session_id: Optional[str] = None,
    instructor_id: Optional[str] = None,
    venue_id: Optional[str] = None,
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_staff),
) -> AttendanceReportResponse:
    report = await AttendanceService(db_session).attendance_report(
        start_date,
        end_date,
        session_id=session_id,
        instructor_id=instructor_id,
        venue_id=venue_id,
    )
    return AttendanceReportResponse.model_validate(report)


@router.get("/rates", response_model=List[OccurrenceAttendanceResponse])
async def get_attendance_rates(
    start_date: date,
    end_date: date,
    session_id: Optional[str] = Query(None),
    instructor_id: Optional[str] = Query(None),
    venue_id: Optional[str] = Query(None),
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_staff),
) -> List[OccurrenceAttendanceResponse]:
    """Present/absent/late/excused counts and rate per class occurrence."""
    occurrences = await AttendanceService(db_session).attendance_rates(
        start_date,
        end_date,
        session_id=session_id,
        instructor_id=instructor_id,
        venue_id=venue_id,
    )
    return [OccurrenceAttendanceResponse.model_validate(o) for o in occurrences]


@router.get("/class-cancellations", response_model=List[CancelledClassResponse])
async def get_class_cancellation_report(
    start_date: date,
    end_date: date,
    instructor_id: Optional[str] = Query(None),
    venue_id: Optional[str] = Query(None),
    reason: Optional[str] = Query(None, description="Matches part of the reason"),
    db_session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_staff),
) -> List[CancelledClassResponse]:
    """Classes the studio called off in a date range."""
    cancelled = await ClassCancellationService(db_session).report(
        start_date,
        end_date,
        instructor_id=instructor_id,
        venue_id=venue_id,
        reason=reason,
    )
    return [CancelledClassResponse.model_validate(c) for c in cancelled]

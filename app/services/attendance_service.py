"""Attendance ledger: rosters, marking and attendance reporting."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.attendance import AttendanceRecord, AttendanceStatus
from app.models.cancellation import CancellationRequest
from app.models.class_cancellation import SessionCancellation
from app.models.class_session import ClassSession
from app.models.enrollment import Enrollment, EnrollmentSession, EnrollmentStatus
from app.utils.dates import today_local
from core.exceptions import (
    BadRequestException,
    IneligibleAttendanceMark,
    NotFoundException,
)
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RosterEntry:
    """One line of a class register."""

    enrollment_session_id: str
    enrollment_id: str
    customer_id: str
    first_name: str
    surname: str
    email: str
    contact_no: Optional[str]
    enrollment_type: str
    attendance_status: Optional[AttendanceStatus] = None
    excused: bool = False


@dataclass
class OccurrenceAttendance:
    """Counts for one class occurrence (session, date)."""

    session_id: str
    date: date
    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0

    @property
    def total(self) -> int:
        """Entries counted towards the rate; excused absences are left out."""
        return self.present + self.absent + self.late

    @property
    def attendance_rate(self) -> float:
        return attendance_rate(self.present, self.total)

    def add(self, status: AttendanceStatus, excused: bool) -> None:
        if status == AttendanceStatus.ABSENT and excused:
            self.excused += 1
        elif status == AttendanceStatus.PRESENT:
            self.present += 1
        elif status == AttendanceStatus.LATE:
            self.late += 1
        else:
            self.absent += 1


@dataclass
class ReportEntry:
    record_id: str
    enrollment_session_id: str
    session_id: str
    session_name: Optional[str]
    customer_id: str
    customer_name: str
    date: date
    status: AttendanceStatus
    marked_at: datetime
    excused: bool


@dataclass
class AttendanceReport:
    start_date: date
    end_date: date
    entries: List[ReportEntry] = field(default_factory=list)
    occurrences: List[OccurrenceAttendance] = field(default_factory=list)

    def _sum(self, attr: str) -> int:
        return sum(getattr(o, attr) for o in self.occurrences)

    @property
    def present(self) -> int:
        return self._sum("present")

    @property
    def absent(self) -> int:
        return self._sum("absent")

    @property
    def late(self) -> int:
        return self._sum("late")

    @property
    def excused(self) -> int:
        return self._sum("excused")

    @property
    def total(self) -> int:
        return self.present + self.absent + self.late

    @property
    def attendance_rate(self) -> float:
        return attendance_rate(self.present, self.total)


def attendance_rate(present: int, total: int) -> float:
    """Percentage present, 2 dp. No entries reports as 0.0."""
    if total == 0:
        return 0.0
    rate = Decimal(present) * 100 / Decimal(total)
    return float(rate.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class AttendanceService:
    """Service for class registers and the attendance ledger."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    # ============== Roster ==============

    async def roster_for(self, session_id: str, on_date: date) -> List[RosterEntry]:
        """Everyone enrolled to attend ``session_id`` on ``on_date``."""
        session = await ClassSession.get_by_id(self.db_session, session_id)
        if not session:
            raise NotFoundException(message="Session not found")

        if await SessionCancellation.is_cancelled(self.db_session, session_id, on_date):
            logger.debug(f"Session {session_id} is called off on {on_date}; empty roster")
            return []

        subscriptions = await EnrollmentSession.get_active_by_session(
            self.db_session, session_id
        )
        eligible = [es for es in subscriptions if es.is_eligible_on(on_date)]

        marks = await AttendanceRecord.get_by_session_and_date(
            self.db_session, session_id, on_date
        )
        excused = await CancellationRequest.get_accepted_dates(
            self.db_session, [es.id for es in eligible], on_date, on_date
        )

        roster = []
        for es in eligible:
            customer = es.enrollment.customer
            mark = marks.get(es.id)
            roster.append(
                RosterEntry(
                    enrollment_session_id=es.id,
                    enrollment_id=es.enrollment_id,
                    customer_id=customer.id,
                    first_name=customer.first_name,
                    surname=customer.surname,
                    email=customer.email,
                    contact_no=customer.contact_no,
                    enrollment_type=es.enrollment_type.value,
                    attendance_status=mark.status if mark else None,
                    excused=(es.id, on_date) in excused,
                )
            )

        roster.sort(key=lambda r: (r.surname.lower(), r.first_name.lower()))
        logger.debug(f"Roster for session {session_id} on {on_date}: {len(roster)} eligible")
        return roster

    # ============== Marking ==============

    async def mark(
        self,
        enrollment_session_id: str,
        on_date: date,
        status: AttendanceStatus,
        marked_by: Optional[str] = None,
        today: Optional[date] = None,
    ) -> AttendanceRecord:
        """Record (or overwrite) attendance for one eligible date."""
        es = await EnrollmentSession.get_by_id(self.db_session, enrollment_session_id)
        if not es:
            raise NotFoundException(message="Enrollment session not found")
        self._check_markable(es, on_date, today or today_local())
        await self._check_class_runs(es.session_id, on_date)

        # (enrollment_session_id, session_id, status); rollback expires ORM objects
        writes = [(es.id, es.session_id, status)]
        record = (await self._write_all(writes, on_date, marked_by))[0]

        logger.info(f"Attendance {status.value} for {enrollment_session_id} on {on_date}")
        return record

    async def mark_bulk(
        self,
        session_id: str,
        on_date: date,
        records: Sequence[Tuple[str, AttendanceStatus]],
        marked_by: Optional[str] = None,
        today: Optional[date] = None,
    ) -> List[AttendanceRecord]:
        """Mark a whole register. Nothing is written if any entry is rejected."""
        today = today or today_local()
        if not records:
            raise BadRequestException(message="No attendance records supplied")

        ids = [es_id for es_id, _ in records]
        if len(set(ids)) != len(ids):
            raise BadRequestException(message="Each enrollment can only be marked once")

        result = await self.db_session.execute(
            select(EnrollmentSession)
            .options(
                selectinload(EnrollmentSession.session),
                selectinload(EnrollmentSession.enrollment),
            )
            .where(EnrollmentSession.id.in_(ids))
        )
        by_id = {es.id: es for es in result.scalars().all()}

        for es_id, _ in records:
            es = by_id.get(es_id)
            if not es or es.session_id != session_id:
                raise IneligibleAttendanceMark(
                    message="Enrollment is not on this session's register",
                    data={"enrollment_session_id": es_id, "session_id": session_id},
                )
            self._check_markable(es, on_date, today)

        await self._check_class_runs(session_id, on_date)

        written = await self._write_all(
            [(es_id, session_id, status) for es_id, status in records],
            on_date,
            marked_by,
        )
        logger.info(f"Marked {len(written)} attendance record(s) for session {session_id} on {on_date}")
        return written

    def _check_markable(self, es: EnrollmentSession, on_date: date, today: date) -> None:
        if es.enrollment.status != EnrollmentStatus.ACTIVE:
            raise IneligibleAttendanceMark(
                message="Enrollment has been cancelled",
                data={"enrollment_session_id": es.id, "date": on_date.isoformat()},
            )
        if on_date > today:
            raise IneligibleAttendanceMark(
                message="Attendance cannot be marked for a future date",
                data={"enrollment_session_id": es.id, "date": on_date.isoformat()},
            )
        if not es.is_eligible_on(on_date):
            raise IneligibleAttendanceMark(
                data={"enrollment_session_id": es.id, "date": on_date.isoformat()},
            )

    async def _check_class_runs(self, session_id: str, on_date: date) -> None:
        if await SessionCancellation.is_cancelled(self.db_session, session_id, on_date):
            raise IneligibleAttendanceMark(
                message="Class was cancelled on this date",
                data={"session_id": session_id, "date": on_date.isoformat()},
            )

    async def _write_all(
        self,
        writes: Sequence[Tuple[str, str, AttendanceStatus]],
        on_date: date,
        marked_by: Optional[str],
    ) -> List[AttendanceRecord]:
        """Upsert ledger rows in one transaction.

        A concurrent first mark for the same date makes the insert fail; the
        batch is then replayed as updates so the last write wins.
        """
        try:
            written = [
                await self._upsert(es_id, session_id, on_date, status, marked_by)
                for es_id, session_id, status in writes
            ]
            await self.db_session.commit()
        except IntegrityError:
            await self.db_session.rollback()
            written = [
                await self._upsert(es_id, session_id, on_date, status, marked_by)
                for es_id, session_id, status in writes
            ]
            await self.db_session.commit()
        return written

    async def _upsert(
        self,
        enrollment_session_id: str,
        session_id: str,
        on_date: date,
        status: AttendanceStatus,
        marked_by: Optional[str],
    ) -> AttendanceRecord:
        record = await AttendanceRecord.get_for_date(
            self.db_session, enrollment_session_id, on_date
        )
        if record is None:
            record = AttendanceRecord(
                enrollment_session_id=enrollment_session_id,
                session_id=session_id,
                date=on_date,
            )
            self.db_session.add(record)
        record.status = status
        record.marked_by = marked_by
        record.marked_at = datetime.now(timezone.utc)
        await self.db_session.flush()
        return record

    # ============== Reporting ==============

    async def attendance_report(
        self,
        start_date: date,
        end_date: date,
        session_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
        venue_id: Optional[str] = None,
    ) -> AttendanceReport:
        """
        Ledger entries in a date range that are still eligible today.

        Entries whose enrollment-session is no longer eligible on the entry's
        date (for example after a term edit) are left out. Absences covered
        by an accepted cancellation are reported as excused.
        """
        if start_date > end_date:
            raise BadRequestException(message="start_date must be on or before end_date")

        conditions = [
            AttendanceRecord.date >= start_date,
            AttendanceRecord.date <= end_date,
        ]
        if session_id:
            conditions.append(AttendanceRecord.session_id == session_id)
        if instructor_id:
            conditions.append(ClassSession.instructor_id == instructor_id)
        if venue_id:
            conditions.append(ClassSession.venue_id == venue_id)

        result = await self.db_session.execute(
            select(AttendanceRecord)
            .join(ClassSession, ClassSession.id == AttendanceRecord.session_id)
            .options(
                selectinload(AttendanceRecord.enrollment_session)
                .selectinload(EnrollmentSession.enrollment)
                .selectinload(Enrollment.customer),
                selectinload(AttendanceRecord.enrollment_session)
                .selectinload(EnrollmentSession.session),
            )
            .where(*conditions)
            .order_by(AttendanceRecord.date, AttendanceRecord.session_id)
        )
        records = [
            r for r in result.scalars().all()
            if r.enrollment_session.is_eligible_on(r.date)
        ]

        excused = await CancellationRequest.get_accepted_dates(
            self.db_session,
            list({r.enrollment_session_id for r in records}),
            start_date,
            end_date,
        )

        report = AttendanceReport(start_date=start_date, end_date=end_date)
        occurrences: Dict[Tuple[str, date], OccurrenceAttendance] = {}
        for record in records:
            es = record.enrollment_session
            customer = es.enrollment.customer
            is_excused = (
                record.status == AttendanceStatus.ABSENT
                and (record.enrollment_session_id, record.date) in excused
            )
            report.entries.append(
                ReportEntry(
                    record_id=record.id,
                    enrollment_session_id=record.enrollment_session_id,
                    session_id=record.session_id,
                    session_name=es.session.name,
                    customer_id=customer.id,
                    customer_name=customer.full_name,
                    date=record.date,
                    status=record.status,
                    marked_at=record.marked_at,
                    excused=is_excused,
                )
            )

            occurrence = occurrences.setdefault(
                (record.session_id, record.date),
                OccurrenceAttendance(session_id=record.session_id, date=record.date),
            )
            occurrence.add(record.status, is_excused)

        report.occurrences = sorted(
            occurrences.values(), key=lambda o: (o.date, o.session_id)
        )
        logger.info(
            f"Attendance report {start_date}..{end_date}: {len(report.entries)} entries, "
            f"rate {report.attendance_rate}%"
        )
        return report

    async def attendance_rates(
        self,
        start_date: date,
        end_date: date,
        session_id: Optional[str] = None,
        instructor_id: Optional[str] = None,
        venue_id: Optional[str] = None,
    ) -> List[OccurrenceAttendance]:
        """Per-occurrence counts and attendance percentage."""
        report = await self.attendance_report(
            start_date, end_date, session_id, instructor_id, venue_id
        )
        return report.occurrences

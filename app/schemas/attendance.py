"""Attendance schemas for request/response validation."""

import datetime as dt
from typing import List, Optional

from pydantic import Field

from app.models.attendance import AttendanceStatus
from app.schemas.base import BaseSchema


class AttendanceMarkRecord(BaseSchema):
    """Schema for marking a single attendance record."""

    enrollment_session_id: str
    status: AttendanceStatus


class AttendanceMarkBulk(BaseSchema):
    """Schema for marking a class register."""

    session_id: str
    date: dt.date
    records: List[AttendanceMarkRecord] = Field(..., min_length=1)


class AttendanceRecordResponse(BaseSchema):
    id: str
    enrollment_session_id: str
    session_id: str
    date: dt.date
    status: AttendanceStatus
    marked_by: Optional[str]
    marked_at: dt.datetime


class RosterEntryResponse(BaseSchema):
    enrollment_session_id: str
    enrollment_id: str
    customer_id: str
    first_name: str
    surname: str
    email: str
    contact_no: Optional[str]
    enrollment_type: str
    attendance_status: Optional[AttendanceStatus]
    excused: bool


class RosterResponse(BaseSchema):
    session_id: str
    date: dt.date
    entries: List[RosterEntryResponse]


class OccurrenceAttendanceResponse(BaseSchema):
    """Counts for one class occurrence."""

    session_id: str
    date: dt.date
    present: int
    absent: int
    late: int
    excused: int
    total: int
    attendance_rate: float  # 0-100


class ReportEntryResponse(BaseSchema):
    record_id: str
    enrollment_session_id: str
    session_id: str
    session_name: Optional[str]
    customer_id: str
    customer_name: str
    date: dt.date
    status: AttendanceStatus
    marked_at: dt.datetime
    excused: bool


class AttendanceReportResponse(BaseSchema):
    start_date: dt.date
    end_date: dt.date
    present: int
    absent: int
    late: int
    excused: int
    total: int
    attendance_rate: float
    occurrences: List[OccurrenceAttendanceResponse]
    entries: List[ReportEntryResponse]

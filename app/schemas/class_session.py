"""Session (weekly class slot) schemas."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, model_validator

from app.models.class_session import Weekday
from app.schemas.base import BaseSchema


class SessionCreate(BaseSchema):
    name: Optional[str] = Field(None, max_length=200)
    term_id: str
    day_of_week: Weekday
    start_time: time
    end_time: Optional[time] = None
    fee_amount: Decimal = Field(..., ge=0, decimal_places=2)
    venue_id: str
    instructor_id: str
    exercise_type_id: str
    capacity: Optional[int] = Field(None, ge=1)
    is_subsidised: bool = False

    @model_validator(mode="after")
    def validate_times(self) -> "SessionCreate":
        if self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class SessionUpdate(BaseSchema):
    """Schema for editing a session. All fields optional."""

    name: Optional[str] = Field(None, max_length=200)
    day_of_week: Optional[Weekday] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    fee_amount: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    venue_id: Optional[str] = None
    instructor_id: Optional[str] = None
    exercise_type_id: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1)
    is_subsidised: Optional[bool] = None


class SessionResponse(BaseSchema):
    id: str
    name: Optional[str]
    term_id: str
    day_of_week: Weekday
    start_time: time
    end_time: Optional[time]
    fee_amount: Decimal
    venue_id: str
    instructor_id: str
    exercise_type_id: str
    capacity: Optional[int]
    is_subsidised: bool
    total_occurrences: int
    created_at: datetime


class SessionOccurrencesResponse(BaseSchema):
    session_id: str
    term_id: str
    occurrences: List[date]
    total: int


class SessionCancellationCreate(BaseSchema):
    """Call off one or more dated classes of a session."""

    dates: List[date] = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=1000)


class SessionCancellationResponse(BaseSchema):
    id: str
    session_id: str
    date: date
    reason: str
    cancelled_by: Optional[str]
    cancelled_at: datetime


class CancelledClassResponse(BaseSchema):
    """Line of the class cancellation report."""

    id: str
    session_id: str
    session_name: Optional[str]
    day_of_week: Weekday
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

import datetime as dt
from typing import List, Optional

from pydantic import Field

from app.models.cancellation import CancellationStatus
from app.schemas.base import BaseSchema


class CancellationCreate(BaseSchema):
    """Customer request to be excused from one or more class dates."""

    enrollment_session_id: str
    dates: List[dt.date] = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=2000)
    # Storage key of the uploaded medical certificate
    evidence_ref: str = Field(..., min_length=1, max_length=500)


class CancellationAccept(BaseSchema):
    admin_notes: Optional[str] = Field(None, max_length=2000)


class CancellationReject(BaseSchema):
    reject_reason: str = Field(..., min_length=1, max_length=2000)
    admin_notes: Optional[str] = Field(None, max_length=2000)


class CancellationResponse(BaseSchema):
    id: str
    enrollment_session_id: str
    date: dt.date
    reason: str
    evidence_ref: str
    status: CancellationStatus
    reject_reason: Optional[str]
    admin_notes: Optional[str]
    requested_at: dt.datetime
    reviewed_at: Optional[dt.datetime]
    reviewed_by: Optional[str]


class CancellationReviewResponse(BaseSchema):
    request: CancellationResponse
    changed: bool
    credit_issued: bool

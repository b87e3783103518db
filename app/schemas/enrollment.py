"""Enrollment schemas for request/response validation."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from app.models.enrollment import (
    EnrollmentPaymentStatus,
    EnrollmentStatus,
    EnrollmentType,
)
from app.models.payment import PaymentMethod, PaymentStatus
from app.schemas.base import BaseSchema
from app.schemas.checkout import DraftSelectionItem


class EnrollmentSessionResponse(BaseSchema):
    id: str
    session_id: str
    enrollment_type: EnrollmentType
    trial_date: Optional[date]
    partial_dates: Optional[List[date]]
    booking_date: date
    fee: Decimal


class EnrollmentResponse(BaseSchema):
    id: str
    customer_id: str
    status: EnrollmentStatus
    payment_status: EnrollmentPaymentStatus
    payment_intent_id: Optional[str]
    cancelled_at: Optional[datetime]
    cancellation_reason: Optional[str]
    sessions: List[EnrollmentSessionResponse]
    created_at: datetime


class PaymentResponse(BaseSchema):
    id: str
    enrollment_id: str
    amount: Decimal
    method: PaymentMethod
    status: PaymentStatus
    transaction_ref: Optional[str]
    receipt_number: str
    payment_date: datetime


class EnrollmentDetailResponse(EnrollmentResponse):
    payment: Optional[PaymentResponse] = None


class ManualEnrollmentCreate(BaseSchema):
    """Staff enrollment paid at the desk."""

    customer_id: str
    items: List[DraftSelectionItem] = Field(..., min_length=1)
    method: PaymentMethod
    notes: Optional[str] = Field(None, max_length=1000)


class EnrollmentCancelRequest(BaseSchema):
    reason: str = Field(..., min_length=1, max_length=1000)


class HeldPaymentResponse(PaymentResponse):
    """Payment waiting for staff to reconcile it against its enrollment."""

    notes: Optional[str]
    customer_id: str
    customer_name: str
    booked_sessions: int


class PaymentSettleRequest(BaseSchema):
    notes: Optional[str] = Field(None, max_length=1000)

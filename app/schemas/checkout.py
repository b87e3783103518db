"""Checkout schemas: the draft enrollment selection and its quote."""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from app.models.enrollment import EnrollmentType
from app.schemas.base import BaseSchema


class DraftSelectionItem(BaseSchema):
    """One session in a draft. Trials take one date, partials one or more."""

    session_id: str
    enrollment_type: EnrollmentType
    dates: List[date] = Field(default_factory=list)


class DraftSelection(BaseSchema):
    """Explicit draft passed by the client; nothing is stored server-side."""

    items: List[DraftSelectionItem] = Field(..., min_length=1)


class QuoteLineResponse(BaseSchema):
    session_id: str
    session_name: Optional[str]
    enrollment_type: EnrollmentType
    dates: List[date]
    fee: Decimal


class QuoteResponse(BaseSchema):
    lines: List[QuoteLineResponse]
    total: Decimal


class PaymentIntentResponse(BaseSchema):
    """Client secret for card checkout, or the enrollment for a free one."""

    amount: Decimal
    payment_intent_id: Optional[str] = None
    client_secret: Optional[str] = None
    enrollment_id: Optional[str] = None

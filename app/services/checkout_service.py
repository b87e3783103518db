"""Checkout quoting: prices a draft of session selections."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.class_session import ClassSession
from app.models.enrollment import EnrollmentType
from app.services.eligibility import EnrollmentSelection, make_selection
from app.services.fee_calculator import ZERO, compute_total, price_lines
from app.utils.dates import today_local
from core.exceptions import (
    InvalidDateSelection,
    NotFoundException,
    ValidationException,
)
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class DraftItem:
    """One session the customer wants to enroll in."""

    session_id: str
    enrollment_type: EnrollmentType
    dates: List[date] = field(default_factory=list)


@dataclass
class QuoteLine:
    session: ClassSession
    selection: EnrollmentSelection
    fee: Decimal

    @property
    def session_id(self) -> str:
        return self.session.id

    def as_email_line(self) -> dict:
        """JSON-serialisable summary used by receipt emails."""
        return {
            "session_name": self.session.name or self.session.id,
            "enrollment_type": self.selection.enrollment_type.value,
            "dates": [d.isoformat() for d in self.selection.dates],
            "fee": f"{self.fee:.2f}",
        }


@dataclass
class CheckoutQuote:
    """Priced draft. ``total`` is what the customer is charged."""

    lines: List[QuoteLine]
    total: Decimal


class CheckoutService:
    """Service for pricing enrollment drafts."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def quote(
        self,
        items: Sequence[DraftItem],
        today: Optional[date] = None,
    ) -> CheckoutQuote:
        """
        Validate and price every item of a draft.

        Raises:
            ValidationException: draft is empty or names a session twice
            NotFoundException: a session does not exist
            InvalidDateSelection: dates do not fit the enrollment type, are
                not occurrences of the session, or are in the past
            InvalidTermConfiguration: a session never occurs in its term
        """
        today = today or today_local()

        if not items:
            raise ValidationException(message="Select at least one session")

        session_ids = [item.session_id for item in items]
        if len(set(session_ids)) != len(session_ids):
            raise ValidationException(
                message="Each session can only appear once per enrollment"
            )

        sessions = await ClassSession.get_by_ids(self.db_session, session_ids)
        missing = [sid for sid in session_ids if sid not in sessions]
        if missing:
            raise NotFoundException(
                message="Session not found", data={"session_ids": missing}
            )

        pairs = []
        for item in items:
            try:
                selection = make_selection(item.enrollment_type, item.dates)
            except ValueError as e:
                raise InvalidDateSelection(
                    message=str(e), data={"session_id": item.session_id}
                )
            pairs.append((sessions[item.session_id], selection))

        fee_lines = price_lines(pairs, today)
        lines = [
            QuoteLine(session=line.session, selection=line.selection, fee=line.fee)
            for line in fee_lines
        ]
        total = compute_total(fee_lines) if fee_lines else ZERO

        logger.info(f"Quoted {len(lines)} session(s), total {total}")
        return CheckoutQuote(lines=lines, total=total)

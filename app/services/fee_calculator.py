"""Fee calculation for full, trial and partial enrollments."""

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

from app.models.class_session import Weekday
from app.services.eligibility import (
    EnrollmentSelection,
    FullSelection,
    PartialSelection,
    TrialSelection,
)
from app.services.term_calendar import TermWindow, occurrence_dates, total_occurrences
from core.exceptions.domain import InvalidDateSelection, InvalidTermConfiguration
from core.logging import get_logger

logger = get_logger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


class PricedSession(Protocol):
    """The session attributes the calculator reads."""

    id: str
    fee_amount: Decimal
    day_of_week: Weekday
    term: TermWindow


@dataclass
class FeeLine:
    """One priced line of a draft selection."""

    session: PricedSession
    selection: EnrollmentSelection
    fee: Decimal


def to_money(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)


def _require_occurrences(session: PricedSession) -> int:
    total = total_occurrences(session.term, session.day_of_week)
    if total < 1:
        raise InvalidTermConfiguration(
            message=(
                f"Session {session.id} has no {session.day_of_week.value} "
                f"occurrences in its term"
            ),
            data={"session_id": session.id},
        )
    return total


def _check_dates(session: PricedSession, dates: Iterable[date], today: date) -> None:
    occurrences = set(occurrence_dates(session.term, session.day_of_week))
    not_scheduled = sorted(d for d in dates if d not in occurrences)
    if not_scheduled:
        raise InvalidDateSelection(
            message="Selected dates are not scheduled occurrences of this session",
            data={
                "session_id": session.id,
                "dates": [d.isoformat() for d in not_scheduled],
            },
        )
    in_past = sorted(d for d in dates if d < today)
    if in_past:
        raise InvalidDateSelection(
            message="Selected dates are in the past",
            data={
                "session_id": session.id,
                "dates": [d.isoformat() for d in in_past],
            },
        )


def validate_selection(
    session: PricedSession, selection: EnrollmentSelection, today: date
) -> None:
    """Reject trial/partial dates outside the term calendar or before ``today``.

    Full enrollments additionally require the term to contain at least one
    occurrence of the session.
    """
    if isinstance(selection, FullSelection):
        _require_occurrences(session)
        return
    _check_dates(session, selection.dates, today)


def compute_fee(
    session: PricedSession, selection: EnrollmentSelection, today: date
) -> Decimal:
    """Amount owed for one session subscription, to two decimal places.

    - trial: always 0.00
    - partial: fee_amount / total occurrences x number of dates, rounded
    - full: fee_amount
    """
    if isinstance(selection, TrialSelection):
        return ZERO

    total = _require_occurrences(session)

    if isinstance(selection, PartialSelection):
        _check_dates(session, selection.partial_dates, today)
        per_class = Decimal(session.fee_amount) / Decimal(total)
        return to_money(per_class * len(selection.partial_dates))

    if isinstance(selection, FullSelection):
        return to_money(session.fee_amount)

    raise TypeError(f"Unsupported selection: {selection!r}")


def price_lines(
    items: Iterable[tuple[PricedSession, EnrollmentSelection]], today: date
) -> list[FeeLine]:
    """Validate and price each (session, selection) pair of a draft."""
    lines = []
    for session, selection in items:
        validate_selection(session, selection, today)
        lines.append(
            FeeLine(session=session, selection=selection,
                    fee=compute_fee(session, selection, today))
        )
    return lines


def compute_total(lines: Iterable[FeeLine]) -> Decimal:
    """Sum of the line fees; the amount charged at checkout."""
    total = sum((line.fee for line in lines), ZERO)
    logger.debug(f"Computed enrollment total {total}")
    return to_money(total)

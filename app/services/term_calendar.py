"""Expansion of a weekly session into the dated occurrences of its term."""

from datetime import date, timedelta
from typing import Iterator, List, Protocol

from app.models.class_session import Weekday

ONE_WEEK = timedelta(days=7)


class TermWindow(Protocol):
    """Anything with an inclusive start/end date (a ``Term`` row, a schema...)."""

    start_date: date
    end_date: date


def first_occurrence(start_date: date, day_of_week: Weekday) -> date:
    """First date on or after ``start_date`` falling on ``day_of_week``."""
    offset = (day_of_week.python_weekday - start_date.weekday()) % 7
    return start_date + timedelta(days=offset)


def iter_occurrences(term: TermWindow, day_of_week: Weekday) -> Iterator[date]:
    """Yield the session's dates in ascending order, inclusive of the term end.

    Each call starts a fresh iteration, so the sequence is restartable.
    """
    current = first_occurrence(term.start_date, day_of_week)
    while current <= term.end_date:
        yield current
        current += ONE_WEEK


def occurrence_dates(term: TermWindow, day_of_week: Weekday) -> List[date]:
    """All dated occurrences of ``day_of_week`` within the term.

    Empty when the term is shorter than a week and never reaches that day.
    """
    return list(iter_occurrences(term, day_of_week))


def total_occurrences(term: TermWindow, day_of_week: Weekday) -> int:
    """Number of occurrences; the denominator for partial-enrollment proration."""
    if term.end_date < term.start_date:
        return 0
    first = first_occurrence(term.start_date, day_of_week)
    if first > term.end_date:
        return 0
    return (term.end_date - first).days // 7 + 1


def is_occurrence(term: TermWindow, day_of_week: Weekday, day: date) -> bool:
    """Whether ``day`` is one of the term's occurrences for the weekday."""
    return (
        term.start_date <= day <= term.end_date
        and day.weekday() == day_of_week.python_weekday
    )

"""Enrollment eligibility: does an enrollment-session count on a given date?

Roster generation, attendance marking, cancellation requests and attendance
reports all answer that question through ``is_eligible``.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional, Sequence, Union

from app.models.enrollment import EnrollmentType


@dataclass(frozen=True)
class FullSelection:
    """Every occurrence of the session in its term."""

    enrollment_type: EnrollmentType = field(default=EnrollmentType.FULL, init=False)

    @property
    def dates(self) -> List[date]:
        return []


@dataclass(frozen=True)
class TrialSelection:
    """A single free trial class."""

    trial_date: date
    enrollment_type: EnrollmentType = field(default=EnrollmentType.TRIAL, init=False)

    @property
    def dates(self) -> List[date]:
        return [self.trial_date]


@dataclass(frozen=True)
class PartialSelection:
    """A chosen subset of the term's occurrences."""

    partial_dates: frozenset
    enrollment_type: EnrollmentType = field(default=EnrollmentType.PARTIAL, init=False)

    @property
    def dates(self) -> List[date]:
        return sorted(self.partial_dates)


EnrollmentSelection = Union[FullSelection, TrialSelection, PartialSelection]


def make_selection(
    enrollment_type: EnrollmentType,
    dates: Optional[Iterable[date]] = None,
) -> EnrollmentSelection:
    """Build the tagged selection for a type and its submitted dates.

    Raises ``ValueError`` when the dates do not fit the type: a trial needs
    exactly one date, a partial at least one, a full enrollment none.
    """
    dates = list(dates or [])
    if enrollment_type == EnrollmentType.FULL:
        if dates:
            raise ValueError("Full enrollments do not take dates")
        return FullSelection()
    if enrollment_type == EnrollmentType.TRIAL:
        if len(dates) != 1:
            raise ValueError("Trial enrollments take exactly one date")
        return TrialSelection(trial_date=dates[0])
    if enrollment_type == EnrollmentType.PARTIAL:
        if not dates:
            raise ValueError("Partial enrollments need at least one date")
        if len(set(dates)) != len(dates):
            raise ValueError("Partial dates must not repeat")
        return PartialSelection(partial_dates=frozenset(dates))
    raise ValueError(f"Unknown enrollment type: {enrollment_type}")


def is_eligible(
    selection: EnrollmentSelection,
    occurrences: Sequence[date],
    candidate: date,
) -> bool:
    """Whether the selection entitles the holder to the class on ``candidate``.

    ``occurrences`` is the session's term calendar; it bounds full
    enrollments only.
    """
    if isinstance(selection, FullSelection):
        return candidate in occurrences
    if isinstance(selection, TrialSelection):
        return candidate == selection.trial_date
    if isinstance(selection, PartialSelection):
        return candidate in selection.partial_dates
    raise TypeError(f"Unsupported selection: {selection!r}")


def eligible_dates(
    selection: EnrollmentSelection, occurrences: Sequence[date]
) -> List[date]:
    """Eligible dates in calendar order."""
    if isinstance(selection, FullSelection):
        return list(occurrences)
    return selection.dates

"""Tests for fee calculation and eligibility."""

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.models.class_session import Weekday
from app.models.enrollment import EnrollmentType
from app.services.eligibility import (
    FullSelection,
    PartialSelection,
    TrialSelection,
    eligible_dates,
    is_eligible,
    make_selection,
)
from app.services.fee_calculator import (
    compute_fee,
    compute_total,
    price_lines,
    to_money,
)
from app.services.term_calendar import occurrence_dates
from core.exceptions import InvalidDateSelection, InvalidTermConfiguration

JAN_1 = date(2024, 1, 1)


def session(fee="100.00", start=JAN_1, end=date(2024, 1, 29), day=Weekday.MONDAY, id="s1"):
    return SimpleNamespace(
        id=id,
        fee_amount=Decimal(fee),
        day_of_week=day,
        term=SimpleNamespace(start_date=start, end_date=end),
    )


class TestComputeFee:
    def test_full_enrollment_costs_session_fee(self):
        assert compute_fee(session(), FullSelection(), JAN_1) == Decimal("100.00")

    def test_trial_is_free(self):
        assert compute_fee(session(), TrialSelection(trial_date=date(2024, 1, 8)), JAN_1) == Decimal("0.00")

    def test_partial_is_prorated(self):
        # 100 / 5 occurrences x 2 dates
        selection = PartialSelection(partial_dates=frozenset({date(2024, 1, 8), date(2024, 1, 22)}))
        assert compute_fee(session(), selection, JAN_1) == Decimal("40.00")

    def test_partial_rounds_half_up_to_cents(self):
        # 100 / 3 occurrences x 1 date = 33.333...
        s = session(end=date(2024, 1, 15))
        selection = PartialSelection(partial_dates=frozenset({date(2024, 1, 8)}))
        assert compute_fee(s, selection, JAN_1) == Decimal("33.33")

        # 0.05 / 2 occurrences x 1 date = 0.025
        s = session(fee="0.05", end=date(2024, 1, 8))
        assert compute_fee(s, selection, JAN_1) == Decimal("0.03")

    def test_partial_with_every_date_equals_full_fee(self):
        s = session()
        selection = PartialSelection(partial_dates=frozenset(occurrence_dates(s.term, s.day_of_week)))
        assert compute_fee(s, selection, JAN_1) == Decimal("100.00")

    def test_partial_date_not_an_occurrence(self):
        selection = PartialSelection(partial_dates=frozenset({date(2024, 1, 9)}))
        with pytest.raises(InvalidDateSelection) as exc:
            compute_fee(session(), selection, JAN_1)
        assert exc.value.data["dates"] == ["2024-01-09"]

    def test_partial_date_in_past(self):
        selection = PartialSelection(partial_dates=frozenset({date(2024, 1, 8)}))
        with pytest.raises(InvalidDateSelection):
            compute_fee(session(), selection, date(2024, 1, 10))

    def test_session_without_occurrences(self):
        s = session(start=date(2024, 1, 2), end=date(2024, 1, 4))
        with pytest.raises(InvalidTermConfiguration):
            compute_fee(s, FullSelection(), JAN_1)


class TestPriceLines:
    def test_total_is_sum_of_lines(self):
        monday = session(id="mon")
        wednesday = session(id="wed", fee="50.00", day=Weekday.WEDNESDAY)
        lines = price_lines(
            [
                (monday, FullSelection()),
                (wednesday, PartialSelection(partial_dates=frozenset({date(2024, 1, 10)}))),
                (session(id="trial"), TrialSelection(trial_date=date(2024, 1, 15))),
            ],
            JAN_1,
        )
        assert [line.fee for line in lines] == [Decimal("100.00"), Decimal("12.50"), Decimal("0.00")]
        assert compute_total(lines) == Decimal("112.50")

    def test_trial_date_must_be_an_occurrence(self):
        with pytest.raises(InvalidDateSelection):
            price_lines([(session(), TrialSelection(trial_date=date(2024, 1, 9)))], JAN_1)

    def test_trial_date_in_past(self):
        with pytest.raises(InvalidDateSelection):
            price_lines([(session(), TrialSelection(trial_date=date(2024, 1, 1)))], date(2024, 1, 2))

    def test_to_money(self):
        assert to_money(Decimal("1.005")) == Decimal("1.01")
        assert to_money(Decimal("7")) == Decimal("7.00")


class TestSelections:
    def test_make_selection_by_type(self):
        assert isinstance(make_selection(EnrollmentType.FULL), FullSelection)
        assert make_selection(EnrollmentType.TRIAL, [JAN_1]).trial_date == JAN_1
        partial = make_selection(EnrollmentType.PARTIAL, [date(2024, 1, 15), JAN_1])
        assert partial.dates == [JAN_1, date(2024, 1, 15)]

    @pytest.mark.parametrize(
        "enrollment_type, dates",
        [
            (EnrollmentType.FULL, [JAN_1]),
            (EnrollmentType.TRIAL, []),
            (EnrollmentType.TRIAL, [JAN_1, date(2024, 1, 8)]),
            (EnrollmentType.PARTIAL, []),
            (EnrollmentType.PARTIAL, [JAN_1, JAN_1]),
        ],
    )
    def test_make_selection_rejects_mismatched_dates(self, enrollment_type, dates):
        with pytest.raises(ValueError):
            make_selection(enrollment_type, dates)


class TestEligibility:
    occurrences = [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)]

    def test_full_is_eligible_on_every_occurrence(self):
        assert all(is_eligible(FullSelection(), self.occurrences, d) for d in self.occurrences)
        assert not is_eligible(FullSelection(), self.occurrences, date(2024, 1, 2))
        assert not is_eligible(FullSelection(), self.occurrences, date(2024, 1, 22))

    def test_trial_is_eligible_on_its_date_only(self):
        selection = TrialSelection(trial_date=date(2024, 1, 8))
        assert is_eligible(selection, self.occurrences, date(2024, 1, 8))
        assert not is_eligible(selection, self.occurrences, date(2024, 1, 15))

    def test_partial_is_eligible_on_its_dates_only(self):
        selection = PartialSelection(partial_dates=frozenset({date(2024, 1, 1), date(2024, 1, 15)}))
        assert is_eligible(selection, self.occurrences, date(2024, 1, 15))
        assert not is_eligible(selection, self.occurrences, date(2024, 1, 8))

    def test_eligible_dates(self):
        assert eligible_dates(FullSelection(), self.occurrences) == self.occurrences
        selection = PartialSelection(partial_dates=frozenset({date(2024, 1, 15), date(2024, 1, 1)}))
        assert eligible_dates(selection, self.occurrences) == [date(2024, 1, 1), date(2024, 1, 15)]
